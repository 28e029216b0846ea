"""Configuration management for drivescan."""

from drivescan.config.env import EnvReader
from drivescan.config.loader import (
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    load_config_file,
)
from drivescan.config.models import (
    DriveConfig,
    DriveScanConfig,
    JobsConfig,
    LoggingConfig,
    ScanConfig,
    WorkerConfig,
)

__all__ = [
    "DriveConfig",
    "DriveScanConfig",
    "EnvReader",
    "JobsConfig",
    "LoggingConfig",
    "ScanConfig",
    "WorkerConfig",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "load_config_file",
]
