"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (DRIVESCAN_*)
3. Config file (~/.drivescan/config.toml)
4. Default values

Environment variables:
- DRIVESCAN_CONFIG_PATH: Path to config file (overrides default location)
- DRIVESCAN_DATA_DIR: Path to data directory (overrides ~/.drivescan/)
- DRIVESCAN_DATABASE_PATH: Path to database file
- DRIVESCAN_RETENTION_DAYS: Days to keep terminal jobs (default 30)
- DRIVESCAN_JOB_TIMEOUT_MINUTES: Running job budget (default 15)
- DRIVESCAN_MAX_RETRIES: Retries after the first scan attempt (default 3)
- DRIVESCAN_PAGE_SIZE: Entries per listing page (default 1000)
- DRIVESCAN_CLIENT_ID / DRIVESCAN_CLIENT_SECRET: OAuth client credentials
- DRIVESCAN_API_URL / DRIVESCAN_TOKEN_URL: Endpoint overrides
- DRIVESCAN_HTTP_TIMEOUT: HTTP timeout in seconds
- DRIVESCAN_POLL_INTERVAL: Worker poll interval in seconds
- DRIVESCAN_LOG_LEVEL / DRIVESCAN_LOG_FILE / DRIVESCAN_LOG_FORMAT: Logging
"""

from __future__ import annotations

import logging
import threading
import tomllib
from pathlib import Path
from typing import Any

from drivescan.config.env import EnvReader
from drivescan.config.models import (
    DriveConfig,
    DriveScanConfig,
    JobsConfig,
    LoggingConfig,
    ScanConfig,
    WorkerConfig,
)

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_DIR = Path.home() / ".drivescan"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"
DATABASE_FILENAME = "drivescan.db"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()

# Environment overrides: section -> field -> (variable, reader method)
ENV_OVERRIDES: dict[str, dict[str, tuple[str, str]]] = {
    "jobs": {
        "retention_days": ("DRIVESCAN_RETENTION_DAYS", "get_int"),
        "timeout_minutes": ("DRIVESCAN_JOB_TIMEOUT_MINUTES", "get_int"),
    },
    "scan": {
        "max_retries": ("DRIVESCAN_MAX_RETRIES", "get_int"),
        "page_size": ("DRIVESCAN_PAGE_SIZE", "get_int"),
    },
    "drive": {
        "api_url": ("DRIVESCAN_API_URL", "get_str"),
        "token_url": ("DRIVESCAN_TOKEN_URL", "get_str"),
        "client_id": ("DRIVESCAN_CLIENT_ID", "get_str"),
        "client_secret": ("DRIVESCAN_CLIENT_SECRET", "get_str"),
        "timeout_seconds": ("DRIVESCAN_HTTP_TIMEOUT", "get_float"),
    },
    "worker": {
        "poll_interval": ("DRIVESCAN_POLL_INTERVAL", "get_float"),
    },
    "logging": {
        "level": ("DRIVESCAN_LOG_LEVEL", "get_str"),
        "file": ("DRIVESCAN_LOG_FILE", "get_path"),
        "format": ("DRIVESCAN_LOG_FORMAT", "get_str"),
    },
}

SECTION_MODELS: dict[str, type] = {
    "jobs": JobsConfig,
    "scan": ScanConfig,
    "drive": DriveConfig,
    "worker": WorkerConfig,
    "logging": LoggingConfig,
}

PATH_FIELDS = {("logging", "file")}


def get_default_config_path(env_reader: EnvReader | None = None) -> Path:
    """Get the config file path, honoring DRIVESCAN_CONFIG_PATH."""
    reader = env_reader or EnvReader()
    return reader.get_path("DRIVESCAN_CONFIG_PATH") or DEFAULT_CONFIG_FILE


def get_data_dir(env_reader: EnvReader | None = None) -> Path:
    """Get the drivescan data directory.

    This is the base directory for the database and the config file.
    Can be overridden by DRIVESCAN_DATA_DIR (tilde expansion supported).

    Returns:
        Path to the data directory (~/.drivescan/ by default).
    """
    reader = env_reader or EnvReader()
    return reader.get_path("DRIVESCAN_DATA_DIR") or DEFAULT_CONFIG_DIR


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from TOML file.

    Results are cached with mtime-based invalidation. Thread-safe.

    Args:
        path: Path to config file. If None, uses default location.
        strict: If True, raise on parse failures.
                If False (default), log a warning and return an empty dict.

    Returns:
        Parsed configuration dict. Empty dict if file doesn't exist.

    Raises:
        tomllib.TOMLDecodeError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        return {}

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        try:
            with path.open("rb") as f:
                result = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            if strict:
                raise
            logger.warning("Ignoring unparseable config file %s: %s", path, e)
            result = {}
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def _section_values(
    section: str,
    file_config: dict[str, Any],
    reader: EnvReader,
) -> dict[str, Any]:
    values: dict[str, Any] = {}

    file_section = file_config.get(section, {})
    if isinstance(file_section, dict):
        values.update(file_section)
    for name in list(values):
        if (section, name) in PATH_FIELDS and values[name] is not None:
            values[name] = Path(values[name]).expanduser()

    for name, (var, method) in ENV_OVERRIDES.get(section, {}).items():
        env_value = getattr(reader, method)(var)
        if env_value is not None:
            values[name] = env_value
    return values


def get_config(
    config_path: Path | None = None,
    *,
    database_path: Path | None = None,
    overrides: dict[str, dict[str, Any]] | None = None,
    env_reader: EnvReader | None = None,
    strict: bool = False,
) -> DriveScanConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides DRIVESCAN_CONFIG_PATH).
        database_path: CLI override for database path.
        overrides: CLI overrides per section, e.g. ``{"worker": {"max_jobs": 1}}``.
            None values are ignored.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise on config file parse failures.

    Returns:
        DriveScanConfig with merged configuration.

    Raises:
        ValueError: If a merged value fails validation.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(
        config_path or get_default_config_path(reader), strict=strict
    )

    sections: dict[str, Any] = {}
    for section, model in SECTION_MODELS.items():
        values = _section_values(section, file_config, reader)
        for name, value in (overrides or {}).get(section, {}).items():
            if value is not None:
                values[name] = value
        try:
            sections[section] = model(**values)
        except TypeError as e:
            raise ValueError(f"Invalid [{section}] configuration: {e}") from e

    db_path = (
        database_path
        or reader.get_path("DRIVESCAN_DATABASE_PATH")
        or (
            Path(file_config["database_path"]).expanduser()
            if file_config.get("database_path")
            else None
        )
        or get_data_dir(reader) / DATABASE_FILENAME
    )

    return DriveScanConfig(database_path=db_path, **sections)
