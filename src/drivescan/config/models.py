"""Configuration models for drivescan."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class JobsConfig:
    """Configuration for the job store and its maintenance sweeps."""

    # How long to keep completed and failed jobs (days)
    retention_days: int = 30

    # Maximum jobs deleted per cleanup sweep
    cleanup_batch_size: int = 100

    # Purge old jobs on worker start
    auto_purge: bool = True

    # Wall-clock budget of a running job before it is force-failed (minutes)
    timeout_minutes: int = 15

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.retention_days < 1:
            raise ValueError(
                f"retention_days must be at least 1, got {self.retention_days}"
            )
        if self.cleanup_batch_size < 1:
            raise ValueError(
                f"cleanup_batch_size must be at least 1, got {self.cleanup_batch_size}"
            )
        if self.timeout_minutes < 1:
            raise ValueError(
                f"timeout_minutes must be at least 1, got {self.timeout_minutes}"
            )


@dataclass
class ScanConfig:
    """Configuration for the scan orchestrator."""

    # Retries after the first attempt
    max_retries: int = 3

    # Backoff before retry n is min(base * 2**n, max)
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    # Entries per listing page (Drive allows at most 1000)
    page_size: int = 1000

    # Entries per index write batch
    index_batch_size: int = 100

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Backoff delays must be >= 0")
        if not 1 <= self.page_size <= 1000:
            raise ValueError(f"page_size must be 1-1000, got {self.page_size}")
        if self.index_batch_size < 1:
            raise ValueError(
                f"index_batch_size must be at least 1, got {self.index_batch_size}"
            )


@dataclass
class DriveConfig:
    """Connection settings for the Drive API and the OAuth token endpoint."""

    api_url: str = "https://www.googleapis.com/drive/v3"
    token_url: str = "https://oauth2.googleapis.com/token"
    client_id: str | None = None
    client_secret: str | None = None
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        for name in ("api_url", "token_url"):
            value = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                raise ValueError(f"{name} must start with http:// or https://")
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )


@dataclass
class WorkerConfig:
    """Configuration for the scan worker loop."""

    # Maximum number of jobs to process per worker run (None = unlimited)
    max_jobs: int | None = None

    # Seconds between polls in watch mode
    poll_interval: float = 5.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_jobs is not None and self.max_jobs < 1:
            raise ValueError(f"max_jobs must be at least 1, got {self.max_jobs}")
        if self.poll_interval <= 0:
            raise ValueError(
                f"poll_interval must be positive, got {self.poll_interval}"
            )


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class DriveScanConfig:
    """Main configuration container."""

    database_path: Path | None = None
    jobs: JobsConfig = field(default_factory=JobsConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    drive: DriveConfig = field(default_factory=DriveConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
