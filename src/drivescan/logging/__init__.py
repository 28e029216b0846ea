"""Structured logging module for drivescan.

Provides configurable logging with JSON format support and file rotation,
plus job context propagation for scan workers.
"""

from drivescan.logging.config import configure_logging
from drivescan.logging.context import (
    JobContextFilter,
    clear_job_context,
    get_job_context,
    job_context,
    set_job_context,
)
from drivescan.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "JobContextFilter",
    "clear_job_context",
    "configure_logging",
    "get_job_context",
    "job_context",
    "set_job_context",
]
