"""
Utility functions for the CLI.

This module contains helper functions used by CLI commands,
such as path generation, logging setup and exit code constants.
"""

from datetime import datetime

from nanobanana.logging_config import configure_logging, get_verbosity_from_env

# Exit codes (130 = common for SIGINT)
EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2
EXIT_CANCELLED = 130


def default_output_path(fmt: str) -> str:
    """Return default output path: nanobanana_<YYYYMMDD>_<HHMMSS>.<ext> in current directory."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    ext = fmt if fmt else "png"
    return f"nanobanana_{timestamp}.{ext}"


def setup_logging(verbose_count: int, quiet: bool) -> None:
    """Apply logging verbosity: -v/-vv override NANOBANANA_VERBOSITY."""
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)


def short_id(record_id: str) -> str:
    """First uuid segment, for compact tables."""
    return record_id.split("-", 1)[0]


__all__ = [
    "EXIT_SUCCESS",
    "EXIT_API_OR_NETWORK",
    "EXIT_VALIDATION_OR_CONFIG",
    "EXIT_CANCELLED",
    "default_output_path",
    "setup_logging",
    "short_id",
]
