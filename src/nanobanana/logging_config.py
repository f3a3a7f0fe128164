"""
Logging configuration for nanobanana.

Logging is configured lazily so library users who never call set_verbosity
or configure_logging get no logs unless they configure logging themselves.

Verbosity levels:
- 0 (default): INFO; activity and timing only
- 1 (info): INFO + prompt text (raw and cleaned)
- 2 (verbose): DEBUG + prompt text; API calls, store access

NANOBANANA_VERBOSITY env (0/1/2) is read when the CLI or UI starts; CLI flags
override env. API payloads are only logged through redact_image_data so base64
image bodies never reach the log.
"""

import logging
import os
from typing import Any

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "nanobanana"

# Prompts longer than this are cut in log lines
PROMPT_LOG_MAX = 50_000
_TRUNCATE_THRESHOLD = 200
_NEVER_TRUNCATE_KEYS = frozenset({"prompt", "text", "message", "error"})

# verbosity -> (root logger level, log prompt text)
_VERBOSITY_LEVELS: dict[int, tuple[int, bool]] = {
    0: (logging.INFO, False),
    1: (logging.INFO, True),
    2: (logging.DEBUG, True),
}

_log_prompts: bool = False


def _root_logger() -> logging.Logger:
    """Return the nanobanana root logger, attaching a stderr handler the first time."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root


def _apply(level: int, prompts: bool) -> None:
    global _log_prompts
    _root_logger().setLevel(level)
    _log_prompts = prompts


def set_verbosity(level: int) -> None:
    """
    Set logging verbosity (0=default, 1=info, 2=verbose).

    Values below 0 act as 0 and values above 2 as 2.
    """
    _apply(*_VERBOSITY_LEVELS[max(0, min(level, 2))])


def log_prompts() -> bool:
    """Return True if prompt text should be logged at INFO (verbosity 1 or 2)."""
    return _log_prompts


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """Configure logging for the CLI or UI; quiet means WARNING and no prompt text."""
    if quiet:
        _apply(logging.WARNING, False)
    else:
        set_verbosity(verbose_level)


def get_verbosity_from_env() -> int:
    """Read NANOBANANA_VERBOSITY (0, 1 or 2); anything else counts as 0."""
    raw = os.environ.get("NANOBANANA_VERBOSITY", "0").strip()
    return int(raw) if raw in ("1", "2") else 0


def get_logger(name: str) -> logging.Logger:
    """Return a logger under nanobanana ("core.elements" -> "nanobanana.core.elements")."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_prompt(logger: logging.Logger, label: str, prompt: str) -> None:
    """Log prompt text at INFO when verbosity allows it."""
    if not _log_prompts:
        return
    shown = prompt if len(prompt) <= PROMPT_LOG_MAX else prompt[:PROMPT_LOG_MAX] + "..."
    logger.info("%s: %s", label, shown)


def redact_image_data(obj: Any, parent_key: str | None = None) -> Any:
    """Recursively replace long base64 / data URL strings with size placeholders."""
    if isinstance(obj, dict):
        return {k: redact_image_data(v, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [redact_image_data(v) for v in obj]
    if isinstance(obj, str) and len(obj) >= _TRUNCATE_THRESHOLD:
        if parent_key in _NEVER_TRUNCATE_KEYS:
            return obj
        if obj.startswith("data:"):
            return f"<data URL, {len(obj)} chars>"
        return f"<string, {len(obj)} chars>"
    return obj


__all__ = [
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompt",
    "log_prompts",
    "redact_image_data",
    "set_verbosity",
]
