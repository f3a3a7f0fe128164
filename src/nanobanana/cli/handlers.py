"""
Error reporting and Ctrl+C cancellation for CLI commands.

Library exceptions become an exit code plus a one-line message; SIGINT sets
an event that long-running library calls poll through cancel_check.
"""

import signal
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import click

from nanobanana import (
    APIError,
    CancellationError,
    ConfigurationError,
    ImageProcessingError,
    NanobananaError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
    ValidationError,
)
from nanobanana.cli import progress
from nanobanana.cli.utils import (
    EXIT_API_OR_NETWORK,
    EXIT_CANCELLED,
    EXIT_VALIDATION_OR_CONFIG,
)

# Checked in order; first matching row wins
_EXIT_RULES: tuple[tuple[tuple[type[BaseException], ...], int, str], ...] = (
    ((ValidationError,), EXIT_VALIDATION_OR_CONFIG, "Validation failed."),
    ((ConfigurationError,), EXIT_VALIDATION_OR_CONFIG, "Invalid configuration."),
    ((ImageProcessingError,), EXIT_VALIDATION_OR_CONFIG, "Image processing failed."),
    ((NotFoundError, FileNotFoundError), EXIT_VALIDATION_OR_CONFIG, "Not found."),
    ((CancellationError,), EXIT_CANCELLED, "Cancelled."),
    ((APIError, NetworkError, RequestTimeoutError), EXIT_API_OR_NETWORK, "API or network error."),
    ((NanobananaError,), EXIT_API_OR_NETWORK, "An error occurred."),
)

_cancel_event = threading.Event()


def cancel_check() -> bool:
    """Return True once Ctrl+C has been pressed during the current command."""
    return _cancel_event.is_set()


def handle_sigint(_signum: int, _frame: object) -> None:
    _cancel_event.set()


def reset_cancellation() -> None:
    _cancel_event.clear()


@contextmanager
def sigint_cancellation() -> Iterator[None]:
    """Route Ctrl+C to cancel_check for the duration of the block."""
    reset_cancellation()
    previous = signal.signal(signal.SIGINT, handle_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Return (exit_code, user_message) for an exception."""
    for types, code, fallback in _EXIT_RULES:
        if not isinstance(exc, types):
            continue
        if code == EXIT_CANCELLED:
            return code, fallback
        msg = str(exc.args[0]) if exc.args else fallback
        field = getattr(exc, "field", "")
        if field:
            msg = f"{msg} (field: {field})"
        return code, msg
    return EXIT_API_OR_NETWORK, str(exc) if exc.args else "An unexpected error occurred."


def _report(code: int, msg: str, quiet: bool) -> None:
    if code == EXIT_CANCELLED:
        if not quiet:
            progress.print_warning(msg)
    elif quiet:
        click.echo(msg, err=True)
    else:
        progress.print_error(msg)


def run_with_error_handling(
    fn: Callable[[], None],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> None:
    """
    Run fn(); report any exception and exit with its mapped code.

    Unexpected (non-library) exceptions are re-raised when debug is True.
    """
    try:
        fn()
    except (NanobananaError, FileNotFoundError) as e:
        code, msg = map_exception_to_exit(e)
        _report(code, msg, quiet)
        sys.exit(code)
    except Exception as e:
        if debug:
            raise
        _code, msg = map_exception_to_exit(e)
        _report(EXIT_API_OR_NETWORK, msg, quiet)
        sys.exit(EXIT_API_OR_NETWORK)


__all__ = [
    "cancel_check",
    "handle_sigint",
    "map_exception_to_exit",
    "reset_cancellation",
    "run_with_error_handling",
    "sigint_cancellation",
]
