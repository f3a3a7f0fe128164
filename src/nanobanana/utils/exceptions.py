"""
Error types raised by nanobanana.

Everything derives from NanobananaError so the CLI and the web UI can map a
failure to an exit code or a status message with a single except clause.
"""


class NanobananaError(Exception):
    """Root of every error the library raises on purpose."""


class ValidationError(NanobananaError):
    """
    Bad user input: an empty prompt, a malformed @handle, an unknown aspect
    ratio or quality, an unregistered provider or a missing API key.

    ``field`` names the offending input when there is one.
    """

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class APIError(NanobananaError):
    """
    Together, OpenRouter or imgbb answered, but not with a usable image or URL.

    Carries the HTTP status (0 when the body itself was the problem) and a
    redacted copy of the response for debugging.
    """

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class NetworkError(NanobananaError):
    """A provider or imgbb could not be reached at all."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)


class CancellationError(NanobananaError):
    """Generation stopped by Ctrl+C in the CLI or the Stop button in the UI."""


class RequestTimeoutError(NanobananaError):
    """Generation or upload ran past its configured timeout."""


class ConfigurationError(NanobananaError):
    """Settings that cannot work together, such as a non-positive history limit or a missing key."""


class ImageProcessingError(NanobananaError):
    """A reference image could not be decoded or encoded, or a generated PNG could not be saved."""

    def __init__(self, message: str, image_path: str = "") -> None:
        self.image_path = image_path
        super().__init__(message)


class NotFoundError(NanobananaError):
    """An element or history entry is missing, or belongs to another user."""

    def __init__(self, message: str, record_id: str = "") -> None:
        self.record_id = record_id
        super().__init__(message)
