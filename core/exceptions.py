"""
Domain exceptions shared by the WAVE services.

Callers map these onto their own transport (HTTP status, CLI exit code).
"""

from typing import Any, Dict, List, Optional


class WaveError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(WaveError):
    """Raised when an item, user or group does not exist."""
    pass


class ValidationError(WaveError):
    """Raised when a request is missing required fields or is malformed."""
    pass


class PermissionDeniedError(WaveError):
    """Raised when a member acts on something they do not own."""
    pass


class TransientIOError(WaveError):
    """Raised when an I/O condition may resolve itself if retried."""
    pass


class FileNotReadyError(TransientIOError):
    """Raised when a file is still missing or empty after polling."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"File not ready after {attempts} attempts: {path}")


class MediaProcessingError(WaveError):
    """Raised when an image or video task fails or times out."""
    pass


class UploadBatchError(WaveError):
    """
    Raised when one or more files of a multi-file upload failed.

    Files that completed are not rolled back; they are available on
    ``completed`` so callers can report partial success.
    """

    def __init__(self, completed: List[Any], failures: Dict[str, Exception]):
        self.completed = completed
        self.failures = failures
        names = ", ".join(failures.keys())
        super().__init__(
            f"{len(failures)} of {len(failures) + len(completed)} files failed: {names}"
        )


class PushDeliveryError(WaveError):
    """Raised when push delivery fails for a non-permanent reason."""
    pass


class PushGoneError(PushDeliveryError):
    """Raised when the push service reports the subscription as gone."""

    def __init__(self, endpoint: Optional[str]):
        self.endpoint = endpoint or ""
        super().__init__(f"Push subscription gone: {self.endpoint[:60]}")
