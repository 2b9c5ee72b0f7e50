"""Exceptions raised by the Drive client and the sync engine."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync.files import ChangedFile


class ErrorCategory(str, Enum):
    """Status category of a remote error, used by the retry policy."""

    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    OTHER = "other"


class DriveAPIError(Exception):
    """Base exception for Drive API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def category(self) -> ErrorCategory:
        """Status category derived from the HTTP status code."""
        if self.status_code in (403, 429):
            return ErrorCategory.RATE_LIMITED
        if self.status_code is not None and 500 <= self.status_code < 600:
            return ErrorCategory.SERVER_ERROR
        return ErrorCategory.OTHER

    @property
    def is_retryable(self) -> bool:
        """True for backend and rate limit errors."""
        return self.category != ErrorCategory.OTHER


class DriveConfigError(DriveAPIError):
    """Raised when the client is not configured (missing access token)."""


class DriveAuthenticationError(DriveAPIError):
    """Raised when the access token is invalid or expired."""


class DriveNotFoundError(DriveAPIError):
    """Raised when a remote object does not exist."""


class DriveRateLimitError(DriveAPIError):
    """Raised when the API reports a rate limit (403 or 429)."""


class DriveServerError(DriveAPIError):
    """Raised on 5xx backend errors."""


class DriveNetworkError(DriveAPIError):
    """Raised on connection level failures."""


class DriveInvalidResponseError(DriveAPIError):
    """Raised when the API returns something that is not valid JSON."""


class DriveUploadError(DriveAPIError):
    """Raised when a resumable upload cannot be completed."""


class DriveDownloadError(DriveAPIError):
    """Raised when a download fails."""


class DriveCancelledError(DriveAPIError):
    """Raised when a transfer was cancelled through its cancel token."""


class SyncError(Exception):
    """Base exception for sync failures. Always aborts the run."""


class SyncSetupError(SyncError):
    """Root preparation or path resolution failed before any mutation."""


class InsufficientSpaceError(SyncError):
    """Remote quota cannot hold the files scheduled for transfer."""

    def __init__(self, free_space: int, required: int):
        from .utils import format_size

        super().__init__(
            f"Not enough free space, have {format_size(free_space)} "
            f"need {format_size(required)}"
        )
        self.free_space = free_space
        self.required = required


class SyncConflictError(SyncError):
    """Unresolved conflicts were found and no resolution was given."""

    def __init__(self, conflicts: list[ChangedFile], message: str):
        super().__init__(message)
        self.conflicts = conflicts


class SyncTransferError(SyncError):
    """A remote or local transfer failed after all retries."""


class TransferTimeoutError(SyncTransferError):
    """No data was transferred for the configured idle timeout."""

    def __init__(self, action: str, timeout: float):
        super().__init__(
            f"Failed to {action}: timeout, no data was transferred "
            f"for {timeout:g} seconds"
        )
        self.timeout = timeout
