"""PyGDrive - Synchronize local directories with Google Drive."""

from .api import DriveClient
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveCancelledError,
    DriveConfigError,
    DriveDownloadError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DriveRateLimitError,
    DriveServerError,
    DriveUploadError,
    ErrorCategory,
    InsufficientSpaceError,
    SyncConflictError,
    SyncError,
    SyncSetupError,
    SyncTransferError,
    TransferTimeoutError,
)
from .utils import format_size, md5sum

__version__ = "0.1.0"

__all__ = [
    "DriveClient",
    "DriveAPIError",
    "DriveAuthenticationError",
    "DriveCancelledError",
    "DriveConfigError",
    "DriveDownloadError",
    "DriveInvalidResponseError",
    "DriveNetworkError",
    "DriveNotFoundError",
    "DriveRateLimitError",
    "DriveServerError",
    "DriveUploadError",
    "ErrorCategory",
    "InsufficientSpaceError",
    "SyncConflictError",
    "SyncError",
    "SyncSetupError",
    "SyncTransferError",
    "TransferTimeoutError",
    "format_size",
    "md5sum",
]
