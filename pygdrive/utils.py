"""Utility functions for pygdrive."""

import hashlib
from datetime import datetime
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for resumable uploads (8 MB), must be a multiple of 256 KB
DEFAULT_CHUNK_SIZE: int = 8 * 1024 * 1024
UPLOAD_CHUNK_ALIGNMENT: int = 256 * 1024

# Idle timeout for transfers in seconds, 0 disables it
DEFAULT_TIMEOUT: int = 5 * 60

# Retry configuration for backend and rate limit errors
MAX_ERROR_RETRIES: int = 5

# Files at or below this size are never stored in the fingerprint cache
MIN_CACHE_FILE_SIZE: int = 5 * 1024 * 1024

# Block size used when hashing local files
HASH_BLOCK_SIZE: int = 1024 * 1024


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp from the Drive API.

    Args:
        timestamp_str: Timestamp string (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        Timezone aware datetime or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        return datetime.fromisoformat(timestamp_str)
    except (ValueError, AttributeError):
        return None


def format_datetime(timestamp_str: Optional[str]) -> str:
    """Format an API timestamp as local 'YYYY-MM-DD HH:MM:SS'."""
    dt = parse_iso_timestamp(timestamp_str)
    if dt is None:
        return timestamp_str or ""
    return format_timestamp(dt.timestamp())


def format_timestamp(timestamp: float) -> str:
    """Format a Unix timestamp as local 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def truncate_string(value: str, max_length: int) -> str:
    """Truncate a string by replacing its middle with an ellipsis.

    Strings shorter than ``max_length`` and limits below 9 are left as is.

    Examples:
        >>> truncate_string("abcdefghijklmnop", 9)
        'abc...nop'
        >>> truncate_string("short", 9)
        'short'
    """
    indicator = "..."
    if len(value) <= max_length or max_length < 9:
        return value

    keep = max_length - len(indicator)
    left = (keep + 1) // 2
    right = keep - left
    return value[:left] + indicator + value[len(value) - right :]


# =============================================================================
# Path utilities (relative paths always use forward slashes)
# =============================================================================


def parent_path(relative_path: str) -> str:
    """Return the parent of a relative path, "" for top level entries.

    Examples:
        >>> parent_path("sub/b.txt")
        'sub'
        >>> parent_path("a.txt")
        ''
    """
    if "/" not in relative_path:
        return ""
    return relative_path.rsplit("/", 1)[0]


def path_depth(relative_path: str) -> int:
    """Number of separators in a relative path."""
    return relative_path.count("/")


def join_path(parent: str, name: str) -> str:
    """Join a relative parent path and a name."""
    return f"{parent}/{name}" if parent else name


# =============================================================================
# Hash calculation utilities
# =============================================================================


def md5sum(file_path: Path) -> str:
    """Calculate the hex MD5 digest of a local file.

    Args:
        file_path: File to hash

    Returns:
        Lowercase hex digest, comparable to the API's md5Checksum
    """
    digest = hashlib.md5()
    with open(file_path, "rb") as f:
        while True:
            block = f.read(HASH_BLOCK_SIZE)
            if not block:
                break
            digest.update(block)
    return digest.hexdigest()
