"""Conflict detection and resolution for changed files."""

from enum import Enum

from ..utils import format_datetime, format_timestamp
from .files import ChangedFile, ModTimeComparison, SizeComparison


class ConflictResolution(str, Enum):
    """How to handle a file changed on both sides. Applies to the whole run."""

    NONE = "none"
    """Abort the run before any transfer if a conflict exists"""

    KEEP_LOCAL = "keep-local"
    KEEP_REMOTE = "keep-remote"
    KEEP_LARGEST = "keep-largest"


def check_remote_conflict(
    changed: ChangedFile, resolution: ConflictResolution
) -> tuple[bool, str]:
    """Decide whether an upload of a changed file must be skipped.

    There is only a conflict when the remote copy was modified after the
    local one; otherwise the local change always proceeds.

    Args:
        changed: Changed file pair
        resolution: Conflict resolution of this run

    Returns:
        Tuple of (skip, reason)
    """
    if changed.compare_mod_time() != ModTimeComparison.REMOTE_LAST_MODIFIED:
        return False, ""

    if resolution == ConflictResolution.KEEP_LOCAL:
        return False, ""

    if resolution == ConflictResolution.KEEP_REMOTE:
        return True, "conflicting file, keeping remote file"

    if resolution == ConflictResolution.KEEP_LARGEST:
        largest = changed.compare_size()
        if largest == SizeComparison.REMOTE_LARGEST:
            return True, "conflicting file, remote file is largest, keeping remote"
        if largest == SizeComparison.LOCAL_LARGEST:
            return False, ""
        if largest == SizeComparison.EQUAL_SIZE:
            return True, "conflicting file, file sizes are equal, keeping remote"

    # Default to being non-destructive
    return True, "conflicting file, unhandled case"


def check_local_conflict(
    changed: ChangedFile, resolution: ConflictResolution
) -> tuple[bool, str]:
    """Decide whether a download of a changed file must be skipped.

    Mirror of check_remote_conflict: a conflict exists only when the local
    copy was modified after the remote one.
    """
    if changed.compare_mod_time() != ModTimeComparison.LOCAL_LAST_MODIFIED:
        return False, ""

    if resolution == ConflictResolution.KEEP_REMOTE:
        return False, ""

    if resolution == ConflictResolution.KEEP_LOCAL:
        return True, "conflicting file, keeping local file"

    if resolution == ConflictResolution.KEEP_LARGEST:
        largest = changed.compare_size()
        if largest == SizeComparison.LOCAL_LARGEST:
            return True, "conflicting file, local file is largest, keeping local"
        if largest == SizeComparison.REMOTE_LARGEST:
            return False, ""
        if largest == SizeComparison.EQUAL_SIZE:
            return True, "conflicting file, file sizes are equal, keeping local"

    return True, "conflicting file, unhandled case"


def find_remote_conflicts(files: list[ChangedFile]) -> list[ChangedFile]:
    """Changed files whose remote copy is newer than the local one."""
    return [
        cf
        for cf in files
        if cf.compare_mod_time() == ModTimeComparison.REMOTE_LAST_MODIFIED
    ]


def find_local_conflicts(files: list[ChangedFile]) -> list[ChangedFile]:
    """Changed files whose local copy is newer than the remote one."""
    return [
        cf
        for cf in files
        if cf.compare_mod_time() == ModTimeComparison.LOCAL_LAST_MODIFIED
    ]


def format_conflicts(conflicts: list[ChangedFile]) -> str:
    """One line per conflict: path, local and remote modification times."""
    lines = []
    for cf in conflicts:
        local_time = format_timestamp(cf.local.mtime)
        remote_time = format_datetime(cf.remote.entry.modified_time)
        lines.append(
            f"{cf.relative_path}  (local: {local_time}, remote: {remote_time})"
        )
    return "\n".join(lines)
