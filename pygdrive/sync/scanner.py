"""Directory scanning utilities for sync operations."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import SyncSetupError
from ..file_entries_manager import FileEntriesManager
from ..models import FileEntry
from ..utils import parse_iso_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFile:
    """Represents a local file or directory with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes (0 for directories)"""

    mtime_ns: int
    """Last modification time in nanoseconds since the epoch"""

    is_dir: bool = False
    """Whether this entry is a directory"""

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def mtime(self) -> float:
        """Last modification time (Unix timestamp)."""
        return self.mtime_ns / 1e9

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        is_dir = file_path.is_dir()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()

        return cls(
            path=file_path,
            relative_path=relative_path,
            size=0 if is_dir else stat.st_size,
            mtime_ns=stat.st_mtime_ns,
            is_dir=is_dir,
        )


@dataclass(frozen=True)
class RemoteFile:
    """Represents a remote file or folder with metadata."""

    entry: FileEntry
    """Remote file entry from API"""

    relative_path: str
    """Relative path below the sync root ("" for the root itself)"""

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def size(self) -> int:
        """File size in bytes."""
        return self.entry.size

    @property
    def md5(self) -> str:
        """Content fingerprint (MD5 hex digest, "" for folders and documents)."""
        return self.entry.md5_checksum

    @property
    def is_dir(self) -> bool:
        return self.entry.is_dir

    @property
    def is_binary(self) -> bool:
        return self.entry.is_binary

    @property
    def mtime(self) -> Optional[float]:
        """Last modification time (Unix timestamp)."""
        dt = parse_iso_timestamp(self.entry.modified_time)
        return dt.timestamp() if dt else None


class DirectoryScanner:
    """Builds complete local and remote file lists below a sync root.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/sync/folder"))
        >>> for f in files:
        ...     print(f.relative_path)
    """

    def scan_local(
        self,
        directory: Path,
        base_path: Optional[Path] = None,
        ancestors: Optional[frozenset[tuple[int, int]]] = None,
    ) -> list[LocalFile]:
        """Recursively scan a local directory, depth first.

        Directories are included as entries. Symlinks are followed, dangling
        ones are skipped. Permission and I/O errors propagate: an incomplete
        snapshot could turn into deletions.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)
            ancestors: (st_dev, st_ino) of the directories above ``directory``

        Returns:
            List of LocalFile objects

        Raises:
            SyncSetupError: If a symlink points back to one of its parents
        """
        if base_path is None:
            base_path = directory
        if ancestors is None:
            ancestors = frozenset([_dir_key(directory)])

        files: list[LocalFile] = []

        with os.scandir(directory) as it:
            items = sorted(it, key=lambda e: e.name)

        for item in items:
            item_path = Path(item.path)
            if item.is_symlink() and _is_dangling(item_path):
                logger.debug(f"Skipping dangling symlink: {item_path}")
                continue

            local_file = LocalFile.from_path(item_path, base_path)
            files.append(local_file)

            if local_file.is_dir:
                key = _dir_key(item_path)
                if key in ancestors:
                    raise SyncSetupError(
                        f"Symlink loop detected: {local_file.relative_path} "
                        "points to one of its parent directories"
                    )
                files.extend(
                    self.scan_local(item_path, base_path, ancestors | {key})
                )

        return files

    def scan_remote(
        self,
        manager: FileEntriesManager,
        root: FileEntry,
        order_by: Optional[str] = None,
    ) -> list[RemoteFile]:
        """List every remote entry below the sync root.

        Args:
            manager: File entries manager used for paged listing
            root: Sync root folder
            order_by: Optional API sort order for every folder listing

        Returns:
            List of RemoteFile objects (files and folders, root excluded)
        """
        return [
            RemoteFile(entry=entry, relative_path=rel_path)
            for entry, rel_path in manager.get_all_recursive(root.id, order_by=order_by)
        ]


def _dir_key(path: Path) -> tuple[int, int]:
    st = path.stat()
    return st.st_dev, st.st_ino


def _is_dangling(path: Path) -> bool:
    """Whether a symlink points to nothing. Other stat errors propagate."""
    try:
        path.stat()
    except FileNotFoundError:
        return True
    return False
