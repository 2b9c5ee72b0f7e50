"""Persistent fingerprint cache for large local files.

Hashing multi-gigabyte files on every sync is slow, so the MD5 of large
files is remembered together with the size and modification time it was
computed for. An entry is only trusted while both still match.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CachedFileInfo:
    """Fingerprint of a local file at a given size and mtime."""

    size: int
    """File size in bytes"""

    modified: int
    """Modification time in nanoseconds"""

    md5: str
    """MD5 hex digest"""

    def matches(self, size: int, modified: int) -> bool:
        return self.size == size and self.modified == modified

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON serialization."""
        return {"size": self.size, "modified": self.modified, "md5": self.md5}

    @classmethod
    def from_dict(cls, data: dict) -> "CachedFileInfo":
        """Create CachedFileInfo from dictionary."""
        return cls(
            size=int(data.get("size", 0)),
            modified=int(data.get("modified", 0)),
            md5=data.get("md5", ""),
        )


class FileCache:
    """JSON backed map of absolute path -> CachedFileInfo.

    The file is read once on creation and rewritten in full by ``save``.
    Concurrent writers are not supported.
    """

    def __init__(self, path: Path):
        """Initialize the cache.

        Args:
            path: Location of the JSON cache file
        """
        self.path = path
        self._entries: dict[str, CachedFileInfo] = self._load()

    def _load(self) -> dict[str, CachedFileInfo]:
        if not self.path.exists():
            logger.debug(f"No file cache found at {self.path}")
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            entries = {
                key: CachedFileInfo.from_dict(value) for key, value in data.items()
            }
            logger.debug(f"Loaded {len(entries)} cache entries from {self.path}")
            return entries
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable file cache {self.path}: {e}")
            return {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CachedFileInfo]:
        return self._entries.get(key)

    def put(self, key: str, info: CachedFileInfo) -> None:
        self._entries[key] = info

    def save(self) -> None:
        """Atomically replace the cache file with the current entries."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: info.to_dict() for key, info in self._entries.items()}

        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved {len(data)} cache entries to {self.path}")
