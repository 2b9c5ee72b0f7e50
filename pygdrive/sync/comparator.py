"""Content comparison between local files and their remote counterparts."""

import logging
from pathlib import Path
from typing import Optional, Protocol

from ..utils import MIN_CACHE_FILE_SIZE, md5sum
from .cache import CachedFileInfo, FileCache
from .scanner import LocalFile, RemoteFile

logger = logging.getLogger(__name__)


class FileComparer(Protocol):
    """Decides whether local content differs from the remote fingerprint."""

    def changed(self, local: LocalFile, remote: RemoteFile) -> bool: ...


class Md5Comparer:
    """Compares by hashing the local file on every call."""

    def changed(self, local: LocalFile, remote: RemoteFile) -> bool:
        return remote.md5 != md5sum(local.path)


class CachedMd5Comparer:
    """Compares using cached fingerprints for large, unmodified files.

    Examples:
        >>> comparer = CachedMd5Comparer(Path("~/.config/pygdrive/file_cache.json"))
        >>> comparer.changed(local_file, remote_file)
        False
    """

    def __init__(
        self,
        cache_path: Optional[Path] = None,
        cache: Optional[FileCache] = None,
        min_size: int = MIN_CACHE_FILE_SIZE,
    ):
        """Initialize the comparer.

        Args:
            cache_path: JSON cache file to load (ignored when cache is given)
            cache: Already loaded cache
            min_size: Only files larger than this are cached
        """
        if cache is None:
            if cache_path is None:
                raise ValueError("Either cache_path or cache is required")
            cache = FileCache(cache_path)
        self.cache = cache
        self.min_size = min_size

    def changed(self, local: LocalFile, remote: RemoteFile) -> bool:
        return remote.md5 != self.md5(local)

    def md5(self, local: LocalFile) -> str:
        """Fingerprint of a local file, from the cache when still valid."""
        key = str(local.path.absolute())
        cached = self.cache.get(key)

        if cached is not None and cached.matches(local.size, local.mtime_ns):
            logger.debug(f"Using cached md5 for {local.relative_path}")
            return cached.md5

        md5 = md5sum(local.path)

        if local.size > self.min_size:
            self.cache.put(
                key,
                CachedFileInfo(size=local.size, modified=local.mtime_ns, md5=md5),
            )
            self.cache.save()

        return md5
