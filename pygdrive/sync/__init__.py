"""Sync engine for PyGDrive - upload and download directory synchronization."""

from .cache import CachedFileInfo, FileCache
from .comparator import CachedMd5Comparer, FileComparer, Md5Comparer
from .conflict import (
    ConflictResolution,
    check_local_conflict,
    check_remote_conflict,
)
from .engine import DownloadSyncArgs, SyncEngine, UploadSyncArgs
from .files import ChangedFile, ModTimeComparison, SizeComparison, SyncFiles
from .operations import SyncOperations
from .scanner import DirectoryScanner, LocalFile, RemoteFile

__all__ = [
    "SyncEngine",
    "UploadSyncArgs",
    "DownloadSyncArgs",
    "SyncOperations",
    "SyncFiles",
    "ChangedFile",
    "ModTimeComparison",
    "SizeComparison",
    "ConflictResolution",
    "check_local_conflict",
    "check_remote_conflict",
    "FileComparer",
    "Md5Comparer",
    "CachedMd5Comparer",
    "FileCache",
    "CachedFileInfo",
    "DirectoryScanner",
    "LocalFile",
    "RemoteFile",
]
