"""Core sync engine for executing sync runs."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import DriveClient
from ..exceptions import (
    DriveAPIError,
    InsufficientSpaceError,
    SyncConflictError,
    SyncSetupError,
)
from ..file_entries_manager import FileEntriesManager
from ..models import FileEntry, StorageQuota
from ..output import OutputFormatter
from ..readers import TIMEOUT_TIMER_INTERVAL
from ..utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_TIMEOUT,
    MAX_ERROR_RETRIES,
    parent_path,
)
from .comparator import FileComparer, Md5Comparer
from .conflict import (
    ConflictResolution,
    check_local_conflict,
    check_remote_conflict,
    find_local_conflicts,
    find_remote_conflicts,
    format_conflicts,
)
from .files import ChangedFile, SyncFiles
from .operations import SyncOperations, TransferProgressCallback
from .scanner import DirectoryScanner, LocalFile, RemoteFile

logger = logging.getLogger(__name__)


@dataclass
class UploadSyncArgs:
    """Parameters of an upload sync (local tree into remote tree)."""

    root_id: str
    path: Path
    dry_run: bool = False
    delete_extraneous: bool = False
    resolution: ConflictResolution = ConflictResolution.NONE
    timeout: float = DEFAULT_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    comparer: Optional[FileComparer] = None
    progress_callback: Optional[TransferProgressCallback] = None


@dataclass
class DownloadSyncArgs:
    """Parameters of a download sync (remote tree into local tree)."""

    root_id: str
    path: Path
    dry_run: bool = False
    delete_extraneous: bool = False
    resolution: ConflictResolution = ConflictResolution.NONE
    timeout: float = DEFAULT_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    comparer: Optional[FileComparer] = None
    progress_callback: Optional[TransferProgressCallback] = None


class SyncEngine:
    """Core sync engine that orchestrates directory synchronization.

    A run enumerates both trees completely, classifies every path, checks
    quota and conflicts, and only then starts mutating. Any error aborts the
    run; transfers completed before the error are kept.
    """

    def __init__(
        self,
        client: DriveClient,
        output: Optional[OutputFormatter] = None,
        max_retries: int = MAX_ERROR_RETRIES,
        timeout_check_interval: float = TIMEOUT_TIMER_INTERVAL,
    ):
        """Initialize sync engine.

        Args:
            client: Drive API client
            output: Output formatter for displaying progress/status
            max_retries: Retries per remote mutation
            timeout_check_interval: Idle watchdog interval in seconds
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.manager = FileEntriesManager(client)
        self.scanner = DirectoryScanner()
        self.max_retries = max_retries
        self.timeout_check_interval = timeout_check_interval

    def _operations(
        self,
        root_id: str,
        args: "UploadSyncArgs | DownloadSyncArgs",
    ) -> SyncOperations:
        return SyncOperations(
            self.client,
            root_id,
            dry_run=args.dry_run,
            timeout=args.timeout,
            chunk_size=args.chunk_size,
            progress_callback=args.progress_callback,
            max_retries=self.max_retries,
            timeout_check_interval=self.timeout_check_interval,
        )

    # =========================
    # Upload
    # =========================

    def upload_sync(self, args: UploadSyncArgs) -> dict:
        """Make the remote sync root mirror a local directory.

        Args:
            args: Upload parameters

        Returns:
            Dictionary with sync statistics

        Raises:
            SyncSetupError: Invalid root or local directory, ambiguous paths
            InsufficientSpaceError: Remote quota too small
            SyncConflictError: Remote-newer changes and resolution NONE
            SyncTransferError: A transfer failed after all retries

        Examples:
            >>> engine = SyncEngine(client)
            >>> args = UploadSyncArgs(root_id="abc", path=Path("/data"))
            >>> stats = engine.upload_sync(args)
            >>> print(f"Uploaded {stats['uploads']} files")
        """
        started = time.monotonic()
        self._check_local_dir(args.path)
        stats = _new_stats(args.dry_run)

        self.output.info("Starting sync...")
        if args.dry_run:
            self.output.info("Dry run: No changes will be made")

        ops = self._operations(args.root_id, args)
        root = self._prepare_upload_root(args.root_id, ops)

        self.output.info("Collecting local and remote file information...")
        files = self._prepare_sync_files(root, args.path, args.comparer)
        self.output.info(
            f"Found {len(files.local)} local files and "
            f"{len(files.remote)} remote files"
        )

        missing_dirs = files.filter_missing_remote_dirs()
        missing_files = files.filter_missing_remote_files()
        changed_files = files.filter_changed_local_files()

        self._check_remote_free_space(missing_files, changed_files)

        if args.resolution == ConflictResolution.NONE:
            self._ensure_no_remote_modifications(changed_files)

        self._create_missing_remote_dirs(files, ops, missing_dirs, stats)
        self._upload_missing_files(files, ops, missing_files, stats)
        self._update_changed_files(files, ops, changed_files, args.resolution, stats)

        if args.delete_extraneous:
            self._delete_extraneous_remote(files, ops, stats)

        self.output.info(f"Sync finished in {_elapsed(started)}")
        return stats

    def _prepare_upload_root(self, root_id: str, ops: SyncOperations) -> FileEntry:
        """Check the root directory and mark it on the first sync."""
        root = self._get_root(root_id)

        if not root.is_dir:
            raise SyncSetupError("Provided root id is not a directory")

        if root.is_sync_root:
            return root

        if not self.manager.is_empty(root.id):
            raise SyncSetupError(
                "Root directory is not empty, the initial sync requires "
                "an empty directory"
            )

        logger.debug(f"Marking {root.name} ({root.id}) as sync root")
        return ops.mark_sync_root(root)

    def _check_remote_free_space(
        self, missing: list[LocalFile], changed: list[ChangedFile]
    ) -> None:
        quota = StorageQuota.from_api_response(self.client.get_storage_quota())
        if quota.unlimited:
            return

        required = sum(lf.size for lf in missing)
        required += sum(cf.local.size for cf in changed)

        if quota.free < required:
            raise InsufficientSpaceError(quota.free, required)

    def _ensure_no_remote_modifications(self, changed: list[ChangedFile]) -> None:
        conflicts = find_remote_conflicts(changed)
        if not conflicts:
            return
        raise SyncConflictError(
            conflicts,
            "Conflict detected!\n"
            "The following files have changed and the remote file are newer "
            "than it's local counterpart:\n\n"
            f"{format_conflicts(conflicts)}\n"
            "No conflict resolution was given, aborting...",
        )

    def _remote_parent(self, files: SyncFiles, relative_path: str) -> RemoteFile:
        parent = parent_path(relative_path)
        remote_parent = files.find_remote_by_path(parent)
        if remote_parent is None:
            raise SyncSetupError(
                f"Could not find remote directory with path '{parent}'"
            )
        return remote_parent

    def _create_missing_remote_dirs(
        self,
        files: SyncFiles,
        ops: SyncOperations,
        missing: list[LocalFile],
        stats: dict,
    ) -> None:
        count = len(missing)
        for i, lf in enumerate(missing, start=1):
            parent = self._remote_parent(files, lf.relative_path)
            self.output.info(
                f"[{i:04d}/{count:04d}] Creating directory "
                f"{files.root.name}/{lf.relative_path}"
            )
            entry = ops.create_remote_dir(lf.name, parent.id)
            files.add_remote(RemoteFile(entry=entry, relative_path=lf.relative_path))
            stats["directories_created"] += 1

    def _upload_missing_files(
        self,
        files: SyncFiles,
        ops: SyncOperations,
        missing: list[LocalFile],
        stats: dict,
    ) -> None:
        count = len(missing)
        for i, lf in enumerate(missing, start=1):
            parent = self._remote_parent(files, lf.relative_path)
            self.output.info(
                f"[{i:04d}/{count:04d}] Uploading {lf.relative_path} -> "
                f"{files.root.name}/{lf.relative_path}"
            )
            ops.upload_file(lf, parent.id)
            stats["uploads"] += 1
            stats["bytes_transferred"] += lf.size

    def _update_changed_files(
        self,
        files: SyncFiles,
        ops: SyncOperations,
        changed: list[ChangedFile],
        resolution: ConflictResolution,
        stats: dict,
    ) -> None:
        count = len(changed)
        for i, cf in enumerate(changed, start=1):
            skip, reason = check_remote_conflict(cf, resolution)
            if skip:
                self.output.info(
                    f"[{i:04d}/{count:04d}] Skipping {cf.relative_path} ({reason})"
                )
                stats["skipped"] += 1
                continue

            self.output.info(
                f"[{i:04d}/{count:04d}] Updating {cf.relative_path} -> "
                f"{files.root.name}/{cf.relative_path}"
            )
            ops.update_file(cf)
            stats["updates"] += 1
            stats["bytes_transferred"] += cf.local.size

    def _delete_extraneous_remote(
        self, files: SyncFiles, ops: SyncOperations, stats: dict
    ) -> None:
        extraneous = files.filter_extraneous_remote_files()
        count = len(extraneous)
        for i, rf in enumerate(extraneous, start=1):
            self.output.info(
                f"[{i:04d}/{count:04d}] Deleting {files.root.name}/{rf.relative_path}"
            )
            ops.delete_remote(rf)
            stats["deletes"] += 1

    # =========================
    # Download
    # =========================

    def download_sync(self, args: DownloadSyncArgs) -> dict:
        """Make a local directory mirror the remote sync root.

        Native documents without downloadable content are left alone.

        Args:
            args: Download parameters

        Returns:
            Dictionary with sync statistics
        """
        started = time.monotonic()
        stats = _new_stats(args.dry_run)

        self.output.info("Starting sync...")
        if args.dry_run:
            self.output.info("Dry run: No changes will be made")

        root = self._prepare_download_root(args.root_id)
        local_exists = self._prepare_local_dir(args.path, args.dry_run)
        ops = self._operations(args.root_id, args)

        self.output.info("Collecting local and remote file information...")
        files = self._prepare_sync_files(
            root, args.path, args.comparer, scan_local=local_exists
        )
        self.output.info(
            f"Found {len(files.local)} local files and "
            f"{len(files.remote)} remote files"
        )

        missing_dirs = files.filter_missing_local_dirs()
        missing_files = files.filter_missing_local_files()
        changed_files = files.filter_changed_remote_files()

        if args.resolution == ConflictResolution.NONE:
            self._ensure_no_local_modifications(changed_files)

        count = len(missing_dirs)
        for i, rf in enumerate(missing_dirs, start=1):
            local_path = args.path / rf.relative_path
            self.output.info(f"[{i:04d}/{count:04d}] Creating directory {local_path}")
            ops.create_local_dir(local_path)
            files.add_local(
                LocalFile(
                    path=local_path,
                    relative_path=rf.relative_path,
                    size=0,
                    mtime_ns=0,
                    is_dir=True,
                )
            )
            stats["directories_created"] += 1

        count = len(missing_files)
        for i, rf in enumerate(missing_files, start=1):
            local_path = args.path / rf.relative_path
            self.output.info(
                f"[{i:04d}/{count:04d}] Downloading "
                f"{root.name}/{rf.relative_path} -> {local_path}"
            )
            ops.download_file(rf, local_path)
            stats["downloads"] += 1
            stats["bytes_transferred"] += rf.size

        count = len(changed_files)
        for i, cf in enumerate(changed_files, start=1):
            skip, reason = check_local_conflict(cf, args.resolution)
            if skip:
                self.output.info(
                    f"[{i:04d}/{count:04d}] Skipping {cf.relative_path} ({reason})"
                )
                stats["skipped"] += 1
                continue

            self.output.info(
                f"[{i:04d}/{count:04d}] Updating "
                f"{root.name}/{cf.relative_path} -> {cf.local.path}"
            )
            ops.download_file(cf.remote, cf.local.path)
            stats["updates"] += 1
            stats["bytes_transferred"] += cf.remote.size

        if args.delete_extraneous:
            extraneous = files.filter_extraneous_local_files()
            count = len(extraneous)
            for i, lf in enumerate(extraneous, start=1):
                self.output.info(f"[{i:04d}/{count:04d}] Deleting {lf.path}")
                ops.delete_local(lf)
                stats["deletes"] += 1

        self.output.info(f"Sync finished in {_elapsed(started)}")
        return stats

    def _prepare_download_root(self, root_id: str) -> FileEntry:
        root = self._get_root(root_id)

        if not root.is_dir:
            raise SyncSetupError("Provided root id is not a directory")

        if not root.is_sync_root:
            raise SyncSetupError("Provided root id is not a sync root directory")

        return root

    def _prepare_local_dir(self, path: Path, dry_run: bool) -> bool:
        """Create the local target if missing.

        Returns:
            Whether the directory exists (False only in dry-run mode)
        """
        if path.exists():
            if not path.is_dir():
                raise SyncSetupError(f"Local path is not a directory: {path}")
            return True

        if dry_run:
            return False

        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise SyncSetupError(f"Failed to create local directory: {e}") from e
        return True

    def _ensure_no_local_modifications(self, changed: list[ChangedFile]) -> None:
        conflicts = find_local_conflicts(changed)
        if not conflicts:
            return
        raise SyncConflictError(
            conflicts,
            "Conflict detected!\n"
            "The following files have changed and the local file are newer "
            "than it's remote counterpart:\n\n"
            f"{format_conflicts(conflicts)}\n"
            "No conflict resolution was given, aborting...",
        )

    # =========================
    # Listing
    # =========================

    def list_sync_roots(self) -> list[FileEntry]:
        """Every remote directory carrying the sync-root marker."""
        roots = self.manager.find_sync_roots()
        return sorted(roots, key=lambda e: e.created_time or "")

    def list_sync_content(
        self, root_id: str, order_by: Optional[str] = None
    ) -> list[RemoteFile]:
        """Recursive content of a sync root.

        Args:
            root_id: Id of the sync root
            order_by: API sort order applied to every folder listing.
                Without it the result is sorted by relative path.
        """
        root = self._prepare_download_root(root_id)
        remote_files = self.scanner.scan_remote(self.manager, root, order_by=order_by)
        if order_by:
            return remote_files
        return sorted(remote_files, key=lambda rf: rf.relative_path)

    # =========================
    # Shared helpers
    # =========================

    def _check_local_dir(self, path: Path) -> None:
        if not path.exists():
            raise SyncSetupError(f"Local directory does not exist: {path}")
        if not path.is_dir():
            raise SyncSetupError(f"Local path is not a directory: {path}")

    def _scan_local(self, path: Path) -> list[LocalFile]:
        try:
            return self.scanner.scan_local(path)
        except OSError as e:
            raise SyncSetupError(f"Failed to scan local directory: {e}") from e

    def _get_root(self, root_id: str) -> FileEntry:
        try:
            return FileEntry.from_dict(self.client.get_file(root_id))
        except DriveAPIError as e:
            raise SyncSetupError(f"Failed to find root directory: {e}") from e

    def _prepare_sync_files(
        self,
        root: FileEntry,
        path: Path,
        comparer: Optional[FileComparer],
        scan_local: bool = True,
    ) -> SyncFiles:
        """Enumerate both trees completely and index them by path."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Scanning local directory...", total=None)
            scan_started = time.monotonic()
            local_files = self._scan_local(path) if scan_local else []
            logger.debug(
                f"Scanned {len(local_files)} local entries in "
                f"{time.monotonic() - scan_started:.2f}s"
            )

            progress.update(task, description="Scanning remote directory...")
            scan_started = time.monotonic()
            remote_files = self.scanner.scan_remote(self.manager, root)
            logger.debug(
                f"Scanned {len(remote_files)} remote entries in "
                f"{time.monotonic() - scan_started:.2f}s"
            )

        files = SyncFiles(
            root=RemoteFile(entry=root, relative_path=""),
            local=local_files,
            remote=remote_files,
            comparer=comparer or Md5Comparer(),
        )
        files.check_type_mismatches()
        return files


def _new_stats(dry_run: bool) -> dict:
    return {
        "directories_created": 0,
        "uploads": 0,
        "downloads": 0,
        "updates": 0,
        "skipped": 0,
        "deletes": 0,
        "bytes_transferred": 0,
        "dry_run": dry_run,
    }


def _elapsed(started: float) -> str:
    seconds = time.monotonic() - started
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes}m{seconds}s"
