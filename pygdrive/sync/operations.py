"""Transfer operations used by the sync engine.

Every remote mutation is wrapped in a bounded retry loop: backend (5xx) and
rate limit (403/429) errors are retried after sleeping ``2**attempt``
seconds, at most ``MAX_ERROR_RETRIES`` times. Any other error, or running
out of attempts, raises ``SyncTransferError`` and aborts the run.

In dry-run mode no remote or local mutation is performed; every operation
returns as if it had succeeded.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional, TypeVar

from ..api import DriveClient
from ..exceptions import (
    DriveAPIError,
    DriveCancelledError,
    SyncTransferError,
    TransferTimeoutError,
)
from ..models import DIRECTORY_MIME_TYPE, FileEntry
from ..readers import (
    TIMEOUT_TIMER_INTERVAL,
    ProgressReader,
    Reader,
    close_reader,
    get_timeout_reader_context,
    get_timeout_reader_wrapper,
)
from ..utils import DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT, MAX_ERROR_RETRIES
from .files import ChangedFile
from .scanner import LocalFile, RemoteFile

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (relative_path, bytes_transferred, total_bytes)
TransferProgressCallback = Callable[[str, int, int], None]

INCOMPLETE_SUFFIX = ".incomplete"


class SyncOperations:
    """Executes create/upload/update/delete/download for one sync run."""

    def __init__(
        self,
        client: DriveClient,
        root_id: str,
        dry_run: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[TransferProgressCallback] = None,
        max_retries: int = MAX_ERROR_RETRIES,
        timeout_check_interval: float = TIMEOUT_TIMER_INTERVAL,
    ):
        """Initialize sync operations.

        Args:
            client: Drive API client
            root_id: ID of the sync root, recorded on every created object
            dry_run: If True, skip every mutation
            timeout: Idle timeout in seconds for content transfers, 0 disables
            chunk_size: Upload chunk size in bytes
            progress_callback: Optional callback
                function(relative_path, bytes_transferred, total_bytes)
            max_retries: Retries after the first attempt
            timeout_check_interval: Idle watchdog interval in seconds
        """
        self.client = client
        self.root_id = root_id
        self.dry_run = dry_run
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.progress_callback = progress_callback
        self.max_retries = max_retries
        self.timeout_check_interval = timeout_check_interval

    @property
    def sync_properties(self) -> dict[str, str]:
        """App properties tagging an object as part of this sync root."""
        return {"sync": "true", "syncRootId": self.root_id}

    def _with_retry(self, action: str, func: Callable[[], T]) -> T:
        """Run ``func``, retrying backend and rate limit errors.

        Args:
            action: Description used in error messages ("upload file")
            func: Operation performing one attempt

        Raises:
            TransferTimeoutError: If the idle timeout cancelled the transfer
            SyncTransferError: On any other failure or when retries run out
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func()
            except DriveCancelledError as e:
                raise TransferTimeoutError(action, self.timeout) from e
            except DriveAPIError as e:
                if e.is_retryable and attempt < self.max_retries:
                    delay = 2**attempt
                    logger.debug(
                        f"Failed to {action} (attempt {attempt + 1}/"
                        f"{self.max_retries + 1}), retrying in {delay}s: {e}"
                    )
                    time.sleep(delay)
                    continue
                raise SyncTransferError(f"Failed to {action}: {e}") from e
            except OSError as e:
                raise SyncTransferError(f"Failed to {action}: {e}") from e

        raise SyncTransferError(f"Failed to {action}")

    def _wrap_reader(self, reader: Reader, relative_path: str, size: int) -> Reader:
        if self.progress_callback is None:
            return reader
        callback = self.progress_callback
        return ProgressReader(
            reader, lambda done, total: callback(relative_path, done, total), size
        )

    # =========================
    # Remote side
    # =========================

    def mark_sync_root(self, root: FileEntry) -> FileEntry:
        """Set the sync-root marker on an (empty) remote directory."""
        if self.dry_run:
            return root

        def attempt() -> FileEntry:
            result = self.client.update_file(
                root.id,
                metadata={"appProperties": {"sync": "true", "syncRoot": "true"}},
            )
            return FileEntry.from_dict(result)

        return self._with_retry("update root directory", attempt)

    def create_remote_dir(self, name: str, parent_id: str) -> FileEntry:
        """Create a remote directory tagged with the sync root.

        Returns:
            The created entry (a placeholder without id in dry-run mode)
        """
        metadata = {
            "name": name,
            "mimeType": DIRECTORY_MIME_TYPE,
            "parents": [parent_id],
            "appProperties": self.sync_properties,
        }
        if self.dry_run:
            return FileEntry.from_dict(metadata)

        def attempt() -> FileEntry:
            return FileEntry.from_dict(self.client.create_file(metadata))

        return self._with_retry("create directory", attempt)

    def upload_file(self, local_file: LocalFile, parent_id: str) -> Optional[FileEntry]:
        """Create a remote file from local content."""
        if self.dry_run:
            return None

        metadata = {
            "name": local_file.name,
            "parents": [parent_id],
            "appProperties": self.sync_properties,
        }

        def attempt() -> FileEntry:
            with open(local_file.path, "rb") as src:
                reader, token = get_timeout_reader_context(
                    self._wrap_reader(src, local_file.relative_path, local_file.size),
                    self.timeout,
                    self.timeout_check_interval,
                )
                try:
                    result = self.client.create_file(
                        metadata,
                        content=reader,
                        size=local_file.size,
                        chunk_size=self.chunk_size,
                        cancel=token,
                    )
                finally:
                    close_reader(reader)
            return FileEntry.from_dict(result)

        return self._with_retry("upload file", attempt)

    def update_file(self, changed: ChangedFile) -> Optional[FileEntry]:
        """Replace the content of a remote file, keeping its id."""
        if self.dry_run:
            return None

        local_file = changed.local

        def attempt() -> FileEntry:
            with open(local_file.path, "rb") as src:
                reader, token = get_timeout_reader_context(
                    self._wrap_reader(src, local_file.relative_path, local_file.size),
                    self.timeout,
                    self.timeout_check_interval,
                )
                try:
                    result = self.client.update_file(
                        changed.remote.id,
                        content=reader,
                        size=local_file.size,
                        chunk_size=self.chunk_size,
                        cancel=token,
                    )
                finally:
                    close_reader(reader)
            return FileEntry.from_dict(result)

        return self._with_retry("update file", attempt)

    def delete_remote(self, remote_file: RemoteFile) -> None:
        """Permanently delete a remote file or directory."""
        if self.dry_run:
            return

        def attempt() -> None:
            self.client.delete_file(remote_file.id)

        self._with_retry("delete file", attempt)

    # =========================
    # Local side
    # =========================

    def create_local_dir(self, path: Path) -> None:
        if self.dry_run:
            return
        path.mkdir(parents=True, exist_ok=True)

    def download_file(self, remote_file: RemoteFile, local_path: Path) -> None:
        """Download remote content to ``local_path``.

        Content is written to ``<local_path>.incomplete`` and renamed into
        place once complete; the file's mtime is set to the remote one.
        """
        if self.dry_run:
            return

        tmp_path = local_path.with_name(local_path.name + INCOMPLETE_SUFFIX)

        def attempt() -> None:
            timeout_wrapper, token = get_timeout_reader_wrapper(
                self.timeout, self.timeout_check_interval
            )

            def wrap(reader: Reader) -> Reader:
                return timeout_wrapper(
                    self._wrap_reader(
                        reader, remote_file.relative_path, remote_file.size
                    )
                )

            local_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(tmp_path, "wb") as dst:
                    self.client.download_file(
                        remote_file.id,
                        dst,
                        chunk_size=self.chunk_size,
                        reader_wrapper=wrap,
                        cancel=token,
                    )
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
            os.replace(tmp_path, local_path)

        self._with_retry("download file", attempt)

        mtime = remote_file.mtime
        if mtime is None:
            return
        try:
            os.utime(local_path, ns=(int(mtime * 1e9), int(mtime * 1e9)))
        except OSError as e:
            raise SyncTransferError(f"Failed to set modification time: {e}") from e

    def delete_local(self, local_file: LocalFile) -> None:
        """Delete a local file or (already emptied) directory."""
        if self.dry_run:
            return
        try:
            if local_file.is_dir:
                local_file.path.rmdir()
            else:
                local_file.path.unlink()
        except OSError as e:
            raise SyncTransferError(f"Failed to delete file: {e}") from e
