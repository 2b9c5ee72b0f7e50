"""CLI progress display for sync transfers.

This module provides a Rich-based progress display that plugs into the
transfer progress callback of the sync engine.
"""

from typing import Optional, Union

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync.engine import DownloadSyncArgs, SyncEngine, UploadSyncArgs


class TransferProgressDisplay:
    """Rich-based progress display showing the file currently transferred.

    The live display is only started on the first progress event, so the
    engine's own scanning spinner can run before it.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._current_path: Optional[str] = None
        self.files_started = 0

    def _start(self) -> Progress:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        progress.__enter__()
        self._progress = progress
        self._task = progress.add_task("Preparing transfer...", total=None)
        return progress

    def __call__(self, relative_path: str, transferred: int, total: int) -> None:
        """Handle a progress event from a transfer.

        Args:
            relative_path: Path of the file being transferred
            transferred: Bytes transferred so far (restarts at 0 on retry)
            total: Size of the file in bytes
        """
        progress = self._progress or self._start()
        assert self._task is not None

        if relative_path != self._current_path:
            self._current_path = relative_path
            self.files_started += 1

        progress.update(
            self._task,
            description=relative_path,
            total=total,
            completed=transferred,
        )

    def __enter__(self) -> "TransferProgressDisplay":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None and exc_type is None:
                self._progress.update(self._task, description="Transfer complete")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_sync_with_progress(
    engine: SyncEngine,
    args: Union[UploadSyncArgs, DownloadSyncArgs],
    show_progress: bool = True,
) -> dict:
    """Run an upload or download sync with a Rich progress display.

    Args:
        engine: SyncEngine instance
        args: UploadSyncArgs or DownloadSyncArgs
        show_progress: If False, run without progress bar

    Returns:
        Dictionary with sync statistics
    """
    # For dry-run, don't show progress bar (just text output)
    if args.dry_run or not show_progress:
        return _run(engine, args)

    with TransferProgressDisplay() as display:
        args.progress_callback = display
        return _run(engine, args)


def _run(engine: SyncEngine, args: Union[UploadSyncArgs, DownloadSyncArgs]) -> dict:
    if isinstance(args, UploadSyncArgs):
        return engine.upload_sync(args)
    return engine.download_sync(args)
