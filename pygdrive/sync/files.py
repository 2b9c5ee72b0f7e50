"""Path-indexed snapshot of both trees and the set operations over it."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..exceptions import SyncSetupError
from ..utils import path_depth
from .comparator import FileComparer
from .scanner import LocalFile, RemoteFile

logger = logging.getLogger(__name__)


class ModTimeComparison(str, Enum):
    LOCAL_LAST_MODIFIED = "local"
    REMOTE_LAST_MODIFIED = "remote"
    EQUAL_MODIFIED_TIME = "equal"
    UNKNOWN = "unknown"
    """The remote copy carries no modification time"""


class SizeComparison(str, Enum):
    LOCAL_LARGEST = "local"
    REMOTE_LARGEST = "remote"
    EQUAL_SIZE = "equal"


@dataclass(frozen=True)
class ChangedFile:
    """A local and a remote file at the same path with different content."""

    local: LocalFile
    remote: RemoteFile

    @property
    def relative_path(self) -> str:
        return self.local.relative_path

    def compare_mod_time(self) -> ModTimeComparison:
        """Which side was modified last.

        Without a remote time neither side counts as newer, so the
        authoritative side of the run wins without a conflict.
        """
        local_time = self.local.mtime
        remote_time = self.remote.mtime
        if remote_time is None:
            return ModTimeComparison.UNKNOWN
        if local_time > remote_time:
            return ModTimeComparison.LOCAL_LAST_MODIFIED
        if remote_time > local_time:
            return ModTimeComparison.REMOTE_LAST_MODIFIED
        return ModTimeComparison.EQUAL_MODIFIED_TIME

    def compare_size(self) -> SizeComparison:
        if self.local.size > self.remote.size:
            return SizeComparison.LOCAL_LARGEST
        if self.remote.size > self.local.size:
            return SizeComparison.REMOTE_LARGEST
        return SizeComparison.EQUAL_SIZE


class SyncFiles:
    """Local and remote file lists of one sync run.

    Matching is by relative path only. The remote index is scoped to this
    run and grows as directories are created, so deeper entries can resolve
    their freshly created parents.
    """

    def __init__(
        self,
        root: RemoteFile,
        local: list[LocalFile],
        remote: list[RemoteFile],
        comparer: FileComparer,
    ):
        """Build the path indexes.

        Raises:
            SyncSetupError: If two remote entries share a relative path
        """
        self.root = root
        self.local = list(local)
        self.remote = list(remote)
        self.comparer = comparer

        self._local_by_path: dict[str, LocalFile] = {}
        for lf in self.local:
            self._local_by_path[lf.relative_path] = lf

        self._remote_by_path: dict[str, RemoteFile] = {}
        for rf in self.remote:
            if rf.relative_path in self._remote_by_path:
                raise SyncSetupError(
                    f"Found multiple remote files with path '{rf.relative_path}', "
                    "remove the duplicates and try again"
                )
            self._remote_by_path[rf.relative_path] = rf

    # =========================
    # Lookups
    # =========================

    def find_remote_by_path(self, relative_path: str) -> Optional[RemoteFile]:
        if relative_path == "":
            return self.root
        return self._remote_by_path.get(relative_path)

    def add_remote(self, remote_file: RemoteFile) -> None:
        """Insert a newly created remote entry into the run index."""
        self.remote.append(remote_file)
        self._remote_by_path[remote_file.relative_path] = remote_file

    def add_local(self, local_file: LocalFile) -> None:
        """Insert a newly created local entry into the run index."""
        self.local.append(local_file)
        self._local_by_path[local_file.relative_path] = local_file

    def check_type_mismatches(self) -> None:
        """Fail if a path is a directory on one side and a file on the other.

        Raises:
            SyncSetupError: On the first mismatch found
        """
        for lf in self.local:
            rf = self._remote_by_path.get(lf.relative_path)
            if rf is not None and rf.is_dir != lf.is_dir:
                local_kind = "directory" if lf.is_dir else "file"
                remote_kind = "directory" if rf.is_dir else "file"
                raise SyncSetupError(
                    f"'{lf.relative_path}' is a {local_kind} locally "
                    f"but a {remote_kind} remotely"
                )

    # =========================
    # Upload direction
    # =========================

    def filter_missing_remote_files(self) -> list[LocalFile]:
        return [
            lf
            for lf in self.local
            if not lf.is_dir and lf.relative_path not in self._remote_by_path
        ]

    def filter_missing_remote_dirs(self) -> list[LocalFile]:
        """Missing remote directories, shallowest first."""
        dirs = [
            lf
            for lf in self.local
            if lf.is_dir and lf.relative_path not in self._remote_by_path
        ]
        return sorted(dirs, key=lambda lf: path_depth(lf.relative_path))

    def filter_changed_local_files(self) -> list[ChangedFile]:
        changed: list[ChangedFile] = []
        for lf in self.local:
            if lf.is_dir:
                continue
            rf = self._remote_by_path.get(lf.relative_path)
            if rf is None or rf.is_dir:
                continue
            if self.comparer.changed(lf, rf):
                changed.append(ChangedFile(local=lf, remote=rf))
        return changed

    def filter_extraneous_remote_files(self) -> list[RemoteFile]:
        """Remote entries without local counterpart, deepest first."""
        extraneous = [
            rf for rf in self.remote if rf.relative_path not in self._local_by_path
        ]
        return sorted(
            extraneous, key=lambda rf: path_depth(rf.relative_path), reverse=True
        )

    # =========================
    # Download direction
    # =========================

    def filter_missing_local_files(self) -> list[RemoteFile]:
        return [
            rf
            for rf in self.remote
            if not rf.is_dir
            and rf.is_binary
            and rf.relative_path not in self._local_by_path
        ]

    def filter_missing_local_dirs(self) -> list[RemoteFile]:
        """Missing local directories, shallowest first."""
        dirs = [
            rf
            for rf in self.remote
            if rf.is_dir and rf.relative_path not in self._local_by_path
        ]
        return sorted(dirs, key=lambda rf: path_depth(rf.relative_path))

    def filter_changed_remote_files(self) -> list[ChangedFile]:
        changed: list[ChangedFile] = []
        for rf in self.remote:
            if rf.is_dir or not rf.is_binary:
                continue
            lf = self._local_by_path.get(rf.relative_path)
            if lf is None or lf.is_dir:
                continue
            if self.comparer.changed(lf, rf):
                changed.append(ChangedFile(local=lf, remote=rf))
        return changed

    def filter_extraneous_local_files(self) -> list[LocalFile]:
        """Local entries without remote counterpart, deepest first."""
        extraneous = [
            lf for lf in self.local if lf.relative_path not in self._remote_by_path
        ]
        return sorted(
            extraneous, key=lambda lf: path_depth(lf.relative_path), reverse=True
        )
