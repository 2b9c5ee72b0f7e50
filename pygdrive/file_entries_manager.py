"""Manager for fetching file entries with automatic pagination."""

import logging
from typing import Optional

from .api import DriveClient
from .models import FileEntry, FileListResult
from .utils import join_path

logger = logging.getLogger(__name__)

SYNC_ROOT_QUERY = "appProperties has {key='syncRoot' and value='true'}"


class FileEntriesManager:
    """Manages file entry fetching with automatic pagination.

    API errors always propagate: callers that make destructive decisions
    (sync) need complete listings, never partial ones.
    """

    def __init__(self, client: DriveClient, page_size: int = 1000):
        """Initialize the file entries manager.

        Args:
            client: Drive API client
            page_size: Number of entries requested per page
        """
        self.client = client
        self.page_size = page_size

    def get_all_in_folder(
        self,
        folder_id: str,
        order_by: Optional[str] = None,
    ) -> list[FileEntry]:
        """Get all non-trashed children of a folder, following every page.

        Args:
            folder_id: Folder ID to query
            order_by: Optional sort order passed to the API (e.g. "name")

        Returns:
            List of all file entries in the folder
        """
        all_entries: list[FileEntry] = []
        page_token: Optional[str] = None

        while True:
            result = FileListResult.from_api_response(
                self.client.list_children(
                    folder_id,
                    page_size=self.page_size,
                    page_token=page_token,
                    order_by=order_by,
                )
            )
            all_entries.extend(result.entries)

            if not result.next_page_token:
                break
            page_token = result.next_page_token

        return all_entries

    def get_all_recursive(
        self,
        folder_id: str,
        path_prefix: str = "",
        visited: Optional[set[str]] = None,
        order_by: Optional[str] = None,
    ) -> list[tuple[FileEntry, str]]:
        """Recursively get all entries (files and folders) below a folder.

        Args:
            folder_id: Folder ID to start from
            path_prefix: Relative path of ``folder_id`` ("" for the root)
            visited: Set of visited folder IDs (for cycle detection)
            order_by: Optional sort order applied to every folder listing

        Returns:
            List of (FileEntry, relative_path) tuples, depth first
        """
        if visited is None:
            visited = set()

        # Prevent infinite recursion, a folder can have several parents
        if folder_id in visited:
            return []
        visited.add(folder_id)

        result_entries: list[tuple[FileEntry, str]] = []

        entries = self.get_all_in_folder(folder_id=folder_id, order_by=order_by)

        for entry in entries:
            entry_path = join_path(path_prefix, entry.name)
            result_entries.append((entry, entry_path))

            if entry.is_dir:
                result_entries.extend(
                    self.get_all_recursive(
                        folder_id=entry.id,
                        path_prefix=entry_path,
                        visited=visited,
                        order_by=order_by,
                    )
                )

        return result_entries

    def is_empty(self, folder_id: str) -> bool:
        """Check whether a folder has no (non-trashed) children."""
        result = FileListResult.from_api_response(
            self.client.list_children(folder_id, page_size=1)
        )
        return not result.entries

    def find_sync_roots(self) -> list[FileEntry]:
        """Get every folder carrying the sync-root marker."""
        all_entries: list[FileEntry] = []
        page_token: Optional[str] = None

        while True:
            result = FileListResult.from_api_response(
                self.client.list_files(
                    query=SYNC_ROOT_QUERY,
                    fields="nextPageToken,files(id,name,mimeType,createdTime,appProperties)",
                    page_size=self.page_size,
                    page_token=page_token,
                )
            )
            all_entries.extend(result.entries)

            if not result.next_page_token:
                break
            page_token = result.next_page_token

        logger.debug(f"Found {len(all_entries)} sync root(s)")
        return all_entries
