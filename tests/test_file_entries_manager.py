"""Unit tests for FileEntriesManager."""

from unittest.mock import Mock

import pytest

from pygdrive.exceptions import DriveServerError
from pygdrive.file_entries_manager import SYNC_ROOT_QUERY, FileEntriesManager
from pygdrive.models import DIRECTORY_MIME_TYPE


def entry(file_id, name, folder=False):
    data = {"id": file_id, "name": name}
    if folder:
        data["mimeType"] = DIRECTORY_MIME_TYPE
    else:
        data["md5Checksum"] = "abc"
        data["size"] = "3"
    return data


class TestFileEntriesManagerInit:
    """Tests for FileEntriesManager initialization."""

    def test_initialization(self):
        """Test basic initialization."""
        mock_client = Mock()
        manager = FileEntriesManager(mock_client, page_size=50)

        assert manager.client == mock_client
        assert manager.page_size == 50


class TestGetAllInFolder:
    """Tests for get_all_in_folder method."""

    def test_follows_every_page(self):
        """All pages are fetched until no nextPageToken is returned."""
        mock_client = Mock()
        mock_client.list_children.side_effect = [
            {"files": [entry("1", "a")], "nextPageToken": "p2"},
            {"files": [entry("2", "b")], "nextPageToken": "p3"},
            {"files": [entry("3", "c")]},
        ]
        manager = FileEntriesManager(mock_client)

        entries = manager.get_all_in_folder("folder")

        assert [e.name for e in entries] == ["a", "b", "c"]
        tokens = [c.kwargs["page_token"] for c in mock_client.list_children.call_args_list]
        assert tokens == [None, "p2", "p3"]

    def test_passes_sort_order(self):
        mock_client = Mock()
        mock_client.list_children.return_value = {"files": [entry("1", "a")]}
        manager = FileEntriesManager(mock_client)

        manager.get_all_in_folder("folder", order_by="name desc")

        assert mock_client.list_children.call_args.kwargs["order_by"] == "name desc"

    def test_errors_propagate(self):
        """A failing page never yields a partial listing."""
        mock_client = Mock()
        mock_client.list_children.side_effect = [
            {"files": [entry("1", "a")], "nextPageToken": "p2"},
            DriveServerError("backend", 500),
        ]
        manager = FileEntriesManager(mock_client)

        with pytest.raises(DriveServerError):
            manager.get_all_in_folder("folder")


class TestGetAllRecursive:
    """Tests for get_all_recursive method."""

    def test_relative_paths(self):
        listings = {
            "root": {"files": [entry("d1", "sub", folder=True), entry("f1", "a.txt")]},
            "d1": {"files": [entry("f2", "b.txt")]},
        }
        mock_client = Mock()
        mock_client.list_children.side_effect = lambda folder_id, **kw: listings[folder_id]
        manager = FileEntriesManager(mock_client)

        result = manager.get_all_recursive("root")

        assert [(e.id, path) for e, path in result] == [
            ("d1", "sub"),
            ("f2", "sub/b.txt"),
            ("f1", "a.txt"),
        ]

    def test_cycles_are_not_followed(self):
        listings = {
            "root": {"files": [entry("d1", "sub", folder=True)]},
            "d1": {"files": [entry("root", "loop", folder=True)]},
        }
        mock_client = Mock()
        mock_client.list_children.side_effect = lambda folder_id, **kw: listings[folder_id]
        manager = FileEntriesManager(mock_client)

        result = manager.get_all_recursive("root")

        assert [path for _, path in result] == ["sub", "sub/loop"]


class TestSyncRoots:
    """Tests for is_empty and find_sync_roots."""

    def test_is_empty(self):
        mock_client = Mock()
        mock_client.list_children.return_value = {"files": []}
        assert FileEntriesManager(mock_client).is_empty("folder")

        mock_client.list_children.return_value = {"files": [entry("1", "a")]}
        assert not FileEntriesManager(mock_client).is_empty("folder")

    def test_find_sync_roots_query(self):
        mock_client = Mock()
        mock_client.list_files.return_value = {
            "files": [entry("r1", "backup", folder=True)]
        }

        roots = FileEntriesManager(mock_client).find_sync_roots()

        assert [r.id for r in roots] == ["r1"]
        assert mock_client.list_files.call_args.kwargs["query"] == SYNC_ROOT_QUERY
