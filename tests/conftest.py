"""Shared fixtures: an in-memory stand-in for the Drive API client."""

import hashlib
import io
import itertools
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pytest

from pygdrive.exceptions import DriveNotFoundError
from pygdrive.models import DIRECTORY_MIME_TYPE
from pygdrive.readers import IteratorReader, close_reader


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class FakeDriveClient:
    """Keeps files in memory and answers the calls the sync engine makes.

    Mutating calls are recorded in ``calls`` as (method, file_id_or_name).
    """

    MUTATIONS = ("create_file", "update_file", "delete_file")

    def __init__(self, quota_limit: int = 0, quota_usage: int = 0):
        self.files: dict[str, dict[str, Any]] = {}
        self.contents: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.quota_limit = quota_limit
        self.quota_usage = quota_usage
        self._ids = itertools.count(1)

    # Test helpers

    def add_folder(
        self,
        name: str,
        parent: Optional[str] = None,
        app_properties: Optional[dict[str, str]] = None,
    ) -> str:
        file_id = f"id{next(self._ids)}"
        self.files[file_id] = {
            "id": file_id,
            "name": name,
            "mimeType": DIRECTORY_MIME_TYPE,
            "parents": [parent] if parent else [],
            "modifiedTime": _now(),
            "createdTime": _now(),
            "appProperties": dict(app_properties or {}),
        }
        return file_id

    def add_file(
        self,
        name: str,
        parent: str,
        content: bytes = b"",
        modified_time: Optional[str] = None,
        mime_type: str = "application/octet-stream",
        native: bool = False,
    ) -> str:
        file_id = f"id{next(self._ids)}"
        resource = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": [parent],
            "modifiedTime": modified_time or _now(),
            "appProperties": {},
        }
        if not native:
            resource["size"] = str(len(content))
            resource["md5Checksum"] = hashlib.md5(content).hexdigest()
            self.contents[file_id] = content
        self.files[file_id] = resource
        return file_id

    def children(self, parent_id: str) -> list[dict[str, Any]]:
        return [f for f in self.files.values() if parent_id in f["parents"]]

    def find(self, parent_id: str, name: str) -> Optional[dict[str, Any]]:
        for f in self.children(parent_id):
            if f["name"] == name:
                return f
        return None

    def mutation_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in self.MUTATIONS]

    # Client API

    def list_files(
        self,
        query: Optional[str] = None,
        fields: str = "",
        page_size: int = 1000,
        page_token: Optional[str] = None,
        order_by: Optional[str] = None,
    ) -> dict[str, Any]:
        self.calls.append(("list_files", query or ""))
        if query and "in parents" in query:
            parent_id = query.split("'")[1]
            matches = self.children(parent_id)
        elif query and "syncRoot" in query:
            matches = [
                f
                for f in self.files.values()
                if f["appProperties"].get("syncRoot") == "true"
            ]
        else:
            matches = list(self.files.values())

        if order_by:
            field, _, direction = order_by.partition(" ")
            matches = sorted(
                matches, key=lambda f: f[field], reverse=direction == "desc"
            )

        start = int(page_token or 0)
        page = matches[start : start + page_size]
        result: dict[str, Any] = {"files": [dict(f) for f in page]}
        if start + page_size < len(matches):
            result["nextPageToken"] = str(start + page_size)
        return result

    def list_children(
        self,
        parent_id: str,
        page_size: int = 1000,
        page_token: Optional[str] = None,
        order_by: Optional[str] = None,
    ) -> dict[str, Any]:
        return self.list_files(
            query=f"'{parent_id}' in parents and trashed = false",
            page_size=page_size,
            page_token=page_token,
            order_by=order_by,
        )

    def get_file(self, file_id: str, fields: str = "") -> dict[str, Any]:
        self.calls.append(("get_file", file_id))
        if file_id not in self.files:
            raise DriveNotFoundError("Resource not found", 404)
        return dict(self.files[file_id])

    def get_storage_quota(self) -> dict[str, Any]:
        quota: dict[str, Any] = {"usage": str(self.quota_usage)}
        if self.quota_limit:
            quota["limit"] = str(self.quota_limit)
        return quota

    def _read_all(self, content: Any) -> bytes:
        data = b""
        while True:
            block = content.read(4096)
            if not block:
                break
            data += block
        return data

    def create_file(
        self,
        metadata: dict[str, Any],
        content: Any = None,
        size: int = 0,
        chunk_size: int = 0,
        fields: str = "",
        cancel: Any = None,
    ) -> dict[str, Any]:
        self.calls.append(("create_file", metadata["name"]))
        file_id = f"id{next(self._ids)}"
        resource = {
            "id": file_id,
            "name": metadata["name"],
            "mimeType": metadata.get("mimeType", "application/octet-stream"),
            "parents": list(metadata.get("parents", [])),
            "modifiedTime": _now(),
            "appProperties": dict(metadata.get("appProperties", {})),
        }
        if resource["mimeType"] != DIRECTORY_MIME_TYPE:
            data = self._read_all(content) if content is not None else b""
            resource["size"] = str(len(data))
            resource["md5Checksum"] = hashlib.md5(data).hexdigest()
            self.contents[file_id] = data
        self.files[file_id] = resource
        return dict(resource)

    def update_file(
        self,
        file_id: str,
        metadata: Optional[dict[str, Any]] = None,
        content: Any = None,
        size: int = 0,
        chunk_size: int = 0,
        fields: str = "",
        cancel: Any = None,
    ) -> dict[str, Any]:
        self.calls.append(("update_file", file_id))
        resource = self.files[file_id]
        if metadata and "appProperties" in metadata:
            resource["appProperties"].update(metadata["appProperties"])
        if content is not None:
            data = self._read_all(content)
            resource["size"] = str(len(data))
            resource["md5Checksum"] = hashlib.md5(data).hexdigest()
            resource["modifiedTime"] = _now()
            self.contents[file_id] = data
        return dict(resource)

    def delete_file(self, file_id: str) -> dict[str, Any]:
        self.calls.append(("delete_file", file_id))
        for child in self.children(file_id):
            self.delete_file(child["id"])
        self.files.pop(file_id, None)
        self.contents.pop(file_id, None)
        return {}

    def download_file(
        self,
        file_id: str,
        output: Any,
        chunk_size: int = 0,
        reader_wrapper: Any = None,
        cancel: Any = None,
    ) -> int:
        self.calls.append(("download_file", file_id))
        data = self.contents[file_id]
        reader: Any = IteratorReader(iter([data]))
        if reader_wrapper is not None:
            reader = reader_wrapper(reader)
        written = 0
        try:
            buffer = io.BytesIO()
            while True:
                block = reader.read(4096)
                if not block:
                    break
                buffer.write(block)
            written = output.write(buffer.getvalue())
        finally:
            close_reader(reader)
        return written

    def close(self) -> None:
        pass


@pytest.fixture
def fake_drive():
    """Provide an empty in-memory drive."""
    return FakeDriveClient()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
