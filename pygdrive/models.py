"""Data models for Drive API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

DIRECTORY_MIME_TYPE = "application/vnd.google-apps.folder"

# Fields requested for every entry used by sync
FILE_FIELDS = "id,name,mimeType,size,md5Checksum,modifiedTime,parents,appProperties"


@dataclass
class FileEntry:
    """A file or folder as returned by the files endpoints."""

    id: str
    name: str
    mime_type: str = ""
    size: int = 0
    md5_checksum: str = ""
    modified_time: Optional[str] = None
    created_time: Optional[str] = None
    parents: list[str] = field(default_factory=list)
    app_properties: dict[str, str] = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        """Whether this entry is a folder."""
        return self.mime_type == DIRECTORY_MIME_TYPE

    @property
    def is_binary(self) -> bool:
        """Whether this entry has downloadable content.

        Native documents (docs, sheets, ...) carry no checksum.
        """
        return self.md5_checksum != ""

    @property
    def is_sync_root(self) -> bool:
        """Whether the sync-root marker is set on this entry."""
        return "syncRoot" in self.app_properties

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileEntry":
        """Create a FileEntry from an API file resource."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            size=int(data.get("size") or 0),
            md5_checksum=data.get("md5Checksum", ""),
            modified_time=data.get("modifiedTime"),
            created_time=data.get("createdTime"),
            parents=list(data.get("parents", [])),
            app_properties=dict(data.get("appProperties") or {}),
        )


@dataclass
class FileListResult:
    """One page of a files.list response."""

    entries: list[FileEntry]
    next_page_token: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "FileListResult":
        """Parse a files.list response."""
        return cls(
            entries=[FileEntry.from_dict(f) for f in data.get("files", [])],
            next_page_token=data.get("nextPageToken") or None,
        )


@dataclass
class StorageQuota:
    """Storage quota of the account. A limit of 0 means unlimited."""

    limit: int = 0
    usage: int = 0

    @property
    def unlimited(self) -> bool:
        return self.limit == 0

    @property
    def free(self) -> int:
        return self.limit - self.usage

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "StorageQuota":
        """Parse the storageQuota object of an about.get response."""
        quota = data.get("storageQuota", data)
        return cls(
            limit=int(quota.get("limit") or 0),
            usage=int(quota.get("usage") or 0),
        )
