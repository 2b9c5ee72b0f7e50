"""API client for Google Drive (v3 REST API)."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterator
from typing import Any, BinaryIO

import httpx

from .config import config
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveCancelledError,
    DriveConfigError,
    DriveDownloadError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DriveRateLimitError,
    DriveServerError,
    DriveUploadError,
)
from .models import FILE_FIELDS
from .readers import (
    CancelToken,
    IteratorReader,
    Reader,
    ReaderWrapper,
    close_reader,
)
from .utils import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

# Size of the pieces handed to httpx while streaming an upload chunk
STREAM_BLOCK_SIZE = 64 * 1024


class DriveClient:
    """Client for interacting with the Google Drive API."""

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        upload_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Drive API client.

        Args:
            access_token: Optional OAuth access token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            upload_url: Optional upload URL (uses config if not provided)
            max_retries: Retry attempts for read-only requests (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Socket timeout in seconds (default: 60.0)
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.upload_url = (upload_url or config.upload_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.access_token:
            raise DriveConfigError(
                "Access token not configured. "
                "Please set PYGDRIVE_ACCESS_TOKEN environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections.

        Also used as cancel callback: closing the pool aborts a blocked
        request, and the next call transparently opens a new client.
        """
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(self, response: httpx.Response) -> DriveAPIError:
        """Convert an error response into the matching exception."""
        status_code = response.status_code
        message = f"API request failed with status {status_code}"

        # Drive errors look like {"error": {"code": 403, "message": ...}}
        try:
            if response.content:
                error_data = response.json()
                error = error_data.get("error") if isinstance(error_data, dict) else None
                if isinstance(error, dict) and error.get("message"):
                    message = f"{message}: {error['message']}"
                elif isinstance(error, str):
                    message = f"{message}: {error}"
        except (ValueError, httpx.ResponseNotRead):
            pass

        if status_code == 401:
            return DriveAuthenticationError(
                "Invalid or expired access token", status_code
            )
        if status_code == 404:
            return DriveNotFoundError(f"Resource not found ({message})", status_code)
        if status_code in (403, 429):
            return DriveRateLimitError(message, status_code)
        if 500 <= status_code < 600:
            return DriveServerError(message, status_code)
        return DriveAPIError(message, status_code)

    def _parse_json(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise DriveInvalidResponseError(
                f"Unexpected response type: {content_type}", response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise DriveInvalidResponseError(
                "Invalid JSON response from server", response.status_code
            ) from e

    def _request(
        self,
        method: str,
        url: str,
        retry: bool = True,
        **kwargs: Any,
    ) -> Any:
        """Make an API request.

        Read-only requests are retried on network, server and rate limit
        errors. Mutations pass ``retry=False``; their retry policy belongs
        to the caller.

        Args:
            method: HTTP method
            url: Absolute URL or endpoint path relative to api_url
            retry: Whether transient failures are retried here
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DriveAPIError: If the request fails
        """
        if not url.startswith("http"):
            url = f"{self.api_url}/{url.lstrip('/')}"
        max_retries = self.max_retries if retry else 0

        for attempt in range(max_retries + 1):
            try:
                response = self._get_client().request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: DriveAPIError = DriveNetworkError(f"Network error: {e}")
                if attempt < max_retries:
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

            if response.is_success:
                return self._parse_json(response)

            error = self._error_from_response(response)
            if error.is_retryable and attempt < max_retries:
                retry_after = response.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    delay = float(retry_after)
                else:
                    delay = self._calculate_retry_delay(attempt)
                logger.debug(f"{method} {url} failed ({error}), retrying in {delay:.1f}s")
                time.sleep(delay)
                continue
            raise error

        raise DriveAPIError("Request failed after all retry attempts")

    # =========================
    # Metadata Operations
    # =========================

    def list_files(
        self,
        query: str | None = None,
        fields: str = f"nextPageToken,files({FILE_FIELDS})",
        page_size: int = 1000,
        page_token: str | None = None,
        order_by: str | None = None,
    ) -> Any:
        """List one page of files.

        Args:
            query: Drive search query (e.g. "'<id>' in parents")
            fields: Partial response selector
            page_size: Maximum number of files per page
            page_token: Token from a previous page's nextPageToken
            order_by: Sort order (e.g. "name")

        Returns:
            Response with 'files' and optional 'nextPageToken' keys
        """
        params: dict[str, Any] = {"pageSize": page_size, "fields": fields}
        if query:
            params["q"] = query
        if page_token:
            params["pageToken"] = page_token
        if order_by:
            params["orderBy"] = order_by
        return self._request("GET", "/files", params=params)

    def list_children(
        self,
        parent_id: str,
        page_size: int = 1000,
        page_token: str | None = None,
        order_by: str | None = None,
    ) -> Any:
        """List one page of non-trashed children of a folder."""
        return self.list_files(
            query=f"'{parent_id}' in parents and trashed = false",
            page_size=page_size,
            page_token=page_token,
            order_by=order_by,
        )

    def get_file(self, file_id: str, fields: str = FILE_FIELDS) -> Any:
        """Get metadata of a single file or folder."""
        return self._request("GET", f"/files/{file_id}", params={"fields": fields})

    def get_storage_quota(self) -> Any:
        """Get the account storage quota.

        Returns:
            Dictionary with 'limit' and 'usage' (limit absent when unlimited)
        """
        about = self._request("GET", "/about", params={"fields": "storageQuota"})
        return about.get("storageQuota", {})

    def delete_file(self, file_id: str) -> Any:
        """Permanently delete a file or folder (skips the trash)."""
        return self._request("DELETE", f"/files/{file_id}", retry=False)

    # =========================
    # Create / Update Operations
    # =========================

    def create_file(
        self,
        metadata: dict[str, Any],
        content: Reader | None = None,
        size: int = 0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        fields: str = FILE_FIELDS,
        cancel: CancelToken | None = None,
    ) -> Any:
        """Create a file or folder, optionally with content.

        Args:
            metadata: File resource (name, parents, mimeType, appProperties)
            content: Optional reader with the file bytes
            size: Total content size in bytes
            chunk_size: Upload chunk size in bytes
            fields: Partial response selector
            cancel: Token that aborts the upload when cancelled

        Returns:
            Created file resource
        """
        if content is None:
            return self._request(
                "POST", "/files", retry=False, params={"fields": fields}, json=metadata
            )
        return self._resumable_upload(
            "POST",
            f"{self.upload_url}/files",
            metadata,
            content,
            size,
            chunk_size,
            fields,
            cancel,
        )

    def update_file(
        self,
        file_id: str,
        metadata: dict[str, Any] | None = None,
        content: Reader | None = None,
        size: int = 0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        fields: str = FILE_FIELDS,
        cancel: CancelToken | None = None,
    ) -> Any:
        """Update metadata and/or content of an existing file.

        The file keeps its id; new content replaces the old revision.
        """
        if content is None:
            return self._request(
                "PATCH",
                f"/files/{file_id}",
                retry=False,
                params={"fields": fields},
                json=metadata or {},
            )
        return self._resumable_upload(
            "PATCH",
            f"{self.upload_url}/files/{file_id}",
            metadata or {},
            content,
            size,
            chunk_size,
            fields,
            cancel,
        )

    def _resumable_upload(
        self,
        method: str,
        url: str,
        metadata: dict[str, Any],
        content: Reader,
        size: int,
        chunk_size: int,
        fields: str,
        cancel: CancelToken | None,
    ) -> Any:
        """Upload content using the resumable upload protocol.

        A session is opened with the metadata, then the content is sent in
        ``chunk_size`` pieces with Content-Range headers. The server answers
        308 until the final chunk.
        """
        if cancel is not None:
            cancel.add_callback(self.close)

        try:
            session = self._get_client().request(
                method,
                url,
                params={"uploadType": "resumable", "fields": fields},
                json=metadata,
                headers={"X-Upload-Content-Length": str(size)},
            )
            if not session.is_success:
                raise self._error_from_response(session)
            session_url = session.headers.get("Location")
            if not session_url:
                raise DriveUploadError("Upload session URL missing in response")

            if size == 0:
                response = self._get_client().put(
                    session_url, headers={"Content-Range": "bytes */0"}
                )
                return self._finish_upload(response)

            offset = 0
            while offset < size:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                length = min(chunk_size, size - offset)
                response = self._get_client().put(
                    session_url,
                    content=self._iter_chunk(content, length),
                    headers={
                        "Content-Length": str(length),
                        "Content-Range": f"bytes {offset}-{offset + length - 1}/{size}",
                    },
                )
                if response.status_code == 308:
                    committed = self._committed_bytes(response)
                    if committed != offset + length:
                        raise DriveUploadError(
                            f"Server committed {committed} bytes, "
                            f"expected {offset + length}"
                        )
                    offset = committed
                    continue
                return self._finish_upload(response)

            raise DriveUploadError("Upload finished without a final response")
        except httpx.RequestError as e:
            if cancel is not None and cancel.cancelled:
                raise DriveCancelledError("Upload was cancelled") from e
            raise DriveNetworkError(f"Network error during upload: {e}") from e

    def _finish_upload(self, response: httpx.Response) -> Any:
        if not response.is_success:
            raise self._error_from_response(response)
        return self._parse_json(response)

    @staticmethod
    def _committed_bytes(response: httpx.Response) -> int:
        """Bytes committed by the server, from the 'Range: bytes=0-N' header."""
        range_header = response.headers.get("Range")
        if not range_header:
            return 0
        return int(range_header.rsplit("-", 1)[1]) + 1

    @staticmethod
    def _iter_chunk(content: Reader, length: int) -> Iterator[bytes]:
        remaining = length
        while remaining > 0:
            data = content.read(min(STREAM_BLOCK_SIZE, remaining))
            if not data:
                raise DriveUploadError(
                    f"Content ended early, {remaining} byte(s) missing"
                )
            remaining -= len(data)
            yield data

    # =========================
    # Download Operations
    # =========================

    def download_file(
        self,
        file_id: str,
        output: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        reader_wrapper: ReaderWrapper | None = None,
        cancel: CancelToken | None = None,
    ) -> int:
        """Download file content into a writable binary stream.

        Args:
            file_id: ID of the file to download
            output: Open binary stream to write to
            chunk_size: Read size in bytes
            reader_wrapper: Optional wrapper applied to the response reader
                (progress, idle timeout)
            cancel: Token that aborts the download when cancelled

        Returns:
            Number of bytes written

        Raises:
            DriveAPIError: If download fails
        """
        url = f"{self.api_url}/files/{file_id}"
        client = self._get_client()
        written = 0

        try:
            with client.stream("GET", url, params={"alt": "media"}) as response:
                if not response.is_success:
                    response.read()
                    raise self._error_from_response(response)

                if cancel is not None:
                    cancel.add_callback(response.close)

                reader: Reader = IteratorReader(response.iter_bytes(chunk_size))
                if reader_wrapper is not None:
                    reader = reader_wrapper(reader)

                try:
                    while True:
                        data = reader.read(chunk_size)
                        if not data:
                            break
                        output.write(data)
                        written += len(data)
                finally:
                    close_reader(reader)
        except (httpx.RequestError, httpx.StreamError) as e:
            if cancel is not None and cancel.cancelled:
                raise DriveCancelledError("Download was cancelled") from e
            raise DriveNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise DriveDownloadError(f"Failed to write file: {e}") from e

        return written
