"""Unit tests for the Drive API client."""

import io
import json
from unittest.mock import patch

import httpx
import pytest

from pygdrive.api import DriveClient
from pygdrive.exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveCancelledError,
    DriveConfigError,
    DriveInvalidResponseError,
    DriveNotFoundError,
    DriveRateLimitError,
    DriveServerError,
    DriveUploadError,
    ErrorCategory,
)
from pygdrive.readers import CancelToken, ProgressReader

API = "https://api.test/drive/v3"
UPLOAD = "https://api.test/upload/drive/v3"


def make_client(handler, **kwargs) -> DriveClient:
    return DriveClient(
        access_token="token",
        api_url=API,
        upload_url=UPLOAD,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(status_code: int, data, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, json=data, **kwargs)


class TestDriveClient:
    """Tests for DriveClient initialization and basic functionality."""

    def test_init_with_access_token(self):
        client = DriveClient(access_token="test_token")
        assert client.access_token == "test_token"
        assert client.api_url == "https://www.googleapis.com/drive/v3"
        assert client.upload_url == "https://www.googleapis.com/upload/drive/v3"

    def test_init_without_token_raises_error(self):
        with patch("pygdrive.api.config") as mock_config:
            mock_config.access_token = None
            mock_config.api_url = API
            mock_config.upload_url = UPLOAD
            with pytest.raises(DriveConfigError, match="Access token not configured"):
                DriveClient(access_token=None)

    def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return json_response(200, {"id": "f1"})

        make_client(handler).get_file("f1")

        assert seen["auth"] == "Bearer token"

    def test_client_recreated_after_close(self):
        client = make_client(lambda r: json_response(200, {}))
        first = client._get_client()
        client.close()

        assert client._get_client() is not first


class TestErrorMapping:
    """Tests for HTTP status to exception mapping."""

    @pytest.mark.parametrize(
        "status,error_class,category",
        [
            (401, DriveAuthenticationError, ErrorCategory.OTHER),
            (404, DriveNotFoundError, ErrorCategory.OTHER),
            (403, DriveRateLimitError, ErrorCategory.RATE_LIMITED),
            (429, DriveRateLimitError, ErrorCategory.RATE_LIMITED),
            (500, DriveServerError, ErrorCategory.SERVER_ERROR),
            (503, DriveServerError, ErrorCategory.SERVER_ERROR),
            (400, DriveAPIError, ErrorCategory.OTHER),
        ],
    )
    def test_status_mapping(self, status, error_class, category):
        client = make_client(
            lambda r: json_response(status, {"error": {"message": "nope"}}),
            max_retries=0,
        )

        with pytest.raises(error_class) as exc_info:
            client.get_file("f1")

        assert exc_info.value.status_code == status
        assert exc_info.value.category == category

    def test_error_message_included(self):
        client = make_client(
            lambda r: json_response(400, {"error": {"message": "Invalid query"}}),
        )

        with pytest.raises(DriveAPIError, match="Invalid query"):
            client.list_files(query="bad")

    def test_non_json_response_rejected(self):
        client = make_client(
            lambda r: httpx.Response(200, text="<html>", headers={"Content-Type": "text/html"})
        )

        with pytest.raises(DriveInvalidResponseError):
            client.get_file("f1")


class TestRetries:
    """Tests for read-only request retries."""

    @patch("pygdrive.api.time.sleep")
    def test_get_retried_on_rate_limit(self, mock_sleep):
        responses = iter(
            [
                json_response(429, {}, headers={"Retry-After": "3"}),
                json_response(200, {"id": "f1"}),
            ]
        )
        client = make_client(lambda r: next(responses))

        assert client.get_file("f1") == {"id": "f1"}
        mock_sleep.assert_called_once_with(3.0)

    @patch("pygdrive.api.time.sleep")
    def test_get_gives_up_after_max_retries(self, mock_sleep):
        requests = []

        def handler(request):
            requests.append(request)
            return json_response(500, {})

        client = make_client(handler, max_retries=2)

        with pytest.raises(DriveServerError):
            client.get_file("f1")

        assert len(requests) == 3

    @patch("pygdrive.api.time.sleep")
    def test_mutations_not_retried(self, mock_sleep):
        requests = []

        def handler(request):
            requests.append(request)
            return json_response(500, {})

        client = make_client(handler)

        with pytest.raises(DriveServerError):
            client.delete_file("f1")

        assert len(requests) == 1
        mock_sleep.assert_not_called()


class TestMetadataOperations:
    """Tests for listing and metadata calls."""

    def test_list_children_query(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return json_response(200, {"files": [], "nextPageToken": "next"})

        result = make_client(handler).list_children("folder1", page_token="tok")

        assert seen["params"]["q"] == "'folder1' in parents and trashed = false"
        assert seen["params"]["pageToken"] == "tok"
        assert seen["params"]["pageSize"] == "1000"
        assert result["nextPageToken"] == "next"

    def test_storage_quota(self):
        def handler(request):
            assert request.url.path.endswith("/about")
            return json_response(
                200, {"storageQuota": {"limit": "100", "usage": "40"}}
            )

        assert make_client(handler).get_storage_quota() == {
            "limit": "100",
            "usage": "40",
        }

    def test_create_folder(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return json_response(200, {"id": "d1", "name": "sub"})

        result = make_client(handler).create_file({"name": "sub", "parents": ["p"]})

        assert seen["method"] == "POST"
        assert seen["body"] == {"name": "sub", "parents": ["p"]}
        assert result["id"] == "d1"

    def test_update_metadata_uses_patch(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return json_response(200, {"id": "f1"})

        make_client(handler).update_file("f1", metadata={"appProperties": {"a": "b"}})

        assert seen["method"] == "PATCH"
        assert seen["path"].endswith("/files/f1")


class TestResumableUpload:
    """Tests for the resumable upload protocol."""

    def make_upload_handler(self, requests, total):
        def handler(request):
            requests.append(request)
            if request.url.params.get("uploadType") == "resumable":
                return httpx.Response(
                    200, headers={"Location": "https://api.test/session/1"}
                )
            content_range = request.headers["Content-Range"]
            end = int(content_range.split("-")[1].split("/")[0])
            if end + 1 < total:
                return httpx.Response(308, headers={"Range": f"bytes=0-{end}"})
            return json_response(200, {"id": "f1", "size": str(total)})

        return handler

    def test_upload_in_chunks(self):
        requests = []
        content = b"0123456789"
        client = make_client(self.make_upload_handler(requests, len(content)))

        result = client.create_file(
            {"name": "a.txt"}, content=io.BytesIO(content), size=10, chunk_size=4
        )

        assert result["id"] == "f1"
        session, *chunks = requests
        assert session.method == "POST"
        assert session.url.host == "api.test"
        assert session.headers["X-Upload-Content-Length"] == "10"
        assert [c.headers["Content-Range"] for c in chunks] == [
            "bytes 0-3/10",
            "bytes 4-7/10",
            "bytes 8-9/10",
        ]
        assert b"".join(c.content for c in chunks) == content

    def test_update_content_uses_patch_session(self):
        requests = []
        client = make_client(self.make_upload_handler(requests, 3))

        client.update_file("f1", content=io.BytesIO(b"abc"), size=3)

        assert requests[0].method == "PATCH"
        assert requests[0].url.path.endswith("/upload/drive/v3/files/f1")

    def test_empty_upload(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.method == "POST":
                return httpx.Response(
                    200, headers={"Location": "https://api.test/session/1"}
                )
            return json_response(200, {"id": "f1"})

        make_client(handler).create_file(
            {"name": "empty"}, content=io.BytesIO(b""), size=0
        )

        assert requests[1].headers["Content-Range"] == "bytes */0"

    def test_short_content_rejected(self):
        requests = []
        client = make_client(self.make_upload_handler(requests, 10))

        with pytest.raises(DriveUploadError, match="ended early"):
            client.create_file(
                {"name": "a.txt"}, content=io.BytesIO(b"abc"), size=10, chunk_size=4
            )

    def test_cancelled_upload(self):
        token = CancelToken()
        calls = []

        def handler(request):
            calls.append(request)
            if request.method == "POST":
                return httpx.Response(
                    200, headers={"Location": "https://api.test/session/1"}
                )
            raise httpx.ReadError("connection closed")

        client = make_client(handler)
        reader = ProgressReader(io.BytesIO(b"abc"), lambda done, total: token.cancel(), 3)

        with pytest.raises(DriveCancelledError):
            client.create_file({"name": "a.txt"}, content=reader, size=3, cancel=token)


class TestDownload:
    """Tests for content downloads."""

    def test_download_writes_output(self):
        def handler(request):
            assert request.url.params["alt"] == "media"
            return httpx.Response(200, content=b"file content")

        output = io.BytesIO()
        written = make_client(handler).download_file("f1", output, chunk_size=4)

        assert written == 12
        assert output.getvalue() == b"file content"

    def test_download_applies_reader_wrapper(self):
        progress = []

        def wrapper(reader):
            return ProgressReader(reader, lambda done, total: progress.append(done), 5)

        client = make_client(lambda r: httpx.Response(200, content=b"hello"))
        client.download_file("f1", io.BytesIO(), chunk_size=2, reader_wrapper=wrapper)

        assert progress[-1] == 5

    def test_download_error(self):
        client = make_client(
            lambda r: json_response(404, {"error": {"message": "File not found"}})
        )

        with pytest.raises(DriveNotFoundError):
            client.download_file("missing", io.BytesIO())
