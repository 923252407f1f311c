"""
Unit tests for the storage upload client and error classification.

requests.Session is mocked; no network traffic is generated.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from core.cancellation import CancellationToken
from core.exceptions import (
    AuthError,
    NetworkError,
    OperationTimeoutError,
    ServerError,
    UnknownUploadError,
    UploadTimeoutError,
)
from core.upload_client import (
    HttpUploadClient,
    classify_exception,
    classify_response,
    describe_error_response,
)


def make_response(status_code, body=b"", json_data=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = body
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("no json")
    return response


# Fixtures

@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return HttpUploadClient(
        upload_url="https://storage.example.com/upload",
        access_token="token-123",
        folder_id="folder-9",
        request_timeout_seconds=12.0,
        session=session,
    )


class TestUpload:

    def test_successful_upload(self, client, session):
        session.post.return_value = make_response(200, json_data={"id": "file-1"})

        result = client.upload(b"%PDF", "app.pdf", "application/pdf")

        assert result == {"id": "file-1"}
        args, kwargs = session.post.call_args
        assert args[0] == "https://storage.example.com/upload"
        assert kwargs["headers"] == {"Authorization": "Bearer token-123"}
        assert kwargs["timeout"] == 12.0

    def test_multipart_parts(self, client, session):
        session.post.return_value = make_response(200, json_data={})
        client.upload(b"{}", "app.json", "application/json")

        files = session.post.call_args.kwargs["files"]
        metadata = json.loads(files["metadata"][1])
        assert metadata == {"name": "app.json", "parents": ["folder-9"]}
        assert files["file"] == ("app.json", b"{}", "application/json")

    def test_no_folder_means_no_parents(self, session):
        client = HttpUploadClient("https://storage.example.com/upload", "t", session=session)
        session.post.return_value = make_response(200, json_data={})
        client.upload(b"x", "a.pdf", "application/pdf")

        metadata = json.loads(session.post.call_args.kwargs["files"]["metadata"][1])
        assert "parents" not in metadata

    def test_non_json_success_body(self, client, session):
        session.post.return_value = make_response(201)
        assert client.upload(b"x", "a.pdf", "application/pdf") == {}

    @pytest.mark.parametrize("status, error_type", [
        (401, AuthError),
        (403, AuthError),
        (429, ServerError),
        (500, ServerError),
        (503, ServerError),
        (400, UnknownUploadError),
        (404, UnknownUploadError),
    ])
    def test_error_statuses(self, client, session, status, error_type):
        session.post.return_value = make_response(status)
        with pytest.raises(error_type) as exc_info:
            client.upload(b"x", "a.pdf", "application/pdf")
        assert exc_info.value.status_code == status
        assert exc_info.value.file_name == "a.pdf"

    def test_connection_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("DNS failure")
        with pytest.raises(NetworkError):
            client.upload(b"x", "a.pdf", "application/pdf")

    def test_request_timeout(self, client, session):
        session.post.side_effect = requests.Timeout("slow")
        with pytest.raises(UploadTimeoutError):
            client.upload(b"x", "a.pdf", "application/pdf")

    def test_cancelled_token_skips_request(self, client, session):
        token = CancellationToken()
        token.cancel("deadline")
        with pytest.raises(UploadTimeoutError):
            client.upload(b"x", "a.pdf", "application/pdf", cancel_token=token)
        session.post.assert_not_called()

    def test_missing_url_is_auth_error(self, session):
        client = HttpUploadClient("", "token", session=session)
        with pytest.raises(AuthError):
            client.upload(b"x", "a.pdf", "application/pdf")
        session.post.assert_not_called()


class TestClassification:

    def test_retryable_flags(self):
        assert AuthError("x").retryable is False
        for error_type in (NetworkError, ServerError, UnknownUploadError):
            assert error_type("x").retryable is True
        assert UploadTimeoutError(5.0).retryable is True

    def test_upload_error_passes_through(self):
        error = ServerError("x")
        assert classify_exception(error) is error

    def test_deadline_becomes_timeout(self):
        error = classify_exception(OperationTimeoutError("upload", 30.0), file_name="a.pdf")
        assert isinstance(error, UploadTimeoutError)
        assert error.timeout_seconds == 30.0

    def test_builtin_connection_error(self):
        assert isinstance(classify_exception(ConnectionResetError("reset")), NetworkError)

    def test_anything_else_is_unknown(self):
        error = classify_exception(KeyError("boom"))
        assert isinstance(error, UnknownUploadError)
        assert error.details["exception_type"] == "KeyError"

    def test_classify_response_categories(self):
        assert classify_response(401, b"").category == "auth"
        assert classify_response(502, b"").category == "server"
        assert classify_response(418, b"").category == "unknown"


class TestErrorDescriptions:

    def test_known_reason(self):
        body = json.dumps({
            "error": {"code": 403, "message": "nope", "errors": [{"reason": "storageQuotaExceeded"}]}
        }).encode("utf-8")
        assert describe_error_response(403, body) == "Remote storage quota exceeded."

    def test_unknown_reason_uses_message(self):
        body = json.dumps({"error": {"code": 400, "message": "Bad field", "errors": []}}).encode("utf-8")
        assert describe_error_response(400, body) == "Storage API error (400): Bad field"

    @pytest.mark.parametrize("status, fragment", [
        (401, "Authentication"),
        (404, "not found"),
        (429, "Rate limited"),
        (500, "HTTP 500"),
        (418, "HTTP status 418"),
    ])
    def test_fallback_by_status(self, status, fragment):
        assert fragment in describe_error_response(status, b"<html>oops</html>")
