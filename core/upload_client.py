"""
HTTP client for the remote storage API.

Uploads one file per call as a multipart request (metadata part + file
part) and turns every failure into a classified UploadError so the
submission pipeline can decide whether to retry:

    401 / 403              -> AuthError          (not retryable)
    429, 5xx               -> ServerError
    other non-2xx          -> UnknownUploadError
    connection / DNS error -> NetworkError
    request timeout        -> UploadTimeoutError

The access token is opaque to this module - it is sent as a bearer token
and nothing more.

Usage:
    client = HttpUploadClient(upload_url, access_token, folder_id)
    client.upload(pdf_bytes, "AFF_Application_JaneTan_2026-10-19_AFF-20261019-0001.pdf",
                  "application/pdf")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from logging_config import get_logger

from .cancellation import CancellationToken, OperationCancelledError
from .exceptions import (
    AuthError,
    NetworkError,
    OperationTimeoutError,
    ServerError,
    UnknownUploadError,
    UploadError,
    UploadTimeoutError,
)


# Readable messages for the error reasons Google-Drive-style APIs return
_REASON_MESSAGES = {
    "notFound": "Upload folder not found. Please check the folder ID configuration.",
    "forbidden": "Insufficient permissions to upload to the configured folder.",
    "insufficientPermissions": "Insufficient permissions to upload to the configured folder.",
    "storageQuotaExceeded": "Remote storage quota exceeded.",
    "rateLimitExceeded": "Too many requests to the storage API. Please wait a moment.",
    "userRateLimitExceeded": "Too many requests to the storage API. Please wait a moment.",
    "authError": "Authentication failed. The service credentials may have expired.",
}


def describe_error_response(status_code: int, body: bytes) -> str:
    """
    Build a readable message from an error response.

    Understands bodies shaped like {"error": {"code", "message", "errors": [{"reason"}]}}
    and falls back to a message based on the status code.
    """
    try:
        payload = json.loads(body.decode("utf-8")) if body else None
    except (UnicodeDecodeError, ValueError):
        payload = None

    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message", "Unknown error")
        code = error.get("code", status_code)
        errors = error.get("errors") or []
        if errors and isinstance(errors[0], dict):
            reason = errors[0].get("reason", "")
            if reason in _REASON_MESSAGES:
                return _REASON_MESSAGES[reason]
        return f"Storage API error ({code}): {message}"

    if status_code == 400:
        return "Bad request to the storage API"
    if status_code == 401:
        return "Authentication expired or invalid"
    if status_code == 403:
        return "Access denied to the upload folder"
    if status_code == 404:
        return "Upload endpoint or folder not found"
    if status_code == 429:
        return "Rate limited by the storage API"
    if 500 <= status_code <= 599:
        return f"Storage server error (HTTP {status_code})"
    return f"Upload failed with HTTP status {status_code}"


def classify_response(status_code: int, body: bytes, file_name: Optional[str] = None) -> UploadError:
    """Map a non-2xx response onto the upload error taxonomy."""
    message = describe_error_response(status_code, body)
    if status_code in (401, 403):
        return AuthError(message, status_code=status_code, file_name=file_name)
    if status_code == 429 or 500 <= status_code <= 599:
        return ServerError(message, status_code=status_code, file_name=file_name)
    return UnknownUploadError(message, status_code=status_code, file_name=file_name)


def classify_exception(exc: BaseException, file_name: Optional[str] = None) -> UploadError:
    """
    Turn any exception raised during an upload attempt into an UploadError.

    UploadErrors pass through unchanged; deadline errors become
    UploadTimeoutError; requests' connection errors become NetworkError.
    """
    if isinstance(exc, UploadError):
        return exc
    if isinstance(exc, OperationTimeoutError):
        return UploadTimeoutError(exc.timeout_seconds, file_name=file_name)
    if isinstance(exc, requests.Timeout):
        return UploadTimeoutError(0.0, file_name=file_name)
    if isinstance(exc, (requests.ConnectionError, ConnectionError)):
        return NetworkError(f"Network error during upload: {exc}", file_name=file_name)
    return UnknownUploadError(
        f"Unexpected upload failure: {type(exc).__name__}: {exc}",
        file_name=file_name,
        details={"exception_type": type(exc).__name__},
    )


class HttpUploadClient:
    """
    Uploads files to the remote storage API.

    One instance can be shared between threads as long as the underlying
    requests.Session is only used for simple POSTs (connection pooling is
    thread-safe for that use).

    Attributes:
        upload_url: Multipart upload endpoint
        folder_id: Destination folder (sent as the "parents" metadata field)
        request_timeout_seconds: Socket timeout for one request
    """

    def __init__(
        self,
        upload_url: str,
        access_token: str,
        folder_id: str = "",
        request_timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.upload_url = upload_url
        self.folder_id = folder_id
        self.request_timeout_seconds = request_timeout_seconds
        self._access_token = access_token
        self._session = session or requests.Session()
        self._logger = logger or get_logger(__name__)

    def upload(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        Upload a single file.

        Args:
            data: File contents
            file_name: Name to store the file under
            mime_type: Content type of the file part
            cancel_token: Checked before the request is sent

        Returns:
            Parsed JSON response (empty dict if the body is not JSON)

        Raises:
            UploadError: Classified failure (see module docstring)
        """
        if not self.upload_url:
            raise AuthError("Upload endpoint is not configured", file_name=file_name)

        if cancel_token is not None:
            try:
                cancel_token.raise_if_cancelled()
            except OperationCancelledError as e:
                raise UploadTimeoutError(self.request_timeout_seconds, file_name=file_name) from e

        metadata: Dict[str, Any] = {"name": file_name}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]

        files = {
            "metadata": (None, json.dumps(metadata), "application/json; charset=UTF-8"),
            "file": (file_name, data, mime_type),
        }
        headers = {"Authorization": f"Bearer {self._access_token}"}

        self._logger.debug(f"Uploading {file_name} ({len(data)} bytes, {mime_type})")

        try:
            response = self._session.post(
                self.upload_url,
                headers=headers,
                files=files,
                timeout=self.request_timeout_seconds,
            )
        except requests.Timeout as e:
            raise UploadTimeoutError(self.request_timeout_seconds, file_name=file_name) from e
        except requests.ConnectionError as e:
            raise NetworkError(f"Network error during upload: {e}", file_name=file_name) from e
        except requests.RequestException as e:
            raise UnknownUploadError(f"Upload request failed: {e}", file_name=file_name) from e

        if not 200 <= response.status_code <= 299:
            error = classify_response(response.status_code, response.content, file_name)
            self._logger.warning(f"Upload of {file_name} rejected: {error.message}")
            raise error

        self._logger.info(f"Uploaded {file_name} (HTTP {response.status_code})")

        try:
            return response.json()
        except ValueError:
            return {}
