"""
Custom exceptions for the applicant kiosk.

Exception Hierarchy:
    KioskError (base)
    ├── ArtifactRenderError    - PDF/JSON could not be produced (abort, nothing to retry)
    ├── BackupError            - Local write-ahead backup failed (logged, never aborts)
    ├── NotificationError      - Side-channel notification failed (logged only)
    ├── OperationTimeoutError  - A guarded operation missed its deadline
    ├── ReferenceExhaustedError - No reference numbers left for today (abort)
    └── UploadError            - Upload attempt failed (classified)
        ├── NetworkError         - No connectivity / DNS / connection dropped (retryable)
        ├── AuthError            - Credentials rejected (NOT retryable)
        ├── ServerError          - Remote 5xx / rate limit (retryable)
        ├── UploadTimeoutError   - Attempt exceeded its deadline (retryable)
        └── UnknownUploadError   - Anything else (retryable, logged with detail)

Usage:
    The submission pipeline only retries UploadError subclasses whose
    ``retryable`` flag is set. Every other error either aborts the submission
    (ArtifactRenderError) or is logged and ignored (BackupError, NotificationError).
"""

from typing import Optional, Dict, Any


class KioskError(Exception):
    """
    Base exception for all applicant kiosk errors.

    Lets callers catch every application-specific error with a single
    except clause.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# LOCAL ERRORS
# =============================================================================

class ArtifactRenderError(KioskError):
    """
    The PDF or JSON artifact could not be generated.

    Raised before any backup or network activity. There is nothing to retry,
    so the submission fails immediately.
    """

    def __init__(self, artifact: str, reason: str):
        message = f"Failed to generate {artifact}: {reason}"
        super().__init__(message, {"artifact": artifact})
        self.artifact = artifact
        self.reason = reason


class ReferenceExhaustedError(KioskError):
    """
    The day's reference sequence is used up (more than 9999 numbers).

    Nothing is persisted, so the counter stays at the last issued value.
    """

    def __init__(self, date_str: str, limit: int):
        message = f"Reference sequence exhausted for {date_str} (limit {limit})"
        super().__init__(message, {"date": date_str, "limit": limit})
        self.date_str = date_str
        self.limit = limit


class BackupError(KioskError):
    """
    A write-ahead backup operation failed.

    Typical causes:
    - Backup directory not writable
    - Disk full
    - Index file corrupted
    """

    def __init__(self, operation: str, reference_number: Optional[str] = None, reason: str = ""):
        if reference_number:
            message = f"Backup {operation} failed for {reference_number}"
        else:
            message = f"Backup {operation} failed"
        if reason:
            message = f"{message}: {reason}"
        details = {"operation": operation}
        if reference_number:
            details["reference_number"] = reference_number
        super().__init__(message, details)
        self.operation = operation
        self.reference_number = reference_number


class NotificationError(KioskError):
    """Side-channel notification could not be delivered."""

    def __init__(self, message: str = "Failed to send notification", status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(message, details)
        self.status_code = status_code


class OperationTimeoutError(KioskError):
    """
    An operation guarded by run_with_timeout() missed its deadline.

    The operation's cancellation token has already been cancelled when this
    is raised.
    """

    def __init__(self, operation: str, timeout_seconds: float):
        message = f"{operation} timed out after {timeout_seconds:.1f}s"
        super().__init__(message, {"operation": operation, "timeout_seconds": timeout_seconds})
        self.operation = operation
        self.timeout_seconds = timeout_seconds


# =============================================================================
# UPLOAD ERRORS - drive the retry loop
# =============================================================================

class UploadError(KioskError):
    """
    Base class for classified upload failures.

    Attributes:
        category: Short category name ("network", "auth", "server", "timeout", "unknown")
        retryable: Whether another attempt may succeed
        status_code: HTTP status code, when the server answered
    """

    category = "unknown"
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        file_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if status_code is not None:
            error_details["status_code"] = status_code
        if file_name:
            error_details["file_name"] = file_name
        super().__init__(message, error_details)
        self.status_code = status_code
        self.file_name = file_name


class NetworkError(UploadError):
    """No usable network path, DNS failure, or the connection dropped."""

    category = "network"
    retryable = True


class AuthError(UploadError):
    """
    The storage API rejected our credentials.

    Retrying cannot fix this - the operator has to look at the configuration.
    """

    category = "auth"
    retryable = False


class ServerError(UploadError):
    """The storage API failed on its side (5xx) or is rate limiting us."""

    category = "server"
    retryable = True


class UploadTimeoutError(UploadError):
    """A single upload attempt exceeded its deadline."""

    category = "timeout"
    retryable = True

    def __init__(self, timeout_seconds: float, file_name: Optional[str] = None):
        message = f"Upload timed out after {timeout_seconds:.1f}s"
        super().__init__(message, file_name=file_name, details={"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class UnknownUploadError(UploadError):
    """Unclassified failure. Retried, but logged with full detail."""

    category = "unknown"
    retryable = True
