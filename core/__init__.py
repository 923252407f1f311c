"""
Core module for the applicant kiosk.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- cancellation: Cancellation tokens and deadline-bounded calls
- scheduling: Clock and timer abstractions
- network: Point-in-time connectivity check
- upload_client: Storage API client with classified errors
- notifier: Best-effort Slack notification
"""

from .exceptions import (
    KioskError,
    ArtifactRenderError,
    BackupError,
    NotificationError,
    OperationTimeoutError,
    UploadError,
    NetworkError,
    AuthError,
    ServerError,
    UploadTimeoutError,
    UnknownUploadError,
)
from .cancellation import CancellationToken, OperationCancelledError, run_with_timeout
from .network import NetworkMonitor
from .notifier import SlackNotifier
from .scheduling import SystemClock, ThreadingScheduler
from .upload_client import HttpUploadClient

__all__ = [
    "KioskError",
    "ArtifactRenderError",
    "BackupError",
    "NotificationError",
    "OperationTimeoutError",
    "UploadError",
    "NetworkError",
    "AuthError",
    "ServerError",
    "UploadTimeoutError",
    "UnknownUploadError",
    "CancellationToken",
    "OperationCancelledError",
    "run_with_timeout",
    "NetworkMonitor",
    "SlackNotifier",
    "SystemClock",
    "ThreadingScheduler",
    "HttpUploadClient",
]
