"""
Services layer for the applicant kiosk.

This module contains the business logic services:
- BackupStore: Write-ahead storage for pending artifacts
- SubmissionPipeline: Render, back up and upload one application
- SubmissionService: Submission threads and result store
- BackupRetryService: Operator retry of pending backups
- IdleSession / SessionMonitor: Inactivity warning and kiosk reset

Thread Model:
    Main Thread (Flask)
    ├── Submission threads (one per application)
    │   ├── Upload deadline threads (one per upload attempt)
    │   └── Notification thread (detached)
    └── Idle timer threads (threading.Timer, one pending at a time)
"""

from .backup_store import BackupStore, BackupMetadata
from .backup_retry import BackupRetryService, RetryReport
from .idle_session import IdleSession, IdleSnapshot, IdleState
from .session_monitor import SessionMonitor
from .submission_pipeline import SubmissionPipeline, SubmissionSettings
from .submission_service import SubmissionService, SubmissionResultStore

__all__ = [
    "BackupStore",
    "BackupMetadata",
    "BackupRetryService",
    "RetryReport",
    "IdleSession",
    "IdleSnapshot",
    "IdleState",
    "SessionMonitor",
    "SubmissionPipeline",
    "SubmissionSettings",
    "SubmissionService",
    "SubmissionResultStore",
]
