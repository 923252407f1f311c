"""
Submission result data models.

A SubmissionResult is produced once per pipeline run and handed from the
submission worker thread to the Flask thread through the result store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class SubmissionStatus(Enum):
    """
    Status of a submission as seen by the kiosk UI.

    Lifecycle:
        PENDING -> (SUCCEEDED | FAILED)
    """

    PENDING = "pending"
    """Submission is still running on its worker thread."""

    SUCCEEDED = "succeeded"
    """Both artifacts were uploaded."""

    FAILED = "failed"
    """Submission did not complete. The backup may still hold it."""


@dataclass
class SubmissionResult:
    """
    Outcome of one submission.

    Either a success carrying the reference number or a failure carrying a
    user-facing message - never both.
    """

    success: bool
    """Whether both artifacts reached remote storage."""

    reference_number: str = ""
    """Reference shown to the applicant (empty on failure)."""

    error_message: Optional[str] = None
    """User-facing failure message (None on success)."""

    error_category: Optional[str] = None
    """Upload error category of the last failure ('network', 'auth', ...)."""

    backup_saved: bool = False
    """Whether a local backup of the artifacts exists."""

    remote_file_id: Optional[str] = None
    """Identifier of the uploaded PDF, when the storage API returned one."""

    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When the pipeline finished."""

    @classmethod
    def create_success(cls, reference_number: str, remote_file_id: Optional[str] = None) -> "SubmissionResult":
        """
        Create a successful result.

        Args:
            reference_number: Reference stamped onto the application
            remote_file_id: Storage identifier of the uploaded PDF

        Returns:
            SubmissionResult with success=True
        """
        return cls(
            success=True,
            reference_number=reference_number,
            remote_file_id=remote_file_id,
        )

    @classmethod
    def create_failure(
        cls,
        error_message: str,
        error_category: Optional[str] = None,
        backup_saved: bool = False
    ) -> "SubmissionResult":
        """
        Create a failed result.

        Args:
            error_message: Message to show the applicant
            error_category: Category of the last upload error, if any
            backup_saved: Whether the artifacts are saved on the device

        Returns:
            SubmissionResult with success=False
        """
        return cls(
            success=False,
            error_message=error_message,
            error_category=error_category,
            backup_saved=backup_saved,
        )

    @property
    def status(self) -> SubmissionStatus:
        return SubmissionStatus.SUCCEEDED if self.success else SubmissionStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the status endpoint."""
        return {
            "status": self.status.value,
            "success": self.success,
            "reference_number": self.reference_number,
            "error_message": self.error_message,
            "error_category": self.error_category,
            "backup_saved": self.backup_saved,
            "remote_file_id": self.remote_file_id,
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionResult":
        """Create from dictionary."""
        completed_at_str = data.get("completed_at", "")
        try:
            completed_at = datetime.fromisoformat(completed_at_str) if completed_at_str else datetime.now(timezone.utc)
        except ValueError:
            completed_at = datetime.now(timezone.utc)

        return cls(
            success=data.get("success", False),
            reference_number=data.get("reference_number", ""),
            error_message=data.get("error_message"),
            error_category=data.get("error_category"),
            backup_saved=data.get("backup_saved", False),
            remote_file_id=data.get("remote_file_id"),
            completed_at=completed_at,
        )
