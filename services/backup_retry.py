"""
Operator-triggered retry of pending backups.

Walks the pending index and uploads each (PDF, JSON) pair with the same
uploader the pipeline uses. A pair is removed from the backup store only
after both files are uploaded; failures are recorded and the walk moves on
to the next reference.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.cancellation import run_with_timeout
from core.upload_client import classify_exception
from core.exceptions import BackupError
from logging_config import get_logger
from models.applicant import ApplicantRecord


logger = get_logger(__name__)


@dataclass
class RetryReport:
    """Outcome of one retry run."""

    uploaded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    remaining: List[str] = field(default_factory=list)
    network_available: bool = True

    @property
    def attempted(self) -> int:
        return len(self.uploaded) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uploaded": list(self.uploaded),
            "failed": dict(self.failed),
            "remaining": list(self.remaining),
            "network_available": self.network_available,
            "attempted": self.attempted,
        }


class BackupRetryService:
    """
    Uploads pending backups on operator request.

    Only one retry run executes at a time; a second request waits for the
    first to finish and then works on whatever is still pending.
    """

    def __init__(
        self,
        backup_store,
        uploader,
        network_monitor=None,
        upload_timeout_seconds: float = 30.0,
        file_prefix: str = "AFF"
    ):
        self.backup_store = backup_store
        self.uploader = uploader
        self.network_monitor = network_monitor
        self.upload_timeout_seconds = upload_timeout_seconds
        self.file_prefix = file_prefix
        self._run_lock = threading.Lock()

    def retry_all(self) -> RetryReport:
        """Retry every pending reference."""
        with self._run_lock:
            report = RetryReport()
            pending = self.backup_store.list_pending()

            if self.network_monitor is not None and not self.network_monitor.is_available():
                logger.warning(f"Retry skipped: no network ({len(pending)} pending)")
                report.network_available = False
                report.remaining = pending
                return report

            logger.info(f"Retrying {len(pending)} pending upload(s)")
            for reference in pending:
                error = self._retry_one(reference)
                if error is None:
                    report.uploaded.append(reference)
                else:
                    report.failed[reference] = error

            report.remaining = self.backup_store.list_pending()
            logger.info(
                f"Retry finished: {len(report.uploaded)} uploaded, "
                f"{len(report.failed)} failed, {len(report.remaining)} remaining"
            )
            return report

    def retry(self, reference_number: str) -> Optional[str]:
        """
        Retry a single reference.

        Returns:
            None on success, otherwise the error message
        """
        with self._run_lock:
            return self._retry_one(reference_number)

    def _retry_one(self, reference: str) -> Optional[str]:
        pair = self.backup_store.load(reference)
        if pair is None:
            logger.warning(f"Backup files for {reference} are missing")
            return "Backup files not found"

        pdf_bytes, json_bytes = pair
        base_name = self._base_name(reference, json_bytes)

        try:
            for data, suffix, mime_type in (
                (pdf_bytes, "pdf", "application/pdf"),
                (json_bytes, "json", "application/json"),
            ):
                file_name = f"{base_name}.{suffix}"
                run_with_timeout(
                    lambda token: self.uploader.upload(data, file_name, mime_type, cancel_token=token),
                    self.upload_timeout_seconds,
                    operation=f"upload of {file_name}",
                    thread_name=f"Retry-{reference}",
                )
        except Exception as exc:
            error = classify_exception(exc)
            logger.warning(f"Retry of {reference} failed ({error.category}): {error}")
            return error.message

        try:
            self.backup_store.remove(reference)
        except BackupError as e:
            logger.error(f"Uploaded {reference} but could not remove its backup: {e}")

        logger.info(f"Retried upload of {reference} succeeded")
        return None

    def _base_name(self, reference: str, json_bytes: bytes) -> str:
        """Upload name from the stored JSON; falls back to the bare reference."""
        try:
            record = ApplicantRecord.from_json_bytes(json_bytes)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Stored JSON for {reference} is unreadable, uploading as {reference}: {e}")
            return reference
        if not record.reference_number:
            record.reference_number = reference
        return record.artifact_base_name(self.file_prefix)
