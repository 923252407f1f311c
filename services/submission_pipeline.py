"""
Submission pipeline: from applicant record to uploaded artifacts.

One run of the pipeline handles one application, synchronously, on the
calling thread (SubmissionService gives each run its own worker thread):

    1. Sanitize a copy of the record
    2. Generate the reference number, stamp it and the submission time
       onto the caller's record and the copy, render PDF + JSON
    3. Write-ahead backup (failure is logged, never aborts)
    4. Network check - no network means no upload attempts at all
    5. Fire the notification on a detached thread (outcome ignored)
    6. Upload PDF then JSON, each under its own deadline, with bounded
       retries and exponential backoff; AuthError stops immediately
    7. On success the backup entry is removed; otherwise it stays

Durability Rule:
    The user is never told an application was lost when the backup
    succeeded, and is always told to contact staff when it did not.

Usage:
    pipeline = SubmissionPipeline(
        reference_generator=generator,
        backup_store=store,
        network_monitor=monitor,
        uploader=client,
        notifier=notifier,
        renderer=ApplicationPDFRenderer(),
        settings=SubmissionSettings.from_config(app.config),
    )
    result = pipeline.run(record)
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from core.cancellation import run_with_timeout
from core.exceptions import ArtifactRenderError, BackupError, ReferenceExhaustedError, UploadError
from core.upload_client import classify_exception
from logging_config import get_logger, get_submission_logger, set_thread_name
from models.applicant import ApplicantRecord
from models.submission_result import SubmissionResult
from modules.sanitizer import mask_nric, sanitize_record


logger = get_logger(__name__)


# =============================================================================
# USER-FACING MESSAGES
# =============================================================================

SAVED_FOR_LATER = "Your application has been saved on this device and will be submitted later."

FAILURE_MESSAGES: Dict[str, str] = {
    "network": f"We couldn't connect to our servers. {SAVED_FOR_LATER}",
    "auth": f"Our upload service needs attention from our staff. {SAVED_FOR_LATER}",
    "server": f"Our servers are having trouble right now. {SAVED_FOR_LATER}",
    "timeout": f"The upload took too long to complete. {SAVED_FOR_LATER}",
    "unknown": f"Something went wrong while uploading. {SAVED_FOR_LATER}",
}

NO_NETWORK_MESSAGE = f"No internet connection. {SAVED_FOR_LATER}"
CONNECTION_LOST_MESSAGE = f"The connection was lost during upload. {SAVED_FOR_LATER}"
NOT_SAVED_MESSAGE = (
    "We could not submit your application and it could not be saved on this device. "
    "Please contact our staff for assistance."
)
RENDER_FAILED_MESSAGE = (
    "We could not prepare your application for submission. "
    "Please contact our staff for assistance."
)


@dataclass
class SubmissionSettings:
    """Tunables for one pipeline instance."""

    max_retry_attempts: int = 3
    upload_timeout_seconds: float = 30.0
    notification_timeout_seconds: float = 15.0
    file_prefix: str = "AFF"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SubmissionSettings":
        """Build settings from a Flask config mapping."""
        return cls(
            max_retry_attempts=int(config.get("MAX_RETRY_ATTEMPTS", 3)),
            upload_timeout_seconds=float(config.get("UPLOAD_TIMEOUT_SECONDS", 30.0)),
            notification_timeout_seconds=float(config.get("NOTIFICATION_TIMEOUT_SECONDS", 15.0)),
            file_prefix=config.get("REFERENCE_PREFIX", "AFF"),
        )


def _default_jitter() -> float:
    return random.uniform(0.0, 0.5)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class SubmissionPipeline:
    """
    Renders, backs up and uploads one application per run() call.

    Collaborators are injected so tests can swap the uploader, network
    monitor, clock and sleep without touching the network:

        uploader.upload(data, file_name, mime_type, cancel_token=...) -> dict | None
        notifier.send(record, timeout_seconds) -> None
        network_monitor.is_available() -> bool
        renderer.render(record) -> bytes
    """

    def __init__(
        self,
        reference_generator,
        backup_store,
        network_monitor,
        uploader,
        notifier,
        renderer,
        settings: Optional[SubmissionSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] = _default_jitter,
        now: Callable[[], datetime] = _local_now
    ):
        self.reference_generator = reference_generator
        self.backup_store = backup_store
        self.network_monitor = network_monitor
        self.uploader = uploader
        self.notifier = notifier
        self.renderer = renderer
        self.settings = settings or SubmissionSettings()
        self._sleep = sleep
        self._jitter = jitter
        self._now = now

        if self.settings.max_retry_attempts < 1:
            raise ValueError("max_retry_attempts must be at least 1")

    def run(self, record: ApplicantRecord) -> SubmissionResult:
        """
        Submit one application.

        The caller's record is only modified by stamping reference_number
        and submission_date onto it.

        Returns:
            SubmissionResult (never raises for upload, backup or notification failures)
        """
        # =====================================================================
        # STEP 1-2: Sanitize, stamp, render
        # =====================================================================
        clean = sanitize_record(record)

        try:
            reference = self.reference_generator.generate()
        except ReferenceExhaustedError as e:
            logger.error(f"Cannot stamp submission: {e}")
            return SubmissionResult.create_failure(NOT_SAVED_MESSAGE, error_category="reference")

        submitted_at = self._now()
        for target in (record, clean):
            target.reference_number = reference
            target.submission_date = submitted_at

        log = get_submission_logger(reference)
        log.info(f"Submission started for {clean.full_name} (NRIC {mask_nric(clean.nric_fin)})")

        try:
            pdf_bytes, json_bytes = self._render(clean)
        except ArtifactRenderError as e:
            log.error(f"Artifact rendering failed, aborting: {e}")
            return SubmissionResult.create_failure(RENDER_FAILED_MESSAGE, error_category="render")

        # =====================================================================
        # STEP 3: Write-ahead backup
        # =====================================================================
        backup_saved = self._backup(pdf_bytes, json_bytes, reference, log)

        # =====================================================================
        # STEP 4: Network check
        # =====================================================================
        if not self.network_monitor.is_available():
            log.warning("No network available - upload skipped, application kept for later")
            return self._failure(NO_NETWORK_MESSAGE, "network", backup_saved)

        # =====================================================================
        # STEP 5: Notification (detached, outcome ignored)
        # =====================================================================
        self.start_notification(clean, log)

        # =====================================================================
        # STEP 6: Upload with retries
        # =====================================================================
        base_name = clean.artifact_base_name(self.settings.file_prefix)
        max_attempts = self.settings.max_retry_attempts
        last_error: Optional[UploadError] = None

        for attempt in range(1, max_attempts + 1):
            log.info(f"Upload attempt {attempt}/{max_attempts}")
            try:
                remote_file_id = self._upload_artifacts(pdf_bytes, json_bytes, base_name, reference)
            except Exception as exc:
                last_error = classify_exception(exc)
                if not last_error.retryable:
                    log.error(f"Upload attempt {attempt} failed ({last_error.category}), not retrying: {last_error}")
                    break
                log.warning(f"Upload attempt {attempt} failed ({last_error.category}): {last_error}")

                if attempt < max_attempts:
                    delay = 2 ** (attempt - 1) + self._jitter()
                    log.info(f"Retrying in {delay:.2f}s")
                    self._sleep(delay)
                    if not self.network_monitor.is_available():
                        log.warning("Connection lost between attempts - application kept for later")
                        return self._failure(CONNECTION_LOST_MESSAGE, "network", backup_saved)
                continue

            self._remove_backup(reference, log)
            log.info("Submission complete")
            return SubmissionResult.create_success(reference, remote_file_id=remote_file_id)

        # =====================================================================
        # STEP 7: Terminal failure - backup entry stays
        # =====================================================================
        category = last_error.category if last_error else "unknown"
        log.error(f"Submission failed after upload errors (last: {category}); backup_saved={backup_saved}")
        return self._failure(FAILURE_MESSAGES.get(category, FAILURE_MESSAGES["unknown"]), category, backup_saved)

    # =========================================================================
    # STEPS
    # =========================================================================

    def _render(self, record: ApplicantRecord) -> Tuple[bytes, bytes]:
        pdf_bytes = self.renderer.render(record)
        try:
            json_bytes = record.to_json_bytes()
        except (TypeError, ValueError) as e:
            raise ArtifactRenderError("JSON", str(e)) from e
        return pdf_bytes, json_bytes

    def _backup(self, pdf_bytes: bytes, json_bytes: bytes, reference: str, log: logging.Logger) -> bool:
        try:
            self.backup_store.save(pdf_bytes, json_bytes, reference)
            return True
        except BackupError as e:
            log.error(f"Write-ahead backup FAILED, application exists only in memory: {e}")
            return False

    def start_notification(self, record: ApplicantRecord, log: logging.Logger) -> threading.Thread:
        """Send the notification on a detached daemon thread bounded by its own timeout."""
        timeout = self.settings.notification_timeout_seconds
        thread_name = f"Notify-{record.reference_number}"

        def _notify():
            set_thread_name(thread_name)
            try:
                run_with_timeout(
                    lambda token: self.notifier.send(record, timeout),
                    timeout,
                    operation="notification",
                    thread_name=f"{thread_name}-send",
                )
                log.debug("Notification sent")
            except Exception as e:
                log.warning(f"Notification failed (ignored): {e}")

        thread = threading.Thread(target=_notify, name=thread_name, daemon=True)
        thread.start()
        return thread

    def _upload_artifacts(self, pdf_bytes: bytes, json_bytes: bytes, base_name: str, reference: str) -> Optional[str]:
        """Upload the PDF then the JSON; returns the PDF's remote id if the API sent one."""
        pdf_response = self._upload_one(pdf_bytes, f"{base_name}.pdf", "application/pdf", reference)
        self._upload_one(json_bytes, f"{base_name}.json", "application/json", reference)

        if isinstance(pdf_response, dict):
            return pdf_response.get("id")
        return None

    def _upload_one(self, data: bytes, file_name: str, mime_type: str, reference: str) -> Any:
        try:
            return run_with_timeout(
                lambda token: self.uploader.upload(data, file_name, mime_type, cancel_token=token),
                self.settings.upload_timeout_seconds,
                operation=f"upload of {file_name}",
                thread_name=f"Upload-{reference}",
            )
        except UploadError:
            raise
        except Exception as exc:
            raise classify_exception(exc, file_name=file_name) from exc

    def _remove_backup(self, reference: str, log: logging.Logger) -> None:
        try:
            self.backup_store.remove(reference)
        except BackupError as e:
            # Upload succeeded; a stale backup only means a duplicate on operator retry
            log.error(f"Could not remove backup after successful upload: {e}")

    def _failure(self, message: str, category: str, backup_saved: bool) -> SubmissionResult:
        if not backup_saved:
            message = NOT_SAVED_MESSAGE
        return SubmissionResult.create_failure(message, error_category=category, backup_saved=backup_saved)
