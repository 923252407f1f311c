"""
Asynchronous submission service with thread-per-submission architecture.

submit() returns a submission id immediately; the pipeline runs on its own
daemon thread and its SubmissionResult is handed back through the
SubmissionResultStore (and, optionally, a completion callback).

Thread Safety:
    - Each submission thread works on its own record; nothing is shared
      between submission threads except the lock-guarded collaborators
      (reference generator, backup store)
    - SubmissionResultStore uses threading.Lock for thread-safe access

Flow:
    1. Flask thread builds an ApplicantRecord from the request
    2. Flask thread calls submission_service.submit(record)
    3. Submission thread runs SubmissionPipeline.run(record)
    4. Submission thread stores the SubmissionResult
    5. Kiosk UI polls GET /status/<submission_id>

Usage:
    service = SubmissionService(pipeline)
    submission_id = service.submit(record)
    ...
    result = service.get_result(submission_id)   # None while pending
"""

from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, Optional

from logging_config import get_logger, set_thread_name
from models.applicant import ApplicantRecord
from models.submission_result import SubmissionResult


logger = get_logger(__name__)


class SubmissionResultStore:
    """
    Thread-safe storage for submission results.

    Submission threads WRITE results here, the Flask thread READS them.
    get_result() removes the result (consume-once); peek_result() does not.
    """

    def __init__(self):
        self._results: Dict[str, SubmissionResult] = {}
        self._lock = threading.Lock()

    def put_result(self, submission_id: str, result: SubmissionResult) -> None:
        with self._lock:
            self._results[submission_id] = result
            logger.debug(f"Stored result for submission {submission_id[:8]}")

    def get_result(self, submission_id: str) -> Optional[SubmissionResult]:
        """Get and remove a result. None if not available yet."""
        with self._lock:
            return self._results.pop(submission_id, None)

    def peek_result(self, submission_id: str) -> Optional[SubmissionResult]:
        with self._lock:
            return self._results.get(submission_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> int:
        """
        Remove all stored results.

        Returns:
            Number of results removed
        """
        with self._lock:
            count = len(self._results)
            self._results.clear()
            logger.info(f"Cleared {count} submission results from store")
            return count


class SubmissionService:
    """
    Runs one SubmissionPipeline per submission on its own thread.

    Attributes:
        result_store: SubmissionResultStore for reading results
    """

    def __init__(self, pipeline):
        self._pipeline = pipeline
        self._result_store = SubmissionResultStore()

        # Track active submission threads for shutdown
        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info("SubmissionService initialized")

    @property
    def result_store(self) -> SubmissionResultStore:
        return self._result_store

    def submit(
        self,
        record: ApplicantRecord,
        on_complete: Optional[Callable[[SubmissionResult], None]] = None,
        submission_id: Optional[str] = None
    ) -> str:
        """
        Start a submission in the background.

        Args:
            record: Application to submit (reference number and submission
                date are stamped onto it by the pipeline)
            on_complete: Called on the submission thread with the result
            submission_id: Optional id (generated if not provided)

        Returns:
            submission_id (UUID string)
        """
        if submission_id is None:
            submission_id = str(uuid.uuid4())

        logger.info(f"Submitting application {submission_id[:8]} for '{record.full_name}'")

        thread = threading.Thread(
            target=self._submission_thread_main,
            args=(submission_id, record, on_complete),
            name=f"Submit-{submission_id[:8]}",
            daemon=True
        )

        with self._threads_lock:
            self._active_threads[submission_id] = thread

        thread.start()
        return submission_id

    def get_result(self, submission_id: str) -> Optional[SubmissionResult]:
        """Get a result (consumes on read). None while still processing."""
        return self._result_store.get_result(submission_id)

    def peek_result(self, submission_id: str) -> Optional[SubmissionResult]:
        return self._result_store.peek_result(submission_id)

    def is_pending(self, submission_id: str) -> bool:
        """True while the submission thread is still running."""
        with self._threads_lock:
            thread = self._active_threads.get(submission_id)
            return thread is not None and thread.is_alive()

    def wait(self, submission_id: str, timeout: Optional[float] = None) -> Optional[SubmissionResult]:
        """
        Block until a submission finishes, then peek its result.

        Returns:
            SubmissionResult, or None if it did not finish within timeout
        """
        with self._threads_lock:
            thread = self._active_threads.get(submission_id)
        if thread is not None:
            thread.join(timeout=timeout)
        return self._result_store.peek_result(submission_id)

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Wait for active submission threads to complete.

        Args:
            timeout_per_thread: Max seconds to wait per thread
        """
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active submission threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} submission threads to complete...")

        for submission_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Submission thread {submission_id[:8]} did not complete in time")

        logger.info("Submission service shutdown complete")

    def _submission_thread_main(
        self,
        submission_id: str,
        record: ApplicantRecord,
        on_complete: Optional[Callable[[SubmissionResult], None]]
    ) -> None:
        set_thread_name(f"Submit-{submission_id[:8]}")

        try:
            result = self._pipeline.run(record)
        except Exception as e:
            logger.error(f"Submission {submission_id[:8]} crashed: {e}", exc_info=True)
            result = SubmissionResult.create_failure(
                "We could not submit your application. Please contact our staff for assistance.",
                error_category="unknown",
            )

        # Store before leaving the active set so wait() always finds the result
        self._result_store.put_result(submission_id, result)

        with self._threads_lock:
            self._active_threads.pop(submission_id, None)

        if on_complete is not None:
            try:
                on_complete(result)
            except Exception as e:
                logger.error(f"Completion callback for {submission_id[:8]} failed: {e}", exc_info=True)

        logger.info(f"Submission thread {submission_id[:8]} exiting (success={result.success})")
