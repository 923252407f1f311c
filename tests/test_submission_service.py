"""
Unit tests for SubmissionService and SubmissionResultStore.
"""

import threading
from unittest.mock import MagicMock

import pytest

from models.applicant import ApplicantRecord
from models.submission_result import SubmissionResult
from services.submission_service import SubmissionResultStore, SubmissionService


# Fixtures

@pytest.fixture
def pipeline():
    mock_pipeline = MagicMock()
    mock_pipeline.run.return_value = SubmissionResult.create_success("AFF-20261019-0001")
    return mock_pipeline


@pytest.fixture
def service(pipeline):
    service = SubmissionService(pipeline)
    yield service
    service.shutdown(timeout_per_thread=1.0)


@pytest.fixture
def record():
    return ApplicantRecord(full_name="Jane Tan")


class TestSubmissionService:

    def test_submit_runs_pipeline(self, service, pipeline, record):
        submission_id = service.submit(record)
        result = service.wait(submission_id, timeout=5.0)

        assert result.success is True
        assert result.reference_number == "AFF-20261019-0001"
        pipeline.run.assert_called_once_with(record)

    def test_custom_submission_id(self, service, record):
        assert service.submit(record, submission_id="abc-123") == "abc-123"
        assert service.wait("abc-123", timeout=5.0) is not None

    def test_get_result_consumes(self, service, record):
        submission_id = service.submit(record)
        service.wait(submission_id, timeout=5.0)

        assert service.get_result(submission_id) is not None
        assert service.get_result(submission_id) is None

    def test_peek_does_not_consume(self, service, record):
        submission_id = service.submit(record)
        service.wait(submission_id, timeout=5.0)

        assert service.peek_result(submission_id) is not None
        assert service.peek_result(submission_id) is not None

    def test_pending_while_running(self, pipeline, record):
        release = threading.Event()

        def slow_run(rec):
            release.wait(5.0)
            return SubmissionResult.create_success("AFF-20261019-0001")

        pipeline.run.side_effect = slow_run
        service = SubmissionService(pipeline)
        submission_id = service.submit(record)

        assert service.is_pending(submission_id) is True
        assert service.peek_result(submission_id) is None

        release.set()
        service.wait(submission_id, timeout=5.0)
        assert service.is_pending(submission_id) is False

    def test_on_complete_callback(self, service, record):
        done = threading.Event()
        received = []

        def on_complete(result):
            received.append(result)
            done.set()

        service.submit(record, on_complete=on_complete)
        assert done.wait(5.0)
        assert received[0].success is True

    def test_callback_error_is_contained(self, service, record):
        def on_complete(result):
            raise RuntimeError("UI gone")

        submission_id = service.submit(record, on_complete=on_complete)
        assert service.wait(submission_id, timeout=5.0).success is True

    def test_pipeline_crash_becomes_failure(self, service, pipeline, record):
        pipeline.run.side_effect = RuntimeError("unexpected")
        submission_id = service.submit(record)
        result = service.wait(submission_id, timeout=5.0)

        assert result.success is False
        assert result.error_category == "unknown"
        assert "contact our staff" in result.error_message

    def test_unknown_id(self, service):
        assert service.is_pending("nope") is False
        assert service.wait("nope", timeout=0.1) is None

    def test_shutdown_without_threads(self, pipeline):
        SubmissionService(pipeline).shutdown()


class TestSubmissionResultStore:

    def test_put_get(self):
        store = SubmissionResultStore()
        result = SubmissionResult.create_failure("x")
        store.put_result("id-1", result)

        assert store.peek_result("id-1") is result
        assert store.get_result("id-1") is result
        assert store.get_result("id-1") is None

    def test_clear(self):
        store = SubmissionResultStore()
        store.put_result("a", SubmissionResult.create_failure("x"))
        store.put_result("b", SubmissionResult.create_failure("y"))
        assert store.clear() == 2
        assert store.peek_result("a") is None
