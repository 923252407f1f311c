"""
Unit tests for the SubmissionPipeline.

Every collaborator is a fake: sleeping is recorded instead of performed
and jitter is zero, so the backoff schedule can be asserted exactly.
"""

import json
import time
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    ArtifactRenderError,
    AuthError,
    BackupError,
    NetworkError,
    NotificationError,
    ServerError,
)
from fakes import FakeUploader, RecordingNotifier, StaticNetworkMonitor, StubRenderer
from modules.reference_number import CounterState, InMemoryCounterStore, ReferenceNumberGenerator
from services.backup_store import BackupStore
from services.submission_pipeline import (
    CONNECTION_LOST_MESSAGE,
    FAILURE_MESSAGES,
    NO_NETWORK_MESSAGE,
    NOT_SAVED_MESSAGE,
    RENDER_FAILED_MESSAGE,
    SubmissionPipeline,
    SubmissionSettings,
)


SUBMITTED_AT = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
FIRST_REF = "AFF-20261019-0001"
BASE_NAME = f"AFF_Application_JaneTanMeiLing_2026-10-19_{FIRST_REF}"


# Fixtures

@pytest.fixture
def backup_store(tmp_path):
    return BackupStore(tmp_path / "pending")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_pipeline(backup_store, sleeps):
    """Factory building a pipeline around the given fakes."""

    def _make(
        uploader=None,
        network=None,
        notifier=None,
        renderer=None,
        store=None,
        attempts=3,
        upload_timeout=5.0
    ):
        generator = ReferenceNumberGenerator(
            InMemoryCounterStore(), prefix="AFF", today=lambda: date(2026, 10, 19)
        )
        return SubmissionPipeline(
            reference_generator=generator,
            backup_store=store or backup_store,
            network_monitor=network or StaticNetworkMonitor(True),
            uploader=uploader or FakeUploader(),
            notifier=notifier or RecordingNotifier(),
            renderer=renderer or StubRenderer(),
            settings=SubmissionSettings(
                max_retry_attempts=attempts,
                upload_timeout_seconds=upload_timeout,
                notification_timeout_seconds=1.0,
            ),
            sleep=sleeps.append,
            jitter=lambda: 0.0,
            now=lambda: SUBMITTED_AT,
        )

    return _make


class TestSuccessfulSubmission:

    def test_uploads_pdf_then_json(self, make_pipeline, sample_record):
        uploader = FakeUploader()
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.success is True
        assert result.reference_number == FIRST_REF
        assert result.error_message is None
        assert uploader.calls == [
            (f"{BASE_NAME}.pdf", "application/pdf", uploader.calls[0][2]),
            (f"{BASE_NAME}.json", "application/json", uploader.calls[1][2]),
        ]

    def test_remote_file_id_from_pdf_upload(self, make_pipeline, sample_record):
        result = make_pipeline().run(sample_record)
        assert result.remote_file_id == "remote-1"

    def test_backup_removed_after_success(self, make_pipeline, sample_record, backup_store):
        make_pipeline().run(sample_record)
        assert backup_store.list_pending() == []

    def test_caller_record_is_stamped(self, make_pipeline, sample_record):
        make_pipeline().run(sample_record)
        assert sample_record.reference_number == FIRST_REF
        assert sample_record.submission_date == SUBMITTED_AT

    def test_caller_record_not_sanitized(self, make_pipeline, sample_record):
        make_pipeline().run(sample_record)
        assert sample_record.email_address == "Jane.Tan@Example.com"
        assert sample_record.full_name == "Jane  Tan Mei Ling"

    def test_notification_sent(self, make_pipeline, sample_record):
        notifier = RecordingNotifier()
        make_pipeline(notifier=notifier).run(sample_record)
        assert notifier.called.wait(2.0)
        assert notifier.sent == [FIRST_REF]

    def test_notification_failure_is_ignored(self, make_pipeline, sample_record):
        notifier = RecordingNotifier(error=NotificationError("webhook down"))
        result = make_pipeline(notifier=notifier).run(sample_record)
        assert result.success is True

    def test_hung_notification_does_not_delay_result(self, make_pipeline, sample_record):
        notifier = RecordingNotifier(hang=True)
        try:
            started = time.monotonic()
            result = make_pipeline(notifier=notifier).run(sample_record)
            elapsed = time.monotonic() - started

            assert result.success is True
            assert result.reference_number == FIRST_REF
            # Settings bound the notification at 1s; the result must not wait for it
            assert elapsed < 1.0
        finally:
            notifier.release.set()

    def test_hung_notification_thread_is_bounded(self, make_pipeline, sample_record):
        notifier = RecordingNotifier(hang=True)
        pipeline = make_pipeline(notifier=notifier)
        sample_record.reference_number = FIRST_REF
        try:
            thread = pipeline.start_notification(sample_record, MagicMock())
            thread.join(5.0)
            assert not thread.is_alive()
            assert notifier.called.is_set()
        finally:
            notifier.release.set()

    def test_sequential_runs_get_new_references(self, make_pipeline, sample_record):
        pipeline = make_pipeline()
        first = pipeline.run(sample_record)
        second = pipeline.run(sample_record.copy())
        assert (first.reference_number, second.reference_number) == (FIRST_REF, "AFF-20261019-0002")


class TestNoNetwork:

    def test_no_upload_attempted(self, make_pipeline, sample_record, backup_store):
        uploader = FakeUploader()
        notifier = RecordingNotifier()
        result = make_pipeline(
            uploader=uploader, network=StaticNetworkMonitor(False), notifier=notifier
        ).run(sample_record)

        assert result.success is False
        assert result.error_message == NO_NETWORK_MESSAGE
        assert result.error_category == "network"
        assert result.backup_saved is True
        assert uploader.calls == []
        assert notifier.sent == []
        assert backup_store.list_pending() == [FIRST_REF]

    def test_backed_up_artifacts_are_sanitized(self, make_pipeline, sample_record, backup_store):
        make_pipeline(network=StaticNetworkMonitor(False)).run(sample_record)

        _, json_bytes = backup_store.load(FIRST_REF)
        data = json.loads(json_bytes)
        assert data["emailAddress"] == "jane.tan@example.com"
        assert data["nricFIN"] == "S1234567A"
        assert data["fullName"] == "Jane Tan Mei Ling"
        assert data["referenceNumber"] == FIRST_REF


class TestRetries:

    def test_retry_then_success(self, make_pipeline, sample_record, sleeps):
        uploader = FakeUploader(failures=[ServerError("503", status_code=503)])
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.success is True
        assert sleeps == [1.0]
        assert uploader.uploaded_names == [f"{BASE_NAME}.pdf", f"{BASE_NAME}.pdf", f"{BASE_NAME}.json"]

    def test_json_failure_retries_both_files(self, make_pipeline, sample_record):
        uploader = FakeUploader(failures=[None, NetworkError("reset")])
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.success is True
        assert [name.rsplit(".", 1)[1] for name in uploader.uploaded_names] == ["pdf", "json", "pdf", "json"]

    def test_exponential_backoff_until_exhausted(self, make_pipeline, sample_record, sleeps, backup_store):
        uploader = FakeUploader(failures=[ServerError("down")] * 3)
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.success is False
        assert result.error_category == "server"
        assert result.error_message == FAILURE_MESSAGES["server"]
        assert result.backup_saved is True
        assert sleeps == [1.0, 2.0]
        assert len(uploader.calls) == 3
        assert backup_store.list_pending() == [FIRST_REF]

    def test_attempts_are_bounded(self, make_pipeline, sample_record, sleeps):
        uploader = FakeUploader(failures=[ServerError("down")] * 10)
        make_pipeline(uploader=uploader, attempts=5).run(sample_record)
        assert len(uploader.calls) == 5
        assert sleeps == [1.0, 2.0, 4.0, 8.0]

    def test_auth_error_is_not_retried(self, make_pipeline, sample_record, sleeps):
        uploader = FakeUploader(failures=[AuthError("bad token", status_code=401)])
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.success is False
        assert result.error_category == "auth"
        assert result.error_message == FAILURE_MESSAGES["auth"]
        assert len(uploader.calls) == 1
        assert sleeps == []

    def test_unclassified_exception_is_retried_as_unknown(self, make_pipeline, sample_record):
        uploader = FakeUploader(failures=[RuntimeError("surprise")] * 3)
        result = make_pipeline(uploader=uploader).run(sample_record)

        assert result.error_category == "unknown"
        assert len(uploader.calls) == 3

    def test_connection_lost_between_attempts(self, make_pipeline, sample_record, sleeps):
        uploader = FakeUploader(failures=[NetworkError("dropped")])
        result = make_pipeline(uploader=uploader, network=StaticNetworkMonitor(True, False)).run(sample_record)

        assert result.success is False
        assert result.error_message == CONNECTION_LOST_MESSAGE
        assert result.backup_saved is True
        assert len(uploader.calls) == 1
        assert sleeps == [1.0]

    def test_hung_upload_times_out(self, make_pipeline, sample_record):
        uploader = FakeUploader(block_seconds=2.0)
        result = make_pipeline(uploader=uploader, attempts=1, upload_timeout=0.05).run(sample_record)

        assert result.success is False
        assert result.error_category == "timeout"
        assert result.error_message == FAILURE_MESSAGES["timeout"]


class TestLocalFailures:

    def test_render_failure_aborts(self, make_pipeline, sample_record, backup_store):
        uploader = FakeUploader()
        renderer = StubRenderer(error=ArtifactRenderError("PDF", "font missing"))
        result = make_pipeline(uploader=uploader, renderer=renderer).run(sample_record)

        assert result.success is False
        assert result.error_category == "render"
        assert result.error_message == RENDER_FAILED_MESSAGE
        assert uploader.calls == []
        assert backup_store.list_pending() == []

    def test_exhausted_references_abort(self, make_pipeline, sample_record, backup_store):
        uploader = FakeUploader()
        pipeline = make_pipeline(uploader=uploader)
        pipeline.reference_generator = ReferenceNumberGenerator(
            InMemoryCounterStore(CounterState(last_date="20261019", last_sequence=9999)),
            today=lambda: date(2026, 10, 19),
        )

        result = pipeline.run(sample_record)

        assert result.success is False
        assert result.error_category == "reference"
        assert result.error_message == NOT_SAVED_MESSAGE
        assert uploader.calls == []
        assert backup_store.list_pending() == []

    def test_backup_failure_does_not_stop_upload(self, make_pipeline, sample_record):
        store = MagicMock()
        store.save.side_effect = BackupError("save", FIRST_REF, "disk full")
        result = make_pipeline(store=store).run(sample_record)

        assert result.success is True
        store.remove.assert_called_once_with(FIRST_REF)

    def test_backup_failure_escalates_message(self, make_pipeline, sample_record):
        store = MagicMock()
        store.save.side_effect = BackupError("save", FIRST_REF, "disk full")
        result = make_pipeline(store=store, network=StaticNetworkMonitor(False)).run(sample_record)

        assert result.success is False
        assert result.backup_saved is False
        assert result.error_message == NOT_SAVED_MESSAGE


class TestSettings:

    def test_zero_attempts_rejected(self, make_pipeline):
        with pytest.raises(ValueError):
            make_pipeline(attempts=0)

    def test_from_config(self):
        settings = SubmissionSettings.from_config({
            "MAX_RETRY_ATTEMPTS": "5",
            "UPLOAD_TIMEOUT_SECONDS": 12,
            "NOTIFICATION_TIMEOUT_SECONDS": "7.5",
            "REFERENCE_PREFIX": "KIOSK",
        })
        assert settings == SubmissionSettings(
            max_retry_attempts=5,
            upload_timeout_seconds=12.0,
            notification_timeout_seconds=7.5,
            file_prefix="KIOSK",
        )

    def test_from_config_defaults(self):
        assert SubmissionSettings.from_config({}) == SubmissionSettings()
