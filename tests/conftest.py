"""
Shared fixtures for the applicant kiosk tests.
"""

from datetime import date

import pytest

from fakes import (
    FakeUploader,
    ManualClock,
    ManualScheduler,
    RecordingNotifier,
    StaticNetworkMonitor,
    StubRenderer,
)
from models.applicant import (
    ApplicantRecord,
    EmergencyContact,
    EmploymentRecord,
    LanguageProficiency,
    ReferenceRecord,
)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def sample_record():
    """A realistic application with nested records."""
    return ApplicantRecord(
        full_name="Jane  Tan Mei Ling",
        preferred_name="Jane",
        nric_fin="s1234567a",
        date_of_birth=date(1994, 3, 12),
        gender="Female",
        nationality="Singaporean",
        race="Chinese",
        contact_number="9123 4567",
        email_address="Jane.Tan@Example.com",
        residential_address="Blk 123 Ang Mo Kio Ave 3, #05-67",
        postal_code="560123",
        emergency_contacts=[
            EmergencyContact(name="Tan Ah Kow", phone_number="98765432", relationship="Parent"),
        ],
        highest_qualification="Bachelor's Degree",
        field_of_study="Chemistry",
        institution_name="National University of Singapore",
        year_of_graduation=2016,
        selected_languages=[
            LanguageProficiency(language="English", proficiency="Fluent"),
            LanguageProficiency(language="Mandarin", proficiency="Fluent"),
        ],
        total_experience="5-10 years",
        employment_history=[
            EmploymentRecord(
                company_name="Spice Labs Pte Ltd",
                job_title="QC Chemist",
                industry="Manufacturing",
                from_date=date(2018, 1, 1),
                is_current_position=True,
                key_responsibilities="Batch testing",
            ),
        ],
        references=[
            ReferenceRecord(name="Dr Lim", relationship="Supervisor", contact_number="91112222", years_known="4"),
        ],
        positions_applied_for=["QC Chemist", "Lab Technician"],
        earliest_start_date=date(2026, 11, 1),
        expected_salary="4500",
        how_did_you_hear="Walk-in",
        declaration_accuracy=True,
        pdpa_consent=True,
    )


@pytest.fixture
def app(tmp_path, clock, scheduler):
    """Flask app wired to fakes and temp directories."""
    from app import create_app

    app = create_app("config.TestingConfig", overrides={
        "SECRET_KEY": "test-secret",
        "BACKUP_DIR": str(tmp_path / "pending"),
        "COUNTER_FILE": str(tmp_path / "counter.json"),
        "EXPORT_DIR": str(tmp_path / "exports"),
        "NETWORK_MONITOR": StaticNetworkMonitor(True),
        "UPLOADER": FakeUploader(),
        "NOTIFIER": RecordingNotifier(),
        "RENDERER": StubRenderer(),
        "IDLE_CLOCK": clock,
        "IDLE_SCHEDULER": scheduler,
        "IDLE_WARNING_SECONDS": 60,
        "IDLE_RESET_SECONDS": 90,
        "ADMIN_PIN": "4321",
    })
    yield app
    app.config["SESSION_MONITOR"].session.stop()
    app.config["SUBMISSION_SERVICE"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
