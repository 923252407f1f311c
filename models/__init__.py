"""
Data models for the applicant kiosk.

This module contains dataclasses for:
- ApplicantRecord: One job application (plus its nested records)
- SubmissionResult: Outcome of one submission pipeline run

Thread Safety:
    - The pipeline sanitizes and renders from a copy (ApplicantRecord.copy())
      so the worker thread never shares nested lists with the caller
    - SubmissionResult is written once by the worker thread and read by Flask
"""

from .applicant import (
    ApplicantRecord,
    EmergencyContact,
    EmploymentRecord,
    LanguageProficiency,
    QualificationRecord,
    ReferenceRecord,
)
from .submission_result import SubmissionResult, SubmissionStatus

__all__ = [
    # Applicant models
    "ApplicantRecord",
    "EmergencyContact",
    "EmploymentRecord",
    "LanguageProficiency",
    "QualificationRecord",
    "ReferenceRecord",
    # Submission models
    "SubmissionResult",
    "SubmissionStatus",
]
