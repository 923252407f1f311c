"""
Applicant record data models.

These models carry one job application from the form to the generated
artifacts:

    form JSON -> ApplicantRecord -> sanitize -> stamp reference -> PDF + JSON

JSON Format:
    The JSON artifact uses camelCase keys, ISO-8601 dates, sorted keys and
    two-space indentation. ``ApplicantRecord.from_json_bytes(record.to_json_bytes())``
    returns an equal record, except that the signature image is never
    written to JSON (it only appears in the PDF).

Choice fields (gender, nationality, positions, ...) are stored as the
display strings the form offers. Validating them belongs to the form.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    # Tolerate full timestamps where a date is expected
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# =============================================================================
# NESTED RECORDS
# =============================================================================

@dataclass
class EmergencyContact:
    """Emergency contact person."""

    name: str = ""
    country_code: str = "+65"
    phone_number: str = ""
    email: str = ""
    address: str = ""
    relationship: str = "Spouse"
    relationship_other: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "countryCode": self.country_code,
            "phoneNumber": self.phone_number,
            "email": self.email,
            "address": self.address,
            "relationship": self.relationship,
            "relationshipOther": self.relationship_other,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmergencyContact":
        return cls(
            name=data.get("name", ""),
            country_code=data.get("countryCode", "+65"),
            phone_number=data.get("phoneNumber", ""),
            email=data.get("email", ""),
            address=data.get("address", ""),
            relationship=data.get("relationship", "Spouse"),
            relationship_other=data.get("relationshipOther", ""),
        )


@dataclass
class QualificationRecord:
    """An additional qualification beyond the highest one."""

    qualification: str = ""
    qualification_other: str = ""
    institution: str = ""
    year: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "qualification": self.qualification,
            "qualificationOther": self.qualification_other,
            "institution": self.institution,
            "year": self.year,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QualificationRecord":
        return cls(
            qualification=data.get("qualification", ""),
            qualification_other=data.get("qualificationOther", ""),
            institution=data.get("institution", ""),
            year=data.get("year"),
        )


@dataclass
class LanguageProficiency:
    """A spoken/written language and how well the applicant knows it."""

    language: str = "English"
    proficiency: str = "Conversational"
    custom_language: str = ""

    @property
    def display_name(self) -> str:
        """Custom language name when 'Others' was picked."""
        if self.language == "Others" and self.custom_language:
            return self.custom_language
        return self.language

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "proficiency": self.proficiency,
            "customLanguage": self.custom_language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanguageProficiency":
        return cls(
            language=data.get("language", "English"),
            proficiency=data.get("proficiency", "Conversational"),
            custom_language=data.get("customLanguage", ""),
        )


@dataclass
class EmploymentRecord:
    """One previous (or current) job."""

    company_name: str = ""
    job_title: str = ""
    industry: str = ""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    is_current_position: bool = False
    reason_for_leaving: str = ""
    key_responsibilities: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "companyName": self.company_name,
            "jobTitle": self.job_title,
            "industry": self.industry,
            "fromDate": _iso(self.from_date),
            "toDate": _iso(self.to_date),
            "isCurrentPosition": self.is_current_position,
            "reasonForLeaving": self.reason_for_leaving,
            "keyResponsibilities": self.key_responsibilities,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmploymentRecord":
        return cls(
            company_name=data.get("companyName", ""),
            job_title=data.get("jobTitle", ""),
            industry=data.get("industry", ""),
            from_date=_parse_date(data.get("fromDate")),
            to_date=_parse_date(data.get("toDate")),
            is_current_position=data.get("isCurrentPosition", False),
            reason_for_leaving=data.get("reasonForLeaving", ""),
            key_responsibilities=data.get("keyResponsibilities", ""),
        )


@dataclass
class ReferenceRecord:
    """A professional reference."""

    name: str = ""
    relationship: str = ""
    contact_country_code: str = "+65"
    contact_number: str = ""
    email: str = ""
    years_known: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "relationship": self.relationship,
            "contactCountryCode": self.contact_country_code,
            "contactNumber": self.contact_number,
            "email": self.email,
            "yearsKnown": self.years_known,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReferenceRecord":
        return cls(
            name=data.get("name", ""),
            relationship=data.get("relationship", ""),
            contact_country_code=data.get("contactCountryCode", "+65"),
            contact_number=data.get("contactNumber", ""),
            email=data.get("email", ""),
            years_known=data.get("yearsKnown", ""),
        )


# =============================================================================
# APPLICANT RECORD
# =============================================================================

@dataclass
class ApplicantRecord:
    """
    Canonical form data for one application.

    Mutable: the submission pipeline stamps ``reference_number`` and
    ``submission_date`` onto the caller's instance and renders artifacts
    from a sanitized copy (see ``copy()``).
    """

    # Personal details
    full_name: str = ""
    preferred_name: str = ""
    nric_fin: str = ""
    date_of_birth: Optional[date] = None
    gender: str = ""
    nationality: str = ""
    nationality_other: str = ""
    has_worked_in_singapore: bool = False
    race: str = ""
    race_other: str = ""
    contact_country_code: str = "+65"
    contact_number: str = ""
    email_address: str = ""
    residential_address: str = ""
    postal_code: str = ""
    passport_number: str = ""
    driving_license_class: str = ""
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)

    # Education
    highest_qualification: str = ""
    highest_qualification_other: str = ""
    field_of_study: str = ""
    institution_name: str = ""
    year_of_graduation: Optional[int] = None
    additional_qualifications: List[QualificationRecord] = field(default_factory=list)
    professional_certifications: str = ""
    selected_languages: List[LanguageProficiency] = field(default_factory=list)

    # Work experience
    total_experience: str = ""
    employment_history: List[EmploymentRecord] = field(default_factory=list)
    is_currently_employed: bool = False
    notice_period: str = ""

    references: List[ReferenceRecord] = field(default_factory=list)

    # Position and availability
    positions_applied_for: List[str] = field(default_factory=list)
    position_other: str = ""
    preferred_employment_type: str = ""
    earliest_start_date: Optional[date] = None
    expected_salary: str = ""
    last_drawn_salary: str = ""
    willing_to_work_shifts: str = ""
    willing_to_travel: str = ""
    has_own_transport: bool = False
    how_did_you_hear: str = ""
    referrer_name: str = ""
    open_to_other_positions: bool = True

    # General information
    previously_applied: bool = False
    has_connections_at_aff: bool = False
    connections_details: str = ""
    has_conflict_of_interest: bool = False
    conflict_details: str = ""
    has_bankruptcy: bool = False
    bankruptcy_details: str = ""
    has_legal_proceedings: bool = False
    legal_details: str = ""

    # Declaration and consent
    declaration_accuracy: bool = False
    pdpa_consent: bool = False
    has_medical_condition: str = "No"
    medical_details: str = ""

    # Stamped at submission
    submission_date: Optional[datetime] = None
    reference_number: str = ""

    signature_png: Optional[bytes] = None
    """Signature image. Rendered into the PDF, never written to JSON."""

    def copy(self) -> "ApplicantRecord":
        """Deep copy (nested records are copied too)."""
        return replace(
            self,
            emergency_contacts=[replace(c) for c in self.emergency_contacts],
            additional_qualifications=[replace(q) for q in self.additional_qualifications],
            selected_languages=[replace(lang) for lang in self.selected_languages],
            employment_history=[replace(e) for e in self.employment_history],
            references=[replace(r) for r in self.references],
            positions_applied_for=list(self.positions_applied_for),
        )

    def artifact_base_name(self, prefix: str = "AFF") -> str:
        """
        Base file name for the uploaded artifacts.

        Format: {prefix}_Application_{NameWithoutSpacesOrSlashes}_{YYYY-MM-DD}_{ref}
        """
        name = re.sub(r"[\s/]", "", self.full_name)
        stamped = self.submission_date or datetime.now()
        return f"{prefix}_Application_{name}_{stamped.strftime('%Y-%m-%d')}_{self.reference_number}"

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON artifact dictionary (camelCase, no signature)."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "signature_png":
                continue
            value = getattr(self, f.name)
            if f.name in _NESTED_FIELDS:
                value = [item.to_dict() for item in value]
            elif f.name in _DATE_FIELDS or f.name == "submission_date":
                value = _iso(value)
            elif f.name == "positions_applied_for":
                value = list(value)
            data[_JSON_KEYS[f.name]] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicantRecord":
        """
        Create from a JSON artifact dictionary.

        Missing keys fall back to the field defaults; unknown keys are ignored.
        """
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            key = _JSON_KEYS.get(f.name)
            if key is None or key not in data:
                continue
            value = data[key]
            if f.name in _NESTED_FIELDS:
                item_cls = _NESTED_FIELDS[f.name]
                value = [item_cls.from_dict(item) for item in (value or [])]
            elif f.name in _DATE_FIELDS:
                value = _parse_date(value)
            elif f.name == "submission_date":
                value = _parse_datetime(value)
            elif f.name == "positions_applied_for":
                value = list(value or [])
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_json_bytes(self) -> bytes:
        """Encode the JSON artifact (UTF-8, sorted keys, indented)."""
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, data: bytes) -> "ApplicantRecord":
        return cls.from_dict(json.loads(data.decode("utf-8")))


_NESTED_FIELDS = {
    "emergency_contacts": EmergencyContact,
    "additional_qualifications": QualificationRecord,
    "selected_languages": LanguageProficiency,
    "employment_history": EmploymentRecord,
    "references": ReferenceRecord,
}

_DATE_FIELDS = {"date_of_birth", "earliest_start_date"}

# Keys whose acronyms keep their capitals in the JSON artifact
_KEY_OVERRIDES = {
    "nric_fin": "nricFIN",
    "has_connections_at_aff": "hasConnectionsAtAFF",
}

_JSON_KEYS = {
    f.name: _KEY_OVERRIDES.get(f.name, _camel_case(f.name))
    for f in fields(ApplicantRecord)
    if f.name != "signature_png"
}
