"""
Input sanitization for applicant records.

Free text typed at the kiosk is normalised before it reaches the PDF, the
JSON artifact or the notification:

- HTML tags stripped with bleach (the text is then unescaped again because
  the artifacts are not HTML)
- Control and invisible format characters removed (newline and tab kept)
- Leading/trailing whitespace trimmed, runs of spaces collapsed

Some fields get field-specific rules on top: e-mail lower-cased, NRIC and
passport numbers upper-cased, phone numbers normalised to +65 form for bare
Singapore numbers, postal codes reduced to digits.

Usage:
    from modules.sanitizer import sanitize_record
    clean = sanitize_record(record)   # returns a sanitized copy
"""

import html
import re
import unicodedata
from typing import Optional

import bleach

from models.applicant import ApplicantRecord


_SPACE_RUN = re.compile(r" {2,}")
_PHONE_STRIP = re.compile(r"[^\d+]")
_SG_LOCAL_PREFIXES = ("6", "8", "9")


def _strip_invisible(text: str) -> str:
    """Remove control and format characters, keeping newline and tab."""
    return "".join(
        ch for ch in text
        if ch in "\n\t" or (ord(ch) >= 32 and unicodedata.category(ch) not in ("Cc", "Cf"))
    )


def sanitize_input(value: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize a free-text value.

    Args:
        value: Raw input (None is treated as empty)
        max_length: Optional maximum length after cleaning

    Returns:
        Cleaned text
    """
    if not value:
        return ""

    # bleach replaces control characters with "?", so drop them first;
    # entities decoded by unescape() can reintroduce them
    text = _strip_invisible(value)
    text = _strip_invisible(html.unescape(bleach.clean(text, tags=[], strip=True)))

    text = _SPACE_RUN.sub(" ", text.strip())

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def sanitize_phone(value: Optional[str]) -> str:
    """
    Normalise a phone number for storage.

    Strips everything except digits and '+'. A bare 8-digit Singapore number
    (starting 6, 8 or 9) gets a +65 prefix; "65" followed by 8 digits gets a
    leading '+'.
    """
    cleaned = _PHONE_STRIP.sub("", value or "")

    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 8 and cleaned.startswith(_SG_LOCAL_PREFIXES):
        return f"+65{cleaned}"
    if len(cleaned) == 10 and cleaned.startswith("65"):
        return f"+{cleaned}"
    return cleaned


def sanitize_postal_code(value: Optional[str]) -> str:
    """Keep digits only."""
    return "".join(ch for ch in (value or "") if ch.isdigit())


def sanitize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def sanitize_identifier(value: Optional[str]) -> str:
    """NRIC/FIN and passport numbers: trimmed, upper-case."""
    return (value or "").strip().upper()


def sanitize_record(record: ApplicantRecord) -> ApplicantRecord:
    """
    Return a sanitized copy of an applicant record.

    The caller's record is not modified.
    """
    clean = record.copy()

    clean.full_name = sanitize_input(clean.full_name)
    clean.preferred_name = sanitize_input(clean.preferred_name)
    clean.nric_fin = sanitize_identifier(clean.nric_fin)
    clean.nationality_other = sanitize_input(clean.nationality_other)
    clean.race_other = sanitize_input(clean.race_other)
    clean.contact_number = sanitize_phone(clean.contact_number)
    clean.email_address = sanitize_email(clean.email_address)
    clean.residential_address = sanitize_input(clean.residential_address)
    clean.postal_code = sanitize_postal_code(clean.postal_code)
    clean.passport_number = sanitize_identifier(clean.passport_number)
    clean.driving_license_class = sanitize_input(clean.driving_license_class)

    for contact in clean.emergency_contacts:
        contact.name = sanitize_input(contact.name)
        contact.phone_number = sanitize_phone(contact.phone_number)
        contact.email = sanitize_email(contact.email)
        contact.address = sanitize_input(contact.address)
        contact.relationship_other = sanitize_input(contact.relationship_other)

    clean.highest_qualification_other = sanitize_input(clean.highest_qualification_other)
    clean.field_of_study = sanitize_input(clean.field_of_study)
    clean.institution_name = sanitize_input(clean.institution_name)
    clean.professional_certifications = sanitize_input(clean.professional_certifications)

    for qualification in clean.additional_qualifications:
        qualification.qualification_other = sanitize_input(qualification.qualification_other)
        qualification.institution = sanitize_input(qualification.institution)

    for language in clean.selected_languages:
        language.custom_language = sanitize_input(language.custom_language)

    for job in clean.employment_history:
        job.company_name = sanitize_input(job.company_name)
        job.job_title = sanitize_input(job.job_title)
        job.key_responsibilities = sanitize_input(job.key_responsibilities)

    for reference in clean.references:
        reference.name = sanitize_input(reference.name)
        reference.relationship = sanitize_input(reference.relationship)
        reference.contact_number = sanitize_phone(reference.contact_number)
        reference.email = sanitize_email(reference.email)
        reference.years_known = sanitize_input(reference.years_known)

    clean.position_other = sanitize_input(clean.position_other)
    clean.expected_salary = sanitize_input(clean.expected_salary)
    clean.last_drawn_salary = sanitize_input(clean.last_drawn_salary)
    clean.referrer_name = sanitize_input(clean.referrer_name)
    clean.connections_details = sanitize_input(clean.connections_details)
    clean.conflict_details = sanitize_input(clean.conflict_details)
    clean.bankruptcy_details = sanitize_input(clean.bankruptcy_details)
    clean.legal_details = sanitize_input(clean.legal_details)
    clean.medical_details = sanitize_input(clean.medical_details)

    return clean


def mask_nric(nric: str) -> str:
    """Mask an NRIC/FIN for display: S1234567A -> S****567A."""
    trimmed = sanitize_identifier(nric)
    if len(trimmed) != 9:
        return trimmed
    return f"{trimmed[0]}****{trimmed[-4:]}"
