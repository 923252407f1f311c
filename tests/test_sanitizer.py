"""
Unit tests for input sanitization.
"""

import pytest

from modules.sanitizer import (
    mask_nric,
    sanitize_email,
    sanitize_identifier,
    sanitize_input,
    sanitize_phone,
    sanitize_postal_code,
    sanitize_record,
)


class TestSanitizeInput:

    def test_strips_tags(self):
        assert sanitize_input("<b>Jane</b> Tan") == "Jane Tan"

    def test_ampersand_not_escaped(self):
        assert sanitize_input("Flavors & Fragrances") == "Flavors & Fragrances"

    def test_removes_control_and_format_characters(self):
        assert sanitize_input("Ja\x07ne\u200b Tan\x1b") == "Jane Tan"

    def test_keeps_newlines_and_tabs(self):
        assert sanitize_input("line one\nline two\tend") == "line one\nline two\tend"

    def test_collapses_spaces_and_trims(self):
        assert sanitize_input("   Jane    Tan   ") == "Jane Tan"

    def test_max_length(self):
        assert sanitize_input("abcdefgh", max_length=3) == "abc"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert sanitize_input(value) == ""


class TestFieldRules:

    @pytest.mark.parametrize("raw, expected", [
        ("9123 4567", "+6591234567"),
        ("6123-4567", "+6561234567"),
        ("6591234567", "+6591234567"),
        ("+60 12-345 6789", "+60123456789"),
        ("12345", "12345"),
        ("", ""),
    ])
    def test_phone(self, raw, expected):
        assert sanitize_phone(raw) == expected

    def test_postal_code(self):
        assert sanitize_postal_code(" 560-123 ") == "560123"

    def test_email(self):
        assert sanitize_email("  Jane.Tan@Example.COM ") == "jane.tan@example.com"

    def test_identifier(self):
        assert sanitize_identifier(" s1234567a ") == "S1234567A"

    def test_mask_nric(self):
        assert mask_nric("s1234567a") == "S****567A"

    def test_mask_nric_unexpected_length(self):
        assert mask_nric("AB12") == "AB12"


class TestSanitizeRecord:

    def test_returns_sanitized_copy(self, sample_record):
        sample_record.residential_address = "<script>x</script>Blk 1"
        clean = sanitize_record(sample_record)

        assert clean is not sample_record
        assert clean.full_name == "Jane Tan Mei Ling"
        assert clean.nric_fin == "S1234567A"
        assert clean.email_address == "jane.tan@example.com"
        assert clean.contact_number == "+6591234567"
        assert "<script>" not in clean.residential_address

        # Caller's record untouched
        assert sample_record.full_name == "Jane  Tan Mei Ling"
        assert sample_record.nric_fin == "s1234567a"

    def test_nested_records_sanitized(self, sample_record):
        sample_record.employment_history[0].company_name = "  Spice   Labs "
        sample_record.references[0].email = "LIM@Example.com"
        clean = sanitize_record(sample_record)

        assert clean.employment_history[0].company_name == "Spice Labs"
        assert clean.references[0].email == "lim@example.com"
        assert clean.emergency_contacts[0].phone_number == "+6598765432"
        assert sample_record.employment_history[0].company_name == "  Spice   Labs "
