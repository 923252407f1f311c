"""Helper modules for the applicant kiosk."""

__all__ = [
    "pdf_analyzer",
    "pdf_renderer",
    "reference_number",
    "sanitizer",
]
