"""
Application PDF rendering with reportlab.

Produces the human-readable artifact for one applicant: a header with the
reference number, one section per form step, the signature image and a
"Page X of Y" footer on every page.

Usage:
    renderer = ApplicationPDFRenderer(company_name="Advanced Flavors & Fragrances Pte. Ltd.")
    pdf_bytes = renderer.render(record)
"""

from io import BytesIO
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.exceptions import ArtifactRenderError
from logging_config import get_logger
from models.applicant import ApplicantRecord


logger = get_logger(__name__)

BRAND_COLOR = colors.HexColor("#E8731A")
LABEL_COLOR = colors.HexColor("#6B6B6B")

Row = Tuple[str, str]


class NumberedCanvas(canvas.Canvas):
    """
    Canvas that defers page output so the footer can show the total page count.

    Each showPage() stores the page state; save() replays them with
    "Page X of Y" drawn at the bottom.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_page_number(total)
            super().showPage()
        super().save()

    def _draw_page_number(self, total: int) -> None:
        self.setFont("Helvetica", 8)
        self.setFillColor(LABEL_COLOR)
        self.drawRightString(A4[0] - 18 * mm, 10 * mm, f"Page {self._pageNumber} of {total}")


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def _format_date(value, fmt: str = "%d %b %Y") -> str:
    return value.strftime(fmt) if value else "Not specified"


def _or_default(value: str, default: str = "Not specified") -> str:
    return value if value else default


class ApplicationPDFRenderer:
    """
    Renders an ApplicantRecord into PDF bytes.

    Attributes:
        company_name: Shown under the form title
        title: Form title
    """

    def __init__(
        self,
        company_name: str = "Advanced Flavors & Fragrances Pte. Ltd.",
        title: str = "Walk-In Applicant Registration Form"
    ):
        self.company_name = company_name
        self.title = title

        styles = getSampleStyleSheet()
        self._styles = {
            "title": ParagraphStyle("KioskTitle", parent=styles["Title"], alignment=0, fontSize=16),
            "subtitle": ParagraphStyle("KioskSubtitle", parent=styles["Normal"], textColor=LABEL_COLOR),
            "section": ParagraphStyle(
                "KioskSection", parent=styles["Heading2"], textColor=colors.white,
                backColor=BRAND_COLOR, borderPadding=(3, 4, 3, 4), fontSize=11, spaceBefore=10,
            ),
            "subsection": ParagraphStyle("KioskSubsection", parent=styles["Heading4"], textColor=BRAND_COLOR),
            "label": ParagraphStyle("KioskLabel", parent=styles["Normal"], textColor=LABEL_COLOR, fontSize=8),
            "value": ParagraphStyle("KioskValue", parent=styles["Normal"], fontSize=9),
        }

    def render(self, record: ApplicantRecord) -> bytes:
        """
        Render the application.

        Raises:
            ArtifactRenderError: reportlab failed to build the document
        """
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=16 * mm,
            bottomMargin=18 * mm,
            title=f"{self.title} - {record.reference_number}",
            author=self.company_name,
        )

        try:
            doc.build(self._build_story(record), canvasmaker=NumberedCanvas)
        except Exception as e:
            logger.error(f"PDF rendering failed for {record.reference_number}: {e}", exc_info=True)
            raise ArtifactRenderError("PDF", str(e)) from e

        return buffer.getvalue()

    # =========================================================================
    # STORY BUILDING
    # =========================================================================

    def _build_story(self, record: ApplicantRecord) -> list:
        story: list = []
        story.append(Paragraph(escape(self.title), self._styles["title"]))
        story.append(Paragraph(escape(self.company_name), self._styles["subtitle"]))
        story.append(self._grid([
            ("Reference", record.reference_number),
            ("Submitted", _format_date(record.submission_date, "%d %b %Y %H:%M")),
        ]))

        story += self._section("Personal Details", self._personal_rows(record))

        for index, contact in enumerate(record.emergency_contacts, start=1):
            relationship = contact.relationship_other if contact.relationship == "Others" else contact.relationship
            story.append(Paragraph(f"Emergency Contact {index}", self._styles["subsection"]))
            story.append(self._grid([
                ("Name", f"{contact.name} ({relationship})"),
                ("Phone", contact.phone_number),
                ("Email", _or_default(contact.email)),
                ("Address", _or_default(contact.address)),
            ]))

        story += self._section("Education & Qualifications", [
            ("Highest Qualification", record.highest_qualification_other or record.highest_qualification),
            ("Field of Study", record.field_of_study),
            ("Institution", record.institution_name),
            ("Year of Graduation", str(record.year_of_graduation or "")),
            ("Certifications", _or_default(record.professional_certifications, "None")),
            ("Languages", ", ".join(
                f"{lang.display_name} ({lang.proficiency})" for lang in record.selected_languages
            )),
        ])
        if record.additional_qualifications:
            story.append(Paragraph("Additional Qualifications", self._styles["subsection"]))
            story.append(self._grid([
                (q.qualification_other or q.qualification, f"{q.institution} ({q.year or '-'})")
                for q in record.additional_qualifications
            ]))

        story += self._section("Work Experience", [
            ("Total Experience", record.total_experience),
            ("Currently Employed", f"Yes (Notice: {record.notice_period})" if record.is_currently_employed else "No"),
        ])
        for index, job in enumerate(record.employment_history, start=1):
            end = "Present" if job.is_current_position else _format_date(job.to_date, "%b %Y")
            story.append(Paragraph(f"Employer {index}", self._styles["subsection"]))
            rows = [
                ("Company", f"{job.company_name} | {job.job_title}"),
                ("Industry", job.industry),
                ("Period", f"{_format_date(job.from_date, '%b %Y')} - {end}"),
                ("Reason for Leaving", job.reason_for_leaving),
            ]
            if job.key_responsibilities:
                rows.append(("Key Responsibilities", job.key_responsibilities))
            story.append(self._grid(rows))

        if record.references:
            story += self._section("References", [
                (ref.name, f"{ref.relationship} | {ref.contact_country_code} {ref.contact_number} | "
                           f"{ref.email} | known {ref.years_known}")
                for ref in record.references
            ])

        story += self._section("Position & Availability", self._position_rows(record))
        story += self._section("General Information", self._general_rows(record))
        story += self._section("Declaration & Signature", [
            ("Declaration of Accuracy", _yes_no(record.declaration_accuracy)),
            ("PDPA Consent", _yes_no(record.pdpa_consent)),
            ("Medical Condition", record.medical_details or "Yes (details not provided)")
            if record.has_medical_condition == "Yes" else ("Medical Condition", "No"),
        ])

        signature = self._signature_flowable(record.signature_png)
        if signature is not None:
            story.append(Spacer(1, 4 * mm))
            story.append(signature)

        story.append(self._grid([
            ("Date Signed", _format_date(record.submission_date)),
            ("Reference", record.reference_number),
        ]))
        return story

    def _personal_rows(self, record: ApplicantRecord) -> List[Row]:
        nationality = record.nationality_other if record.nationality == "Others" else record.nationality
        race = record.race_other if record.race == "Others" else record.race
        return [
            ("Full Name", record.full_name),
            ("Preferred Name", record.preferred_name),
            ("NRIC / FIN", record.nric_fin),
            ("Date of Birth", _format_date(record.date_of_birth)),
            ("Gender", record.gender),
            ("Nationality", nationality),
            ("Worked in Singapore", _yes_no(record.has_worked_in_singapore)),
            ("Race", race),
            ("Contact Number", f"{record.contact_country_code} {record.contact_number}"),
            ("Email", record.email_address),
            ("Address", record.residential_address),
            ("Postal Code", record.postal_code),
            ("Passport Number", _or_default(record.passport_number, "-")),
            ("Driving License", _or_default(record.driving_license_class, "-")),
        ]

    def _position_rows(self, record: ApplicantRecord) -> List[Row]:
        positions = ", ".join(
            record.position_other if p == "Others" and record.position_other else p
            for p in record.positions_applied_for
        )
        salary = f"SGD ${record.expected_salary}" if record.expected_salary else "Not specified"
        last_salary = f"SGD ${record.last_drawn_salary}" if record.last_drawn_salary else "Not specified"
        rows = [
            ("Positions Applied", _or_default(positions)),
            ("Open to Other Positions", _yes_no(record.open_to_other_positions)),
            ("Employment Type", record.preferred_employment_type),
            ("Earliest Start", _format_date(record.earliest_start_date)),
            ("Expected Salary", salary),
            ("Last Drawn Salary", last_salary),
            ("Shifts", record.willing_to_work_shifts),
            ("Travel", record.willing_to_travel),
            ("Own Transport", _yes_no(record.has_own_transport)),
            ("Source", record.how_did_you_hear),
        ]
        if record.referrer_name:
            rows.append(("Referrer", record.referrer_name))
        return rows

    def _general_rows(self, record: ApplicantRecord) -> List[Row]:
        def answer(flag: bool, details: str) -> str:
            return f"Yes - {details}" if flag and details else _yes_no(flag)

        return [
            ("Previously Applied", _yes_no(record.previously_applied)),
            ("Connections at Company", answer(record.has_connections_at_aff, record.connections_details)),
            ("Conflict of Interest", answer(record.has_conflict_of_interest, record.conflict_details)),
            ("Bankruptcy", answer(record.has_bankruptcy, record.bankruptcy_details)),
            ("Legal Proceedings", answer(record.has_legal_proceedings, record.legal_details)),
        ]

    # =========================================================================
    # FLOWABLE HELPERS
    # =========================================================================

    def _section(self, title: str, rows: Sequence[Row]) -> list:
        return [Paragraph(escape(title), self._styles["section"]), Spacer(1, 2 * mm), self._grid(rows)]

    def _grid(self, rows: Sequence[Row]) -> Table:
        """Two-column label/value table. Text is escaped for reportlab markup."""
        data = [
            [
                Paragraph(escape(label), self._styles["label"]),
                Paragraph(escape(value or "").replace("\n", "<br/>"), self._styles["value"]),
            ]
            for label, value in rows
        ]
        table = Table(data, colWidths=[45 * mm, None], hAlign="LEFT")
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#E0E0E0")),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
        ]))
        return table

    def _signature_flowable(self, signature_png: Optional[bytes]) -> Optional[Image]:
        if not signature_png:
            return None
        image = Image(BytesIO(signature_png))
        # Fit into a 60mm x 25mm box keeping the aspect ratio
        scale = min((60 * mm) / image.imageWidth, (25 * mm) / image.imageHeight, 1.0)
        image.drawWidth = image.imageWidth * scale
        image.drawHeight = image.imageHeight * scale
        image.hAlign = "LEFT"
        return image
