"""
Clinical PDF Generator
Session notes, assessment reports and invoices rendered with reportlab
"""

import io
import logging
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models import Client, Practice, TherapySession, User
from ..models_assessment import AssessmentAssignment
from ..models_billing import SessionBilling
from ..models_session_note import RISK_FIELDS, SessionNote, best_available_content
from ..practice_time import utc_to_local

logger = logging.getLogger(__name__)

RISK_LEVEL_LABELS = {0: "None", 1: "Low", 2: "Moderate", 3: "High", 4: "Severe"}


def _fmt_date(value, tz: Optional[str] = None, with_time: bool = False) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, datetime):
        if tz:
            value = utc_to_local(value, tz)
        return value.strftime("%B %d, %Y %I:%M %p" if with_time else "%B %d, %Y")
    return value.strftime("%B %d, %Y")


def _money(value: Optional[float]) -> str:
    return f"${value:,.2f}" if value is not None else "-"


class ClinicalPDF:
    """Shared page setup and styles"""

    def __init__(self, practice: Optional[Practice] = None):
        self.practice = practice
        self.tz = practice.timezone if practice else None

        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        self.brand_color = colors.HexColor("#0f766e")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            "ClinicalTitle", parent=styles["Heading1"], fontSize=20, textColor=self.brand_color, spaceAfter=6
        )
        self.subtitle_style = ParagraphStyle(
            "ClinicalSubtitle", parent=styles["Normal"], fontSize=10, textColor=colors.grey, spaceAfter=12
        )
        self.heading_style = ParagraphStyle(
            "ClinicalHeading",
            parent=styles["Heading2"],
            fontSize=13,
            textColor=self.dark_gray,
            spaceBefore=14,
            spaceAfter=6,
        )
        self.body_style = ParagraphStyle(
            "ClinicalBody", parent=styles["Normal"], fontSize=10, leading=14, textColor=self.dark_gray, spaceAfter=6
        )
        self.footer_style = ParagraphStyle(
            "ClinicalFooter", parent=self.body_style, fontSize=8, textColor=colors.grey, spaceBefore=18
        )

    def _build(self, story: list, title: str) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=title,
        )
        doc.build(story)
        return buffer.getvalue()

    def _header(self, story: list, title: str) -> None:
        if self.practice:
            story.append(Paragraph(escape(self.practice.name), self.subtitle_style))
        story.append(Paragraph(escape(title), self.title_style))

    def _info_table(self, rows: list[tuple[str, str]]) -> Table:
        table = Table(
            [[label, escape(str(value))] for label, value in rows],
            colWidths=[1.7 * inch, self.content_width - 1.7 * inch],
        )
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _grid_table(self, data: list[list], col_widths: list[float]) -> Table:
        table = Table(data, colWidths=col_widths, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 9),
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("TEXTCOLOR", (0, 1), (-1, -1), self.dark_gray),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("LEFTPADDING", (0, 0), (-1, -1), 6),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
                    ("TOPPADDING", (0, 0), (-1, -1), 5),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
                ]
            )
        )
        return table

    def _text_blocks(self, story: list, text: str) -> None:
        """Render stored plain/markdown text: '#' lines become headings, blank lines split paragraphs"""
        for block in text.replace("\r\n", "\n").split("\n\n"):
            block = block.strip()
            if not block:
                continue
            if block.startswith("#"):
                heading, _, rest = block.partition("\n")
                story.append(Paragraph(escape(heading.lstrip("# ").strip()), self.heading_style))
                block = rest.strip()
                if not block:
                    continue
            story.append(Paragraph(escape(block).replace("\n", "<br/>"), self.body_style))


class SessionNotePDFGenerator(ClinicalPDF):
    def __init__(self, note: SessionNote, practice: Optional[Practice] = None):
        super().__init__(practice)
        self.note = note

    def generate(self) -> bytes:
        note = self.note
        client: Client = note.client
        therapist: User = note.therapist
        session: Optional[TherapySession] = note.session
        logger.info(f"📄 Generating session note PDF for note {note.id}")

        story: list = []
        self._header(story, "Session Note")
        story.append(
            self._info_table(
                [
                    ("Client:", client.full_name if client else "N/A"),
                    ("Client ID:", client.client_id if client else "N/A"),
                    ("Therapist:", therapist.full_name if therapist else "N/A"),
                    ("Session Date:", _fmt_date(note.date, self.tz, with_time=True)),
                    ("Session Type:", (session.session_type if session else "N/A").replace("_", " ").title()),
                    ("Status:", "Finalized" if note.is_finalized else "Draft"),
                ]
            )
        )

        ratings = [
            ("Mood before session", note.mood_before, 10),
            ("Mood after session", note.mood_after, 10),
            ("Client rating", note.client_rating, 10),
            ("Therapist rating", note.therapist_rating, 10),
            ("Progress toward goals", note.progress_toward_goals, 10),
        ]
        rated = [[label, f"{value}/{scale}"] for label, value, scale in ratings if value is not None]
        if rated:
            story.append(Paragraph("Ratings", self.heading_style))
            story.append(self._grid_table([["Measure", "Score"]] + rated, [3.5 * inch, 1.5 * inch]))

        story.append(Paragraph("Risk Assessment", self.heading_style))
        risk_rows = [["Risk Factor", "Level"]]
        for field in RISK_FIELDS:
            level = getattr(note, field) or 0
            risk_rows.append([field.replace("risk_", "").replace("_", " ").title(), RISK_LEVEL_LABELS.get(level, str(level))])
        story.append(self._grid_table(risk_rows, [3.5 * inch, 1.5 * inch]))

        story.append(Paragraph("Clinical Documentation", self.heading_style))
        content = best_available_content(note)
        if content:
            self._text_blocks(story, content)
        else:
            story.append(Paragraph("No documentation recorded.", self.body_style))

        if note.is_finalized:
            signer = note.finalized_by.full_name if note.finalized_by else (therapist.full_name if therapist else "")
            story.append(
                Paragraph(
                    escape(f"Electronically signed by {signer} on {_fmt_date(note.finalized_at, self.tz, with_time=True)}"),
                    self.footer_style,
                )
            )
        story.append(Paragraph("CONFIDENTIAL: Protected health information.", self.footer_style))

        return self._build(story, f"Session Note - {client.full_name if client else note.id}")


class AssessmentReportPDFGenerator(ClinicalPDF):
    def __init__(self, assignment: AssessmentAssignment, content: str, practice: Optional[Practice] = None):
        super().__init__(practice)
        self.assignment = assignment
        self.content = content

    def generate(self) -> bytes:
        assignment = self.assignment
        report = assignment.report
        logger.info(f"📄 Generating assessment report PDF for assignment {assignment.id}")

        story: list = []
        self._header(story, assignment.template.name if assignment.template else "Assessment Report")
        rows = [
            ("Client:", assignment.client.full_name if assignment.client else "N/A"),
            ("Completed:", _fmt_date(assignment.completed_at, self.tz)),
        ]
        if assignment.total_score is not None:
            rows.append(("Total Score:", f"{assignment.total_score:g}"))
        rows.append(("Report Status:", "Final" if report and report.is_finalized else "Draft"))
        story.append(self._info_table(rows))
        story.append(Spacer(1, 0.2 * inch))

        self._text_blocks(story, self.content)

        if report and report.is_finalized:
            story.append(Paragraph(escape(f"Finalized {_fmt_date(report.finalized_at, self.tz)}"), self.footer_style))
        story.append(Paragraph("CONFIDENTIAL: Protected health information.", self.footer_style))

        return self._build(story, f"Assessment Report - {assignment.id}")


class InvoicePDFGenerator(ClinicalPDF):
    def __init__(self, billing: SessionBilling, service_name: str, practice: Optional[Practice] = None):
        super().__init__(practice)
        self.billing = billing
        self.service_name = service_name

    def generate(self) -> bytes:
        billing = self.billing
        session = billing.session
        client = session.client if session else None
        logger.info(f"📄 Generating invoice PDF for billing record {billing.id}")

        story: list = []
        self._header(story, f"Invoice INV-{billing.id:06d}")
        if self.practice:
            contact = " · ".join(filter(None, [self.practice.address, self.practice.phone, self.practice.email]))
            if contact:
                story.append(Paragraph(escape(contact), self.subtitle_style))

        story.append(
            self._info_table(
                [
                    ("Bill To:", client.full_name if client else "N/A"),
                    ("Client ID:", client.client_id if client else "N/A"),
                    ("Invoice Date:", _fmt_date(billing.billing_date or billing.created_at)),
                    ("Status:", billing.payment_status.title()),
                ]
            )
        )
        story.append(Spacer(1, 0.2 * inch))

        line_items = [
            ["Date of Service", "Code", "Service", "Units", "Rate", "Amount"],
            [
                _fmt_date(session.session_date, self.tz) if session else "N/A",
                billing.service_code,
                Paragraph(escape(self.service_name), self.body_style),
                str(billing.units),
                _money(billing.rate_per_unit),
                _money(billing.total_amount),
            ],
        ]
        story.append(
            self._grid_table(
                line_items,
                [1.2 * inch, 0.7 * inch, 2.2 * inch, 0.5 * inch, 0.9 * inch, 0.9 * inch],
            )
        )

        paid = billing.payment_amount or 0.0
        totals = [
            ("Total:", _money(billing.total_amount)),
            ("Paid:", _money(paid)),
            ("Balance Due:", _money(max(billing.total_amount - paid, 0.0))),
        ]
        if billing.insurance_covered and billing.copay_amount is not None:
            totals.insert(1, ("Client Copay:", _money(billing.copay_amount)))
        story.append(Spacer(1, 0.2 * inch))
        story.append(self._info_table(totals))

        story.append(Paragraph("Thank you. Please contact the practice with any billing questions.", self.footer_style))
        return self._build(story, f"Invoice {billing.id}")
