"""
Report Engine — paginated PDF summaries of approved records.

Two steps:
    build_report()  turns records into a ReportLayout: title, duration line,
                    pages of entry lines (20 entries per page), summary line.
    render_pdf()    draws a ReportLayout with ReportLab platypus onto A4
                    and returns the PDF bytes.

Keeping the layout separate from drawing lets callers (and tests) inspect
exactly what a report will say without parsing PDF output.
"""

import io
import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor, blue
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer

from sitetrack.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

REPORT_KINDS = ("progress", "payment")
ENTRIES_PER_PAGE = 20
MARGIN = 50
SIGNATURE_NOTICE = "This is a system-generated report and does not require signatures."

_NON_ASCII = re.compile(r"[^\x00-\x7F]")
_WHITESPACE = re.compile(r"\s+")


def format_date(value) -> str:
    """``2024-01-05`` → ``05 Jan 2024``."""
    return value.strftime("%d %b %Y") if value else "-"


def sanitize_text(value) -> str:
    """Strip characters the built-in PDF fonts cannot draw."""
    if not value or not isinstance(value, str):
        return "-"
    cleaned = _WHITESPACE.sub(" ", _NON_ASCII.sub("", value)).strip()
    return cleaned or "-"


@dataclass
class ReportLayout:
    kind: str
    title: str
    duration: str
    pages: list = field(default_factory=list)   # list[list[list[str]]]
    summary: str = ""
    record_count: int = 0

    @property
    def entries(self):
        return [entry for page in self.pages for entry in page]


# ── Layout ────────────────────────────────────────────────────────────────────


def _progress_entry(p):
    return [
        f"• Progress ID: {p.progress_id}",
        f"Date: {format_date(p.date)}",
        f"Description: {sanitize_text(p.description)}",
        f"Uploaded by: {sanitize_text(p.creator.username) if p.creator else '-'}",
        f"Status: {p.status}",
    ]


def _payment_entry(p):
    return [
        f"• Payment ID: {sanitize_text(p.payment_id)}",
        f"Date: {format_date(p.date)}",
        f"Amount: Rs {Decimal(p.amount):.2f}",
        f"Description: {sanitize_text(p.description)}",
        f"Remarks: {sanitize_text(p.remarks)}",
    ]


def build_report(kind, records, start, end, title) -> ReportLayout:
    """Lay out a report of ``records`` for the inclusive range start..end."""
    if kind not in REPORT_KINDS:
        raise ValidationError(f"kind must be one of {list(REPORT_KINDS)}", details={"kind": kind})

    records = sorted(records, key=lambda r: (r.date, r.id))
    span = f"{format_date(start)} to {format_date(end)}"
    entry_fn = _payment_entry if kind == "payment" else _progress_entry
    entries = [entry_fn(r) for r in records]

    if kind == "payment":
        total = sum((Decimal(r.amount) for r in records), Decimal("0"))
        summary = f"Total Payment: Rs {total:.2f} (From {span})"
        heading = f"{title}: Payment Report"
    else:
        summary = f"Total Approved Progress Updates: {len(records)} (From {span})"
        heading = f"{title}: Progress Report"

    pages = [
        entries[i:i + ENTRIES_PER_PAGE] for i in range(0, len(entries), ENTRIES_PER_PAGE)
    ] or [[]]
    return ReportLayout(
        kind=kind,
        title=heading,
        duration=f"Duration: {span}",
        pages=pages,
        summary=summary,
        record_count=len(records),
    )


# ── Rendering ─────────────────────────────────────────────────────────────────


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="ReportTitle",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=18,
        leading=22,
        textColor=blue,
        alignment=TA_CENTER,
        spaceAfter=8,
    ))
    styles.add(ParagraphStyle(
        name="Duration",
        parent=styles["Normal"],
        fontSize=12,
        alignment=TA_CENTER,
        spaceAfter=16,
    ))
    styles.add(ParagraphStyle(
        name="EntryFirst",
        parent=styles["Normal"],
        fontSize=12,
        leading=15,
    ))
    styles.add(ParagraphStyle(
        name="EntryLine",
        parent=styles["Normal"],
        fontSize=12,
        leading=15,
        leftIndent=12,
    ))
    styles.add(ParagraphStyle(
        name="SummaryHeading",
        parent=styles["Normal"],
        fontName="Helvetica-Bold",
        fontSize=14,
        spaceBefore=12,
        spaceAfter=6,
    ))
    styles.add(ParagraphStyle(
        name="Notice",
        parent=styles["Normal"],
        fontName="Helvetica-Oblique",
        fontSize=10,
        textColor=HexColor("#666666"),
        alignment=TA_CENTER,
        spaceBefore=24,
    ))
    styles.add(ParagraphStyle(
        name="Copyright",
        parent=styles["Normal"],
        fontSize=9,
        textColor=HexColor("#999999"),
        alignment=TA_CENTER,
        spaceBefore=8,
    ))
    return styles


def _watermark(logo_path):
    """Page callback drawing a faded logo in the middle of every page."""

    def draw(canvas, doc):
        if not logo_path:
            return
        width, height = doc.pagesize
        canvas.saveState()
        canvas.setFillAlpha(0.08)
        canvas.drawImage(
            logo_path, width / 2 - 150, height / 2 - 150,
            width=300, height=300, preserveAspectRatio=True, mask="auto",
        )
        canvas.restoreState()

    return draw


def render_pdf(layout: ReportLayout, logo_path=None, footer_notice=None) -> bytes:
    """Draw the layout onto A4 pages and return the PDF document."""
    if logo_path and not os.path.exists(logo_path):
        logger.warning("Report logo %s not found; rendering without watermark", logo_path)
        logo_path = None

    styles = _styles()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=layout.title,
    )

    story = [
        Paragraph(f"<u>{escape(layout.title)}</u>", styles["ReportTitle"]),
        Paragraph(escape(layout.duration), styles["Duration"]),
    ]
    for index, page in enumerate(layout.pages):
        if index:
            story.append(PageBreak())
        for entry in page:
            story.append(Paragraph(escape(entry[0]), styles["EntryFirst"]))
            story.extend(Paragraph(escape(line), styles["EntryLine"]) for line in entry[1:])
            story.append(Spacer(1, 6))

    story.append(Paragraph("<u>Summary</u>", styles["SummaryHeading"]))
    story.append(Paragraph(escape(layout.summary), styles["Normal"]))
    story.append(Paragraph(SIGNATURE_NOTICE, styles["Notice"]))
    if footer_notice:
        story.append(Paragraph(escape(footer_notice), styles["Copyright"]))

    watermark = _watermark(logo_path)
    doc.build(story, onFirstPage=watermark, onLaterPages=watermark)
    logger.info("Rendered %s report: %d record(s), %d page(s)",
                layout.kind, layout.record_count, len(layout.pages))
    return buf.getvalue()


def report_filename(kind, start, end) -> str:
    return f"{kind}_report_{start.isoformat()}_to_{end.isoformat()}.pdf"
