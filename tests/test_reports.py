"""
Report engine tests: layout of paginated summaries and PDF rendering.
"""

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from sitetrack.core.exceptions import ValidationError
from sitetrack.services.report_engine import (
    build_report,
    format_date,
    render_pdf,
    report_filename,
    sanitize_text,
)

START = date(2024, 1, 1)
END = date(2024, 3, 31)
TITLE = "Iruvade Project Management"


def _payment(i, amount="10.00", day=None):
    return SimpleNamespace(
        id=i,
        payment_id=f"PAY-{i}",
        date=day or START + timedelta(days=i),
        amount=Decimal(amount),
        description=f"Instalment {i}",
        remarks=None,
    )


def _progress(i, description="Slab cast"):
    return SimpleNamespace(
        id=i,
        progress_id=f"Progress#{i}",
        date=START + timedelta(days=i),
        description=description,
        creator=SimpleNamespace(username="engineer"),
        status="approved",
    )


class TestLayout:

    def test_pages_of_twenty(self):
        layout = build_report("payment", [_payment(i) for i in range(1, 46)], START, END, TITLE)
        assert [len(p) for p in layout.pages] == [20, 20, 5]
        assert layout.record_count == 45

    def test_payment_summary(self):
        records = [_payment(1, "1500.50"), _payment(2, "499.50")]
        layout = build_report("payment", records, START, END, TITLE)
        assert layout.title == f"{TITLE}: Payment Report"
        assert layout.duration == "Duration: 01 Jan 2024 to 31 Mar 2024"
        assert layout.summary == "Total Payment: Rs 2000.00 (From 01 Jan 2024 to 31 Mar 2024)"
        assert layout.entries[0][0] == "• Payment ID: PAY-1"
        assert layout.entries[0][2] == "Amount: Rs 1500.50"
        assert layout.entries[0][4] == "Remarks: -"

    def test_progress_summary(self):
        layout = build_report("progress", [_progress(i) for i in range(1, 4)], START, END, "Tower B")
        assert layout.title == "Tower B: Progress Report"
        assert layout.summary == (
            "Total Approved Progress Updates: 3 (From 01 Jan 2024 to 31 Mar 2024)"
        )
        assert layout.entries[0][0] == "• Progress ID: Progress#1"
        assert "Uploaded by: engineer" in layout.entries[0]

    def test_entries_sorted_by_date(self):
        records = [_payment(2, day=date(2024, 2, 1)), _payment(1, day=date(2024, 1, 15))]
        layout = build_report("payment", records, START, END, TITLE)
        assert [e[0] for e in layout.entries] == ["• Payment ID: PAY-1", "• Payment ID: PAY-2"]

    def test_empty_report_has_one_page(self):
        layout = build_report("payment", [], START, END, TITLE)
        assert layout.pages == [[]]
        assert layout.summary.startswith("Total Payment: Rs 0.00")

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            build_report("invoice", [], START, END, TITLE)


class TestText:

    def test_sanitize_drops_non_ascii(self):
        assert sanitize_text("Columns  ✅ poured\n today") == "Columns poured today"
        assert sanitize_text("கன") == "-"
        assert sanitize_text(None) == "-"

    def test_format_date(self):
        assert format_date(date(2024, 1, 5)) == "05 Jan 2024"
        assert format_date(None) == "-"

    def test_report_filename(self):
        assert report_filename("progress", START, END) == (
            "progress_report_2024-01-01_to_2024-03-31.pdf"
        )


class TestRender:

    def test_renders_pdf(self):
        layout = build_report("progress", [_progress(i) for i in range(1, 26)], START, END, TITLE)
        pdf = render_pdf(layout, footer_notice="(c) Iruvade")
        assert pdf.startswith(b"%PDF")

    def test_missing_logo_is_ignored(self, tmp_path):
        layout = build_report("payment", [_payment(1)], START, END, TITLE)
        pdf = render_pdf(layout, logo_path=str(tmp_path / "missing.png"))
        assert pdf.startswith(b"%PDF")

    def test_markup_characters_are_escaped(self):
        layout = build_report("progress", [_progress(1, "Beams <b> & columns")], START, END, TITLE)
        assert render_pdf(layout).startswith(b"%PDF")
