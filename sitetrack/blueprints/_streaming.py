"""Helpers shared by the blueprints that return files."""

from flask import Response, current_app

from sitetrack.core.exceptions import ValidationError
from sitetrack.services import report_engine
from sitetrack.utils.helpers import parse_date_range

CHUNK_SIZE = 64 * 1024


def proxy_download(upstream, filename, mime_type):
    """Relay a streaming storage response to the client."""
    response = Response(
        upstream.iter_content(chunk_size=CHUNK_SIZE),
        mimetype=upstream.headers.get("Content-Type") or mime_type,
    )
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    length = upstream.headers.get("Content-Length")
    if length:
        response.headers["Content-Length"] = length
    response.call_on_close(upstream.close)
    return response


def report_range(args):
    """Parse the required ``start``/``end`` query parameters of a report."""
    if not args.get("start") or not args.get("end"):
        raise ValidationError(
            "Start and end dates are required",
            details={"start": args.get("start"), "end": args.get("end")},
        )
    return parse_date_range(args.get("start"), args.get("end"), "start", "end")


def pdf_response(kind, records, start, end):
    cfg = current_app.config
    layout = report_engine.build_report(kind, records, start, end, cfg["REPORT_TITLE"])
    pdf = report_engine.render_pdf(
        layout,
        logo_path=cfg.get("REPORT_LOGO_PATH"),
        footer_notice=cfg.get("REPORT_FOOTER_NOTICE"),
    )
    response = Response(pdf, mimetype="application/pdf")
    response.headers["Content-Disposition"] = (
        f'attachment; filename="{report_engine.report_filename(kind, start, end)}"'
    )
    return response
