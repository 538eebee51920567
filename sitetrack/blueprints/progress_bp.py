"""
Progress Blueprint — site progress updates and their approval.

  POST  /api/progress                    – submit (multipart: date, description, photos[], video)
  GET   /api/progress                    – list visible updates (?startDate&endDate&status)
  GET   /api/progress/pdf-range          – approved updates as PDF (?start&end)
  GET   /api/progress/<id>               – one update
  PATCH /api/progress/<id>               – edit own pending description
  PATCH /api/progress/<id>/approve       – approve / reject (admin)
  POST  /api/progress/<id>/comments      – add to the comment trail
  GET   /api/progress/<id>/archive       – download the attachment archive
"""

from flask import Blueprint, jsonify, request

from sitetrack.blueprints._streaming import pdf_response, proxy_download, report_range
from sitetrack.middleware.permission_required import current_user, require_role
from sitetrack.models.auth import ROLE_ADMIN, ROLE_SITE_ENGINEER
from sitetrack.models.records import Progress
from sitetrack.schemas import (
    CommentTextPayload,
    DecisionPayload,
    ProgressCreatePayload,
    ProgressUpdatePayload,
)
from sitetrack.services import approval, progress_service
from sitetrack.services.packager import Attachment
from sitetrack.utils.helpers import parse_date_range

progress_bp = Blueprint("progress_bp", __name__, url_prefix="/api/progress")


def _attachments(field):
    return [Attachment.from_upload(f) for f in request.files.getlist(field) if f and f.filename]


@progress_bp.route("", methods=["POST"])
@require_role(ROLE_SITE_ENGINEER)
def create_progress():
    payload = ProgressCreatePayload.from_payload(request.form)
    progress = progress_service.create_progress(
        payload, _attachments("photos"), _attachments("video"), current_user()
    )
    return jsonify(progress.to_dict()), 201


@progress_bp.route("", methods=["GET"])
def list_progress():
    start, end = parse_date_range(request.args.get("startDate"), request.args.get("endDate"))
    items = progress_service.list_progress(
        current_user(), start, end, request.args.get("status")
    )
    return jsonify([p.to_dict() for p in items])


@progress_bp.route("/pdf-range", methods=["GET"])
def progress_pdf():
    start, end = report_range(request.args)
    records = approval.approved_between(Progress, start, end)
    return pdf_response("progress", records, start, end)


@progress_bp.route("/<int:record_id>", methods=["GET"])
def get_progress(record_id):
    return jsonify(progress_service.get_progress(record_id, current_user()).to_dict())


@progress_bp.route("/<int:record_id>", methods=["PATCH"])
@require_role(ROLE_SITE_ENGINEER)
def update_progress(record_id):
    payload = ProgressUpdatePayload.from_payload(request.get_json(silent=True))
    progress = progress_service.update_description(
        record_id, payload.description, current_user()
    )
    return jsonify(progress.to_dict())


@progress_bp.route("/<int:record_id>/approve", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def decide_progress(record_id):
    """
    Body: { "status": "approved" | "rejected", "comments": "..." }
    """
    payload = DecisionPayload.from_payload(request.get_json(silent=True))
    progress = approval.decide(
        Progress, {"id": record_id}, payload.status, current_user(), payload.comments
    )
    return jsonify(progress.to_dict())


@progress_bp.route("/<int:record_id>/comments", methods=["POST"])
def comment_progress(record_id):
    payload = CommentTextPayload.from_payload(request.get_json(silent=True))
    progress = approval.add_comment(Progress, record_id, current_user(), payload.text)
    return jsonify(progress.to_dict())


@progress_bp.route("/<int:record_id>/archive", methods=["GET"])
def download_archive(record_id):
    upstream, filename, mime_type = progress_service.open_archive(record_id, current_user())
    return proxy_download(upstream, filename, mime_type)
