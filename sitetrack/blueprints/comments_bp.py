"""
Comments Blueprint — discussion threads on progress updates and payments.

  GET  /api/comments?itemId=<id>&type=progress|payment  – newest first
  POST /api/comments                                     – { itemId, type, text }
"""

from flask import Blueprint, jsonify, request

from sitetrack.middleware.permission_required import current_user
from sitetrack.schemas import CommentCreatePayload
from sitetrack.services import comment_service

comments_bp = Blueprint("comments_bp", __name__, url_prefix="/api/comments")


@comments_bp.route("", methods=["GET"])
def list_comments():
    comments = comment_service.list_comments(
        request.args.get("itemId"), request.args.get("type")
    )
    return jsonify([c.to_dict() for c in comments])


@comments_bp.route("", methods=["POST"])
def post_comment():
    payload = CommentCreatePayload.from_payload(request.get_json(silent=True))
    comment = comment_service.post_comment(payload, current_user())
    return jsonify(comment.to_dict()), 201
