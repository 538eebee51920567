"""
Auth Blueprint — login, self-registration and current account.

  POST /api/auth/login       – username + password → access token
  POST /api/auth/register    – create a viewer account (SELF_REGISTRATION_ENABLED)
  GET  /api/auth/me          – current account
"""

from flask import Blueprint, current_app, jsonify, request

from sitetrack.middleware.permission_required import current_user
from sitetrack.schemas import LoginPayload, RegisterPayload
from sitetrack.services import user_service
from sitetrack.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/auth")


def _registration_enabled():
    return str(current_app.config.get("SELF_REGISTRATION_ENABLED", "false")).lower() == "true"


@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Body: { "username": "...", "password": "..." }
    """
    payload = LoginPayload.from_payload(request.get_json(silent=True))
    return jsonify(user_service.login(payload.username, payload.password))


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Body: { "username": "...", "email": "...", "password": "..." }

    New accounts always get the viewer role.
    """
    if not _registration_enabled():
        return api_error(E.FORBIDDEN, "Self-registration is disabled")
    payload = RegisterPayload.from_payload(request.get_json(silent=True))
    user = user_service.register_viewer(payload)
    return jsonify({"message": "User registered successfully", "user": user.to_dict()}), 201


@auth_bp.route("/me", methods=["GET"])
def me():
    return jsonify(current_user().to_dict())
