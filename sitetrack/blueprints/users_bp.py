"""
Users Blueprint — administrator account management.

  GET    /api/users          – list accounts (credentials never returned)
  POST   /api/users          – create account
  PATCH  /api/users/<id>     – change email, role, password or active flag
  DELETE /api/users/<id>     – delete account (not yourself)
"""

from flask import Blueprint, jsonify, request

from sitetrack.middleware.permission_required import current_user, require_admin
from sitetrack.schemas import UserCreatePayload, UserUpdatePayload
from sitetrack.services import user_service

users_bp = Blueprint("users_bp", __name__, url_prefix="/api/users")


@users_bp.route("", methods=["GET"])
@require_admin
def list_users():
    return jsonify([u.to_dict() for u in user_service.list_users()])


@users_bp.route("", methods=["POST"])
@require_admin
def create_user():
    """
    Body: { username, email, password, role }
    """
    payload = UserCreatePayload.from_payload(request.get_json(silent=True))
    user = user_service.create_user(
        payload.username, payload.email, payload.password, payload.role
    )
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@require_admin
def update_user(user_id):
    payload = UserUpdatePayload.from_payload(request.get_json(silent=True))
    user = user_service.update_user(user_id, current_user(), payload)
    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@require_admin
def delete_user(user_id):
    deleted = user_service.delete_user(user_id, current_user())
    return jsonify({"message": "User deleted successfully", "user": deleted})
