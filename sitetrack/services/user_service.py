"""
User Service — login, account CRUD and self-registration.
"""

import logging

from sitetrack.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sitetrack.models import db
from sitetrack.models.auth import ROLE_ADMIN, ROLE_VIEWER, User
from sitetrack.services.jwt_service import generate_access_token
from sitetrack.utils.crypto import hash_password, verify_password
from sitetrack.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


class InvalidCredentials(AuthenticationError):
    """Login failed. Rendered as 401 "Invalid credentials"."""

    def __init__(self, reason: str = "") -> None:
        super().__init__(reason, message="Invalid credentials")


def login(username: str, password: str) -> dict:
    """Verify credentials and issue an access token.

    Returns ``{"token": ..., "user": {...}}``. Unknown user, wrong password
    and inactive account all fail the same way.
    """
    user = User.query.filter_by(username=username.strip()).first()
    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login for username=%r", username)
        raise InvalidCredentials("bad username or password")
    if not user.is_active:
        logger.warning("Login attempt on inactive account id=%s", user.id)
        raise InvalidCredentials("inactive account")

    token = generate_access_token(user.id, user.role)
    logger.info("User %s logged in", user.username, extra={"user_id": user.id})
    return {"token": token, "user": user.to_dict()}


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════


def _ensure_unique(username=None, email=None, exclude_id=None):
    if username is not None:
        q = User.query.filter(User.username == username.strip())
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("User", "username", username)
    if email is not None:
        q = User.query.filter(User.email == email.strip().lower())
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("User", "email", email)


def list_users() -> list[User]:
    return User.query.order_by(User.id).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def create_user(username, email, password, role, *, hashed=False) -> User:
    """Create an account.

    Credentials of API-created accounts are stored as given; ``hashed=True``
    (the create-admin command) stores a bcrypt hash instead.
    """
    _ensure_unique(username=username, email=email)
    user = User(
        username=username,
        email=email,
        password=hash_password(password) if hashed else password,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    commit_or_conflict("User", "username/email", username)
    logger.info("Created user %s with role %s", user.username, user.role,
                extra={"user_id": user.id})
    return user


def register_viewer(payload) -> User:
    return create_user(payload.username, payload.email, payload.password, ROLE_VIEWER)


def update_user(user_id: int, actor, payload) -> User:
    """Apply an admin's changes to role, email, password or active flag."""
    user = get_user(user_id)
    changes = payload.provided()

    if user.id == actor.id and (
        changes.get("is_active") is False or changes.get("role", ROLE_ADMIN) != ROLE_ADMIN
    ):
        raise ValidationError("Admins can't demote or deactivate themselves")

    if "email" in changes:
        _ensure_unique(email=changes["email"], exclude_id=user.id)
    for key, value in changes.items():
        setattr(user, key, value)

    commit_or_conflict("User", "email", changes.get("email"))
    logger.info("Updated user %s: %s", user.username, sorted(changes),
                extra={"user_id": actor.id})
    return user


def delete_user(user_id: int, actor) -> dict:
    """Delete an account. An administrator cannot delete themselves."""
    if user_id == actor.id:
        raise ValidationError("Admins can't delete themselves")
    user = get_user(user_id)
    snapshot = user.to_dict()
    db.session.delete(user)
    db.session.commit()
    logger.info("Deleted user %s", snapshot["username"], extra={"user_id": actor.id})
    return snapshot


def admin_exists() -> bool:
    return User.query.filter_by(role=ROLE_ADMIN).first() is not None
