"""
JWT Auth Middleware — the first stage of the access-control gate.

Every /api/ request (except the public prefixes below) must carry
``Authorization: Bearer <token>``. The token is verified, its subject is
resolved to an *active* account, and the account is attached to ``g.current_user``.

Any failure (missing header, bad signature, expired token, unknown or
inactive account) raises AuthenticationError, which is rendered as one
uniform 401. The specific reason is logged, never returned.

Role checks are the second stage: see middleware.permission_required.
"""

import jwt as pyjwt
from flask import g, request

from sitetrack.core.exceptions import AuthenticationError
from sitetrack.models import db
from sitetrack.models.auth import User
from sitetrack.services.jwt_service import decode_access_token

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/health",
)


def authenticate() -> User:
    """Resolve the request's bearer token to an active account."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("missing bearer token")

    token = auth_header[7:].strip()  # Strip "Bearer "
    try:
        payload = decode_access_token(token)
    except pyjwt.ExpiredSignatureError as exc:
        raise AuthenticationError("token expired") from exc
    except pyjwt.InvalidTokenError as exc:
        raise AuthenticationError(f"invalid token: {exc}") from exc

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("malformed subject claim") from exc

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError(f"account {user_id} missing or inactive")
    return user


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.current_user_id = None

        path = request.path
        if not path.startswith("/api/"):
            return None
        # Unmatched routes fall through to the 404 handler
        if request.url_rule is None or request.method == "OPTIONS":
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        g.current_user = authenticate()
        g.current_user_id = g.current_user.id
        return None
