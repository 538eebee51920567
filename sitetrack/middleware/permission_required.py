"""
Role decorators — second stage of the access-control gate.

Usage:
    @progress_bp.route("/<int:record_id>/approve", methods=["PATCH"])
    @require_role(ROLE_ADMIN)
    def approve_progress(record_id):
        ...

The JWT middleware has already attached ``g.current_user``; these
decorators only compare its role against the permitted set.
"""

import functools

from flask import g

from sitetrack.core.exceptions import AuthenticationError, AuthorizationError
from sitetrack.models.auth import ROLE_ADMIN


def current_user():
    """Return the authenticated account or raise AuthenticationError."""
    user = getattr(g, "current_user", None)
    if user is None:
        raise AuthenticationError("no authenticated account on request")
    return user


def require_role(*roles: str):
    """
    Decorator: require the authenticated account's role to be in ``roles``.

    Raises AuthorizationError (403) on mismatch, distinct from the 401 the
    middleware raises for an unauthenticated request.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user.role not in roles:
                raise AuthorizationError(user.role, tuple(roles))
            return f(*args, **kwargs)
        return decorated
    return decorator


require_admin = require_role(ROLE_ADMIN)
