"""Standardised API error responses.

Usage
-----
    from sitetrack.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Payment not found")
    return api_error(E.VALIDATION_REQUIRED, "date is required")

Service-layer exceptions (``sitetrack.core.exceptions``) are turned into the
same shape by the handlers that ``register_error_handlers`` installs.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from sitetrack.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PackagingError,
    StorageError,
    TransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    PACKAGING = "ERR_PACKAGING"

    # Auth – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Upstream / server – HTTP 5xx
    STORAGE = "ERR_STORAGE"
    HTTP = "ERR_HTTP"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.PACKAGING: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.STORAGE: 502,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field-level validation errors, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app):
    """Map the platform exception hierarchy to JSON responses, once, app-wide."""

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        logger.warning("Authentication failed on %s: %s", request.path, error.reason)
        return api_error(E.UNAUTHENTICATED, str(error))

    @app.errorhandler(AuthorizationError)
    def _handle_forbidden(error: AuthorizationError):
        logger.warning(
            "Access denied: role '%s' on %s %s (allowed: %s)",
            error.role, request.method, request.path, ", ".join(error.allowed),
        )
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(
            E.CONFLICT_DUPLICATE,
            f"{error.field} must be unique",
            status=error.status_code,
            details={"field": error.field},
        )

    @app.errorhandler(TransitionError)
    def _handle_transition(error: TransitionError):
        return api_error(
            E.CONFLICT_STATE,
            str(error),
            status=error.status_code,
            details={"status": error.current_status},
        )

    @app.errorhandler(PackagingError)
    def _handle_packaging(error: PackagingError):
        logger.warning("Attachment packaging failed: %s", error)
        return api_error(E.PACKAGING, str(error))

    @app.errorhandler(StorageError)
    def _handle_storage(error: StorageError):
        logger.error("Storage provider error on %s: %s", request.path, error)
        return api_error(E.STORAGE, "File storage unavailable")

    @app.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        messages = {
            404: "Route not found",
            405: "Method not allowed",
            413: "Request body too large",
            429: "Too many requests",
        }
        return api_error(
            E.HTTP,
            messages.get(error.code, error.description or error.name),
            status=error.code,
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error(E.INTERNAL, "Internal server error")
