"""
Platform-wide exception hierarchy.

Services raise these types; `sitetrack.utils.errors.register_error_handlers`
maps each one to a single JSON error shape and HTTP status, so blueprints
never build error responses for business-rule failures themselves.

Usage:
    from sitetrack.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Payment", resource_id=42)
    raise ValidationError("date is required", details={"date": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist (or is not visible).

    Records hidden from the caller by the visibility rules are reported the
    same way as missing ones, so a viewer cannot tell a pending record from
    an unknown id.

    Args:
        resource: Human-readable entity name (e.g. "Payment", "User").
        resource_id: The identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing, malformed, or outside an allowed set.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique business key.

    Maps to HTTP 409 unless ``status_code`` says otherwise (payment creation
    keeps the published 400 contract).
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        status_code: int = 409,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        self.status_code = status_code
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class TransitionError(Exception):
    """Raised when a workflow operation is not allowed in the record's status.

    Covers re-deciding an already decided record and deleting a record that
    is no longer pending.
    """

    def __init__(
        self,
        resource: str,
        current_status: str,
        message: str | None = None,
        status_code: int = 409,
    ) -> None:
        self.resource = resource
        self.current_status = current_status
        self.status_code = status_code
        super().__init__(message or f"{resource} already {current_status}")


class AuthenticationError(Exception):
    """Missing, malformed, expired, or unresolvable credential. HTTP 401.

    The message is deliberately uniform; the failing sub-check is only logged.
    """

    def __init__(self, reason: str = "", message: str = "Authentication required") -> None:
        self.reason = reason
        super().__init__(message)


class AuthorizationError(Exception):
    """Authenticated, but the role is not permitted for the operation. HTTP 403."""

    def __init__(self, role: str | None = None, allowed: tuple[str, ...] = ()) -> None:
        self.role = role
        self.allowed = allowed
        super().__init__("Access denied")


class StorageError(Exception):
    """The external file-storage provider failed or rejected a call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class PackagingError(Exception):
    """Attachment archive could not be built or uploaded. HTTP 400."""


class ArchiveTooLargeError(PackagingError):
    """The compressed attachment archive exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"ZIP exceeds {limit // (1024 * 1024)}MB limit")
