"""Shared helpers for date parsing and committing with conflict detection."""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from sitetrack.core.exceptions import ConflictError, ValidationError
from sitetrack.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Parse a date, raising ValidationError on bad input.

    Same as parse_date() but for request fields where a bad value is a 400.
    Empty input still returns None; callers decide whether it is required.
    """
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.", details={field: value}
        )
    return parsed


def parse_date_range(start_value, end_value, start_field="startDate", end_field="endDate"):
    """Parse an optional inclusive (start, end) pair from query parameters."""
    start = parse_date_input(start_value, start_field)
    end = parse_date_input(end_value, end_field)
    if start and end and start > end:
        raise ValidationError(
            f"{start_field} must not be after {end_field}",
            details={start_field: start_value, end_field: end_value},
        )
    return start, end


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_conflict(resource, field, value=None, status_code=409):
    """Commit the current session, turning a unique-key violation into ConflictError.

    Usage::

        db.session.add(payment)
        commit_or_conflict("Payment", "paymentID", payment.payment_id, status_code=400)

    The session is rolled back before raising so the request leaves no
    partial write behind.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit (%s.%s): %s", resource, field, exc.orig)
        raise ConflictError(resource, field, value, status_code=status_code) from exc
