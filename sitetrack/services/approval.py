"""
Approval workflow for submitted records (progress updates and payments).

State machine:
    pending ──decide(approved)──▶ approved
    pending ──decide(rejected)──▶ rejected
    approved / rejected are terminal; deciding again is a TransitionError.

Decisions and deletions are single conditional statements
(``... WHERE id = :id AND status = 'pending'``). Two concurrent decisions on
one record therefore resolve to one winner; the loser sees zero affected rows
and gets a 409, and the record keeps the winner's approver.

Who sees what (``visible_query``):
    admin          status filter, default pending; ``all`` lifts it
    creator role   own records only (site_engineer → progress,
                   paying_authority → payments), optional status filter
    reader roles   every record of the type, optional status filter
                   (paying_authority → progress)
    everyone else  approved only

The role gate on each route runs before these functions; nothing here
re-checks that ``decide`` callers are administrators.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update

from sitetrack.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    TransitionError,
    ValidationError,
)
from sitetrack.models import db
from sitetrack.models.auth import ROLE_ADMIN
from sitetrack.models.library import Comment
from sitetrack.models.records import (
    DECISION_STATUSES,
    RECORD_STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
)

logger = logging.getLogger(__name__)

STATUS_ALL = "all"


def _check_status_filter(status: str) -> str:
    status = status.strip().lower()
    if status != STATUS_ALL and status not in RECORD_STATUSES:
        raise ValidationError(
            f"status must be one of {[*RECORD_STATUSES, STATUS_ALL]}",
            details={"status": status},
        )
    return status


# ── Visibility ────────────────────────────────────────────────────────────────


def visible_query(model, user, status: str | None = None):
    """Return a SELECT of ``model`` rows the user may list."""
    stmt = select(model)
    if user.role == ROLE_ADMIN:
        wanted = _check_status_filter(status or STATUS_PENDING)
        if wanted != STATUS_ALL:
            stmt = stmt.where(model.status == wanted)
    elif user.role == model.CREATOR_ROLE or user.role in model.READER_ROLES:
        if user.role == model.CREATOR_ROLE:
            stmt = stmt.where(model.created_by == user.id)
        if status:
            wanted = _check_status_filter(status)
            if wanted != STATUS_ALL:
                stmt = stmt.where(model.status == wanted)
    else:
        stmt = stmt.where(model.status == STATUS_APPROVED)
    return stmt


def can_view(record, user) -> bool:
    if user.role == ROLE_ADMIN:
        return True
    if user.role == record.CREATOR_ROLE:
        return record.created_by == user.id
    if user.role in record.READER_ROLES:
        return True
    return record.status == STATUS_APPROVED


def get_visible(model, record_id: int, user):
    """Fetch one record, reporting hidden records as missing."""
    record = db.session.get(model, record_id)
    if record is None or not can_view(record, user):
        raise NotFoundError(model.RESOURCE, record_id)
    return record


def _find(model, lookup: dict):
    record = db.session.execute(select(model).filter_by(**lookup)).scalar_one_or_none()
    if record is None:
        raise NotFoundError(model.RESOURCE, next(iter(lookup.values()), None))
    return record


# ── Transitions ───────────────────────────────────────────────────────────────


def decide(model, lookup: dict, target_status: str, actor, comment: str | None = None):
    """Approve or reject a pending record.

    Args:
        model:          Progress or Payment.
        lookup:         filter_by criteria, e.g. ``{"id": 5}`` or
                        ``{"payment_id": "PAY-7"}``.
        target_status:  "approved" or "rejected".
        actor:          the administrator deciding.
        comment:        optional note appended to the record's trail.

    Raises:
        ValidationError: target_status is not a decision.
        NotFoundError:   no record matches ``lookup``.
        TransitionError: the record is no longer pending (409).
    """
    if target_status not in DECISION_STATUSES:
        raise ValidationError(
            f"status must be one of {sorted(DECISION_STATUSES)}",
            details={"status": target_status},
        )
    record = _find(model, lookup)
    now = datetime.now(timezone.utc)

    result = db.session.execute(
        update(model)
        .where(model.id == record.id, model.status == STATUS_PENDING)
        .values(status=target_status, approved_by=actor.id, approved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        db.session.refresh(record)
        logger.info(
            "Rejected re-decision of %s %s (status=%s)",
            model.RESOURCE, record.business_key, record.status,
        )
        raise TransitionError(model.RESOURCE, record.status)

    if comment:
        db.session.add(
            model.comment_class(record_id=record.id, text=comment, user_id=actor.id, created_at=now)
        )
    db.session.commit()
    db.session.refresh(record)

    logger.info(
        "%s %s %s by %s", model.RESOURCE, record.business_key, target_status, actor.username,
        extra={
            "record_type": model.ITEM_TYPE,
            "record_id": record.id,
            "business_key": record.business_key,
            "decision": target_status,
            "user_id": actor.id,
        },
    )
    return record


def delete_pending(model, record_id: int, actor) -> None:
    """Delete the actor's own record while it is still pending.

    Raises:
        NotFoundError:      no such record.
        AuthorizationError: the record belongs to another account.
        TransitionError:    the record has been decided (HTTP 400).
    """
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(model.RESOURCE, record_id)
    if record.created_by != actor.id:
        raise AuthorizationError(actor.role, (model.CREATOR_ROLE,))

    business_key = record.business_key
    # Children first: the parent delete below is the conditional step.
    db.session.execute(
        delete(model.comment_class).where(model.comment_class.record_id == record_id)
    )
    db.session.execute(
        delete(Comment).where(Comment.item_id == record_id, Comment.item_type == model.ITEM_TYPE)
    )
    result = db.session.execute(
        delete(model)
        .where(model.id == record_id, model.status == STATUS_PENDING)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        db.session.refresh(record)
        raise TransitionError(
            model.RESOURCE,
            record.status,
            message=f"Only pending {model.ITEM_TYPE} records can be deleted",
            status_code=400,
        )
    db.session.commit()

    logger.info(
        "%s %s deleted by %s", model.RESOURCE, business_key, actor.username,
        extra={"record_type": model.ITEM_TYPE, "record_id": record_id, "user_id": actor.id},
    )


def add_comment(model, record_id: int, actor, text: str):
    """Append a comment to a record the actor can see; return the record."""
    if not text or not text.strip():
        raise ValidationError("text is required", details={"text": "required"})
    record = get_visible(model, record_id, actor)
    record.comments.append(model.comment_class(text=text.strip(), user_id=actor.id))
    db.session.commit()
    db.session.refresh(record)
    return record


def approved_between(model, start=None, end=None):
    """Approved records with start <= date <= end, oldest first."""
    stmt = select(model).where(model.status == STATUS_APPROVED)
    if start is not None:
        stmt = stmt.where(model.date >= start)
    if end is not None:
        stmt = stmt.where(model.date <= end)
    stmt = stmt.order_by(model.date.asc(), model.id.asc())
    return list(db.session.execute(stmt).scalars())
