"""
Payment service.

Payments are entered by the paying authority under an identifier they
choose (``paymentID``), approved or rejected by an administrator, and may be
withdrawn by their author while still pending.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sitetrack.models import db
from sitetrack.models.records import STATUS_PENDING, Payment
from sitetrack.services import approval
from sitetrack.utils.helpers import commit_or_conflict

logger = logging.getLogger(__name__)


def create_payment(payload, actor) -> Payment:
    payment = Payment(
        payment_id=payload.payment_id,
        date=payload.date,
        amount=payload.amount,
        description=payload.description,
        remarks=payload.remarks,
        status=STATUS_PENDING,
        created_by=actor.id,
    )
    db.session.add(payment)
    commit_or_conflict("Payment", "paymentID", payload.payment_id, status_code=400)
    logger.info(
        "Payment %s (%s) entered by %s", payment.payment_id, payment.amount, actor.username,
        extra={"record_type": "payment", "record_id": payment.id,
               "business_key": payment.payment_id, "user_id": actor.id},
    )
    return payment


def list_payments(user, start=None, end=None, status=None) -> list[Payment]:
    stmt = approval.visible_query(Payment, user, status)
    if start is not None:
        stmt = stmt.where(Payment.date >= start)
    if end is not None:
        stmt = stmt.where(Payment.date <= end)
    stmt = stmt.order_by(Payment.date.desc(), Payment.id.desc())
    return list(db.session.execute(stmt).scalars())


def decide_payment(payment_id: str, status: str, actor, comment=None) -> Payment:
    return approval.decide(Payment, {"payment_id": payment_id}, status, actor, comment)


def delete_payment(record_id: int, actor) -> None:
    approval.delete_pending(Payment, record_id, actor)


def ledger(start=None, end=None) -> list[dict]:
    """Approved payments oldest first, numbered, with a running total."""
    rows = []
    total = Decimal("0.00")
    for serial, payment in enumerate(approval.approved_between(Payment, start, end), 1):
        total += payment.amount
        rows.append({
            "serial_no": serial,
            "date": payment.date.isoformat(),
            "payment_id": payment.payment_id,
            "amount_paid": float(payment.amount),
            "total_paid": float(total),
            "description": payment.description,
            "created_by": payment.creator.to_ref() if payment.creator else None,
        })
    return rows

