"""
Submitted records — progress updates and payments.

Both record types share one lifecycle (pending → approved | rejected) and an
ordered comment trail, so the shared columns live on SubmittedRecordMixin and
the approval workflow in services.approval works against either model.

A progress update also embeds its attachment bundle: the ZIP archive that was
uploaded to external storage when the record was created. The bundle columns
are written once and never updated.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from sitetrack.models import db
from sitetrack.models.auth import ROLE_PAYING_AUTHORITY, ROLE_SITE_ENGINEER

# ── Constants ─────────────────────────────────────────────────────────────────

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

RECORD_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
DECISION_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# Comment trail
# ═════════════════════════════════════════════════════════════════════════════


class CommentEntryMixin:
    """One entry in a record's comment trail."""

    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    @declared_attr
    def user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))

    @declared_attr
    def author(cls):
        return db.relationship("User", foreign_keys=f"{cls.__name__}.user_id")

    def to_dict(self):
        return {
            "text": self.text,
            "user": self.author.to_ref() if self.author else None,
            "created_at": _iso(self.created_at),
        }


class ProgressComment(CommentEntryMixin, db.Model):
    __tablename__ = "progress_comments"

    record_id = db.Column(
        db.Integer,
        db.ForeignKey("progress_updates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class PaymentComment(CommentEntryMixin, db.Model):
    __tablename__ = "payment_comments"

    record_id = db.Column(
        db.Integer,
        db.ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Shared lifecycle
# ═════════════════════════════════════════════════════════════════════════════


class SubmittedRecordMixin:
    """Columns shared by every record subject to the approval workflow.

    Subclasses set:
        RESOURCE       display name used in errors and logs
        CREATOR_ROLE   role that submits (and owns) records of this type
        READER_ROLES   non-admin roles that see every record of this type,
                       whatever its status
        ITEM_TYPE      item type used by standalone comments
        comment_class  ORM class of the comment trail entries
    """

    RESOURCE = "Record"
    CREATOR_ROLE = None
    READER_ROLES = frozenset()
    ITEM_TYPE = None
    comment_class = None

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    approved_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @declared_attr
    def created_by(cls):
        # SET NULL keeps the record when an administrator deletes the account.
        return db.Column(
            db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), index=True
        )

    @declared_attr
    def approved_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))

    @declared_attr
    def creator(cls):
        return db.relationship("User", foreign_keys=f"{cls.__name__}.created_by")

    @declared_attr
    def approver(cls):
        return db.relationship("User", foreign_keys=f"{cls.__name__}.approved_by")

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    def _lifecycle_dict(self):
        return {
            "id": self.id,
            "date": _iso(self.date),
            "description": self.description,
            "status": self.status,
            "created_by": self.creator.to_ref() if self.creator else None,
            "approved_by": self.approver.to_ref() if self.approver else None,
            "approved_at": _iso(self.approved_at),
            "comments": [c.to_dict() for c in self.comments],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Progress updates
# ═════════════════════════════════════════════════════════════════════════════


class Progress(SubmittedRecordMixin, db.Model):
    """Site progress update submitted by a site engineer."""

    __tablename__ = "progress_updates"

    RESOURCE = "Progress update"
    CREATOR_ROLE = ROLE_SITE_ENGINEER
    READER_ROLES = frozenset({ROLE_PAYING_AUTHORITY})
    ITEM_TYPE = "progress"
    comment_class = ProgressComment

    progress_id = db.Column(db.String(50), unique=True, nullable=False)

    # Attachment bundle (embedded, immutable after creation)
    zip_drive_id = db.Column(db.String(200))
    zip_url = db.Column(db.String(500))
    zip_mime_type = db.Column(db.String(100))
    zip_filename = db.Column(db.String(255))
    zip_uploaded_at = db.Column(db.DateTime)

    comments = db.relationship(
        "ProgressComment",
        order_by="ProgressComment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def business_key(self):
        return self.progress_id

    def attach_bundle(self, bundle):
        """Copy a packager BundleRef onto the record."""
        self.zip_drive_id = bundle.storage_id
        self.zip_url = bundle.locator
        self.zip_mime_type = bundle.content_type
        self.zip_filename = bundle.filename
        self.zip_uploaded_at = bundle.uploaded_at

    @property
    def bundle(self):
        if not self.zip_drive_id:
            return None
        return {
            "drive_id": self.zip_drive_id,
            "url": self.zip_url,
            "mime_type": self.zip_mime_type,
            "filename": self.zip_filename,
            "uploaded_at": _iso(self.zip_uploaded_at),
        }

    def to_dict(self):
        d = self._lifecycle_dict()
        d["progress_id"] = self.progress_id
        d["zip"] = self.bundle
        return d


# ═════════════════════════════════════════════════════════════════════════════
# Payments
# ═════════════════════════════════════════════════════════════════════════════


class Payment(SubmittedRecordMixin, db.Model):
    """Payment record entered by the paying authority."""

    __tablename__ = "payments"

    RESOURCE = "Payment"
    CREATOR_ROLE = ROLE_PAYING_AUTHORITY
    ITEM_TYPE = "payment"
    comment_class = PaymentComment

    payment_id = db.Column(db.String(100), unique=True, nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    remarks = db.Column(db.Text)

    comments = db.relationship(
        "PaymentComment",
        order_by="PaymentComment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def business_key(self):
        return self.payment_id

    def to_dict(self):
        d = self._lifecycle_dict()
        d["payment_id"] = self.payment_id
        d["amount"] = float(self.amount) if self.amount is not None else None
        d["remarks"] = self.remarks
        return d
