"""
Standalone discussion comments and the administrator document library.

Neither model takes part in the approval workflow:
  - Comment is a cross-entity discussion thread keyed by (item_id, item_type).
    item_id is not a foreign key because it may point at either a progress
    update or a payment.
  - UploadedFile records a document an administrator pushed to external
    storage; the file bytes live only in storage.
"""

from datetime import datetime, timezone

from sitetrack.models import db

COMMENT_ITEM_TYPES = frozenset({"progress", "payment"})


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, nullable=False)
    item_type = db.Column(db.String(20), nullable=False)
    text = db.Column(db.Text, nullable=False)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_comments_item", "item_id", "item_type"),
    )

    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "type": self.item_type,
            "text": self.text,
            "user": self.author.to_ref() if self.author else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class UploadedFile(db.Model):
    __tablename__ = "uploaded_files"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    drive_id = db.Column(db.String(200), unique=True, nullable=False)
    mime_type = db.Column(db.String(100))
    url = db.Column(db.String(500))
    uploaded_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "drive_id": self.drive_id,
            "mime_type": self.mime_type,
            "url": self.url,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
