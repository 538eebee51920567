"""
Account model — users and the closed role set.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import validates

from sitetrack.core.exceptions import ValidationError
from sitetrack.models import db

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_ADMIN = "admin"
ROLE_SITE_ENGINEER = "site_engineer"
ROLE_PAYING_AUTHORITY = "paying_authority"
ROLE_VIEWER = "viewer"

ROLES = frozenset({ROLE_ADMIN, ROLE_SITE_ENGINEER, ROLE_PAYING_AUTHORITY, ROLE_VIEWER})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    # Opaque credential. API-created accounts store it as given; the
    # create-admin command stores a bcrypt hash. See utils.crypto.
    password = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(30), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @validates("role")
    def _validate_role(self, key, value):
        if value not in ROLES:
            raise ValidationError(
                f"role must be one of {sorted(ROLES)}", details={"role": value}
            )
        return value

    @validates("username", "email")
    def _strip(self, key, value):
        value = (value or "").strip()
        return value.lower() if key == "email" else value

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_ref(self):
        """Compact author/approver reference embedded in other payloads."""
        return {"id": self.id, "username": self.username}
