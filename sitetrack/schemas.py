"""
Request payloads.

Every write endpoint parses its body into one of these dataclasses before
calling a service. ``from_payload`` rejects unknown fields and missing
required fields with a ValidationError that lists every offending name, so
services never see a half-formed request.

Wire names follow the published API (``paymentID``, ``itemId`` ...); the
dataclass attributes are snake_case. A field's wire name is carried in its
``metadata["wire"]`` when the two differ.

Usage:
    payload = PaymentCreatePayload.from_payload(request.get_json(silent=True))
    payment = payment_service.create_payment(payload, actor)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from datetime import date
from decimal import Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email

from sitetrack.core.exceptions import ValidationError
from sitetrack.models.auth import ROLES
from sitetrack.models.library import COMMENT_ITEM_TYPES
from sitetrack.models.records import DECISION_STATUSES
from sitetrack.utils.helpers import parse_date_input


def _wire(name, *, raw=False, loose=False):
    """Field metadata. ``raw`` keeps surrounding whitespace; ``loose`` lets a
    text field take other scalars, which its ``validate`` then checks."""
    return {"wire": name, "raw": raw, "loose": loose}


# Annotations of text fields; JSON values sent for them must be strings
_TEXT_ANNOTATIONS = frozenset({"str", "str | None"})


@dataclass
class Payload:
    """Base class; subclasses declare fields and may override ``validate``."""

    @classmethod
    def from_payload(cls, data):
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValidationError("Request body must be a JSON object")

        by_wire = {f.metadata.get("wire", f.name): f for f in fields(cls)}
        unknown = sorted(k for k in data if k not in by_wire)
        if unknown:
            raise ValidationError(
                f"Unknown field(s): {', '.join(unknown)}",
                details={k: "unknown field" for k in unknown},
            )

        kwargs, missing, not_text = {}, [], []
        for wire, f in by_wire.items():
            value = data.get(wire)
            if isinstance(value, str) and not f.metadata.get("raw"):
                value = value.strip()
            if value is None or value == "":
                if f.default is MISSING and f.default_factory is MISSING:
                    missing.append(wire)
                continue
            if (
                f.type in _TEXT_ANNOTATIONS
                and not f.metadata.get("loose")
                and not isinstance(value, str)
            ):
                not_text.append(wire)
            kwargs[f.name] = value

        if missing:
            raise ValidationError(
                f"Missing required field(s): {', '.join(missing)}",
                details={k: "required" for k in missing},
            )
        if not_text:
            raise ValidationError(
                f"Field(s) must be strings: {', '.join(not_text)}",
                details={k: "must be a string" for k in not_text},
            )

        payload = cls(**kwargs)
        payload.validate()
        return payload

    def validate(self):
        """Hook for type coercion and cross-field checks."""

    def provided(self):
        """Return the optional fields that were actually sent."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _require_text(value, name):
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", details={name: value})
    return value


def _normalise_email(value, name="email"):
    try:
        return validate_email(
            _require_text(value, name), check_deliverability=False
        ).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid {name}: {exc}", details={name: value}) from exc


def _check_role(value):
    if _require_text(value, "role") not in ROLES:
        raise ValidationError(f"role must be one of {sorted(ROLES)}", details={"role": value})
    return value


def _coerce_bool(value, name):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationError(f"{name} must be a boolean", details={name: value})


# ═════════════════════════════════════════════════════════════════════════════
# Accounts
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class LoginPayload(Payload):
    username: str
    password: str = field(metadata=_wire("password", raw=True))


@dataclass
class RegisterPayload(Payload):
    username: str
    email: str
    password: str = field(metadata=_wire("password", raw=True))

    def validate(self):
        self.username = _require_text(self.username, "username")
        self.password = _require_text(self.password, "password")
        self.email = _normalise_email(self.email)


@dataclass
class UserCreatePayload(Payload):
    username: str
    email: str
    password: str = field(metadata=_wire("password", raw=True))
    role: str

    def validate(self):
        self.username = _require_text(self.username, "username")
        self.password = _require_text(self.password, "password")
        self.email = _normalise_email(self.email)
        _check_role(self.role)


@dataclass
class UserUpdatePayload(Payload):
    email: str | None = None
    role: str | None = None
    is_active: bool | None = None
    password: str | None = field(default=None, metadata=_wire("password", raw=True))

    def validate(self):
        if self.email is not None:
            self.email = _normalise_email(self.email)
        if self.role is not None:
            _check_role(self.role)
        if self.is_active is not None:
            self.is_active = _coerce_bool(self.is_active, "is_active")
        if self.password is not None:
            self.password = _require_text(self.password, "password")
        if not self.provided():
            raise ValidationError("No updatable fields supplied")


# ═════════════════════════════════════════════════════════════════════════════
# Submitted records
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class ProgressCreatePayload(Payload):
    """Multipart form fields of a progress submission (files travel separately)."""

    date: str
    description: str

    def validate(self):
        # The raw text is kept: the archive filename is derived from it.
        self.date = _require_text(self.date, "date")
        parse_date_input(self.date, "date")

    @property
    def day(self) -> date:
        return parse_date_input(self.date, "date")


@dataclass
class ProgressUpdatePayload(Payload):
    description: str


@dataclass
class DecisionPayload(Payload):
    status: str
    comments: str | None = None

    def validate(self):
        if _require_text(self.status, "status") not in DECISION_STATUSES:
            raise ValidationError(
                f"status must be one of {sorted(DECISION_STATUSES)}",
                details={"status": self.status},
            )
        if self.comments is not None:
            self.comments = _require_text(self.comments, "comments")


@dataclass
class CommentTextPayload(Payload):
    text: str

    def validate(self):
        self.text = _require_text(self.text, "text")


@dataclass
class PaymentCreatePayload(Payload):
    payment_id: str = field(metadata=_wire("paymentID", loose=True))
    date: str
    amount: Decimal
    description: str | None = None
    remarks: str | None = None

    def validate(self):
        if isinstance(self.payment_id, bool) or not isinstance(self.payment_id, (str, int)):
            raise ValidationError(
                "paymentID must be a string or an integer",
                details={"paymentID": self.payment_id},
            )
        self.payment_id = str(self.payment_id)
        self.date = parse_date_input(self.date, "date")
        if isinstance(self.amount, bool):
            raise ValidationError("amount must be a number", details={"amount": self.amount})
        try:
            amount = Decimal(str(self.amount))
        except InvalidOperation as exc:
            raise ValidationError(
                "amount must be a number", details={"amount": self.amount}
            ) from exc
        if not amount.is_finite() or amount <= 0:
            raise ValidationError(
                "amount must be a positive number", details={"amount": self.amount}
            )
        self.amount = amount.quantize(Decimal("0.01"))


# ═════════════════════════════════════════════════════════════════════════════
# Comments & document library
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class CommentCreatePayload(Payload):
    item_id: int = field(metadata=_wire("itemId"))
    item_type: str = field(metadata=_wire("type"))
    text: str

    def validate(self):
        if isinstance(self.item_id, bool) or not isinstance(self.item_id, (str, int)):
            raise ValidationError("itemId must be an integer", details={"itemId": self.item_id})
        try:
            self.item_id = int(self.item_id)
        except ValueError as exc:
            raise ValidationError(
                "itemId must be an integer", details={"itemId": self.item_id}
            ) from exc
        if _require_text(self.item_type, "type") not in COMMENT_ITEM_TYPES:
            raise ValidationError(
                f"type must be one of {sorted(COMMENT_ITEM_TYPES)}",
                details={"type": self.item_type},
            )
        self.text = _require_text(self.text, "text")


@dataclass
class FileUploadPayload(Payload):
    title: str
