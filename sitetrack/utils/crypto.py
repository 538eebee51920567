"""
Credential helpers.

Accounts created through the API keep their credential as an opaque string
that is compared verbatim. The ``create-admin`` command stores a bcrypt hash
instead, so verification recognises bcrypt ($2a$/$2b$/$2y$) values and checks
those with bcrypt.
"""

import hmac

import bcrypt

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def is_bcrypt_hash(value: str) -> bool:
    return bool(value) and value.startswith(_BCRYPT_PREFIXES)


def verify_password(candidate: str, stored: str) -> bool:
    """Check a login attempt against the stored credential."""
    if not stored or candidate is None:
        return False
    if is_bcrypt_hash(stored):
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            return False
    return hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))
