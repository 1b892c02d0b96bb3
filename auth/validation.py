"""
auth/validation.py -- Input rules for sign-up, sign-in and verification.

Pure functions, no I/O. Each check raises auth.errors.ValidationError with
the message shown to the client.
"""

from __future__ import annotations

import re

from auth.errors import ValidationError

# Deliberately loose: one "@", no whitespace, a dot somewhere in the domain.
# Deliverability is the provider's problem, not ours.
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
_EMAIL_RE = re.compile(EMAIL_PATTERN)

MIN_NAME_LENGTH = 2
MAX_EMAIL_LENGTH = 320


def normalize_email(email: str) -> str:
    return email.lower()


def validate_email(email: str | None) -> str:
    """Return the normalized email or raise ValidationError."""
    if not email:
        raise ValidationError("Please provide an email address.")
    # fullmatch: "$" alone would also accept a trailing "\n".
    if len(email) > MAX_EMAIL_LENGTH or not _EMAIL_RE.fullmatch(email):
        raise ValidationError("Please provide a valid email address.")
    return normalize_email(email)


def validate_sign_up(name: str | None, email: str | None) -> tuple[str, str]:
    """Return (trimmed name, normalized email) or raise ValidationError.

    Presence of both fields is checked first so a request missing the name
    and carrying a bad email reports the missing field.
    """
    if not name or not email:
        raise ValidationError("Please provide both name and email address.")
    normalized = validate_email(email)
    trimmed = name.strip()
    if len(trimmed) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters long.")
    return trimmed, normalized


def validate_magic_link_token(token: str | None) -> str:
    if not token:
        raise ValidationError("Magic link token is missing.")
    return token


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Returns None when the header is absent, uses another scheme, or carries
    an empty token.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None
