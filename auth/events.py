"""
auth/events.py -- Structured events emitted by the authentication service.

AuthService never writes logs itself. It hands an AuthEvent to whatever
observer the caller supplied; log_event is the default and writes to the
"linkpass.auth" logger. Tests pass a list's append method instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger("linkpass.auth")

# Event names
SIGN_UP_SUCCEEDED = "auth.sign_up"
SIGN_UP_FAILED = "auth.sign_up_failed"
SIGN_IN_SUCCEEDED = "auth.sign_in"
SIGN_IN_FAILED = "auth.sign_in_failed"
VERIFY_SUCCEEDED = "auth.verify"
VERIFY_FAILED = "auth.verify_failed"
SESSION_REJECTED = "auth.session_rejected"


@dataclass(frozen=True)
class AuthEvent:
    """One observable step of the auth flow.

    error_code is the AuthError.code reported to the client (None on success).
    detail carries operator-only context such as the raw provider error; it
    is never sent to the client.
    """

    name: str
    email: str | None = None
    user_id: str | None = None
    error_code: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.error_code is not None


AuthObserver = Callable[[AuthEvent], None]


def mask_email(email: str | None) -> str:
    """Return "j***@example.com" so logs identify an account without storing the address."""
    if not email or "@" not in email:
        return "-"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def log_event(event: AuthEvent) -> None:
    """Default observer: failures at WARNING, successes at INFO."""
    if event.failed:
        logger.warning(
            "%s email=%s user_id=%s code=%s detail=%s",
            event.name,
            mask_email(event.email),
            event.user_id or "-",
            event.error_code,
            event.detail,
        )
    else:
        logger.info("%s email=%s user_id=%s", event.name, mask_email(event.email), event.user_id or "-")
