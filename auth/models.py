"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
service do the work; these only own the domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# Fixed policy: every session lives exactly 30 days from issuance.
SESSION_LIFETIME = timedelta(days=30)


@dataclass
class User:
    """An account, keyed by its lower-cased email.

    id, created_at and updated_at are None before the record is written.
    """

    name: str  # stored trimmed
    email: str  # stored lower-cased, globally unique
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Session:
    """A bearer session minted by one successful magic-link verification.

    Never mutated after creation. Expiry is enforced at read time only.
    ip_address / user_agent are provenance metadata and play no part in
    authorization decisions.
    """

    id: str
    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


# ---------------------------------------------------------------------------
# Provider results -- opaque identifiers passed through to the client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MagicLinkIssued:
    provider_user_id: str
    request_id: str


@dataclass(frozen=True)
class MagicLinkAuthenticated:
    """Identity confirmed by the provider for a one-time token.

    email is None when the provider returned no email for the identity.
    """

    email: str | None
    provider_user_id: str
    session_token: str = ""
    session_jwt: str = ""


# ---------------------------------------------------------------------------
# Service results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignUpResult:
    user: User
    issued: MagicLinkIssued


@dataclass(frozen=True)
class SignInResult:
    issued: MagicLinkIssued


@dataclass(frozen=True)
class VerifyResult:
    user: User
    session: Session
    provider: MagicLinkAuthenticated


@dataclass(frozen=True)
class AuthenticatedUser:
    user: User
    session: Session
