"""
API request and response models for LinkPass REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are Optional on purpose: presence and format checks belong to
AuthService, which reports them as 400 validation_error. Declaring them
required here would turn a missing field into FastAPI's 422 instead.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import MagicLinkAuthenticated, MagicLinkIssued, Session, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/users/sign-up."""

    name: Optional[str] = None
    email: Optional[str] = None


class SignInRequest(BaseModel):
    """Request body for POST /api/users/sign-in."""

    email: Optional[str] = None


class VerifyMagicLinkRequest(BaseModel):
    """Request body for POST /api/users/verify-magic-link.

    token is the value Stytch appends to the redirect URL (?token=...).
    """

    token: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, name=user.name, email=user.email)


class UserProfile(UserSummary):
    """UserSummary plus timestamps -- returned by GET /me."""

    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class ProviderIssueInfo(BaseModel):
    """Opaque identifiers from the magic-link provider's send call."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    request_id: str

    @classmethod
    def from_issued(cls, issued: MagicLinkIssued) -> "ProviderIssueInfo":
        return cls(user_id=issued.provider_user_id, request_id=issued.request_id)


class ProviderSessionInfo(BaseModel):
    """The provider's own session identifiers, passed through uninterpreted."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    session_token: str
    session_jwt: str

    @classmethod
    def from_identity(cls, identity: MagicLinkAuthenticated) -> "ProviderSessionInfo":
        return cls(
            user_id=identity.provider_user_id,
            session_token=identity.session_token,
            session_jwt=identity.session_jwt,
        )


class SessionToken(BaseModel):
    """The bearer credential handed to the client after verification."""

    model_config = ConfigDict(frozen=True)

    token: str
    expires_at: datetime


class SessionInfo(SessionToken):
    id: str
    created_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionInfo":
        return cls(
            id=session.id,
            token=session.token,
            expires_at=session.expires_at,
            created_at=session.created_at,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
        )


class SignUpResponse(BaseModel):
    success: bool = True
    message: str = "Magic link sent to your email."
    user: UserSummary
    provider: ProviderIssueInfo


class SignInResponse(BaseModel):
    success: bool = True
    message: str = "Magic link sent successfully."
    provider: ProviderIssueInfo


class VerifyMagicLinkResponse(BaseModel):
    success: bool = True
    message: str = "Magic link verified successfully."
    user: UserSummary
    session: SessionToken
    provider: ProviderSessionInfo


class MeResponse(BaseModel):
    success: bool = True
    user: UserProfile
    session: SessionInfo


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    environment: str
    uptime_seconds: float
    components: dict[str, str]
