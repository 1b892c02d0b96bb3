"""
api/routes/users.py -- Magic-link sign-up, sign-in, verification and session lookup.

Routes (mounted under /api):
  POST /users/sign-up            -- create account, email a magic link; 201
  POST /users/sign-in            -- email a magic link to an existing account; 200
  POST /users/verify-magic-link  -- redeem the link token, mint a session; 200
  GET  /users/me                 -- resolve Authorization: Bearer <session token>; 200

Handlers are thin: they pull request metadata, call AuthService, and map
the result dataclasses onto the response models. Every failure is an
AuthError raised by the service; api/main.py maps it to a status code and
the shared error envelope.

Security:
  The three POST routes are rate-limited per client IP (AUTH_RATE_LIMIT).
  Cache-Control: no-store on responses that carry a session token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    MeResponse,
    ProviderIssueInfo,
    ProviderSessionInfo,
    SessionInfo,
    SessionToken,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    SignUpResponse,
    UserProfile,
    UserSummary,
    VerifyMagicLinkRequest,
    VerifyMagicLinkResponse,
)
from auth.dependencies import client_ip, get_auth_service, get_current_session
from auth.models import AuthenticatedUser
from auth.service import AuthService

# Auth policy:
# - POST /users/sign-up:            public, rate-limited
# - POST /users/sign-in:            public, rate-limited
# - POST /users/verify-magic-link:  public, rate-limited
# - GET  /users/me:                 requires a bearer session (get_current_session)
router = APIRouter(prefix="/users")


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/sign-up", response_model=SignUpResponse, status_code=201)
def sign_up(
    request: Request,
    body: SignUpRequest,
    service: AuthService = Depends(get_auth_service),
) -> SignUpResponse:
    """Create an account and send it a magic link. No session is created yet."""
    result = service.sign_up(body.name, body.email)
    return SignUpResponse(
        user=UserSummary.from_user(result.user),
        provider=ProviderIssueInfo.from_issued(result.issued),
    )


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/sign-in", response_model=SignInResponse)
def sign_in(
    request: Request,
    body: SignInRequest,
    service: AuthService = Depends(get_auth_service),
) -> SignInResponse:
    """Send a magic link to an existing account."""
    result = service.sign_in(body.email)
    return SignInResponse(provider=ProviderIssueInfo.from_issued(result.issued))


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/verify-magic-link", response_model=VerifyMagicLinkResponse)
def verify_magic_link(
    request: Request,
    response: Response,
    body: VerifyMagicLinkRequest,
    service: AuthService = Depends(get_auth_service),
) -> VerifyMagicLinkResponse:
    """Redeem a magic-link token and return a new 30-day session token."""
    result = service.verify_magic_link(
        body.token,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    response.headers["Cache-Control"] = "no-store"
    return VerifyMagicLinkResponse(
        user=UserSummary.from_user(result.user),
        session=SessionToken(token=result.session.token, expires_at=result.session.expires_at),
        provider=ProviderSessionInfo.from_identity(result.provider),
    )


@router.get("/me", response_model=MeResponse)
def me(
    response: Response,
    current: AuthenticatedUser = Depends(get_current_session),
) -> MeResponse:
    """Return the user and session behind the bearer token. Does not extend the session."""
    response.headers["Cache-Control"] = "no-store"
    return MeResponse(
        user=UserProfile.from_user(current.user),
        session=SessionInfo.from_session(current.session),
    )
