"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Sessions are presented as ``Authorization: Bearer <token>``. There is no
cookie transport.

get_auth_service() returns the AuthService wired into app.state by the
lifespan. get_current_session() resolves the bearer token through it and
lets UnauthorizedError propagate; api/main.py turns that into a 401.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import AuthenticatedUser
from auth.service import AuthService
from auth.validation import extract_bearer_token


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_session(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    """Require a valid, unexpired session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(current: AuthenticatedUser = Depends(get_current_session)): ...

    A missing header, a non-Bearer scheme and an empty token all reach the
    service as None and fail the same way as an unknown token.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    return service.get_authenticated_user(token)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
