"""
tests/conftest.py -- Shared test fixtures for LinkPass.

This module provides:
  - FakeMagicLinkProvider: in-process stand-in for Stytch that records calls
    and hands out one-time tokens
  - FixedClock: a settable clock injected into AuthService for expiry tests
  - store / provider / clock / events / service: unit-level fixtures
  - api: TestClient over the real FastAPI app with a patched lifespan

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each API test gets its own uniquely named database.

DEBUG must be set before any api/ import so get_settings() does not demand
real Stytch credentials.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

# CRITICAL: Set DEBUG before any api/core import so Settings() accepts
# missing Stytch credentials.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.events import AuthEvent
from auth.models import MagicLinkAuthenticated, MagicLinkIssued
from auth.provider import ProviderRequestError
from auth.service import AuthService
from auth.store import AuthStore

LOGIN_URL = "http://localhost:3000/verify-magic-link"
SIGNUP_URL = "http://localhost:3000/verify-magic-link"

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeMagicLinkProvider:
    """MagicLinkProvider double.

    issue_or_login() mints a one-time token for the email and records the
    call. authenticate() redeems a token exactly once, like Stytch does.

    Set issue_error / authenticate_error to make the next calls fail.
    Set authenticate_email to override the email the provider "verifies"
    (use "" to simulate an identity without an email).
    """

    def __init__(self) -> None:
        self.issue_calls: list[tuple[str, str, str]] = []
        self.authenticate_calls: list[str] = []
        self.tokens: dict[str, str] = {}
        self.issue_error: Optional[ProviderRequestError] = None
        self.authenticate_error: Optional[ProviderRequestError] = None
        self.authenticate_email: Optional[str] = None

    def issue_or_login(self, email: str, login_redirect_url: str, signup_redirect_url: str) -> MagicLinkIssued:
        self.issue_calls.append((email, login_redirect_url, signup_redirect_url))
        if self.issue_error is not None:
            raise self.issue_error
        token = f"ml-{uuid.uuid4().hex}"
        self.tokens[token] = email
        return MagicLinkIssued(provider_user_id=f"user-test-{email}", request_id=f"request-test-{len(self.issue_calls)}")

    def authenticate(self, token: str) -> MagicLinkAuthenticated:
        self.authenticate_calls.append(token)
        if self.authenticate_error is not None:
            raise self.authenticate_error
        email = self.tokens.pop(token, None)
        if email is None:
            raise ProviderRequestError("unable_to_auth_magic_link", "Magic link could not be authenticated.", 401)
        if self.authenticate_email is not None:
            email = self.authenticate_email
        return MagicLinkAuthenticated(
            email=email,
            provider_user_id=f"user-test-{email}",
            session_token="stytch-session-token",
            session_jwt="stytch.session.jwt",
        )

    def last_token_for(self, email: str) -> str:
        """Return the most recent unredeemed token issued to email."""
        matches = [t for t, e in self.tokens.items() if e == email]
        assert matches, f"No magic link issued to {email}"
        return matches[-1]


class FixedClock:
    """Callable clock whose time only moves when a test moves it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AuthStore, None, None]:
    s = AuthStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def provider() -> FakeMagicLinkProvider:
    return FakeMagicLinkProvider()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def events() -> list[AuthEvent]:
    return []


@pytest.fixture
def service(store, provider, clock, events) -> AuthService:
    return AuthService(
        store,
        store,
        provider,
        login_redirect_url=LOGIN_URL,
        signup_redirect_url=SIGNUP_URL,
        observer=events.append,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


class ApiHarness(NamedTuple):
    client: TestClient
    provider: FakeMagicLinkProvider
    store: AuthStore
    clock: FixedClock


def _patch_lifespan(service: AuthService, store: AuthStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and service into app.state so routes never build
    a Stytch client or touch the on-disk database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def api() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness over the real app with isolated state.

    Rate limiting is switched off so tests can call the POST routes freely.
    """
    store = AuthStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    provider = FakeMagicLinkProvider()
    clock = FixedClock(datetime.now(timezone.utc))
    service = AuthService(
        store,
        store,
        provider,
        login_redirect_url=LOGIN_URL,
        signup_redirect_url=SIGNUP_URL,
        clock=clock,
    )

    app.router.lifespan_context = _patch_lifespan(service, store)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, provider=provider, store=store, clock=clock)

    limiter.enabled = True
    store.close()
