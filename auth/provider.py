"""
auth/provider.py -- Magic-link provider adapter.

MagicLinkProvider is the boundary the service depends on: two calls, issue
and authenticate. StytchMagicLinkProvider talks to the Stytch REST API with
a shared requests.Session. Tests substitute a fake with the same methods.

Both calls are network round trips that may fail or time out. Every failure
surfaces as ProviderRequestError; the service decides what that means for
the caller. No retries happen here.

Stytch endpoints used:
  POST /magic_links/email/login_or_create -- send a login or sign-up link
  POST /magic_links/authenticate          -- redeem a one-time token
Auth is HTTP basic with project_id:secret.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from auth.models import MagicLinkAuthenticated, MagicLinkIssued
from core.config import Settings

logger = logging.getLogger("linkpass.auth.provider")

STYTCH_TEST_API = "https://test.stytch.com/v1"
STYTCH_LIVE_API = "https://api.stytch.com/v1"


class ProviderRequestError(Exception):
    """A provider call failed.

    error_type is Stytch's machine-readable error (e.g. "unable_to_auth_magic_link")
    or "network_error" / "invalid_response" for failures on our side of the wire.
    """

    def __init__(self, error_type: str, message: str, status_code: int | None = None) -> None:
        self.error_type = error_type
        self.message = message
        self.status_code = status_code
        super().__init__(f"{error_type}: {message}")


class MagicLinkProvider(Protocol):
    def issue_or_login(self, email: str, login_redirect_url: str, signup_redirect_url: str) -> MagicLinkIssued: ...

    def authenticate(self, token: str) -> MagicLinkAuthenticated: ...


def stytch_api_base(project_id: str) -> str:
    """Pick the Stytch environment from the project id prefix."""
    return STYTCH_TEST_API if project_id.startswith("project-test-") else STYTCH_LIVE_API


class StytchMagicLinkProvider:
    """MagicLinkProvider backed by Stytch's email magic links.

    Usage:
        provider = StytchMagicLinkProvider.from_settings(get_settings())
        issued = provider.issue_or_login("jane@example.com", url, url)
        identity = provider.authenticate(token_from_link)
    """

    def __init__(
        self,
        project_id: str,
        secret: str,
        api_base: str = "",
        timeout: float = 10.0,
        session_duration_minutes: int = 0,
    ) -> None:
        self.api_base = (api_base or stytch_api_base(project_id)).rstrip("/")
        self.timeout = timeout
        self.session_duration_minutes = session_duration_minutes
        # One pooled session per provider. These are known API hosts, so a
        # short redirect budget is plenty.
        self._session = requests.Session()
        self._session.auth = (project_id, secret)
        self._session.max_redirects = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "StytchMagicLinkProvider":
        return cls(
            project_id=settings.stytch_project_id,
            secret=settings.stytch_secret,
            api_base=settings.stytch_api_base,
            timeout=settings.stytch_timeout_seconds,
            session_duration_minutes=settings.stytch_session_duration_minutes,
        )

    def issue_or_login(self, email: str, login_redirect_url: str, signup_redirect_url: str) -> MagicLinkIssued:
        """Ask Stytch to email a magic link, creating its user record if needed."""
        data = self._post(
            "/magic_links/email/login_or_create",
            {
                "email": email,
                "login_magic_link_url": login_redirect_url,
                "signup_magic_link_url": signup_redirect_url,
            },
        )
        return MagicLinkIssued(
            provider_user_id=str(data.get("user_id", "")),
            request_id=str(data.get("request_id", "")),
        )

    def authenticate(self, token: str) -> MagicLinkAuthenticated:
        """Redeem a one-time token. Stytch rejects reused or expired tokens.

        The verified email is the first entry of user.emails. A response
        without one comes back with email=None; the service treats that as
        unusable data rather than a provider failure.
        """
        payload: dict[str, Any] = {"token": token}
        if self.session_duration_minutes > 0:
            payload["session_duration_minutes"] = self.session_duration_minutes
        data = self._post("/magic_links/authenticate", payload)

        user = data.get("user") or {}
        emails = user.get("emails") or []
        email = emails[0].get("email") if emails and isinstance(emails[0], dict) else None
        return MagicLinkAuthenticated(
            email=email or None,
            provider_user_id=str(data.get("user_id") or user.get("user_id") or ""),
            session_token=data.get("session_token") or "",
            session_jwt=data.get("session_jwt") or "",
        )

    def close(self) -> None:
        self._session.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            resp = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Stytch request to %s failed: %s", path, e)
            raise ProviderRequestError("network_error", str(e)) from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.ok:
            body = data if isinstance(data, dict) else {}
            raise ProviderRequestError(
                str(body.get("error_type") or f"http_{resp.status_code}"),
                str(body.get("error_message") or resp.reason or "Provider request failed"),
                status_code=resp.status_code,
            )
        if not isinstance(data, dict):
            raise ProviderRequestError("invalid_response", "Provider returned a non-JSON body", resp.status_code)
        return data
