"""
tests/test_provider.py -- Unit tests for auth/provider.py (Stytch adapter).

The adapter's requests.Session is replaced by a MagicMock so no request
leaves the process. Covers request shape, response parsing, and the
mapping of every failure onto ProviderRequestError.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from auth.provider import (
    STYTCH_LIVE_API,
    STYTCH_TEST_API,
    ProviderRequestError,
    StytchMagicLinkProvider,
    stytch_api_base,
)
from core.config import Settings

LINK_URL = "http://localhost:3000/verify-magic-link"


def _response(status: int, body=None, reason: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = reason
    if body is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def stytch() -> StytchMagicLinkProvider:
    provider = StytchMagicLinkProvider("project-test-123", "secret-test-abc", timeout=5.0)
    provider._session = MagicMock()
    return provider


def test_api_base_follows_project_environment():
    assert stytch_api_base("project-test-123") == STYTCH_TEST_API
    assert stytch_api_base("project-live-123") == STYTCH_LIVE_API
    assert StytchMagicLinkProvider("p", "s", api_base="http://stytch.local/v1/").api_base == "http://stytch.local/v1"


def test_session_uses_basic_auth():
    provider = StytchMagicLinkProvider("project-test-123", "secret-test-abc")
    assert provider._session.auth == ("project-test-123", "secret-test-abc")
    provider.close()


def test_from_settings():
    settings = Settings(
        stytch_project_id="project-live-9",
        stytch_secret="s3cret",
        stytch_timeout_seconds=3.5,
        stytch_session_duration_minutes=60,
    )
    provider = StytchMagicLinkProvider.from_settings(settings)
    assert provider.api_base == STYTCH_LIVE_API
    assert provider.timeout == 3.5
    assert provider.session_duration_minutes == 60
    provider.close()


class TestIssueOrLogin:
    def test_posts_email_and_redirects(self, stytch):
        stytch._session.post.return_value = _response(200, {"user_id": "user-test-1", "request_id": "request-id-1"})
        issued = stytch.issue_or_login("jane@example.com", LINK_URL, LINK_URL)
        assert issued.provider_user_id == "user-test-1"
        assert issued.request_id == "request-id-1"
        stytch._session.post.assert_called_once_with(
            f"{STYTCH_TEST_API}/magic_links/email/login_or_create",
            json={
                "email": "jane@example.com",
                "login_magic_link_url": LINK_URL,
                "signup_magic_link_url": LINK_URL,
            },
            timeout=5.0,
        )

    def test_error_body_maps_to_provider_error(self, stytch):
        stytch._session.post.return_value = _response(
            400, {"error_type": "invalid_email", "error_message": "Email format is invalid."}, "Bad Request"
        )
        with pytest.raises(ProviderRequestError) as exc_info:
            stytch.issue_or_login("jane@example.com", LINK_URL, LINK_URL)
        assert exc_info.value.error_type == "invalid_email"
        assert exc_info.value.message == "Email format is invalid."
        assert exc_info.value.status_code == 400

    def test_non_json_error_uses_http_status(self, stytch):
        stytch._session.post.return_value = _response(502, None, "Bad Gateway")
        with pytest.raises(ProviderRequestError) as exc_info:
            stytch.issue_or_login("jane@example.com", LINK_URL, LINK_URL)
        assert exc_info.value.error_type == "http_502"
        assert exc_info.value.message == "Bad Gateway"

    def test_non_json_success_is_invalid_response(self, stytch):
        stytch._session.post.return_value = _response(200, None)
        with pytest.raises(ProviderRequestError) as exc_info:
            stytch.issue_or_login("jane@example.com", LINK_URL, LINK_URL)
        assert exc_info.value.error_type == "invalid_response"

    def test_network_failure(self, stytch):
        stytch._session.post.side_effect = requests.Timeout("read timed out")
        with pytest.raises(ProviderRequestError) as exc_info:
            stytch.issue_or_login("jane@example.com", LINK_URL, LINK_URL)
        assert exc_info.value.error_type == "network_error"
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, requests.Timeout)


class TestAuthenticate:
    def test_returns_first_email_and_provider_session(self, stytch):
        stytch._session.post.return_value = _response(
            200,
            {
                "user_id": "user-test-1",
                "user": {"emails": [{"email": "jane@example.com"}, {"email": "alt@example.com"}]},
                "session_token": "stytch-token",
                "session_jwt": "a.b.c",
            },
        )
        identity = stytch.authenticate("ml-token")
        assert identity.email == "jane@example.com"
        assert identity.provider_user_id == "user-test-1"
        assert identity.session_token == "stytch-token"
        assert identity.session_jwt == "a.b.c"
        stytch._session.post.assert_called_once_with(
            f"{STYTCH_TEST_API}/magic_links/authenticate", json={"token": "ml-token"}, timeout=5.0
        )

    def test_requests_provider_session_when_configured(self, stytch):
        stytch.session_duration_minutes = 60
        stytch._session.post.return_value = _response(200, {"user": {"emails": [{"email": "jane@example.com"}]}})
        stytch.authenticate("ml-token")
        _, kwargs = stytch._session.post.call_args
        assert kwargs["json"] == {"token": "ml-token", "session_duration_minutes": 60}

    @pytest.mark.parametrize(
        "body",
        [
            {"user_id": "user-test-1"},
            {"user": {}},
            {"user": {"emails": []}},
            {"user": {"emails": [{"email": ""}]}},
            {"user": {"emails": ["jane@example.com"]}},
        ],
    )
    def test_missing_email_is_none(self, stytch, body):
        stytch._session.post.return_value = _response(200, body)
        identity = stytch.authenticate("ml-token")
        assert identity.email is None
        assert identity.session_token == ""

    def test_rejected_token(self, stytch):
        stytch._session.post.return_value = _response(
            401,
            {"error_type": "unable_to_auth_magic_link", "error_message": "Magic link could not be authenticated."},
        )
        with pytest.raises(ProviderRequestError) as exc_info:
            stytch.authenticate("ml-used")
        assert exc_info.value.error_type == "unable_to_auth_magic_link"
        assert exc_info.value.status_code == 401
