"""Unit tests for core/config.py -- Settings validation and derived values."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


@pytest.fixture(autouse=True)
def _no_stytch_env(monkeypatch):
    monkeypatch.delenv("STYTCH_PROJECT_ID", raising=False)
    monkeypatch.delenv("STYTCH_SECRET", raising=False)


def test_production_requires_stytch_credentials():
    with pytest.raises(ValidationError, match="STYTCH_PROJECT_ID and STYTCH_SECRET are required"):
        Settings(debug=False)


def test_debug_mode_allows_missing_credentials():
    settings = Settings(debug=True)
    assert settings.stytch_project_id == ""


def test_timeout_must_be_positive():
    with pytest.raises(ValidationError, match="must be positive"):
        Settings(debug=True, stytch_timeout_seconds=0)


def test_redirect_urls_default_to_frontend():
    settings = Settings(debug=True, frontend_url="https://app.example.com/")
    assert settings.magic_link_login_url == "https://app.example.com/verify-magic-link"
    assert settings.magic_link_signup_url == "https://app.example.com/verify-magic-link"


def test_explicit_redirect_urls_win():
    settings = Settings(
        debug=True,
        login_redirect_url="https://app.example.com/login/callback",
        signup_redirect_url="https://app.example.com/welcome",
    )
    assert settings.magic_link_login_url == "https://app.example.com/login/callback"
    assert settings.magic_link_signup_url == "https://app.example.com/welcome"


def test_comma_separated_lists():
    settings = Settings(debug=True, cors_allow_origins=" http://a.test , ,http://b.test", allowed_hosts="api.test")
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
    assert settings.allowed_hosts_list == ["api.test"]
