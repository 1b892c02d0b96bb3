"""
auth/service.py -- The authentication state machine.

    Anonymous --sign_up/sign_in--> LinkRequested --verify_magic_link--> Verified(Session)
    Verified(Session) --get_authenticated_user--> Authenticated
    LinkRequested / Authenticated --> Invalid | Expired

AuthService owns every business rule of the flow: input validation, email
normalization, account uniqueness, session minting and expiry. It composes
an IdentityStore, a SessionStore and a MagicLinkProvider, all injected, so
the whole flow runs in tests without a network or a real database.

Error policy:
  Validation runs before any I/O. Store and provider failures are caught
  here and re-raised as AuthError subclasses (the original exception stays
  on __cause__). Nothing is retried.

  sign_up does not roll back the user row when the provider call fails.
  The account exists and the user can request a new link with sign_in.

Concurrency:
  Two sign-ups for the same email can both pass the existence check. The
  UNIQUE(email) constraint decides: the losing insert raises IntegrityError
  and is reported as AlreadyExistsError.

Observability:
  Failures (and successful sign-up / sign-in / verify) are emitted as
  AuthEvents to the observer passed in. The service has no logger of its own.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth import events
from auth.errors import (
    AlreadyExistsError,
    AuthError,
    AuthProviderError,
    InternalError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    ProviderDataError,
    SessionPersistError,
    UnauthorizedError,
)
from auth.events import AuthEvent, AuthObserver
from auth.models import (
    SESSION_LIFETIME,
    AuthenticatedUser,
    MagicLinkIssued,
    Session,
    SignInResult,
    SignUpResult,
    User,
    VerifyResult,
)
from auth.provider import MagicLinkProvider, ProviderRequestError
from auth.store import IdentityStore, SessionStore
from auth.validation import normalize_email, validate_email, validate_magic_link_token, validate_sign_up


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_token() -> str:
    """256 bits from the OS CSPRNG, hex encoded (64 chars)."""
    return secrets.token_hex(32)


class AuthService:
    """Sign-up, sign-in, magic-link verification and session lookup.

    Usage:
        service = AuthService(store, store, provider,
                              login_redirect_url=url, signup_redirect_url=url)
        service.sign_up("Jane Doe", "jane@example.com")
        result = service.verify_magic_link(token_from_email)
        service.get_authenticated_user(result.session.token)
    """

    def __init__(
        self,
        users: IdentityStore,
        sessions: SessionStore,
        provider: MagicLinkProvider,
        *,
        login_redirect_url: str,
        signup_redirect_url: str,
        observer: AuthObserver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._provider = provider
        self.login_redirect_url = login_redirect_url
        self.signup_redirect_url = signup_redirect_url
        self._observer = observer or events.log_event
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Anonymous -> LinkRequested
    # ------------------------------------------------------------------

    def sign_up(self, name: str | None, email: str | None) -> SignUpResult:
        """Create an account and email it a magic link.

        Raises ValidationError, AlreadyExistsError, AuthProviderError or
        InternalError. No session is created here.
        """
        with self._report(events.SIGN_UP_FAILED, email):
            trimmed, normalized = validate_sign_up(name, email)

            try:
                if self._users.find_user_by_email(normalized) is not None:
                    raise AlreadyExistsError()
                user = self._users.insert_user(User(name=trimmed, email=normalized))
            except IntegrityError as exc:
                # Lost the race against a concurrent sign-up for this email.
                raise AlreadyExistsError() from exc
            except SQLAlchemyError as exc:
                raise InternalError("Failed to create user account.") from exc

            issued = self._issue_link(normalized)

        self._emit(AuthEvent(name=events.SIGN_UP_SUCCEEDED, email=normalized, user_id=user.id))
        return SignUpResult(user=user, issued=issued)

    def sign_in(self, email: str | None) -> SignInResult:
        """Email a magic link to an existing account.

        Raises ValidationError, NotFoundError (provider not called),
        AuthProviderError or InternalError.
        """
        with self._report(events.SIGN_IN_FAILED, email):
            normalized = validate_email(email)

            try:
                user = self._users.find_user_by_email(normalized)
            except SQLAlchemyError as exc:
                raise InternalError() from exc
            if user is None:
                raise NotFoundError()

            issued = self._issue_link(normalized)

        self._emit(AuthEvent(name=events.SIGN_IN_SUCCEEDED, email=normalized, user_id=user.id))
        return SignInResult(issued=issued)

    # ------------------------------------------------------------------
    # LinkRequested -> Verified(Session)
    # ------------------------------------------------------------------

    def verify_magic_link(
        self,
        token: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerifyResult:
        """Redeem a one-time token and mint a 30-day session for its owner.

        Every verification creates a new session; earlier sessions for the
        same user stay valid until they expire.

        Raises ValidationError, InvalidOrExpiredTokenError, ProviderDataError,
        NotFoundError, SessionPersistError or InternalError.
        """
        email: str | None = None
        with self._report(events.VERIFY_FAILED, lambda: email):
            token = validate_magic_link_token(token)

            try:
                identity = self._provider.authenticate(token)
            except ProviderRequestError as exc:
                raise InvalidOrExpiredTokenError() from exc

            if not identity.email:
                raise ProviderDataError()
            email = normalize_email(identity.email)

            try:
                user = self._users.find_user_by_email(email)
            except SQLAlchemyError as exc:
                raise InternalError() from exc
            if user is None:
                # The provider vouches for the address but the account is gone.
                raise NotFoundError("User account not found.")

            session = self._mint_session(user, ip_address, user_agent)

        self._emit(AuthEvent(name=events.VERIFY_SUCCEEDED, email=email, user_id=user.id))
        return VerifyResult(user=user, session=session, provider=identity)

    # ------------------------------------------------------------------
    # Verified(Session) -> Authenticated
    # ------------------------------------------------------------------

    def get_authenticated_user(self, session_token: str | None) -> AuthenticatedUser:
        """Resolve a bearer token to its user and session.

        Pure read: expires_at is never refreshed. A session is valid up to and
        including its expiry instant.

        Unknown tokens and sessions whose user no longer exists raise the same
        UnauthorizedError, so callers cannot tell them apart.
        """
        with self._report(events.SESSION_REJECTED):
            if not session_token:
                raise UnauthorizedError("Session token is required.")

            try:
                found = self._sessions.find_session_with_user_by_token(session_token)
            except SQLAlchemyError as exc:
                raise InternalError() from exc
            if found is None:
                raise UnauthorizedError()

            session, user = found
            if self._clock() > session.expires_at:
                raise UnauthorizedError("Session has expired.")

        return AuthenticatedUser(user=user, session=session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_link(self, email: str) -> MagicLinkIssued:
        try:
            return self._provider.issue_or_login(email, self.login_redirect_url, self.signup_redirect_url)
        except ProviderRequestError as exc:
            raise AuthProviderError() from exc

    def _mint_session(self, user: User, ip_address: str | None, user_agent: str | None) -> Session:
        now = self._clock()
        session = Session(
            id=str(uuid.uuid4()),
            token=generate_session_token(),
            user_id=user.id,
            expires_at=now + SESSION_LIFETIME,
            created_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            stored = self._sessions.insert_session(session)
        except SQLAlchemyError as exc:
            raise SessionPersistError() from exc
        if stored is None:
            raise SessionPersistError()
        return stored

    def _emit(self, event: AuthEvent) -> None:
        self._observer(event)

    @contextmanager
    def _report(self, name: str, email: str | None | Callable[[], str | None] = None) -> Iterator[None]:
        """Emit a failure event for any AuthError raised inside the block, then re-raise.

        email may be a callable for flows that only learn the address midway.
        """
        try:
            yield
        except AuthError as exc:
            detail: dict = {}
            if exc.__cause__ is not None:
                detail["cause"] = f"{type(exc.__cause__).__name__}: {exc.__cause__}"
            self._emit(
                AuthEvent(
                    name=name,
                    email=email() if callable(email) else email,
                    error_code=exc.code,
                    detail=detail,
                )
            )
            raise
