#!/usr/bin/env python3
"""
LinkPass -- passwordless email magic-link authentication service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 3001 --reload
  python main.py send-link jane@example.com
  python main.py whoami 3f1c...e9

Environment variables (see core/config.py for the full list):
  STYTCH_PROJECT_ID / STYTCH_SECRET   Magic-link provider credentials.
  DATABASE_URL                        SQLAlchemy URL (default: SQLite file).
  FRONTEND_URL                        Base URL the emailed link points at.
  DEBUG=true                          Development mode; credentials optional.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from auth.errors import AuthError
from auth.provider import StytchMagicLinkProvider
from auth.service import AuthService
from auth.store import AuthStore
from core.config import get_settings


def _build_service() -> AuthService:
    """Wire the same stack the API lifespan builds, for one-off commands."""
    settings = get_settings()
    store = AuthStore(settings.database_url)
    return AuthService(
        store,
        store,
        StytchMagicLinkProvider.from_settings(settings),
        login_redirect_url=settings.magic_link_login_url,
        signup_redirect_url=settings.magic_link_signup_url,
    )


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _send_link(args: argparse.Namespace) -> int:
    """Run the sign-in flow for an existing account from the terminal."""
    result = _build_service().sign_in(args.email)
    print(f"  Magic link sent to {args.email.lower()} (request {result.issued.request_id}).")
    return 0


def _whoami(args: argparse.Namespace) -> int:
    """Resolve a session token the same way GET /api/users/me does."""
    current = _build_service().get_authenticated_user(args.token)
    print(f"  User:     {current.user.name} <{current.user.email}> ({current.user.id})")
    print(f"  Session:  {current.session.id}")
    print(f"  Created:  {current.session.created_at.isoformat()}")
    print(f"  Expires:  {current.session.expires_at.isoformat()}")
    if current.session.ip_address or current.session.user_agent:
        print(f"  Client:   {current.session.ip_address or '-'} {current.session.user_agent or ''}".rstrip())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkpass",
        description="Passwordless email magic-link authentication service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 3001
  python main.py send-link jane@example.com
  python main.py whoami <session-token>
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=3001, help="Port (default: 3001)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_serve)

    send = sub.add_parser("send-link", help="Email a magic link to an existing account")
    send.add_argument("email", help="Account email address")
    send.set_defaults(func=_send_link)

    who = sub.add_parser("whoami", help="Show the user and session behind a session token")
    who.add_argument("token", help="Session token returned by verify-magic-link")
    who.set_defaults(func=_whoami)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    try:
        return args.func(args)
    except AuthError as e:
        print(f"  [!] {e.code}: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
