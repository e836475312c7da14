#!/usr/bin/env python3
"""
AuthGate -- credential authentication backend.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 4000
  python main.py serve --reload
  python main.py create-user admin@example.com
  python main.py create-user admin@example.com --password 's3cret!'

create-user goes through the same validation, normalization and hashing as
POST /api/v1/auth/register, so accounts created here are indistinguishable
from self-registered ones. Without --password the password is prompted for.

Configuration comes from the environment / .env (see core/config.py).
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

logger = logging.getLogger("authgate.cli")


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    from api.main import build_auth_service
    from auth.errors import AuthError, ErrorKind
    from auth.store import UserStore
    from core.config import get_settings

    password: Optional[str] = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            print("  [!] Passwords do not match.")
            return 1

    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        user = build_auth_service(settings, store).register(args.email, password)
    except AuthError as exc:
        if exc.kind is not ErrorKind.VALIDATION:
            raise
        for err in exc.fields:
            print(f"  [!] {err.field}: {err.message}")
        return 1
    finally:
        store.close()

    logger.info("Created user %s (id=%s)", user.email, user.id)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="AuthGate -- registration, login and token refresh over HTTP.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=4000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account from the command line")
    create.add_argument("email")
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.set_defaults(func=_create_user)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
