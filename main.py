#!/usr/bin/env python3
"""
CareCoord -- admin command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-user ada@example.com Ada Lovelace --confirmed
  python main.py verification-link ada@example.com

Outbound mail is only written to the log, so verification-link is how an
operator hands a confirmation link to a user by some other channel.

Environment variables:
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to carecoord.db beside this file.
  FRONTEND_URL   Base URL of the web client used in mailed links.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import create_verification_token, hash_password
from notify.mailer import verification_link


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    if not password or len(password.encode()) > 72:
        print("  [!] Password must be 1-72 bytes.")
        return 1

    store = UserStore()
    try:
        user_id = store.create_user(
            User(
                email=args.email,
                first_name=args.first_name,
                last_name=args.last_name,
                hashed_password=hash_password(password),
                is_confirmed=args.confirmed,
            )
        )
    except IntegrityError:
        print(f"  [!] {args.email} is associated with an account already.")
        return 1
    finally:
        store.close()

    print(f"Created user {user_id} ({args.email}){' [confirmed]' if args.confirmed else ''}.")
    return 0


def _verification_link(args: argparse.Namespace) -> int:
    store = UserStore()
    try:
        user = store.get_by_email(args.email)
    finally:
        store.close()
    if user is None:
        print(f"  [!] No account for {args.email}.")
        return 1
    if user.is_confirmed:
        print(f"  {args.email} is already confirmed.")
        return 0
    print(verification_link(create_verification_token(user)))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="carecoord",
        description="CareCoord API server and account administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-user ada@example.com Ada Lovelace --confirmed
  python main.py verification-link ada@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account without the register endpoint")
    create.add_argument("email")
    create.add_argument("first_name", metavar="FIRST")
    create.add_argument("last_name", metavar="LAST")
    create.add_argument(
        "--password",
        help="Account password. Prompted for when omitted; prefer the prompt over shell history.",
    )
    create.add_argument("--confirmed", action="store_true", help="Mark the email as already confirmed")
    create.set_defaults(func=_create_user)

    link = sub.add_parser("verification-link", help="Print a fresh email-confirmation link")
    link.add_argument("email")
    link.set_defaults(func=_verification_link)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(1)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
