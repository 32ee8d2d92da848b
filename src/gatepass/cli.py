"""Command-line entry point for gatepass."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from gatepass.auth.client.oauth_client import ensure_authenticated


def cmd_login(manual: bool = False) -> int:
    outcome = asyncio.run(ensure_authenticated(manual=manual))

    if outcome.bypassed:
        print("Authentication bypassed (GATEPASS_AUTH_BYPASS=1)")
        return 0
    if outcome.succeeded:
        return 0

    print(f"Authentication failed: {outcome.error}", file=sys.stderr)
    return 1


def cmd_status() -> int:
    # Tokens are never kept, so there is never a session to report
    print("Not authenticated. Run: gatepass login")
    return 0


def cmd_logout() -> int:
    print(
        "Logged out. If you used the browser, clear site cookies to remove "
        "that session."
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatepass",
        description="Interactive OAuth 2.0 login with PKCE (nothing is stored)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gatepass login
  gatepass login --manual
  gatepass -v login
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser(
        "login", help="Authenticate through the browser"
    )
    login_parser.add_argument(
        "--manual",
        action="store_true",
        help="Skip the callback listener and paste the redirected URL instead",
    )
    subparsers.add_parser("status", help="Show authentication status")
    subparsers.add_parser("logout", help="Forget the current session")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    if args.command == "login":
        return cmd_login(manual=args.manual)
    if args.command == "status":
        return cmd_status()
    if args.command == "logout":
        return cmd_logout()

    parser.print_help()
    return 2
