#!/usr/bin/env python3
"""
sessiongate -- command-line session agent.

Signs in against a running sessiongate server, prints who you are, and
optionally keeps the session alive (proactive renewal plus periodic
revalidation) for a while before signing out. Secrets stay in the client's
cookie jar and are never printed.

Usage:
  python main.py --username emilys
  python main.py --username emilys --json
  python main.py --username emilys --watch 3600
  python main.py --base-url http://localhost:8000 --username emilys

Environment variables:
  SESSIONGATE_PASSWORD  Password to use instead of the interactive prompt.
  ACCESS_WINDOW_MINUTES / RENEWAL_SAFETY_MARGIN_MINUTES / RECONCILE_STALE_SECONDS
                        Timing, read through core.config like the server does.
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from typing import Optional

from auth.errors import AuthError, InvalidCredentials
from auth.models import Principal
from client.session import ClientAuth
from core.config import get_settings

logger = logging.getLogger("sessiongate.cli")


def _print_principal(principal: Principal, as_json: bool) -> None:
    if as_json:
        print(json.dumps(principal.public_dict(), indent=2))
        return
    print(f"\n  Signed in as {principal.username} (id {principal.id})")
    print(f"  Name:  {principal.first_name} {principal.last_name}")
    print(f"  Email: {principal.email}\n")


async def run(base_url: str, username: str, password: str, watch: float, as_json: bool) -> int:
    auth = ClientAuth.from_settings(base_url)
    try:
        state = await auth.start(revalidate=watch > 0)
        if state.authenticated:
            logger.info("Existing session found for %s", state.principal.username)

        try:
            principal = await auth.login(username, password)
        except InvalidCredentials as exc:
            print(f"  [!] {exc.message}", file=sys.stderr)
            return 1
        except AuthError as exc:
            print(f"  [!] Login failed: {exc.message}", file=sys.stderr)
            return 2

        _print_principal(principal, as_json)

        if watch > 0:
            print(f"  Keeping the session alive for {watch:.0f}s (Ctrl-C to stop)...")
            try:
                await asyncio.sleep(watch)
            except asyncio.CancelledError:
                pass
            if not auth.state.authenticated:
                print("  [!] Session ended while watching.", file=sys.stderr)
                return 3

        await auth.logout()
        return 0
    finally:
        await auth.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sessiongate",
        description="Sign in to a sessiongate server and keep the session alive.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --username emilys
  python main.py --username emilys --watch 3600
  SESSIONGATE_PASSWORD=emilyspass python main.py --username emilys --json
        """,
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        metavar="URL",
        help="Base URL of the sessiongate server (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--username",
        required=True,
        help="Username to sign in with",
    )
    parser.add_argument(
        "--watch",
        type=float,
        default=0,
        metavar="SECONDS",
        help="Keep the session alive for this many seconds before signing out",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the signed-in profile as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log renewal and revalidation activity",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_settings().effective_log_level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    password: Optional[str] = os.environ.get("SESSIONGATE_PASSWORD") or None
    if password is None:
        password = getpass.getpass("Password: ")

    try:
        code = asyncio.run(run(args.base_url, args.username, password, args.watch, args.json))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
