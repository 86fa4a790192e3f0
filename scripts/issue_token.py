#!/usr/bin/env python3
"""Print a bearer token for one of the demo accounts.

Usage:
    python scripts/issue_token.py --username admin --password admin123

    # Only the token, for use in shell scripts:
    TOKEN=$(python scripts/issue_token.py -u user -p user123 --quiet)
    curl -H "Authorization: Bearer $TOKEN" http://localhost:8000/api/users

Environment Variables:
    JWT_SECRET, JWT_ISSUER, JWT_AUDIENCE, TOKEN_TTL_SECONDS: must match the
    running service, otherwise it rejects the token.
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import Optional

from staffapi.config import Settings
from staffapi.logging import configure_logging
from staffapi.service.audit import AuditLogger
from staffapi.service.auth import IssuedToken, LoginFailure, TokenIssuer


def issue_token(username: str, password: str) -> Optional[IssuedToken]:
    settings = Settings.from_env()
    issuer = TokenIssuer(settings, AuditLogger(settings))
    outcome = issuer.issue(username, password, client_address="cli")
    if isinstance(outcome, LoginFailure):
        print(f"Error: login rejected ({outcome.reason.value})", file=sys.stderr)
        return None
    return outcome


def main():
    parser = argparse.ArgumentParser(
        description="Issue a bearer token for a demo account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-u",
        "--username",
        default=os.environ.get("STAFFAPI_USERNAME"),
        help="Account name (or set STAFFAPI_USERNAME env var)",
    )
    parser.add_argument(
        "-p",
        "--password",
        default=os.environ.get("STAFFAPI_PASSWORD"),
        help="Account password (or set STAFFAPI_PASSWORD env var)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Print only the token",
    )
    args = parser.parse_args()

    if not args.username or not args.password:
        print("Error: --username and --password are required", file=sys.stderr)
        sys.exit(1)

    # Keep stdout clean for the token
    configure_logging(log_level="ERROR", json_output=False)
    outcome = issue_token(args.username, args.password)
    if outcome is None:
        sys.exit(1)

    if args.quiet:
        print(outcome.token)
        return
    print(f"Token for {outcome.username} ({outcome.role}):")
    print(f"  {outcome.token}")
    print(f"  Expires: {outcome.expires_at.isoformat()}")


if __name__ == "__main__":
    main()
