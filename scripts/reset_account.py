#!/usr/bin/env python3
"""
Operator helper: reset account state in the Supabase users table.

A sync that crashes mid-cycle leaves is_processing set, and the account is
skipped by every later cycle until the flag is cleared.

Usage
-----
# Clear a stuck busy flag for one account
python scripts/reset_account.py --processing user@example.com

# Clear every stuck busy flag
python scripts/reset_account.py --processing

# Force one account to re-authenticate with Google (deactivates it and
# blanks its stored tokens)
python scripts/reset_account.py --auth user@example.com

# Force every active account to re-authenticate
python scripts/reset_account.py --auth

Environment / .env
------------------
SUPABASE_URL, SUPABASE_SERVICE_KEY   Required.
"""

import argparse
import sys

from app.services.account_registry import AccountRegistry


def main(argv=None, registry=None) -> int:
    parser = argparse.ArgumentParser(
        description="Reset account sync state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--processing",
        action="store_true",
        help="clear the is_processing flag",
    )
    mode.add_argument(
        "--auth",
        action="store_true",
        help="deactivate and clear Google tokens",
    )
    parser.add_argument(
        "email",
        nargs="?",
        default=None,
        help="account google_email (default: all matching accounts)",
    )
    args = parser.parse_args(argv)

    registry = registry or AccountRegistry()
    target = args.email or "all accounts"

    try:
        if args.processing:
            count = registry.reset_processing(args.email)
            action = "Cleared is_processing"
        else:
            count = registry.reset_auth(args.email)
            action = "Reset authentication"
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.email and count == 0:
        print(f"Account not found: {args.email}", file=sys.stderr)
        return 1

    print(f"{action} for {count} account(s) ({target})")
    if args.auth:
        print("   Affected users need to re-authenticate on the frontend.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
