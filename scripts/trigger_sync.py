#!/usr/bin/env python3
"""
Dev helper: trigger a sync cycle on a running backend and print the result.

Usage
-----
# Trigger localhost:3003
python scripts/trigger_sync.py

# Target a different backend URL
python scripts/trigger_sync.py --url http://staging.example.com

Environment / .env
------------------
API_SECRET   Shared secret sent as "Authorization: Bearer <API_SECRET>".
"""

import argparse
import json
import os
import sys

import httpx
from dotenv import load_dotenv


def _print_response(response: httpx.Response) -> None:
    symbol = "OK" if response.status_code == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Trigger a ledger sync cycle")
    parser.add_argument("--url", default="http://localhost:3003", help="backend base URL")
    parser.add_argument("--timeout", type=float, default=300, help="request timeout in seconds")
    args = parser.parse_args(argv)

    secret = os.getenv("API_SECRET", "")
    if not secret:
        print("ERROR: API_SECRET is not set", file=sys.stderr)
        return 1

    endpoint = f"{args.url.rstrip('/')}/api/trigger-sync"
    print(f"POST {endpoint}")

    try:
        response = httpx.post(
            endpoint,
            headers={"Authorization": f"Bearer {secret}"},
            timeout=args.timeout,
        )
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn app.main:app --port 3003",
            file=sys.stderr,
        )
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
