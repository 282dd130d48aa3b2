"""
Google OAuth2 refresh-token exchange.
"""

import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
_TIMEOUT = 30


def refresh_access_token(refresh_token: str, client: Optional[httpx.Client] = None) -> Optional[str]:
    """
    Exchange a long-lived refresh token for a short-lived access token.

    Returns None on any failure (revoked grant, network error, bad response).
    Callers treat None as "this account must re-authenticate".
    """
    data = {
        "client_id": os.getenv("GOOGLE_CLIENT_ID", ""),
        "client_secret": os.getenv("GOOGLE_CLIENT_SECRET", ""),
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }

    try:
        if client is not None:
            response = client.post(TOKEN_URL, data=data)
        else:
            response = httpx.post(TOKEN_URL, data=data, timeout=_TIMEOUT)
    except httpx.HTTPError as exc:
        logger.error(f"Error refreshing token: {exc}")
        return None

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if response.status_code != 200:
        logger.error(
            "Token refresh failed: HTTP %s %s",
            response.status_code,
            payload.get("error", "") if isinstance(payload, dict) else "",
        )
        return None

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not access_token:
        logger.error("Token refresh response did not include an access_token")
        return None
    return access_token
