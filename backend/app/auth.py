"""
Shared-secret authentication for operator endpoints.

Callers send "Authorization: Bearer <API_SECRET>".
"""

import hmac
import os
from typing import Optional

from fastapi import HTTPException, Header


def _get_api_secret() -> str:
    return os.getenv("API_SECRET", "")


def verify_api_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Verify the bearer secret on an operator request.

    Raises:
        HTTPException: 401 if the header is missing or malformed,
            403 if the secret does not match (or none is configured).
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized: Missing or invalid token"
        )

    token = authorization[len("Bearer "):]
    expected = _get_api_secret()

    if not expected or not hmac.compare_digest(token, expected):
        raise HTTPException(
            status_code=403,
            detail="Forbidden: Invalid API secret"
        )
