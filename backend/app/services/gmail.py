"""
Gmail REST API (v1) mail provider.

Lists alert message ids for a search query and fetches full messages,
decoding them into RawMessage models.

Body selection for a fetched message:
  1. payload.body.data (single-part messages)
  2. the first text/plain part, searching nested multiparts depth-first
  3. the first text/html part, converted to text with BeautifulSoup

Gmail encodes part bodies with URL-safe base64 without padding.
"""

import base64
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from app.models.transaction import RawMessage

logger = logging.getLogger(__name__)

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
_TIMEOUT = 30

# Largest page users.messages.list accepts
LIST_PAGE_SIZE = 500


def decode_body_data(data: Optional[str]) -> str:
    """Decode a Gmail base64url body (padding optional) to text."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def html_to_text(html: str) -> str:
    """Convert an HTML alert body to plain text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text)


def _find_part(part: dict, mime_type: str) -> Optional[dict]:
    if part.get("mimeType") == mime_type and (part.get("body") or {}).get("data"):
        return part
    for child in part.get("parts") or []:
        found = _find_part(child, mime_type)
        if found is not None:
            return found
    return None


def extract_body(payload: Optional[dict]) -> str:
    """Pick the text body out of a Gmail message payload."""
    if not payload:
        return ""

    data = (payload.get("body") or {}).get("data")
    if data:
        text = decode_body_data(data)
        if payload.get("mimeType") == "text/html":
            return html_to_text(text)
        return text

    plain = _find_part(payload, "text/plain")
    if plain is not None:
        return decode_body_data(plain["body"]["data"])

    html = _find_part(payload, "text/html")
    if html is not None:
        return html_to_text(decode_body_data(html["body"]["data"]))

    return ""


def _header(headers: List[dict], name: str) -> Optional[str]:
    for header in headers:
        if (header.get("name") or "").lower() == name:
            return header.get("value")
    return None


def parse_received_at(date_header: Optional[str], internal_date: Optional[str]) -> datetime:
    """
    Work out when a message was received.

    Prefers the Date header, falling back to Gmail's internalDate (epoch
    milliseconds). Always returns an aware datetime.
    """
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except (TypeError, ValueError):
            logger.debug("parse_received_at: bad Date header %r", date_header)

    millis = int(internal_date or 0)
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class GmailClient:
    """Minimal Gmail client scoped to one access token."""

    def __init__(self, access_token: str, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(timeout=_TIMEOUT)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    def list_message_ids(self, query: str, page_size: int = LIST_PAGE_SIZE) -> List[str]:
        """
        Return ids of every message matching a Gmail search query, newest
        first, following nextPageToken until the listing is exhausted.
        """
        ids: List[str] = []
        params = {"q": query, "maxResults": page_size}

        while True:
            response = self._client.get(
                f"{GMAIL_API_URL}/messages",
                params=params,
                headers=self._headers,
            )
            response.raise_for_status()
            body = response.json()
            ids.extend(m["id"] for m in body.get("messages") or [] if m.get("id"))

            page_token = body.get("nextPageToken")
            if not page_token:
                return ids
            params = {**params, "pageToken": page_token}

    def get_message(self, message_id: str) -> RawMessage:
        """Fetch one message and decode subject, body and received time."""
        response = self._client.get(
            f"{GMAIL_API_URL}/messages/{message_id}",
            params={"format": "full"},
            headers=self._headers,
        )
        response.raise_for_status()
        msg = response.json()

        payload = msg.get("payload") or {}
        headers = payload.get("headers") or []

        return RawMessage(
            id=msg.get("id") or message_id,
            subject=_header(headers, "subject") or "",
            body=extract_body(payload),
            received_at=parse_received_at(_header(headers, "date"), msg.get("internalDate")),
        )

    def close(self) -> None:
        self._client.close()
