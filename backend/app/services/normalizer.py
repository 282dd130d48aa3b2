"""
Normalization service for extracted alert tokens.

Converts the raw strings found by the pattern extractor into typed values
(Decimal amounts, TransactionType, PaymentMethod) and into the canonical
ledger timestamp format.

The ledger timestamp format is a storage contract shared with the Sheets
consumers and must not change:

    DD/MM/YYYY H:MM AM|PM     e.g. "12/01/2026 6:51 PM", "05/03/2026 12:07 AM"

Day, month, year and minute are zero-padded; the hour is not.
"""

import logging
import os
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo

from app.models.transaction import PaymentMethod, TransactionType

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_TIMEZONE = "Asia/Kolkata"

_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{2,4})$")

# Formats tried for written dates like "12 Jan 2026" (comma already removed)
_TEXT_DATE_FORMATS = [
    "%d %b %Y",    # "12 Jan 2026"
    "%d %B %Y",    # "12 January 2026"
    "%b %d %Y",    # "Jan 12 2026"
    "%B %d %Y",    # "January 12 2026"
]

_DIRECTION_MAP = {
    "credited": TransactionType.CREDIT,
    "credit": TransactionType.CREDIT,
    "debited": TransactionType.DEBIT,
    "debit": TransactionType.DEBIT,
}


def get_ledger_timezone() -> ZoneInfo:
    """Return the timezone used for timestamps derived from email headers."""
    return ZoneInfo(os.getenv("LEDGER_TIMEZONE", DEFAULT_LEDGER_TIMEZONE))


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse a currency amount token into a Decimal.

    Examples:
        "1,23,456.78" -> Decimal("123456.78")
        "500"         -> Decimal("500")
        "10,000."     -> Decimal("10000")
        ","           -> None
        None          -> None
    """
    if not value:
        return None

    cleaned = value.replace(",", "").strip().rstrip(".")
    if not cleaned:
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        logger.debug("parse_amount: could not convert %r", value)
        return None

    if not amount.is_finite():
        return None
    return amount


def parse_direction(value: Optional[str]) -> Optional[TransactionType]:
    """Map 'credited'/'debited' (any case) to a TransactionType."""
    if not value:
        return None
    return _DIRECTION_MAP.get(value.strip().lower())


def parse_method(value: Optional[str]) -> PaymentMethod:
    """Map a method token to the closed PaymentMethod set (default Other)."""
    if not value:
        return PaymentMethod.OTHER
    for method in PaymentMethod:
        if method.value.lower() == value.strip().lower():
            return method
    return PaymentMethod.OTHER


def _parse_date(token: str) -> Optional[datetime]:
    token = token.strip()

    match = _NUMERIC_DATE_RE.match(token)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
        try:
            return datetime(year, month, day)
        except ValueError:
            logger.debug("_parse_date: invalid day-month-year %r", token)
            return None

    text = token.replace(",", " ")
    text = re.sub(r"\s+", " ", text).strip()
    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    logger.debug("_parse_date: could not parse date token %r", token)
    return None


def parse_date_token(date_token: Optional[str], time_token: Optional[str] = None) -> Optional[datetime]:
    """
    Parse the date (and optional time) printed in an alert body.

    Slash- or dash-separated dates are day-month-year; two-digit years are
    20YY. Written dates like "12 Jan, 2026" are also accepted. A time token
    "HH:MM[:SS]" is overlaid on the date; an unusable time leaves midnight.

    Returns a naive datetime (wall-clock time as printed by the bank), or
    None when there is no usable date.
    """
    if not date_token:
        return None

    parsed = _parse_date(date_token)
    if parsed is None:
        return None

    if time_token:
        parts = time_token.strip().split(":")
        try:
            hour = int(parts[0])
            minute = int(parts[1])
            second = int(parts[2]) if len(parts) > 2 else 0
            parsed = parsed.replace(hour=hour, minute=minute, second=second)
        except (ValueError, IndexError):
            logger.debug("parse_date_token: ignoring invalid time %r", time_token)

    return parsed


def format_local_datetime(value: datetime) -> str:
    """
    Format a wall-clock datetime as "DD/MM/YYYY H:MM AM|PM".

    Examples:
        datetime(2026, 1, 12, 18, 51) -> "12/01/2026 6:51 PM"
        datetime(2026, 3, 5, 0, 7)    -> "05/03/2026 12:07 AM"
        datetime(2026, 3, 5, 12, 0)   -> "05/03/2026 12:00 PM"
    """
    meridiem = "PM" if value.hour >= 12 else "AM"
    hour = value.hour % 12 or 12
    return (
        f"{value.day:02d}/{value.month:02d}/{value.year:04d} "
        f"{hour}:{value.minute:02d} {meridiem}"
    )


def to_local(instant: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert an aware instant to ledger wall-clock time; naive values pass through."""
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(tz or get_ledger_timezone())


def normalize_timestamp(
    date_token: Optional[str],
    time_token: Optional[str],
    fallback: datetime,
    tz: Optional[ZoneInfo] = None,
) -> str:
    """
    Return the canonical ledger timestamp for a transaction.

    Uses the date/time printed in the alert when there is one, otherwise the
    email's received instant converted to the ledger timezone.
    """
    parsed = parse_date_token(date_token, time_token)
    if parsed is None:
        parsed = to_local(fallback, tz)
    return format_local_datetime(parsed)
