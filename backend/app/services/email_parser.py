"""
Pattern extractor for HDFC Bank transaction alert emails.

Turns the free text of an alert into ExtractedFields using an ordered table
of independent regex patterns. Every pattern is first-match-only and a field
that is not found is simply left as None; extraction never raises.

Adding support for a new alert wording is a data change: append a row to
_FIELD_PATTERNS or _MERCHANT_PATTERNS.

Example alert (after whitespace is collapsed):

    Dear Customer, Rs.500.00 has been debited from account **1234 to VPA
    shop@okaxis SHOP NAME on 12-01-26. Your UPI transaction reference
    number is 401234567890.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from app.models.transaction import ExtractedFields, PaymentMethod

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class FieldPattern:
    """One row of the extraction table."""
    field: str
    pattern: re.Pattern
    # Maps the match to {field: value}; defaults to group(1) stripped.
    convert: Optional[Callable[[re.Match], Dict[str, str]]] = None

    def apply(self, text: str) -> Dict[str, str]:
        match = self.pattern.search(text)
        if not match:
            return {}
        if self.convert is not None:
            return self.convert(match)
        return {self.field: match.group(1).strip()}


# Canonical spelling for every vocabulary hit, keyed by lowercased match
_METHOD_NAMES = {
    "upi": PaymentMethod.UPI.value,
    "debit card": PaymentMethod.DEBIT_CARD.value,
    "credit card": PaymentMethod.CREDIT_CARD.value,
    "cash deposit": PaymentMethod.CASH_DEPOSIT.value,
    "net banking": PaymentMethod.NET_BANKING.value,
    "neft": PaymentMethod.NEFT.value,
    "imps": PaymentMethod.IMPS.value,
    "rtgs": PaymentMethod.RTGS.value,
}


def _convert_direction(match: re.Match) -> Dict[str, str]:
    return {"direction": match.group(1).lower()}


def _convert_method(match: re.Match) -> Dict[str, str]:
    raw = _WHITESPACE_RE.sub(" ", match.group(1)).lower()
    if raw.startswith("cash deposit"):
        raw = "cash deposit"
    return {"method": _METHOD_NAMES[raw]}


def _convert_upi_merchant(match: re.Match) -> Dict[str, str]:
    return {
        "merchant_handle": match.group(1).strip(),
        "merchant": match.group(2).strip(),
    }


_FIELD_PATTERNS: Tuple[FieldPattern, ...] = (
    # Rs.500 / Rs 1,23,456.78 / INR 500
    FieldPattern(
        "amount",
        re.compile(r"(?:Rs\.?|INR)\s*([\d,]+\.?\d*)", re.IGNORECASE),
    ),
    FieldPattern(
        "direction",
        re.compile(r"\b(credited|debited)\b", re.IGNORECASE),
        _convert_direction,
    ),
    # "account **1234", "account 1234", "XX1234", "ending 1234"
    FieldPattern(
        "account",
        re.compile(r"(?:account\s*\*{0,2}|XX|ending\s*)(\d{4})", re.IGNORECASE),
    ),
    # "12-01-26", "12/01/2026", "2-1-2026", "12 Jan, 2026"
    FieldPattern(
        "date",
        re.compile(
            r"\b(\d{1,2}[-/]\d{1,2}[-/](?:\d{4}|\d{2})|\d{1,2}\s+[A-Za-z]{3},?\s+\d{4})\b"
        ),
    ),
    FieldPattern(
        "time",
        re.compile(r"\bat\s+(\d{1,2}:\d{2}(?::\d{2})?)\b", re.IGNORECASE),
    ),
    FieldPattern(
        "method",
        re.compile(
            r"\b(UPI|Debit Card|Credit Card|Cash Deposit(?:\s+Machine)?|Net Banking|NEFT|IMPS|RTGS)\b",
            re.IGNORECASE,
        ),
        _convert_method,
    ),
    # "reference number is 401234567890", "Ref No. 1234", "Ref. No: ABC123"
    FieldPattern(
        "reference",
        re.compile(
            r"\bref(?:erence)?\.?\s*(?:number|no)\.?\s*(?:is)?\s*:?\s*(\w+)",
            re.IGNORECASE,
        ),
    ),
    FieldPattern(
        "balance",
        re.compile(
            r"available balance (?:is\s+)?(?:INR|Rs\.?)\s*([\d,]+\.?\d*)",
            re.IGNORECASE,
        ),
    ),
)


# Merchant/location patterns, chosen by the already-extracted method
_UPI_MERCHANT = FieldPattern(
    "merchant",
    re.compile(
        r"(?:to|by)\s+VPA\s+(\S+@\S+)\s+([A-Za-z][A-Za-z\s]*?)(?=\s+on\b|\s+Your\b|$)",
        re.IGNORECASE,
    ),
    _convert_upi_merchant,
)

# "at AMAZON RETAIL on 12-01-2026", "At Swiggy at 10:15"
_CARD_MERCHANT = FieldPattern(
    "merchant",
    re.compile(r"\bat\s+([A-Z][A-Z0-9\s\-&.*]*?)(?=\s+on\b|\s+at\s+\d)", re.IGNORECASE),
)

_DEPOSIT_LOCATION = FieldPattern(
    "location",
    re.compile(r"\bat\s+([A-Za-z\s\-]+?)\s+via\b", re.IGNORECASE),
)

_MERCHANT_PATTERNS: Dict[str, FieldPattern] = {
    PaymentMethod.UPI.value: _UPI_MERCHANT,
    PaymentMethod.DEBIT_CARD.value: _CARD_MERCHANT,
    PaymentMethod.CREDIT_CARD.value: _CARD_MERCHANT,
    PaymentMethod.CASH_DEPOSIT.value: _DEPOSIT_LOCATION,
}


def collapse_whitespace(text: Optional[str]) -> str:
    """Collapse all whitespace runs (including newlines) to single spaces."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_fields(text: Optional[str]) -> ExtractedFields:
    """
    Extract best-effort transaction fields from alert text.

    Fields that cannot be found are None. This function does not raise on any
    string input.
    """
    normalized = collapse_whitespace(text)
    found: Dict[str, str] = {}

    for row in _FIELD_PATTERNS:
        found.update(row.apply(normalized))

    if "method" not in found and "upi" in normalized.lower():
        found["method"] = PaymentMethod.UPI.value

    merchant_row = _MERCHANT_PATTERNS.get(found.get("method", ""))
    if merchant_row is not None:
        found.update(merchant_row.apply(normalized))

    # Empty captures count as "not found"
    found = {key: value for key, value in found.items() if value}

    logger.debug("extract_fields: found %s", sorted(found))
    return ExtractedFields(**found)
