"""
Transaction assembler.

Combines pattern extractor output with the normalizer into either an accepted
Transaction or a RejectedMessage. Assembly never raises: any unexpected error
becomes a rejection carrying the error text as its reason.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from app.models.transaction import (
    CARD_METHODS,
    DEFAULT_SENDER,
    UNKNOWN_BALANCE,
    ExtractedFields,
    PaymentMethod,
    RejectedMessage,
    Transaction,
)
from app.services.email_parser import extract_fields
from app.services.normalizer import (
    format_local_datetime,
    normalize_timestamp,
    parse_amount,
    parse_direction,
    parse_method,
    to_local,
)

logger = logging.getLogger(__name__)

MISSING_FIELDS_REASON = "Missing required fields (amount, type, or account)"
UNKNOWN_ERROR_REASON = "Unknown parsing error"

REFERENCE_FALLBACK_PREFIX = "EMAIL_"
SNIPPET_LENGTH = 200
SUBJECT_DESCRIPTION_LENGTH = 50


def build_description(extracted: ExtractedFields, method: PaymentMethod, subject: Optional[str]) -> str:
    """
    Pick the most useful description for the ledger.

    UPI        -> "SHOP NAME (shop@okaxis)"
    card       -> "AMAZON RETAIL"
    deposit    -> "Cash Deposit at BANDRA WEST"
    otherwise  -> first 50 characters of the subject
    """
    description = ""

    if method == PaymentMethod.UPI:
        if extracted.merchant and extracted.merchant_handle:
            description = f"{extracted.merchant} ({extracted.merchant_handle})"
    elif method in CARD_METHODS:
        if extracted.merchant:
            description = extracted.merchant
    elif method == PaymentMethod.CASH_DEPOSIT:
        if extracted.location:
            description = f"Cash Deposit at {extracted.location}"

    if not description and subject:
        description = subject[:SUBJECT_DESCRIPTION_LENGTH]

    return description


def build_rejection(
    message_id: str,
    subject: Optional[str],
    body: Optional[str],
    received_at: datetime,
    reason: str,
    sender: str = DEFAULT_SENDER,
) -> RejectedMessage:
    """Build the diagnostic record kept for an alert that was not accepted."""
    return RejectedMessage(
        email_id=message_id,
        subject=subject or "",
        body_snippet=(body or "")[:SNIPPET_LENGTH],
        received_date=received_at.isoformat(),
        sender=sender,
        reason=reason,
    )


def assemble_transaction(
    extracted: ExtractedFields,
    subject: Optional[str],
    body: Optional[str],
    received_at: datetime,
    message_id: str,
) -> Union[Transaction, RejectedMessage]:
    """
    Validate extracted fields and build a Transaction.

    Amount (> 0), direction and masked account are required; if any is
    missing the alert is rejected as a whole. A missing reference number is
    replaced by EMAIL_<message_id> so every accepted row has a dedup key.
    """
    try:
        amount = parse_amount(extracted.amount)
        direction = parse_direction(extracted.direction)
        account = extracted.account

        if amount is None or amount <= 0 or direction is None or not account:
            return build_rejection(
                message_id, subject, body, received_at, MISSING_FIELDS_REASON
            )

        method = parse_method(extracted.method)
        balance = parse_amount(extracted.balance)

        return Transaction(
            date_time=normalize_timestamp(extracted.date, extracted.time, received_at),
            amount=amount,
            type=direction,
            method=method,
            account=account,
            description=build_description(extracted, method, subject),
            reference_number=extracted.reference or f"{REFERENCE_FALLBACK_PREFIX}{message_id}",
            available_balance=balance if balance is not None else UNKNOWN_BALANCE,
            email_received_date=format_local_datetime(to_local(received_at)),
        )
    except Exception as exc:
        logger.warning(f"Failed to assemble transaction for message {message_id}: {exc}")
        return build_rejection(
            message_id, subject, body, received_at, str(exc) or UNKNOWN_ERROR_REASON
        )


def parse_email(
    body: Optional[str],
    subject: Optional[str],
    received_at: datetime,
    message_id: str,
) -> Union[Transaction, RejectedMessage]:
    """Run extraction and assembly for one alert email."""
    try:
        extracted = extract_fields(body)
    except Exception as exc:
        logger.warning(f"Failed to extract fields for message {message_id}: {exc}")
        return build_rejection(
            message_id, subject, body, received_at, str(exc) or UNKNOWN_ERROR_REASON
        )
    return assemble_transaction(extracted, subject, body, received_at, message_id)
