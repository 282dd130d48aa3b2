"""
Pydantic models for bank alert emails and the transactions parsed from them.

Models:
  RawMessage        a fetched alert email (subject, body, received instant)
  ExtractedFields   raw tokens found in the alert text, all optional
  Transaction       an accepted, normalized ledger row
  RejectedMessage   an alert that failed the acceptance gate
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SENDER = "alerts@hdfcbank.net"

# Marker written to the ledger when the alert carries no balance
UNKNOWN_BALANCE = "N/A"


class TransactionType(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"


class PaymentMethod(str, Enum):
    UPI = "UPI"
    DEBIT_CARD = "Debit Card"
    CREDIT_CARD = "Credit Card"
    CASH_DEPOSIT = "Cash Deposit"
    NET_BANKING = "Net Banking"
    NEFT = "NEFT"
    IMPS = "IMPS"
    RTGS = "RTGS"
    OTHER = "Other"


CARD_METHODS = frozenset({PaymentMethod.DEBIT_CARD, PaymentMethod.CREDIT_CARD})


class RawMessage(BaseModel):
    """A single alert email as returned by the mail provider."""
    model_config = ConfigDict(frozen=True)

    id: str
    subject: str = ""
    body: str = ""
    received_at: datetime


class ExtractedFields(BaseModel):
    """
    Best-effort tokens pulled out of an alert body.

    None always means "not found in the text". Values are the raw matched
    strings; the normalizer turns them into typed values.
    """

    amount: Optional[str] = None
    direction: Optional[str] = None
    account: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    method: Optional[str] = None
    reference: Optional[str] = None
    merchant: Optional[str] = None
    merchant_handle: Optional[str] = None  # UPI VPA, e.g. "shop@okaxis"
    location: Optional[str] = None          # cash deposit machine location
    balance: Optional[str] = None


class Transaction(BaseModel):
    """An accepted transaction, ready to be appended to the ledger."""

    date_time: str
    amount: Decimal = Field(gt=0)
    type: TransactionType
    method: PaymentMethod = PaymentMethod.OTHER
    account: str
    description: str = ""
    reference_number: str
    available_balance: Union[Decimal, str] = UNKNOWN_BALANCE
    category: str = ""
    notes: str = ""
    email_received_date: str

    def to_row(self) -> List[Union[str, int, float]]:
        """
        Return the ledger row in the fixed column order A..K:

        Date & Time, Amount, Type, Method, Account, Description,
        Reference Number, Available Balance, Category, Notes, Email Received
        """
        return [
            self.date_time,
            _sheet_number(self.amount),
            self.type.value,
            self.method.value,
            self.account,
            self.description,
            self.reference_number,
            _sheet_number(self.available_balance),
            self.category,
            self.notes,
            self.email_received_date,
        ]


def _sheet_number(value: Union[Decimal, str]) -> Union[str, int, float]:
    # Sheets takes JSON numbers; Decimal is not JSON serialisable.
    if not isinstance(value, Decimal):
        return value
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class RejectedMessage(BaseModel):
    """
    An alert that could not be turned into a transaction.

    Stored in the account's rolling missed_emails log for diagnosis only.
    The "from" key is kept so rows written by earlier versions still load.
    """
    model_config = ConfigDict(populate_by_name=True)

    email_id: str
    subject: str = ""
    body_snippet: str = ""
    received_date: str
    sender: str = Field(DEFAULT_SENDER, alias="from")
    reason: str = ""
