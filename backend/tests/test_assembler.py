"""
Unit tests for the transaction assembler (extract -> validate -> Transaction).
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from app.models.transaction import (
    DEFAULT_SENDER,
    ExtractedFields,
    PaymentMethod,
    RejectedMessage,
    Transaction,
    TransactionType,
)
from app.services.assembler import (
    MISSING_FIELDS_REASON,
    assemble_transaction,
    build_description,
    build_rejection,
    parse_email,
)

RECEIVED = datetime(2026, 1, 12, 13, 22, tzinfo=timezone.utc)

UPI_ALERT = (
    "Dear Customer, Rs. 500 debited from account ending 1234 via UPI to VPA "
    "merchant@upi MERCHANT NAME on 12-01-2026 at 18:51. Your UPI transaction "
    "reference number is ABC123. Your available balance is Rs. 10,000"
)


@pytest.fixture(autouse=True)
def india_ledger(monkeypatch):
    monkeypatch.setenv("LEDGER_TIMEZONE", "Asia/Kolkata")


def _fields(**overrides):
    base = dict(amount="500", direction="debited", account="1234")
    base.update(overrides)
    return ExtractedFields(**base)


# ---------------------------------------------------------------------------
# parse_email end to end
# ---------------------------------------------------------------------------

class TestParseEmail:

    def test_upi_alert_becomes_transaction(self):
        result = parse_email(UPI_ALERT, "Alert : Update on your HDFC Bank account", RECEIVED, "msg-1")

        assert isinstance(result, Transaction)
        assert result.amount == Decimal("500")
        assert result.type == TransactionType.DEBIT
        assert result.method == PaymentMethod.UPI
        assert result.account == "1234"
        assert result.description == "MERCHANT NAME (merchant@upi)"
        assert result.reference_number == "ABC123"
        assert result.available_balance == Decimal("10000")
        assert result.date_time == "12/01/2026 6:51 PM"
        # 13:22 UTC is 18:52 IST
        assert result.email_received_date == "12/01/2026 6:52 PM"

    def test_row_order_and_numbers(self):
        result = parse_email(UPI_ALERT, "subject", RECEIVED, "msg-1")

        assert result.to_row() == [
            "12/01/2026 6:51 PM",
            500,
            "Debit",
            "UPI",
            "1234",
            "MERCHANT NAME (merchant@upi)",
            "ABC123",
            10000,
            "",
            "",
            "12/01/2026 6:52 PM",
        ]

    def test_unrelated_email_is_rejected(self):
        body = "Your monthly statement is ready to view."
        result = parse_email(body, "Statement", RECEIVED, "msg-2")

        assert isinstance(result, RejectedMessage)
        assert result.reason == MISSING_FIELDS_REASON
        assert result.email_id == "msg-2"
        assert result.subject == "Statement"

    def test_extractor_fault_becomes_rejection(self):
        with patch("app.services.assembler.extract_fields", side_effect=RuntimeError("regex blew up")):
            result = parse_email(UPI_ALERT, "subject", RECEIVED, "msg-3")

        assert isinstance(result, RejectedMessage)
        assert result.reason == "regex blew up"


# ---------------------------------------------------------------------------
# Acceptance gate
# ---------------------------------------------------------------------------

class TestAcceptanceGate:

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": None},
            {"amount": "0"},
            {"amount": ","},
            {"direction": None},
            {"account": None},
        ],
    )
    def test_missing_required_field_rejects(self, overrides):
        result = assemble_transaction(_fields(**overrides), "subj", "body", RECEIVED, "m1")

        assert isinstance(result, RejectedMessage)
        assert result.reason == MISSING_FIELDS_REASON

    def test_minimal_fields_accepted(self):
        result = assemble_transaction(_fields(), "subj", "body", RECEIVED, "m1")

        assert isinstance(result, Transaction)
        assert result.method == PaymentMethod.OTHER
        assert result.available_balance == "N/A"

    def test_missing_reference_uses_message_id(self):
        result = assemble_transaction(_fields(), "subj", "body", RECEIVED, "18c2f0a9")
        assert result.reference_number == "EMAIL_18c2f0a9"

    def test_missing_date_uses_received_time(self):
        result = assemble_transaction(_fields(), "subj", "body", RECEIVED, "m1")
        assert result.date_time == "12/01/2026 6:52 PM"

    def test_normalizer_fault_becomes_rejection(self):
        with patch(
            "app.services.assembler.normalize_timestamp",
            side_effect=ValueError("bad timestamp"),
        ):
            result = assemble_transaction(_fields(), "subj", "body", RECEIVED, "m1")

        assert isinstance(result, RejectedMessage)
        assert result.reason == "bad timestamp"

    def test_fault_without_message_gets_generic_reason(self):
        with patch("app.services.assembler.normalize_timestamp", side_effect=ValueError()):
            result = assemble_transaction(_fields(), "subj", "body", RECEIVED, "m1")

        assert result.reason == "Unknown parsing error"


# ---------------------------------------------------------------------------
# Description
# ---------------------------------------------------------------------------

class TestBuildDescription:

    def test_upi_needs_name_and_handle(self):
        fields = _fields(merchant="SHOP", merchant_handle="shop@okaxis")
        assert build_description(fields, PaymentMethod.UPI, "subj") == "SHOP (shop@okaxis)"

    def test_upi_without_handle_falls_back_to_subject(self):
        fields = _fields(merchant="SHOP")
        assert build_description(fields, PaymentMethod.UPI, "subj") == "subj"

    def test_card_uses_merchant(self):
        fields = _fields(merchant="AMAZON RETAIL")
        assert build_description(fields, PaymentMethod.CREDIT_CARD, "subj") == "AMAZON RETAIL"
        assert build_description(fields, PaymentMethod.DEBIT_CARD, "subj") == "AMAZON RETAIL"

    def test_cash_deposit_uses_location(self):
        fields = _fields(location="BANDRA WEST")
        assert (
            build_description(fields, PaymentMethod.CASH_DEPOSIT, "subj")
            == "Cash Deposit at BANDRA WEST"
        )

    def test_subject_truncated_to_50(self):
        subject = "S" * 80
        assert build_description(_fields(), PaymentMethod.NEFT, subject) == "S" * 50

    def test_no_subject_is_empty(self):
        assert build_description(_fields(), PaymentMethod.OTHER, None) == ""


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------

class TestBuildRejection:

    def test_snippet_is_first_200_characters(self):
        body = "x" * 500
        rejection = build_rejection("m1", "subj", body, RECEIVED, "why")
        assert rejection.body_snippet == "x" * 200

    def test_short_body_kept_whole(self):
        rejection = build_rejection("m1", "subj", "short", RECEIVED, "why")
        assert rejection.body_snippet == "short"

    def test_received_date_is_iso(self):
        rejection = build_rejection("m1", "subj", "b", RECEIVED, "why")
        assert rejection.received_date == "2026-01-12T13:22:00+00:00"

    def test_default_sender_serialised_as_from(self):
        rejection = build_rejection("m1", None, None, RECEIVED, "why")
        dumped = rejection.model_dump(by_alias=True)

        assert dumped["from"] == DEFAULT_SENDER
        assert dumped["subject"] == ""
        assert dumped["body_snippet"] == ""
