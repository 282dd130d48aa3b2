"""
Unit tests for token normalization and the ledger timestamp format.
"""

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from app.models.transaction import PaymentMethod, TransactionType
from app.services.normalizer import (
    format_local_datetime,
    get_ledger_timezone,
    normalize_timestamp,
    parse_amount,
    parse_date_token,
    parse_direction,
    parse_method,
)

IST = ZoneInfo("Asia/Kolkata")


# ---------------------------------------------------------------------------
# parse_amount
# ---------------------------------------------------------------------------

class TestParseAmount:

    def test_indian_grouping(self):
        assert parse_amount("1,23,456.78") == Decimal("123456.78")

    def test_plain_integer(self):
        assert parse_amount("500") == Decimal("500")

    def test_trailing_period(self):
        assert parse_amount("10,000.") == Decimal("10000")

    def test_only_commas_is_none(self):
        assert parse_amount(",,,") is None

    def test_none_is_none(self):
        assert parse_amount(None) is None

    def test_empty_is_none(self):
        assert parse_amount("") is None

    def test_zero_is_parsed_not_dropped(self):
        # Zero is a real value here; the assembler's gate rejects it
        assert parse_amount("0.00") == Decimal("0.00")


class TestParseDirectionAndMethod:

    def test_credited(self):
        assert parse_direction("Credited") == TransactionType.CREDIT

    def test_debited(self):
        assert parse_direction("debited") == TransactionType.DEBIT

    def test_unknown_direction(self):
        assert parse_direction("reversed") is None

    def test_missing_direction(self):
        assert parse_direction(None) is None

    def test_method_lookup_is_case_insensitive(self):
        assert parse_method("net banking") == PaymentMethod.NET_BANKING

    def test_missing_method_is_other(self):
        assert parse_method(None) == PaymentMethod.OTHER

    def test_unknown_method_is_other(self):
        assert parse_method("Cheque") == PaymentMethod.OTHER


# ---------------------------------------------------------------------------
# parse_date_token
# ---------------------------------------------------------------------------

class TestParseDateToken:

    def test_day_month_year_dashes(self):
        assert parse_date_token("12-01-2026") == datetime(2026, 1, 12)

    def test_day_month_year_slashes(self):
        assert parse_date_token("03/04/2026") == datetime(2026, 4, 3)

    def test_two_digit_year_is_2000s(self):
        assert parse_date_token("05-02-26") == datetime(2026, 2, 5)

    def test_single_digit_day_and_month(self):
        assert parse_date_token("5-2-2026") == datetime(2026, 2, 5)

    def test_written_date_with_comma(self):
        assert parse_date_token("12 Jan, 2026") == datetime(2026, 1, 12)

    def test_written_date_without_comma(self):
        assert parse_date_token("1 Mar 2026") == datetime(2026, 3, 1)

    def test_time_overlay_without_seconds(self):
        assert parse_date_token("12-01-2026", "18:51") == datetime(2026, 1, 12, 18, 51, 0)

    def test_time_overlay_with_seconds(self):
        assert parse_date_token("12-01-2026", "08:05:09") == datetime(2026, 1, 12, 8, 5, 9)

    def test_invalid_calendar_date_is_none(self):
        assert parse_date_token("31-02-2026") is None

    def test_invalid_time_keeps_midnight(self):
        assert parse_date_token("12-01-2026", "25:00") == datetime(2026, 1, 12)

    def test_no_date_ignores_time(self):
        assert parse_date_token(None, "10:00") is None


# ---------------------------------------------------------------------------
# format_local_datetime
# ---------------------------------------------------------------------------

class TestFormatLocalDatetime:

    def test_evening(self):
        assert format_local_datetime(datetime(2026, 1, 12, 18, 51)) == "12/01/2026 6:51 PM"

    def test_hour_not_padded_minute_padded(self):
        assert format_local_datetime(datetime(2026, 3, 5, 9, 7)) == "05/03/2026 9:07 AM"

    def test_midnight_is_12_am(self):
        assert format_local_datetime(datetime(2026, 3, 5, 0, 0)) == "05/03/2026 12:00 AM"

    def test_noon_is_12_pm(self):
        assert format_local_datetime(datetime(2026, 3, 5, 12, 30)) == "05/03/2026 12:30 PM"

    def test_two_digit_hour(self):
        assert format_local_datetime(datetime(2026, 12, 31, 23, 59)) == "31/12/2026 11:59 PM"

    def test_seconds_are_dropped(self):
        assert format_local_datetime(datetime(2026, 1, 1, 10, 15, 59)) == "01/01/2026 10:15 AM"


# ---------------------------------------------------------------------------
# normalize_timestamp
# ---------------------------------------------------------------------------

class TestNormalizeTimestamp:

    def test_body_date_wins_over_received_time(self):
        received = datetime(2026, 1, 13, 0, 0, tzinfo=timezone.utc)
        assert normalize_timestamp("12-01-2026", "18:51", received, IST) == "12/01/2026 6:51 PM"

    def test_falls_back_to_received_instant_in_ledger_timezone(self):
        # 13:21 UTC is 18:51 in India
        received = datetime(2026, 1, 12, 13, 21, tzinfo=timezone.utc)
        assert normalize_timestamp(None, None, received, IST) == "12/01/2026 6:51 PM"

    def test_unparseable_date_falls_back(self):
        received = datetime(2026, 1, 12, 13, 21, tzinfo=timezone.utc)
        assert normalize_timestamp("99-99-2026", None, received, IST) == "12/01/2026 6:51 PM"

    def test_naive_fallback_is_used_as_is(self):
        received = datetime(2026, 1, 12, 7, 5)
        assert normalize_timestamp(None, None, received, IST) == "12/01/2026 7:05 AM"

    def test_ledger_timezone_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_TIMEZONE", "UTC")
        assert get_ledger_timezone() == ZoneInfo("UTC")
        received = datetime(2026, 1, 12, 13, 21, tzinfo=timezone.utc)
        assert normalize_timestamp(None, None, received) == "12/01/2026 1:21 PM"

    def test_default_ledger_timezone(self, monkeypatch):
        monkeypatch.delenv("LEDGER_TIMEZONE", raising=False)
        assert get_ledger_timezone() == IST
