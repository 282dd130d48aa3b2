"""
Deduplication and ledger writes for parsed transactions.

Ledger layout (one spreadsheet per account):
  Transactions!A:K   one row per transaction, see Transaction.to_row()
  Transactions!G2:G  reference numbers (dedup keys), header in G1
  Metadata!B2        ISO timestamp of the latest processed email

The ledger is append-only: rows are never rewritten, so deduplication happens
before the append by reference number.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Protocol, Set

from app.models.transaction import Transaction

logger = logging.getLogger(__name__)

TRANSACTIONS_RANGE = "Transactions!A:K"
REFERENCE_COLUMN_RANGE = "Transactions!G2:G"
WATERMARK_CELL = "Metadata!B2"


class LedgerClient(Protocol):
    def read_column(self, spreadsheet_id: str, cell_range: str) -> list: ...

    def append_rows(self, spreadsheet_id: str, cell_range: str, rows: list) -> None: ...

    def update_cell(self, spreadsheet_id: str, cell_range: str, value) -> None: ...


def load_existing_references(ledger: LedgerClient, spreadsheet_id: str) -> Set[str]:
    """
    Read the reference-number column of the ledger.

    Best effort: if the sheet cannot be read the sync continues as if the
    ledger were empty, with a warning.
    """
    try:
        rows = ledger.read_column(spreadsheet_id, REFERENCE_COLUMN_RANGE)
    except Exception as e:
        logger.warning(f"Could not fetch existing transactions from {spreadsheet_id}: {e}")
        return set()

    return {str(row[0]) for row in rows if row and row[0]}


def reconcile(candidates: Iterable[Transaction], existing_references: Set[str]) -> List[Transaction]:
    """
    Drop transactions whose reference number is already known.

    Candidates are checked in arrival order and each accepted reference is
    remembered, so two alerts in the same batch with the same reference only
    produce one row. The caller's set is not modified.
    """
    seen = set(existing_references)
    survivors: List[Transaction] = []
    for transaction in candidates:
        if transaction.reference_number in seen:
            logger.debug("reconcile: skipping duplicate %s", transaction.reference_number)
            continue
        seen.add(transaction.reference_number)
        survivors.append(transaction)
    return survivors


def append_transactions(
    ledger: LedgerClient,
    spreadsheet_id: str,
    transactions: List[Transaction],
) -> int:
    """Append transactions to the ledger in one batch write. Returns rows written."""
    if not transactions:
        return 0

    logger.info(f"Saving {len(transactions)} transactions to {spreadsheet_id}")
    ledger.append_rows(
        spreadsheet_id,
        TRANSACTIONS_RANGE,
        [t.to_row() for t in transactions],
    )
    return len(transactions)


def update_watermark(ledger: LedgerClient, spreadsheet_id: str, latest: datetime) -> bool:
    """
    Record the latest processed email time in the ledger's Metadata sheet.

    Returns False (and logs a warning) if the write fails; the account
    registry remains the source of truth for the next query.
    """
    try:
        ledger.update_cell(spreadsheet_id, WATERMARK_CELL, latest.astimezone(timezone.utc).isoformat())
        return True
    except Exception as e:
        logger.warning(f"Failed to update metadata in {spreadsheet_id}: {e}")
        return False
