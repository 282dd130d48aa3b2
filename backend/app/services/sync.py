"""
Account sync orchestrator.

Drives one sync cycle: for every active account, fetch new bank alert emails
since the account's watermark, parse them, append new transactions to the
account's ledger sheet and record progress in the account registry.

Per-account state machine:

    Idle --claim()--> Busy --+--> Success --release()--> Idle
                             +--> Failed  --release()--> Idle
                             +--> AuthFailed --deactivate()--> Idle (inactive)

Failure scopes, narrowest first:
  - a message that fails the acceptance gate is recorded in missed_emails
  - a message that raises while being fetched/parsed is logged and skipped
  - a refresh token that cannot be decrypted or exchanged deactivates the
    account (the user has to reconnect Google)
  - anything else aborts this account only; its busy flag is cleared and it
    stays active
  - only an unreachable registry fails the whole cycle
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from app.models.account import AccountState, AccountSyncResult, CycleResult, SyncStatus
from app.models.transaction import DEFAULT_SENDER, RejectedMessage, Transaction
from app.services.account_registry import AccountRegistry, RegistryUnavailableError
from app.services.assembler import parse_email
from app.services.crypto import CredentialError, decrypt_token
from app.services.gmail import GmailClient
from app.services.google_auth import refresh_access_token
from app.services.ledger import (
    append_transactions,
    load_existing_references,
    reconcile,
    update_watermark,
)
from app.services.sheets import SheetsClient

logger = logging.getLogger(__name__)

# Messages processed per account per cycle, oldest first; the rest wait for
# the next cycle
SYNC_BATCH_LIMIT = int(os.getenv("SYNC_BATCH_LIMIT", "50"))

# Rolling missed_emails log size per account
MISSED_EMAILS_CAP = 50

_QUERY_KEYWORDS = "(credited OR debited OR UPI OR transaction)"


def get_sender() -> str:
    return os.getenv("BANK_ALERT_SENDER", DEFAULT_SENDER)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def build_query(watermark: Optional[datetime], sender: Optional[str] = None) -> str:
    """
    Build the Gmail search query for an account.

    Example:
        from:alerts@hdfcbank.net (credited OR debited OR UPI OR transaction) after:1768224060
    """
    query = f"from:{sender or get_sender()} {_QUERY_KEYWORDS}"
    if watermark is not None:
        query += f" after:{int(_as_utc(watermark).timestamp())}"
    return query


def select_batch(newest_first_ids: List[str], limit: int) -> List[str]:
    """
    Pick the oldest `limit` message ids, oldest first.

    Anything newer stays above the watermark and is listed again next cycle.
    """
    return list(reversed(newest_first_ids))[:limit]


def advance_watermark(current: Optional[datetime], latest: Optional[datetime]) -> Optional[datetime]:
    """Return the later of two watermarks; a watermark never moves backwards."""
    if latest is None:
        return current
    if current is None:
        return _as_utc(latest)
    return max(_as_utc(current), _as_utc(latest))


def merge_missed_emails(existing: List[dict], rejected: List[RejectedMessage], cap: int = MISSED_EMAILS_CAP) -> List[dict]:
    """Append new rejections to the rolling log, keeping only the newest `cap`."""
    combined = list(existing or []) + [r.model_dump(by_alias=True) for r in rejected]
    return combined[-cap:]


def _close(client) -> None:
    close = getattr(client, "close", None)
    if callable(close):
        close()


class AccountSyncer:
    """
    Runs sync attempts against injected collaborators.

    Args:
        registry: account registry (Supabase users table).
        refresh_token: exchanges a refresh token for an access token, or
            returns None.
        decrypt: decrypts the stored refresh token; raises CredentialError.
        mail_client_factory: builds a mail client from an access token.
        ledger_client_factory: builds a ledger client from an access token.
        batch_limit: maximum messages per account per cycle.
    """

    def __init__(
        self,
        registry: AccountRegistry,
        refresh_token: Callable[[str], Optional[str]] = refresh_access_token,
        decrypt: Callable[[str], str] = decrypt_token,
        mail_client_factory: Callable[[str], GmailClient] = GmailClient,
        ledger_client_factory: Callable[[str], SheetsClient] = SheetsClient,
        batch_limit: int = SYNC_BATCH_LIMIT,
        sender: Optional[str] = None,
    ):
        self.registry = registry
        self.refresh_token = refresh_token
        self.decrypt = decrypt
        self.mail_client_factory = mail_client_factory
        self.ledger_client_factory = ledger_client_factory
        self.batch_limit = batch_limit
        self.sender = sender or get_sender()

    # ------------------------------------------------------------------
    # Single account
    # ------------------------------------------------------------------

    def sync_account(self, account: AccountState) -> AccountSyncResult:
        """Run one sync attempt for an account. Never raises."""
        logger.info(f"Processing account: {account.google_email or account.id}")

        if not account.google_sheet_id:
            logger.warning(f"Skipping {account.id} - no Google Sheet configured")
            return AccountSyncResult(account_id=account.id, status=SyncStatus.SKIPPED)

        if account.is_processing:
            logger.info(f"Skipping {account.id} - already being processed")
            return AccountSyncResult(account_id=account.id, status=SyncStatus.SKIPPED)

        try:
            claimed = self.registry.claim(account.id)
        except Exception as e:
            logger.error(f"Could not claim account {account.id}: {e}")
            return AccountSyncResult(account_id=account.id, status=SyncStatus.FAILED, error=str(e))

        if not claimed:
            logger.info(f"Skipping {account.id} - claimed by another sync")
            return AccountSyncResult(account_id=account.id, status=SyncStatus.SKIPPED)

        started = time.monotonic()
        try:
            access_token = self._acquire_access_token(account)
            if access_token is None:
                logger.error(f"Token refresh failed for {account.id}; deactivating account")
                self.registry.deactivate(account.id)
                return AccountSyncResult(account_id=account.id, status=SyncStatus.AUTH_FAILED)

            result = self._sync_claimed(account, access_token)
            logger.info(
                "Completed %s in %ds: %d transactions, %d missed, %d errors",
                account.id,
                int(time.monotonic() - started),
                result.transactions,
                result.missed,
                result.errors,
            )
            return result
        except Exception as e:
            logger.exception(f"Sync failed for account {account.id}")
            try:
                self.registry.release(account.id)
            except Exception as release_err:
                logger.error(f"Failed to clear is_processing for {account.id}: {release_err}")
            return AccountSyncResult(account_id=account.id, status=SyncStatus.FAILED, error=str(e))

    def _acquire_access_token(self, account: AccountState) -> Optional[str]:
        try:
            refresh_token = self.decrypt(account.google_refresh_token)
        except CredentialError as e:
            logger.error(f"Could not decrypt refresh token for {account.id}: {e}")
            return None
        return self.refresh_token(refresh_token)

    def _sync_claimed(self, account: AccountState, access_token: str) -> AccountSyncResult:
        mail = self.mail_client_factory(access_token)
        ledger = self.ledger_client_factory(access_token)
        try:
            return self._process_mailbox(account, mail, ledger)
        finally:
            _close(mail)
            _close(ledger)

    def _process_mailbox(self, account: AccountState, mail, ledger) -> AccountSyncResult:
        sheet_id = account.google_sheet_id
        query = build_query(account.last_processed_email_timestamp, self.sender)

        # Listed newest first; take the oldest batch so the watermark only
        # moves past messages this cycle actually reads.
        matching_ids = mail.list_message_ids(query)
        message_ids = select_batch(matching_ids, self.batch_limit)
        logger.info(
            f"Found {len(matching_ids)} emails for {account.id}, processing {len(message_ids)}"
        )

        if not message_ids:
            self.registry.release(account.id, last_sync_time=_now_iso())
            return AccountSyncResult(account_id=account.id, status=SyncStatus.SUCCESS)

        existing_references = load_existing_references(ledger, sheet_id)

        accepted: List[Transaction] = []
        rejected: List[RejectedMessage] = []
        errors = 0
        latest: Optional[datetime] = None

        for message_id in message_ids:
            try:
                message = mail.get_message(message_id)
                result = parse_email(message.body, message.subject, message.received_at, message.id)
                if isinstance(result, Transaction):
                    accepted.append(result)
                else:
                    result.sender = self.sender
                    rejected.append(result)
                latest = advance_watermark(latest, message.received_at)
            except Exception:
                errors += 1
                logger.exception(f"Error processing email {message_id} for {account.id}")

        new_transactions = reconcile(accepted, existing_references)
        append_transactions(ledger, sheet_id, new_transactions)

        if latest is not None:
            update_watermark(ledger, sheet_id, latest)

        fields = {
            "last_sync_time": _now_iso(),
            "missed_emails": merge_missed_emails(account.missed_emails, rejected),
        }
        watermark = advance_watermark(account.last_processed_email_timestamp, latest)
        if watermark is not None:
            fields["last_processed_email_timestamp"] = watermark.isoformat()

        self.registry.release(account.id, **fields)

        return AccountSyncResult(
            account_id=account.id,
            status=SyncStatus.SUCCESS,
            transactions=len(new_transactions),
            missed=len(rejected),
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Full cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """
        Sync every active account, one after another.

        Returns success=False only when the account list cannot be loaded.
        """
        started = time.monotonic()
        logger.info(f"Starting sync cycle at {_now_iso()}")

        try:
            accounts = self.registry.list_active()
        except RegistryUnavailableError as e:
            logger.error(f"Could not list active accounts: {e}")
            return CycleResult(success=False, error=str(e), duration=int(time.monotonic() - started))

        logger.info(f"Found {len(accounts)} active accounts")
        if not accounts:
            return CycleResult(success=True, message="No accounts to process")

        cycle = CycleResult(success=True, accounts=len(accounts))
        for account in accounts:
            result = self.sync_account(account)
            cycle.total_transactions += result.transactions
            cycle.total_missed += result.missed
            cycle.total_errors += result.errors
            if result.status in (SyncStatus.FAILED, SyncStatus.AUTH_FAILED):
                cycle.failed_accounts += 1

        cycle.duration = int(time.monotonic() - started)
        cycle.message = (
            f"{cycle.total_transactions} transactions, {cycle.total_missed} missed"
        )
        logger.info(
            "Cycle completed - %d transactions, %d missed, %ds",
            cycle.total_transactions,
            cycle.total_missed,
            cycle.duration,
        )
        return cycle


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
