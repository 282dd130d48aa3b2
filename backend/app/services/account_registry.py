"""
Account registry backed by the Supabase users table.

Columns used:
  id, google_email, google_refresh_token, google_sheet_id,
  last_processed_email_timestamp, last_sync_time,
  is_processing, is_active, missed_emails

is_processing is the per-account sync lock. It lives in the database so it
holds across the worker and the API process, and survives restarts. claim()
takes it with a conditional update (only rows where is_processing is still
false are touched), so two processes can never both own an account. A crash
mid-sync leaves the flag set; reset_processing() is the operational fix.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app.models.account import AccountState

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


class RegistryUnavailableError(Exception):
    """Raised when the account registry cannot be queried."""


class AccountRegistry:
    """Reads and updates account state in Supabase."""

    def __init__(self, client=None):
        if client is None:
            from app.db import get_supabase_admin

            client = get_supabase_admin()
        self.client = client

    def _table(self):
        return self.client.table(USERS_TABLE)

    def list_active(self) -> List[AccountState]:
        """
        Return every active account.

        A row that cannot be read as an AccountState is skipped with a
        warning so it cannot block the other accounts.

        Raises:
            RegistryUnavailableError: the query failed.
        """
        try:
            result = self._table().select("*").eq("is_active", True).execute()
        except Exception as e:
            raise RegistryUnavailableError(f"Database error: {e}") from e

        accounts: List[AccountState] = []
        for row in result.data or []:
            try:
                accounts.append(AccountState(**row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed users row {row.get('id')!r}: {e}")
        return accounts

    def claim(self, account_id: str) -> bool:
        """
        Set is_processing for an idle account.

        Returns True if this caller now owns the account, False if another
        sync holds it.
        """
        result = (
            self._table()
            .update({"is_processing": True})
            .eq("id", account_id)
            .eq("is_processing", False)
            .execute()
        )
        return bool(result.data)

    def update(self, account_id: str, fields: Dict[str, Any]) -> None:
        """Write a partial update for one account in a single statement."""
        self._table().update(fields).eq("id", account_id).execute()

    def release(self, account_id: str, **fields: Any) -> None:
        """Clear is_processing, writing any extra fields in the same update."""
        self.update(account_id, {**fields, "is_processing": False})

    def deactivate(self, account_id: str) -> None:
        """Mark an account as needing re-authentication and release it."""
        self.update(account_id, {"is_active": False, "is_processing": False})

    def reset_processing(self, email: Optional[str] = None) -> int:
        """
        Clear stuck is_processing flags, for one account (by email) or all.

        Returns the number of accounts reset.
        """
        query = self._table().update({"is_processing": False})
        if email:
            query = query.eq("google_email", email)
        else:
            query = query.eq("is_processing", True)
        result = query.execute()
        return len(result.data or [])

    def reset_auth(self, email: Optional[str] = None) -> int:
        """
        Deactivate accounts and blank their Google tokens so the user must
        re-authenticate, for one account (by email) or every active account.

        Returns the number of accounts reset.
        """
        query = self._table().update({
            "is_active": False,
            "google_access_token": "",
            "google_refresh_token": "",
        })
        if email:
            query = query.eq("google_email", email)
        else:
            query = query.eq("is_active", True)
        result = query.execute()
        return len(result.data or [])
