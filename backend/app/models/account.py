"""
Pydantic models for synced accounts and sync results.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class AccountState(BaseModel):
    """
    A row from the Supabase users table.

    google_sheet_id is None until onboarding finishes; such accounts are
    skipped. last_processed_email_timestamp is the sync watermark; None means
    the whole mailbox history is eligible.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    google_email: str = ""
    google_refresh_token: str = ""
    google_sheet_id: Optional[str] = None
    last_processed_email_timestamp: Optional[datetime] = None
    is_processing: bool = False
    is_active: bool = True
    missed_emails: List[Dict[str, Any]] = []
    last_sync_time: Optional[datetime] = None

    @field_validator("missed_emails", mode="before")
    @classmethod
    def _null_log_is_empty(cls, value):
        return value or []

    @field_validator("google_email", "google_refresh_token", mode="before")
    @classmethod
    def _null_text_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("is_processing", mode="before")
    @classmethod
    def _null_flag_is_idle(cls, value):
        return False if value is None else value


class SyncStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCESS = "success"
    AUTH_FAILED = "auth_failed"
    FAILED = "failed"


class AccountSyncResult(BaseModel):
    """Outcome of one sync attempt for one account."""

    account_id: str
    status: SyncStatus
    transactions: int = 0
    missed: int = 0
    errors: int = 0  # per-message faults; those messages were skipped
    error: Optional[str] = None


class CycleResult(BaseModel):
    """Aggregate outcome of a sync cycle across all active accounts."""

    success: bool
    message: Optional[str] = None
    accounts: int = 0
    total_transactions: int = 0
    total_missed: int = 0
    total_errors: int = 0
    failed_accounts: int = 0
    duration: int = 0  # whole seconds
    error: Optional[str] = None


class NotifyUpdateRequest(BaseModel):
    """Request body for POST /api/notify-update."""
    model_config = ConfigDict(extra="ignore")

    userId: Optional[str] = None
    transactionCount: Optional[int] = None
