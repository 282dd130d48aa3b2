"""
Sync trigger router.

Endpoints:
  POST /trigger-sync    run a full sync cycle now (auth: Bearer API_SECRET)
  POST /notify-update   acknowledge a ledger update notice (auth: Bearer API_SECRET)

The trigger runs the same AccountSyncer.run_cycle() the worker runs on its
timer. Concurrent runs are safe: each account is claimed through its
is_processing flag before anything is fetched.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.auth import verify_api_secret
from app.models.account import NotifyUpdateRequest
from app.services.account_registry import AccountRegistry
from app.services.sync import AccountSyncer

logger = logging.getLogger(__name__)

router = APIRouter()


def get_syncer() -> AccountSyncer:
    """Build the default syncer wired to Supabase and Google APIs."""
    return AccountSyncer(registry=AccountRegistry())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/trigger-sync", dependencies=[Depends(verify_api_secret)])
def trigger_sync(syncer: AccountSyncer = Depends(get_syncer)):
    """
    Run one sync cycle synchronously and return its aggregate counts.

    Returns 503 with success=false when the cycle could not start (account
    registry unreachable). Per-account failures do not fail the request; they
    are counted in data.failed_accounts.
    """
    logger.info("Manual sync triggered via API")

    try:
        result = syncer.run_cycle()
    except Exception as e:
        logger.exception("Error during manual sync")
        raise HTTPException(status_code=500, detail=f"Internal server error: {e}")

    body = {
        "success": result.success,
        "message": "Sync completed successfully" if result.success else "Sync failed",
        "data": result.model_dump(),
        "timestamp": _now_iso(),
    }
    if not result.success:
        return JSONResponse(status_code=503, content=body)
    return body


@router.post("/notify-update", dependencies=[Depends(verify_api_secret)])
def notify_update(notice: NotifyUpdateRequest):
    """Acknowledge that an account's ledger changed."""
    logger.info(
        f"Update notification - account: {notice.userId}, transactions: {notice.transactionCount}"
    )
    return {
        "success": True,
        "message": "Notification received",
        "timestamp": _now_iso(),
    }
