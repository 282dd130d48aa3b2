"""
Bank Alert Ledger Sync API
FastAPI application exposing health and on-demand sync endpoints.

Run with:
    uvicorn app.main:app --port 3003
    python -m app.main              # honours PORT (default 3003)
"""

import logging
import os
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.routers import sync

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "ledger-sync-backend"

app = FastAPI(
    title="Ledger Sync API",
    description="Syncs bank alert emails into per-account Google Sheets ledgers",
    version="0.1.0",
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins from FRONTEND_URL.

    FRONTEND_URL may be a comma-separated list. When unset, every origin is
    allowed ("*").
    """
    frontend_env = os.getenv("FRONTEND_URL", "").strip()
    if not frontend_env:
        return ["*"]

    # Deduplicate while preserving order
    seen: set = set()
    origins: List[str] = []
    for origin in (o.strip() for o in frontend_env.split(",")):
        if origin and origin not in seen:
            seen.add(origin)
            origins.append(origin)
    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync.router, prefix="/api", tags=["sync"])


@app.on_event("startup")
async def log_startup() -> None:
    logger.info(
        "Ledger Sync API ready (frontend: %s)",
        os.getenv("FRONTEND_URL") or "not configured",
    )


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3003")))
