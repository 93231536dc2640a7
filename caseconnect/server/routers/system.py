from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

from caseconnect.server.state import get_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


@router.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {
        "status": "ok",
        "connections": get_state().open_count(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/smoke")
async def smoke_page():
    """Browser version of the probe harness (one button per endpoint)."""
    return FileResponse(TEMPLATES_DIR / "smoke.html", media_type="text/html")
