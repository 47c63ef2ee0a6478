"""Health check."""

from __future__ import annotations

from fastapi import APIRouter, Request
from loguru import logger
from pydantic import BaseModel

from config.settings import settings

router = APIRouter(prefix="/api/v1", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    strategy: str
    scanner_ready: bool
    scan_log: bool
    db_ok: bool | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report scanner readiness and, when the scan log is on, DB connectivity."""
    from coinsignal.api.app import VERSION

    db_ok = None
    if settings.enable_scan_log:
        db_ok = False
        try:
            from sqlalchemy import text

            from coinsignal.db.database import engine

            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_ok = True
        except Exception as e:
            logger.debug(f"[HEALTH] DB check failed: {e}")

    scanner_ready = getattr(request.app.state, "scanner", None) is not None
    healthy = scanner_ready and db_ok is not False
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=VERSION,
        strategy=settings.scoring_strategy,
        scanner_ready=scanner_ready,
        scan_log=settings.enable_scan_log,
        db_ok=db_ok,
    )
