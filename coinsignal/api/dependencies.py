"""FastAPI dependency injection — shared scanner."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from coinsignal.pipeline.scanner import Scanner


def get_scanner(request: Request) -> Scanner:
    """Return the scanner attached to the app at startup."""
    scanner = getattr(request.app.state, "scanner", None)
    if scanner is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scanner not ready",
        )
    return scanner
