"""FastAPI application factory for the analysis API."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.cors import CORSMiddleware

from coinsignal.api.middleware import SecurityHeadersMiddleware
from coinsignal.pipeline.scanner import Scanner, build_scanner

# Rate limiter (shared instance)
limiter = Limiter(key_func=get_remote_address)

VERSION = "0.1.0"


def create_app(scanner: Scanner | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Pass a ready ``scanner`` to share one with a running watch loop (or a
    fake in tests); otherwise one is built from settings on startup and
    closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.scanner is None
        if owned:
            app.state.scanner = build_scanner()
            logger.info("[API] Scanner initialized from settings")
        try:
            yield
        finally:
            if owned:
                await app.state.scanner.close()
                app.state.scanner = None

    app = FastAPI(
        title="Coin Signal API",
        version=VERSION,
        docs_url="/api/docs" if os.getenv("DASHBOARD_DEBUG") else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if os.getenv("DASHBOARD_DEBUG") else None,
        lifespan=lifespan,
    )
    app.state.scanner = scanner

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS: read-only API for local frontends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    from coinsignal.api.routers.analysis import router as analysis_router
    from coinsignal.api.routers.health import router as health_router

    app.include_router(health_router)
    app.include_router(analysis_router)

    return app
