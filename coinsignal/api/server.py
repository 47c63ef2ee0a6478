"""API server — runs uvicorn inside the existing asyncio event loop."""

from __future__ import annotations

import uvicorn
from loguru import logger

from coinsignal.pipeline.scanner import Scanner
from config.settings import settings


async def run_api_server(scanner: Scanner | None = None) -> None:
    """Start uvicorn serving the analysis API.

    Designed to run as an asyncio task alongside the watch loop, sharing
    its scanner (and so its history window and rate limiters).
    """
    from coinsignal.api.app import create_app

    app = create_app(scanner)
    config = uvicorn.Config(
        app=app,
        host=settings.dashboard_host,
        port=settings.dashboard_port,
        log_level="warning",
        loop="none",  # use the existing event loop
    )
    server = uvicorn.Server(config)
    logger.info(f"Analysis API starting on http://{settings.dashboard_host}:{settings.dashboard_port}")
    await server.serve()
