"""Analysis endpoints — token scan, coin analysis, top setups, search."""

from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from loguru import logger

from coinsignal.analysis.exceptions import InsufficientHistory, InvalidSnapshot
from coinsignal.analysis.scoring import Strategy
from coinsignal.api.app import limiter
from coinsignal.api.dependencies import get_scanner
from coinsignal.parsers.exceptions import ProviderError, TokenNotFoundError
from coinsignal.pipeline.scanner import Scanner
from config.settings import settings

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])

T = TypeVar("T")


async def _guard(call: Awaitable[T], subject: str) -> T:
    """Await a scanner call, mapping domain errors to HTTP status codes."""
    try:
        return await call
    except TokenNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except (InsufficientHistory, InvalidSnapshot) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except (ProviderError, httpx.HTTPError) as e:
        logger.warning(f"[API] Upstream failure for {subject}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Upstream data provider failed"
        ) from e


@router.get("/token/{address}")
@limiter.limit(settings.dashboard_rate_limit)
async def analyze_token(
    request: Request,
    address: str,
    strategy: Strategy | None = Query(None),
    scanner: Scanner = Depends(get_scanner),
) -> dict[str, Any]:
    """Score a DEX token by contract address."""
    result = await _guard(scanner.scan_token(address, strategy=strategy), address)
    return result.to_dict()


@router.get("/coin/{coin_id}")
@limiter.limit(settings.dashboard_rate_limit)
async def analyze_coin(
    request: Request,
    coin_id: str,
    scanner: Scanner = Depends(get_scanner),
) -> dict[str, Any]:
    """Indicator-vote analysis of a CoinGecko coin."""
    result = await _guard(scanner.analyze_coin(coin_id), coin_id)
    return result.to_dict()


@router.get("/top")
@limiter.limit("5/minute")
async def top_setups(
    request: Request,
    limit: int = Query(settings.top_results, ge=1, le=50),
    universe: int = Query(settings.top_universe_size, ge=1, le=100),
    min_strength: int = Query(settings.top_min_strength, ge=0, le=100),
    scanner: Scanner = Depends(get_scanner),
) -> dict[str, Any]:
    """Strongest valid LONG setups among the top coins by market cap."""
    results = await _guard(
        scanner.top_setups(limit=limit, universe=universe, min_strength=min_strength),
        "top setups",
    )
    items = [
        {
            "id": r.snapshot.address,
            "name": r.snapshot.name,
            "symbol": r.snapshot.symbol,
            "price": r.metrics.price,
            "score": r.verdict.score,
            "signal": r.verdict.classification.value,
        }
        for r in results
    ]
    return {"items": items, "count": len(items)}


@router.get("/search")
@limiter.limit(settings.dashboard_rate_limit)
async def search_coins(
    request: Request,
    q: str = Query(..., min_length=settings.search_min_chars, max_length=64),
    scanner: Scanner = Depends(get_scanner),
) -> dict[str, Any]:
    """Coin lookup by name or symbol."""
    coins = await _guard(scanner.search(q.strip()), q)
    return {"items": [c.model_dump() for c in coins]}
