import asyncio

import httpx
from loguru import logger

from coinsignal.analysis.snapshot import Candle
from coinsignal.parsers.coingecko.models import (
    CoinGeckoCoin,
    CoinGeckoMarket,
    CoinGeckoSearchCoin,
)
from coinsignal.parsers.exceptions import CoinGeckoError, TokenNotFoundError
from coinsignal.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.coingecko.com/api/v3"
MAX_RETRIES = 3
RETRY_DELAYS = [2.0, 5.0, 10.0]


class CoinGeckoClient:
    """Async REST client for CoinGecko (public tier, optional demo key)."""

    def __init__(
        self,
        api_key: str = "",
        rate_limiter: RateLimiter | None = None,
        max_rps: float = 0.5,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._client = httpx.AsyncClient(base_url=BASE_URL, timeout=15.0, headers=headers)
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET with retry on 429/timeout; 404 maps to TokenNotFoundError."""
        for attempt in range(MAX_RETRIES):
            await self._rate_limiter.acquire()
            try:
                response = await self._client.get(path, params=params)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES - 1:
                    delay = RETRY_DELAYS[attempt]
                    logger.debug(f"[COINGECKO] {type(e).__name__}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise

            if response.status_code == 429:
                if attempt == MAX_RETRIES - 1:
                    break
                delay = RETRY_DELAYS[attempt]
                logger.debug(f"[COINGECKO] 429 rate limited, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            if response.status_code == 404:
                raise TokenNotFoundError(f"CoinGecko has no data for {path}")
            response.raise_for_status()
            return response

        raise CoinGeckoError(f"rate limited on {path} after {MAX_RETRIES} attempts")

    async def search(self, query: str) -> list[CoinGeckoSearchCoin]:
        response = await self._get("/search", params={"query": query})
        coins = response.json().get("coins") or []
        return [CoinGeckoSearchCoin.model_validate(c) for c in coins]

    async def get_ohlc(self, coin_id: str, days: int = 30) -> list[Candle]:
        """OHLC bars, oldest first. CoinGecko rows carry no volume."""
        response = await self._get(
            f"/coins/{coin_id}/ohlc", params={"vs_currency": "usd", "days": days}
        )
        rows = response.json()
        if not isinstance(rows, list):
            raise CoinGeckoError(f"unexpected OHLC payload for {coin_id}")
        candles = [Candle.from_row(row) for row in rows]
        candles.sort(key=lambda c: c.timestamp)
        return candles

    async def get_markets(self, per_page: int = 100, page: int = 1) -> list[CoinGeckoMarket]:
        """Coins ordered by market cap, largest first."""
        response = await self._get(
            "/coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "false",
            },
        )
        data = response.json()
        if not isinstance(data, list):
            raise CoinGeckoError("unexpected markets payload")
        return [CoinGeckoMarket.model_validate(m) for m in data]

    async def get_coin(self, coin_id: str) -> CoinGeckoCoin:
        response = await self._get(
            f"/coins/{coin_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "community_data": "false",
                "developer_data": "false",
            },
        )
        return CoinGeckoCoin.model_validate(response.json())

    async def close(self) -> None:
        await self._client.aclose()
