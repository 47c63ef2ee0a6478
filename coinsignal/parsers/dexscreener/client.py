import asyncio

import httpx
from loguru import logger

from coinsignal.parsers.dexscreener.models import DexScreenerPair
from coinsignal.parsers.exceptions import DexScreenerError
from coinsignal.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.dexscreener.com"
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]


class DexScreenerClient:
    """Async REST client for DexScreener public API (no auth required)."""

    def __init__(self, rate_limiter: RateLimiter | None = None, max_rps: float = 1.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)

    async def _request_with_retry(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET with retry on 429/timeout, honoring Retry-After."""
        for attempt, delay in enumerate(RETRY_DELAYS, start=1):
            await self._rate_limiter.acquire()
            try:
                response = await self._client.get(path, params=params)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt == MAX_RETRIES:
                    raise
                logger.debug(f"[DEXSCREENER] {type(e).__name__} on {path}, retry {attempt} in {delay}s")
                await asyncio.sleep(delay)
                continue

            if response.status_code != 429:
                response.raise_for_status()
                return response

            if attempt == MAX_RETRIES:
                break
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                delay = max(float(retry_after), delay)
            logger.debug(f"[DEXSCREENER] 429 on {path}, retry {attempt} in {delay}s")
            await asyncio.sleep(delay)

        raise DexScreenerError(f"rate limited on {path} after {MAX_RETRIES} attempts")

    @staticmethod
    def _parse_pairs(data: object) -> list[DexScreenerPair]:
        if isinstance(data, list):
            return [DexScreenerPair.model_validate(p) for p in data]
        if not isinstance(data, dict):
            raise DexScreenerError(f"unexpected response type: {type(data).__name__}")
        pairs = data.get("pairs", data.get("pair")) or []
        if not isinstance(pairs, list):
            pairs = [pairs]
        return [DexScreenerPair.model_validate(p) for p in pairs]

    async def get_token_pairs(self, token_address: str) -> list[DexScreenerPair]:
        """All pairs for a token address, across chains."""
        response = await self._request_with_retry(f"/latest/dex/tokens/{token_address}")
        return self._parse_pairs(response.json())

    async def close(self) -> None:
        await self._client.aclose()
