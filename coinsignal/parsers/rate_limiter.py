import asyncio


class RateLimiter:
    """Minimum-interval rate limiter for async HTTP clients.

    Pass the same instance to every client sharing an API quota; the
    lock serializes concurrent callers (e.g. the top-setups fan-out).
    """

    def __init__(self, max_rps: float) -> None:
        self._min_interval = 1.0 / max_rps
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            wait = self._min_interval - (now - self._last_request)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = loop.time()
