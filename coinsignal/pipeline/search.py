"""Search-as-you-type with debounce and last-result-wins supersession."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from loguru import logger

Lookup = Callable[[str], Awaitable[Sequence[Any]]]


class DebouncedSearch:
    """Delays a lookup until input has been quiet for ``debounce_ms``.

    Each new query cancels the pending one, whether it is still waiting
    out the debounce or already awaiting the provider, so a slow stale
    response can never overwrite a newer one. Queries shorter than
    ``min_chars`` clear the results without any lookup.
    """

    def __init__(
        self,
        lookup: Lookup,
        *,
        debounce_ms: int = 300,
        min_chars: int = 2,
        max_results: int = 8,
        on_results: Callable[[str, list[Any]], None] | None = None,
    ) -> None:
        self._lookup = lookup
        self._delay = debounce_ms / 1000
        self._min_chars = min_chars
        self._max_results = max_results
        self._on_results = on_results
        self._pending: asyncio.Task | None = None
        self._query = ""
        self._results: list[Any] = []

    @property
    def query(self) -> str:
        return self._query

    @property
    def results(self) -> list[Any]:
        return list(self._results)

    def submit(self, query: str) -> asyncio.Task | None:
        """Schedule a lookup for ``query``, superseding any pending one."""
        self._cancel_pending()
        self._query = query = query.strip()

        if len(query) < self._min_chars:
            self._publish(query, [])
            return None

        self._pending = asyncio.create_task(self._run(query))
        return self._pending

    async def search(self, query: str) -> list[Any]:
        """Submit and wait; returns [] when superseded or the lookup fails."""
        task = self.submit(query)
        if task is None:
            return []
        try:
            return await task
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                raise
            return []

    async def _run(self, query: str) -> list[Any]:
        await asyncio.sleep(self._delay)
        try:
            found = await self._lookup(query)
        except Exception as e:
            logger.warning(f"[SEARCH] Lookup failed for {query!r}: {e}")
            return []
        if query != self._query:
            return []
        results = list(found)[: self._max_results]
        self._publish(query, results)
        return list(results)

    def _publish(self, query: str, results: list[Any]) -> None:
        self._results = results
        if self._on_results is not None:
            self._on_results(query, list(results))

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def close(self) -> None:
        task = self._pending
        self._cancel_pending()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
