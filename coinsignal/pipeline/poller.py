import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger


class Poller:
    """Re-invokes an async callback at a fixed interval while enabled.

    A failing cycle is logged and the loop carries on; only stop()
    ends it.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        interval_sec: float = 30.0,
        name: str = "poll",
    ) -> None:
        if interval_sec <= 0:
            raise ValueError(f"interval_sec must be positive, got {interval_sec}")
        self._callback = callback
        self._interval = interval_sec
        self._name = name
        self._task: asyncio.Task | None = None
        self.cycles = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.is_running:
            return self._task
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.info(f"[POLL] {self._name} started, every {self._interval}s")
        return self._task

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"[POLL] {self._name} stopped after {self.cycles} cycles")

    async def run_once(self) -> bool:
        """One cycle; returns False if the callback raised."""
        self.cycles += 1
        try:
            await self._callback()
        except Exception as e:
            self.failures += 1
            logger.warning(f"[POLL] {self._name} cycle {self.cycles} failed: {e}")
            return False
        return True

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)
