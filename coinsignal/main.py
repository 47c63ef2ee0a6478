"""Entry point for the coin-signal watch loop."""

import argparse
import asyncio
import signal
from collections.abc import Awaitable, Callable

from loguru import logger

from coinsignal.analysis.scoring import Strategy
from coinsignal.pipeline.poller import Poller
from coinsignal.pipeline.scanner import Scanner, build_scanner
from coinsignal.pipeline.watch import WatchState, add_to_watchlist, apply_verdict
from coinsignal.utils.logger import setup_logger
from config.settings import settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="coin-signal",
        description="Poll DEX tokens and log buy/sell/hold verdicts.",
    )
    parser.add_argument("addresses", nargs="*", help="token contract addresses to watch")
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in Strategy],
        default=settings.scoring_strategy,
        help="scoring strategy (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.poll_interval_sec,
        help="seconds between polls (default: %(default)s)",
    )
    parser.add_argument("--once", action="store_true", help="scan once and exit")
    parser.add_argument("--api", action="store_true", help="also serve the analysis API")
    parser.add_argument(
        "--search", action="store_true", help="run the interactive coin search prompt and exit"
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


class WatchLoop:
    """Holds the watch state between poll cycles."""

    def __init__(self, scanner: Scanner, addresses: list[str], strategy: str) -> None:
        self._scanner = scanner
        self._strategy = strategy
        self.state = WatchState()
        for address in addresses:
            self.state = add_to_watchlist(self.state, address)

    async def cycle(self) -> None:
        for address in self.state.watchlist:
            try:
                result = await self._scanner.scan_token(address, strategy=self._strategy)
            except Exception as e:
                logger.warning(f"[WATCH] {address}: scan failed: {e}")
                continue

            verdict = result.verdict
            logger.info(
                f"[WATCH] {result.snapshot.symbol or address} ${result.metrics.price:.8g} "
                f"{verdict.label} score={verdict.score} risk={verdict.risk_level.value}"
            )
            self.state, alert = apply_verdict(
                self.state,
                address,
                verdict,
                symbol=result.snapshot.symbol,
                max_alerts=settings.max_alerts,
            )
            if alert is not None:
                logger.warning(f"[ALERT] {alert.message}")


def _log_results(query: str, coins: list) -> None:
    if not query:
        return
    logger.info(f"[SEARCH] {query!r}: {len(coins)} results")
    for coin in coins:
        rank = f"#{coin.market_cap_rank}" if coin.market_cap_rank else "-"
        logger.info(f"[SEARCH]   {coin.id} {coin.symbol.upper()} {coin.name} ({rank})")


async def search_prompt(
    scanner: Scanner,
    read_line: Callable[[], Awaitable[str]] | None = None,
) -> None:
    """Read queries until EOF, resolving each through a debounced session."""
    if read_line is None:
        async def read_line() -> str:
            return await asyncio.to_thread(input, "search> ")

    session = scanner.search_session(on_results=_log_results)
    try:
        while True:
            try:
                query = await read_line()
            except EOFError:
                break
            await session.search(query)
    finally:
        await session.close()


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logger(level=args.log_level)

    if not args.addresses and not args.api and not args.search:
        logger.error("Nothing to do: pass token addresses, --search and/or --api")
        return

    if args.search:
        scanner = build_scanner()
        try:
            await search_prompt(scanner)
        finally:
            await scanner.close()
        return

    if settings.enable_scan_log:
        from coinsignal.db.database import init_db

        await init_db()

    scanner = build_scanner()
    loop = WatchLoop(scanner, args.addresses, args.strategy)
    logger.info(
        f"Starting coin-signal: {len(args.addresses)} tokens, strategy={args.strategy}"
    )

    if args.once:
        await loop.cycle()
        await scanner.close()
        return

    # Graceful shutdown on SIGINT/SIGTERM
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    running_loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        running_loop.add_signal_handler(sig, _signal_handler)

    poller = Poller(loop.cycle, interval_sec=args.interval, name="watch")
    if args.addresses:
        poller.start()

    api_task = None
    if args.api:
        from coinsignal.api.server import run_api_server

        api_task = asyncio.create_task(run_api_server(scanner), name="api_server")

    waiters = [asyncio.create_task(shutdown_event.wait())]
    if api_task is not None:
        waiters.append(api_task)
    done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    if api_task in done and api_task.exception() is not None:
        logger.error(f"API server stopped: {api_task.exception()}")

    # Cancel remaining tasks
    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await poller.stop()
    await scanner.close()
    logger.info(f"Shutdown complete ({len(loop.state.alerts)} alerts raised)")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
