"""Tests for the watch-loop entrypoint."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from coinsignal.analysis.scoring import Classification, Strategy, Verdict
from coinsignal.main import WatchLoop, parse_args, search_prompt
from coinsignal.parsers.coingecko.models import CoinGeckoSearchCoin
from coinsignal.pipeline.search import DebouncedSearch


def _result(classification: Classification, score: int = 70) -> MagicMock:
    result = MagicMock()
    result.snapshot.symbol = "TEST"
    result.metrics.price = 0.00123
    result.verdict = Verdict(
        strategy=Strategy.WEIGHTED_FACTOR, classification=classification, score=score
    )
    return result


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args(["Mint111", "Mint222"])
        assert args.addresses == ["Mint111", "Mint222"]
        assert args.strategy == "weighted_factor"
        assert args.interval == 30.0
        assert args.once is False
        assert args.api is False
        assert args.search is False

    def test_strategy_choice(self) -> None:
        assert parse_args(["--strategy", "quick_screen"]).strategy == "quick_screen"
        with pytest.raises(SystemExit):
            parse_args(["--strategy", "moon"])


class TestWatchLoop:
    @pytest.mark.asyncio
    async def test_cycle_raises_alert_once(self) -> None:
        scanner = MagicMock()
        scanner.scan_token = AsyncMock(return_value=_result(Classification.STRONG_BUY))
        loop = WatchLoop(scanner, ["Mint111"], "weighted_factor")

        await loop.cycle()
        await loop.cycle()

        assert len(loop.state.alerts) == 1
        assert loop.state.alerts[0].symbol == "TEST"
        scanner.scan_token.assert_awaited_with("Mint111", strategy="weighted_factor")

    @pytest.mark.asyncio
    async def test_failed_scan_skips_address(self) -> None:
        scanner = MagicMock()
        scanner.scan_token = AsyncMock(side_effect=[
            RuntimeError("DexScreener down"),
            _result(Classification.EXPLOSIVE, 85),
        ])
        loop = WatchLoop(scanner, ["Bad111", "Mint111"], "weighted_factor")

        await loop.cycle()

        assert scanner.scan_token.await_count == 2
        assert [a.address for a in loop.state.alerts] == ["Mint111"]
        assert "Bad111" not in loop.state.last_classification

    def test_duplicate_addresses_watched_once(self) -> None:
        loop = WatchLoop(MagicMock(), ["Mint111", "Mint111"], "weighted_factor")
        assert loop.state.watchlist == ("Mint111",)


class TestSearchPrompt:
    @pytest.mark.asyncio
    async def test_reads_queries_until_eof(self) -> None:
        lookup = AsyncMock(return_value=[CoinGeckoSearchCoin(id="bitcoin", symbol="btc")])
        scanner = MagicMock()
        scanner.search_session = MagicMock(
            side_effect=lambda on_results: DebouncedSearch(
                lookup, debounce_ms=0, on_results=on_results
            )
        )
        read_line = AsyncMock(side_effect=["b", "btc", "bitcoin", EOFError()])

        await search_prompt(scanner, read_line=read_line)

        # Single-character input is below the minimum and never looked up
        assert [c.args for c in lookup.await_args_list] == [("btc",), ("bitcoin",)]
        assert read_line.await_count == 4
