"""Fetch -> derive -> score glue around the analysis core.

The scanner owns the provider clients, the per-address history window
and the optional scan log. Scoring itself stays pure: everything the
engine needs is passed in per call.
"""

import asyncio
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger

from coinsignal.analysis.exceptions import InsufficientHistory
from coinsignal.analysis.holders import HolderProfile, simulate_holders
from coinsignal.analysis.metrics import (
    DerivedMetrics,
    derive_metrics,
    validate_momentum_weights,
)
from coinsignal.analysis.scoring import (
    Classification,
    ScoringConfig,
    Strategy,
    Verdict,
    parse_strategy,
    score,
)
from coinsignal.analysis.snapshot import MarketSnapshot
from coinsignal.parsers.coingecko.client import CoinGeckoClient
from coinsignal.parsers.coingecko.convert import ohlc_to_snapshot
from coinsignal.parsers.coingecko.models import CoinGeckoMarket, CoinGeckoSearchCoin
from coinsignal.parsers.dexscreener.client import DexScreenerClient
from coinsignal.parsers.dexscreener.convert import pair_to_snapshot, pick_primary_pair
from coinsignal.parsers.persistence import ScanLogSink
from coinsignal.pipeline.history import SnapshotHistory
from coinsignal.pipeline.search import DebouncedSearch
from config.settings import Settings, settings

MIN_CANDLES = 50


@dataclass(frozen=True)
class ScanResult:
    snapshot: MarketSnapshot
    metrics: DerivedMetrics
    verdict: Verdict
    holders: HolderProfile | None = None

    def to_dict(self) -> dict:
        m = self.metrics
        data = {
            "address": self.snapshot.address,
            "symbol": self.snapshot.symbol,
            "name": self.snapshot.name,
            "price": m.price,
            "market_cap": m.market_cap,
            "liquidity": m.liquidity,
            "volume_24h": m.volume_24h,
            "metrics": {
                "liquidity_to_market_cap": m.liquidity_to_market_cap,
                "volume_to_market_cap": m.volume_to_market_cap,
                "volume_to_liquidity": m.volume_to_liquidity,
                "fdv_ratio": m.fdv_ratio,
                "buy_pressure_1h": m.buy_pressure_1h,
                "volume_velocity": m.volume_velocity,
                "volume_acceleration": m.volume_acceleration,
                "momentum": m.momentum,
                "trend": m.trend.value,
                "price_impact": m.price_impact,
                "whale_ratio": m.whale_ratio,
                "pair_age_hours": m.pair_age_hours,
            },
            "verdict": self.verdict.to_dict(),
        }
        if m.indicators is not None:
            ind = m.indicators
            data["indicators"] = {
                "rsi": ind.rsi,
                "macd": ind.macd.macd,
                "macd_signal": ind.macd.signal,
                "macd_histogram": ind.macd.histogram,
                "stoch_k": ind.stoch_k,
                "stoch_d": ind.stoch_d,
                "ema20": ind.ema20,
                "ema50": ind.ema50,
                "wave": ind.wave.value,
            }
        if self.holders is not None:
            data["holders"] = {
                "top10_pct": self.holders.top10_pct,
                "total_holders": self.holders.total_holders,
                "dev_pct": round(self.holders.dev_pct, 2),
                "risk": self.holders.risk.value,
                "simulated": self.holders.simulated,
            }
        return data


class Scanner:
    def __init__(
        self,
        dexscreener: DexScreenerClient,
        coingecko: CoinGeckoClient,
        *,
        strategy: Strategy | str = Strategy.WEIGHTED_FACTOR,
        config: ScoringConfig | None = None,
        momentum_weights: Mapping[str, float] | None = None,
        history: SnapshotHistory | None = None,
        sink: ScanLogSink | None = None,
        rng: random.Random | None = None,
        ohlc_days: int = 30,
        min_candles: int = MIN_CANDLES,
        max_search_results: int = 8,
        search_debounce_ms: int = 300,
        search_min_chars: int = 2,
    ) -> None:
        self._dex = dexscreener
        self._cg = coingecko
        self._strategy = parse_strategy(strategy)
        self._config = config or ScoringConfig()
        self._momentum_weights = (
            validate_momentum_weights(momentum_weights) if momentum_weights is not None else None
        )
        self._history = history if history is not None else SnapshotHistory()
        self._sink = sink
        self._rng = rng or random.Random()
        self._ohlc_days = ohlc_days
        self._min_candles = min_candles
        self._max_search_results = max_search_results
        self._search_debounce_ms = search_debounce_ms
        self._search_min_chars = search_min_chars

    @property
    def history(self) -> SnapshotHistory:
        return self._history

    async def scan_token(
        self, address: str, strategy: Strategy | str | None = None
    ) -> ScanResult:
        """Score a DEX token by address using its most liquid pair."""
        strategy = parse_strategy(strategy) if strategy is not None else self._strategy
        pairs = await self._dex.get_token_pairs(address)
        pair = pick_primary_pair(pairs)
        snapshot = pair_to_snapshot(pair)
        metrics = derive_metrics(snapshot, momentum_weights=self._momentum_weights)
        holders = simulate_holders(metrics.market_cap, self._rng)

        verdict = score(
            metrics,
            holders,
            self._history.get(address),
            strategy=strategy,
            config=self._config,
        )
        self._history.append(address, metrics)

        logger.info(
            f"[SCAN] {snapshot.symbol or address}: {verdict.classification.value} "
            f"score={verdict.score} ({strategy.value})"
        )
        self._record(address, snapshot, verdict)
        return ScanResult(snapshot=snapshot, metrics=metrics, verdict=verdict, holders=holders)

    async def analyze_coin(self, coin_id: str) -> ScanResult:
        """Indicator-vote analysis of a CoinGecko coin from its OHLC history."""
        candles = await self._cg.get_ohlc(coin_id, days=self._ohlc_days)
        if len(candles) < self._min_candles:
            raise InsufficientHistory(
                f"{coin_id}: {len(candles)} candles, need {self._min_candles}"
            )
        coin = await self._cg.get_coin(coin_id)
        snapshot = ohlc_to_snapshot(coin_id, candles, symbol=coin.symbol, name=coin.name)
        result = self._score_ohlc(snapshot)
        self._record(coin_id, snapshot, result.verdict)
        return result

    async def top_setups(
        self, limit: int = 10, universe: int = 50, min_strength: int = 60
    ) -> list[ScanResult]:
        """Strongest valid LONG setups among the largest coins by market cap."""
        markets = await self._cg.get_markets(per_page=100)
        candidates = markets[:universe]
        scored = await asyncio.gather(
            *(self._score_market(m, min_strength) for m in candidates)
        )
        setups = [r for r in scored if r is not None]
        setups.sort(key=lambda r: r.verdict.score, reverse=True)
        logger.info(
            f"[TOP] {len(setups)} LONG setups >= {min_strength} among {len(candidates)} coins"
        )
        return setups[:limit]

    async def search(self, query: str) -> list[CoinGeckoSearchCoin]:
        coins = await self._cg.search(query)
        return coins[: self._max_search_results]

    def search_session(
        self, on_results: Callable[[str, list], None] | None = None
    ) -> DebouncedSearch:
        """Debounced search-as-you-type bound to this scanner's provider."""
        return DebouncedSearch(
            self.search,
            debounce_ms=self._search_debounce_ms,
            min_chars=self._search_min_chars,
            max_results=self._max_search_results,
            on_results=on_results,
        )

    async def _score_market(
        self, market: CoinGeckoMarket, min_strength: int
    ) -> ScanResult | None:
        try:
            candles = await self._cg.get_ohlc(market.id, days=self._ohlc_days)
            if len(candles) < self._min_candles:
                return None
            snapshot = ohlc_to_snapshot(market.id, candles, market=market)
            result = self._score_ohlc(snapshot)
        except Exception as e:
            logger.warning(f"[TOP] Skipping {market.id}: {e}")
            return None

        verdict = result.verdict
        if (
            verdict.classification is Classification.LONG
            and verdict.is_valid
            and verdict.score >= min_strength
        ):
            return result
        return None

    def _score_ohlc(self, snapshot: MarketSnapshot) -> ScanResult:
        metrics = derive_metrics(snapshot, momentum_weights=self._momentum_weights)
        verdict = score(metrics, strategy=Strategy.INDICATOR_VOTE, config=self._config)
        return ScanResult(snapshot=snapshot, metrics=metrics, verdict=verdict)

    def _record(self, address: str, snapshot: MarketSnapshot, verdict: Verdict) -> None:
        if self._sink is None:
            return
        self._sink.submit(
            address=address,
            score=verdict.score,
            verdict=verdict.classification.value,
            price=snapshot.price,
            scanned_at=snapshot.observed_at or datetime.now(UTC),
            strategy=verdict.strategy.value,
            symbol=snapshot.symbol,
        )

    async def close(self) -> None:
        await self._dex.close()
        await self._cg.close()
        if self._sink is not None:
            await self._sink.drain()


def build_scanner(cfg: Settings = settings) -> Scanner:
    """Scanner wired from settings: shared clients, history size, optional scan log."""
    sink = None
    if cfg.enable_scan_log:
        from coinsignal.db.database import async_session_factory

        sink = ScanLogSink(async_session_factory)

    return Scanner(
        DexScreenerClient(max_rps=cfg.dexscreener_max_rps),
        CoinGeckoClient(api_key=cfg.coingecko_api_key, max_rps=cfg.coingecko_max_rps),
        strategy=cfg.scoring_strategy,
        config=ScoringConfig.from_settings(cfg),
        momentum_weights={
            "5m": cfg.momentum_weight_5m,
            "1h": cfg.momentum_weight_1h,
            "6h": cfg.momentum_weight_6h,
            "24h": cfg.momentum_weight_24h,
        },
        history=SnapshotHistory(cfg.history_size, max_addresses=cfg.history_max_tokens),
        sink=sink,
        ohlc_days=cfg.coingecko_ohlc_days,
        min_candles=cfg.coingecko_min_candles,
        max_search_results=cfg.search_max_results,
        search_debounce_ms=cfg.search_debounce_ms,
        search_min_chars=cfg.search_min_chars,
    )
