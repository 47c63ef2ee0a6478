"""Signal scoring engine — turns DerivedMetrics into a Verdict.

Three strategies share one Verdict shape:

- INDICATOR_VOTE: six buy and six sell indicator conditions are counted;
  three votes make a LONG or SHORT setup with Fibonacci entry, stop and
  targets, otherwise HOLD with default bands around the price.
- WEIGHTED_FACTOR: a neutral baseline is adjusted by fixed-point factor
  checks (liquidity, pressure, volume, trend, dilution, holders, history)
  and mapped to verdict bands and position sizes.
- QUICK_SCREEN: five additive checks, the single-page predictor screen.

Pure functions: no IO, no randomness, no hidden state. Calling any
strategy twice with the same inputs returns equal verdicts.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from loguru import logger

from coinsignal.analysis.exceptions import ConfigurationError
from coinsignal.analysis.holders import HolderProfile, RiskLevel
from coinsignal.analysis.indicators import Wave
from coinsignal.analysis.metrics import DerivedMetrics, TrendStrength


class Strategy(str, Enum):
    INDICATOR_VOTE = "indicator_vote"
    WEIGHTED_FACTOR = "weighted_factor"
    QUICK_SCREEN = "quick_screen"


class Classification(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"
    EXPLOSIVE = "EXPLOSIVE"
    STRONG_BUY = "STRONG_BUY"
    WATCHLIST = "WATCHLIST"
    HIGH_RISK = "HIGH_RISK"
    AVOID = "AVOID"


LABELS = {
    Classification.LONG: "LONG",
    Classification.SHORT: "SHORT",
    Classification.HOLD: "HOLD",
    Classification.EXPLOSIVE: "EXPLOSIVE / STRONG BUY",
    Classification.STRONG_BUY: "STRONG BUY",
    Classification.WATCHLIST: "WATCHLIST",
    Classification.HIGH_RISK: "HIGH RISK",
    Classification.AVOID: "AVOID",
}

# Suggested position size, % of portfolio
POSITION_BANDS: dict[Classification, tuple[float, float]] = {
    Classification.EXPLOSIVE: (3.0, 5.0),
    Classification.STRONG_BUY: (2.0, 3.0),
    Classification.WATCHLIST: (1.0, 2.0),
    Classification.HIGH_RISK: (0.5, 1.0),
    Classification.AVOID: (0.0, 0.0),
}

BULLISH = frozenset({
    Classification.LONG,
    Classification.EXPLOSIVE,
    Classification.STRONG_BUY,
})

VOTE_POINTS = 25
QUICK_STRONG_BUY_MIN = 75
QUICK_WATCHLIST_MIN = 45


@dataclass(frozen=True)
class ScoringConfig:
    """Thresholds shared by the strategies. Validated on construction."""

    baseline: int = 35
    explosive_min: int = 80
    strong_buy_min: int = 65
    watchlist_min: int = 50
    high_risk_min: int = 35
    vote_threshold: int = 3
    history_window: int = 5

    def __post_init__(self) -> None:
        if not 0 <= self.baseline <= 100:
            raise ConfigurationError(f"baseline must be within 0..100, got {self.baseline}")
        bands = (self.explosive_min, self.strong_buy_min, self.watchlist_min, self.high_risk_min)
        if not 100 >= bands[0] > bands[1] > bands[2] > bands[3] >= 0:
            raise ConfigurationError(
                f"verdict bands must be strictly descending within 0..100, got {bands}"
            )
        if not 1 <= self.vote_threshold <= 6:
            raise ConfigurationError(
                f"vote_threshold must be between 1 and 6, got {self.vote_threshold}"
            )
        if self.history_window < 2:
            raise ConfigurationError(
                f"history_window must be at least 2, got {self.history_window}"
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "ScoringConfig":
        return cls(
            baseline=settings.scoring_baseline,
            explosive_min=settings.scoring_explosive_min,
            strong_buy_min=settings.scoring_strong_buy_min,
            watchlist_min=settings.scoring_watchlist_min,
            high_risk_min=settings.scoring_high_risk_min,
            vote_threshold=settings.scoring_vote_threshold,
            history_window=settings.scoring_history_window,
        )


@dataclass(frozen=True)
class Verdict:
    strategy: Strategy
    classification: Classification
    score: int  # 0..100
    signals: tuple[str, ...] = ()
    red_flags: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW
    position_size_pct: tuple[float, float] = (0.0, 0.0)
    entry_range: tuple[float, float] | None = None
    stop_loss: float | None = None
    take_profits: tuple[float, ...] = ()
    is_valid: bool = False
    breakdown: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "breakdown", MappingProxyType(dict(self.breakdown)))

    @property
    def label(self) -> str:
        return LABELS[self.classification]

    @property
    def summary(self) -> str:
        if not self.signals:
            return (
                "No significant accumulation patterns detected. "
                "Price action is currently neutral or bearish."
            )
        if self.classification in BULLISH:
            outlook = "Technical alignment suggests a potential breakout."
        elif self.classification is Classification.SHORT:
            outlook = "Technical alignment suggests further downside."
        else:
            outlook = "The setup is not confirmed yet."
        return f"Analysis detected {', '.join(self.signals)}. {outlook}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "classification": self.classification.value,
            "label": self.label,
            "score": self.score,
            "signals": list(self.signals),
            "red_flags": list(self.red_flags),
            "risk_level": self.risk_level.value,
            "position_size_pct": list(self.position_size_pct),
            "entry_range": list(self.entry_range) if self.entry_range else None,
            "stop_loss": self.stop_loss,
            "take_profits": list(self.take_profits),
            "is_valid": self.is_valid,
            "breakdown": dict(self.breakdown),
            "summary": self.summary,
        }


def risk_level(signals: Sequence[str], red_flags: Sequence[str]) -> RiskLevel:
    if len(red_flags) > len(signals):
        return RiskLevel.HIGH
    if red_flags:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_score(score: int, config: ScoringConfig) -> Classification:
    if score >= config.explosive_min:
        return Classification.EXPLOSIVE
    if score >= config.strong_buy_min:
        return Classification.STRONG_BUY
    if score >= config.watchlist_min:
        return Classification.WATCHLIST
    if score >= config.high_risk_min:
        return Classification.HIGH_RISK
    return Classification.AVOID


class _Tally:
    """Running score with the reasons and points behind it."""

    def __init__(self, baseline: int) -> None:
        self.score = baseline
        self.signals: list[str] = []
        self.red_flags: list[str] = []
        self.breakdown: dict[str, int] = {}

    def touch(self, factor: str) -> None:
        self.breakdown.setdefault(factor, 0)

    def signal(self, factor: str, points: int, reason: str) -> None:
        self.score += points
        self.breakdown[factor] = self.breakdown.get(factor, 0) + points
        self.signals.append(reason)

    def flag(self, factor: str, penalty: int, reason: str) -> None:
        self.score -= penalty
        self.breakdown[factor] = self.breakdown.get(factor, 0) - penalty
        self.red_flags.append(reason)


def score_weighted_factor(
    metrics: DerivedMetrics,
    holders: HolderProfile | None = None,
    history: Sequence[DerivedMetrics] | None = None,
    config: ScoringConfig | None = None,
) -> Verdict:
    """Baseline + fixed-point factor checks, clamped to 0..100.

    ``history`` holds earlier metrics for the same token, oldest first,
    excluding ``metrics`` itself.
    """
    config = config or ScoringConfig()
    m = metrics
    t = _Tally(config.baseline)

    # --- Holder concentration (-20 to +10) ---
    if holders is not None:
        t.touch("holders")
        top10 = holders.top10_pct
        if top10 > 60:
            t.flag("holders", 20, f"top 10 holders own {top10:.0f}% of supply")
        elif top10 > 40:
            t.flag("holders", 10, f"elevated holder concentration (top 10 own {top10:.0f}%)")
        elif top10 < 25:
            t.signal("holders", 10, f"well-distributed holders (top 10 own {top10:.0f}%)")

        t.touch("dev_wallet")
        if holders.dev_pct > 10:
            t.flag("dev_wallet", 5, f"dev wallet holds {holders.dev_pct:.1f}% of supply")

    # --- Buy pressure 1h (-15 to +15) ---
    t.touch("buy_pressure")
    trades_1h = m.buys_1h + m.sells_1h
    bp = m.buy_pressure_1h
    if trades_1h == 0:
        t.flag("buy_pressure", 10, "no trades in the last hour")
    elif bp >= 3.0:
        t.signal("buy_pressure", 15, f"aggressive buy pressure ({bp:.1f}x buys/sells 1h)")
    elif bp >= 2.0:
        t.signal("buy_pressure", 10, f"strong buy pressure ({bp:.1f}x buys/sells 1h)")
    elif bp >= 1.5:
        t.signal("buy_pressure", 5, f"positive buy pressure ({bp:.1f}x buys/sells 1h)")
    elif bp < 0.7:
        t.flag("buy_pressure", 15, f"sellers dominate ({bp:.2f}x buys/sells 1h)")

    # --- Buy pressure across timeframes (-5 to +5) ---
    t.touch("pressure_alignment")
    if trades_1h > 0:
        pressures = (m.buy_pressure_5m, m.buy_pressure_1h, m.buy_pressure_24h)
        if all(p >= 1.2 for p in pressures):
            t.signal("pressure_alignment", 5, "buy pressure aligned across 5m/1h/24h")
        elif all(p < 0.8 for p in pressures):
            t.flag("pressure_alignment", 5, "sell pressure across 5m/1h/24h")

    # --- Volume velocity (-10 to +15) ---
    t.touch("volume_velocity")
    vel = m.volume_velocity
    if vel >= 3.0:
        t.signal("volume_velocity", 15, f"volume surging ({vel:.1f}x hourly average)")
    elif vel >= 2.0:
        t.signal("volume_velocity", 10, f"volume rising ({vel:.1f}x hourly average)")
    elif m.volume_24h > 0 and vel < 0.5:
        t.flag("volume_velocity", 10, f"volume fading ({vel:.2f}x hourly average)")

    # --- Volume acceleration 5m vs 1h (0 to +10) ---
    t.touch("volume_acceleration")
    accel = m.volume_acceleration
    if accel >= 2.0:
        t.signal("volume_acceleration", 10, f"volume accelerating (5m pace {accel:.1f}x the hour)")
    elif accel >= 1.5:
        t.signal("volume_acceleration", 5, f"volume picking up (5m pace {accel:.1f}x the hour)")

    # --- Trend bucket (-15 to +10) ---
    t.touch("trend")
    if m.trend is TrendStrength.STRONG_UP:
        t.signal("trend", 10, "price up on all four timeframes")
    elif m.trend is TrendStrength.UP:
        t.signal("trend", 5, "price up on 3 of 4 timeframes")
    elif m.trend is TrendStrength.DOWN:
        t.flag("trend", 5, "price down on 3 of 4 timeframes")
    elif m.trend is TrendStrength.STRONG_DOWN:
        t.flag("trend", 15, "price not up on any timeframe")

    # --- Momentum band (-10 to +10) ---
    t.touch("momentum")
    mom = m.momentum
    if mom > 50:
        t.flag("momentum", 10, f"overextended momentum ({mom:+.1f}%)")
    elif 3 <= mom <= 25:
        t.signal("momentum", 10, f"healthy momentum ({mom:+.1f}%)")
    elif mom < -10:
        t.flag("momentum", 10, f"negative momentum ({mom:+.1f}%)")

    # --- Whale ratio (-10 to +5) ---
    t.touch("whale_ratio")
    if m.buys_24h + m.sells_24h > 0:
        wr = m.whale_ratio
        if wr >= 1.5:
            t.signal("whale_ratio", 5, f"large buys outsize large sells ({wr:.2f}x)")
        elif wr <= 0.5:
            t.flag("whale_ratio", 10, f"large sells outsize large buys ({wr:.2f}x)")

    # --- Liquidity depth (0 to +10; thin pools are flagged, not scored) ---
    t.touch("liquidity")
    lr = m.liquidity_to_market_cap
    if lr >= 0.10:
        t.signal("liquidity", 10, f"healthy liquidity ({lr:.0%} of market cap)")
    elif lr >= 0.05:
        t.signal("liquidity", 5, f"adequate liquidity ({lr:.0%} of market cap)")
    else:
        t.flag("liquidity", 0, f"thin liquidity ({lr:.1%} of market cap)")

    # --- Price impact for a $10K trade (-10 to +5) ---
    t.touch("price_impact")
    impact = m.price_impact
    if impact < 1.0:
        t.signal("price_impact", 5, f"low slippage ({impact:.2f}% on a $10K trade)")
    elif impact > 5.0:
        t.flag("price_impact", 10, f"high price impact ({impact:.1f}% on a $10K trade)")

    # --- Dilution (-15 to +10) ---
    t.touch("fdv")
    fr = m.fdv_ratio
    if fr <= 1.2:
        t.signal("fdv", 10, f"low dilution (FDV/MC {fr:.2f})")
    elif fr > 3.0:
        t.flag("fdv", 15, f"heavy dilution (FDV/MC {fr:.1f})")
    elif fr > 2.0:
        t.flag("fdv", 5, f"moderate dilution (FDV/MC {fr:.1f})")

    # --- Volume / liquidity turnover (-10 to +5) ---
    t.touch("volume_liquidity")
    vl = m.volume_to_liquidity
    if vl > 10:
        t.flag("volume_liquidity", 10, f"volume {vl:.0f}x liquidity (possible wash trading)")
    elif 0.5 <= vl <= 5:
        t.signal("volume_liquidity", 5, f"healthy turnover ({vl:.1f}x liquidity)")

    # --- Volume / market cap (-5 to +5) ---
    t.touch("volume_market_cap")
    vm = m.volume_to_market_cap
    if vm >= 0.5:
        t.signal("volume_market_cap", 5, f"strong trading interest (24h volume {vm:.0%} of market cap)")
    elif m.market_cap > 0 and vm < 0.01:
        t.flag("volume_market_cap", 5, f"negligible trading volume ({vm:.2%} of market cap)")

    # --- Pair age vs momentum (-10 to +5) ---
    t.touch("pair_age")
    age = m.pair_age_hours
    if age is not None:
        if age < 24 and mom > 20:
            t.flag("pair_age", 10, f"new pair pumping ({age:.0f}h old, momentum {mom:+.1f}%)")
        elif age < 1:
            t.flag("pair_age", 5, "pair is less than an hour old")
        elif age >= 168 and mom > 0:
            t.signal("pair_age", 5, f"established pair gaining ({age / 24:.0f} days old)")

    # --- Momentum continuity over recent scans (-10 to +10) ---
    t.touch("history")
    window = config.history_window
    if history:
        samples = [h.momentum for h in list(history)[-(window - 1):]] + [mom]
        if len(samples) >= window:
            steps = list(zip(samples, samples[1:]))
            if all(b > a for a, b in steps):
                t.signal("history", 10, f"momentum building over the last {window} scans")
            elif all(b < a for a, b in steps):
                t.flag("history", 10, f"momentum fading over the last {window} scans")

    final = max(0, min(100, t.score))
    classification = classify_score(final, config)

    logger.debug(
        f"[SCORE] {m.symbol or m.address or '?'}: weighted_factor raw={t.score} "
        f"final={final} {classification.value} "
        f"signals={len(t.signals)} flags={len(t.red_flags)}"
    )

    return Verdict(
        strategy=Strategy.WEIGHTED_FACTOR,
        classification=classification,
        score=final,
        signals=tuple(t.signals),
        red_flags=tuple(t.red_flags),
        risk_level=risk_level(t.signals, t.red_flags),
        position_size_pct=POSITION_BANDS[classification],
        is_valid=final >= config.watchlist_min,
        breakdown=t.breakdown,
    )


def _default_levels(price: float) -> tuple[tuple[float, float], float, tuple[float, ...]]:
    return (
        (price * 0.995, price * 1.005),
        price * 0.95,
        (price * 1.03, price * 1.06, price * 1.10),
    )


def score_indicator_vote(
    metrics: DerivedMetrics, config: ScoringConfig | None = None
) -> Verdict:
    """Count indicator votes; buy side is evaluated first and wins ties."""
    config = config or ScoringConfig()
    ind = metrics.indicators
    if ind is None:
        entry, stop, targets = _default_levels(metrics.price)
        flags = ("no price history for indicator analysis",)
        return Verdict(
            strategy=Strategy.INDICATOR_VOTE,
            classification=Classification.HOLD,
            score=0,
            red_flags=flags,
            risk_level=risk_level((), flags),
            entry_range=entry,
            stop_loss=stop,
            take_profits=targets,
            breakdown={"buy_votes": 0, "sell_votes": 0},
        )

    price = metrics.price if metrics.price > 0 else ind.last_close
    fib = ind.fib
    line, signal_line, hist = ind.macd
    k, d = ind.stoch_k, ind.stoch_d

    buy_checks = (
        (ind.rsi < 45, f"RSI {ind.rsi:.1f} below 45"),
        (hist > 0 and line > signal_line, "bullish MACD (line above signal)"),
        (k < 25 and k > d, f"stochastic oversold and turning up (%K {k:.1f})"),
        (price > ind.ema20 > ind.ema50, "price above EMA20 above EMA50"),
        (ind.wave in (Wave.IMPULSE_UP, Wave.WAVE_3_UP), f"bullish wave structure ({ind.wave.value})"),
        (price < fib.r2, "price below the 0.382 retracement"),
    )
    sell_checks = (
        (ind.rsi > 55, f"RSI {ind.rsi:.1f} above 55"),
        (hist < 0 and line < signal_line, "bearish MACD (line below signal)"),
        (k > 75 and k < d, f"stochastic overbought and turning down (%K {k:.1f})"),
        (price < ind.ema20 < ind.ema50, "price below EMA20 below EMA50"),
        (ind.wave in (Wave.IMPULSE_DOWN, Wave.WAVE_C_DOWN), f"bearish wave structure ({ind.wave.value})"),
        (price > fib.s2, "price above the 0.382 pullback from the high"),
    )
    buy_reasons = tuple(reason for ok, reason in buy_checks if ok)
    sell_reasons = tuple(reason for ok, reason in sell_checks if ok)
    breakdown = {"buy_votes": len(buy_reasons), "sell_votes": len(sell_reasons)}

    if len(buy_reasons) >= config.vote_threshold:
        strength = min(100, len(buy_reasons) * VOTE_POINTS)
        verdict = Verdict(
            strategy=Strategy.INDICATOR_VOTE,
            classification=Classification.LONG,
            score=strength,
            signals=buy_reasons,
            red_flags=sell_reasons,
            risk_level=risk_level(buy_reasons, sell_reasons),
            position_size_pct=POSITION_BANDS[classify_score(strength, config)],
            entry_range=(max(fib.s2, price * 0.98), fib.r1),
            stop_loss=fib.s3,
            take_profits=(fib.r1, fib.r2, fib.r3),
            is_valid=True,
            breakdown=breakdown,
        )
    elif len(sell_reasons) >= config.vote_threshold:
        strength = min(100, len(sell_reasons) * VOTE_POINTS)
        verdict = Verdict(
            strategy=Strategy.INDICATOR_VOTE,
            classification=Classification.SHORT,
            score=strength,
            signals=sell_reasons,
            red_flags=buy_reasons,
            risk_level=risk_level(sell_reasons, buy_reasons),
            position_size_pct=POSITION_BANDS[classify_score(strength, config)],
            entry_range=(fib.s1, min(fib.r2, price * 1.02)),
            stop_loss=fib.r3,
            take_profits=(fib.s3, fib.s2, fib.s1),
            is_valid=True,
            breakdown=breakdown,
        )
    else:
        entry, stop, targets = _default_levels(price)
        verdict = Verdict(
            strategy=Strategy.INDICATOR_VOTE,
            classification=Classification.HOLD,
            score=0,
            signals=buy_reasons,
            red_flags=sell_reasons,
            risk_level=risk_level(buy_reasons, sell_reasons),
            entry_range=entry,
            stop_loss=stop,
            take_profits=targets,
            breakdown=breakdown,
        )

    logger.debug(
        f"[SCORE] {metrics.symbol or metrics.address or '?'}: indicator_vote "
        f"buy={len(buy_reasons)} sell={len(sell_reasons)} -> {verdict.classification.value}"
    )
    return verdict


def score_quick_screen(metrics: DerivedMetrics) -> Verdict:
    """Five additive checks: dilution, liquidity, buy pressure, volume, 1h move."""
    m = metrics
    checks = (
        ("fdv", 15, m.fdv_ratio <= 1.2,
         "low dilution (good FDV)", f"FDV/MC {m.fdv_ratio:.2f} above 1.2"),
        ("liquidity", 15, m.market_cap > 0 and m.liquidity >= m.market_cap * 0.1,
         "stable liquidity", "liquidity below 10% of market cap"),
        ("buy_pressure", 25, m.buy_pressure_1h > 1.8,
         "aggressive buy pressure", f"buy/sell ratio {m.buy_pressure_1h:.2f}x at or below 1.8x"),
        ("volume_velocity", 25, m.volume_velocity > 2,
         "surging volume", f"volume velocity {m.volume_velocity:.1f}x at or below 2x"),
        ("momentum_1h", 20, 3 < m.price_change_1h < 25,
         "strong hourly momentum", f"1h change {m.price_change_1h:+.1f}% outside 3%..25%"),
    )
    t = _Tally(0)
    for factor, points, passed, reason, miss in checks:
        if passed:
            t.signal(factor, points, reason)
        else:
            t.flag(factor, 0, miss)

    final = max(0, min(100, t.score))
    if final >= QUICK_STRONG_BUY_MIN:
        classification = Classification.STRONG_BUY
    elif final >= QUICK_WATCHLIST_MIN:
        classification = Classification.WATCHLIST
    else:
        classification = Classification.AVOID

    return Verdict(
        strategy=Strategy.QUICK_SCREEN,
        classification=classification,
        score=final,
        signals=tuple(t.signals),
        red_flags=tuple(t.red_flags),
        risk_level=risk_level(t.signals, t.red_flags),
        position_size_pct=POSITION_BANDS[classification],
        is_valid=classification is not Classification.AVOID,
        breakdown=t.breakdown,
    )


def parse_strategy(value: Strategy | str) -> Strategy:
    try:
        return Strategy(value)
    except ValueError:
        raise ConfigurationError(f"unknown scoring strategy: {value!r}") from None


def score(
    metrics: DerivedMetrics,
    holders: HolderProfile | None = None,
    history: Sequence[DerivedMetrics] | None = None,
    *,
    strategy: Strategy | str = Strategy.WEIGHTED_FACTOR,
    config: ScoringConfig | None = None,
) -> Verdict:
    """Score one metrics record with the selected strategy."""
    strategy = parse_strategy(strategy)
    if strategy is Strategy.INDICATOR_VOTE:
        return score_indicator_vote(metrics, config)
    if strategy is Strategy.QUICK_SCREEN:
        return score_quick_screen(metrics)
    return score_weighted_factor(metrics, holders, history, config)
