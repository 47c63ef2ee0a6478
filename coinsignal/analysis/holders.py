"""Holder distribution profile — real data adapter and market-cap simulation.

No holder-distribution source is wired in yet, so ``simulate_holders``
produces a plausible profile from market cap alone. Only the holder
count is random, and the random source is injected so the rest of the
analysis stays deterministic. ``build_holder_profile`` is the seam for a
real on-chain top-holders query: the scoring engine only sees the
resulting HolderProfile either way.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class HolderCategory(str, Enum):
    DEV = "dev"
    WHALE = "whale"
    EXCHANGE = "exchange"
    OTHER = "other"


@dataclass(frozen=True)
class Holder:
    rank: int
    pct: float  # % of supply
    label: str
    category: HolderCategory


@dataclass(frozen=True)
class HolderProfile:
    holders: tuple[Holder, ...]
    top10_pct: float
    total_holders: int
    risk: RiskLevel
    simulated: bool = False

    @property
    def dev_pct(self) -> float:
        return sum(h.pct for h in self.holders if h.category is HolderCategory.DEV)


# Share of the top-10 concentration held by each rank (sums to 1.0)
_RANK_SHARES = (0.22, 0.16, 0.13, 0.11, 0.09, 0.08, 0.07, 0.06, 0.04, 0.04)

# (market cap ceiling, top-10 concentration %); smaller caps are more concentrated
_CONCENTRATION_BY_MCAP = (
    (100_000, 68.0),
    (1_000_000, 52.0),
    (10_000_000, 38.0),
    (100_000_000, 28.0),
)
_LARGE_CAP_CONCENTRATION = 18.0

_USD_PER_HOLDER = 2_000
_MIN_HOLDERS = 50
_MAX_HOLDERS = 2_000_000


def concentration_risk(top10_pct: float) -> RiskLevel:
    if top10_pct > 60:
        return RiskLevel.HIGH
    if top10_pct > 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def build_holder_profile(
    holders: Sequence[Holder], total_holders: int, *, simulated: bool = False
) -> HolderProfile:
    """Rank holders by share and derive top-10 concentration and risk."""
    ranked = sorted(holders, key=lambda h: h.pct, reverse=True)
    ranked = [
        Holder(rank=i + 1, pct=h.pct, label=h.label, category=h.category)
        for i, h in enumerate(ranked)
    ]
    top10 = round(sum(h.pct for h in ranked[:10]), 2)
    return HolderProfile(
        holders=tuple(ranked),
        top10_pct=top10,
        total_holders=max(total_holders, len(ranked)),
        risk=concentration_risk(top10),
        simulated=simulated,
    )


def _top10_for_market_cap(market_cap: float) -> float:
    for ceiling, pct in _CONCENTRATION_BY_MCAP:
        if market_cap < ceiling:
            return pct
    return _LARGE_CAP_CONCENTRATION


def _label(rank: int) -> tuple[str, HolderCategory]:
    if rank == 1:
        return "Deployer", HolderCategory.DEV
    if rank <= 4:
        return f"Whale {rank - 1}", HolderCategory.WHALE
    if rank == 5:
        return "Exchange Hot Wallet", HolderCategory.EXCHANGE
    return f"Holder #{rank}", HolderCategory.OTHER


def simulate_holders(market_cap: float, rng: random.Random | None = None) -> HolderProfile:
    """Synthetic HolderProfile derived from market cap.

    Concentration is a pure function of market cap; the total holder
    count is jittered +/-30% with ``rng`` (a fresh unseeded Random if
    none is given).
    """
    rng = rng or random.Random()
    top10 = _top10_for_market_cap(max(market_cap, 0.0))

    holders = []
    for rank, share in enumerate(_RANK_SHARES, start=1):
        label, category = _label(rank)
        holders.append(Holder(rank=rank, pct=round(top10 * share, 2), label=label, category=category))

    base_count = min(max(int(market_cap / _USD_PER_HOLDER), _MIN_HOLDERS), _MAX_HOLDERS)
    total = max(int(base_count * rng.uniform(0.7, 1.3)), len(holders))

    return build_holder_profile(holders, total, simulated=True)
