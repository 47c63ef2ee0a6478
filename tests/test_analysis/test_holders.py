"""Tests for holder concentration: simulation and profile building."""

import random

import pytest

from coinsignal.analysis.holders import (
    Holder,
    HolderCategory,
    RiskLevel,
    build_holder_profile,
    concentration_risk,
    simulate_holders,
)


@pytest.mark.parametrize(
    "market_cap, top10, risk",
    [
        (50_000, 68.0, RiskLevel.HIGH),
        (500_000, 52.0, RiskLevel.MEDIUM),
        (5_000_000, 38.0, RiskLevel.LOW),
        (50_000_000, 28.0, RiskLevel.LOW),
        (1_000_000_000, 18.0, RiskLevel.LOW),
    ],
)
def test_concentration_by_market_cap(market_cap, top10, risk) -> None:
    profile = simulate_holders(market_cap, random.Random(1))
    assert profile.top10_pct == pytest.approx(top10)
    assert profile.risk is risk
    assert profile.simulated is True


def test_small_cap_dev_share() -> None:
    profile = simulate_holders(50_000, random.Random(1))
    assert profile.dev_pct == pytest.approx(14.96)
    assert len(profile.holders) == 10


def test_labels_by_rank() -> None:
    holders = simulate_holders(2_000_000, random.Random(1)).holders
    assert (holders[0].label, holders[0].category) == ("Deployer", HolderCategory.DEV)
    assert (holders[1].label, holders[1].category) == ("Whale 1", HolderCategory.WHALE)
    assert holders[3].category is HolderCategory.WHALE
    assert (holders[4].label, holders[4].category) == ("Exchange Hot Wallet", HolderCategory.EXCHANGE)
    assert (holders[5].label, holders[5].category) == ("Holder #6", HolderCategory.OTHER)
    assert [h.rank for h in holders] == list(range(1, 11))


def test_injected_rng_is_reproducible() -> None:
    a = simulate_holders(1_000_000, random.Random(42))
    b = simulate_holders(1_000_000, random.Random(42))
    assert a == b


def test_holder_count_jitter_range() -> None:
    rng = random.Random(7)
    for _ in range(50):
        total = simulate_holders(1_000_000, rng).total_holders
        # base 500 holders, +/-30%
        assert 350 <= total <= 650


def test_concentration_ignores_rng() -> None:
    a = simulate_holders(3_000_000, random.Random(1))
    b = simulate_holders(3_000_000, random.Random(2))
    assert a.holders == b.holders
    assert a.top10_pct == b.top10_pct


def test_zero_market_cap() -> None:
    profile = simulate_holders(0, random.Random(3))
    assert profile.top10_pct == pytest.approx(68.0)
    assert profile.total_holders >= 10


@pytest.mark.parametrize(
    "top10, risk",
    [(60.01, RiskLevel.HIGH), (60.0, RiskLevel.MEDIUM), (40.01, RiskLevel.MEDIUM), (40.0, RiskLevel.LOW)],
)
def test_concentration_risk_bands(top10, risk) -> None:
    assert concentration_risk(top10) is risk


def test_build_profile_from_real_holders() -> None:
    raw = [Holder(rank=0, pct=float(p), label=f"w{p}", category=HolderCategory.OTHER) for p in range(1, 13)]
    profile = build_holder_profile(raw, total_holders=5)

    assert [h.pct for h in profile.holders][:3] == [12.0, 11.0, 10.0]
    assert [h.rank for h in profile.holders] == list(range(1, 13))
    # 12 + 11 + ... + 3
    assert profile.top10_pct == pytest.approx(75.0)
    assert profile.risk is RiskLevel.HIGH
    assert profile.total_holders == 12
    assert profile.simulated is False
