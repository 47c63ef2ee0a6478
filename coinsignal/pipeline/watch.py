"""Watchlist and alert bookkeeping as explicit, immutable state.

Every transition takes a WatchState and returns a new one; nothing here
does IO. The poll loop owns the current state and feeds verdicts in.

An alert is raised when a watched token moves *up* into an actionable
classification (LONG, STRONG_BUY, EXPLOSIVE). Staying in the same
classification, or dropping, never alerts.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from coinsignal.analysis.scoring import BULLISH, Classification, Verdict

DEFAULT_MAX_ALERTS = 50

# Ordering used to detect upgrades
_RANK = {
    Classification.AVOID: 0,
    Classification.SHORT: 0,
    Classification.HIGH_RISK: 1,
    Classification.HOLD: 1,
    Classification.WATCHLIST: 2,
    Classification.LONG: 3,
    Classification.STRONG_BUY: 3,
    Classification.EXPLOSIVE: 4,
}


@dataclass(frozen=True)
class Alert:
    address: str
    symbol: str | None
    classification: Classification
    previous: Classification | None
    score: int
    raised_at: datetime

    @property
    def message(self) -> str:
        name = self.symbol or self.address
        prev = self.previous.value if self.previous else "new"
        return f"{name}: {prev} -> {self.classification.value} (score {self.score})"


@dataclass(frozen=True)
class WatchState:
    watchlist: tuple[str, ...] = ()
    alerts: tuple[Alert, ...] = ()  # newest first
    last_classification: Mapping[str, Classification] = field(default_factory=dict)

    def is_watched(self, address: str) -> bool:
        return address in self.watchlist


def add_to_watchlist(state: WatchState, address: str) -> WatchState:
    if state.is_watched(address):
        return state
    return replace(state, watchlist=state.watchlist + (address,))


def remove_from_watchlist(state: WatchState, address: str) -> WatchState:
    if not state.is_watched(address):
        return state
    last = {k: v for k, v in state.last_classification.items() if k != address}
    return replace(
        state,
        watchlist=tuple(a for a in state.watchlist if a != address),
        last_classification=last,
    )


def is_upgrade(previous: Classification | None, current: Classification) -> bool:
    if current not in BULLISH:
        return False
    if previous is None:
        return True
    return _RANK[current] > _RANK[previous]


def apply_verdict(
    state: WatchState,
    address: str,
    verdict: Verdict,
    *,
    symbol: str | None = None,
    now: datetime | None = None,
    max_alerts: int = DEFAULT_MAX_ALERTS,
) -> tuple[WatchState, Alert | None]:
    """Record a verdict for a watched token; return the new state and any alert.

    Verdicts for tokens outside the watchlist leave the state untouched.
    """
    if not state.is_watched(address):
        return state, None

    previous = state.last_classification.get(address)
    current = verdict.classification
    last = {**state.last_classification, address: current}

    alert = None
    alerts = state.alerts
    if is_upgrade(previous, current):
        alert = Alert(
            address=address,
            symbol=symbol,
            classification=current,
            previous=previous,
            score=verdict.score,
            raised_at=now or datetime.now(UTC),
        )
        alerts = ((alert,) + alerts)[:max_alerts]

    return replace(state, alerts=alerts, last_classification=last), alert


def clear_alerts(state: WatchState) -> WatchState:
    return replace(state, alerts=())
