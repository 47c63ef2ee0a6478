"""Tests for the fixed-interval poller."""

import asyncio

import pytest

from coinsignal.pipeline.poller import Poller


@pytest.mark.asyncio
async def test_polls_until_stopped() -> None:
    calls = 0

    async def tick() -> None:
        nonlocal calls
        calls += 1

    poller = Poller(tick, interval_sec=0.01)
    poller.start()
    assert poller.is_running
    await asyncio.sleep(0.06)
    await poller.stop()

    assert not poller.is_running
    assert calls >= 2
    frozen = calls
    await asyncio.sleep(0.03)
    assert calls == frozen


@pytest.mark.asyncio
async def test_failing_cycle_does_not_stop_loop() -> None:
    calls = 0

    async def flaky() -> None:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("provider down")

    poller = Poller(flaky, interval_sec=0.01)
    poller.start()
    await asyncio.sleep(0.06)
    await poller.stop()

    assert calls >= 2
    assert poller.failures == 1


@pytest.mark.asyncio
async def test_start_twice_reuses_task() -> None:
    async def noop() -> None:
        pass

    poller = Poller(noop, interval_sec=1.0)
    first = poller.start()
    assert poller.start() is first
    await poller.stop()


@pytest.mark.asyncio
async def test_run_once_reports_failure() -> None:
    async def boom() -> None:
        raise ValueError("bad payload")

    poller = Poller(boom, interval_sec=1.0)
    assert await poller.run_once() is False
    assert poller.cycles == 1


@pytest.mark.asyncio
async def test_stop_without_start() -> None:
    async def noop() -> None:
        pass

    await Poller(noop).stop()


def test_interval_must_be_positive() -> None:
    async def noop() -> None:
        pass

    with pytest.raises(ValueError):
        Poller(noop, interval_sec=0)
