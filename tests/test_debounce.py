"""Tests for the quiet-period debounce timer."""

from __future__ import annotations

import asyncio

import pytest

from acme_treesitter.session.debounce import DebounceScheduler


@pytest.mark.asyncio
async def test_burst_of_notifications_fires_once() -> None:
    fired: list[float] = []
    loop = asyncio.get_running_loop()
    scheduler = DebounceScheduler(0.02, lambda: fired.append(loop.time()))

    armed = [scheduler.notify() for _ in range(10)]
    await asyncio.sleep(0.08)

    assert armed == [True] + [False] * 9
    assert len(fired) == 1
    assert not scheduler.pending


@pytest.mark.asyncio
async def test_notify_after_firing_arms_again() -> None:
    fired: list[int] = []
    scheduler = DebounceScheduler(0.01, lambda: fired.append(1))

    scheduler.notify()
    await asyncio.sleep(0.05)
    scheduler.notify()
    await asyncio.sleep(0.05)

    assert len(fired) == 2


@pytest.mark.asyncio
async def test_cancel_prevents_pending_fire() -> None:
    fired: list[int] = []
    scheduler = DebounceScheduler(0.01, lambda: fired.append(1))

    scheduler.notify()
    assert scheduler.pending
    scheduler.cancel()
    await asyncio.sleep(0.05)

    assert fired == []
    assert not scheduler.pending
    scheduler.cancel()


@pytest.mark.asyncio
async def test_fire_happens_after_the_delay() -> None:
    loop = asyncio.get_running_loop()
    fired: list[float] = []
    scheduler = DebounceScheduler(0.03, lambda: fired.append(loop.time()))

    started = loop.time()
    scheduler.notify()
    await asyncio.sleep(0.01)
    scheduler.notify()
    await asyncio.sleep(0.1)

    assert len(fired) == 1
    assert fired[0] - started >= 0.03 - 0.005


def test_negative_delay_is_treated_as_zero() -> None:
    async def _run() -> float:
        return DebounceScheduler(-1.0, lambda: None).delay

    assert asyncio.run(_run()) == 0.0
