"""Tests for the full-jitter backoff generator."""

from __future__ import annotations

import random

import pytest
from tenacity import RetryCallState

from acme_treesitter.services.backoff import Backoff, BackoffWait


class _MaxRandom(random.Random):
    """Always draws the top of the requested range."""

    def uniform(self, a: float, b: float) -> float:
        return b


def test_delays_stay_within_the_growing_ceiling() -> None:
    backoff = Backoff(0.2, 30.0, rng=random.Random(1234))

    for attempt in range(40):
        ceiling = min(30.0, 0.2 * 2**attempt)
        assert backoff.ceiling == pytest.approx(ceiling)
        delay = backoff.next()
        assert 0.0 <= delay <= ceiling


def test_ceiling_doubles_until_cap() -> None:
    backoff = Backoff(1.0, 5.0, rng=_MaxRandom())

    assert [backoff.next() for _ in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert backoff.attempt == 5


def test_reset_restores_base_ceiling() -> None:
    backoff = Backoff(0.2, 30.0, rng=_MaxRandom())
    for _ in range(10):
        backoff.next()

    backoff.reset()

    assert backoff.attempt == 0
    assert backoff.ceiling == 0.2
    assert backoff.next() == 0.2


def test_huge_attempt_counts_do_not_overflow() -> None:
    backoff = Backoff(0.2, 30.0, rng=_MaxRandom())
    for _ in range(200):
        delay = backoff.next()

    assert delay == 30.0


def test_zero_base_never_waits() -> None:
    backoff = Backoff(0.0, 10.0)

    assert [backoff.next() for _ in range(3)] == [0.0, 0.0, 0.0]


def test_negative_durations_are_rejected() -> None:
    with pytest.raises(ValueError):
        Backoff(-1.0, 1.0)
    with pytest.raises(ValueError):
        Backoff(1.0, -1.0)


def test_backoff_wait_draws_from_shared_backoff() -> None:
    backoff = Backoff(0.5, 8.0, rng=_MaxRandom())
    wait = BackoffWait(backoff)
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})  # type: ignore[arg-type]

    assert wait(state) == 0.5
    assert wait(state) == 1.0
    assert backoff.attempt == 2
