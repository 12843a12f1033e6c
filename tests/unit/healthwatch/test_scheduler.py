"""
Tests for the fixed-cadence background schedule.
"""

import asyncio

import pytest

from healthwatch.services.scheduler import PeriodicTask


class Counter:
    def __init__(self, fail_every: int = 0, duration: float = 0.0) -> None:
        self.calls = 0
        self.fail_every = fail_every
        self.duration = duration

    async def __call__(self) -> None:
        self.calls += 1
        if self.duration:
            await asyncio.sleep(self.duration)
        if self.fail_every and self.calls % self.fail_every == 0:
            raise RuntimeError("cycle failed")


async def test_runs_repeatedly_until_stopped() -> None:
    action = Counter()
    task = PeriodicTask("test", 0.05, action, run_immediately=True)

    task.start()
    await asyncio.sleep(0.23)
    await task.stop()
    calls_at_stop = action.calls
    await asyncio.sleep(0.1)

    assert calls_at_stop >= 3
    assert action.calls == calls_at_stop
    assert task.cycles_completed == calls_at_stop
    assert not task.is_running


async def test_first_cycle_waits_one_interval_by_default() -> None:
    action = Counter()
    task = PeriodicTask("test", 0.5, action)

    task.start()
    await asyncio.sleep(0.1)
    await task.stop()

    assert action.calls == 0


async def test_failing_cycle_does_not_stop_schedule() -> None:
    action = Counter(fail_every=1)
    task = PeriodicTask("test", 0.03, action, run_immediately=True)

    task.start()
    await asyncio.sleep(0.15)
    assert task.is_running
    await task.stop()

    assert action.calls >= 2
    assert task.cycles_completed == 0


async def test_overrunning_cycle_starts_next_immediately() -> None:
    action = Counter(duration=0.08)
    task = PeriodicTask("test", 0.02, action, run_immediately=True)

    task.start()
    await asyncio.sleep(0.3)
    await task.stop()

    assert action.calls >= 3


async def test_start_is_idempotent_and_stop_is_safe_to_repeat() -> None:
    action = Counter()
    task = PeriodicTask("test", 0.05, action, run_immediately=True)

    task.start()
    task.start()
    await asyncio.sleep(0.01)
    await task.stop()
    await task.stop()

    assert action.calls == 1


async def test_stop_abandons_cycle_in_flight() -> None:
    action = Counter(duration=10.0)
    task = PeriodicTask("test", 1.0, action, run_immediately=True)

    task.start()
    await asyncio.sleep(0.01)
    await asyncio.wait_for(task.stop(), timeout=1.0)

    assert action.calls == 1
    assert task.cycles_completed == 0


def test_start_needs_running_loop() -> None:
    task = PeriodicTask("test", 1.0, Counter())
    with pytest.raises(RuntimeError):
        task.start()


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PeriodicTask("test", 0, Counter())
