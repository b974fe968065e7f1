"""
tests/test_scheduler.py -- Unit tests for the proactive renewal timer.

Delays are a few milliseconds so the state machine runs for real on the
event loop; no clock patching.
"""

from __future__ import annotations

import asyncio

import pytest

from auth.errors import NoSession, RenewalFailed
from client.scheduler import RenewalScheduler, SchedulerState


class Recorder:
    def __init__(self, error=None) -> None:
        self.calls = 0
        self.error = error
        self.fired = asyncio.Event()

    async def __call__(self) -> None:
        self.calls += 1
        self.fired.set()
        if self.error is not None:
            raise self.error


def test_delay_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RenewalScheduler(Recorder(), delay=0)


@pytest.mark.asyncio
async def test_arm_schedules_and_success_rearms() -> None:
    renew = Recorder()
    scheduler = RenewalScheduler(renew, delay=0.01)
    assert scheduler.state is SchedulerState.IDLE

    scheduler.arm()
    assert scheduler.state is SchedulerState.SCHEDULED

    await asyncio.wait_for(renew.fired.wait(), timeout=1)
    assert renew.calls == 1
    assert scheduler.state is SchedulerState.SCHEDULED
    scheduler.cancel()


@pytest.mark.asyncio
async def test_cancel_prevents_firing() -> None:
    renew = Recorder()
    scheduler = RenewalScheduler(renew, delay=0.02)
    scheduler.arm()
    scheduler.cancel()
    await asyncio.sleep(0.05)
    assert renew.calls == 0
    assert scheduler.state is SchedulerState.IDLE


@pytest.mark.asyncio
async def test_rearming_keeps_a_single_timer() -> None:
    renew = Recorder()
    scheduler = RenewalScheduler(renew, delay=0.03)
    scheduler.arm()
    scheduler.arm()
    scheduler.arm()
    await asyncio.sleep(0.045)
    assert renew.calls == 1
    scheduler.cancel()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [NoSession(), RenewalFailed()])
async def test_failure_goes_idle_without_rearming(error) -> None:
    renew = Recorder(error=error)
    scheduler = RenewalScheduler(renew, delay=0.01)
    scheduler.arm()
    await asyncio.wait_for(renew.fired.wait(), timeout=1)
    await asyncio.sleep(0.03)
    assert renew.calls == 1
    assert scheduler.state is SchedulerState.IDLE
    assert not scheduler.armed


@pytest.mark.asyncio
async def test_cancel_from_inside_renew_does_not_crash() -> None:
    scheduler: RenewalScheduler

    async def renew() -> None:
        scheduler.cancel()
        raise RenewalFailed()

    scheduler = RenewalScheduler(renew, delay=0.01)
    scheduler.arm()
    await asyncio.sleep(0.03)
    assert scheduler.state is SchedulerState.IDLE
