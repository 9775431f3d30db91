import asyncio
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from reminder.clock import AsyncioClock, seconds_until


def test_seconds_until_compares_instants_across_zones():
    new_york = ZoneInfo("America/New_York")
    before = datetime(2024, 11, 3, 0, 30, tzinfo=new_york)
    after = datetime(2024, 11, 3, 23, 30, tzinfo=new_york)

    # 23 wall-clock hours apart, 24 real hours because the clocks fall back.
    assert seconds_until(after, before) == 24 * 3600
    assert seconds_until(before, after) == -24 * 3600


def test_asyncio_clock_is_timezone_aware():
    now = AsyncioClock(ZoneInfo("Europe/Berlin")).now()
    assert now.tzinfo is not None


@pytest.mark.asyncio
async def test_trigger_fires_at_deadline():
    clock = AsyncioClock(timezone.utc)
    fired = asyncio.Event()

    async def callback() -> None:
        fired.set()

    trigger = clock.call_at(clock.now() + timedelta(milliseconds=50), callback)

    await asyncio.wait_for(fired.wait(), timeout=2)
    assert not trigger.cancelled


@pytest.mark.asyncio
async def test_past_deadline_fires_immediately():
    clock = AsyncioClock(timezone.utc)
    fired = asyncio.Event()

    async def callback() -> None:
        fired.set()

    clock.call_at(clock.now() - timedelta(minutes=5), callback)

    await asyncio.wait_for(fired.wait(), timeout=1)


@pytest.mark.asyncio
async def test_cancelled_trigger_never_fires():
    clock = AsyncioClock(timezone.utc)
    fired = asyncio.Event()

    async def callback() -> None:
        fired.set()

    trigger = clock.call_at(clock.now() + timedelta(milliseconds=50), callback)
    trigger.cancel()
    await asyncio.sleep(0.2)

    assert trigger.cancelled
    assert not fired.is_set()


@pytest.mark.asyncio
async def test_cancel_after_timer_elapsed_skips_pending_callback():
    clock = AsyncioClock(timezone.utc)
    fired = asyncio.Event()

    async def callback() -> None:
        fired.set()

    trigger = clock.call_at(clock.now() - timedelta(seconds=1), callback)
    # Timer handle has run and queued the callback task, which has not started yet.
    trigger._fire()
    trigger.cancel()
    await asyncio.sleep(0.1)

    assert not fired.is_set()


@pytest.mark.asyncio
async def test_cancel_leaves_running_callback_alone():
    clock = AsyncioClock(timezone.utc)
    started = asyncio.Event()
    release = asyncio.Event()
    done = asyncio.Event()

    async def callback() -> None:
        started.set()
        await release.wait()
        done.set()

    trigger = clock.call_at(clock.now(), callback)
    await asyncio.wait_for(started.wait(), timeout=1)

    trigger.cancel()
    release.set()

    await asyncio.wait_for(done.wait(), timeout=1)
