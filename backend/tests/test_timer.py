import asyncio

from practica.timer import AsyncioScheduler, Countdown

from conftest import ManualScheduler


def test_countdown_expires_exactly_once():
    scheduler = ManualScheduler()
    expired = []
    countdown = Countdown(scheduler, lambda: expired.append(True))
    countdown.start(3)
    assert countdown.remaining == 3 and countdown.running
    scheduler.advance(2)
    assert countdown.remaining == 1 and expired == []
    scheduler.advance(1)
    assert countdown.remaining == 0 and expired == [True]
    assert not countdown.running
    scheduler.advance(5)
    assert expired == [True]


def test_restart_cancels_previous_timer():
    scheduler = ManualScheduler()
    expired = []
    countdown = Countdown(scheduler, lambda: expired.append(True))
    countdown.start(3)
    scheduler.advance(2)
    countdown.start(3)
    assert countdown.remaining == 3
    assert len(scheduler.active) == 1
    scheduler.advance(2)
    assert expired == []


def test_cancel_is_idempotent():
    scheduler = ManualScheduler()
    countdown = Countdown(scheduler, lambda: None)
    countdown.start(10)
    countdown.cancel()
    countdown.cancel()
    assert scheduler.active == []


def test_stale_tick_is_ignored():
    scheduler = ManualScheduler()
    countdown = Countdown(scheduler, lambda: None)
    countdown.start(10)
    stale = scheduler.handles[0].callback
    countdown.start(10)
    stale()
    assert countdown.remaining == 10


async def test_asyncio_scheduler_repeats_until_cancelled():
    ticks = []
    handle = AsyncioScheduler().every(0.01, lambda: ticks.append(1))
    await asyncio.sleep(0.1)
    handle.cancel()
    seen = len(ticks)
    assert seen >= 2
    await asyncio.sleep(0.05)
    assert len(ticks) == seen


async def test_asyncio_scheduler_callback_may_cancel_itself():
    ticks = []
    holder = {}

    def tick():
        ticks.append(1)
        holder["handle"].cancel()

    holder["handle"] = AsyncioScheduler().every(0.01, tick)
    await asyncio.sleep(0.08)
    assert ticks == [1]
