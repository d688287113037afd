"""
Tests for the countdown timer.
"""

import asyncio

import pytest

from campus.assessments.timer import CountdownTimer, format_remaining


@pytest.mark.asyncio
async def test_timer_fires_once():
    calls = []

    async def on_expire():
        calls.append("expired")

    timer = CountdownTimer(0.01, on_expire)
    timer.start()
    await timer.wait()

    assert calls == ["expired"]
    assert timer.expired
    assert timer.remaining() == 0.0
    timer.cancel()
    assert not timer.cancelled


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    calls = []

    async def on_expire():
        calls.append("expired")

    timer = CountdownTimer(0.05, on_expire)
    timer.start()
    timer.cancel()
    await timer.wait()
    await asyncio.sleep(0.06)

    assert calls == []
    assert timer.cancelled
    assert not timer.expired


@pytest.mark.asyncio
async def test_callback_errors_do_not_escape():
    async def on_expire():
        raise RuntimeError("boom")

    timer = CountdownTimer(0, on_expire)
    timer.start()
    await timer.wait()
    assert timer.expired


def test_remaining_before_start():
    async def on_expire():
        pass

    assert CountdownTimer(90, on_expire).remaining() == 90


@pytest.mark.parametrize("seconds, text", [(0, "0:00"), (59.9, "0:59"), (61, "1:01"), (1200, "20:00"), (-3, "0:00")])
def test_format_remaining(seconds, text):
    assert format_remaining(seconds) == text
