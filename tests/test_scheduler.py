"""Tests for scheduler module."""

import asyncio
from unittest.mock import MagicMock

import pytest

from robust_connection.scheduler import ReconnectScheduler


@pytest.mark.asyncio
async def test_fires_after_delay():
    callback = MagicMock()
    scheduler = ReconnectScheduler(0.05, callback)

    assert scheduler.schedule()
    assert scheduler.is_pending
    await asyncio.sleep(0.02)
    callback.assert_not_called()

    await asyncio.sleep(0.06)
    callback.assert_called_once()
    assert not scheduler.is_pending


@pytest.mark.asyncio
async def test_only_one_timer_pending():
    callback = MagicMock()
    scheduler = ReconnectScheduler(0.02, callback)

    assert scheduler.schedule()
    assert not scheduler.schedule()
    await asyncio.sleep(0.06)

    callback.assert_called_once()


@pytest.mark.asyncio
async def test_can_reschedule_after_firing():
    callback = MagicMock()
    scheduler = ReconnectScheduler(0.01, callback)

    scheduler.schedule()
    await asyncio.sleep(0.03)
    scheduler.schedule()
    await asyncio.sleep(0.03)

    assert callback.call_count == 2


@pytest.mark.asyncio
async def test_cancel():
    callback = MagicMock()
    scheduler = ReconnectScheduler(0.02, callback)

    scheduler.schedule()
    scheduler.cancel()
    scheduler.cancel()  # Should be safe
    await asyncio.sleep(0.05)

    callback.assert_not_called()
    assert not scheduler.is_pending


@pytest.mark.asyncio
async def test_callback_exception_handled():
    scheduler = ReconnectScheduler(0.01, MagicMock(side_effect=RuntimeError("oops")))
    scheduler.schedule()
    await asyncio.sleep(0.03)
    # Should not propagate
    assert not scheduler.is_pending


def test_injected_timer():
    handle = MagicMock()
    call_later = MagicMock(return_value=handle)
    callback = MagicMock()
    scheduler = ReconnectScheduler(7.5, callback, call_later=call_later)

    scheduler.schedule()
    delay, fire = call_later.call_args.args
    assert delay == 7.5

    scheduler.cancel()
    handle.cancel.assert_called_once()

    scheduler.schedule()
    call_later.call_args.args[1]()
    callback.assert_called_once()
    assert not scheduler.is_pending
