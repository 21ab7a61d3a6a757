"""Tests for watchdog module."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from robust_connection.watchdog import ConnectionWatchdog

TIMEOUT = 0.1


@pytest.mark.asyncio
async def test_quiet_link_triggers_reconnect():
    connection = MagicMock()
    watchdog = ConnectionWatchdog(TIMEOUT, on_timeout=connection.force_reconnect)
    watchdog.start()
    assert watchdog.is_running

    await asyncio.sleep(TIMEOUT * 3)

    connection.force_reconnect.assert_called_once_with()
    assert not watchdog.is_running


@pytest.mark.asyncio
async def test_detached_before_callback_runs():
    seen = []
    watchdog = None

    def on_timeout():
        seen.append(watchdog.is_running)
        # What the connection does on reconnect
        watchdog.stop()

    watchdog = ConnectionWatchdog(TIMEOUT, on_timeout=on_timeout)
    watchdog.start()
    await asyncio.sleep(TIMEOUT * 3)

    assert seen == [False]
    assert not watchdog.is_running


@pytest.mark.asyncio
async def test_async_callback_awaited():
    on_timeout = AsyncMock()
    watchdog = ConnectionWatchdog(TIMEOUT, on_timeout=on_timeout)
    watchdog.start()
    await asyncio.sleep(TIMEOUT * 3)

    on_timeout.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_inbound_messages_keep_it_quiet():
    on_timeout = MagicMock()
    watchdog = ConnectionWatchdog(TIMEOUT * 2, on_timeout=on_timeout)
    watchdog.start()
    for _ in range(6):
        await asyncio.sleep(TIMEOUT / 2)
        watchdog.notify_activity()
    watchdog.stop()

    on_timeout.assert_not_called()
    assert not watchdog.is_running


@pytest.mark.asyncio
async def test_stopped_watchdog_never_fires():
    on_timeout = MagicMock()
    watchdog = ConnectionWatchdog(TIMEOUT, on_timeout=on_timeout)
    watchdog.stop()
    watchdog.start()
    watchdog.start()
    watchdog.stop()
    watchdog.stop()
    await asyncio.sleep(TIMEOUT * 3)

    on_timeout.assert_not_called()


@pytest.mark.asyncio
async def test_failing_callback_is_logged(caplog):
    watchdog = ConnectionWatchdog(
        TIMEOUT, on_timeout=AsyncMock(side_effect=RuntimeError("reconnect failed"))
    )
    with caplog.at_level(logging.ERROR):
        watchdog.start()
        await asyncio.sleep(TIMEOUT * 3)

    assert "on_timeout callback failed" in caplog.text
    assert not watchdog.is_running


@pytest.mark.asyncio
async def test_restart_from_callback_keeps_watching():
    fired = []
    watchdog = None

    def on_timeout():
        fired.append(watchdog.last_activity)
        if len(fired) == 1:
            watchdog.start()

    watchdog = ConnectionWatchdog(0.2, on_timeout=on_timeout)
    watchdog.start()
    await asyncio.sleep(0.32)
    assert len(fired) == 1
    assert watchdog.is_running

    await asyncio.sleep(0.43)
    assert len(fired) == 2
    assert fired[1] > fired[0]
    assert not watchdog.is_running
