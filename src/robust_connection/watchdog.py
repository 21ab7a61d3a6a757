"""Connection watchdog for monitoring inbound message activity.

Detects "zombie" links where the transport still reports OPEN but no
messages are arriving: the peer or some middlebox has silently gone
away without a close or error ever firing.

The caller must specify the expected timeout because only the caller
knows the endpoint's message cadence.  A market-data feed may send
several frames a second while a control channel may stay quiet for
minutes between heartbeats.

Usage::

    watchdog = ConnectionWatchdog(
        timeout=30.0,
        on_timeout=connection.force_reconnect,
    )
    watchdog.start()

    # In your message callback:
    watchdog.notify_activity()

    # When done:
    watchdog.stop()

:class:`~robust_connection.RobustConnection` wires this up itself when
``ConnectionOptions.idle_timeout`` is set.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from .hooks import invoke_hook

_LOGGER = logging.getLogger(__name__)


class ConnectionWatchdog:
    """Monitor a connection for inbound activity.

    Tracks the time since the last :meth:`notify_activity` call.
    When the timeout is exceeded the optional *on_timeout* callback
    is invoked once and the watchdog stops.

    Parameters
    ----------
    timeout:
        Seconds of inactivity before the watchdog fires.
    on_timeout:
        Callback invoked when the timeout expires.  May be a plain
        function or return an awaitable.
    """

    def __init__(
        self,
        timeout: float,
        on_timeout: Callable[[], Awaitable[None] | None] | None = None,
    ) -> None:
        self._timeout = timeout
        self._on_timeout = on_timeout
        self._last_activity: float = 0.0
        self._task: asyncio.Task[None] | None = None
        self._started = False

    @property
    def is_running(self) -> bool:
        """Return whether the watchdog is actively monitoring."""
        return self._started and self._task is not None and not self._task.done()

    @property
    def last_activity(self) -> float:
        """Return the monotonic timestamp of the last activity."""
        return self._last_activity

    def notify_activity(self) -> None:
        """Record that a message or other activity was received."""
        self._last_activity = time.monotonic()

    def start(self) -> None:
        """Start the watchdog monitoring loop.

        Records the current time as the initial activity timestamp and
        creates an asyncio task for the monitoring loop.  Calling
        ``start()`` on an already-running watchdog is a no-op.
        """
        if self._started:
            return
        self._last_activity = time.monotonic()
        self._started = True
        self._task = asyncio.ensure_future(self._monitor())

    def stop(self) -> None:
        """Stop the watchdog.  Safe to call multiple times or before ``start()``."""
        self._started = False
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _monitor(self) -> None:
        """Wake every half timeout (capped at 30 s) and check for inactivity."""
        check_interval = min(self._timeout / 2, 30.0)
        try:
            while self._started:
                await asyncio.sleep(check_interval)
                elapsed = time.monotonic() - self._last_activity
                if elapsed < self._timeout:
                    continue

                _LOGGER.warning(
                    "ConnectionWatchdog: no activity for %.1f s (timeout %.1f s)",
                    elapsed,
                    self._timeout,
                )
                # Detach first: on_timeout commonly stops this watchdog.
                self._started = False
                self._task = None
                pending = invoke_hook("on_timeout callback", self._on_timeout)
                if pending is not None:
                    await pending
                break
        except asyncio.CancelledError:
            pass
