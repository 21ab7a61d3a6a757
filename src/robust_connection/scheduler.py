"""Fixed-delay reconnect timer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

_LOGGER = logging.getLogger(__name__)


class Cancelable(Protocol):
    def cancel(self) -> Any: ...


CallLater = Callable[[float, Callable[[], None]], Cancelable]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> Cancelable:
    return asyncio.get_running_loop().call_later(delay, callback)


class ReconnectScheduler:
    """Run *callback* once, *delay* seconds after :meth:`schedule`.

    At most one timer is pending at any time.  The delay never grows
    and there is no retry limit: the owner decides when to stop by
    calling :meth:`cancel` and no longer scheduling.

    Parameters
    ----------
    delay:
        Seconds between :meth:`schedule` and the callback.
    callback:
        Invoked on expiry.  Exceptions are logged.
    call_later:
        Timer primitive ``(delay, callback) -> handle`` whose handle has
        a ``cancel()`` method.  Defaults to the running asyncio loop's
        ``call_later``.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        call_later: CallLater | None = None,
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._call_later = call_later or _loop_call_later
        self._handle: Cancelable | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def is_pending(self) -> bool:
        """Return whether a timer is currently waiting to fire."""
        return self._handle is not None

    def schedule(self) -> bool:
        """Start the timer.

        Returns ``False`` without starting a second timer if one is
        already pending.
        """
        if self._handle is not None:
            return False
        self._handle = self._call_later(self._delay, self._fire)
        return True

    def cancel(self) -> None:
        """Cancel the pending timer.  Safe to call when none is pending."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:
            _LOGGER.exception("Reconnect callback failed")
