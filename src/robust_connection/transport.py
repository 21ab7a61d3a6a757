"""Transport capability contract.

A transport is one physical link to the remote endpoint.  It is owned
by a :class:`~robust_connection.RobustConnection`, which assigns the
four callback slots right after obtaining the instance and replaces
the whole object on every reconnect.  A transport is never reopened.

Anything with this shape works, including a thin wrapper around a
third-party client::

    class MyTransport:
        on_open = on_close = on_error = on_message = None
        ready_state = ReadyState.CONNECTING

        def send(self, payload): ...
        def close(self, code=None, reason=None): ...

The built-in implementations are
:class:`~robust_connection.websocket.WebSocketTransport` and
:class:`~robust_connection.ble.BleTransport`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, Union, runtime_checkable

_LOGGER = logging.getLogger(__name__)

Payload = Union[str, bytes]


@dataclass(frozen=True)
class CloseEvent:
    """Details reported with a transport's close callback."""

    code: int | None = None
    reason: str = ""
    was_clean: bool = False


@runtime_checkable
class Transport(Protocol):
    """Structural type every transport must satisfy.

    ``close`` and ``address`` are optional; the connection looks them
    up with :func:`getattr` and tolerates their absence.
    """

    on_open: Callable[[], Any] | None
    on_close: Callable[[CloseEvent], Any] | None
    on_error: Callable[[Exception], Any] | None
    on_message: Callable[[Payload], Any] | None

    @property
    def ready_state(self) -> int:
        """Current :class:`~robust_connection.const.ReadyState` value."""

    def send(self, payload: Payload) -> None:
        """Transmit one message."""


TransportFactory = Callable[[], Union[Transport, Awaitable[Transport]]]
Endpoint = Union[str, TransportFactory]


def describe(transport: object | None, fallback: object = None) -> str:
    """Return a human-readable address for log messages."""
    address = getattr(transport, "address", None)
    if address:
        return str(address)
    if isinstance(fallback, str):
        return fallback
    if fallback is not None:
        return getattr(fallback, "__qualname__", repr(fallback))
    return repr(transport)


def emit(slot: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a callback slot if assigned, logging instead of raising.

    Used by the built-in transports so a failing consumer callback can
    never tear down their I/O tasks.
    """
    if slot is None:
        return
    try:
        slot(*args)
    except Exception:
        _LOGGER.exception("Transport callback %r raised", slot)
