"""Self-healing connection over a replaceable transport.

This is the core of ``robust-connection``.  A :class:`RobustConnection`
owns exactly one live transport at a time and drives it through::

    CONNECTING -> OPEN_HOOK_RUNNING -> OPEN
        -> (unexpected loss) WAITING_RECONNECT -> CONNECTING -> ...
    any state -> CLOSED   (close(), terminal)

- Sends issued while the link is not open are queued and flushed in
  call order once the next transport opens and the open hook settles.
- Inbound messages go straight to the consumer callback; nothing is
  buffered here.
- Every unexpected close or error is handled the same way: run the
  disconnect hook, wait a fixed delay, build a brand-new transport.
- Each transport instance gets a generation number.  Callbacks from an
  older generation, or a second close/error for the same generation,
  are ignored.

Nothing is replayed: a message in flight when the link breaks may be
lost.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from .const import (
    FORCED_RECONNECT_CODE,
    FORCED_RECONNECT_REASON,
    ConnectionOptions,
    ConnectionState,
    ReadyState,
)
from .exceptions import TransportNotOpenError
from .hooks import invoke_hook
from .pending import PendingSendQueue
from .scheduler import CallLater, ReconnectScheduler
from .transport import CloseEvent, Endpoint, Payload, Transport, describe
from .watchdog import ConnectionWatchdog
from .websocket import WebSocketTransport

_LOGGER = logging.getLogger(__name__)


def _loss_detail(detail: object) -> str:
    if isinstance(detail, CloseEvent):
        return f"code={detail.code} reason={detail.reason!r}"
    if detail is None:
        return "no detail"
    return repr(detail)


class RobustConnection:
    """A single logical connection that survives transport loss.

    Parameters
    ----------
    endpoint:
        A ``ws://`` / ``wss://`` URL, served by
        :class:`~robust_connection.websocket.WebSocketTransport`, or a
        zero-argument factory returning a transport or an awaitable that
        resolves to one.  Called once per connection cycle.
    on_message:
        Receives every inbound payload, in arrival order.  If it returns
        an awaitable, each result is awaited before the next message's.
    options:
        :class:`~robust_connection.const.ConnectionOptions`.
    call_later:
        Timer primitive for the reconnect delay; defaults to the running
        loop's ``call_later``.

    Construction starts the first connection cycle immediately, so it
    must happen inside a running event loop unless *endpoint* is a
    synchronous factory whose transport needs no loop.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        on_message: Callable[[Payload], Any],
        options: ConnectionOptions | None = None,
        *,
        call_later: CallLater | None = None,
    ) -> None:
        self._endpoint = endpoint
        if isinstance(endpoint, str):
            self._factory: Callable[[], Transport | Awaitable[Transport]] = (
                functools.partial(WebSocketTransport, endpoint)
            )
        else:
            self._factory = endpoint
        self._on_message = on_message
        self._options = options or ConnectionOptions()

        self._transport: Transport | None = None
        self._generation = 0
        self._loss_handled = False
        self._state = ConnectionState.CONNECTING
        self._is_open = False
        self._closed_manually = False
        self._reconnection_suppressed = False
        self._opened = asyncio.Event()

        self._pending = PendingSendQueue()
        self._scheduler = ReconnectScheduler(
            self._options.reconnect_delay, self._reconnect, call_later=call_later
        )
        self._watchdog: ConnectionWatchdog | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._delivery: asyncio.Task[Any] | None = None

        self._init()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {describe(self._transport, self._endpoint)}"
            f" state={self._state.value} pending={len(self._pending)}>"
        )

    # ── Public state ────────────────────────────────────────────────

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def options(self) -> ConnectionOptions:
        return self._options

    @property
    def transport(self) -> Transport | None:
        """The live transport instance, replaced on every reconnect."""
        return self._transport

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """True once the open hook settled and while the transport is OPEN."""
        return (
            self._is_open
            and self._transport is not None
            and self._transport.ready_state == ReadyState.OPEN
        )

    @property
    def closed_manually(self) -> bool:
        return self._closed_manually

    @property
    def reconnection_suppressed(self) -> bool:
        """Whether the next loss will be left alone instead of reconnecting."""
        return self._reconnection_suppressed

    @property
    def pending_count(self) -> int:
        """Number of sends waiting for the next open transport."""
        return len(self._pending)

    async def wait_open(self, timeout: float | None = None) -> None:
        """Wait until the connection is OPEN.

        Raises :class:`asyncio.TimeoutError` after *timeout* seconds.
        """
        await asyncio.wait_for(self._opened.wait(), timeout=timeout)

    # ── Public operations ───────────────────────────────────────────

    def send(self, payload: Payload) -> None:
        """Send a message to the remote endpoint.

        If the connection is not open the message is queued until the
        connection is reestablished, at which point it is sent in order.
        It is still possible for messages to be lost if the link breaks
        in transit or right before.
        """
        if self._closed_manually:
            _LOGGER.warning(
                "Dropping send on closed connection to %s",
                describe(self._transport, self._endpoint),
            )
            return
        if self.is_open:
            try:
                self._transmit(payload)
            except Exception:
                # Requeueing would let later sends overtake this one.
                _LOGGER.exception(
                    "Send to %s failed, message dropped",
                    describe(self._transport, self._endpoint),
                )
            return
        self._pending.append(functools.partial(self._transmit, payload))
        _LOGGER.debug(
            "Connection to %s not open, queued send (%d pending)",
            describe(self._transport, self._endpoint),
            len(self._pending),
        )

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Close the connection.  It will not be reestablished.

        The pending reconnect timer is cancelled, queued sends are
        dropped and later events from the transport are ignored.  Calling
        ``close()`` again is a no-op.
        """
        if self._closed_manually:
            return
        self._closed_manually = True
        self._reconnection_suppressed = True
        self._is_open = False
        self._state = ConnectionState.CLOSED
        self._opened.clear()
        self._scheduler.cancel()
        self._stop_watchdog()
        for task in list(self._tasks):
            task.cancel()

        transport = self._transport
        name = describe(transport, self._endpoint)
        dropped = self._pending.clear()
        if dropped:
            _LOGGER.warning(
                "Closing %s with %d unsent message(s) discarded", name, dropped
            )
        _LOGGER.info("Closing connection to %s", name)

        if transport is not None:
            self._close_transport(transport, code, reason)
        self._spawn(
            invoke_hook(
                "on_disconnect hook", self._options.on_disconnect, transport, False
            )
        )

    def force_reconnect(self) -> None:
        """Replace the current transport with a fresh one right away.

        The logical session stays alive: queued sends are kept and
        reconnection remains enabled.  The disconnect hook is not called
        because the loss was requested.  No-op after :meth:`close`.
        """
        if self._closed_manually:
            _LOGGER.debug("force_reconnect() ignored, connection is closed")
            return
        old = self._transport
        _LOGGER.info(
            "Forcing reconnect to %s", describe(old, self._endpoint)
        )
        self._scheduler.cancel()
        self._stop_watchdog()
        self._discard_transport()
        if old is not None:
            self._close_transport(
                old, FORCED_RECONNECT_CODE, FORCED_RECONNECT_REASON
            )
        self._init()

    # ── Connect cycle ───────────────────────────────────────────────

    def _init(self) -> None:
        self._generation += 1
        generation = self._generation
        self._loss_handled = False
        self._is_open = False
        self._state = ConnectionState.CONNECTING
        self._opened.clear()
        self._discard_transport()

        try:
            result = self._factory()
        except Exception:
            _LOGGER.exception(
                "Transport factory for %s raised", describe(None, self._endpoint)
            )
            self._handle_loss(generation, None)
            return

        if inspect.isawaitable(result):
            self._spawn(self._adopt(generation, result))
            return
        self._attach(generation, result)

    async def _adopt(self, generation: int, pending: Awaitable[Transport]) -> None:
        try:
            transport = await pending
        except Exception:
            _LOGGER.exception(
                "Transport factory for %s failed", describe(None, self._endpoint)
            )
            self._handle_loss(generation, None)
            return
        if generation != self._generation or self._closed_manually:
            _LOGGER.debug("Discarding transport from superseded factory call")
            self._close_transport(transport, None, None)
            return
        self._attach(generation, transport)

    def _attach(self, generation: int, transport: Transport) -> None:
        self._transport = transport
        transport.on_open = lambda: self._handle_open(generation)
        transport.on_close = lambda event=None: self._handle_loss(generation, event)
        transport.on_error = lambda exc=None: self._handle_loss(generation, exc)
        transport.on_message = lambda message: self._handle_message(
            generation, message
        )
        if transport.ready_state == ReadyState.OPEN:
            self._handle_open(generation)

    def _discard_transport(self) -> None:
        transport = self._transport
        if transport is None:
            return
        self._transport = None
        transport.on_open = None
        transport.on_close = None
        transport.on_error = None
        transport.on_message = None

    def _handle_open(self, generation: int) -> None:
        if generation != self._generation or self._closed_manually:
            return
        if self._state is not ConnectionState.CONNECTING:
            return
        self._state = ConnectionState.OPEN_HOOK_RUNNING
        _LOGGER.info(
            "Connection to %s opened", describe(self._transport, self._endpoint)
        )
        pending = invoke_hook("on_open hook", self._options.on_open, self._transport)
        if pending is None:
            self._finish_open(generation)
        else:
            self._spawn(self._await_open_hook(generation, pending))

    async def _await_open_hook(
        self, generation: int, pending: Coroutine[Any, Any, None]
    ) -> None:
        await pending
        self._finish_open(generation)

    def _finish_open(self, generation: int) -> None:
        if generation != self._generation or self._closed_manually:
            return
        if self._state is not ConnectionState.OPEN_HOOK_RUNNING:
            return
        if self._transport is None or self._transport.ready_state != ReadyState.OPEN:
            _LOGGER.debug(
                "Transport to %s closed while the open hook ran, queue kept",
                describe(self._transport, self._endpoint),
            )
            self._handle_loss(generation, None)
            return
        self._is_open = True
        self._state = ConnectionState.OPEN
        self._opened.set()
        self._start_watchdog()
        if self._pending:
            _LOGGER.debug(
                "Flushing %d queued send(s) to %s",
                len(self._pending),
                describe(self._transport, self._endpoint),
            )
            self._pending.flush()

    def _handle_message(self, generation: int, message: Payload) -> None:
        if generation != self._generation:
            return
        if self._watchdog is not None:
            self._watchdog.notify_activity()
        pending = invoke_hook("on_message callback", self._on_message, message)
        if pending is not None:
            self._delivery = self._spawn(self._deliver(self._delivery, pending))

    async def _deliver(
        self,
        previous: asyncio.Task[Any] | None,
        pending: Coroutine[Any, Any, None],
    ) -> None:
        # Async consumers see messages one at a time, in arrival order.
        if previous is not None and not previous.done():
            try:
                await asyncio.wait([previous])
            except asyncio.CancelledError:
                pending.close()
                raise
        await pending

    def _transmit(self, payload: Payload) -> None:
        if self._transport is None:
            raise TransportNotOpenError("no transport attached")
        self._transport.send(payload)

    # ── Loss and reconnect ──────────────────────────────────────────

    def _handle_loss(self, generation: int, detail: object) -> None:
        if self._closed_manually:
            return
        if generation != self._generation or self._loss_handled:
            return
        self._loss_handled = True
        self._is_open = False
        self._state = ConnectionState.WAITING_RECONNECT
        self._opened.clear()
        self._stop_watchdog()

        transport = self._transport
        _LOGGER.warning(
            "Connection to %s closed or errored (%s), reconnecting in %.2f s",
            describe(transport, self._endpoint),
            _loss_detail(detail),
            self._scheduler.delay,
        )
        pending = None
        if transport is not None:
            pending = invoke_hook(
                "on_disconnect hook", self._options.on_disconnect, transport, True
            )
        if pending is None:
            self._schedule_reconnect(generation)
        else:
            self._spawn(self._await_disconnect_hook(generation, pending))

    async def _await_disconnect_hook(
        self, generation: int, pending: Coroutine[Any, Any, None]
    ) -> None:
        await pending
        self._schedule_reconnect(generation)

    def _schedule_reconnect(self, generation: int) -> None:
        if self._reconnection_suppressed or generation != self._generation:
            return
        self._scheduler.schedule()

    def _reconnect(self) -> None:
        if self._closed_manually or self._reconnection_suppressed:
            return
        _LOGGER.info("Reconnecting to %s", describe(None, self._endpoint))
        self._init()

    # ── Helpers ─────────────────────────────────────────────────────

    def _close_transport(
        self, transport: Transport, code: int | None, reason: str | None
    ) -> None:
        close = getattr(transport, "close", None)
        if close is None:
            _LOGGER.debug("Transport %r has no close(), skipping", transport)
            return
        args: tuple[Any, ...] = ()
        if code is not None:
            args = (code,) if reason is None else (code, reason)
        elif reason is not None:
            args = (None, reason)
        self._spawn(invoke_hook("transport close()", close, *args))

    def _start_watchdog(self) -> None:
        if self._options.idle_timeout is None:
            return
        self._stop_watchdog()
        self._watchdog = ConnectionWatchdog(
            self._options.idle_timeout, on_timeout=self.force_reconnect
        )
        self._watchdog.start()

    def _stop_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.stop()
            self._watchdog = None

    def _spawn(
        self, coro: Coroutine[Any, Any, None] | None
    ) -> asyncio.Task[Any] | None:
        if coro is None:
            return None
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
