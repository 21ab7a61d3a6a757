"""WebSocket transport built on the ``websockets`` asyncio client.

One :class:`WebSocketTransport` is one connection attempt.  It connects
in a background task as soon as it is created and reports progress
through the callback slots, the same way a browser ``WebSocket`` does:

- ``on_open()`` once the handshake completes;
- ``on_message(payload)`` for every frame (``str`` or ``bytes``);
- ``on_error(exc)`` followed by ``on_close(event)`` when the connect
  fails or the connection ends abnormally;
- ``on_close(event)`` alone for a clean close.

Outgoing messages go through a single writer task so they leave in the
order :meth:`WebSocketTransport.send` was called.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from .const import ABNORMAL_CLOSURE, ReadyState
from .exceptions import TransportNotOpenError
from .transport import CloseEvent, Payload, emit

_LOGGER = logging.getLogger(__name__)


class WebSocketTransport:
    """A single WebSocket connection satisfying the transport contract.

    Parameters
    ----------
    url:
        ``ws://`` or ``wss://`` URL.
    **connect_kwargs:
        Passed through to :func:`websockets.connect` (``additional_headers``,
        ``subprotocols``, ``ssl``, ``open_timeout`` ...).

    Must be created inside a running event loop.
    """

    def __init__(self, url: str, **connect_kwargs: Any) -> None:
        self.url = url
        self.on_open: Callable[[], Any] | None = None
        self.on_close: Callable[[CloseEvent], Any] | None = None
        self.on_error: Callable[[Exception], Any] | None = None
        self.on_message: Callable[[Payload], Any] | None = None
        self._connect_kwargs = connect_kwargs
        self._ready_state = ReadyState.CONNECTING
        self._ws: Any = None
        self._outgoing: asyncio.Queue[Payload] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._close_request: tuple[int, str] | None = None
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"websocket-transport {url}"
        )

    def __repr__(self) -> str:
        return f"<WebSocketTransport {self.url} {self._ready_state.name}>"

    @property
    def address(self) -> str:
        return self.url

    @property
    def ready_state(self) -> int:
        return self._ready_state

    def send(self, payload: Payload) -> None:
        if self._ready_state != ReadyState.OPEN:
            raise TransportNotOpenError(
                f"WebSocket to {self.url} is {self._ready_state.name}"
            )
        self._outgoing.put_nowait(payload)

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Start the closing handshake, or abort a connect still in progress."""
        if self._ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        request = (code if code is not None else 1000, reason or "")
        if self._ws is None:
            _LOGGER.debug("Aborting pending WebSocket connect to %s", self.url)
            self._close_request = request
            self._ready_state = ReadyState.CLOSED
            self._task.cancel()
            return
        self._ready_state = ReadyState.CLOSING
        self._close_request = request
        asyncio.get_running_loop().create_task(self._ws.close(*request))

    async def _run(self) -> None:
        try:
            self._ws = await websockets.connect(self.url, **self._connect_kwargs)
        except asyncio.CancelledError:
            code, reason = self._close_request or (ABNORMAL_CLOSURE, "cancelled")
            emit(self.on_close, CloseEvent(code, reason, was_clean=False))
            raise
        except Exception as exc:
            _LOGGER.debug("WebSocket connect to %s failed: %s", self.url, exc)
            self._ready_state = ReadyState.CLOSED
            emit(self.on_error, exc)
            emit(self.on_close, CloseEvent(ABNORMAL_CLOSURE, str(exc), was_clean=False))
            return

        if self._ready_state == ReadyState.CLOSED:
            # close() raced the handshake
            await self._ws.close(*(self._close_request or (1000, "")))
            return

        _LOGGER.debug("WebSocket to %s open", self.url)
        self._ready_state = ReadyState.OPEN
        self._writer = asyncio.get_running_loop().create_task(self._write_loop())
        emit(self.on_open)

        error: Exception | None = None
        try:
            async for message in self._ws:
                emit(self.on_message, message)
        except ConnectionClosed as exc:
            if not isinstance(exc, ConnectionClosedOK):
                error = exc
        finally:
            self._ready_state = ReadyState.CLOSED
            if self._writer is not None:
                self._writer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._writer

        code = self._ws.close_code if self._ws.close_code is not None else ABNORMAL_CLOSURE
        reason = self._ws.close_reason or ""
        _LOGGER.debug(
            "WebSocket to %s closed (code=%s reason=%r)", self.url, code, reason
        )
        if error is not None:
            emit(self.on_error, error)
        emit(self.on_close, CloseEvent(code, reason, was_clean=error is None))

    async def _write_loop(self) -> None:
        while True:
            payload = await self._outgoing.get()
            try:
                await self._ws.send(payload)
            except ConnectionClosed:
                _LOGGER.debug(
                    "WebSocket to %s closed while sending, %d message(s) unsent",
                    self.url,
                    self._outgoing.qsize() + 1,
                )
                return
            except Exception:
                _LOGGER.exception("WebSocket send to %s failed", self.url)
