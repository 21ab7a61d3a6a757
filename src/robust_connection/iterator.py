"""Pull-style access to inbound messages.

:class:`MessageIterator` turns the push callback of a
:class:`~robust_connection.RobustConnection` into an async iterator::

    connection, messages = open_message_stream("ws://host/feed")
    async for message in messages:
        ...

The sequence ends once the connection is closed with ``close()``;
ordinary reconnects do not end it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from typing import Any

from .connection import RobustConnection
from .const import ConnectionOptions
from .hooks import invoke_hook
from .transport import Endpoint, Payload, Transport

_LOGGER = logging.getLogger(__name__)

_END = object()


class MessageIterator:
    """Buffer pushed messages until a consumer pulls them.

    Messages are returned oldest first.  Once :meth:`finish` is called
    the remaining buffered messages are still returned, then iteration
    stops for good; a finished iterator cannot be restarted.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._finished = False
        self._exhausted = False

    @property
    def finished(self) -> bool:
        return self._finished

    def push(self, message: Payload) -> None:
        """Deliver *message* to a waiting consumer or buffer it."""
        if self._finished:
            _LOGGER.debug("Message arrived after the stream finished, ignored")
            return
        self._queue.put_nowait(message)

    def finish(self) -> None:
        """End the sequence after the buffered messages."""
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_END)

    def on_disconnect(self, transport: Transport | None, reconnecting: bool) -> None:
        """Disconnect hook: finish only on the final, requested disconnect."""
        if not reconnecting:
            self.finish()

    def __aiter__(self) -> MessageIterator:
        return self

    async def __anext__(self) -> Payload:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._exhausted = True
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item


def open_message_stream(
    endpoint: Endpoint,
    options: ConnectionOptions | None = None,
    **kwargs: Any,
) -> tuple[RobustConnection, MessageIterator]:
    """Open a connection whose inbound messages feed a :class:`MessageIterator`.

    Any ``on_disconnect`` hook in *options* still runs, before the
    iterator sees the disconnect.  Extra keyword arguments are passed to
    :class:`~robust_connection.RobustConnection`.

    Returns ``(connection, iterator)``.
    """
    options = options or ConnectionOptions()
    messages = MessageIterator()
    user_hook = options.on_disconnect

    def _on_disconnect(transport: Transport | None, reconnecting: bool) -> Any:
        pending = invoke_hook("on_disconnect hook", user_hook, transport, reconnecting)
        if pending is None:
            messages.on_disconnect(transport, reconnecting)
            return None
        return _chain(pending, lambda: messages.on_disconnect(transport, reconnecting))

    chained = dataclasses.replace(options, on_disconnect=_on_disconnect)
    connection = RobustConnection(endpoint, messages.push, chained, **kwargs)
    return connection, messages


async def _chain(pending: Any, then: Callable[[], None]) -> None:
    await pending
    then()
