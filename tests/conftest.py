"""Shared fixtures: an in-memory transport the tests drive by hand."""

from __future__ import annotations

import pytest

from robust_connection.const import ABNORMAL_CLOSURE, ReadyState
from robust_connection.exceptions import TransportNotOpenError
from robust_connection.transport import CloseEvent


class FakeTransport:
    """Transport whose remote side is driven by the test."""

    def __init__(self, ready_state=ReadyState.CONNECTING, address="fake://peer"):
        self.on_open = None
        self.on_close = None
        self.on_error = None
        self.on_message = None
        self.ready_state = ready_state
        self.address = address
        self.sent = []
        self.close_calls = []
        self.fail_on = set()

    def send(self, payload):
        if self.ready_state != ReadyState.OPEN:
            raise TransportNotOpenError("fake transport not open")
        if payload in self.fail_on:
            raise RuntimeError(f"cannot send {payload!r}")
        self.sent.append(payload)

    def close(self, *args):
        self.close_calls.append(args)
        self.ready_state = ReadyState.CLOSED

    # Remote side

    def open(self):
        self.ready_state = ReadyState.OPEN
        if self.on_open is not None:
            self.on_open()

    def receive(self, message):
        if self.on_message is not None:
            self.on_message(message)

    def drop(self, code=ABNORMAL_CLOSURE, reason="test", error=False):
        self.ready_state = ReadyState.CLOSED
        if error and self.on_error is not None:
            self.on_error(ConnectionResetError("reset by peer"))
        if self.on_close is not None:
            self.on_close(CloseEvent(code, reason, was_clean=False))


class FakeTransportFactory:
    """Callable endpoint recording every transport it hands out."""

    def __init__(self):
        self.created = []
        self.pre_open = False

    def __call__(self):
        state = ReadyState.OPEN if self.pre_open else ReadyState.CONNECTING
        transport = FakeTransport(ready_state=state)
        self.created.append(transport)
        return transport

    @property
    def latest(self):
        return self.created[-1]


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def messages():
    return []
