"""Exception types raised by robust-connection."""

from __future__ import annotations


class RobustConnectionError(Exception):
    """Base class for errors raised by this package."""


class TransportNotOpenError(RobustConnectionError):
    """A built-in transport was asked to send while not OPEN.

    :class:`~robust_connection.RobustConnection` never lets this reach
    the caller of ``send``; the payload is queued instead.
    """


class TransportSetupError(RobustConnectionError):
    """A transport could not locate or prepare its remote endpoint."""
