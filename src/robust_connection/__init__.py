"""robust-connection: a message connection that reconnects by itself.

Wraps a replaceable transport (WebSocket, BLE GATT, or anything with
the same shape) behind one stable handle that queues sends while the
link is down and rebuilds the link after every unexpected loss.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .ble import BleTransport, ble_endpoint
from .connection import RobustConnection
from .const import (
    DEFAULT_RECONNECT_DELAY,
    BleTransportConfig,
    ConnectionOptions,
    ConnectionState,
    ReadyState,
)
from .exceptions import (
    RobustConnectionError,
    TransportNotOpenError,
    TransportSetupError,
)
from .hooks import invoke_hook
from .iterator import MessageIterator, open_message_stream
from .pending import PendingSendQueue
from .scheduler import ReconnectScheduler
from .transport import CloseEvent, Transport
from .watchdog import ConnectionWatchdog
from .websocket import WebSocketTransport

__all__ = [
    # Core connection
    "RobustConnection",
    "ConnectionOptions",
    "ConnectionState",
    # Pull-style consumption
    "MessageIterator",
    "open_message_stream",
    # Transport contract
    "Transport",
    "CloseEvent",
    "ReadyState",
    # Built-in transports
    "WebSocketTransport",
    "BleTransport",
    "BleTransportConfig",
    "ble_endpoint",
    # Building blocks
    "PendingSendQueue",
    "ReconnectScheduler",
    "ConnectionWatchdog",
    "invoke_hook",
    # Errors
    "RobustConnectionError",
    "TransportNotOpenError",
    "TransportSetupError",
    # Constants
    "DEFAULT_RECONNECT_DELAY",
]
