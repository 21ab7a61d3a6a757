"""Constants and configuration dataclasses for robust-connection."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .transport import Transport

# Seconds to wait after an unexpected close before reconnecting.
DEFAULT_RECONNECT_DELAY = 5.0

# Close code used when a transport is torn down to force a new cycle.
FORCED_RECONNECT_CODE = 1000
FORCED_RECONNECT_REASON = "reconnecting"

# Close code reported when a link drops without a close handshake.
ABNORMAL_CLOSURE = 1006


class ReadyState(IntEnum):
    """Connectivity phase of a transport.

    Numerically identical to the browser ``WebSocket.readyState``
    values so third-party transports can report plain integers.
    """

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class ConnectionState(str, Enum):
    """Lifecycle states of a :class:`~robust_connection.RobustConnection`."""

    CONNECTING = "connecting"
    OPEN_HOOK_RUNNING = "open_hook_running"
    OPEN = "open"
    WAITING_RECONNECT = "waiting_reconnect"
    CLOSED = "closed"


OpenHook = Callable[["Transport"], "Awaitable[Any] | None"]
DisconnectHook = Callable[["Transport", bool], "Awaitable[Any] | None"]


@dataclass
class ConnectionOptions:
    """Options for a :class:`~robust_connection.RobustConnection`.

    Parameters
    ----------
    reconnect_delay:
        Seconds to wait after an unexpected close or error before a new
        transport is created.  The delay is fixed; there is no backoff
        and no retry limit.
    on_open:
        Called with the transport every time it opens, initially and
        after each reconnect.  May return an awaitable; queued sends
        are held back until it settles.  Messages the hook sends on the
        transport directly are therefore always first on a fresh link.
    on_disconnect:
        Called as ``on_disconnect(transport, reconnecting)``.  On an
        unexpected loss ``reconnecting`` is ``True`` and the reconnect
        is scheduled once the hook settles.  ``close()`` calls it one
        last time with ``reconnecting=False``.
    idle_timeout:
        Seconds without an inbound message after which the link is
        considered dead and a reconnect is forced.  ``None`` (default)
        disables the watchdog.  Only the caller knows the endpoint's
        message cadence, so there is no default value.
    """

    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    on_open: OpenHook | None = None
    on_disconnect: DisconnectHook | None = None
    idle_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.reconnect_delay < 0:
            raise ValueError(
                f"reconnect_delay must be >= 0, got {self.reconnect_delay}"
            )
        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError(
                f"idle_timeout must be > 0 or None, got {self.idle_timeout}"
            )


# Default attempts handed to bleak-retry-connector per connection cycle.
DEFAULT_BLE_MAX_ATTEMPTS = 3

# Seconds to scan for a device given only by address.
DEFAULT_BLE_SCAN_TIMEOUT = 10.0


@dataclass
class BleTransportConfig:
    """GATT layout of a BLE message channel.

    Many BLE serial bridges (Nordic UART, HM-10 and friends) expose one
    characteristic the peer notifies on and one the central writes to.
    Each notification is treated as one inbound message and each
    ``send`` becomes one characteristic write.

    Parameters
    ----------
    notify_uuid:
        Characteristic delivering inbound messages via notifications.
    write_uuid:
        Characteristic outbound messages are written to.
    response:
        Use write-with-response.  Slower, but the peripheral
        acknowledges every write at the link layer.
    max_attempts:
        Attempts ``bleak_retry_connector.establish_connection`` makes
        within one connection cycle before the cycle counts as failed.
    scan_timeout:
        Seconds to scan when the device is given as an address string.
    """

    notify_uuid: str
    write_uuid: str
    response: bool = False
    max_attempts: int = DEFAULT_BLE_MAX_ATTEMPTS
    scan_timeout: float = DEFAULT_BLE_SCAN_TIMEOUT
