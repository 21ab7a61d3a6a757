"""BLE GATT transport built on bleak and bleak-retry-connector.

Presents a notify/write characteristic pair as a message transport so
a :class:`~robust_connection.RobustConnection` can keep a BLE link
alive the same way it keeps a WebSocket alive::

    config = BleTransportConfig(
        notify_uuid="6e400003-b5a3-f393-e0a9-e50e24dcca9e",
        write_uuid="6e400002-b5a3-f393-e0a9-e50e24dcca9e",
    )
    connection = RobustConnection(
        ble_endpoint("AA:BB:CC:DD:EE:FF", config),
        on_message=handle_frame,
    )

Each :class:`BleTransport` performs one connection cycle: resolve the
device, ``establish_connection()`` with its own short retry loop,
subscribe to notifications.  When bleak reports the disconnect the
transport closes and the owning connection builds a new one.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError
from bleak_retry_connector import establish_connection

from .const import ABNORMAL_CLOSURE, BleTransportConfig, ReadyState
from .exceptions import TransportNotOpenError, TransportSetupError
from .transport import CloseEvent, Payload, emit

_LOGGER = logging.getLogger(__name__)


class BleTransport:
    """A single BLE connection satisfying the transport contract.

    Parameters
    ----------
    device:
        The ``BLEDevice`` to connect to, or its address.  An address is
        resolved with ``BleakScanner.find_device_by_address`` on every
        cycle so a device that moved between adapters is found again.
    config:
        Characteristic layout and retry settings.
    name:
        Device name for logging.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        device: BLEDevice | str,
        config: BleTransportConfig,
        name: str | None = None,
    ) -> None:
        self.on_open: Callable[[], Any] | None = None
        self.on_close: Callable[[CloseEvent], Any] | None = None
        self.on_error: Callable[[Exception], Any] | None = None
        self.on_message: Callable[[Payload], Any] | None = None
        self._device = device
        self._config = config
        self._name = name
        self._ready_state = ReadyState.CONNECTING
        self._client: BleakClient | None = None
        self._outgoing: asyncio.Queue[bytes] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._task = asyncio.get_running_loop().create_task(self._run())

    def __repr__(self) -> str:
        return f"<BleTransport {self.address} {self._ready_state.name}>"

    @property
    def address(self) -> str:
        if isinstance(self._device, str):
            return self._device
        return self._device.address

    @property
    def display_name(self) -> str:
        if self._name:
            return self._name
        if isinstance(self._device, BLEDevice) and self._device.name:
            return self._device.name
        return self.address

    @property
    def ready_state(self) -> int:
        return self._ready_state

    def send(self, payload: Payload) -> None:
        if self._ready_state != ReadyState.OPEN:
            raise TransportNotOpenError(
                f"{self.display_name}: BLE link is {self._ready_state.name}"
            )
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        self._outgoing.put_nowait(bytes(payload))

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Disconnect.  BLE has no close codes; *code* and *reason* are logged only."""
        if self._ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        _LOGGER.debug(
            "%s: closing BLE link (code=%s reason=%s)", self.display_name, code, reason
        )
        if self._client is None:
            self._ready_state = ReadyState.CLOSED
            self._task.cancel()
            return
        self._ready_state = ReadyState.CLOSING
        asyncio.get_running_loop().create_task(self._disconnect())

    async def _resolve_device(self) -> BLEDevice:
        if isinstance(self._device, BLEDevice):
            return self._device
        device = await BleakScanner.find_device_by_address(
            self._device, timeout=self._config.scan_timeout
        )
        if device is None:
            raise TransportSetupError(
                f"{self._device}: device not found after"
                f" {self._config.scan_timeout:.0f} s scan"
            )
        return device

    async def _run(self) -> None:
        try:
            device = await self._resolve_device()
            client = await establish_connection(
                BleakClient,
                device,
                self.display_name,
                disconnected_callback=self._on_disconnected,
                max_attempts=self._config.max_attempts,
            )
            self._client = client
            await client.start_notify(self._config.notify_uuid, self._on_notify)
        except Exception as exc:
            _LOGGER.debug("%s: BLE connect failed: %s", self.display_name, exc)
            await self._fail(exc)
            return

        if self._ready_state != ReadyState.CONNECTING:
            # close() raced the connect
            await self._disconnect()
            return

        _LOGGER.debug("%s: BLE link open", self.display_name)
        self._ready_state = ReadyState.OPEN
        self._writer = asyncio.get_running_loop().create_task(self._write_loop())
        emit(self.on_open)

    async def _fail(self, exc: Exception) -> None:
        self._ready_state = ReadyState.CLOSED
        if self._client is not None:
            with contextlib.suppress(BleakError, asyncio.TimeoutError):
                await self._client.disconnect()
        emit(self.on_error, exc)
        emit(self.on_close, CloseEvent(ABNORMAL_CLOSURE, str(exc), was_clean=False))

    async def _disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.disconnect()
        except (BleakError, asyncio.TimeoutError):
            _LOGGER.debug(
                "%s: disconnect raised", self.display_name, exc_info=True
            )

    def _on_notify(self, _char: BleakGATTCharacteristic, data: bytearray) -> None:
        emit(self.on_message, bytes(data))

    def _on_disconnected(self, _client: BleakClient) -> None:
        if self._ready_state == ReadyState.CLOSED:
            return
        was_clean = self._ready_state == ReadyState.CLOSING
        self._ready_state = ReadyState.CLOSED
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None
        _LOGGER.debug("%s: BLE link disconnected", self.display_name)
        emit(
            self.on_close,
            CloseEvent(
                1000 if was_clean else ABNORMAL_CLOSURE,
                "disconnected",
                was_clean=was_clean,
            ),
        )

    async def _write_loop(self) -> None:
        while True:
            data = await self._outgoing.get()
            client = self._client
            if client is None:
                return
            try:
                await client.write_gatt_char(
                    self._config.write_uuid, data, response=self._config.response
                )
            except BleakError:
                _LOGGER.warning(
                    "%s: GATT write failed, message dropped",
                    self.display_name,
                    exc_info=True,
                )


def ble_endpoint(
    device: BLEDevice | str,
    config: BleTransportConfig,
    name: str | None = None,
) -> Callable[[], BleTransport]:
    """Return a transport factory for :class:`~robust_connection.RobustConnection`."""
    return functools.partial(BleTransport, device, config, name)
