"""Tests for const module."""

import pytest

from robust_connection.const import (
    DEFAULT_BLE_MAX_ATTEMPTS,
    DEFAULT_RECONNECT_DELAY,
    BleTransportConfig,
    ConnectionOptions,
    ConnectionState,
    ReadyState,
)


def test_connection_options_defaults():
    options = ConnectionOptions()
    assert options.reconnect_delay == 5.0
    assert options.on_open is None
    assert options.on_disconnect is None
    assert options.idle_timeout is None


def test_connection_options_custom():
    hook = lambda transport: None  # noqa: E731
    options = ConnectionOptions(reconnect_delay=0.05, on_open=hook, idle_timeout=30.0)
    assert options.reconnect_delay == 0.05
    assert options.on_open is hook
    assert options.idle_timeout == 30.0


def test_zero_reconnect_delay_allowed():
    assert ConnectionOptions(reconnect_delay=0).reconnect_delay == 0


def test_negative_reconnect_delay_rejected():
    with pytest.raises(ValueError, match="reconnect_delay"):
        ConnectionOptions(reconnect_delay=-1)


@pytest.mark.parametrize("timeout", [0, -5.0])
def test_non_positive_idle_timeout_rejected(timeout):
    with pytest.raises(ValueError, match="idle_timeout"):
        ConnectionOptions(idle_timeout=timeout)


def test_ble_transport_config_defaults():
    config = BleTransportConfig(notify_uuid="n", write_uuid="w")
    assert config.response is False
    assert config.max_attempts == DEFAULT_BLE_MAX_ATTEMPTS
    assert config.scan_timeout == 10.0


def test_ready_state_matches_websocket_values():
    assert ReadyState.CONNECTING == 0
    assert ReadyState.OPEN == 1
    assert ReadyState.CLOSING == 2
    assert ReadyState.CLOSED == 3


def test_connection_state_values():
    assert ConnectionState.OPEN == "open"
    assert ConnectionState("waiting_reconnect") is ConnectionState.WAITING_RECONNECT


def test_constants():
    assert DEFAULT_RECONNECT_DELAY == 5.0
