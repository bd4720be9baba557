"""Tests for UsbTmcTransport with a mocked usbtmc module."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from benchlink_core.errors import DisconnectedError, ResponseTimeoutError, TransportOpenError
from benchlink_scpi.usbtmc import UsbTmcTransport


class USBTimeoutError(Exception):
    """Stand-in with the same class name pyusb uses for bulk timeouts."""


def _make_mock_usbtmc() -> MagicMock:
    mock_usbtmc = MagicMock()
    device = MagicMock()
    device.timeout = 5.0
    mock_usbtmc.Instrument.return_value = device
    return mock_usbtmc


def _open(transport: UsbTmcTransport, mock_usbtmc: MagicMock) -> MagicMock:
    with patch.dict(sys.modules, {"usbtmc": mock_usbtmc}):
        transport.open()
    device: MagicMock = mock_usbtmc.Instrument.return_value
    return device


class TestLifecycle:
    """Tests for open/close."""

    def test_open_by_ids(self) -> None:
        mock_usbtmc = _make_mock_usbtmc()
        device = _open(UsbTmcTransport(0x0957, 0x3D18), mock_usbtmc)
        mock_usbtmc.Instrument.assert_called_once_with(0x0957, 0x3D18)
        device.open.assert_called_once()

    def test_open_with_serial(self) -> None:
        mock_usbtmc = _make_mock_usbtmc()
        _open(UsbTmcTransport(0x0957, 0x3D18, "MY123"), mock_usbtmc)
        mock_usbtmc.Instrument.assert_called_once_with(0x0957, 0x3D18, "MY123")

    def test_open_failure(self) -> None:
        mock_usbtmc = _make_mock_usbtmc()
        mock_usbtmc.Instrument.side_effect = ValueError("Device not found")
        with patch.dict(sys.modules, {"usbtmc": mock_usbtmc}):
            with pytest.raises(TransportOpenError, match="0957:3d18"):
                UsbTmcTransport(0x0957, 0x3D18).open()

    def test_close_idempotent(self) -> None:
        transport = UsbTmcTransport(0x0957, 0x3D18)
        device = _open(transport, _make_mock_usbtmc())
        transport.close()
        transport.close()
        device.close.assert_called_once()


class TestIo:
    """Tests for send/receive."""

    def test_send(self) -> None:
        transport = UsbTmcTransport(0x0957, 0x3D18)
        device = _open(transport, _make_mock_usbtmc())
        transport.send(b"ROUT:CLOS (@102)")
        device.write_raw.assert_called_once_with(b"ROUT:CLOS (@102)\n")

    def test_receive_restores_timeout(self) -> None:
        transport = UsbTmcTransport(0x0957, 0x3D18)
        device = _open(transport, _make_mock_usbtmc())
        device.read_raw.return_value = b"1\n"
        assert transport.receive(timeout=0.5) == b"1"
        assert device.timeout == 5.0

    def test_timeout_classified(self) -> None:
        transport = UsbTmcTransport(0x0957, 0x3D18)
        device = _open(transport, _make_mock_usbtmc())
        device.read_raw.side_effect = USBTimeoutError("timed out")
        with pytest.raises(ResponseTimeoutError):
            transport.receive()

    def test_other_failure_is_disconnect(self) -> None:
        transport = UsbTmcTransport(0x0957, 0x3D18)
        device = _open(transport, _make_mock_usbtmc())
        device.read_raw.side_effect = OSError(19, "No such device")
        with pytest.raises(DisconnectedError):
            transport.receive()
