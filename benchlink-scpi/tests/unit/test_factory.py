"""Tests for open_transport and open_session."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from benchlink_core.errors import ResourceStringError
from benchlink_scpi.factory import open_session, open_transport
from benchlink_scpi.resource import TcpResource
from benchlink_scpi.session import ScpiSession


class TestOpenTransport:
    """Tests for transport selection."""

    def test_tcp_socket(self) -> None:
        with patch("benchlink_scpi.factory.TcpSocketTransport") as cls:
            transport = open_transport("TCPIP0::10.0.0.7::5025::SOCKET", timeout=2.0)
        cls.assert_called_once_with(
            "10.0.0.7", 5025, timeout=2.0, write_termination=b"\n", read_termination=b"\n"
        )
        transport.open.assert_called_once()

    def test_parsed_resource_accepted(self) -> None:
        with patch("benchlink_scpi.factory.TcpSocketTransport") as cls:
            open_transport(TcpResource("scope.lab", 5025))
        assert cls.call_args.args == ("scope.lab", 5025)

    def test_serial(self) -> None:
        with patch("benchlink_scpi.factory.SerialTransport") as cls:
            open_transport("ASRL::/dev/ttyUSB0::9600::8N2::INSTR")
        assert cls.call_args.args == ("/dev/ttyUSB0", 9600, 8, "N", 2)

    def test_usb(self) -> None:
        with patch("benchlink_scpi.factory.UsbTmcTransport") as cls:
            open_transport("USB0::0x0957::0x3D18::MY1::INSTR")
        assert cls.call_args.args == (0x0957, 0x3D18, "MY1")

    def test_usb_with_interface_goes_to_visa(self) -> None:
        with patch("benchlink_scpi.factory.UsbTmcTransport") as usb_cls, patch(
            "benchlink_scpi.factory.VisaTransport"
        ) as visa_cls:
            open_transport("USB0::2391::15640::MY1::1::INSTR")
        usb_cls.assert_not_called()
        assert visa_cls.call_args.args[0] == "USB0::0x0957::0x3D18::MY1::1::INSTR"

    def test_gpib_uses_registered_controller(self) -> None:
        controller = MagicMock()
        transport = open_transport("GPIB0::5::INSTR", gpib_controllers={0: controller})
        controller.device.assert_called_once_with(5, None)
        assert transport is controller.device.return_value

    def test_gpib_without_controller_goes_to_visa(self) -> None:
        with patch("benchlink_scpi.factory.VisaTransport") as cls:
            open_transport("GPIB1::7::INSTR", gpib_controllers={0: MagicMock()})
        assert cls.call_args.args[0] == "GPIB1::7::INSTR"

    def test_visa_delegate(self) -> None:
        rm = MagicMock()
        with patch("benchlink_scpi.factory.VisaTransport") as cls:
            open_transport("VISA::TCPIP0::host::INSTR", resource_manager=rm)
        assert cls.call_args.args == ("TCPIP0::host::INSTR", rm)

    def test_malformed(self) -> None:
        with pytest.raises(ResourceStringError):
            open_transport("BOGUS::1")


class TestOpenSession:
    """Tests for open_session."""

    def test_wraps_transport(self) -> None:
        with patch("benchlink_scpi.factory.TcpSocketTransport"):
            session = open_session("TCPIP0::10.0.0.7::5025::SOCKET", timeout=1.5)
        assert isinstance(session, ScpiSession)
        assert session.timeout == 1.5

    def test_read_after_write_enables_drain(self) -> None:
        controller = MagicMock()
        controller.device.return_value.read_after_write = True
        session = open_session("GPIB0::5::INSTR", gpib_controllers={0: controller})
        assert session.drain_after_write
