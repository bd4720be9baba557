"""Transports and command sessions for benchlink instrument control.

This package carries messages between a driver and an instrument. It
includes:

- The :class:`Transport` protocol and serial, TCP socket, USB-TMC and
  VISA implementations
- Resource-string parsing and a transport factory
- :class:`ScpiSession`, the serialized command/query dispatcher
- Number and boolean parsing/formatting helpers for SCPI responses

Typical usage::

    from benchlink_scpi import open_session

    session = open_session("TCPIP0::192.168.1.10::5025::SOCKET", timeout=2.0)
    identity = session.get_identity()
    print(f"Connected to {identity.manufacturer} {identity.model}")
    session.close()
"""

from benchlink_scpi.asrl import SerialTransport
from benchlink_scpi.factory import GpibController, open_session, open_transport
from benchlink_scpi.number import (
    SCPI_OVERFLOW,
    format_bool,
    format_number,
    is_overflow,
    parse_bool,
    parse_int,
    parse_number,
    parse_numbers,
    parse_quoted,
)
from benchlink_scpi.resource import (
    GpibResource,
    Resource,
    SerialResource,
    TcpResource,
    UsbResource,
    VisaDelegateResource,
    parse_resource,
)
from benchlink_scpi.session import ScpiSession, SessionState, parse_idn_response
from benchlink_scpi.tcpip import TcpSocketTransport
from benchlink_scpi.transport import Transport
from benchlink_scpi.usbtmc import UsbTmcTransport
from benchlink_scpi.visa import VisaTransport

__all__ = [
    # Session
    "ScpiSession",
    "SessionState",
    "parse_idn_response",
    # Transports
    "SerialTransport",
    "TcpSocketTransport",
    "Transport",
    "UsbTmcTransport",
    "VisaTransport",
    # Resources and factory
    "GpibController",
    "GpibResource",
    "Resource",
    "SerialResource",
    "TcpResource",
    "UsbResource",
    "VisaDelegateResource",
    "open_session",
    "open_transport",
    "parse_resource",
    # Number parsing/formatting
    "SCPI_OVERFLOW",
    "format_bool",
    "format_number",
    "is_overflow",
    "parse_bool",
    "parse_int",
    "parse_number",
    "parse_numbers",
    "parse_quoted",
]
