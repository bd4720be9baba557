"""Build transports and sessions from resource strings."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from benchlink_scpi.asrl import SerialTransport
from benchlink_scpi.resource import (
    GpibResource,
    Resource,
    SerialResource,
    TcpResource,
    UsbResource,
    VisaDelegateResource,
    parse_resource,
)
from benchlink_scpi.session import ScpiSession
from benchlink_scpi.tcpip import TcpSocketTransport
from benchlink_scpi.transport import Transport
from benchlink_scpi.usbtmc import UsbTmcTransport
from benchlink_scpi.visa import VisaTransport

logger = logging.getLogger(__name__)


class GpibController(Protocol):
    """Anything that hands out per-address GPIB transports."""

    def device(self, address: int, secondary_address: int | None = None) -> Transport:
        """Return a transport bound to one bus address."""
        ...


def open_transport(
    resource: str | Resource,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    write_termination: bytes = b"\n",
    read_termination: bytes = b"\n",
    resource_manager: Any = None,
) -> Transport:
    """Create and open the transport a resource string names.

    GPIB resources are served by the controller registered for their board
    number in ``gpib_controllers``; without one they are delegated to VISA.
    USB resources naming an interface number are delegated to VISA as well.

    Args:
        resource: Resource string or an already parsed resource.
        gpib_controllers: GPIB controllers keyed by board number.
        timeout: Default receive timeout in seconds.
        write_termination: Bytes appended to every outgoing message.
        read_termination: Bytes that end an incoming response.
        resource_manager: PyVISA resource manager for delegated resources.

    Returns:
        An open transport.

    Raises:
        ResourceStringError: If the resource string is malformed.
        TransportOpenError: If the transport cannot be opened.
    """
    parsed = parse_resource(resource) if isinstance(resource, str) else resource
    framing = {
        "timeout": timeout,
        "write_termination": write_termination,
        "read_termination": read_termination,
    }

    if isinstance(parsed, GpibResource):
        controller = (gpib_controllers or {}).get(parsed.board)
        if controller is not None:
            logger.debug("GPIB%d::%d served by controller", parsed.board, parsed.primary_address)
            return controller.device(parsed.primary_address, parsed.secondary_address)
        visa_name = f"GPIB{parsed.board}::{parsed.primary_address}"
        if parsed.secondary_address is not None:
            visa_name += f"::{parsed.secondary_address}"
        parsed = VisaDelegateResource(f"{visa_name}::INSTR")
    elif isinstance(parsed, UsbResource) and parsed.interface is not None:
        # python-usbtmc always claims the first USB-TMC interface.
        parsed = VisaDelegateResource(
            f"USB{parsed.board}::0x{parsed.vendor_id:04X}::0x{parsed.product_id:04X}"
            f"::{parsed.serial_number}::{parsed.interface}::INSTR"
        )

    transport: SerialTransport | TcpSocketTransport | UsbTmcTransport | VisaTransport
    if isinstance(parsed, SerialResource):
        transport = SerialTransport(
            parsed.port,
            parsed.baud_rate,
            parsed.data_bits,
            parsed.parity,
            parsed.stop_bits,
            **framing,
        )
    elif isinstance(parsed, TcpResource):
        transport = TcpSocketTransport(parsed.host, parsed.port, **framing)
    elif isinstance(parsed, UsbResource):
        transport = UsbTmcTransport(
            parsed.vendor_id, parsed.product_id, parsed.serial_number, **framing
        )
    else:
        transport = VisaTransport(parsed.resource_string, resource_manager, **framing)
    transport.open()
    return transport


def open_session(
    resource: str | Resource,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    check_errors: bool = False,
    **session_kwargs: Any,
) -> ScpiSession:
    """Open a transport for ``resource`` and wrap it in a :class:`ScpiSession`.

    A transport that reports ``read_after_write`` (a GPIB controller in auto
    mode) gets a session that drains the trailing read after every command.
    """
    transport = open_transport(resource, gpib_controllers=gpib_controllers, timeout=timeout)
    read_after_write = bool(getattr(transport, "read_after_write", False))
    session_kwargs.setdefault("drain_after_write", read_after_write)
    return ScpiSession(transport, timeout=timeout, check_errors=check_errors, **session_kwargs)
