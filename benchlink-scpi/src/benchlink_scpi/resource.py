"""Resource string parsing.

A resource string names an instrument and the bus that reaches it. Strings
are validated eagerly by :func:`parse_resource` into one of the frozen
resource dataclasses below, so a malformed identifier fails before any port
is touched.

Recognized forms (bus names are case-insensitive)::

    ASRL::<device>[::<baud>[::<framing>]]::INSTR     e.g. ASRL::/dev/ttyUSB0::9600::8N2::INSTR
    TCPIP[n]::<host>::<port>::SOCKET                 e.g. TCPIP0::10.0.0.7::5025::SOCKET
    USB[n]::<vid>::<pid>[::<serial>[::<intf>]]::INSTR e.g. USB0::0x0957::0x0407::MY44::INSTR
    GPIB[n]::<primary>[::<secondary>]::INSTR         e.g. GPIB0::5::INSTR
    VISA::<resource>                                 forwarded verbatim to PyVISA

Any other well-formed VISA string (``TCPIP0::host::INSTR``,
``USB0::...::RAW``, ``ASRL1::INSTR``) is delegated to PyVISA as a
:class:`VisaDelegateResource`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from benchlink_core.errors import ResourceStringError

_DEFAULT_BAUD_RATE = 9600

_FRAMING_RE = re.compile(r"^([5-8])([NEOMS])(1|1\.5|2)$", re.IGNORECASE)
_BOARD_RE = re.compile(r"^(ASRL|TCPIP|USB|GPIB)(\d*)$", re.IGNORECASE)


@dataclass(frozen=True)
class SerialResource:
    """Serial port resource.

    Attributes:
        port: Device name such as ``/dev/ttyUSB0`` or ``COM3``.
        baud_rate: Line speed in bits per second.
        data_bits: Data bits per character.
        parity: Parity letter (``N``, ``E``, ``O``, ``M``, ``S``).
        stop_bits: Stop bits (1, 1.5 or 2).
    """

    port: str
    baud_rate: int = _DEFAULT_BAUD_RATE
    data_bits: int = 8
    parity: str = "N"
    stop_bits: float = 1


@dataclass(frozen=True)
class TcpResource:
    """LXI raw-socket resource."""

    host: str
    port: int = 5025
    board: int = 0


@dataclass(frozen=True)
class UsbResource:
    """USB-TMC resource."""

    vendor_id: int
    product_id: int
    serial_number: str | None = None
    interface: int | None = None
    board: int = 0


@dataclass(frozen=True)
class GpibResource:
    """GPIB resource behind a controller on board ``board``."""

    board: int
    primary_address: int
    secondary_address: int | None = None


@dataclass(frozen=True)
class VisaDelegateResource:
    """Resource handed to PyVISA unchanged."""

    resource_string: str


Resource = Union[SerialResource, TcpResource, UsbResource, GpibResource, VisaDelegateResource]


# -- Parsing -----------------------------------------------------------------


def parse_resource(text: str) -> Resource:
    """Parse a resource string.

    Args:
        text: The resource identifier.

    Returns:
        The matching resource dataclass.

    Raises:
        ResourceStringError: If the string is empty or malformed.

    Example:
        >>> parse_resource("ASRL::/dev/ttyUSB0::9600::8N2::INSTR")
        SerialResource(port='/dev/ttyUSB0', baud_rate=9600, data_bits=8, parity='N', stop_bits=2)
    """
    stripped = text.strip()
    if not stripped:
        raise ResourceStringError("Resource string is empty")
    fields = stripped.split("::")
    if any(not f for f in fields):
        raise ResourceStringError(f"Resource string has an empty field: {text!r}")

    head = fields[0].upper()
    if head == "VISA":
        if len(fields) < 2:
            raise ResourceStringError(f"VISA resource missing target: {text!r}")
        return VisaDelegateResource("::".join(fields[1:]))

    match = _BOARD_RE.match(fields[0])
    if match is None:
        raise ResourceStringError(f"Unknown bus {fields[0]!r} in resource {text!r}")
    bus = match.group(1).upper()
    board = int(match.group(2)) if match.group(2) else 0
    if len(fields) < 2:
        raise ResourceStringError(f"Resource string too short: {text!r}")
    suffix = fields[-1].upper()
    body = fields[1:-1]

    if bus == "ASRL":
        return _parse_serial(text, fields, suffix, body)
    if bus == "TCPIP":
        return _parse_tcpip(text, suffix, body, board)
    if bus == "USB":
        return _parse_usb(text, suffix, body, board)
    return _parse_gpib(text, suffix, body, board)


def _parse_serial(text: str, fields: list[str], suffix: str, body: list[str]) -> Resource:
    if suffix != "INSTR":
        raise ResourceStringError(f"Serial resource must end in ::INSTR: {text!r}")
    if fields[0].upper() != "ASRL":
        # ASRL1::INSTR style names are VISA's own port numbering.
        if body:
            raise ResourceStringError(f"Malformed serial resource: {text!r}")
        return VisaDelegateResource(text.strip())
    if not 1 <= len(body) <= 3:
        raise ResourceStringError(f"Malformed serial resource: {text!r}")

    port = body[0]
    baud_rate = _DEFAULT_BAUD_RATE
    data_bits, parity, stop_bits = 8, "N", 1.0
    if len(body) >= 2:
        baud_rate = _parse_int(body[1], "baud rate", text)
        if baud_rate <= 0:
            raise ResourceStringError(f"Baud rate must be positive: {text!r}")
    if len(body) == 3:
        framing = _FRAMING_RE.match(body[2])
        if framing is None:
            raise ResourceStringError(f"Invalid serial framing {body[2]!r} in {text!r}")
        data_bits = int(framing.group(1))
        parity = framing.group(2).upper()
        stop_bits = float(framing.group(3))
    return SerialResource(
        port=port,
        baud_rate=baud_rate,
        data_bits=data_bits,
        parity=parity,
        stop_bits=int(stop_bits) if stop_bits.is_integer() else stop_bits,
    )


def _parse_tcpip(text: str, suffix: str, body: list[str], board: int) -> Resource:
    if suffix != "SOCKET":
        return VisaDelegateResource(text.strip())
    if len(body) != 2:
        raise ResourceStringError(f"Socket resource needs host and port: {text!r}")
    port = _parse_int(body[1], "port", text)
    if not 0 < port < 65536:
        raise ResourceStringError(f"Port out of range in {text!r}")
    return TcpResource(host=body[0], port=port, board=board)


def _parse_usb(text: str, suffix: str, body: list[str], board: int) -> Resource:
    if suffix != "INSTR":
        return VisaDelegateResource(text.strip())
    if not 2 <= len(body) <= 4:
        raise ResourceStringError(f"USB resource needs vendor and product ids: {text!r}")
    vendor_id = _parse_int(body[0], "vendor id", text)
    product_id = _parse_int(body[1], "product id", text)
    for value, name in ((vendor_id, "vendor id"), (product_id, "product id")):
        if not 0 <= value <= 0xFFFF:
            raise ResourceStringError(f"USB {name} out of range in {text!r}")
    serial_number = body[2] if len(body) >= 3 else None
    interface = _parse_int(body[3], "interface", text) if len(body) == 4 else None
    return UsbResource(
        vendor_id=vendor_id,
        product_id=product_id,
        serial_number=serial_number,
        interface=interface,
        board=board,
    )


def _parse_gpib(text: str, suffix: str, body: list[str], board: int) -> Resource:
    if suffix != "INSTR":
        return VisaDelegateResource(text.strip())
    if not 1 <= len(body) <= 2:
        raise ResourceStringError(f"GPIB resource needs a primary address: {text!r}")
    primary = _parse_int(body[0], "primary address", text)
    if not 0 <= primary <= 30:
        raise ResourceStringError(f"GPIB primary address must be 0-30: {text!r}")
    secondary = None
    if len(body) == 2:
        secondary = _parse_int(body[1], "secondary address", text)
        if not 0 <= secondary <= 30:
            raise ResourceStringError(f"GPIB secondary address must be 0-30: {text!r}")
    return GpibResource(board=board, primary_address=primary, secondary_address=secondary)


def _parse_int(token: str, what: str, text: str) -> int:
    try:
        if token.lower().startswith("0x"):
            return int(token, 16)
        return int(token, 10)
    except ValueError:
        raise ResourceStringError(f"Invalid {what} {token!r} in {text!r}") from None
