"""GPIB controller emulator.

:class:`PrologixEmulator` stands in for the serial port of a
Prologix-style controller. It interprets ``++`` directives, unescapes data
lines and forwards them to the emulated instrument at the addressed bus
location. Instrument responses are only transferred to the serial side by
``++read`` (or immediately after each write when ``++auto 1`` is set).

Example:
    >>> bus = PrologixEmulator()
    >>> bus.attach(5, make_e3631a_emulator())
    >>> controller = PrologixController(bus)
    >>> ScpiSession(controller.device(5)).identify()
    'HEWLETT-PACKARD,E3631A,0,2.1-5.0-1.0'
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Optional

from benchlink_core.errors import DisconnectedError, ResponseTimeoutError
from benchlink_scpi.transport import Transport

logger = logging.getLogger(__name__)

_ESC = 0x1B
_SECONDARY_OFFSET = 96

Address = tuple[int, Optional[int]]


def unescape(data: bytes) -> bytes:
    """Remove controller escape characters from a data line."""
    out = bytearray()
    escaped = False
    for byte in data:
        if byte == _ESC and not escaped:
            escaped = True
            continue
        out.append(byte)
        escaped = False
    return bytes(out)


class PrologixEmulator:
    """In-process Prologix GPIB-USB controller.

    Args:
        version: ``++ver`` response.

    Attributes:
        history: Every line received from the host, escapes intact.
    """

    def __init__(self, version: str = "Prologix GPIB-USB Controller version 6.107") -> None:
        self._version = version
        self._devices: dict[Address, Transport] = {}
        self._output: deque[bytes] = deque()
        self._lock = threading.Lock()
        self._address: Address = (0, None)
        self._auto = False
        self._mode = 1
        self._eoi = True
        self._read_timeout_ms = 500
        self._status: dict[Address, int] = {}
        self._srq = False
        self._remote: set[Address] = set()
        self._lockout = False
        self._closed = False
        self.history: list[bytes] = []

    # -- Bus setup ----------------------------------------------------------

    def attach(self, address: int, device: Transport, secondary_address: int | None = None) -> None:
        """Put ``device`` on the bus at the given address."""
        self._devices[(address, secondary_address)] = device

    def set_status_byte(self, address: int, status: int) -> None:
        """Set the serial-poll status byte of a device and assert SRQ if bit 6 is set."""
        self._status[(address, None)] = status
        self._srq = bool(status & 0x40)

    @property
    def address(self) -> Address:
        """Currently addressed ``(primary, secondary)`` location."""
        return self._address

    @property
    def auto(self) -> bool:
        """True when read-after-write (``++auto 1``) is enabled."""
        return self._auto

    @property
    def lockout(self) -> bool:
        """True after ``++llo``."""
        return self._lockout

    def is_remote(self, address: int, secondary_address: int | None = None) -> bool:
        """True if the device has been addressed since its last ``++loc``."""
        return (address, secondary_address) in self._remote

    @property
    def addr_directives(self) -> int:
        """Number of ``++addr`` directives received."""
        return sum(1 for line in self.history if line.startswith(b"++addr"))

    # -- Transport interface ------------------------------------------------

    def send(self, data: bytes) -> None:
        """Process one line from the host."""
        if self._closed:
            raise DisconnectedError("Controller emulator is closed")
        with self._lock:
            self.history.append(data)
            if data.startswith(b"++"):
                self._directive(data.decode("ascii").strip())
            else:
                self._forward(unescape(data))

    def receive(self, timeout: float | None = None) -> bytes:
        """Return the next line queued for the host.

        Raises:
            ResponseTimeoutError: If nothing is queued.
        """
        if self._closed:
            raise DisconnectedError("Controller emulator is closed")
        with self._lock:
            if not self._output:
                raise ResponseTimeoutError("No data from controller")
            return self._output.popleft()

    def flush(self) -> None:
        """Discard unread output."""
        with self._lock:
            self._output.clear()

    def close(self) -> None:
        """Mark the emulator closed. Idempotent."""
        self._closed = True

    # -- Private helpers ----------------------------------------------------

    def _forward(self, payload: bytes) -> None:
        device = self._devices.get(self._address)
        if device is None:
            logger.debug("No listener at %s; dropped %r", self._address, payload)
            return
        self._remote.add(self._address)
        device.send(payload)
        if self._auto:
            self._talk(device)

    def _talk(self, device: Transport) -> None:
        """Move one pending instrument response to the host side."""
        try:
            self._output.append(device.receive(0))
        except ResponseTimeoutError:
            logger.debug("Device at %s had nothing to say", self._address)

    def _reply(self, text: str) -> None:
        self._output.append(text.encode("ascii"))

    def _directive(self, line: str) -> None:
        name, _, rest = line[2:].partition(" ")
        args = rest.split()
        name = name.lower()
        if name == "addr":
            if not args:
                self._reply(str(self._address[0]))
                return
            primary = int(args[0])
            secondary = int(args[1]) - _SECONDARY_OFFSET if len(args) > 1 else None
            self._address = (primary, secondary)
        elif name == "auto":
            if args:
                self._auto = args[0] == "1"
            else:
                self._reply("1" if self._auto else "0")
        elif name == "mode":
            if args:
                self._mode = int(args[0])
            else:
                self._reply(str(self._mode))
        elif name == "eoi":
            if args:
                self._eoi = args[0] == "1"
            else:
                self._reply("1" if self._eoi else "0")
        elif name == "read_tmo_ms":
            self._read_timeout_ms = int(args[0])
        elif name == "read":
            device = self._devices.get(self._address)
            if device is not None:
                self._talk(device)
        elif name == "ver":
            self._reply(self._version)
        elif name == "srq":
            self._reply("1" if self._srq else "0")
        elif name == "spoll":
            primary = int(args[0]) if args else self._address[0]
            secondary = int(args[1]) - _SECONDARY_OFFSET if len(args) > 1 else None
            status = self._status.pop((primary, secondary), 0)
            self._srq = any(s & 0x40 for s in self._status.values())
            self._reply(str(status))
        elif name == "clr":
            device_clear = getattr(self._devices.get(self._address), "device_clear", None)
            if callable(device_clear):
                device_clear()
        elif name == "loc":
            self._remote.discard(self._address)
        elif name == "llo":
            self._lockout = True
        elif name == "ifc":
            self._remote.clear()
        else:
            self._reply("Unrecognized command")
