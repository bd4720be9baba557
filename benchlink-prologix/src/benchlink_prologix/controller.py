"""GPIB controller adapter for Prologix-style serial/USB controllers.

The controller sits on a byte transport (normally a :class:`SerialTransport`
on a virtual COM port) and multiplexes every instrument on its GPIB bus.
Lines starting with ``++`` are directives to the controller itself; all
other lines are forwarded to the currently addressed instrument.

Typical usage::

    from benchlink_prologix import open_controller
    from benchlink_scpi import ScpiSession

    controller = open_controller("/dev/ttyUSB0")
    print(controller.version())
    psu = ScpiSession(controller.device(5))
    psu.command("APPL P6V, 5.0, 1.0")
    controller.local(5)
    controller.close()
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from benchlink_core.errors import DomainError, MalformedResponseError, TransportError
from benchlink_scpi.asrl import SerialTransport

from benchlink_prologix.device import GpibDevice

if TYPE_CHECKING:
    from benchlink_scpi.transport import Transport

logger = logging.getLogger(__name__)

ESC = 0x1B
_ESCAPED_BYTES = frozenset(b"\r\n\x1b+")

MIN_ADDRESS = 0
MAX_ADDRESS = 30
MIN_READ_TIMEOUT_MS = 1
MAX_READ_TIMEOUT_MS = 3000

# Prologix encodes secondary addresses as 96 + n.
_SECONDARY_OFFSET = 96

_UNRECOGNIZED = "Unrecognized command"


def escape(data: bytes) -> bytes:
    """Prefix CR, LF, ESC and ``+`` with ESC so they reach the instrument as data.

    Example:
        >>> escape(b"A+B\\n")
        b'A\\x1b+B\\x1b\\n'
    """
    out = bytearray()
    for byte in data:
        if byte in _ESCAPED_BYTES:
            out.append(ESC)
        out.append(byte)
    return bytes(out)


def _check_address(address: int, what: str = "primary") -> None:
    if not MIN_ADDRESS <= address <= MAX_ADDRESS:
        raise DomainError(
            f"GPIB {what} address must be {MIN_ADDRESS}-{MAX_ADDRESS}, got {address}"
        )


class PrologixController:
    """Controller-mode adapter for one GPIB bus.

    Tracks the currently addressed instrument so consecutive traffic to one
    address emits a single ``++addr`` directive. Any transport failure clears
    that cache, and the next operation re-addresses the bus. All traffic is
    serialized by one re-entrant lock for the whole bus.

    Args:
        transport: Open byte transport to the controller.
        read_after_write: Enable ``++auto 1``, where the controller addresses
            the instrument to talk after every write. When off, reads are
            requested explicitly with ``++read eoi``.
        read_timeout_ms: Optional controller read timeout (``++read_tmo_ms``).
        configure: Put the controller in controller mode and apply the
            settings above on construction.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        read_after_write: bool = False,
        read_timeout_ms: int | None = None,
        configure: bool = True,
    ) -> None:
        self._transport = transport
        self._lock = threading.RLock()
        self._addressed: tuple[int, int | None] | None = None
        self._read_after_write = read_after_write
        if configure:
            self._directive("++mode 1")
            self._directive(f"++auto {1 if read_after_write else 0}")
            self._directive("++eoi 1")
            if read_timeout_ms is not None:
                self.set_read_timeout(read_timeout_ms)

    # -- Properties ----------------------------------------------------------

    @property
    def read_after_write(self) -> bool:
        """Whether the controller reads back automatically after every write."""
        return self._read_after_write

    @property
    def addressed(self) -> tuple[int, int | None] | None:
        """The ``(primary, secondary)`` address the bus is set to, if known."""
        return self._addressed

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing all traffic on this bus."""
        return self._lock

    # -- Devices -------------------------------------------------------------

    def device(self, address: int, secondary_address: int | None = None) -> GpibDevice:
        """Return a transport bound to one instrument on this bus.

        Raises:
            DomainError: If an address is outside 0-30.
        """
        _check_address(address)
        if secondary_address is not None:
            _check_address(secondary_address, "secondary")
        return GpibDevice(self, address, secondary_address)

    # -- Controller directives -----------------------------------------------

    def version(self) -> str:
        """Return the controller version string (``++ver``)."""
        with self._lock:
            return self._directive_query("++ver")

    def set_read_after_write(self, enabled: bool) -> None:
        """Switch read-after-write auto mode (``++auto``)."""
        with self._lock:
            self._directive(f"++auto {1 if enabled else 0}")
            self._read_after_write = enabled

    def set_read_timeout(self, milliseconds: int) -> None:
        """Set the controller's inter-character read timeout (``++read_tmo_ms``).

        Raises:
            DomainError: If the value is outside 1-3000 ms.
        """
        if not MIN_READ_TIMEOUT_MS <= milliseconds <= MAX_READ_TIMEOUT_MS:
            raise DomainError(
                f"Read timeout must be {MIN_READ_TIMEOUT_MS}-{MAX_READ_TIMEOUT_MS} ms, "
                f"got {milliseconds}"
            )
        with self._lock:
            self._directive(f"++read_tmo_ms {milliseconds}")

    def service_request(self) -> bool:
        """Return True if any instrument asserts SRQ (``++srq``)."""
        with self._lock:
            response = self._directive_query("++srq")
        return self._parse_int("++srq", response) == 1

    # -- Addressed operations ------------------------------------------------

    def write(self, address: int, secondary_address: int | None, data: bytes) -> None:
        """Send escaped data to one instrument."""
        with self._lock:
            self._select(address, secondary_address)
            logger.debug("-> %r", data)
            self._send_bytes(escape(data))

    def read(
        self, address: int, secondary_address: int | None, timeout: float | None = None
    ) -> bytes:
        """Read one response from one instrument."""
        with self._lock:
            self._select(address, secondary_address)
            if not self._read_after_write:
                self._directive("++read eoi")
            data = self._receive_bytes(timeout)
        logger.debug("<- %r", data)
        return data

    def clear(self, address: int, secondary_address: int | None = None) -> None:
        """Send Selected Device Clear to one instrument (``++clr``)."""
        with self._lock:
            self._select(address, secondary_address)
            self._directive("++clr")

    def local(self, address: int, secondary_address: int | None = None) -> None:
        """Return one instrument to front-panel control (``++loc``)."""
        with self._lock:
            self._select(address, secondary_address)
            self._directive("++loc")

    def lockout(self) -> None:
        """Disable front-panel control on all instruments (``++llo``)."""
        with self._lock:
            self._directive("++llo")

    def front_panel(
        self, address: int, enabled: bool, secondary_address: int | None = None
    ) -> None:
        """Return front-panel control to ``address`` or lock every front panel."""
        if enabled:
            self.local(address, secondary_address)
        else:
            self.lockout()

    def serial_poll(self, address: int, secondary_address: int | None = None) -> int:
        """Serial-poll one instrument and return its status byte (``++spoll``)."""
        _check_address(address)
        directive = f"++spoll {address}"
        if secondary_address is not None:
            directive += f" {secondary_address + _SECONDARY_OFFSET}"
        with self._lock:
            response = self._directive_query(directive)
        return self._parse_int(directive, response)

    # -- Lifecycle -----------------------------------------------------------

    def flush(self) -> None:
        """Discard unread input on the underlying transport, if it supports it."""
        flush = getattr(self._transport, "flush", None)
        if callable(flush):
            with self._lock:
                flush()

    def close(self) -> None:
        """Flush and close the underlying transport. Safe to call multiple times."""
        with self._lock:
            try:
                self.flush()
            except TransportError:
                logger.debug("Flush before close failed", exc_info=True)
            self._transport.close()
            self._addressed = None
        logger.info("GPIB controller closed")

    # -- Private helpers -----------------------------------------------------

    def _select(self, address: int, secondary_address: int | None) -> None:
        target = (address, secondary_address)
        if self._addressed == target:
            return
        directive = f"++addr {address}"
        if secondary_address is not None:
            directive += f" {secondary_address + _SECONDARY_OFFSET}"
        self._directive(directive)
        self._addressed = target

    def _send_bytes(self, payload: bytes) -> None:
        try:
            self._transport.send(payload)
        except TransportError:
            self._invalidate()
            raise

    def _receive_bytes(self, timeout: float | None) -> bytes:
        try:
            return self._transport.receive(timeout)
        except TransportError:
            self._invalidate()
            raise

    def _invalidate(self) -> None:
        if self._addressed is not None:
            logger.debug("Transport fault; GPIB address cache invalidated")
        self._addressed = None

    def _directive(self, directive: str) -> None:
        logger.debug("-> %s", directive)
        self._send_bytes(directive.encode("ascii"))

    def _directive_query(self, directive: str) -> str:
        self._directive(directive)
        response = self._receive_bytes(None).decode("ascii", errors="replace").strip()
        logger.debug("<- %s", response)
        if response == _UNRECOGNIZED:
            raise MalformedResponseError(
                "Controller rejected directive", payload=response, command=directive
            )
        return response

    @staticmethod
    def _parse_int(directive: str, response: str) -> int:
        try:
            return int(response)
        except ValueError:
            raise MalformedResponseError(
                "Expected an integer from the controller", payload=response, command=directive
            ) from None


def open_controller(
    port: str,
    baud_rate: int = 115200,
    *,
    read_after_write: bool = False,
    read_timeout_ms: int | None = None,
    timeout: float = 1.0,
) -> PrologixController:
    """Open a serial port and configure a controller on it.

    Args:
        port: Serial device of the controller (``/dev/ttyUSB0``, ``COM4``).
        baud_rate: Serial speed. The USB controllers ignore it.
        read_after_write: Enable ``++auto 1``.
        read_timeout_ms: Optional ``++read_tmo_ms`` value.
        timeout: Default host-side receive timeout in seconds.

    Raises:
        TransportOpenError: If the port cannot be opened.
    """
    transport = SerialTransport(port, baud_rate, timeout=timeout)
    transport.open()
    try:
        controller = PrologixController(
            transport, read_after_write=read_after_write, read_timeout_ms=read_timeout_ms
        )
    except Exception:
        transport.close()
        raise
    logger.info("GPIB controller ready on %s", port)
    return controller
