"""Serial (RS-232) transport backed by pyserial.

The ``serial`` module is imported lazily on :meth:`SerialTransport.open`, so
the rest of benchlink-scpi works without pyserial installed.
"""

from __future__ import annotations

import logging
from typing import Any

from benchlink_core.errors import (
    DisconnectedError,
    IncompleteResponseError,
    ResponseTimeoutError,
    TransportOpenError,
)

logger = logging.getLogger(__name__)


class SerialTransport:
    """Transport over a serial port.

    Every message is framed with ``write_termination``; :meth:`receive`
    reads until ``read_termination`` is seen.

    Args:
        port: Device name (``"/dev/ttyUSB0"``, ``"COM3"``).
        baud_rate: Line speed in bits per second.
        data_bits: Data bits per character (5-8).
        parity: ``"N"``, ``"E"``, ``"O"``, ``"M"`` or ``"S"``.
        stop_bits: 1, 1.5 or 2.
        timeout: Default receive timeout in seconds.
        write_termination: Bytes appended to every outgoing message.
        read_termination: Bytes that end an incoming response.

    Example:
        >>> transport = SerialTransport("/dev/ttyUSB0", 9600, stop_bits=2)
        >>> transport.open()
        >>> transport.send(b"*IDN?")
        >>> transport.receive()
        b'HEWLETT-PACKARD,E3631A,0,2.1-5.0-1.0'
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = 9600,
        data_bits: int = 8,
        parity: str = "N",
        stop_bits: float = 1,
        *,
        timeout: float = 5.0,
        write_termination: bytes = b"\n",
        read_termination: bytes = b"\n",
    ) -> None:
        self._port = port
        self._baud_rate = baud_rate
        self._data_bits = data_bits
        self._parity = parity.upper()
        self._stop_bits = stop_bits
        self._timeout = timeout
        self._write_termination = write_termination
        self._read_termination = read_termination
        self._serial: Any = None

    @property
    def port(self) -> str:
        """The serial device name."""
        return self._port

    @property
    def is_open(self) -> bool:
        """Return True if the port is open."""
        return self._serial is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port.

        Raises:
            TransportOpenError: If pyserial is missing or the port cannot be opened.
        """
        if self._serial is not None:
            return

        try:
            import serial  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise TransportOpenError(
                "pyserial library is not installed. Install with: pip install pyserial"
            ) from exc

        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baud_rate,
                bytesize=self._data_bits,
                parity=self._parity,
                stopbits=self._stop_bits,
                timeout=self._timeout,
            )
        except Exception as exc:
            self._serial = None
            raise TransportOpenError(f"Failed to open serial port {self._port!r}: {exc}") from exc
        logger.info(
            "Opened serial port %s (%d %d%s%s)",
            self._port,
            self._baud_rate,
            self._data_bits,
            self._parity,
            self._stop_bits,
        )

    def close(self) -> None:
        """Flush and close the port. Safe to call multiple times."""
        if self._serial is None:
            return
        try:
            self._serial.reset_input_buffer()
            self._serial.close()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Error closing serial port %s", self._port)
        self._serial = None
        logger.info("Closed serial port %s", self._port)

    def flush(self) -> None:
        """Discard unread input and wait for pending output to drain."""
        ser = self._require_open()
        try:
            ser.reset_input_buffer()
            ser.flush()
        except Exception as exc:
            raise DisconnectedError(f"Serial flush failed on {self._port}: {exc}") from exc

    # -- Transport interface -------------------------------------------------

    def send(self, data: bytes) -> None:
        """Write one message framed with the write terminator."""
        ser = self._require_open()
        try:
            ser.write(data + self._write_termination)
        except Exception as exc:
            raise DisconnectedError(f"Serial write failed on {self._port}: {exc}") from exc

    def receive(self, timeout: float | None = None) -> bytes:
        """Read until the read terminator or the timeout.

        Raises:
            ResponseTimeoutError: If nothing arrived before the timeout.
            IncompleteResponseError: If bytes arrived but no terminator.
            DisconnectedError: If the port is closed or the read fails.
        """
        ser = self._require_open()
        ser.timeout = self._timeout if timeout is None else timeout
        try:
            raw: bytes = ser.read_until(self._read_termination)
        except Exception as exc:
            raise DisconnectedError(f"Serial read failed on {self._port}: {exc}") from exc
        if not raw:
            raise ResponseTimeoutError(f"No response on {self._port} within {ser.timeout}s")
        if not raw.endswith(self._read_termination):
            raise IncompleteResponseError(
                f"Response on {self._port} ended without terminator", partial=raw
            )
        return raw[: -len(self._read_termination)]

    def _require_open(self) -> Any:
        if self._serial is None:
            raise DisconnectedError(f"Serial port {self._port} is not open")
        return self._serial
