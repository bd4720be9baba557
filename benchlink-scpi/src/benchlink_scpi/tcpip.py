"""LXI raw-socket transport (SCPI over TCP, conventionally port 5025)."""

from __future__ import annotations

import logging
import socket
import time

from benchlink_core.errors import (
    DisconnectedError,
    IncompleteResponseError,
    ResponseTimeoutError,
    TransportOpenError,
)

logger = logging.getLogger(__name__)

_RECV_SIZE = 4096


class TcpSocketTransport:
    """Transport over a raw TCP socket.

    Messages are framed with ``write_termination``. :meth:`receive` loops
    over ``recv`` until ``read_termination`` is seen or the deadline passes.
    Bytes that arrive after a terminator are kept for the next receive.

    Args:
        host: Instrument host name or IP address.
        port: TCP port. Defaults to 5025.
        timeout: Default receive timeout in seconds (also the connect timeout).
        write_termination: Bytes appended to every outgoing message.
        read_termination: Bytes that end an incoming response.

    Example:
        >>> transport = TcpSocketTransport("192.168.1.10")
        >>> transport.open()
        >>> transport.send(b"*IDN?")
        >>> transport.receive(timeout=2.0)
        b'Agilent Technologies,33220A,MY44035849,2.02-2.02-22-2'
    """

    def __init__(
        self,
        host: str,
        port: int = 5025,
        *,
        timeout: float = 5.0,
        write_termination: bytes = b"\n",
        read_termination: bytes = b"\n",
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._write_termination = write_termination
        self._read_termination = read_termination
        self._sock: socket.socket | None = None
        self._buffer = bytearray()

    @property
    def address(self) -> tuple[str, int]:
        """The ``(host, port)`` this transport connects to."""
        return (self._host, self._port)

    @property
    def is_open(self) -> bool:
        """Return True if the socket is connected."""
        return self._sock is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Connect the socket.

        Raises:
            TransportOpenError: If the connection cannot be established.
        """
        if self._sock is not None:
            return
        try:
            self._sock = socket.create_connection((self._host, self._port), timeout=self._timeout)
        except OSError as exc:
            raise TransportOpenError(
                f"Failed to connect to {self._host}:{self._port}: {exc}"
            ) from exc
        self._buffer.clear()
        logger.info("Connected to %s:%d", self._host, self._port)

    def close(self) -> None:
        """Close the socket. Safe to call multiple times."""
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError:
            logger.debug("Error closing socket to %s:%d", self._host, self._port)
        self._sock = None
        self._buffer.clear()
        logger.info("Disconnected from %s:%d", self._host, self._port)

    # -- Transport interface -------------------------------------------------

    def send(self, data: bytes) -> None:
        """Send one message framed with the write terminator."""
        sock = self._require_open()
        try:
            sock.sendall(data + self._write_termination)
        except OSError as exc:
            raise DisconnectedError(f"Send to {self._host}:{self._port} failed: {exc}") from exc

    def receive(self, timeout: float | None = None) -> bytes:
        """Receive one terminated response.

        Raises:
            ResponseTimeoutError: If no terminator arrives before the deadline.
                Bytes received so far are discarded.
            IncompleteResponseError: If the peer closes mid-response.
            DisconnectedError: If the peer closes with nothing pending.
        """
        sock = self._require_open()
        limit = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + limit
        term = self._read_termination
        while True:
            index = self._buffer.find(term)
            if index >= 0:
                message = bytes(self._buffer[:index])
                del self._buffer[: index + len(term)]
                return message
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._buffer.clear()
                raise ResponseTimeoutError(
                    f"No response from {self._host}:{self._port} within {limit}s"
                )
            sock.settimeout(remaining)
            try:
                chunk = sock.recv(_RECV_SIZE)
            except socket.timeout:
                continue
            except OSError as exc:
                raise DisconnectedError(
                    f"Receive from {self._host}:{self._port} failed: {exc}"
                ) from exc
            if not chunk:
                partial = bytes(self._buffer)
                self._buffer.clear()
                if partial:
                    raise IncompleteResponseError(
                        f"Connection to {self._host}:{self._port} closed mid-response",
                        partial=partial,
                    )
                raise DisconnectedError(f"Connection to {self._host}:{self._port} closed")
            self._buffer.extend(chunk)

    def _require_open(self) -> socket.socket:
        if self._sock is None:
            raise DisconnectedError(f"Socket to {self._host}:{self._port} is not open")
        return self._sock
