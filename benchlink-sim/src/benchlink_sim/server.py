"""TCP server exposing an emulator as an LXI raw-socket instrument.

Wraps any :class:`~benchlink_scpi.Transport` emulator and serves it over
TCP, so :class:`~benchlink_scpi.TcpSocketTransport`, PyVISA or netcat can
talk to it as if it were an instrument on port 5025.

Example:
    Start an emulator server on an ephemeral port::

        from benchlink_sim import EmulatorServer, make_33220a_emulator

        server = EmulatorServer(make_33220a_emulator(), port=0)
        server.start()

        host, port = server.address
        print(f"Connect via: TCPIP0::{host}::{port}::SOCKET")

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import Any

from benchlink_core.errors import ResponseTimeoutError
from benchlink_scpi.transport import Transport

logger = logging.getLogger(__name__)


class _ScpiRequestHandler(socketserver.StreamRequestHandler):
    """Handle one TCP connection, forwarding lines to the emulator.

    Each line is one message. After a query the pending response, if any,
    is written back followed by a newline; a query the emulator does not
    answer gets no reply, as on a real instrument.
    """

    server: _ScpiTcpServer

    def handle(self) -> None:
        logger.debug("Client connected from %s", self.client_address)
        for raw_line in self.rfile:
            line = raw_line.rstrip(b"\r\n")
            if not line.strip():
                continue
            transport = self.server.transport
            transport.send(line)
            if b"?" in line:
                try:
                    response = transport.receive(0)
                except ResponseTimeoutError:
                    continue
                self.wfile.write(response + b"\n")
                self.wfile.flush()
        logger.debug("Client %s disconnected", self.client_address)


class _ScpiTcpServer(socketserver.TCPServer):
    """TCPServer subclass that holds a reference to the transport."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        transport: Transport,
        **kwargs: Any,
    ) -> None:
        self.transport = transport
        super().__init__(server_address, _ScpiRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping an emulator for socket access.

    Runs in a background daemon thread and handles one client connection
    at a time.

    Args:
        transport: The emulator to serve.
        host: Bind address (default ``"127.0.0.1"``).
        port: Bind port (default ``5025``). Use ``0`` for an OS-assigned
            ephemeral port.
    """

    def __init__(
        self,
        transport: Transport,
        host: str = "127.0.0.1",
        port: int = 5025,
    ) -> None:
        self._server = _ScpiTcpServer((host, port), transport)
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Emulator server listening on %s:%d", *self.address)

    def stop(self) -> None:
        """Shut down the server and wait for the thread to exit."""
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join()
        self._server.server_close()

    @property
    def address(self) -> tuple[str, int]:
        """Return the actual bound ``(host, port)`` address."""
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))

    @property
    def resource(self) -> str:
        """Resource string that reaches this server."""
        host, port = self.address
        return f"TCPIP0::{host}::{port}::SOCKET"

    def __enter__(self) -> EmulatorServer:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
