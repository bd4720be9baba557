"""Tests for the EmulatorServer TCP server."""

from __future__ import annotations

import socket

import pytest

from benchlink_core.errors import ResponseTimeoutError
from benchlink_scpi.session import ScpiSession
from benchlink_scpi.tcpip import TcpSocketTransport
from benchlink_sim.fgen import make_33220a_emulator
from benchlink_sim.server import EmulatorServer


def _send_query(sock: socket.socket, query: str) -> str:
    """Send a query over TCP and return the response line."""
    sock.sendall((query + "\n").encode("ascii"))
    data = b""
    while not data.endswith(b"\n"):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data.decode("ascii").strip()


class TestEmulatorServer:
    """Tests for EmulatorServer TCP serving."""

    def test_query_round_trip(self) -> None:
        server = EmulatorServer(make_33220a_emulator(), port=0)
        server.start()
        try:
            host, port = server.address
            with socket.create_connection((host, port), timeout=5) as sock:
                assert "33220A" in _send_query(sock, "*IDN?")
        finally:
            server.stop()

    def test_command_then_query(self) -> None:
        with EmulatorServer(make_33220a_emulator(), port=0) as server:
            with socket.create_connection(server.address, timeout=5) as sock:
                sock.sendall(b"FREQ 2340\n")
                assert float(_send_query(sock, "FREQ?")) == 2340.0

    def test_resource_string(self) -> None:
        with EmulatorServer(make_33220a_emulator(), port=0) as server:
            host, port = server.address
            assert server.resource == f"TCPIP0::{host}::{port}::SOCKET"


class TestSocketTransportAgainstServer:
    """End-to-end tests of TcpSocketTransport and ScpiSession over the server."""

    def test_session_over_tcp(self) -> None:
        with EmulatorServer(make_33220a_emulator(), port=0) as server:
            host, port = server.address
            transport = TcpSocketTransport(host, port, timeout=2.0)
            transport.open()
            session = ScpiSession(transport)
            try:
                assert session.get_identity().model == "33220A"
                session.command("VOLT 0.4")
                assert float(session.query("VOLT?")) == 0.4
            finally:
                session.close()

    def test_lost_response_times_out_then_recovers(self) -> None:
        emulator = make_33220a_emulator()
        with EmulatorServer(emulator, port=0) as server:
            host, port = server.address
            transport = TcpSocketTransport(host, port, timeout=2.0)
            transport.open()
            session = ScpiSession(transport)
            try:
                emulator.drop_next_response()
                with pytest.raises(ResponseTimeoutError):
                    session.query("*IDN?", timeout=0.2)
                assert session.query("*OPC?") == "1"
            finally:
                session.close()
