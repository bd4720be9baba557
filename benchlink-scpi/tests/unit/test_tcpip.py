"""Tests for TcpSocketTransport over a local socket pair."""

from __future__ import annotations

import socket
from collections.abc import Iterator
from unittest.mock import patch

import pytest

from benchlink_core.errors import (
    DisconnectedError,
    IncompleteResponseError,
    ResponseTimeoutError,
    TransportOpenError,
)
from benchlink_scpi.tcpip import TcpSocketTransport


@pytest.fixture
def connected() -> Iterator[tuple[TcpSocketTransport, socket.socket]]:
    """Open a transport whose socket is one end of a socketpair."""
    client, server = socket.socketpair()
    transport = TcpSocketTransport("instrument.local", 5025, timeout=0.5)
    with patch("socket.create_connection", return_value=client) as create:
        transport.open()
    create.assert_called_once_with(("instrument.local", 5025), timeout=0.5)
    try:
        yield transport, server
    finally:
        transport.close()
        server.close()


class TestLifecycle:
    """Tests for open/close."""

    def test_open_failure_raises_transport_open_error(self) -> None:
        transport = TcpSocketTransport("nowhere", 5025)
        with patch("socket.create_connection", side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(TransportOpenError):
                transport.open()
        assert not transport.is_open

    def test_open_idempotent(self, connected: tuple[TcpSocketTransport, socket.socket]) -> None:
        transport, _ = connected
        with patch("socket.create_connection") as create:
            transport.open()
        create.assert_not_called()

    def test_close_idempotent(self, connected: tuple[TcpSocketTransport, socket.socket]) -> None:
        transport, _ = connected
        transport.close()
        transport.close()
        assert not transport.is_open

    def test_send_when_closed(self) -> None:
        with pytest.raises(DisconnectedError):
            TcpSocketTransport("x").send(b"*IDN?")


class TestFraming:
    """Tests for send/receive framing."""

    def test_send_appends_terminator(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        transport.send(b"*IDN?")
        assert server.recv(64) == b"*IDN?\n"

    def test_receive_strips_terminator(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        server.sendall(b"ACME,X1,SN1,1.0\n")
        assert transport.receive() == b"ACME,X1,SN1,1.0"

    def test_receive_reassembles_chunks(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        server.sendall(b"1.23")
        server.sendall(b"45\n")
        assert transport.receive() == b"1.2345"

    def test_surplus_kept_for_next_receive(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        server.sendall(b"first\nsecond\n")
        assert transport.receive() == b"first"
        assert transport.receive() == b"second"


class TestFailures:
    """Tests for timeout and disconnect classification."""

    def test_timeout(self, connected: tuple[TcpSocketTransport, socket.socket]) -> None:
        transport, _ = connected
        with pytest.raises(ResponseTimeoutError):
            transport.receive(timeout=0.05)

    def test_timeout_then_success(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        with pytest.raises(ResponseTimeoutError):
            transport.receive(timeout=0.05)
        server.sendall(b"ok\n")
        assert transport.receive() == b"ok"

    def test_peer_close_mid_response(
        self, connected: tuple[TcpSocketTransport, socket.socket]
    ) -> None:
        transport, server = connected
        server.sendall(b"1.2")
        server.shutdown(socket.SHUT_WR)
        with pytest.raises(IncompleteResponseError) as exc_info:
            transport.receive()
        assert exc_info.value.partial == b"1.2"

    def test_peer_close_idle(self, connected: tuple[TcpSocketTransport, socket.socket]) -> None:
        transport, server = connected
        server.shutdown(socket.SHUT_WR)
        with pytest.raises(DisconnectedError):
            transport.receive()
