"""Tests for the benchlink error taxonomy."""

from __future__ import annotations

import pytest

from benchlink_core.errors import (
    BenchlinkError,
    DeviceReportedError,
    DisconnectedError,
    DomainError,
    IncompleteResponseError,
    InstrumentError,
    InvalidTopologyError,
    MalformedResponseError,
    ResourceStringError,
    ResponseTimeoutError,
    TransportError,
    TransportOpenError,
    UnknownChannelError,
)


class TestHierarchy:
    """Tests for base classes and builtin compatibility."""

    def test_all_errors_are_benchlink_errors(self) -> None:
        for exc_type in (
            TransportOpenError,
            DisconnectedError,
            ResponseTimeoutError,
            IncompleteResponseError,
            MalformedResponseError,
            UnknownChannelError,
            InvalidTopologyError,
            ResourceStringError,
        ):
            assert issubclass(exc_type, BenchlinkError)

    def test_timeout_is_builtin_timeout(self) -> None:
        assert issubclass(ResponseTimeoutError, TimeoutError)
        assert issubclass(ResponseTimeoutError, TransportError)

    def test_open_error_is_connection_error(self) -> None:
        assert issubclass(TransportOpenError, ConnectionError)

    def test_unknown_channel_is_lookup_error(self) -> None:
        assert issubclass(UnknownChannelError, LookupError)
        assert issubclass(UnknownChannelError, DomainError)
        assert issubclass(UnknownChannelError, ValueError)

    def test_catch_domain_error_as_value_error(self) -> None:
        with pytest.raises(ValueError):
            raise InvalidTopologyError("two sources")


class TestTransportError:
    """Tests for command attachment on transport errors."""

    def test_str_without_command(self) -> None:
        assert str(DisconnectedError("socket closed")) == "socket closed"

    def test_str_with_command(self) -> None:
        err = ResponseTimeoutError("no response", command="MEAS:VOLT?")
        assert "no response" in str(err)
        assert "MEAS:VOLT?" in str(err)
        assert err.command == "MEAS:VOLT?"

    def test_command_can_be_attached_later(self) -> None:
        err = DisconnectedError("gone")
        err.command = "*IDN?"
        assert "*IDN?" in str(err)

    def test_incomplete_response_keeps_partial(self) -> None:
        err = IncompleteResponseError("truncated", partial=b"1.23")
        assert err.partial == b"1.23"


class TestProtocolErrors:
    """Tests for protocol error formatting."""

    def test_malformed_response_payload(self) -> None:
        err = MalformedResponseError("bad idn", payload="ACME,X")
        assert err.payload == "ACME,X"
        assert "ACME,X" in str(err)

    def test_device_reported_single(self) -> None:
        err = DeviceReportedError((InstrumentError(code=-100, message="Command error"),))
        assert "-100" in str(err)
        assert "Command error" in str(err)

    def test_device_reported_with_command(self) -> None:
        err = DeviceReportedError(
            (
                InstrumentError(code=-100, message="Command error"),
                InstrumentError(code=-222, message="Data out of range"),
            ),
            command="VOLT 99",
        )
        msg = str(err)
        assert "-100" in msg
        assert "-222" in msg
        assert "VOLT 99" in msg
        assert len(err.errors) == 2

    def test_instrument_error_str(self) -> None:
        assert str(InstrumentError(code=-113, message="Undefined header")) == (
            '-113,"Undefined header"'
        )
