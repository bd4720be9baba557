"""Tests for VisaTransport with mocked pyvisa module."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from benchlink_core.errors import DisconnectedError, ResponseTimeoutError, TransportOpenError
from benchlink_scpi.visa import VisaTransport


def _make_mock_pyvisa() -> MagicMock:
    """Create a mock pyvisa module with ResourceManager."""
    mock_pyvisa = MagicMock()
    mock_rm = MagicMock()
    mock_resource = MagicMock()
    mock_rm.open_resource.return_value = mock_resource
    mock_pyvisa.ResourceManager.return_value = mock_rm
    return mock_pyvisa


class _VisaIOError(Exception):
    def __init__(self, error_code: int) -> None:
        super().__init__(f"VISA error {error_code}")
        self.error_code = error_code


# ---------------------------------------------------------------------------
# open / close lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Tests for open/close lifecycle."""

    def test_open_creates_manager_and_resource(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("TCPIP::192.168.1.1::INSTR", backend="@py", timeout=10.0)
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
        assert visa.is_open
        mock_pyvisa.ResourceManager.assert_called_once_with("@py")
        mock_rm = mock_pyvisa.ResourceManager.return_value
        mock_rm.open_resource.assert_called_once_with(
            "TCPIP::192.168.1.1::INSTR",
            read_termination="\n",
            write_termination="\n",
        )
        assert mock_rm.open_resource.return_value.timeout == 10000

    def test_open_idempotent(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("GPIB0::5::INSTR")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
            visa.open()
        mock_pyvisa.ResourceManager.assert_called_once()

    def test_caller_manager_used_and_not_closed(self) -> None:
        mock_rm = MagicMock()
        visa = VisaTransport("GPIB0::5::INSTR", resource_manager=mock_rm)
        with patch.dict(sys.modules, {"pyvisa": None}):
            visa.open()
        visa.close()
        mock_rm.open_resource.return_value.close.assert_called_once()
        mock_rm.close.assert_not_called()

    def test_owned_manager_closed(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("GPIB0::5::INSTR")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
        visa.close()
        visa.close()
        mock_pyvisa.ResourceManager.return_value.close.assert_called_once()
        assert not visa.is_open

    def test_missing_pyvisa(self) -> None:
        visa = VisaTransport("GPIB0::5::INSTR")
        with patch.dict(sys.modules, {"pyvisa": None}):
            with pytest.raises(TransportOpenError, match="pyvisa"):
                visa.open()

    def test_open_resource_failure(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        mock_rm = mock_pyvisa.ResourceManager.return_value
        mock_rm.open_resource.side_effect = Exception("VI_ERROR_RSRC_NFOUND")
        visa = VisaTransport("GPIB0::5::INSTR")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            with pytest.raises(TransportOpenError):
                visa.open()
        mock_rm.close.assert_called_once()
        assert not visa.is_open


# ---------------------------------------------------------------------------
# send / receive
# ---------------------------------------------------------------------------


class TestIo:
    """Tests for send/receive."""

    def _open(self) -> tuple[VisaTransport, MagicMock]:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("GPIB0::5::INSTR", timeout=2.0)
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
        return visa, mock_pyvisa.ResourceManager.return_value.open_resource.return_value

    def test_send_raw_with_terminator(self) -> None:
        visa, resource = self._open()
        visa.send(b"*RST")
        resource.write_raw.assert_called_once_with(b"*RST\n")

    def test_receive_strips_terminator(self) -> None:
        visa, resource = self._open()
        resource.read_raw.return_value = b"1\n"
        assert visa.receive() == b"1"

    def test_per_call_timeout_restored(self) -> None:
        visa, resource = self._open()
        resource.read_raw.return_value = b"1\n"
        visa.receive(timeout=0.25)
        assert resource.timeout == 2000

    def test_timeout_error_code(self) -> None:
        visa, resource = self._open()
        resource.read_raw.side_effect = _VisaIOError(-1073807339)
        with pytest.raises(ResponseTimeoutError):
            visa.receive()

    def test_other_error_is_disconnect(self) -> None:
        visa, resource = self._open()
        resource.read_raw.side_effect = _VisaIOError(-1073807265)
        with pytest.raises(DisconnectedError):
            visa.receive()

    def test_not_open(self) -> None:
        with pytest.raises(DisconnectedError):
            VisaTransport("GPIB0::5::INSTR").send(b"*IDN?")
