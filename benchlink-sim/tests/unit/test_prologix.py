"""Tests for PrologixEmulator, alone and behind a PrologixController."""

from __future__ import annotations

import pytest

from benchlink_core.errors import ResponseTimeoutError
from benchlink_prologix.controller import PrologixController
from benchlink_scpi.session import ScpiSession
from benchlink_sim.dcpwr import make_e3631a_emulator
from benchlink_sim.dmm import make_34401a_emulator
from benchlink_sim.prologix import PrologixEmulator, unescape


def _bus() -> tuple[PrologixEmulator, PrologixController]:
    bus = PrologixEmulator()
    bus.attach(5, make_e3631a_emulator())
    bus.attach(22, make_34401a_emulator())
    return bus, PrologixController(bus)


class TestDirectives:
    """Tests for ++ directive handling."""

    def test_configuration_applied(self) -> None:
        bus = PrologixEmulator()
        PrologixController(bus, read_after_write=True)
        assert bus.auto

    def test_version(self) -> None:
        _, controller = _bus()
        assert controller.version().startswith("Prologix GPIB-USB")

    def test_addressing(self) -> None:
        bus, _ = _bus()
        bus.send(b"++addr 9 98")
        assert bus.address == (9, 2)

    def test_unknown_directive(self) -> None:
        bus, _ = _bus()
        bus.send(b"++frobnicate")
        assert bus.receive() == b"Unrecognized command"

    def test_serial_poll_and_srq(self) -> None:
        bus, controller = _bus()
        bus.set_status_byte(5, 0x40)
        assert controller.service_request()
        assert controller.serial_poll(5) == 0x40
        assert not controller.service_request()

    def test_local_and_lockout(self) -> None:
        bus, controller = _bus()
        controller.device(5).send(b"*CLS")
        assert bus.is_remote(5)
        controller.local(5)
        assert not bus.is_remote(5)
        controller.lockout()
        assert bus.lockout

    def test_unescape(self) -> None:
        assert unescape(b"A\x1b+B\x1b\x1b") == b"A+B\x1b"


class TestBusTraffic:
    """Tests for routing, read gating and address suppression."""

    def test_identify_each_device(self) -> None:
        _, controller = _bus()
        psu = ScpiSession(controller.device(5))
        dmm = ScpiSession(controller.device(22))
        assert psu.get_identity().model == "E3631A"
        assert dmm.get_identity().model == "34401A"

    def test_consecutive_commands_address_once(self) -> None:
        bus, controller = _bus()
        session = ScpiSession(controller.device(5))
        session.command("VOLT 1")
        session.command("VOLT 2")
        session.query("VOLT?")
        assert bus.addr_directives == 1

    def test_response_held_until_read(self) -> None:
        bus, controller = _bus()
        controller.write(5, None, b"*IDN?")
        with pytest.raises(ResponseTimeoutError):
            bus.receive()
        assert controller.read(5, None).startswith(b"HEWLETT-PACKARD")

    def test_auto_mode_reads_immediately(self) -> None:
        bus = PrologixEmulator()
        bus.attach(5, make_e3631a_emulator())
        controller = PrologixController(bus, read_after_write=True)
        controller.write(5, None, b"*OPC?")
        assert bus.receive() == b"1"

    def test_no_listener_times_out(self) -> None:
        _, controller = _bus()
        session = ScpiSession(controller.device(7))
        with pytest.raises(ResponseTimeoutError):
            session.query("*IDN?")

    def test_timeout_isolation(self) -> None:
        bus = PrologixEmulator()
        psu = make_e3631a_emulator()
        bus.attach(5, psu)
        controller = PrologixController(bus)
        session = ScpiSession(controller.device(5))
        psu.drop_next_response()
        with pytest.raises(ResponseTimeoutError):
            session.query("*IDN?")
        assert session.query("*OPC?") == "1"

    def test_device_clear_discards_pending(self) -> None:
        bus = PrologixEmulator()
        psu = make_e3631a_emulator()
        bus.attach(5, psu)
        controller = PrologixController(bus)
        controller.write(5, None, b"*IDN?")
        controller.clear(5)
        assert psu.pending == 0
