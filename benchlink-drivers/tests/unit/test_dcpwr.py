"""Tests for the DC power group against the emulator."""

from __future__ import annotations

import threading

import pytest

from benchlink_core.errors import DomainError
from benchlink_core.types.dcpwr import CurrentLimitBehavior
from benchlink_drivers.dcpwr import ScpiDCPower
from benchlink_scpi.session import ScpiSession
from benchlink_sim.dcpwr import DCPowerEmulator, make_e3631a_emulator, make_e36103a_emulator

_E3631A_CHANNELS = ("P6V", "P25V", "N25V")


@pytest.fixture
def emulator() -> DCPowerEmulator:
    return make_e3631a_emulator()


@pytest.fixture
def psu(emulator: DCPowerEmulator) -> ScpiDCPower:
    return ScpiDCPower(ScpiSession(emulator), channel_names=_E3631A_CHANNELS)


class TestRoundTrip:
    """Set then get returns the programmed value."""

    @pytest.mark.parametrize(
        ("setter", "getter", "value"),
        [
            ("set_voltage_level", "voltage_level", 12.5),
            ("set_current_limit", "current_limit", 0.25),
            ("set_current_limit_behavior", "current_limit_behavior", CurrentLimitBehavior.TRIP),
            ("set_current_limit_behavior", "current_limit_behavior", CurrentLimitBehavior.CLAMP),
            ("set_ovp_enabled", "ovp_enabled", True),
            ("set_ovp_limit", "ovp_limit", 22.0),
            ("set_output_enabled", "output_enabled", True),
        ],
    )
    def test_round_trip(self, psu: ScpiDCPower, setter: str, getter: str, value: object) -> None:
        channel = psu.channel("P25V")
        getattr(channel, setter)(value)
        channel.invalidate()
        assert getattr(channel, getter)() == value


class TestChannelSelection:
    """Tests for INST:NSEL handling."""

    def test_selection_precedes_command(self, psu: ScpiDCPower, emulator: DCPowerEmulator) -> None:
        psu.channel("N25V").set_voltage_level(-5.0)
        assert emulator.commands[-2:] == ["INST:NSEL 3", "VOLT -5"]
        assert emulator.output(3).voltage == -5.0
        assert emulator.output(1).voltage == 0.0

    def test_single_output_never_selects(self) -> None:
        emulator = make_e36103a_emulator()
        psu = ScpiDCPower(ScpiSession(emulator))
        psu.channel(0).set_voltage_level(3.3)
        assert not any(line.startswith("INST:NSEL") for line in emulator.history)

    def test_selection_and_command_not_interleaved(
        self, psu: ScpiDCPower, emulator: DCPowerEmulator
    ) -> None:
        def worker(name: str, volts: float) -> None:
            for _ in range(25):
                psu.channel(name).set_voltage_level(volts)

        threads = [
            threading.Thread(target=worker, args=("P6V", 1.0)),
            threading.Thread(target=worker, args=("P25V", 2.0)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        selected = None
        for line in emulator.history:
            if line.startswith("INST:NSEL"):
                selected = int(line.split()[1])
            elif line.startswith("VOLT "):
                assert line == ("VOLT 1" if selected == 1 else "VOLT 2")
        assert emulator.output(1).voltage == 1.0
        assert emulator.output(2).voltage == 2.0


class TestHelpers:
    """Tests for configure helpers and measurements."""

    def test_configure_current_limit(self, psu: ScpiDCPower, emulator: DCPowerEmulator) -> None:
        channel = psu.channel("P6V")
        channel.configure_current_limit(CurrentLimitBehavior.TRIP, 0.5)
        assert emulator.output(1).trip
        assert emulator.output(1).current_limit == 0.5
        assert channel.cached("current_limit_behavior") is CurrentLimitBehavior.TRIP

    def test_configure_ovp_sets_limit_before_enable(
        self, psu: ScpiDCPower, emulator: DCPowerEmulator
    ) -> None:
        psu.channel("P6V").configure_ovp(True, 5.5)
        commands = [line for line in emulator.commands if not line.startswith("INST:NSEL")]
        assert commands[-2:] == ["VOLT:PROT 5.5", "VOLT:PROT:STAT 1"]

    def test_measurements(self, psu: ScpiDCPower, emulator: DCPowerEmulator) -> None:
        emulator.set_load(10.0, output=1)
        channel = psu.channel("P6V")
        channel.set_voltage_level(5.0)
        channel.set_output_enabled(True)
        assert channel.measure_voltage() == 5.0
        assert channel.measure_current() == pytest.approx(0.5)
        assert "measure_current" not in channel.cache

    @pytest.mark.parametrize(
        ("setter", "value"), [("set_current_limit", 0.0), ("set_ovp_limit", -1.0)]
    )
    def test_domain_errors(self, psu: ScpiDCPower, setter: str, value: float) -> None:
        with pytest.raises(DomainError):
            getattr(psu.channel(0), setter)(value)
