"""Tests for the function generator group against the emulator."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from benchlink_core.errors import DeviceReportedError, DomainError, MalformedResponseError
from benchlink_core.types.fgen import OperationMode, StandardWaveform, TriggerSource
from benchlink_drivers.fgen import ScpiFunctionGenerator, create_instrument
from benchlink_scpi.session import ScpiSession
from benchlink_sim.fgen import (
    FunctionGeneratorEmulator,
    make_33220a_emulator,
    make_33522b_emulator,
)


@pytest.fixture
def emulator() -> FunctionGeneratorEmulator:
    return make_33220a_emulator()


@pytest.fixture
def fgen(emulator: FunctionGeneratorEmulator) -> ScpiFunctionGenerator:
    return ScpiFunctionGenerator(ScpiSession(emulator, check_errors=True))


class TestRoundTrip:
    """Set then get returns the programmed value."""

    @pytest.mark.parametrize(
        ("setter", "getter", "value"),
        [
            ("set_frequency", "frequency", 2340.0),
            ("set_frequency", "frequency", 0.1234567),
            ("set_amplitude", "amplitude", 0.4),
            ("set_dc_offset", "dc_offset", -0.1),
            ("set_start_phase", "start_phase", 90.0),
            ("set_burst_count", "burst_count", 131),
            ("set_output_enabled", "output_enabled", True),
            ("set_standard_waveform", "standard_waveform", StandardWaveform.RAMP_DOWN),
            ("set_trigger_source", "trigger_source", TriggerSource.SOFTWARE),
            ("set_operation_mode", "operation_mode", OperationMode.BURST),
            ("set_operation_mode", "operation_mode", OperationMode.SWEEP),
        ],
    )
    def test_round_trip(
        self, fgen: ScpiFunctionGenerator, setter: str, getter: str, value: object
    ) -> None:
        channel = fgen.channel(0)
        getattr(channel, setter)(value)
        channel.invalidate()
        assert getattr(channel, getter)() == value

    def test_internal_trigger_rate_and_period(self, fgen: ScpiFunctionGenerator) -> None:
        fgen.set_internal_trigger_rate(2.0)
        assert fgen.internal_trigger_rate() == 2.0
        assert fgen.internal_trigger_period() == 0.5
        fgen.set_internal_trigger_period(0.25)
        assert fgen.internal_trigger_rate() == 4.0


class TestCommands:
    """Tests for the generated command text."""

    def test_single_output_uses_bare_commands(
        self, fgen: ScpiFunctionGenerator, emulator: FunctionGeneratorEmulator
    ) -> None:
        fgen.channel("CH1").set_frequency(1000.0)
        fgen.channel("CH1").set_output_enabled(True)
        assert "FREQ 1000" in emulator.history
        assert "OUTP 1" in emulator.history

    def test_multi_output_uses_prefixes(self) -> None:
        emulator = make_33522b_emulator()
        fgen = ScpiFunctionGenerator(ScpiSession(emulator), channel_names=["CH1", "CH2"])
        fgen.channel("CH2").set_frequency(5000.0)
        fgen.channel("CH2").set_output_enabled(True)
        fgen.channel("CH2").set_trigger_source(TriggerSource.EXTERNAL)
        assert "SOUR2:FREQ 5000" in emulator.history
        assert "OUTP2 1" in emulator.history
        assert "TRIG2:SOUR EXT" in emulator.history
        assert emulator.output(2).frequency == 5000.0
        assert emulator.output(1).frequency == 1000.0

    def test_configure_standard_waveform(
        self, fgen: ScpiFunctionGenerator, emulator: FunctionGeneratorEmulator
    ) -> None:
        channel = fgen.channel(0)
        channel.configure_standard_waveform(StandardWaveform.SINE, 0.4, 0.1, 2340.0, 0.0)
        state = emulator.output(1)
        assert (state.function, state.amplitude, state.offset, state.frequency) == (
            "SIN",
            0.4,
            0.1,
            2340.0,
        )
        assert channel.cached("amplitude") == 0.4

    def test_burst_mode_disables_sweep_first(
        self, fgen: ScpiFunctionGenerator, emulator: FunctionGeneratorEmulator
    ) -> None:
        fgen.channel(0).set_operation_mode(OperationMode.BURST)
        assert emulator.commands[-2:] == ["SWE:STAT OFF", "BURS:STAT ON"]


class TestValidation:
    """Tests for argument checks and instrument errors."""

    @pytest.mark.parametrize(
        ("setter", "value"),
        [
            ("set_frequency", 0.0),
            ("set_amplitude", -1.0),
            ("set_burst_count", 0),
            ("set_start_phase", 720.0),
        ],
    )
    def test_domain_errors_send_nothing(
        self,
        fgen: ScpiFunctionGenerator,
        emulator: FunctionGeneratorEmulator,
        setter: str,
        value: float,
    ) -> None:
        before = len(emulator.history)
        with pytest.raises(DomainError):
            getattr(fgen.channel(0), setter)(value)
        assert len(emulator.history) == before

    def test_trigger_rate_must_be_positive(self, fgen: ScpiFunctionGenerator) -> None:
        with pytest.raises(DomainError):
            fgen.set_internal_trigger_rate(0.0)
        with pytest.raises(DomainError):
            fgen.set_internal_trigger_period(-1.0)

    def test_instrument_rejection_surfaces(
        self, fgen: ScpiFunctionGenerator, emulator: FunctionGeneratorEmulator
    ) -> None:
        channel = fgen.channel(0)
        channel.set_frequency(1000.0)
        with pytest.raises(DeviceReportedError):
            channel.set_frequency(50e6)
        assert channel.cached("frequency") == 1000.0
        assert emulator.output(1).frequency == 1000.0

    def test_rejected_write_leaves_cache_unchanged(self) -> None:
        emulator = make_33220a_emulator()
        fgen = ScpiFunctionGenerator(ScpiSession(emulator))
        channel = fgen.channel(0)
        with pytest.raises(DeviceReportedError) as excinfo:
            channel.set_frequency(25e6)
        assert excinfo.value.command == "FREQ 25000000"
        assert channel.cached("frequency") is None
        assert emulator.output(1).frequency == 1000.0
        assert channel.frequency() == 1000.0
        assert channel.cached("frequency") == 1000.0

    def test_unknown_waveform_response(
        self, fgen: ScpiFunctionGenerator, emulator: FunctionGeneratorEmulator
    ) -> None:
        emulator.output(1).function = "ARB"
        with pytest.raises(MalformedResponseError):
            fgen.channel(0).standard_waveform()


class TestFactory:
    """Tests for create_instrument."""

    def test_create_instrument(self) -> None:
        session = ScpiSession(make_33220a_emulator())
        with patch("benchlink_drivers.instrument.open_session", return_value=session):
            fgen = create_instrument("TCPIP0::fgen::5025::SOCKET", reset=True, aliases={"out": 0})
        assert isinstance(fgen, ScpiFunctionGenerator)
        assert fgen.channel("out").name == "CH1"
