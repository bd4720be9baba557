"""Oscilloscope capability group and generic SCPI driver.

The generic driver follows the Keysight InfiniiVision command set
(``CHANn:``, ``ACQ:``, ``TIM:``, ``TRIG:`` and ``MEAS:`` subsystems).
Instrument-wide settings are cached on the driver after each successful
write; per-channel settings on the channel.

Example:
    >>> scope = create_instrument("USB0::0x0957::0x1796::MY12345678::INSTR")
    >>> ch1 = scope.channel("CH1")
    >>> ch1.configure(2.0, 0.0, VerticalCoupling.DC, 10.0, True)
    >>> scope.set_time_per_record(1e-3)
    >>> ch1.fetch_waveform_measurement(WaveformMeasurement.FREQUENCY)
    1000.02
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from benchlink_core.errors import DomainError, MalformedResponseError
from benchlink_core.types.common import CapabilityGroup
from benchlink_core.types.scope import (
    AcquisitionType,
    TriggerType,
    VerticalCoupling,
    WaveformMeasurement,
)
from benchlink_scpi.number import format_bool, format_number, is_overflow

from benchlink_drivers.channel import Channel
from benchlink_drivers.instrument import Instrument, create_driver

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController

logger = logging.getLogger(__name__)

# Valid input impedances, ohms.
HIGH_IMPEDANCE = 1e6
LOW_IMPEDANCE = 50.0


class OscilloscopeChannel(Channel):
    """One analog input of an oscilloscope."""

    @property
    def _scope(self) -> Oscilloscope:
        return cast(Oscilloscope, self._instrument)

    def vertical_range(self) -> float:
        """Query the full-scale vertical range in volts."""
        return self._get("vertical_range", self._scope.vertical_range)

    def set_vertical_range(self, volts: float) -> None:
        """Set the full-scale vertical range in volts."""
        self._set("vertical_range", self._scope.set_vertical_range, volts)

    def vertical_offset(self) -> float:
        """Query the vertical offset in volts."""
        return self._get("vertical_offset", self._scope.vertical_offset)

    def set_vertical_offset(self, volts: float) -> None:
        """Set the vertical offset in volts."""
        self._set("vertical_offset", self._scope.set_vertical_offset, volts)

    def vertical_coupling(self) -> VerticalCoupling:
        """Query the input coupling."""
        return self._get("vertical_coupling", self._scope.vertical_coupling)

    def set_vertical_coupling(self, coupling: VerticalCoupling) -> None:
        """Select the input coupling."""
        self._set("vertical_coupling", self._scope.set_vertical_coupling, coupling)

    def probe_attenuation(self) -> float:
        """Query the probe attenuation factor."""
        return self._get("probe_attenuation", self._scope.probe_attenuation)

    def set_probe_attenuation(self, factor: float) -> None:
        """Set the probe attenuation factor."""
        self._set("probe_attenuation", self._scope.set_probe_attenuation, factor)

    def enabled(self) -> bool:
        """Query whether the channel is displayed and acquired."""
        return self._get("enabled", self._scope.channel_enabled)

    def set_enabled(self, enabled: bool) -> None:
        """Turn the channel on or off."""
        self._set("enabled", self._scope.set_channel_enabled, enabled)

    def input_impedance(self) -> float:
        """Query the input impedance in ohms."""
        return self._get("input_impedance", self._scope.input_impedance)

    def set_input_impedance(self, ohms: float) -> None:
        """Set the input impedance, 50 or 1e6 ohms."""
        self._set("input_impedance", self._scope.set_input_impedance, ohms)

    def configure(
        self,
        vertical_range: float,
        offset: float,
        coupling: VerticalCoupling,
        probe_attenuation: float,
        enabled: bool,
    ) -> None:
        """Set range, offset, coupling, probe attenuation and enable together."""
        self._scope.configure_channel(
            self._index, vertical_range, offset, coupling, probe_attenuation, enabled
        )
        self._cache.update(
            vertical_range=vertical_range,
            vertical_offset=offset,
            vertical_coupling=coupling,
            probe_attenuation=probe_attenuation,
            enabled=enabled,
        )

    def fetch_waveform_measurement(self, measurement: WaveformMeasurement) -> float:
        """Return an instrument-computed measurement of this channel's waveform."""
        return self._scope.fetch_waveform_measurement(self._index, measurement)


class Oscilloscope(Instrument):
    """Oscilloscope capability group.

    Per-channel operations take the 0-based channel index. Acquisition,
    timebase and trigger settings are instrument-wide.
    """

    capability_group = CapabilityGroup.OSCILLOSCOPE
    channel_class = OscilloscopeChannel
    default_channel_names = ("CH1", "CH2", "CH3", "CH4")

    def channel(self, key: int | str) -> OscilloscopeChannel:
        return cast(OscilloscopeChannel, super().channel(key))

    # -- Per-channel operations ----------------------------------------------

    def vertical_range(self, index: int) -> float:
        self._unsupported("vertical range query")

    def set_vertical_range(self, index: int, volts: float) -> None:
        self._unsupported("vertical range setting")

    def vertical_offset(self, index: int) -> float:
        self._unsupported("vertical offset query")

    def set_vertical_offset(self, index: int, volts: float) -> None:
        self._unsupported("vertical offset setting")

    def vertical_coupling(self, index: int) -> VerticalCoupling:
        self._unsupported("vertical coupling query")

    def set_vertical_coupling(self, index: int, coupling: VerticalCoupling) -> None:
        self._unsupported("vertical coupling setting")

    def probe_attenuation(self, index: int) -> float:
        self._unsupported("probe attenuation query")

    def set_probe_attenuation(self, index: int, factor: float) -> None:
        self._unsupported("probe attenuation setting")

    def channel_enabled(self, index: int) -> bool:
        self._unsupported("channel enable query")

    def set_channel_enabled(self, index: int, enabled: bool) -> None:
        self._unsupported("channel enable")

    def input_impedance(self, index: int) -> float:
        self._unsupported("input impedance query")

    def set_input_impedance(self, index: int, ohms: float) -> None:
        self._unsupported("input impedance setting")

    def fetch_waveform_measurement(
        self, index: int, measurement: WaveformMeasurement
    ) -> float:
        self._unsupported("waveform measurements")

    def configure_channel(
        self,
        index: int,
        vertical_range: float,
        offset: float,
        coupling: VerticalCoupling,
        probe_attenuation: float,
        enabled: bool,
    ) -> None:
        """Configure one channel's vertical settings.

        Probe attenuation is applied first because instruments rescale the
        range and offset when it changes.
        """
        self.set_probe_attenuation(index, probe_attenuation)
        self.set_vertical_range(index, vertical_range)
        self.set_vertical_offset(index, offset)
        self.set_vertical_coupling(index, coupling)
        self.set_channel_enabled(index, enabled)

    # -- Acquisition and timebase --------------------------------------------

    def acquisition_type(self) -> AcquisitionType:
        self._unsupported("acquisition type query")

    def set_acquisition_type(self, acquisition: AcquisitionType) -> None:
        self._unsupported("acquisition type setting")

    def record_length(self) -> int:
        self._unsupported("record length query")

    def set_record_length(self, points: int) -> None:
        self._unsupported("record length setting")

    def sample_rate(self) -> float:
        self._unsupported("sample rate query")

    def time_per_record(self) -> float:
        self._unsupported("time per record query")

    def set_time_per_record(self, seconds: float) -> None:
        self._unsupported("time per record setting")

    def start_time(self) -> float:
        self._unsupported("start time query")

    def set_start_time(self, seconds: float) -> None:
        self._unsupported("start time setting")

    # -- Trigger -------------------------------------------------------------

    def trigger_type(self) -> TriggerType:
        self._unsupported("trigger type query")

    def set_trigger_type(self, trigger: TriggerType) -> None:
        self._unsupported("trigger type setting")

    def trigger_level(self) -> float:
        self._unsupported("trigger level query")

    def set_trigger_level(self, volts: float) -> None:
        self._unsupported("trigger level setting")

    def trigger_holdoff(self) -> float:
        self._unsupported("trigger holdoff query")

    def set_trigger_holdoff(self, seconds: float) -> None:
        self._unsupported("trigger holdoff setting")

    def trigger_source(self) -> str:
        self._unsupported("trigger source query")

    def set_trigger_source(self, source: int | str) -> None:
        self._unsupported("trigger source setting")


# -- Generic SCPI driver -----------------------------------------------------

_COUPLING_TO_SCPI = {
    VerticalCoupling.AC: "AC",
    VerticalCoupling.DC: "DC",
    VerticalCoupling.GROUND: "GND",
}
_SCPI_TO_COUPLING = {v: k for k, v in _COUPLING_TO_SCPI.items()}

_ACQUISITION_TO_SCPI = {
    AcquisitionType.NORMAL: "NORM",
    AcquisitionType.AVERAGE: "AVER",
    AcquisitionType.HIGH_RESOLUTION: "HRES",
    AcquisitionType.PEAK_DETECT: "PEAK",
}
_SCPI_TO_ACQUISITION = {v: k for k, v in _ACQUISITION_TO_SCPI.items()}

_TRIGGER_TO_SCPI = {
    TriggerType.EDGE: "EDGE",
    TriggerType.GLITCH: "GLIT",
    TriggerType.PATTERN: "PATT",
    TriggerType.TV: "TV",
}
_SCPI_TO_TRIGGER = {v: k for k, v in _TRIGGER_TO_SCPI.items()}

_MEASUREMENT_TO_SCPI = {
    WaveformMeasurement.VOLTAGE_PEAK_TO_PEAK: "VPP",
    WaveformMeasurement.VOLTAGE_MAX: "VMAX",
    WaveformMeasurement.VOLTAGE_MIN: "VMIN",
    WaveformMeasurement.VOLTAGE_AVERAGE: "VAV",
    WaveformMeasurement.VOLTAGE_RMS: "VRMS",
    WaveformMeasurement.FREQUENCY: "FREQ",
    WaveformMeasurement.PERIOD: "PER",
    WaveformMeasurement.RISE_TIME: "RIS",
    WaveformMeasurement.FALL_TIME: "FALL",
}


class ScpiOscilloscope(Oscilloscope):
    """Generic SCPI oscilloscope (InfiniiVision dialect)."""

    def _chan(self, index: int) -> str:
        return f"CHAN{self.channel(index).index + 1}"

    # -- Vertical ------------------------------------------------------------

    def vertical_range(self, index: int) -> float:
        return self._query_number(f"{self._chan(index)}:RANG?")

    def set_vertical_range(self, index: int, volts: float) -> None:
        if volts <= 0:
            raise DomainError(f"Vertical range must be positive, got {volts}")
        self._command(f"{self._chan(index)}:RANG {format_number(volts)}")

    def vertical_offset(self, index: int) -> float:
        return self._query_number(f"{self._chan(index)}:OFFS?")

    def set_vertical_offset(self, index: int, volts: float) -> None:
        self._command(f"{self._chan(index)}:OFFS {format_number(volts)}")

    def vertical_coupling(self, index: int) -> VerticalCoupling:
        return self._query_choice(f"{self._chan(index)}:COUP?", _SCPI_TO_COUPLING)

    def set_vertical_coupling(self, index: int, coupling: VerticalCoupling) -> None:
        self._command(f"{self._chan(index)}:COUP {_COUPLING_TO_SCPI[coupling]}")

    def probe_attenuation(self, index: int) -> float:
        return self._query_number(f"{self._chan(index)}:PROB?")

    def set_probe_attenuation(self, index: int, factor: float) -> None:
        if factor <= 0:
            raise DomainError(f"Probe attenuation must be positive, got {factor}")
        self._command(f"{self._chan(index)}:PROB {format_number(factor)}")

    def channel_enabled(self, index: int) -> bool:
        return self._query_bool(f"{self._chan(index)}:DISP?")

    def set_channel_enabled(self, index: int, enabled: bool) -> None:
        self._command(f"{self._chan(index)}:DISP {format_bool(enabled)}")

    def input_impedance(self, index: int) -> float:
        return self._query_choice(
            f"{self._chan(index)}:IMP?", {"ONEM": HIGH_IMPEDANCE, "FIFT": LOW_IMPEDANCE}
        )

    def set_input_impedance(self, index: int, ohms: float) -> None:
        if ohms == HIGH_IMPEDANCE:
            mnemonic = "ONEM"
        elif ohms == LOW_IMPEDANCE:
            mnemonic = "FIFT"
        else:
            raise DomainError(f"Input impedance must be 50 or 1e6 ohms, got {ohms}")
        self._command(f"{self._chan(index)}:IMP {mnemonic}")

    def fetch_waveform_measurement(
        self, index: int, measurement: WaveformMeasurement
    ) -> float:
        cmd = f"MEAS:{_MEASUREMENT_TO_SCPI[measurement]}? {self._chan(index)}"
        value = self._query_number(cmd)
        if is_overflow(value):
            raise MalformedResponseError(
                f"No valid {measurement.value} measurement", payload=str(value), command=cmd
            )
        return value

    # -- Acquisition and timebase --------------------------------------------

    def acquisition_type(self) -> AcquisitionType:
        return self._query_choice("ACQ:TYPE?", _SCPI_TO_ACQUISITION)

    def set_acquisition_type(self, acquisition: AcquisitionType) -> None:
        self._command(f"ACQ:TYPE {_ACQUISITION_TO_SCPI[acquisition]}")
        self._cache["acquisition_type"] = acquisition

    def record_length(self) -> int:
        return self._query_int("ACQ:POIN?")

    def set_record_length(self, points: int) -> None:
        if points < 1:
            raise DomainError(f"Record length must be at least 1, got {points}")
        self._command(f"ACQ:POIN {int(points)}")
        self._cache["record_length"] = int(points)

    def sample_rate(self) -> float:
        return self._query_number("ACQ:SRAT?")

    def time_per_record(self) -> float:
        return self._query_number("TIM:RANG?")

    def set_time_per_record(self, seconds: float) -> None:
        if seconds <= 0:
            raise DomainError(f"Time per record must be positive, got {seconds}")
        self._command(f"TIM:RANG {format_number(seconds)}")
        self._cache["time_per_record"] = seconds

    def start_time(self) -> float:
        return self._query_number("TIM:POS?")

    def set_start_time(self, seconds: float) -> None:
        self._command(f"TIM:POS {format_number(seconds)}")
        self._cache["start_time"] = seconds

    # -- Trigger -------------------------------------------------------------

    def trigger_type(self) -> TriggerType:
        return self._query_choice("TRIG:MODE?", _SCPI_TO_TRIGGER)

    def set_trigger_type(self, trigger: TriggerType) -> None:
        self._command(f"TRIG:MODE {_TRIGGER_TO_SCPI[trigger]}")
        self._cache["trigger_type"] = trigger

    def trigger_level(self) -> float:
        return self._query_number("TRIG:LEV?")

    def set_trigger_level(self, volts: float) -> None:
        self._command(f"TRIG:LEV {format_number(volts)}")
        self._cache["trigger_level"] = volts

    def trigger_holdoff(self) -> float:
        return self._query_number("TRIG:HOLD?")

    def set_trigger_holdoff(self, seconds: float) -> None:
        if seconds < 0:
            raise DomainError(f"Trigger holdoff cannot be negative, got {seconds}")
        self._command(f"TRIG:HOLD {format_number(seconds)}")
        self._cache["trigger_holdoff"] = seconds

    def trigger_source(self) -> str:
        """Return the trigger source as a channel name or ``"EXT"``."""
        response = self._session.query("TRIG:SOUR?").upper()
        if response.startswith("CHAN"):
            try:
                return self.channel(int(response[4:]) - 1).name
            except ValueError:
                pass
        elif response.startswith("EXT"):
            return "EXT"
        raise MalformedResponseError(
            "Unknown trigger source", payload=response, command="TRIG:SOUR?"
        )

    def set_trigger_source(self, source: int | str) -> None:
        """Trigger on a channel (index, name or alias) or on ``"EXT"``."""
        if isinstance(source, str) and source.upper() == "EXT":
            self._command("TRIG:SOUR EXT")
            self._cache["trigger_source"] = "EXT"
            return
        channel = self.channel(source)
        self._command(f"TRIG:SOUR CHAN{channel.index + 1}")
        self._cache["trigger_source"] = channel.name


def create_instrument(
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    **kwargs: Any,
) -> ScpiOscilloscope:
    """Open a generic SCPI oscilloscope.

    Factory function for bench configuration.

    Example YAML config:
        scope:
          driver: "benchlink_drivers.scope:create_instrument"
          resource: "USB0::0x0957::0x1796::MY12345678::INSTR"
          aliases: {"stimulus": "CH1", "response": "CH2"}
    """
    return create_driver(
        ScpiOscilloscope,
        resource,
        gpib_controllers=gpib_controllers,
        timeout=timeout,
        reset=reset,
        clear=clear,
        aliases=aliases,
        **kwargs,
    )
