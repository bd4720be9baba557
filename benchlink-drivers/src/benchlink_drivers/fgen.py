"""Function generator capability group and generic SCPI driver.

The generic driver speaks the Agilent/Keysight 33200/33500 dialect: bare
``FUNC``/``FREQ``/``VOLT`` commands on single-output instruments and
``SOURn:``/``OUTPn`` prefixed commands on multi-output ones.

Example:
    >>> fgen = create_instrument("TCPIP0::192.168.1.20::5025::SOCKET", reset=True)
    >>> out = fgen.channel(0)
    >>> out.configure_standard_waveform(StandardWaveform.SINE, 0.4, 0.1, 2340.0, 0.0)
    >>> out.set_burst_count(131)
    >>> fgen.set_internal_trigger_rate(2.0)
    >>> out.set_operation_mode(OperationMode.BURST)
    >>> out.set_output_enabled(True)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from benchlink_core.errors import DomainError, MalformedResponseError
from benchlink_core.types.common import CapabilityGroup
from benchlink_core.types.fgen import OperationMode, StandardWaveform, TriggerSource
from benchlink_scpi.number import format_bool, format_number

from benchlink_drivers.channel import Channel
from benchlink_drivers.instrument import Instrument, create_driver

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController

logger = logging.getLogger(__name__)


class FunctionGeneratorChannel(Channel):
    """One output of a function generator."""

    @property
    def _fgen(self) -> FunctionGenerator:
        return cast(FunctionGenerator, self._instrument)

    def standard_waveform(self) -> StandardWaveform:
        """Query the output waveform."""
        return self._get("standard_waveform", self._fgen.standard_waveform)

    def set_standard_waveform(self, waveform: StandardWaveform) -> None:
        """Select the output waveform."""
        self._set("standard_waveform", self._fgen.set_standard_waveform, waveform)

    def frequency(self) -> float:
        """Query the output frequency in hertz."""
        return self._get("frequency", self._fgen.frequency)

    def set_frequency(self, hertz: float) -> None:
        """Set the output frequency in hertz."""
        self._set("frequency", self._fgen.set_frequency, hertz)

    def amplitude(self) -> float:
        """Query the peak-to-peak amplitude in volts."""
        return self._get("amplitude", self._fgen.amplitude)

    def set_amplitude(self, volts: float) -> None:
        """Set the peak-to-peak amplitude in volts."""
        self._set("amplitude", self._fgen.set_amplitude, volts)

    def dc_offset(self) -> float:
        """Query the DC offset in volts."""
        return self._get("dc_offset", self._fgen.dc_offset)

    def set_dc_offset(self, volts: float) -> None:
        """Set the DC offset in volts."""
        self._set("dc_offset", self._fgen.set_dc_offset, volts)

    def start_phase(self) -> float:
        """Query the start phase in degrees."""
        return self._get("start_phase", self._fgen.start_phase)

    def set_start_phase(self, degrees: float) -> None:
        """Set the start phase in degrees."""
        self._set("start_phase", self._fgen.set_start_phase, degrees)

    def output_enabled(self) -> bool:
        """Query whether the output is on."""
        return self._get("output_enabled", self._fgen.output_enabled)

    def set_output_enabled(self, enabled: bool) -> None:
        """Switch the output on or off."""
        self._set("output_enabled", self._fgen.set_output_enabled, enabled)

    def burst_count(self) -> int:
        """Query the number of cycles per burst."""
        return self._get("burst_count", self._fgen.burst_count)

    def set_burst_count(self, cycles: int) -> None:
        """Set the number of cycles per burst."""
        self._set("burst_count", self._fgen.set_burst_count, cycles)

    def trigger_source(self) -> TriggerSource:
        """Query the trigger source."""
        return self._get("trigger_source", self._fgen.trigger_source)

    def set_trigger_source(self, source: TriggerSource) -> None:
        """Select the trigger source."""
        self._set("trigger_source", self._fgen.set_trigger_source, source)

    def operation_mode(self) -> OperationMode:
        """Query continuous, burst or sweep operation."""
        return self._get("operation_mode", self._fgen.operation_mode)

    def set_operation_mode(self, mode: OperationMode) -> None:
        """Select continuous, burst or sweep operation."""
        self._set("operation_mode", self._fgen.set_operation_mode, mode)

    def configure_standard_waveform(
        self,
        waveform: StandardWaveform,
        amplitude: float,
        dc_offset: float,
        frequency: float,
        start_phase: float = 0.0,
    ) -> None:
        """Set waveform, amplitude, offset, frequency and start phase in one call."""
        self._fgen.configure_standard_waveform(
            self._index, waveform, amplitude, dc_offset, frequency, start_phase
        )
        self._cache.update(
            standard_waveform=waveform,
            amplitude=amplitude,
            dc_offset=dc_offset,
            frequency=frequency,
            start_phase=start_phase,
        )


class FunctionGenerator(Instrument):
    """Function generator capability group.

    Per-output operations take the 0-based channel index; most callers use
    them through :class:`FunctionGeneratorChannel`. Every operation raises
    :class:`FunctionNotSupportedError` unless a driver implements it.
    """

    capability_group = CapabilityGroup.FUNCTION_GENERATOR
    channel_class = FunctionGeneratorChannel
    default_channel_names = ("CH1",)

    def channel(self, key: int | str) -> FunctionGeneratorChannel:
        return cast(FunctionGeneratorChannel, super().channel(key))

    # -- Per-output operations -----------------------------------------------

    def standard_waveform(self, index: int) -> StandardWaveform:
        self._unsupported("standard waveform query")

    def set_standard_waveform(self, index: int, waveform: StandardWaveform) -> None:
        self._unsupported("standard waveform selection")

    def frequency(self, index: int) -> float:
        self._unsupported("frequency query")

    def set_frequency(self, index: int, hertz: float) -> None:
        self._unsupported("frequency setting")

    def amplitude(self, index: int) -> float:
        self._unsupported("amplitude query")

    def set_amplitude(self, index: int, volts: float) -> None:
        self._unsupported("amplitude setting")

    def dc_offset(self, index: int) -> float:
        self._unsupported("DC offset query")

    def set_dc_offset(self, index: int, volts: float) -> None:
        self._unsupported("DC offset setting")

    def start_phase(self, index: int) -> float:
        self._unsupported("start phase query")

    def set_start_phase(self, index: int, degrees: float) -> None:
        self._unsupported("start phase setting")

    def output_enabled(self, index: int) -> bool:
        self._unsupported("output state query")

    def set_output_enabled(self, index: int, enabled: bool) -> None:
        self._unsupported("output enable")

    def burst_count(self, index: int) -> int:
        self._unsupported("burst count query")

    def set_burst_count(self, index: int, cycles: int) -> None:
        self._unsupported("burst count setting")

    def trigger_source(self, index: int) -> TriggerSource:
        self._unsupported("trigger source query")

    def set_trigger_source(self, index: int, source: TriggerSource) -> None:
        self._unsupported("trigger source selection")

    def operation_mode(self, index: int) -> OperationMode:
        self._unsupported("operation mode query")

    def set_operation_mode(self, index: int, mode: OperationMode) -> None:
        self._unsupported("operation mode selection")

    def configure_standard_waveform(
        self,
        index: int,
        waveform: StandardWaveform,
        amplitude: float,
        dc_offset: float,
        frequency: float,
        start_phase: float = 0.0,
    ) -> None:
        """Set the five standard-waveform parameters of one output.

        The default implementation issues the individual settings in order.
        """
        self.set_standard_waveform(index, waveform)
        self.set_amplitude(index, amplitude)
        self.set_dc_offset(index, dc_offset)
        self.set_frequency(index, frequency)
        self.set_start_phase(index, start_phase)

    # -- Instrument-wide operations ------------------------------------------

    def internal_trigger_rate(self) -> float:
        """Query the internal trigger rate in hertz."""
        self._unsupported("internal trigger rate query")

    def set_internal_trigger_rate(self, hertz: float) -> None:
        """Set the internal trigger rate in hertz."""
        self._unsupported("internal trigger rate setting")

    def internal_trigger_period(self) -> float:
        """Query the internal trigger period in seconds (reciprocal of the rate)."""
        return 1.0 / self.internal_trigger_rate()

    def set_internal_trigger_period(self, seconds: float) -> None:
        """Set the internal trigger period in seconds.

        Raises:
            DomainError: If ``seconds`` is not positive.
        """
        if seconds <= 0:
            raise DomainError(f"Trigger period must be positive, got {seconds}")
        self.set_internal_trigger_rate(1.0 / seconds)


# -- Generic SCPI driver -----------------------------------------------------

_WAVEFORM_TO_SCPI: dict[StandardWaveform, str] = {
    StandardWaveform.SINE: "SIN",
    StandardWaveform.SQUARE: "SQU",
    StandardWaveform.TRIANGLE: "TRI",
    StandardWaveform.RAMP_UP: "RAMP",
    StandardWaveform.RAMP_DOWN: "NRAM",
    StandardWaveform.PULSE: "PULS",
    StandardWaveform.NOISE: "NOIS",
    StandardWaveform.DC: "DC",
}
_SCPI_TO_WAVEFORM = {v: k for k, v in _WAVEFORM_TO_SCPI.items()}

_TRIGGER_TO_SCPI: dict[TriggerSource, str] = {
    TriggerSource.INTERNAL: "IMM",
    TriggerSource.EXTERNAL: "EXT",
    TriggerSource.SOFTWARE: "BUS",
}
_SCPI_TO_TRIGGER = {v: k for k, v in _TRIGGER_TO_SCPI.items()}


class ScpiFunctionGenerator(FunctionGenerator):
    """Generic SCPI function generator (Keysight 33200/33500 dialect).

    Args:
        session: Open session to the instrument.
        channel_names: Output names; more than one selects ``SOURn:`` prefixes.
        **kwargs: Passed to :class:`Instrument`.
    """

    def _source(self, index: int) -> str:
        return "" if self.channel_count() == 1 else f"SOUR{index + 1}:"

    def _output(self, index: int) -> str:
        return "OUTP" if self.channel_count() == 1 else f"OUTP{index + 1}"

    def _trigger(self, index: int) -> str:
        return "TRIG:" if self.channel_count() == 1 else f"TRIG{index + 1}:"

    def _check_index(self, index: int) -> int:
        return self.channel(index).index

    # -- Waveform ------------------------------------------------------------

    def standard_waveform(self, index: int) -> StandardWaveform:
        return self._query_choice(
            f"{self._source(self._check_index(index))}FUNC?", _SCPI_TO_WAVEFORM
        )

    def set_standard_waveform(self, index: int, waveform: StandardWaveform) -> None:
        self._command(
            f"{self._source(self._check_index(index))}FUNC {_WAVEFORM_TO_SCPI[waveform]}"
        )

    def frequency(self, index: int) -> float:
        return self._query_number(f"{self._source(self._check_index(index))}FREQ?")

    def set_frequency(self, index: int, hertz: float) -> None:
        if hertz <= 0:
            raise DomainError(f"Frequency must be positive, got {hertz}")
        self._command(
            f"{self._source(self._check_index(index))}FREQ {format_number(hertz)}"
        )

    def amplitude(self, index: int) -> float:
        return self._query_number(f"{self._source(self._check_index(index))}VOLT?")

    def set_amplitude(self, index: int, volts: float) -> None:
        if volts <= 0:
            raise DomainError(f"Amplitude must be positive, got {volts}")
        self._command(
            f"{self._source(self._check_index(index))}VOLT {format_number(volts)}"
        )

    def dc_offset(self, index: int) -> float:
        return self._query_number(f"{self._source(self._check_index(index))}VOLT:OFFS?")

    def set_dc_offset(self, index: int, volts: float) -> None:
        self._command(
            f"{self._source(self._check_index(index))}VOLT:OFFS {format_number(volts)}"
        )

    def start_phase(self, index: int) -> float:
        return self._query_number(f"{self._source(self._check_index(index))}PHAS?")

    def set_start_phase(self, index: int, degrees: float) -> None:
        if not -360.0 <= degrees <= 360.0:
            raise DomainError(f"Start phase must be within +/-360 degrees, got {degrees}")
        self._command(
            f"{self._source(self._check_index(index))}PHAS {format_number(degrees)}"
        )

    # -- Output --------------------------------------------------------------

    def output_enabled(self, index: int) -> bool:
        return self._query_bool(f"{self._output(self._check_index(index))}?")

    def set_output_enabled(self, index: int, enabled: bool) -> None:
        self._command(f"{self._output(self._check_index(index))} {format_bool(enabled)}")

    # -- Burst and trigger ---------------------------------------------------

    def burst_count(self, index: int) -> int:
        return self._query_int(f"{self._source(self._check_index(index))}BURS:NCYC?")

    def set_burst_count(self, index: int, cycles: int) -> None:
        if cycles < 1:
            raise DomainError(f"Burst count must be at least 1, got {cycles}")
        self._command(f"{self._source(self._check_index(index))}BURS:NCYC {int(cycles)}")

    def trigger_source(self, index: int) -> TriggerSource:
        return self._query_choice(
            f"{self._trigger(self._check_index(index))}SOUR?", _SCPI_TO_TRIGGER
        )

    def set_trigger_source(self, index: int, source: TriggerSource) -> None:
        self._command(
            f"{self._trigger(self._check_index(index))}SOUR {_TRIGGER_TO_SCPI[source]}"
        )

    def operation_mode(self, index: int) -> OperationMode:
        source = self._source(self._check_index(index))
        if self._query_bool(f"{source}BURS:STAT?"):
            return OperationMode.BURST
        if self._query_bool(f"{source}SWE:STAT?"):
            return OperationMode.SWEEP
        return OperationMode.CONTINUOUS

    def set_operation_mode(self, index: int, mode: OperationMode) -> None:
        source = self._source(self._check_index(index))
        with self._lock:
            if mode is OperationMode.BURST:
                self._command(f"{source}SWE:STAT OFF")
                self._command(f"{source}BURS:STAT ON")
            elif mode is OperationMode.SWEEP:
                self._command(f"{source}BURS:STAT OFF")
                self._command(f"{source}SWE:STAT ON")
            else:
                self._command(f"{source}BURS:STAT OFF")
                self._command(f"{source}SWE:STAT OFF")

    # -- Instrument-wide -----------------------------------------------------

    def internal_trigger_rate(self) -> float:
        period = self._query_number(f"{self._source(0)}BURS:INT:PER?")
        if period <= 0:
            raise MalformedResponseError(
                "Non-positive burst period", payload=str(period), command="BURS:INT:PER?"
            )
        rate = 1.0 / period
        self._cache["internal_trigger_rate"] = rate
        return rate

    def set_internal_trigger_rate(self, hertz: float) -> None:
        if hertz <= 0:
            raise DomainError(f"Trigger rate must be positive, got {hertz}")
        self._command(f"{self._source(0)}BURS:INT:PER {format_number(1.0 / hertz)}")
        self._cache["internal_trigger_rate"] = hertz
        logger.debug("Internal trigger rate = %g Hz", hertz)


def create_instrument(
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    **kwargs: Any,
) -> ScpiFunctionGenerator:
    """Open a generic SCPI function generator.

    Factory function for bench configuration.

    Example YAML config:
        fgen:
          driver: "benchlink_drivers.fgen:create_instrument"
          resource: "TCPIP0::192.168.1.20::5025::SOCKET"
          reset: true
          aliases: {"drive": 0}
    """
    return create_driver(
        ScpiFunctionGenerator,
        resource,
        gpib_controllers=gpib_controllers,
        timeout=timeout,
        reset=reset,
        clear=clear,
        aliases=aliases,
        **kwargs,
    )
