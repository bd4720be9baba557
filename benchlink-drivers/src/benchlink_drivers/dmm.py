"""Digital multimeter capability group and generic SCPI driver.

A DMM has no channels; every operation is instrument-wide. The generic
driver uses the Keysight 34401A/34461A command set.

Example:
    >>> dmm = create_instrument("GPIB0::22::INSTR", gpib_controllers={0: ctrl})
    >>> dmm.set_measurement_function(MeasurementFunction.DC_VOLTS)
    >>> dmm.set_range(AutoRange.OFF, 10.0)
    >>> dmm.read_measurement(timeout=2.0)
    4.99871
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from benchlink_core.errors import DomainError, MalformedResponseError
from benchlink_core.types.common import CapabilityGroup
from benchlink_core.types.dmm import AutoRange, MeasurementFunction, Terminals
from benchlink_scpi.number import format_number, is_overflow, parse_number

from benchlink_drivers.instrument import Instrument, create_driver

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController

logger = logging.getLogger(__name__)


class DMM(Instrument):
    """Digital multimeter capability group."""

    capability_group = CapabilityGroup.DMM

    def measurement_function(self) -> MeasurementFunction:
        """Query the active measurement function."""
        self._unsupported("measurement function query")

    def set_measurement_function(self, function: MeasurementFunction) -> None:
        """Select the measurement function."""
        self._unsupported("measurement function selection")

    def range(self) -> tuple[AutoRange, float]:
        """Query the auto-range mode and the current range bound."""
        self._unsupported("range query")

    def set_range(self, auto: AutoRange, value: float | None = None) -> None:
        """Set auto-ranging, or a manual range bound when ``auto`` is OFF."""
        self._unsupported("range setting")

    def read_measurement(self, timeout: float | None = None) -> float:
        """Trigger and return one reading in the units of the active function."""
        self._unsupported("measurement")

    def terminals(self) -> Terminals:
        """Query which input terminals are selected."""
        self._unsupported("terminal query")


# -- Generic SCPI driver -----------------------------------------------------

# function -> (FUNC parameter, range subsystem)
_FUNCTIONS: dict[MeasurementFunction, tuple[str, str]] = {
    MeasurementFunction.DC_VOLTS: ("VOLT:DC", "VOLT:DC"),
    MeasurementFunction.AC_VOLTS: ("VOLT:AC", "VOLT:AC"),
    MeasurementFunction.DC_CURRENT: ("CURR:DC", "CURR:DC"),
    MeasurementFunction.AC_CURRENT: ("CURR:AC", "CURR:AC"),
    MeasurementFunction.TWO_WIRE_RESISTANCE: ("RES", "RES"),
    MeasurementFunction.FOUR_WIRE_RESISTANCE: ("FRES", "FRES"),
    MeasurementFunction.FREQUENCY: ("FREQ", "FREQ:VOLT"),
    MeasurementFunction.PERIOD: ("PER", "PER:VOLT"),
}

# Responses to FUNC? (quotes removed); DC is implied when omitted.
_SCPI_TO_FUNCTION: dict[str, MeasurementFunction] = {
    "VOLT": MeasurementFunction.DC_VOLTS,
    "VOLT:DC": MeasurementFunction.DC_VOLTS,
    "VOLT:AC": MeasurementFunction.AC_VOLTS,
    "CURR": MeasurementFunction.DC_CURRENT,
    "CURR:DC": MeasurementFunction.DC_CURRENT,
    "CURR:AC": MeasurementFunction.AC_CURRENT,
    "RES": MeasurementFunction.TWO_WIRE_RESISTANCE,
    "FRES": MeasurementFunction.FOUR_WIRE_RESISTANCE,
    "FREQ": MeasurementFunction.FREQUENCY,
    "PER": MeasurementFunction.PERIOD,
}

_SCPI_TO_TERMINALS = {"FRON": Terminals.FRONT, "REAR": Terminals.REAR}


class ScpiDMM(DMM):
    """Generic SCPI digital multimeter."""

    def _function(self) -> MeasurementFunction:
        function = self._cache.get("measurement_function")
        if function is None:
            function = self.measurement_function()
        return function

    def measurement_function(self) -> MeasurementFunction:
        cmd = "FUNC?"
        response = self._session.query(cmd).strip('"').upper()
        function = _SCPI_TO_FUNCTION.get(response)
        if function is None:
            raise MalformedResponseError(
                "Unknown measurement function", payload=response, command=cmd
            )
        self._cache["measurement_function"] = function
        return function

    def set_measurement_function(self, function: MeasurementFunction) -> None:
        self._command(f'FUNC "{_FUNCTIONS[function][0]}"')
        self._cache["measurement_function"] = function
        self._cache.pop("range", None)

    def range(self) -> tuple[AutoRange, float]:
        subsystem = _FUNCTIONS[self._function()][1]
        with self._lock:
            auto = AutoRange.ON if self._query_bool(f"{subsystem}:RANG:AUTO?") else AutoRange.OFF
            value = self._query_number(f"{subsystem}:RANG?")
        self._cache["range"] = (auto, value)
        return auto, value

    def set_range(self, auto: AutoRange, value: float | None = None) -> None:
        subsystem = _FUNCTIONS[self._function()][1]
        if auto is AutoRange.OFF:
            if value is None or value <= 0:
                raise DomainError(f"Manual range needs a positive bound, got {value}")
            self._command(f"{subsystem}:RANG {format_number(value)}")
        elif auto is AutoRange.ONCE:
            self._command(f"{subsystem}:RANG:AUTO ONCE")
        else:
            self._command(f"{subsystem}:RANG:AUTO ON")
        self._cache.pop("range", None)

    def read_measurement(self, timeout: float | None = None) -> float:
        response = self._session.query("READ?", timeout=timeout)
        try:
            value = parse_number(response)
        except ValueError:
            raise MalformedResponseError(
                "Expected a number", payload=response, command="READ?"
            ) from None
        if is_overflow(value):
            logger.warning("DMM reading overloaded (%s)", response)
            return math.inf
        return value

    def terminals(self) -> Terminals:
        return self._query_choice("ROUT:TERM?", _SCPI_TO_TERMINALS)


def create_instrument(
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    **kwargs: Any,
) -> ScpiDMM:
    """Open a generic SCPI digital multimeter.

    Factory function for bench configuration.

    Example YAML config:
        dmm:
          driver: "benchlink_drivers.dmm:create_instrument"
          resource: "GPIB0::22::INSTR"
          identity: {manufacturer: "HEWLETT-PACKARD", model: "34401A"}
    """
    return create_driver(
        ScpiDMM,
        resource,
        gpib_controllers=gpib_controllers,
        timeout=timeout,
        reset=reset,
        clear=clear,
        aliases=aliases,
        **kwargs,
    )
