"""DC power supply capability group and generic SCPI driver.

Multi-output supplies (E3631A style) select the output with
``INST:NSEL n`` before every per-output command; the selection and the
command it applies to are issued under the driver lock so that two
threads cannot interleave them.

Example:
    >>> psu = create_instrument("GPIB0::5::INSTR", gpib_controllers={0: ctrl},
    ...                         channel_names=["P6V", "P25V", "N25V"])
    >>> p6 = psu.channel("P6V")
    >>> p6.set_voltage_level(5.0)
    >>> p6.configure_current_limit(CurrentLimitBehavior.TRIP, 0.5)
    >>> p6.set_output_enabled(True)
    >>> p6.measure_current()
    0.1234
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from benchlink_core.errors import DomainError
from benchlink_core.types.common import CapabilityGroup
from benchlink_core.types.dcpwr import CurrentLimitBehavior
from benchlink_scpi.number import format_bool, format_number

from benchlink_drivers.channel import Channel
from benchlink_drivers.instrument import Instrument, create_driver

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController

logger = logging.getLogger(__name__)


class DCPowerChannel(Channel):
    """One output of a DC power supply."""

    @property
    def _psu(self) -> DCPower:
        return cast(DCPower, self._instrument)

    def voltage_level(self) -> float:
        """Query the programmed output voltage."""
        return self._get("voltage_level", self._psu.voltage_level)

    def set_voltage_level(self, volts: float) -> None:
        """Program the output voltage."""
        self._set("voltage_level", self._psu.set_voltage_level, volts)

    def current_limit(self) -> float:
        """Query the current limit in amperes."""
        return self._get("current_limit", self._psu.current_limit)

    def set_current_limit(self, amps: float) -> None:
        """Set the current limit in amperes."""
        self._set("current_limit", self._psu.set_current_limit, amps)

    def current_limit_behavior(self) -> CurrentLimitBehavior:
        """Query whether the output trips or clamps at the current limit."""
        return self._get("current_limit_behavior", self._psu.current_limit_behavior)

    def set_current_limit_behavior(self, behavior: CurrentLimitBehavior) -> None:
        """Select trip or clamp behavior at the current limit."""
        self._set("current_limit_behavior", self._psu.set_current_limit_behavior, behavior)

    def ovp_enabled(self) -> bool:
        """Query whether over-voltage protection is armed."""
        return self._get("ovp_enabled", self._psu.ovp_enabled)

    def set_ovp_enabled(self, enabled: bool) -> None:
        """Arm or disarm over-voltage protection."""
        self._set("ovp_enabled", self._psu.set_ovp_enabled, enabled)

    def ovp_limit(self) -> float:
        """Query the over-voltage protection limit in volts."""
        return self._get("ovp_limit", self._psu.ovp_limit)

    def set_ovp_limit(self, volts: float) -> None:
        """Set the over-voltage protection limit in volts."""
        self._set("ovp_limit", self._psu.set_ovp_limit, volts)

    def output_enabled(self) -> bool:
        """Query whether the output is on."""
        return self._get("output_enabled", self._psu.output_enabled)

    def set_output_enabled(self, enabled: bool) -> None:
        """Switch the output on or off."""
        self._set("output_enabled", self._psu.set_output_enabled, enabled)

    def measure_voltage(self) -> float:
        """Measure the output voltage. Not cached."""
        return self._psu.measure_voltage(self._index)

    def measure_current(self) -> float:
        """Measure the output current. Not cached."""
        return self._psu.measure_current(self._index)

    def configure_current_limit(self, behavior: CurrentLimitBehavior, limit: float) -> None:
        """Set limit behavior and current limit together."""
        self._psu.configure_current_limit(self._index, behavior, limit)
        self._cache.update(current_limit_behavior=behavior, current_limit=limit)

    def configure_ovp(self, enabled: bool, limit: float) -> None:
        """Set over-voltage protection state and limit together."""
        self._psu.configure_ovp(self._index, enabled, limit)
        self._cache.update(ovp_enabled=enabled, ovp_limit=limit)


class DCPower(Instrument):
    """DC power supply capability group.

    Operations take the 0-based output index; most callers use them through
    :class:`DCPowerChannel`.
    """

    capability_group = CapabilityGroup.DC_POWER
    channel_class = DCPowerChannel
    default_channel_names = ("CH1",)

    def channel(self, key: int | str) -> DCPowerChannel:
        return cast(DCPowerChannel, super().channel(key))

    def voltage_level(self, index: int) -> float:
        self._unsupported("voltage level query")

    def set_voltage_level(self, index: int, volts: float) -> None:
        self._unsupported("voltage level setting")

    def current_limit(self, index: int) -> float:
        self._unsupported("current limit query")

    def set_current_limit(self, index: int, amps: float) -> None:
        self._unsupported("current limit setting")

    def current_limit_behavior(self, index: int) -> CurrentLimitBehavior:
        self._unsupported("current limit behavior query")

    def set_current_limit_behavior(self, index: int, behavior: CurrentLimitBehavior) -> None:
        self._unsupported("current limit behavior setting")

    def ovp_enabled(self, index: int) -> bool:
        self._unsupported("OVP state query")

    def set_ovp_enabled(self, index: int, enabled: bool) -> None:
        self._unsupported("OVP enable")

    def ovp_limit(self, index: int) -> float:
        self._unsupported("OVP limit query")

    def set_ovp_limit(self, index: int, volts: float) -> None:
        self._unsupported("OVP limit setting")

    def output_enabled(self, index: int) -> bool:
        self._unsupported("output state query")

    def set_output_enabled(self, index: int, enabled: bool) -> None:
        self._unsupported("output enable")

    def measure_voltage(self, index: int) -> float:
        self._unsupported("voltage measurement")

    def measure_current(self, index: int) -> float:
        self._unsupported("current measurement")

    def configure_current_limit(
        self, index: int, behavior: CurrentLimitBehavior, limit: float
    ) -> None:
        """Set limit behavior, then the limit itself."""
        self.set_current_limit_behavior(index, behavior)
        self.set_current_limit(index, limit)

    def configure_ovp(self, index: int, enabled: bool, limit: float) -> None:
        """Set the OVP limit, then arm or disarm it.

        The limit is written first so protection is never armed at a stale
        level.
        """
        self.set_ovp_limit(index, limit)
        self.set_ovp_enabled(index, enabled)


# -- Generic SCPI driver -----------------------------------------------------


class ScpiDCPower(DCPower):
    """Generic SCPI DC power supply.

    Single-output supplies get bare ``VOLT``/``CURR``/``OUTP`` commands.
    With more than one channel name, each command is preceded by
    ``INST:NSEL <n>`` (1-based). ``OUTP`` is instrument-wide on E3631A
    style supplies, so output enable is still sent after a selection.
    """

    def _write(self, index: int, cmd: str) -> None:
        index = self.channel(index).index
        with self._lock:
            self._select(index)
            self._command(cmd)

    def _read(self, index: int, cmd: str, kind: type = float) -> Any:
        index = self.channel(index).index
        with self._lock:
            self._select(index)
            if kind is bool:
                return self._query_bool(cmd)
            return self._query_number(cmd)

    def _select(self, index: int) -> None:
        if self.channel_count() > 1:
            self._command(f"INST:NSEL {index + 1}")

    # -- Level and limits ----------------------------------------------------

    def voltage_level(self, index: int) -> float:
        return self._read(index, "VOLT?")

    def set_voltage_level(self, index: int, volts: float) -> None:
        self._write(index, f"VOLT {format_number(volts)}")

    def current_limit(self, index: int) -> float:
        return self._read(index, "CURR?")

    def set_current_limit(self, index: int, amps: float) -> None:
        if amps <= 0:
            raise DomainError(f"Current limit must be positive, got {amps}")
        self._write(index, f"CURR {format_number(amps)}")

    def current_limit_behavior(self, index: int) -> CurrentLimitBehavior:
        tripping = self._read(index, "CURR:PROT:STAT?", bool)
        return CurrentLimitBehavior.TRIP if tripping else CurrentLimitBehavior.CLAMP

    def set_current_limit_behavior(self, index: int, behavior: CurrentLimitBehavior) -> None:
        tripping = behavior is CurrentLimitBehavior.TRIP
        self._write(index, f"CURR:PROT:STAT {format_bool(tripping)}")

    # -- Over-voltage protection ---------------------------------------------

    def ovp_enabled(self, index: int) -> bool:
        return self._read(index, "VOLT:PROT:STAT?", bool)

    def set_ovp_enabled(self, index: int, enabled: bool) -> None:
        self._write(index, f"VOLT:PROT:STAT {format_bool(enabled)}")

    def ovp_limit(self, index: int) -> float:
        return self._read(index, "VOLT:PROT?")

    def set_ovp_limit(self, index: int, volts: float) -> None:
        if volts <= 0:
            raise DomainError(f"OVP limit must be positive, got {volts}")
        self._write(index, f"VOLT:PROT {format_number(volts)}")

    # -- Output and readback -------------------------------------------------

    def output_enabled(self, index: int) -> bool:
        return self._read(index, "OUTP?", bool)

    def set_output_enabled(self, index: int, enabled: bool) -> None:
        self._write(index, f"OUTP {format_bool(enabled)}")
        logger.info("%s output %s", self.channel(index).name, "on" if enabled else "off")

    def measure_voltage(self, index: int) -> float:
        return self._read(index, "MEAS:VOLT?")

    def measure_current(self, index: int) -> float:
        return self._read(index, "MEAS:CURR?")


def create_instrument(
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    **kwargs: Any,
) -> ScpiDCPower:
    """Open a generic SCPI DC power supply.

    Factory function for bench configuration.

    Example YAML config:
        psu:
          driver: "benchlink_drivers.dcpwr:create_instrument"
          resource: "GPIB0::5::INSTR"
          kwargs:
            channel_names: ["P6V", "P25V", "N25V"]
    """
    return create_driver(
        ScpiDCPower,
        resource,
        gpib_controllers=gpib_controllers,
        timeout=timeout,
        reset=reset,
        clear=clear,
        aliases=aliases,
        **kwargs,
    )
