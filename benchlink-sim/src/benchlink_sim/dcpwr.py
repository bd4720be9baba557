"""DC power supply emulator.

Supports single-output supplies and multi-output supplies that select the
output with ``INST:NSEL``.
"""

from __future__ import annotations

from dataclasses import dataclass

from benchlink_sim.emulator import ScpiEmulator, format_float, parse_scpi_bool

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutputRating:
    """Limits of one supply output.

    Args:
        max_voltage: Largest programmable voltage magnitude in volts (> 0).
        max_current: Largest programmable current in amps (> 0).
    """

    max_voltage: float
    max_current: float

    def __post_init__(self) -> None:
        if self.max_voltage <= 0:
            raise ValueError("max_voltage must be > 0")
        if self.max_current <= 0:
            raise ValueError("max_current must be > 0")


@dataclass
class _OutputState:
    voltage: float = 0.0
    current_limit: float = 0.0
    trip: bool = False
    ovp_enabled: bool = False
    ovp_level: float = 0.0
    output: bool = False
    load_ohms: float | None = None
    measured_current: float | None = None


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class DCPowerEmulator(ScpiEmulator):
    """In-process DC power supply.

    Args:
        identity: ``*IDN?`` response string.
        ratings: One rating per output.
    """

    def __init__(self, identity: str, ratings: tuple[OutputRating, ...]) -> None:
        super().__init__(identity)
        if not ratings:
            raise ValueError("at least one output rating is required")
        self._ratings = ratings
        self._outputs = [self._fresh(r) for r in ratings]
        self._selected = 1

        self.register("INST:NSEL", self._select)
        self.register("INST:NSEL?", lambda _a, _i: str(self._selected))
        self.register("VOLT", self._set_voltage)
        self.register("VOLT?", lambda _a, _i: format_float(self._out.voltage))
        self.register("CURR", self._set_current)
        self.register("CURR?", lambda _a, _i: format_float(self._out.current_limit))
        self.register("CURR:PROT:STAT", self._set_trip)
        self.register("CURR:PROT:STAT?", lambda _a, _i: "1" if self._out.trip else "0")
        self.register("VOLT:PROT", self._set_ovp_level)
        self.register("VOLT:PROT?", lambda _a, _i: format_float(self._out.ovp_level))
        self.register("VOLT:PROT:STAT", self._set_ovp_enabled)
        self.register("VOLT:PROT:STAT?", lambda _a, _i: "1" if self._out.ovp_enabled else "0")
        self.register("OUTP", self._set_output)
        self.register("OUTP?", lambda _a, _i: "1" if self._out.output else "0")
        self.register("MEAS:VOLT?", lambda _a, _i: format_float(self._measured_voltage()))
        self.register("MEAS:CURR?", lambda _a, _i: format_float(self._measured_current()))

    # -- Test helpers -------------------------------------------------------

    def output(self, number: int = 1) -> _OutputState:
        """Return the live state of output ``number`` (1-based)."""
        if not 1 <= number <= len(self._outputs):
            raise ValueError(f"Output {number} out of range (1-{len(self._outputs)})")
        return self._outputs[number - 1]

    def set_load(self, ohms: float | None, output: int = 1) -> None:
        """Attach a resistive load used to compute ``MEAS:CURR?``."""
        self.output(output).load_ohms = ohms

    def set_measured_current(self, amps: float | None, output: int = 1) -> None:
        """Force the ``MEAS:CURR?`` reading of one output."""
        self.output(output).measured_current = amps

    def reset(self) -> None:
        self._outputs = [self._fresh(r) for r in self._ratings]
        self._selected = 1

    # -- Private helpers ----------------------------------------------------

    @staticmethod
    def _fresh(rating: OutputRating) -> _OutputState:
        return _OutputState(current_limit=rating.max_current, ovp_level=rating.max_voltage * 1.1)

    @property
    def _out(self) -> _OutputState:
        return self._outputs[self._selected - 1]

    @property
    def _rating(self) -> OutputRating:
        return self._ratings[self._selected - 1]

    def _measured_voltage(self) -> float:
        return self._out.voltage if self._out.output else 0.0

    def _measured_current(self) -> float:
        out = self._out
        if not out.output:
            return 0.0
        if out.measured_current is not None:
            return out.measured_current
        if out.load_ohms:
            return min(abs(out.voltage) / out.load_ohms, out.current_limit)
        return 0.0

    # -- Set handlers -------------------------------------------------------

    def _select(self, args: str, _index: int | None) -> None:
        number = int(args)
        if not 1 <= number <= len(self._outputs):
            raise ValueError(f"Output {number} out of range")
        self._selected = number

    def _set_voltage(self, args: str, _index: int | None) -> None:
        value = float(args)
        if abs(value) > self._rating.max_voltage:
            raise ValueError(f"Voltage out of range: {value}")
        self._out.voltage = value

    def _set_current(self, args: str, _index: int | None) -> None:
        value = float(args)
        if not 0 < value <= self._rating.max_current:
            raise ValueError(f"Current out of range: {value}")
        self._out.current_limit = value

    def _set_trip(self, args: str, _index: int | None) -> None:
        self._out.trip = parse_scpi_bool(args)

    def _set_ovp_level(self, args: str, _index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"OVP level must be positive: {value}")
        self._out.ovp_level = value

    def _set_ovp_enabled(self, args: str, _index: int | None) -> None:
        self._out.ovp_enabled = parse_scpi_bool(args)

    def _set_output(self, args: str, _index: int | None) -> None:
        self._out.output = parse_scpi_bool(args)


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_e3631a_emulator(serial: str = "0") -> DCPowerEmulator:
    """Create an Agilent E3631A triple-output supply emulator (P6V, P25V, N25V)."""
    return DCPowerEmulator(
        f"HEWLETT-PACKARD,E3631A,{serial},2.1-5.0-1.0",
        (OutputRating(6.0, 5.0), OutputRating(25.0, 1.0), OutputRating(25.0, 1.0)),
    )


def make_e36103a_emulator(serial: str = "MY00000001") -> DCPowerEmulator:
    """Create a Keysight E36103A single-output supply emulator (20 V, 2 A)."""
    return DCPowerEmulator(
        f"Keysight Technologies,E36103A,{serial},1.0.4-1.0.0-1.00",
        (OutputRating(20.0, 2.0),),
    )
