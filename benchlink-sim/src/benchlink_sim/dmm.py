"""Digital multimeter emulator (34401A command subset).

``READ?`` returns the value set with :meth:`DMMEmulator.set_reading`. In
manual range a reading above 120% of the range bound overloads and
returns ``9.9E37``.
"""

from __future__ import annotations

from dataclasses import dataclass

from benchlink_scpi.number import SCPI_OVERFLOW

from benchlink_sim.emulator import ScpiEmulator, format_float

# Canonical function name -> range subsystem (normalized, DC dropped).
_RANGE_SUBSYSTEMS: dict[str, str] = {
    "VOLT": "VOLT",
    "VOLT:AC": "VOLT:AC",
    "CURR": "CURR",
    "CURR:AC": "CURR:AC",
    "RES": "RES",
    "FRES": "FRES",
    "FREQ": "FREQ:VOLT",
    "PER": "PER:VOLT",
}

# Ranges available per function, smallest first.
_RANGES: dict[str, tuple[float, ...]] = {
    "VOLT": (0.1, 1.0, 10.0, 100.0, 1000.0),
    "VOLT:AC": (0.1, 1.0, 10.0, 100.0, 750.0),
    "CURR": (0.01, 0.1, 1.0, 3.0),
    "CURR:AC": (1.0, 3.0),
    "RES": (100.0, 1e3, 1e4, 1e5, 1e6, 1e7, 1e8),
    "FRES": (100.0, 1e3, 1e4, 1e5, 1e6, 1e7, 1e8),
    "FREQ": (0.1, 1.0, 10.0, 100.0, 750.0),
    "PER": (0.1, 1.0, 10.0, 100.0, 750.0),
}

_OVERLOAD_FACTOR = 1.2


@dataclass
class _RangeState:
    auto: bool = True
    value: float = 0.0


def _canonical_function(text: str) -> str:
    token = text.strip().strip('"').upper()
    token = {
        "VOLTAGE": "VOLT",
        "VOLT:DC": "VOLT",
        "VOLTAGE:DC": "VOLT",
        "VOLTAGE:AC": "VOLT:AC",
        "CURRENT": "CURR",
        "CURR:DC": "CURR",
        "CURRENT:DC": "CURR",
        "CURRENT:AC": "CURR:AC",
        "RESISTANCE": "RES",
        "FRESISTANCE": "FRES",
        "FREQUENCY": "FREQ",
        "PERIOD": "PER",
    }.get(token, token)
    if token not in _RANGE_SUBSYSTEMS:
        raise ValueError(f"Unknown function {text!r}")
    return token


class DMMEmulator(ScpiEmulator):
    """In-process digital multimeter.

    Args:
        identity: ``*IDN?`` response string.
    """

    def __init__(self, identity: str) -> None:
        super().__init__(identity)
        self._reset_state()

        self.register("FUNC", self._set_function)
        self.register("FUNC?", lambda _a, _i: f'"{self._function}"')
        self.register("READ?", lambda _a, _i: self._read())
        self.register("ROUT:TERM?", lambda _a, _i: "REAR" if self._rear else "FRON")
        for function, subsystem in _RANGE_SUBSYSTEMS.items():
            self.register(f"{subsystem}:RANG", lambda a, _i, f=function: self._set_range(f, a))
            self.register(
                f"{subsystem}:RANG?", lambda _a, _i, f=function: format_float(self._range(f))
            )
            self.register(
                f"{subsystem}:RANG:AUTO", lambda a, _i, f=function: self._set_auto(f, a)
            )
            self.register(
                f"{subsystem}:RANG:AUTO?",
                lambda _a, _i, f=function: "1" if self._ranges[f].auto else "0",
            )

    # -- Test helpers -------------------------------------------------------

    @property
    def function(self) -> str:
        """Active function in canonical short form, e.g. ``"VOLT:AC"``."""
        return self._function

    def set_reading(self, value: float) -> None:
        """Set the value returned by ``READ?``."""
        self._reading = value

    def set_rear_terminals(self, rear: bool) -> None:
        """Emulate the front/rear terminal switch."""
        self._rear = rear

    def reset(self) -> None:
        reading, rear = self._reading, self._rear
        self._reset_state()
        self._reading, self._rear = reading, rear

    # -- Private helpers ----------------------------------------------------

    def _reset_state(self) -> None:
        self._function = "VOLT"
        self._ranges = {f: _RangeState() for f in _RANGE_SUBSYSTEMS}
        self._reading = 0.0
        self._rear = False

    def _autorange(self, function: str, value: float) -> float:
        for bound in _RANGES[function]:
            if abs(value) <= bound:
                return bound
        return _RANGES[function][-1]

    def _range(self, function: str) -> float:
        state = self._ranges[function]
        if state.auto:
            return self._autorange(function, self._reading)
        return state.value

    def _read(self) -> str:
        state = self._ranges[self._function]
        if not state.auto and abs(self._reading) > state.value * _OVERLOAD_FACTOR:
            return format_float(SCPI_OVERFLOW)
        return format_float(self._reading)

    # -- Set handlers -------------------------------------------------------

    def _set_function(self, args: str, _index: int | None) -> None:
        self._function = _canonical_function(args)

    def _set_range(self, function: str, args: str) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Range must be positive: {value}")
        state = self._ranges[function]
        state.auto = False
        state.value = self._autorange(function, value)

    def _set_auto(self, function: str, args: str) -> None:
        token = args.strip().upper()
        state = self._ranges[function]
        if token == "ONCE":
            state.value = self._autorange(function, self._reading)
            state.auto = False
        elif token in ("ON", "1"):
            state.auto = True
        elif token in ("OFF", "0"):
            state.value = self._range(function)
            state.auto = False
        else:
            raise ValueError(f"Invalid auto-range setting {args!r}")


def make_34401a_emulator(serial: str = "0") -> DMMEmulator:
    """Create an HP/Agilent 34401A digital multimeter emulator."""
    return DMMEmulator(f"HEWLETT-PACKARD,34401A,{serial},11-5-2")
