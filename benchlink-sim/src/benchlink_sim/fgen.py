"""Function generator emulator (Keysight 33200/33500 command subset)."""

from __future__ import annotations

from dataclasses import dataclass

from benchlink_sim.emulator import ScpiEmulator, format_float, parse_scpi_bool

_WAVEFORMS = ("SIN", "SQU", "TRI", "RAMP", "NRAM", "PULS", "NOIS", "DC")
_TRIGGER_SOURCES = ("IMM", "EXT", "BUS")


@dataclass
class _OutputState:
    function: str = "SIN"
    frequency: float = 1000.0
    amplitude: float = 0.1
    offset: float = 0.0
    phase: float = 0.0
    output: bool = False
    burst_cycles: int = 1
    burst: bool = False
    sweep: bool = False
    trigger_source: str = "IMM"
    burst_period: float = 0.01


def _mnemonic(args: str, choices: tuple[str, ...]) -> str:
    token = args.strip().upper()
    for choice in choices:
        if token.startswith(choice):
            return choice
    raise ValueError(f"Unknown mnemonic {args!r}")


class FunctionGeneratorEmulator(ScpiEmulator):
    """In-process function generator.

    Args:
        identity: ``*IDN?`` response string.
        outputs: Number of outputs; commands may carry ``SOURn``/``OUTPn``
            suffixes (defaulting to output 1).
        max_frequency: Highest accepted frequency in hertz.
    """

    def __init__(self, identity: str, outputs: int = 1, max_frequency: float = 20e6) -> None:
        super().__init__(identity)
        if outputs < 1:
            raise ValueError("outputs must be >= 1")
        self._max_frequency = max_frequency
        self._outputs = [_OutputState() for _ in range(outputs)]

        self.register("FUNC", self._set_function)
        self.register("FUNC?", lambda _a, i: self._out(i).function)
        self.register("FREQ", self._set_frequency)
        self.register("FREQ?", lambda _a, i: format_float(self._out(i).frequency))
        self.register("VOLT", self._set_amplitude)
        self.register("VOLT?", lambda _a, i: format_float(self._out(i).amplitude))
        self.register("VOLT:OFFS", self._set_offset)
        self.register("VOLT:OFFS?", lambda _a, i: format_float(self._out(i).offset))
        self.register("PHAS", self._set_phase)
        self.register("PHAS?", lambda _a, i: format_float(self._out(i).phase))
        self.register("OUTP", self._set_output)
        self.register("OUTP?", lambda _a, i: "1" if self._out(i).output else "0")
        self.register("BURS:NCYC", self._set_burst_cycles)
        self.register("BURS:NCYC?", lambda _a, i: str(self._out(i).burst_cycles))
        self.register("BURS:STAT", self._set_burst)
        self.register("BURS:STAT?", lambda _a, i: "1" if self._out(i).burst else "0")
        self.register("BURS:INT:PER", self._set_burst_period)
        self.register("BURS:INT:PER?", lambda _a, i: format_float(self._out(i).burst_period))
        self.register("SWE:STAT", self._set_sweep)
        self.register("SWE:STAT?", lambda _a, i: "1" if self._out(i).sweep else "0")
        self.register("TRIG:SOUR", self._set_trigger_source)
        self.register("TRIG:SOUR?", lambda _a, i: self._out(i).trigger_source)

    def output(self, number: int = 1) -> _OutputState:
        """Return the live state of output ``number`` (1-based)."""
        return self._out(number)

    def reset(self) -> None:
        self._outputs = [_OutputState() for _ in self._outputs]

    def _out(self, index: int | None) -> _OutputState:
        number = 1 if index is None else index
        if not 1 <= number <= len(self._outputs):
            raise IndexError(f"Output {number} out of range")
        return self._outputs[number - 1]

    # -- Set handlers -------------------------------------------------------

    def _set_function(self, args: str, index: int | None) -> None:
        self._out(index).function = _mnemonic(args, _WAVEFORMS)

    def _set_frequency(self, args: str, index: int | None) -> None:
        value = float(args)
        if not 0 < value <= self._max_frequency:
            raise ValueError(f"Frequency out of range: {value}")
        self._out(index).frequency = value

    def _set_amplitude(self, args: str, index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Amplitude must be positive: {value}")
        self._out(index).amplitude = value

    def _set_offset(self, args: str, index: int | None) -> None:
        self._out(index).offset = float(args)

    def _set_phase(self, args: str, index: int | None) -> None:
        self._out(index).phase = float(args)

    def _set_output(self, args: str, index: int | None) -> None:
        self._out(index).output = parse_scpi_bool(args)

    def _set_burst_cycles(self, args: str, index: int | None) -> None:
        value = int(args)
        if value < 1:
            raise ValueError(f"Burst count must be >= 1: {value}")
        self._out(index).burst_cycles = value

    def _set_burst(self, args: str, index: int | None) -> None:
        self._out(index).burst = parse_scpi_bool(args)

    def _set_burst_period(self, args: str, index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Burst period must be positive: {value}")
        self._out(index).burst_period = value

    def _set_sweep(self, args: str, index: int | None) -> None:
        self._out(index).sweep = parse_scpi_bool(args)

    def _set_trigger_source(self, args: str, index: int | None) -> None:
        self._out(index).trigger_source = _mnemonic(args, _TRIGGER_SOURCES)


def make_33220a_emulator(serial: str = "MY44000001") -> FunctionGeneratorEmulator:
    """Create an Agilent 33220A single-output function generator emulator."""
    return FunctionGeneratorEmulator(
        f"Agilent Technologies,33220A,{serial},2.02-2.02-22-2", outputs=1, max_frequency=20e6
    )


def make_33522b_emulator(serial: str = "MY52000001") -> FunctionGeneratorEmulator:
    """Create a Keysight 33522B two-output function generator emulator."""
    return FunctionGeneratorEmulator(
        f"Agilent Technologies,33522B,{serial},4.00-1.19-2.00-58-00", outputs=2, max_frequency=30e6
    )
