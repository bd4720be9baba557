"""Oscilloscope emulator (InfiniiVision command subset).

Measurements are computed from a sine signal attached to each channel with
:meth:`OscilloscopeEmulator.set_signal`. A channel with no signal, or one
that is turned off, answers ``MEAS`` queries with the ``9.9E37`` overflow
marker as a real scope does when it cannot make the measurement.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from benchlink_scpi.number import SCPI_OVERFLOW

from benchlink_sim.emulator import ScpiEmulator, format_float, parse_scpi_bool

_COUPLINGS = ("AC", "DC", "GND")
_ACQUISITION_TYPES = ("NORM", "AVER", "HRES", "PEAK")
_TRIGGER_MODES = ("EDGE", "GLIT", "PATT", "TV")
_IMPEDANCES = ("ONEM", "FIFT")


@dataclass
class _Signal:
    frequency: float
    amplitude: float
    offset: float = 0.0


@dataclass
class _ChannelState:
    range: float = 8.0
    offset: float = 0.0
    coupling: str = "DC"
    probe: float = 1.0
    display: bool = False
    impedance: str = "ONEM"
    signal: _Signal | None = None


def _mnemonic(args: str, choices: tuple[str, ...]) -> str:
    token = args.strip().upper()
    for choice in choices:
        if token.startswith(choice):
            return choice
    raise ValueError(f"Unknown mnemonic {args!r}")


class OscilloscopeEmulator(ScpiEmulator):
    """In-process oscilloscope.

    Args:
        identity: ``*IDN?`` response string.
        channels: Number of analog channels.
    """

    def __init__(self, identity: str, channels: int = 4) -> None:
        super().__init__(identity)
        self._channel_count = channels
        self._reset_state()

        for node, handler, getter in (
            ("RANG", self._set_range, lambda c: format_float(c.range)),
            ("OFFS", self._set_offset, lambda c: format_float(c.offset)),
            ("COUP", self._set_coupling, lambda c: c.coupling),
            ("PROB", self._set_probe, lambda c: format_float(c.probe)),
            ("DISP", self._set_display, lambda c: "1" if c.display else "0"),
            ("IMP", self._set_impedance, lambda c: c.impedance),
        ):
            self.register(f"CHAN:{node}", handler)
            self.register(f"CHAN:{node}?", lambda _a, i, g=getter: g(self._chan(i)))

        self.register("ACQ:TYPE", self._set_acquisition_type)
        self.register("ACQ:TYPE?", lambda _a, _i: self._acquisition_type)
        self.register("ACQ:POIN", self._set_points)
        self.register("ACQ:POIN?", lambda _a, _i: str(self._points))
        self.register("ACQ:SRAT?", lambda _a, _i: format_float(self._points / self._time_range))
        self.register("TIM:RANG", self._set_time_range)
        self.register("TIM:RANG?", lambda _a, _i: format_float(self._time_range))
        self.register("TIM:POS", self._set_time_position)
        self.register("TIM:POS?", lambda _a, _i: format_float(self._time_position))
        self.register("TRIG:MODE", self._set_trigger_mode)
        self.register("TRIG:MODE?", lambda _a, _i: self._trigger_mode)
        self.register("TRIG:LEV", self._set_trigger_level)
        self.register("TRIG:LEV?", lambda _a, _i: format_float(self._trigger_level))
        self.register("TRIG:HOLD", self._set_holdoff)
        self.register("TRIG:HOLD?", lambda _a, _i: format_float(self._holdoff))
        self.register("TRIG:SOUR", self._set_trigger_source)
        self.register("TRIG:SOUR?", lambda _a, _i: self._trigger_source)

        for node in ("VPP", "VMAX", "VMIN", "VAV", "VRMS", "FREQ", "PER", "RIS", "FALL"):
            self.register(f"MEAS:{node}?", lambda a, _i, n=node: self._measure(n, a))

    # -- Test helpers -------------------------------------------------------

    def set_signal(
        self, channel: int, frequency: float, amplitude: float, offset: float = 0.0
    ) -> None:
        """Attach a sine signal to ``channel`` (1-based)."""
        self._chan(channel).signal = _Signal(frequency, amplitude, offset)

    def clear_signal(self, channel: int) -> None:
        """Remove the signal from ``channel``."""
        self._chan(channel).signal = None

    def channel_state(self, channel: int) -> _ChannelState:
        """Return the live state of ``channel`` (1-based)."""
        return self._chan(channel)

    def reset(self) -> None:
        signals = [c.signal for c in self._channels]
        self._reset_state()
        for state, signal in zip(self._channels, signals):
            state.signal = signal

    # -- Private helpers ----------------------------------------------------

    def _reset_state(self) -> None:
        self._channels = [_ChannelState() for _ in range(self._channel_count)]
        self._channels[0].display = True
        self._acquisition_type = "NORM"
        self._points = 1000
        self._time_range = 1e-3
        self._time_position = 0.0
        self._trigger_mode = "EDGE"
        self._trigger_level = 0.0
        self._holdoff = 40e-9
        self._trigger_source = "CHAN1"

    def _chan(self, index: int | None) -> _ChannelState:
        if index is None or not 1 <= index <= len(self._channels):
            raise IndexError(f"Channel {index} out of range")
        return self._channels[index - 1]

    def _source_channel(self, args: str) -> _ChannelState:
        token = args.strip().upper()
        if not token.startswith("CHAN"):
            raise ValueError(f"Not a channel source: {args!r}")
        return self._chan(int(token[4:]))

    def _measure(self, node: str, args: str) -> str:
        channel = self._source_channel(args) if args else self._chan(1)
        signal = channel.signal
        if signal is None or not channel.display:
            return format_float(SCPI_OVERFLOW)
        peak = signal.amplitude / 2.0
        values = {
            "VPP": signal.amplitude,
            "VMAX": signal.offset + peak,
            "VMIN": signal.offset - peak,
            "VAV": signal.offset,
            "VRMS": math.sqrt(signal.offset**2 + peak**2 / 2.0),
            "FREQ": signal.frequency,
            "PER": 1.0 / signal.frequency,
            "RIS": 0.3 / signal.frequency,
            "FALL": 0.3 / signal.frequency,
        }
        return format_float(values[node])

    # -- Set handlers -------------------------------------------------------

    def _set_range(self, args: str, index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Range must be positive: {value}")
        self._chan(index).range = value

    def _set_offset(self, args: str, index: int | None) -> None:
        self._chan(index).offset = float(args)

    def _set_coupling(self, args: str, index: int | None) -> None:
        self._chan(index).coupling = _mnemonic(args, _COUPLINGS)

    def _set_probe(self, args: str, index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Probe attenuation must be positive: {value}")
        self._chan(index).probe = value

    def _set_display(self, args: str, index: int | None) -> None:
        self._chan(index).display = parse_scpi_bool(args)

    def _set_impedance(self, args: str, index: int | None) -> None:
        self._chan(index).impedance = _mnemonic(args, _IMPEDANCES)

    def _set_acquisition_type(self, args: str, _index: int | None) -> None:
        self._acquisition_type = _mnemonic(args, _ACQUISITION_TYPES)

    def _set_points(self, args: str, _index: int | None) -> None:
        value = int(args)
        if value < 1:
            raise ValueError(f"Points must be >= 1: {value}")
        self._points = value

    def _set_time_range(self, args: str, _index: int | None) -> None:
        value = float(args)
        if value <= 0:
            raise ValueError(f"Time range must be positive: {value}")
        self._time_range = value

    def _set_time_position(self, args: str, _index: int | None) -> None:
        self._time_position = float(args)

    def _set_trigger_mode(self, args: str, _index: int | None) -> None:
        self._trigger_mode = _mnemonic(args, _TRIGGER_MODES)

    def _set_trigger_level(self, args: str, _index: int | None) -> None:
        self._trigger_level = float(args)

    def _set_holdoff(self, args: str, _index: int | None) -> None:
        value = float(args)
        if value < 0:
            raise ValueError(f"Holdoff cannot be negative: {value}")
        self._holdoff = value

    def _set_trigger_source(self, args: str, _index: int | None) -> None:
        token = args.strip().upper()
        if token.startswith("EXT"):
            self._trigger_source = "EXT"
            return
        self._source_channel(token)
        self._trigger_source = f"CHAN{int(token[4:])}"


def make_dsox2024a_emulator(serial: str = "MY00000001") -> OscilloscopeEmulator:
    """Create a Keysight DSO-X 2024A four-channel oscilloscope emulator."""
    return OscilloscopeEmulator(
        f"AGILENT TECHNOLOGIES,DSO-X 2024A,{serial},02.50.2019022736", channels=4
    )
