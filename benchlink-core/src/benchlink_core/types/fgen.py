"""Enumerations for the function generator capability group."""

from __future__ import annotations

from enum import Enum


class StandardWaveform(Enum):
    """Standard waveform shapes."""

    SINE = "sine"
    SQUARE = "square"
    TRIANGLE = "triangle"
    RAMP_UP = "ramp_up"
    RAMP_DOWN = "ramp_down"
    PULSE = "pulse"
    NOISE = "noise"
    DC = "dc"


class TriggerSource(Enum):
    """Trigger source for burst and sweep modes."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    SOFTWARE = "software"


class OperationMode(Enum):
    """Output operation mode of a function generator channel."""

    CONTINUOUS = "continuous"
    BURST = "burst"
    SWEEP = "sweep"
