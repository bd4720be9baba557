"""Enumerations for the oscilloscope capability group."""

from __future__ import annotations

from enum import Enum


class VerticalCoupling(Enum):
    """Input coupling of an oscilloscope channel."""

    AC = "ac"
    DC = "dc"
    GROUND = "ground"


class AcquisitionType(Enum):
    """How samples are combined into a waveform record."""

    NORMAL = "normal"
    AVERAGE = "average"
    HIGH_RESOLUTION = "high_resolution"
    PEAK_DETECT = "peak_detect"


class TriggerType(Enum):
    """Trigger types."""

    EDGE = "edge"
    GLITCH = "glitch"
    PATTERN = "pattern"
    TV = "tv"


class WaveformMeasurement(Enum):
    """Waveform-derived measurements computed by the instrument."""

    VOLTAGE_PEAK_TO_PEAK = "voltage_peak_to_peak"
    VOLTAGE_MAX = "voltage_max"
    VOLTAGE_MIN = "voltage_min"
    VOLTAGE_AVERAGE = "voltage_average"
    VOLTAGE_RMS = "voltage_rms"
    FREQUENCY = "frequency"
    PERIOD = "period"
    RISE_TIME = "rise_time"
    FALL_TIME = "fall_time"
