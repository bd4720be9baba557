"""Enumerations for the digital multimeter capability group."""

from __future__ import annotations

from enum import Enum


class MeasurementFunction(Enum):
    """Measurement functions of a DMM."""

    DC_VOLTS = "dc_volts"
    AC_VOLTS = "ac_volts"
    DC_CURRENT = "dc_current"
    AC_CURRENT = "ac_current"
    TWO_WIRE_RESISTANCE = "two_wire_resistance"
    FOUR_WIRE_RESISTANCE = "four_wire_resistance"
    FREQUENCY = "frequency"
    PERIOD = "period"


class AutoRange(Enum):
    """Auto-range mode.

    Attributes:
        ON: The instrument picks the range for every reading.
        OFF: Manual range.
        ONCE: Pick a range once, then hold it.
    """

    ON = "on"
    OFF = "off"
    ONCE = "once"


class Terminals(Enum):
    """Selected input terminals."""

    FRONT = "front"
    REAR = "rear"
