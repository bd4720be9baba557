"""Common types shared by every benchlink package.

Classes:
    CapabilityGroup: Named bundles of operations a driver may implement.
    InstrumentIdentity: The four fields of an ``*IDN?`` response.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CapabilityGroup(Enum):
    """Capability groups an instrument driver may implement.

    Attributes:
        FUNCTION_GENERATOR: Waveform generation (shape, frequency, burst, ...).
        DC_POWER: Programmable DC supply outputs with readback.
        OSCILLOSCOPE: Vertical, acquisition and trigger setup, measurements.
        DMM: Digital multimeter measurements.
        SWITCH: Relay matrices and multiplexers.
    """

    FUNCTION_GENERATOR = "fgen"
    DC_POWER = "dcpwr"
    OSCILLOSCOPE = "scope"
    DMM = "dmm"
    SWITCH = "swtch"


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?``
    query.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g. "Agilent Technologies").
        model: Instrument model number or name (e.g. "33220A").
        serial: Serial number string.
        firmware: Firmware revision string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="Agilent Technologies",
        ...     model="E3631A",
        ...     serial="0",
        ...     firmware="2.1-5.0-1.0",
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str
