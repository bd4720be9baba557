"""Core data types for benchlink.

Submodules:
    common: CapabilityGroup and InstrumentIdentity
    fgen: Function generator enumerations
    dcpwr: DC power enumerations
    scope: Oscilloscope enumerations
    dmm: Digital multimeter enumerations
    swtch: Switch topology type
"""

from benchlink_core.types.common import CapabilityGroup, InstrumentIdentity
from benchlink_core.types.dcpwr import CurrentLimitBehavior
from benchlink_core.types.dmm import AutoRange, MeasurementFunction, Terminals
from benchlink_core.types.fgen import OperationMode, StandardWaveform, TriggerSource
from benchlink_core.types.scope import (
    AcquisitionType,
    TriggerType,
    VerticalCoupling,
    WaveformMeasurement,
)
from benchlink_core.types.swtch import SwitchTopology

__all__ = [
    "AcquisitionType",
    "AutoRange",
    "CapabilityGroup",
    "CurrentLimitBehavior",
    "InstrumentIdentity",
    "MeasurementFunction",
    "OperationMode",
    "StandardWaveform",
    "SwitchTopology",
    "Terminals",
    "TriggerSource",
    "TriggerType",
    "VerticalCoupling",
    "WaveformMeasurement",
]
