"""Core library for benchlink instrument control.

This package provides the error taxonomy and the shared data types
(identity, capability groups, per-group enumerations) used by every other
benchlink package. It has no third-party dependencies.

Example:
    >>> from benchlink_core import CapabilityGroup, FunctionNotSupportedError
    >>> CapabilityGroup("dcpwr")
    <CapabilityGroup.DC_POWER: 'dcpwr'>
"""

from benchlink_core.errors import (
    BenchlinkError,
    ConfigurationError,
    DeviceReportedError,
    DisconnectedError,
    DomainError,
    FunctionNotSupportedError,
    IncompleteResponseError,
    InstrumentError,
    InvalidTopologyError,
    MalformedResponseError,
    ProtocolError,
    ResourceStringError,
    ResponseTimeoutError,
    SessionBusyError,
    TransportError,
    TransportOpenError,
    UnknownChannelError,
)
from benchlink_core.types import (
    AcquisitionType,
    AutoRange,
    CapabilityGroup,
    CurrentLimitBehavior,
    InstrumentIdentity,
    MeasurementFunction,
    OperationMode,
    StandardWaveform,
    SwitchTopology,
    Terminals,
    TriggerSource,
    TriggerType,
    VerticalCoupling,
    WaveformMeasurement,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "BenchlinkError",
    "ConfigurationError",
    "DeviceReportedError",
    "DisconnectedError",
    "DomainError",
    "FunctionNotSupportedError",
    "IncompleteResponseError",
    "InstrumentError",
    "InvalidTopologyError",
    "MalformedResponseError",
    "ProtocolError",
    "ResourceStringError",
    "ResponseTimeoutError",
    "SessionBusyError",
    "TransportError",
    "TransportOpenError",
    "UnknownChannelError",
    # Types
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
