"""Capability-group instrument drivers.

This package provides:

- :class:`Instrument`: identity, reset/clear, channels, aliases and
  capability discovery shared by every driver
- :class:`Channel`: a per-channel view with a cache of confirmed settings
- capability groups :class:`FunctionGenerator`, :class:`DCPower`,
  :class:`Oscilloscope`, :class:`DMM` and :class:`Switch`
- generic SCPI drivers for each group, opened with the ``create_instrument``
  factory in the group's module

Typical usage::

    from benchlink_drivers.fgen import create_instrument

    fgen = create_instrument("TCPIP0::192.168.1.20::5025::SOCKET", aliases={"out": 0})
    fgen.channel("out").set_frequency(1000.0)
    fgen.close()
"""

from benchlink_drivers.channel import Channel
from benchlink_drivers.dcpwr import DCPower, DCPowerChannel, ScpiDCPower
from benchlink_drivers.dmm import DMM, ScpiDMM
from benchlink_drivers.fgen import (
    FunctionGenerator,
    FunctionGeneratorChannel,
    ScpiFunctionGenerator,
)
from benchlink_drivers.instrument import Instrument, create_driver
from benchlink_drivers.scope import Oscilloscope, OscilloscopeChannel, ScpiOscilloscope
from benchlink_drivers.swtch import (
    ScpiMatrixSwitch,
    Switch,
    SwitchChannel,
    matrix_channel_names,
)

__all__ = [
    # Base
    "Channel",
    "Instrument",
    "create_driver",
    # Function generator
    "FunctionGenerator",
    "FunctionGeneratorChannel",
    "ScpiFunctionGenerator",
    # DC power
    "DCPower",
    "DCPowerChannel",
    "ScpiDCPower",
    # Oscilloscope
    "Oscilloscope",
    "OscilloscopeChannel",
    "ScpiOscilloscope",
    # DMM
    "DMM",
    "ScpiDMM",
    # Switch
    "ScpiMatrixSwitch",
    "Switch",
    "SwitchChannel",
    "matrix_channel_names",
]
