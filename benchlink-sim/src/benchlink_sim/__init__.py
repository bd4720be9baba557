"""In-process instrument emulators for benchlink.

This package provides test doubles that implement the
:class:`~benchlink_scpi.Transport` protocol:

- :class:`ScpiEmulator`: base class with header normalization, common
  commands and an error queue
- emulators for each capability group, with factories for common models
- :class:`PrologixEmulator`: a GPIB controller with instruments on its bus
- :class:`EmulatorServer`: serves an emulator over TCP

Typical usage::

    from benchlink_scpi import ScpiSession
    from benchlink_sim import make_33220a_emulator
    from benchlink_drivers import ScpiFunctionGenerator

    fgen = ScpiFunctionGenerator(ScpiSession(make_33220a_emulator()))
    fgen.channel(0).set_frequency(2340.0)
"""

from benchlink_sim.dcpwr import (
    DCPowerEmulator,
    OutputRating,
    make_e3631a_emulator,
    make_e36103a_emulator,
)
from benchlink_sim.dmm import DMMEmulator, make_34401a_emulator
from benchlink_sim.emulator import ScpiEmulator, format_float, normalize_header
from benchlink_sim.fgen import (
    FunctionGeneratorEmulator,
    make_33220a_emulator,
    make_33522b_emulator,
)
from benchlink_sim.prologix import PrologixEmulator, unescape
from benchlink_sim.scope import OscilloscopeEmulator, make_dsox2024a_emulator
from benchlink_sim.server import EmulatorServer
from benchlink_sim.swtch import SwitchMatrixEmulator, make_34934a_emulator

__all__ = [
    # Base
    "ScpiEmulator",
    "format_float",
    "normalize_header",
    # Capability groups
    "DCPowerEmulator",
    "DMMEmulator",
    "FunctionGeneratorEmulator",
    "OscilloscopeEmulator",
    "OutputRating",
    "SwitchMatrixEmulator",
    # Factories
    "make_33220a_emulator",
    "make_33522b_emulator",
    "make_34401a_emulator",
    "make_34934a_emulator",
    "make_dsox2024a_emulator",
    "make_e3631a_emulator",
    "make_e36103a_emulator",
    # Bus and server
    "EmulatorServer",
    "PrologixEmulator",
    "unescape",
]
