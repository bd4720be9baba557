"""Bench configuration and orchestration for benchlink.

This package loads a YAML bench description, opens the GPIB controllers
and instruments it names, and checks that each instrument reports the
expected identity.

Key components:
    - load_config: Parse a bench YAML file (default path from
      ``BENCHLINK_CONFIG``).
    - Bench: Open, verify and close the configured instruments.
    - load_driver: Resolve a ``"module:function"`` driver factory.

Example:
    from benchlink_bench import Bench, load_config

    with Bench(load_config("bench.yaml")) as bench:
        psu = bench.get_instrument("psu")
        psu.channel("P6V").set_voltage_level(5.0)
"""

from benchlink_bench.bench import Bench, InstrumentState, ManagedInstrument, open_gpib_controller
from benchlink_bench.config import (
    CONFIG_ENV_VAR,
    BenchConfig,
    ExpectedIdentity,
    GpibControllerConfig,
    InstrumentConfig,
    load_config,
    parse_config,
)
from benchlink_bench.loader import load_driver

__all__ = [
    # Config
    "CONFIG_ENV_VAR",
    "BenchConfig",
    "ExpectedIdentity",
    "GpibControllerConfig",
    "InstrumentConfig",
    "load_config",
    "parse_config",
    "load_driver",
    # Bench
    "Bench",
    "InstrumentState",
    "ManagedInstrument",
    "open_gpib_controller",
]
