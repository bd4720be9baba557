"""YAML configuration loading for instrument benches.

This module parses a bench YAML file into frozen dataclasses: bench
metadata, the GPIB controllers attached over serial ports, and one entry
per instrument naming its driver factory, resource string and expected
identity.

Example YAML configuration:
    bench:
      id: "bench-a"
      description: "Function generator + scope bench"

    gpib:
      0:
        port: "/dev/ttyUSB0"
        read_after_write: false

    instruments:
      fgen:
        driver: "benchlink_drivers.fgen:create_instrument"
        resource: "TCPIP0::192.168.1.10::5025::SOCKET"
        identity:
          manufacturer: "Agilent Technologies"
          model: "33220A"
        reset: true
        aliases: {"out": 0}
      psu:
        driver: "benchlink_drivers.dcpwr:create_instrument"
        resource: "GPIB0::5::INSTR"
        kwargs:
          channel_names: ["P6V", "P25V", "N25V"]
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from benchlink_core.errors import ConfigurationError

#: Environment variable naming the default configuration file.
CONFIG_ENV_VAR = "BENCHLINK_CONFIG"


@dataclass(frozen=True)
class ExpectedIdentity:
    """Expected instrument identity for verification.

    The bench compares this against the identity the driver reads with
    ``*IDN?`` when the instrument is opened.

    Attributes:
        manufacturer: Expected manufacturer name (e.g., "Agilent Technologies").
        model: Expected model name/number (e.g., "33220A").
    """

    manufacturer: str
    model: str


@dataclass(frozen=True)
class GpibControllerConfig:
    """A serial-attached GPIB controller.

    Attributes:
        board: GPIB board number used in ``GPIB<board>::...`` resources.
        port: Serial device of the controller.
        baud_rate: Serial speed.
        read_after_write: Enable the controller's automatic read mode.
        read_timeout_ms: Optional controller-side read timeout.
    """

    board: int
    port: str
    baud_rate: int = 115200
    read_after_write: bool = False
    read_timeout_ms: int | None = None


@dataclass(frozen=True)
class InstrumentConfig:
    """Configuration for a single instrument on the bench.

    Attributes:
        name: Unique instrument name within the bench (e.g., "fgen").
        driver: Driver factory in "module:function" format.
        resource: Resource string passed to the factory.
        identity: Expected identity, or None to skip verification.
        timeout: Default response timeout in seconds.
        reset: Send ``*RST`` after opening.
        clear: Send ``*CLS`` after opening.
        aliases: Channel aliases applied after construction.
        kwargs: Additional keyword arguments passed to the driver factory.
    """

    name: str
    driver: str
    resource: str
    identity: ExpectedIdentity | None = None
    timeout: float = 5.0
    reset: bool = False
    clear: bool = False
    aliases: dict[str, int | str] = field(default_factory=dict)
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BenchConfig:
    """Configuration for a whole bench.

    Attributes:
        bench_id: Unique identifier for this bench.
        description: Human-readable description.
        gpib: GPIB controller configurations.
        instruments: Instrument configurations in file order.
    """

    bench_id: str
    description: str
    gpib: tuple[GpibControllerConfig, ...] = ()
    instruments: tuple[InstrumentConfig, ...] = ()

    def instrument(self, name: str) -> InstrumentConfig:
        """Return the configuration of the named instrument."""
        for inst in self.instruments:
            if inst.name == name:
                return inst
        raise KeyError(name)


def _mapping(value: Any, where: str) -> dict[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{where} must be a mapping")
    return value


def _number(value: Any, where: str, kind: type = float) -> Any:
    if isinstance(value, bool):
        raise ConfigurationError(f"{where} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where} must be a number, got {value!r}") from None


def _parse_gpib(data: dict[Any, Any]) -> tuple[GpibControllerConfig, ...]:
    controllers: list[GpibControllerConfig] = []
    for board, ctrl_data in data.items():
        where = f"gpib.{board}"
        ctrl_data = _mapping(ctrl_data, where)
        port = ctrl_data.get("port")
        if not port:
            raise ConfigurationError(f"{where} missing required field: port")
        read_timeout = ctrl_data.get("read_timeout_ms")
        controllers.append(
            GpibControllerConfig(
                board=_number(board, where, int),
                port=str(port),
                baud_rate=_number(ctrl_data.get("baud_rate", 115200), f"{where}.baud_rate", int),
                read_after_write=bool(ctrl_data.get("read_after_write", False)),
                read_timeout_ms=(
                    None
                    if read_timeout is None
                    else _number(read_timeout, f"{where}.read_timeout_ms", int)
                ),
            )
        )
    return tuple(controllers)


def _parse_instrument(name: str, inst_data: Any) -> InstrumentConfig:
    inst_data = _mapping(inst_data, f"Instrument '{name}'")

    driver = inst_data.get("driver")
    if not driver:
        raise ConfigurationError(f"Instrument '{name}' missing required field: driver")
    resource = inst_data.get("resource")
    if not resource:
        raise ConfigurationError(f"Instrument '{name}' missing required field: resource")

    identity = None
    identity_data = inst_data.get("identity")
    if identity_data is not None:
        identity_data = _mapping(identity_data, f"Instrument '{name}' identity")
        for key in ("manufacturer", "model"):
            if not identity_data.get(key):
                raise ConfigurationError(
                    f"Instrument '{name}' missing required field: identity.{key}"
                )
        identity = ExpectedIdentity(
            manufacturer=str(identity_data["manufacturer"]),
            model=str(identity_data["model"]),
        )

    timeout = _number(inst_data.get("timeout", 5.0), f"Instrument '{name}' timeout")
    if timeout <= 0:
        raise ConfigurationError(f"Instrument '{name}' timeout must be positive")

    return InstrumentConfig(
        name=name,
        driver=str(driver),
        resource=str(resource),
        identity=identity,
        timeout=timeout,
        reset=bool(inst_data.get("reset", False)),
        clear=bool(inst_data.get("clear", False)),
        aliases=dict(_mapping(inst_data.get("aliases"), f"Instrument '{name}' aliases")),
        kwargs=dict(_mapping(inst_data.get("kwargs"), f"Instrument '{name}' kwargs")),
    )


def parse_config(data: Any) -> BenchConfig:
    """Build a bench configuration from already-parsed YAML data.

    Raises:
        ConfigurationError: If the data is invalid or missing required fields.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Config must be a YAML mapping")

    bench_section = _mapping(data.get("bench"), "bench")
    bench_id = bench_section.get("id")
    if not bench_id:
        raise ConfigurationError("Missing required field: bench.id")

    instruments_data = _mapping(data.get("instruments"), "instruments")
    instruments = tuple(
        _parse_instrument(str(name), inst_data) for name, inst_data in instruments_data.items()
    )

    return BenchConfig(
        bench_id=str(bench_id),
        description=str(bench_section.get("description", "")),
        gpib=_parse_gpib(_mapping(data.get("gpib"), "gpib")),
        instruments=instruments,
    )


def load_config(path: str | Path | None = None) -> BenchConfig:
    """Load bench configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file. Defaults to the file
            named by the ``BENCHLINK_CONFIG`` environment variable.

    Returns:
        Parsed bench configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigurationError: If no path is available, the YAML is malformed,
            or the config is invalid.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            raise ConfigurationError(f"No config path given and {CONFIG_ENV_VAR} is not set")
        path = env_path

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    return parse_config(data)
