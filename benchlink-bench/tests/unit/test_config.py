"""Unit tests for bench configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from benchlink_core.errors import ConfigurationError
from benchlink_bench.config import (
    CONFIG_ENV_VAR,
    BenchConfig,
    ExpectedIdentity,
    InstrumentConfig,
    load_config,
    parse_config,
)

_FULL_CONFIG = """
bench:
  id: "bench-a"
  description: "Function generator + scope bench"

gpib:
  0:
    port: "/dev/ttyUSB0"
    baud_rate: 115200
    read_after_write: false
    read_timeout_ms: 500

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
    timeout: 2.5
    kwargs:
      channel_names: ["P6V", "P25V", "N25V"]
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "bench.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDataclasses:
    def test_identity_frozen(self) -> None:
        identity = ExpectedIdentity(manufacturer="Acme", model="Widget")
        with pytest.raises(AttributeError):
            identity.manufacturer = "Other"  # type: ignore[misc]

    def test_instrument_defaults(self) -> None:
        config = InstrumentConfig(
            name="dmm",
            driver="benchlink_drivers.dmm:create_instrument",
            resource="GPIB0::22::INSTR",
        )
        assert config.identity is None
        assert config.timeout == 5.0
        assert not config.reset
        assert config.aliases == {}
        assert config.kwargs == {}

    def test_instrument_lookup(self) -> None:
        config = BenchConfig(
            bench_id="b",
            description="",
            instruments=(InstrumentConfig(name="dmm", driver="m:f", resource="r"),),
        )
        assert config.instrument("dmm").resource == "r"
        with pytest.raises(KeyError):
            config.instrument("scope")


class TestLoadConfig:
    def test_load_valid_config(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, _FULL_CONFIG))

        assert config.bench_id == "bench-a"
        assert config.description == "Function generator + scope bench"
        assert [i.name for i in config.instruments] == ["fgen", "psu"]

        fgen = config.instrument("fgen")
        assert fgen.driver == "benchlink_drivers.fgen:create_instrument"
        assert fgen.resource == "TCPIP0::192.168.1.10::5025::SOCKET"
        assert fgen.identity == ExpectedIdentity("Agilent Technologies", "33220A")
        assert fgen.reset
        assert fgen.aliases == {"out": 0}

        psu = config.instrument("psu")
        assert psu.identity is None
        assert psu.timeout == 2.5
        assert psu.kwargs == {"channel_names": ["P6V", "P25V", "N25V"]}

        (gpib,) = config.gpib
        assert (gpib.board, gpib.port, gpib.read_timeout_ms) == (0, "/dev/ttyUSB0", 500)
        assert not gpib.read_after_write

    def test_load_minimal_config(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, 'bench:\n  id: "minimal"\n'))
        assert config.bench_id == "minimal"
        assert config.description == ""
        assert config.instruments == ()
        assert config.gpib == ()

    def test_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(CONFIG_ENV_VAR, str(_write(tmp_path, _FULL_CONFIG)))
        assert load_config().bench_id == "bench-a"

    def test_no_path_and_no_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        with pytest.raises(ConfigurationError, match=CONFIG_ENV_VAR):
            load_config()

    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/path/bench.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(_write(tmp_path, "bench: [unclosed\n"))


class TestValidation:
    @pytest.mark.parametrize(
        ("data", "match"),
        [
            (["not", "a", "mapping"], "YAML mapping"),
            ({"bench": {"description": "no id"}}, "bench.id"),
            ({"bench": {"id": "b"}, "instruments": []}, "instruments must be a mapping"),
            ({"bench": {"id": "b"}, "instruments": {"x": {"resource": "r"}}}, "driver"),
            ({"bench": {"id": "b"}, "instruments": {"x": {"driver": "m:f"}}}, "resource"),
            (
                {
                    "bench": {"id": "b"},
                    "instruments": {
                        "x": {"driver": "m:f", "resource": "r", "identity": {"model": "M"}}
                    },
                },
                "identity.manufacturer",
            ),
            (
                {
                    "bench": {"id": "b"},
                    "instruments": {"x": {"driver": "m:f", "resource": "r", "timeout": 0}},
                },
                "timeout",
            ),
            (
                {
                    "bench": {"id": "b"},
                    "instruments": {"x": {"driver": "m:f", "resource": "r", "kwargs": [1]}},
                },
                "kwargs",
            ),
            ({"bench": {"id": "b"}, "gpib": {0: {"baud_rate": 9600}}}, "port"),
            ({"bench": {"id": "b"}, "gpib": {0: {"port": "p", "baud_rate": "fast"}}}, "baud_rate"),
        ],
    )
    def test_invalid(self, data: object, match: str) -> None:
        with pytest.raises(ConfigurationError, match=match):
            parse_config(data)

    def test_configuration_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_config({"bench": {}})
