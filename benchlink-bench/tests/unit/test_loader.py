"""Unit tests for the dynamic driver loader."""

from __future__ import annotations

import pytest

from benchlink_core.errors import ConfigurationError
from benchlink_bench.loader import load_driver
from benchlink_drivers import fgen


class TestLoadDriver:
    def test_load_driver_factory(self) -> None:
        factory = load_driver("benchlink_drivers.fgen:create_instrument")
        assert factory is fgen.create_instrument

    def test_load_stdlib_function(self) -> None:
        factory = load_driver("os.path:join")
        assert factory("a", "b") == "a/b"

    def test_missing_colon(self) -> None:
        with pytest.raises(ConfigurationError, match="module:function"):
            load_driver("os.path.join")

    @pytest.mark.parametrize("path", [":join", "os.path:"])
    def test_empty_part(self, path: str) -> None:
        with pytest.raises(ConfigurationError, match="module and function names required"):
            load_driver(path)

    def test_nonexistent_module(self) -> None:
        with pytest.raises(ConfigurationError, match="Failed to import"):
            load_driver("nonexistent_module_xyz:func")

    def test_nonexistent_function(self) -> None:
        with pytest.raises(ConfigurationError, match="no attribute"):
            load_driver("benchlink_drivers.fgen:nonexistent_factory")

    def test_not_callable(self) -> None:
        with pytest.raises(ConfigurationError, match="not callable"):
            load_driver("benchlink_drivers.scope:HIGH_IMPEDANCE")
