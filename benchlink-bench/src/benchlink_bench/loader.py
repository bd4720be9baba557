"""Dynamic driver factory loading via importlib.

Bench configuration names each driver factory as a ``"module:function"``
string; this module resolves it at runtime so benches can use drivers
that are not imported statically.

Example:
    factory = load_driver("benchlink_drivers.fgen:create_instrument")
    fgen = factory("TCPIP0::192.168.1.10::5025::SOCKET", reset=True)
"""

from __future__ import annotations

import importlib
from typing import Any, Callable

from benchlink_core.errors import ConfigurationError


def load_driver(driver_path: str) -> Callable[..., Any]:
    """Load a driver factory function from a module path.

    Args:
        driver_path: Path in "module:function" format
            (e.g., "benchlink_drivers.dcpwr:create_instrument").

    Returns:
        The loaded factory function.

    Raises:
        ConfigurationError: If the path is malformed or does not name a
            callable in an importable module.
    """
    if ":" not in driver_path:
        raise ConfigurationError(
            f"Invalid driver path '{driver_path}': must be in 'module:function' format"
        )

    module_path, func_name = driver_path.rsplit(":", 1)

    if not module_path or not func_name:
        raise ConfigurationError(
            f"Invalid driver path '{driver_path}': module and function names required"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigurationError(f"Failed to import module '{module_path}': {exc}") from exc

    try:
        factory = getattr(module, func_name)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_path}' has no attribute '{func_name}'") from exc

    if not callable(factory):
        raise ConfigurationError(f"'{driver_path}' is not callable")

    return factory
