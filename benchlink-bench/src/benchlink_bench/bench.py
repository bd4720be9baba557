"""Bench orchestration: open, verify and close configured instruments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from benchlink_core.types.common import InstrumentIdentity
from benchlink_prologix.controller import PrologixController, open_controller

from benchlink_bench.config import BenchConfig, GpibControllerConfig, InstrumentConfig
from benchlink_bench.loader import load_driver

logger = logging.getLogger(__name__)


class InstrumentState(Enum):
    """Lifecycle state of a bench instrument."""

    PENDING = "pending"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


def open_gpib_controller(config: GpibControllerConfig) -> PrologixController:
    """Open the serial-attached GPIB controller described by `config`."""
    return open_controller(
        config.port,
        config.baud_rate,
        read_after_write=config.read_after_write,
        read_timeout_ms=config.read_timeout_ms,
    )


@dataclass
class ManagedInstrument:
    """An instrument managed by the bench.

    Args:
        config: Instrument configuration.
        state: Current state of the instrument.
        instance: The driver instance (if opened).
        identity: The identity read from the instrument (if available).
        error: Error message (if in error state).
    """

    config: InstrumentConfig
    state: InstrumentState = InstrumentState.PENDING
    instance: Any = None
    identity: InstrumentIdentity | None = None
    error: str | None = None


@dataclass
class Bench:
    """Instrument bench orchestrator.

    Opens the GPIB controllers and instruments named in a
    :class:`BenchConfig`, verifies each instrument's identity, and gives
    access to ready instruments by name.

    Args:
        config: Bench configuration.
        controller_factory: Opens a GPIB controller from its configuration.

    Example:
        config = load_config("bench.yaml")
        with Bench(config) as bench:
            fgen = bench.get_instrument("fgen")
            fgen.channel("out").set_frequency(1e3)
    """

    config: BenchConfig
    controller_factory: Callable[[GpibControllerConfig], PrologixController] = (
        open_gpib_controller
    )
    _instruments: dict[str, ManagedInstrument] = field(default_factory=dict, init=False)
    _controllers: dict[int, PrologixController] = field(default_factory=dict, init=False)
    _state: str = field(default="pending", init=False)

    def __post_init__(self) -> None:
        for inst_config in self.config.instruments:
            self._instruments[inst_config.name] = ManagedInstrument(config=inst_config)

    def __enter__(self) -> Bench:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def bench_id(self) -> str:
        """Return the bench ID."""
        return self.config.bench_id

    @property
    def state(self) -> str:
        """Overall state: pending, ready, error or closed."""
        return self._state

    @property
    def controllers(self) -> dict[int, PrologixController]:
        """Opened GPIB controllers keyed by board number."""
        return dict(self._controllers)

    def open(self) -> None:
        """Open GPIB controllers, then every instrument.

        A failing controller or instrument is logged and recorded; the
        remaining instruments are still opened. The bench state is
        "ready" only if everything succeeded.
        """
        all_ready = True

        for ctrl_config in self.config.gpib:
            try:
                self._controllers[ctrl_config.board] = self.controller_factory(ctrl_config)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                all_ready = False
                logger.error(
                    "Failed to open GPIB controller %d on %s: %s",
                    ctrl_config.board,
                    ctrl_config.port,
                    exc,
                )

        for managed in self._instruments.values():
            if not self._open_instrument(managed):
                all_ready = False

        self._state = "ready" if all_ready else "error"

    def _open_instrument(self, managed: ManagedInstrument) -> bool:
        config = managed.config
        try:
            factory = load_driver(config.driver)
            instance = factory(
                config.resource,
                gpib_controllers=self._controllers,
                timeout=config.timeout,
                reset=config.reset,
                clear=config.clear,
                aliases=config.aliases or None,
                **config.kwargs,
            )
            managed.instance = instance
            identity = instance.get_identity()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            managed.state = InstrumentState.ERROR
            managed.error = str(exc)
            logger.error("Failed to open instrument %s: %s", config.name, exc)
            return False

        managed.identity = identity

        expected = config.identity
        if expected is not None:
            mismatch = None
            if identity.manufacturer != expected.manufacturer:
                mismatch = (
                    f"Manufacturer mismatch: expected '{expected.manufacturer}', "
                    f"got '{identity.manufacturer}'"
                )
            elif identity.model != expected.model:
                mismatch = f"Model mismatch: expected '{expected.model}', got '{identity.model}'"
            if mismatch is not None:
                managed.state = InstrumentState.ERROR
                managed.error = mismatch
                logger.error("Instrument %s: %s", config.name, mismatch)
                return False

        managed.state = InstrumentState.READY
        logger.info(
            "Instrument %s ready: %s %s (S/N: %s)",
            config.name,
            identity.manufacturer,
            identity.model,
            identity.serial,
        )
        return True

    def close(self) -> None:
        """Close every opened instrument, then the GPIB controllers."""
        for name, managed in self._instruments.items():
            if managed.instance is not None:
                try:
                    managed.instance.close()
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    logger.warning("Error closing instrument %s: %s", name, exc)
                managed.instance = None
                managed.state = InstrumentState.CLOSED

        for board, controller in self._controllers.items():
            try:
                controller.close()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Error closing GPIB controller %d: %s", board, exc)
        self._controllers.clear()

        self._state = "closed"

    def get_instrument(self, name: str) -> Any | None:
        """Get an instrument instance by name.

        Returns:
            The driver instance, or None if unknown or not ready.
        """
        managed = self._instruments.get(name)
        if managed and managed.state == InstrumentState.READY:
            return managed.instance
        return None

    def instrument_state(self, name: str) -> ManagedInstrument | None:
        """Return the managed record of one instrument, or None if unknown."""
        return self._instruments.get(name)

    def list_instruments(self) -> list[ManagedInstrument]:
        """Return the managed records of every instrument in config order."""
        return list(self._instruments.values())
