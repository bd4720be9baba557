"""Channel views onto an instrument driver.

A channel is a thin handle bound to one driver and one 0-based index. It
forwards per-channel operations to the driver and keeps a cache of the last
confirmed value of every setting. A write is cached only after the driver
call returned normally, which for the SCPI drivers means the instrument
reported no error for it. Every getter refreshes the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from benchlink_drivers.instrument import Instrument

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class Channel:
    """One channel of an instrument.

    Args:
        instrument: The owning driver.
        index: 0-based position in the driver's channel tuple.
        name: Physical channel name as the instrument labels it.
    """

    def __init__(self, instrument: Instrument, index: int, name: str) -> None:
        self._instrument = instrument
        self._index = index
        self._name = name
        self._cache: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(index={self._index}, name={self._name!r})"

    # -- Identity ------------------------------------------------------------

    @property
    def instrument(self) -> Instrument:
        """The driver this channel belongs to."""
        return self._instrument

    @property
    def index(self) -> int:
        """0-based channel index."""
        return self._index

    @property
    def name(self) -> str:
        """Physical channel name."""
        return self._name

    @property
    def alias(self) -> str | None:
        """The alias assigned to this channel, if any."""
        return self._instrument.alias_of(self._index)

    # -- Cache ---------------------------------------------------------------

    @property
    def cache(self) -> dict[str, Any]:
        """Snapshot of the last confirmed settings."""
        return dict(self._cache)

    def cached(self, key: str, default: Any = None) -> Any:
        """Return the last confirmed value of ``key`` without touching the instrument."""
        return self._cache.get(key, default)

    def invalidate(self) -> None:
        """Forget every cached setting."""
        self._cache.clear()

    def _set(self, key: str, setter: Callable[[int, _T], None], value: _T) -> None:
        """Run ``setter`` for this channel and cache ``value`` once it is confirmed."""
        setter(self._index, value)
        self._cache[key] = value
        logger.debug("%s %s = %r", self._name, key, value)

    def _get(self, key: str, getter: Callable[[int], _T]) -> _T:
        """Run ``getter`` for this channel and refresh the cache with its result."""
        value = getter(self._index)
        self._cache[key] = value
        return value
