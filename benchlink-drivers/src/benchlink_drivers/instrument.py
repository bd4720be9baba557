"""Instrument driver base class.

:class:`Instrument` wraps one :class:`~benchlink_scpi.ScpiSession` and
provides what every driver shares: cached identity, reset and clear, the
ordered channel tuple with alias lookup, and capability-group discovery.
Capability groups (:mod:`benchlink_drivers.fgen`, ``dcpwr``, ``scope``,
``dmm``, ``swtch``) are subclasses that declare ``capability_group``; a
concrete driver inherits from one or more of them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, NoReturn, TypeVar

from benchlink_core.errors import (
    DomainError,
    FunctionNotSupportedError,
    MalformedResponseError,
    UnknownChannelError,
)
from benchlink_core.types.common import CapabilityGroup, InstrumentIdentity
from benchlink_scpi.factory import open_session
from benchlink_scpi.number import parse_bool, parse_int, parse_number

from benchlink_drivers.channel import Channel

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController
    from benchlink_scpi.session import ScpiSession

logger = logging.getLogger(__name__)

_I = TypeVar("_I", bound="Instrument")
_E = TypeVar("_E")


class Instrument:
    """Base class for all instrument drivers.

    Args:
        session: Open session to the instrument. The driver owns it.
        reset: Send ``*RST`` during construction.
        clear: Send ``*CLS`` during construction (after any reset).
        aliases: Initial alias map, alias -> channel index or physical name.
        identify: Query and cache ``*IDN?`` during construction.
        channel_names: Physical channel names; defaults to
            :attr:`default_channel_names`.

    Example:
        >>> fgen = ScpiFunctionGenerator(session, reset=True, aliases={"out": 0})
        >>> fgen.model()
        '33220A'
        >>> fgen.channel("out").set_frequency(1000.0)
    """

    capability_group: ClassVar[CapabilityGroup | None] = None
    channel_class: ClassVar[type[Channel]] = Channel
    default_channel_names: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        session: ScpiSession,
        *,
        reset: bool = False,
        clear: bool = False,
        aliases: Mapping[str, int | str] | None = None,
        identify: bool = True,
        channel_names: Sequence[str] | None = None,
    ) -> None:
        self._session = session
        self._lock = threading.RLock()
        self._identity: InstrumentIdentity | None = None
        self._cache: dict[str, Any] = {}
        names = tuple(self.default_channel_names if channel_names is None else channel_names)
        if len(set(names)) != len(names):
            raise DomainError(f"Duplicate channel names: {names}")
        self._channels: tuple[Channel, ...] = tuple(
            self.channel_class(self, index, name) for index, name in enumerate(names)
        )
        self._aliases: dict[str, int] = {}

        if reset:
            self.reset()
        if clear:
            self.clear()
        if identify:
            identity = self.get_identity()
            logger.info(
                "Connected to %s %s (serial %s)",
                identity.manufacturer,
                identity.model,
                identity.serial,
            )
        if aliases:
            self.set_aliases(aliases)

    # -- Session -------------------------------------------------------------

    @property
    def session(self) -> ScpiSession:
        """The session this driver talks through."""
        return self._session

    def close(self) -> None:
        """Close the session. Safe to call multiple times."""
        self._session.close()

    # -- Identity ------------------------------------------------------------

    def get_identity(self, refresh: bool = False) -> InstrumentIdentity:
        """Return the instrument identity, querying ``*IDN?`` on first use.

        Args:
            refresh: Query the instrument even if an identity is cached.

        Raises:
            MalformedResponseError: If ``*IDN?`` has fewer than four fields.
        """
        if self._identity is None or refresh:
            self._identity = self._session.get_identity()
        return self._identity

    def manufacturer(self) -> str:
        """Instrument manufacturer."""
        return self.get_identity().manufacturer

    def model(self) -> str:
        """Instrument model."""
        return self.get_identity().model

    def serial_number(self) -> str:
        """Instrument serial number."""
        return self.get_identity().serial

    def firmware_revision(self) -> str:
        """Instrument firmware revision."""
        return self.get_identity().firmware

    # -- Reset / clear -------------------------------------------------------

    def reset(self) -> None:
        """Reset the instrument (``*RST``) and forget every cached setting."""
        self._session.reset()
        self.invalidate()

    def clear(self) -> None:
        """Clear status and the error queue (``*CLS``). Settings are untouched."""
        self._session.clear_status()

    def invalidate(self) -> None:
        """Forget every cached setting on the driver and its channels."""
        self._cache.clear()
        for channel in self._channels:
            channel.invalidate()

    def cached(self, key: str, default: Any = None) -> Any:
        """Return the last confirmed value of an instrument-wide setting."""
        return self._cache.get(key, default)

    # -- Capabilities --------------------------------------------------------

    @property
    def capabilities(self) -> frozenset[CapabilityGroup]:
        """Capability groups this driver belongs to."""
        groups = set()
        for klass in type(self).__mro__:
            group = klass.__dict__.get("capability_group")
            if group is not None:
                groups.add(group)
        return frozenset(groups)

    def supports(self, group: CapabilityGroup) -> bool:
        """Return True if the driver belongs to ``group``."""
        return group in self.capabilities

    def capability(self, group: CapabilityGroup) -> Instrument:
        """Return this driver viewed as ``group``.

        Raises:
            FunctionNotSupportedError: If the driver does not belong to ``group``.
        """
        if not self.supports(group):
            raise FunctionNotSupportedError(
                f"{type(self).__name__} does not implement the {group.value} capability group"
            )
        return self

    def _unsupported(self, operation: str) -> NoReturn:
        raise FunctionNotSupportedError(f"{type(self).__name__} does not support {operation}")

    # -- Confirmed writes ----------------------------------------------------

    def _command(self, cmd: str) -> None:
        """Send a setting command and drain ``SYST:ERR?`` before returning.

        Callers update their caches only after this returns, so a value the
        instrument rejected is never cached.

        Raises:
            DeviceReportedError: If the instrument queued an error for ``cmd``.
        """
        self._session.command(cmd, check=True)

    # -- Typed queries -------------------------------------------------------

    def _query_number(self, cmd: str) -> float:
        response = self._session.query(cmd)
        try:
            return parse_number(response)
        except ValueError:
            raise MalformedResponseError(
                "Expected a number", payload=response, command=cmd
            ) from None

    def _query_int(self, cmd: str) -> int:
        response = self._session.query(cmd)
        try:
            return parse_int(response)
        except ValueError:
            raise MalformedResponseError(
                "Expected an integer", payload=response, command=cmd
            ) from None

    def _query_bool(self, cmd: str) -> bool:
        response = self._session.query(cmd)
        try:
            return parse_bool(response)
        except ValueError:
            raise MalformedResponseError(
                "Expected a boolean", payload=response, command=cmd
            ) from None

    def _query_choice(self, cmd: str, choices: Mapping[str, _E]) -> _E:
        """Query ``cmd`` and map the response through ``choices``.

        Keys are upper-case short-form mnemonics; a long-form response
        (``SQUARE``) matches its short form (``SQU``).
        """
        response = self._session.query(cmd).strip('"').upper()
        if response in choices:
            return choices[response]
        for mnemonic in sorted(choices, key=len, reverse=True):
            if response.startswith(mnemonic):
                return choices[mnemonic]
        raise MalformedResponseError("Unexpected response", payload=response, command=cmd)

    # -- Channels ------------------------------------------------------------

    @property
    def channels(self) -> tuple[Channel, ...]:
        """All channels in index order."""
        return self._channels

    def channel_count(self) -> int:
        """Number of channels."""
        return len(self._channels)

    def channel(self, key: int | str) -> Channel:
        """Look up a channel by 0-based index, physical name or alias.

        Name and alias matching is exact and case-sensitive.

        Raises:
            UnknownChannelError: If no channel matches.
        """
        if isinstance(key, bool):
            raise UnknownChannelError(f"Invalid channel key: {key!r}")
        if isinstance(key, int):
            if 0 <= key < len(self._channels):
                return self._channels[key]
            raise UnknownChannelError(
                f"Channel index {key} out of range (0-{len(self._channels) - 1})"
            )
        for channel in self._channels:
            if channel.name == key:
                return channel
        index = self._aliases.get(key)
        if index is not None:
            return self._channels[index]
        raise UnknownChannelError(f"Unknown channel {key!r}")

    def set_aliases(self, mapping: Mapping[str, int | str]) -> None:
        """Replace the alias map.

        Args:
            mapping: Alias -> channel index or physical channel name.

        Raises:
            UnknownChannelError: If a target channel does not exist.
            DomainError: If an alias is empty, shadows another channel's
                physical name, or two aliases name the same channel.
        """
        resolved: dict[str, int] = {}
        for alias, target in mapping.items():
            if not isinstance(alias, str) or not alias:
                raise DomainError(f"Alias must be a non-empty string, got {alias!r}")
            index = self._resolve_physical(target)
            for channel in self._channels:
                if channel.name == alias and channel.index != index:
                    raise DomainError(
                        f"Alias {alias!r} collides with physical channel {channel.name!r}"
                    )
            if index in resolved.values():
                raise DomainError(
                    f"Channel {self._channels[index].name!r} given more than one alias"
                )
            resolved[alias] = index
        self._aliases = resolved
        logger.debug("Aliases set: %s", self.aliases())

    def aliases(self) -> dict[str, str]:
        """Current alias map, alias -> physical channel name."""
        return {alias: self._channels[index].name for alias, index in self._aliases.items()}

    def alias_of(self, index: int) -> str | None:
        """Return the alias of the channel at ``index``, if any."""
        for alias, target in self._aliases.items():
            if target == index:
                return alias
        return None

    def _resolve_physical(self, target: int | str) -> int:
        if isinstance(target, bool):
            raise UnknownChannelError(f"Invalid channel key: {target!r}")
        if isinstance(target, int):
            return self.channel(target).index
        for channel in self._channels:
            if channel.name == target:
                return channel.index
        raise UnknownChannelError(f"Unknown physical channel {target!r}")


def create_driver(
    driver_class: type[_I],
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    check_errors: bool = False,
    **kwargs: Any,
) -> _I:
    """Open a session for ``resource`` and construct ``driver_class`` on it.

    The session is closed again if the driver cannot be constructed.
    """
    session = open_session(
        resource, gpib_controllers=gpib_controllers, timeout=timeout, check_errors=check_errors
    )
    try:
        return driver_class(session, reset=reset, clear=clear, aliases=aliases, **kwargs)
    except Exception:
        session.close()
        raise
