"""Switch matrix capability group and generic SCPI driver.

Switch channels are the named terminals of a matrix (rows and columns).
Two channels are connected by closing the relay at their crossing. A
channel may be marked as a source; two source channels are never
connected to each other.

Every connection request is checked against the topology before anything
is sent, so an invalid request leaves the relays untouched.

Example:
    >>> sw = create_instrument("TCPIP0::10.0.0.7::5025::SOCKET", rows=4, columns=8)
    >>> sw.set_virtual_names({"Row1": "dmm_hi", "Col3": "tp3"})
    >>> sw.set_source_channel("dmm_hi", True)
    >>> sw.connect("dmm_hi", "tp3")
    >>> sw.wait_for_debounce()
    >>> sw.is_connected("dmm_hi", "tp3")
    True
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, cast

from benchlink_core.errors import DomainError, InvalidTopologyError
from benchlink_core.types.common import CapabilityGroup
from benchlink_core.types.swtch import SwitchTopology

from benchlink_drivers.channel import Channel
from benchlink_drivers.instrument import Instrument, create_driver

if TYPE_CHECKING:
    from benchlink_scpi.factory import GpibController
    from benchlink_scpi.session import ScpiSession

logger = logging.getLogger(__name__)


class SwitchChannel(Channel):
    """One terminal of a switch matrix."""

    @property
    def _switch(self) -> Switch:
        return cast(Switch, self._instrument)

    @property
    def is_source(self) -> bool:
        """True if the channel is marked as a source."""
        return self._switch.is_source_channel(self._index)

    def set_source(self, flag: bool) -> None:
        """Mark or unmark the channel as a source."""
        self._switch.set_source_channel(self._index, flag)

    def wire_mode(self) -> int:
        """Number of conductors switched for this channel."""
        return self._switch.wire_mode(self._index)


class Switch(Instrument):
    """Switch capability group.

    Subclasses supply :meth:`topology` and the relay hooks ``_route``,
    ``_close``, ``_open``, ``_open_all`` and ``_is_closed``. The public
    operations validate their arguments and then call the hooks.
    """

    capability_group = CapabilityGroup.SWITCH
    channel_class = SwitchChannel

    def __init__(self, session: ScpiSession, **kwargs: Any) -> None:
        self._sources: set[int] = set()
        super().__init__(session, **kwargs)

    def channel(self, key: int | str) -> SwitchChannel:
        return cast(SwitchChannel, super().channel(key))

    # -- Topology ------------------------------------------------------------

    def topology(self) -> SwitchTopology:
        """Return the matrix topology."""
        self._unsupported("topology query")

    def wire_mode(self, key: int | str | None = None) -> int:
        """Number of conductors switched per channel.

        All channels of a matrix share the wire mode; ``key`` is validated
        when given.
        """
        if key is not None:
            self.channel(key)
        return self.topology().wire_mode

    # -- Source channels and virtual names -----------------------------------

    def is_source_channel(self, key: int | str) -> bool:
        """Return True if the channel is marked as a source."""
        return self.channel(key).index in self._sources

    def set_source_channel(self, key: int | str, flag: bool) -> None:
        """Mark or unmark a channel as a source.

        Source marks are local configuration and survive :meth:`reset`.
        """
        index = self.channel(key).index
        if flag:
            self._sources.add(index)
        else:
            self._sources.discard(index)

    def set_virtual_names(self, names: Mapping[str, str]) -> None:
        """Assign virtual names from a physical -> virtual map.

        Replaces every existing alias.
        """
        inverted: dict[str, int | str] = {}
        for physical, virtual in names.items():
            if virtual in inverted:
                raise DomainError(f"Virtual name {virtual!r} assigned twice")
            inverted[virtual] = physical
        self.set_aliases(inverted)

    # -- Connections ---------------------------------------------------------

    def connect(self, a: int | str, b: int | str) -> None:
        """Connect two channels.

        Raises:
            UnknownChannelError: If either channel does not exist.
            InvalidTopologyError: If the channels are the same, both sources,
                or have no path between them. Nothing is sent in that case.
        """
        route = self._checked_route(a, b, connecting=True)
        with self._lock:
            self._close(route)
        logger.debug("Connected %s <-> %s", a, b)

    def disconnect(self, a: int | str, b: int | str) -> None:
        """Disconnect two channels."""
        route = self._checked_route(a, b)
        with self._lock:
            self._open(route)
        logger.debug("Disconnected %s <-> %s", a, b)

    def disconnect_all(self) -> None:
        """Open every relay."""
        with self._lock:
            self._open_all()

    def is_connected(self, a: int | str, b: int | str) -> bool:
        """Return True if the relay joining the two channels is closed."""
        return self._is_closed(self._checked_route(a, b))

    def wait_for_debounce(self, timeout: float | None = None) -> None:
        """Block until all relay operations have settled."""
        self._unsupported("debounce wait")

    def _checked_route(self, a: int | str, b: int | str, *, connecting: bool = False) -> Any:
        first = self.channel(a)
        second = self.channel(b)
        if first.index == second.index:
            raise InvalidTopologyError(f"Cannot connect {first.name} to itself")
        if connecting and first.index in self._sources and second.index in self._sources:
            raise InvalidTopologyError(
                f"Cannot connect two source channels ({first.name}, {second.name})"
            )
        return self._route(first, second)

    # -- Relay hooks ---------------------------------------------------------

    def _route(self, first: SwitchChannel, second: SwitchChannel) -> Any:
        """Return the relay path joining two channels or raise InvalidTopologyError."""
        self._unsupported("routing")

    def _close(self, route: Any) -> None:
        self._unsupported("connect")

    def _open(self, route: Any) -> None:
        self._unsupported("disconnect")

    def _open_all(self) -> None:
        self._unsupported("disconnect all")

    def _is_closed(self, route: Any) -> bool:
        self._unsupported("connection query")


# -- Generic SCPI matrix -----------------------------------------------------


def matrix_channel_names(rows: int, columns: int) -> tuple[str, ...]:
    """Physical channel names of a matrix: ``Row1..RowN`` then ``Col1..ColM``."""
    return tuple(f"Row{r}" for r in range(1, rows + 1)) + tuple(
        f"Col{c}" for c in range(1, columns + 1)
    )


class ScpiMatrixSwitch(Switch):
    """Generic SCPI row/column relay matrix.

    The relay at row ``r`` and column ``c`` (1-based) is channel
    ``r * 100 + c`` in ``ROUT:CLOS (@...)`` channel lists, as on Keysight
    34934A style modules.

    Args:
        session: Open session to the instrument.
        rows: Number of matrix rows.
        columns: Number of matrix columns.
        wire_mode: Conductors switched per crossing.
        **kwargs: Passed to :class:`Instrument`.
    """

    def __init__(
        self,
        session: ScpiSession,
        *,
        rows: int = 4,
        columns: int = 8,
        wire_mode: int = 1,
        channel_names: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> None:
        if not 1 <= rows <= 99 or not 1 <= columns <= 99:
            raise DomainError(f"Unsupported matrix size {rows}x{columns}")
        if wire_mode < 1:
            raise DomainError(f"Wire mode must be at least 1, got {wire_mode}")
        names = matrix_channel_names(rows, columns) if channel_names is None else channel_names
        if len(names) != rows + columns:
            raise DomainError(f"Expected {rows + columns} channel names, got {len(names)}")
        self._topology = SwitchTopology(rows, columns, wire_mode)
        super().__init__(session, channel_names=names, **kwargs)

    def topology(self) -> SwitchTopology:
        return self._topology

    def _route(self, first: SwitchChannel, second: SwitchChannel) -> int:
        rows = self._topology.rows
        a_is_row = first.index < rows
        b_is_row = second.index < rows
        if a_is_row == b_is_row:
            kind = "rows" if a_is_row else "columns"
            raise InvalidTopologyError(
                f"No path between {first.name} and {second.name}: both are {kind}"
            )
        row, column = (first, second) if a_is_row else (second, first)
        return (row.index + 1) * 100 + (column.index - rows + 1)

    def _close(self, route: int) -> None:
        self._command(f"ROUT:CLOS (@{route})")

    def _open(self, route: int) -> None:
        self._command(f"ROUT:OPEN (@{route})")

    def _open_all(self) -> None:
        self._command("ROUT:OPEN:ALL")

    def _is_closed(self, route: int) -> bool:
        return self._query_bool(f"ROUT:CLOS? (@{route})")

    def wait_for_debounce(self, timeout: float | None = None) -> None:
        self._session.wait_complete(timeout)


def create_instrument(
    resource: str,
    *,
    gpib_controllers: Mapping[int, GpibController] | None = None,
    timeout: float = 5.0,
    reset: bool = False,
    clear: bool = False,
    aliases: Mapping[str, int | str] | None = None,
    **kwargs: Any,
) -> ScpiMatrixSwitch:
    """Open a generic SCPI switch matrix.

    Factory function for bench configuration.

    Example YAML config:
        matrix:
          driver: "benchlink_drivers.swtch:create_instrument"
          resource: "TCPIP0::10.0.0.7::5025::SOCKET"
          aliases: {"dmm_hi": "Row1", "tp3": "Col3"}
          kwargs:
            rows: 4
            columns: 8
    """
    return create_driver(
        ScpiMatrixSwitch,
        resource,
        gpib_controllers=gpib_controllers,
        timeout=timeout,
        reset=reset,
        clear=clear,
        aliases=aliases,
        **kwargs,
    )
