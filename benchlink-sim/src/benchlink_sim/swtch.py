"""Relay matrix emulator.

Relays are addressed with SCPI channel lists: ``(@101,203)`` or ranges
such as ``(@101:104)``, where channel ``r * 100 + c`` is the crossing of
row ``r`` and column ``c`` (both 1-based).
"""

from __future__ import annotations

from benchlink_sim.emulator import ScpiEmulator


class SwitchMatrixEmulator(ScpiEmulator):
    """In-process row/column relay matrix.

    Args:
        identity: ``*IDN?`` response string.
        rows: Number of rows.
        columns: Number of columns.
    """

    def __init__(self, identity: str, rows: int = 4, columns: int = 8) -> None:
        super().__init__(identity)
        self._rows = rows
        self._columns = columns
        self._closed_relays: set[int] = set()
        self._cycles: dict[int, int] = {}

        self.register("ROUT:CLOS", self._close)
        self.register("ROUT:CLOS?", self._query_closed)
        self.register("ROUT:OPEN", self._open)
        self.register("ROUT:OPEN:ALL", self._open_all)

    # -- Test helpers -------------------------------------------------------

    @property
    def closed_relays(self) -> frozenset[int]:
        """Channel numbers of the relays currently closed."""
        return frozenset(self._closed_relays)

    def cycle_count(self, channel: int) -> int:
        """Number of times the relay at ``channel`` has closed."""
        return self._cycles.get(channel, 0)

    def reset(self) -> None:
        self._closed_relays.clear()

    # -- Channel lists ------------------------------------------------------

    def _check(self, channel: int) -> int:
        row, column = divmod(channel, 100)
        if not (1 <= row <= self._rows and 1 <= column <= self._columns):
            raise ValueError(f"Channel {channel} not in a {self._rows}x{self._columns} matrix")
        return channel

    def _parse_list(self, args: str) -> list[int]:
        text = args.strip()
        if not (text.startswith("(@") and text.endswith(")")):
            raise ValueError(f"Not a channel list: {args!r}")
        channels: list[int] = []
        for item in text[2:-1].split(","):
            if ":" in item:
                first, last = (int(part) for part in item.split(":", 1))
                for channel in range(first, last + 1):
                    if 1 <= channel % 100 <= self._columns:
                        channels.append(self._check(channel))
            else:
                channels.append(self._check(int(item)))
        return channels

    # -- Handlers -----------------------------------------------------------

    def _close(self, args: str, _index: int | None) -> None:
        for channel in self._parse_list(args):
            if channel not in self._closed_relays:
                self._cycles[channel] = self._cycles.get(channel, 0) + 1
            self._closed_relays.add(channel)

    def _open(self, args: str, _index: int | None) -> None:
        for channel in self._parse_list(args):
            self._closed_relays.discard(channel)

    def _open_all(self, _args: str, _index: int | None) -> None:
        self._closed_relays.clear()

    def _query_closed(self, args: str, _index: int | None) -> str:
        closed = self._closed_relays
        return ",".join("1" if ch in closed else "0" for ch in self._parse_list(args))


def make_34934a_emulator(serial: str = "MY00000001") -> SwitchMatrixEmulator:
    """Create a 4x8 relay matrix emulator in the style of a 34980A/34934A."""
    return SwitchMatrixEmulator(
        f"Agilent Technologies,34980A,{serial},2.43-2.43-0.00-0.00", rows=4, columns=8
    )
