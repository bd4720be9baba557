"""Types for the switch capability group."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SwitchTopology:
    """Wiring topology of a switch matrix.

    Attributes:
        rows: Number of matrix rows.
        columns: Number of matrix columns.
        wire_mode: Number of conductors switched per channel.
    """

    rows: int
    columns: int
    wire_mode: int = 1

    @property
    def description(self) -> str:
        """Human-readable topology, e.g. ``"4x8 matrix, 1-wire"``."""
        return f"{self.rows}x{self.columns} matrix, {self.wire_mode}-wire"
