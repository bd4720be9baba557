"""Enumerations for the DC power capability group."""

from __future__ import annotations

from enum import Enum


class CurrentLimitBehavior(Enum):
    """What the supply does when the output reaches the current limit.

    Attributes:
        TRIP: Disable the output (over-current protection).
        CLAMP: Regulate at the limit (constant-current operation).
    """

    TRIP = "trip"
    CLAMP = "clamp"
