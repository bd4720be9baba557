"""Per-address view of a GPIB bus."""

from __future__ import annotations

from typing import TYPE_CHECKING

from benchlink_core.errors import DisconnectedError

if TYPE_CHECKING:
    from benchlink_prologix.controller import PrologixController


class GpibDevice:
    """Transport bound to one instrument behind a :class:`PrologixController`.

    Implements the :class:`~benchlink_scpi.transport.Transport` protocol, so
    it can be handed straight to a :class:`~benchlink_scpi.ScpiSession`.
    Closing the device only detaches it; the controller and its serial port
    stay open for the other instruments on the bus.

    Attributes:
        address: GPIB primary address (0-30).
        secondary_address: Optional secondary address (0-30).
    """

    def __init__(
        self,
        controller: PrologixController,
        address: int,
        secondary_address: int | None = None,
    ) -> None:
        self._controller = controller
        self.address = address
        self.secondary_address = secondary_address
        self._closed = False

    def __repr__(self) -> str:
        return f"GpibDevice(address={self.address}, secondary_address={self.secondary_address})"

    @property
    def controller(self) -> PrologixController:
        """The controller that owns the bus."""
        return self._controller

    @property
    def read_after_write(self) -> bool:
        """Whether the controller reads back automatically after every write."""
        return self._controller.read_after_write

    @property
    def is_open(self) -> bool:
        """Return True until :meth:`close` is called."""
        return not self._closed

    # -- Transport interface -------------------------------------------------

    def send(self, data: bytes) -> None:
        """Address this instrument and send ``data``."""
        self._require_open()
        self._controller.write(self.address, self.secondary_address, data)

    def receive(self, timeout: float | None = None) -> bytes:
        """Address this instrument and read one response."""
        self._require_open()
        return self._controller.read(self.address, self.secondary_address, timeout)

    def close(self) -> None:
        """Detach from the controller. Safe to call multiple times."""
        self._closed = True

    # -- GPIB bus operations -------------------------------------------------

    def clear(self) -> None:
        """Send Selected Device Clear."""
        self._require_open()
        self._controller.clear(self.address, self.secondary_address)

    def local(self) -> None:
        """Return the instrument to front-panel control."""
        self._require_open()
        self._controller.local(self.address, self.secondary_address)

    def serial_poll(self) -> int:
        """Return the instrument's status byte."""
        self._require_open()
        return self._controller.serial_poll(self.address, self.secondary_address)

    def _require_open(self) -> None:
        if self._closed:
            raise DisconnectedError(f"GPIB device at address {self.address} is closed")
