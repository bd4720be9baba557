"""USB-TMC transport backed by python-usbtmc.

The ``usbtmc`` module (and through it pyusb) is imported lazily on
:meth:`UsbTmcTransport.open`. Install it with ``pip install benchlink[usb]``.
"""

from __future__ import annotations

import errno
import logging
from typing import Any

from benchlink_core.errors import (
    DisconnectedError,
    ResponseTimeoutError,
    TransportOpenError,
)

logger = logging.getLogger(__name__)


def _is_usb_timeout(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    if type(exc).__name__ == "USBTimeoutError":
        return True
    return getattr(exc, "errno", None) == errno.ETIMEDOUT


class UsbTmcTransport:
    """Transport to a USB-TMC instrument.

    USB-TMC carries message boundaries in its bulk headers, so no read
    terminator is needed on the wire; a trailing ``read_termination`` is
    still stripped when the instrument sends one.

    Args:
        vendor_id: USB vendor id (e.g. ``0x0957`` for Agilent).
        product_id: USB product id.
        serial_number: Serial number to pick one of several identical devices.
        timeout: Default receive timeout in seconds.
        write_termination: Bytes appended to every outgoing message.
        read_termination: Bytes stripped from the end of a response.
    """

    def __init__(
        self,
        vendor_id: int,
        product_id: int,
        serial_number: str | None = None,
        *,
        timeout: float = 5.0,
        write_termination: bytes = b"\n",
        read_termination: bytes = b"\n",
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._serial_number = serial_number
        self._timeout = timeout
        self._write_termination = write_termination
        self._read_termination = read_termination
        self._device: Any = None

    @property
    def description(self) -> str:
        """Device address as ``vid:pid[:serial]`` in hex."""
        text = f"{self._vendor_id:04x}:{self._product_id:04x}"
        if self._serial_number:
            text += f":{self._serial_number}"
        return text

    @property
    def is_open(self) -> bool:
        """Return True if the device is open."""
        return self._device is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Claim the USB-TMC interface.

        Raises:
            TransportOpenError: If python-usbtmc is missing or the device
                cannot be found or claimed.
        """
        if self._device is not None:
            return

        try:
            import usbtmc  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise TransportOpenError(
                "python-usbtmc library is not installed. "
                "Install with: pip install python-usbtmc pyusb"
            ) from exc

        try:
            if self._serial_number is None:
                device = usbtmc.Instrument(self._vendor_id, self._product_id)
            else:
                device = usbtmc.Instrument(self._vendor_id, self._product_id, self._serial_number)
            device.timeout = self._timeout
            device.open()
        except Exception as exc:
            raise TransportOpenError(
                f"Failed to open USB-TMC device {self.description}: {exc}"
            ) from exc
        self._device = device
        logger.info("Opened USB-TMC device %s", self.description)

    def close(self) -> None:
        """Release the device. Safe to call multiple times."""
        if self._device is None:
            return
        try:
            self._device.close()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Error closing USB-TMC device %s", self.description)
        self._device = None
        logger.info("Closed USB-TMC device %s", self.description)

    # -- Transport interface -------------------------------------------------

    def send(self, data: bytes) -> None:
        """Write one message framed with the write terminator."""
        device = self._require_open()
        try:
            device.write_raw(data + self._write_termination)
        except Exception as exc:
            raise DisconnectedError(f"USB-TMC write to {self.description} failed: {exc}") from exc

    def receive(self, timeout: float | None = None) -> bytes:
        """Read one response message.

        Raises:
            ResponseTimeoutError: If the bulk-in transfer times out.
            DisconnectedError: If the device is closed or the read fails.
        """
        device = self._require_open()
        previous = device.timeout
        if timeout is not None:
            device.timeout = timeout
        try:
            raw: bytes = bytes(device.read_raw())
        except Exception as exc:
            if _is_usb_timeout(exc):
                raise ResponseTimeoutError(
                    f"No response from USB-TMC device {self.description}"
                ) from exc
            raise DisconnectedError(
                f"USB-TMC read from {self.description} failed: {exc}"
            ) from exc
        finally:
            if timeout is not None:
                device.timeout = previous
        if self._read_termination and raw.endswith(self._read_termination):
            raw = raw[: -len(self._read_termination)]
        return raw

    def _require_open(self) -> Any:
        if self._device is None:
            raise DisconnectedError(f"USB-TMC device {self.description} is not open")
        return self._device
