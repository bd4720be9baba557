"""PyVISA transport for instruments.

This module provides a VISA-based transport implementation. It wraps the
PyVISA library, which is lazily imported to allow the rest of
benchlink-scpi to work without VISA installed.

Supported resource string formats include anything the installed VISA
library understands, for example:
- TCPIP: ``TCPIP::192.168.1.100::INSTR`` (VXI-11 instruments)
- USB: ``USB0::0x0957::0x0407::MY12345678::0::INSTR``
- GPIB: ``GPIB0::22::INSTR``
- Serial: ``ASRL1::INSTR``
"""

from __future__ import annotations

import logging
from typing import Any

from benchlink_core.errors import (
    DisconnectedError,
    ResponseTimeoutError,
    TransportOpenError,
)

logger = logging.getLogger(__name__)

# VI_ERROR_TMO: timeout expired before operation completed.
_VI_ERROR_TMO = -1073807339


def _is_visa_timeout(exc: BaseException) -> bool:
    return getattr(exc, "error_code", None) == _VI_ERROR_TMO


class VisaTransport:
    """Transport backed by a PyVISA resource manager.

    The ``pyvisa`` library is imported lazily on :meth:`open`. If a
    ``resource_manager`` is supplied it is used as-is and is not closed by
    :meth:`close`; otherwise one is created on open (with ``backend``, e.g.
    ``"@py"``) and owned by the transport.

    Attributes:
        resource_string: The VISA resource address string.
        is_open: Whether the resource is currently open.

    Args:
        resource_string: VISA resource address.
        resource_manager: Optional caller-owned ``pyvisa.ResourceManager``.
        backend: VISA backend passed to ``ResourceManager`` when one is created.
        timeout: Default receive timeout in seconds.
        write_termination: Bytes appended to every outgoing message.
        read_termination: Bytes that end an incoming response.

    Example:
        >>> transport = VisaTransport("TCPIP::192.168.1.100::INSTR")
        >>> transport.open()
        >>> transport.send(b"*IDN?")
        >>> print(transport.receive())
        >>> transport.close()
    """

    def __init__(
        self,
        resource_string: str,
        resource_manager: Any = None,
        backend: str = "",
        *,
        timeout: float = 5.0,
        write_termination: bytes = b"\n",
        read_termination: bytes = b"\n",
    ) -> None:
        self._resource_string = resource_string
        self._rm: Any = resource_manager
        self._owns_rm = resource_manager is None
        self._backend = backend
        self._timeout = timeout
        self._write_termination = write_termination
        self._read_termination = read_termination
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Raises:
            TransportOpenError: If ``pyvisa`` is not installed or the
                resource cannot be opened.
        """
        if self._resource is not None:
            return

        if self._rm is None:
            try:
                import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
            except ImportError as exc:
                raise TransportOpenError(
                    "pyvisa library is not installed. Install with: pip install pyvisa"
                ) from exc
            try:
                self._rm = pyvisa.ResourceManager(self._backend)
            except Exception as exc:
                self._rm = None
                raise TransportOpenError(
                    f"Failed to create VISA resource manager: {exc}"
                ) from exc

        try:
            self._resource = self._rm.open_resource(
                self._resource_string,
                read_termination=self._read_termination.decode("ascii"),
                write_termination=self._write_termination.decode("ascii"),
            )
            self._resource.timeout = int(self._timeout * 1000)
        except Exception as exc:
            self._resource = None
            self._close_manager()
            raise TransportOpenError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc
        logger.info("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and any owned resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource %s", self._resource_string)
            self._resource = None
            logger.info("Closed VISA resource %s", self._resource_string)
        self._close_manager()

    # -- Transport interface -------------------------------------------------

    def send(self, data: bytes) -> None:
        """Send one message, framed with the write terminator.

        Raises:
            DisconnectedError: If the resource is not open or the write fails.
        """
        resource = self._require_open()
        try:
            resource.write_raw(data + self._write_termination)
        except Exception as exc:
            raise DisconnectedError(f"VISA write failed: {exc}") from exc

    def receive(self, timeout: float | None = None) -> bytes:
        """Read one response and strip the read terminator.

        Args:
            timeout: Seconds to wait; applied to the resource for this call only.

        Raises:
            ResponseTimeoutError: On VISA ``VI_ERROR_TMO``.
            DisconnectedError: If the resource is not open or the read fails.
        """
        resource = self._require_open()
        previous = resource.timeout
        if timeout is not None:
            resource.timeout = int(timeout * 1000)
        try:
            raw: bytes = resource.read_raw()
        except Exception as exc:
            if _is_visa_timeout(exc):
                raise ResponseTimeoutError(
                    f"VISA read timed out on {self._resource_string}"
                ) from exc
            raise DisconnectedError(f"VISA read failed: {exc}") from exc
        finally:
            if timeout is not None:
                resource.timeout = previous
        if raw.endswith(self._read_termination):
            raw = raw[: -len(self._read_termination)]
        return raw

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._resource is None:
            raise DisconnectedError("VISA resource is not open")
        return self._resource

    def _close_manager(self) -> None:
        if self._rm is None or not self._owns_rm:
            return
        try:
            self._rm.close()
        except Exception:  # pylint: disable=broad-except
            logger.debug("Error closing VISA resource manager")
        self._rm = None
