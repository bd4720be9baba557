"""Byte transport protocol definition.

This module defines the :class:`Transport` protocol, the interface every
transport implementation provides to :class:`ScpiSession`. A transport owns
the framing of its bus: it appends the write terminator on :meth:`send` and
removes the read terminator on :meth:`receive`, so the session only ever
sees whole messages.

Implementations include:
- :class:`benchlink_scpi.SerialTransport`: RS-232 via pyserial
- :class:`benchlink_scpi.TcpSocketTransport`: LXI raw socket (port 5025)
- :class:`benchlink_scpi.UsbTmcTransport`: USB-TMC via python-usbtmc
- :class:`benchlink_scpi.VisaTransport`: PyVISA resource manager
- :class:`benchlink_prologix.GpibDevice`: one address behind a GPIB controller
- Emulators in :mod:`benchlink_sim`
"""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """Protocol for message transport to an instrument.

    This is a structural subtyping protocol. Any class with ``send()``,
    ``receive()`` and ``close()`` methods of the right shape is a valid
    transport. Callers open concrete transports before handing them to a
    session.

    Example:
        >>> class LoopbackTransport:
        ...     def __init__(self) -> None:
        ...         self._last = b""
        ...     def send(self, data: bytes) -> None:
        ...         self._last = data
        ...     def receive(self, timeout: float | None = None) -> bytes:
        ...         return self._last
        ...     def close(self) -> None:
        ...         pass
        ...
        >>> transport: Transport = LoopbackTransport()
    """

    def send(self, data: bytes) -> None:
        """Send one message to the instrument.

        Args:
            data: Message bytes without the write terminator.

        Raises:
            DisconnectedError: If the transport is closed or the write fails.
        """
        ...

    def receive(self, timeout: float | None = None) -> bytes:
        """Receive one response from the instrument.

        Args:
            timeout: Seconds to wait for a complete response. ``None`` uses
                the transport's configured timeout.

        Returns:
            The response bytes with the read terminator removed.

        Raises:
            ResponseTimeoutError: If no complete response arrives in time.
            IncompleteResponseError: If the stream ends mid-response.
            DisconnectedError: If the transport is closed or the read fails.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources. Idempotent."""
        ...
