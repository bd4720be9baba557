"""Command session over a byte transport.

This module provides :class:`ScpiSession`, which owns one transport and
serializes every command and query sent through it. It encodes commands,
decodes and trims responses, applies transport quirks (a trailing read after
every write on read-after-write buses), attaches the command text to every
transport fault, and offers the IEEE 488.2 common commands and error-queue
checking.

Typical usage::

    from benchlink_scpi import ScpiSession, TcpSocketTransport

    transport = TcpSocketTransport("192.168.1.10")
    transport.open()
    session = ScpiSession(transport, timeout=2.0)

    identity = session.get_identity()
    session.command("VOLT 5")
    voltage = float(session.query("MEAS:VOLT?"))

    session.close()
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

from benchlink_core.errors import (
    DeviceReportedError,
    DisconnectedError,
    DomainError,
    IncompleteResponseError,
    InstrumentError,
    MalformedResponseError,
    ResponseTimeoutError,
    SessionBusyError,
    TransportError,
)
from benchlink_core.types.common import InstrumentIdentity

if TYPE_CHECKING:
    from benchlink_scpi.transport import Transport

logger = logging.getLogger(__name__)

# Matches SCPI error responses: optional +/- code, comma, optional quoted message.
_ERROR_RE = re.compile(r"^\s*([+-]?\d+)\s*,\s*\"?([^\"]*)\"?\s*$")

# Upper bound on SYST:ERR? reads in one drain, in case an instrument never
# reports an empty queue.
_MAX_ERROR_READS = 64


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard response is four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    Extra fields are joined into the firmware string.

    Args:
        response: The trimmed ``*IDN?`` response.

    Returns:
        Parsed identity.

    Raises:
        MalformedResponseError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise MalformedResponseError(
            f"Expected at least 4 comma-separated fields in *IDN? response, got {len(parts)}",
            payload=response,
            command="*IDN?",
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


class SessionState(Enum):
    """Lifecycle state of a :class:`ScpiSession`."""

    IDLE = "idle"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    CLOSED = "closed"


class ScpiSession:
    """Serialized command/response session wrapping one transport.

    At most one command pipeline runs at a time. A second caller either
    waits for the first (``blocking=True``, optionally bounded by
    ``lock_timeout``) or fails immediately with :class:`SessionBusyError`.

    Args:
        transport: An open transport. The session owns it from now on.
        blocking: Wait for a busy session instead of failing.
        lock_timeout: Maximum seconds to wait for a busy session; ``None``
            waits forever. Ignored when ``blocking`` is False.
        drain_after_write: Perform one trailing read after every
            :meth:`command` and discard it. Needed for buses that read
            back after every write (GPIB controllers in auto mode).
        timeout: Default per-query receive timeout in seconds. ``None``
            uses the transport's own default.
        check_errors: Drain ``SYST:ERR?`` after every command and query and
            raise :class:`DeviceReportedError` when it is not empty.

    Example:
        >>> session = ScpiSession(transport, check_errors=True)
        >>> session.reset()
        >>> session.query("MEAS:VOLT:DC?")
        '+1.23450000E+00'
    """

    def __init__(
        self,
        transport: Transport,
        *,
        blocking: bool = True,
        lock_timeout: float | None = None,
        drain_after_write: bool = False,
        timeout: float | None = None,
        check_errors: bool = False,
    ) -> None:
        self._transport = transport
        self._blocking = blocking
        self._lock_timeout = lock_timeout
        self._drain_after_write = drain_after_write
        self._timeout = timeout
        self._check_errors = check_errors
        self._lock = threading.Lock()
        self._state = SessionState.IDLE

    # -- Properties ----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_closed(self) -> bool:
        """Return True once :meth:`close` has been called."""
        return self._state is SessionState.CLOSED

    @property
    def transport(self) -> Transport:
        """The wrapped transport."""
        return self._transport

    @property
    def timeout(self) -> float | None:
        """Default per-query receive timeout in seconds."""
        return self._timeout

    @property
    def drain_after_write(self) -> bool:
        """Whether a trailing read follows every command."""
        return self._drain_after_write

    # -- Core operations -----------------------------------------------------

    def command(self, cmd: str, *, check: bool | None = None) -> None:
        """Send a command that produces no response.

        Args:
            cmd: The command string (e.g. ``"VOLT 5"``).
            check: Override the session-level error check setting.

        Raises:
            DisconnectedError: If the session is closed or the write fails.
            SessionBusyError: If the session is busy and may not wait.
            DeviceReportedError: If error checking is on and the instrument
                reports errors.
        """
        with self._exclusive():
            self._send(cmd)
            if self._drain_after_write:
                self._drain(cmd)
            self._check(check, cmd)

    def query(
        self,
        cmd: str,
        *,
        timeout: float | None = None,
        allow_incomplete: bool = False,
        check: bool | None = None,
    ) -> str:
        """Send a query and return its response.

        Args:
            cmd: The query string (e.g. ``"MEAS:VOLT?"``).
            timeout: Receive timeout for this call; defaults to the session timeout.
            allow_incomplete: Return a truncated response instead of raising
                :class:`IncompleteResponseError`.
            check: Override the session-level error check setting.

        Returns:
            The decoded response with surrounding whitespace trimmed.

        Raises:
            ResponseTimeoutError: If no response arrives in time.
            IncompleteResponseError: If the response is truncated and
                ``allow_incomplete`` is False.
            MalformedResponseError: If the response is not ASCII.
            DisconnectedError: If the session is closed or the link fails.
            SessionBusyError: If the session is busy and may not wait.
        """
        with self._exclusive():
            self._send(cmd)
            response = self._receive(cmd, timeout, allow_incomplete)
            self._check(check, cmd)
            return response

    # -- IEEE 488.2 convenience methods --------------------------------------

    def identify(self) -> str:
        """Query the raw identification string (``*IDN?``)."""
        return self.query("*IDN?")

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse the instrument identification (``*IDN?``).

        Raises:
            MalformedResponseError: If the response has fewer than four fields.
        """
        return parse_idn_response(self.identify())

    def reset(self) -> None:
        """Reset the instrument to its power-on state (``*RST``)."""
        self.command("*RST")

    def clear_status(self) -> None:
        """Clear status registers and the error queue (``*CLS``)."""
        self.command("*CLS")

    def wait_complete(self, timeout: float | None = None) -> None:
        """Block until pending operations complete (``*OPC?``).

        Error checking is skipped for this query.
        """
        self.query("*OPC?", timeout=timeout, check=False)

    # -- Error queue ---------------------------------------------------------

    def get_errors(self) -> tuple[InstrumentError, ...]:
        """Drain the instrument error queue.

        Repeatedly queries ``SYST:ERR?`` until the instrument reports
        code 0.

        Returns:
            Every queued error, oldest first. Empty if none.
        """
        with self._exclusive():
            return self._drain_errors()

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the session and its transport.

        Safe to call multiple times. Every later call raises
        :class:`DisconnectedError`.
        """
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            try:
                self._transport.close()
            except Exception:  # pylint: disable=broad-except
                logger.warning("Error closing transport", exc_info=True)
        logger.info("Session closed")

    # -- Private helpers -----------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the session lock for one command pipeline."""
        if self._state is SessionState.CLOSED:
            raise DisconnectedError("Session is closed")
        if not self._blocking:
            acquired = self._lock.acquire(blocking=False)
        elif self._lock_timeout is not None:
            acquired = self._lock.acquire(timeout=self._lock_timeout)
        else:
            acquired = self._lock.acquire()
        if not acquired:
            raise SessionBusyError("Session has a command in flight")
        try:
            if self._state is SessionState.CLOSED:
                raise DisconnectedError("Session is closed")
            yield
        finally:
            if self._state is not SessionState.CLOSED:
                self._state = SessionState.IDLE
            self._lock.release()

    def _send(self, cmd: str) -> None:
        try:
            data = cmd.encode("ascii")
        except UnicodeEncodeError:
            raise DomainError(f"Command is not ASCII: {cmd!r}") from None
        self._state = SessionState.SENDING
        logger.debug("-> %s", cmd)
        try:
            self._transport.send(data)
        except TransportError as exc:
            exc.command = cmd
            raise
        except OSError as exc:
            raise DisconnectedError(f"Write failed: {exc}", command=cmd) from exc

    def _receive_raw(self, cmd: str, timeout: float | None) -> bytes:
        self._state = SessionState.AWAITING_RESPONSE
        effective = self._timeout if timeout is None else timeout
        try:
            return self._transport.receive(effective)
        except TransportError as exc:
            exc.command = cmd
            raise
        except OSError as exc:
            raise DisconnectedError(f"Read failed: {exc}", command=cmd) from exc

    def _receive(self, cmd: str, timeout: float | None, allow_incomplete: bool) -> str:
        try:
            raw = self._receive_raw(cmd, timeout)
        except IncompleteResponseError as exc:
            if not allow_incomplete:
                raise
            logger.debug("Accepting truncated response to %r", cmd)
            raw = exc.partial
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError:
            raise MalformedResponseError(
                "Response is not ASCII", payload=raw, command=cmd
            ) from None
        response = text.strip()
        logger.debug("<- %s", response)
        return response

    def _drain(self, cmd: str) -> None:
        """Discard the trailing read that follows a write."""
        try:
            raw = self._receive_raw(cmd, self._timeout)
        except (ResponseTimeoutError, IncompleteResponseError):
            logger.debug("Nothing to drain after %r", cmd)
            return
        logger.debug("Drained %r after %r", raw, cmd)

    def _check(self, override: bool | None, cmd: str) -> None:
        should_check = self._check_errors if override is None else override
        if not should_check:
            return
        errors = self._drain_errors()
        if errors:
            raise DeviceReportedError(errors, command=cmd)

    def _drain_errors(self) -> tuple[InstrumentError, ...]:
        errors: list[InstrumentError] = []
        for _ in range(_MAX_ERROR_READS):
            self._send("SYST:ERR?")
            raw = self._receive("SYST:ERR?", None, False)
            error = self._parse_error_response(raw)
            if error is None:
                break
            errors.append(error)
        else:
            logger.warning("Error queue not empty after %d reads", _MAX_ERROR_READS)
        return tuple(errors)

    @staticmethod
    def _parse_error_response(raw: str) -> InstrumentError | None:
        """Parse a ``SYST:ERR?`` response; ``None`` means no error (code 0).

        Raises:
            MalformedResponseError: If the response is not ``code,"message"``.
        """
        match = _ERROR_RE.match(raw)
        if match is None:
            raise MalformedResponseError(
                "Unrecognized SYST:ERR? response", payload=raw, command="SYST:ERR?"
            )
        code = int(match.group(1))
        if code == 0:
            return None
        return InstrumentError(code=code, message=match.group(2).strip())
