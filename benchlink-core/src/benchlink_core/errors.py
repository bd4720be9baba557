"""Exception types for benchlink.

All benchlink exceptions inherit from :class:`BenchlinkError`, so callers can
catch every library failure with a single except clause. None of these
errors is fatal: an instrument driver remains usable after any one failed
call, and the calling application decides whether to retry, abandon, or
reset the session.

Exception hierarchy:
    BenchlinkError (base)
    +-- TransportError: Transport faults (command text attached)
    |   +-- TransportOpenError: Connection could not be established
    |   +-- DisconnectedError: Connection lost, closed, or write failed
    |   +-- ResponseTimeoutError: No complete response before the deadline
    |   +-- IncompleteResponseError: Stream ended mid-response (non-fatal)
    +-- ProtocolError: Malformed or unexpected responses
    |   +-- MalformedResponseError: Response shape is wrong (payload attached)
    |   +-- DeviceReportedError: Instrument error queue was not empty
    +-- FunctionNotSupportedError: Capability not implemented by the driver
    +-- SessionBusyError: Another command is already in flight
    +-- DomainError: Invalid requested configuration
    |   +-- UnknownChannelError: Channel index, name or alias not found
    |   +-- InvalidTopologyError: Switch connection is not realizable
    +-- ResourceStringError: Resource identifier could not be parsed
    +-- ConfigurationError: Bench configuration is invalid
"""

from __future__ import annotations

from dataclasses import dataclass


class BenchlinkError(Exception):
    """Base exception for all benchlink errors."""


# -- Transport faults --------------------------------------------------------


class TransportError(BenchlinkError):
    """Base class for transport faults.

    Transport faults are always surfaced to the caller and never retried by
    the library, since resubmitting a command is not generally safe.

    Attributes:
        command: The command text that was being executed, if known.
    """

    def __init__(self, message: str, *, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command

    def __str__(self) -> str:
        message = super().__str__()
        if self.command is None:
            return message
        return f"{message} (command: {self.command!r})"


class TransportOpenError(TransportError, ConnectionError):
    """Raised when a transport cannot be opened."""


class DisconnectedError(TransportError):
    """Raised when the connection is lost, closed, or a write fails."""


class ResponseTimeoutError(TransportError, TimeoutError):
    """Raised when a receive call times out.

    The timeout fails the call only; the session stays usable.
    """


class IncompleteResponseError(TransportError):
    """Raised when the stream ends before a complete response arrived.

    Some queries legitimately truncate, so callers may treat this condition
    as benign and use :attr:`partial`.

    Attributes:
        partial: The bytes received before the stream ended.
    """

    def __init__(self, message: str, *, partial: bytes = b"", command: str | None = None) -> None:
        super().__init__(message, command=command)
        self.partial = partial


# -- Protocol faults ---------------------------------------------------------


class ProtocolError(BenchlinkError):
    """Base class for malformed or unexpected responses."""


class MalformedResponseError(ProtocolError):
    """Raised when a response cannot be interpreted.

    Attributes:
        payload: The offending raw response.
        command: The command that produced it, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        payload: str | bytes = "",
        command: str | None = None,
    ) -> None:
        super().__init__(message)
        self.payload = payload
        self.command = command

    def __str__(self) -> str:
        message = super().__str__()
        return f"{message} (payload: {self.payload!r})"


@dataclass(frozen=True)
class InstrumentError:
    """Single entry from an instrument's error queue.

    Attributes:
        code: SCPI error code (negative for standard errors).
        message: Human-readable error description from the instrument.
    """

    code: int
    message: str

    def __str__(self) -> str:
        return f'{self.code},"{self.message}"'


class DeviceReportedError(ProtocolError):
    """Raised when the instrument reports errors after a command or query.

    Attributes:
        errors: Entries drained from the instrument's error queue.
        command: The command after which the errors were found.
    """

    def __init__(
        self,
        errors: tuple[InstrumentError, ...],
        *,
        command: str | None = None,
    ) -> None:
        self.errors = errors
        self.command = command
        messages = "; ".join(str(e) for e in errors)
        suffix = f" after {command!r}" if command is not None else ""
        super().__init__(f"Instrument reported error(s){suffix}: {messages}")


# -- Capability, session and domain faults -----------------------------------


class FunctionNotSupportedError(BenchlinkError):
    """Raised when a driver does not implement a capability or operation.

    Distinct from transport faults so that callers can treat it as expected.
    """


class SessionBusyError(BenchlinkError):
    """Raised when a non-blocking session already has a command in flight."""


class DomainError(BenchlinkError, ValueError):
    """Base class for invalid requested configurations.

    Domain faults are rejected before any command reaches the hardware.
    """


class UnknownChannelError(DomainError, LookupError):
    """Raised when a channel index, name or alias does not exist."""


class InvalidTopologyError(DomainError):
    """Raised when a switch connection cannot be made (e.g. two sources)."""


class ResourceStringError(BenchlinkError, ValueError):
    """Raised when a resource identifier is malformed."""


class ConfigurationError(BenchlinkError, ValueError):
    """Raised when a bench configuration is invalid."""
