"""In-process SCPI instrument emulator base.

:class:`ScpiEmulator` implements the :class:`~benchlink_scpi.Transport`
protocol, so a session can talk to it directly. Subclasses register
handlers for normalized command headers; the base class parses each
message, answers the IEEE 488.2 common commands and keeps a SCPI error
queue.

Header normalization maps long-form keywords to short form, drops the
optional nodes where they may be omitted (a leading ``SOURce``; ``LEVel``,
``IMMediate``, ``AMPLitude`` and ``DC`` under ``VOLTage``/``CURRent``)
and strips a numeric suffix (``SOUR2``, ``CHAN3``, ``OUTP1``) into a
1-based index passed to the handler. ``SOUR2:VOLT:LEV 1.5`` therefore reaches the
``VOLT`` handler with ``index=2``.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from typing import Callable, Optional

from benchlink_core.errors import DisconnectedError, ResponseTimeoutError

logger = logging.getLogger(__name__)

# Handler signature: (arguments, 1-based index or None) -> response or None.
Handler = Callable[[str, Optional[int]], Optional[str]]

# ---------------------------------------------------------------------------
# Long-form -> short-form SCPI keyword map
# ---------------------------------------------------------------------------

_LONG_TO_SHORT: dict[str, str] = {
    "ACQUIRE": "ACQ",
    "AMPLITUDE": "AMPL",
    "AUTO": "AUTO",
    "BURST": "BURS",
    "CHANNEL": "CHAN",
    "CLOSE": "CLOS",
    "COUPLING": "COUP",
    "CURRENT": "CURR",
    "DISPLAY": "DISP",
    "ERROR": "ERR",
    "FALL": "FALL",
    "FREQUENCY": "FREQ",
    "FUNCTION": "FUNC",
    "HOLDOFF": "HOLD",
    "IMMEDIATE": "IMM",
    "IMPEDANCE": "IMP",
    "INSTRUMENT": "INST",
    "INTERNAL": "INT",
    "LEVEL": "LEV",
    "MEASURE": "MEAS",
    "NCYCLES": "NCYC",
    "NSELECT": "NSEL",
    "OFFSET": "OFFS",
    "OUTPUT": "OUTP",
    "PERIOD": "PER",
    "PHASE": "PHAS",
    "POINTS": "POIN",
    "POSITION": "POS",
    "PROBE": "PROB",
    "PROTECTION": "PROT",
    "RANGE": "RANG",
    "RESISTANCE": "RES",
    "RISE": "RIS",
    "ROUTE": "ROUT",
    "SOURCE": "SOUR",
    "SRATE": "SRAT",
    "STATE": "STAT",
    "SWEEP": "SWE",
    "SYSTEM": "SYST",
    "TERMINALS": "TERM",
    "TIMEBASE": "TIM",
    "TRIGGER": "TRIG",
    "VOLTAGE": "VOLT",
}

# Optional node -> the parent nodes it may be omitted under ("" is the root).
_OPTIONAL_SEGMENTS: dict[str, frozenset[str]] = {
    "SOUR": frozenset({""}),
    "LEV": frozenset({"VOLT", "CURR"}),
    "IMM": frozenset({"VOLT", "CURR", "LEV"}),
    "AMPL": frozenset({"VOLT", "CURR", "LEV", "IMM"}),
    "DC": frozenset({"VOLT", "CURR"}),
}

_SUFFIX_RE = re.compile(r"^([A-Z]+?)(\d+)$")


def normalize_header(header: str) -> tuple[str, int | None]:
    """Normalize a SCPI header to canonical short form.

    Args:
        header: Header without arguments; a trailing ``?`` is kept.

    Returns:
        ``(normalized, index)`` where ``index`` is the first numeric suffix
        found in the header, or ``None``.

    Example:
        >>> normalize_header(":SOURce2:VOLTage:LEVel?")
        ('VOLT?', 2)
    """
    upper = header.strip().upper()
    query = upper.endswith("?")
    if query:
        upper = upper[:-1]
    if upper.startswith(":"):
        upper = upper[1:]
    index: int | None = None
    segments: list[str] = []
    parent = ""
    for segment in upper.split(":"):
        match = _SUFFIX_RE.match(segment)
        if match is not None:
            segment = match.group(1)
            if index is None:
                index = int(match.group(2))
        segment = _LONG_TO_SHORT.get(segment, segment)
        if parent not in _OPTIONAL_SEGMENTS.get(segment, ()):
            segments.append(segment)
        parent = segment
    normalized = ":".join(segments)
    return (normalized + "?" if query else normalized), index


def format_float(value: float) -> str:
    """Format a number as an NR3 response with round-trip precision."""
    return f"{value:+.16E}"


def parse_scpi_bool(text: str) -> bool:
    """Parse a boolean parameter (``ON``/``OFF``/``1``/``0``).

    Raises:
        ValueError: If the token is not a boolean.
    """
    token = text.strip().upper()
    if token in ("ON", "1"):
        return True
    if token in ("OFF", "0"):
        return False
    raise ValueError(f"Invalid boolean: {text!r}")


# ---------------------------------------------------------------------------
# Emulator base
# ---------------------------------------------------------------------------


class ScpiEmulator:
    """Base class for in-process SCPI emulators.

    Args:
        identity: ``*IDN?`` response string.

    Attributes:
        history: Every message received, in order, decoded as text.
    """

    def __init__(self, identity: str) -> None:
        if identity.count(",") < 3:
            raise ValueError(f"identity needs four comma-separated fields: {identity!r}")
        self._identity = identity
        self._handlers: dict[str, Handler] = {}
        self._responses: deque[bytes] = deque()
        self._errors: deque[tuple[int, str]] = deque()
        self._lock = threading.Lock()
        self._drop_next = False
        self._closed = False
        self.history: list[str] = []

    # -- Handler registration -----------------------------------------------

    def register(self, header: str, handler: Handler) -> None:
        """Register ``handler`` for a header (normalized before storing).

        Raises:
            ValueError: If another header already normalizes to the same key.
        """
        normalized, _ = normalize_header(header)
        if normalized in self._handlers:
            raise ValueError(f"Header {header!r} collides with registered {normalized!r}")
        self._handlers[normalized] = handler

    # -- Transport interface ------------------------------------------------

    def send(self, data: bytes) -> None:
        """Process one command or query message."""
        if self._closed:
            raise DisconnectedError("Emulator is closed")
        line = data.decode("ascii").strip()
        with self._lock:
            self.history.append(line)
            if line:
                self._process(line)

    def receive(self, timeout: float | None = None) -> bytes:
        """Return the oldest pending response.

        Raises:
            ResponseTimeoutError: If no response is pending.
        """
        if self._closed:
            raise DisconnectedError("Emulator is closed")
        with self._lock:
            if not self._responses:
                raise ResponseTimeoutError("No response pending")
            return self._responses.popleft()

    def close(self) -> None:
        """Mark the emulator closed. Idempotent."""
        self._closed = True

    # -- Test helpers -------------------------------------------------------

    @property
    def commands(self) -> list[str]:
        """:attr:`history` without the ``SYST:ERR?`` polls."""
        return [
            line
            for line in self.history
            if normalize_header(line.split(None, 1)[0] if line else "")[0] != "SYST:ERR?"
        ]

    @property
    def pending(self) -> int:
        """Number of responses waiting to be read."""
        return len(self._responses)

    @property
    def errors(self) -> tuple[tuple[int, str], ...]:
        """Snapshot of the error queue."""
        return tuple(self._errors)

    def drop_next_response(self) -> None:
        """Discard the response to the next query, as if it were lost."""
        self._drop_next = True

    def device_clear(self) -> None:
        """Discard pending responses (GPIB selected device clear)."""
        with self._lock:
            self._responses.clear()

    def push_error(self, code: int, message: str) -> None:
        """Append an entry to the error queue."""
        self._errors.append((code, message))

    def reopen(self) -> None:
        """Undo :meth:`close` so the emulator can be reused."""
        self._closed = False

    # -- Parsing and dispatch -----------------------------------------------

    @staticmethod
    def _parse_line(line: str) -> tuple[bool, str, str]:
        """Split a message into ``(is_query, header, args)``."""
        is_query = "?" in line.split(None, 1)[0]
        if is_query:
            qmark = line.index("?")
            return True, line[: qmark + 1], line[qmark + 1 :].strip()
        parts = line.split(None, 1)
        return False, parts[0], parts[1] if len(parts) > 1 else ""

    def _process(self, line: str) -> None:
        is_query, header, args = self._parse_line(line)
        response = self._common(header.upper())
        if response is None:
            normalized, index = normalize_header(header)
            handler = self._handlers.get(normalized)
            if handler is None:
                self._errors.append((-113, "Undefined header"))
                logger.debug("Undefined header %r", header)
                return
            try:
                response = handler(args, index)
            except (ValueError, KeyError, IndexError) as exc:
                self._errors.append((-224, "Illegal parameter value"))
                logger.debug("Rejected %r: %s", line, exc)
                return
        if is_query and response is not None:
            if self._drop_next:
                self._drop_next = False
                return
            self._responses.append(response.encode("ascii"))

    def _common(self, header: str) -> str | None:
        """Answer IEEE 488.2 common commands and ``SYST:ERR?``; ``""`` means handled."""
        if header == "*IDN?":
            return self._identity
        if header == "*OPC?":
            return "1"
        if header == "*ESR?":
            return "0"
        if header in ("*OPC", "*WAI"):
            return ""
        if header == "*RST":
            self.reset()
            return ""
        if header == "*CLS":
            self._errors.clear()
            return ""
        if normalize_header(header)[0] == "SYST:ERR?":
            if self._errors:
                code, message = self._errors.popleft()
                return f'{code:+d},"{message}"'
            return '+0,"No error"'
        return None

    def reset(self) -> None:
        """Restore power-on settings. Subclasses extend this."""
