"""Console transport: draw frames in a terminal for local previews."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from teleprompter.transport.base import BaseTransport, TransportClosedError

# Clear screen + cursor home
_CLEAR = "\x1b[2J\x1b[H"


class ConsoleTransport(BaseTransport):
    """Writes every frame to a text stream, redrawing the screen.

    RULES:
    - clear=False appends frames separated by a blank line (for logs/tests)
    - A closed stream raises TransportClosedError
    """

    def __init__(self, stream: Optional[TextIO] = None, clear: bool = True) -> None:
        self._stream = stream or sys.stdout
        self._clear = clear

    def display(self, session_id: str, text: str, duration_ms: int) -> None:
        if self._stream.closed:
            raise TransportClosedError(session_id, "Console stream is closed")
        prefix = _CLEAR if self._clear else ""
        self._stream.write("{}{}\n\n".format(prefix, text))
        self._stream.flush()
