"""In-memory frame buffer transport.

WHY: Display surfaces that poll (GET /sessions/{id}/frame) need the last
frame pushed to each session. Keeping that frame in memory is enough:
frames are ephemeral and nothing is persisted.

HOW: The buffer tracks which sessions are open. display() stores the
frame for an open session (and optionally forwards it to another
transport); for a closed or unknown session it raises
TransportClosedError, which the loop treats as "session gone".

RULES:
- open_session() must be called before frames are accepted
- close_session() keeps nothing: the last frame is dropped with it
- Forwarding failures propagate unchanged to the caller
- open_session() / close_session() are passed on to the forward transport
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Set

from teleprompter.transport.base import BaseTransport, TransportClosedError

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """The last frame pushed to a session."""

    text: str
    duration_ms: int
    shown_at: float


class FrameBufferTransport(BaseTransport):
    """Keeps the latest frame per open session, optionally forwarding it."""

    def __init__(self, forward: Optional[BaseTransport] = None) -> None:
        self._frames: Dict[str, Frame] = {}
        self._open: Set[str] = set()
        self._forward = forward
        self._lock = threading.Lock()

    def open_session(self, session_id: str) -> None:
        with self._lock:
            self._open.add(session_id)
        if self._forward is not None:
            self._forward.open_session(session_id)

    def close_session(self, session_id: str) -> None:
        with self._lock:
            self._open.discard(session_id)
            self._frames.pop(session_id, None)
        if self._forward is not None:
            self._forward.close_session(session_id)

    def is_open(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._open

    def get_frame(self, session_id: str) -> Optional[Frame]:
        with self._lock:
            return self._frames.get(session_id)

    def display(self, session_id: str, text: str, duration_ms: int) -> None:
        with self._lock:
            if session_id not in self._open:
                raise TransportClosedError(session_id, "Display channel is closed")
            self._frames[session_id] = Frame(
                text=text,
                duration_ms=duration_ms,
                shown_at=time.time(),
            )

        if self._forward is not None:
            self._forward.display(session_id, text, duration_ms)

    def close(self) -> None:
        if self._forward is not None:
            self._forward.close()
