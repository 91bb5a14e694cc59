"""Abstract display transport and its error types.

WHY: The session loop pushes rendered frames to a remote display
surface but must not care how they travel (in-memory buffer polled over
HTTP, webhook, terminal). This base class fixes the one operation the
loop needs and the error that means "this session's channel is gone".

HOW: BaseTransport is an ABC with a single display() method. Transports
raise TransportClosedError when the session's channel is closed and
TransportError for any other delivery failure.

RULES:
- display() is synchronous and runs on the event loop thread, so it must
  not block; network transports hand delivery to an asyncio task
- TransportClosedError means: stop ticking this session, nothing else
- Transports never raise for other sessions' problems
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class TransportError(Exception):
    """Raised when a frame could not be delivered.

    RULES:
    - session_id identifies the affected session
    """

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        self.message = message
        super().__init__("[Session {}]: {}".format(session_id, message))


class TransportClosedError(TransportError):
    """Raised when the session's display channel is closed."""


class BaseTransport(ABC):
    """Abstract base for all display transports.

    To add a new transport:
    1. Create a new module in transport/
    2. Subclass BaseTransport
    3. Implement display()
    """

    @abstractmethod
    def display(self, session_id: str, text: str, duration_ms: int) -> None:
        """Push one frame to the session's display.

        Args:
            session_id: Target session.
            text: The rendered frame (header line + visible lines).
            duration_ms: How long the display keeps the frame if no
                         further update arrives.

        Raises:
            TransportClosedError: The session's channel is closed.
            TransportError: Any other delivery failure.
        """

    def open_session(self, session_id: str) -> None:
        """Called when a session starts, before its first frame."""

    def close_session(self, session_id: str) -> None:
        """Called when a session stops; later frames may be rejected."""

    def close(self) -> None:
        """Release transport resources (connection pools, streams)."""
