"""In-memory store of viewer engines and their session handles.

WHY: A viewer may have several display sessions open at once and all of
them must show the same teleprompter. The store is the single owner of
the viewer → engine mapping and the session → handle mapping, with
explicit create / lookup / destroy operations so nothing is created by
accident on a read.

HOW: Two components work together:
  ViewerSession — dataclass for one open session: identities, liveness
                  flag, driver flag, and the timers the loop has armed
  ViewerStore   — dict-based store keyed by viewer id (engines) and
                  session id (handles), guarded by a threading.Lock

RULES:
- get_engine()/get_session() return None for unknown ids (no exceptions)
- create_engine() refuses to overwrite an existing engine (ValueError)
- Engines are destroyed only through destroy_engine() — never implicitly
- Exactly one live session per viewer is the driver (advances the engine)
- Returned objects are the live instances, not copies
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from teleprompter.core.engine import ScrollEngine
from teleprompter.session.scheduler import TimerHandle

logger = logging.getLogger(__name__)


@dataclass
class ViewerSession:
    """Handle for one open display session of a viewer.

    RULES:
    - session_id / viewer_id: immutable after creation
    - live: False once the session is torn down or its transport closed;
      timers that still fire must check it and do nothing
    - drives_engine: True for the one session that calls advance()
    - timers: slot name ("primary", "end_refresh", "replay") → handle
    """

    session_id: str
    viewer_id: str
    created_at: float
    live: bool = True
    drives_engine: bool = False
    timers: Dict[str, TimerHandle] = field(default_factory=dict)

    def cancel_timers(self) -> None:
        """Cancel every armed timer. Safe to call repeatedly."""
        for handle in self.timers.values():
            handle.cancel()
        self.timers.clear()


class ViewerStore:
    """Thread-safe in-memory store for viewer engines and sessions.

    WHY: Lifecycle callbacks, settings pushes and HTTP status reads all
    look up the same engines and sessions. One store with one lock keeps
    the mappings consistent.

    HOW: Engines live in a dict keyed by viewer id, sessions in a dict
    keyed by session id. All public methods acquire self._lock.

    RULES:
    - register_session() for an already-registered session id returns the
      existing handle
    - remove_session() returns the removed handle or None
    - sessions_for() is ordered oldest-first
    """

    def __init__(self) -> None:
        self._engines: Dict[str, ScrollEngine] = {}
        self._sessions: Dict[str, ViewerSession] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Engines
    # ------------------------------------------------------------------

    def create_engine(self, viewer_id: str, engine: ScrollEngine) -> ScrollEngine:
        """Store the engine for a viewer that has none yet."""
        with self._lock:
            if viewer_id in self._engines:
                raise ValueError("Engine already exists for viewer {}".format(viewer_id))
            self._engines[viewer_id] = engine

        logger.info("[Viewer %s]: Teleprompter created", viewer_id)
        return engine

    def get_engine(self, viewer_id: str) -> Optional[ScrollEngine]:
        with self._lock:
            return self._engines.get(viewer_id)

    def destroy_engine(self, viewer_id: str) -> bool:
        """Drop a viewer's engine. Returns False if there was none."""
        with self._lock:
            engine = self._engines.pop(viewer_id, None)

        if engine is None:
            return False

        logger.info("[Viewer %s]: All sessions closed, teleprompter destroyed", viewer_id)
        return True

    def list_viewers(self) -> List[str]:
        with self._lock:
            return sorted(self._engines)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def register_session(self, session_id: str, viewer_id: str) -> ViewerSession:
        """Create (or return the existing) handle for a session."""
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing

            session = ViewerSession(
                session_id=session_id,
                viewer_id=viewer_id,
                created_at=time.time(),
            )
            self._sessions[session_id] = session

        logger.info("[Session %s]: Registered for viewer %s", session_id, viewer_id)
        return session

    def get_session(self, session_id: str) -> Optional[ViewerSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove_session(self, session_id: str) -> Optional[ViewerSession]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sessions_for(self, viewer_id: str) -> List[ViewerSession]:
        """All registered sessions of a viewer, oldest first."""
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.viewer_id == viewer_id]
        return sorted(sessions, key=lambda s: s.created_at)

    def list_sessions(self) -> List[ViewerSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def elect_driver(self, viewer_id: str) -> Optional[ViewerSession]:
        """Make the oldest live session of a viewer the one that advances.

        RULES:
        - Every other session of the viewer gets drives_engine=False
        - Returns None when the viewer has no live session
        """
        driver = None
        for session in self.sessions_for(viewer_id):
            if driver is None and session.live:
                driver = session
                session.drives_engine = True
            else:
                session.drives_engine = False
        return driver
