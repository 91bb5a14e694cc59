"""Session Scroll Loop: per-session timers that tick, render, and push frames.

WHY: Each open display session needs a free-running timer that advances
the viewer's engine, renders the frame and pushes it to the display.
When the text ends, the cadence changes (end-phase refresh), and with
auto replay on, a one-shot delay restarts the text from the top. All of
this is timer bookkeeping that must not leak into the engine.

HOW: Timers live in the ViewerSession handle, one per slot:
  primary     — startup delay, then one tick every tick_interval_ms
  end_refresh — refresh cadence while the end phases are on screen
  replay      — one-shot delay before resetting and restarting
Arming any slot cancels the others, so a session never has two timers
with overlapping duties. Every timer re-arms the next one after it ran,
so a stalled process delays the next tick rather than queueing ticks.

RULES:
- A timer that fires for a session that is no longer live does nothing
- Only the viewer's driver session calls advance(); others only render
- Any display failure stops this session only (never other sessions)
- stop() is idempotent and safe to call from teardown
- Exceptions never escape a timer callback
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Optional

from teleprompter.config import (
    DISPLAY_DURATION_MS,
    END_REFRESH_INTERVAL_MS,
    REPLAY_DELAY_MS,
    STARTUP_DELAY_MS,
)
from teleprompter.core.engine import Phase, ScrollEngine
from teleprompter.session.scheduler import Scheduler
from teleprompter.session.store import ViewerSession
from teleprompter.transport.base import BaseTransport, TransportClosedError

logger = logging.getLogger(__name__)

PRIMARY = "primary"
END_REFRESH = "end_refresh"
REPLAY = "replay"


class SessionScrollLoop:
    """Drives engines from timers and forwards frames to a transport.

    WHY: The engine knows where the reader is and which end phase is on
    screen; the loop turns that into real timers and display calls.

    HOW: start() arms the primary slot with the startup delay. Each tick
    advances (driver only), renders, pushes the frame, then looks at the
    engine phase to decide what to arm next: another tick, an end-phase
    refresh, the replay delay, or nothing (IDLE).

    RULES:
    - start() on a running session restarts it (idempotent restart)
    - on_session_lost(session) is called after a display failure marked
      the session not live
    """

    def __init__(
        self,
        scheduler: Scheduler,
        transport: BaseTransport,
        startup_delay_ms: int = STARTUP_DELAY_MS,
        end_refresh_interval_ms: int = END_REFRESH_INTERVAL_MS,
        replay_delay_ms: int = REPLAY_DELAY_MS,
        display_duration_ms: int = DISPLAY_DURATION_MS,
        on_session_lost: Optional[Callable[[ViewerSession], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self._transport = transport
        self._startup_delay_s = startup_delay_ms / 1000.0
        self._end_refresh_s = end_refresh_interval_ms / 1000.0
        self._replay_delay_s = replay_delay_ms / 1000.0
        self._display_duration_ms = display_duration_ms
        self._on_session_lost = on_session_lost

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def start(
        self,
        session: ViewerSession,
        engine: ScrollEngine,
        delay_ms: Optional[int] = None,
    ) -> None:
        """Start ticking a session after the startup delay."""
        if self.is_running(session):
            self.stop(session)

        if not session.live:
            logger.info("[Session %s]: Session is no longer active, not starting", session.session_id)
            return

        delay_s = self._startup_delay_s if delay_ms is None else delay_ms / 1000.0
        self._arm(session, PRIMARY, delay_s, self._tick, engine)
        logger.info(
            "[Session %s]: Scrolling starts in %.1fs (every %dms)",
            session.session_id,
            delay_s,
            engine.tick_interval_ms,
        )

    def stop(self, session: ViewerSession) -> None:
        """Cancel every timer the session owns."""
        if session.timers:
            session.cancel_timers()
            logger.info("[Session %s]: Stopped scrolling", session.session_id)

    def is_running(self, session: ViewerSession) -> bool:
        return bool(session.timers)

    def is_replay_pending(self, session: ViewerSession) -> bool:
        return REPLAY in session.timers

    def show(self, session: ViewerSession, engine: ScrollEngine) -> bool:
        """Render and push one frame without advancing. False if the push failed."""
        if not session.live:
            return False
        return self._push(session, engine.render())

    def cancel_replay(self, session: ViewerSession, engine: ScrollEngine) -> bool:
        """Drop a pending replay and resume end-phase refreshes.

        With auto replay now off, the next refresh moves the engine to
        IDLE and the loop stops on its own.
        """
        if not self.is_replay_pending(session):
            return False
        logger.info("[Session %s]: Pending replay cancelled", session.session_id)
        self._arm(session, END_REFRESH, 0.0, self._refresh_end, engine)
        return True

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _tick(self, session: ViewerSession, engine: ScrollEngine) -> None:
        session.timers.pop(PRIMARY, None)
        if not session.live:
            session.cancel_timers()
            return

        try:
            if session.drives_engine:
                engine.advance()
            if self._push(session, engine.render()):
                self._arm_next(session, engine)
        except Exception:
            logger.exception("[Session %s]: Scroll tick failed", session.session_id)
            self._drop(session)

    def _refresh_end(self, session: ViewerSession, engine: ScrollEngine) -> None:
        session.timers.pop(END_REFRESH, None)
        if not session.live:
            session.cancel_timers()
            return

        try:
            if self._push(session, engine.render()):
                self._arm_next(session, engine)
        except Exception:
            logger.exception("[Session %s]: End-phase refresh failed", session.session_id)
            self._drop(session)

    def _replay(self, session: ViewerSession, engine: ScrollEngine) -> None:
        session.timers.pop(REPLAY, None)
        if not session.live:
            session.cancel_timers()
            return

        try:
            # Another session of the same viewer may have replayed already
            if engine.phase != Phase.SCROLLING:
                engine.reset_position()
            logger.info("[Session %s]: Restarting teleprompter for auto-replay", session.session_id)
            if self.show(session, engine):
                self.start(session, engine)
        except Exception:
            logger.exception("[Session %s]: Replay failed", session.session_id)
            self._drop(session)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm_next(self, session: ViewerSession, engine: ScrollEngine) -> None:
        """Pick the next timer from the engine phase after a frame went out."""
        phase = engine.phase

        if phase == Phase.IDLE:
            self.stop(session)
            logger.info("[Session %s]: Finished showing end message", session.session_id)
            return

        if engine.awaiting_replay():
            logger.info(
                "[Session %s]: Replay in %.1fs",
                session.session_id,
                self._replay_delay_s,
            )
            self._arm(session, REPLAY, self._replay_delay_s, self._replay, engine)
            return

        if phase == Phase.SCROLLING:
            self._arm(session, PRIMARY, engine.tick_interval_ms / 1000.0, self._tick, engine)
        else:
            self._arm(session, END_REFRESH, self._end_refresh_s, self._refresh_end, engine)

    def _arm(self, session: ViewerSession, slot: str, delay_s: float, callback, engine: ScrollEngine) -> None:
        session.cancel_timers()
        session.timers[slot] = self._scheduler.call_later(
            delay_s,
            functools.partial(callback, session, engine),
        )

    def _push(self, session: ViewerSession, text: str) -> bool:
        try:
            self._transport.display(session.session_id, text, self._display_duration_ms)
        except TransportClosedError:
            logger.info("[Session %s]: Display channel closed, stopping updates", session.session_id)
            self._drop(session)
            return False
        except Exception:
            logger.exception("[Session %s]: Failed to display frame", session.session_id)
            self._drop(session)
            return False
        return True

    def _drop(self, session: ViewerSession) -> None:
        session.live = False
        self.stop(session)
        if self._on_session_lost is not None:
            self._on_session_lost(session)
