"""Coordinator: session lifecycle, settings fan-out, and teardown.

WHY: Lifecycle events (session start/stop) and settings pushes arrive
from outside and have to be turned into engine creation, loop starts
and restarts, and cleanup, consistently for every session a viewer has
open. This module is that one coordinating component; the HTTP adapter
and the CLI only call into it.

HOW: TeleprompterCoordinator composes a ViewerStore (engines and
session handles), a SessionScrollLoop (timers), a SettingsSource and a
display transport. Viewer identity is passed explicitly on every
callback; nothing is inferred from transport or session internals.

RULES:
- on_session_start: settings fetch failure → built-in defaults
- Engines are created explicitly on first session, destroyed when the
  viewer's last session stops
- Text changes reset the position and restart every live loop of the viewer
- Width / line count / speed changes apply in place (no restart)
- Turning auto replay off cancels pending replays on every session
- on_session_stop is safe to call twice and for unknown sessions
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from teleprompter.api.settings_client import SettingsFetchError, SettingsSource
from teleprompter.core.engine import Clock, Phase, ScrollEngine
from teleprompter.core.settings import (
    SettingsChange,
    ViewerSettings,
    apply_settings,
    create_engine,
)
from teleprompter.session.loop import SessionScrollLoop
from teleprompter.session.scheduler import Scheduler
from teleprompter.session.store import ViewerSession, ViewerStore
from teleprompter.transport.base import BaseTransport

logger = logging.getLogger(__name__)


class TeleprompterCoordinator:
    """Owns the viewer store and reacts to lifecycle and settings events.

    RULES:
    - clock is handed to every engine it creates (tests pass a fake clock)
    - loop_options are forwarded to SessionScrollLoop (delays, durations)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        transport: BaseTransport,
        settings_source: SettingsSource,
        store: Optional[ViewerStore] = None,
        clock: Optional[Clock] = None,
        **loop_options: Any,
    ) -> None:
        self.store = store or ViewerStore()
        self.transport = transport
        self.settings_source = settings_source
        self._clock = clock
        self._viewer_settings: Dict[str, ViewerSettings] = {}
        self.loop = SessionScrollLoop(
            scheduler,
            transport,
            on_session_lost=self._on_session_lost,
            **loop_options,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_session_start(self, session_id: str, viewer_id: str) -> ViewerSession:
        """A display session opened: set up the engine and start scrolling."""
        logger.info("Received teleprompter session request for viewer %s, session %s", viewer_id, session_id)

        settings = await self._load_settings(viewer_id)
        self._viewer_settings[viewer_id] = settings
        engine = self.store.get_engine(viewer_id)
        if engine is None:
            engine = self.store.create_engine(viewer_id, create_engine(settings, clock=self._clock))
        else:
            self._apply_to_viewer(viewer_id, engine, settings)

        self.transport.open_session(session_id)

        session = self.store.register_session(session_id, viewer_id)
        session.live = True
        self.store.elect_driver(viewer_id)

        if self.loop.show(session, engine):
            self.loop.start(session, engine)
        return session

    def on_session_stop(self, session_id: str, viewer_id: str, reason: str = "") -> bool:
        """A display session closed: stop its timers, clean up the viewer if last.

        Returns False when the session was not registered.
        """
        logger.info("Session %s stopped: %s", session_id, reason or "no reason given")

        session = self.store.remove_session(session_id)
        self.transport.close_session(session_id)

        if session is not None:
            session.live = False
            self.loop.stop(session)

        if self.store.sessions_for(viewer_id):
            self.store.elect_driver(viewer_id)
        else:
            self.store.destroy_engine(viewer_id)
            self._viewer_settings.pop(viewer_id, None)

        return session is not None

    def on_settings_change(self, viewer_id: str, values: Mapping[str, Any]) -> Optional[SettingsChange]:
        """Settings were pushed for a viewer: apply them to the shared engine.

        Returns None when the viewer has no engine yet (the values are
        kept by the settings source and applied on the next session start).
        """
        current = self._viewer_settings.get(viewer_id, ViewerSettings())
        try:
            settings = current.merged(values)
        except ValidationError:
            logger.exception("Invalid settings pushed for viewer %s, ignoring", viewer_id)
            return None

        self.settings_source.update(viewer_id, values)
        engine = self.store.get_engine(viewer_id)
        if engine is None:
            logger.info("Settings stored for viewer %s (no active teleprompter)", viewer_id)
            return None
        self._viewer_settings[viewer_id] = settings
        return self._apply_to_viewer(viewer_id, engine, settings)

    def shutdown(self) -> None:
        """Stop every session (process exit)."""
        for session in self.store.list_sessions():
            self.on_session_stop(session.session_id, session.viewer_id, "shutdown")
        self.transport.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def viewer_state(self, viewer_id: str) -> Optional[Dict[str, Any]]:
        engine = self.store.get_engine(viewer_id)
        if engine is None:
            return None
        state = engine.snapshot()
        state["sessions"] = [s.session_id for s in self.store.sessions_for(viewer_id)]
        return state

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_settings(self, viewer_id: str) -> ViewerSettings:
        try:
            raw = await self.settings_source.fetch(viewer_id)
            settings = ViewerSettings.model_validate(raw)
        except (SettingsFetchError, ValidationError):
            logger.exception("Error loading settings for viewer %s, using defaults", viewer_id)
            return ViewerSettings()

        logger.info(
            "Applied settings for viewer %s: lineWidth=%s, scrollSpeed=%s, numberOfLines=%s, autoReplay=%s",
            viewer_id,
            settings.line_width,
            settings.scroll_speed,
            settings.number_of_lines,
            settings.auto_replay,
        )
        return settings

    def _apply_to_viewer(self, viewer_id: str, engine: ScrollEngine, settings: ViewerSettings) -> SettingsChange:
        """Apply settings to a shared engine and bring the viewer's loops in line.

        RULES:
        - Only sessions already registered are touched; a session being
          started is shown and started by its caller
        """
        was_idle = engine.phase == Phase.IDLE
        change = apply_settings(engine, settings)

        if change.text_changed:
            self._restart_viewer(viewer_id, engine)
            return change

        if change.auto_replay_disabled:
            for session in self.store.sessions_for(viewer_id):
                self.loop.cancel_replay(session, engine)

        if was_idle and change.auto_replay_enabled:
            engine.reset_position()

        if engine.phase == Phase.SCROLLING:
            # A loop that stopped at IDLE picks up again once there is more to show
            for session in self.store.sessions_for(viewer_id):
                if session.live and not self.loop.is_running(session):
                    self.loop.start(session, engine, delay_ms=0)

        return change

    def _restart_viewer(self, viewer_id: str, engine: ScrollEngine) -> None:
        for session in self.store.sessions_for(viewer_id):
            if not session.live:
                continue
            self.loop.stop(session)
            if self.loop.show(session, engine):
                self.loop.start(session, engine)

    def _on_session_lost(self, session: ViewerSession) -> None:
        logger.info("[Session %s]: Display lost for viewer %s", session.session_id, session.viewer_id)
        self.store.elect_driver(session.viewer_id)
