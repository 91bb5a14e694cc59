"""Tests for TeleprompterCoordinator lifecycle and settings fan-out.

WHY: The coordinator ties lifecycle events to engines and loops. If a
settings failure blocked a session, a teardown leaked timers or an
engine, or a push reached only one of a viewer's sessions, viewers
would see frozen or diverging text.

HOW: Real store, loop and FrameBufferTransport; FakeScheduler and
FakeClock for time; InMemorySettingsSource (or an AsyncMock source for
failures). Async lifecycle calls run through asyncio.run().

Timeline for TEN_LINES at width "Wide", 120 WPM and the default 500 ms
interval (0.5 lines per tick): ticks from t=5 every 0.5 s, end reached
at t=10.5, banner at t=15.5, banner finished at t=25.5.
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from teleprompter.api.settings_client import InMemorySettingsSource, SettingsFetchError, SettingsSource
from teleprompter.config import DEFAULT_TEXT
from teleprompter.core.engine import Phase
from teleprompter.session.coordinator import TeleprompterCoordinator
from teleprompter.transport.frame_buffer import FrameBufferTransport
from teleprompter.transport.webhook import WebhookTransport


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def frames():
    return FrameBufferTransport()


@pytest.fixture
def viewer_settings(ten_lines):
    return {"custom_text": ten_lines, "line_width": "Wide", "scroll_speed": 120, "number_of_lines": 4}


def _make_coordinator(scheduler, clock, frames, source):
    return TeleprompterCoordinator(
        scheduler,
        frames,
        source,
        clock=clock,
        startup_delay_ms=5000,
        end_refresh_interval_ms=500,
        replay_delay_ms=5000,
        display_duration_ms=10000,
    )


@pytest.fixture
def coordinator(scheduler, clock, frames, viewer_settings):
    return _make_coordinator(scheduler, clock, frames, InMemorySettingsSource({"v1": viewer_settings}))


def _start(coordinator, session_id="s1", viewer_id="v1"):
    return asyncio.run(coordinator.on_session_start(session_id, viewer_id))


# ---------------------------------------------------------------------------
# TestSessionStart
# ---------------------------------------------------------------------------


class TestSessionStart:
    """on_session_start() creates the engine, shows a frame, starts ticking."""

    def test_uses_stored_settings(self, coordinator, frames, ten_lines):
        session = _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        assert engine.text == ten_lines
        assert engine.line_width == 44
        assert engine.line_count == 10
        assert session.drives_engine
        assert coordinator.loop.is_running(session)
        assert frames.get_frame("s1").text.startswith("[0%] | 00:00\nalpha0 beta0")

    def test_settings_fetch_failure_falls_back_to_defaults(self, scheduler, clock, frames):
        source = MagicMock(spec=SettingsSource)
        source.fetch = AsyncMock(side_effect=SettingsFetchError("v1", "service down"))
        coordinator = _make_coordinator(scheduler, clock, frames, source)

        session = _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        assert engine.text == DEFAULT_TEXT
        assert engine.scroll_speed == 120.0
        assert engine.visible_lines == 4
        assert engine.auto_replay is False
        assert coordinator.loop.is_running(session)

    def test_invalid_stored_settings_fall_back_to_defaults(self, scheduler, clock, frames):
        source = InMemorySettingsSource({"v1": {"number_of_lines": "plenty"}})
        coordinator = _make_coordinator(scheduler, clock, frames, source)
        _start(coordinator)
        assert coordinator.store.get_engine("v1").visible_lines == 4

    def test_scrolling_waits_for_startup_delay(self, coordinator, scheduler):
        _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(4.5)
        assert engine.current_line_offset == 0
        scheduler.advance(1.5)
        assert engine.current_line_offset == 1

    def test_second_session_shares_engine(self, coordinator, scheduler):
        s1 = _start(coordinator, "s1")
        engine = coordinator.store.get_engine("v1")
        s2 = _start(coordinator, "s2")

        assert coordinator.store.get_engine("v1") is engine
        assert s1.drives_engine and not s2.drives_engine

        # Two sessions tick, but only the driver advances
        scheduler.advance(6)
        assert engine.current_line_offset == 1

    def test_second_session_with_replay_off_cancels_pending_replay(self, coordinator, scheduler):
        coordinator.on_settings_change("v1", {"auto_replay": True})
        s1 = _start(coordinator, "s1")
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(26)
        assert coordinator.loop.is_replay_pending(s1)

        coordinator.settings_source.update("v1", {"auto_replay": False})
        s2 = _start(coordinator, "s2")
        assert engine.auto_replay is False
        assert not coordinator.loop.is_replay_pending(s1)

        scheduler.advance(6)
        assert engine.phase == Phase.IDLE
        assert engine.current_line_offset == engine.max_offset
        assert not coordinator.loop.is_running(s1)
        assert not coordinator.loop.is_running(s2)

    def test_second_session_with_replay_on_restarts_idle_viewer(self, coordinator, scheduler):
        s1 = _start(coordinator, "s1")
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(26)
        assert engine.phase == Phase.IDLE
        assert not coordinator.loop.is_running(s1)

        coordinator.settings_source.update("v1", {"auto_replay": True})
        s2 = _start(coordinator, "s2")
        assert engine.phase == Phase.SCROLLING
        assert engine.current_line_offset == 0
        assert coordinator.loop.is_running(s1)
        assert coordinator.loop.is_running(s2)


# ---------------------------------------------------------------------------
# TestSessionStop
# ---------------------------------------------------------------------------


class TestSessionStop:
    """on_session_stop() cancels timers and cleans up the last session."""

    def test_last_session_destroys_engine(self, coordinator, scheduler, frames):
        _start(coordinator)
        assert coordinator.on_session_stop("s1", "v1", "closed by viewer") is True

        assert coordinator.store.get_engine("v1") is None
        assert coordinator.store.get_session("s1") is None
        assert frames.get_frame("s1") is None
        assert scheduler.pending() == []
        assert coordinator.viewer_state("v1") is None

    def test_remaining_session_takes_over(self, coordinator, scheduler):
        _start(coordinator, "s1")
        s2 = _start(coordinator, "s2")
        engine = coordinator.store.get_engine("v1")

        coordinator.on_session_stop("s1", "v1")
        assert coordinator.store.get_engine("v1") is engine
        assert s2.drives_engine

        scheduler.advance(6)
        assert engine.current_line_offset == 1

    def test_stop_is_safe_to_repeat(self, coordinator):
        _start(coordinator)
        assert coordinator.on_session_stop("s1", "v1") is True
        assert coordinator.on_session_stop("s1", "v1") is False
        assert coordinator.on_session_stop("never-started", "v9") is False

    def test_shutdown_stops_everything(self, coordinator, scheduler):
        _start(coordinator, "s1", "v1")
        _start(coordinator, "s2", "v2")
        coordinator.shutdown()
        assert coordinator.store.list_sessions() == []
        assert coordinator.store.list_viewers() == []
        assert scheduler.pending() == []


# ---------------------------------------------------------------------------
# TestSettingsChange
# ---------------------------------------------------------------------------


class TestSettingsChange:
    """on_settings_change() applies pushes to every session of a viewer."""

    def test_push_without_session_is_kept_for_later(self, coordinator):
        assert coordinator.on_settings_change("v1", {"number_of_lines": 6}) is None
        _start(coordinator)
        assert coordinator.store.get_engine("v1").visible_lines == 6

    def test_new_text_restarts_from_top(self, coordinator, scheduler, frames):
        session = _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(7)
        assert engine.current_line_offset == 2

        change = coordinator.on_settings_change("v1", {"custom_text": "a completely different script"})
        assert change.text_changed
        assert engine.current_line_offset == 0
        assert coordinator.loop.is_running(session)
        assert "a completely different script" in frames.get_frame("s1").text

        # Restarted loops wait for the startup delay again
        scheduler.advance(4.5)
        assert engine.state.fractional_accumulator == 0.0

    def test_speed_change_keeps_position(self, coordinator, scheduler):
        _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(7)

        change = coordinator.on_settings_change("v1", {"scroll_speed": 240})
        assert not change.text_changed
        assert engine.scroll_speed == 240.0
        assert engine.current_line_offset == 2

    def test_partial_push_keeps_other_settings(self, coordinator, ten_lines):
        _start(coordinator)
        coordinator.on_settings_change("v1", {"scroll_speed": 90})
        engine = coordinator.store.get_engine("v1")
        assert engine.text == ten_lines
        assert engine.line_width == 44

    def test_layout_change_reaches_every_session(self, coordinator, scheduler, frames):
        _start(coordinator, "s1")
        _start(coordinator, "s2")
        coordinator.on_settings_change("v1", {"number_of_lines": 2})

        scheduler.advance(5)
        for session_id in ("s1", "s2"):
            lines = frames.get_frame(session_id).text.split("\n")
            assert len(lines) == 3

    def test_disabling_replay_cancels_pending_replay(self, coordinator, scheduler):
        coordinator.on_settings_change("v1", {"auto_replay": True})
        session = _start(coordinator)
        engine = coordinator.store.get_engine("v1")

        scheduler.advance(26)
        assert coordinator.loop.is_replay_pending(session)

        change = coordinator.on_settings_change("v1", {"auto_replay": False})
        assert change.auto_replay_disabled
        assert not coordinator.loop.is_replay_pending(session)

        scheduler.advance(0)
        assert engine.phase == Phase.IDLE
        assert not coordinator.loop.is_running(session)

    def test_enabling_replay_when_idle_restarts(self, coordinator, scheduler):
        session = _start(coordinator)
        engine = coordinator.store.get_engine("v1")
        scheduler.advance(26)
        assert engine.phase == Phase.IDLE
        assert not coordinator.loop.is_running(session)

        coordinator.on_settings_change("v1", {"auto_replay": True})
        assert engine.phase == Phase.SCROLLING
        assert engine.current_line_offset == 0
        assert coordinator.loop.is_running(session)

    def test_invalid_push_is_ignored(self, coordinator):
        _start(coordinator)
        assert coordinator.on_settings_change("v1", {"number_of_lines": "lots"}) is None
        assert coordinator.store.get_engine("v1").visible_lines == 4


# ---------------------------------------------------------------------------
# TestLostDisplay
# ---------------------------------------------------------------------------


class TestLostDisplay:
    """A closed display channel hands the driver role to another session."""

    def test_driver_reelected_after_display_loss(self, coordinator, scheduler, frames):
        s1 = _start(coordinator, "s1")
        s2 = _start(coordinator, "s2")
        engine = coordinator.store.get_engine("v1")

        frames.close_session("s1")
        scheduler.advance(5)

        assert s1.live is False
        assert s2.drives_engine
        assert coordinator.loop.is_running(s2)

        scheduler.advance(1)
        assert engine.current_line_offset == 2


class TestViewerState:
    """viewer_state() reports the snapshot plus open sessions."""

    def test_state_lists_sessions(self, coordinator):
        _start(coordinator, "s1")
        _start(coordinator, "s2")
        state = coordinator.viewer_state("v1")
        assert state["sessions"] == ["s1", "s2"]
        assert state["phase"] == "scrolling"
        assert state["line_count"] == 10

    def test_unknown_viewer(self, coordinator):
        assert coordinator.viewer_state("nobody") is None


class TestSlowDisplayService:
    """Frames forwarded to a slow webhook never hold up session starts."""

    def test_session_starts_do_not_wait_for_webhook(self, scheduler, clock, viewer_settings):
        posted = []

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.5)
            posted.append(request)
            return httpx.Response(204)

        webhook = WebhookTransport("http://display.test/frames", transport=httpx.MockTransport(handler))
        frames = FrameBufferTransport(forward=webhook)
        coordinator = _make_coordinator(scheduler, clock, frames, InMemorySettingsSource({"v1": viewer_settings}))

        async def run():
            started = time.perf_counter()
            for session_id in ("s1", "s2", "s3", "s4"):
                await coordinator.on_session_start(session_id, "v1")
            elapsed = time.perf_counter() - started
            await webhook.flush()
            return elapsed

        assert asyncio.run(run()) < 0.25
        assert len(posted) == 4
        assert frames.get_frame("s4").text.startswith("[0%] | 00:00")
