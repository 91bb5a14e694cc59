"""Tests for SessionScrollLoop timer bookkeeping.

WHY: The loop is where timers, the engine and the display meet. A timer
that survives teardown keeps pushing frames to a closed display; a
missing re-arm freezes the text; a display failure must stop only the
session it happened on.

HOW: A FakeScheduler fires timers when the test advances time, and a
MagicMock transport records every frame. The engine scrolls TEN_LINES at
one line per second with a 5 s hold and a 10 s banner; the loop uses a
5 s startup delay, 0.5 s end refresh and 5 s replay delay. With the
first tick at t=5, the end is reached at t=10, the banner appears at
t=15 and finishes at t=25.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from teleprompter.config import END_BANNER
from teleprompter.core.engine import Phase
from teleprompter.session.loop import SessionScrollLoop
from teleprompter.session.store import ViewerSession
from teleprompter.transport.base import BaseTransport, TransportClosedError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def transport():
    return MagicMock(spec=BaseTransport)


@pytest.fixture
def lost():
    return MagicMock()


@pytest.fixture
def loop(scheduler, transport, lost):
    return SessionScrollLoop(
        scheduler,
        transport,
        startup_delay_ms=5000,
        end_refresh_interval_ms=500,
        replay_delay_ms=5000,
        display_duration_ms=10000,
        on_session_lost=lost,
    )


@pytest.fixture
def session():
    return ViewerSession(session_id="s1", viewer_id="v1", created_at=0.0, drives_engine=True)


def _frames(transport):
    return [c.args[1] for c in transport.display.call_args_list]


def _begin(loop, session, engine):
    assert loop.show(session, engine)
    loop.start(session, engine)


# ---------------------------------------------------------------------------
# TestTicking
# ---------------------------------------------------------------------------


class TestTicking:
    """Startup delay, then one tick per interval."""

    def test_show_pushes_first_frame_immediately(self, loop, session, ten_line_engine, transport):
        loop.show(session, ten_line_engine)
        transport.display.assert_called_once_with("s1", ten_line_engine.render(), 10000)

    def test_no_tick_before_startup_delay(self, loop, session, ten_line_engine, scheduler, transport):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(4.5)
        assert ten_line_engine.current_line_offset == 0
        assert transport.display.call_count == 1

    def test_ticks_every_interval(self, loop, session, ten_line_engine, scheduler):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(5)
        assert ten_line_engine.current_line_offset == 1
        scheduler.advance(3)
        assert ten_line_engine.current_line_offset == 4
        assert loop.is_running(session)

    def test_tick_interval_change_applies_to_next_tick(self, loop, session, ten_line_engine, scheduler):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(5)
        # The tick at t=6 is already armed; it moves 2 lines at the new pacing
        ten_line_engine.set_tick_interval(2000)
        scheduler.advance(1)
        assert ten_line_engine.current_line_offset == 3
        scheduler.advance(1)
        assert ten_line_engine.current_line_offset == 3
        scheduler.advance(1)
        assert ten_line_engine.current_line_offset == 5

    def test_non_driver_session_only_renders(self, loop, ten_line_engine, scheduler, transport):
        follower = ViewerSession(session_id="s2", viewer_id="v1", created_at=1.0, drives_engine=False)
        _begin(loop, follower, ten_line_engine)
        scheduler.advance(10)
        assert ten_line_engine.current_line_offset == 0
        assert transport.display.call_count > 1

    def test_start_on_running_session_restarts(self, loop, session, ten_line_engine, scheduler):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(3)
        loop.start(session, ten_line_engine)
        assert len(scheduler.pending()) == 1
        scheduler.advance(4.5)
        assert ten_line_engine.current_line_offset == 0

    def test_start_refused_for_dead_session(self, loop, session, ten_line_engine):
        session.live = False
        loop.start(session, ten_line_engine)
        assert not loop.is_running(session)


# ---------------------------------------------------------------------------
# TestEndOfText
# ---------------------------------------------------------------------------


class TestEndOfText:
    """End-phase refreshes, idle stop, and replay."""

    def test_without_replay_stops_after_banner(self, loop, session, ten_line_engine, scheduler, transport):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(25)

        assert ten_line_engine.phase == Phase.IDLE
        assert not loop.is_running(session)
        assert _frames(transport)[-1].endswith(END_BANNER)

        count = transport.display.call_count
        scheduler.advance(60)
        assert transport.display.call_count == count

    def test_end_phase_refreshes_at_refresh_interval(self, loop, session, ten_line_engine, scheduler, transport):
        _begin(loop, session, ten_line_engine)
        scheduler.advance(10)
        assert ten_line_engine.phase == Phase.HOLDING_FINAL_LINE
        count = transport.display.call_count
        scheduler.advance(2)
        assert transport.display.call_count == count + 4

    def test_replay_restarts_from_top(self, loop, session, ten_line_engine, scheduler, transport):
        ten_line_engine.set_auto_replay(True)
        _begin(loop, session, ten_line_engine)

        scheduler.advance(25)
        assert loop.is_replay_pending(session)
        assert ten_line_engine.phase == Phase.SHOWING_END_BANNER

        scheduler.advance(5)
        assert ten_line_engine.phase == Phase.SCROLLING
        assert ten_line_engine.current_line_offset == 0
        assert _frames(transport)[-1].startswith("[0%] | 00:00\nalpha0 beta0")

        scheduler.advance(5)
        assert ten_line_engine.current_line_offset == 1

    def test_cancel_replay_goes_idle(self, loop, session, ten_line_engine, scheduler):
        ten_line_engine.set_auto_replay(True)
        _begin(loop, session, ten_line_engine)
        scheduler.advance(25)

        ten_line_engine.set_auto_replay(False)
        assert loop.cancel_replay(session, ten_line_engine)
        assert not loop.is_replay_pending(session)

        scheduler.advance(0)
        assert ten_line_engine.phase == Phase.IDLE
        assert not loop.is_running(session)

    def test_cancel_replay_without_pending_replay(self, loop, session, ten_line_engine):
        _begin(loop, session, ten_line_engine)
        assert loop.cancel_replay(session, ten_line_engine) is False


# ---------------------------------------------------------------------------
# TestFailures
# ---------------------------------------------------------------------------


class TestFailures:
    """A display failure stops only the affected session."""

    def test_closed_channel_stops_session(self, loop, session, ten_line_engine, scheduler, transport, lost):
        _begin(loop, session, ten_line_engine)
        transport.display.side_effect = TransportClosedError("s1", "closed")

        scheduler.advance(5)
        assert session.live is False
        assert not loop.is_running(session)
        lost.assert_called_once_with(session)

        scheduler.advance(60)
        assert ten_line_engine.current_line_offset == 1

    def test_unexpected_error_stops_session(self, loop, session, ten_line_engine, scheduler, transport, lost):
        _begin(loop, session, ten_line_engine)
        transport.display.side_effect = RuntimeError("display exploded")

        scheduler.advance(5)
        assert session.live is False
        assert not loop.is_running(session)
        lost.assert_called_once_with(session)

    def test_failure_leaves_other_sessions_running(self, loop, session, ten_line_engine, scheduler, transport):
        other = ViewerSession(session_id="s2", viewer_id="v1", created_at=1.0)
        _begin(loop, session, ten_line_engine)
        _begin(loop, other, ten_line_engine)

        def display(session_id, text, duration_ms):
            if session_id == "s2":
                raise TransportClosedError(session_id, "closed")

        transport.display.side_effect = display
        scheduler.advance(6)
        assert other.live is False
        assert session.live is True
        assert loop.is_running(session)
        assert ten_line_engine.current_line_offset == 2

    def test_show_failure_returns_false(self, loop, session, ten_line_engine, transport):
        transport.display.side_effect = TransportClosedError("s1", "closed")
        assert loop.show(session, ten_line_engine) is False
        assert session.live is False


# ---------------------------------------------------------------------------
# TestTeardown
# ---------------------------------------------------------------------------


class TestTeardown:
    """stop() cancels every timer; stale timers do nothing."""

    def test_stop_cancels_all_timers(self, loop, session, ten_line_engine, scheduler, transport):
        _begin(loop, session, ten_line_engine)
        loop.stop(session)
        loop.stop(session)
        assert not loop.is_running(session)
        assert scheduler.pending() == []

        scheduler.advance(60)
        assert transport.display.call_count == 1
        assert ten_line_engine.current_line_offset == 0

    def test_timer_for_dead_session_does_nothing(self, loop, session, ten_line_engine, scheduler, transport):
        _begin(loop, session, ten_line_engine)
        session.live = False

        scheduler.advance(60)
        assert transport.display.call_count == 1
        assert ten_line_engine.current_line_offset == 0
        assert not loop.is_running(session)

    def test_stop_during_replay_wait(self, loop, session, ten_line_engine, scheduler, transport):
        ten_line_engine.set_auto_replay(True)
        _begin(loop, session, ten_line_engine)
        scheduler.advance(25)
        assert loop.is_replay_pending(session)

        loop.stop(session)
        count = transport.display.call_count
        scheduler.advance(60)
        assert transport.display.call_count == count
        assert ten_line_engine.phase == Phase.SHOWING_END_BANNER
