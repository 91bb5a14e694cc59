"""Shared test fixtures for the teleprompter test suite.

WHY: Engine phases and session loops are driven by time. Tests must
control that time exactly instead of sleeping, and several modules need
the same sample texts with known line counts.

HOW: FakeClock is a callable returning a settable number of seconds.
FakeScheduler implements Scheduler.call_later on top of the same clock;
advance(seconds) fires every due callback in time order (moving the
clock to each callback's due time first) and then moves the clock to
the end of the window.

RULES:
- The fake clock starts at 0.0 and only moves when a test moves it
- Use whole or half seconds so the float arithmetic stays exact
- TEN_LINES wraps to exactly ten lines of two words at any width >= 12
"""

from __future__ import annotations

from typing import Callable, List

import pytest

from teleprompter.core.engine import ScrollEngine


# ---------------------------------------------------------------------------
# Sample texts
# ---------------------------------------------------------------------------

TEN_LINES = "\n".join("alpha{0} beta{0}".format(i) for i in range(10))
"""Ten paragraphs of two words each: 20 words, 10 lines, 2 words per line."""

HANZI_TEXT = "你好世界你好世界"


# ---------------------------------------------------------------------------
# Fake time
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock the test advances by hand (seconds)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimerHandle:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose timers fire only inside advance()."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self._timers: List[FakeTimerHandle] = []
        self._seq = 0

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.clock.now + max(0.0, delay_s), self._seq, callback)
        self._seq += 1
        self._timers.append(handle)
        return handle

    def pending(self) -> List[FakeTimerHandle]:
        return [h for h in self._timers if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = [h for h in self.pending() if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.clock.now = max(self.clock.now, handle.when)
            handle.fired = True
            handle.callback()
        self.clock.now = target
        self._timers = self.pending()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture
def ten_line_engine(clock):
    """Engine over TEN_LINES scrolling exactly one line per tick.

    120 WPM at a 1000 ms interval is 2 words per tick; at 2 words per
    line that is 1.0 line per tick. Four visible lines → max offset 6.
    """
    return ScrollEngine(
        text=TEN_LINES,
        line_width=38,
        scroll_speed=120,
        visible_lines=4,
        tick_interval_ms=1000,
        clock=clock,
        final_line_hold_ms=5000,
        end_banner_ms=10000,
    )


@pytest.fixture
def ten_lines():
    return TEN_LINES


@pytest.fixture
def hanzi_text():
    return HANZI_TEXT
