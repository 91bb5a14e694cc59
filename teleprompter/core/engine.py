"""Scroll State Engine: per-viewer scroll position and end-of-text phases.

WHY: A teleprompter has to know, at any instant, which slice of the
reflowed text the viewer should see. Position advances in fractional
lines per tick (words per minute converted through the average words
per line), survives cosmetic reconfiguration (line width, line count,
speed), and ends in a timed sequence: hold the final lines, show an
end banner, then go idle or wait for a replay.

HOW: TeleprompterState is a plain dataclass holding every field.
ScrollEngine owns one state and exposes the mutators (set_text,
set_line_width, ...), advance() for the timer tick and render() for
the frame. The end-of-text phase machine runs inside render() because
its transitions depend on the wall-clock time sampled at render time:

  SCROLLING → HOLDING_FINAL_LINE → SHOWING_END_BANNER → IDLE
                                                      ↘ (replay: the loop
                                                         calls reset_position)

RULES:
- 0 <= current_line_offset <= max(0, line_count - visible_line_count) always
- 0 <= fractional_accumulator < 1 after every advance()
- set_text() and reset_position() reset the position and the phase
- set_line_width() / set_visible_line_count() keep the offset (clamped)
- After those two, an end phase falls back to SCROLLING only when the
  clamped offset is no longer at the end; at the end it keeps running
- Out-of-range speed/interval/width values are clamped, never rejected
- The engine owns no timers; replay scheduling belongs to the session loop
- The clock is injectable (seconds, monotonic) for deterministic tests
"""

from __future__ import annotations

import enum
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from text_wrapping import estimate_words_per_line, wrap_text
from text_wrapping.presets import DEFAULT_LINE_WIDTH

from teleprompter.config import (
    DEFAULT_NUMBER_OF_LINES,
    DEFAULT_SCROLL_SPEED,
    DEFAULT_TEXT,
    DEFAULT_TICK_INTERVAL_MS,
    EMPTY_PLACEHOLDER,
    END_BANNER,
    END_BANNER_MS,
    FINAL_LINE_HOLD_MS,
    MAX_SCROLL_SPEED,
    MAX_TICK_INTERVAL_MS,
    MIN_SCROLL_SPEED,
    MIN_TICK_INTERVAL_MS,
    MIN_WORDS_PER_LINE_FALLBACK,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Phase(str, enum.Enum):
    """End-of-text sub-state of a viewer's teleprompter.

    HOW: Inherits from str so values serialize cleanly to JSON.

    RULES:
    - scrolling: normal operation, also the state after any reset
    - holding_final_line: end reached, last lines still on screen
    - showing_end_banner: END OF TEXT banner on screen
    - idle: banner shown in full and auto replay is off (terminal)
    """

    SCROLLING = "scrolling"
    HOLDING_FINAL_LINE = "holding_final_line"
    SHOWING_END_BANNER = "showing_end_banner"
    IDLE = "idle"


def clamp_scroll_speed(words_per_minute: float) -> float:
    """Clamp a WPM value to [MIN_SCROLL_SPEED, MAX_SCROLL_SPEED]."""
    return float(min(MAX_SCROLL_SPEED, max(MIN_SCROLL_SPEED, words_per_minute)))


def clamp_tick_interval(interval_ms: float) -> int:
    """Clamp a tick interval to [MIN_TICK_INTERVAL_MS, MAX_TICK_INTERVAL_MS]."""
    return int(min(MAX_TICK_INTERVAL_MS, max(MIN_TICK_INTERVAL_MS, interval_ms)))


@dataclass
class TeleprompterState:
    """Everything the engine knows about one viewer's teleprompter.

    RULES:
    - source_text is replaced wholesale, never edited in place
    - lines / avg_words_per_line are derived from source_text + line_width
    - phase_entered_at is None while scrolling
    - timestamps come from the engine clock (seconds)
    """

    source_text: str
    line_width: int
    visible_line_count: int
    scroll_rate_wpm: float
    tick_interval_ms: int
    auto_replay_enabled: bool
    session_started_at: float
    lines: List[str] = field(default_factory=list)
    avg_words_per_line: float = MIN_WORDS_PER_LINE_FALLBACK
    current_line_offset: int = 0
    fractional_accumulator: float = 0.0
    phase: Phase = Phase.SCROLLING
    phase_entered_at: Optional[float] = None

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def max_offset(self) -> int:
        return max(0, self.line_count - self.visible_line_count)


class ScrollEngine:
    """Scroll position, pacing, and end-of-text phases for one viewer.

    WHY: Every open session of a viewer shows the same teleprompter, so
    the state lives here (one engine per viewer) and the session loops
    only drive it.

    HOW: Mutators update the state synchronously and log the change.
    advance() moves the position by the fractional lines-per-tick value,
    render() samples the clock once, runs the phase machine and returns
    the frame text.

    RULES:
    - Empty text is replaced by DEFAULT_TEXT
    - An empty line sequence makes advance() a no-op and render() return
      EMPTY_PLACEHOLDER
    - Phase durations default to FINAL_LINE_HOLD_MS / END_BANNER_MS
    """

    def __init__(
        self,
        text: str = "",
        line_width: int = DEFAULT_LINE_WIDTH,
        scroll_speed: float = DEFAULT_SCROLL_SPEED,
        visible_lines: int = DEFAULT_NUMBER_OF_LINES,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        auto_replay: bool = False,
        clock: Optional[Clock] = None,
        final_line_hold_ms: int = FINAL_LINE_HOLD_MS,
        end_banner_ms: int = END_BANNER_MS,
    ) -> None:
        self._clock: Clock = clock or time.monotonic
        self._final_line_hold_s = final_line_hold_ms / 1000.0
        self._end_banner_s = end_banner_ms / 1000.0
        self._lines_per_tick = 0.0

        self.state = TeleprompterState(
            source_text=text or DEFAULT_TEXT,
            line_width=max(1, int(line_width)),
            visible_line_count=max(1, int(visible_lines)),
            scroll_rate_wpm=clamp_scroll_speed(scroll_speed),
            tick_interval_ms=clamp_tick_interval(tick_interval_ms),
            auto_replay_enabled=bool(auto_replay),
            session_started_at=self._clock(),
        )
        self._reflow()
        self._recalculate_pacing()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self.state.source_text

    @property
    def lines(self) -> List[str]:
        return list(self.state.lines)

    @property
    def line_count(self) -> int:
        return self.state.line_count

    @property
    def max_offset(self) -> int:
        return self.state.max_offset

    @property
    def current_line_offset(self) -> int:
        return self.state.current_line_offset

    @property
    def avg_words_per_line(self) -> float:
        return self.state.avg_words_per_line

    @property
    def lines_per_tick(self) -> float:
        return self._lines_per_tick

    @property
    def line_width(self) -> int:
        return self.state.line_width

    @property
    def visible_lines(self) -> int:
        return self.state.visible_line_count

    @property
    def scroll_speed(self) -> float:
        return self.state.scroll_rate_wpm

    @property
    def tick_interval_ms(self) -> int:
        return self.state.tick_interval_ms

    @property
    def auto_replay(self) -> bool:
        return self.state.auto_replay_enabled

    @property
    def phase(self) -> Phase:
        return self.state.phase

    # ------------------------------------------------------------------
    # Reconfiguration
    # ------------------------------------------------------------------

    def set_text(self, text: Optional[str]) -> None:
        """Replace the source text and start over from the first line."""
        self.state.source_text = text or DEFAULT_TEXT
        self._reflow()
        self._recalculate_pacing()
        self.reset_position()
        logger.info("Text set (%d lines)", self.state.line_count)

    def set_line_width(self, width: int) -> None:
        """Reflow at a new width, keeping the reader's offset (clamped)."""
        self.state.line_width = max(1, int(width))
        self._reflow()
        self._clamp_offset()
        self._recalculate_pacing()
        self._cancel_phase_unless_at_end()
        logger.info("Line width set to %d (%d lines)", self.state.line_width, self.state.line_count)

    def set_visible_line_count(self, count: int) -> None:
        """Change how many lines are shown at once, keeping the offset (clamped)."""
        self.state.visible_line_count = max(1, int(count))
        self._clamp_offset()
        self._cancel_phase_unless_at_end()
        logger.info("Number of lines set to %d", self.state.visible_line_count)

    def set_scroll_rate(self, words_per_minute: float) -> None:
        """Set the pacing in WPM (clamped); position is untouched."""
        clamped = clamp_scroll_speed(words_per_minute)
        if clamped != words_per_minute:
            logger.debug("Scroll speed %s clamped to %s", words_per_minute, clamped)
        self.state.scroll_rate_wpm = clamped
        self._recalculate_pacing()
        logger.info("Scroll speed set to %s WPM", clamped)

    def set_tick_interval(self, interval_ms: float) -> None:
        """Set the time between advances in ms (clamped)."""
        clamped = clamp_tick_interval(interval_ms)
        if clamped != interval_ms:
            logger.debug("Tick interval %s clamped to %s", interval_ms, clamped)
        self.state.tick_interval_ms = clamped
        self._recalculate_pacing()

    def set_auto_replay(self, enabled: bool) -> None:
        """Toggle auto replay.

        The engine only stores the flag; cancelling a pending replay
        timer is the session loop's job.
        """
        self.state.auto_replay_enabled = bool(enabled)
        logger.info("Auto replay %s", "enabled" if enabled else "disabled")

    def reset_position(self) -> None:
        """Back to the first line, phase machine cancelled, stopwatch restarted."""
        state = self.state
        state.current_line_offset = 0
        state.fractional_accumulator = 0.0
        state.phase = Phase.SCROLLING
        state.phase_entered_at = None
        state.session_started_at = self._clock()

    # ------------------------------------------------------------------
    # Tick / frame
    # ------------------------------------------------------------------

    def advance(self) -> None:
        """Move the position forward by one tick's worth of lines.

        HOW: Adds lines_per_tick to the fractional accumulator, moves the
        offset by the accumulator's integer part and keeps the remainder,
        then clamps the offset to max_offset.
        """
        state = self.state
        if not state.lines:
            return

        state.fractional_accumulator += self._lines_per_tick
        if state.fractional_accumulator >= 1:
            whole = int(math.floor(state.fractional_accumulator))
            state.fractional_accumulator -= whole
            state.current_line_offset += whole

        if state.current_line_offset > state.max_offset:
            state.current_line_offset = state.max_offset

    def is_at_end(self) -> bool:
        """True when the last line sits at the bottom of the window."""
        return self.state.current_line_offset >= self.state.max_offset

    def render(self) -> str:
        """Return the frame for right now, advancing the end-of-text phases.

        HOW: Samples the clock once. While scrolling, the frame is the
        progress header followed by the visible window. Once the end is
        reached, the final lines are held for the hold duration, then the
        banner is shown for the banner duration; after that the phase
        becomes IDLE unless auto replay is on, in which case the banner
        stays up until the loop resets the position.

        RULES:
        - Empty line sequence → EMPTY_PLACEHOLDER, no phase change
        - HOLDING_FINAL_LINE is entered on the first render at the end
        - IDLE and an elapsed replay-pending banner both render the banner
        """
        state = self.state
        if not state.lines:
            return EMPTY_PLACEHOLDER

        now = self._clock()
        header = self._header(now)
        window_frame = "{}\n{}".format(header, "\n".join(self._visible_window()))
        banner_frame = "{}\n\n{}".format(header, END_BANNER)

        if not self.is_at_end():
            return window_frame

        if state.phase == Phase.SCROLLING:
            self._enter_phase(Phase.HOLDING_FINAL_LINE, now)
            logger.info("Reached end of text, holding final lines")
            return window_frame

        if state.phase == Phase.HOLDING_FINAL_LINE:
            if now - self._phase_started(now) < self._final_line_hold_s:
                return window_frame
            self._enter_phase(Phase.SHOWING_END_BANNER, now)
            logger.info("Showing end banner")

        if state.phase == Phase.SHOWING_END_BANNER:
            banner_done = now - self._phase_started(now) >= self._end_banner_s
            if banner_done and not state.auto_replay_enabled:
                self._enter_phase(Phase.IDLE, now)
                logger.info("End banner finished, teleprompter idle")

        return banner_frame

    def awaiting_replay(self) -> bool:
        """True when the banner has run its course and a replay should follow."""
        state = self.state
        if state.phase != Phase.SHOWING_END_BANNER or not state.auto_replay_enabled:
            return False
        now = self._clock()
        return now - self._phase_started(now) >= self._end_banner_s

    # ------------------------------------------------------------------
    # Progress / stopwatch
    # ------------------------------------------------------------------

    def progress_percent(self) -> int:
        """Scroll progress 0–100; 100 when there is nothing to scroll."""
        state = self.state
        if state.line_count <= state.visible_line_count:
            return 100
        ratio = state.current_line_offset / state.max_offset
        # round half up
        percent = int(math.floor(ratio * 100 + 0.5))
        return min(100, max(0, percent))

    def elapsed_text(self, now: Optional[float] = None) -> str:
        """Time since the position was last reset, as MM:SS."""
        if now is None:
            now = self._clock()
        total_seconds = max(0, int(now - self.state.session_started_at))
        minutes, seconds = divmod(total_seconds, 60)
        return "{:02d}:{:02d}".format(minutes, seconds)

    def snapshot(self) -> Dict[str, Any]:
        """A JSON-friendly view of the state, for status endpoints and logs."""
        state = self.state
        return {
            "line_count": state.line_count,
            "line_width": state.line_width,
            "visible_lines": state.visible_line_count,
            "scroll_speed": state.scroll_rate_wpm,
            "tick_interval_ms": state.tick_interval_ms,
            "auto_replay": state.auto_replay_enabled,
            "current_line_offset": state.current_line_offset,
            "max_offset": state.max_offset,
            "progress_percent": self.progress_percent(),
            "elapsed": self.elapsed_text(),
            "phase": state.phase.value,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reflow(self) -> None:
        state = self.state
        state.lines = wrap_text(state.source_text, state.line_width)
        estimate = estimate_words_per_line(state.source_text, state.line_width)
        state.avg_words_per_line = estimate if estimate > 0 else MIN_WORDS_PER_LINE_FALLBACK
        logger.debug("Average words per line: %.2f", state.avg_words_per_line)

    def _recalculate_pacing(self) -> None:
        state = self.state
        words_per_tick = (state.scroll_rate_wpm / 60.0) * (state.tick_interval_ms / 1000.0)
        self._lines_per_tick = words_per_tick / state.avg_words_per_line
        logger.debug(
            "Words per tick (%dms): %.4f, lines per tick: %.4f",
            state.tick_interval_ms,
            words_per_tick,
            self._lines_per_tick,
        )

    def _clamp_offset(self) -> None:
        state = self.state
        state.current_line_offset = min(max(0, state.current_line_offset), state.max_offset)

    def _cancel_phase_unless_at_end(self) -> None:
        if self.state.phase != Phase.SCROLLING and not self.is_at_end():
            self.state.phase = Phase.SCROLLING
            self.state.phase_entered_at = None

    def _enter_phase(self, phase: Phase, now: float) -> None:
        self.state.phase = phase
        self.state.phase_entered_at = now

    def _phase_started(self, now: float) -> float:
        entered = self.state.phase_entered_at
        return now if entered is None else entered

    def _header(self, now: float) -> str:
        return "[{}%] | {}".format(self.progress_percent(), self.elapsed_text(now))

    def _visible_window(self) -> List[str]:
        state = self.state
        start = state.current_line_offset
        window = state.lines[start:start + state.visible_line_count]
        window.extend([""] * (state.visible_line_count - len(window)))
        return window
