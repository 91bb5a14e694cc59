"""Viewer settings model and its application to a scroll engine.

WHY: Viewer settings arrive as loose key/value data (line_width may be
a preset name or a number, custom_text may be missing). A typed model
gives one place for defaults and coercion, and apply_settings() gives
one place that decides which engine mutators a settings change needs.

HOW: ViewerSettings is a Pydantic model with the defaults from config.
apply_settings() compares each field with the engine's current value,
calls only the mutators that differ, and reports what changed so the
coordinator can decide whether loops must restart.

RULES:
- Unknown keys are ignored, missing keys take the defaults
- custom_text None/"" means "use the default text"
- The text is applied before the width so a new text starts at line 0
- Clamping (speed, width, line count) is left to the engine
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from text_wrapping import convert_line_width
from text_wrapping.core import is_mostly_hanzi

from teleprompter.config import (
    DEFAULT_AUTO_REPLAY,
    DEFAULT_LINE_WIDTH_SETTING,
    DEFAULT_NUMBER_OF_LINES,
    DEFAULT_SCROLL_SPEED,
    DEFAULT_TEXT,
)
from teleprompter.core.engine import Clock, ScrollEngine

logger = logging.getLogger(__name__)


class ViewerSettings(BaseModel):
    """Per-viewer teleprompter settings as stored by the settings source."""

    model_config = ConfigDict(extra="ignore")

    line_width: Union[int, str] = Field(
        default=DEFAULT_LINE_WIDTH_SETTING,
        description="Width preset name ('Narrow', 'Medium', ...) or a character count.",
    )
    scroll_speed: float = Field(
        default=DEFAULT_SCROLL_SPEED,
        description="Scroll speed in words per minute.",
    )
    number_of_lines: int = Field(
        default=DEFAULT_NUMBER_OF_LINES,
        description="Number of lines visible at once.",
    )
    custom_text: str = Field(
        default="",
        description="Text to scroll; empty means the built-in default text.",
    )
    auto_replay: bool = Field(
        default=DEFAULT_AUTO_REPLAY,
        description="Restart from the beginning after the end banner.",
    )

    @field_validator("custom_text", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def merged(self, updates: Mapping[str, Any]) -> "ViewerSettings":
        """Return a copy with ``updates`` applied on top (validated)."""
        data = self.model_dump()
        data.update(updates)
        return ViewerSettings.model_validate(data)

    def effective_text(self) -> str:
        return self.custom_text or DEFAULT_TEXT

    def resolved_line_width(self) -> int:
        """Character width for these settings (Hanzi presets for Hanzi text)."""
        return convert_line_width(
            self.line_width,
            is_hanzi=is_mostly_hanzi(self.effective_text()),
        )


@dataclass
class SettingsChange:
    """What apply_settings() changed on the engine.

    RULES:
    - text_changed: position was reset, session loops must restart
    - auto_replay_disabled: pending replay timers must be cancelled
    - auto_replay_enabled: replay was switched on
    - layout_changed: width or line count changed (applied in place)
    """

    text_changed: bool = False
    auto_replay_disabled: bool = False
    auto_replay_enabled: bool = False
    layout_changed: bool = False


def create_engine(settings: ViewerSettings, clock: Optional[Clock] = None) -> ScrollEngine:
    """Build a fresh engine for a viewer from their settings."""
    return ScrollEngine(
        text=settings.effective_text(),
        line_width=settings.resolved_line_width(),
        scroll_speed=settings.scroll_speed,
        visible_lines=settings.number_of_lines,
        auto_replay=settings.auto_replay,
        clock=clock,
    )


def apply_settings(engine: ScrollEngine, settings: ViewerSettings) -> SettingsChange:
    """Apply settings to an existing engine, touching only what differs.

    WHY: Settings pushes re-send every key even when one value changed.
    Re-applying an unchanged text would throw the reader back to the
    first line, so each field is compared before its mutator runs.

    RULES:
    - Text differs → set_text() (position reset)
    - Width / line count differ → reflow with the offset preserved
    - Speed and auto replay are applied in place
    """
    change = SettingsChange()

    new_text = settings.effective_text()
    if engine.text != new_text:
        engine.set_text(new_text)
        change.text_changed = True

    width = settings.resolved_line_width()
    if engine.line_width != width:
        engine.set_line_width(width)
        change.layout_changed = True

    if engine.visible_lines != max(1, settings.number_of_lines):
        engine.set_visible_line_count(settings.number_of_lines)
        change.layout_changed = True

    engine.set_scroll_rate(settings.scroll_speed)

    if engine.auto_replay != settings.auto_replay:
        change.auto_replay_disabled = not settings.auto_replay
        change.auto_replay_enabled = settings.auto_replay
        engine.set_auto_replay(settings.auto_replay)

    logger.debug("Applied settings %s -> %s", settings.model_dump(exclude={"custom_text"}), change)
    return change
