"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint has its own request and/or response model. The
settings update model has every field optional so clients can push a
single changed key.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Phase values match teleprompter.core.engine.Phase exactly
- Response models never expose timers or other internals
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionStartRequest(BaseModel):
    """Lifecycle notification: a display session opened."""

    session_id: str = Field(description="Identifier of the display session.")
    viewer_id: str = Field(description="Identifier of the viewer who owns the session.")


class SettingsUpdateRequest(BaseModel):
    """Pushed settings change; omitted fields keep their current value."""

    line_width: Optional[Union[int, str]] = Field(
        default=None,
        description="Width preset ('Very Narrow', 'Narrow', 'Medium', 'Wide', 'Very Wide') or character count.",
    )
    scroll_speed: Optional[float] = Field(
        default=None,
        description="Scroll speed in words per minute (clamped to 1–500).",
    )
    number_of_lines: Optional[int] = Field(
        default=None,
        description="Number of lines visible at once.",
    )
    custom_text: Optional[str] = Field(
        default=None,
        description="Text to scroll; empty string restores the default text.",
    )
    auto_replay: Optional[bool] = Field(
        default=None,
        description="Restart from the beginning after the end banner.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """A registered display session."""

    session_id: str = Field(description="Identifier of the display session.")
    viewer_id: str = Field(description="Identifier of the viewer who owns the session.")
    live: bool = Field(description="False once the display channel closed.")
    running: bool = Field(description="True while the session has an armed timer.")


class SessionStopResponse(BaseModel):
    """Result of a session stop notification."""

    session_id: str = Field(description="Identifier of the stopped session.")
    stopped: bool = Field(description="Always true; 404 is returned for unknown sessions.")


class FrameResponse(BaseModel):
    """The last frame pushed to a session's display."""

    session_id: str = Field(description="Identifier of the display session.")
    text: str = Field(description="Frame text: progress header followed by the visible lines.")
    duration_ms: int = Field(description="How long the display keeps the frame without updates.")
    shown_at: float = Field(description="When the frame was pushed (Unix epoch seconds).")


class ViewerStateResponse(BaseModel):
    """Snapshot of a viewer's teleprompter."""

    line_count: int = Field(description="Number of reflowed lines.")
    line_width: int = Field(description="Wrap width in characters.")
    visible_lines: int = Field(description="Lines shown at once.")
    scroll_speed: float = Field(description="Scroll speed in words per minute.")
    tick_interval_ms: int = Field(description="Milliseconds between scroll ticks.")
    auto_replay: bool = Field(description="Whether the text restarts after the end banner.")
    current_line_offset: int = Field(description="Index of the first visible line.")
    max_offset: int = Field(description="Largest possible first-line index.")
    progress_percent: int = Field(description="Scroll progress, 0–100.")
    elapsed: str = Field(description="Time since the text (re)started, MM:SS.")
    phase: str = Field(description="scrolling | holding_final_line | showing_end_banner | idle")
    sessions: List[str] = Field(description="Open session identifiers of this viewer.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    app: str = Field(description="Package name of the app.", json_schema_extra={"example": "teleprompter"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})


class SettingsUpdateResponse(BaseModel):
    """Result of a settings push."""

    viewer_id: str = Field(description="Viewer the settings belong to.")
    applied: bool = Field(description="False when the viewer has no active teleprompter; values are kept for the next session.")
    text_changed: bool = Field(default=False, description="True when the text changed and scrolling restarted from the top.")
    state: Optional[ViewerStateResponse] = Field(default=None, description="Viewer state after the change, when applied.")
