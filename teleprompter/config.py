"""Configuration constants, pacing bounds, and .env loading.

WHY: Centralizes every tunable value — scroll bounds, end-of-text
durations, default viewer settings, server and integration URLs — so
they are easy to find, update, and override without touching the
engine or loop logic.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level values; the deployment-specific ones (ports, URLs, phase
durations) read an environment variable with a sensible default.

RULES:
- Durations are in milliseconds (suffix _MS), matching the settings API
- Scroll speed is bounded to [MIN_SCROLL_SPEED, MAX_SCROLL_SPEED] WPM
- Tick interval is bounded to [MIN_TICK_INTERVAL_MS, MAX_TICK_INTERVAL_MS]
- Integration URLs are optional; empty string means "not configured"
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the process is started from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Server / integration
# ---------------------------------------------------------------------------

HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8000)
PACKAGE_NAME = os.getenv("PACKAGE_NAME", "teleprompter")

SETTINGS_BASE_URL = os.getenv("SETTINGS_BASE_URL", "").strip()
"""Base URL of the remote settings service; empty disables HTTP settings."""

SETTINGS_API_KEY = os.getenv("SETTINGS_API_KEY", "").strip()
"""Optional bearer token for the settings service."""

DISPLAY_WEBHOOK_URL = os.getenv("DISPLAY_WEBHOOK_URL", "").strip()
"""URL frames are POSTed to; empty keeps frames in the in-memory buffer."""

HTTP_TIMEOUT_S = 5.0

# ---------------------------------------------------------------------------
# Pacing bounds
# ---------------------------------------------------------------------------

MIN_SCROLL_SPEED = 1
MAX_SCROLL_SPEED = 500

MIN_TICK_INTERVAL_MS = 100
MAX_TICK_INTERVAL_MS = 2000

MIN_WORDS_PER_LINE_FALLBACK = 5.0
"""Used when the words-per-line estimate is zero (empty/degenerate text)."""

# ---------------------------------------------------------------------------
# End-of-text and loop timing
# ---------------------------------------------------------------------------

STARTUP_DELAY_MS = _env_int("STARTUP_DELAY_MS", 5000)
FINAL_LINE_HOLD_MS = _env_int("FINAL_LINE_HOLD_MS", 5000)
END_BANNER_MS = _env_int("END_BANNER_MS", 10000)
REPLAY_DELAY_MS = _env_int("REPLAY_DELAY_MS", 5000)
END_REFRESH_INTERVAL_MS = _env_int("END_REFRESH_INTERVAL_MS", 500)
DISPLAY_DURATION_MS = _env_int("DISPLAY_DURATION_MS", 10000)
"""How long the display keeps a frame if no further update arrives."""

# ---------------------------------------------------------------------------
# Viewer defaults
# ---------------------------------------------------------------------------

DEFAULT_LINE_WIDTH_SETTING = "Medium"
DEFAULT_SCROLL_SPEED = 120
DEFAULT_NUMBER_OF_LINES = 4
DEFAULT_TICK_INTERVAL_MS = 500
DEFAULT_AUTO_REPLAY = False

# ---------------------------------------------------------------------------
# Display strings
# ---------------------------------------------------------------------------

END_BANNER = "*** END OF TEXT ***"
EMPTY_PLACEHOLDER = "No text available"

DEFAULT_TEXT = (
    "Welcome to the Teleprompter. This is a default text that will scroll "
    "at your set speed. You can replace this with your own content through "
    "the settings. The teleprompter will automatically scroll text at a "
    "comfortable reading pace. You can adjust the scroll speed (in words per "
    "minute), line width, and number of lines through the settings menu. As "
    "you read this text, it will continue to scroll upward, allowing you to "
    "deliver your presentation smoothly and professionally. You can also use "
    "the teleprompter to read your own text. Just enter your text in the "
    "settings and the teleprompter will display it for you to read. When you "
    "reach the end of the text, the teleprompter will show \"END OF TEXT\" "
    "and, with auto replay enabled, restart from the beginning after a short "
    "pause."
)
