"""Line reflow library for teleprompter displays.

WHY: The scroll engine needs raw text reflowed into fixed-width display
lines plus a words-per-line estimate for pacing. Keeping the reflow in
its own small library means the engine never deals with wrapping rules,
and the wrapping rules can be tested on their own.

HOW: Three public entry points:
  wrap_text()               — text + width → ordered display lines
  estimate_words_per_line() — text + width → average words per line
  convert_line_width()      — preset name or numeric override → width

RULES:
- All functions are pure and deterministic (no global state).
- width <= 0 raises ValueError in wrap_text/estimate_words_per_line.
- Hanzi text is auto-detected unless is_hanzi is passed explicitly.
- Preset names are case-insensitive: "Very Narrow" ... "Very Wide".
"""

from typing import List, Optional, Union

from .core import is_mostly_hanzi, wrap_lines, words_per_line
from .presets import (
    DEFAULT_LINE_WIDTH,
    HANZI_FALLBACK_WIDTH,
    HANZI_LINE_WIDTH_PRESETS,
    LATIN_FALLBACK_WIDTH,
    LINE_WIDTH_PRESETS,
)

__all__ = [
    "wrap_text",
    "estimate_words_per_line",
    "convert_line_width",
    "LINE_WIDTH_PRESETS",
    "HANZI_LINE_WIDTH_PRESETS",
    "DEFAULT_LINE_WIDTH",
]


def wrap_text(text: str, width: int, is_hanzi: Optional[bool] = None) -> List[str]:
    """Reflow text into display lines of at most ``width`` characters.

    WHY: This is the single public entry point for reflow. The scroll
    engine calls it whenever the text or the line width changes.

    RULES:
    - Explicit newlines start a new line; blank lines are dropped.
    - Words wider than the line are hard-split.
    - is_hanzi=None means auto-detect from the text.

    Args:
        text: Raw source text.
        width: Maximum characters per line.
        is_hanzi: Force (or disable) character-based wrapping.

    Returns:
        Ordered list of display lines (empty list for blank text).

    Raises:
        ValueError: If width is not positive.
    """
    if is_hanzi is None:
        is_hanzi = is_mostly_hanzi(text)
    return wrap_lines(text, width, is_hanzi=is_hanzi)


def estimate_words_per_line(text: str, width: int, is_hanzi: Optional[bool] = None) -> float:
    """Estimate how many words of ``text`` fit on an average line.

    HOW: Wraps the text at the given width and divides the word count
    by the line count.

    RULES:
    - Returns 0.0 for empty or whitespace-only text.
    - Raises ValueError for width <= 0 (same as wrap_text).
    """
    return words_per_line(text, wrap_text(text, width, is_hanzi=is_hanzi))


def convert_line_width(value: Union[str, int, float, None], is_hanzi: bool = False) -> int:
    """Resolve a line width setting to a character count.

    WHY: The line_width setting is either one of the named presets or a
    numeric override typed by the viewer.

    RULES:
    - int/float values (and numeric strings) are used as-is, floored to >= 1.
    - Preset names are matched case-insensitively, surrounding spaces ignored.
    - None or unknown names map to the fallback width (45 Latin, 14 Hanzi).
    """
    fallback = HANZI_FALLBACK_WIDTH if is_hanzi else LATIN_FALLBACK_WIDTH

    if value is None or isinstance(value, bool):
        return fallback

    # Numbers and numeric strings; inf/nan fall through to the fallback
    try:
        return max(1, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        pass

    name = str(value).strip().lower()

    presets = HANZI_LINE_WIDTH_PRESETS if is_hanzi else LINE_WIDTH_PRESETS
    return presets.get(name, fallback)
