"""Line width presets for teleprompter text wrapping.

WHY: Viewers pick a line width from a short list of named sizes
("Narrow", "Medium", ...) rather than typing a character count. The
display surface fits far fewer Hanzi characters per line than Latin
characters, so each preset has two character limits.

HOW: Plain dicts map the lowercase preset name to a character count.
convert_line_width() in the package root resolves a preset name (or a
numeric override) against these tables.

RULES:
- Presets are frozen constants — never mutate them at runtime.
- Keys are lowercase; lookups must lowercase the input first.
- Unknown preset names fall back to the *_FALLBACK_WIDTH value.
"""

from typing import Dict

# Latin-script widths (characters per line)
LINE_WIDTH_PRESETS: Dict[str, int] = {
    "very narrow": 21,
    "narrow": 30,
    "medium": 38,
    "wide": 44,
    "very wide": 52,
}

# Hanzi widths (ideographs per line)
HANZI_LINE_WIDTH_PRESETS: Dict[str, int] = {
    "very narrow": 7,
    "narrow": 10,
    "medium": 14,
    "wide": 18,
    "very wide": 21,
}

DEFAULT_LINE_WIDTH = LINE_WIDTH_PRESETS["medium"]

LATIN_FALLBACK_WIDTH = 45
HANZI_FALLBACK_WIDTH = 14
