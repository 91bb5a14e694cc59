"""Core line wrapping logic: greedy reflow and pacing estimates.

WHY: The teleprompter shows a fixed number of fixed-width lines. Raw
text has to be reflowed into display lines before it can be scrolled,
and the scroll pacing (words per minute) has to be converted into lines,
which needs an estimate of how many words land on an average line.

HOW: The pipeline has two stages:
  1. split_paragraphs() — normalizes line endings, splits on explicit
     newlines, collapses whitespace runs inside each paragraph.
  2. wrap_paragraph() — greedy wrap of one paragraph: break at the last
     space at or before the width, hard-split words longer than the width.
     Hanzi paragraphs have no spaces and are hard-split by character.

RULES:
- ALL functions are pure — same input, same output, no shared state.
- Text content is never modified beyond whitespace normalization.
- width <= 0 is invalid input and raises ValueError.
- Blank paragraphs are dropped (they would scroll as empty lines).
"""

import re
from typing import List

# =============================================================================
# Text Utilities
# =============================================================================

WHITESPACE_RE = re.compile(r"\s+")
HANZI_RE = re.compile("[\\u3400-\\u4dbf\\u4e00-\\u9fff\\uf900-\\ufaff]")


def count_words(text: str) -> int:
    """Return the number of whitespace-separated words in text."""
    return len(text.split())


def is_mostly_hanzi(text: str) -> bool:
    """True if more than half of the non-space characters are CJK ideographs.

    Used to pick character-based wrapping for Chinese text, which has
    no spaces to break on.
    """
    visible = WHITESPACE_RE.sub("", text)
    if not visible:
        return False
    return len(HANZI_RE.findall(visible)) * 2 > len(visible)


def split_paragraphs(text: str) -> List[str]:
    """Split text on explicit newlines and normalize whitespace.

    RULES:
    - \\r\\n and \\r are treated as \\n
    - Whitespace runs inside a paragraph collapse to a single space
    - Empty paragraphs are dropped
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = []
    for raw in text.split("\n"):
        cleaned = WHITESPACE_RE.sub(" ", raw).strip()
        if cleaned:
            paragraphs.append(cleaned)
    return paragraphs


# =============================================================================
# Wrapping
# =============================================================================

def wrap_paragraph(paragraph: str, width: int, is_hanzi: bool = False) -> List[str]:
    """Greedy-wrap a single paragraph into lines of at most ``width`` chars.

    WHY: Readers follow a teleprompter line by line; breaking inside a
    word is only acceptable when the word alone is wider than a line.

    HOW: While the remaining text is longer than the width, look for the
    last space at or before index ``width`` and cut there. If the first
    ``width`` characters contain no space (or the text is Hanzi), cut
    exactly at ``width``. Each chunk is stripped before it is emitted.

    Args:
        paragraph: A single paragraph with normalized whitespace.
        width: Maximum characters per line (>= 1).
        is_hanzi: Hard-split by character instead of breaking on spaces.

    Returns:
        Ordered list of non-empty lines.
    """
    lines: List[str] = []
    remaining = paragraph.strip()

    while remaining:
        if len(remaining) <= width:
            lines.append(remaining)
            break

        split_at = width
        if not is_hanzi:
            split_at = remaining.rfind(" ", 0, width + 1)
            if split_at <= 0:
                split_at = width

        chunk = remaining[:split_at].strip()
        if chunk:
            lines.append(chunk)
        remaining = remaining[split_at:].strip()

    return lines


def wrap_lines(text: str, width: int, is_hanzi: bool = False) -> List[str]:
    """Wrap every paragraph of text and concatenate the resulting lines.

    Raises:
        ValueError: If width is not a positive integer.
    """
    if width <= 0:
        raise ValueError("Line width must be >= 1, got {}".format(width))

    lines: List[str] = []
    for paragraph in split_paragraphs(text):
        lines.extend(wrap_paragraph(paragraph, width, is_hanzi=is_hanzi))
    return lines


def words_per_line(text: str, lines: List[str]) -> float:
    """Average number of source words per wrapped line.

    Returns 0.0 when there are no words or no lines; callers are
    expected to floor the result before dividing by it.
    """
    if not lines:
        return 0.0
    words = count_words(text)
    if words == 0:
        return 0.0
    return words / len(lines)
