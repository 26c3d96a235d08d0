"""Text processing helpers for overlay layout."""
from typing import Callable, List

from ..logging_utils import get_logger

logger = get_logger(__name__)


def normalize_text(text):
    """Strip surrounding whitespace from overlay text.

    Args:
        text: The raw text, possibly None

    Returns:
        str: Trimmed text, empty if there is nothing to draw
    """
    if not text:
        return ""
    return text.strip()


def word_wrap(text: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    """Wrap text into lines no wider than max_width where possible.

    Explicit newlines always break. Within a line, words are added greedily
    while the measured width fits; a single word wider than max_width gets
    a line of its own. Blank lines are dropped.

    Args:
        text: The text to wrap
        measure: Returns the rendered width of a string
        max_width: Maximum line width in the units of measure

    Returns:
        list: Wrapped lines without leading or trailing whitespace
    """
    wrapped_lines = []

    for line in text.split('\n'):
        current = ''
        for word in line.split():
            candidate = f"{current} {word}" if current else word
            if current and measure(candidate) > max_width:
                wrapped_lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            wrapped_lines.append(current)

    return wrapped_lines


def block_height(line_count: int, font_height: float, line_spacing: float) -> float:
    """Height of a block of wrapped lines.

    The last line contributes its font height only, without the extra
    line spacing below it.
    """
    if line_count <= 0:
        return 0.0
    return line_count * font_height * line_spacing - (line_spacing - 1) * font_height
