"""
Color normalization helpers for the layout analyzer.
"""

import re
from collections import Counter
from typing import Callable, Iterable, List

RGB_PATTERN = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)")

WHITE = "#ffffff"
BLACK = "#000000"


def rgb_to_hex(color: str) -> str:
    """
    Convert an ``rgb()``/``rgba()`` string to ``#rrggbb``.

    Hex input is only lower-cased; anything unparseable is returned as-is.
    """
    color = color.strip()
    if color.startswith("#"):
        return color.lower()

    match = RGB_PATTERN.match(color)
    if match:
        r, g, b = (min(int(channel), 255) for channel in match.groups())
        return f"#{r:02x}{g:02x}{b:02x}"
    return color


def normalize_colors(colors: Iterable[str]) -> List[str]:
    """Normalize every color of a raw sample list, keeping order."""
    return [rgb_to_hex(color) for color in colors if color]


def most_common_color(colors: Iterable[str], default: str) -> str:
    """
    Get the most frequent color; ties go to the color seen first.

    Args:
        colors: Raw color samples.
        default: Returned when there are no samples.

    Returns:
        Normalized hex color.
    """
    counts = Counter(normalize_colors(colors))
    if not counts:
        return default
    # most_common keeps insertion order among equal counts
    return counts.most_common(1)[0][0]


def first_matching(colors: Iterable[str], predicate: Callable[[str], bool], default: str) -> str:
    """First normalized color satisfying ``predicate``, else ``default``."""
    for color in normalize_colors(colors):
        if predicate(color):
            return color
    return default
