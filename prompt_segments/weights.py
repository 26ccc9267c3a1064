"""
Weight model for bracket emphasis.

Each `{` multiplies a token's attention by 1.05, each `[` divides by 1.05, so a
decrease is the exact inverse of the same number of increases:

    {{cat}}  -> 1.05 ** 2      = 1.1025
    [[cat]]  -> 1 / 1.05 ** 2  ~ 0.9070
"""

from __future__ import annotations

import functools

from .enums import BracketType

WEIGHT_BASE = 1.05
MAX_BRACKET_LEVEL = 78
DECIMAL_PLACES = 4


@functools.lru_cache(maxsize=512)
def display_value(bracket_level: int, bracket_type: BracketType) -> float:
    """Return the multiplier shown for `bracket_level` brackets of `bracket_type`."""
    if bracket_level == 0:
        return 1.0
    if BracketType(bracket_type) is BracketType.INCREASE:
        return WEIGHT_BASE ** bracket_level
    return 1.0 / (WEIGHT_BASE ** bracket_level)


def weight_intensity(value: float, bracket_type: BracketType) -> float:
    """Color intensity bucket used by editors to tint weighted spans."""
    if BracketType(bracket_type) is BracketType.INCREASE:
        if value > 3.0:
            return 0.8
        if value > 1.5:
            return 0.6
        return 0.3
    if value < 0.4:
        return 0.8
    if value < 0.7:
        return 0.6
    return 0.3


def format_weight(value: float) -> str:
    return f"{value:.{DECIMAL_PLACES}f}".rstrip("0").rstrip(".")
