from __future__ import annotations

from enum import Enum


class SegmentType(str, Enum):
    TEXT = "text"
    WEIGHTED = "weighted"
    PRESET = "preset"
    INLINE_WILDCARD = "inline_wildcard"


class BracketType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class PresetMode(str, Enum):
    RANDOM = "random"
    FIXED = "fixed"


BRACKET_CHARS = {
    BracketType.INCREASE: ("{", "}"),
    BracketType.DECREASE: ("[", "]"),
}
