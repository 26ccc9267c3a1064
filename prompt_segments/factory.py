"""Constructors that build well-formed segments with fresh ids."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence
from uuid import uuid4

from loguru import logger

from .errors import ValidationError
from .segments import (
    BracketType,
    InlineWildcardSegment,
    PresetMode,
    PresetSegment,
    Segment,
    TextSegment,
    WeightedSegment,
)
from .weights import MAX_BRACKET_LEVEL, display_value, weight_intensity

RANDOM_PRESET_COLOR = "#8E6FD8"
FIXED_PRESET_COLOR = "#4A9F8E"
INLINE_WILDCARD_COLOR = "#8E6FD8"

# 48 random bits
ID_LENGTH = 12


def generate_segment_id(prefix: Optional[str] = None) -> str:
    short = uuid4().hex[:ID_LENGTH]
    return f"{prefix}_{short}" if prefix else short


def coerce_bracket_type(bracket_type) -> BracketType:
    try:
        return BracketType(bracket_type)
    except ValueError:
        raise ValidationError(f"Invalid bracket type: {bracket_type!r}") from None


def coerce_preset_mode(mode) -> PresetMode:
    try:
        return PresetMode(mode)
    except ValueError:
        raise ValidationError(f"Invalid preset mode: {mode!r}") from None


def is_integer(level) -> bool:
    return isinstance(level, int) and not isinstance(level, bool)


def create_text_segment(content: str, children: Optional[Iterable[Segment]] = None) -> TextSegment:
    if content is None:
        raise ValidationError("Text segment content is required")
    return TextSegment(
        id=generate_segment_id("txt"),
        content=content,
        children=tuple(children) if children is not None else None,
    )


def create_weighted_segment(
    children: Iterable[Segment],
    bracket_type: BracketType,
    bracket_level: int,
) -> WeightedSegment:
    """
    Wrap `children` in `bracket_level` brackets of `bracket_type`.

    The children are copied into a new tuple; nodes themselves are frozen,
    so sharing them with the caller is safe.
    """
    bracket_type = coerce_bracket_type(bracket_type)
    if not is_integer(bracket_level):
        raise ValidationError(f"Bracket level must be an integer, got {bracket_level!r}")
    if bracket_level < 0:
        raise ValidationError("Bracket level must be a non-negative integer")
    if bracket_level > MAX_BRACKET_LEVEL:
        raise ValidationError(f"Bracket level exceeds maximum allowed value ({MAX_BRACKET_LEVEL})")

    value = display_value(bracket_level, bracket_type)
    return WeightedSegment(
        id=generate_segment_id("wgt"),
        bracket_type=bracket_type,
        bracket_level=bracket_level,
        children=tuple(children or ()),
        metadata={"intensity": weight_intensity(value, bracket_type)},
    )


def create_preset_segment(
    name: str,
    mode: PresetMode,
    selected: Optional[str] = None,
    values: Optional[Sequence[str]] = None,
) -> PresetSegment:
    if not name:
        raise ValidationError("Preset name is required")
    mode = coerce_preset_mode(mode)

    if mode is PresetMode.FIXED and not selected:
        logger.warning("Selected value should be provided for fixed preset '{}'", name)

    return PresetSegment(
        id=generate_segment_id("pre"),
        name=name,
        mode=mode,
        selected=selected,
        metadata={
            "color": RANDOM_PRESET_COLOR if mode is PresetMode.RANDOM else FIXED_PRESET_COLOR,
            "values": list(values or []),
        },
    )


def create_inline_wildcard_segment(options: Sequence[str]) -> InlineWildcardSegment:
    if isinstance(options, (str, bytes)) or not isinstance(options, (list, tuple)):
        raise ValidationError("Options must be a non-empty list of strings")
    if len(options) == 0:
        raise ValidationError("Options must be a non-empty list of strings")
    if all(not str(opt).strip() for opt in options):
        raise ValidationError("Inline wildcard must have at least one non-blank option")

    return InlineWildcardSegment(
        id=generate_segment_id("wld"),
        options=tuple(options),
        metadata={"color": INLINE_WILDCARD_COLOR},
    )
