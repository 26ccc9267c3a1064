"""
Segment tree -> prompt text.

Without expansion the output is the prompt syntax itself, so
`compile_segments(parse_prompt(text)) == text` for canonical text. With
`expand_wildcards=True` every random preset and inline wildcard is replaced by
one concrete pick drawn from a seeded random source, in document order.
"""

from __future__ import annotations

import math
import random
import time
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .errors import ValidationError
from .parser import split_top_level_options
from .segments import (
    BRACKET_CHARS,
    BracketType,
    InlineWildcardSegment,
    PresetMode,
    PresetSegment,
    Segment,
    TextSegment,
    WeightedSegment,
)
from .settings import get_settings
from .weights import MAX_BRACKET_LEVEL

RandomSource = Callable[[], float]


class CompileOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    expand_wildcards: bool = False
    seed: Optional[int] = None
    max_depth: int = Field(default_factory=lambda: get_settings().max_expansion_depth, ge=0)


def create_seeded_random(seed: int) -> RandomSource:
    """
    Return a zero-argument function yielding floats in [0, 1).

    Every call gets its own generator; two sources built from the same seed
    produce the same sequence.
    """
    return random.Random(seed).random


def _resolve_seed(seed: Optional[int]) -> int:
    if seed is not None:
        return seed
    default_seed = get_settings().default_seed
    if default_seed is not None:
        return default_seed
    seed = time.time_ns()
    logger.debug("No seed supplied for wildcard expansion; using {}", seed)
    return seed


def _pick(items, rand: RandomSource):
    # guard against a source returning exactly 1.0
    index = min(int(math.floor(rand() * len(items))), len(items) - 1)
    return items[index]


# ---------------------- Nested wildcard expansion ---------------------------

def _find_group_close(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _expand(text: str, rand: RandomSource, depth: int, max_depth: int) -> str:
    """
    Expand groups in `text` with an explicit stack, so nesting depth is bounded
    by `max_depth` rather than by the interpreter's recursion limit.

    A picked option is pushed above the rest of its text, which keeps draws in
    document order: the pick is fully expanded before scanning resumes.
    """
    out: List[str] = []
    pending = [(text, depth)]
    while pending:
        chunk, level = pending.pop()
        if "(" not in chunk:
            out.append(chunk)
            continue
        if level > max_depth:
            logger.warning("Inline wildcard nesting exceeds max depth {}; leaving text unexpanded", max_depth)
            out.append(chunk)
            continue

        i = 0
        while True:
            start = chunk.find("(", i)
            if start == -1:
                out.append(chunk[i:])
                break
            out.append(chunk[i:start])

            close = _find_group_close(chunk, start)
            choices = []
            if close != -1:
                choices = [opt for opt in split_top_level_options(chunk[start + 1:close]) if opt]
            if not choices:
                out.append("(")
                i = start + 1
                continue

            picked = _pick(choices, rand)
            pending.append((chunk[close + 1:], level))
            pending.append((picked, level + 1))
            break

    return "".join(out)


def expand_nested_wildcards(text: str, random: RandomSource, max_depth: Optional[int] = None) -> str:
    """
    Resolve every "(a|b|...)" group in `text`, including groups that appear
    inside a picked option.

    Each group consumes exactly one call to `random`, left to right. Unclosed
    or empty groups are left as they are and consume nothing.
    """
    if max_depth is None:
        max_depth = get_settings().max_expansion_depth
    return _expand(text, random, 0, max_depth)


# ---------------------- Rendering -------------------------------------------

def apply_brackets(content: str, bracket_type: BracketType, bracket_level: int) -> str:
    if bracket_level <= 0:
        return content
    open_ch, close_ch = BRACKET_CHARS[BracketType(bracket_type)]
    return open_ch * bracket_level + content + close_ch * bracket_level


def _safe_level(segment: WeightedSegment) -> int:
    level = segment.bracket_level
    try:
        normalized = min(MAX_BRACKET_LEVEL, abs(int(level)))
    except (TypeError, ValueError):
        normalized = 0
    if normalized != level:
        logger.warning("Weighted segment {} has invalid bracket level {!r}; using {}", segment.id, level, normalized)
    return normalized


def wrap_weighted(segment: WeightedSegment, content: str) -> str:
    """Wrap already compiled child text in the segment's brackets."""
    try:
        bracket_type = BracketType(segment.bracket_type)
    except ValueError:
        logger.warning("Weighted segment {} has invalid bracket type {!r}", segment.id, segment.bracket_type)
        return content
    return apply_brackets(content, bracket_type, _safe_level(segment))


def compile_preset_segment(segment: PresetSegment, rand: RandomSource, expand_wildcards: bool) -> str:
    if segment.mode == PresetMode.FIXED:
        if expand_wildcards:
            if not segment.selected:
                logger.warning("Fixed preset '{}' has no selected value", segment.name)
            return segment.selected or ""
        return f"{segment.name}:{segment.selected or ''}"

    if not expand_wildcards:
        return f"!{segment.name}"

    values = segment.values
    if not values:
        logger.warning("Preset '{}' has no values to expand", segment.name)
        return ""
    return str(_pick(values, rand))


def compile_inline_wildcard(
    segment: InlineWildcardSegment,
    rand: RandomSource,
    expand_wildcards: bool,
    max_depth: int,
) -> str:
    options = list(segment.options or ())
    if not expand_wildcards:
        return "(" + "|".join(options) + ")"
    if not options:
        return ""
    return _expand(_pick(options, rand), rand, 1, max_depth)


def _compile_children(segment: Segment, rand: RandomSource, options: CompileOptions) -> str:
    return "".join(_compile_node(child, rand, options) for child in segment.children or ())


def _compile_node(segment: Segment, rand: RandomSource, options: CompileOptions) -> str:
    if segment is None:
        return ""

    if isinstance(segment, TextSegment):
        return (segment.content or "") + _compile_children(segment, rand, options)

    if isinstance(segment, WeightedSegment):
        return wrap_weighted(segment, _compile_children(segment, rand, options))

    if isinstance(segment, PresetSegment):
        return compile_preset_segment(segment, rand, options.expand_wildcards)

    if isinstance(segment, InlineWildcardSegment):
        return compile_inline_wildcard(segment, rand, options.expand_wildcards, options.max_depth)

    # unknown node kind: render whatever it holds
    return _compile_children(segment, rand, options)


def compile_segments(segment: Segment, options: Optional[CompileOptions] = None) -> str:
    """
    Render `segment` and its descendants as prompt text.

    Raises ValidationError only when `segment` is missing; odd nodes inside
    the tree are rendered as well as they can be.
    """
    if segment is None:
        raise ValidationError("Root segment is required for compilation")
    if options is None:
        options = CompileOptions()

    if options.expand_wildcards:
        rand = create_seeded_random(_resolve_seed(options.seed))
    else:
        rand = create_seeded_random(options.seed or 0)
    return _compile_node(segment, rand, options)
