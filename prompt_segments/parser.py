"""
Prompt text -> segment tree.

Syntax understood by the parser:

  {text}   [text]      weighted emphasis; repeated brackets ({{text}}) raise the level
  !name                random preset (wildcard)
  name:value           fixed preset (keyword)
  (a|b|c)              inline wildcard; nested groups stay literal inside an option

Anything that does not form one of these (unterminated or mismatched brackets,
a lone '(' or '!') is kept as literal text, so every input parses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from .factory import (
    create_inline_wildcard_segment,
    create_preset_segment,
    create_text_segment,
    create_weighted_segment,
)
from .operations import optimize_tree
from .segments import BracketType, PresetMode, Segment, TextSegment, WeightedSegment
from .weights import MAX_BRACKET_LEVEL

NAME_CHAR_PATTERN = re.compile(r"[\w\-]")
WORD_PATTERN = re.compile(r"[\w\-]+")
WILDCARD_PRESET_PATTERN = re.compile(r"!([\w\-]+)")
KEYWORD_PRESET_PATTERN = re.compile(r"([\w\-]+):([^\s,:(){}\[\]|]+)")

OPENERS = {"{": "}", "[": "]"}
CLOSERS = {"}", "]"}
BRACKET_TYPES = {"{": BracketType.INCREASE, "[": BracketType.DECREASE}

# Weighted spans nested deeper than this are read as literal text.
MAX_PARSE_DEPTH = 128


@dataclass(frozen=True)
class ParseResult:
    success: bool
    segment: Optional[Segment] = None
    error: Optional[str] = None


# ---------------------- Bracket matching ------------------------------------

def _find_weighted_close(text: str, start: int) -> Tuple[int, bool]:
    """
    Match the '{' or '[' at `start`.

    Returns (index, True) for the matching closer, (index, False) for the first
    closer of the wrong kind, and (-1, False) when the span never closes.
    """
    expected = []
    for i in range(start, len(text)):
        c = text[i]
        if c in OPENERS:
            expected.append(OPENERS[c])
        elif c in CLOSERS:
            if c != expected[-1]:
                return i, False
            expected.pop()
            if not expected:
                return i, True
    return -1, False


def _find_paren_close(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        c = text[i]
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_top_level_options(content: str) -> List[str]:
    """
    Split on '|' tokens that are not inside a nested (...) group.
    Returns trimmed parts; blank parts are kept so callers can decide.
    """
    parts = []
    buf = []
    depth = 0
    for c in content:
        if c == "(":
            depth += 1
            buf.append(c)
        elif c == ")":
            if depth > 0:
                depth -= 1
            buf.append(c)
        elif c == "|" and depth == 0:
            parts.append("".join(buf).strip())
            buf = []
        else:
            buf.append(c)
    parts.append("".join(buf).strip())
    return parts


def _has_top_level_pipe(content: str) -> bool:
    return len(split_top_level_options(content)) > 1


def _at_word_boundary(text: str, i: int) -> bool:
    return i == 0 or not NAME_CHAR_PATTERN.match(text[i - 1])


# ---------------------- Unit readers ----------------------------------------

def _read_weighted(text: str, start: int, depth: int) -> Tuple[Optional[WeightedSegment], int]:
    """
    Read a weighted span at `start`. Returns (segment, next_index), or
    (None, next_index) when text[start:next_index] must be kept literally.
    """
    if depth >= MAX_PARSE_DEPTH:
        return None, start + 1

    close, matched = _find_weighted_close(text, start)
    if close == -1:
        # unterminated: only the bracket itself becomes text
        return None, start + 1
    if not matched:
        return None, close + 1

    bracket_type = BRACKET_TYPES[text[start]]
    children = _parse_units(text[start + 1:close], depth + 1)
    level = 1

    # {{x}} is one span of level 2, not a span inside a span
    if len(children) == 1:
        inner = children[0]
        if (
            isinstance(inner, WeightedSegment)
            and inner.bracket_type is bracket_type
            and inner.bracket_level < MAX_BRACKET_LEVEL
        ):
            level = inner.bracket_level + 1
            children = list(inner.children or ())

    return create_weighted_segment(children, bracket_type, level), close + 1


def _read_inline_wildcard(text: str, start: int) -> Tuple[Optional[Segment], int]:
    close = _find_paren_close(text, start)
    if close == -1:
        return None, start + 1
    content = text[start + 1:close]
    if not _has_top_level_pipe(content):
        return None, start + 1
    options = [opt for opt in split_top_level_options(content) if opt]
    if not options:
        return None, start + 1
    return create_inline_wildcard_segment(options), close + 1


def _parse_units(text: str, depth: int = 0) -> List[Segment]:
    units: List[Segment] = []
    buf: List[str] = []

    def emit(segment: Segment) -> None:
        if buf:
            units.append(create_text_segment("".join(buf)))
            buf.clear()
        units.append(segment)

    i = 0
    n = len(text)
    while i < n:
        c = text[i]

        if c in OPENERS:
            segment, end = _read_weighted(text, i, depth)
            if segment is None:
                buf.append(text[i:end])
            else:
                emit(segment)
            i = end
            continue

        if c == "(":
            segment, end = _read_inline_wildcard(text, i)
            if segment is None:
                buf.append(text[i:end])
            else:
                emit(segment)
            i = end
            continue

        if c == "!" and _at_word_boundary(text, i):
            m = WILDCARD_PRESET_PATTERN.match(text, i)
            if m:
                emit(create_preset_segment(m.group(1), PresetMode.RANDOM))
                i = m.end()
                continue

        elif NAME_CHAR_PATTERN.match(c) and _at_word_boundary(text, i):
            m = KEYWORD_PRESET_PATTERN.match(text, i)
            if m:
                emit(create_preset_segment(m.group(1), PresetMode.FIXED, m.group(2)))
                i = m.end()
                continue
            # not a keyword: take the whole word so its tail is not retried
            word = WORD_PATTERN.match(text, i)
            buf.append(word.group(0))
            i = word.end()
            continue

        buf.append(c)
        i += 1

    if buf:
        units.append(create_text_segment("".join(buf)))
    return units


# ---------------------- Public API ------------------------------------------

def parse_prompt(text: Optional[str]) -> TextSegment:
    """
    Parse prompt text into a tree rooted at an empty text segment.

    Never raises on malformed content; unparseable spans come back as text.
    """
    root = create_text_segment("", children=())
    if not text:
        return root
    root = replace(root, children=tuple(_parse_units(text)))
    return optimize_tree(root)


def parse_inline_wildcard(text: str) -> ParseResult:
    """Parse text that is exactly one "(a|b|...)" group."""
    if not text or not text.startswith("(") or _find_paren_close(text, 0) != len(text) - 1:
        return ParseResult(False, error="Invalid inline wildcard pattern")

    content = text[1:-1]
    if not content.strip():
        return ParseResult(False, error="Empty inline wildcard")

    options = [opt for opt in split_top_level_options(content) if opt]
    if not options:
        return ParseResult(False, error="No valid options found")

    return ParseResult(True, segment=create_inline_wildcard_segment(options))


def parse_weighted_text(text: str) -> ParseResult:
    """Parse text that is exactly one weighted span, e.g. "{{detailed}}"."""
    if not text or text[0] not in OPENERS:
        return ParseResult(False, error="Not a weighted text pattern")

    close, matched = _find_weighted_close(text, 0)
    if not matched or close != len(text) - 1:
        return ParseResult(False, error="Unbalanced weighted text pattern")

    segment, _ = _read_weighted(text, 0, 0)
    if segment is None:
        return ParseResult(False, error="Weighted text nests too deeply")

    segment = optimize_tree(segment)
    if not segment.children:
        segment = replace(segment, children=(create_text_segment(""),))
    return ParseResult(True, segment=segment)


def parse_preset_text(text: str) -> ParseResult:
    """Parse "!name" (random preset) or "name:value" (fixed preset)."""
    if text:
        m = WILDCARD_PRESET_PATTERN.fullmatch(text)
        if m:
            return ParseResult(True, segment=create_preset_segment(m.group(1), PresetMode.RANDOM))

        m = KEYWORD_PRESET_PATTERN.fullmatch(text)
        if m:
            return ParseResult(
                True,
                segment=create_preset_segment(m.group(1), PresetMode.FIXED, m.group(2)),
            )

    return ParseResult(False, error="Not a preset pattern")
