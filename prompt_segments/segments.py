"""
Segment tree types.

A prompt is a tree of four node kinds:

  - TextSegment            plain text (the root of a parsed prompt is an empty one)
  - WeightedSegment        {...} / [...] emphasis wrapped `bracket_level` times
  - PresetSegment          !name (random) or name:value (fixed)
  - InlineWildcardSegment  (a|b|c) alternation

Nodes are frozen; edits in `operations` return new nodes and share the
untouched ones. The dataclasses do not validate their fields, so a damaged
node can still be rendered; validation lives in `factory` and
`operations.update_segment`.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Optional, Sequence, Tuple, Union

from .enums import BRACKET_CHARS, BracketType, PresetMode, SegmentType
from .weights import display_value as _display_value


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True, kw_only=True)
class Segment:
    id: str
    children: Optional[Tuple["Segment", ...]] = None
    metadata: Optional[Mapping[str, Any]] = None

    type: ClassVar[SegmentType]

    def __post_init__(self) -> None:
        # old and new trees share metadata, so it is stored read-only
        if self.children is not None and not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        if self.metadata is not None:
            object.__setattr__(self, "metadata", _freeze(self.metadata))


@dataclass(frozen=True, kw_only=True)
class TextSegment(Segment):
    type: ClassVar[SegmentType] = SegmentType.TEXT

    content: str = ""


@dataclass(frozen=True, kw_only=True)
class WeightedSegment(Segment):
    type: ClassVar[SegmentType] = SegmentType.WEIGHTED

    bracket_type: BracketType
    bracket_level: int

    @property
    def display_value(self) -> float:
        return _display_value(self.bracket_level, self.bracket_type)


@dataclass(frozen=True, kw_only=True)
class PresetSegment(Segment):
    type: ClassVar[SegmentType] = SegmentType.PRESET

    name: str
    mode: PresetMode
    selected: Optional[str] = None

    @property
    def values(self) -> list:
        """Preset values cached in metadata (empty when none were injected)."""
        if not self.metadata:
            return []
        return list(self.metadata.get("values") or [])


@dataclass(frozen=True, kw_only=True)
class InlineWildcardSegment(Segment):
    type: ClassVar[SegmentType] = SegmentType.INLINE_WILDCARD

    options: Tuple[str, ...]


AnySegment = Union[TextSegment, WeightedSegment, PresetSegment, InlineWildcardSegment]


# ---------------------------------------------------------------------------
# Patches
#
# A patch names the fields an update may change. None of them carries `id` or
# `type`, so an update can never rename or retype a node.
# ---------------------------------------------------------------------------

class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True, kw_only=True)
class SegmentPatch:
    """Fields shared by every segment kind. `children=None` drops the children."""

    children: Union[Sequence[Segment], None, _Unset] = UNSET
    metadata: Union[Mapping[str, Any], _Unset] = UNSET

    applies_to: ClassVar[Optional[type]] = None


@dataclass(frozen=True, kw_only=True)
class TextPatch(SegmentPatch):
    applies_to: ClassVar[Optional[type]] = TextSegment

    content: Union[str, None, _Unset] = UNSET


@dataclass(frozen=True, kw_only=True)
class WeightedPatch(SegmentPatch):
    applies_to: ClassVar[Optional[type]] = WeightedSegment

    bracket_type: Union[BracketType, str, _Unset] = UNSET
    bracket_level: Union[int, _Unset] = UNSET


@dataclass(frozen=True, kw_only=True)
class PresetPatch(SegmentPatch):
    applies_to: ClassVar[Optional[type]] = PresetSegment

    name: Union[str, _Unset] = UNSET
    mode: Union[PresetMode, str, _Unset] = UNSET
    selected: Union[str, None, _Unset] = UNSET


@dataclass(frozen=True, kw_only=True)
class InlineWildcardPatch(SegmentPatch):
    applies_to: ClassVar[Optional[type]] = InlineWildcardSegment

    options: Union[Sequence[str], _Unset] = UNSET


def is_text(segment: Segment) -> bool:
    return isinstance(segment, TextSegment)


def is_weighted(segment: Segment) -> bool:
    return isinstance(segment, WeightedSegment)


def is_preset(segment: Segment) -> bool:
    return isinstance(segment, PresetSegment)


def is_inline_wildcard(segment: Segment) -> bool:
    return isinstance(segment, InlineWildcardSegment)
