"""
Immutable edits over a segment tree.

Every function returns new nodes and leaves its inputs alone; subtrees that an
edit does not touch are shared between the old and the new tree. When an
operation changes nothing it hands back the very object it was given.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .errors import ValidationError
from .factory import (
    coerce_bracket_type,
    coerce_preset_mode,
    create_text_segment,
    is_integer,
)
from .segments import (
    UNSET,
    InlineWildcardPatch,
    InlineWildcardSegment,
    PresetMode,
    PresetPatch,
    PresetSegment,
    Segment,
    SegmentPatch,
    TextPatch,
    TextSegment,
    WeightedPatch,
    WeightedSegment,
)
from .weights import MAX_BRACKET_LEVEL


# ---------------------------- Lookup ----------------------------------------

def find_by_id(root: Segment, segment_id: str) -> Optional[Segment]:
    """Depth-first, pre-order search including `root`. First match wins."""
    if root.id == segment_id:
        return root
    for child in root.children or ():
        found = find_by_id(child, segment_id)
        if found is not None:
            return found
    return None


def find_all(root: Segment, predicate: Callable[[Segment], bool]) -> List[Segment]:
    """Every node (pre-order, `root` included) for which `predicate` is true."""
    results = []
    if predicate(root):
        results.append(root)
    for child in root.children or ():
        results.extend(find_all(child, predicate))
    return results


# ---------------------------- Update ----------------------------------------

def deep_merge_metadata(target: Optional[Mapping[str, Any]], source: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge `source` into a copy of `target`.

      - mapping + mapping -> merged key by key (recursively)
      - list / tuple      -> copied, replaces the old value wholesale
      - anything else     -> replaces the old value
    """
    result = dict(target) if target else {}
    for key, value in source.items():
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge_metadata(current, value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge_metadata(None, value)
        elif isinstance(value, (list, tuple)):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _text_changes(segment: TextSegment, patch: TextPatch) -> Dict[str, Any]:
    if patch.content is UNSET:
        return {}
    return {"content": patch.content if patch.content is not None else ""}


def _weighted_changes(segment: WeightedSegment, patch: WeightedPatch) -> Dict[str, Any]:
    changes = {}
    if patch.bracket_type is not UNSET:
        changes["bracket_type"] = coerce_bracket_type(patch.bracket_type)
    if patch.bracket_level is not UNSET:
        raw_level = patch.bracket_level
        if not is_integer(raw_level):
            raise ValidationError(f"Bracket level must be an integer, got {raw_level!r}")
        level = min(MAX_BRACKET_LEVEL, abs(raw_level))
        if level != raw_level:
            logger.warning("bracket_level normalized from {} to {}", raw_level, level)
        changes["bracket_level"] = level
    return changes


def _preset_changes(segment: PresetSegment, patch: PresetPatch) -> Dict[str, Any]:
    changes = {}
    if patch.name is not UNSET:
        if not patch.name:
            raise ValidationError("Preset name cannot be empty")
        changes["name"] = patch.name

    mode = segment.mode
    if patch.mode is not UNSET:
        mode = coerce_preset_mode(patch.mode)
        changes["mode"] = mode

    selected = segment.selected
    if patch.selected is not UNSET:
        selected = patch.selected
        changes["selected"] = selected

    if mode is PresetMode.FIXED and not selected:
        if patch.selected is not UNSET:
            raise ValidationError("Fixed mode preset cannot have an empty selected value")
        if patch.mode is not UNSET:
            raise ValidationError("Fixed mode preset requires a selected value")
    return changes


def _inline_wildcard_changes(segment: InlineWildcardSegment, patch: InlineWildcardPatch) -> Dict[str, Any]:
    if patch.options is UNSET:
        return {}
    options = patch.options
    if isinstance(options, (str, bytes)) or not isinstance(options, (list, tuple)):
        raise ValidationError("Options must be a list of strings")
    valid = [opt for opt in options if opt is not None and str(opt).strip() != ""]
    if not valid:
        raise ValidationError("Inline wildcard must have at least one valid option")
    return {"options": tuple(valid)}


_VARIANT_CHANGES = (
    (TextSegment, _text_changes),
    (WeightedSegment, _weighted_changes),
    (PresetSegment, _preset_changes),
    (InlineWildcardSegment, _inline_wildcard_changes),
)


def update_segment(segment: Segment, patch: SegmentPatch) -> Segment:
    """
    Return a copy of `segment` with the fields set in `patch` applied.

    The node keeps its id and kind. `metadata` is deep-merged rather than
    replaced; `children=None` drops the child list.
    """
    if segment is None:
        raise ValidationError("Cannot update undefined or null segment")
    if patch.applies_to is not None and not isinstance(segment, patch.applies_to):
        raise ValidationError(
            f"{type(patch).__name__} cannot be applied to a {segment.type.value} segment"
        )

    changes: Dict[str, Any] = {}
    if patch.applies_to is not None:
        for kind, variant_changes in _VARIANT_CHANGES:
            if isinstance(segment, kind):
                changes.update(variant_changes(segment, patch))
                break

    if patch.children is not UNSET:
        changes["children"] = tuple(patch.children) if patch.children is not None else None
    if patch.metadata is not UNSET and patch.metadata is not None:
        changes["metadata"] = deep_merge_metadata(segment.metadata, patch.metadata)

    return replace(segment, **changes)


# ---------------------------- Structure -------------------------------------

def insert_segment(parent: Segment, new_segment: Segment, index: Optional[int] = None) -> Segment:
    """Insert `new_segment` at `index`; append when `index` is None, negative or past the end."""
    children = list(parent.children or ())
    if index is None or index < 0 or index >= len(children):
        children.append(new_segment)
    else:
        children.insert(index, new_segment)
    return replace(parent, children=tuple(children))


def remove_segment(root: Segment, segment_id: str) -> Tuple[Segment, bool]:
    """Remove the first node below `root` whose id matches. Returns (root, found)."""
    children = tuple(root.children or ())
    if not children:
        return root, False

    for i, child in enumerate(children):
        if child.id == segment_id:
            return replace(root, children=children[:i] + children[i + 1:]), True

    for i, child in enumerate(children):
        updated, found = remove_segment(child, segment_id)
        if found:
            return replace(root, children=children[:i] + (updated,) + children[i + 1:]), True

    return root, False


def split_text_segment(segment: TextSegment, position: int) -> Tuple[TextSegment, TextSegment]:
    """
    Split a text segment at a code point offset.

    The left half keeps the id, metadata and children; the right half is a new
    childless segment.
    """
    if not isinstance(segment, TextSegment):
        raise ValidationError("Only text segments can be split")
    content = segment.content
    if not is_integer(position) or position < 0 or position > len(content):
        raise ValidationError(
            f"Invalid split position: {position}. Content length: {len(content)}"
        )
    left = replace(segment, content=content[:position])
    right = create_text_segment(content[position:])
    return left, right


def _is_mergeable_text(segment: Segment) -> bool:
    # A text node with children renders them after its content; folding a
    # sibling into it would change the output order.
    return isinstance(segment, TextSegment) and not segment.children


def _merge_text_runs(children: Sequence[Segment]) -> Tuple[List[Segment], bool]:
    merged: List[Segment] = []
    modified = False
    for child in children:
        if merged and _is_mergeable_text(child) and _is_mergeable_text(merged[-1]):
            previous = merged[-1]
            merged[-1] = replace(previous, content=previous.content + child.content)
            modified = True
        else:
            merged.append(child)
    return merged, modified


def merge_adjacent_text(parent: Segment) -> Tuple[Segment, bool]:
    """Concatenate consecutive text children of `parent` (one level only)."""
    if not parent.children or len(parent.children) < 2:
        return parent, False
    merged, modified = _merge_text_runs(parent.children)
    if not modified:
        return parent, False
    return replace(parent, children=tuple(merged)), True


def _is_empty_text(segment: Segment) -> bool:
    return isinstance(segment, TextSegment) and segment.content == "" and not segment.children


def optimize_tree(root: Segment) -> Segment:
    """Drop empty text nodes and merge adjacent text at every level, leaves first."""
    if not root.children:
        return root

    changed = False
    kept = []
    for child in root.children:
        optimized = optimize_tree(child)
        if optimized is not child:
            changed = True
        if _is_empty_text(optimized):
            changed = True
            continue
        kept.append(optimized)

    merged, was_merged = _merge_text_runs(kept)
    if not changed and not was_merged:
        return root
    return replace(root, children=tuple(merged))


def map_segments(root: Segment, fn: Callable[[Segment], Segment]) -> Segment:
    """
    Rebuild the tree bottom-up, replacing each node with `fn(node)`.

    `fn` receives a node whose children were already mapped. Unchanged
    subtrees are returned as-is.
    """
    node = root
    if root.children:
        mapped = tuple(map_segments(child, fn) for child in root.children)
        if any(new is not old for new, old in zip(mapped, root.children)):
            node = replace(root, children=mapped)
    return fn(node)
