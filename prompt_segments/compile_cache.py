"""
Per-segment compile cache and incremental recompilation.

An editor recompiles after every keystroke, but an edit only touches the path
from the root down to the changed node. `incremental_compile` drops the cached
text along those paths and reuses everything else.

Segment ids survive `update_segment`, so cached text is keyed by id and must
be invalidated explicitly for every id the caller changed.
"""

from __future__ import annotations

import functools
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from .compiler import (
    CompileOptions,
    compile_inline_wildcard,
    compile_preset_segment,
    compile_segments,
    create_seeded_random,
    wrap_weighted,
)
from .errors import ValidationError
from .segments import (
    InlineWildcardSegment,
    PresetSegment,
    Segment,
    TextSegment,
    WeightedSegment,
)
from .settings import get_settings

CacheKey = Tuple[str, bool, int]

# expansion never reaches the cached path, so this source is never drawn from
_UNUSED_RANDOM = create_seeded_random(0)


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    hit_rate: float
    dependencies: int = 0


class SegmentCompileCache:
    """
    LRU cache of compiled text per segment, plus a parent -> child dependency graph.

    A segment's dependency entry lives only as long as the segment has cached
    text, so the graph is bounded by `max_size` as well.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max(1, max_size)
        self._entries: "OrderedDict[CacheKey, str]" = OrderedDict()
        self._keys_by_id: Dict[str, Set[CacheKey]] = {}
        self._dependencies: Dict[str, Set[str]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(segment_id: str, options: CompileOptions) -> CacheKey:
        return (str(segment_id), bool(options.expand_wildcards), options.seed or 0)

    def get(self, segment_id: str, options: CompileOptions) -> Optional[str]:
        key = self.make_key(segment_id, options)
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def set(self, segment_id: str, options: CompileOptions, result: str) -> None:
        key = self.make_key(segment_id, options)
        if key in self._entries:
            self._entries[key] = result
            self._entries.move_to_end(key)
            return
        while len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            self._drop(oldest)
        self._entries[key] = result
        self._keys_by_id.setdefault(key[0], set()).add(key)

    def _drop(self, key: CacheKey) -> None:
        self._entries.pop(key, None)
        keys = self._keys_by_id.get(key[0])
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del self._keys_by_id[key[0]]
            self._dependencies.pop(key[0], None)

    def register_dependency(self, parent_id: str, child_id: str) -> None:
        self._dependencies.setdefault(parent_id, set()).add(child_id)

    def invalidate(self, segment_id: str) -> None:
        if not segment_id:
            return
        for key in list(self._keys_by_id.get(segment_id, ())):
            self._drop(key)
        self._dependencies.pop(segment_id, None)

    def invalidate_tree(self, segment_id: str) -> None:
        """Invalidate `segment_id` and, breadth-first, every segment registered under it."""
        if not segment_id:
            return
        seen = set()
        queue = deque([segment_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            # read dependents before invalidate() forgets them
            queue.extend(dep for dep in self._dependencies.get(current, ()) if dep not in seen)
            self.invalidate(current)

    @property
    def dependency_count(self) -> int:
        return len(self._dependencies)

    def stats(self) -> CacheStats:
        total = self.hits + self.misses
        return CacheStats(
            hits=self.hits,
            misses=self.misses,
            size=len(self._entries),
            hit_rate=self.hits / total if total else 0.0,
            dependencies=len(self._dependencies),
        )

    def clear(self) -> None:
        self._entries.clear()
        self._keys_by_id.clear()
        self._dependencies.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


@functools.lru_cache(maxsize=1)
def get_compile_cache() -> SegmentCompileCache:
    """Process-wide cache. Not synchronized; share it within one thread only."""
    return SegmentCompileCache(get_settings().compile_cache_size)


def find_affected_paths(root: Segment, changed_ids: Iterable[str]) -> List[List[str]]:
    """Id paths from `root` down to every node whose id is in `changed_ids`."""
    changed = set(changed_ids)
    paths: List[List[str]] = []

    def walk(node: Segment, prefix: List[str]) -> None:
        path = prefix + [node.id]
        if node.id in changed:
            paths.append(path)
        for child in node.children or ():
            walk(child, path)

    walk(root, [])
    return paths


def _compile_with_cache(segment: Segment, cache: SegmentCompileCache, options: CompileOptions) -> str:
    cached = cache.get(segment.id, options)
    if cached is not None:
        return cached

    children_text = ""
    for child in segment.children or ():
        cache.register_dependency(segment.id, child.id)
        children_text += _compile_with_cache(child, cache, options)

    if isinstance(segment, TextSegment):
        result = (segment.content or "") + children_text
    elif isinstance(segment, WeightedSegment):
        result = wrap_weighted(segment, children_text)
    elif isinstance(segment, PresetSegment):
        result = compile_preset_segment(segment, _UNUSED_RANDOM, False)
    elif isinstance(segment, InlineWildcardSegment):
        result = compile_inline_wildcard(segment, _UNUSED_RANDOM, False, options.max_depth)
    else:
        result = children_text

    cache.set(segment.id, options, result)
    return result


def incremental_compile(
    root: Segment,
    changed_ids: Iterable[str] = (),
    options: Optional[CompileOptions] = None,
    cache: Optional[SegmentCompileCache] = None,
) -> str:
    """
    Compile `root`, reusing cached text for every subtree not on a path to a
    changed id. The result always equals `compile_segments(root, options)`.
    """
    if root is None:
        raise ValidationError("Root segment is required for compilation")
    if options is None:
        options = CompileOptions()
    if options.expand_wildcards:
        # picks depend on document position, so per-node text cannot be reused
        return compile_segments(root, options)
    if cache is None:
        cache = get_compile_cache()

    for path in find_affected_paths(root, changed_ids):
        cache.invalidate_tree(path[-1])
        for segment_id in path[:-1]:
            cache.invalidate(segment_id)
        logger.debug("Invalidated compile cache along {}", " > ".join(path))

    return _compile_with_cache(root, cache, options)
