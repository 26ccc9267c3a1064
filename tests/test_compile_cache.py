from __future__ import annotations

import pytest

from prompt_segments.compile_cache import (
    CacheStats,
    SegmentCompileCache,
    find_affected_paths,
    incremental_compile,
)
from prompt_segments.compiler import CompileOptions, compile_segments
from prompt_segments.errors import ValidationError
from prompt_segments.operations import find_all, map_segments, update_segment
from prompt_segments.parser import parse_prompt
from prompt_segments.segments import TextPatch, TextSegment

OPTIONS = CompileOptions()


def _replace(root, updated):
    return map_segments(root, lambda node: updated if node.id == updated.id else node)


def test_incremental_compile_matches_full_compile() -> None:
    root = parse_prompt("a {{cat}} on !mat, style:oil (x|y)")
    cache = SegmentCompileCache()
    assert incremental_compile(root, cache=cache) == compile_segments(root)
    assert incremental_compile(root, cache=cache) == compile_segments(root)
    assert cache.stats().hits > 0


def test_incremental_compile_after_update() -> None:
    root = parse_prompt("a {cat} b [dog]")
    cache = SegmentCompileCache()
    incremental_compile(root, cache=cache)

    cat = find_all(root, lambda s: isinstance(s, TextSegment) and s.content == "cat")[0]
    new_root = _replace(root, update_segment(cat, TextPatch(content="tiger")))

    result = incremental_compile(new_root, [cat.id], cache=cache)
    assert result == "a {tiger} b [dog]"
    assert result == compile_segments(new_root)


def test_incremental_compile_reuses_untouched_subtrees() -> None:
    root = parse_prompt("a {cat} b [dog]")
    cache = SegmentCompileCache()
    incremental_compile(root, cache=cache)
    misses = cache.misses

    cat = find_all(root, lambda s: isinstance(s, TextSegment) and s.content == "cat")[0]
    new_root = _replace(root, update_segment(cat, TextPatch(content="tiger")))
    incremental_compile(new_root, [cat.id], cache=cache)

    # only root, the {..} span and the edited text are recompiled
    assert cache.misses - misses == 3


def test_incremental_compile_with_expansion_bypasses_cache() -> None:
    root = parse_prompt("(a|b|c) {(d|e)}")
    options = CompileOptions(expand_wildcards=True, seed=5)
    cache = SegmentCompileCache()
    assert incremental_compile(root, options=options, cache=cache) == compile_segments(root, options)
    assert len(cache) == 0


def test_incremental_compile_requires_root() -> None:
    with pytest.raises(ValidationError):
        incremental_compile(None, cache=SegmentCompileCache())


def test_find_affected_paths() -> None:
    root = parse_prompt("a {b {c} d}")
    outer = root.children[1]
    inner = outer.children[1]
    c = inner.children[0]

    assert find_affected_paths(root, [c.id]) == [[root.id, outer.id, inner.id, c.id]]
    assert find_affected_paths(root, ["missing"]) == []


def test_cache_lru_eviction() -> None:
    cache = SegmentCompileCache(max_size=2)
    cache.set("a", OPTIONS, "A")
    cache.set("b", OPTIONS, "B")
    assert cache.get("a", OPTIONS) == "A"
    cache.set("c", OPTIONS, "C")

    assert cache.get("b", OPTIONS) is None
    assert cache.get("a", OPTIONS) == "A"
    assert cache.get("c", OPTIONS) == "C"
    assert len(cache) == 2


def test_cache_keys_include_options() -> None:
    cache = SegmentCompileCache()
    cache.set("a", OPTIONS, "plain")
    assert cache.get("a", CompileOptions(expand_wildcards=True, seed=1)) is None
    assert cache.get("a", CompileOptions(seed=0)) == "plain"


def test_cache_stats() -> None:
    cache = SegmentCompileCache()
    assert cache.stats().hit_rate == 0.0
    cache.set("a", OPTIONS, "A")
    cache.get("a", OPTIONS)
    cache.get("b", OPTIONS)

    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)
    assert stats.hit_rate == pytest.approx(0.5)

    cache.clear()
    assert cache.stats() == CacheStats(hits=0, misses=0, size=0, hit_rate=0.0)


def test_invalidate_tree_follows_dependencies() -> None:
    cache = SegmentCompileCache()
    for segment_id in ("root", "child", "grandchild", "other"):
        cache.set(segment_id, OPTIONS, segment_id)
    cache.register_dependency("root", "child")
    cache.register_dependency("child", "grandchild")

    cache.invalidate_tree("child")

    assert cache.get("child", OPTIONS) is None
    assert cache.get("grandchild", OPTIONS) is None
    assert cache.get("root", OPTIONS) == "root"
    assert cache.get("other", OPTIONS) == "other"


def test_dependency_graph_is_bounded_by_cache_size() -> None:
    cache = SegmentCompileCache(max_size=10)
    for i in range(200):
        incremental_compile(parse_prompt(f"a {{b{i}}} [c {{d}}] e"), cache=cache)

    assert len(cache) == 10
    assert cache.dependency_count <= len(cache)
    assert cache.stats().dependencies == cache.dependency_count


def test_invalidate_forgets_dependencies() -> None:
    cache = SegmentCompileCache()
    cache.set("root", OPTIONS, "root")
    cache.set("child", OPTIONS, "child")
    cache.register_dependency("root", "child")
    assert cache.dependency_count == 1

    cache.invalidate("root")
    assert cache.dependency_count == 0
    assert cache.get("child", OPTIONS) == "child"


def test_incremental_compile_after_eviction_matches_full_compile() -> None:
    cache = SegmentCompileCache(max_size=3)
    root = parse_prompt("a {b [c] d} e (x|y)")
    for _ in range(3):
        assert incremental_compile(root, cache=cache) == compile_segments(root)
