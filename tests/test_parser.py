from __future__ import annotations

import pytest

from prompt_segments.compiler import compile_segments
from prompt_segments.operations import optimize_tree
from prompt_segments.parser import (
    parse_inline_wildcard,
    parse_preset_text,
    parse_prompt,
    parse_weighted_text,
    split_top_level_options,
)
from prompt_segments.segments import (
    BracketType,
    InlineWildcardSegment,
    PresetMode,
    PresetSegment,
    TextSegment,
    WeightedSegment,
)


def test_empty_and_none_give_empty_root() -> None:
    for text in ("", None):
        root = parse_prompt(text)
        assert isinstance(root, TextSegment)
        assert root.content == ""
        assert root.children == ()


def test_whitespace_only_is_kept() -> None:
    root = parse_prompt("   ")
    assert len(root.children) == 1
    assert root.children[0].content == "   "


def test_plain_text_is_one_segment() -> None:
    root = parse_prompt("a cat, sitting")
    assert len(root.children) == 1
    assert root.children[0].content == "a cat, sitting"


def test_weighted_spans() -> None:
    root = parse_prompt("a {cat} b [dog]")
    kinds = [type(child) for child in root.children]
    assert kinds == [TextSegment, WeightedSegment, TextSegment, WeightedSegment]

    increase, decrease = root.children[1], root.children[3]
    assert increase.bracket_type is BracketType.INCREASE
    assert increase.bracket_level == 1
    assert increase.children[0].content == "cat"
    assert decrease.bracket_type is BracketType.DECREASE
    assert decrease.children[0].content == "dog"


def test_repeated_brackets_collapse_into_one_level() -> None:
    root = parse_prompt("{{{masterpiece}}}")
    (span,) = root.children
    assert isinstance(span, WeightedSegment)
    assert span.bracket_level == 3
    assert span.children[0].content == "masterpiece"


def test_inner_span_with_surrounding_text_stays_nested() -> None:
    (outer,) = parse_prompt("{a {b} c}").children
    assert outer.bracket_level == 1
    a, inner, c = outer.children
    assert a.content == "a "
    assert isinstance(inner, WeightedSegment)
    assert inner.bracket_level == 1
    assert inner.children[0].content == "b"
    assert c.content == " c"


def test_mixed_bracket_types_nest() -> None:
    (outer,) = parse_prompt("{[x]}").children
    assert outer.bracket_type is BracketType.INCREASE
    (inner,) = outer.children
    assert inner.bracket_type is BracketType.DECREASE


def test_unterminated_bracket_is_literal() -> None:
    text = "{열린 괄호만 있음"
    root = parse_prompt(text)
    assert len(root.children) == 1
    assert isinstance(root.children[0], TextSegment)
    assert root.children[0].content == text


def test_mismatched_brackets_are_literal() -> None:
    text = "{열기 중괄호 [닫기 대괄호}"
    root = parse_prompt(text)
    assert len(root.children) == 1
    assert isinstance(root.children[0], TextSegment)
    assert root.children[0].content == text


def test_mismatch_only_swallows_up_to_offending_closer() -> None:
    root = parse_prompt("{a] {b}")
    text, span = root.children
    assert text.content == "{a] "
    assert isinstance(span, WeightedSegment)


def test_stray_closers_are_literal() -> None:
    root = parse_prompt("a} b] c)")
    assert [child.content for child in root.children] == ["a} b] c)"]


def test_random_preset() -> None:
    root = parse_prompt("photo of !season sky")
    preset = root.children[1]
    assert isinstance(preset, PresetSegment)
    assert preset.mode is PresetMode.RANDOM
    assert preset.name == "season"


def test_bang_inside_word_is_literal() -> None:
    root = parse_prompt("wow!season")
    assert len(root.children) == 1
    assert root.children[0].content == "wow!season"


def test_lone_bang_is_literal() -> None:
    root = parse_prompt("hey ! there")
    assert root.children[0].content == "hey ! there"


def test_keyword_preset() -> None:
    root = parse_prompt("style:anime, 1girl")
    preset = root.children[0]
    assert isinstance(preset, PresetSegment)
    assert preset.mode is PresetMode.FIXED
    assert preset.name == "style"
    assert preset.selected == "anime"
    assert root.children[1].content == ", 1girl"


def test_unicode_keyword_preset() -> None:
    (preset,) = parse_prompt("스타일:유화").children
    assert preset.name == "스타일"
    assert preset.selected == "유화"


def test_colon_without_value_is_literal() -> None:
    root = parse_prompt("note: hello")
    assert len(root.children) == 1


def test_inline_wildcard() -> None:
    root = parse_prompt("a (red|blue | green) hat")
    wildcard = root.children[1]
    assert isinstance(wildcard, InlineWildcardSegment)
    assert wildcard.options == ("red", "blue", "green")


def test_inline_wildcard_keeps_nested_groups_literal() -> None:
    (wildcard,) = parse_prompt("(x|(y|z))").children
    assert wildcard.options == ("x", "(y|z)")


def test_inline_wildcard_drops_blank_options() -> None:
    (wildcard,) = parse_prompt("(a||b|)").children
    assert wildcard.options == ("a", "b")


def test_parenthesis_without_pipe_is_literal() -> None:
    root = parse_prompt("(foo) and (|)")
    assert len(root.children) == 1
    assert root.children[0].content == "(foo) and (|)"


def test_presets_inside_weighted_span() -> None:
    (span,) = parse_prompt("{!season (a|b)}").children
    kinds = [type(child) for child in span.children]
    assert kinds == [PresetSegment, TextSegment, InlineWildcardSegment]


@pytest.mark.parametrize(
    "text",
    [
        "a cat",
        "{{masterpiece}}, [[blurry]], 1girl",
        "!season landscape, style:watercolor",
        "(red|blue|(light|dark) green) dress",
        "{a {b} c} and [x {y}]",
        "{열린 괄호만 있음",
        "😊 {안녕} 😊",
    ],
)
def test_round_trip(text: str) -> None:
    assert compile_segments(parse_prompt(text)) == text


def test_parse_output_is_already_optimized() -> None:
    root = parse_prompt("x {y} z (p|q) !w")
    assert optimize_tree(root) is root


def test_split_top_level_options() -> None:
    assert split_top_level_options("a|(b|c)| d ") == ["a", "(b|c)", "d"]
    assert split_top_level_options("") == [""]


def test_parse_inline_wildcard() -> None:
    result = parse_inline_wildcard("(옵션1|(내부1|내부2))")
    assert result.success
    assert result.segment.options == ("옵션1", "(내부1|내부2)")


def test_parse_inline_wildcard_single_option() -> None:
    result = parse_inline_wildcard("(solo)")
    assert result.success
    assert result.segment.options == ("solo",)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("()", "Empty inline wildcard"),
        ("(|)", "No valid options found"),
        ("(a|b", "Invalid inline wildcard pattern"),
        ("a|b", "Invalid inline wildcard pattern"),
        ("(a)(b)", "Invalid inline wildcard pattern"),
    ],
)
def test_parse_inline_wildcard_failures(text: str, message: str) -> None:
    result = parse_inline_wildcard(text)
    assert not result.success
    assert result.segment is None
    assert result.error == message


def test_parse_weighted_text() -> None:
    result = parse_weighted_text("{{detailed}}")
    assert result.success
    assert result.segment.bracket_level == 2
    assert result.segment.children[0].content == "detailed"


def test_parse_weighted_text_empty_span() -> None:
    result = parse_weighted_text("{}")
    assert result.success
    assert [child.content for child in result.segment.children] == [""]


@pytest.mark.parametrize("text", ["", "cat", "{cat", "{cat]", "{a} {b}"])
def test_parse_weighted_text_failures(text: str) -> None:
    result = parse_weighted_text(text)
    assert not result.success
    assert result.error


def test_parse_preset_text() -> None:
    random_preset = parse_preset_text("!season").segment
    assert random_preset.mode is PresetMode.RANDOM
    assert random_preset.name == "season"

    fixed = parse_preset_text("스타일:유화").segment
    assert fixed.mode is PresetMode.FIXED
    assert fixed.name == "스타일"
    assert fixed.selected == "유화"


@pytest.mark.parametrize("text", ["", "season", "!", "a:b c", "!a b"])
def test_parse_preset_text_failures(text: str) -> None:
    result = parse_preset_text(text)
    assert not result.success
    assert result.error
