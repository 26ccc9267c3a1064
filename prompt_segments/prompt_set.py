"""
Compile a full prompt set: the main positive/negative pair plus one pair per
character slot, each addressed by the id of its root segment.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .compiler import CompileOptions, compile_segments
from .segments import Segment


class PromptPair(BaseModel):
    positive: Optional[str] = None
    negative: Optional[str] = None


class PromptRoots(BaseModel):
    main: PromptPair = Field(default_factory=PromptPair)
    characters: Dict[int, PromptPair] = Field(default_factory=dict)


class CompiledPair(BaseModel):
    positive: str = ""
    negative: str = ""


class CompiledPromptSet(BaseModel):
    main_positive: str = ""
    main_negative: str = ""
    characters: Dict[int, CompiledPair] = Field(default_factory=dict)


def _compile_root(
    segments: Mapping[str, Segment],
    root_id: Optional[str],
    options: Optional[CompileOptions],
) -> str:
    if not root_id:
        return ""
    root = segments.get(root_id)
    if root is None:
        logger.debug("Root segment {} not found; compiling as empty", root_id)
        return ""
    return compile_segments(root, options)


def compile_prompt_set(
    segments: Mapping[str, Segment],
    roots: PromptRoots,
    options: Optional[CompileOptions] = None,
) -> CompiledPromptSet:
    """
    Compile every root named in `roots`. Ids missing from `segments` compile
    to an empty string.
    """
    characters = {
        index: CompiledPair(
            positive=_compile_root(segments, pair.positive, options),
            negative=_compile_root(segments, pair.negative, options),
        )
        for index, pair in roots.characters.items()
    }
    return CompiledPromptSet(
        main_positive=_compile_root(segments, roots.main.positive, options),
        main_negative=_compile_root(segments, roots.main.negative, options),
        characters=characters,
    )
