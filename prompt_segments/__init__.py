from .compile_cache import SegmentCompileCache, find_affected_paths, get_compile_cache, incremental_compile
from .compiler import (
    CompileOptions,
    apply_brackets,
    compile_segments,
    create_seeded_random,
    expand_nested_wildcards,
)
from .errors import ValidationError
from .factory import (
    create_inline_wildcard_segment,
    create_preset_segment,
    create_text_segment,
    create_weighted_segment,
    generate_segment_id,
)
from .operations import (
    deep_merge_metadata,
    find_all,
    find_by_id,
    insert_segment,
    map_segments,
    merge_adjacent_text,
    optimize_tree,
    remove_segment,
    split_text_segment,
    update_segment,
)
from .parser import ParseResult, parse_inline_wildcard, parse_preset_text, parse_prompt, parse_weighted_text
from .presets import inject_preset_values, load_preset_file, load_preset_library
from .prompt_set import CompiledPair, CompiledPromptSet, PromptPair, PromptRoots, compile_prompt_set
from .segments import (
    UNSET,
    BracketType,
    InlineWildcardPatch,
    InlineWildcardSegment,
    PresetMode,
    PresetPatch,
    PresetSegment,
    Segment,
    SegmentPatch,
    SegmentType,
    TextPatch,
    TextSegment,
    WeightedPatch,
    WeightedSegment,
    is_inline_wildcard,
    is_preset,
    is_text,
    is_weighted,
)
from .settings import Settings, get_settings
from .weights import display_value, format_weight, weight_intensity

__version__ = "0.3.0"
