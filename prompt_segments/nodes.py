from .compiler import CompileOptions, compile_segments
from .operations import find_all, optimize_tree
from .parser import parse_prompt
from .presets import build_category_options, inject_preset_values, load_preset_library
from .segments import WeightedSegment
from .settings import get_settings
from .weights import format_weight


class PromptSegmentCompiler:
    """
    Parse a prompt into segments and compile it back.

    With expand_wildcards on, every !preset is replaced by a value from the
    selected wildcard folder and every (a|b) group by one of its options, using
    the seed. The second output is always the normalized, unexpanded prompt.
    """

    @classmethod
    def INPUT_TYPES(cls):
        settings = get_settings()
        # build label list / map for wildcards folders
        labels, _, tooltip = build_category_options()
        return {
            "required": {
                "prompt": ("STRING", {"multiline": True}),
                "seed": ("INT", {"default": 0, "min": 0, "max": 0xffffffffffffffff}),
                "expand_wildcards": ("BOOLEAN", {"default": True}),
                "max_depth": ("INT", {"default": settings.max_expansion_depth, "min": 0, "max": 1000}),
                "wildcard_folder": (labels, {"default": labels[0] if labels else "Default", "tooltip": tooltip}),
            }
        }

    RETURN_TYPES = ("STRING", "STRING")
    RETURN_NAMES = ("prompt", "canonical")
    FUNCTION = "process"
    CATEGORY = "promptsegments/generation"

    @staticmethod
    def _resolve_folder(label):
        _, label_to_folder, _ = build_category_options()
        if label == "Default" or label not in label_to_folder:
            return get_settings().wildcard_dir
        return label_to_folder[label]

    def process(self, prompt, seed, expand_wildcards, max_depth, wildcard_folder="Default"):
        root = parse_prompt(prompt)
        canonical = compile_segments(root)

        if not expand_wildcards:
            return (canonical, canonical)

        library = load_preset_library(self._resolve_folder(wildcard_folder))
        root = inject_preset_values(root, library)
        options = CompileOptions(expand_wildcards=True, seed=seed, max_depth=max_depth)
        return (compile_segments(root, options), canonical)


class PromptSegmentNormalizer:
    """Round-trip a prompt through the parser: merges text runs and drops empty spans."""

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "prompt": ("STRING", {"multiline": True}),
            }
        }

    RETURN_TYPES = ("STRING",)
    FUNCTION = "process"
    CATEGORY = "promptsegments/processing"

    def process(self, prompt):
        return (compile_segments(optimize_tree(parse_prompt(prompt))),)


class PromptWeightReport:
    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "prompt": ("STRING", {"multiline": True}),
            }
        }

    RETURN_TYPES = ("STRING", "INT")
    RETURN_NAMES = ("report", "count")
    FUNCTION = "process"
    CATEGORY = "promptsegments/processing"

    def process(self, prompt):
        root = parse_prompt(prompt)
        spans = find_all(root, lambda s: isinstance(s, WeightedSegment))
        lines = []
        for span in spans:
            text = "".join(compile_segments(child) for child in span.children or ())
            lines.append(f"{text} x{format_weight(span.display_value)}")
        return ("\n".join(lines), len(spans))


NODE_CLASS_MAPPINGS = {
    "PromptSegmentCompiler": PromptSegmentCompiler,
    "PromptSegmentNormalizer": PromptSegmentNormalizer,
    "PromptWeightReport": PromptWeightReport,
}

NODE_DISPLAY_NAME_MAPPINGS = {
    "PromptSegmentCompiler": "Prompt Segment Compiler 🧩",
    "PromptSegmentNormalizer": "Prompt Segment Normalizer 🧹",
    "PromptWeightReport": "Prompt Weight Report 🏋️",
}
