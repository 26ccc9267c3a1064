"""
Preset (wildcard) value files.

A preset named `season` takes its values from `season.txt`: one value per
line, blank lines and `#` comments ignored. Folders whose name starts with
`wildcards` next to the package are offered as alternative libraries.
"""

from __future__ import annotations

import functools
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from loguru import logger

from .operations import map_segments
from .segments import PresetSegment, Segment

PathLike = Union[str, "os.PathLike[str]"]

INLINE_COMMENT_PATTERN = re.compile(r"(?<!\\)#")


def load_preset_file(path: PathLike) -> List[str]:
    values = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                # Remove inline comments after unescaped #
                line = INLINE_COMMENT_PATTERN.split(line)[0].strip()
                if line:
                    values.append(line)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read preset file {}: {}", path, e)
        return []
    return values


def load_preset_library(folder: PathLike) -> Dict[str, List[str]]:
    """Load every .txt file below `folder`, keyed by lower-cased file stem."""
    root = Path(folder)
    if not root.is_dir():
        logger.debug("Preset folder {} does not exist", root)
        return {}

    library = {}
    for path in sorted(root.rglob("*.txt")):
        name = path.stem.lower()
        if name in library:
            logger.warning("Duplicate preset file {} ignored", path)
            continue
        library[name] = load_preset_file(path)
    return library


def inject_preset_values(root: Segment, library: Mapping[str, Sequence[str]]) -> Segment:
    """
    Return a tree whose presets carry their values from `library` in
    `metadata["values"]`. Presets with no entry keep what they had.
    """
    if not library:
        return root

    def inject(node: Segment) -> Segment:
        if not isinstance(node, PresetSegment):
            return node
        values = library.get(node.name.lower())
        if values is None:
            return node
        metadata = dict(node.metadata or {})
        metadata["values"] = list(values)
        return replace(node, metadata=metadata)

    return map_segments(root, inject)


def _default_package_root() -> str:
    # package root is one directory above the module file
    return os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


@functools.lru_cache(maxsize=4)
def build_category_options(base_dir: Optional[str] = None):
    """
    Discover folders beginning with 'wildcards' inside 'base_dir' (defaults to package root).
    Returns: (labels_list, label_to_folder_map, tooltip_str)

    - 'wildcards' -> label 'Default'
    - 'wildcards_foo' -> label 'FOO' (suffix uppercased)
    - 'Default' is always offered, even when the folder is missing
    """
    if base_dir is None:
        base_dir = _default_package_root()

    folder_names = []
    try:
        for name in sorted(os.listdir(base_dir)):
            if os.path.isdir(os.path.join(base_dir, name)) and name.startswith("wildcards"):
                folder_names.append(name)
    except OSError as e:
        logger.warning("Could not list wildcard folders in {}: {}", base_dir, e)
        folder_names = []

    if "wildcards" in folder_names:
        folder_names.remove("wildcards")
    folder_names.insert(0, "wildcards")

    label_list = []
    label_to_folder = {}
    for fname in folder_names:
        suffix = fname[len("wildcards"):].lstrip("_-")
        label = suffix.upper() if suffix else "Default"
        label_list.append(label)
        label_to_folder[label] = os.path.join(base_dir, fname)

    tooltip = (
        "Select which wildcards folder to use. Create alternate folders named "
        "'wildcards_*' (eg. 'wildcards_fresh') inside the package root."
    )

    return label_list, label_to_folder, tooltip


def clear_category_cache():
    """
    Clear the cached results (useful if you add/remove wildcard folders at runtime
    and need the dropdowns to refresh).
    """
    build_category_options.cache_clear()
