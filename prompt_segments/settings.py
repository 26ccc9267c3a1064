from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_wildcard_dir() -> Path:
    # package root is one directory above the module file
    return Path(os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))) / "wildcards"


class Settings(BaseSettings):
    """Runtime configuration for parsing and compiling prompt segments."""

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_SEGMENTS_",
        extra="ignore",
    )

    max_expansion_depth: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Nesting limit when resolving inline wildcard groups inside picked options.",
    )
    compile_cache_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of per-segment entries kept by the shared compile cache.",
    )
    default_seed: int | None = Field(
        default=None,
        description="Seed used for wildcard expansion when a compile call does not supply one.",
    )
    wildcard_dir: Path = Field(default_factory=_default_wildcard_dir)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
