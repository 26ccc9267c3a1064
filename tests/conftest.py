from __future__ import annotations

from typing import Iterator

import pytest

from prompt_segments.settings import get_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
