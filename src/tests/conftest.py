"""Shared test fixtures."""

import pytest

from deskhub.app.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Settings are read from the environment; drop the cache between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
