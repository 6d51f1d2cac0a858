"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cacheable.backends import reset_backend  # noqa: E402
from cacheable.config.settings import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_backend():
    """Start every test with an empty default backend and fresh settings."""
    reset_backend()
    get_settings.cache_clear()
    yield
    reset_backend()
    get_settings.cache_clear()
