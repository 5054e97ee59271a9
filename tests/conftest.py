"""
Pytest configuration for Trendwatch tests.

Settings come from pyproject.toml (trendwatch.settings_test, SQLite in memory).
"""

import os

import django
import pytest


def pytest_configure():
    """Configure Django settings before tests run."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "trendwatch.settings_test")
    django.setup()


@pytest.fixture
def client():
    """Django test client fixture."""
    from django.test import Client
    return Client()


@pytest.fixture
def config():
    """Default TrendConfig (no env or tenant overrides)."""
    from trendwatch.trends.config import TrendConfig
    return TrendConfig()


@pytest.fixture(autouse=True)
def _clear_config_cache():
    from trendwatch.trends.config import clear_config_cache
    clear_config_cache()
    yield
    clear_config_cache()
