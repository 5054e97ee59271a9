"""
Test settings for Trendwatch.

Overrides the main settings to:
1. Skip external secrets (no .env values needed for tests)
2. Use SQLite in-memory database (fast, no network)
3. Disable DEBUG to catch production-like issues

Usage:
    pytest uses this automatically via pyproject.toml:
    [tool.pytest.ini_options]
    DJANGO_SETTINGS_MODULE = "trendwatch.settings_test"
"""

from trendwatch.settings import *  # noqa: F401, F403

# =============================================================================
# TEST DATABASE CONFIGURATION
# =============================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# =============================================================================
# TEST-SPECIFIC SETTINGS
# =============================================================================

DEBUG = False

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

TRENDS_TENANT_OVERRIDES = {
    "strict-tenant": {"breaking_velocity_high": 400.0},
}
