"""Django app configuration for the trends module."""

from django.apps import AppConfig


class TrendsConfig(AppConfig):
    """Configuration for the trends app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "trendwatch.trends"
    verbose_name = "Trend Detection"
