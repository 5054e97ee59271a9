"""Django app configuration for Trendwatch core."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "trendwatch.core"
    verbose_name = "Trendwatch Core"
