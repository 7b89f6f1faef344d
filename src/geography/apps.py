"""App configuration for the administrative geography reference data."""

from django.apps import AppConfig


class GeographyConfig(AppConfig):
    """Geography app holds the Province → Regency → District → Village forest."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "geography"
