"""App configuration for the append-only audit trail."""

from django.apps import AppConfig


class AuditConfig(AppConfig):
    """Audit app holds AuditEntry rows written by auth and admin flows."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "audit"
