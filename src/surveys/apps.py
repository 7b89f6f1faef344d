"""App configuration for survey submissions."""

from django.apps import AppConfig


class SurveysConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "surveys"

    def ready(self) -> None:
        """Describe each submission category to the authorization engine."""
        from access_control.resources import register_resource

        from .models import Submission, SubmissionCategory

        for category in SubmissionCategory.values:
            register_resource(category, Submission)
