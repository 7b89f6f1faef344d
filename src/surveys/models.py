"""Survey submissions: the location-anchored records the RBAC layer guards."""

from django.conf import settings
from django.db import models

from access_control.resources import ResourceDescriptor
from geography.services import LocationTuple


class SubmissionCategory(models.TextChoices):
    HOUSING = "housing", "Housing"
    FACILITY = "facility", "Facility"
    HOUSING_DEVELOPMENT = "housing_development", "Housing development"


class SubmissionStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    UNDER_REVIEW = "under_review", "Under review"
    REVIEWED = "reviewed", "Reviewed"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


# Statuses a verifier may move a submission to.
REVIEW_STATUSES = (
    SubmissionStatus.UNDER_REVIEW,
    SubmissionStatus.REVIEWED,
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
)


def _location_fk(related_name: str) -> models.ForeignKey:
    return models.ForeignKey(
        "geography.GeoNode",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name=related_name,
    )


class Submission(models.Model):
    """One survey form (house, facility or development) anchored at a location."""

    category = models.CharField(max_length=30, choices=SubmissionCategory.choices)
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=SubmissionStatus.choices, default=SubmissionStatus.DRAFT)
    payload = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="submissions"
    )
    province = _location_fk("province_submissions")
    regency = _location_fk("regency_submissions")
    district = _location_fk("district_submissions")
    village = _location_fk("village_submissions")
    review_notes = models.TextField(blank=True, default="")
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Consumed by access_control.scoping.
    owner_field = "created_by"
    location_fields = {
        "province": "province",
        "regency": "regency",
        "district": "district",
        "village": "village",
    }

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["category", "status"], name="submission_category_status_idx"),
            models.Index(fields=["village", "category"], name="submission_village_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.category}: {self.title}"

    @classmethod
    def for_resource_type(cls, resource_type: str):
        return cls.objects.filter(category=resource_type)

    @property
    def location(self) -> LocationTuple:
        return LocationTuple(
            province_id=self.province_id,
            regency_id=self.regency_id,
            district_id=self.district_id,
            village_id=self.village_id,
        )

    def as_resource_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_type=self.category,
            resource_id=str(self.pk) if self.pk else None,
            owner_id=str(self.created_by_id) if self.created_by_id else None,
            location=self.location,
        )


__all__ = ["Submission", "SubmissionCategory", "SubmissionStatus", "REVIEW_STATUSES"]
