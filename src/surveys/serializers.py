"""Serializers for survey submissions."""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from geography.models import GeoLevel, GeoNode
from geography.services import LocationTuple, validate_chain

from .models import REVIEW_STATUSES, Submission, SubmissionStatus


def _location_field(level: str) -> serializers.PrimaryKeyRelatedField:
    return serializers.PrimaryKeyRelatedField(
        queryset=GeoNode.objects.filter(level=level), required=False, allow_null=True
    )


class SubmissionSerializer(serializers.ModelSerializer):
    """Submission payload; the location fields must form one ancestor chain."""

    created_by = serializers.PrimaryKeyRelatedField(read_only=True)
    verified_by = serializers.PrimaryKeyRelatedField(read_only=True)
    province = _location_field(GeoLevel.PROVINCE)
    regency = _location_field(GeoLevel.REGENCY)
    district = _location_field(GeoLevel.DISTRICT)
    village = _location_field(GeoLevel.VILLAGE)
    # Review statuses are only reachable through the verify action.
    status = serializers.ChoiceField(
        choices=[SubmissionStatus.DRAFT, SubmissionStatus.SUBMITTED], required=False
    )

    class Meta:
        model = Submission
        fields = [
            "id",
            "category",
            "title",
            "status",
            "payload",
            "province",
            "regency",
            "district",
            "village",
            "created_by",
            "review_notes",
            "verified_by",
            "verified_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "category",
            "created_by",
            "review_notes",
            "verified_by",
            "verified_at",
            "created_at",
            "updated_at",
        ]

    def location_of(self, attrs) -> LocationTuple:
        """The location tuple the row will have once ``attrs`` is applied."""
        values = {}
        for level in ("province", "regency", "district", "village"):
            if level in attrs:
                node = attrs[level]
                values[f"{level}_id"] = node.pk if node is not None else None
            elif self.instance is not None:
                values[f"{level}_id"] = getattr(self.instance, f"{level}_id")
        return LocationTuple(**values)

    def validate(self, attrs):
        location = self.location_of(attrs)
        if location.is_empty():
            raise serializers.ValidationError("A submission needs a location.")
        try:
            validate_chain(location)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages) from exc
        return attrs


class VerificationSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=REVIEW_STATUSES)
    review_notes = serializers.CharField(required=False, allow_blank=True, default="")


__all__ = ["SubmissionSerializer", "VerificationSerializer"]
