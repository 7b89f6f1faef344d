"""Submission endpoints guarded by the resource and location checks."""

import logging

from django.db.models import Count
from django.utils import timezone
from rest_framework.decorators import action

from access_control.engine import engine
from access_control.permissions import ResourceAccessPermission
from access_control.resources import ResourceDescriptor
from access_control.scoping import scope_queryset
from audit import services as audit
from core.response import BaseViewSet, api_response
from .models import Submission
from .serializers import SubmissionSerializer, VerificationSerializer

logger = logging.getLogger(__name__)


class SubmissionViewSet(BaseViewSet):
    """CRUD over one submission category plus ``verify`` and ``summary``.

    Lists are narrowed to what the actor may read; detail routes load the row
    unscoped so an out-of-scope row is a 403 rather than a 404.
    """

    serializer_class = SubmissionSerializer
    permission_classes = [ResourceAccessPermission]
    resource_type: str = ""
    action_permissions = {"verify": "verify", "summary": "read"}

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Submission.objects.none()
        queryset = Submission.for_resource_type(self.resource_type).select_related("created_by")
        params = self.request.query_params
        for key in ("status", "province", "regency", "district", "village"):
            if params.get(key):
                queryset = queryset.filter(**{key: params[key]})
        if self.action in ("list", "summary"):
            queryset = scope_queryset(self.request.auth, queryset, self.resource_type, "read")
        return queryset

    def _enforce_location(self, serializer, action_name: str) -> None:
        """Re-check the validated location the row will actually be stored with."""
        draft = ResourceDescriptor(
            resource_type=self.resource_type,
            owner_id=str(self.request.user.pk),
            location=serializer.location_of(serializer.validated_data),
        )
        engine.enforce(engine.check_resource(self.request.auth, self.resource_type, action_name, resource=draft))

    def perform_create(self, serializer):
        self._enforce_location(serializer, "create")
        submission = serializer.save(category=self.resource_type, created_by=self.request.user)
        audit.record(
            "submission_created",
            user_id=self.request.user.pk,
            resource_type=self.resource_type,
            resource_id=submission.pk,
            request=self.request,
        )

    def perform_update(self, serializer):
        if any(level in serializer.validated_data for level in Submission.location_fields):
            draft_owner = serializer.instance.created_by_id
            draft = ResourceDescriptor(
                resource_type=self.resource_type,
                owner_id=str(draft_owner),
                location=serializer.location_of(serializer.validated_data),
            )
            engine.enforce(engine.check_resource(self.request.auth, self.resource_type, "update", resource=draft))
        serializer.save()

    @action(detail=True, methods=["post"])
    def verify(self, request, pk=None):
        """Move a submission to a review status and record the reviewer."""
        submission = self.get_object()
        serializer = VerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        previous = submission.status
        submission.status = serializer.validated_data["status"]
        submission.review_notes = serializer.validated_data["review_notes"]
        submission.verified_by = request.user
        submission.verified_at = timezone.now()
        submission.save(update_fields=["status", "review_notes", "verified_by", "verified_at", "updated_at"])
        logger.info("%s %s moved from %s to %s", self.resource_type, submission.pk, previous, submission.status)
        audit.record(
            "submission_verified",
            user_id=request.user.pk,
            resource_type=self.resource_type,
            resource_id=submission.pk,
            metadata={"from": previous, "to": submission.status},
            request=request,
        )
        return api_response(self.get_serializer(submission).data)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        """Counts per status over the submissions the actor may read."""
        rows = self.get_queryset().order_by().values("status").annotate(total=Count("id"))
        by_status = {row["status"]: row["total"] for row in rows}
        return api_response({"total": sum(by_status.values()), "by_status": by_status})


class HousingViewSet(SubmissionViewSet):
    resource_type = "housing"


class FacilityViewSet(SubmissionViewSet):
    resource_type = "facility"


class HousingDevelopmentViewSet(SubmissionViewSet):
    resource_type = "housing_development"


__all__ = ["SubmissionViewSet", "HousingViewSet", "FacilityViewSet", "HousingDevelopmentViewSet"]
