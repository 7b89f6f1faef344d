"""Administration endpoints for roles, permissions and user assignments."""

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from authentication.services import SessionService
from audit import services as audit
from core.exceptions import ResourceNotFound
from core.response import BaseGenericViewSet, BaseReadOnlyViewSet, BaseViewSet, api_response
from . import services
from .models import Permission, Role, UserRole
from .permissions import PermissionRequired
from .serializers import (
    PermissionSerializer,
    RoleAssignmentSerializer,
    RolePermissionsSerializer,
    RoleSerializer,
    UserRoleSerializer,
)

User = get_user_model()

MANAGE_USERS = "manage_users"


class RoleViewSet(BaseViewSet):
    """CRUD over roles. Deletion deactivates; grants are replaced wholesale."""

    serializer_class = RoleSerializer
    permission_classes = [PermissionRequired]
    required_permission = MANAGE_USERS
    queryset = Role.objects.select_related("parent")

    def perform_create(self, serializer):
        role = serializer.save()
        audit.record(
            "role_created",
            user_id=self.request.user.pk,
            resource_type="role",
            resource_id=role.pk,
            request=self.request,
        )

    def perform_destroy(self, instance):
        services.deactivate_role(instance, self.request.user, request=self.request)

    @action(detail=True, methods=["put"], url_path="permissions", serializer_class=RolePermissionsSerializer)
    def set_permissions(self, request, pk=None):
        """Replace the role's grant set (all or nothing)."""
        role = self.get_object()
        serializer = RolePermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        names = services.replace_role_permissions(
            role, serializer.validated_data["permissions"], granted_by=request.user, request=request
        )
        return api_response({"role": role.name, "permissions": names})


class PermissionViewSet(BaseReadOnlyViewSet):
    """The permission catalog, filterable by ``?resource=``."""

    serializer_class = PermissionSerializer
    permission_classes = [PermissionRequired]
    required_permission = MANAGE_USERS

    def get_queryset(self):
        queryset = Permission.objects.all()
        resource = self.request.query_params.get("resource")
        if resource:
            queryset = queryset.filter(resource=resource)
        return queryset


class UserAccessViewSet(BaseGenericViewSet):
    """Per-user role assignment and forced sign-out."""

    permission_classes = [PermissionRequired]
    required_permission = MANAGE_USERS
    queryset = User.objects.all()

    @action(detail=True, methods=["get", "post"], url_path="roles", serializer_class=RoleAssignmentSerializer)
    def roles(self, request, pk=None):
        user = self.get_object()
        if request.method == "POST":
            serializer = RoleAssignmentSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            assignment = services.assign_role(
                user,
                serializer.validated_data["role"],
                assigned_by=request.user,
                expires_at=serializer.validated_data.get("expires_at"),
                request=request,
            )
            return api_response(UserRoleSerializer(assignment).data, status=status.HTTP_201_CREATED)
        assignments = UserRole.objects.filter(user=user).select_related("role")
        return api_response(UserRoleSerializer(assignments, many=True).data)

    @action(detail=True, methods=["delete"], url_path=r"roles/(?P<role_name>[^/]+)")
    def revoke_role(self, request, pk=None, role_name=None):
        user = self.get_object()
        role = Role.objects.filter(name=role_name).first()
        if role is None or not services.revoke_role(user, role, revoked_by=request.user, request=request):
            raise ResourceNotFound(f"User has no active role '{role_name}'.")
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="force-logout")
    def force_logout(self, request, pk=None):
        """Revoke every active session of the user."""
        user = self.get_object()
        count = SessionService.revoke_all(user)
        audit.record(
            "force_logout",
            user_id=request.user.pk,
            resource_type="user",
            resource_id=user.pk,
            metadata={"sessions_revoked": count},
            request=request,
        )
        return api_response({"sessions_revoked": count})


__all__ = ["RoleViewSet", "PermissionViewSet", "UserAccessViewSet"]
