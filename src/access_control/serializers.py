"""Serializers for role and permission administration."""

from rest_framework import serializers

from .models import Permission, Role, UserRole


class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = [
            "id",
            "name",
            "display_name",
            "description",
            "resource",
            "action",
            "scope",
            "is_critical",
            "requires_approval",
            "is_active",
        ]
        read_only_fields = fields


class RoleSerializer(serializers.ModelSerializer):
    """Role with the names of its currently effective grants."""

    parent = serializers.SlugRelatedField(
        slug_field="name", queryset=Role.objects.all(), required=False, allow_null=True
    )
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            "id",
            "name",
            "display_name",
            "description",
            "parent",
            "is_system_role",
            "is_deletable",
            "is_active",
            "permissions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "is_system_role", "is_deletable", "is_active", "created_at", "updated_at"]

    @staticmethod
    def get_permissions(role: Role) -> list[str]:
        return sorted(
            role.grants.effective().filter(permission__is_active=True).values_list("permission__name", flat=True)
        )

    def validate_parent(self, parent):
        """A role may not be its own parent."""
        if parent is not None and self.instance is not None and parent.pk == self.instance.pk:
            raise serializers.ValidationError("A role cannot be its own parent.")
        return parent


class RolePermissionsSerializer(serializers.Serializer):
    """Payload of ``PUT /roles/{id}/permissions/``: the complete new grant set."""

    permissions = serializers.SlugRelatedField(
        slug_field="name", queryset=Permission.objects.filter(is_active=True), many=True
    )


class UserRoleSerializer(serializers.ModelSerializer):
    role = serializers.SlugRelatedField(slug_field="name", read_only=True)
    assigned_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = UserRole
        fields = ["id", "role", "assigned_by", "assigned_at", "expires_at", "is_active"]
        read_only_fields = fields


class RoleAssignmentSerializer(serializers.Serializer):
    role = serializers.SlugRelatedField(slug_field="name", queryset=Role.objects.all())
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


__all__ = [
    "PermissionSerializer",
    "RoleSerializer",
    "RolePermissionsSerializer",
    "UserRoleSerializer",
    "RoleAssignmentSerializer",
]
