"""RBAC models: Permission catalog, Role graph, and the two grant joins."""

from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class PermissionScope(models.TextChoices):
    OWN = "own", "Own records"
    LOCATION = "location", "Assigned location"
    INHERITED = "inherited", "Assigned location and descendants"
    ALL = "all", "Unrestricted"


class Permission(models.Model):
    """Named permission, conventionally ``"<resource>:<action>"``."""

    name = models.CharField(max_length=100, unique=True)
    display_name = models.CharField(max_length=150, blank=True)
    description = models.TextField(blank=True)
    resource = models.CharField(max_length=50)
    action = models.CharField(max_length=50)
    scope = models.CharField(max_length=10, choices=PermissionScope.choices)
    is_critical = models.BooleanField(default=False)
    requires_approval = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["resource", "action", "scope"], name="permission_ras_idx")]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


class Role(models.Model):
    """Named role.

    ``parent`` is organizational only: a role's permissions are exactly its
    own grants and are never inherited from, or cascaded to, related roles.
    """

    name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="children"
    )
    is_system_role = models.BooleanField(default=False)
    is_deletable = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    permissions = models.ManyToManyField(
        Permission, through="RolePermission", related_name="roles", blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


class GrantQuerySet(models.QuerySet):
    def effective(self, now: Optional[datetime] = None):
        """Rows that are active and unexpired at ``now``."""
        now = now or timezone.now()
        return self.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now), is_active=True)


class GrantMixin(models.Model):
    """Soft-revocable link with optional expiry."""

    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    objects = GrantQuerySet.as_manager()

    class Meta:
        abstract = True

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        now = now or timezone.now()
        return self.is_active and (self.expires_at is None or self.expires_at > now)


class RolePermission(GrantMixin):
    """Grant of one Permission to one Role."""

    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="grants")
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name="grants")
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    granted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ("role", "permission")

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.role.name} -> {self.permission.name}"


class UserRole(GrantMixin):
    """Assignment of one Role to one User."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="role_assignments")
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="assignments")
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    assigned_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ("user", "role")

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.user_id} -> {self.role.name}"


__all__ = ["Permission", "PermissionScope", "Role", "RolePermission", "UserRole"]
