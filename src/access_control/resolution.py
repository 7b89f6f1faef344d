"""Effective-permission resolution with an aggregate and a per-role strategy.

Both strategies compute the same set: permissions reachable from a user's
effective role assignments (on active roles) through effective grants on
active permissions. Role parent links play no part in it.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import InfrastructureFailure

from .context import EffectivePermissions, PermissionRecord, RoleRecord
from .fallback import with_fallback
from .models import Permission, RolePermission, UserRole

logger = logging.getLogger(__name__)


def _permission_record(permission: Permission) -> PermissionRecord:
    return PermissionRecord(
        id=permission.pk,
        name=permission.name,
        resource=permission.resource,
        action=permission.action,
        scope=permission.scope,
        is_critical=permission.is_critical,
        requires_approval=permission.requires_approval,
    )


class PermissionStrategy(ABC):
    name = "abstract"

    def resolve(self, user_id, now: Optional[datetime] = None) -> EffectivePermissions:
        """Resolve the user's effective permissions; DB errors become InfrastructureFailure."""
        now = now or timezone.now()
        try:
            return self._fetch(user_id, now)
        except DatabaseError as exc:
            raise InfrastructureFailure(f"{self.name} permission lookup failed: {exc}") from exc

    @abstractmethod
    def _fetch(self, user_id, now: datetime) -> EffectivePermissions:
        raise NotImplementedError

    @staticmethod
    def _assignments(user_id, now: datetime):
        return UserRole.objects.effective(now).filter(user_id=user_id, role__is_active=True)


class AggregatePermissionStrategy(PermissionStrategy):
    """One query for roles and one joined query for every effective grant."""

    name = "aggregate"

    def _fetch(self, user_id, now: datetime) -> EffectivePermissions:
        assignments = list(
            self._assignments(user_id, now).values_list(
                "role_id", "role__name", "role__is_system_role", "expires_at"
            )
        )
        roles = [RoleRecord(*row) for row in assignments]

        role_ids = self._assignments(user_id, now).values("role_id")
        grants = (
            RolePermission.objects.effective(now)
            .filter(role_id__in=role_ids, permission__is_active=True)
            .select_related("permission")
        )
        permissions = [_permission_record(grant.permission) for grant in grants]
        return EffectivePermissions.build(permissions, roles)


class PerRolePermissionStrategy(PermissionStrategy):
    """Naive path: list roles, then each role's grants, then union in Python."""

    name = "per_role"

    def _fetch(self, user_id, now: datetime) -> EffectivePermissions:
        roles = []
        permissions = []
        for assignment in self._assignments(user_id, now).select_related("role"):
            role = assignment.role
            roles.append(RoleRecord(role.pk, role.name, role.is_system_role, assignment.expires_at))
            for grant in RolePermission.objects.filter(role=role).select_related("permission"):
                if grant.is_effective(now) and grant.permission.is_active:
                    permissions.append(_permission_record(grant.permission))
        return EffectivePermissions.build(permissions, roles)


class PermissionResolver:
    """Primary strategy with automatic fallback to the naive one."""

    def __init__(
        self,
        primary: Optional[PermissionStrategy] = None,
        fallback: Optional[PermissionStrategy] = None,
    ):
        self.primary = primary or AggregatePermissionStrategy()
        self.fallback = fallback or PerRolePermissionStrategy()

    def resolve(self, user_id, now: Optional[datetime] = None) -> EffectivePermissions:
        now = now or timezone.now()
        return with_fallback(
            "permission resolution",
            lambda: self.primary.resolve(user_id, now),
            lambda: self.fallback.resolve(user_id, now),
        )


def resolve_effective_permissions(user_id, now: Optional[datetime] = None) -> EffectivePermissions:
    """Effective permissions and roles of ``user_id`` using the default resolver."""
    return PermissionResolver().resolve(user_id, now)


__all__ = [
    "PermissionStrategy",
    "AggregatePermissionStrategy",
    "PerRolePermissionStrategy",
    "PermissionResolver",
    "resolve_effective_permissions",
]
