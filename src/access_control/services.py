"""Administrative mutations of the role graph. Each one is atomic and audited."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from audit import services as audit

from .models import Permission, Role, RolePermission, UserRole

logger = logging.getLogger(__name__)


@transaction.atomic
def replace_role_permissions(role: Role, permissions: Iterable[Permission], granted_by=None, request=None) -> list[str]:
    """Make ``permissions`` the complete grant set of ``role``.

    Grants outside the new set are soft-revoked, grants inside it are
    (re)activated without expiry. Either every change is applied or none.
    Returns the sorted names now granted.
    """
    wanted = {permission.pk: permission for permission in permissions}
    role = Role.objects.select_for_update().get(pk=role.pk)
    now = timezone.now()

    revoked = (
        RolePermission.objects.filter(role=role, is_active=True)
        .exclude(permission_id__in=wanted)
        .update(is_active=False)
    )
    for permission in wanted.values():
        grant, created = RolePermission.objects.get_or_create(
            role=role,
            permission=permission,
            defaults={"granted_by": granted_by, "granted_at": now},
        )
        if not created and (not grant.is_active or grant.expires_at is not None):
            grant.is_active = True
            grant.expires_at = None
            grant.granted_by = granted_by
            grant.granted_at = now
            grant.save(update_fields=["is_active", "expires_at", "granted_by", "granted_at"])

    names = sorted(permission.name for permission in wanted.values())
    logger.info("Role %s now holds %d permission(s); %d revoked", role.name, len(names), revoked)
    audit.record(
        "role_permissions_replaced",
        user_id=getattr(granted_by, "pk", None),
        resource_type="role",
        resource_id=role.pk,
        metadata={"permissions": names, "revoked": revoked},
        request=request,
    )
    return names


@transaction.atomic
def assign_role(user, role: Role, assigned_by=None, expires_at: Optional[datetime] = None, request=None) -> UserRole:
    """Give ``role`` to ``user``, reactivating a previous assignment if any."""
    if not role.is_active:
        raise ValidationError({"role": f"Role '{role.name}' is inactive."})
    assignment, created = UserRole.objects.get_or_create(
        user=user,
        role=role,
        defaults={"assigned_by": assigned_by, "expires_at": expires_at},
    )
    if not created:
        assignment.is_active = True
        assignment.expires_at = expires_at
        assignment.assigned_by = assigned_by
        assignment.assigned_at = timezone.now()
        assignment.save(update_fields=["is_active", "expires_at", "assigned_by", "assigned_at"])
    audit.record(
        "role_assigned",
        user_id=getattr(assigned_by, "pk", None),
        resource_type="user",
        resource_id=user.pk,
        metadata={"role": role.name, "expires_at": expires_at.isoformat() if expires_at else None},
        request=request,
    )
    return assignment


@transaction.atomic
def revoke_role(user, role: Role, revoked_by=None, request=None) -> bool:
    """Soft-revoke ``role`` from ``user``. Returns False if it was not assigned."""
    updated = UserRole.objects.filter(user=user, role=role, is_active=True).update(is_active=False)
    if updated:
        audit.record(
            "role_revoked",
            user_id=getattr(revoked_by, "pk", None),
            resource_type="user",
            resource_id=user.pk,
            metadata={"role": role.name},
            request=request,
        )
    return bool(updated)


@transaction.atomic
def deactivate_role(role: Role, actor_user=None, request=None) -> Role:
    """Deactivate a role; its grants and assignments stop counting immediately."""
    if not role.is_deletable:
        raise ValidationError({"role": f"Role '{role.name}' cannot be deactivated."})
    role.is_active = False
    role.save(update_fields=["is_active", "updated_at"])
    audit.record(
        "role_deactivated",
        user_id=getattr(actor_user, "pk", None),
        resource_type="role",
        resource_id=role.pk,
        metadata={"role": role.name},
        request=request,
    )
    return role


__all__ = ["replace_role_permissions", "assign_role", "revoke_role", "deactivate_role"]
