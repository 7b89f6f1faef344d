"""Immutable values passed through the authorization engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from geography.services import LocationTuple

from .rules import SUPER_ADMIN, VERIFIKATOR, in_role_group, normalize_role_name

CITIZEN_LEVEL = "citizen"
ALL_CHILDREN = "all_children"


@dataclass(frozen=True)
class PermissionRecord:
    id: int
    name: str
    resource: str
    action: str
    scope: str
    is_critical: bool = False
    requires_approval: bool = False


@dataclass(frozen=True)
class RoleRecord:
    id: int
    name: str
    is_system_role: bool = False
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class EffectivePermissions:
    """Result of permission resolution for one user."""

    permissions: tuple[PermissionRecord, ...] = ()
    roles: tuple[RoleRecord, ...] = ()

    @classmethod
    def build(cls, permissions, roles) -> "EffectivePermissions":
        """De-duplicate by id and order deterministically."""
        unique_permissions = {record.id: record for record in permissions}
        unique_roles = {record.id: record for record in roles}
        return cls(
            permissions=tuple(sorted(unique_permissions.values(), key=lambda record: record.name)),
            roles=tuple(sorted(unique_roles.values(), key=lambda record: record.name)),
        )

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(record.name for record in self.permissions)

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(normalize_role_name(record.name) for record in self.roles)


@dataclass(frozen=True)
class ActorContext:
    """Everything the engine needs about the requesting user.

    Built once per request by the authentication layer and handed explicitly
    to every check; never mutated afterwards.
    """

    user_id: str
    user_level: str
    assigned: LocationTuple = field(default_factory=LocationTuple)
    inheritance_depth: str = ALL_CHILDREN
    can_inherit_data: bool = True
    permissions: tuple[PermissionRecord, ...] = ()
    role_names: frozenset[str] = frozenset()
    session_token: Optional[str] = None

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(record.name for record in self.permissions)

    def permission(self, name: str) -> Optional[PermissionRecord]:
        return next((record for record in self.permissions if record.name == name), None)

    @property
    def anchor(self) -> Optional[tuple[str, str]]:
        """``(level, node_id)`` this actor is pinned to, or None."""
        if self.user_level == CITIZEN_LEVEL:
            return None
        node_id = self.assigned.get(self.user_level)
        return (self.user_level, node_id) if node_id else None

    @property
    def includes_descendants(self) -> bool:
        return self.can_inherit_data and self.inheritance_depth == ALL_CHILDREN

    @property
    def is_super_admin(self) -> bool:
        return in_role_group(self.role_names, SUPER_ADMIN)

    @property
    def is_verifikator(self) -> bool:
        return in_role_group(self.role_names, VERIFIKATOR)


@dataclass(frozen=True)
class Decision:
    """Outcome of a single check. Truthy iff allowed."""

    allowed: bool
    code: Optional[str] = None
    reason: str = ""

    @classmethod
    def allow(cls, reason: str = "") -> "Decision":
        return cls(True, None, reason)

    @classmethod
    def deny(cls, code: str, reason: str = "") -> "Decision":
        return cls(False, code, reason)

    def __bool__(self) -> bool:
        return self.allowed


__all__ = [
    "PermissionRecord",
    "RoleRecord",
    "EffectivePermissions",
    "ActorContext",
    "Decision",
]
