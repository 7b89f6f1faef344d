"""The authorization engine: role, permission, location and resource checks.

Every check takes an explicit ``ActorContext`` and returns a ``Decision``;
``enforce`` turns a denial into an ``AuthorizationDenial`` carrying the
reason code. Checks only read storage. Privileged denials and fallback
activations are written to the audit trail.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from django.conf import settings

from audit import services as audit
from core.exceptions import AuthorizationDenial, AuthorizationError, ErrorCode, InfrastructureFailure
from geography.services import LocationTuple

from . import resources
from .context import CITIZEN_LEVEL, ActorContext, Decision, PermissionRecord
from .fallback import with_fallback
from .location import NO_ANCHOR, DirectLookupLocationStrategy, LocationStrategy, TreeLocationStrategy
from .models import PermissionScope
from .resolution import PermissionResolver
from .rules import (
    PERMISSION_OVERRIDES,
    ROLE_GROUPS,
    VERIFIKATOR,
    OverrideKind,
    OverrideRule,
    first_override,
    in_role_group,
    normalize_role_name,
)

logger = logging.getLogger(__name__)

PRIVILEGED_ACTIONS = frozenset({"create", "verify", "approve", "manage"})
PRIVILEGED_PERMISSIONS = frozenset({"manage_users"})


def is_privileged(permission_name: str) -> bool:
    """Create/verify/approve/manage operations are audited on denial."""
    if permission_name in PRIVILEGED_PERMISSIONS:
        return True
    _, _, action = permission_name.rpartition(":")
    return action in PRIVILEGED_ACTIONS


class AuthorizationEngine:
    def __init__(
        self,
        resolver: Optional[PermissionResolver] = None,
        location_primary: Optional[LocationStrategy] = None,
        location_fallback: Optional[LocationStrategy] = None,
        overrides: tuple[OverrideRule, ...] = PERMISSION_OVERRIDES,
    ):
        self.resolver = resolver or PermissionResolver()
        self.location_primary = location_primary or TreeLocationStrategy()
        self.location_fallback = location_fallback or DirectLookupLocationStrategy()
        self.overrides = overrides

    # -- actor ---------------------------------------------------------------

    def build_actor(self, user, session_token: Optional[str] = None, now: Optional[datetime] = None) -> ActorContext:
        """Resolve ``user``'s effective permissions into an immutable context."""
        effective = self.resolver.resolve(user.pk, now)
        return ActorContext(
            user_id=str(user.pk),
            user_level=user.user_level,
            assigned=LocationTuple(
                province_id=user.assigned_province_id,
                regency_id=user.assigned_regency_id,
                district_id=user.assigned_district_id,
                village_id=user.assigned_village_id,
            ),
            inheritance_depth=user.inheritance_depth,
            can_inherit_data=user.can_inherit_data,
            permissions=effective.permissions,
            role_names=effective.role_names,
            session_token=session_token,
        )

    # -- roles ---------------------------------------------------------------

    def check_role(self, actor: ActorContext, role_name: str) -> Decision:
        if actor.is_super_admin:
            return Decision.allow("super admin")
        wanted = normalize_role_name(role_name)
        if wanted in actor.role_names or (wanted in ROLE_GROUPS and in_role_group(actor.role_names, wanted)):
            return Decision.allow()
        return Decision.deny(ErrorCode.INSUFFICIENT_ROLE, "Insufficient role")

    def has_role(self, actor: ActorContext, role_name: str) -> bool:
        return self.check_role(actor, role_name).allowed

    # -- permissions ---------------------------------------------------------

    def check_permission(self, actor: ActorContext, permission_name: str, audit_denial: bool = True) -> Decision:
        rule = first_override(actor.role_names, permission_name, self.overrides)
        if rule is not None and rule.kind is OverrideKind.ALLOW_ALL:
            decision = Decision.allow(f"{rule.role_group} override")
        elif rule is not None:
            decision = Decision.deny(rule.code or ErrorCode.INSUFFICIENT_PERMISSIONS, rule.message)
        elif permission_name in actor.permission_names:
            decision = Decision.allow()
        else:
            decision = Decision.deny(ErrorCode.INSUFFICIENT_PERMISSIONS, "Insufficient permissions")
        if audit_denial:
            self._audit_denial(actor, permission_name, decision)
        return decision

    def has_permission(self, actor: ActorContext, permission_name: str) -> bool:
        return self.check_permission(actor, permission_name).allowed

    def has_multiple_permissions(self, actor: ActorContext, permission_names: Iterable[str]) -> dict[str, bool]:
        """Per-name verdicts, for callers that need more than one allow/deny."""
        return {
            name: self.check_permission(actor, name, audit_denial=False).allowed
            for name in permission_names
        }

    def check_any_permission(self, actor: ActorContext, permission_names: Iterable[str]) -> Decision:
        """Allow if any name passes; otherwise report the first override denial code.

        A verifikator denial on any requested name (a ``:create`` name) denies
        the whole check, even when another name would pass.
        """
        names = list(permission_names)
        blocked = self._verifikator_block(actor, names)
        if blocked is not None:
            decision = blocked
        else:
            decisions = [self.check_permission(actor, name, audit_denial=False) for name in names]
            if any(decisions):
                return Decision.allow()
            overridden = next(
                (d for d in decisions if d.code != ErrorCode.INSUFFICIENT_PERMISSIONS), None
            )
            if overridden is not None:
                decision = overridden
            else:
                decision = Decision.deny(ErrorCode.INSUFFICIENT_PERMISSIONS, "Insufficient permissions")
        privileged = next((name for name in names if is_privileged(name)), None)
        if privileged is not None:
            self._audit_denial(actor, privileged, decision, metadata={"requested": names})
        return decision

    def has_any_permission(self, actor: ActorContext, permission_names: Iterable[str]) -> bool:
        return self.check_any_permission(actor, permission_names).allowed

    def _verifikator_block(self, actor: ActorContext, names: list[str]) -> Optional[Decision]:
        for name in names:
            rule = first_override(actor.role_names, name, self.overrides)
            if rule is not None and rule.role_group == VERIFIKATOR and rule.kind is not OverrideKind.ALLOW_ALL:
                return Decision.deny(rule.code or ErrorCode.INSUFFICIENT_PERMISSIONS, rule.message)
        return None

    # -- locations -----------------------------------------------------------

    def check_location(
        self,
        actor: ActorContext,
        location: LocationTuple,
        include_descendants: Optional[bool] = None,
    ) -> Decision:
        """Decide whether ``actor`` may operate on data anchored at ``location``.

        ``include_descendants`` defaults to the actor's own inheritance
        setting; ``True`` forces descendant access (``inherited`` scope).
        """
        if actor.is_super_admin:
            return Decision.allow("super admin")
        anchor = actor.anchor
        if anchor is None:
            return NO_ANCHOR
        level, node_id = anchor
        include = actor.includes_descendants if include_descendants is None else include_descendants
        return with_fallback(
            "location check",
            lambda: self.location_primary.evaluate(level, node_id, location, include),
            lambda: self.location_fallback.evaluate(level, node_id, location, include),
        )

    def check_locations(self, actor: ActorContext, locations: Iterable[LocationTuple]) -> dict[str, bool]:
        """Batch location check keyed by ``province-regency-district-village``."""
        return {location.key(): self.check_location(actor, location).allowed for location in locations}

    # -- resources -----------------------------------------------------------

    def check_resource(
        self,
        actor: ActorContext,
        resource_type: str,
        action: str,
        resource_id: Any = None,
        resource: Any = None,
    ) -> Decision:
        """Decide whether ``actor`` may perform ``action`` on one resource instance.

        ``resource`` may be a model instance or a ``ResourceDescriptor``
        (e.g. a draft that is not stored yet); otherwise ``resource_id`` is
        looked up through the resource registry.
        """
        if actor.is_super_admin or actor.is_verifikator:
            return Decision.allow("resource check skipped for role")

        permission_name = f"{resource_type}:{action}"
        decision = self.check_permission(actor, permission_name, audit_denial=False)
        record = actor.permission(permission_name)
        if decision and record is None:
            # Allowed by an override without a catalog grant; nothing to scope.
            return decision
        if decision:
            decision = with_fallback(
                "resource check",
                lambda: self._scoped_resource(actor, record, resource_type, resource, resource_id),
                lambda: self._unscoped_resource(actor, permission_name),
                on_fallback=lambda exc: self._audit_fallback(actor, permission_name, resource_id, exc),
            )
        self._audit_denial(
            actor,
            permission_name,
            decision,
            resource_type=resource_type,
            resource_id=resource_id if resource_id is not None else getattr(resource, "pk", None),
        )
        return decision

    def _scoped_resource(
        self, actor: ActorContext, record: PermissionRecord, resource_type: str, resource: Any, resource_id: Any
    ) -> Decision:
        descriptor = resources.describe(resource_type, resource=resource, resource_id=resource_id)
        scope = record.scope
        if scope == PermissionScope.ALL:
            return Decision.allow("scope all")
        if scope == PermissionScope.OWN or actor.user_level == CITIZEN_LEVEL:
            if descriptor.owner_id is not None and str(descriptor.owner_id) == actor.user_id:
                return Decision.allow("owner")
            return Decision.deny(ErrorCode.RESOURCE_ACCESS_DENIED, "Access denied for this resource")
        location_decision = self.check_location(
            actor,
            descriptor.location,
            include_descendants=True if scope == PermissionScope.INHERITED else None,
        )
        if location_decision or location_decision.code == ErrorCode.NO_LOCATION_ASSIGNED:
            return location_decision
        return Decision.deny(ErrorCode.RESOURCE_ACCESS_DENIED, "Access denied for this resource")

    def _unscoped_resource(self, actor: ActorContext, permission_name: str) -> Decision:
        """Flat permission-name check used when the scoped path is unavailable.

        This loses instance-level precision (own/location/inherited are not
        evaluated). ``RBAC_RESOURCE_FALLBACK = "strict"`` refuses instead.
        """
        if getattr(settings, "RBAC_RESOURCE_FALLBACK", "permission") == "strict":
            raise AuthorizationError()
        return self.check_permission(actor, permission_name, audit_denial=False)

    # -- enforcement and audit ----------------------------------------------

    @staticmethod
    def enforce(decision: Decision) -> Decision:
        """Raise ``AuthorizationDenial`` with the decision's code when denied."""
        if not decision:
            raise AuthorizationDenial(decision.reason or "Access denied", code=decision.code)
        return decision

    @staticmethod
    def _audit_denial(
        actor: ActorContext,
        permission_name: str,
        decision: Decision,
        resource_type: str = "",
        resource_id: Any = "",
        metadata: Optional[dict] = None,
    ) -> None:
        if decision or not is_privileged(permission_name):
            return
        audit.record(
            "authorization_denied",
            user_id=actor.user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata={"permission": permission_name, "code": decision.code, **(metadata or {})},
        )

    @staticmethod
    def _audit_fallback(actor: ActorContext, permission_name: str, resource_id: Any, exc: InfrastructureFailure) -> None:
        logger.warning(
            "Resource check for %s by %s degraded to a permission-name check", permission_name, actor.user_id
        )
        if is_privileged(permission_name):
            audit.record(
                "authorization_fallback",
                user_id=actor.user_id,
                resource_id=resource_id,
                metadata={"permission": permission_name, "error": str(exc)},
            )


engine = AuthorizationEngine()


__all__ = ["AuthorizationEngine", "engine", "is_privileged"]
