"""Queryset scoping for list endpoints.

Mirrors ``AuthorizationEngine.check_resource`` at the queryset level so list
results only contain rows the actor could open one by one. Models opt in by
declaring ``owner_field`` and ``location_fields`` (level -> field name).
"""

from django.db.models import Q, QuerySet

from geography.models import levels_below
from geography.services import descendant_ids

from .context import CITIZEN_LEVEL, ActorContext
from .engine import AuthorizationEngine, engine as default_engine
from .models import PermissionScope


def _owner_filter(actor: ActorContext, model) -> Q:
    return Q(**{f"{model.owner_field}_id": actor.user_id})


def _location_filter(actor: ActorContext, model, include_descendants: bool) -> Q | None:
    anchor = actor.anchor
    if anchor is None:
        return None
    level, node_id = anchor
    fields = model.location_fields
    condition = Q(**{f"{fields[level]}_id": node_id})
    if include_descendants:
        below = descendant_ids(node_id)
        for lower in levels_below(level):
            condition |= Q(**{f"{fields[lower]}_id__in": below})
    return condition


def scope_queryset(
    actor: ActorContext,
    queryset: QuerySet,
    resource_type: str,
    action: str = "read",
    engine: AuthorizationEngine | None = None,
) -> QuerySet:
    """Narrow ``queryset`` to the rows ``actor`` may ``action``."""
    engine = engine or default_engine
    if actor.is_super_admin or actor.is_verifikator:
        return queryset

    permission_name = f"{resource_type}:{action}"
    if not engine.check_permission(actor, permission_name, audit_denial=False):
        return queryset.none()
    record = actor.permission(permission_name)
    if record is None or record.scope == PermissionScope.ALL:
        return queryset

    model = queryset.model
    if record.scope == PermissionScope.OWN or actor.user_level == CITIZEN_LEVEL:
        return queryset.filter(_owner_filter(actor, model))

    include = True if record.scope == PermissionScope.INHERITED else actor.includes_descendants
    condition = _location_filter(actor, model, include)
    if condition is None:
        return queryset.none()
    return queryset.filter(condition)


__all__ = ["scope_queryset"]
