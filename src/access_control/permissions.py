"""DRF permission classes backed by the authorization engine.

The authenticated ``ActorContext`` is DRF's ``request.auth``. On denial each
class sets ``message`` and ``code`` from the engine's decision so the error
envelope reports the precise reason code.
"""

from typing import Optional

from rest_framework import permissions

from core.exceptions import ErrorCode
from geography.services import LocationTuple

from .context import ActorContext, Decision
from .engine import engine
from .resources import ResourceDescriptor

# HTTP method -> permission action for plain CRUD routes.
METHOD_ACTIONS = {
    "GET": "read",
    "HEAD": "read",
    "OPTIONS": "read",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


class ActorPermission(permissions.BasePermission):
    """Base class: resolve the actor and translate decisions."""

    message = "You do not have permission to perform this action on this resource."
    code: Optional[str] = None

    @staticmethod
    def get_actor(request) -> Optional[ActorContext]:
        actor = getattr(request, "auth", None)
        return actor if isinstance(actor, ActorContext) else None

    def _verdict(self, decision: Decision) -> bool:
        if not decision:
            self.code = decision.code
            if decision.reason:
                self.message = decision.reason
        return decision.allowed


class PermissionRequired(ActorPermission):
    """Require ``view.required_permission`` (e.g. ``"manage_users"``)."""

    def has_permission(self, request, view) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        return self._verdict(engine.check_permission(actor, view.required_permission))


class AnyPermissionRequired(ActorPermission):
    """Require at least one of ``view.any_permissions``."""

    def has_permission(self, request, view) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        return self._verdict(engine.check_any_permission(actor, view.any_permissions))


class RoleRequired(ActorPermission):
    """Require one of ``view.required_roles``."""

    def has_permission(self, request, view) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        decisions = [engine.check_role(actor, role) for role in getattr(view, "required_roles", ())]
        if not decisions:
            return self._verdict(Decision.deny(ErrorCode.INSUFFICIENT_ROLE, "No role satisfies this route"))
        return self._verdict(next((d for d in decisions if d), decisions[0]))


class LocationAccessPermission(ActorPermission):
    """Check the location tuple carried by the URL, body or query string."""

    def has_permission(self, request, view) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        location = LocationTuple.from_request_data(view.kwargs, request.data, request.query_params)
        return self._verdict(engine.check_location(actor, location))


class ResourceAccessPermission(ActorPermission):
    """Guard a submission-style viewset declaring ``resource_type``.

    The permission action comes from the HTTP method, or from
    ``view.action_permissions`` for custom actions (``{"verify": "verify"}``).
    Creation is checked against the location in the request body; object
    routes run the full resource check against the stored row.
    """

    @staticmethod
    def get_action(request, view) -> str:
        custom = getattr(view, "action_permissions", {})
        view_action = getattr(view, "action", None)
        if view_action in custom:
            return custom[view_action]
        return METHOD_ACTIONS.get(request.method, "read")

    def has_permission(self, request, view) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        action = self.get_action(request, view)
        # Overrides apply to every role, including those check_resource skips.
        if not self._verdict(engine.check_permission(actor, f"{view.resource_type}:{action}")):
            return False
        if action == "create":
            draft = ResourceDescriptor(
                resource_type=view.resource_type,
                owner_id=actor.user_id,
                location=LocationTuple.from_request_data(request.data),
            )
            return self._verdict(engine.check_resource(actor, view.resource_type, action, resource=draft))
        return True

    def has_object_permission(self, request, view, obj) -> bool:
        actor = self.get_actor(request)
        if actor is None:
            return False
        action = self.get_action(request, view)
        return self._verdict(engine.check_resource(actor, view.resource_type, action, resource=obj))


__all__ = [
    "ActorPermission",
    "PermissionRequired",
    "AnyPermissionRequired",
    "RoleRequired",
    "LocationAccessPermission",
    "ResourceAccessPermission",
    "METHOD_ACTIONS",
]
