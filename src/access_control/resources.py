"""Registry describing guarded resources to the engine (owner + location)."""

from dataclasses import dataclass, field
from typing import Any, Optional

from django.db import DatabaseError

from core.exceptions import InfrastructureFailure, ResourceNotFound
from geography.services import LocationTuple


@dataclass(frozen=True)
class ResourceDescriptor:
    resource_type: str
    resource_id: Optional[str] = None
    owner_id: Optional[str] = None
    location: LocationTuple = field(default_factory=LocationTuple)


_REGISTRY: dict[str, Any] = {}


def register_resource(resource_type: str, model) -> None:
    """Register ``model`` as the storage of ``resource_type``.

    The model must implement ``as_resource_descriptor()`` and may expose a
    ``for_resource_type(resource_type)`` classmethod returning the queryset
    holding that type.
    """
    _REGISTRY[resource_type] = model


def registered_types() -> frozenset[str]:
    return frozenset(_REGISTRY)


def _queryset(resource_type: str):
    model = _REGISTRY.get(resource_type)
    if model is None:
        raise ResourceNotFound(f"Unknown resource type '{resource_type}'.")
    if hasattr(model, "for_resource_type"):
        return model.for_resource_type(resource_type)
    return model._default_manager.all()


def describe(resource_type: str, resource: Any = None, resource_id: Any = None) -> ResourceDescriptor:
    """Describe a resource given either the instance or its id.

    Raises ``ResourceNotFound`` for unknown ids and ``InfrastructureFailure``
    when the lookup itself fails.
    """
    if isinstance(resource, ResourceDescriptor):
        return resource
    if resource is not None:
        return resource.as_resource_descriptor()
    queryset = _queryset(resource_type)
    try:
        instance = queryset.filter(pk=resource_id).first()
    except (ValueError, TypeError) as exc:
        raise ResourceNotFound(f"{resource_type} '{resource_id}' not found.") from exc
    except DatabaseError as exc:
        raise InfrastructureFailure(f"{resource_type} lookup failed: {exc}") from exc
    if instance is None:
        raise ResourceNotFound(f"{resource_type} '{resource_id}' not found.")
    return instance.as_resource_descriptor()


__all__ = ["ResourceDescriptor", "register_resource", "registered_types", "describe"]
