"""System checks for RBAC configuration."""

from django.core.checks import Error, register
from django.urls import URLPattern, URLResolver, get_resolver

from access_control.permissions import PermissionRequired, ResourceAccessPermission, RoleRequired


def _routed_views(patterns):
    for pattern in patterns:
        if isinstance(pattern, URLResolver):
            yield from _routed_views(pattern.url_patterns)
        elif isinstance(pattern, URLPattern):
            view_cls = getattr(pattern.callback, "cls", None)
            if view_cls is not None:
                yield view_cls


@register()
def guarded_views_declare_targets(app_configs, **kwargs):
    """Ensure engine-guarded views declare what they guard.

    Views using ``ResourceAccessPermission`` need a registered
    ``resource_type``; views using ``PermissionRequired`` need a
    ``required_permission``; views using ``RoleRequired`` need a non-empty
    ``required_roles``.
    """
    from access_control.resources import registered_types

    errors: list[Error] = []
    seen = set()
    for view_cls in _routed_views(get_resolver().url_patterns):
        if view_cls in seen:
            continue
        seen.add(view_cls)
        permission_classes = getattr(view_cls, "permission_classes", [])
        if ResourceAccessPermission in permission_classes:
            resource_type = getattr(view_cls, "resource_type", None)
            if resource_type not in registered_types():
                errors.append(
                    Error(
                        f"{view_cls.__name__} uses ResourceAccessPermission but its "
                        f"resource_type {resource_type!r} is not registered.",
                        obj=view_cls,
                        id="access_control.E001",
                    )
                )
        if PermissionRequired in permission_classes and not getattr(view_cls, "required_permission", None):
            errors.append(
                Error(
                    f"{view_cls.__name__} uses PermissionRequired but does not define required_permission.",
                    obj=view_cls,
                    id="access_control.E002",
                )
            )
        if RoleRequired in permission_classes and not getattr(view_cls, "required_roles", None):
            errors.append(
                Error(
                    f"{view_cls.__name__} uses RoleRequired but declares no required_roles.",
                    obj=view_cls,
                    id="access_control.E003",
                )
            )

    return errors
