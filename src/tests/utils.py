"""Shared helpers for tests (RBAC seeding, geography, users, clients)."""

from __future__ import annotations

from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from access_control.context import ActorContext
from access_control.engine import engine
from access_control.models import Role, UserRole
from authentication.managers import UserManager
from authentication.services import SessionService, TokenService
from geography.models import GeoNode
from scripts.management.commands.seed_rbac import create_demo_geography, seed_rbac_catalog
from surveys.models import Submission

User = get_user_model()


def seed_rbac_basics() -> tuple[dict, dict, dict]:
    """Create the permission catalog, role definitions and demo geography.

    Delegates to the same helpers used by the ``seed_rbac`` management command
    to keep RBAC setup logic in a single place.
    """

    permissions, roles = seed_rbac_catalog()
    nodes = create_demo_geography()
    return permissions, roles, nodes


def create_user(
    email: str,
    password: str,
    roles: Iterable[Role] = (),
    user_level: str = "citizen",
    anchor: Optional[GeoNode] = None,
    **extra,
):
    """Create a user with a bcrypt-hashed password, its assignment chain and roles.

    ``anchor`` fills every ``assigned_*`` field from the node up to its province.
    """

    node = anchor
    while node is not None:
        extra.setdefault(f"assigned_{node.level}", node)
        node = node.parent
    user = User.objects.create(
        email=email,
        password_hash=UserManager.hash_password(password),
        user_level=user_level,
        **extra,
    )
    for role in roles:
        UserRole.objects.create(user=user, role=role)
    return user


def actor_for(user, session_token: Optional[str] = None) -> ActorContext:
    """Build the request-scoped actor for ``user`` the way authentication does."""
    return engine.build_actor(User.objects.get(pk=user.pk), session_token)


def auth_client(user) -> APIClient:
    """Return an APIClient authenticated with a fresh session's access token."""
    session = SessionService.create(user)
    access, _ = TokenService.generate_tokens(user, session)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    return client


def create_submission(owner, category: str = "housing", anchor: Optional[GeoNode] = None, **extra) -> Submission:
    """Create a submission whose location is ``anchor`` and all of its ancestors."""
    node = anchor
    while node is not None:
        extra.setdefault(node.level, node)
        node = node.parent
    return Submission.objects.create(
        category=category,
        title=extra.pop("title", f"{category} by {owner.email}"),
        created_by=owner,
        **extra,
    )
