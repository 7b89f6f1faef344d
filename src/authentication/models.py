"""Custom User model pinned to the administrative geography, plus login sessions.

Note: We intentionally avoid Django's built-in groups/permissions (no
PermissionsMixin); RBAC lives exclusively in the access_control tables.
"""

import uuid
from typing import ClassVar, Optional

from django.contrib.auth.models import AbstractBaseUser
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from geography.models import LEVEL_ORDER

from .managers import UserManager


class UserLevel(models.TextChoices):
    PROVINCE = "province", "Province"
    REGENCY = "regency", "Regency"
    DISTRICT = "district", "District"
    VILLAGE = "village", "Village"
    CITIZEN = "citizen", "Citizen"


class InheritanceDepth(models.TextChoices):
    DIRECT = "direct", "Direct"
    ALL_CHILDREN = "all_children", "All children"


def _location_fk(related_name: str) -> models.ForeignKey:
    return models.ForeignKey(
        "geography.GeoNode",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name=related_name,
    )


class User(AbstractBaseUser):
    """User identified by email, anchored at one node of the geography tree."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    password_hash = models.CharField(max_length=128)
    full_name = models.CharField(max_length=150, blank=True)
    user_level = models.CharField(max_length=10, choices=UserLevel.choices, default=UserLevel.CITIZEN)
    assigned_province = _location_fk("province_users")
    assigned_regency = _location_fk("regency_users")
    assigned_district = _location_fk("district_users")
    assigned_village = _location_fk("village_users")
    can_inherit_data = models.BooleanField(default=True)
    inheritance_depth = models.CharField(
        max_length=12, choices=InheritanceDepth.choices, default=InheritanceDepth.ALL_CHILDREN
    )
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: ClassVar[list[str]] = []

    objects = UserManager()

    class Meta:
        """Default ordering shows newest users first."""
        ordering = ["-date_joined"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.email

    def set_password(self, raw_password: Optional[str]) -> None:  # type: ignore[override]
        """Override to ensure bcrypt hashing via manager utility."""

        if raw_password is None:
            self.password_hash = ""
        else:
            self.password_hash = UserManager.hash_password(raw_password)

    def check_password(self, raw_password: Optional[str]) -> bool:  # type: ignore[override]
        """Delegate to bcrypt verification helper."""

        if raw_password is None:
            return False
        return UserManager.verify_password(self, raw_password)

    @property
    def anchor_id(self) -> Optional[str]:
        """Id of the authoritative assigned location for ``user_level``."""
        if self.user_level == UserLevel.CITIZEN:
            return None
        return getattr(self, f"assigned_{self.user_level}_id")

    def clean(self) -> None:
        """Validate that the assigned fields describe one ancestor chain.

        Checked on write only; authorization trusts the stored assignment.
        """
        if self.user_level == UserLevel.CITIZEN:
            return
        anchor = getattr(self, f"assigned_{self.user_level}")
        if anchor is None:
            raise ValidationError({f"assigned_{self.user_level}": "Officials must have a location for their level."})
        if anchor.level != self.user_level:
            raise ValidationError({f"assigned_{self.user_level}": f"Expected a {self.user_level} node."})
        chain = {}
        node = anchor
        while node is not None:
            chain[node.level] = node.pk
            node = node.parent
        for level in LEVEL_ORDER:
            assigned = getattr(self, f"assigned_{level}_id")
            if assigned and chain.get(level, assigned) != assigned:
                raise ValidationError({f"assigned_{level}": f"Not an ancestor of the assigned {self.user_level}."})


class UserSession(models.Model):
    """Login session; the access token carries its ``session_token``."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="sessions")
    session_token = models.CharField(max_length=64, unique=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")
    device_info = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField()
    last_activity_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_active"], name="session_user_active_idx"),
            models.Index(fields=["expires_at"], name="session_expires_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"session {self.pk} for {self.user_id}"


__all__ = ["User", "UserSession", "UserLevel", "InheritanceDepth"]
