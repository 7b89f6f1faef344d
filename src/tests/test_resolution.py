"""Effective-permission resolution: grant lifecycles and the two strategies."""

from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from access_control.models import Permission, Role, RolePermission, UserRole
from access_control.resolution import (
    AggregatePermissionStrategy,
    PermissionResolver,
    PerRolePermissionStrategy,
    resolve_effective_permissions,
)
from core.exceptions import AuthorizationError
from tests.utils import create_user, seed_rbac_basics


class PermissionResolutionTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.permissions, cls.roles, cls.nodes = seed_rbac_basics()
        cls.citizen = create_user("warga@test.com", "Pass12345", [cls.roles["masyarakat"]], anchor=cls.nodes["village"])
        cls.village_admin = create_user(
            "desa@test.com",
            "Pass12345",
            [cls.roles["admin_village"], cls.roles["masyarakat"]],
            user_level="village",
            anchor=cls.nodes["village"],
        )
        cls.nobody = create_user("nobody@test.com", "Pass12345")

    def test_citizen_gets_exactly_role_grants(self):
        effective = resolve_effective_permissions(self.citizen.pk)

        self.assertEqual(effective.permission_names, {"housing:read", "housing:create"})
        self.assertEqual(effective.role_names, {"masyarakat"})

    def test_user_without_roles_has_nothing(self):
        effective = resolve_effective_permissions(self.nobody.pk)

        self.assertEqual(effective.permissions, ())
        self.assertEqual(effective.roles, ())

    def test_permissions_are_deduplicated_across_roles(self):
        effective = resolve_effective_permissions(self.village_admin.pk)
        names = [record.name for record in effective.permissions]

        self.assertEqual(len(names), len(set(names)))
        self.assertIn("housing:read", names)
        self.assertEqual(names, sorted(names))

    def test_expired_assignment_is_ignored(self):
        UserRole.objects.filter(user=self.citizen).update(expires_at=timezone.now() - timedelta(minutes=1))

        self.assertEqual(resolve_effective_permissions(self.citizen.pk).permission_names, frozenset())

    def test_future_expiry_still_counts(self):
        UserRole.objects.filter(user=self.citizen).update(expires_at=timezone.now() + timedelta(days=1))

        self.assertIn("housing:read", resolve_effective_permissions(self.citizen.pk).permission_names)

    def test_revoked_grant_is_ignored(self):
        RolePermission.objects.filter(
            role=self.roles["masyarakat"], permission__name="housing:create"
        ).update(is_active=False)

        self.assertEqual(resolve_effective_permissions(self.citizen.pk).permission_names, {"housing:read"})

    def test_expired_grant_is_ignored(self):
        RolePermission.objects.filter(
            role=self.roles["masyarakat"], permission__name="housing:read"
        ).update(expires_at=timezone.now() - timedelta(seconds=1))

        self.assertEqual(resolve_effective_permissions(self.citizen.pk).permission_names, {"housing:create"})

    def test_inactive_permission_is_ignored(self):
        Permission.objects.filter(name="housing:create").update(is_active=False)

        self.assertEqual(resolve_effective_permissions(self.citizen.pk).permission_names, {"housing:read"})

    def test_inactive_role_contributes_nothing(self):
        Role.objects.filter(pk=self.roles["masyarakat"].pk).update(is_active=False)
        effective = resolve_effective_permissions(self.citizen.pk)

        self.assertEqual(effective.permission_names, frozenset())
        self.assertEqual(effective.role_names, frozenset())

    def test_parent_role_grants_do_not_cascade(self):
        child = Role.objects.create(name="desa_helper", parent=self.roles["admin_village"])
        helper = create_user("helper@test.com", "Pass12345", [child])
        effective = resolve_effective_permissions(helper.pk)

        self.assertEqual(effective.role_names, {"desa_helper"})
        self.assertEqual(effective.permission_names, frozenset())

    def test_resolution_is_idempotent(self):
        now = timezone.now()

        self.assertEqual(
            resolve_effective_permissions(self.village_admin.pk, now),
            resolve_effective_permissions(self.village_admin.pk, now),
        )

    def test_strategies_agree(self):
        now = timezone.now()
        UserRole.objects.filter(user=self.village_admin, role=self.roles["masyarakat"]).update(
            expires_at=now + timedelta(hours=1)
        )
        RolePermission.objects.filter(
            role=self.roles["admin_village"], permission__name="facility:create"
        ).update(is_active=False)

        for user in (self.citizen, self.village_admin, self.nobody):
            with self.subTest(user=user.email):
                self.assertEqual(
                    AggregatePermissionStrategy().resolve(user.pk, now),
                    PerRolePermissionStrategy().resolve(user.pk, now),
                )

    def test_falls_back_when_aggregate_path_fails(self):
        expected = PerRolePermissionStrategy().resolve(self.village_admin.pk)

        with mock.patch.object(AggregatePermissionStrategy, "_fetch", side_effect=DatabaseError("boom")):
            with self.assertLogs("access_control.fallback", level="WARNING"):
                effective = PermissionResolver().resolve(self.village_admin.pk)

        self.assertEqual(effective, expected)

    def test_both_paths_failing_is_an_authorization_error(self):
        with mock.patch.object(AggregatePermissionStrategy, "_fetch", side_effect=DatabaseError("boom")), \
                mock.patch.object(PerRolePermissionStrategy, "_fetch", side_effect=DatabaseError("boom")):
            with self.assertLogs("access_control.fallback", level="ERROR"):
                with self.assertRaises(AuthorizationError):
                    PermissionResolver().resolve(self.citizen.pk)
