"""Role checks, permission checks and the override rule table."""

from __future__ import annotations

from django.test import SimpleTestCase, TestCase

from access_control.context import ActorContext, PermissionRecord
from access_control.engine import engine, is_privileged
from access_control.rules import first_override, normalize_role_name
from audit.models import AuditEntry
from core.exceptions import AuthorizationDenial, ErrorCode
from tests.utils import create_user


def _record(name: str, scope: str = "location") -> PermissionRecord:
    resource, _, action = name.partition(":")
    return PermissionRecord(id=abs(hash(name)) % 10_000, name=name, resource=resource, action=action, scope=scope)


class RoleNameTests(SimpleTestCase):
    def test_normalization(self):
        self.assertEqual(normalize_role_name(" Admin-Desa "), "admin_desa")
        self.assertEqual(normalize_role_name("Admin Kabupaten"), "admin_kabupaten")
        self.assertEqual(normalize_role_name(None), "")

    def test_first_matching_rule_wins(self):
        self.assertEqual(first_override({"verifikator"}, "housing:create").code, ErrorCode.CREATE_NOT_ALLOWED)
        self.assertIsNone(first_override({"verifikator"}, "housing:update").code)
        self.assertIsNone(first_override({"masyarakat"}, "housing:create"))

    def test_privileged_actions(self):
        for name in ("housing:create", "facility:verify", "report:approve", "user:manage", "manage_users"):
            self.assertTrue(is_privileged(name), name)
        for name in ("housing:read", "facility:update", "export_housing"):
            self.assertFalse(is_privileged(name), name)


class PermissionCheckTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = create_user("actor@test.com", "Pass12345")

    def actor(self, roles=(), permissions=(), level="village") -> ActorContext:
        return ActorContext(
            user_id=str(self.user.pk),
            user_level=level,
            permissions=tuple(_record(name) for name in permissions),
            role_names=frozenset(normalize_role_name(role) for role in roles),
        )

    def test_granted_permission_passes(self):
        actor = self.actor(["masyarakat"], ["housing:read"])

        self.assertTrue(engine.has_permission(actor, "housing:read"))
        self.assertFalse(engine.has_permission(actor, "housing:update"))
        self.assertEqual(engine.check_permission(actor, "housing:update").code, ErrorCode.INSUFFICIENT_PERMISSIONS)

    def test_super_admin_aliases_allow_everything(self):
        for role in ("super_admin", "Super-Admin", "admin", "administrator"):
            with self.subTest(role=role):
                self.assertTrue(engine.has_permission(self.actor([role]), "anything:at_all"))

    def test_verifikator_cannot_create(self):
        actor = self.actor(["verifikator"], ["housing:create"])
        decision = engine.check_permission(actor, "housing:create")

        self.assertFalse(decision)
        self.assertEqual(decision.code, ErrorCode.CREATE_NOT_ALLOWED)

    def test_verifikator_is_allowed_everything_else(self):
        actor = self.actor(["verifier"])

        self.assertTrue(engine.has_permission(actor, "housing:verify"))
        self.assertTrue(engine.has_permission(actor, "manage_users"))

    def test_regency_admin_cannot_create_housing_or_facilities(self):
        actor = self.actor(["admin_regency"], ["housing:create", "facility:create", "housing_development:create"])

        self.assertEqual(engine.check_permission(actor, "housing:create").code, ErrorCode.CREATE_NOT_ALLOWED)
        self.assertEqual(engine.check_permission(actor, "facility:create").code, ErrorCode.CREATE_NOT_ALLOWED)
        self.assertTrue(engine.has_permission(actor, "housing_development:create"))

    def test_village_admin_cannot_read_facilities_even_when_granted(self):
        actor = self.actor(["Admin Desa"], ["facility:read", "facility:create"])
        decision = engine.check_permission(actor, "facility:read")

        self.assertEqual(decision.code, ErrorCode.READ_NOT_ALLOWED)
        self.assertTrue(engine.has_permission(actor, "facility:create"))

    def test_any_permission_reports_first_override_code(self):
        actor = self.actor(["admin_village"], ["facility:read"])
        decision = engine.check_any_permission(actor, ["housing:verify", "facility:read"])

        self.assertFalse(decision)
        self.assertEqual(decision.code, ErrorCode.READ_NOT_ALLOWED)

    def test_any_permission_keeps_override_code_after_plain_denials(self):
        actor = self.actor(["admin_regency"])

        decision = engine.check_any_permission(actor, ["housing:update", "facility:create", "housing:read"])

        self.assertEqual(decision.code, ErrorCode.CREATE_NOT_ALLOWED)

    def test_verifikator_create_name_blocks_the_whole_any_check(self):
        actor = self.actor(["verifikator"], ["housing:read"])

        decision = engine.check_any_permission(actor, ["housing:create", "housing:read"])

        self.assertFalse(decision)
        self.assertEqual(decision.code, ErrorCode.CREATE_NOT_ALLOWED)
        entry = AuditEntry.objects.get(action="authorization_denied", user=self.user)
        self.assertEqual(entry.metadata["permission"], "housing:create")
        self.assertTrue(engine.has_any_permission(actor, ["housing:read", "housing:verify"]))

    def test_super_admin_verifikator_passes_any_check_with_create(self):
        actor = self.actor(["super_admin", "verifikator"])

        self.assertTrue(engine.has_any_permission(actor, ["housing:create", "housing:read"]))

    def test_any_permission_passes_when_one_passes(self):
        actor = self.actor(["masyarakat"], ["housing:read"])

        self.assertTrue(engine.has_any_permission(actor, ["facility:read", "housing:read"]))
        self.assertEqual(
            engine.check_any_permission(actor, ["facility:read"]).code, ErrorCode.INSUFFICIENT_PERMISSIONS
        )

    def test_multiple_permissions_map(self):
        actor = self.actor(["admin_village"], ["facility:read", "housing:read"])

        self.assertEqual(
            engine.has_multiple_permissions(actor, ["housing:read", "facility:read", "housing:update"]),
            {"housing:read": True, "facility:read": False, "housing:update": False},
        )

    def test_role_checks(self):
        self.assertTrue(engine.has_role(self.actor(["admin_regency"]), "admin_kabupaten"))
        self.assertTrue(engine.has_role(self.actor(["admin_village"]), "admin_desa"))
        self.assertFalse(engine.has_role(self.actor(["admin_village"]), "admin_regency"))
        self.assertFalse(engine.has_role(self.actor(["admin_village"]), "admin_kabupaten"))
        self.assertTrue(engine.has_role(self.actor(["masyarakat"]), "Masyarakat"))
        self.assertTrue(engine.has_role(self.actor(["super_admin"]), "verifikator"))
        decision = engine.check_role(self.actor(["masyarakat"]), "verifikator")
        self.assertEqual(decision.code, ErrorCode.INSUFFICIENT_ROLE)

    def test_enforce_raises_with_reason_code(self):
        actor = self.actor(["verifikator"])

        with self.assertRaises(AuthorizationDenial) as ctx:
            engine.enforce(engine.check_permission(actor, "facility:create"))
        self.assertEqual(ctx.exception.get_codes(), ErrorCode.CREATE_NOT_ALLOWED)

    def test_privileged_denials_are_audited(self):
        actor = self.actor(["masyarakat"], ["housing:read"])

        engine.check_permission(actor, "facility:create")
        engine.check_permission(actor, "facility:read")

        entries = AuditEntry.objects.filter(action="authorization_denied", user=self.user)
        self.assertEqual(entries.count(), 1)
        self.assertEqual(entries.get().metadata["permission"], "facility:create")
        self.assertEqual(entries.get().metadata["code"], ErrorCode.INSUFFICIENT_PERMISSIONS)
