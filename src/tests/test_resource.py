"""Resource checks over submissions and list scoping."""

from __future__ import annotations

from unittest import mock

from django.test import TestCase, override_settings

from access_control.engine import engine
from access_control.models import Permission
from access_control.resources import ResourceDescriptor
from access_control.scoping import scope_queryset
from audit.models import AuditEntry
from core.exceptions import AuthorizationError, ErrorCode, InfrastructureFailure, ResourceNotFound
from geography.services import chain_for
from surveys.models import Submission
from tests.utils import actor_for, create_submission, create_user, seed_rbac_basics


class SubmissionFixtures(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.permissions, cls.roles, cls.nodes = seed_rbac_basics()
        n, r = cls.nodes, cls.roles
        cls.regency_admin = create_user(
            "kab@test.com", "Pass12345", [r["admin_regency"]], user_level="regency", anchor=n["regency"]
        )
        cls.village_admin = create_user(
            "desa@test.com", "Pass12345", [r["admin_village"]], user_level="village", anchor=n["village"]
        )
        cls.district_reader = create_user(
            "kec@test.com",
            "Pass12345",
            [r["admin_village"]],
            user_level="district",
            anchor=n["district"],
            inheritance_depth="direct",
        )
        cls.unanchored_admin = create_user(
            "lost@test.com", "Pass12345", [r["admin_village"]], user_level="village", anchor=n["district"]
        )
        cls.citizen = create_user("warga@test.com", "Pass12345", [r["masyarakat"]], anchor=n["village"])
        cls.neighbour = create_user("tetangga@test.com", "Pass12345", [r["masyarakat"]], anchor=n["village"])
        cls.verifier = create_user(
            "verif@test.com", "Pass12345", [r["verifikator"]], user_level="district", anchor=n["other_district"]
        )
        cls.super_admin = create_user(
            "root@test.com", "Pass12345", [r["super_admin"]], user_level="province", anchor=n["province"]
        )

        cls.own_house = create_submission(cls.citizen, anchor=n["village"])
        cls.neighbour_house = create_submission(cls.neighbour, anchor=n["village"])
        cls.sibling_house = create_submission(cls.neighbour, anchor=n["sibling_village"])
        cls.far_house = create_submission(cls.neighbour, anchor=n["other_village"])
        cls.village_only_house = Submission.objects.create(
            category="housing", title="village only", created_by=cls.neighbour, village=n["village"]
        )
        cls.facility = create_submission(cls.neighbour, category="facility", anchor=n["village"])

    def check(self, user, action, submission, resource_type="housing"):
        return engine.check_resource(actor_for(user), resource_type, action, resource=submission)


class ResourceCheckTests(SubmissionFixtures):
    def set_scope(self, name, scope):
        Permission.objects.filter(name=name).update(scope=scope)

    def test_regency_admin_reads_inside_the_regency_only(self):
        self.assertTrue(self.check(self.regency_admin, "read", self.neighbour_house))
        self.assertTrue(self.check(self.regency_admin, "read", self.sibling_house))
        decision = self.check(self.regency_admin, "read", self.far_house)
        self.assertFalse(decision)
        self.assertEqual(decision.code, ErrorCode.RESOURCE_ACCESS_DENIED)

    def test_regency_admin_cannot_create_housing(self):
        draft = ResourceDescriptor("housing", location=chain_for(self.nodes["village"]))

        self.assertEqual(self.check(self.regency_admin, "create", draft).code, ErrorCode.CREATE_NOT_ALLOWED)

    def test_village_admin(self):
        self.assertTrue(self.check(self.village_admin, "read", self.neighbour_house))
        self.assertEqual(
            self.check(self.village_admin, "read", self.sibling_house).code, ErrorCode.RESOURCE_ACCESS_DENIED
        )
        self.assertEqual(
            self.check(self.village_admin, "read", self.facility, "facility").code, ErrorCode.READ_NOT_ALLOWED
        )

    def test_village_admin_creates_only_in_own_village(self):
        inside = ResourceDescriptor("housing", location=chain_for(self.nodes["village"]))
        outside = ResourceDescriptor("housing", location=chain_for(self.nodes["sibling_village"]))

        self.assertTrue(self.check(self.village_admin, "create", inside))
        self.assertEqual(self.check(self.village_admin, "create", outside).code, ErrorCode.RESOURCE_ACCESS_DENIED)

    def test_citizen_location_scope_means_ownership(self):
        self.assertTrue(self.check(self.citizen, "read", self.own_house))
        self.assertEqual(
            self.check(self.citizen, "read", self.neighbour_house).code, ErrorCode.RESOURCE_ACCESS_DENIED
        )

    def test_missing_anchor_keeps_its_code(self):
        self.assertEqual(
            self.check(self.unanchored_admin, "read", self.neighbour_house).code, ErrorCode.NO_LOCATION_ASSIGNED
        )

    def test_verifikator_and_super_admin_skip_scoping(self):
        for user in (self.verifier, self.super_admin):
            with self.subTest(user=user.email):
                self.assertTrue(self.check(user, "read", self.far_house))
                self.assertTrue(self.check(user, "verify", self.facility, "facility"))

    def test_lookup_by_id(self):
        actor = actor_for(self.village_admin)

        self.assertTrue(engine.check_resource(actor, "housing", "read", resource_id=self.neighbour_house.pk))
        self.assertFalse(engine.check_resource(actor, "housing", "read", resource_id=self.far_house.pk))

    def test_unknown_id_is_not_found(self):
        actor = actor_for(self.village_admin)

        with self.assertRaises(ResourceNotFound):
            engine.check_resource(actor, "housing", "read", resource_id=987654)
        with self.assertRaises(ResourceNotFound):
            # A facility row does not exist as housing.
            engine.check_resource(actor, "housing", "read", resource_id=self.facility.pk)

    def test_own_scope(self):
        self.set_scope("housing:read", "own")
        mine = create_submission(self.village_admin, anchor=self.nodes["village"])

        self.assertTrue(self.check(self.village_admin, "read", mine))
        self.assertEqual(
            self.check(self.village_admin, "read", self.neighbour_house).code, ErrorCode.RESOURCE_ACCESS_DENIED
        )

    def test_inherited_scope_reaches_descendants_despite_direct_depth(self):
        self.assertFalse(self.check(self.district_reader, "read", self.village_only_house))

        self.set_scope("housing:read", "inherited")

        self.assertTrue(self.check(self.district_reader, "read", self.village_only_house))
        self.assertFalse(self.check(self.district_reader, "read", self.sibling_house))

    def test_all_scope(self):
        self.set_scope("housing:read", "all")

        self.assertTrue(self.check(self.village_admin, "read", self.far_house))
        self.assertTrue(self.check(self.citizen, "read", self.neighbour_house))

    def test_privileged_denial_is_audited(self):
        outside = ResourceDescriptor("housing", location=chain_for(self.nodes["other_village"]))
        self.check(self.village_admin, "create", outside)
        self.check(self.village_admin, "read", self.far_house)

        entries = AuditEntry.objects.filter(action="authorization_denied", user=self.village_admin)
        self.assertEqual(entries.count(), 1)
        entry = entries.get()
        self.assertEqual(entry.resource_type, "housing")
        self.assertEqual(entry.metadata["permission"], "housing:create")
        self.assertEqual(entry.metadata["code"], ErrorCode.RESOURCE_ACCESS_DENIED)

    def test_fallback_degrades_to_permission_name(self):
        actor = actor_for(self.village_admin)
        with mock.patch("access_control.resources.describe", side_effect=InfrastructureFailure("down")):
            with self.assertLogs("access_control", level="WARNING"):
                read = engine.check_resource(actor, "housing", "read", resource_id=self.far_house.pk)
            create = engine.check_resource(actor, "housing", "create", resource_id=self.far_house.pk)

        # Instance-level precision is lost: out-of-scope rows pass on the name alone.
        self.assertTrue(read)
        self.assertTrue(create)
        fallbacks = AuditEntry.objects.filter(action="authorization_fallback", user=self.village_admin)
        self.assertEqual([entry.metadata["permission"] for entry in fallbacks], ["housing:create"])

    def test_fallback_still_denies_missing_permission(self):
        actor = actor_for(self.citizen)
        with mock.patch("access_control.resources.describe", side_effect=InfrastructureFailure("down")):
            self.assertEqual(
                engine.check_resource(actor, "housing", "update", resource_id=self.own_house.pk).code,
                ErrorCode.INSUFFICIENT_PERMISSIONS,
            )

    @override_settings(RBAC_RESOURCE_FALLBACK="strict")
    def test_strict_mode_refuses_to_degrade(self):
        actor = actor_for(self.village_admin)
        with mock.patch("access_control.resources.describe", side_effect=InfrastructureFailure("down")):
            with self.assertRaises(AuthorizationError):
                engine.check_resource(actor, "housing", "read", resource_id=self.far_house.pk)


class ScopeQuerysetTests(SubmissionFixtures):
    def visible(self, user, resource_type="housing"):
        queryset = Submission.for_resource_type(resource_type)
        return set(scope_queryset(actor_for(user), queryset, resource_type).values_list("pk", flat=True))

    def test_regency_admin_sees_the_regency(self):
        self.assertEqual(
            self.visible(self.regency_admin),
            {self.own_house.pk, self.neighbour_house.pk, self.sibling_house.pk, self.village_only_house.pk},
        )

    def test_village_admin_sees_the_village(self):
        self.assertEqual(
            self.visible(self.village_admin),
            {self.own_house.pk, self.neighbour_house.pk, self.village_only_house.pk},
        )

    def test_direct_depth_sees_only_rows_tagged_with_the_anchor(self):
        self.assertEqual(self.visible(self.district_reader), {self.own_house.pk, self.neighbour_house.pk})

    def test_citizen_sees_own_rows(self):
        self.assertEqual(self.visible(self.citizen), {self.own_house.pk})

    def test_overridden_read_sees_nothing(self):
        self.assertEqual(self.visible(self.village_admin, "facility"), set())

    def test_unanchored_official_sees_nothing(self):
        self.assertEqual(self.visible(self.unanchored_admin), set())

    def test_unrestricted_roles_see_everything(self):
        everything = set(Submission.for_resource_type("housing").values_list("pk", flat=True))

        self.assertEqual(self.visible(self.verifier), everything)
        self.assertEqual(self.visible(self.super_admin), everything)

    def test_scope_matches_single_checks(self):
        housing = Submission.for_resource_type("housing")
        for user in (self.regency_admin, self.village_admin, self.district_reader, self.citizen):
            with self.subTest(user=user.email):
                allowed = {row.pk for row in housing if self.check(user, "read", row)}
                self.assertEqual(self.visible(user), allowed)
