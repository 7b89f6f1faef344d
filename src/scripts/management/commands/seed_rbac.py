"""Seed the permission catalog, role definitions, and optional demo data."""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from access_control.models import Permission, Role, RolePermission, UserRole
from access_control.services import assign_role, replace_role_permissions
from authentication.managers import UserManager
from geography.models import GeoLevel, GeoNode

DEMO_PASSWORD = "PasswordAdmin123"

PERMISSION_DEFINITIONS = [
    ("export_housing", "Export housing data", "housing", "export", "all"),
    ("export_infrastructure", "Export infrastructure data", "facility", "export", "all"),
    ("export_development", "Export housing development data", "housing_development", "export", "all"),
    ("housing:read", "Read housing", "housing", "read", "location"),
    ("housing:create", "Create housing", "housing", "create", "location"),
    ("housing:update", "Update housing", "housing", "update", "location"),
    ("housing:verify", "Verify housing", "housing", "verify", "location"),
    ("facility:read", "Read facilities", "facility", "read", "location"),
    ("facility:create", "Create facilities", "facility", "create", "location"),
    ("facility:update", "Update facilities", "facility", "update", "location"),
    ("facility:verify", "Verify facilities", "facility", "verify", "location"),
    ("housing_development:read", "Read housing developments", "housing_development", "read", "location"),
    ("housing_development:create", "Create housing developments", "housing_development", "create", "location"),
    ("housing_development:update", "Update housing developments", "housing_development", "update", "location"),
    ("housing_development:verify", "Verify housing developments", "housing_development", "verify", "location"),
    ("manage_users", "Manage users", "user", "manage", "all"),
]

_EXPORTS = ["export_housing", "export_infrastructure", "export_development"]
_VERIFY = ["housing:verify", "facility:verify", "housing_development:verify"]

# name -> (display name, is_system_role, is_deletable, permission names)
ROLE_DEFINITIONS = {
    "admin": (
        "Administrator",
        True,
        False,
        _EXPORTS
        + [
            "housing:read",
            "housing:create",
            "housing:update",
            "facility:read",
            "facility:create",
            "housing_development:read",
            "housing_development:create",
            "manage_users",
        ],
    ),
    "super_admin": ("Super Admin", True, False, [name for name, *_ in PERMISSION_DEFINITIONS]),
    "admin_regency": (
        "Admin Kabupaten",
        True,
        False,
        _EXPORTS + ["housing:read", "facility:read", "housing_development:read", "housing_development:create"],
    ),
    "admin_village": (
        "Admin Desa",
        True,
        False,
        ["housing:create", "facility:create"] + _EXPORTS + ["housing:read", "housing_development:read"],
    ),
    "verifikator": (
        "Verifikator",
        True,
        False,
        _EXPORTS
        + [
            "housing:read",
            "housing:update",
            "facility:read",
            "facility:update",
            "housing_development:read",
            "housing_development:update",
        ]
        + _VERIFY,
    ),
    "masyarakat": ("Masyarakat", False, True, ["housing:read", "housing:create"]),
}

# (key, id, level, parent key, name); parents come first.
DEMO_GEOGRAPHY = [
    ("province", "61", GeoLevel.PROVINCE, None, "Kalimantan Barat"),
    ("regency", "6101", GeoLevel.REGENCY, "province", "Sambas"),
    ("other_regency", "6102", GeoLevel.REGENCY, "province", "Bengkayang"),
    ("district", "610101", GeoLevel.DISTRICT, "regency", "Selakau"),
    ("sibling_district", "610102", GeoLevel.DISTRICT, "regency", "Pemangkat"),
    ("other_district", "610201", GeoLevel.DISTRICT, "other_regency", "Sungai Raya"),
    ("village", "6101012001", GeoLevel.VILLAGE, "district", "Rajik"),
    ("sibling_village", "6101022001", GeoLevel.VILLAGE, "sibling_district", "Harapan"),
    ("other_village", "6102012001", GeoLevel.VILLAGE, "other_district", "Karya Baru"),
]

# email -> (full name, level, assigned keys, role names)
DEMO_USERS = {
    "superadmin@example.com": ("Super Admin", "province", ("province",), ["super_admin", "admin"]),
    "kabupaten@example.com": ("Admin Kabupaten", "regency", ("province", "regency"), ["admin_regency"]),
    "desa@example.com": (
        "Admin Desa",
        "village",
        ("province", "regency", "district", "village"),
        ["admin_village"],
    ),
    "verifikator@example.com": ("Verifikator", "district", ("province", "regency", "district"), ["verifikator"]),
    "warga@example.com": (
        "Warga",
        "citizen",
        ("province", "regency", "district", "village"),
        ["masyarakat"],
    ),
}


def create_seed_permissions() -> dict[str, Permission]:
    """Create or refresh the permission catalog and return a name->Permission map."""
    permissions = {}
    for name, display_name, resource, action, scope in PERMISSION_DEFINITIONS:
        permission, _ = Permission.objects.update_or_create(
            name=name,
            defaults={
                "display_name": display_name,
                "resource": resource,
                "action": action,
                "scope": scope,
                "is_active": True,
            },
        )
        permissions[name] = permission
    return permissions


def create_seed_roles(permissions: dict[str, Permission]) -> dict[str, Role]:
    """Create or refresh the role definitions and their exact grant sets."""
    roles = {}
    for name, (display_name, is_system_role, is_deletable, permission_names) in ROLE_DEFINITIONS.items():
        role, _ = Role.objects.update_or_create(
            name=name,
            defaults={
                "display_name": display_name,
                "is_system_role": is_system_role,
                "is_deletable": is_deletable,
                "is_active": True,
            },
        )
        replace_role_permissions(role, [permissions[permission] for permission in permission_names])
        roles[name] = role
    return roles


def seed_rbac_catalog() -> tuple[dict[str, Permission], dict[str, Role]]:
    permissions = create_seed_permissions()
    return permissions, create_seed_roles(permissions)


def create_demo_geography() -> dict[str, GeoNode]:
    """Create one small province branch and return a key->GeoNode map."""
    nodes: dict[str, GeoNode] = {}
    for key, node_id, level, parent_key, name in DEMO_GEOGRAPHY:
        node, _ = GeoNode.objects.update_or_create(
            id=node_id,
            defaults={
                "level": level,
                "parent": nodes[parent_key] if parent_key else None,
                "code": node_id,
                "name": name,
            },
        )
        nodes[key] = node
    return nodes


def create_demo_users(roles: dict[str, Role], nodes: dict[str, GeoNode]) -> dict:
    """Create one demo account per role, anchored in the demo geography."""
    User = get_user_model()
    users = {}
    for email, (full_name, level, assigned_keys, role_names) in DEMO_USERS.items():
        assigned = {f"assigned_{nodes[key].level}": nodes[key] for key in assigned_keys}
        user, _ = User.objects.update_or_create(
            email=email,
            defaults={
                "full_name": full_name,
                "user_level": level,
                "password_hash": UserManager.hash_password(DEMO_PASSWORD),
                "is_active": True,
                **assigned,
            },
        )
        for role_name in role_names:
            assign_role(user, roles[role_name])
        users[email] = user
    return users


class Command(BaseCommand):
    """Management command to seed the RBAC catalog and demo data."""

    help = (
        "Seed the permission catalog and role definitions. Use --with-demo to add "
        "a demo geography branch and one account per role, --reset to clear "
        "previously seeded data first."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Remove demo users and seeded roles/permissions before seeding.",
        )
        parser.add_argument(
            "--with-demo",
            action="store_true",
            help="Also create demo geography and demo accounts.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        """Entrypoint for the management command."""
        if options.get("reset"):
            self._reset_seeded_data()

        self.stdout.write("Seeding RBAC catalog...")
        permissions, roles = seed_rbac_catalog()
        self.stdout.write(f"{len(permissions)} permissions, {len(roles)} roles.")

        if options.get("with_demo"):
            nodes = create_demo_geography()
            users = create_demo_users(roles, nodes)
            self.stdout.write(
                f"Demo accounts ({DEMO_PASSWORD}): " + ", ".join(sorted(users))
            )
        self.stdout.write(self.style.SUCCESS("RBAC seed completed."))

    def _reset_seeded_data(self) -> None:
        """Remove demo accounts and the seeded role/permission rows.

        Only rows created by this command are touched; geography is kept since
        other data may reference it.
        """
        self.stdout.write("Resetting previously seeded RBAC data...")
        User = get_user_model()
        User.objects.filter(email__in=DEMO_USERS, submissions__isnull=True).delete()
        UserRole.objects.filter(role__name__in=ROLE_DEFINITIONS).delete()
        RolePermission.objects.filter(role__name__in=ROLE_DEFINITIONS).delete()
        Role.objects.filter(name__in=ROLE_DEFINITIONS).delete()
        Permission.objects.filter(name__in=[name for name, *_ in PERMISSION_DEFINITIONS]).delete()
        self.stdout.write(self.style.WARNING("Seeded RBAC data cleared."))
