"""Role-name normalization and the ordered override rule table.

Overrides are denylist/allowlist overlays on top of catalog grants. They are
evaluated top to bottom before the generic catalog check; the first rule that
matches the actor's roles and the requested permission decides.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from core.exceptions import ErrorCode

SUPER_ADMIN = "super_admin"
VERIFIKATOR = "verifikator"
ADMIN_KABUPATEN = "admin_kabupaten"
ADMIN_DESA = "admin_desa"
MASYARAKAT = "masyarakat"

ROLE_GROUPS: dict[str, tuple[str, ...]] = {
    SUPER_ADMIN: ("super_admin", "superadmin", "admin", "administrator"),
    VERIFIKATOR: ("verifikator", "verifier"),
    ADMIN_KABUPATEN: ("admin_kabupaten", "kabupaten_admin", "admin kabupaten", "admin_regency"),
    ADMIN_DESA: ("admin_desa", "desa_admin", "admin desa", "admin_village"),
    MASYARAKAT: ("masyarakat",),
}

_SEPARATORS = re.compile(r"[\s-]+")


def normalize_role_name(name: Optional[str]) -> str:
    """``" Admin-Desa "`` -> ``"admin_desa"``."""
    if not name:
        return ""
    return _SEPARATORS.sub("_", str(name).strip().lower())


def in_role_group(role_names: Iterable[str], group: str) -> bool:
    """True if any of the (normalized) ``role_names`` is an alias of ``group``."""
    aliases = {normalize_role_name(alias) for alias in ROLE_GROUPS.get(group, ())}
    return any(name in aliases for name in role_names)


class OverrideKind(str, Enum):
    ALLOW_ALL = "allow_all"
    DENY_SUBSTRING = "deny_substring"
    DENY_EXACT = "deny_exact"


@dataclass(frozen=True)
class OverrideRule:
    role_group: str
    kind: OverrideKind
    patterns: tuple[str, ...] = ()
    code: Optional[str] = None
    message: str = ""

    def matches(self, permission_name: str) -> bool:
        if self.kind is OverrideKind.ALLOW_ALL:
            return True
        if self.kind is OverrideKind.DENY_SUBSTRING:
            return any(pattern in permission_name for pattern in self.patterns)
        return permission_name in self.patterns


PERMISSION_OVERRIDES: tuple[OverrideRule, ...] = (
    OverrideRule(SUPER_ADMIN, OverrideKind.ALLOW_ALL),
    OverrideRule(
        VERIFIKATOR,
        OverrideKind.DENY_SUBSTRING,
        (":create",),
        ErrorCode.CREATE_NOT_ALLOWED,
        "Verifikator is not allowed to create new data.",
    ),
    OverrideRule(VERIFIKATOR, OverrideKind.ALLOW_ALL),
    OverrideRule(
        ADMIN_KABUPATEN,
        OverrideKind.DENY_EXACT,
        ("housing:create", "facility:create"),
        ErrorCode.CREATE_NOT_ALLOWED,
        "Regency administrators are not allowed to create this data.",
    ),
    OverrideRule(
        ADMIN_DESA,
        OverrideKind.DENY_EXACT,
        ("facility:read",),
        ErrorCode.READ_NOT_ALLOWED,
        "Village administrators are not allowed to list infrastructure.",
    ),
)


def first_override(
    role_names: Iterable[str],
    permission_name: str,
    rules: tuple[OverrideRule, ...] = PERMISSION_OVERRIDES,
) -> Optional[OverrideRule]:
    """Return the first rule applying to these roles and permission, if any."""
    names = frozenset(role_names)
    for rule in rules:
        if in_role_group(names, rule.role_group) and rule.matches(permission_name):
            return rule
    return None


__all__ = [
    "SUPER_ADMIN",
    "VERIFIKATOR",
    "ADMIN_KABUPATEN",
    "ADMIN_DESA",
    "MASYARAKAT",
    "ROLE_GROUPS",
    "normalize_role_name",
    "in_role_group",
    "OverrideKind",
    "OverrideRule",
    "PERMISSION_OVERRIDES",
    "first_override",
]
