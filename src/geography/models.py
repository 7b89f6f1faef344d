"""Administrative geography: Province → Regency → District → Village."""

from django.core.exceptions import ValidationError
from django.db import models


class GeoLevel(models.TextChoices):
    PROVINCE = "province", "Province"
    REGENCY = "regency", "Regency"
    DISTRICT = "district", "District"
    VILLAGE = "village", "Village"


# Top-down order of the hierarchy; index 0 is the root level.
LEVEL_ORDER: tuple[str, ...] = (
    GeoLevel.PROVINCE,
    GeoLevel.REGENCY,
    GeoLevel.DISTRICT,
    GeoLevel.VILLAGE,
)


def parent_level(level: str) -> str | None:
    """Return the level directly above ``level`` (None for provinces)."""
    index = LEVEL_ORDER.index(level)
    return LEVEL_ORDER[index - 1] if index > 0 else None


def levels_below(level: str) -> tuple[str, ...]:
    """Return the levels strictly below ``level``, top-down."""
    return LEVEL_ORDER[LEVEL_ORDER.index(level) + 1:]


class GeoNode(models.Model):
    """One administrative unit, identified by its government area code."""

    id = models.CharField(max_length=12, primary_key=True)
    level = models.CharField(max_length=10, choices=GeoLevel.choices)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.PROTECT, related_name="children"
    )
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=150)

    class Meta:
        ordering = ["id"]
        indexes = [models.Index(fields=["level", "parent"], name="geonode_level_parent_idx")]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.name} ({self.level})"

    def clean(self) -> None:
        """Enforce the strict forest: each node hangs off the level directly above."""
        expected = parent_level(self.level)
        if expected is None:
            if self.parent_id is not None:
                raise ValidationError({"parent": "Provinces cannot have a parent."})
            return
        if self.parent is None:
            raise ValidationError({"parent": f"A {self.level} must have a {expected} parent."})
        if self.parent.level != expected:
            raise ValidationError(
                {"parent": f"A {self.level} must hang off a {expected}, not a {self.parent.level}."}
            )


__all__ = ["GeoLevel", "GeoNode", "LEVEL_ORDER", "parent_level", "levels_below"]
