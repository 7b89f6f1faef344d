"""Location tuples and tree walks over the GeoNode forest."""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError

from .models import LEVEL_ORDER, GeoNode, levels_below

# Accepted spellings per level when parsing request data.
_REQUEST_KEYS = {
    "province": ("provinceId", "province_id", "province"),
    "regency": ("regencyId", "regency_id", "regency"),
    "district": ("districtId", "district_id", "district"),
    "village": ("villageId", "village_id", "village"),
}


@dataclass(frozen=True)
class LocationTuple:
    """A ``{province, regency, district, village}`` tuple; absent fields are None."""

    province_id: Optional[str] = None
    regency_id: Optional[str] = None
    district_id: Optional[str] = None
    village_id: Optional[str] = None

    @classmethod
    def from_request_data(cls, *sources: Mapping[str, Any]) -> "LocationTuple":
        """Build a tuple from request kwargs/body/query, first non-empty value wins."""
        values: dict[str, Optional[str]] = {}
        for level, keys in _REQUEST_KEYS.items():
            values[f"{level}_id"] = None
            for source in sources:
                if not hasattr(source, "get"):
                    continue
                found = next((source.get(key) for key in keys if source.get(key) not in (None, "")), None)
                if found is not None:
                    values[f"{level}_id"] = str(found)
                    break
        return cls(**values)

    def get(self, level: str) -> Optional[str]:
        return getattr(self, f"{level}_id")

    def ids(self) -> list[str]:
        return [value for value in (getattr(self, f.name) for f in fields(self)) if value]

    def is_empty(self) -> bool:
        return not self.ids()

    def deepest(self) -> Optional[tuple[str, str]]:
        """Return ``(level, id)`` of the most specific field present."""
        for level in reversed(LEVEL_ORDER):
            node_id = self.get(level)
            if node_id:
                return level, node_id
        return None

    def deepest_below(self, level: str) -> Optional[tuple[str, str]]:
        """Return the most specific field strictly below ``level``."""
        for lower in reversed(levels_below(level)):
            node_id = self.get(lower)
            if node_id:
                return lower, node_id
        return None

    def key(self) -> str:
        return "-".join(str(getattr(self, f.name)) for f in fields(self))


def chain_for(node: GeoNode) -> LocationTuple:
    """Return the full tuple for ``node`` and all of its ancestors."""
    values = {}
    current: Optional[GeoNode] = node
    while current is not None:
        values[f"{current.level}_id"] = current.pk
        current = current.parent
    return LocationTuple(**values)


def validate_chain(location: LocationTuple) -> LocationTuple:
    """Ensure every supplied field is an ancestor (or self) of the deepest one.

    Raises ``ValidationError`` for unknown ids or inconsistent tuples and
    returns the tuple unchanged when it is consistent.
    """
    deepest = location.deepest()
    if deepest is None:
        return location
    level, node_id = deepest
    node = (
        GeoNode.objects.select_related("parent__parent__parent")
        .filter(pk=node_id, level=level)
        .first()
    )
    if node is None:
        raise ValidationError(f"Unknown {level} '{node_id}'.")
    full = chain_for(node)
    for other in LEVEL_ORDER:
        supplied = location.get(other)
        if supplied and supplied != full.get(other):
            raise ValidationError(f"{other} '{supplied}' does not contain {level} '{node_id}'.")
    return location


def descendant_ids(node_id: str) -> set[str]:
    """Collect the ids of every node below ``node_id`` (one query per level)."""
    found: set[str] = set()
    frontier = [node_id]
    while frontier:
        frontier = list(GeoNode.objects.filter(parent_id__in=frontier).values_list("pk", flat=True))
        found.update(frontier)
    return found


__all__ = ["LocationTuple", "chain_for", "validate_chain", "descendant_ids"]
