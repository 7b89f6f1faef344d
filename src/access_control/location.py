"""Location-scope evaluation over the geography tree.

A request tuple passes when its field at the actor's anchor level equals the
anchor, or, when descendants are included, when the most specific field below
the anchor level is a descendant of the anchor. Two strategies compute this:
``TreeLocationStrategy`` loads every node it needs in one query, and
``DirectLookupLocationStrategy`` re-derives the anchor node by a direct lookup
for the user level and then walks parents one query at a time.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from django.db import DatabaseError

from core.exceptions import ErrorCode, InfrastructureFailure
from geography.models import GeoNode
from geography.services import LocationTuple

from .context import Decision

NO_ANCHOR = Decision.deny(ErrorCode.NO_LOCATION_ASSIGNED, "No location assigned")
OUT_OF_SCOPE = Decision.deny(ErrorCode.LOCATION_ACCESS_DENIED, "Access denied for this location")


def match_location(
    anchor_level: str,
    anchor_id: str,
    location: LocationTuple,
    include_descendants: bool,
    ancestry: Callable[[str, str], set[str]],
) -> Decision:
    """Shared verdict; ``ancestry(level, node_id)`` returns the ids of the node and its ancestors."""
    if location.get(anchor_level) == anchor_id:
        return Decision.allow("exact anchor match")
    if not include_descendants:
        return OUT_OF_SCOPE
    deepest = location.deepest_below(anchor_level)
    if deepest is None:
        return OUT_OF_SCOPE
    level, node_id = deepest
    if anchor_id in ancestry(level, node_id):
        return Decision.allow("descendant of anchor")
    return OUT_OF_SCOPE


class LocationStrategy(ABC):
    name = "abstract"

    def evaluate(
        self, anchor_level: str, anchor_id: str, location: LocationTuple, include_descendants: bool
    ) -> Decision:
        try:
            return self._evaluate(anchor_level, anchor_id, location, include_descendants)
        except DatabaseError as exc:
            raise InfrastructureFailure(f"{self.name} location lookup failed: {exc}") from exc

    @abstractmethod
    def _evaluate(
        self, anchor_level: str, anchor_id: str, location: LocationTuple, include_descendants: bool
    ) -> Decision:
        raise NotImplementedError


class TreeLocationStrategy(LocationStrategy):
    name = "tree"

    def _evaluate(self, anchor_level, anchor_id, location, include_descendants):
        wanted = {anchor_id, *location.ids()}
        nodes = {
            node.pk: node
            for node in GeoNode.objects.filter(pk__in=wanted).select_related("parent__parent__parent")
        }
        anchor = nodes.get(anchor_id)
        if anchor is None or anchor.level != anchor_level:
            return NO_ANCHOR

        def ancestry(level: str, node_id: str) -> set[str]:
            node: Optional[GeoNode] = nodes.get(node_id)
            if node is None or node.level != level:
                return {node_id}
            found = set()
            while node is not None:
                found.add(node.pk)
                node = node.parent
            return found

        return match_location(anchor_level, anchor_id, location, include_descendants, ancestry)


class DirectLookupLocationStrategy(LocationStrategy):
    name = "direct_lookup"

    def _evaluate(self, anchor_level, anchor_id, location, include_descendants):
        anchor = GeoNode.objects.filter(pk=anchor_id, level=anchor_level).first()
        if anchor is None:
            return NO_ANCHOR

        def ancestry(level: str, node_id: str) -> set[str]:
            found = {node_id}
            row = GeoNode.objects.filter(pk=node_id, level=level).values("parent_id").first()
            while row is not None and row["parent_id"]:
                found.add(row["parent_id"])
                row = GeoNode.objects.filter(pk=row["parent_id"]).values("parent_id").first()
            return found

        return match_location(anchor_level, anchor.pk, location, include_descendants, ancestry)


__all__ = [
    "match_location",
    "LocationStrategy",
    "TreeLocationStrategy",
    "DirectLookupLocationStrategy",
    "NO_ANCHOR",
    "OUT_OF_SCOPE",
]
