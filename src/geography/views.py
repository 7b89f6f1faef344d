"""Read-only endpoints over the administrative geography."""

from rest_framework.permissions import IsAuthenticated

from core.response import BaseReadOnlyViewSet
from .models import GeoNode
from .serializers import GeoNodeSerializer


class GeoNodeViewSet(BaseReadOnlyViewSet):
    """List nodes, optionally filtered by ``?level=`` and ``?parent=``.

    Geography is reference data: any authenticated actor may browse it.
    Access to survey data anchored at a node is decided by the location check.
    """

    serializer_class = GeoNodeSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = GeoNode.objects.all()
        level = self.request.query_params.get("level")
        parent = self.request.query_params.get("parent")
        if level:
            queryset = queryset.filter(level=level)
        if parent:
            queryset = queryset.filter(parent_id=parent)
        return queryset


__all__ = ["GeoNodeViewSet"]
