"""Serializers for the read-only geography browser."""

from rest_framework import serializers

from .models import GeoNode


class GeoNodeSerializer(serializers.ModelSerializer):
    parent = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = GeoNode
        fields = ["id", "level", "parent", "code", "name"]
        read_only_fields = fields


__all__ = ["GeoNodeSerializer"]
