"""Routing for the geography browser."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import GeoNodeViewSet

router = DefaultRouter()
router.register(r"locations", GeoNodeViewSet, basename="location")

urlpatterns = [
    path("", include(router.urls)),
]
