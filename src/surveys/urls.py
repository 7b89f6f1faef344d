"""Routing for the submission viewsets."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import FacilityViewSet, HousingDevelopmentViewSet, HousingViewSet

router = DefaultRouter()
router.register(r"housing", HousingViewSet, basename="housing")
router.register(r"facilities", FacilityViewSet, basename="facility")
router.register(r"housing-developments", HousingDevelopmentViewSet, basename="housing-development")

urlpatterns = [
    path("", include(router.urls)),
]
