"""Routing for access control admin endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import PermissionViewSet, RoleViewSet, UserAccessViewSet

router = DefaultRouter()
router.register(r"roles", RoleViewSet, basename="role")
router.register(r"permissions", PermissionViewSet, basename="permission")
router.register(r"users", UserAccessViewSet, basename="user-access")

urlpatterns = [
    path("", include(router.urls)),
]
