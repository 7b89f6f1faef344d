"""Root URL configuration for the survey access-control API."""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("auth/", include("authentication.urls")),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("", include("access_control.urls")),
    path("", include("geography.urls")),
    path("", include("surveys.urls")),
]
