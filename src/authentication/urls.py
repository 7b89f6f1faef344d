"""URL patterns for authentication endpoints."""

from django.urls import path

from .views import (
    LoginView,
    LogoutAllView,
    LogoutView,
    MeView,
    PasswordChangeView,
    PermissionCheckView,
    RefreshView,
    SessionDetailView,
    SessionListView,
)

urlpatterns = [
    path("login/", LoginView.as_view(), name="auth-login"),
    path("refresh/", RefreshView.as_view(), name="auth-refresh"),
    path("logout/", LogoutView.as_view(), name="auth-logout"),
    path("logout-all/", LogoutAllView.as_view(), name="auth-logout-all"),
    path("me/", MeView.as_view(), name="auth-me"),
    path("password/", PasswordChangeView.as_view(), name="auth-password"),
    path("permissions/check/", PermissionCheckView.as_view(), name="auth-permissions-check"),
    path("sessions/", SessionListView.as_view(), name="auth-sessions"),
    path("sessions/<int:session_id>/", SessionDetailView.as_view(), name="auth-session-detail"),
]
