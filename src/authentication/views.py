"""Authentication endpoints: login, refresh, logout, profile, password, sessions."""

from typing import Any

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response

from access_control.engine import engine
from audit import services as audit
from core.exceptions import AuthenticationFailure, ErrorCode, ResourceNotFound
from core.response import BaseAPIView, api_response
from .models import User, UserSession
from .serializers import (
    LoginSerializer,
    PasswordChangeSerializer,
    PermissionCheckSerializer,
    RefreshSerializer,
    SessionSerializer,
    UserDetailSerializer,
)
from .services import SessionService, TokenService


def _token_payload(user, session: UserSession) -> dict[str, Any]:
    access, refresh = TokenService.generate_tokens(user, session)
    return {"access": access, "refresh": refresh, "expires_at": session.expires_at}


class LoginView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Authenticate, open a session and issue access + refresh tokens."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        session = SessionService.create(user, request, serializer.validated_data.get("device_info"))
        user.last_login = timezone.now()
        user.save(update_fields=["last_login"])
        audit.record("login", user_id=user.pk, resource_type="session", resource_id=session.pk, request=request)
        return api_response(_token_payload(user, session))


class RefreshView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Exchange a refresh token of a live session for new tokens."""
        serializer = RefreshSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = TokenService.decode_token(serializer.validated_data["refresh"], expected_type="refresh")
        user = User.objects.filter(pk=payload["sub"], is_active=True).first()
        if user is None:
            raise AuthenticationFailure("User not found or inactive", code=ErrorCode.INVALID_TOKEN)
        session = SessionService.validate(user.pk, payload["sid"])
        return api_response(_token_payload(user, session))


class LogoutView(BaseAPIView):
    """End the session the current access token belongs to."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        SessionService.revoke(request.user.pk, request.auth.session_token)
        audit.record("logout", user_id=request.user.pk, resource_type="session", request=request)
        # 204 responses must not include a body.
        return Response(status=status.HTTP_204_NO_CONTENT)


class LogoutAllView(BaseAPIView):
    """End every session of the current user across devices."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        count = SessionService.revoke_all(request.user)
        audit.record("logout_all", user_id=request.user.pk, metadata={"sessions_revoked": count}, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(BaseAPIView):
    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the current user's profile with effective roles and permissions."""
        actor = request.auth
        data = UserDetailSerializer(request.user).data
        data["roles"] = sorted(actor.role_names)
        data["permissions"] = sorted(actor.permission_names)
        return api_response(data)


class PasswordChangeView(BaseAPIView):
    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Change the password and end every session, this one included."""
        serializer = PasswordChangeSerializer(data=request.data, context={"user": request.user})
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data["new_password"])
        request.user.save(update_fields=["password_hash", "updated_at"])
        count = SessionService.revoke_all(request.user)
        audit.record("password_changed", user_id=request.user.pk, metadata={"sessions_revoked": count}, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PermissionCheckView(BaseAPIView):
    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Report which of the requested permissions the caller holds."""
        serializer = PermissionCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        names = serializer.validated_data["permissions"]
        actor = request.auth
        return api_response(
            {
                "permissions": engine.has_multiple_permissions(actor, names),
                "any": engine.has_any_permission(actor, names),
            }
        )


class SessionListView(BaseAPIView):
    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """List the caller's live sessions."""
        sessions = UserSession.objects.filter(
            user=request.user, is_active=True, expires_at__gt=timezone.now()
        )
        serializer = SessionSerializer(sessions, many=True, context={"session_token": request.auth.session_token})
        return api_response(serializer.data)


class SessionDetailView(BaseAPIView):
    # noinspection PyMethodMayBeStatic
    def delete(self, request, session_id: int):
        """Revoke one of the caller's own sessions."""
        session = UserSession.objects.filter(pk=session_id, user=request.user, is_active=True).first()
        if session is None:
            raise ResourceNotFound("Session not found.")
        SessionService.revoke(request.user.pk, session.session_token)
        audit.record("session_revoked", user_id=request.user.pk, resource_type="session", resource_id=session.pk, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


__all__ = [
    "LoginView",
    "RefreshView",
    "LogoutView",
    "LogoutAllView",
    "MeView",
    "PasswordChangeView",
    "PermissionCheckView",
    "SessionListView",
    "SessionDetailView",
]
