"""Serializers for authentication flows (login, profile, password, sessions)."""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from core.exceptions import AuthenticationFailure, ErrorCode

from .managers import UserManager
from .models import UserSession

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    """Authenticate a user via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    device_info = serializers.JSONField(required=False)

    def validate(self, attrs):
        """Authenticate credentials and attach the user to validated_data."""
        email = User.objects.normalize_email(attrs.get("email"))
        password = attrs.get("password")
        user = User.objects.filter(email__iexact=email).first()
        # Same message for unknown, inactive and wrong-password accounts.
        if user is None or not user.is_active or not UserManager.verify_password(user, password):
            raise AuthenticationFailure("Invalid credentials", code=ErrorCode.INVALID_CREDENTIALS)

        attrs["user"] = user
        return attrs


class RefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class UserDetailSerializer(serializers.ModelSerializer):
    """Read-only user profile payload for responses."""

    class Meta:
        """Expose identity, level and assignment fields."""
        model = User
        fields = [
            "id",
            "email",
            "full_name",
            "user_level",
            "assigned_province",
            "assigned_regency",
            "assigned_district",
            "assigned_village",
            "can_inherit_data",
            "inheritance_depth",
            "last_login",
        ]
        read_only_fields = fields


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)

    def validate_current_password(self, value):
        if not UserManager.verify_password(self.context["user"], value):
            raise serializers.ValidationError("Current password is incorrect")
        return value

    def validate_new_password(self, value):
        try:
            validate_password(value, self.context["user"])
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages) from exc
        return value


class PermissionCheckSerializer(serializers.Serializer):
    """Ask the engine about one or more permission names for the caller."""

    permissions = serializers.ListField(child=serializers.CharField(), allow_empty=False)


class SessionSerializer(serializers.ModelSerializer):
    current = serializers.SerializerMethodField()

    class Meta:
        model = UserSession
        fields = ["id", "ip_address", "user_agent", "device_info", "created_at", "last_activity_at", "expires_at", "current"]
        read_only_fields = fields

    def get_current(self, session: UserSession) -> bool:
        return session.session_token == self.context.get("session_token")


__all__ = [
    "LoginSerializer",
    "RefreshSerializer",
    "UserDetailSerializer",
    "PasswordChangeSerializer",
    "PermissionCheckSerializer",
    "SessionSerializer",
]
