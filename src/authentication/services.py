"""Token and session services: JWT issuance/decoding and session liveness."""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Optional, Tuple

import jwt
from django.conf import settings
from django.utils import timezone

from audit import services as audit
from core.exceptions import AuthenticationFailure, ErrorCode

from .models import UserSession

logger = logging.getLogger(__name__)


class TokenService:
    """Handle JWT issuance and decoding.

    Tokens only carry identifiers; liveness is decided by the session row the
    ``sid`` claim points at, so revoking a session revokes its tokens.
    """

    ALGORITHM = "HS256"

    @staticmethod
    def _secret() -> str:
        return getattr(settings, "JWT_SECRET", None) or settings.SECRET_KEY

    @classmethod
    def access_ttl(cls) -> timedelta:
        return timedelta(minutes=getattr(settings, "ACCESS_TOKEN_TTL_MINUTES", 60 * 24))

    @classmethod
    def refresh_ttl(cls) -> timedelta:
        return timedelta(days=getattr(settings, "REFRESH_TOKEN_TTL_DAYS", 7))

    @classmethod
    def generate_tokens(cls, user, session: UserSession) -> Tuple[str, str]:
        """Generate signed access and refresh tokens bound to ``session``."""

        now = datetime.now(dt_timezone.utc)
        access_payload = cls._build_payload(user, session, "access", now, cls.access_ttl())
        refresh_payload = cls._build_payload(user, session, "refresh", now, cls.refresh_ttl())

        access_token = jwt.encode(access_payload, cls._secret(), algorithm=cls.ALGORITHM)
        refresh_token = jwt.encode(refresh_payload, cls._secret(), algorithm=cls.ALGORITHM)
        return access_token, refresh_token

    @classmethod
    def _build_payload(
        cls, user, session: UserSession, token_type: str, issued_at: datetime, ttl: timedelta
    ) -> dict[str, Any]:
        exp = issued_at + ttl
        return {
            "sub": str(user.id),
            "sid": session.session_token,
            "jti": str(uuid.uuid4()),
            "exp": int(exp.timestamp()),
            "iat": int(issued_at.timestamp()),
            "level": user.user_level,
            "type": token_type,
        }

    @classmethod
    def decode_token(cls, token: str, expected_type: str | None = None) -> dict[str, Any]:
        """Decode and validate a JWT; optionally enforce token type."""

        try:
            payload = jwt.decode(token, cls._secret(), algorithms=[cls.ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationFailure("Token has expired", code=ErrorCode.TOKEN_EXPIRED) from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationFailure("Invalid token", code=ErrorCode.INVALID_TOKEN) from exc

        if expected_type and payload.get("type") != expected_type:
            raise AuthenticationFailure("Invalid token type", code=ErrorCode.INVALID_TOKEN)
        if not payload.get("sub") or not payload.get("sid"):
            raise AuthenticationFailure("Token is missing its subject or session", code=ErrorCode.INVALID_TOKEN)

        return payload


class SessionService:
    """Create, validate and revoke login sessions."""

    @staticmethod
    def session_ttl() -> timedelta:
        return timedelta(hours=getattr(settings, "SESSION_TTL_HOURS", 24))

    @classmethod
    def create(cls, user, request=None, device_info: Optional[dict] = None) -> UserSession:
        """Open a new session for ``user`` (sign-in)."""
        meta = audit.client_meta(request)
        return UserSession.objects.create(
            user=user,
            session_token=secrets.token_urlsafe(32),
            device_info=device_info,
            expires_at=timezone.now() + cls.session_ttl(),
            **meta,
        )

    @staticmethod
    def validate(user_id, session_token: str) -> UserSession:
        """Return the live session for ``(user_id, session_token)``.

        Raises ``AuthenticationFailure`` with ``INVALID_TOKEN`` when no such
        session exists and ``SESSION_EXPIRED`` when it was revoked or has
        expired. A successful validation refreshes ``last_activity_at``.
        """
        session = UserSession.objects.filter(user_id=user_id, session_token=session_token).first()
        if session is None:
            raise AuthenticationFailure("Session not found", code=ErrorCode.INVALID_TOKEN)
        now = timezone.now()
        if not session.is_active:
            raise AuthenticationFailure("Session has been revoked", code=ErrorCode.SESSION_EXPIRED)
        if session.expires_at <= now:
            raise AuthenticationFailure("Session has expired", code=ErrorCode.SESSION_EXPIRED)

        # Advisory; concurrent requests may race on it.
        UserSession.objects.filter(pk=session.pk).update(last_activity_at=now)
        session.last_activity_at = now
        return session

    @staticmethod
    def revoke(user_id, session_token: str) -> int:
        """Soft-revoke one session (sign-out)."""
        return UserSession.objects.filter(
            user_id=user_id, session_token=session_token, is_active=True
        ).update(is_active=False)

    @staticmethod
    def revoke_all(user) -> int:
        """Soft-revoke every active session of ``user`` (password change, force-logout)."""
        count = UserSession.objects.filter(user=user, is_active=True).update(is_active=False)
        logger.info("Revoked %s active session(s) for user %s", count, user.pk)
        return count

    @staticmethod
    def clean_expired() -> int:
        """Deactivate sessions whose expiry has passed; return how many."""
        return UserSession.objects.filter(is_active=True, expires_at__lte=timezone.now()).update(
            is_active=False
        )


__all__ = ["TokenService", "SessionService"]
