"""Middleware to authenticate requests via JWT and a live database session."""

import logging
from typing import Optional

from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status

from authentication.models import User
from authentication.services import SessionService, TokenService
from core.exceptions import AuthenticationFailure, ErrorCode

logger = logging.getLogger(__name__)


class SessionAuthMiddleware(MiddlewareMixin):
    """Decode the access JWT, check its session row, and attach request.user.

    On success ``request.session_token`` carries the session the token is
    bound to; DRF turns it into the request's ``ActorContext``.
    """

    def process_request(self, request):  # type: ignore[override]
        """Authenticate request using Bearer access token if present."""
        request.user = AnonymousUser()
        request.session_token = None

        token = bearer_token(request)
        if token is None:
            return None

        try:
            payload = TokenService.decode_token(token, expected_type="access")
            user = self._get_user(payload["sub"])
            if user is None:
                return _unauthorized(ErrorCode.INVALID_TOKEN)
            SessionService.validate(user.pk, payload["sid"])
        except AuthenticationFailure as exc:
            return _unauthorized(exc.get_codes())
        except DatabaseError:
            logger.exception("Session validation failed")
            return JsonResponse(
                {"data": None, "errors": ["Authorization error."], "code": ErrorCode.AUTH_ERROR},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        request.user = user
        request.session_token = payload["sid"]
        return None

    @staticmethod
    def _get_user(user_id: str) -> Optional[User]:
        try:
            user = User.objects.get(id=user_id)
        except (User.DoesNotExist, ValidationError, ValueError):
            return None
        return user if user.is_active else None


def bearer_token(request) -> Optional[str]:
    """Extract the Bearer token from the Authorization header if present."""
    auth_header = request.META.get("HTTP_AUTHORIZATION", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def _unauthorized(code: str) -> JsonResponse:
    return JsonResponse(
        {
            "data": None,
            "errors": [
                "Authentication credentials were not provided or are invalid, "
                "session expired, or user is inactive."
            ],
            "code": code,
        },
        status=status.HTTP_401_UNAUTHORIZED,
    )


__all__ = ["SessionAuthMiddleware", "bearer_token"]
