"""Error taxonomy and the custom handler enforcing the API error envelope."""

import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
)
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ErrorCode:
    """Stable machine-readable codes surfaced in the ``code`` envelope field."""

    # 401
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    # 403
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    LOCATION_ACCESS_DENIED = "LOCATION_ACCESS_DENIED"
    RESOURCE_ACCESS_DENIED = "RESOURCE_ACCESS_DENIED"
    NO_LOCATION_ASSIGNED = "NO_LOCATION_ASSIGNED"
    CREATE_NOT_ALLOWED = "CREATE_NOT_ALLOWED"
    READ_NOT_ALLOWED = "READ_NOT_ALLOWED"
    # 404 / 500
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    AUTH_ERROR = "AUTH_ERROR"


class AuthenticationFailure(AuthenticationFailed):
    """Missing, invalid or expired credential or session. Always terminal."""

    default_code = ErrorCode.INVALID_TOKEN


class AuthorizationDenial(PermissionDenied):
    """Valid credential, action not permitted. Carries the reason code."""

    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS


class ResourceNotFound(NotFound):
    """Referenced user/role/permission/location/resource does not exist."""

    default_code = ErrorCode.RESOURCE_NOT_FOUND


class AuthorizationError(APIException):
    """Both the primary and the fallback decision path failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Authorization error."
    default_code = ErrorCode.AUTH_ERROR


class InfrastructureFailure(Exception):
    """An optimized lookup path failed; callers switch to the fallback path."""


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        # Common DRF pattern: {"detail": "..."}
        return [payload["detail"]]
    return [payload]


# DRF's built-in lowercase codes mapped onto the project taxonomy.
_DRF_CODES = {
    "not_authenticated": ErrorCode.AUTH_REQUIRED,
    "authentication_failed": ErrorCode.INVALID_TOKEN,
    "permission_denied": ErrorCode.INSUFFICIENT_PERMISSIONS,
    "not_found": ErrorCode.RESOURCE_NOT_FOUND,
}


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, NotAuthenticated):
        return ErrorCode.AUTH_REQUIRED
    if isinstance(exc, Http404):
        return ErrorCode.RESOURCE_NOT_FOUND
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            return _DRF_CODES.get(codes, codes.upper())
        if isinstance(codes, dict) and isinstance(codes.get("detail"), str):
            return _DRF_CODES.get(codes["detail"], codes["detail"].upper())
    return None


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap DRF errors in `{ "data": null, "errors": [...], "code": ... }` shape.

    - Uses DRF's default handler to produce the base response.
    - Normalizes auth/permission messages unless DEBUG_AUTH_ERRORS is enabled;
      the machine-readable ``code`` is always exposed.
    """

    # Database errors outside the authorization paths are a temporary outage;
    # keep the envelope instead of Django's HTML 500 page.
    if isinstance(exc, DatabaseError):
        logger.error("Database error while handling request: %s", exc)
        return Response(
            {"data": None, "errors": ["Service temporarily unavailable."], "code": "SERVICE_UNAVAILABLE"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    # rest_framework.views resolves DEFAULT_AUTHENTICATION_CLASSES on import,
    # and those import this module.
    from rest_framework.views import exception_handler as drf_exception_handler

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    # NotAuthenticated/AuthenticationFailed always map to 401.
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        base_errors = response.data
        code = _error_code(exc)

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                errors = _normalize_errors(base_errors)
            else:
                errors = [
                    "Authentication credentials were not provided or are invalid, "
                    "session expired, or user is inactive."
                ]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                errors = _normalize_errors(base_errors)
            else:
                errors = ["You do not have permission to perform this action on this resource."]
        else:
            errors = _normalize_errors(base_errors)

        response.data = {"data": None, "errors": errors, "code": code}

    return response


__all__ = [
    "ErrorCode",
    "AuthenticationFailure",
    "AuthorizationDenial",
    "ResourceNotFound",
    "AuthorizationError",
    "InfrastructureFailure",
    "custom_exception_handler",
]
