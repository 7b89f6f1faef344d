"""Authentication class that bridges the session middleware into DRF.

``SessionAuthMiddleware`` has already verified the bearer token and its
session. This authenticator surfaces that user and resolves its effective
permissions once, exposing the immutable ``ActorContext`` as
``request.auth`` for every permission check of the request.
"""

from typing import Any, Optional, Tuple

from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication

from access_control.context import ActorContext
from access_control.engine import engine


class ActorAuthentication(BaseAuthentication):
    """Expose ``request._request.user`` (set by middleware) to DRF with its actor."""

    def authenticate(self, request) -> Optional[Tuple[Any, ActorContext]]:
        django_request = getattr(request, "_request", None)
        if django_request is None:
            return None

        user = getattr(django_request, "user", None)
        if user is None or isinstance(user, AnonymousUser):
            return None

        if not getattr(user, "is_authenticated", False):
            return None

        return user, engine.build_actor(user, getattr(django_request, "session_token", None))

    def authenticate_header(self, request) -> str:
        return 'Bearer realm="api"'


__all__ = ["ActorAuthentication"]
