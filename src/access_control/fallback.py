"""Primary/fallback execution of two equivalent decision strategies."""

import logging
from typing import Callable, TypeVar

from django.db import DatabaseError

from core.exceptions import AuthorizationError, InfrastructureFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_fallback(
    label: str,
    primary: Callable[[], T],
    fallback: Callable[[], T],
    on_fallback: Callable[[InfrastructureFailure], None] | None = None,
) -> T:
    """Run ``primary``; on ``InfrastructureFailure`` run ``fallback`` instead.

    Only infrastructure failures switch paths; denials, not-found errors and
    programming errors propagate unchanged. A failing fallback escalates to
    ``AuthorizationError`` and is never read as allow or deny.
    """
    try:
        return primary()
    except InfrastructureFailure as exc:
        logger.warning("%s: optimized path failed, using fallback: %s", label, exc)
        if on_fallback is not None:
            on_fallback(exc)
        try:
            return fallback()
        except (InfrastructureFailure, DatabaseError) as fallback_exc:
            logger.error("%s: fallback path failed", label, exc_info=fallback_exc)
            raise AuthorizationError() from fallback_exc


__all__ = ["with_fallback"]
