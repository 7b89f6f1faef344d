"""Audit sink used by the authorization engine and admin services."""

import logging
from typing import Any, Optional

from django.db import DatabaseError, transaction

from .models import AuditEntry

logger = logging.getLogger(__name__)


def client_meta(request) -> dict[str, Any]:
    """Extract the client address and user agent from a Django/DRF request."""
    if request is None:
        return {}
    meta = getattr(request, "META", {})
    forwarded = meta.get("HTTP_X_FORWARDED_FOR", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else meta.get("REMOTE_ADDR")
    return {"ip_address": ip_address or None, "user_agent": meta.get("HTTP_USER_AGENT", "")}


def record(
    action: str,
    *,
    user_id=None,
    resource_type: str = "",
    resource_id: Any = "",
    metadata: Optional[dict[str, Any]] = None,
    request=None,
) -> Optional[AuditEntry]:
    """Append an audit entry.

    The trail is a sink: a failed write is logged and never changes the
    outcome of the operation being audited.
    """
    try:
        with transaction.atomic():
            return AuditEntry.objects.create(
                user_id=user_id,
                action=action,
                resource_type=resource_type or "",
                resource_id="" if resource_id is None else str(resource_id),
                metadata=metadata or {},
                **client_meta(request),
            )
    except DatabaseError:
        logger.exception("Failed to write audit entry %s for user %s", action, user_id)
        return None


__all__ = ["record", "client_meta"]
