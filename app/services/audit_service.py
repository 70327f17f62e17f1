"""Audit logging service - admin/user action tracking.

Security guidelines:
- NEVER log secrets (API keys, Twilio tokens)
- Use IDs instead of raw data where possible
- Details carry changed field names, not message bodies or transcripts
"""

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from app.db.models import AuditLog
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

# Keys never written into audit details
REDACTED_KEYS = frozenset({"twilio_auth_token", "api_key", "password", "token"})


def get_client_ip(request: Request | None) -> str | None:
    """Client IP, first hop of X-Forwarded-For when present."""
    if not request:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    if request.client:
        return request.client.host
    return None


def _scrub(details: dict[str, Any] | None) -> dict[str, Any] | None:
    if not details:
        return None
    cleaned = {
        key: ("[redacted]" if key in REDACTED_KEYS else value)
        for key, value in details.items()
    }
    # Round-trip to keep only JSON-safe values (UUIDs, datetimes -> str)
    return json.loads(json.dumps(cleaned, default=str))


def log(
    db: Session,
    user_id: UUID | None,
    action: str,
    entity_type: str,
    entity_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> AuditLog:
    """
    Append an audit entry. Caller commits.

    action: create / update / delete / archive / ...
    entity_type: campaign, organization, interaction, lead, ...
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=_scrub(details),
        ip_address=ip_address,
    )
    db.add(entry)
    db.flush()
    logger.debug(
        "Audit event",
        extra={"action": action, "entity_type": entity_type, "entity_id": str(entity_id) if entity_id else None},
    )
    return entry


def list_logs(
    db: Session,
    pagination: PaginationParams,
    *,
    entity_type: str | None = None,
    action: str | None = None,
) -> tuple[list[AuditLog], int]:
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if action:
        query = query.filter(AuditLog.action == action)
    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id)
    return paginate_query(query, pagination)
