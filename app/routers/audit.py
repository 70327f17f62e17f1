"""Audit router - API endpoints for viewing audit logs."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin
from app.schemas.auth import UserSession
from app.services import audit_service
from app.utils.pagination import PaginationParams, get_pagination

router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class AuditLogRead(BaseModel):
    """Audit log entry for API response."""
    id: UUID
    user_id: UUID | None
    action: str
    entity_type: str
    entity_id: UUID | None
    details: dict[str, Any] | None
    ip_address: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Endpoints
# ============================================================================

@router.get("")
def list_audit_logs(
    entity_type: str | None = None,
    action: str | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """
    List audit log entries, newest first.

    Filters: entity_type, action
    """
    entries, total = audit_service.list_logs(
        db, pagination, entity_type=entity_type, action=action
    )
    return {
        "data": [AuditLogRead.model_validate(entry) for entry in entries],
        "pagination": pagination.meta(total),
    }
