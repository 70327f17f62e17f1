"""Interactions router - browse ingested calls, flag and tag them."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import (
    ensure_org_access,
    get_current_session,
    get_db,
    require_csrf_header,
    resolve_org_scope,
)
from app.core.rate_limit import SEARCH_LIMIT, limiter
from app.schemas.auth import UserSession
from app.schemas.interaction import InteractionDetail, InteractionListItem, InteractionUpdate
from app.services import audit_service, interaction_service
from app.utils.pagination import clamp_pagination

router = APIRouter()


def _get_interaction_for_session(db: Session, interaction_id: UUID, session: UserSession):
    interaction = interaction_service.get_interaction(db, interaction_id)
    if not interaction:
        raise HTTPException(status_code=404, detail="Interaction not found")
    ensure_org_access(session, interaction.campaign.organization_id if interaction.campaign else None)
    return interaction


@router.get("")
@limiter.limit(SEARCH_LIMIT)
def list_interactions(
    request: Request,  # Required by limiter
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
    status: str | None = None,
    source_type: str | None = None,
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    flagged_only: bool = False,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Paginated interactions, newest first."""
    org_filter = resolve_org_scope(db, session, organization_id, campaign_id)

    pagination = clamp_pagination(page, limit)
    interactions, total = interaction_service.list_interactions(
        db,
        pagination,
        organization_id=org_filter,
        campaign_id=campaign_id,
        status=status,
        source_type=source_type,
        search=search,
        start_date=start_date,
        end_date=end_date,
        flagged_only=flagged_only,
    )
    return {
        "data": [
            InteractionListItem(**interaction_service.interaction_to_dict(i)) for i in interactions
        ],
        "total": total,
        "page": pagination.page,
        "limit": pagination.limit,
    }


@router.get("/{interaction_id}", response_model=InteractionDetail)
def get_interaction(
    interaction_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    interaction = _get_interaction_for_session(db, interaction_id, session)
    return interaction_service.interaction_to_dict(interaction, detail=True)


@router.patch(
    "/{interaction_id}",
    response_model=InteractionDetail,
    dependencies=[Depends(require_csrf_header)],
)
def update_interaction(
    interaction_id: UUID,
    data: InteractionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    interaction = _get_interaction_for_session(db, interaction_id, session)
    changes = interaction_service.update_interaction(
        db, interaction, flagged=data.flagged, tags=data.tags
    )
    if changes:
        audit_service.log(
            db, session.user_id, "update", "interaction", interaction.id,
            changes, audit_service.get_client_ip(request),
        )
    db.commit()
    interaction = interaction_service.get_interaction(db, interaction_id)
    return interaction_service.interaction_to_dict(interaction, detail=True)
