"""Campaigns router - inbound campaigns, webhook URLs, stats and SMS triggers."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import (
    ensure_org_access,
    get_current_session,
    get_db,
    require_admin,
    require_csrf_header,
)
from app.db.enums import Role
from app.schemas.auth import UserSession
from app.schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    CampaignUpdate,
    TriggerCreate,
    TriggerResponse,
)
from app.services import audit_service, campaign_service, trigger_service
from app.utils.pagination import clamp_pagination

router = APIRouter()


def _get_campaign_for_session(db: Session, campaign_id: UUID, session: UserSession):
    campaign = campaign_service.get_campaign(db, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    ensure_org_access(session, campaign.organization_id)
    return campaign


@router.get("")
def list_campaigns(
    search: str | None = None,
    organization_id: UUID | None = None,
    include_archived: bool = False,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Client users only ever see their own organization's campaigns."""
    if session.role == Role.ADMIN:
        org_filter = organization_id
    elif session.role == Role.CLIENT_USER and session.org_id:
        if organization_id and organization_id != session.org_id:
            raise HTTPException(status_code=403, detail="Access denied")
        org_filter = session.org_id
    else:
        raise HTTPException(status_code=403, detail="Access denied")

    pagination = clamp_pagination(page, limit)
    campaigns, total = campaign_service.list_campaigns(
        db,
        pagination,
        organization_id=org_filter,
        search=search,
        include_archived=include_archived,
    )
    return {
        "data": [CampaignResponse(**campaign_service.campaign_to_dict(c)) for c in campaigns],
        "pagination": pagination.meta(total),
    }


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_campaign(
    data: CampaignCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        campaign = campaign_service.create_campaign(db, data)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "create", "campaign", campaign.id,
        {"name": campaign.name, "organization_id": campaign.organization_id},
        audit_service.get_client_ip(request),
    )
    db.commit()
    campaign = campaign_service.get_campaign(db, campaign.id)
    return campaign_service.campaign_to_dict(campaign)


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return campaign_service.campaign_to_dict(_get_campaign_for_session(db, campaign_id, session))


@router.patch(
    "/{campaign_id}",
    response_model=CampaignResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_campaign(
    campaign_id: UUID,
    data: CampaignUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    changed = campaign_service.update_campaign(db, campaign, data)
    if changed:
        audit_service.log(
            db, session.user_id, "update", "campaign", campaign.id,
            {"fields": changed}, audit_service.get_client_ip(request),
        )
    db.commit()
    db.refresh(campaign)
    return campaign_service.campaign_to_dict(campaign)


@router.delete("/{campaign_id}", dependencies=[Depends(require_csrf_header)])
def archive_campaign(
    campaign_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    campaign_service.archive_campaign(db, campaign)
    audit_service.log(
        db, session.user_id, "archive", "campaign", campaign.id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}


@router.post(
    "/{campaign_id}/regenerate-webhook",
    response_model=CampaignResponse,
    dependencies=[Depends(require_csrf_header)],
)
def regenerate_webhook(
    campaign_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    campaign_service.regenerate_webhook(db, campaign)
    audit_service.log(
        db, session.user_id, "regenerate_webhook", "campaign", campaign.id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(campaign)
    return campaign_service.campaign_to_dict(campaign)


@router.get("/{campaign_id}/stats")
def get_campaign_stats(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    return campaign_service.get_stats(db, campaign)


# ============================================================================
# SMS triggers
# ============================================================================

@router.get("/{campaign_id}/triggers", response_model=list[TriggerResponse])
def list_campaign_triggers(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    return trigger_service.list_triggers(db, campaign_id=campaign.id)


@router.post(
    "/{campaign_id}/triggers",
    response_model=TriggerResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_campaign_trigger(
    campaign_id: UUID,
    data: TriggerCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_for_session(db, campaign_id, session)
    trigger = trigger_service.create_trigger(db, campaign_id=campaign.id, **data.model_dump())
    audit_service.log(
        db, session.user_id, "create", "sms_trigger", trigger.id,
        {"campaign_id": campaign.id}, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(trigger)
    return trigger
