"""Outbound campaigns router - campaigns, contacts, schedules, call logs, triggers (admin)."""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db, require_admin, require_csrf_header
from app.core.rate_limit import WRITE_LIMIT, limiter
from app.db.enums import CallResult, OutboundCampaignStatus, OutboundContactStatus
from app.db.models import OutboundCampaign
from app.schemas.auth import UserSession
from app.schemas.campaign import TriggerCreate, TriggerResponse
from app.schemas.outbound import (
    ContactMapping,
    ContactsAdd,
    OutboundCallLogResponse,
    OutboundCampaignCreate,
    OutboundCampaignResponse,
    OutboundCampaignUpdate,
    OutboundContactResponse,
    ScheduleResponse,
    SchedulesReplace,
)
from app.services import audit_service, contact_import_service, outbound_campaign_service, trigger_service
from app.services.contact_import_service import ContactFieldMapping
from app.utils.pagination import PaginationParams, clamp_pagination, get_pagination

router = APIRouter()
logger = logging.getLogger(__name__)

CONTACTS_DEFAULT_LIMIT = 50
UPLOAD_SAMPLE_ROWS = 5
UPLOAD_PREVIEW_ROWS = 10


def _get_campaign_or_404(db: Session, campaign_id: UUID) -> OutboundCampaign:
    campaign = outbound_campaign_service.get_campaign(db, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign


# ============================================================================
# Campaigns
# ============================================================================

@router.get("")
def list_outbound_campaigns(
    status: OutboundCampaignStatus | None = None,
    organization_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaigns, total = outbound_campaign_service.list_campaigns(
        db,
        pagination,
        status=status.value if status else None,
        organization_id=organization_id,
    )
    return {
        "data": [
            OutboundCampaignResponse(**outbound_campaign_service.campaign_to_dict(campaign))
            for campaign in campaigns
        ],
        "pagination": pagination.meta(total),
    }


@router.post(
    "",
    response_model=OutboundCampaignResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_outbound_campaign(
    data: OutboundCampaignCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        campaign = outbound_campaign_service.create_campaign(db, data)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "create", "outbound_campaign", campaign.id,
        {"name": campaign.name}, audit_service.get_client_ip(request),
    )
    db.commit()
    campaign = outbound_campaign_service.get_campaign(db, campaign.id)
    return outbound_campaign_service.campaign_to_dict(campaign)


@router.get("/{campaign_id}", response_model=OutboundCampaignResponse)
def get_outbound_campaign(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return outbound_campaign_service.campaign_to_dict(_get_campaign_or_404(db, campaign_id))


@router.patch(
    "/{campaign_id}",
    response_model=OutboundCampaignResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_outbound_campaign(
    campaign_id: UUID,
    data: OutboundCampaignUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    previous_status = campaign.status
    try:
        outbound_campaign_service.update_campaign(db, campaign, data)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    details = {"fields": sorted(data.model_dump(exclude_unset=True).keys())}
    if campaign.status != previous_status:
        details["status"] = {"from": previous_status, "to": campaign.status}
    audit_service.log(
        db, session.user_id, "update", "outbound_campaign", campaign.id,
        details, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(campaign)
    return outbound_campaign_service.campaign_to_dict(campaign)


@router.delete("/{campaign_id}", dependencies=[Depends(require_csrf_header)])
def delete_outbound_campaign(
    campaign_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        outbound_campaign_service.delete_campaign(db, campaign)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "delete", "outbound_campaign", campaign_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}


@router.get("/{campaign_id}/stats")
def get_outbound_campaign_stats(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    return outbound_campaign_service.get_stats(db, campaign)


# ============================================================================
# Contacts
# ============================================================================

@router.get("/{campaign_id}/contacts")
def list_outbound_contacts(
    campaign_id: UUID,
    status: OutboundContactStatus | None = None,
    page: int = Query(1),
    limit: int = Query(CONTACTS_DEFAULT_LIMIT),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    pagination = clamp_pagination(page, limit, default_limit=CONTACTS_DEFAULT_LIMIT)
    contacts, total = contact_import_service.list_contacts(
        db, campaign, pagination, status.value if status else None
    )
    return {
        "data": [OutboundContactResponse.model_validate(contact) for contact in contacts],
        "pagination": pagination.meta(total),
    }


@router.post("/{campaign_id}/contacts", dependencies=[Depends(require_csrf_header)])
@limiter.limit(WRITE_LIMIT)
def add_outbound_contacts(
    request: Request,  # Required by limiter
    campaign_id: UUID,
    data: ContactsAdd,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        result = contact_import_service.add_contacts(db, campaign, data.contacts)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return result


@router.delete("/{campaign_id}/contacts", dependencies=[Depends(require_csrf_header)])
def clear_outbound_contacts(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    try:
        deleted = contact_import_service.clear_contacts(db, campaign)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return {"deleted": deleted}


@router.post("/{campaign_id}/contacts/upload", dependencies=[Depends(require_csrf_header)])
@limiter.limit(WRITE_LIMIT)
async def upload_outbound_contacts(
    request: Request,  # Required by limiter
    campaign_id: UUID,
    file: UploadFile = File(...),
    mapping: str | None = Form(None),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """
    Two-step contact import.

    Without ``mapping``: returns headers, a suggested mapping and sample rows.
    With ``mapping`` (JSON): returns validated contacts ready to add.
    """
    _get_campaign_or_404(db, campaign_id)

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(status_code=400, detail="File is too large")

    try:
        headers, rows = contact_import_service.parse_upload(file.filename or "", content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not rows:
        raise HTTPException(status_code=400, detail="File contains no data rows")

    if not mapping:
        return {
            "step": "mapping",
            "headers": headers,
            "row_count": len(rows),
            "suggested_mapping": contact_import_service.suggest_field_mappings(headers),
            "sample_rows": rows[:UPLOAD_SAMPLE_ROWS],
        }

    try:
        parsed_mapping = ContactMapping.model_validate(json.loads(mapping))
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Phone number and first name columns must be mapped")
    for column in (parsed_mapping.phone_number, parsed_mapping.first_name):
        if column not in headers:
            raise HTTPException(status_code=400, detail=f"Column '{column}' not found in file")

    result = contact_import_service.process_contacts(
        rows, ContactFieldMapping(**parsed_mapping.model_dump()), headers
    )
    previews = result.valid_contacts + result.invalid_contacts + result.duplicates
    previews.sort(key=lambda contact: contact.row_number)
    return {
        "step": "preview",
        "total_rows": result.total_rows,
        "valid_count": len(result.valid_contacts),
        "invalid_count": len(result.invalid_contacts),
        "duplicate_count": len(result.duplicates),
        "previews": [contact.to_dict() for contact in previews[:UPLOAD_PREVIEW_ROWS]],
        "contacts": [contact.to_dict() for contact in result.valid_contacts],
    }


# ============================================================================
# Schedules
# ============================================================================

@router.get("/{campaign_id}/schedules", response_model=list[ScheduleResponse])
def list_outbound_schedules(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    return outbound_campaign_service.list_schedules(db, campaign)


@router.put(
    "/{campaign_id}/schedules",
    response_model=list[ScheduleResponse],
    dependencies=[Depends(require_csrf_header)],
)
def replace_outbound_schedules(
    campaign_id: UUID,
    data: SchedulesReplace,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    schedules = outbound_campaign_service.replace_schedules(db, campaign, data.schedules)
    db.commit()
    return schedules


# ============================================================================
# Call logs
# ============================================================================

@router.get("/{campaign_id}/call-logs")
def list_outbound_call_logs(
    campaign_id: UUID,
    result: CallResult | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    logs, total = outbound_campaign_service.list_call_logs(
        db, campaign, pagination, result.value if result else None
    )
    return {
        "data": [
            OutboundCallLogResponse(**outbound_campaign_service.call_log_to_dict(log)) for log in logs
        ],
        "pagination": pagination.meta(total),
    }


# ============================================================================
# SMS triggers
# ============================================================================

@router.get("/{campaign_id}/triggers", response_model=list[TriggerResponse])
def list_outbound_triggers(
    campaign_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    return trigger_service.list_triggers(db, outbound_campaign_id=campaign.id)


@router.post(
    "/{campaign_id}/triggers",
    response_model=TriggerResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_outbound_trigger(
    campaign_id: UUID,
    data: TriggerCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    campaign = _get_campaign_or_404(db, campaign_id)
    trigger = trigger_service.create_trigger(db, outbound_campaign_id=campaign.id, **data.model_dump())
    audit_service.log(
        db, session.user_id, "create", "sms_trigger", trigger.id,
        {"outbound_campaign_id": campaign.id}, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(trigger)
    return trigger
