"""Outbound campaign management: CRUD, lifecycle, schedules, call logs, stats."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.db.enums import OutboundCampaignStatus as Status
from app.db.models import (
    OutboundCallLog,
    OutboundCampaign,
    OutboundContact,
    OutboundSchedule,
    Organization,
)
from app.schemas.outbound import (
    OutboundCampaignCreate,
    OutboundCampaignUpdate,
    ScheduleEntry,
)
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

MASKED_SECRET = "********"

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Status.DRAFT.value: frozenset({Status.SCHEDULED.value, Status.CANCELLED.value}),
    Status.SCHEDULED.value: frozenset({Status.RUNNING.value, Status.CANCELLED.value, Status.DRAFT.value}),
    Status.RUNNING.value: frozenset({Status.PAUSED.value, Status.COMPLETED.value, Status.CANCELLED.value}),
    Status.PAUSED.value: frozenset({Status.RUNNING.value, Status.CANCELLED.value}),
    Status.COMPLETED.value: frozenset(),
    Status.CANCELLED.value: frozenset({Status.DRAFT.value}),
}

DELETABLE_STATUSES = frozenset({Status.DRAFT.value, Status.CANCELLED.value})
_START_STATUSES = frozenset({Status.SCHEDULED.value, Status.RUNNING.value})

_CONFIG_FIELDS = (
    "name",
    "description",
    "vapi_assistant_id",
    "vapi_assistant_name",
    "vapi_phone_number_id",
    "vapi_phone_number",
    "twilio_phone_number",
    "twilio_override",
    "twilio_account_sid",
    "twilio_auth_token",
    "max_concurrent_calls",
    "max_retries",
    "retry_delay_hours",
    "ai_extraction_hints",
    "scheduled_start_at",
)


def outbound_webhook_url(campaign: OutboundCampaign) -> str:
    return f"{settings.APP_URL.rstrip('/')}/api/outbound-webhook/{campaign.webhook_uuid}"


def campaign_to_dict(campaign: OutboundCampaign) -> dict:
    """Response payload: webhook URL added, Twilio token masked."""
    return {
        "id": campaign.id,
        "organization_id": campaign.organization_id,
        "organization_name": campaign.organization.name if campaign.organization else None,
        "name": campaign.name,
        "description": campaign.description,
        "webhook_uuid": campaign.webhook_uuid,
        "webhook_url": outbound_webhook_url(campaign),
        "status": campaign.status,
        "vapi_assistant_id": campaign.vapi_assistant_id,
        "vapi_assistant_name": campaign.vapi_assistant_name,
        "vapi_phone_number_id": campaign.vapi_phone_number_id,
        "vapi_phone_number": campaign.vapi_phone_number,
        "twilio_phone_number": campaign.twilio_phone_number,
        "twilio_override": campaign.twilio_override,
        "twilio_account_sid": campaign.twilio_account_sid,
        "twilio_auth_token": MASKED_SECRET if campaign.twilio_auth_token else None,
        "max_concurrent_calls": campaign.max_concurrent_calls,
        "max_retries": campaign.max_retries,
        "retry_delay_hours": campaign.retry_delay_hours,
        "ai_extraction_hints": campaign.ai_extraction_hints or {},
        "total_contacts": campaign.total_contacts,
        "contacts_called": campaign.contacts_called,
        "contacts_answered": campaign.contacts_answered,
        "contacts_failed": campaign.contacts_failed,
        "scheduled_start_at": campaign.scheduled_start_at,
        "actual_start_at": campaign.actual_start_at,
        "completed_at": campaign.completed_at,
        "created_at": campaign.created_at,
        "updated_at": campaign.updated_at,
    }


# =============================================================================
# CRUD
# =============================================================================

def list_campaigns(
    db: Session,
    pagination: PaginationParams,
    *,
    status: str | None = None,
    organization_id: UUID | None = None,
) -> tuple[list[OutboundCampaign], int]:
    query = db.query(OutboundCampaign).options(joinedload(OutboundCampaign.organization))
    if status:
        query = query.filter(OutboundCampaign.status == status)
    if organization_id:
        query = query.filter(OutboundCampaign.organization_id == organization_id)
    query = query.order_by(OutboundCampaign.created_at.desc(), OutboundCampaign.id)
    return paginate_query(query, pagination)


def get_campaign(db: Session, campaign_id: UUID) -> OutboundCampaign | None:
    return (
        db.query(OutboundCampaign)
        .options(joinedload(OutboundCampaign.organization))
        .filter(OutboundCampaign.id == campaign_id)
        .first()
    )


def get_campaign_by_webhook_uuid(db: Session, webhook_uuid: UUID) -> OutboundCampaign | None:
    return db.query(OutboundCampaign).filter(OutboundCampaign.webhook_uuid == webhook_uuid).first()


def create_campaign(db: Session, data: OutboundCampaignCreate) -> OutboundCampaign:
    organization = db.query(Organization).filter(Organization.id == data.organization_id).first()
    if not organization:
        raise LookupError("Organization not found")

    campaign = OutboundCampaign(
        organization_id=data.organization_id,
        webhook_uuid=uuid.uuid4(),
        status=Status.DRAFT.value,
        **{field: getattr(data, field) for field in _CONFIG_FIELDS},
    )
    db.add(campaign)
    db.flush()
    logger.info("Outbound campaign created", extra={"campaign_id": str(campaign.id)})
    return campaign


def transition_status(
    db: Session,
    campaign: OutboundCampaign,
    new_status: str,
    now: datetime | None = None,
) -> OutboundCampaign:
    """Apply a lifecycle move; raises ValueError when it is not allowed."""
    current = campaign.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ValueError(f"Cannot transition from {current} to {new_status}")

    if new_status in _START_STATUSES:
        contact_count = (
            db.query(func.count(OutboundContact.id))
            .filter(OutboundContact.campaign_id == campaign.id)
            .scalar()
        )
        if not contact_count:
            raise ValueError("Campaign has no contacts")
        if not campaign.vapi_assistant_id or not campaign.vapi_phone_number_id:
            raise ValueError("VAPI assistant and phone number are required")

    now = now or datetime.now(timezone.utc)
    campaign.status = new_status
    if new_status == Status.RUNNING.value and campaign.actual_start_at is None:
        campaign.actual_start_at = now
    if new_status == Status.COMPLETED.value:
        campaign.completed_at = now
    db.flush()
    logger.info(
        "Outbound campaign status changed",
        extra={"campaign_id": str(campaign.id), "from": current, "to": new_status},
    )
    return campaign


def update_campaign(
    db: Session,
    campaign: OutboundCampaign,
    data: OutboundCampaignUpdate,
) -> OutboundCampaign:
    changes = data.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)

    for field in _CONFIG_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "name":
            if value is None:
                continue
            value = value.strip()
        elif field == "description" and value is not None:
            value = value.strip() or None
        elif field == "twilio_auth_token" and value == MASKED_SECRET:
            # Echoed mask from a read: keep the stored token
            continue
        setattr(campaign, field, value)
    db.flush()

    if new_status is not None:
        status_value = new_status.value if hasattr(new_status, "value") else new_status
        transition_status(db, campaign, status_value)
    return campaign


def delete_campaign(db: Session, campaign: OutboundCampaign) -> None:
    if campaign.status not in DELETABLE_STATUSES:
        raise ValueError("Can only delete draft or cancelled campaigns")
    db.delete(campaign)
    db.flush()


# =============================================================================
# Schedules
# =============================================================================

def list_schedules(db: Session, campaign: OutboundCampaign) -> list[OutboundSchedule]:
    return (
        db.query(OutboundSchedule)
        .filter(OutboundSchedule.campaign_id == campaign.id)
        .order_by(OutboundSchedule.day_of_week, OutboundSchedule.start_time)
        .all()
    )


def replace_schedules(
    db: Session,
    campaign: OutboundCampaign,
    entries: list[ScheduleEntry],
) -> list[OutboundSchedule]:
    """Replace the whole weekly schedule."""
    db.query(OutboundSchedule).filter(
        OutboundSchedule.campaign_id == campaign.id
    ).delete(synchronize_session=False)
    db.expire(campaign, ["schedules"])

    for entry in entries:
        db.add(
            OutboundSchedule(
                campaign_id=campaign.id,
                day_of_week=entry.day_of_week,
                start_time=entry.start_time,
                end_time=entry.end_time,
                timezone=entry.timezone,
                is_active=entry.is_active,
            )
        )
    db.flush()
    return list_schedules(db, campaign)


# =============================================================================
# Call logs & stats
# =============================================================================

def list_call_logs(
    db: Session,
    campaign: OutboundCampaign,
    pagination: PaginationParams,
    result: str | None = None,
) -> tuple[list[OutboundCallLog], int]:
    query = (
        db.query(OutboundCallLog)
        .options(joinedload(OutboundCallLog.contact))
        .filter(OutboundCallLog.campaign_id == campaign.id)
    )
    if result:
        query = query.filter(OutboundCallLog.call_result == result)
    query = query.order_by(OutboundCallLog.created_at.desc(), OutboundCallLog.id)
    return paginate_query(query, pagination)


def call_log_to_dict(log: OutboundCallLog) -> dict:
    contact = log.contact
    name = None
    if contact:
        name = " ".join(part for part in (contact.first_name, contact.last_name) if part)
    return {
        "id": log.id,
        "campaign_id": log.campaign_id,
        "contact_id": log.contact_id,
        "contact_name": name,
        "contact_phone": contact.phone_number if contact else None,
        "vapi_call_id": log.vapi_call_id,
        "attempt_number": log.attempt_number,
        "call_result": log.call_result,
        "duration_seconds": log.duration_seconds,
        "transcript": log.transcript,
        "recording_url": log.recording_url,
        "ai_summary": log.ai_summary,
        "sms_sent": log.sms_sent,
        "sms_trigger_id": log.sms_trigger_id,
        "started_at": log.started_at,
        "ended_at": log.ended_at,
        "created_at": log.created_at,
    }


def contact_status_breakdown(db: Session, campaign_id: UUID) -> dict[str, int]:
    rows = (
        db.query(OutboundContact.status, func.count(OutboundContact.id))
        .filter(OutboundContact.campaign_id == campaign_id)
        .group_by(OutboundContact.status)
        .all()
    )
    return {status: count for status, count in rows}


def get_stats(db: Session, campaign: OutboundCampaign) -> dict:
    breakdown = contact_status_breakdown(db, campaign.id)
    called = campaign.contacts_called or 0
    answer_rate = round(campaign.contacts_answered * 100 / called) if called else 0
    avg_duration = (
        db.query(func.avg(OutboundCallLog.duration_seconds))
        .filter(
            OutboundCallLog.campaign_id == campaign.id,
            OutboundCallLog.duration_seconds.isnot(None),
        )
        .scalar()
    )
    sms_sent = (
        db.query(func.count(OutboundCallLog.id))
        .filter(OutboundCallLog.campaign_id == campaign.id, OutboundCallLog.sms_sent.is_(True))
        .scalar()
        or 0
    )
    return {
        "status": campaign.status,
        "total_contacts": campaign.total_contacts,
        "contacts_called": campaign.contacts_called,
        "contacts_answered": campaign.contacts_answered,
        "contacts_failed": campaign.contacts_failed,
        "answer_rate": answer_rate,
        "avg_duration_seconds": round(float(avg_duration)) if avg_duration is not None else 0,
        "sms_sent": sms_sent,
        "contact_status": breakdown,
    }
