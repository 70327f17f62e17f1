"""Inbound campaign service - CRUD, webhook URL management and stats."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.db.enums import CallStatus
from app.db.models import Campaign, Interaction, Organization, WebhookErrorLog
from app.schemas.campaign import CampaignCreate, CampaignUpdate
from app.utils.normalization import sanitize_search_input
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

MASKED_SECRET = "********"
STATS_DAILY_WINDOW_DAYS = 30
STATS_RECENT_ERRORS = 5


def webhook_url(campaign: Campaign) -> str:
    return f"{settings.APP_URL.rstrip('/')}/api/webhook/{campaign.webhook_uuid}"


def campaign_to_dict(campaign: Campaign) -> dict:
    """Response payload: webhook URL added, Twilio token masked."""
    return {
        "id": campaign.id,
        "organization_id": campaign.organization_id,
        "organization_name": campaign.organization.name if campaign.organization else None,
        "name": campaign.name,
        "description": campaign.description,
        "webhook_uuid": campaign.webhook_uuid,
        "webhook_url": webhook_url(campaign),
        "campaign_type": campaign.campaign_type,
        "twilio_phone_number": campaign.twilio_phone_number,
        "twilio_override": campaign.twilio_override,
        "twilio_account_sid": campaign.twilio_account_sid,
        "twilio_auth_token": MASKED_SECRET if campaign.twilio_auth_token else None,
        "ai_extraction_hints": campaign.ai_extraction_hints or {},
        "is_active": campaign.is_active,
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
    organization_id: UUID | None = None,
    search: str | None = None,
    include_archived: bool = False,
) -> tuple[list[Campaign], int]:
    query = db.query(Campaign).options(joinedload(Campaign.organization))
    if organization_id:
        query = query.filter(Campaign.organization_id == organization_id)
    if not include_archived:
        query = query.filter(Campaign.is_active.is_(True))
    term = sanitize_search_input(search)
    if term:
        query = query.filter(Campaign.name.ilike(f"%{term}%"))
    query = query.order_by(Campaign.created_at.desc(), Campaign.id)
    return paginate_query(query, pagination)


def get_campaign(db: Session, campaign_id: UUID) -> Campaign | None:
    return (
        db.query(Campaign)
        .options(joinedload(Campaign.organization))
        .filter(Campaign.id == campaign_id)
        .first()
    )


def create_campaign(db: Session, data: CampaignCreate) -> Campaign:
    organization = db.query(Organization).filter(Organization.id == data.organization_id).first()
    if not organization:
        raise LookupError("Organization not found")

    campaign = Campaign(
        organization_id=data.organization_id,
        name=data.name,
        description=(data.description or "").strip() or None,
        webhook_uuid=uuid.uuid4(),
        twilio_phone_number=data.twilio_phone_number,
        twilio_override=data.twilio_override,
        twilio_account_sid=data.twilio_account_sid,
        twilio_auth_token=data.twilio_auth_token,
        ai_extraction_hints=data.ai_extraction_hints,
    )
    db.add(campaign)
    db.flush()
    logger.info("Campaign created", extra={"campaign_id": str(campaign.id)})
    return campaign


def update_campaign(db: Session, campaign: Campaign, data: CampaignUpdate) -> list[str]:
    """Apply a partial update. Returns the changed field names."""
    changed = []
    for field_name, value in data.model_dump(exclude_unset=True).items():
        if field_name in ("name", "twilio_override", "is_active", "ai_extraction_hints") and value is None:
            continue
        if field_name == "description" and value is not None:
            value = value.strip() or None
        if field_name == "twilio_auth_token" and value == MASKED_SECRET:
            # Echoed mask from a read: keep the stored token
            continue
        if getattr(campaign, field_name) != value:
            setattr(campaign, field_name, value)
            changed.append(field_name)
    db.flush()
    return changed


def archive_campaign(db: Session, campaign: Campaign) -> None:
    campaign.is_active = False
    db.flush()


def regenerate_webhook(db: Session, campaign: Campaign) -> Campaign:
    """Issue a new webhook uuid; the old URL stops resolving."""
    campaign.webhook_uuid = uuid.uuid4()
    db.flush()
    logger.info("Campaign webhook regenerated", extra={"campaign_id": str(campaign.id)})
    return campaign


# =============================================================================
# Stats
# =============================================================================

def get_stats(db: Session, campaign: Campaign, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    base = db.query(Interaction).filter(Interaction.campaign_id == campaign.id)

    by_status = {
        status or "unknown": count
        for status, count in base.with_entities(Interaction.call_status, func.count(Interaction.id))
        .group_by(Interaction.call_status)
        .all()
    }
    by_source = {
        source: count
        for source, count in base.with_entities(Interaction.source_type, func.count(Interaction.id))
        .group_by(Interaction.source_type)
        .all()
    }
    total = sum(by_status.values())

    avg_duration, total_duration = base.with_entities(
        func.avg(Interaction.duration_seconds), func.sum(Interaction.duration_seconds)
    ).one()

    since = now - timedelta(days=STATS_DAILY_WINDOW_DAYS)
    day = func.date(Interaction.created_at)
    daily = (
        base.with_entities(day, func.count(Interaction.id))
        .filter(Interaction.created_at >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )

    errors = db.query(WebhookErrorLog).filter(WebhookErrorLog.campaign_id == campaign.id)
    error_count = errors.count()
    recent_errors = errors.order_by(WebhookErrorLog.created_at.desc()).limit(STATS_RECENT_ERRORS).all()

    completed = by_status.get(CallStatus.COMPLETED.value, 0)
    return {
        "total_interactions": total,
        "completed": completed,
        "failed": by_status.get(CallStatus.FAILED.value, 0),
        "no_answer": by_status.get(CallStatus.NO_ANSWER.value, 0),
        "avg_duration_seconds": round(float(avg_duration)) if avg_duration is not None else 0,
        "total_duration_seconds": int(total_duration or 0),
        "success_rate": round(completed * 100 / total) if total else 0,
        "webhook_error_count": error_count,
        "by_status": by_status,
        "by_source": by_source,
        "calls_per_day": [{"date": str(date), "count": count} for date, count in daily],
        "recent_errors": [
            {
                "id": error.id,
                "error_type": error.error_type,
                "error_message": error.error_message,
                "created_at": error.created_at,
            }
            for error in recent_errors
        ],
    }
