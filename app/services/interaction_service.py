"""Interaction queries with tenant scoping and flag/tag updates."""

from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from app.db.models import Campaign, Interaction
from app.utils.normalization import sanitize_search_input
from app.utils.pagination import PaginationParams, paginate_query


def day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def list_interactions(
    db: Session,
    pagination: PaginationParams,
    *,
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
    status: str | None = None,
    source_type: str | None = None,
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    flagged_only: bool = False,
) -> tuple[list[Interaction], int]:
    """
    Filtered interaction page, newest first.

    ``end_date`` is inclusive through the end of that day.
    """
    query = (
        db.query(Interaction)
        .join(Campaign, Interaction.campaign_id == Campaign.id)
        .options(joinedload(Interaction.campaign))
    )
    if organization_id:
        query = query.filter(Campaign.organization_id == organization_id)
    if campaign_id:
        query = query.filter(Interaction.campaign_id == campaign_id)
    if status:
        query = query.filter(Interaction.call_status == status)
    if source_type:
        query = query.filter(Interaction.source_type == source_type)
    if start_date:
        query = query.filter(Interaction.created_at >= day_start(start_date))
    if end_date:
        query = query.filter(Interaction.created_at < day_start(end_date) + timedelta(days=1))
    if flagged_only:
        query = query.filter(Interaction.flagged.is_(True))

    term = sanitize_search_input(search)
    if term:
        pattern = f"%{term}%"
        query = query.filter(
            or_(
                Interaction.phone_number.ilike(pattern),
                Interaction.ai_summary.ilike(pattern),
                Interaction.transcript.ilike(pattern),
            )
        )

    query = query.order_by(Interaction.created_at.desc(), Interaction.id)
    return paginate_query(query, pagination)


def get_interaction(db: Session, interaction_id: UUID) -> Interaction | None:
    return (
        db.query(Interaction)
        .options(
            joinedload(Interaction.campaign),
            joinedload(Interaction.contact),
            selectinload(Interaction.sms_logs),
        )
        .filter(Interaction.id == interaction_id)
        .first()
    )


def interaction_to_dict(interaction: Interaction, *, detail: bool = False) -> dict:
    campaign = interaction.campaign
    data = {
        "id": interaction.id,
        "campaign_id": interaction.campaign_id,
        "campaign_name": campaign.name if campaign else None,
        "organization_id": campaign.organization_id if campaign else None,
        "contact_id": interaction.contact_id,
        "source_type": interaction.source_type,
        "source_platform": interaction.source_platform,
        "phone_number": interaction.phone_number,
        "call_status": interaction.call_status,
        "duration_seconds": interaction.duration_seconds,
        "ai_summary": interaction.ai_summary,
        "tags": interaction.tags or [],
        "flagged": interaction.flagged,
        "created_at": interaction.created_at,
    }
    if detail:
        data.update(
            {
                "transcript": interaction.transcript,
                "transcript_formatted": interaction.transcript_formatted,
                "recording_url": interaction.recording_url,
                "ai_extracted_data": interaction.ai_extracted_data,
                "raw_payload": interaction.raw_payload,
                "contact": interaction.contact,
                "sms_logs": sorted(interaction.sms_logs, key=lambda log: (log.created_at, str(log.id))),
            }
        )
    return data


def update_interaction(
    db: Session,
    interaction: Interaction,
    *,
    flagged: bool | None = None,
    tags: list[str] | None = None,
) -> dict:
    """Update flag/tags. Returns {field: new value} for what changed."""
    changes: dict = {}
    if flagged is not None and flagged != interaction.flagged:
        interaction.flagged = flagged
        changes["flagged"] = flagged
    if tags is not None and tags != (interaction.tags or []):
        interaction.tags = list(tags)
        changes["tags"] = list(tags)
    db.flush()
    return changes
