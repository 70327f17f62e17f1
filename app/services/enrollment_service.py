"""Nurture enrollment - sales users enroll their leads into inbound campaigns."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.enums import ActivityType
from app.db.models import Campaign, Lead, NurtureEnrollment
from app.services import lead_service

logger = logging.getLogger(__name__)


def list_campaigns_for_sales(db: Session, sales_user_id: UUID | None) -> list[dict]:
    """Active inbound campaigns with the caller's active enrollment counts."""
    campaigns = (
        db.query(Campaign)
        .options(joinedload(Campaign.organization))
        .filter(Campaign.is_active.is_(True))
        .order_by(Campaign.name, Campaign.id)
        .all()
    )
    counts: dict[UUID, int] = {}
    if sales_user_id and campaigns:
        rows = (
            db.query(NurtureEnrollment.campaign_id, func.count(NurtureEnrollment.id))
            .filter(
                NurtureEnrollment.sales_user_id == sales_user_id,
                NurtureEnrollment.is_active.is_(True),
            )
            .group_by(NurtureEnrollment.campaign_id)
            .all()
        )
        counts = {campaign_id: count for campaign_id, count in rows}

    return [
        {
            "id": campaign.id,
            "name": campaign.name,
            "description": campaign.description,
            "organization_name": campaign.organization.name if campaign.organization else None,
            "enrolled_count": counts.get(campaign.id, 0),
        }
        for campaign in campaigns
    ]


def enroll_leads(
    db: Session,
    *,
    campaign_id: UUID,
    sales_user_id: UUID,
    user_id: UUID,
    lead_ids: list[UUID],
    notes: str | None = None,
) -> dict:
    """
    Enroll the caller's leads into a campaign.

    Raises:
        PermissionError: a lead does not belong to the caller
        LookupError: campaign missing
        ValueError: campaign inactive, or nothing new to enroll
    """
    unique_ids = list(dict.fromkeys(lead_ids))
    leads = db.query(Lead).filter(Lead.id.in_(unique_ids)).all()
    if len(leads) != len(unique_ids) or any(lead.sales_user_id != sales_user_id for lead in leads):
        raise PermissionError("One or more leads do not belong to you")

    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise LookupError("Campaign not found")
    if not campaign.is_active:
        raise ValueError("Campaign is not active")

    existing = {
        lead_id
        for (lead_id,) in db.query(NurtureEnrollment.lead_id).filter(
            NurtureEnrollment.campaign_id == campaign_id,
            NurtureEnrollment.lead_id.in_(unique_ids),
        )
    }
    to_enroll = [lead for lead in leads if lead.id not in existing]
    if not to_enroll:
        raise ValueError("All selected leads are already enrolled")

    for lead in to_enroll:
        db.add(
            NurtureEnrollment(
                lead_id=lead.id,
                campaign_id=campaign_id,
                sales_user_id=sales_user_id,
                notes=notes,
            )
        )
    try:
        db.flush()
    except IntegrityError:
        # Same lead enrolled by a concurrent request
        db.rollback()
        raise ValueError("Some leads were enrolled concurrently. Please retry.")

    for lead in to_enroll:
        lead_service.add_activity(
            db,
            lead,
            user_id=user_id,
            user_type=lead_service.USER_TYPE_SALES,
            activity_type=ActivityType.CAMPAIGN_ENROLLMENT,
            title=f"Enrolled in campaign: {campaign.name}",
            metadata={"campaign_id": str(campaign_id)},
        )

    enrolled = len(to_enroll)
    already = len(unique_ids) - enrolled
    logger.info(
        "Leads enrolled",
        extra={"campaign_id": str(campaign_id), "enrolled": enrolled, "already_enrolled": already},
    )
    return {
        "message": f"Enrolled {enrolled} lead(s) in {campaign.name}",
        "enrolled_count": enrolled,
        "already_enrolled_count": already,
    }
