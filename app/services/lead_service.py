"""Lead service - sales pipeline CRUD, stage/status history and activities."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.db.enums import CONTACT_ACTIVITY_TYPES, ActivityType, LeadStatus
from app.db.models import Lead, LeadActivity, LeadStage, SalesUser
from app.schemas.sales import LeadCreate, LeadUpdate
from app.utils.normalization import normalize_email, sanitize_search_input
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

UNASSIGNED_STAGE = "unassigned"
WON_DESCRIPTION = "Lead marked as won - Commission pending"

USER_TYPE_SALES = "sales"
USER_TYPE_ADMIN = "admin"


def lead_to_dict(lead: Lead) -> dict:
    return {
        "id": lead.id,
        "sales_user_id": lead.sales_user_id,
        "sales_user_name": lead.sales_user.full_name if lead.sales_user else None,
        "stage_id": lead.stage_id,
        "stage_name": lead.stage.name if lead.stage else None,
        "stage_color": lead.stage.color if lead.stage else None,
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "email": lead.email,
        "phone": lead.phone,
        "company": lead.company,
        "job_title": lead.job_title,
        "estimated_value": lead.estimated_value,
        "source": lead.source,
        "notes": lead.notes,
        "status": lead.status,
        "converted_at": lead.converted_at,
        "lost_reason": lead.lost_reason,
        "last_contacted_at": lead.last_contacted_at,
        "next_follow_up_at": lead.next_follow_up_at,
        "created_at": lead.created_at,
        "updated_at": lead.updated_at,
    }


# =============================================================================
# Queries
# =============================================================================

def list_leads(
    db: Session,
    pagination: PaginationParams,
    *,
    sales_user_id: UUID | None = None,
    search: str | None = None,
    stage_id: UUID | str | None = None,
    status: str | None = None,
) -> tuple[list[Lead], int]:
    """
    Lead page, newest first.

    stage_id may be a UUID or "unassigned" for leads without a stage.
    """
    query = db.query(Lead).options(joinedload(Lead.sales_user), joinedload(Lead.stage))
    if sales_user_id:
        query = query.filter(Lead.sales_user_id == sales_user_id)
    if status:
        query = query.filter(Lead.status == status)
    if stage_id == UNASSIGNED_STAGE:
        query = query.filter(Lead.stage_id.is_(None))
    elif stage_id:
        query = query.filter(Lead.stage_id == stage_id)

    term = sanitize_search_input(search)
    if term:
        pattern = f"%{term}%"
        query = query.filter(
            or_(
                Lead.first_name.ilike(pattern),
                Lead.last_name.ilike(pattern),
                Lead.email.ilike(pattern),
                Lead.company.ilike(pattern),
            )
        )

    query = query.order_by(Lead.created_at.desc(), Lead.id)
    return paginate_query(query, pagination)


def get_lead(db: Session, lead_id: UUID, sales_user_id: UUID | None = None) -> Lead | None:
    """Lead by id; scoped to the owner when sales_user_id is given."""
    query = (
        db.query(Lead)
        .options(joinedload(Lead.sales_user), joinedload(Lead.stage))
        .filter(Lead.id == lead_id)
    )
    if sales_user_id:
        query = query.filter(Lead.sales_user_id == sales_user_id)
    return query.first()


def list_stages(db: Session) -> list[LeadStage]:
    return (
        db.query(LeadStage)
        .filter(LeadStage.is_active.is_(True))
        .order_by(LeadStage.order, LeadStage.name)
        .all()
    )


def default_stage(db: Session) -> LeadStage | None:
    """The flagged default stage, else the first active stage by order."""
    stage = (
        db.query(LeadStage)
        .filter(LeadStage.is_default.is_(True), LeadStage.is_active.is_(True))
        .order_by(LeadStage.order)
        .first()
    )
    if stage:
        return stage
    return (
        db.query(LeadStage)
        .filter(LeadStage.is_active.is_(True))
        .order_by(LeadStage.order)
        .first()
    )


# =============================================================================
# Activities
# =============================================================================

def add_activity(
    db: Session,
    lead: Lead,
    *,
    user_id: UUID | None,
    user_type: str,
    activity_type: ActivityType | str,
    title: str,
    description: str | None = None,
    metadata: dict | None = None,
) -> LeadActivity:
    """Append a timeline entry. Contact-type activities bump last_contacted_at."""
    activity_type = ActivityType(activity_type)
    activity = LeadActivity(
        lead_id=lead.id,
        user_id=user_id,
        user_type=user_type,
        activity_type=activity_type.value,
        title=title,
        description=description,
        activity_metadata=metadata,
    )
    db.add(activity)
    if activity_type in CONTACT_ACTIVITY_TYPES:
        lead.last_contacted_at = datetime.now(timezone.utc)
    db.flush()
    return activity


def list_activities(db: Session, lead: Lead) -> list[LeadActivity]:
    return (
        db.query(LeadActivity)
        .filter(LeadActivity.lead_id == lead.id)
        .order_by(LeadActivity.created_at.desc(), LeadActivity.id)
        .all()
    )


# =============================================================================
# Mutations
# =============================================================================

def create_lead(db: Session, sales_user_id: UUID, data: LeadCreate, user_id: UUID) -> Lead:
    stage = default_stage(db)
    lead = Lead(
        sales_user_id=sales_user_id,
        stage_id=stage.id if stage else None,
        first_name=data.first_name,
        last_name=data.last_name,
        email=normalize_email(data.email),
        phone=data.phone,
        company=data.company,
        job_title=data.job_title,
        estimated_value=data.estimated_value,
        source=data.source,
        notes=data.notes,
        next_follow_up_at=data.next_follow_up_at,
        status=LeadStatus.NEW.value,
    )
    db.add(lead)
    db.flush()
    add_activity(
        db,
        lead,
        user_id=user_id,
        user_type=USER_TYPE_SALES,
        activity_type=ActivityType.CREATED,
        title="Lead created",
    )
    logger.info("Lead created", extra={"lead_id": str(lead.id), "sales_user_id": str(sales_user_id)})
    return lead


def update_lead(
    db: Session,
    lead: Lead,
    data: LeadUpdate,
    *,
    user_id: UUID,
    user_type: str,
) -> Lead:
    """
    Apply a partial update and record stage/status/notes activities.

    Raises:
        LookupError: stage_id or sales_user_id does not exist
    """
    changes = data.model_dump(exclude_unset=True)
    old_stage_id = lead.stage_id
    old_status = lead.status
    old_notes = lead.notes

    if "stage_id" in changes and changes["stage_id"] is not None:
        if not db.query(LeadStage).filter(LeadStage.id == changes["stage_id"]).first():
            raise LookupError("Stage not found")
    if changes.get("sales_user_id") is not None:
        if not db.query(SalesUser).filter(SalesUser.id == changes["sales_user_id"]).first():
            raise LookupError("Sales user not found")
    elif "sales_user_id" in changes:
        changes.pop("sales_user_id")

    for field_name, value in changes.items():
        if field_name in ("first_name", "last_name", "status") and value is None:
            continue
        if field_name == "status":
            value = value.value if hasattr(value, "value") else value
        if field_name == "email":
            value = normalize_email(value)
        if field_name in ("first_name", "last_name"):
            value = value.strip()
        setattr(lead, field_name, value)
    db.flush()

    if lead.stage_id != old_stage_id:
        db.expire(lead, ["stage"])
        stage_name = lead.stage.name if lead.stage else "Unassigned"
        add_activity(
            db,
            lead,
            user_id=user_id,
            user_type=user_type,
            activity_type=ActivityType.STAGE_CHANGE,
            title=f"Stage changed to {stage_name}",
            metadata={"from_stage_id": str(old_stage_id) if old_stage_id else None,
                      "to_stage_id": str(lead.stage_id) if lead.stage_id else None},
        )

    if lead.status != old_status:
        description = None
        if lead.status == LeadStatus.WON.value:
            lead.converted_at = lead.converted_at or datetime.now(timezone.utc)
            if lead.estimated_value:
                description = WON_DESCRIPTION
        add_activity(
            db,
            lead,
            user_id=user_id,
            user_type=user_type,
            activity_type=ActivityType.STATUS_CHANGE,
            title=f"Status changed from {old_status} to {lead.status}",
            description=description,
            metadata={"from": old_status, "to": lead.status},
        )

    if user_type == USER_TYPE_SALES and "notes" in changes and lead.notes != old_notes:
        add_activity(
            db,
            lead,
            user_id=user_id,
            user_type=user_type,
            activity_type=ActivityType.NOTE,
            title="Notes updated",
        )

    return lead


def delete_lead(db: Session, lead: Lead) -> None:
    db.delete(lead)
    db.flush()


# =============================================================================
# Pipeline
# =============================================================================

def get_pipeline(db: Session, sales_user_id: UUID | None = None) -> list[dict]:
    """Active stages with their leads and per-stage totals."""
    stages = list_stages(db)
    query = db.query(Lead).options(joinedload(Lead.sales_user), joinedload(Lead.stage))
    if sales_user_id:
        query = query.filter(Lead.sales_user_id == sales_user_id)
    leads = query.order_by(Lead.updated_at.desc(), Lead.id).all()

    by_stage: dict[UUID | None, list[Lead]] = {}
    for lead in leads:
        by_stage.setdefault(lead.stage_id, []).append(lead)

    pipeline = []
    for stage in stages:
        stage_leads = by_stage.get(stage.id, [])
        pipeline.append(
            {
                "id": stage.id,
                "name": stage.name,
                "color": stage.color,
                "order": stage.order,
                "is_final": stage.is_final,
                "is_won": stage.is_won,
                "count": len(stage_leads),
                "total_value": sum(lead.estimated_value or 0 for lead in stage_leads),
                "leads": [lead_to_dict(lead) for lead in stage_leads],
            }
        )
    return pipeline


def lead_counts_by_sales_user(db: Session, sales_user_ids: list[UUID]) -> dict[UUID, int]:
    if not sales_user_ids:
        return {}
    rows = (
        db.query(Lead.sales_user_id, func.count(Lead.id))
        .filter(Lead.sales_user_id.in_(sales_user_ids))
        .group_by(Lead.sales_user_id)
        .all()
    )
    return {sales_user_id: count for sales_user_id, count in rows}
