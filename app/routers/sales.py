"""Sales portal router - own leads, pipeline, commissions, stats, profile and enrollment.

Admins may observe the read-only endpoints; every mutation is sales only.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_csrf_header, require_sales_or_admin, require_sales_user
from app.core.rate_limit import SEARCH_LIMIT, WRITE_LIMIT, limiter
from app.schemas.auth import UserSession
from app.schemas.sales import (
    ActivityCreate,
    ActivityRead,
    CommissionRead,
    CommissionStats,
    EnrollRequest,
    LeadCreate,
    LeadDetail,
    LeadRead,
    LeadUpdate,
    SalesProfileRead,
    SalesProfileUpdate,
    StageRead,
)
from app.services import (
    audit_service,
    commission_service,
    enrollment_service,
    lead_service,
    sales_stats_service,
    sales_team_service,
)
from app.utils.pagination import clamp_pagination

router = APIRouter()


def _get_own_lead(db: Session, lead_id: UUID, session: UserSession):
    # Admin observers have no sales profile, so sales_user_id None means unscoped
    lead = lead_service.get_lead(db, lead_id, sales_user_id=session.sales_user_id)
    if not lead or (not session.is_admin and lead.sales_user_id != session.sales_user_id):
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


def _detail(db: Session, lead) -> LeadDetail:
    activities = [ActivityRead.model_validate(a) for a in lead_service.list_activities(db, lead)]
    return LeadDetail(**lead_service.lead_to_dict(lead), activities=activities)


# ============================================================================
# Leads
# ============================================================================

@router.get("/leads")
@limiter.limit(SEARCH_LIMIT)
def list_leads(
    request: Request,  # Required by limiter
    search: str | None = None,
    stage_id: str | None = None,
    status: str | None = None,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    if stage_id and stage_id != lead_service.UNASSIGNED_STAGE:
        try:
            stage_id = UUID(stage_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid stage_id")

    pagination = clamp_pagination(page, limit)
    leads, total = lead_service.list_leads(
        db,
        pagination,
        sales_user_id=session.sales_user_id,
        search=search,
        stage_id=stage_id,
        status=status,
    )
    return {
        "data": [LeadRead(**lead_service.lead_to_dict(lead)) for lead in leads],
        "pagination": pagination.meta(total),
    }


@router.post(
    "/leads",
    response_model=LeadRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_lead(
    data: LeadCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    lead = lead_service.create_lead(db, session.sales_user_id, data, session.user_id)
    audit_service.log(
        db, session.user_id, "create", "lead", lead.id,
        {"name": f"{lead.first_name} {lead.last_name}"},
        audit_service.get_client_ip(request),
    )
    db.commit()
    lead = lead_service.get_lead(db, lead.id)
    return lead_service.lead_to_dict(lead)


@router.get("/leads/{lead_id}", response_model=LeadDetail)
def get_lead(
    lead_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return _detail(db, _get_own_lead(db, lead_id, session))


@router.put(
    "/leads/{lead_id}",
    response_model=LeadDetail,
    dependencies=[Depends(require_csrf_header)],
)
def update_lead(
    lead_id: UUID,
    data: LeadUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    lead = _get_own_lead(db, lead_id, session)
    try:
        lead_service.update_lead(
            db, lead, data, user_id=session.user_id, user_type=lead_service.USER_TYPE_SALES
        )
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "update", "lead", lead.id,
        {"fields": sorted(data.model_dump(exclude_unset=True))},
        audit_service.get_client_ip(request),
    )
    db.commit()
    return _detail(db, _get_own_lead(db, lead_id, session))


@router.delete("/leads/{lead_id}", dependencies=[Depends(require_csrf_header)])
def delete_lead(
    lead_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    lead = _get_own_lead(db, lead_id, session)
    lead_service.delete_lead(db, lead)
    audit_service.log(
        db, session.user_id, "delete", "lead", lead_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}


@router.get("/leads/{lead_id}/activities", response_model=list[ActivityRead])
def list_activities(
    lead_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    lead = _get_own_lead(db, lead_id, session)
    return [ActivityRead.model_validate(a) for a in lead_service.list_activities(db, lead)]


@router.post(
    "/leads/{lead_id}/activities",
    response_model=ActivityRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_activity(
    lead_id: UUID,
    data: ActivityCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    lead = _get_own_lead(db, lead_id, session)
    activity = lead_service.add_activity(
        db,
        lead,
        user_id=session.user_id,
        user_type=lead_service.USER_TYPE_SALES,
        activity_type=data.activity_type,
        title=data.title,
        description=data.description,
        metadata=data.metadata,
    )
    db.commit()
    db.refresh(activity)
    return ActivityRead.model_validate(activity)


# ============================================================================
# Stages & pipeline
# ============================================================================

@router.get("/stages", response_model=list[StageRead])
def list_stages(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return lead_service.list_stages(db)


@router.get("/pipeline")
def get_pipeline(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return {"stages": lead_service.get_pipeline(db, sales_user_id=session.sales_user_id)}


# ============================================================================
# Dashboard and performance
# ============================================================================

@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return sales_stats_service.get_dashboard(db, session.sales_user_id)


@router.get("/performance")
def get_performance(
    sales_user_id: UUID | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    """
    Performance over month, quarter and year.

    Admin observers see the whole team or one member via ``sales_user_id``;
    sales users always get their own numbers.
    """
    if session.is_admin:
        return sales_stats_service.get_performance(db, sales_user_id, is_observer=True)
    return sales_stats_service.get_performance(db, session.sales_user_id)


# ============================================================================
# Own profile
# ============================================================================

def _own_profile(db: Session, session: UserSession):
    profile = sales_team_service.get_sales_user(db, session.sales_user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Sales profile not found")
    return profile


@router.get("/profile")
def get_profile(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    profile = _own_profile(db, session)
    return {
        "profile": SalesProfileRead.model_validate(profile),
        "stats": sales_stats_service.get_profile_stats(db, profile.id),
    }


@router.put(
    "/profile",
    response_model=SalesProfileRead,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(WRITE_LIMIT)
def update_profile(
    request: Request,  # Required by limiter
    data: SalesProfileUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    """Sales users edit their name, phone and bio. Rate and notes stay admin-only."""
    profile = _own_profile(db, session)
    changed = sales_team_service.update_sales_user(db, profile, data)
    if changed:
        audit_service.log(
            db, session.user_id, "update", "sales_user", profile.id,
            {"fields": changed}, audit_service.get_client_ip(request),
        )
    db.commit()
    db.refresh(profile)
    return profile


# ============================================================================
# Commissions
# ============================================================================

@router.get("/commissions")
def list_my_commissions(
    status: str | None = None,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    pagination = clamp_pagination(page, limit)
    commissions, total = commission_service.list_commissions(
        db, pagination, sales_user_id=session.sales_user_id, status=status
    )
    return {
        "data": [CommissionRead(**commission_service.commission_to_dict(c)) for c in commissions],
        "pagination": pagination.meta(total),
        "stats": CommissionStats(
            **commission_service.get_stats(db, sales_user_id=session.sales_user_id)
        ),
    }


# ============================================================================
# Nurture campaigns
# ============================================================================

@router.get("/campaigns")
def list_nurture_campaigns(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return {"data": enrollment_service.list_campaigns_for_sales(db, session.sales_user_id)}


@router.post("/campaigns/{campaign_id}/enroll", dependencies=[Depends(require_csrf_header)])
def enroll_leads(
    campaign_id: UUID,
    data: EnrollRequest,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_user),
):
    try:
        result = enrollment_service.enroll_leads(
            db,
            campaign_id=campaign_id,
            sales_user_id=session.sales_user_id,
            user_id=session.user_id,
            lead_ids=data.lead_ids,
            notes=data.notes,
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "enroll", "campaign", campaign_id,
        {"enrolled_count": result["enrolled_count"]},
        audit_service.get_client_ip(request),
    )
    db.commit()
    return result
