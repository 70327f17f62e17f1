"""Admin leads router - every sales user's leads."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.core.rate_limit import SEARCH_LIMIT, limiter
from app.schemas.auth import UserSession
from app.schemas.sales import ActivityRead, AdminLeadUpdate, LeadDetail, LeadRead
from app.services import audit_service, lead_service
from app.utils.pagination import clamp_pagination

router = APIRouter()


def _get_lead_or_404(db: Session, lead_id: UUID):
    lead = lead_service.get_lead(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


def _detail(db: Session, lead) -> LeadDetail:
    activities = [ActivityRead.model_validate(a) for a in lead_service.list_activities(db, lead)]
    return LeadDetail(**lead_service.lead_to_dict(lead), activities=activities)


@router.get("")
@limiter.limit(SEARCH_LIMIT)
def list_leads(
    request: Request,  # Required by limiter
    search: str | None = None,
    sales_user_id: UUID | None = None,
    stage_id: str | None = None,
    status: str | None = None,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
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
        sales_user_id=sales_user_id,
        search=search,
        stage_id=stage_id,
        status=status,
    )
    return {
        "data": [LeadRead(**lead_service.lead_to_dict(lead)) for lead in leads],
        "pagination": pagination.meta(total),
    }


@router.get("/{lead_id}", response_model=LeadDetail)
def get_lead(
    lead_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return _detail(db, _get_lead_or_404(db, lead_id))


@router.put("/{lead_id}", response_model=LeadDetail, dependencies=[Depends(require_csrf_header)])
def update_lead(
    lead_id: UUID,
    data: AdminLeadUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    lead = _get_lead_or_404(db, lead_id)
    try:
        lead_service.update_lead(
            db, lead, data, user_id=session.user_id, user_type=lead_service.USER_TYPE_ADMIN
        )
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "update", "lead", lead.id,
        {"fields": sorted(data.model_dump(exclude_unset=True))},
        audit_service.get_client_ip(request),
    )
    db.commit()
    return _detail(db, _get_lead_or_404(db, lead_id))


@router.delete("/{lead_id}", dependencies=[Depends(require_csrf_header)])
def delete_lead(
    lead_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    lead = _get_lead_or_404(db, lead_id)
    lead_service.delete_lead(db, lead)
    audit_service.log(
        db, session.user_id, "delete", "lead", lead_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}
