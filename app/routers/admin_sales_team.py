"""Admin sales team router - sales users and their commission rates."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.sales import SalesUserCreate, SalesUserRead, SalesUserUpdate
from app.services import audit_service, commission_service, lead_service, sales_team_service

router = APIRouter()


def _get_profile_or_404(db: Session, sales_user_id: UUID):
    profile = sales_team_service.get_sales_user(db, sales_user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Sales user not found")
    return profile


def _read(db: Session, profile) -> SalesUserRead:
    lead_counts = lead_service.lead_counts_by_sales_user(db, [profile.id])
    commission_counts = commission_service.commission_counts_by_sales_user(db, [profile.id])
    return SalesUserRead(
        **sales_team_service.sales_user_to_dict(
            profile,
            lead_count=lead_counts.get(profile.id, 0),
            commission_count=commission_counts.get(profile.id, 0),
        )
    )


@router.get("", response_model=list[SalesUserRead])
def list_sales_team(
    include_inactive: bool = True,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return sales_team_service.list_sales_users(db, include_inactive=include_inactive)


@router.post(
    "",
    response_model=SalesUserRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_sales_user(
    data: SalesUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        profile = sales_team_service.create_sales_user(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "create", "sales_user", profile.id,
        {"email": profile.email, "commission_rate": profile.commission_rate},
        audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(profile)
    return _read(db, profile)


@router.get("/{sales_user_id}", response_model=SalesUserRead)
def get_sales_user(
    sales_user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return _read(db, _get_profile_or_404(db, sales_user_id))


@router.put(
    "/{sales_user_id}",
    response_model=SalesUserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_sales_user(
    sales_user_id: UUID,
    data: SalesUserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    profile = _get_profile_or_404(db, sales_user_id)
    changed = sales_team_service.update_sales_user(db, profile, data)
    if changed:
        audit_service.log(
            db, session.user_id, "update", "sales_user", profile.id,
            {"fields": changed}, audit_service.get_client_ip(request),
        )
    db.commit()
    db.refresh(profile)
    return _read(db, profile)


@router.delete("/{sales_user_id}", dependencies=[Depends(require_csrf_header)])
def deactivate_sales_user(
    sales_user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    profile = _get_profile_or_404(db, sales_user_id)
    sales_team_service.deactivate_sales_user(db, profile)
    audit_service.log(
        db, session.user_id, "deactivate", "sales_user", profile.id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}
