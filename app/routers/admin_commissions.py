"""Admin commissions router - record, approve and pay out commissions."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.sales import CommissionCreate, CommissionRead, CommissionStats, CommissionUpdate
from app.services import audit_service, commission_service
from app.utils.pagination import clamp_pagination

router = APIRouter()


@router.get("")
def list_commissions(
    status: str | None = None,
    sales_user_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    pagination = clamp_pagination(page, limit)
    commissions, total = commission_service.list_commissions(
        db,
        pagination,
        sales_user_id=sales_user_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return {
        "data": [CommissionRead(**commission_service.commission_to_dict(c)) for c in commissions],
        "pagination": pagination.meta(total),
        "stats": CommissionStats(**commission_service.get_stats(db)),
    }


@router.post(
    "",
    response_model=CommissionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_commission(
    data: CommissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        commission = commission_service.create_commission(db, data, session.user_id)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "create", "commission", commission.id,
        {
            "sales_user_id": commission.sales_user_id,
            "sale_amount": commission.sale_amount,
            "commission_amount": commission.commission_amount,
        },
        audit_service.get_client_ip(request),
    )
    db.commit()
    commission = commission_service.get_commission(db, commission.id)
    return commission_service.commission_to_dict(commission)


@router.put(
    "/{commission_id}",
    response_model=CommissionRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_commission(
    commission_id: UUID,
    data: CommissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    commission = commission_service.get_commission(db, commission_id)
    if not commission:
        raise HTTPException(status_code=404, detail="Commission not found")
    old_status = commission.status
    commission_service.update_commission(db, commission, data, session.user_id)
    audit_service.log(
        db, session.user_id, "update", "commission", commission.id,
        {"from_status": old_status, "to_status": commission.status},
        audit_service.get_client_ip(request),
    )
    db.commit()
    commission = commission_service.get_commission(db, commission_id)
    return commission_service.commission_to_dict(commission)
