"""Commission service - amounts, lifecycle and totals. All money is in cents."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.db.enums import CommissionStatus
from app.db.models import Commission, Lead, SalesUser
from app.schemas.sales import CommissionCreate, CommissionUpdate
from app.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)


def calculate_commission_amount(sale_amount_cents: int, rate_percent: int | float) -> int:
    """sale * rate / 100, rounded half up to a whole cent."""
    amount = Decimal(sale_amount_cents) * Decimal(str(rate_percent)) / Decimal(100)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def commission_to_dict(commission: Commission) -> dict:
    lead = commission.lead
    return {
        "id": commission.id,
        "sales_user_id": commission.sales_user_id,
        "sales_user_name": commission.sales_user.full_name if commission.sales_user else None,
        "lead_id": commission.lead_id,
        "lead_name": f"{lead.first_name} {lead.last_name}" if lead else None,
        "organization_id": commission.organization_id,
        "sale_amount": commission.sale_amount,
        "commission_rate": commission.commission_rate,
        "commission_amount": commission.commission_amount,
        "status": commission.status,
        "approved_at": commission.approved_at,
        "approved_by": commission.approved_by,
        "paid_at": commission.paid_at,
        "payment_method": commission.payment_method,
        "payment_reference": commission.payment_reference,
        "notes": commission.notes,
        "created_at": commission.created_at,
    }


def _filtered(
    db: Session,
    *,
    sales_user_id: UUID | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
):
    query = db.query(Commission)
    if sales_user_id:
        query = query.filter(Commission.sales_user_id == sales_user_id)
    if status:
        query = query.filter(Commission.status == status)
    if start_date:
        query = query.filter(
            Commission.created_at >= datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        )
    if end_date:
        end = datetime.combine(end_date, time.min, tzinfo=timezone.utc) + timedelta(days=1)
        query = query.filter(Commission.created_at < end)
    return query


def list_commissions(
    db: Session,
    pagination: PaginationParams,
    *,
    sales_user_id: UUID | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[Commission], int]:
    query = _filtered(
        db, sales_user_id=sales_user_id, status=status, start_date=start_date, end_date=end_date
    ).options(joinedload(Commission.sales_user), joinedload(Commission.lead))
    query = query.order_by(Commission.created_at.desc(), Commission.id)
    return paginate_query(query, pagination)


def get_stats(db: Session, sales_user_id: UUID | None = None) -> dict:
    """Totals per status; total_all excludes cancelled."""
    rows = (
        _filtered(db, sales_user_id=sales_user_id)
        .with_entities(
            Commission.status,
            func.coalesce(func.sum(Commission.commission_amount), 0),
            func.count(Commission.id),
        )
        .group_by(Commission.status)
        .all()
    )
    sums = {status: int(total) for status, total, _ in rows}
    counts = {status: count for status, _, count in rows}
    return {
        "total_pending": sums.get(CommissionStatus.PENDING.value, 0),
        "total_approved": sums.get(CommissionStatus.APPROVED.value, 0),
        "total_paid": sums.get(CommissionStatus.PAID.value, 0),
        "total_all": sum(
            total for status, total in sums.items() if status != CommissionStatus.CANCELLED.value
        ),
        "count_pending": counts.get(CommissionStatus.PENDING.value, 0),
        "count_approved": counts.get(CommissionStatus.APPROVED.value, 0),
    }


def get_commission(db: Session, commission_id: UUID) -> Commission | None:
    return (
        db.query(Commission)
        .options(joinedload(Commission.sales_user), joinedload(Commission.lead))
        .filter(Commission.id == commission_id)
        .first()
    )


def _apply_status(commission: Commission, status: str, user_id: UUID | None, now: datetime) -> None:
    if status == CommissionStatus.APPROVED.value and commission.status != status:
        commission.approved_at = now
        commission.approved_by = user_id
    if status == CommissionStatus.PAID.value and commission.status != status:
        commission.paid_at = now
        if commission.approved_at is None:
            commission.approved_at = now
            commission.approved_by = user_id
    commission.status = status


def create_commission(db: Session, data: CommissionCreate, user_id: UUID | None) -> Commission:
    """
    Raises:
        LookupError: unknown sales user or lead
    """
    sales_user = db.query(SalesUser).filter(SalesUser.id == data.sales_user_id).first()
    if not sales_user:
        raise LookupError("Sales user not found")
    organization_id = data.organization_id
    if data.lead_id:
        lead = db.query(Lead).filter(Lead.id == data.lead_id).first()
        if not lead:
            raise LookupError("Lead not found")
        organization_id = organization_id or lead.converted_to_org_id

    rate = data.commission_rate if data.commission_rate is not None else sales_user.commission_rate
    commission = Commission(
        sales_user_id=sales_user.id,
        lead_id=data.lead_id,
        organization_id=organization_id,
        sale_amount=data.sale_amount,
        commission_rate=rate,
        commission_amount=calculate_commission_amount(data.sale_amount, rate),
        status=CommissionStatus.PENDING.value,
        notes=data.notes,
    )
    _apply_status(commission, data.status, user_id, datetime.now(timezone.utc))
    db.add(commission)
    db.flush()
    logger.info("Commission created", extra={"commission_id": str(commission.id)})
    return commission


def update_commission(
    db: Session,
    commission: Commission,
    data: CommissionUpdate,
    user_id: UUID | None,
) -> Commission:
    changes = data.model_dump(exclude_unset=True)
    status = changes.pop("status", None)
    for field_name in ("notes", "payment_method", "payment_reference"):
        if field_name in changes:
            setattr(commission, field_name, changes[field_name])
    if status is not None:
        status_value = status.value if hasattr(status, "value") else status
        _apply_status(commission, status_value, user_id, datetime.now(timezone.utc))
    db.flush()
    return commission


def commission_counts_by_sales_user(db: Session, sales_user_ids: list[UUID]) -> dict[UUID, int]:
    if not sales_user_ids:
        return {}
    rows = (
        db.query(Commission.sales_user_id, func.count(Commission.id))
        .filter(Commission.sales_user_id.in_(sales_user_ids))
        .group_by(Commission.sales_user_id)
        .all()
    )
    return {sales_user_id: count for sales_user_id, count in rows}
