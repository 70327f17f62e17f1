"""Sales portal statistics: personal dashboard and performance over time.

``sales_user_id=None`` means the whole team (admin observers).
All money is in cents; rates and growth are percentages.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from app.db.enums import CommissionStatus, LeadStatus
from app.db.models import Commission, Lead, SalesUser
from app.services.commission_service import commission_to_dict
from app.services.lead_service import lead_to_dict

RECENT_LIMIT = 5
FOLLOW_UP_WINDOW_DAYS = 7
BREAKDOWN_MONTHS = 6

EARNED_STATUSES = (CommissionStatus.APPROVED.value, CommissionStatus.PAID.value)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _shift_months(start: datetime, months: int) -> datetime:
    index = start.year * 12 + start.month - 1 + months
    return start.replace(year=index // 12, month=index % 12 + 1, day=1)


def _quarter_start(moment: datetime) -> datetime:
    month_start = _month_start(moment)
    return month_start.replace(month=(month_start.month - 1) // 3 * 3 + 1)


def growth_percent(current: int, previous: int) -> float:
    """Change versus the previous period; 100 when starting from zero."""
    if previous:
        return round((current - previous) * 100 / previous, 1)
    return 100.0 if current else 0.0


def conversion_rate(won: int, total: int) -> float:
    return round(won * 100 / total, 1) if total else 0.0


def _leads(db: Session, sales_user_id: UUID | None) -> Query:
    query = db.query(Lead)
    if sales_user_id:
        query = query.filter(Lead.sales_user_id == sales_user_id)
    return query


def _commissions(db: Session, sales_user_id: UUID | None, *, exclude_cancelled: bool = True) -> Query:
    query = db.query(Commission)
    if sales_user_id:
        query = query.filter(Commission.sales_user_id == sales_user_id)
    if exclude_cancelled:
        query = query.filter(Commission.status != CommissionStatus.CANCELLED.value)
    return query


def _commission_totals(query: Query) -> tuple[int, int, int]:
    """(commission total, sale total, count)"""
    commissions, sales, count = query.with_entities(
        func.coalesce(func.sum(Commission.commission_amount), 0),
        func.coalesce(func.sum(Commission.sale_amount), 0),
        func.count(Commission.id),
    ).one()
    return int(commissions), int(sales), count


# =============================================================================
# Dashboard
# =============================================================================

def get_dashboard(db: Session, sales_user_id: UUID | None, *, now: datetime | None = None) -> dict:
    """Headline numbers plus the latest leads, follow-ups and commissions."""
    now = now or datetime.now(timezone.utc)
    month_start = _month_start(now)
    leads = _leads(db, sales_user_id)

    total_leads = leads.count()
    won_leads = leads.filter(Lead.status == LeadStatus.WON.value).count()
    upcoming = leads.filter(
        Lead.next_follow_up_at.is_not(None),
        Lead.next_follow_up_at >= now,
    )

    sums = dict(
        _commissions(db, sales_user_id, exclude_cancelled=False)
        .with_entities(Commission.status, func.coalesce(func.sum(Commission.commission_amount), 0))
        .group_by(Commission.status)
        .all()
    )

    with_relations = (joinedload(Lead.stage), joinedload(Lead.sales_user))
    recent_leads = (
        leads.options(*with_relations)
        .order_by(Lead.created_at.desc(), Lead.id)
        .limit(RECENT_LIMIT)
        .all()
    )
    follow_ups = (
        upcoming.options(*with_relations)
        .order_by(Lead.next_follow_up_at, Lead.id)
        .limit(RECENT_LIMIT)
        .all()
    )
    recent_commissions = (
        _commissions(db, sales_user_id, exclude_cancelled=False)
        .options(joinedload(Commission.lead), joinedload(Commission.sales_user))
        .order_by(Commission.created_at.desc(), Commission.id)
        .limit(RECENT_LIMIT)
        .all()
    )

    return {
        "stats": {
            "total_leads": total_leads,
            "new_leads_this_month": leads.filter(Lead.created_at >= month_start).count(),
            "won_leads": won_leads,
            "conversion_rate": conversion_rate(won_leads, total_leads),
            "pending_commissions": int(sums.get(CommissionStatus.PENDING.value, 0)),
            "paid_commissions": int(sums.get(CommissionStatus.PAID.value, 0)),
            "total_earnings": sum(int(sums.get(status, 0)) for status in EARNED_STATUSES),
            "upcoming_follow_ups": upcoming.filter(
                Lead.next_follow_up_at <= now + timedelta(days=FOLLOW_UP_WINDOW_DAYS)
            ).count(),
        },
        "recent_leads": [lead_to_dict(lead) for lead in recent_leads],
        "upcoming_follow_ups": [lead_to_dict(lead) for lead in follow_ups],
        "recent_commissions": [commission_to_dict(c) for c in recent_commissions],
    }


def get_profile_stats(db: Session, sales_user_id: UUID) -> dict:
    """Lifetime totals shown on a sales user's own profile."""
    leads = _leads(db, sales_user_id)
    total_leads = leads.count()
    won_leads = leads.filter(Lead.status == LeadStatus.WON.value).count()
    total_earnings, _, _ = _commission_totals(_commissions(db, sales_user_id))
    paid_amount, _, _ = _commission_totals(
        _commissions(db, sales_user_id).filter(Commission.status == CommissionStatus.PAID.value)
    )
    return {
        "total_leads": total_leads,
        "won_leads": won_leads,
        "conversion_rate": conversion_rate(won_leads, total_leads),
        "total_earnings": total_earnings,
        "paid_amount": paid_amount,
    }


# =============================================================================
# Performance
# =============================================================================

def _monthly_buckets(rows, months: list[str]) -> dict[str, int]:
    buckets = dict.fromkeys(months, 0)
    for created_at, amount in rows:
        key = created_at.strftime("%Y-%m")
        if key in buckets:
            buckets[key] += amount
    return buckets


def get_performance(
    db: Session,
    sales_user_id: UUID | None,
    *,
    is_observer: bool = False,
    now: datetime | None = None,
) -> dict:
    """
    Month, quarter and year totals with growth against last month.

    Breakdowns cover the last BREAKDOWN_MONTHS calendar months including
    the current one, with empty months reported as zero.
    """
    now = now or datetime.now(timezone.utc)
    month_start = _month_start(now)
    last_month_start = _shift_months(month_start, -1)
    quarter_start = _quarter_start(now)
    year_start = month_start.replace(month=1)
    breakdown_start = _shift_months(month_start, -(BREAKDOWN_MONTHS - 1))

    leads = _leads(db, sales_user_id)
    commissions = _commissions(db, sales_user_id)

    month_leads = leads.filter(Lead.created_at >= month_start).count()
    last_month_leads = leads.filter(
        Lead.created_at >= last_month_start, Lead.created_at < month_start
    ).count()
    month_commissions, _, month_conversions = _commission_totals(
        commissions.filter(Commission.created_at >= month_start)
    )
    last_month_commissions, _, _ = _commission_totals(
        commissions.filter(
            Commission.created_at >= last_month_start, Commission.created_at < month_start
        )
    )

    quarter = commissions.filter(Commission.created_at >= quarter_start)
    quarter_commissions, quarter_sales, _ = _commission_totals(quarter)
    quarter_conversions = (
        quarter.filter(Commission.lead_id.is_not(None))
        .with_entities(func.count(func.distinct(Commission.lead_id)))
        .scalar()
    )

    year_leads = leads.filter(Lead.created_at >= year_start)
    year_commissions, year_sales, _ = _commission_totals(
        commissions.filter(Commission.created_at >= year_start)
    )

    months = [
        _shift_months(breakdown_start, offset).strftime("%Y-%m") for offset in range(BREAKDOWN_MONTHS)
    ]
    lead_dates = leads.filter(Lead.created_at >= breakdown_start).with_entities(Lead.created_at).all()
    lead_months = _monthly_buckets([(created_at, 1) for (created_at,) in lead_dates], months)
    commission_months = _monthly_buckets(
        commissions.filter(Commission.created_at >= breakdown_start)
        .with_entities(Commission.created_at, Commission.commission_amount),
        months,
    )

    total_leads = leads.count()
    won_leads = leads.filter(Lead.status == LeadStatus.WON.value).count()
    by_status = dict(
        leads.with_entities(Lead.status, func.count(Lead.id)).group_by(Lead.status).all()
    )

    team = []
    if is_observer:
        team = [
            {"id": user.id, "name": user.full_name}
            for user in db.query(SalesUser)
            .filter(SalesUser.is_active.is_(True))
            .order_by(SalesUser.full_name)
        ]

    return {
        "monthly": {
            "leads": month_leads,
            "leads_growth": growth_percent(month_leads, last_month_leads),
            "commissions": month_commissions,
            "commissions_growth": growth_percent(month_commissions, last_month_commissions),
            "conversions": month_conversions,
        },
        "quarterly": {
            "leads": leads.filter(Lead.created_at >= quarter_start).count(),
            "commissions": quarter_commissions,
            "sales": quarter_sales,
            "conversions": quarter_conversions or 0,
        },
        "yearly": {
            "leads": year_leads.count(),
            "won": year_leads.filter(Lead.status == LeadStatus.WON.value).count(),
            "commissions": year_commissions,
            "sales": year_sales,
        },
        "conversion_rate": conversion_rate(won_leads, total_leads),
        "monthly_breakdown": [{"month": month, "leads": lead_months[month]} for month in months],
        "commission_breakdown": [
            {"month": month, "total": commission_months[month]} for month in months
        ],
        "leads_by_status": by_status,
        "is_observer": is_observer,
        "sales_users": team,
        "filter_sales_user_id": sales_user_id if is_observer else None,
    }
