"""Interaction reports: summary aggregates and CSV/JSON exports."""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Iterator, Sequence
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from app.core.config import settings
from app.db.enums import CallStatus, SmsStatus, SourceType
from app.db.models import Campaign, Interaction, SmsLog
from app.services.interaction_service import day_start

REPORT_TYPES = ("summary",)
EXPORT_FORMATS = ("csv", "json")

CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

EXPORT_HEADERS = [
    "id",
    "created_at",
    "organization",
    "campaign",
    "source_type",
    "source_platform",
    "phone_number",
    "call_status",
    "duration_seconds",
    "ai_summary",
    "flagged",
    "tags",
]


@dataclass(frozen=True)
class ReportRange:
    """Inclusive calendar-day range; ``end_exclusive`` is the day after ``end_date``."""
    start_date: date
    end_date: date

    @property
    def start(self) -> datetime:
        return day_start(self.start_date)

    @property
    def end_exclusive(self) -> datetime:
        return day_start(self.end_date) + timedelta(days=1)

    def to_dict(self) -> dict:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}


def resolve_range(start_date: date | None, end_date: date | None, *, today: date | None = None) -> ReportRange:
    """
    Defaults to the last REPORT_DEFAULT_DAYS days ending today.

    Raises:
        ValueError: start_date after end_date
    """
    end = end_date or today or datetime.now(timezone.utc).date()
    start = start_date or end - timedelta(days=settings.REPORT_DEFAULT_DAYS)
    if start > end:
        raise ValueError("start_date must be on or before end_date")
    return ReportRange(start, end)


def _apply_scope(
    query: Query,
    report_range: ReportRange,
    *,
    organization_id: UUID | None,
    campaign_id: UUID | None,
) -> Query:
    # Expects Interaction and Campaign already in the FROM clause
    query = query.filter(
        Interaction.created_at >= report_range.start,
        Interaction.created_at < report_range.end_exclusive,
    )
    if organization_id:
        query = query.filter(Campaign.organization_id == organization_id)
    if campaign_id:
        query = query.filter(Interaction.campaign_id == campaign_id)
    return query


def _scoped_interactions(
    db: Session,
    report_range: ReportRange,
    *,
    organization_id: UUID | None,
    campaign_id: UUID | None,
) -> Query:
    query = db.query(Interaction).join(Campaign, Interaction.campaign_id == Campaign.id)
    return _apply_scope(
        query, report_range, organization_id=organization_id, campaign_id=campaign_id
    )


def _count_by(query: Query, column) -> dict[str, int]:
    rows = query.with_entities(column, func.count(Interaction.id)).group_by(column).all()
    return {value or "unknown": count for value, count in rows}


def get_summary(
    db: Session,
    report_range: ReportRange,
    *,
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
) -> dict:
    """
    Aggregate interaction and SMS activity for a date range.

    SMS counts cover messages sent for the interactions in scope.
    Rates are whole percentages; averages are whole seconds.
    """
    scoped = _scoped_interactions(
        db, report_range, organization_id=organization_id, campaign_id=campaign_id
    )

    total, total_duration = scoped.with_entities(
        func.count(Interaction.id),
        func.coalesce(func.sum(Interaction.duration_seconds), 0),
    ).one()
    total_calls = scoped.filter(Interaction.source_type == SourceType.PHONE.value).count()
    completed_calls = scoped.filter(
        Interaction.source_type == SourceType.PHONE.value,
        Interaction.call_status == CallStatus.COMPLETED.value,
    ).count()

    day = func.date(Interaction.created_at)
    trend_rows = (
        scoped.with_entities(day.label("day"), func.count(Interaction.id))
        .group_by(day)
        .order_by(day)
        .all()
    )

    sms_query = (
        db.query(SmsLog.status, func.count(SmsLog.id))
        .join(Interaction, SmsLog.interaction_id == Interaction.id)
        .join(Campaign, Interaction.campaign_id == Campaign.id)
    )
    sms_statuses = dict(
        _apply_scope(
            sms_query, report_range, organization_id=organization_id, campaign_id=campaign_id
        )
        .group_by(SmsLog.status)
        .all()
    )

    return {
        "summary": {
            "total_interactions": total,
            "total_calls": total_calls,
            "completed_calls": completed_calls,
            "completion_rate": round(completed_calls * 100 / total_calls) if total_calls else 0,
            "total_duration_seconds": int(total_duration),
            "avg_duration_seconds": round(int(total_duration) / total) if total else 0,
            "sms_total": sum(sms_statuses.values()),
            "sms_delivered": sms_statuses.get(SmsStatus.DELIVERED.value, 0),
            "sms_failed": sms_statuses.get(SmsStatus.FAILED.value, 0),
        },
        "status_breakdown": _count_by(scoped, Interaction.call_status),
        "source_breakdown": _count_by(scoped, Interaction.source_type),
        # date() is a string on SQLite and a date on Postgres
        "daily_trend": [{"date": str(value), "count": count} for value, count in trend_rows],
        "date_range": report_range.to_dict(),
    }


# =============================================================================
# Exports
# =============================================================================

def _csv_safe(value: str) -> str:
    # Spreadsheet apps evaluate cells starting with these as formulas
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def _write_csv_row(values: Sequence[Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in values])
    return output.getvalue()


def _export_rows(
    db: Session,
    report_range: ReportRange,
    *,
    organization_id: UUID | None,
    campaign_id: UUID | None,
) -> Iterable[Interaction]:
    query = (
        _scoped_interactions(
            db, report_range, organization_id=organization_id, campaign_id=campaign_id
        )
        .options(joinedload(Interaction.campaign).joinedload(Campaign.organization))
        .order_by(Interaction.created_at.desc(), Interaction.id)
        .limit(settings.REPORT_EXPORT_MAX_ROWS)
    )
    return query.all()


def _export_values(interaction: Interaction) -> list[Any]:
    campaign = interaction.campaign
    organization = campaign.organization if campaign else None
    return [
        interaction.id,
        interaction.created_at,
        organization.name if organization else None,
        campaign.name if campaign else None,
        interaction.source_type,
        interaction.source_platform,
        interaction.phone_number,
        interaction.call_status,
        interaction.duration_seconds,
        interaction.ai_summary,
        bool(interaction.flagged),
        interaction.tags or [],
    ]


def stream_interactions_csv(
    db: Session,
    report_range: ReportRange,
    *,
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
) -> Iterator[str]:
    """
    CSV lines, newest first, capped at REPORT_EXPORT_MAX_ROWS.

    Rows are loaded before the first line is yielded, so the session may
    close while the response streams.
    """
    rows = [
        _export_values(interaction)
        for interaction in _export_rows(
            db, report_range, organization_id=organization_id, campaign_id=campaign_id
        )
    ]
    return _csv_lines(rows)


def _csv_lines(rows: Iterable[Sequence[Any]]) -> Iterator[str]:
    yield _write_csv_row(EXPORT_HEADERS)
    for values in rows:
        yield _write_csv_row(values)


def build_interactions_json(
    db: Session,
    report_range: ReportRange,
    *,
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
) -> str:
    rows = _export_rows(db, report_range, organization_id=organization_id, campaign_id=campaign_id)
    data = [dict(zip(EXPORT_HEADERS, _export_values(interaction))) for interaction in rows]
    return json.dumps(data, indent=2, default=str)


def export_filename(report_range: ReportRange, export_format: str) -> str:
    return (
        f"interactions_export_{report_range.start_date.isoformat()}"
        f"_to_{report_range.end_date.isoformat()}.{export_format}"
    )
