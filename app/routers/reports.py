"""Reports router - interaction summaries and exports for admins and client users."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, resolve_org_scope
from app.core.rate_limit import EXPORT_LIMIT, limiter
from app.schemas.auth import UserSession
from app.services import audit_service, report_service

router = APIRouter()


def _range(start_date: date | None, end_date: date | None) -> report_service.ReportRange:
    try:
        return report_service.resolve_range(start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
def get_report(
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    report_type: str = Query("summary", alias="type"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Aggregate report over a date range (default: last 30 days)."""
    if report_type not in report_service.REPORT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid report type")
    org_filter = resolve_org_scope(db, session, organization_id, campaign_id)
    report_range = _range(start_date, end_date)
    return {
        "data": report_service.get_summary(
            db, report_range, organization_id=org_filter, campaign_id=campaign_id
        )
    }


@router.get("/export")
@limiter.limit(EXPORT_LIMIT)
def export_interactions(
    request: Request,  # Required by limiter
    organization_id: UUID | None = None,
    campaign_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    export_format: str = Query("csv", alias="format"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Download interactions as CSV (formula-escaped) or JSON."""
    if export_format not in report_service.EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail="Invalid format")
    org_filter = resolve_org_scope(db, session, organization_id, campaign_id)
    report_range = _range(start_date, end_date)

    audit_service.log(
        db, session.user_id, "export", "interaction", None,
        {
            "format": export_format,
            "organization_id": org_filter,
            "campaign_id": campaign_id,
            **report_range.to_dict(),
        },
        audit_service.get_client_ip(request),
    )
    db.commit()

    filename = report_service.export_filename(report_range, export_format)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if export_format == "json":
        payload = report_service.build_interactions_json(
            db, report_range, organization_id=org_filter, campaign_id=campaign_id
        )
        return Response(content=payload, media_type="application/json", headers=headers)
    return StreamingResponse(
        report_service.stream_interactions_csv(
            db, report_range, organization_id=org_filter, campaign_id=campaign_id
        ),
        media_type="text/csv",
        headers=headers,
    )
