"""Organizations router - client tenants (admin)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.core.rate_limit import SEARCH_LIMIT, limiter
from app.schemas.auth import UserSession
from app.schemas.campaign import OrganizationCreate, OrganizationResponse, OrganizationUpdate
from app.services import audit_service, organization_service
from app.utils.pagination import PaginationParams, get_pagination

router = APIRouter()


def _to_response(org, campaign_count: int = 0) -> OrganizationResponse:
    response = OrganizationResponse.model_validate(org)
    response.campaign_count = campaign_count
    return response


def _get_org_or_404(db: Session, org_id: UUID):
    org = organization_service.get_organization(db, org_id)
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


@router.get("")
@limiter.limit(SEARCH_LIMIT)
def list_organizations(
    request: Request,  # Required by limiter
    search: str | None = None,
    include_inactive: bool = False,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    orgs, total = organization_service.list_organizations(
        db, pagination, search=search, include_inactive=include_inactive
    )
    counts = organization_service.campaign_counts(db, [org.id for org in orgs])
    return {
        "data": [_to_response(org, counts.get(org.id, 0)) for org in orgs],
        "pagination": pagination.meta(total),
    }


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_organization(
    data: OrganizationCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    org = organization_service.create_organization(db, data)
    audit_service.log(
        db, session.user_id, "create", "organization", org.id,
        {"name": org.name}, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(org)
    return _to_response(org)


@router.get("/{org_id}", response_model=OrganizationResponse)
def get_organization(
    org_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    org = _get_org_or_404(db, org_id)
    counts = organization_service.campaign_counts(db, [org.id])
    return _to_response(org, counts.get(org.id, 0))


@router.patch(
    "/{org_id}",
    response_model=OrganizationResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_organization(
    org_id: UUID,
    data: OrganizationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    org = _get_org_or_404(db, org_id)
    changed = organization_service.update_organization(db, org, data)
    if changed:
        audit_service.log(
            db, session.user_id, "update", "organization", org.id,
            {"fields": changed}, audit_service.get_client_ip(request),
        )
    db.commit()
    db.refresh(org)
    counts = organization_service.campaign_counts(db, [org.id])
    return _to_response(org, counts.get(org.id, 0))


@router.delete("/{org_id}", dependencies=[Depends(require_csrf_header)])
def deactivate_organization(
    org_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    org = _get_org_or_404(db, org_id)
    organization_service.deactivate_organization(db, org)
    audit_service.log(
        db, session.user_id, "delete", "organization", org.id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}
