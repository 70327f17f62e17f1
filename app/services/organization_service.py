"""Organization service - client tenant CRUD."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import Campaign, Organization
from app.schemas.campaign import OrganizationCreate, OrganizationUpdate
from app.utils.normalization import normalize_email, sanitize_search_input
from app.utils.pagination import PaginationParams, paginate_query


def get_organization(db: Session, org_id: UUID) -> Organization | None:
    """Get organization by ID."""
    return db.query(Organization).filter(Organization.id == org_id).first()


def list_organizations(
    db: Session,
    pagination: PaginationParams,
    *,
    search: str | None = None,
    include_inactive: bool = False,
) -> tuple[list[Organization], int]:
    query = db.query(Organization)
    if not include_inactive:
        query = query.filter(Organization.is_active.is_(True))
    term = sanitize_search_input(search)
    if term:
        query = query.filter(Organization.name.ilike(f"%{term}%"))
    query = query.order_by(Organization.name, Organization.id)
    return paginate_query(query, pagination)


def campaign_counts(db: Session, org_ids: list[UUID]) -> dict[UUID, int]:
    if not org_ids:
        return {}
    rows = (
        db.query(Campaign.organization_id, func.count(Campaign.id))
        .filter(Campaign.organization_id.in_(org_ids))
        .group_by(Campaign.organization_id)
        .all()
    )
    return {org_id: count for org_id, count in rows}


def create_organization(db: Session, data: OrganizationCreate) -> Organization:
    org = Organization(
        name=data.name,
        contact_email=normalize_email(data.contact_email),
        phone=data.phone,
        address=data.address,
    )
    db.add(org)
    db.flush()
    return org


def update_organization(db: Session, org: Organization, data: OrganizationUpdate) -> list[str]:
    """Apply a partial update. Returns the changed field names."""
    changes = data.model_dump(exclude_unset=True)
    changed = []
    for field_name, value in changes.items():
        if field_name in ("name", "is_active") and value is None:
            continue
        if field_name == "contact_email":
            value = normalize_email(value)
        if getattr(org, field_name) != value:
            setattr(org, field_name, value)
            changed.append(field_name)
    db.flush()
    return changed


def deactivate_organization(db: Session, org: Organization) -> None:
    """Soft delete."""
    org.is_active = False
    db.flush()
