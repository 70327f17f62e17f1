"""Resource library router - admin CRUD, read-only browsing for sales."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header, require_sales_or_admin
from app.schemas.auth import UserSession
from app.schemas.resource import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    ResourceCreate,
    ResourceRead,
    ResourceUpdate,
)
from app.services import audit_service, resource_service

router = APIRouter()


def _get_category_or_404(db: Session, category_id: UUID):
    category = resource_service.get_category(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _get_resource_or_404(db: Session, resource_id: UUID, session: UserSession):
    resource = resource_service.get_resource(db, resource_id)
    # Inactive resources are hidden from sales users
    if not resource or (not resource.is_active and not session.is_admin):
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource


# ============================================================================
# Categories
# ============================================================================

@router.get("/categories", response_model=list[CategoryRead])
def list_categories(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return resource_service.list_categories(db, include_inactive=include_inactive and session.is_admin)


@router.post(
    "/categories",
    response_model=CategoryRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_category(
    data: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    category = resource_service.create_category(db, data)
    audit_service.log(
        db, session.user_id, "create", "resource_category", category.id,
        {"name": category.name}, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(category)
    return category


@router.patch(
    "/categories/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    category = _get_category_or_404(db, category_id)
    resource_service.update_category(db, category, data)
    audit_service.log(
        db, session.user_id, "update", "resource_category", category.id,
        {"fields": sorted(data.model_dump(exclude_unset=True))},
        audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(category)
    return category


@router.delete("/categories/{category_id}", dependencies=[Depends(require_csrf_header)])
def delete_category(
    category_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    category = _get_category_or_404(db, category_id)
    resource_service.delete_category(db, category)
    audit_service.log(
        db, session.user_id, "delete", "resource_category", category_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}


# ============================================================================
# Resources
# ============================================================================

@router.get("", response_model=list[ResourceRead])
def list_resources(
    search: str | None = None,
    category_id: UUID | None = None,
    type: str | None = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return resource_service.list_resources(
        db,
        search=search,
        category_id=category_id,
        resource_type=type,
        include_inactive=include_inactive and session.is_admin,
    )


@router.post(
    "",
    response_model=ResourceRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_resource(
    data: ResourceCreate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        resource = resource_service.create_resource(db, data, session.user_id)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "create", "resource", resource.id,
        {"title": resource.title, "type": resource.type},
        audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(resource)
    return resource


@router.get("/{resource_id}", response_model=ResourceRead)
def get_resource(
    resource_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    return _get_resource_or_404(db, resource_id, session)


@router.patch(
    "/{resource_id}",
    response_model=ResourceRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_resource(
    resource_id: UUID,
    data: ResourceUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    resource = _get_resource_or_404(db, resource_id, session)
    try:
        resource_service.update_resource(db, resource, data)
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    audit_service.log(
        db, session.user_id, "update", "resource", resource.id,
        {"fields": sorted(data.model_dump(exclude_unset=True))},
        audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(resource)
    return resource


@router.delete("/{resource_id}", dependencies=[Depends(require_csrf_header)])
def delete_resource(
    resource_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    resource = _get_resource_or_404(db, resource_id, session)
    resource_service.delete_resource(db, resource)
    audit_service.log(
        db, session.user_id, "delete", "resource", resource_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}


@router.post("/{resource_id}/download", dependencies=[Depends(require_csrf_header)])
def download_resource(
    resource_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_sales_or_admin),
):
    """Count a download and hand back the URL to open."""
    resource = _get_resource_or_404(db, resource_id, session)
    resource_service.record_download(db, resource)
    db.commit()
    return {"url": resource.url, "download_count": resource.download_count}
