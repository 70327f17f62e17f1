"""Sales resource library - categories and resources."""

from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.models import Resource, ResourceCategory
from app.schemas.resource import CategoryCreate, CategoryUpdate, ResourceCreate, ResourceUpdate
from app.utils.normalization import sanitize_search_input


# =============================================================================
# Categories
# =============================================================================

def list_categories(db: Session, include_inactive: bool = False) -> list[ResourceCategory]:
    query = db.query(ResourceCategory)
    if not include_inactive:
        query = query.filter(ResourceCategory.is_active.is_(True))
    return query.order_by(ResourceCategory.order, ResourceCategory.name).all()


def get_category(db: Session, category_id: UUID) -> ResourceCategory | None:
    return db.query(ResourceCategory).filter(ResourceCategory.id == category_id).first()


def create_category(db: Session, data: CategoryCreate) -> ResourceCategory:
    category = ResourceCategory(**data.model_dump())
    category.name = category.name.strip()
    db.add(category)
    db.flush()
    return category


def update_category(db: Session, category: ResourceCategory, data: CategoryUpdate) -> ResourceCategory:
    for field_name, value in data.model_dump(exclude_unset=True).items():
        if value is None and field_name in ("name", "color", "order", "is_active"):
            continue
        setattr(category, field_name, value)
    db.flush()
    return category


def delete_category(db: Session, category: ResourceCategory) -> None:
    """Resources keep existing with no category (FK SET NULL)."""
    db.query(Resource).filter(Resource.category_id == category.id).update(
        {Resource.category_id: None}, synchronize_session=False
    )
    db.delete(category)
    db.flush()


# =============================================================================
# Resources
# =============================================================================

def list_resources(
    db: Session,
    *,
    search: str | None = None,
    category_id: UUID | None = None,
    resource_type: str | None = None,
    include_inactive: bool = False,
) -> list[Resource]:
    query = db.query(Resource)
    if not include_inactive:
        query = query.filter(Resource.is_active.is_(True))
    if category_id:
        query = query.filter(Resource.category_id == category_id)
    if resource_type:
        query = query.filter(Resource.type == resource_type)
    term = sanitize_search_input(search)
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(Resource.title.ilike(pattern), Resource.description.ilike(pattern)))
    return query.order_by(Resource.created_at.desc(), Resource.id).all()


def get_resource(db: Session, resource_id: UUID) -> Resource | None:
    return db.query(Resource).filter(Resource.id == resource_id).first()


def _check_category(db: Session, category_id: UUID | None) -> None:
    if category_id and not get_category(db, category_id):
        raise LookupError("Category not found")


def create_resource(db: Session, data: ResourceCreate, created_by: UUID | None) -> Resource:
    _check_category(db, data.category_id)
    values = data.model_dump()
    values["type"] = data.type.value
    resource = Resource(**values, created_by=created_by)
    db.add(resource)
    db.flush()
    return resource


def update_resource(db: Session, resource: Resource, data: ResourceUpdate) -> Resource:
    changes = data.model_dump(exclude_unset=True)
    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    for field_name, value in changes.items():
        if value is None and field_name in ("title", "type", "url", "tags", "is_active"):
            continue
        if field_name == "type":
            value = value.value if hasattr(value, "value") else value
        setattr(resource, field_name, value)
    db.flush()
    return resource


def delete_resource(db: Session, resource: Resource) -> None:
    db.delete(resource)
    db.flush()


def record_download(db: Session, resource: Resource) -> Resource:
    """Increment download_count in SQL so concurrent downloads are all counted."""
    db.query(Resource).filter(Resource.id == resource.id).update(
        {Resource.download_count: Resource.download_count + 1}, synchronize_session=False
    )
    db.flush()
    db.refresh(resource)
    return resource
