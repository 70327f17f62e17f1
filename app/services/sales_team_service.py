"""Sales team service - sales users and their login accounts."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import Role
from app.db.models import SalesUser, User
from app.schemas.sales import SalesProfileUpdate, SalesUserCreate, SalesUserUpdate
from app.services import commission_service, lead_service
from app.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)


def sales_user_to_dict(profile: SalesUser, lead_count: int = 0, commission_count: int = 0) -> dict:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "email": profile.email,
        "full_name": profile.full_name,
        "phone": profile.phone,
        "commission_rate": profile.commission_rate,
        "bio": profile.bio,
        "notes": profile.notes,
        "is_active": profile.is_active,
        "lead_count": lead_count,
        "commission_count": commission_count,
        "created_at": profile.created_at,
    }


def list_sales_users(db: Session, include_inactive: bool = True) -> list[dict]:
    query = db.query(SalesUser)
    if not include_inactive:
        query = query.filter(SalesUser.is_active.is_(True))
    profiles = query.order_by(SalesUser.full_name, SalesUser.id).all()

    ids = [profile.id for profile in profiles]
    lead_counts = lead_service.lead_counts_by_sales_user(db, ids)
    commission_counts = commission_service.commission_counts_by_sales_user(db, ids)
    return [
        sales_user_to_dict(
            profile,
            lead_count=lead_counts.get(profile.id, 0),
            commission_count=commission_counts.get(profile.id, 0),
        )
        for profile in profiles
    ]


def get_sales_user(db: Session, sales_user_id: UUID) -> SalesUser | None:
    return db.query(SalesUser).filter(SalesUser.id == sales_user_id).first()


def create_sales_user(db: Session, data: SalesUserCreate) -> SalesUser:
    """
    Create a sales-role user plus profile.

    Raises:
        ValueError: email already used by a user or sales profile
    """
    email = normalize_email(data.email)
    if (
        db.query(User).filter(User.email == email).first()
        or db.query(SalesUser).filter(SalesUser.email == email).first()
    ):
        raise ValueError("A user with this email already exists")

    full_name = normalize_name(data.full_name)
    user = User(email=email, full_name=full_name, role=Role.SALES.value)
    db.add(user)
    db.flush()

    profile = SalesUser(
        user_id=user.id,
        email=email,
        full_name=full_name,
        phone=data.phone,
        commission_rate=data.commission_rate,
        bio=data.bio,
        notes=data.notes,
    )
    db.add(profile)
    db.flush()
    logger.info("Sales user created", extra={"sales_user_id": str(profile.id)})
    return profile


def update_sales_user(
    db: Session, profile: SalesUser, data: SalesUserUpdate | SalesProfileUpdate
) -> list[str]:
    changed = []
    for field_name, value in data.model_dump(exclude_unset=True).items():
        if field_name in ("full_name", "commission_rate", "is_active") and value is None:
            continue
        if field_name == "full_name":
            value = normalize_name(value)
            if value is None:
                continue
        if getattr(profile, field_name) != value:
            setattr(profile, field_name, value)
            changed.append(field_name)

    user = db.query(User).filter(User.id == profile.user_id).first()
    if user:
        if "full_name" in changed:
            user.full_name = profile.full_name
        if "is_active" in changed:
            user.is_active = profile.is_active
            if not profile.is_active:
                user.token_version += 1
    db.flush()
    return changed


def deactivate_sales_user(db: Session, profile: SalesUser) -> None:
    """Soft delete: profile and login disabled, sessions revoked."""
    profile.is_active = False
    user = db.query(User).filter(User.id == profile.user_id).first()
    if user:
        user.is_active = False
        user.token_version += 1
    db.flush()
