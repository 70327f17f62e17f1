"""Development-only endpoints for testing and seeding."""

from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import COOKIE_NAME, get_db
from app.core.security import create_session_token
from app.db.enums import Role
from app.db.models import LeadStage, Organization, SalesUser, User

router = APIRouter()

SEED_ORG_NAME = "Test Organization"

# (name, color, is_default, is_final, is_won)
SEED_STAGES = [
    ("New", "#6366f1", True, False, False),
    ("Contacted", "#0ea5e9", False, False, False),
    ("Qualified", "#f59e0b", False, False, False),
    ("Proposal", "#8b5cf6", False, False, False),
    ("Won", "#22c55e", False, True, True),
    ("Lost", "#ef4444", False, True, False),
]


def _verify_dev_secret(x_dev_secret: str = Header(...)):
    """
    Verify dev secret header.

    Provides an extra layer of protection for dev endpoints
    beyond just the ENV check.
    """
    if not settings.DEV_SECRET or x_dev_secret != settings.DEV_SECRET:
        raise HTTPException(status_code=403, detail="Invalid dev secret")


@router.post("/seed", dependencies=[Depends(_verify_dev_secret)])
def seed_test_data(db: Session = Depends(get_db)):
    """
    Create a test organization, one user per role and the lead stages.

    Idempotent - returns existing data if already seeded.
    """
    existing = db.query(Organization).filter(Organization.name == SEED_ORG_NAME).first()
    if existing:
        return {"status": "already_seeded", "org_id": str(existing.id)}

    org = Organization(name=SEED_ORG_NAME, contact_email="owner@test.com")
    db.add(org)
    db.flush()

    users_data = [
        ("admin@test.com", "Test Admin", Role.ADMIN, None),
        ("client@test.com", "Test Client", Role.CLIENT_USER, org.id),
        ("sales@test.com", "Test Sales", Role.SALES, None),
    ]

    created_users = []
    for email, name, role, org_id in users_data:
        user = User(email=email, full_name=name, role=role.value, organization_id=org_id)
        db.add(user)
        db.flush()
        if role == Role.SALES:
            db.add(SalesUser(user_id=user.id, email=email, full_name=name))
        created_users.append({"email": email, "user_id": str(user.id), "role": role.value})

    if not db.query(LeadStage).first():
        for order, (name, color, is_default, is_final, is_won) in enumerate(SEED_STAGES):
            db.add(
                LeadStage(
                    name=name,
                    color=color,
                    order=order,
                    is_default=is_default,
                    is_final=is_final,
                    is_won=is_won,
                )
            )

    db.commit()

    return {
        "status": "seeded",
        "org_id": str(org.id),
        "users": created_users,
    }


@router.post("/login-as/{user_id}", dependencies=[Depends(_verify_dev_secret)])
def login_as(
    user_id: UUID,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Directly set a session cookie for testing.

    Useful for testing role-based access without a real login flow.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=400, detail="User is disabled")

    token = create_session_token(
        user.id,
        user.organization_id,
        user.role,
        user.token_version,
    )

    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )

    return {
        "status": "logged_in",
        "user_id": str(user.id),
        "email": user.email,
        "role": user.role,
        "org_id": str(user.organization_id) if user.organization_id else None,
    }
