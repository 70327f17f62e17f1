"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.db.enums import Role
from app.db.models import Campaign, SalesUser, User
from app.db.session import SessionLocal
from app.schemas.auth import UserSession


# Cookie and header names
COOKIE_NAME = "crm_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return user


def get_current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """
    Get full session context: user_id, role, org_id, sales profile.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    user = get_current_user(request, db)

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{user.role}'. Contact administrator.",
        )
    role = Role(user.role)

    sales_user_id = None
    if role == Role.SALES:
        profile = db.query(SalesUser).filter(SalesUser.user_id == user.id).first()
        if profile and profile.is_active:
            sales_user_id = profile.id

    return UserSession(
        user_id=user.id,
        role=role,
        email=user.email,
        full_name=user.full_name,
        org_id=user.organization_id,
        sales_user_id=sales_user_id,
    )


def require_roles(allowed_roles: list):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/x", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)) -> UserSession:
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


require_admin = require_roles([Role.ADMIN])


def require_sales_user(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """Sales role with an active sales profile."""
    session = get_current_session(request, db)
    if session.role != Role.SALES or session.sales_user_id is None:
        raise HTTPException(status_code=403, detail="Sales access required")
    return session


def require_sales_or_admin(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """Sales users, or admins observing the sales portal."""
    session = get_current_session(request, db)
    if session.role == Role.ADMIN:
        return session
    if session.role != Role.SALES or session.sales_user_id is None:
        raise HTTPException(status_code=403, detail="Sales access required")
    return session


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


# =============================================================================
# Tenant helpers
# =============================================================================

def can_access_organization(session: UserSession, organization_id: UUID | None) -> bool:
    """Admins see every tenant; client users only their own."""
    if session.role == Role.ADMIN:
        return True
    return session.org_id is not None and session.org_id == organization_id


def ensure_org_access(session: UserSession, organization_id: UUID | None) -> None:
    if not can_access_organization(session, organization_id):
        raise HTTPException(status_code=403, detail="Access denied")


def resolve_org_scope(
    db: Session,
    session: UserSession,
    organization_id: UUID | None,
    campaign_id: UUID | None = None,
) -> UUID | None:
    """
    Organization filter for interaction queries.

    Admins keep whatever they asked for. Client users are pinned to their
    organization, and asking for another tenant or its campaign is a 403
    rather than an empty result.
    """
    if session.role == Role.ADMIN:
        return organization_id
    if session.role != Role.CLIENT_USER or not session.org_id:
        raise HTTPException(status_code=403, detail="Access denied")
    if organization_id and organization_id != session.org_id:
        raise HTTPException(status_code=403, detail="Access denied")
    if campaign_id:
        campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if campaign is None or campaign.organization_id != session.org_id:
            raise HTTPException(status_code=403, detail="Access denied")
    return session.org_id
