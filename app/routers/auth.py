"""Authentication router - session introspection and logout."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import COOKIE_NAME, get_current_session, get_db, require_csrf_header
from app.schemas.auth import MeResponse, UserSession
from app.services import audit_service

router = APIRouter()


@router.get("/me", response_model=MeResponse)
def get_me(session: UserSession = Depends(get_current_session)) -> MeResponse:
    """Used by the frontend to bootstrap auth state on page load."""
    return MeResponse(
        user_id=session.user_id,
        email=session.email,
        full_name=session.full_name,
        role=session.role,
        org_id=session.org_id,
        sales_user_id=session.sales_user_id,
    )


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(
    request: Request,
    response: Response,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    audit_service.log(
        db, session.user_id, "logout", "user", session.user_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()

    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}
