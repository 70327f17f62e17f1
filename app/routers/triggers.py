"""SMS trigger router - update/delete by id (admin)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.campaign import TriggerResponse, TriggerUpdate
from app.services import audit_service, trigger_service

router = APIRouter()


def _get_trigger_or_404(db: Session, trigger_id: UUID):
    trigger = trigger_service.get_trigger(db, trigger_id)
    if not trigger:
        raise HTTPException(status_code=404, detail="Trigger not found")
    return trigger


@router.patch(
    "/{trigger_id}",
    response_model=TriggerResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_trigger(
    trigger_id: UUID,
    data: TriggerUpdate,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    trigger = _get_trigger_or_404(db, trigger_id)
    changes = data.model_dump(exclude_unset=True)
    trigger_service.update_trigger(db, trigger, changes)
    audit_service.log(
        db, session.user_id, "update", "sms_trigger", trigger.id,
        {"fields": sorted(changes)}, audit_service.get_client_ip(request),
    )
    db.commit()
    db.refresh(trigger)
    return trigger


@router.delete("/{trigger_id}", dependencies=[Depends(require_csrf_header)])
def delete_trigger(
    trigger_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    trigger = _get_trigger_or_404(db, trigger_id)
    trigger_service.delete_trigger(db, trigger)
    audit_service.log(
        db, session.user_id, "delete", "sms_trigger", trigger_id,
        None, audit_service.get_client_ip(request),
    )
    db.commit()
    return {"success": True}
