"""Outbound webhook router - VAPI call status and end-of-call reports."""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import WEBHOOK_LIMIT, limiter
from app.core.structured_logging import build_log_context
from app.services import outbound_campaign_service, outbound_dialer_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{webhook_uuid}")
def verify_outbound_webhook(webhook_uuid: UUID, db: Session = Depends(get_db)):
    campaign = outbound_campaign_service.get_campaign_by_webhook_uuid(db, webhook_uuid)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return {"valid": True, "campaign_name": campaign.name, "type": "outbound"}


@router.post("/{webhook_uuid}")
@limiter.limit(WEBHOOK_LIMIT)
async def receive_outbound_webhook(
    request: Request,
    webhook_uuid: UUID,
    db: Session = Depends(get_db),
):
    """Settle a dial attempt from a VAPI event. Failures answer 200."""
    body = await request.body()
    if len(body) > settings.WEBHOOK_MAX_PAYLOAD_BYTES:
        raise HTTPException(413, "Payload too large")

    campaign = outbound_campaign_service.get_campaign_by_webhook_uuid(db, webhook_uuid)
    if not campaign:
        raise HTTPException(404, "Campaign not found")

    log_context = build_log_context(campaign_id=campaign.id, org_id=campaign.organization_id)
    try:
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
        result = await outbound_dialer_service.handle_outbound_webhook(db, campaign, payload)
        db.commit()
        return result
    except Exception:
        db.rollback()
        logger.exception("Outbound webhook processing failed", extra=log_context)
        return {"received": True, "error": "Processing failed"}
