"""Webhooks router - inbound provider events (VAPI, Twilio, Autocalls, forms, chatbots)."""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import WEBHOOK_LIMIT, limiter
from app.core.structured_logging import build_log_context
from app.db.enums import WebhookErrorType
from app.services import webhook_service
from app.services.payload_analysis import compute_payload_hash

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{webhook_uuid}")
def verify_webhook(webhook_uuid: UUID, db: Session = Depends(get_db)):
    """Let providers/admins check a webhook URL resolves."""
    campaign = webhook_service.get_campaign_by_webhook_uuid(db, webhook_uuid)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return {"valid": True, "campaign_name": campaign.name, "active": campaign.is_active}


@router.post("/{webhook_uuid}")
@limiter.limit(WEBHOOK_LIMIT)
async def receive_webhook(
    request: Request,
    webhook_uuid: UUID,
    db: Session = Depends(get_db),
):
    """
    Receive one provider event for an inbound campaign.

    Security:
    - Validates payload size
    - Campaign must exist and be active

    Processing:
    - Duplicate bodies within the window are acknowledged, not re-stored
    - Processing failures still answer 200 so providers do not retry forever
    """
    # 1. Check payload size
    content_length = request.headers.get("content-length", "0")
    try:
        if int(content_length) > settings.WEBHOOK_MAX_PAYLOAD_BYTES:
            raise HTTPException(413, "Payload too large")
    except ValueError:
        pass

    body = await request.body()
    if len(body) > settings.WEBHOOK_MAX_PAYLOAD_BYTES:
        raise HTTPException(413, "Payload too large")

    campaign = webhook_service.get_campaign_by_webhook_uuid(db, webhook_uuid)
    campaign_id = campaign.id if campaign else None

    # 2. Parse payload
    try:
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("Payload must be a JSON object")
    except ValueError as exc:
        webhook_service.log_webhook_error(
            db,
            error_type=WebhookErrorType.INVALID_JSON,
            error_message=str(exc),
            raw_body=body,
            campaign_id=campaign_id,
        )
        db.commit()
        logger.warning("Webhook invalid JSON", extra=build_log_context(campaign_id=campaign_id))
        raise HTTPException(400, "Invalid JSON")

    # 3. Campaign checks
    if not campaign:
        raise HTTPException(404, "Campaign not found")
    if not campaign.is_active:
        raise HTTPException(400, "Campaign is not active")

    log_context = build_log_context(campaign_id=campaign.id, org_id=campaign.organization_id)
    try:
        # 4. Idempotency by body hash
        payload_hash = compute_payload_hash(body)
        duplicate = webhook_service.find_recent_duplicate(db, campaign.id, payload_hash)
        if duplicate:
            logger.info("Webhook duplicate ignored", extra=log_context)
            return {"received": True, "duplicate": True, "interaction_id": str(duplicate.id)}

        # 5-8. Analyze, record, fire triggers
        result = await webhook_service.ingest_webhook(db, campaign, payload, body, payload_hash)
        db.commit()
        return result
    except Exception as exc:
        db.rollback()
        logger.exception("Webhook server error", extra=log_context)
        try:
            webhook_service.log_webhook_error(
                db,
                error_type=WebhookErrorType.SERVER_ERROR,
                error_message=str(exc) or exc.__class__.__name__,
                raw_body=body,
                campaign_id=campaign.id,
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Could not record webhook error", extra=log_context)
        return JSONResponse(status_code=200, content={"received": True, "error": "Processing failed"})
