"""Inbound webhook ingestion: dedupe, record interactions, fire SMS triggers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import SmsStatus, SourceType, WebhookErrorType
from app.db.models import Campaign, Contact, Interaction, WebhookErrorLog
from app.services import sms_service, trigger_service
from app.services.payload_analysis import analyze_payload
from app.utils.phone import is_e164, normalize_webhook_phone

logger = logging.getLogger(__name__)

RAW_BODY_LOG_LIMIT = 10_000


def get_campaign_by_webhook_uuid(db: Session, webhook_uuid: UUID) -> Campaign | None:
    return db.query(Campaign).filter(Campaign.webhook_uuid == webhook_uuid).first()


def log_webhook_error(
    db: Session,
    *,
    error_type: WebhookErrorType,
    error_message: str,
    raw_body: bytes | str | None = None,
    campaign_id: UUID | None = None,
) -> WebhookErrorLog:
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    entry = WebhookErrorLog(
        campaign_id=campaign_id,
        raw_body=raw_body[:RAW_BODY_LOG_LIMIT] if raw_body else None,
        error_type=error_type.value,
        error_message=error_message[:2000],
    )
    db.add(entry)
    db.flush()
    return entry


def find_recent_duplicate(
    db: Session,
    campaign_id: UUID,
    payload_hash: str,
    now: datetime | None = None,
) -> Interaction | None:
    """Interaction with the same body hash inside the duplicate window."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(
        minutes=settings.WEBHOOK_DUPLICATE_WINDOW_MINUTES
    )
    return (
        db.query(Interaction)
        .filter(
            Interaction.campaign_id == campaign_id,
            Interaction.payload_hash == payload_hash,
            Interaction.created_at >= cutoff,
        )
        .order_by(Interaction.created_at.desc())
        .first()
    )


def get_or_create_contact(db: Session, campaign_id: UUID, phone_number: str) -> Contact:
    """One contact per (campaign, phone); a concurrent insert is re-read."""
    existing = (
        db.query(Contact)
        .filter(Contact.campaign_id == campaign_id, Contact.phone_number == phone_number)
        .first()
    )
    if existing:
        return existing

    contact = Contact(campaign_id=campaign_id, phone_number=phone_number, sms_triggers_fired=[])
    db.add(contact)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        contact = (
            db.query(Contact)
            .filter(Contact.campaign_id == campaign_id, Contact.phone_number == phone_number)
            .one()
        )
    return contact


async def _fire_triggers(
    db: Session,
    campaign: Campaign,
    contact: Contact,
    interaction: Interaction,
    transcript: str | None,
    summary: str | None,
) -> int:
    fired = {str(trigger_id) for trigger_id in (contact.sms_triggers_fired or [])}
    eligible = [
        trigger
        for trigger in trigger_service.list_triggers(db, campaign_id=campaign.id, active_only=True)
        if str(trigger.id) not in fired
    ]
    if not eligible:
        return 0

    matched_ids = trigger_service.evaluate_triggers(transcript, summary, eligible)
    by_id = {trigger.id: trigger for trigger in eligible}
    credentials = sms_service.resolve_credentials(campaign)

    sent = 0
    for trigger_id in matched_ids:
        trigger = by_id.get(trigger_id)
        if trigger is None:
            continue
        log = await sms_service.send_sms(
            db,
            to_number=contact.phone_number,
            from_number=campaign.twilio_phone_number,
            message=trigger.sms_message,
            credentials=credentials,
            interaction_id=interaction.id,
            trigger_id=trigger.id,
            contact=contact,
        )
        if log.status == SmsStatus.SENT.value:
            sent += 1
    return sent


async def ingest_webhook(
    db: Session,
    campaign: Campaign,
    payload: dict,
    raw_body: bytes,
    payload_hash: str,
) -> dict:
    """
    Record one provider event for an active campaign.

    Analysis/contact/trigger failures are logged and a bare interaction is
    still stored so the event is never lost.
    """
    log_context = build_log_context(campaign_id=campaign.id, org_id=campaign.organization_id)

    try:
        analysis = analyze_payload(payload, campaign.ai_extraction_hints)

        phone = None
        contact = None
        if analysis.phone_number:
            candidate = normalize_webhook_phone(analysis.phone_number)
            if is_e164(candidate):
                phone = candidate
                contact = get_or_create_contact(db, campaign.id, phone)

        interaction = Interaction(
            campaign_id=campaign.id,
            contact_id=contact.id if contact else None,
            source_type=analysis.source_type,
            source_platform=analysis.source_platform,
            phone_number=phone,
            call_status=analysis.call_status,
            duration_seconds=analysis.duration_seconds,
            transcript=analysis.transcript,
            transcript_formatted=analysis.transcript_formatted,
            recording_url=analysis.recording_url,
            ai_summary=analysis.summary,
            ai_extracted_data=analysis.extracted_data,
            raw_payload=payload,
            payload_hash=payload_hash,
        )
        db.add(interaction)
        db.flush()

        sms_sent = 0
        if contact and (analysis.transcript or analysis.summary) and campaign.twilio_phone_number:
            sms_sent = await _fire_triggers(
                db, campaign, contact, interaction, analysis.transcript, analysis.summary
            )
    except Exception as exc:
        db.rollback()
        logger.exception("Webhook processing error", extra=log_context)
        log_webhook_error(
            db,
            error_type=WebhookErrorType.PROCESSING_ERROR,
            error_message=str(exc) or exc.__class__.__name__,
            raw_body=raw_body,
            campaign_id=campaign.id,
        )
        interaction = Interaction(
            campaign_id=campaign.id,
            source_type=SourceType.PHONE.value,
            raw_payload=payload,
            payload_hash=payload_hash,
        )
        db.add(interaction)
        db.flush()
        return {"received": True, "interaction_id": str(interaction.id), "processing_error": True}

    logger.info(
        "Webhook interaction recorded",
        extra={**log_context, "interaction_id": str(interaction.id), "sms_sent": sms_sent},
    )
    return {
        "received": True,
        "interaction_id": str(interaction.id),
        "source_type": analysis.source_type,
        "source_platform": analysis.source_platform,
        "sms_sent": sms_sent,
    }
