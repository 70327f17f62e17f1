"""Outbound dialer and VAPI call-report handling.

The dialer places calls for running campaigns within schedule windows and
contact calling hours. Call reports (outbound webhook) settle each attempt:
answered contacts complete, unanswered ones are re-queued with a delay
until their attempts run out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import mask_phone
from app.db.enums import (
    OUTBOUND_CONTACT_DONE_STATUSES,
    CallResult,
    OutboundCampaignStatus,
    OutboundContactStatus,
    SmsStatus,
)
from app.db.models import OutboundCallLog, OutboundCampaign, OutboundContact, OutboundSchedule
from app.services import sms_service, trigger_service
from app.services.payload_analysis import analyze_payload, format_messages
from app.services.vapi_service import (
    VapiClient,
    calculate_call_duration,
    format_vapi_transcript,
    map_vapi_status_to_result,
)
from app.utils.phone import is_within_calling_hours, timezone_for_phone

logger = logging.getLogger(__name__)

CALL_ENDED_EVENTS = frozenset({"end-of-call-report", "call-ended"})


@dataclass
class DialerResult:
    campaigns_processed: int = 0
    calls_initiated: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "campaigns_processed": self.campaigns_processed,
            "calls_initiated": self.calls_initiated,
            "errors": self.errors,
        }


# =============================================================================
# Eligibility
# =============================================================================

def is_within_schedule(schedules: list[OutboundSchedule], now: datetime) -> bool:
    """
    True when no active schedule exists, or one covers ``now``.

    Each window is evaluated in its own timezone; day_of_week 0 is Sunday.
    """
    active = [schedule for schedule in schedules if schedule.is_active]
    if not active:
        return True

    for schedule in active:
        try:
            local = now.astimezone(ZoneInfo(schedule.timezone))
        except (ZoneInfoNotFoundError, ValueError):
            continue
        weekday = (local.weekday() + 1) % 7
        if weekday != schedule.day_of_week:
            continue
        if schedule.start_time <= local.strftime("%H:%M") < schedule.end_time:
            return True
    return False


def _active_call_count(db: Session, campaign_id) -> int:
    return (
        db.query(func.count(OutboundContact.id))
        .filter(
            OutboundContact.campaign_id == campaign_id,
            OutboundContact.status == OutboundContactStatus.CALLING.value,
        )
        .scalar()
        or 0
    )


def select_contacts_to_call(
    db: Session,
    campaign: OutboundCampaign,
    slots: int,
    now: datetime,
) -> list[OutboundContact]:
    """Due contacts with attempts left, inside their local calling hours."""
    due = (
        (OutboundContact.status == OutboundContactStatus.PENDING.value)
        | (
            (OutboundContact.status == OutboundContactStatus.QUEUED.value)
            & (OutboundContact.next_attempt_at.is_(None) | (OutboundContact.next_attempt_at <= now))
        )
    )
    candidates = (
        db.query(OutboundContact.id, OutboundContact.timezone, OutboundContact.phone_number)
        .filter(
            OutboundContact.campaign_id == campaign.id,
            due,
            OutboundContact.attempt_count < campaign.max_retries + 1,
        )
        .order_by(
            OutboundContact.next_attempt_at.asc().nulls_first(),
            OutboundContact.created_at.asc(),
            OutboundContact.id,
        )
        .all()
    )

    chosen_ids = []
    for contact_id, contact_tz, phone in candidates:
        if len(chosen_ids) >= slots:
            break
        tz = contact_tz or timezone_for_phone(phone)
        if is_within_calling_hours(
            tz, settings.CALLING_HOURS_START, settings.CALLING_HOURS_END, now=now
        ):
            chosen_ids.append(contact_id)

    if not chosen_ids:
        return []
    contacts = db.query(OutboundContact).filter(OutboundContact.id.in_(chosen_ids)).all()
    order = {contact_id: index for index, contact_id in enumerate(chosen_ids)}
    return sorted(contacts, key=lambda contact: order[contact.id])


# =============================================================================
# Dialer
# =============================================================================

async def _dial_contact(
    db: Session,
    client: VapiClient,
    campaign: OutboundCampaign,
    contact: OutboundContact,
    now: datetime,
    result: DialerResult,
) -> None:
    contact.status = OutboundContactStatus.CALLING.value
    contact.attempt_count = (contact.attempt_count or 0) + 1
    contact.last_attempt_at = now
    # Claim the contact before the external call so a parallel run skips it
    db.commit()

    try:
        call = await client.create_outbound_call(
            assistant_id=campaign.vapi_assistant_id,
            phone_number_id=campaign.vapi_phone_number_id,
            customer_number=contact.phone_number,
            customer_name=" ".join(part for part in (contact.first_name, contact.last_name) if part),
            metadata={
                "outbound_campaign_id": str(campaign.id),
                "outbound_contact_id": str(contact.id),
                "first_name": contact.first_name,
                "last_name": contact.last_name or "",
                **{str(key): str(value) for key, value in (contact.custom_fields or {}).items()},
            },
        )
    except Exception as exc:
        if contact.attempt_count >= campaign.max_retries + 1:
            contact.status = OutboundContactStatus.FAILED.value
            contact.next_attempt_at = None
        else:
            contact.status = OutboundContactStatus.QUEUED.value
            contact.next_attempt_at = now + timedelta(hours=campaign.retry_delay_hours)
        contact.call_result = CallResult.FAILED.value
        db.commit()
        result.errors.append(f"Contact {contact.id}: {exc}")
        logger.warning(
            "Outbound call failed to start",
            extra={"campaign_id": str(campaign.id), "contact_id": str(contact.id), "to": mask_phone(contact.phone_number)},
        )
        return

    db.add(
        OutboundCallLog(
            campaign_id=campaign.id,
            contact_id=contact.id,
            vapi_call_id=call.get("id"),
            attempt_number=contact.attempt_count,
            started_at=now,
        )
    )
    db.commit()
    result.calls_initiated += 1


async def process_outbound_calls(
    db: Session,
    client: VapiClient | None,
    now: datetime | None = None,
) -> DialerResult:
    """One dialer pass over every running campaign."""
    now = now or datetime.now(timezone.utc)
    result = DialerResult()

    campaigns = (
        db.query(OutboundCampaign)
        .filter(OutboundCampaign.status == OutboundCampaignStatus.RUNNING.value)
        .order_by(OutboundCampaign.created_at)
        .all()
    )
    if campaigns and client is None:
        result.errors.append("VAPI API key not configured")
        return result

    for campaign in campaigns:
        try:
            if not campaign.vapi_assistant_id or not campaign.vapi_phone_number_id:
                result.errors.append(f"Campaign {campaign.id}: Missing VAPI configuration")
                continue

            if not is_within_schedule(list(campaign.schedules), now):
                result.campaigns_processed += 1
                continue

            slots = campaign.max_concurrent_calls - _active_call_count(db, campaign.id)
            if slots <= 0:
                continue

            for contact in select_contacts_to_call(db, campaign, slots, now):
                await _dial_contact(db, client, campaign, contact, now, result)

            result.campaigns_processed += 1
        except Exception as exc:
            db.rollback()
            logger.exception("Dialer failed for campaign", extra={"campaign_id": str(campaign.id)})
            result.errors.append(f"Campaign {campaign.id}: {exc}")

    logger.info(
        "Dialer pass finished",
        extra={
            "campaigns_processed": result.campaigns_processed,
            "calls_initiated": result.calls_initiated,
            "errors": len(result.errors),
        },
    )
    return result


# =============================================================================
# Call reports (outbound webhook)
# =============================================================================

def _merge_call_report(payload: dict) -> tuple[str | None, dict | None]:
    """
    Event type plus one call dict with the report's top-level fields folded in.

    End-of-call reports carry transcript/artifact/endedReason beside the
    call object rather than inside it.
    """
    message = payload.get("message") if isinstance(payload.get("message"), dict) else {}
    event_type = payload.get("type") or message.get("type")
    call = payload.get("call") or message.get("call")
    if not isinstance(call, dict) or not call.get("id"):
        return event_type, None

    merged: dict[str, Any] = dict(call)
    artifact = message.get("artifact") if isinstance(message.get("artifact"), dict) else {}
    for key in ("endedReason", "startedAt", "endedAt", "recordingUrl", "transcript", "summary", "analysis", "messages"):
        if merged.get(key) in (None, "", [], {}) and message.get(key) not in (None, "", [], {}):
            merged[key] = message[key]
    if artifact:
        merged_artifact = dict(merged.get("artifact") or {})
        for key, value in artifact.items():
            merged_artifact.setdefault(key, value)
        merged["artifact"] = merged_artifact
    if event_type in CALL_ENDED_EVENTS:
        merged["status"] = "ended"
    return event_type, merged


def _campaign_finished(db: Session, campaign: OutboundCampaign) -> bool:
    open_count = (
        db.query(func.count(OutboundContact.id))
        .filter(
            OutboundContact.campaign_id == campaign.id,
            OutboundContact.status.notin_([status.value for status in OUTBOUND_CONTACT_DONE_STATUSES]),
        )
        .scalar()
    )
    return not open_count


async def _send_outbound_sms(
    db: Session,
    campaign: OutboundCampaign,
    contact: OutboundContact,
    call_log: OutboundCallLog,
    transcript: str,
    summary: str | None,
) -> None:
    fired = {str(item) for item in (contact.sms_triggers_fired or [])}
    eligible = [
        trigger
        for trigger in trigger_service.list_triggers(db, outbound_campaign_id=campaign.id, active_only=True)
        if str(trigger.id) not in fired
    ]
    if not eligible:
        return

    by_id = {trigger.id: trigger for trigger in eligible}
    for trigger_id in trigger_service.evaluate_triggers(transcript, summary, eligible):
        trigger = by_id[trigger_id]
        log = await sms_service.send_sms(
            db,
            to_number=contact.phone_number,
            from_number=campaign.twilio_phone_number,
            message=trigger.sms_message,
            credentials=sms_service.resolve_credentials(campaign),
            trigger_id=trigger.id,
            contact=contact,
            outbound_call_log_id=call_log.id,
        )
        if log.status == SmsStatus.SENT.value:
            call_log.sms_sent = True
            call_log.sms_trigger_id = trigger.id
    db.flush()


async def handle_outbound_webhook(
    db: Session,
    campaign: OutboundCampaign,
    payload: dict,
    now: datetime | None = None,
) -> dict:
    """Settle a call attempt from a VAPI status/report event."""
    now = now or datetime.now(timezone.utc)
    event_type, call = _merge_call_report(payload)
    if call is None:
        return {"received": True, "skipped": "No call data"}

    call_log = (
        db.query(OutboundCallLog)
        .filter(
            OutboundCallLog.campaign_id == campaign.id,
            OutboundCallLog.vapi_call_id == call["id"],
        )
        .first()
    )
    if call_log is None:
        return {"received": True, "skipped": "Call not found"}

    if event_type not in CALL_ENDED_EVENTS and call.get("status") != "ended":
        return {"received": True}

    if call_log.call_result is not None:
        # Report already applied (provider retry)
        return {"received": True}

    call_result = map_vapi_status_to_result(call)
    duration = calculate_call_duration(call)
    messages = call.get("messages") or (call.get("artifact") or {}).get("messages")
    transcript = (
        call.get("transcript")
        or (call.get("artifact") or {}).get("transcript")
        or format_vapi_transcript(messages)
        or None
    )

    analysis_block = call.get("analysis") if isinstance(call.get("analysis"), dict) else {}
    summary = analysis_block.get("summary") or call.get("summary")
    extracted = analysis_block.get("structuredData")
    if not summary and transcript:
        fallback = analyze_payload(
            {
                "call_id": call["id"],
                "phone_number": (call.get("customer") or {}).get("number"),
                "transcript": transcript,
                "status": call_result.value,
            },
            campaign.ai_extraction_hints,
        )
        summary = fallback.summary
        extracted = fallback.extracted_data

    ended_at = None
    if isinstance(call.get("endedAt"), str):
        try:
            ended_at = datetime.fromisoformat(call["endedAt"].replace("Z", "+00:00"))
        except ValueError:
            ended_at = None

    call_log.call_result = call_result.value
    call_log.duration_seconds = duration
    call_log.transcript = transcript
    call_log.transcript_formatted = format_messages(messages) or None
    call_log.recording_url = call.get("recordingUrl") or (call.get("artifact") or {}).get("recordingUrl")
    call_log.ai_summary = summary
    call_log.ai_extracted_data = extracted
    call_log.raw_payload = call
    call_log.ended_at = ended_at or now

    contact = db.query(OutboundContact).filter(OutboundContact.id == call_log.contact_id).first()
    if contact is not None:
        answered = call_result == CallResult.ANSWERED
        attempts_left = contact.attempt_count < campaign.max_retries + 1

        contact.call_result = call_result.value
        contact.call_duration_seconds = duration
        if answered:
            contact.status = OutboundContactStatus.COMPLETED.value
            contact.next_attempt_at = None
        elif attempts_left:
            contact.status = OutboundContactStatus.QUEUED.value
            contact.next_attempt_at = now + timedelta(hours=campaign.retry_delay_hours)
        else:
            contact.status = OutboundContactStatus.COMPLETED.value
            contact.next_attempt_at = None

        campaign.contacts_called = (campaign.contacts_called or 0) + 1
        if answered:
            campaign.contacts_answered = (campaign.contacts_answered or 0) + 1
        elif not attempts_left:
            campaign.contacts_failed = (campaign.contacts_failed or 0) + 1
        db.flush()

        if answered and transcript and campaign.twilio_phone_number:
            try:
                await _send_outbound_sms(db, campaign, contact, call_log, transcript, summary)
            except Exception:
                logger.exception(
                    "Outbound SMS trigger failed",
                    extra={"campaign_id": str(campaign.id), "call_log_id": str(call_log.id)},
                )

        if (
            campaign.status == OutboundCampaignStatus.RUNNING.value
            and _campaign_finished(db, campaign)
        ):
            campaign.status = OutboundCampaignStatus.COMPLETED.value
            campaign.completed_at = now
            logger.info("Outbound campaign completed", extra={"campaign_id": str(campaign.id)})

    db.flush()
    return {"received": True}
