"""Tests for VAPI call reports on the outbound webhook."""

import uuid

import pytest
from httpx import AsyncClient

from app.db.enums import CallResult, OutboundCampaignStatus, OutboundContactStatus, SmsStatus
from app.db.models import (
    Interaction,
    OutboundCallLog,
    OutboundCampaign,
    OutboundContact,
    SmsLog,
    SmsTrigger,
)


@pytest.fixture
def dialed(db, test_org):
    """A running campaign with one contact mid-call on attempt 1."""
    campaign = OutboundCampaign(
        organization_id=test_org.id,
        name="Reactivation",
        webhook_uuid=uuid.uuid4(),
        status=OutboundCampaignStatus.RUNNING.value,
        vapi_assistant_id="asst-1",
        vapi_phone_number_id="pn-1",
        twilio_phone_number="+15550001111",
        max_retries=1,
        retry_delay_hours=2,
        total_contacts=1,
    )
    db.add(campaign)
    db.flush()
    contact = OutboundContact(
        campaign_id=campaign.id,
        phone_number="+12127365000",
        first_name="Ada",
        status=OutboundContactStatus.CALLING.value,
        attempt_count=1,
    )
    db.add(contact)
    db.flush()
    log = OutboundCallLog(
        campaign_id=campaign.id,
        contact_id=contact.id,
        vapi_call_id="call-1",
        attempt_number=1,
    )
    db.add(log)
    db.commit()
    return campaign, contact, log


def _report(call_id: str = "call-1", transcript: str | None = None, ended_reason: str = "customer-ended-call"):
    message = {
        "type": "end-of-call-report",
        "endedReason": ended_reason,
        "call": {"id": call_id, "customer": {"number": "+12127365000"}},
        "startedAt": "2026-06-10T15:00:00Z",
        "endedAt": "2026-06-10T15:01:00Z",
    }
    if transcript:
        message["artifact"] = {"transcript": transcript}
        message["analysis"] = {"summary": "Wants pricing details"}
    return {"message": message}


async def test_answered_call_completes_contact_and_campaign(client: AsyncClient, db, dialed):
    campaign, contact, log = dialed

    response = await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json=_report(transcript="AI: Hello\nCustomer: How much is it?"),
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}

    db.refresh(log)
    db.refresh(contact)
    db.refresh(campaign)
    assert log.call_result == CallResult.ANSWERED.value
    assert log.duration_seconds == 60
    assert log.ai_summary == "Wants pricing details"
    assert log.ended_at is not None
    assert contact.status == OutboundContactStatus.COMPLETED.value
    assert contact.call_result == CallResult.ANSWERED.value
    assert campaign.contacts_called == 1
    assert campaign.contacts_answered == 1
    assert campaign.status == OutboundCampaignStatus.COMPLETED.value
    assert campaign.completed_at is not None
    # Outbound calls live in call logs only
    assert db.query(Interaction).count() == 0


async def test_unanswered_call_with_attempts_left_is_requeued(client: AsyncClient, db, dialed):
    campaign, contact, log = dialed

    response = await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json=_report(ended_reason="customer-busy"),
    )

    assert response.status_code == 200
    db.refresh(contact)
    db.refresh(campaign)
    assert contact.status == OutboundContactStatus.QUEUED.value
    assert contact.call_result == CallResult.BUSY.value
    assert contact.next_attempt_at is not None
    assert campaign.contacts_failed == 0
    assert campaign.status == OutboundCampaignStatus.RUNNING.value


async def test_unanswered_final_attempt_counts_as_failed(client: AsyncClient, db, dialed):
    campaign, contact, _ = dialed
    contact.attempt_count = 2
    db.commit()

    await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json=_report(ended_reason="customer-did-not-answer"),
    )

    db.refresh(contact)
    db.refresh(campaign)
    assert contact.status == OutboundContactStatus.COMPLETED.value
    assert contact.next_attempt_at is None
    assert campaign.contacts_failed == 1
    assert campaign.status == OutboundCampaignStatus.COMPLETED.value


async def test_repeated_report_is_applied_once(client: AsyncClient, db, dialed):
    campaign, _, _ = dialed
    body = _report(transcript="AI: Hello\nCustomer: Hi")

    await client.post(f"/api/outbound-webhook/{campaign.webhook_uuid}", json=body)
    await client.post(f"/api/outbound-webhook/{campaign.webhook_uuid}", json=body)

    db.refresh(campaign)
    assert campaign.contacts_called == 1
    assert campaign.contacts_answered == 1


async def test_status_update_before_end_is_acknowledged_only(client: AsyncClient, db, dialed):
    campaign, contact, log = dialed

    response = await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json={"message": {"type": "status-update", "call": {"id": "call-1", "status": "ringing"}}},
    )

    assert response.json() == {"received": True}
    db.refresh(log)
    assert log.call_result is None


async def test_unknown_call_is_skipped(client: AsyncClient, dialed):
    campaign, _, _ = dialed
    response = await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json=_report(call_id="call-unknown"),
    )
    assert response.json() == {"received": True, "skipped": "Call not found"}


async def test_report_without_call_is_skipped(client: AsyncClient, dialed):
    campaign, _, _ = dialed
    response = await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json={"message": {"type": "end-of-call-report"}},
    )
    assert response.json() == {"received": True, "skipped": "No call data"}


async def test_answered_call_fires_matching_trigger(client: AsyncClient, db, dialed):
    campaign, contact, log = dialed
    db.add(
        SmsTrigger(
            outbound_campaign_id=campaign.id,
            name="Pricing",
            intent_description="pricing",
            sms_message="Our price list: https://example.com/prices",
        )
    )
    db.commit()

    await client.post(
        f"/api/outbound-webhook/{campaign.webhook_uuid}",
        json=_report(transcript="AI: Hello\nCustomer: What is your pricing?"),
    )

    sms = db.query(SmsLog).one()
    assert sms.outbound_call_log_id == log.id
    assert sms.outbound_contact_id == contact.id
    assert sms.to_number == "+12127365000"
    # Twilio is not configured in tests, so the attempt is logged as failed
    assert sms.status == SmsStatus.FAILED.value
    db.refresh(log)
    assert log.sms_sent is False


async def test_unknown_webhook_returns_404(client: AsyncClient, db):
    response = await client.post(f"/api/outbound-webhook/{uuid.uuid4()}", json=_report())
    assert response.status_code == 404


async def test_verify_outbound_webhook(client: AsyncClient, dialed):
    campaign, _, _ = dialed
    response = await client.get(f"/api/outbound-webhook/{campaign.webhook_uuid}")
    assert response.status_code == 200
    assert response.json() == {"valid": True, "campaign_name": "Reactivation", "type": "outbound"}
