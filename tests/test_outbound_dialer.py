"""Tests for the outbound dialer pass."""

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.db.enums import CallResult, OutboundCampaignStatus, OutboundContactStatus
from app.db.models import OutboundCallLog, OutboundCampaign, OutboundContact, OutboundSchedule
from app.services.outbound_dialer_service import is_within_schedule, process_outbound_calls
from app.services.vapi_service import VapiClient

# Wednesday: 11:00 in New York, 08:00 in Los Angeles
NOW = datetime(2026, 6, 10, 15, 0, tzinfo=timezone.utc)


def _naive(value: datetime | None) -> datetime | None:
    return value.replace(tzinfo=None) if value is not None else None


class FakeVapi:
    """Records placed calls; answers through httpx.MockTransport."""

    def __init__(self, status_code: int = 201):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"message": "VAPI unavailable"})
        return httpx.Response(self.status_code, json={"id": f"call-{len(self.requests)}"})

    @property
    def client(self) -> VapiClient:
        return VapiClient("test-key", "https://vapi.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def running_campaign(db, test_org) -> OutboundCampaign:
    campaign = OutboundCampaign(
        organization_id=test_org.id,
        name="Reactivation",
        webhook_uuid=uuid.uuid4(),
        status=OutboundCampaignStatus.RUNNING.value,
        vapi_assistant_id="asst-1",
        vapi_phone_number_id="pn-1",
        max_concurrent_calls=5,
        max_retries=1,
        retry_delay_hours=2,
    )
    db.add(campaign)
    db.flush()
    return campaign


def _contact(db, campaign, phone: str, first_name: str, **kwargs) -> OutboundContact:
    contact = OutboundContact(campaign_id=campaign.id, phone_number=phone, first_name=first_name, **kwargs)
    db.add(contact)
    db.flush()
    return contact


async def test_dials_only_contacts_inside_local_calling_hours(db, running_campaign):
    ny = _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    la = _contact(db, running_campaign, "+14158675309", "Grace", timezone="America/Los_Angeles")
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 1
    assert result.campaigns_processed == 1
    assert result.errors == []
    assert len(vapi.requests) == 1

    db.refresh(ny)
    db.refresh(la)
    assert ny.status == OutboundContactStatus.CALLING.value
    assert ny.attempt_count == 1
    assert la.status == OutboundContactStatus.PENDING.value

    log = db.query(OutboundCallLog).one()
    assert log.contact_id == ny.id
    assert log.vapi_call_id == "call-1"
    assert log.attempt_number == 1


async def test_contact_timezone_falls_back_to_area_code(db, running_campaign):
    # No stored timezone: 415 resolves to Los Angeles, where it is 08:00
    _contact(db, running_campaign, "+14158675309", "Grace")
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 0
    assert vapi.requests == []


async def test_respects_concurrency_limit(db, running_campaign):
    running_campaign.max_concurrent_calls = 1
    _contact(db, running_campaign, "+12127365000", "Busy", status=OutboundContactStatus.CALLING.value)
    _contact(db, running_campaign, "+12127365001", "Waiting", timezone="America/New_York")
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 0
    assert vapi.requests == []


async def test_queued_contacts_wait_for_next_attempt(db, running_campaign):
    later = _contact(
        db, running_campaign, "+12127365000", "Later",
        timezone="America/New_York",
        status=OutboundContactStatus.QUEUED.value,
        attempt_count=1,
        next_attempt_at=NOW + timedelta(hours=1),
    )
    due = _contact(
        db, running_campaign, "+12127365001", "Due",
        timezone="America/New_York",
        status=OutboundContactStatus.QUEUED.value,
        attempt_count=1,
        next_attempt_at=NOW - timedelta(minutes=5),
    )
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 1
    db.refresh(due)
    db.refresh(later)
    assert due.status == OutboundContactStatus.CALLING.value
    assert due.attempt_count == 2
    assert later.status == OutboundContactStatus.QUEUED.value


async def test_contacts_out_of_attempts_are_skipped(db, running_campaign):
    _contact(
        db, running_campaign, "+12127365000", "Done",
        timezone="America/New_York",
        status=OutboundContactStatus.QUEUED.value,
        attempt_count=2,
    )
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 0


async def test_failed_call_start_requeues_contact(db, running_campaign):
    contact = _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    db.commit()
    vapi = FakeVapi(status_code=500)

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.calls_initiated == 0
    assert len(result.errors) == 1
    assert "VAPI unavailable" in result.errors[0]
    # POST /call/phone is attempted exactly once
    assert len(vapi.requests) == 1

    db.refresh(contact)
    assert contact.status == OutboundContactStatus.QUEUED.value
    assert contact.call_result == CallResult.FAILED.value
    assert _naive(contact.next_attempt_at) == _naive(NOW + timedelta(hours=2))
    assert db.query(OutboundCallLog).count() == 0


async def test_failed_call_start_on_last_attempt_fails_contact(db, running_campaign):
    running_campaign.max_retries = 0
    contact = _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    db.commit()

    await process_outbound_calls(db, FakeVapi(status_code=500).client, now=NOW)

    db.refresh(contact)
    assert contact.status == OutboundContactStatus.FAILED.value
    assert contact.next_attempt_at is None


async def test_missing_vapi_configuration_is_reported(db, running_campaign):
    running_campaign.vapi_phone_number_id = None
    _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    db.commit()

    result = await process_outbound_calls(db, FakeVapi().client, now=NOW)

    assert result.calls_initiated == 0
    assert result.errors == [f"Campaign {running_campaign.id}: Missing VAPI configuration"]


async def test_missing_api_key_is_reported(db, running_campaign):
    db.commit()
    result = await process_outbound_calls(db, None, now=NOW)
    assert result.errors == ["VAPI API key not configured"]


async def test_draft_campaigns_are_ignored(db, running_campaign):
    running_campaign.status = OutboundCampaignStatus.DRAFT.value
    _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    db.commit()

    result = await process_outbound_calls(db, FakeVapi().client, now=NOW)

    assert result.campaigns_processed == 0
    assert result.calls_initiated == 0


async def test_outside_schedule_places_no_calls(db, running_campaign):
    # Only Mondays; NOW is a Wednesday
    db.add(
        OutboundSchedule(
            campaign_id=running_campaign.id,
            day_of_week=1,
            start_time="09:00",
            end_time="17:00",
            timezone="America/New_York",
        )
    )
    _contact(db, running_campaign, "+12127365000", "Ada", timezone="America/New_York")
    db.commit()
    vapi = FakeVapi()

    result = await process_outbound_calls(db, vapi.client, now=NOW)

    assert result.campaigns_processed == 1
    assert result.calls_initiated == 0
    assert vapi.requests == []


def test_is_within_schedule():
    wednesday_morning = OutboundSchedule(
        day_of_week=3, start_time="09:00", end_time="12:00", timezone="America/New_York", is_active=True
    )
    wednesday_evening = OutboundSchedule(
        day_of_week=3, start_time="18:00", end_time="20:00", timezone="America/New_York", is_active=True
    )
    inactive = OutboundSchedule(
        day_of_week=3, start_time="00:00", end_time="23:59", timezone="America/New_York", is_active=False
    )

    assert is_within_schedule([], NOW)
    assert is_within_schedule([inactive], NOW)
    assert is_within_schedule([wednesday_morning], NOW)
    assert not is_within_schedule([wednesday_evening], NOW)


def test_window_ending_at_midnight_covers_last_minute():
    late_evening = OutboundSchedule(
        day_of_week=3, start_time="20:00", end_time="24:00", timezone="America/New_York", is_active=True
    )

    # 23:59 Wednesday in New York
    assert is_within_schedule([late_evening], datetime(2026, 6, 11, 3, 59, tzinfo=timezone.utc))
    # 00:00 Thursday
    assert not is_within_schedule([late_evening], datetime(2026, 6, 11, 4, 0, tzinfo=timezone.utc))
