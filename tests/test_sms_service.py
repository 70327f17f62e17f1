"""Tests for Twilio SMS sending and logging."""

import httpx
import pytest

from app.db.enums import SmsStatus
from app.db.models import Contact, SmsLog, SmsTrigger
from app.services import http_service, sms_service
from app.services.sms_service import TwilioClient, TwilioCredentials, TwilioError, with_opt_out

CREDENTIALS = TwilioCredentials(account_sid="AC123", auth_token="secret")


def _client(handler) -> TwilioClient:
    return TwilioClient(CREDENTIALS, transport=httpx.MockTransport(handler), max_attempts=1)


def test_with_opt_out_appends_footer_once():
    assert with_opt_out("Thanks for calling!") == "Thanks for calling!\n\nReply STOP to opt out"
    assert with_opt_out("Text STOP to end") == "Text STOP to end"


def test_resolve_credentials_prefers_campaign_override(monkeypatch):
    monkeypatch.setattr(sms_service.settings, "TWILIO_ACCOUNT_SID", "ACplatform")
    monkeypatch.setattr(sms_service.settings, "TWILIO_AUTH_TOKEN", "platform-token")

    class _Campaign:
        twilio_override = True
        twilio_account_sid = "ACcampaign"
        twilio_auth_token = "campaign-token"

    assert sms_service.resolve_credentials(_Campaign()) == TwilioCredentials("ACcampaign", "campaign-token")

    _Campaign.twilio_override = False
    assert sms_service.resolve_credentials(_Campaign()) == TwilioCredentials("ACplatform", "platform-token")


def test_resolve_credentials_none_when_unconfigured(monkeypatch):
    monkeypatch.setattr(sms_service.settings, "TWILIO_ACCOUNT_SID", "")
    monkeypatch.setattr(sms_service.settings, "TWILIO_AUTH_TOKEN", "")
    assert sms_service.resolve_credentials(None) is None


async def test_twilio_client_posts_form_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = request.content.decode()
        return httpx.Response(201, json={"sid": "SM1"})

    sid = await _client(handler).send_message(to_number="+12127365000", from_number="+15550001111", body="Hi")

    assert sid == "SM1"
    assert seen["url"].endswith("/2010-04-01/Accounts/AC123/Messages.json")
    assert seen["auth"].startswith("Basic ")
    assert "To=%2B12127365000" in seen["body"]


async def test_twilio_client_raises_on_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "Invalid 'To' number"})

    with pytest.raises(TwilioError) as exc_info:
        await _client(handler).send_message(to_number="+1", from_number="+1", body="Hi")
    assert exc_info.value.status_code == 400
    assert "Invalid 'To' number" in str(exc_info.value)


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(http_service, "backoff_delay", lambda *args: 0.0)


@pytest.mark.parametrize(
    "failure",
    [
        httpx.Response(502, json={"message": "Bad gateway"}),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_twilio_send_is_not_repeated_after_ambiguous_failure(no_backoff, failure):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if isinstance(failure, Exception):
            raise failure
        return failure

    client = TwilioClient(CREDENTIALS, transport=httpx.MockTransport(handler))

    with pytest.raises(TwilioError):
        await client.send_message(to_number="+12127365000", from_number="+15550001111", body="Hi")
    assert len(calls) == 1


@pytest.mark.parametrize(
    "failure",
    [
        httpx.Response(429, json={"message": "Too many requests"}),
        httpx.ConnectError("refused"),
    ],
)
async def test_twilio_send_retries_when_message_was_not_accepted(no_backoff, failure):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            if isinstance(failure, Exception):
                raise failure
            return failure
        return httpx.Response(201, json={"sid": "SM7"})

    client = TwilioClient(CREDENTIALS, transport=httpx.MockTransport(handler))

    sid = await client.send_message(to_number="+12127365000", from_number="+15550001111", body="Hi")

    assert sid == "SM7"
    assert len(calls) == 2


async def test_send_sms_records_success_and_marks_trigger_fired(db, campaign):
    contact = Contact(campaign_id=campaign.id, phone_number="+12127365000", sms_triggers_fired=[])
    trigger = SmsTrigger(
        campaign_id=campaign.id,
        name="Pricing",
        intent_description="pricing",
        sms_message="See you soon",
    )
    db.add_all([contact, trigger])
    db.flush()
    trigger_id = trigger.id

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"sid": "SM42"})

    log = await sms_service.send_sms(
        db,
        to_number="(212) 736-5000",
        from_number="+15550001111",
        message="See you soon",
        credentials=CREDENTIALS,
        trigger_id=trigger_id,
        contact=contact,
        client=_client(handler),
    )

    assert log.status == SmsStatus.SENT.value
    assert log.twilio_sid == "SM42"
    assert log.to_number == "+12127365000"
    assert log.message.endswith("Reply STOP to opt out")
    assert log.sent_at is not None
    assert log.contact_id == contact.id
    assert contact.sms_triggers_fired == [str(trigger_id)]


async def test_send_sms_without_credentials_logs_failure(db):
    log = await sms_service.send_sms(
        db,
        to_number="+12127365000",
        from_number="+15550001111",
        message="Hello",
        credentials=None,
    )
    assert log.status == SmsStatus.FAILED.value
    assert log.error_message == "Twilio credentials not configured"
    assert log.sent_at is None
    assert log.created_at is not None
    assert db.query(SmsLog).count() == 1


async def test_send_sms_rejects_invalid_destination(db):
    log = await sms_service.send_sms(
        db,
        to_number="abc",
        from_number="+15550001111",
        message="Hello",
        credentials=CREDENTIALS,
    )
    assert log.status == SmsStatus.FAILED.value
    assert log.error_message == "Invalid destination phone number"


async def test_send_sms_provider_error_is_not_raised(db):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Authenticate"})

    log = await sms_service.send_sms(
        db,
        to_number="+12127365000",
        from_number="+15550001111",
        message="Hello",
        credentials=CREDENTIALS,
        client=_client(handler),
    )
    assert log.status == SmsStatus.FAILED.value
    assert "401" in log.error_message
