"""SMS sending via the Twilio REST API.

Every attempt is recorded in sms_logs, successful or not. Sending never
raises: failures end up on the log row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import mask_phone
from app.db.enums import SmsStatus
from app.db.models import Contact, OutboundContact, SmsLog
from app.services.http_service import (
    DEFAULT_TIMEOUT_SECONDS,
    error_detail,
    request_with_retries,
)
from app.utils.phone import is_e164, normalize_webhook_phone

logger = logging.getLogger(__name__)

OPT_OUT_SUFFIX = "\n\nReply STOP to opt out"
TWILIO_MAX_ATTEMPTS = 3
# Only failures where Twilio cannot have accepted the message
TWILIO_RETRY_STATUSES = {429}
TWILIO_RETRY_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class TwilioError(Exception):
    """Twilio rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class TwilioCredentials:
    account_sid: str
    auth_token: str


def resolve_credentials(campaign=None) -> TwilioCredentials | None:
    """
    Campaign credentials when the campaign overrides Twilio, else settings.

    ``campaign`` is any object with twilio_override / twilio_account_sid /
    twilio_auth_token (inbound or outbound campaigns).
    """
    if (
        campaign is not None
        and campaign.twilio_override
        and campaign.twilio_account_sid
        and campaign.twilio_auth_token
    ):
        return TwilioCredentials(campaign.twilio_account_sid, campaign.twilio_auth_token)
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        return TwilioCredentials(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    return None


def with_opt_out(message: str) -> str:
    """Append the opt-out footer unless the message already mentions STOP."""
    if "STOP" in message:
        return message
    return f"{message}{OPT_OUT_SUFFIX}"


class TwilioClient:
    """Minimal async client for the Messages resource."""

    def __init__(
        self,
        credentials: TwilioCredentials,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = TWILIO_MAX_ATTEMPTS,
    ):
        self.credentials = credentials
        self.base_url = (base_url or settings.TWILIO_API_BASE_URL).rstrip("/")
        self.transport = transport
        self.max_attempts = max_attempts

    async def send_message(self, *, to_number: str, from_number: str, body: str) -> str:
        """Send one message. Returns the Twilio message SID."""
        url = f"{self.base_url}/2010-04-01/Accounts/{self.credentials.account_sid}/Messages.json"
        data = {"To": to_number, "From": from_number, "Body": body}
        auth = (self.credentials.account_sid, self.credentials.auth_token)

        async with httpx.AsyncClient(
            timeout=DEFAULT_TIMEOUT_SECONDS, transport=self.transport
        ) as client:

            async def request_fn() -> httpx.Response:
                return await client.post(url, data=data, auth=auth)

            try:
                response = await request_with_retries(
                    request_fn,
                    max_attempts=self.max_attempts,
                    retry_statuses=TWILIO_RETRY_STATUSES,
                    retry_errors=TWILIO_RETRY_ERRORS,
                    service="twilio",
                )
            except httpx.RequestError as exc:
                raise TwilioError(f"Twilio connection error: {exc.__class__.__name__}") from exc

        if not 200 <= response.status_code < 300:
            message = f"Twilio API error: {response.status_code}"
            detail = error_detail(response)
            if detail:
                message = f"{message} ({detail})"
            raise TwilioError(message, status_code=response.status_code)

        sid = response.json().get("sid")
        if not sid:
            raise TwilioError("Twilio response missing message sid")
        return sid


async def send_sms(
    db: Session,
    *,
    to_number: str,
    from_number: str,
    message: str,
    credentials: TwilioCredentials | None,
    interaction_id: UUID | None = None,
    trigger_id: UUID | None = None,
    contact: Contact | OutboundContact | None = None,
    outbound_call_log_id: UUID | None = None,
    client: TwilioClient | None = None,
) -> SmsLog:
    """
    Send an SMS and record it.

    On success the trigger is appended to the contact's fired list so it
    never fires twice for the same person.
    """
    destination = normalize_webhook_phone(to_number)
    body = with_opt_out(message)

    log = SmsLog(
        interaction_id=interaction_id,
        outbound_call_log_id=outbound_call_log_id,
        trigger_id=trigger_id,
        contact_id=contact.id if isinstance(contact, Contact) else None,
        outbound_contact_id=contact.id if isinstance(contact, OutboundContact) else None,
        to_number=destination,
        from_number=from_number,
        message=body,
        status=SmsStatus.PENDING.value,
    )
    db.add(log)
    db.flush()

    try:
        if not is_e164(destination):
            raise TwilioError("Invalid destination phone number")
        if credentials is None:
            raise TwilioError("Twilio credentials not configured")

        twilio = client or TwilioClient(credentials)
        sid = await twilio.send_message(to_number=destination, from_number=from_number, body=body)
    except Exception as exc:
        log.status = SmsStatus.FAILED.value
        log.error_message = str(exc) or exc.__class__.__name__
        db.flush()
        logger.warning(
            "SMS send failed",
            extra={"sms_log_id": str(log.id), "to": mask_phone(destination), "error": log.error_message},
        )
        return log

    log.status = SmsStatus.SENT.value
    log.twilio_sid = sid
    log.sent_at = datetime.now(timezone.utc)
    if contact is not None and trigger_id is not None:
        fired = [str(item) for item in (contact.sms_triggers_fired or [])]
        if str(trigger_id) not in fired:
            # New list so the JSON column is flagged dirty
            contact.sms_triggers_fired = [*fired, str(trigger_id)]
    db.flush()

    logger.info(
        "SMS sent",
        extra={"sms_log_id": str(log.id), "to": mask_phone(destination), "trigger_id": str(trigger_id) if trigger_id else None},
    )
    return log
