"""Outbound calling schemas: campaigns, contacts, schedules, call logs."""
import re
from datetime import datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.db.enums import OutboundCampaignStatus
from app.utils.phone import normalize_phone_number

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
# Exclusive end of a window that runs through midnight
END_OF_DAY = "24:00"


def _validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{value}'")
    return value


# =============================================================================
# Campaigns
# =============================================================================

class OutboundCampaignCreate(BaseModel):
    """Create an outbound campaign (always starts in draft)."""
    organization_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    vapi_assistant_id: str | None = Field(None, max_length=100)
    vapi_assistant_name: str | None = Field(None, max_length=200)
    vapi_phone_number_id: str | None = Field(None, max_length=100)
    vapi_phone_number: str | None = Field(None, max_length=32)
    twilio_phone_number: str | None = Field(None, max_length=32)
    twilio_override: bool = False
    twilio_account_sid: str | None = Field(None, max_length=64)
    twilio_auth_token: str | None = Field(None, max_length=128)
    max_concurrent_calls: int = Field(10, ge=1, le=100)
    max_retries: int = Field(3, ge=0, le=10)
    retry_delay_hours: int = Field(4, ge=1, le=168)
    ai_extraction_hints: dict[str, Any] = Field(default_factory=dict)
    scheduled_start_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class OutboundCampaignUpdate(BaseModel):
    """Partial update. ``status`` goes through the transition table."""
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    vapi_assistant_id: str | None = Field(None, max_length=100)
    vapi_assistant_name: str | None = Field(None, max_length=200)
    vapi_phone_number_id: str | None = Field(None, max_length=100)
    vapi_phone_number: str | None = Field(None, max_length=32)
    twilio_phone_number: str | None = Field(None, max_length=32)
    twilio_override: bool | None = None
    twilio_account_sid: str | None = Field(None, max_length=64)
    twilio_auth_token: str | None = Field(None, max_length=128)
    max_concurrent_calls: int | None = Field(None, ge=1, le=100)
    max_retries: int | None = Field(None, ge=0, le=10)
    retry_delay_hours: int | None = Field(None, ge=1, le=168)
    ai_extraction_hints: dict[str, Any] | None = None
    scheduled_start_at: datetime | None = None
    status: OutboundCampaignStatus | None = None


class OutboundCampaignResponse(BaseModel):
    id: UUID
    organization_id: UUID
    organization_name: str | None = None
    name: str
    description: str | None
    webhook_uuid: UUID
    webhook_url: str
    status: str
    vapi_assistant_id: str | None
    vapi_assistant_name: str | None
    vapi_phone_number_id: str | None
    vapi_phone_number: str | None
    twilio_phone_number: str | None
    twilio_override: bool
    twilio_account_sid: str | None
    twilio_auth_token: str | None  # masked
    max_concurrent_calls: int
    max_retries: int
    retry_delay_hours: int
    ai_extraction_hints: dict[str, Any]
    total_contacts: int
    contacts_called: int
    contacts_answered: int
    contacts_failed: int
    scheduled_start_at: datetime | None
    actual_start_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Schedules
# =============================================================================

class ScheduleEntry(BaseModel):
    """Weekly window. day_of_week: 0 = Sunday."""
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str
    timezone: str = "America/New_York"
    is_active: bool = True

    @field_validator("start_time")
    @classmethod
    def check_start(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError("Time must be HH:MM")
        return value

    @field_validator("end_time")
    @classmethod
    def check_end(cls, value: str) -> str:
        if value != END_OF_DAY and not _HHMM.match(value):
            raise ValueError("Time must be HH:MM or 24:00")
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @model_validator(mode="after")
    def check_window(self) -> "ScheduleEntry":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class SchedulesReplace(BaseModel):
    schedules: list[ScheduleEntry] = Field(default_factory=list, max_length=50)


class ScheduleResponse(ScheduleEntry):
    id: UUID

    model_config = {"from_attributes": True}


# =============================================================================
# Contacts
# =============================================================================

class ContactMapping(BaseModel):
    """Column mapping sent with an upload (JSON form field)."""
    phone_number: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str | None = None
    email: str | None = None
    company: str | None = None


class OutboundContactInput(BaseModel):
    phone_number: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    company: str | None = Field(None, max_length=200)
    timezone: str | None = None
    area_code: str | None = Field(None, max_length=3)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("phone_number")
    @classmethod
    def normalize_phone(cls, value: str) -> str:
        normalized = normalize_phone_number(value)
        if not normalized:
            raise ValueError("Invalid phone number")
        return normalized

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_timezone(value)


class ContactsAdd(BaseModel):
    contacts: list[OutboundContactInput] = Field(..., min_length=1, max_length=10000)


class OutboundContactResponse(BaseModel):
    id: UUID
    campaign_id: UUID
    phone_number: str
    first_name: str
    last_name: str | None
    email: str | None
    company: str | None
    timezone: str | None
    area_code: str | None
    status: str
    attempt_count: int
    last_attempt_at: datetime | None
    next_attempt_at: datetime | None
    call_result: str | None
    call_duration_seconds: int | None
    custom_fields: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Call logs
# =============================================================================

class OutboundCallLogResponse(BaseModel):
    id: UUID
    campaign_id: UUID
    contact_id: UUID
    contact_name: str | None = None
    contact_phone: str | None = None
    vapi_call_id: str | None
    attempt_number: int
    call_result: str | None
    duration_seconds: int | None
    transcript: str | None
    recording_url: str | None
    ai_summary: str | None
    sms_sent: bool
    sms_trigger_id: UUID | None
    started_at: datetime | None
    ended_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
