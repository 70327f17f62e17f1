"""Interaction (ingested webhook event) schemas."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class InteractionListItem(BaseModel):
    id: UUID
    campaign_id: UUID
    campaign_name: str | None = None
    organization_id: UUID | None = None
    contact_id: UUID | None
    source_type: str
    source_platform: str | None
    phone_number: str | None
    call_status: str | None
    duration_seconds: int | None
    ai_summary: str | None
    tags: list[str]
    flagged: bool
    created_at: datetime


class SmsLogRead(BaseModel):
    id: UUID
    trigger_id: UUID | None
    to_number: str
    from_number: str
    message: str
    status: str
    twilio_sid: str | None
    error_message: str | None
    sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContactRead(BaseModel):
    id: UUID
    phone_number: str
    sms_triggers_fired: list[Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class InteractionDetail(InteractionListItem):
    transcript: str | None
    transcript_formatted: list[Any] | None
    recording_url: str | None
    ai_extracted_data: dict[str, Any] | None
    raw_payload: dict[str, Any] | None
    contact: ContactRead | None = None
    sms_logs: list[SmsLogRead] = Field(default_factory=list)


class InteractionUpdate(BaseModel):
    flagged: bool | None = None
    tags: list[str] | None = Field(None, max_length=50)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        cleaned: list[str] = []
        for tag in value:
            tag = tag.strip()[:50]
            if tag and tag not in cleaned:
                cleaned.append(tag)
        return cleaned
