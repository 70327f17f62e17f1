"""Organization, inbound campaign and SMS trigger schemas."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field is required")
    return value


# =============================================================================
# Organizations
# =============================================================================

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("contact_email", mode="before")
    @classmethod
    def blank_email(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    contact_email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=1000)
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        return _strip_required(value) if value is not None else None


class OrganizationResponse(BaseModel):
    id: UUID
    name: str
    contact_email: str | None
    phone: str | None
    address: str | None
    is_active: bool
    campaign_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Inbound campaigns
# =============================================================================

class CampaignCreate(BaseModel):
    organization_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    twilio_phone_number: str | None = Field(None, max_length=32)
    twilio_override: bool = False
    twilio_account_sid: str | None = Field(None, max_length=64)
    twilio_auth_token: str | None = Field(None, max_length=128)
    ai_extraction_hints: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return _strip_required(value)


class CampaignUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    twilio_phone_number: str | None = Field(None, max_length=32)
    twilio_override: bool | None = None
    twilio_account_sid: str | None = Field(None, max_length=64)
    twilio_auth_token: str | None = Field(None, max_length=128)
    ai_extraction_hints: dict[str, Any] | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        return _strip_required(value) if value is not None else None


class CampaignResponse(BaseModel):
    id: UUID
    organization_id: UUID
    organization_name: str | None = None
    name: str
    description: str | None
    webhook_uuid: UUID
    webhook_url: str
    campaign_type: str
    twilio_phone_number: str | None
    twilio_override: bool
    twilio_account_sid: str | None
    twilio_auth_token: str | None  # masked
    ai_extraction_hints: dict[str, Any]
    is_active: bool
    created_at: datetime
    updated_at: datetime


# =============================================================================
# SMS triggers
# =============================================================================

SMS_MESSAGE_MAX_LENGTH = 1600


class TriggerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    intent_description: str = Field(..., min_length=1, max_length=2000)
    sms_message: str = Field(..., min_length=1, max_length=SMS_MESSAGE_MAX_LENGTH)
    priority: int = Field(100, ge=0, le=10000)
    is_active: bool = True

    @field_validator("name", "intent_description", "sms_message")
    @classmethod
    def strip_required(cls, value: str) -> str:
        return _strip_required(value)


class TriggerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    intent_description: str | None = Field(None, min_length=1, max_length=2000)
    sms_message: str | None = Field(None, min_length=1, max_length=SMS_MESSAGE_MAX_LENGTH)
    priority: int | None = Field(None, ge=0, le=10000)
    is_active: bool | None = None

    @field_validator("name", "intent_description", "sms_message")
    @classmethod
    def strip_required(cls, value: str | None) -> str | None:
        return _strip_required(value) if value is not None else None


class TriggerResponse(BaseModel):
    id: UUID
    campaign_id: UUID | None
    outbound_campaign_id: UUID | None
    name: str
    intent_description: str
    sms_message: str
    priority: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
