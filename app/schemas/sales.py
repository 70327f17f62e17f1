"""Sales portal schemas: leads, activities, stages, commissions, team, enrollment."""
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.db.enums import CommissionStatus, LeadStatus


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# Leads
# =============================================================================

class LeadCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    company: str | None = Field(None, max_length=200)
    job_title: str | None = Field(None, max_length=100)
    estimated_value: int | None = Field(None, ge=0)  # cents
    source: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=10000)
    next_follow_up_at: datetime | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        return _blank_to_none(value)


class LeadUpdate(BaseModel):
    """Partial update; only fields sent are applied."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    company: str | None = Field(None, max_length=200)
    job_title: str | None = Field(None, max_length=100)
    estimated_value: int | None = Field(None, ge=0)
    source: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=10000)
    stage_id: UUID | None = None
    status: LeadStatus | None = None
    lost_reason: str | None = Field(None, max_length=2000)
    next_follow_up_at: datetime | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value):
        return _blank_to_none(value)


class AdminLeadUpdate(LeadUpdate):
    sales_user_id: UUID | None = None


class LeadRead(BaseModel):
    id: UUID
    sales_user_id: UUID
    sales_user_name: str | None = None
    stage_id: UUID | None
    stage_name: str | None = None
    stage_color: str | None = None
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    company: str | None
    job_title: str | None
    estimated_value: int | None
    source: str | None
    notes: str | None
    status: str
    converted_at: datetime | None
    lost_reason: str | None
    last_contacted_at: datetime | None
    next_follow_up_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ActivityCreate(BaseModel):
    activity_type: Literal["note", "call", "email", "meeting", "task", "other"]
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=10000)
    metadata: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value


class ActivityRead(BaseModel):
    id: UUID
    lead_id: UUID
    user_id: UUID | None
    user_type: str
    activity_type: str
    title: str
    description: str | None
    metadata: dict[str, Any] | None = Field(None, validation_alias="activity_metadata")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class LeadDetail(LeadRead):
    activities: list[ActivityRead] = Field(default_factory=list)


class StageRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    color: str
    order: int
    is_default: bool
    is_final: bool
    is_won: bool

    model_config = {"from_attributes": True}


# =============================================================================
# Commissions
# =============================================================================

class CommissionCreate(BaseModel):
    lead_id: UUID | None = None
    sales_user_id: UUID
    organization_id: UUID | None = None
    sale_amount: int = Field(..., ge=0)  # cents
    commission_rate: int | None = Field(None, ge=0, le=100)
    status: Literal["pending", "approved", "paid"] = "pending"
    notes: str | None = Field(None, max_length=5000)


class CommissionUpdate(BaseModel):
    status: CommissionStatus | None = None
    notes: str | None = Field(None, max_length=5000)
    payment_method: str | None = Field(None, max_length=50)
    payment_reference: str | None = Field(None, max_length=100)


class CommissionRead(BaseModel):
    id: UUID
    sales_user_id: UUID
    sales_user_name: str | None = None
    lead_id: UUID | None
    lead_name: str | None = None
    organization_id: UUID | None
    sale_amount: int
    commission_rate: int
    commission_amount: int
    status: str
    approved_at: datetime | None
    approved_by: UUID | None
    paid_at: datetime | None
    payment_method: str | None
    payment_reference: str | None
    notes: str | None
    created_at: datetime


class CommissionStats(BaseModel):
    total_pending: int = 0
    total_approved: int = 0
    total_paid: int = 0
    total_all: int = 0
    count_pending: int = 0
    count_approved: int = 0


# =============================================================================
# Sales team
# =============================================================================

class SalesUserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20)
    commission_rate: int = Field(18, ge=0, le=100)
    bio: str | None = Field(None, max_length=5000)
    notes: str | None = Field(None, max_length=5000)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value


class SalesUserUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20)
    commission_rate: int | None = Field(None, ge=0, le=100)
    bio: str | None = Field(None, max_length=5000)
    notes: str | None = Field(None, max_length=5000)
    is_active: bool | None = None


class SalesUserRead(BaseModel):
    id: UUID
    user_id: UUID
    email: str
    full_name: str
    phone: str | None
    commission_rate: int
    bio: str | None
    notes: str | None
    is_active: bool
    lead_count: int = 0
    commission_count: int = 0
    created_at: datetime


class SalesProfileUpdate(BaseModel):
    """Fields a sales user may change on their own profile."""
    full_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20)
    bio: str | None = Field(None, max_length=5000)


class SalesProfileRead(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone: str | None
    bio: str | None
    commission_rate: int
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Nurture enrollment
# =============================================================================

class EnrollRequest(BaseModel):
    lead_ids: list[UUID] = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=2000)
