"""SQLAlchemy ORM models for tenants, campaigns, interactions, outbound calling and the sales portal."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JsonType
from app.db.enums import (
    CampaignType, CommissionStatus, LeadStatus, OutboundCampaignStatus,
    OutboundContactStatus, Role, SmsStatus
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


def _created_at() -> Mapped[datetime]:
    return mapped_column(default=utcnow, server_default=text("CURRENT_TIMESTAMP"), nullable=False)


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


# =============================================================================
# Tenants & Users
# =============================================================================

class Organization(Base):
    """
    A client of the platform.

    Campaigns, outbound campaigns and client users belong to an organization.
    """
    __tablename__ = "organizations"
    __table_args__ = (
        Index("idx_organizations_name", "name"),
        Index("idx_organizations_active", "is_active"),
    )

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    campaigns: Mapped[list["Campaign"]] = relationship(back_populates="organization")


class User(Base):
    """
    An authenticated user.

    Admins operate the platform, client users see their own organization,
    sales users additionally own a SalesUser profile.
    """
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_org", "organization_id"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[uuid.UUID] = _pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), default=Role.CLIENT_USER.value, nullable=False
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    # Bumped to revoke all sessions
    token_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    timezone: Mapped[str] = mapped_column(
        String(50), default="America/Chicago", nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    organization: Mapped[Organization | None] = relationship()
    sales_profile: Mapped["SalesUser | None"] = relationship(
        back_populates="user", uselist=False
    )


class AuditLog(Base):
    """Append-only record of admin/user actions."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_user", "user_id"),
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
        Index("idx_audit_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = _pk()
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = _created_at()


# =============================================================================
# Inbound Campaigns & Interactions
# =============================================================================

class Campaign(Base):
    """
    An inbound campaign: a webhook endpoint plus SMS rules for one client.

    Providers (VAPI, Twilio, Autocalls, web forms) post to
    /api/webhook/{webhook_uuid}.
    """
    __tablename__ = "campaigns"
    __table_args__ = (
        Index("idx_campaigns_org", "organization_id"),
        Index("idx_campaigns_active", "is_active"),
    )

    id: Mapped[uuid.UUID] = _pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    webhook_uuid: Mapped[uuid.UUID] = mapped_column(
        Uuid, default=uuid.uuid4, unique=True, nullable=False
    )
    campaign_type: Mapped[str] = mapped_column(
        String(20), default=CampaignType.INBOUND.value, nullable=False
    )

    # Twilio (override = use campaign credentials instead of platform defaults)
    twilio_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    twilio_override: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    twilio_account_sid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    twilio_auth_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # {field_name: description} pulled from payloads into ai_extracted_data
    ai_extraction_hints: Mapped[dict] = mapped_column(
        JsonType, default=dict, server_default=text("'{}'"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    organization: Mapped[Organization] = relationship(back_populates="campaigns")
    triggers: Mapped[list["SmsTrigger"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        foreign_keys="SmsTrigger.campaign_id",
    )


class Contact(Base):
    """A caller/texter seen by an inbound campaign (one row per phone)."""
    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("campaign_id", "phone_number", name="uq_contacts_campaign_phone"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    # Trigger ids already sent to this contact (each fires at most once)
    sms_triggers_fired: Mapped[list] = mapped_column(
        JsonType, default=list, server_default=text("'[]'"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()


class Interaction(Base):
    """One recorded call/SMS/web-form/chatbot event ingested via webhook."""
    __tablename__ = "interactions"
    __table_args__ = (
        Index("idx_interactions_campaign", "campaign_id"),
        Index("idx_interactions_contact", "contact_id"),
        Index("idx_interactions_created_at", "created_at"),
        Index("idx_interactions_source_type", "source_type"),
        Index("idx_interactions_campaign_hash", "campaign_id", "payload_hash"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_platform: Mapped[str | None] = mapped_column(String(50), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    call_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript_formatted: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_extracted_data: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    raw_payload: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    payload_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tags: Mapped[list] = mapped_column(
        JsonType, default=list, server_default=text("'[]'"), nullable=False
    )
    flagged: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()

    campaign: Mapped[Campaign] = relationship()
    contact: Mapped[Contact | None] = relationship()
    sms_logs: Mapped[list["SmsLog"]] = relationship(back_populates="interaction")


class SmsTrigger(Base):
    """
    Keyword/priority rule that sends an SMS after a matching interaction.

    Belongs to either an inbound campaign or an outbound campaign.
    Lower priority numbers are evaluated first.
    """
    __tablename__ = "sms_triggers"
    __table_args__ = (
        Index("idx_sms_triggers_campaign", "campaign_id"),
        Index("idx_sms_triggers_outbound_campaign", "outbound_campaign_id"),
        Index("idx_sms_triggers_priority", "priority"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True
    )
    outbound_campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("outbound_campaigns.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    intent_description: Mapped[str] = mapped_column(Text, nullable=False)
    sms_message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(
        Integer, default=100, server_default=text("100"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    campaign: Mapped[Campaign | None] = relationship(
        back_populates="triggers", foreign_keys=[campaign_id]
    )


class SmsLog(Base):
    """Every SMS attempt, successful or not."""
    __tablename__ = "sms_logs"
    __table_args__ = (
        Index("idx_sms_logs_interaction", "interaction_id"),
        Index("idx_sms_logs_trigger", "trigger_id"),
        Index("idx_sms_logs_status", "status"),
    )

    id: Mapped[uuid.UUID] = _pk()
    interaction_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("interactions.id", ondelete="SET NULL"), nullable=True
    )
    outbound_call_log_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("outbound_call_logs.id", ondelete="SET NULL"), nullable=True
    )
    trigger_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("sms_triggers.id", ondelete="SET NULL"), nullable=True
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    outbound_contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("outbound_contacts.id", ondelete="SET NULL"), nullable=True
    )
    to_number: Mapped[str] = mapped_column(String(32), nullable=False)
    from_number: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SmsStatus.PENDING.value, nullable=False
    )
    twilio_sid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set only once Twilio accepts the message
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = _created_at()

    interaction: Mapped[Interaction | None] = relationship(back_populates="sms_logs")
    trigger: Mapped[SmsTrigger | None] = relationship()


class WebhookErrorLog(Base):
    """Webhook requests that could not be processed normally."""
    __tablename__ = "webhook_error_logs"
    __table_args__ = (
        Index("idx_webhook_error_logs_campaign", "campaign_id"),
        Index("idx_webhook_error_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True
    )
    raw_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str] = mapped_column(String(50), nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# =============================================================================
# Outbound Calling
# =============================================================================

class OutboundCampaign(Base):
    """
    A batch of outbound AI calls placed through VAPI.

    Contacts are imported while in draft; the dialer only works on
    running campaigns.
    """
    __tablename__ = "outbound_campaigns"
    __table_args__ = (
        Index("idx_outbound_campaigns_org", "organization_id"),
        Index("idx_outbound_campaigns_status", "status"),
    )

    id: Mapped[uuid.UUID] = _pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    webhook_uuid: Mapped[uuid.UUID] = mapped_column(
        Uuid, default=uuid.uuid4, unique=True, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=OutboundCampaignStatus.DRAFT.value, nullable=False
    )

    # VAPI
    vapi_assistant_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vapi_assistant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    vapi_phone_number_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vapi_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Twilio
    twilio_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    twilio_override: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    twilio_account_sid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    twilio_auth_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Dialing rules
    max_concurrent_calls: Mapped[int] = mapped_column(
        Integer, default=10, server_default=text("10"), nullable=False
    )
    max_retries: Mapped[int] = mapped_column(
        Integer, default=3, server_default=text("3"), nullable=False
    )
    retry_delay_hours: Mapped[int] = mapped_column(
        Integer, default=4, server_default=text("4"), nullable=False
    )
    ai_extraction_hints: Mapped[dict] = mapped_column(
        JsonType, default=dict, server_default=text("'{}'"), nullable=False
    )

    # Counters
    total_contacts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contacts_called: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contacts_answered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contacts_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    scheduled_start_at: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_start_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    organization: Mapped[Organization] = relationship()
    schedules: Mapped[list["OutboundSchedule"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="OutboundSchedule.day_of_week",
    )


class OutboundContact(Base):
    """A person to be called by an outbound campaign."""
    __tablename__ = "outbound_contacts"
    __table_args__ = (
        UniqueConstraint(
            "campaign_id", "phone_number", name="uq_outbound_contacts_campaign_phone"
        ),
        Index("idx_outbound_contacts_campaign", "campaign_id"),
        Index("idx_outbound_contacts_status", "status"),
        Index("idx_outbound_contacts_next_attempt", "next_attempt_at"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outbound_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    area_code: Mapped[str | None] = mapped_column(String(3), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=OutboundContactStatus.PENDING.value, nullable=False
    )
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(nullable=True)
    next_attempt_at: Mapped[datetime | None] = mapped_column(nullable=True)
    call_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    call_duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_fields: Mapped[dict] = mapped_column(
        JsonType, default=dict, server_default=text("'{}'"), nullable=False
    )
    sms_triggers_fired: Mapped[list] = mapped_column(
        JsonType, default=list, server_default=text("'[]'"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()


class OutboundSchedule(Base):
    """Weekly calling window. day_of_week: 0 = Sunday ... 6 = Saturday."""
    __tablename__ = "outbound_schedules"
    __table_args__ = (
        Index("idx_outbound_schedules_campaign", "campaign_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outbound_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(50), default="America/New_York", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = _created_at()

    campaign: Mapped[OutboundCampaign] = relationship(back_populates="schedules")


class OutboundCallLog(Base):
    """One dial attempt and, once the provider reports back, its outcome."""
    __tablename__ = "outbound_call_logs"
    __table_args__ = (
        Index("idx_outbound_call_logs_campaign", "campaign_id"),
        Index("idx_outbound_call_logs_contact", "contact_id"),
        Index("idx_outbound_call_logs_vapi_call", "vapi_call_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outbound_campaigns.id", ondelete="CASCADE"), nullable=False
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("outbound_contacts.id", ondelete="CASCADE"), nullable=False
    )
    vapi_call_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    call_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript_formatted: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_extracted_data: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    raw_payload: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    sms_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    sms_trigger_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("sms_triggers.id", ondelete="SET NULL"), nullable=True
    )
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = _created_at()

    contact: Mapped[OutboundContact] = relationship()


# =============================================================================
# Sales Portal
# =============================================================================

class SalesUser(Base):
    """Sales profile attached to a user with the sales role."""
    __tablename__ = "sales_users"
    __table_args__ = (
        Index("idx_sales_users_active", "is_active"),
    )

    id: Mapped[uuid.UUID] = _pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    commission_rate: Mapped[int] = mapped_column(
        Integer, default=18, server_default=text("18"), nullable=False
    )  # percent
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    user: Mapped[User] = relationship(back_populates="sales_profile")


class LeadStage(Base):
    """Configurable pipeline column."""
    __tablename__ = "lead_stages"
    __table_args__ = (
        Index("idx_lead_stages_order", "order"),
    )

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#6366f1", nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_won: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Lead(Base):
    """A sales prospect owned by one sales user."""
    __tablename__ = "leads"
    __table_args__ = (
        Index("idx_leads_sales_user", "sales_user_id"),
        Index("idx_leads_stage", "stage_id"),
        Index("idx_leads_status", "status"),
        Index("idx_leads_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = _pk()
    sales_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sales_users.id", ondelete="CASCADE"), nullable=False
    )
    stage_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("lead_stages.id", ondelete="SET NULL"), nullable=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    estimated_value: Mapped[int | None] = mapped_column(Integer, nullable=True)  # cents
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=LeadStatus.NEW.value, nullable=False
    )
    converted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    converted_to_org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    lost_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_contacted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    next_follow_up_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    sales_user: Mapped[SalesUser] = relationship()
    stage: Mapped[LeadStage | None] = relationship()
    activities: Mapped[list["LeadActivity"]] = relationship(
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="desc(LeadActivity.created_at)",
    )
    enrollments: Mapped[list["NurtureEnrollment"]] = relationship(
        cascade="all, delete-orphan"
    )


class LeadActivity(Base):
    """Timeline entry on a lead."""
    __tablename__ = "lead_activities"
    __table_args__ = (
        Index("idx_lead_activities_lead", "lead_id"),
        Index("idx_lead_activities_type", "activity_type"),
    )

    id: Mapped[uuid.UUID] = _pk()
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    user_type: Mapped[str] = mapped_column(String(10), nullable=False)  # 'sales' | 'admin'
    activity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JsonType, nullable=True
    )
    created_at: Mapped[datetime] = _created_at()

    lead: Mapped[Lead] = relationship(back_populates="activities")


class Commission(Base):
    """Payout owed to a sales user for a won lead. Amounts are in cents."""
    __tablename__ = "commissions"
    __table_args__ = (
        Index("idx_commissions_sales_user", "sales_user_id"),
        Index("idx_commissions_lead", "lead_id"),
        Index("idx_commissions_status", "status"),
        Index("idx_commissions_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = _pk()
    sales_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sales_users.id", ondelete="CASCADE"), nullable=False
    )
    lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    sale_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=CommissionStatus.PENDING.value, nullable=False
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    sales_user: Mapped[SalesUser] = relationship()
    lead: Mapped[Lead | None] = relationship()


class NurtureEnrollment(Base):
    """A lead enrolled into an inbound campaign's nurture flow."""
    __tablename__ = "nurture_enrollments"
    __table_args__ = (
        UniqueConstraint("lead_id", "campaign_id", name="uq_nurture_enrollments_lead_campaign"),
        Index("idx_nurture_enrollments_campaign", "campaign_id"),
        Index("idx_nurture_enrollments_sales_user", "sales_user_id"),
    )

    id: Mapped[uuid.UUID] = _pk()
    lead_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    sales_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sales_users.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    enrolled_at: Mapped[datetime] = _created_at()
    unenrolled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class ResourceCategory(Base):
    __tablename__ = "resource_categories"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), default="folder", nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), default="#6366f1", nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Resource(Base):
    """Sales material (PDF, video, link...)."""
    __tablename__ = "resources"
    __table_args__ = (
        Index("idx_resources_category", "category_id"),
        Index("idx_resources_type", "type"),
    )

    id: Mapped[uuid.UUID] = _pk()
    category_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("resource_categories.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(
        JsonType, default=list, server_default=text("'[]'"), nullable=False
    )
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    category: Mapped[ResourceCategory | None] = relationship()
