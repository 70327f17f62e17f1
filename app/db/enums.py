"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - ADMIN: Platform operator (all clients, campaigns, sales team)
    - CLIENT_USER: Member of a client organization (read its own campaigns)
    - SALES: Sales-portal user with a SalesUser profile
    """
    ADMIN = "admin"
    CLIENT_USER = "client_user"
    SALES = "sales"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class CampaignType(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SourceType(str, Enum):
    """Where an interaction came from."""
    PHONE = "phone"
    SMS = "sms"
    WEB_FORM = "web_form"
    CHATBOT = "chatbot"


class CallStatus(str, Enum):
    COMPLETED = "completed"
    NO_ANSWER = "no_answer"
    FAILED = "failed"
    BUSY = "busy"
    CANCELED = "canceled"


class SmsStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class WebhookErrorType(str, Enum):
    INVALID_JSON = "invalid_json"
    PROCESSING_ERROR = "processing_error"
    SERVER_ERROR = "server_error"


# =============================================================================
# Outbound calling
# =============================================================================

class OutboundCampaignStatus(str, Enum):
    """
    Outbound campaign lifecycle.

    draft → scheduled → running ⇄ paused → completed
    Any non-terminal state may be cancelled; cancelled returns to draft.
    """
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OutboundContactStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    CALLING = "calling"
    COMPLETED = "completed"
    NO_ANSWER = "no_answer"
    FAILED = "failed"
    BUSY = "busy"
    VOICEMAIL = "voicemail"
    DNC = "dnc"
    SKIPPED = "skipped"


class CallResult(str, Enum):
    """Outcome of a single outbound call attempt."""
    ANSWERED = "answered"
    NO_ANSWER = "no_answer"
    BUSY = "busy"
    FAILED = "failed"
    VOICEMAIL = "voicemail"
    CANCELED = "canceled"


# Contact statuses that no longer hold a campaign open
OUTBOUND_CONTACT_DONE_STATUSES = frozenset({
    OutboundContactStatus.COMPLETED,
    OutboundContactStatus.FAILED,
    OutboundContactStatus.DNC,
    OutboundContactStatus.SKIPPED,
})


# =============================================================================
# Sales portal
# =============================================================================

class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class ResourceType(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    LINK = "link"
    OTHER = "other"


class ActivityType(str, Enum):
    """Lead timeline entries. The first six can be created by users."""
    NOTE = "note"
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    OTHER = "other"
    CREATED = "created"
    STAGE_CHANGE = "stage_change"
    STATUS_CHANGE = "status_change"
    CAMPAIGN_ENROLLMENT = "campaign_enrollment"


USER_ACTIVITY_TYPES = (
    ActivityType.NOTE,
    ActivityType.CALL,
    ActivityType.EMAIL,
    ActivityType.MEETING,
    ActivityType.TASK,
    ActivityType.OTHER,
)

# Activities that count as reaching out to the lead
CONTACT_ACTIVITY_TYPES = frozenset({
    ActivityType.CALL,
    ActivityType.EMAIL,
    ActivityType.MEETING,
})
