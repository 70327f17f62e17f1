"""SMS trigger management and keyword/priority matching."""

import re
from datetime import datetime, timezone
from typing import Iterable, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.models import SmsTrigger

MIN_KEYWORD_LENGTH = 4

STOPWORDS = frozenset({
    "about", "above", "after", "again", "also", "been", "before", "being", "below",
    "both", "call", "caller", "calls", "could", "does", "doing", "down", "during",
    "each", "from", "further", "have", "having", "here", "into", "just", "like",
    "more", "most", "must", "only", "other", "over", "person", "said", "same",
    "should", "some", "such", "than", "that", "their", "them", "then", "there",
    "these", "they", "this", "those", "through", "under", "until", "very", "wants",
    "want", "were", "what", "when", "where", "which", "while", "with", "would",
    "your", "someone", "customer", "mentions", "asks", "says",
})

_QUOTED = re.compile(r'"([^"]+)"')
_WORD = re.compile(r"[A-Za-z][A-Za-z'-]*")


class TriggerLike(Protocol):
    id: UUID
    intent_description: str
    priority: int
    created_at: datetime


# =============================================================================
# Matching
# =============================================================================

def extract_keywords(intent_description: str) -> list[str]:
    """
    Keywords for an intent description.

    Double-quoted text is matched as a literal phrase. When there are no
    quotes, every non-stopword of 4+ letters is a keyword.
    """
    if not intent_description:
        return []

    phrases = [phrase.strip().lower() for phrase in _QUOTED.findall(intent_description)]
    phrases = [phrase for phrase in phrases if phrase]
    if phrases:
        return phrases

    keywords: list[str] = []
    for word in _WORD.findall(intent_description):
        lowered = word.lower().strip("'-")
        if len(lowered) < MIN_KEYWORD_LENGTH or lowered in STOPWORDS:
            continue
        if lowered not in keywords:
            keywords.append(lowered)
    return keywords


def _matches(keyword: str, text: str) -> bool:
    pattern = r"(?<!\w)" + re.escape(keyword) + r"(?!\w)"
    return re.search(pattern, text, flags=re.IGNORECASE) is not None


def _sort_key(trigger: TriggerLike):
    created = trigger.created_at
    if created is None:
        created = datetime.min.replace(tzinfo=timezone.utc)
    elif created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (trigger.priority, created)


def evaluate_triggers(
    transcript: str | None,
    summary: str | None,
    triggers: Iterable[TriggerLike],
) -> list[UUID]:
    """
    Return the id of the first trigger whose keywords appear in the text.

    Lower priority numbers are checked first; ties go to the older trigger.
    At most one id is returned so one event sends at most one SMS.
    """
    text = "\n".join(part for part in (transcript, summary) if part)
    if not text.strip():
        return []

    for trigger in sorted(triggers, key=_sort_key):
        keywords = extract_keywords(trigger.intent_description)
        if any(_matches(keyword, text) for keyword in keywords):
            return [trigger.id]
    return []


# =============================================================================
# CRUD
# =============================================================================

def list_triggers(
    db: Session,
    *,
    campaign_id: UUID | None = None,
    outbound_campaign_id: UUID | None = None,
    active_only: bool = False,
) -> list[SmsTrigger]:
    query = db.query(SmsTrigger)
    if campaign_id is not None:
        query = query.filter(SmsTrigger.campaign_id == campaign_id)
    if outbound_campaign_id is not None:
        query = query.filter(SmsTrigger.outbound_campaign_id == outbound_campaign_id)
    if active_only:
        query = query.filter(SmsTrigger.is_active.is_(True))
    return query.order_by(SmsTrigger.priority, SmsTrigger.created_at).all()


def get_trigger(db: Session, trigger_id: UUID) -> SmsTrigger | None:
    return db.query(SmsTrigger).filter(SmsTrigger.id == trigger_id).first()


def create_trigger(
    db: Session,
    *,
    name: str,
    intent_description: str,
    sms_message: str,
    priority: int = 100,
    is_active: bool = True,
    campaign_id: UUID | None = None,
    outbound_campaign_id: UUID | None = None,
) -> SmsTrigger:
    if (campaign_id is None) == (outbound_campaign_id is None):
        raise ValueError("Trigger must belong to exactly one campaign")

    trigger = SmsTrigger(
        campaign_id=campaign_id,
        outbound_campaign_id=outbound_campaign_id,
        name=name,
        intent_description=intent_description,
        sms_message=sms_message,
        priority=priority,
        is_active=is_active,
    )
    db.add(trigger)
    db.flush()
    return trigger


def update_trigger(db: Session, trigger: SmsTrigger, changes: dict) -> SmsTrigger:
    for field_name in ("name", "intent_description", "sms_message", "priority", "is_active"):
        if field_name in changes and changes[field_name] is not None:
            setattr(trigger, field_name, changes[field_name])
    db.flush()
    return trigger


def delete_trigger(db: Session, trigger: SmsTrigger) -> None:
    db.delete(trigger)
    db.flush()
