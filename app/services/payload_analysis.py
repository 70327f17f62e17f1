"""Deterministic analysis of provider webhook payloads.

Recognized shapes, first match wins:
- VAPI end-of-call report (message.type / call.customer)
- Twilio SMS (From / To / Body)
- Autocalls (call_id / phone_number)
- Chatbot transcripts (messages / conversation)
- Web forms (name / email)
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.db.enums import CallStatus, SourceType

SUMMARY_FALLBACK_CHARS = 200

_AI_ROLES = {"assistant", "bot", "ai", "agent"}
_USER_ROLES = {"user", "customer", "human", "caller"}


@dataclass
class PayloadAnalysis:
    source_type: str
    source_platform: str
    phone_number: str | None = None
    transcript: str | None = None
    transcript_formatted: list[dict[str, str]] | None = None
    recording_url: str | None = None
    call_status: str | None = None
    duration_seconds: int | None = None
    summary: str | None = None
    extracted_data: dict[str, Any] = field(default_factory=dict)


def compute_payload_hash(raw_body: bytes | str) -> str:
    """SHA-256 hex digest of the raw request body."""
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return hashlib.sha256(raw_body).hexdigest()


# =============================================================================
# Small accessors
# =============================================================================

def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def duration_between(started_at: Any, ended_at: Any) -> int | None:
    """Whole seconds between two ISO timestamps, or None."""
    start = _parse_iso(started_at)
    end = _parse_iso(ended_at)
    if start is None or end is None:
        return None
    try:
        seconds = (end - start).total_seconds()
    except TypeError:
        # naive vs aware
        return None
    return int(round(seconds)) if seconds >= 0 else None


def map_call_status(raw: Any) -> str | None:
    """Map provider status / ended-reason strings onto CallStatus values."""
    value = _str(raw)
    if not value:
        return None
    value = value.lower().replace("_", "-")

    if "busy" in value:
        return CallStatus.BUSY.value
    if "no-answer" in value or "did-not-answer" in value or "noanswer" in value or "voicemail" in value:
        return CallStatus.NO_ANSWER.value
    if "cancel" in value:
        return CallStatus.CANCELED.value
    if "fail" in value or "error" in value:
        return CallStatus.FAILED.value
    if value in {"completed", "complete", "ended", "answered", "success", "hangup"} or "ended-call" in value:
        return CallStatus.COMPLETED.value
    return None


def format_messages(messages: Any) -> list[dict[str, str]]:
    """Normalize a provider message list to [{"role", "content"}]."""
    formatted: list[dict[str, str]] = []
    if not isinstance(messages, list):
        return formatted
    for item in messages:
        if not isinstance(item, dict):
            continue
        role = (_str(item.get("role")) or "").lower()
        content = _str(item.get("content")) or _str(item.get("message")) or _str(item.get("text"))
        if not content:
            continue
        if role in _AI_ROLES:
            formatted.append({"role": "assistant", "content": content})
        elif role in _USER_ROLES:
            formatted.append({"role": "user", "content": content})
    return formatted


def _transcript_from(formatted: list[dict[str, str]]) -> str | None:
    if not formatted:
        return None
    return "\n".join(f"{entry['role']}: {entry['content']}" for entry in formatted)


# =============================================================================
# Extraction
# =============================================================================

def _find_key(payload: dict, key: str) -> Any:
    """Case-insensitive lookup at the top level, then one level deep."""
    wanted = key.lower()
    for candidate, value in payload.items():
        if isinstance(candidate, str) and candidate.lower() == wanted:
            return value
    for nested in payload.values():
        if isinstance(nested, dict):
            for candidate, value in nested.items():
                if isinstance(candidate, str) and candidate.lower() == wanted:
                    return value
    return None


def _extract_fields(
    payload: dict,
    extraction_hints: dict | None,
    phone_number: str | None,
) -> dict[str, Any]:
    data: dict[str, Any] = {}

    name = _str(_find_key(payload, "name"))
    if not name:
        first = _str(_find_key(payload, "first_name"))
        last = _str(_find_key(payload, "last_name"))
        name = " ".join(part for part in (first, last) if part) or None
    if name:
        data["name"] = name

    email = _str(_find_key(payload, "email"))
    if email:
        data["email"] = email

    phone = phone_number or _str(_find_key(payload, "phone")) or _str(_find_key(payload, "phone_number"))
    if phone:
        data["phone"] = phone

    for key in (extraction_hints or {}):
        value = _find_key(payload, str(key))
        if value is not None and key not in data:
            data[key] = value
    return data


def _analyze_vapi(payload: dict) -> PayloadAnalysis:
    message = _dict(payload.get("message")) or payload
    call = _dict(message.get("call")) or _dict(payload.get("call"))
    artifact = _dict(message.get("artifact"))
    analysis = _dict(message.get("analysis"))

    formatted = format_messages(artifact.get("messages") or message.get("messages"))
    transcript = _str(artifact.get("transcript")) or _str(message.get("transcript")) or _transcript_from(formatted)

    duration = _int(message.get("durationSeconds"))
    if duration is None:
        duration = duration_between(
            message.get("startedAt") or call.get("startedAt"),
            message.get("endedAt") or call.get("endedAt"),
        )

    ended_reason = message.get("endedReason") or call.get("endedReason")
    call_status = map_call_status(ended_reason)
    if call_status is None and _str(message.get("type")) == "end-of-call-report":
        call_status = CallStatus.COMPLETED.value

    return PayloadAnalysis(
        source_type=SourceType.PHONE.value,
        source_platform="vapi",
        phone_number=_str(_dict(call.get("customer")).get("number")),
        transcript=transcript,
        transcript_formatted=formatted or None,
        recording_url=(
            _str(artifact.get("recordingUrl"))
            or _str(message.get("recordingUrl"))
            or _str(call.get("recordingUrl"))
        ),
        call_status=call_status,
        duration_seconds=duration,
        summary=_str(analysis.get("summary")) or _str(message.get("summary")),
    )


def _analyze_twilio_sms(payload: dict) -> PayloadAnalysis:
    body = _str(payload.get("Body"))
    return PayloadAnalysis(
        source_type=SourceType.SMS.value,
        source_platform="twilio",
        phone_number=_str(payload.get("From")),
        transcript=body,
        transcript_formatted=[{"role": "user", "content": body}] if body else None,
    )


def _analyze_autocalls(payload: dict) -> PayloadAnalysis:
    transcript = payload.get("transcript")
    formatted = format_messages(transcript) if isinstance(transcript, list) else []
    return PayloadAnalysis(
        source_type=SourceType.PHONE.value,
        source_platform="autocalls",
        phone_number=_str(payload.get("phone_number")),
        transcript=_str(transcript) or _transcript_from(formatted),
        transcript_formatted=formatted or None,
        recording_url=_str(payload.get("recording_url")),
        call_status=map_call_status(payload.get("status") or payload.get("call_outcome")),
        duration_seconds=_int(payload.get("duration")),
        summary=_str(payload.get("summary")),
    )


def _analyze_chatbot(payload: dict) -> PayloadAnalysis:
    conversation = payload.get("messages")
    if conversation is None:
        conversation = payload.get("conversation")

    formatted: list[dict[str, str]] = []
    transcript: str | None = None
    if isinstance(conversation, list):
        lines = []
        for item in conversation:
            if not isinstance(item, dict):
                continue
            role = _str(item.get("role")) or "user"
            content = _str(item.get("content")) or _str(item.get("message")) or _str(item.get("text"))
            if content:
                lines.append(f"{role}: {content}")
        transcript = "\n".join(lines) or None
        formatted = format_messages(conversation)
    else:
        transcript = _str(conversation)

    return PayloadAnalysis(
        source_type=SourceType.CHATBOT.value,
        source_platform=_str(payload.get("platform")) or "chatbot",
        phone_number=_str(payload.get("phone")) or _str(payload.get("phone_number")),
        transcript=transcript,
        transcript_formatted=formatted or None,
        summary=_str(payload.get("summary")),
    )


def _analyze_web_form(payload: dict, platform: str) -> PayloadAnalysis:
    text = None
    for key in ("message", "comments", "notes", "description"):
        text = _str(payload.get(key))
        if text:
            break
    return PayloadAnalysis(
        source_type=SourceType.WEB_FORM.value,
        source_platform=platform,
        phone_number=_str(payload.get("phone")) or _str(payload.get("phone_number")),
        transcript=text,
    )


def analyze_payload(payload: dict, extraction_hints: dict | None = None) -> PayloadAnalysis:
    """Identify the payload source and pull out standard fields."""
    message = _dict(payload.get("message"))
    call = _dict(payload.get("call"))

    if message.get("type") == "end-of-call-report" or (call and "customer" in call):
        result = _analyze_vapi(payload)
    elif all(key in payload for key in ("From", "To", "Body")):
        result = _analyze_twilio_sms(payload)
    elif "call_id" in payload and "phone_number" in payload:
        result = _analyze_autocalls(payload)
    elif isinstance(payload.get("messages"), list) or "conversation" in payload:
        result = _analyze_chatbot(payload)
    elif "name" in payload or "email" in payload:
        result = _analyze_web_form(payload, "web_form")
    else:
        result = _analyze_web_form(payload, "unknown")

    if not result.summary and result.transcript:
        result.summary = result.transcript[:SUMMARY_FALLBACK_CHARS]

    result.extracted_data = _extract_fields(payload, extraction_hints, result.phone_number)
    if result.summary:
        result.extracted_data["summary"] = result.summary
    return result
