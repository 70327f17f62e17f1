"""Structured logging helpers (PII-safe)."""

import re
from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    org_id: str | None = None,
    campaign_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict that never carries message content or phones."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if org_id:
        context["org_id"] = str(org_id)
    if campaign_id:
        context["campaign_id"] = str(campaign_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def mask_phone(phone: str | None) -> str:
    """Mask a phone number down to its last 4 digits for logs."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"
