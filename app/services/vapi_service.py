"""VAPI.ai client and call-report helpers for outbound calling."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.db.enums import CallResult
from app.services.http_service import (
    DEFAULT_TIMEOUT_SECONDS,
    error_detail,
    request_with_retries,
)
from app.services.payload_analysis import duration_between

logger = logging.getLogger(__name__)

VAPI_MAX_ATTEMPTS = 3


class VapiError(Exception):
    """Non-2xx response (or transport failure) from the VAPI API."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class VapiClient:
    """Thin async wrapper over the VAPI REST API (bearer key auth)."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = VAPI_MAX_ATTEMPTS,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.VAPI_BASE_URL).rstrip("/")
        self.transport = transport
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(cls) -> "VapiClient | None":
        if not settings.VAPI_API_KEY:
            return None
        return cls(settings.VAPI_API_KEY, settings.VAPI_BASE_URL)

    async def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        # Never retry call creation: a retried POST can place a second call
        max_attempts = 1 if method == "POST" else self.max_attempts

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=DEFAULT_TIMEOUT_SECONDS, transport=self.transport
        ) as client:

            async def request_fn() -> httpx.Response:
                return await client.request(method, path, headers=headers, json=json)

            try:
                response = await request_with_retries(
                    request_fn, max_attempts=max_attempts, service="vapi"
                )
            except httpx.RequestError as exc:
                raise VapiError(None, f"VAPI connection error: {exc.__class__.__name__}") from exc

        if not 200 <= response.status_code < 300:
            message = error_detail(response) or f"VAPI API error: {response.status_code}"
            raise VapiError(response.status_code, message)
        return response.json()

    async def list_assistants(self) -> list[dict]:
        return await self._request("GET", "/assistant")

    async def list_phone_numbers(self) -> list[dict]:
        return await self._request("GET", "/phone-number")

    async def create_outbound_call(
        self,
        *,
        assistant_id: str,
        phone_number_id: str,
        customer_number: str,
        customer_name: str | None = None,
        metadata: dict | None = None,
    ) -> dict:
        """Place an outbound call. Returns the VAPI call object."""
        customer: dict[str, Any] = {"number": customer_number}
        if customer_name:
            customer["name"] = customer_name
        body: dict[str, Any] = {
            "assistantId": assistant_id,
            "phoneNumberId": phone_number_id,
            "customer": customer,
        }
        if metadata:
            body["metadata"] = metadata
        return await self._request("POST", "/call/phone", json=body)

    async def get_call(self, call_id: str) -> dict:
        return await self._request("GET", f"/call/{call_id}")


# =============================================================================
# Call report helpers
# =============================================================================

def format_vapi_transcript(messages: list[dict] | None) -> str:
    """Readable 'AI: ... / Customer: ...' transcript from VAPI messages."""
    lines = []
    for message in messages or []:
        if not isinstance(message, dict):
            continue
        role = message.get("role")
        if role in ("assistant", "bot"):
            speaker = "AI"
        elif role in ("user", "customer"):
            speaker = "Customer"
        else:
            continue
        lines.append(f"{speaker}: {message.get('message') or message.get('content') or ''}")
    return "\n".join(lines)


def calculate_call_duration(call: dict) -> int | None:
    return duration_between(call.get("startedAt"), call.get("endedAt"))


def map_vapi_status_to_result(call: dict) -> CallResult:
    """Classify an ended VAPI call into a CallResult."""
    if call.get("status") != "ended":
        return CallResult.CANCELED

    artifact = call.get("artifact") if isinstance(call.get("artifact"), dict) else {}
    if call.get("transcript") or artifact.get("transcript"):
        return CallResult.ANSWERED

    reason = (call.get("endedReason") or "").lower()
    if "busy" in reason:
        return CallResult.BUSY
    if "no-answer" in reason or "no_answer" in reason:
        return CallResult.NO_ANSWER
    if "voicemail" in reason:
        return CallResult.VOICEMAIL
    if "failed" in reason or "error" in reason:
        return CallResult.FAILED
    if "canceled" in reason or "cancelled" in reason:
        return CallResult.CANCELED
    return CallResult.NO_ANSWER
