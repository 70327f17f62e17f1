"""VAPI proxy router - assistants and phone numbers for the outbound campaign form (admin)."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import require_admin, require_csrf_header
from app.schemas.auth import UserSession
from app.services.vapi_service import VapiClient, VapiError

router = APIRouter()
logger = logging.getLogger(__name__)


def get_vapi_client() -> VapiClient | None:
    """Dependency so tests can swap in a client backed by httpx.MockTransport."""
    return VapiClient.from_settings()


def _require_client(client: VapiClient | None) -> VapiClient:
    if client is None:
        raise HTTPException(status_code=400, detail="VAPI API key not configured")
    return client


def _upstream_error(e: VapiError) -> HTTPException:
    logger.warning("VAPI request failed", extra={"status_code": e.status_code})
    return HTTPException(status_code=502, detail=e.message)


@router.get("/assistants")
async def list_assistants(
    client: VapiClient | None = Depends(get_vapi_client),
    session: UserSession = Depends(require_admin),
):
    client = _require_client(client)
    try:
        assistants = await client.list_assistants()
    except VapiError as e:
        raise _upstream_error(e)
    return [
        {"id": item.get("id"), "name": item.get("name") or "Unnamed assistant"}
        for item in assistants or []
        if isinstance(item, dict)
    ]


@router.get("/phone-numbers")
async def list_phone_numbers(
    client: VapiClient | None = Depends(get_vapi_client),
    session: UserSession = Depends(require_admin),
):
    client = _require_client(client)
    try:
        numbers = await client.list_phone_numbers()
    except VapiError as e:
        raise _upstream_error(e)
    return [
        {"id": item.get("id"), "number": item.get("number"), "name": item.get("name")}
        for item in numbers or []
        if isinstance(item, dict)
    ]


@router.post("/test-connection", dependencies=[Depends(require_csrf_header)])
async def test_connection(
    client: VapiClient | None = Depends(get_vapi_client),
    session: UserSession = Depends(require_admin),
):
    client = _require_client(client)
    try:
        assistants = await client.list_assistants()
    except VapiError as e:
        return {"success": False, "error": e.message}
    return {"success": True, "assistant_count": len(assistants or [])}
