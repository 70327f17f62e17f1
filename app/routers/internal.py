"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (Render/Railway/GH Actions) when the worker is not running.
"""
from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from app.core.config import settings
from app.db.session import SessionLocal
from app.services import outbound_dialer_service
from app.services.vapi_service import VapiClient


router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str | None = Header(None)):
    """Verify the internal secret header."""
    if not settings.INTERNAL_SECRET:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != settings.INTERNAL_SECRET:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class DialerRunResponse(BaseModel):
    campaigns_processed: int
    calls_initiated: int
    errors: list[str]


@router.post("/outbound-calls", response_model=DialerRunResponse)
async def run_outbound_dialer(x_internal_secret: str | None = Header(None)):
    """One dialer pass over running outbound campaigns."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        result = await outbound_dialer_service.process_outbound_calls(db, VapiClient.from_settings())
        db.commit()
    return result.to_dict()
