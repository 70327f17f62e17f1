"""
Background worker that runs the outbound dialer.

Usage:
    python -m app.worker

Each tick places calls for every active outbound campaign, the same work
as POST /internal/scheduled/outbound-calls. Run it as a separate process
(systemd service, Docker container) when no external cron hits the
internal endpoint.
"""

import asyncio
import logging

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.session import SessionLocal
from app.services.outbound_dialer_service import process_outbound_calls
from app.services.vapi_service import VapiClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = settings.WORKER_POLL_INTERVAL


async def run_once() -> dict:
    """One dialer pass with a fresh session."""
    with SessionLocal() as db:
        result = await process_outbound_calls(db, VapiClient.from_settings())
    summary = result.to_dict()
    if summary["calls_initiated"] or summary["errors"]:
        logger.info(
            "Dialer pass finished",
            extra={
                "campaigns_processed": summary["campaigns_processed"],
                "calls_initiated": summary["calls_initiated"],
                "error_count": len(summary["errors"]),
            },
        )
    for error in summary["errors"]:
        logger.warning("Dialer error: %s", error)
    return summary


async def worker_loop() -> None:
    """Main worker loop - runs the dialer every POLL_INTERVAL_SECONDS."""
    logger.info(f"Worker starting (poll interval: {POLL_INTERVAL_SECONDS}s)")

    if not settings.VAPI_API_KEY:
        logger.warning("VAPI_API_KEY not set - active outbound campaigns will report errors")

    while True:
        try:
            await run_once()
        except Exception:
            logger.exception(
                "Dialer pass failed",
                extra=build_log_context(route="worker"),
            )
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
