"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII (phone numbers, transcripts) to Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from app.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Call CRM API",
    description="Multi-tenant voice-AI call tracking, outbound dialing and sales CRM API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
# Applies default_limits to every route without an explicit limit
app.add_middleware(SlowAPIMiddleware)


# ============================================================================
# Error Handlers
# ============================================================================

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")


def format_validation_errors(errors) -> dict[str, list[str]]:
    """Group pydantic errors by dotted field path."""
    details: dict[str, list[str]] = {}
    for error in errors:
        loc = list(error.get("loc") or ())
        if loc and loc[0] in _LOCATION_PREFIXES and len(loc) > 1:
            loc = loc[1:]
        path = ".".join(str(part) for part in loc) or "body"
        details.setdefault(path, []).append(error.get("msg", "Invalid value"))
    return details


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": format_validation_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# ============================================================================
# Routers
# ============================================================================

from app.routers import (
    admin_commissions,
    admin_leads,
    admin_sales_team,
    audit,
    auth,
    campaigns,
    interactions,
    internal,
    organizations,
    outbound_campaigns,
    outbound_webhook,
    reports,
    resources,
    sales,
    triggers,
    vapi,
    webhooks,
)

# Auth router (always mounted)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

# Tenants and inbound campaigns (admin; client users read their own)
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(campaigns.router, prefix="/api/campaigns", tags=["campaigns"])
app.include_router(triggers.router, prefix="/api/triggers", tags=["triggers"])
app.include_router(interactions.router, prefix="/api/interactions", tags=["interactions"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])

# Voice-AI webhooks (public, keyed by webhook uuid)
app.include_router(webhooks.router, prefix="/api/webhook", tags=["webhooks"])
app.include_router(outbound_webhook.router, prefix="/api/outbound-webhook", tags=["webhooks"])

# Outbound dialing
app.include_router(outbound_campaigns.router, prefix="/api/outbound-campaigns", tags=["outbound"])
app.include_router(vapi.router, prefix="/api/vapi", tags=["outbound"])

# Sales CRM
app.include_router(admin_leads.router, prefix="/api/admin/leads", tags=["sales-admin"])
app.include_router(admin_commissions.router, prefix="/api/admin/commissions", tags=["sales-admin"])
app.include_router(admin_sales_team.router, prefix="/api/admin/sales-team", tags=["sales-admin"])
app.include_router(sales.router, prefix="/api/sales", tags=["sales"])
app.include_router(resources.router, prefix="/api/resources", tags=["resources"])

# Audit Trail (admin)
app.include_router(audit.router, prefix="/api/audit-logs", tags=["audit"])

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)

# Dev router (ONLY mounted in dev mode)
if settings.ENV == "dev":
    from app.routers import dev
    app.include_router(dev.router, prefix="/dev", tags=["dev"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
