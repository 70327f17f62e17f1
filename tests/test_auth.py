"""Tests for session auth, CSRF, role checks, audit trail and health."""

import uuid

from httpx import ASGITransport, AsyncClient

from app.core.deps import COOKIE_NAME
from app.core.security import create_session_token, decode_session_token
from app.db.models import AuditLog
from app.main import app


async def test_me_returns_session(admin_client: AsyncClient, admin_user):
    response = await admin_client.get("/api/auth/me")

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == str(admin_user.id)
    assert data["email"] == "admin@test.com"
    assert data["role"] == "admin"
    assert data["org_id"] is None


async def test_me_for_sales_user_includes_profile(sales_client: AsyncClient, sales_user):
    response = await sales_client.get("/api/auth/me")
    assert response.json()["sales_user_id"] == str(sales_user.id)


async def test_me_requires_cookie(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401


async def test_garbage_cookie_is_rejected(client: AsyncClient):
    client.cookies.set(COOKIE_NAME, "not-a-jwt")
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid session"


async def test_bumped_token_version_revokes_session(admin_client: AsyncClient, db, admin_user):
    admin_user.token_version += 1
    db.commit()

    response = await admin_client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["detail"] == "Session revoked"


async def test_disabled_user_is_rejected(admin_client: AsyncClient, db, admin_user):
    admin_user.is_active = False
    db.commit()

    response = await admin_client.get("/api/auth/me")
    assert response.json()["detail"] == "Account disabled"


async def test_mutation_without_csrf_header_is_rejected(db, admin_auth, test_org):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={admin_auth.cookie_name: admin_auth.token},
    ) as c:
        response = await c.post("/api/organizations", json={"name": "No CSRF"})

    assert response.status_code == 403
    assert "CSRF" in response.json()["detail"]


async def test_logout_clears_cookie_and_audits(admin_client: AsyncClient, db, admin_user):
    response = await admin_client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"status": "logged_out"}
    assert COOKIE_NAME in response.headers.get("set-cookie", "")
    entry = db.query(AuditLog).one()
    assert entry.action == "logout"
    assert entry.user_id == admin_user.id


async def test_audit_records_first_forwarded_hop(admin_client: AsyncClient, db):
    response = await admin_client.post(
        "/api/auth/logout", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}
    )

    assert response.status_code == 200
    assert db.query(AuditLog).one().ip_address == "203.0.113.9"


def test_session_token_round_trip():
    user_id = uuid.uuid4()
    token = create_session_token(user_id=user_id, org_id=None, role="admin", token_version=3)

    payload = decode_session_token(token)

    assert payload["sub"] == str(user_id)
    assert payload["org_id"] is None
    assert payload["token_version"] == 3


# =============================================================================
# Role checks
# =============================================================================

async def test_client_user_cannot_read_audit_logs(client_user_client: AsyncClient):
    response = await client_user_client.get("/api/audit-logs")
    assert response.status_code == 403


async def test_sales_user_cannot_list_organizations(sales_client: AsyncClient):
    response = await sales_client.get("/api/organizations")
    assert response.status_code == 403


# =============================================================================
# Audit trail
# =============================================================================

async def test_audit_logs_filters(admin_client: AsyncClient, db, test_org):
    await admin_client.post(
        "/api/campaigns",
        json={"organization_id": str(test_org.id), "name": "Audited", "twilio_auth_token": "x"},
    )
    await admin_client.post("/api/organizations", json={"name": "Second Org"})

    response = await admin_client.get("/api/audit-logs", params={"entity_type": "organization"})

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["action"] == "create"
    assert body["data"][0]["details"] == {"name": "Second Org"}

    by_action = await admin_client.get("/api/audit-logs", params={"action": "create"})
    assert by_action.json()["pagination"]["total"] == 2


# =============================================================================
# Health and validation errors
# =============================================================================

async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["env"] == "test"


async def test_validation_errors_are_grouped_by_field(admin_client: AsyncClient):
    response = await admin_client.post("/api/organizations", json={"contact_email": "nope"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert "name" in body["details"]
    assert "contact_email" in body["details"]
