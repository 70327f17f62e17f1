"""Tests for interaction reports and exports."""

import csv
import io
import uuid
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from app.db.models import AuditLog, Campaign, Interaction, SmsLog

MARCH = {"start_date": "2026-03-01", "end_date": "2026-03-31"}


def _at(day: int, hour: int = 9, month: int = 3) -> datetime:
    return datetime(2026, month, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def march_activity(db, campaign, other_org) -> dict[str, Interaction]:
    foreign_campaign = Campaign(organization_id=other_org.id, name="Elsewhere", webhook_uuid=uuid.uuid4())
    db.add(foreign_campaign)
    db.flush()

    rows = {
        "answered": Interaction(
            campaign_id=campaign.id,
            source_type="phone",
            source_platform="vapi",
            phone_number="+12125550001",
            call_status="completed",
            duration_seconds=60,
            ai_summary='=HYPERLINK("http://evil.example")',
            tags=["vip", "pricing"],
            flagged=True,
            created_at=_at(2, hour=10),
        ),
        "missed": Interaction(
            campaign_id=campaign.id,
            source_type="phone",
            call_status="no_answer",
            duration_seconds=0,
            created_at=_at(2),
        ),
        "text": Interaction(campaign_id=campaign.id, source_type="sms", created_at=_at(3)),
        "february": Interaction(
            campaign_id=campaign.id,
            source_type="phone",
            call_status="completed",
            duration_seconds=30,
            created_at=_at(1, month=2),
        ),
        "foreign": Interaction(
            campaign_id=foreign_campaign.id,
            source_type="phone",
            call_status="completed",
            duration_seconds=45,
            created_at=_at(2),
        ),
    }
    db.add_all(rows.values())
    db.flush()

    for key, status in (("answered", "delivered"), ("text", "failed"), ("february", "delivered")):
        db.add(
            SmsLog(
                interaction_id=rows[key].id,
                to_number="+12125550001",
                from_number="+15550001111",
                message="Thanks for calling",
                status=status,
            )
        )
    db.commit()
    return rows


async def test_summary_report(admin_client: AsyncClient, test_org, march_activity):
    response = await admin_client.get(
        "/api/reports", params={**MARCH, "organization_id": str(test_org.id)}
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["summary"] == {
        "total_interactions": 3,
        "total_calls": 2,
        "completed_calls": 1,
        "completion_rate": 50,
        "total_duration_seconds": 60,
        "avg_duration_seconds": 20,
        "sms_total": 2,
        "sms_delivered": 1,
        "sms_failed": 1,
    }
    assert data["status_breakdown"] == {"completed": 1, "no_answer": 1, "unknown": 1}
    assert data["source_breakdown"] == {"phone": 2, "sms": 1}
    assert data["daily_trend"] == [
        {"date": "2026-03-02", "count": 2},
        {"date": "2026-03-03", "count": 1},
    ]
    assert data["date_range"] == {"start_date": "2026-03-01", "end_date": "2026-03-31"}


async def test_admin_report_spans_all_tenants(admin_client: AsyncClient, march_activity):
    response = await admin_client.get("/api/reports", params=MARCH)

    assert response.json()["data"]["summary"]["total_interactions"] == 4


async def test_campaign_filter(admin_client: AsyncClient, campaign, march_activity):
    response = await admin_client.get(
        "/api/reports", params={**MARCH, "campaign_id": str(campaign.id)}
    )

    assert response.json()["data"]["source_breakdown"] == {"phone": 2, "sms": 1}


async def test_default_range_covers_recent_days(admin_client: AsyncClient, db, campaign):
    db.add(Interaction(campaign_id=campaign.id, source_type="web_form"))
    db.commit()

    response = await admin_client.get("/api/reports")

    data = response.json()["data"]
    assert data["summary"]["total_interactions"] == 1
    assert data["date_range"]["end_date"] == datetime.now(timezone.utc).date().isoformat()


async def test_client_user_report_is_pinned_to_own_org(
    client_user_client: AsyncClient, other_org, march_activity
):
    own = await client_user_client.get("/api/reports", params=MARCH)
    foreign = await client_user_client.get(
        "/api/reports", params={**MARCH, "organization_id": str(other_org.id)}
    )
    foreign_campaign = await client_user_client.get(
        "/api/reports",
        params={**MARCH, "campaign_id": str(march_activity["foreign"].campaign_id)},
    )

    assert own.json()["data"]["summary"]["total_interactions"] == 3
    assert foreign.status_code == 403
    assert foreign_campaign.status_code == 403


async def test_sales_user_cannot_read_reports(sales_client: AsyncClient):
    response = await sales_client.get("/api/reports")
    assert response.status_code == 403


@pytest.mark.parametrize(
    "params",
    [
        {"type": "funnel"},
        {"start_date": "2026-03-10", "end_date": "2026-03-01"},
    ],
)
async def test_invalid_report_requests(admin_client: AsyncClient, params):
    response = await admin_client.get("/api/reports", params=params)
    assert response.status_code == 400


async def test_csv_export_escapes_formulas(admin_client: AsyncClient, db, test_org, march_activity):
    response = await admin_client.get(
        "/api/reports/export", params={**MARCH, "organization_id": str(test_org.id)}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert (
        response.headers["content-disposition"]
        == 'attachment; filename="interactions_export_2026-03-01_to_2026-03-31.csv"'
    )
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0][:4] == ["id", "created_at", "organization", "campaign"]
    assert [row[0] for row in rows[1:]] == [
        str(march_activity[key].id) for key in ("text", "answered", "missed")
    ]
    answered = dict(zip(rows[0], rows[2]))
    assert answered["ai_summary"] == "'=HYPERLINK(\"http://evil.example\")"
    assert answered["phone_number"] == "'+12125550001"
    assert answered["organization"] == "Acme Dental"
    assert answered["campaign"] == "Spring Promo"
    assert answered["flagged"] == "yes"
    assert answered["tags"] == "vip, pricing"

    entry = db.query(AuditLog).one()
    assert entry.action == "export"
    assert entry.details["format"] == "csv"


async def test_json_export(admin_client: AsyncClient, test_org, march_activity):
    response = await admin_client.get(
        "/api/reports/export",
        params={**MARCH, "organization_id": str(test_org.id), "format": "json"},
    )

    assert response.status_code == 200
    assert response.headers["content-disposition"].endswith('.json"')
    data = response.json()
    assert len(data) == 3
    # Formula escaping is for spreadsheets only
    assert data[1]["ai_summary"] == '=HYPERLINK("http://evil.example")'
    assert data[1]["tags"] == ["vip", "pricing"]


async def test_export_rejects_unknown_format(admin_client: AsyncClient):
    response = await admin_client.get("/api/reports/export", params={"format": "xlsx"})
    assert response.status_code == 400


async def test_client_user_export_excludes_other_tenants(
    client_user_client: AsyncClient, march_activity
):
    response = await client_user_client.get("/api/reports/export", params=MARCH)

    rows = list(csv.reader(io.StringIO(response.text)))
    assert len(rows) == 4
    assert str(march_activity["foreign"].id) not in response.text
