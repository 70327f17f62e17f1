"""Tests for the sales portal: leads, pipeline, commissions and enrollment."""

import uuid

import pytest
from httpx import AsyncClient

from app.db.enums import Role
from app.db.models import Campaign, Commission, Lead, NurtureEnrollment, SalesUser, User


@pytest.fixture
def other_rep_lead(db, lead_stages) -> Lead:
    user = User(email="other-rep@test.com", full_name="Olive Other", role=Role.SALES.value)
    db.add(user)
    db.flush()
    profile = SalesUser(user_id=user.id, email=user.email, full_name=user.full_name)
    db.add(profile)
    db.flush()
    lead = Lead(sales_user_id=profile.id, first_name="Private", last_name="Lead", status="new")
    db.add(lead)
    db.commit()
    return lead


async def _create_lead(sales_client: AsyncClient, **extra) -> dict:
    response = await sales_client.post(
        "/api/sales/leads", json={"first_name": "Ada", "last_name": "Lovelace", **extra}
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_lead_uses_default_stage(sales_client: AsyncClient, sales_user, lead_stages):
    lead = await _create_lead(sales_client, email="Ada@Example.com", estimated_value=500000)

    assert lead["stage_id"] == str(lead_stages["New"].id)
    assert lead["stage_name"] == "New"
    assert lead["status"] == "new"
    assert lead["email"] == "ada@example.com"
    assert lead["sales_user_id"] == str(sales_user.id)

    activities = await sales_client.get(f"/api/sales/leads/{lead['id']}/activities")
    assert [a["title"] for a in activities.json()] == ["Lead created"]


async def test_marking_won_records_commission_pending(sales_client: AsyncClient, lead_stages):
    lead = await _create_lead(sales_client, estimated_value=250000)

    response = await sales_client.put(
        f"/api/sales/leads/{lead['id']}",
        json={"status": "won", "stage_id": str(lead_stages["Won"].id)},
    )

    assert response.status_code == 200
    detail = response.json()
    assert detail["status"] == "won"
    assert detail["converted_at"] is not None
    by_type = {a["activity_type"]: a for a in detail["activities"]}
    assert by_type["status_change"]["description"] == "Lead marked as won - Commission pending"
    assert by_type["stage_change"]["title"] == "Stage changed to Won"


async def test_update_with_unknown_stage(sales_client: AsyncClient, lead_stages):
    lead = await _create_lead(sales_client)
    response = await sales_client.put(f"/api/sales/leads/{lead['id']}", json={"stage_id": str(uuid.uuid4())})
    assert response.status_code == 400
    assert response.json()["detail"] == "Stage not found"


async def test_notes_change_adds_note_activity(sales_client: AsyncClient, lead_stages):
    lead = await _create_lead(sales_client)

    await sales_client.put(f"/api/sales/leads/{lead['id']}", json={"notes": "Prefers email"})

    activities = await sales_client.get(f"/api/sales/leads/{lead['id']}/activities")
    assert "Notes updated" in {a["title"] for a in activities.json()}


async def test_log_call_activity_sets_last_contacted(sales_client: AsyncClient, lead_stages):
    lead = await _create_lead(sales_client)

    created = await sales_client.post(
        f"/api/sales/leads/{lead['id']}/activities",
        json={"activity_type": "call", "title": "Intro call", "metadata": {"minutes": 12}},
    )

    assert created.status_code == 201
    assert created.json()["metadata"] == {"minutes": 12}
    detail = await sales_client.get(f"/api/sales/leads/{lead['id']}")
    assert detail.json()["last_contacted_at"] is not None


async def test_other_reps_leads_are_invisible(sales_client: AsyncClient, other_rep_lead):
    listed = await sales_client.get("/api/sales/leads")
    assert listed.json()["data"] == []

    fetched = await sales_client.get(f"/api/sales/leads/{other_rep_lead.id}")
    assert fetched.status_code == 404

    deleted = await sales_client.delete(f"/api/sales/leads/{other_rep_lead.id}")
    assert deleted.status_code == 404


async def test_list_filters(sales_client: AsyncClient, db, lead_stages):
    await _create_lead(sales_client, company="Analytical Engines")
    unassigned = await _create_lead(sales_client, first_name="Grace", last_name="Hopper")
    lead = db.get(Lead, uuid.UUID(unassigned["id"]))
    lead.stage_id = None
    db.commit()

    by_search = await sales_client.get("/api/sales/leads", params={"search": "engines"})
    by_unassigned = await sales_client.get("/api/sales/leads", params={"stage_id": "unassigned"})
    bad_stage = await sales_client.get("/api/sales/leads", params={"stage_id": "not-a-uuid"})

    assert [l["first_name"] for l in by_search.json()["data"]] == ["Ada"]
    assert [l["first_name"] for l in by_unassigned.json()["data"]] == ["Grace"]
    assert bad_stage.status_code == 400


async def test_pipeline_groups_by_stage(sales_client: AsyncClient, lead_stages):
    await _create_lead(sales_client, estimated_value=1000)
    await _create_lead(sales_client, first_name="Grace", estimated_value=2500)

    response = await sales_client.get("/api/sales/pipeline")

    stages = {stage["name"]: stage for stage in response.json()["stages"]}
    assert list(stages) == ["New", "Contacted", "Won"]
    assert stages["New"]["count"] == 2
    assert stages["New"]["total_value"] == 3500
    assert stages["Won"]["count"] == 0


async def test_stages_list(sales_client: AsyncClient, lead_stages):
    response = await sales_client.get("/api/sales/stages")
    assert [stage["name"] for stage in response.json()] == ["New", "Contacted", "Won"]


async def test_admin_cannot_create_leads(admin_client: AsyncClient, lead_stages):
    response = await admin_client.post("/api/sales/leads", json={"first_name": "A", "last_name": "B"})
    assert response.status_code == 403


async def test_my_commissions_with_stats(sales_client: AsyncClient, db, sales_user):
    for status, amount in (("pending", 1800), ("approved", 900), ("paid", 500), ("cancelled", 100)):
        db.add(
            Commission(
                sales_user_id=sales_user.id,
                sale_amount=amount * 10,
                commission_rate=10,
                commission_amount=amount,
                status=status,
            )
        )
    db.commit()

    response = await sales_client.get("/api/sales/commissions")

    body = response.json()
    assert body["pagination"]["total"] == 4
    assert body["stats"] == {
        "total_pending": 1800,
        "total_approved": 900,
        "total_paid": 500,
        "total_all": 3200,
        "count_pending": 1,
        "count_approved": 1,
    }


# =============================================================================
# Nurture enrollment
# =============================================================================

async def test_enroll_leads(sales_client: AsyncClient, db, campaign, lead_stages):
    first = await _create_lead(sales_client)
    second = await _create_lead(sales_client, first_name="Grace")

    response = await sales_client.post(
        f"/api/sales/campaigns/{campaign.id}/enroll", json={"lead_ids": [first["id"]]}
    )
    assert response.status_code == 200
    assert response.json() == {
        "message": "Enrolled 1 lead(s) in Spring Promo",
        "enrolled_count": 1,
        "already_enrolled_count": 0,
    }

    again = await sales_client.post(
        f"/api/sales/campaigns/{campaign.id}/enroll", json={"lead_ids": [first["id"], second["id"]]}
    )
    assert again.json()["enrolled_count"] == 1
    assert again.json()["already_enrolled_count"] == 1
    assert db.query(NurtureEnrollment).count() == 2

    campaigns = await sales_client.get("/api/sales/campaigns")
    assert campaigns.json()["data"][0]["enrolled_count"] == 2

    activities = await sales_client.get(f"/api/sales/leads/{first['id']}/activities")
    assert "Enrolled in campaign: Spring Promo" in {a["title"] for a in activities.json()}


async def test_enroll_everything_already_enrolled(sales_client: AsyncClient, campaign, lead_stages):
    lead = await _create_lead(sales_client)
    url = f"/api/sales/campaigns/{campaign.id}/enroll"
    await sales_client.post(url, json={"lead_ids": [lead["id"]]})

    response = await sales_client.post(url, json={"lead_ids": [lead["id"]]})

    assert response.status_code == 400
    assert response.json()["detail"] == "All selected leads are already enrolled"


async def test_enroll_foreign_lead_is_forbidden(sales_client: AsyncClient, campaign, other_rep_lead):
    response = await sales_client.post(
        f"/api/sales/campaigns/{campaign.id}/enroll", json={"lead_ids": [str(other_rep_lead.id)]}
    )
    assert response.status_code == 403


async def test_enroll_unknown_campaign(sales_client: AsyncClient, lead_stages):
    lead = await _create_lead(sales_client)
    response = await sales_client.post(
        f"/api/sales/campaigns/{uuid.uuid4()}/enroll", json={"lead_ids": [lead["id"]]}
    )
    assert response.status_code == 404


async def test_enroll_inactive_campaign(sales_client: AsyncClient, db, test_org, lead_stages):
    archived = Campaign(organization_id=test_org.id, name="Old", webhook_uuid=uuid.uuid4(), is_active=False)
    db.add(archived)
    db.commit()
    lead = await _create_lead(sales_client)

    response = await sales_client.post(
        f"/api/sales/campaigns/{archived.id}/enroll", json={"lead_ids": [lead["id"]]}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Campaign is not active"
