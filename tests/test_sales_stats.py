"""Tests for the sales dashboard, performance statistics and own profile."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.db.enums import Role
from app.db.models import Commission, Lead, SalesUser, User
from app.services import sales_stats_service

NOW = datetime(2026, 5, 15, 12, 0, tzinfo=timezone.utc)


def _at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def other_rep(db) -> SalesUser:
    user = User(email="other-rep@test.com", full_name="Olive Other", role=Role.SALES.value)
    db.add(user)
    db.flush()
    profile = SalesUser(user_id=user.id, email=user.email, full_name=user.full_name)
    db.add(profile)
    db.flush()
    return profile


@pytest.fixture
def book(db, sales_user, other_rep) -> dict[str, Lead]:
    """Four leads and four commissions for Sam, plus one lead for another rep."""
    leads = {
        "won": Lead(
            sales_user_id=sales_user.id, first_name="Wendy", last_name="Won",
            status="won", created_at=_at(2026, 5, 2),
        ),
        "fresh": Lead(
            sales_user_id=sales_user.id, first_name="Fred", last_name="Fresh",
            status="new", created_at=_at(2026, 5, 10), next_follow_up_at=NOW + timedelta(days=2),
        ),
        "april": Lead(
            sales_user_id=sales_user.id, first_name="April", last_name="Contacted",
            status="contacted", created_at=_at(2026, 4, 20), next_follow_up_at=NOW + timedelta(days=10),
        ),
        "old": Lead(
            sales_user_id=sales_user.id, first_name="Olga", last_name="Old",
            status="lost", created_at=_at(2025, 11, 10),
        ),
        "other": Lead(
            sales_user_id=other_rep.id, first_name="Not", last_name="Mine",
            status="won", created_at=_at(2026, 5, 3),
        ),
    }
    db.add_all(leads.values())
    db.flush()

    for lead, amount, status, created_at in [
        (leads["won"], 1000, "pending", _at(2026, 5, 5)),
        (None, 500, "paid", _at(2026, 4, 10)),
        (None, 700, "cancelled", _at(2026, 5, 6)),
        (None, 300, "approved", _at(2026, 2, 1)),
    ]:
        db.add(
            Commission(
                sales_user_id=sales_user.id,
                lead_id=lead.id if lead else None,
                sale_amount=amount * 10,
                commission_rate=10,
                commission_amount=amount,
                status=status,
                created_at=created_at,
            )
        )
    db.add(
        Commission(
            sales_user_id=other_rep.id,
            sale_amount=90000,
            commission_rate=10,
            commission_amount=9000,
            status="paid",
            created_at=_at(2026, 5, 4),
        )
    )
    db.commit()
    return leads


def test_growth_percent():
    assert sales_stats_service.growth_percent(3, 2) == 50.0
    assert sales_stats_service.growth_percent(1, 4) == -75.0
    assert sales_stats_service.growth_percent(2, 0) == 100.0
    assert sales_stats_service.growth_percent(0, 0) == 0.0


def test_dashboard_counts_only_own_book(db, sales_user, book):
    dashboard = sales_stats_service.get_dashboard(db, sales_user.id, now=NOW)

    assert dashboard["stats"] == {
        "total_leads": 4,
        "new_leads_this_month": 2,
        "won_leads": 1,
        "conversion_rate": 25.0,
        "pending_commissions": 1000,
        "paid_commissions": 500,
        "total_earnings": 800,
        "upcoming_follow_ups": 1,
    }
    assert [lead["first_name"] for lead in dashboard["recent_leads"]] == ["Fred", "Wendy", "April", "Olga"]
    assert [lead["first_name"] for lead in dashboard["upcoming_follow_ups"]] == ["Fred", "April"]
    assert [c["commission_amount"] for c in dashboard["recent_commissions"]] == [700, 1000, 500, 300]
    assert dashboard["recent_commissions"][1]["lead_name"] == "Wendy Won"


def test_performance_periods_and_breakdowns(db, sales_user, book):
    performance = sales_stats_service.get_performance(db, sales_user.id, now=NOW)

    assert performance["monthly"] == {
        "leads": 2,
        "leads_growth": 100.0,
        "commissions": 1000,
        "commissions_growth": 100.0,
        "conversions": 1,
    }
    assert performance["quarterly"] == {"leads": 3, "commissions": 1500, "sales": 15000, "conversions": 1}
    assert performance["yearly"] == {"leads": 3, "won": 1, "commissions": 1800, "sales": 18000}
    assert performance["conversion_rate"] == 25.0
    assert performance["monthly_breakdown"] == [
        {"month": "2025-12", "leads": 0},
        {"month": "2026-01", "leads": 0},
        {"month": "2026-02", "leads": 0},
        {"month": "2026-03", "leads": 0},
        {"month": "2026-04", "leads": 1},
        {"month": "2026-05", "leads": 2},
    ]
    assert [entry["total"] for entry in performance["commission_breakdown"]] == [0, 0, 300, 0, 500, 1000]
    assert performance["leads_by_status"] == {"won": 1, "new": 1, "contacted": 1, "lost": 1}
    assert performance["is_observer"] is False
    assert performance["sales_users"] == []


def test_performance_for_whole_team(db, sales_user, other_rep, book):
    performance = sales_stats_service.get_performance(db, None, is_observer=True, now=NOW)

    assert performance["monthly"]["leads"] == 3
    assert performance["monthly"]["commissions"] == 10000
    assert performance["leads_by_status"]["won"] == 2
    assert [member["name"] for member in performance["sales_users"]] == ["Olive Other", "Sam Seller"]


async def test_dashboard_endpoint_for_sales_user(sales_client: AsyncClient, db, sales_user, other_rep):
    db.add(Lead(sales_user_id=sales_user.id, first_name="Mine", last_name="Lead", status="new"))
    db.add(Lead(sales_user_id=other_rep.id, first_name="Theirs", last_name="Lead", status="new"))
    db.commit()

    response = await sales_client.get("/api/sales/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_leads"] == 1
    assert data["stats"]["new_leads_this_month"] == 1
    assert [lead["first_name"] for lead in data["recent_leads"]] == ["Mine"]


async def test_sales_user_cannot_view_another_reps_performance(
    sales_client: AsyncClient, db, sales_user, other_rep
):
    db.add(Lead(sales_user_id=other_rep.id, first_name="Theirs", last_name="Lead", status="won"))
    db.commit()

    response = await sales_client.get("/api/sales/performance", params={"sales_user_id": str(other_rep.id)})

    assert response.status_code == 200
    data = response.json()
    assert data["is_observer"] is False
    assert data["filter_sales_user_id"] is None
    assert data["leads_by_status"] == {}


async def test_admin_observes_one_rep(admin_client: AsyncClient, db, sales_user, other_rep):
    db.add(Lead(sales_user_id=sales_user.id, first_name="Mine", last_name="Lead", status="new"))
    db.add(Lead(sales_user_id=other_rep.id, first_name="Theirs", last_name="Lead", status="won"))
    db.commit()

    team = await admin_client.get("/api/sales/performance")
    one = await admin_client.get("/api/sales/performance", params={"sales_user_id": str(other_rep.id)})

    assert team.json()["is_observer"] is True
    assert team.json()["leads_by_status"] == {"new": 1, "won": 1}
    assert one.json()["leads_by_status"] == {"won": 1}
    assert one.json()["filter_sales_user_id"] == str(other_rep.id)
    assert {member["name"] for member in one.json()["sales_users"]} == {"Sam Seller", "Olive Other"}


async def test_client_user_cannot_open_sales_dashboard(client_user_client: AsyncClient):
    response = await client_user_client.get("/api/sales/dashboard")
    assert response.status_code == 403


async def test_own_profile_with_stats(sales_client: AsyncClient, db, sales_user):
    db.add(Lead(sales_user_id=sales_user.id, first_name="Wendy", last_name="Won", status="won"))
    db.add(Lead(sales_user_id=sales_user.id, first_name="Fred", last_name="Fresh", status="new"))
    for amount, status in ((1000, "paid"), (400, "pending"), (900, "cancelled")):
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

    response = await sales_client.get("/api/sales/profile")

    assert response.status_code == 200
    data = response.json()
    assert data["profile"]["full_name"] == "Sam Seller"
    assert data["profile"]["commission_rate"] == 18
    assert "notes" not in data["profile"]
    assert data["stats"] == {
        "total_leads": 2,
        "won_leads": 1,
        "conversion_rate": 50.0,
        "total_earnings": 1400,
        "paid_amount": 1000,
    }


async def test_update_own_profile_keeps_admin_fields(sales_client: AsyncClient, db, sales_user):
    response = await sales_client.put(
        "/api/sales/profile",
        json={"full_name": "  Samuel   Seller ", "bio": "Dental specialist", "commission_rate": 50},
    )

    assert response.status_code == 200
    assert response.json()["full_name"] == "Samuel Seller"
    assert response.json()["bio"] == "Dental specialist"
    db.refresh(sales_user)
    assert sales_user.commission_rate == 18
    assert sales_user.user.full_name == "Samuel Seller"


async def test_admin_has_no_own_sales_profile(admin_client: AsyncClient):
    response = await admin_client.get("/api/sales/profile")
    assert response.status_code == 403
