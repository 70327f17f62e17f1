"""Tests for the sales resource library."""

import uuid

from httpx import AsyncClient

from app.db.models import Resource


async def _category(admin_client: AsyncClient, name: str = "Decks") -> dict:
    response = await admin_client.post("/api/resources/categories", json={"name": name, "color": "#10b981"})
    assert response.status_code == 201
    return response.json()


async def test_admin_creates_category_and_resource(admin_client: AsyncClient):
    category = await _category(admin_client)

    response = await admin_client.post(
        "/api/resources",
        json={
            "title": "  Pricing deck ",
            "type": "pdf",
            "url": "https://cdn.example.com/pricing.pdf",
            "category_id": category["id"],
            "tags": ["pricing"],
        },
    )

    assert response.status_code == 201
    resource = response.json()
    assert resource["title"] == "Pricing deck"
    assert resource["type"] == "pdf"
    assert resource["download_count"] == 0


async def test_category_color_must_be_hex(admin_client: AsyncClient):
    response = await admin_client.post("/api/resources/categories", json={"name": "Bad", "color": "green"})
    assert response.status_code == 400


async def test_unknown_resource_type_is_rejected(admin_client: AsyncClient):
    response = await admin_client.post(
        "/api/resources", json={"title": "Clip", "type": "audio", "url": "https://example.com/a.mp3"}
    )
    assert response.status_code == 400


async def test_unknown_category_is_rejected(admin_client: AsyncClient):
    response = await admin_client.post(
        "/api/resources",
        json={"title": "Deck", "type": "pdf", "url": "https://example.com/d.pdf", "category_id": str(uuid.uuid4())},
    )
    assert response.status_code == 400


async def test_download_counts_up(sales_client: AsyncClient, db):
    resource = Resource(title="Script", type="document", url="https://example.com/script.docx")
    db.add(resource)
    db.commit()

    first = await sales_client.post(f"/api/resources/{resource.id}/download")
    second = await sales_client.post(f"/api/resources/{resource.id}/download")

    assert first.json() == {"url": "https://example.com/script.docx", "download_count": 1}
    assert second.json()["download_count"] == 2


async def test_inactive_resources_hidden_from_sales(sales_client: AsyncClient, db):
    hidden = Resource(title="Old deck", type="pdf", url="https://example.com/old.pdf", is_active=False)
    visible = Resource(title="New deck", type="pdf", url="https://example.com/new.pdf")
    db.add_all([hidden, visible])
    db.commit()

    listed = await sales_client.get("/api/resources", params={"include_inactive": "true"})
    fetched = await sales_client.get(f"/api/resources/{hidden.id}")

    assert [r["title"] for r in listed.json()] == ["New deck"]
    assert fetched.status_code == 404


async def test_admin_can_see_inactive(admin_client: AsyncClient, db):
    hidden = Resource(title="Old deck", type="pdf", url="https://example.com/old.pdf", is_active=False)
    db.add(hidden)
    db.commit()

    fetched = await admin_client.get(f"/api/resources/{hidden.id}")
    assert fetched.status_code == 200


async def test_filter_by_type_and_search(sales_client: AsyncClient, db):
    db.add_all(
        [
            Resource(title="Onboarding video", type="video", url="https://example.com/v.mp4"),
            Resource(title="Objection handling", type="document", url="https://example.com/o.docx"),
        ]
    )
    db.commit()

    by_type = await sales_client.get("/api/resources", params={"type": "video"})
    by_search = await sales_client.get("/api/resources", params={"search": "objection"})

    assert [r["title"] for r in by_type.json()] == ["Onboarding video"]
    assert [r["title"] for r in by_search.json()] == ["Objection handling"]


async def test_deleting_category_keeps_resources(admin_client: AsyncClient, db):
    category = await _category(admin_client)
    created = await admin_client.post(
        "/api/resources",
        json={"title": "Deck", "type": "pdf", "url": "https://example.com/d.pdf", "category_id": category["id"]},
    )

    response = await admin_client.delete(f"/api/resources/categories/{category['id']}")

    assert response.json() == {"success": True}
    resource = await admin_client.get(f"/api/resources/{created.json()['id']}")
    assert resource.json()["category_id"] is None


async def test_sales_cannot_create_resources(sales_client: AsyncClient):
    response = await sales_client.post(
        "/api/resources", json={"title": "Mine", "type": "link", "url": "https://example.com"}
    )
    assert response.status_code == 403
