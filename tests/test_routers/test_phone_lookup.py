"""Tests for the single-URL phone lookup endpoint."""

from tests.fakes import FakePlace, place_with_body_text, place_with_button

URL = "https://www.google.com/maps/place/spa-relax"


async def test_lookup_found(client, fake_pages):
    fake_pages.places[URL] = place_with_button("+52 222 123 4567")

    resp = await client.post("/api/phone", json={"url": URL})

    assert resp.status_code == 200
    data = resp.json()
    assert data["phone"] == "222 123 4567"
    assert data["status"] == "phone"
    assert data["reason"] is None


async def test_lookup_without_phone(client, fake_pages):
    fake_pages.places[URL] = place_with_body_text("Spa Relax")

    resp = await client.post("/api/phone", json={"url": URL})

    data = resp.json()
    assert data["phone"] is None
    assert data["status"] == "empty"


async def test_lookup_navigation_failure(client, fake_pages):
    fake_pages.places[URL] = FakePlace(fail_navigation=True)

    resp = await client.post("/api/phone", json={"url": URL})

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "failure"
    assert data["reason"] == "navigation"
