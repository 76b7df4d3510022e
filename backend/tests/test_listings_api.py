from decimal import Decimal

import pytest

from app.core.constants import LISTING_ACTIVE, LISTING_DRAFT, ROLE_ADMIN
from app.models.offer import Offer


@pytest.fixture
def vendor(make_user):
    return make_user(is_vendor=True)


LISTING_BODY = {
    "title": "Vintage camera",
    "description": "Film camera, works",
    "type": "PRODUCT",
    "price": "250.00",
    "currency": "EUR",
    "location": "Lisbon",
    "features": {"brand": "Pentax"},
}


def test_only_vendors_create_listings(client, headers, make_user):
    res = client.post("/api/listings/", json=LISTING_BODY, headers=headers(make_user()))
    assert res.status_code == 403


def test_create_listing_starts_as_draft(client, headers, vendor):
    res = client.post("/api/listings/", json=LISTING_BODY, headers=headers(vendor))
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == LISTING_DRAFT
    assert body["owner_id"] == vendor.id
    assert body["features"] == {"brand": "Pentax"}
    assert body["thumbnail_url"] is None


def test_publish_makes_listing_public(client, headers, vendor):
    created = client.post("/api/listings/", json=LISTING_BODY, headers=headers(vendor)).json()
    assert client.get("/api/listings/").json()["pagination"]["total"] == 0

    res = client.post(f"/api/listings/{created['id']}/publish", headers=headers(vendor))
    assert res.status_code == 200
    assert res.json()["status"] == LISTING_ACTIVE

    res = client.post(f"/api/listings/{created['id']}/publish", headers=headers(vendor))
    assert res.status_code == 409

    page = client.get("/api/listings/").json()
    assert page["pagination"] == {"total": 1, "pages": 1, "currentPage": 1, "limit": 20}
    assert page["listings"][0]["id"] == created["id"]


def test_public_listing_filters(client, make_listing, vendor):
    make_listing(vendor, title="Mountain bike", price=Decimal("300"))
    make_listing(vendor, title="Bike lock", price=Decimal("20"))
    make_listing(vendor, title="Kayak", price=Decimal("500"))
    make_listing(vendor, title="Hidden bike", status=LISTING_DRAFT)

    res = client.get("/api/listings/?search=BIKE")
    titles = {l["title"] for l in res.json()["listings"]}
    assert titles == {"Mountain bike", "Bike lock"}

    res = client.get("/api/listings/?min_price=100&max_price=400")
    assert [l["title"] for l in res.json()["listings"]] == ["Mountain bike"]

    res = client.get("/api/listings/?limit=2&page=2")
    body = res.json()
    assert body["pagination"] == {"total": 3, "pages": 2, "currentPage": 2, "limit": 2}
    assert len(body["listings"]) == 1


def test_search_endpoint(client, make_listing, vendor):
    make_listing(vendor, title="Desk lamp")
    make_listing(vendor, title="Floor lamp", status=LISTING_DRAFT)

    res = client.get("/api/listings/search?query=lamp")
    assert [l["title"] for l in res.json()] == ["Desk lamp"]

    res = client.get("/api/listings/search?query=lamp&status=DRAFT")
    assert [l["title"] for l in res.json()] == ["Floor lamp"]


def test_get_listing_is_public(client, make_listing, vendor):
    listing = make_listing(vendor)
    res = client.get(f"/api/listings/{listing.id}")
    assert res.status_code == 200
    assert res.json()["owner"]["id"] == vendor.id

    assert client.get("/api/listings/9999").status_code == 404


def test_update_owner_or_admin(client, headers, make_listing, make_user, vendor):
    listing = make_listing(vendor)
    stranger = make_user()
    admin = make_user(role=ROLE_ADMIN)

    res = client.put(f"/api/listings/{listing.id}", json={"title": "Nope"}, headers=headers(stranger))
    assert res.status_code == 403

    res = client.put(f"/api/listings/{listing.id}", json={"title": "Better title"}, headers=headers(vendor))
    assert res.status_code == 200
    assert res.json()["title"] == "Better title"
    assert Decimal(res.json()["price"]) == Decimal("150.00")

    res = client.put(f"/api/listings/{listing.id}", json={"price": "99.00"}, headers=headers(admin))
    assert res.status_code == 200
    assert Decimal(res.json()["price"]) == Decimal("99.00")


def test_update_cannot_mark_sold(client, headers, make_listing, vendor):
    listing = make_listing(vendor)
    res = client.put(f"/api/listings/{listing.id}", json={"status": "SOLD"}, headers=headers(vendor))
    assert res.status_code == 409


def test_delete_listing(client, headers, db, make_listing, make_user, vendor):
    listing = make_listing(vendor)
    with_offer = make_listing(vendor, title="Has offers")
    buyer = make_user()
    db.add(Offer(listing_id=with_offer.id, buyer_id=buyer.id, seller_id=vendor.id, price=Decimal("10")))
    db.commit()

    assert client.delete(f"/api/listings/{listing.id}", headers=headers(buyer)).status_code == 403
    assert client.delete(f"/api/listings/{listing.id}", headers=headers(vendor)).status_code == 204
    assert client.get(f"/api/listings/{listing.id}").status_code == 404

    assert client.delete(f"/api/listings/{with_offer.id}", headers=headers(vendor)).status_code == 409


def test_my_listings(client, headers, make_listing, make_user, vendor):
    make_listing(vendor, title="Mine")
    make_listing(vendor, title="Also mine", status=LISTING_DRAFT)
    make_listing(make_user(is_vendor=True), title="Not mine")

    res = client.get("/api/listings/user/me", headers=headers(vendor))
    assert {l["title"] for l in res.json()} == {"Mine", "Also mine"}
