from decimal import Decimal

import pytest

from app.core.constants import LISTING_DRAFT
from app.models.listing import Listing
from app.models.user import User


@pytest.fixture
def seller(make_user):
    return make_user(is_vendor=True)


@pytest.fixture
def listing(make_listing, seller):
    return make_listing(seller)


def _offer(client, headers, buyer, listing, price="100.00", message=None):
    return client.post(
        "/api/offers/",
        json={"listing_id": listing.id, "price": price, "message": message},
        headers=headers(buyer),
    )


def test_create_offer(client, headers, listing, seller, make_user):
    buyer = make_user()
    res = _offer(client, headers, buyer, listing, message="Cash today")

    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "PENDING"
    assert body["seller_id"] == seller.id
    assert body["buyer_id"] == buyer.id
    assert Decimal(body["price"]) == Decimal("100.00")
    assert body["message"] == "Cash today"


def test_create_offer_requires_auth(client, listing):
    res = client.post("/api/offers/", json={"listing_id": listing.id, "price": "10"})
    assert res.status_code == 401


def test_error_mapping(client, headers, make_listing, listing, seller, make_user):
    buyer = make_user()

    res = client.post("/api/offers/", json={"listing_id": 999, "price": "10"}, headers=headers(buyer))
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"

    draft = make_listing(seller, status=LISTING_DRAFT)
    res = _offer(client, headers, buyer, draft)
    assert res.status_code == 409
    assert res.json() == {"detail": "This listing is not available", "error": "invalid_state"}

    res = _offer(client, headers, seller, listing)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_operation"

    assert _offer(client, headers, buyer, listing).status_code == 201
    res = _offer(client, headers, buyer, listing)
    assert res.status_code == 409
    assert res.json()["error"] == "conflict"


def test_negative_price_is_rejected(client, headers, listing, make_user):
    res = _offer(client, headers, make_user(), listing, price="-5")
    assert res.status_code == 422


def test_accept_flow_and_completion(client, headers, db, listing, seller, make_user):
    b1, b2, b3 = make_user(), make_user(), make_user()
    o1 = _offer(client, headers, b1, listing, price="100").json()
    o2 = _offer(client, headers, b2, listing, price="120").json()

    res = client.put(f"/api/offers/{o2['id']}/respond", json={"status": "ACCEPTED"}, headers=headers(seller))
    assert res.status_code == 200
    assert res.json()["status"] == "ACCEPTED"

    res = client.get(f"/api/offers/{o1['id']}", headers=headers(b1))
    assert res.json()["status"] == "REJECTED"

    res = client.put(f"/api/offers/{o2['id']}/complete", headers=headers(seller))
    assert res.status_code == 200
    assert res.json()["status"] == "COMPLETED"

    db.expire_all()
    assert db.get(Listing, listing.id).status == "SOLD"
    assert db.get(User, b2.id).points == 10
    assert db.get(User, seller.id).points == 10

    res = _offer(client, headers, b3, listing)
    assert res.status_code == 409
    assert res.json()["error"] == "invalid_state"


def test_respond_by_buyer_is_forbidden(client, headers, listing, make_user):
    buyer = make_user()
    offer = _offer(client, headers, buyer, listing).json()

    res = client.put(f"/api/offers/{offer['id']}/respond", json={"status": "ACCEPTED"}, headers=headers(buyer))
    assert res.status_code == 403


def test_respond_twice(client, headers, listing, seller, make_user):
    offer = _offer(client, headers, make_user(), listing).json()
    url = f"/api/offers/{offer['id']}/respond"

    assert client.put(url, json={"status": "REJECTED"}, headers=headers(seller)).status_code == 200
    res = client.put(url, json={"status": "ACCEPTED"}, headers=headers(seller))
    assert res.status_code == 409
    assert res.json()["detail"] == "This offer can no longer be modified"


def test_respond_with_invalid_status(client, headers, listing, seller, make_user):
    offer = _offer(client, headers, make_user(), listing).json()
    res = client.put(f"/api/offers/{offer['id']}/respond", json={"status": "COMPLETED"}, headers=headers(seller))
    assert res.status_code == 422


def test_complete_pending_offer_fails(client, headers, listing, seller, make_user):
    offer = _offer(client, headers, make_user(), listing).json()
    res = client.put(f"/api/offers/{offer['id']}/complete", headers=headers(seller))
    assert res.status_code == 409
    assert res.json()["detail"] == "Only accepted offers can be marked as completed"


def test_list_offers_pagination_envelope(client, headers, make_listing, seller, make_user):
    buyer = make_user()
    for i in range(5):
        listing = make_listing(seller, title=f"Item {i}")
        assert _offer(client, headers, buyer, listing).status_code == 201

    res = client.get("/api/offers/?role=buyer&page=2&limit=2", headers=headers(buyer))
    assert res.status_code == 200
    body = res.json()
    assert body["pagination"] == {"total": 5, "pages": 3, "currentPage": 2, "limit": 2}
    assert len(body["offers"]) == 2
    assert body["offers"][0]["listing"]["title"] == "Item 2"

    res = client.get("/api/offers/?role=seller", headers=headers(seller))
    assert res.json()["pagination"]["total"] == 5
    assert res.json()["pagination"]["limit"] == 20

    res = client.get("/api/offers/?role=seller&status=ACCEPTED", headers=headers(seller))
    assert res.json()["pagination"]["total"] == 0


def test_list_offers_rejects_unknown_filters(client, headers, make_user):
    user = make_user()

    res = client.get("/api/offers/?status=SHIPPED", headers=headers(user))
    assert res.status_code == 422
    assert res.json()["error"] == "validation"

    res = client.get("/api/offers/?role=broker", headers=headers(user))
    assert res.status_code == 422
    assert res.json()["error"] == "validation"

    for status in ("PENDING", "ACCEPTED", "REJECTED", "COMPLETED"):
        assert client.get(f"/api/offers/?status={status}", headers=headers(user)).status_code == 200


def test_offer_visible_only_to_parties(client, headers, listing, make_user):
    buyer, stranger = make_user(), make_user()
    offer = _offer(client, headers, buyer, listing).json()

    assert client.get(f"/api/offers/{offer['id']}", headers=headers(stranger)).status_code == 403
    assert client.get(f"/api/offers/{offer['id']}", headers=headers(buyer)).status_code == 200
