from app.models.conversation import Conversation
from app.services.messaging_service import get_or_create_conversation


def _send(client, headers, sender, receiver, content, **extra):
    return client.post(
        "/api/messages/",
        json={"receiver_id": receiver.id, "content": content, **extra},
        headers=headers(sender),
    )


def test_first_message_creates_conversation(client, headers, db, make_user):
    alice, bob = make_user(), make_user()

    res = _send(client, headers, alice, bob, "Hi Bob")
    assert res.status_code == 201
    message = res.json()["message"]
    assert message["sender_id"] == alice.id
    assert message["receiver_id"] == bob.id
    assert message["read"] is False

    # reply goes into the same conversation regardless of direction
    reply = _send(client, headers, bob, alice, "Hi Alice").json()["message"]
    assert reply["conversation_id"] == message["conversation_id"]
    assert db.query(Conversation).count() == 1


def test_get_or_create_is_order_independent(db, make_user):
    a, b = make_user(), make_user()
    first = get_or_create_conversation(db, a.id, b.id)
    db.commit()
    second = get_or_create_conversation(db, b.id, a.id)
    assert first.id == second.id
    assert (first.user_low_id, first.user_high_id) == (min(a.id, b.id), max(a.id, b.id))


def test_send_validation(client, headers, make_user):
    alice, bob, carol = make_user(), make_user(), make_user()

    res = client.post("/api/messages/", json={"receiver_id": 999, "content": "?"}, headers=headers(alice))
    assert res.status_code == 404

    assert _send(client, headers, alice, alice, "me").status_code == 400
    assert _send(client, headers, alice, bob, "x", listing_id=555).status_code == 404

    conv_id = _send(client, headers, alice, bob, "hello").json()["message"]["conversation_id"]
    res = _send(client, headers, carol, bob, "sneaky", conversation_id=conv_id)
    assert res.status_code == 403
    assert _send(client, headers, bob, alice, "ok", conversation_id=conv_id).status_code == 201
    assert _send(client, headers, bob, alice, "ok", conversation_id=4242).status_code == 404


def test_message_can_reference_listing(client, headers, make_user, make_listing):
    seller = make_user(is_vendor=True)
    buyer = make_user()
    listing = make_listing(seller)

    res = _send(client, headers, buyer, seller, "Is it available?", listing_id=listing.id)
    assert res.status_code == 201
    assert res.json()["message"]["listing_id"] == listing.id


def test_conversation_history_paginates(client, headers, make_user):
    alice, bob, carol = make_user(), make_user(), make_user()
    for i in range(3):
        _send(client, headers, alice, bob, f"a{i}")
    _send(client, headers, bob, alice, "b0")
    _send(client, headers, carol, alice, "unrelated")

    res = client.get(f"/api/messages/conversation/{bob.id}?limit=3", headers=headers(alice))
    body = res.json()
    assert body["pagination"] == {"total": 4, "pages": 2, "currentPage": 1, "limit": 3}
    assert [m["content"] for m in body["messages"]] == ["b0", "a2", "a1"]


def test_read_flags_and_unread_count(client, headers, make_user):
    alice, bob = make_user(), make_user()
    m1 = _send(client, headers, alice, bob, "one").json()["message"]
    _send(client, headers, alice, bob, "two")

    assert client.get("/api/messages/unread/count", headers=headers(bob)).json()["count"] == 2
    assert client.get("/api/messages/unread/count", headers=headers(alice)).json()["count"] == 0

    # only the receiver may mark it read
    assert client.put(f"/api/messages/{m1['id']}/read", headers=headers(alice)).status_code == 404
    res = client.put(f"/api/messages/{m1['id']}/read", headers=headers(bob))
    assert res.status_code == 200
    assert res.json() == {"status": "success", "message": "Message marked as read"}

    assert client.get("/api/messages/unread/count", headers=headers(bob)).json()["count"] == 1


def test_conversation_list(client, headers, make_user):
    alice, bob, carol = make_user(), make_user(), make_user()
    _send(client, headers, alice, bob, "to bob")
    _send(client, headers, carol, alice, "from carol")

    res = client.get("/api/messages/conversations", headers=headers(alice))
    body = res.json()
    assert body["pagination"]["total"] == 2
    first = body["conversations"][0]
    assert first["otherUser"]["id"] == carol.id
    assert first["lastMessage"]["content"] == "from carol"
    assert body["conversations"][1]["otherUser"]["id"] == bob.id


def test_receiver_is_notified(client, headers, make_user):
    from app.core.security import create_access_token

    alice, bob = make_user(), make_user()
    token = create_access_token({"sub": str(bob.id)})
    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_text("ping")
        ws.receive_json()

        sent = _send(client, headers, alice, bob, "psst").json()["message"]
        event = ws.receive_json()
        assert event["event"] == "new_message"
        assert event["data"]["messageId"] == sent["id"]
        assert event["data"]["senderId"] == alice.id
