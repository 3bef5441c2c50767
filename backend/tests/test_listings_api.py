from datetime import timedelta

from helpers import parse_ts, utc

NEW_LISTING = {
    "title": "Study Desk Lamp - LED",
    "description": "Adjustable LED desk lamp with multiple brightness settings.",
    "category": "electronics",
    "campus": "North Campus",
}


def test_create_listing(client, auth, listing_store):
    r = client.post("/listings", json=NEW_LISTING, headers=auth("U3", "Mike Johnson", "mike@uni.edu"))
    assert r.status_code == 200
    body = r.json()
    assert body["createdBy"] == "U3"
    assert body["createdByName"] == "Mike Johnson"
    assert body["status"] == "available"
    assert body["claimedBy"] is None
    assert "createdByEmail" not in body
    ttl = parse_ts(body["expiresAt"]) - parse_ts(body["createdAt"])
    assert ttl == timedelta(days=30)

    stored = listing_store.docs[body["id"]]
    assert stored["createdByEmail"] == "mike@uni.edu"


def test_create_requires_identity(client, listing_store):
    r = client.post("/listings", json=NEW_LISTING)
    assert r.status_code == 400
    assert r.json()["code"] == "MISSING_IDENTITY"
    assert listing_store.docs == {}


def test_create_rejects_past_expiry(client, auth):
    payload = {**NEW_LISTING, "expiresAt": utc(hours=-1).isoformat()}
    r = client.post("/listings", json=payload, headers=auth("U3"))
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_REQUEST"


def test_create_rejects_unknown_category(client, auth):
    r = client.post("/listings", json={**NEW_LISTING, "category": "vehicles"}, headers=auth("U3"))
    assert r.status_code == 422


def test_expired_listing_is_derived_on_read(client, seed, listing_store):
    seed("L1", expiresAt=utc(days=-1))
    r = client.get("/listings/L1")
    assert r.status_code == 200
    assert r.json()["status"] == "expired"
    assert listing_store.docs["L1"]["status"] == "available"


def test_get_unknown_listing(client):
    r = client.get("/listings/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Listing not found", "code": "NOT_FOUND"}


def test_browse_filters(client, seed):
    seed("A", category="food", title="Surplus Pizza", createdAt=utc(hours=-1))
    seed("B", category="books", createdAt=utc(hours=-2))
    seed("C", category="books", expiresAt=utc(days=-1), createdAt=utc(hours=-3))
    seed("D", category="furniture", status="claimed", claimedBy="U9", expiresAt=utc(days=-1), createdAt=utc(hours=-4))

    r = client.get("/listings")
    assert [i["id"] for i in r.json()["items"]] == ["A", "B", "C", "D"]
    assert r.json()["count"] == 4

    assert [i["id"] for i in client.get("/listings", params={"status": "available"}).json()["items"]] == ["A", "B"]
    assert [i["id"] for i in client.get("/listings", params={"status": "expired"}).json()["items"]] == ["C"]
    assert [i["id"] for i in client.get("/listings", params={"status": "claimed"}).json()["items"]] == ["D"]
    assert [i["id"] for i in client.get("/listings", params={"category": "books"}).json()["items"]] == ["B", "C"]
    assert [i["id"] for i in client.get("/listings", params={"search": "pizza"}).json()["items"]] == ["A"]

    page = client.get("/listings", params={"limit": 2, "offset": 1}).json()
    assert [i["id"] for i in page["items"]] == ["B", "C"]
    assert page["count"] == 2


def test_owner_can_extend_expiry(client, seed, auth):
    seed("L1", expiresAt=utc(days=1))
    later = utc(days=10)
    r = client.put("/listings/L1", json={"expiresAt": later.isoformat(), "title": "Calculus (Stewart)"}, headers=auth("U1"))
    assert r.status_code == 200
    assert r.json()["title"] == "Calculus (Stewart)"
    assert abs(parse_ts(r.json()["expiresAt"]) - later) < timedelta(seconds=1)


def test_expiry_cannot_be_shortened(client, seed, auth):
    seed("L1", expiresAt=utc(days=5))
    r = client.put("/listings/L1", json={"expiresAt": utc(days=1).isoformat()}, headers=auth("U1"))
    assert r.status_code == 400


def test_update_cannot_touch_claim_state(client, seed, auth, listing_store):
    seed("L1")
    r = client.put("/listings/L1", json={"status": "claimed", "claimedBy": "U1", "campus": "South"}, headers=auth("U1"))
    assert r.status_code == 200
    stored = listing_store.docs["L1"]
    assert stored["status"] == "available"
    assert "claimedBy" not in stored
    assert stored["campus"] == "South"


def test_only_owner_can_update_or_delete(client, seed, auth, listing_store):
    seed("L1")
    assert client.put("/listings/L1", json={"title": "mine now"}, headers=auth("U2")).status_code == 403
    r = client.delete("/listings/L1", headers=auth("U2"))
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"
    assert "L1" in listing_store.docs


def test_owner_delete(client, seed, auth, listing_store):
    seed("L1")
    assert client.delete("/listings/L1", headers=auth("U1")).status_code == 204
    assert listing_store.docs == {}
    assert client.get("/listings/L1").status_code == 404


def test_stats(client, seed):
    seed("A", category="food")
    seed("B", category="books", status="claimed", claimedBy="U2")
    seed("C", category="books", expiresAt=utc(days=-1))

    stats = client.get("/listings/stats").json()
    assert stats["totalListings"] == 3
    assert stats["activeListings"] == 1
    assert stats["claimedListings"] == 1
    assert stats["expiredListings"] == 1
    assert stats["categories"]["books"] == 2
    assert stats["categories"]["clothing"] == 0


def test_stats_and_paging_cover_the_whole_store(client, seed):
    for i in range(250):
        seed(f"A{i:03d}", category="food", createdAt=utc(hours=-i - 1))
    for i in range(60):
        seed(f"X{i:03d}", category="books", expiresAt=utc(days=-1), createdAt=utc(days=-30, hours=-i))

    stats = client.get("/listings/stats").json()
    assert stats["totalListings"] == 310
    assert stats["activeListings"] == 250
    assert stats["expiredListings"] == 60
    assert stats["categories"]["food"] == 250

    tail = client.get("/listings", params={"status": "available", "limit": 200, "offset": 200}).json()
    assert tail["count"] == 50
    assert tail["items"][-1]["id"] == "A249"

    expired = client.get("/listings", params={"status": "expired", "limit": 200, "offset": 50}).json()
    assert [i["id"] for i in expired["items"]] == [f"X{i:03d}" for i in range(50, 60)]
