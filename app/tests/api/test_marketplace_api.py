from datetime import datetime, timedelta, timezone


def listing_body(**overrides):
    now = datetime.now(timezone.utc)
    data = {
        "title": "Vegetable curry",
        "description": "Twenty portions",
        "quantity": "20 meals",
        "category": "prepared_food",
        "expiry_date": (now + timedelta(days=1)).isoformat(),
        "pickup_time_start": (now + timedelta(hours=1)).isoformat(),
        "pickup_time_end": (now + timedelta(hours=3)).isoformat(),
        "pickup_location": "1 Test Street",
    }
    data.update(overrides)
    return data


def test_full_claim_flow(client, make_account, auth_headers):
    donor = make_account("donor")
    ngo = make_account("ngo")
    rival = make_account("recipient")
    donor_h, ngo_h, rival_h = auth_headers(donor), auth_headers(ngo), auth_headers(rival)

    r = client.post("/api/v1/listings", json=listing_body(), headers=donor_h)
    assert r.status_code == 200, r.text
    listing_id = r.json()["id"]
    assert r.json()["status"] == "available"

    # public browse
    assert [l["id"] for l in client.get("/api/v1/listings").json()] == [listing_id]

    # donors cannot claim
    r = client.post("/api/v1/claims", json={"listing_id": listing_id}, headers=donor_h)
    assert r.status_code == 403

    r = client.post("/api/v1/claims", json={"listing_id": listing_id, "quantity_requested": 4}, headers=ngo_h)
    assert r.status_code == 200, r.text
    claim_id = r.json()["id"]
    assert r.json()["status"] == "pending"

    r = client.post("/api/v1/claims", json={"listing_id": listing_id}, headers=rival_h)
    assert r.status_code == 409

    assert client.get("/api/v1/listings").json() == []
    assert client.get(f"/api/v1/listings/{listing_id}").json()["status"] == "claimed"

    # rival is not a party to the claim
    assert client.get(f"/api/v1/claims/{claim_id}", headers=rival_h).status_code == 403
    assert client.get(f"/api/v1/claims/{claim_id}", headers=donor_h).status_code == 200

    r = client.post(f"/api/v1/claims/{claim_id}/receive", headers=ngo_h)
    assert r.status_code == 200
    assert r.json()["status"] == "received"

    assert client.post(f"/api/v1/claims/{claim_id}/receive", headers=ngo_h).status_code == 409
    assert client.get(f"/api/v1/listings/{listing_id}").json()["status"] == "completed"

    summary = client.get("/api/v1/claims/mine/summary", headers=ngo_h).json()
    assert summary == {"total": 1, "pending": 0, "received": 1, "cancelled": 0}

    summary = client.get("/api/v1/listings/mine/summary", headers=donor_h).json()
    assert summary["completed"] == 1


def test_cancel_keeps_listing_claimed(client, make_account, make_listing, auth_headers):
    donor = make_account("donor")
    ngo = make_account("ngo")
    listing = make_listing(donor)
    ngo_h = auth_headers(ngo)

    claim = client.post("/api/v1/claims", json={"listing_id": str(listing.id)}, headers=ngo_h).json()

    r = client.post(f"/api/v1/claims/{claim['id']}/cancel", headers=ngo_h)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert client.get(f"/api/v1/listings/{listing.id}").json()["status"] == "claimed"

    r = client.post("/api/v1/claims", json={"listing_id": str(listing.id)}, headers=auth_headers(make_account("recipient")))
    assert r.status_code == 409


def test_schedule_pickup(client, make_account, make_listing, auth_headers):
    donor = make_account("donor")
    ngo = make_account("ngo")
    listing = make_listing(donor)
    ngo_h = auth_headers(ngo)

    claim = client.post("/api/v1/claims", json={"listing_id": str(listing.id)}, headers=ngo_h).json()
    at = (datetime.now(timezone.utc) + timedelta(hours=2)).isoformat()

    r = client.post(f"/api/v1/claims/{claim['id']}/schedule", json={"pickup_at": at}, headers=ngo_h)
    assert r.status_code == 200
    assert r.json()["pickup_scheduled_at"] is not None

    r = client.post(f"/api/v1/claims/{claim['id']}/schedule", json={"pickup_at": at}, headers=auth_headers(donor))
    assert r.status_code == 403


def test_recipient_cannot_create_listing(client, make_account, auth_headers):
    r = client.post("/api/v1/listings", json=listing_body(), headers=auth_headers(make_account("recipient")))
    assert r.status_code == 403


def test_bad_pickup_window_is_422(client, make_account, auth_headers):
    now = datetime.now(timezone.utc)
    body = listing_body(
        pickup_time_start=(now + timedelta(hours=3)).isoformat(),
        pickup_time_end=(now + timedelta(hours=1)).isoformat(),
    )
    r = client.post("/api/v1/listings", json=body, headers=auth_headers(make_account("donor")))
    assert r.status_code == 422


def test_missing_listing_is_404(client, make_account, auth_headers):
    r = client.post(
        "/api/v1/claims",
        json={"listing_id": "00000000-0000-0000-0000-000000000000"},
        headers=auth_headers(make_account("ngo")),
    )
    assert r.status_code == 404


def test_admin_stats_and_expiry(client, make_account, make_listing, auth_headers):
    donor = make_account("donor")
    make_account("ngo")
    admin = make_account("admin")
    make_listing(donor, expires_in=timedelta(seconds=-1))
    make_listing(donor)

    assert client.get("/api/v1/admin/stats", headers=auth_headers(donor)).status_code == 403

    admin_h = auth_headers(admin)
    r = client.post("/api/v1/admin/listings/expire", headers=admin_h)
    assert r.status_code == 200
    assert r.json()["expired"] == 1

    stats = client.get("/api/v1/admin/stats", headers=admin_h).json()
    assert stats["total_users"] == 3
    assert stats["total_donors"] == 1
    assert stats["total_recipients"] == 1
    assert stats["total_listings"] == 2
    assert stats["expired_listings"] == 1
    assert stats["active_listings"] == 1
    assert stats["success_rate"] == 0.0


def test_realtime_rejects_unknown_table_and_bad_filter(client, make_account, auth_headers):
    h = auth_headers(make_account("ngo"))
    assert client.get("/api/v1/realtime/accounts", headers=h).status_code == 404
    assert client.get("/api/v1/realtime/food_listings?filter=status", headers=h).status_code == 400
