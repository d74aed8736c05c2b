import uuid
from datetime import datetime, timedelta, timezone

from app.core.realtime import ChangeEvent
from app.services.claim_service import ClaimService
from app.services.read_model import ClaimReadModel, ListingReadModel


def listing_row(**overrides):
    now = datetime.now(timezone.utc)
    row = {
        "id": str(uuid.uuid4()),
        "donor_id": str(uuid.uuid4()),
        "title": "Soup",
        "description": "",
        "quantity": "10 bowls",
        "category": "prepared_food",
        "expiry_date": (now + timedelta(days=1)).isoformat(),
        "pickup_time_start": now.isoformat(),
        "pickup_time_end": (now + timedelta(hours=2)).isoformat(),
        "pickup_location": "Somewhere",
        "status": "available",
        "claimed_by": None,
        "claimed_at": None,
        "completed_at": None,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    row.update(overrides)
    return row


def test_last_write_wins_and_delete():
    model = ListingReadModel()
    row = listing_row()

    assert model.apply(ChangeEvent(table="food_listings", event_type="INSERT", new=row))
    assert model.apply(ChangeEvent(table="food_listings", event_type="UPDATE", new={**row, "title": "Stew"}))

    assert len(model) == 1
    assert model.get(uuid.UUID(row["id"])).title == "Stew"

    assert model.apply(ChangeEvent(table="food_listings", event_type="DELETE", old={"id": row["id"]}))
    assert len(model) == 0


def test_delete_with_malformed_id_is_rejected():
    model = ListingReadModel()
    row = listing_row()
    model.apply(ChangeEvent(table="food_listings", event_type="INSERT", new=row))

    assert model.apply(ChangeEvent(table="food_listings", event_type="DELETE", old={"id": "not-a-uuid"})) is False
    assert model.apply(ChangeEvent(table="food_listings", event_type="DELETE", old={})) is False
    assert model.rejected == 2
    assert len(model) == 1


def test_unknown_status_is_rejected():
    model = ListingReadModel()
    row = listing_row(status="booked")

    assert model.apply(ChangeEvent(table="food_listings", event_type="INSERT", new=row)) is False
    assert model.rejected == 1
    assert len(model) == 0


def test_events_for_other_tables_are_ignored():
    model = ListingReadModel()
    assert model.apply(ChangeEvent(table="claims", event_type="INSERT", new={"id": "x"})) is False
    assert model.rejected == 0


def test_read_models_follow_claim_lifecycle(db, bus, make_account, make_listing):
    donor = make_account("donor")
    ngo = make_account("ngo")
    listing = make_listing(donor)

    listings = ListingReadModel()
    listings.load([listing])
    listings.attach(bus)
    claims = ClaimReadModel()
    claims.attach(bus, filter=f"claimed_by=eq.{ngo.id}")

    svc = ClaimService(bus=bus, auto_complete_on_receipt=True)
    claim = svc.claim(db, listing_id=listing.id, requesting_user_id=ngo.id)

    assert listings.get(listing.id).status.value == "claimed"
    assert claims.get(claim.id).status.value == "pending"

    svc.mark_received(db, claim_id=claim.id)

    assert listings.status_counts()["completed"] == 1
    assert claims.status_counts()["received"] == 1

    listings.detach(bus)
    claims.detach(bus)
    assert bus.subscriber_count() == 0
