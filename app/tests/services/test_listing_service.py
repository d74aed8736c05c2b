import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import NotFound
from app.models.enums import FoodCategory, ListingStatus
from app.schemas.listings import ListingCreateRequest
from app.services.claim_service import ClaimService
from app.services.listing_service import ListingService


def payload(**overrides):
    now = datetime.now(timezone.utc)
    data = dict(
        title="Sourdough loaves",
        description="Baked this morning",
        quantity="12 loaves",
        category=FoodCategory.bakery,
        expiry_date=now + timedelta(days=1),
        pickup_time_start=now + timedelta(hours=1),
        pickup_time_end=now + timedelta(hours=3),
        pickup_location="12 Market Street",
    )
    data.update(overrides)
    return ListingCreateRequest(**data)


def test_pickup_window_must_be_ordered():
    now = datetime.now(timezone.utc)
    with pytest.raises(ValueError):
        payload(pickup_time_start=now + timedelta(hours=3), pickup_time_end=now + timedelta(hours=1))


def test_create_listing_starts_available(db, bus, make_account):
    donor = make_account("donor")
    seen = []
    bus.subscribe("food_listings", seen.append, event="INSERT")

    listing = ListingService(bus=bus).create_listing(db, donor_id=donor.id, payload=payload())

    assert listing.status == ListingStatus.available.value
    assert listing.claimed_by is None
    assert len(seen) == 1
    assert seen[0].new["id"] == str(listing.id)


def test_get_listing_missing(db):
    with pytest.raises(NotFound):
        ListingService().get_listing(db, uuid.uuid4())


def test_browse_filters(db, bus, make_account, make_listing):
    donor = make_account("donor")
    ngo = make_account("ngo")
    bread = make_listing(donor, title="Bread basket", category="bakery")
    make_listing(donor, title="Apples", category="fruits")
    taken = make_listing(donor, title="Bread rolls", category="bakery")
    ClaimService(bus=bus, auto_complete_on_receipt=True).claim(
        db, listing_id=taken.id, requesting_user_id=ngo.id
    )

    svc = ListingService(bus=bus)
    assert len(svc.browse(db)) == 2
    assert [l.id for l in svc.browse(db, category=FoodCategory.bakery)] == [bread.id]
    assert [l.id for l in svc.browse(db, search="BREAD")] == [bread.id]
    assert svc.browse(db, limit=1, offset=5) == []


def test_expire_overdue_only_touches_available(db, bus, make_account, make_listing):
    donor = make_account("donor")
    ngo = make_account("ngo")
    stale = make_listing(donor, title="Old soup", expires_in=timedelta(hours=1))
    held = make_listing(donor, title="Held rice", expires_in=timedelta(hours=1))
    fresh = make_listing(donor, title="Fresh milk", expires_in=timedelta(days=2))
    ClaimService(bus=bus, auto_complete_on_receipt=True).claim(db, listing_id=held.id, requesting_user_id=ngo.id)

    later = datetime.now(timezone.utc) + timedelta(hours=2)
    expired = ListingService(bus=bus, now=lambda: later).expire_overdue(db)

    assert [l.id for l in expired] == [stale.id]
    for listing in (stale, held, fresh):
        db.refresh(listing)
    assert stale.status == ListingStatus.expired.value
    assert held.status == ListingStatus.claimed.value
    assert fresh.status == ListingStatus.available.value

    # second run is a no-op
    assert ListingService(bus=bus, now=lambda: later).expire_overdue(db) == []


def test_list_for_donor(db, make_account, make_listing):
    donor = make_account("donor")
    other = make_account("donor")
    make_listing(donor, title="Mine")
    make_listing(other, title="Theirs")

    rows = ListingService().list_for_donor(db, donor.id)
    assert [l.title for l in rows] == ["Mine"]
    assert ListingService().list_for_donor(db, donor.id, status=ListingStatus.expired) == []


def test_expire_command(session_factory, make_account, make_listing, monkeypatch):
    from app.scripts import expire_listings

    donor = make_account("donor")
    make_listing(donor, expires_in=timedelta(seconds=-1))
    make_listing(donor)

    monkeypatch.setattr(expire_listings, "SessionLocal", session_factory)
    assert expire_listings.run() == 1
    assert expire_listings.run() == 0
