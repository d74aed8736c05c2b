from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.enums import FoodCategory
from app.schemas.listings import ListingCreateRequest
from app.services.identity_service import IdentityProvider
from app.services.listing_service import ListingService

DEMO_PASSWORD = "demo-password"

DEMO_ACCOUNTS = [
    {"email": "admin@foodshare.local", "role": "admin", "full_name": "Platform Admin"},
    {"email": "donor@foodshare.local", "role": "donor", "full_name": "Corner Bakery",
     "organization_name": "Corner Bakery"},
    {"email": "ngo@foodshare.local", "role": "ngo", "full_name": "City Food Bank",
     "organization_name": "City Food Bank"},
    {"email": "recipient@foodshare.local", "role": "recipient", "full_name": "Sam Recipient"},
]


def seed():
    db: Session = SessionLocal()
    idp = IdentityProvider(db)

    accounts = {}
    for entry in DEMO_ACCOUNTS:
        meta = {k: v for k, v in entry.items() if k != "email"}
        accounts[entry["role"]] = idp.create_user(
            email=entry["email"], password=DEMO_PASSWORD, user_metadata=meta
        )

    now = datetime.now(timezone.utc)
    listings = ListingService()
    for title, category, qty in [
        ("Day-old bread", FoodCategory.bakery, "12 loaves"),
        ("Vegetable curry", FoodCategory.prepared_food, "20 meals"),
        ("Apples", FoodCategory.fruits, "2 crates"),
    ]:
        listings.create_listing(
            db,
            donor_id=accounts["donor"].id,
            payload=ListingCreateRequest(
                title=title,
                description=f"{title} from the demo donor",
                quantity=qty,
                category=category,
                expiry_date=now + timedelta(days=1),
                pickup_time_start=now + timedelta(hours=1),
                pickup_time_end=now + timedelta(hours=4),
                pickup_location="12 Market Street",
            ),
        )

    db.close()
    print("✅ Seed data inserted")


if __name__ == "__main__":
    seed()
