"""
Moves every overdue `available` listing to `expired`.

    python -m app.scripts.expire_listings

Meant for cron; safe to run repeatedly.
"""
import logging

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.listing_service import ListingService

logger = logging.getLogger(__name__)


def run() -> int:
    db = SessionLocal()
    try:
        expired = ListingService().expire_overdue(db, request_id="cron:expire_listings")
    finally:
        db.close()
    logger.info("expire run finished", extra={"expired": len(expired)})
    return len(expired)


if __name__ == "__main__":
    configure_logging(get_settings())
    run()
