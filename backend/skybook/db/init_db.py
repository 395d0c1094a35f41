from datetime import timedelta
from decimal import Decimal
import logging

from skybook.core.clock import utcnow
from skybook.db.session import engine, SessionLocal
from skybook.models import kv_entry, notification  # noqa: F401
from skybook.models.base import Base
from skybook.models.airline import Airline
from skybook.models.booking import Booking  # noqa: F401
from skybook.models.flight import Flight
from skybook.models.offer import Offer

logger = logging.getLogger(__name__)

def create_tables():
    """Create every table from model metadata (tests and throwaway databases; deployments use Alembic)."""
    Base.metadata.create_all(bind=engine)

def seed_demo_data():
    """Idempotent demo content: one airline, two flights and a launch offer."""
    db = SessionLocal()
    try:
        demo = db.query(Airline).filter(Airline.code == "DA").first()
        if not demo:
            demo = Airline(name="DemoAir", code="DA", is_active=True)
            db.add(demo)
            db.commit()
            db.refresh(demo)
            logger.info("seeded demo airline %s", demo.name)

        if db.query(Flight).filter(Flight.airline_id == demo.id).count() == 0:
            now = utcnow().replace(tzinfo=None, minute=0, second=0, microsecond=0)
            db.add_all([
                Flight(airline_id=demo.id, flight_number="DA101", origin="ALA", destination="NQZ",
                       departure=now + timedelta(days=1), arrival=now + timedelta(days=1, hours=1, minutes=30),
                       price=Decimal("39.00"), seats_total=180, seats_available=180),
                Flight(airline_id=demo.id, flight_number="DA202", origin="ALA", destination="DXB",
                       departure=now + timedelta(days=2), arrival=now + timedelta(days=2, hours=4, minutes=30),
                       price=Decimal("129.00"), seats_total=200, seats_available=200),
            ])
            db.commit()

        if db.query(Offer).count() == 0:
            now = utcnow().replace(tzinfo=None)
            db.add(Offer(
                title="Launch sale",
                description="10% off every DemoAir flight, up to 20",
                discount=Decimal("10"),
                valid_from=now,
                valid_to=now + timedelta(days=30),
                applicable_airlines=[demo.id],
                max_discount=Decimal("20"),
                is_active=True,
            ))
            db.commit()
    finally:
        db.close()
