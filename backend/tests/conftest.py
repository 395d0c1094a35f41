import os

# Must be set before skybook is imported: settings and the engine are built at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret"

from datetime import datetime, timedelta, timezone, date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from skybook.api.routes import bookings as bookings_routes, content as content_routes
from skybook.core.security import create_access_token
from skybook.db.init_db import create_tables
from skybook.db.session import SessionLocal, engine
from skybook.main import app
from skybook.models.airline import Airline
from skybook.models.base import Base
from skybook.models.booking import Booking, Passenger
from skybook.models.flight import Flight
from skybook.models.offer import Offer
from skybook.services.dashboard import DashboardRegistry

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback()


class FakeTimer:
    """Records armed timers; tests fire them by hand."""

    def __init__(self):
        self.armed = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.armed.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.armed if not h.cancelled and not h.fired]


class RecordingNotifier:
    def __init__(self, granted=True):
        self.granted = granted
        self.shown = []

    def request_permission(self):
        return self.granted

    def show(self, title, body, tag=None, recipient=None):
        self.shown.append({"title": title, "body": body, "tag": tag, "recipient": recipient})
        return len(self.shown)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    create_tables()
    yield


@pytest.fixture(autouse=True)
def _clean_state():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    bookings_routes._last_purchase.clear()
    content_routes._cache_invalidate("offers")


@pytest.fixture
def client():
    app.state.dashboards = DashboardRegistry()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fake_timer():
    return FakeTimer()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def auth_headers(email: str = "user1@example.com", roles=("user",)) -> dict:
    token = create_access_token(email, list(roles))
    return {"Authorization": f"Bearer {token}"}


def passenger(first_name: str = "Ada", last_name: str = "Lovelace") -> dict:
    return {
        "first_name": first_name,
        "last_name": last_name,
        "email": f"{first_name.lower()}@example.com",
        "date_of_birth": "1990-05-17",
    }


def seed_flight(seats: int = 5, price: str = "100.00", departs_in: timedelta = timedelta(days=3),
                origin: str = "AAA", destination: str = "BBB", airline_code: str = "DA") -> int:
    db = SessionLocal()
    try:
        airline = db.query(Airline).filter(Airline.code == airline_code).first()
        if not airline:
            airline = Airline(name=f"{airline_code} Air", code=airline_code, is_active=True)
            db.add(airline)
            db.commit()
        departure = (datetime.now(timezone.utc) + departs_in).replace(tzinfo=None, microsecond=0)
        f = Flight(
            airline_id=airline.id,
            flight_number=f"{airline_code}100",
            origin=origin,
            destination=destination,
            departure=departure,
            arrival=departure + timedelta(hours=2),
            price=Decimal(price),
            seats_total=seats,
            seats_available=seats,
        )
        db.add(f)
        db.commit()
        return f.id
    finally:
        db.close()


def seed_offer(discount: str = "10", **kw) -> int:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    db = SessionLocal()
    try:
        o = Offer(
            title=kw.pop("title", "Spring sale"),
            discount=Decimal(discount),
            valid_from=kw.pop("valid_from", now - timedelta(days=1)),
            valid_to=kw.pop("valid_to", now + timedelta(days=1)),
            is_active=kw.pop("is_active", True),
            **kw,
        )
        db.add(o)
        db.commit()
        return o.id
    finally:
        db.close()


def make_booking(booking_id=1, departure=None, status="confirmed", flight_number="DA101",
                 user_email="user1@example.com") -> Booking:
    """Unsaved booking with its flight, for service-level tests."""
    departure = departure or NOW + timedelta(days=3)
    flight = Flight(
        id=booking_id * 10,
        airline_id=1,
        flight_number=flight_number,
        origin="ALA",
        destination="NQZ",
        departure=departure,
        arrival=departure + timedelta(hours=1, minutes=30),
        price=Decimal("100.00"),
        seats_total=100,
        seats_available=50,
    )
    return Booking(
        id=booking_id,
        confirmation_id=f"F{booking_id:07d}",
        user_email=user_email,
        flight_id=flight.id,
        flight=flight,
        total_price=Decimal("100.00"),
        status=status,
        payment_status="paid",
        booked_at=(NOW - timedelta(days=1)).replace(tzinfo=None),
        passengers=[Passenger(first_name="Ada", last_name="Lovelace", email="ada@example.com", date_of_birth=date(1990, 5, 17))],
    )
