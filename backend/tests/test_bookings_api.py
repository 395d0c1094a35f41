from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from fastapi.testclient import TestClient

from skybook.api.routes import bookings as bookings_routes
from skybook.db.session import SessionLocal
from skybook.main import app
from skybook.models.booking import Booking
from skybook.models.flight import Flight
from skybook.models.kv_entry import KeyValueEntry
from skybook.models.notification import Notification
from skybook.services.dashboard import DashboardRegistry
from skybook.services import notifier as notifier_module
from skybook.services.kv_store import SqlKeyValueStore

from conftest import auth_headers, passenger, seed_flight, seed_offer


def book(client, flight_id, n=1, email="user1@example.com"):
    bookings_routes._last_purchase.clear()
    return client.post(
        "/bookings",
        json={"flight_id": flight_id, "passengers": [passenger(f"P{i}x", "Doe") for i in range(n)]},
        headers=auth_headers(email),
    )


def reminder_keys():
    with SessionLocal() as db:
        return sorted(k for (k,) in db.query(KeyValueEntry.key).all())


def test_booking_decrements_seats(client):
    flight_id = seed_flight(seats=6)
    r = book(client, flight_id, n=3)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "paid"
    assert len(data["passengers"]) == 3
    assert data["confirmation_id"].startswith("F")

    r2 = client.get(f"/flights/{flight_id}")
    assert r2.status_code == 200
    assert r2.json()["seats_available"] == 3


def test_booking_not_enough_seats(client):
    flight_id = seed_flight(seats=2)
    r = book(client, flight_id, n=5, email="user2@example.com")
    assert r.status_code == 400
    assert "Not enough seats" in r.text


def test_booking_partial_then_exhaust(client):
    flight_id = seed_flight(seats=4)
    assert book(client, flight_id, n=3).status_code == 200
    assert book(client, flight_id, n=2).status_code == 400
    assert book(client, flight_id, n=1).status_code == 200
    assert client.get(f"/flights/{flight_id}").json()["seats_available"] == 0


def test_double_submit_is_throttled(client):
    flight_id = seed_flight(seats=4)
    body = {"flight_id": flight_id, "passengers": [passenger()]}
    assert client.post("/bookings", json=body, headers=auth_headers()).status_code == 200
    assert client.post("/bookings", json=body, headers=auth_headers()).status_code == 429


def test_booking_requires_token(client):
    flight_id = seed_flight()
    r = client.post("/bookings", json={"flight_id": flight_id, "passengers": [passenger()]})
    assert r.status_code == 401


def test_total_price_is_discounted_and_frozen(client):
    flight_id = seed_flight(price="200.00")
    offer_id = seed_offer("25", max_discount=40)
    r = book(client, flight_id, n=2)
    assert r.status_code == 200, r.text
    assert r.json()["total_price"] == 320.0
    assert r.json()["pricing"]["applied_offer"]["id"] == offer_id

    # changing offers later never re-prices an existing booking
    admin = auth_headers("admin@example.com", roles=("admin",))
    assert client.delete(f"/content/admin/offers/{offer_id}", headers=admin).status_code == 200
    mine = client.get("/bookings/my", headers=auth_headers()).json()
    assert mine["items"][0]["total_price"] == 320.0


def test_flight_list_carries_pricing(client):
    cheap = seed_flight(price="50.00", origin="ALA", destination="NQZ")
    pricey = seed_flight(price="300.00", origin="ALA", destination="DXB")
    seed_offer("10", min_price=100)

    r = client.get("/flights/", params={"origin": "ala", "sort_by": "price"})
    assert r.status_code == 200
    items = {f["id"]: f for f in r.json()["items"]}
    assert items[cheap]["pricing"]["applied_offer"] is None
    assert items[cheap]["pricing"]["discounted_price"] == 50.0
    assert items[pricey]["pricing"]["discounted_price"] == 270.0
    assert items[pricey]["pricing"]["discount_percentage"] == 10.0


def test_booking_schedules_reminders(client):
    flight_id = seed_flight(departs_in=timedelta(days=3))
    r = book(client, flight_id)
    booking_id = r.json()["id"]
    assert reminder_keys() == [f"flight-reminder-{booking_id}-24h", f"flight-reminder-{booking_id}-2h"]


def test_refundable_cancel(client):
    flight_id = seed_flight(seats=5, departs_in=timedelta(days=3))
    booking_id = book(client, flight_id, n=2).json()["id"]

    terms = client.get(f"/bookings/{booking_id}/cancellation", headers=auth_headers()).json()
    assert terms["refund_eligible"] is True
    assert terms["cancellable"] is True
    assert "full refund" in terms["prompt"]

    r = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers())
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "cancelled"
    assert data["payment_status"] == "refunded"
    assert data["refund_eligible"] is True
    assert data["message"] == "Booking cancelled successfully"

    assert client.get(f"/flights/{flight_id}").json()["seats_available"] == 5
    assert reminder_keys() == []

    again = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers())
    assert again.status_code == 409


def test_late_cancel_is_non_refundable(client):
    flight_id = seed_flight(departs_in=timedelta(hours=10))
    booking_id = book(client, flight_id).json()["id"]
    # only the 2h reminder is still ahead
    assert reminder_keys() == [f"flight-reminder-{booking_id}-2h"]

    terms = client.get(f"/bookings/{booking_id}/cancellation", headers=auth_headers()).json()
    assert terms["refund_eligible"] is False
    assert "You will NOT receive a refund" in terms["prompt"]

    r = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers())
    assert r.status_code == 200, r.text
    assert r.json()["payment_status"] == "paid"
    assert r.json()["message"] == "Booking cancelled successfully (non-refundable)"
    assert reminder_keys() == []


def test_cannot_cancel_someone_elses_booking(client):
    flight_id = seed_flight()
    booking_id = book(client, flight_id).json()["id"]
    r = client.post(f"/bookings/{booking_id}/cancel", headers=auth_headers("intruder@example.com"))
    assert r.status_code == 403
    assert client.post("/bookings/99999/cancel", headers=auth_headers()).status_code == 404


def test_dashboard_schedules_and_tracks_searched_booking(client):
    flight_id = seed_flight(departs_in=timedelta(days=3))
    booking = book(client, flight_id).json()
    with SessionLocal() as db:
        db.query(KeyValueEntry).delete()
        db.commit()

    r = client.get("/dashboard/", headers=auth_headers())
    assert r.status_code == 200
    data = r.json()
    assert data["notifications_enabled"] is True
    assert data["reminders_scheduled"] == 2
    assert data["searched_booking"] is None
    assert len(reminder_keys()) == 2

    found = client.get(f"/bookings/confirmation/{booking['confirmation_id'].lower()}", headers=auth_headers())
    assert found.status_code == 200
    assert client.get("/dashboard/", headers=auth_headers()).json()["searched_booking"]["id"] == booking["id"]

    client.post(f"/bookings/{booking['id']}/cancel", headers=auth_headers())
    data = client.get("/dashboard/", headers=auth_headers()).json()
    assert data["searched_booking"] is None
    assert data["bookings"][0]["status"] == "cancelled"
    assert data["reminders_scheduled"] == 0


def test_confirmation_lookup_is_owner_only(client):
    flight_id = seed_flight()
    booking = book(client, flight_id).json()
    r = client.get(f"/bookings/confirmation/{booking['confirmation_id']}", headers=auth_headers("other@example.com"))
    assert r.status_code == 404


def test_offer_admin_endpoints(client):
    body = {
        "title": "Summer",
        "discount": 15,
        "valid_from": "2026-06-01T00:00:00Z",
        "valid_to": "2026-08-31T23:59:59Z",
        "applicable_routes": [{"origin": "ALA", "destination": "NQZ"}],
        "max_discount": 30,
    }
    assert client.post("/content/admin/offers", json=body, headers=auth_headers()).status_code == 403

    admin = auth_headers("admin@example.com", roles=("admin",))
    bad = dict(body, discount=120)
    assert client.post("/content/admin/offers", json=bad, headers=admin).status_code == 422
    backwards = dict(body, valid_from="2026-09-01T00:00:00Z")
    assert client.post("/content/admin/offers", json=backwards, headers=admin).status_code == 422

    r = client.post("/content/admin/offers", json=body, headers=admin)
    assert r.status_code == 201, r.text
    offer_id = r.json()["id"]

    public = client.get("/content/offers").json()
    assert [o["id"] for o in public] == [offer_id]
    assert public[0]["applicable_routes"] == [{"origin": "ALA", "destination": "NQZ"}]

    r = client.put(f"/content/admin/offers/{offer_id}", json=dict(body, is_active=False), headers=admin)
    assert r.status_code == 200
    assert client.get("/content/offers").json() == []
    assert client.get("/content/admin/offers", headers=admin).json()[0]["is_active"] is False


def test_overdue_reminder_is_delivered_on_startup():
    store = SqlKeyValueStore(SessionLocal)
    store.set("flight-reminder-7-2h", (
        '{"booking_id": "7", "user_email": "user1@example.com", "flight_number": "DA101",'
        ' "departure": "2026-01-10T09:30:00Z", "origin": "ALA", "destination": "NQZ",'
        ' "hours_before_flight": 2, "scheduled_for": "2026-01-10T07:30:00Z"}'
    ))
    app.state.dashboards = DashboardRegistry()
    with TestClient(app) as client:
        assert store.get("flight-reminder-7-2h") is None
        notes = client.get("/notifications/", headers=auth_headers()).json()
        assert len(notes) == 1
        assert notes[0]["title"] == "Flight Reminder: DA101"
        assert notes[0]["tag"] == "flight-DA101"
        assert notes[0]["message"] == "Your flight from ALA to NQZ departs in 2 hours at 09:30 UTC"
        assert client.get("/notifications/unread-count", headers=auth_headers()).json() == {"unread": 1}


def test_health(client):
    assert client.get("/health/").json() == {"status": "ok"}


def test_total_price_is_rounded_seat_price_times_passengers(client):
    flight_id = seed_flight(seats=5, price="10.05")
    seed_offer("10")
    r = book(client, flight_id, n=3)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["pricing"]["discounted_price"] == 9.05
    assert data["total_price"] == 27.15
    with SessionLocal() as db:
        assert str(db.get(Booking, data["id"]).total_price) == "27.15"


@pytest.mark.parametrize("model, column", [(Flight, Flight.status), (Booking, Booking.status)])
def test_unknown_status_is_rejected_by_the_database(client, model, column):
    flight_id = seed_flight()
    booking_id = book(client, flight_id).json()["id"]
    row_id = flight_id if model is Flight else booking_id
    with SessionLocal() as db:
        with pytest.raises(IntegrityError):
            db.query(model).filter(model.id == row_id).update({column: "teleported"})
            db.commit()
        db.rollback()


def add_notification(email="user1@example.com", title="Flight Reminder: DA101"):
    with SessionLocal() as db:
        n = Notification(user_email=email, type="reminder", tag="flight-DA101", title=title, message="in 2 hours")
        db.add(n)
        db.commit()
        return n.id


def test_mark_read_pushes_to_open_sockets(client, monkeypatch):
    pushed = []

    async def record(email, payload):
        pushed.append((email, payload))

    monkeypatch.setattr(notifier_module.manager, "send_to_user", record)
    first = add_notification()
    add_notification(title="Flight Reminder: DA202")
    assert client.get("/notifications/unread-count", headers=auth_headers()).json() == {"unread": 2}

    r = client.post(f"/notifications/{first}/read", headers=auth_headers())
    assert r.status_code == 200
    assert pushed == [("user1@example.com", {"type": "notification_read", "data": {"id": first}})]
    assert client.get("/notifications/unread-count", headers=auth_headers()).json() == {"unread": 1}

    r = client.post("/notifications/mark-all-read", headers=auth_headers())
    assert r.status_code == 200
    assert pushed[-1] == ("user1@example.com", {"type": "notification_mark_all", "data": {}})
    assert client.get("/notifications/unread-count", headers=auth_headers()).json() == {"unread": 0}


def test_mark_read_of_someone_elses_notification_is_404(client):
    other = add_notification(email="user2@example.com")
    assert client.post(f"/notifications/{other}/read", headers=auth_headers()).status_code == 404
