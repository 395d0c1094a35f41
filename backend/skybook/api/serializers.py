from datetime import datetime
from typing import Sequence
from sqlalchemy import asc
from sqlalchemy.orm import Session

from skybook.models.booking import Booking
from skybook.models.flight import Flight
from skybook.models.offer import Offer
from skybook.services.discount_engine import evaluate


def active_offers(db: Session) -> list[Offer]:
    """Active offers in display order; validity windows are checked by the engine."""
    return db.query(Offer).filter(Offer.is_active == True).order_by(asc(Offer.position), asc(Offer.id)).all()  # noqa: E712


def flight_out(f: Flight, offers: Sequence[Offer] | None = None, now: datetime | None = None) -> dict:
    data = {
        "id": f.id,
        "airline_id": f.airline_id,
        "airline": f.airline.name if f.airline else None,
        "airline_code": f.airline.code if f.airline else None,
        "flight_number": f.flight_number,
        "origin": f.origin,
        "destination": f.destination,
        "departure": f.departure.isoformat(),
        "arrival": f.arrival.isoformat(),
        "duration_minutes": f.duration_minutes,
        "price": float(f.price),
        "seats_total": f.seats_total,
        "seats_available": f.seats_available,
        "status": f.status,
        "stops": f.stops,
    }
    if offers is not None:
        data["pricing"] = evaluate(f, offers, now=now).as_dict()
    return data


def booking_out(b: Booking, offers: Sequence[Offer] | None = None) -> dict:
    return {
        "id": b.id,
        "confirmation_id": b.confirmation_id,
        "status": b.status,
        "payment_status": b.payment_status,
        "email": b.user_email,
        "flight_id": b.flight_id,
        "total_price": float(b.total_price),
        "booked_at": b.booked_at.isoformat() if b.booked_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "flight": flight_out(b.flight, offers) if b.flight else None,
        "passengers": [
            {
                "id": p.id,
                "first_name": p.first_name,
                "last_name": p.last_name,
                "email": p.email,
                "date_of_birth": p.date_of_birth.isoformat(),
            } for p in b.passengers
        ],
    }
