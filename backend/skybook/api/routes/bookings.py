import logging
import random
import string
import time

from fastapi import APIRouter, Depends, HTTPException, status, Query
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from sqlalchemy import text

from skybook.api.deps import get_current_identity, get_cancellation_policy, get_dashboard_registry, get_reminder_scheduler
from skybook.api.serializers import active_offers, booking_out
from skybook.core.clock import utcnow
from skybook.core.errors import CancellationInProgressError, InvalidStateError, RemoteFailureError
from skybook.db.session import get_db
from skybook.models.booking import Booking, Passenger, BOOKING_CONFIRMED
from skybook.models.flight import Flight
from skybook.models.notification import Notification
from skybook.schemas.booking import CreateBookingBody
from skybook.services.cancellation import CancellationPolicy, SqlBookingGateway
from skybook.services.dashboard import DashboardRegistry
from skybook.services.discount_engine import evaluate, quote_total
from skybook.services.reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory throttle store { (email, flight_id): last_ts }
_last_purchase: dict[tuple[str, int], float] = {}
_THROTTLE_SECONDS = 2.0

def _gen_confirmation_id() -> str:
    return "F" + "".join(random.choices(string.ascii_uppercase + string.digits, k=7))

def _owned_booking(db: Session, booking_id: int, email: str) -> Booking:
    b = db.get(Booking, booking_id)
    if not b:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if b.user_email.lower() != email.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return b

@router.post("")
@router.post("/")
def create_booking(
    payload: CreateBookingBody,
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
):
    """Book seats on a flight for the given passengers.

    The per-seat price is the flight price after the best applicable offer; the
    total is frozen on the booking. Payment is a demo step that always succeeds.
    """
    email, _roles = identity
    flight_id = payload.flight_id
    qty = len(payload.passengers)
    # Rate limit / double-click protection
    key = (email, flight_id)
    now_ts = time.time()
    last = _last_purchase.get(key)
    if last and (now_ts - last) < _THROTTLE_SECONDS:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many booking attempts, wait a moment")
    _last_purchase[key] = now_ts
    flight = db.get(Flight, flight_id)
    if not flight or flight.status == "cancelled":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Flight not found")

    # Atomic seat decrement using UPDATE ... WHERE ... RETURNING to avoid race conditions
    upd = db.execute(
        text(
            """
            UPDATE flights
            SET seats_available = seats_available - :qty
            WHERE id = :fid AND seats_available >= :qty
            RETURNING seats_available
            """
        ),
        {"qty": qty, "fid": flight_id},
    )
    if upd.fetchone() is None:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Not enough seats available")

    # Refresh flight to pick up the latest price after the raw UPDATE
    db.refresh(flight)
    offers = active_offers(db)
    now = utcnow()
    pricing = evaluate(flight, offers, now=now)
    booking = Booking(
        confirmation_id=_gen_confirmation_id(),
        user_email=email,
        flight_id=flight_id,
        total_price=quote_total(flight, offers, qty, now=now),
        status=BOOKING_CONFIRMED,
        payment_status="paid",
        booked_at=now.replace(tzinfo=None),
        passengers=[Passenger(**p.model_dump()) for p in payload.passengers],
    )
    db.add(booking)
    msg = f"Booking confirmed: {qty} seat(s) on flight {flight.flight_number} {flight.origin}->{flight.destination}"
    db.add(Notification(user_email=email, type="booking", title="Booking confirmed", message=msg, read=False))
    db.commit()
    db.refresh(booking)
    logger.info("booking %s created for %s (%d seat(s))", booking.confirmation_id, email, qty)

    if scheduler.request_permission():
        scheduler.setup_booking_reminders([booking])
    result = booking_out(booking)
    result["pricing"] = pricing.as_dict()
    return result

@router.get("/my")
def my_bookings(
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    confirmation_id: str | None = Query(None, description="Filter by confirmation id prefix or exact"),
    status_filter: str | None = Query(None, pattern="^(confirmed|cancelled|completed)$"),
):
    email, _roles = identity
    q = db.query(Booking).filter(Booking.user_email == email)
    if confirmation_id:
        # drop LIKE wildcards typed by the user
        cid = confirmation_id.strip().upper().replace('%', '').replace('_', '')
        q = q.filter(Booking.confirmation_id.like(f"{cid}%"))
    if status_filter:
        q = q.filter(Booking.status == status_filter)
    total = q.count()
    offset = (page - 1) * page_size
    items = q.order_by(Booking.booked_at.desc()).offset(offset).limit(page_size).all()
    return {
        "items": [booking_out(b) for b in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1)//page_size if total else 1,
    }

@router.get("/confirmation/{confirmation_id}")
def find_by_confirmation(
    confirmation_id: str,
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    dashboards: DashboardRegistry = Depends(get_dashboard_registry),
):
    """Look up one of the caller's bookings; it becomes the dashboard's searched booking."""
    email, _roles = identity
    state = dashboards.for_user(email)
    b = db.query(Booking).filter(Booking.confirmation_id == confirmation_id.strip().upper()).first()
    if not b or b.user_email.lower() != email:
        state.searched_booking_id = None
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    state.searched_booking_id = b.id
    return booking_out(b, active_offers(db))

@router.get("/{booking_id}/cancellation")
def cancellation_terms(
    booking_id: int,
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    policy: CancellationPolicy = Depends(get_cancellation_policy),
):
    """Refund eligibility and the confirmation text to show before cancelling."""
    email, _roles = identity
    b = _owned_booking(db, booking_id, email)
    assessment = policy.assess(b)
    return {
        "booking_id": b.id,
        "status": b.status,
        "cancellable": b.status == BOOKING_CONFIRMED and not policy.is_in_progress(b.id),
        "refund_eligible": assessment.refund_eligible,
        "hours_until_departure": round(assessment.hours_until_departure, 2),
        "prompt": assessment.prompt,
    }

@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    policy: CancellationPolicy = Depends(get_cancellation_policy),
    dashboards: DashboardRegistry = Depends(get_dashboard_registry),
):
    """Cancel a booking.

    Rules:
    - Only the owner of the booking can cancel.
    - Only confirmed bookings can be cancelled (409 otherwise).
    - 24h or more before departure: refunded. Later: cancelled without refund.
    - Pending reminders for the booking are dropped once the cancellation is stored.
    """
    email, _roles = identity
    b = await run_in_threadpool(_owned_booking, db, booking_id, email)
    try:
        outcome = await policy.cancel(b, SqlBookingGateway(db), dashboard=dashboards.for_user(email))
    except InvalidStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    except CancellationInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=exc.message)
    except RemoteFailureError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    return {
        "status": outcome.booking.status,
        "payment_status": outcome.booking.payment_status,
        "refund_eligible": outcome.refund_eligible,
        "message": outcome.message,
    }
