from fastapi import APIRouter, Depends, Query, HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime

from skybook.api.serializers import active_offers, flight_out
from skybook.core.clock import utcnow
from skybook.db.session import get_db
from skybook.models.flight import Flight

router = APIRouter()

@router.get("/")
def list_flights(
    db: Session = Depends(get_db),
    origin: str | None = None,
    destination: str | None = None,
    airline_id: int | None = None,
    date: str | None = Query(None, description="Flight departure date YYYY-MM-DD"),
    passengers: int | None = Query(None, ge=1, description="Required seats available"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    sort_by: str = Query("departure", pattern="^(price|departure|stops)$"),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
):
    """Search flights; every item carries its price after the best applicable offer."""
    q = db.query(Flight).filter(Flight.status != "cancelled")
    if origin:
        q = q.filter(Flight.origin == origin.upper())
    if destination:
        q = q.filter(Flight.destination == destination.upper())
    if airline_id is not None:
        q = q.filter(Flight.airline_id == airline_id)
    if date:
        try:
            day = datetime.strptime(date, "%Y-%m-%d").date()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date format, expected YYYY-MM-DD")
        start_dt = datetime.combine(day, datetime.min.time())
        end_dt = start_dt.replace(hour=23, minute=59, second=59, microsecond=999999)
        q = q.filter(Flight.departure >= start_dt, Flight.departure <= end_dt)
    if passengers is not None:
        q = q.filter(Flight.seats_available >= passengers)

    total = q.count()
    if sort_by == "price":
        order_col = Flight.price
    elif sort_by == "stops":
        order_col = Flight.stops
    else:
        order_col = Flight.departure
    if sort_dir == "desc":
        order_col = order_col.desc()
    offset = (page - 1) * page_size
    items = q.order_by(order_col).offset(offset).limit(page_size).all()
    offers = active_offers(db)
    now = utcnow()
    return {
        "items": [flight_out(f, offers, now) for f in items],
        "total": total,
        "page": page,
        "page_size": page_size,
    }

@router.get("/{flight_id}")
def flight_detail(flight_id: int, db: Session = Depends(get_db)):
    f = db.get(Flight, flight_id)
    if not f:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return flight_out(f, active_offers(db))
