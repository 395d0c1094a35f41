from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from skybook.api.deps import get_current_identity, get_dashboard_registry, get_reminder_scheduler
from skybook.api.serializers import active_offers, booking_out
from skybook.db.session import get_db
from skybook.models.booking import Booking
from skybook.services.dashboard import DashboardRegistry
from skybook.services.reminder_scheduler import ReminderScheduler

router = APIRouter()

@router.get("/")
def user_dashboard(
    db: Session = Depends(get_db),
    identity=Depends(get_current_identity),
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
    dashboards: DashboardRegistry = Depends(get_dashboard_registry),
):
    """Bookings with today's deal on each flight, the searched booking, and reminder status.

    Every fetched booking list is handed to the reminder scheduler when the
    notification channel is available.
    """
    email, _roles = identity
    state = dashboards.for_user(email)
    if state.notifications_enabled is None:
        state.notifications_enabled = scheduler.request_permission()

    bookings = db.query(Booking).filter(Booking.user_email == email).order_by(Booking.booked_at.desc()).all()
    reminders_scheduled = 0
    if state.notifications_enabled:
        reminders_scheduled = scheduler.setup_booking_reminders(bookings)

    offers = active_offers(db)
    searched = None
    if state.searched_booking_id is not None:
        b = db.get(Booking, state.searched_booking_id)
        if b and b.user_email == email:
            searched = booking_out(b, offers)
        else:
            state.searched_booking_id = None
    return {
        "bookings": [booking_out(b, offers) for b in bookings],
        "searched_booking": searched,
        "notifications_enabled": state.notifications_enabled,
        "reminders_scheduled": reminders_scheduled,
    }
