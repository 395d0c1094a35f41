"""Booking cancellation and refund eligibility.

A cancellation at least `cutoff_hours` before departure is refunded; a later
one (including after departure) still goes through but is not. Local state is
only touched after the booking service confirms the cancellation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, Set

from starlette.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skybook.core.clock import as_utc, utcnow
from skybook.core.errors import CancellationInProgressError, InvalidStateError, RemoteFailureError
from skybook.models.booking import Booking, BOOKING_CANCELLED, BOOKING_CONFIRMED
from skybook.models.flight import Flight
from skybook.services.dashboard import DashboardState
from skybook.services.reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF_HOURS = 24
GENERIC_CANCEL_ERROR = "Failed to cancel booking"


@dataclass(frozen=True)
class CancelResult:
    success: bool
    error: Optional[str] = None


class BookingGateway(Protocol):
    async def cancel(self, booking_id: Any, *, refund: bool) -> CancelResult: ...


@dataclass(frozen=True)
class CancellationAssessment:
    hours_until_departure: float
    refund_eligible: bool
    prompt: str


@dataclass(frozen=True)
class CancellationOutcome:
    refund_eligible: bool
    booking: Any
    message: str


class CancellationPolicy:
    def __init__(
        self,
        scheduler: ReminderScheduler,
        cutoff_hours: int = DEFAULT_CUTOFF_HOURS,
        generic_error: str = GENERIC_CANCEL_ERROR,
    ) -> None:
        self._scheduler = scheduler
        self._cutoff_hours = cutoff_hours
        self._generic_error = generic_error
        self._in_flight: Set[str] = set()

    def hours_until_departure(self, booking: Any, now: Optional[datetime] = None) -> float:
        now = as_utc(now) if now is not None else utcnow()
        return (as_utc(booking.flight.departure) - now).total_seconds() / 3600

    def assess(self, booking: Any, now: Optional[datetime] = None) -> CancellationAssessment:
        hours = self.hours_until_departure(booking, now)
        eligible = hours >= self._cutoff_hours
        if eligible:
            prompt = "Are you sure you want to cancel this booking? You will receive a full refund."
        else:
            prompt = (
                f"This flight departs in less than {self._cutoff_hours} hours. "
                "You will NOT receive a refund. Are you sure you want to cancel?"
            )
        return CancellationAssessment(hours_until_departure=hours, refund_eligible=eligible, prompt=prompt)

    def is_in_progress(self, booking_id: Any) -> bool:
        return str(booking_id) in self._in_flight

    async def cancel(
        self,
        booking: Any,
        gateway: BookingGateway,
        now: Optional[datetime] = None,
        dashboard: Optional[DashboardState] = None,
    ) -> CancellationOutcome:
        if booking.status != BOOKING_CONFIRMED:
            raise InvalidStateError(f"Booking {booking.confirmation_id} is {booking.status} and cannot be cancelled")
        # read before the gateway commits: an expired ORM row would reload on access
        booking_id = booking.id
        guard = str(booking_id)
        if guard in self._in_flight:
            raise CancellationInProgressError()

        assessment = self.assess(booking, now)
        self._in_flight.add(guard)
        try:
            try:
                result = await gateway.cancel(booking_id, refund=assessment.refund_eligible)
            except Exception as exc:
                logger.warning("cancel call for booking %s raised: %s", booking_id, exc)
                raise RemoteFailureError(self._generic_error) from exc
            if not result.success:
                logger.info("cancel rejected for booking %s: %s", booking_id, result.error)
                raise RemoteFailureError(result.error or self._generic_error)

            booking.status = BOOKING_CANCELLED
            if assessment.refund_eligible:
                booking.payment_status = "refunded"
            self._scheduler.clear_for_booking(booking_id)
            if dashboard is not None and dashboard.searched_booking_id == booking_id:
                dashboard.searched_booking_id = None
        finally:
            self._in_flight.discard(guard)

        logger.info("booking %s cancelled (refund=%s)", booking_id, assessment.refund_eligible)
        message = "Booking cancelled successfully"
        if not assessment.refund_eligible:
            message += " (non-refundable)"
        return CancellationOutcome(refund_eligible=assessment.refund_eligible, booking=booking, message=message)


class SqlBookingGateway:
    """Commits a cancellation in the database and returns the seats to the flight.

    The row lock can wait on another transaction, so the work runs in the
    threadpool and the event loop keeps serving timers and sockets meanwhile.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    async def cancel(self, booking_id: Any, *, refund: bool) -> CancelResult:
        return await run_in_threadpool(self._cancel_sync, booking_id, refund)

    def _cancel_sync(self, booking_id: Any, refund: bool) -> CancelResult:
        db = self._db
        try:
            b = db.query(Booking).filter(Booking.id == booking_id).with_for_update(of=Booking).first()
            if not b:
                return CancelResult(False, "Booking not found")
            if b.status != BOOKING_CONFIRMED:
                return CancelResult(False, f"Booking is already {b.status}")
            seats = max(len(b.passengers), 1)
            db.query(Flight).filter(Flight.id == b.flight_id).update(
                {Flight.seats_available: Flight.seats_available + seats}, synchronize_session=False
            )
            b.status = BOOKING_CANCELLED
            b.cancelled_at = utcnow().replace(tzinfo=None)
            if refund:
                b.payment_status = "refunded"
            db.commit()
            # loaded here, not lazily on the event loop
            db.refresh(b)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("database error while cancelling booking %s", booking_id)
            return CancelResult(False, GENERIC_CANCEL_ERROR)
        return CancelResult(True)
