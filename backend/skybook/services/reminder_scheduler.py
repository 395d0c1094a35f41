"""Flight reminders: durable records plus one in-memory timer per record.

Every armed timer has a record in the key-value store under the same key, so a
restart only loses the timers; `restore_scheduled_reminders` re-arms them and
fires the ones that came due while the process was down. Fresh scheduling
never fires retroactively: a reminder whose time has already passed is dropped.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from skybook.core.clock import as_utc, utcnow
from skybook.core.errors import MalformedRecordError
from skybook.models.booking import BOOKING_CONFIRMED
from skybook.schemas.reminder import ReminderRecord
from skybook.services.kv_store import KeyValueStore
from skybook.services.notifier import Notifier

logger = logging.getLogger(__name__)

STANDARD_HOURS = (24, 2)
DEFAULT_KEY_PREFIX = "flight-reminder-"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Timer = Callable[[float, Callable[[], None]], TimerHandle]


class _LoopHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    def _arm(self, delay: float, callback: Callable[[], None]) -> None:
        if not self._cancelled:
            self._handle = self._loop.call_later(delay, callback)

    def _cancel_now(self) -> None:
        if self._handle is not None:
            self._handle.cancel()

    def cancel(self) -> None:
        self._cancelled = True
        if _on_loop(self._loop):
            self._cancel_now()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._cancel_now)


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class LoopTimer:
    """One-shot timers on an asyncio loop, armable from worker threads.

    Sync FastAPI routes run in a thread pool, so arming and cancelling are
    marshalled onto the loop with call_soon_threadsafe.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _LoopHandle(self._loop)
        if _on_loop(self._loop):
            handle._arm(delay, callback)
        else:
            self._loop.call_soon_threadsafe(handle._arm, delay, callback)
        return handle


def _code(airport: Any) -> str:
    return airport if isinstance(airport, str) else getattr(airport, "code", str(airport))


class ReminderScheduler:
    def __init__(
        self,
        store: KeyValueStore,
        notifier: Notifier,
        timer: Timer,
        clock: Callable[[], datetime] = utcnow,
        lead_hours: Sequence[int] = STANDARD_HOURS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._timer = timer
        self._clock = clock
        self._lead_hours = tuple(lead_hours)
        self._key_prefix = key_prefix
        self._timers: Dict[str, TimerHandle] = {}
        self._lock = threading.Lock()

    @property
    def lead_hours(self) -> tuple:
        return self._lead_hours

    def reminder_key(self, booking_id: Any, hours_before_flight: int) -> str:
        return f"{self._key_prefix}{booking_id}-{hours_before_flight}h"

    def _booking_prefix(self, booking_id: Any) -> str:
        return f"{self._key_prefix}{booking_id}-"

    def pending_keys(self) -> List[str]:
        """Keys with a live timer in this process."""
        with self._lock:
            return sorted(self._timers)

    def request_permission(self) -> bool:
        try:
            return bool(self._notifier.request_permission())
        except Exception:
            logger.warning("notification permission check failed, reminders disabled", exc_info=True)
            return False

    def schedule_for_booking(self, booking: Any, hours_before_flight: int) -> Optional[ReminderRecord]:
        flight = booking.flight
        departure = as_utc(flight.departure)
        reminder_at = departure - timedelta(hours=hours_before_flight)
        now = self._clock()
        if reminder_at <= now:
            logger.debug("reminder time already passed for flight %s (%sh before)", flight.flight_number, hours_before_flight)
            return None

        record = ReminderRecord(
            booking_id=str(booking.id),
            user_email=getattr(booking, "user_email", None),
            flight_number=flight.flight_number,
            departure=departure,
            origin=_code(flight.origin),
            destination=_code(flight.destination),
            hours_before_flight=hours_before_flight,
            scheduled_for=reminder_at,
        )
        key = self.reminder_key(booking.id, hours_before_flight)
        self._store.set(key, record.model_dump_json())
        self._arm(key, (reminder_at - now).total_seconds())
        logger.info("reminder %s scheduled for %s", key, reminder_at.isoformat())
        return record

    def setup_booking_reminders(self, bookings: Iterable[Any]) -> int:
        scheduled = 0
        for booking in bookings:
            if getattr(booking, "status", None) != BOOKING_CONFIRMED:
                continue
            for hours in self._lead_hours:
                if self.schedule_for_booking(booking, hours) is not None:
                    scheduled += 1
        return scheduled

    def restore_scheduled_reminders(self) -> int:
        """Re-arm stored reminders; fire the overdue ones right away.

        Returns how many reminders were fired immediately.
        """
        now = self._clock()
        fired = rearmed = 0
        for key in self._store.list_keys(self._key_prefix):
            try:
                record = self._load(key)
            except MalformedRecordError as exc:
                logger.error("deleting malformed reminder %s: %s", key, exc.message)
                self._store.delete(key)
                continue
            if record is None:
                continue
            if record.scheduled_for <= now:
                self._deliver(record)
                self._store.delete(key)
                fired += 1
            else:
                self._arm(key, (record.scheduled_for - now).total_seconds())
                rearmed += 1
        logger.info("restored reminders: %d fired immediately, %d re-armed", fired, rearmed)
        return fired

    def clear_for_booking(self, booking_id: Any) -> int:
        prefix = self._booking_prefix(booking_id)
        keys = self._store.list_keys(prefix)
        for key in keys:
            self._store.delete(key)
        with self._lock:
            handles = [self._timers.pop(k) for k in list(self._timers) if k.startswith(prefix)]
        for handle in handles:
            handle.cancel()
        if keys:
            logger.info("cleared %d reminder(s) for booking %s", len(keys), booking_id)
        return len(keys)

    def shutdown(self) -> None:
        """Cancel live timers; stored records stay for the next restore."""
        with self._lock:
            handles = list(self._timers.values())
            self._timers.clear()
        for handle in handles:
            handle.cancel()

    def _arm(self, key: str, delay: float) -> None:
        handle = self._timer(max(delay, 0.0), partial(self._fire, key))
        with self._lock:
            previous = self._timers.get(key)
            self._timers[key] = handle
        if previous is not None:
            previous.cancel()

    def _fire(self, key: str) -> None:
        with self._lock:
            self._timers.pop(key, None)
        try:
            record = self._load(key)
        except MalformedRecordError as exc:
            logger.error("deleting malformed reminder %s: %s", key, exc.message)
            self._store.delete(key)
            return
        if record is None:
            # cleared (booking cancelled) after the timer was armed
            logger.debug("reminder %s no longer stored, not firing", key)
            return
        self._deliver(record)
        self._store.delete(key)

    def _load(self, key: str) -> Optional[ReminderRecord]:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return ReminderRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedRecordError(key, str(exc)) from exc

    def _deliver(self, record: ReminderRecord) -> None:
        title = f"Flight Reminder: {record.flight_number}"
        body = (
            f"Your flight from {record.origin} to {record.destination} departs in "
            f"{record.hours_before_flight} hours at {record.departure:%H:%M} UTC"
        )
        try:
            self._notifier.show(title, body, tag=f"flight-{record.flight_number}", recipient=record.user_email)
        except Exception:
            logger.exception("failed to deliver reminder for booking %s", record.booking_id)
        else:
            logger.info("reminder shown for booking %s (%sh before)", record.booking_id, record.hours_before_flight)
