from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional
import threading


@dataclass
class DashboardState:
    """What a user's dashboard currently shows besides the booking list."""
    user_email: str
    searched_booking_id: Optional[int] = None
    notifications_enabled: Optional[bool] = None  # None until the first load


class DashboardRegistry:
    """One DashboardState per user email, kept for the life of the process."""

    def __init__(self) -> None:
        self._states: Dict[str, DashboardState] = {}
        self._lock = threading.Lock()

    def for_user(self, email: str) -> DashboardState:
        email = email.lower()
        with self._lock:
            state = self._states.get(email)
            if state is None:
                state = self._states[email] = DashboardState(user_email=email)
            return state
