from __future__ import annotations
from typing import Callable, Dict, Optional, Protocol, Set
from fastapi import WebSocket
from sqlalchemy.orm import Session
import asyncio
import json
import logging

from skybook.core.clock import utcnow
from skybook.models.notification import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Notification delivery capability used by the reminder scheduler."""

    def request_permission(self) -> bool: ...

    def show(self, title: str, body: str, tag: Optional[str] = None, recipient: Optional[str] = None) -> Optional[int]: ...


class NullNotifier:
    """No delivery channel: permission is never granted and nothing is shown."""

    def request_permission(self) -> bool:
        return False

    def show(self, title: str, body: str, tag: Optional[str] = None, recipient: Optional[str] = None) -> Optional[int]:
        return None


class NotificationConnectionManager:
    """Manager of WebSocket connections per user email.
    We keep a set of active WebSockets for each user.
    """
    def __init__(self) -> None:
        self._user_sockets: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, email: str, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._user_sockets.setdefault(email, set()).add(websocket)

    async def disconnect(self, email: str, websocket: WebSocket):
        async with self._lock:
            conns = self._user_sockets.get(email)
            if conns and websocket in conns:
                conns.remove(websocket)
                if not conns:
                    self._user_sockets.pop(email, None)

    async def send_to_user(self, email: str, payload: dict):
        # Every open tab/session of the user gets a copy
        message = json.dumps(payload, ensure_ascii=False)
        async with self._lock:
            conns = list(self._user_sockets.get(email, []))
        for ws in conns:
            try:
                await ws.send_text(message)
            except Exception as exc:
                logger.info("dropping websocket for %s after send failure: %s", email, exc)
                await self.disconnect(email, ws)


class WebSocketNotifier:
    """Stores reminders as Notification rows and pushes them over open WebSockets.

    A notification with a tag replaces the user's unread notification carrying the
    same tag, so several reminders for one flight do not stack up.
    """

    def __init__(self, session_factory: Callable[[], Session], connections: NotificationConnectionManager, enabled: bool = True) -> None:
        self._session_factory = session_factory
        self._connections = connections
        self._enabled = enabled

    def request_permission(self) -> bool:
        return self._enabled

    def show(self, title: str, body: str, tag: Optional[str] = None, recipient: Optional[str] = None) -> Optional[int]:
        if not self._enabled:
            return None
        if not recipient:
            logger.warning("notification %r has no recipient, skipped", title)
            return None
        email = recipient.lower()
        now = utcnow().replace(tzinfo=None)
        with self._session_factory() as db:
            n = None
            if tag:
                n = db.query(Notification).filter(
                    Notification.user_email == email,
                    Notification.tag == tag,
                    Notification.read == False,  # noqa: E712
                ).first()
            if n:
                n.title = title
                n.message = body
                n.created_at = now
            else:
                n = Notification(user_email=email, type="reminder", tag=tag, title=title, message=body, created_at=now)
                db.add(n)
            db.commit()
            db.refresh(n)
            payload = {"type": "notification", "data": {
                "id": n.id, "type": n.type, "tag": n.tag, "title": n.title,
                "message": n.message, "created_at": n.created_at.isoformat(), "read": n.read,
            }}
            notification_id = n.id
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop in this thread; the row is stored and will be listed on next fetch
            logger.debug("no event loop, websocket push for notification %s skipped", notification_id)
        else:
            _track(loop.create_task(self._connections.send_to_user(email, payload)))
        return notification_id


# in-flight pushes, held until done
_pending_pushes: Set[asyncio.Task] = set()


def _track(task: asyncio.Task) -> None:
    _pending_pushes.add(task)
    task.add_done_callback(_push_done)


def _push_done(task: asyncio.Task) -> None:
    _pending_pushes.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.warning("websocket push failed: %s", task.exception())


manager = NotificationConnectionManager()
