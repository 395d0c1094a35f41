import anyio.from_thread
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel
from datetime import datetime
import jwt

from skybook.api.deps import get_current_identity
from skybook.core.security import decode_access_token, identity_from_payload
from skybook.db.session import get_db
from skybook.models.notification import Notification
from skybook.services.notifier import manager

logger = logging.getLogger(__name__)

router = APIRouter()

class NotificationOut(BaseModel):
    id: int
    type: str
    tag: str | None = None
    title: str
    message: str
    created_at: datetime
    read: bool

    class Config:
        from_attributes = True

def _push(email: str, payload: dict):
    """Send from a sync route: the send runs on the event loop, this worker thread waits for it."""
    try:
        anyio.from_thread.run(manager.send_to_user, email, payload)
    except RuntimeError:
        # not inside a threadpool worker; clients pick the change up on next fetch
        logger.debug("websocket push for %s skipped outside the threadpool", email)

@router.get("/", response_model=list[NotificationOut])
def list_notifications(db: Session = Depends(get_db), identity=Depends(get_current_identity)):
    email, _roles = identity
    return db.query(Notification).filter(Notification.user_email == email).order_by(Notification.created_at.desc()).limit(200).all()

@router.get("/unread-count", response_model=dict)
def unread_count(db: Session = Depends(get_db), identity=Depends(get_current_identity)):
    email, _roles = identity
    count = db.query(Notification).filter(Notification.user_email == email, Notification.read == False).count()  # noqa: E712
    return {"unread": count}

@router.post("/{notif_id}/read")
def mark_notification(notif_id: int, db: Session = Depends(get_db), identity=Depends(get_current_identity)):
    email, _roles = identity
    n = db.query(Notification).filter(Notification.id == notif_id, Notification.user_email == email).first()
    if not n:
        raise HTTPException(status_code=404, detail="Not found")
    n.read = True
    db.commit()
    _push(email, {"type": "notification_read", "data": {"id": n.id}})
    return {"status": "ok"}

@router.post("/mark-all-read")
def mark_all_read(db: Session = Depends(get_db), identity=Depends(get_current_identity)):
    email, _roles = identity
    db.query(Notification).filter(Notification.user_email == email, Notification.read == False).update({Notification.read: True})  # noqa: E712
    db.commit()
    _push(email, {"type": "notification_mark_all", "data": {}})
    return {"status": "ok"}

@router.websocket("/ws/notifications")
async def websocket_notifications(websocket: WebSocket, token: str = Query(...)):
    """WebSocket for instant notifications (reminders, booking updates).

    The client passes its access token as ?token=...; messages are pushed as
      {"type": "notification", "data": { NotificationOut }}
    """
    try:
        email, _roles = identity_from_payload(decode_access_token(token))
    except (jwt.PyJWTError, ValueError):
        await websocket.close(code=4401)
        return

    await manager.connect(email, websocket)
    try:
        while True:
            # Incoming messages are only keep-alive pings
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.disconnect(email, websocket)
    except Exception:
        logger.warning("websocket for %s closed with error", email, exc_info=True)
        await manager.disconnect(email, websocket)
