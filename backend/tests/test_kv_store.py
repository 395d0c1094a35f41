import asyncio

from skybook.db.session import SessionLocal
from skybook.models.notification import Notification
from skybook.services.kv_store import SqlKeyValueStore
from skybook.services.notifier import NotificationConnectionManager, WebSocketNotifier
from skybook.services.reminder_scheduler import LoopTimer


def test_sql_store_roundtrip_and_overwrite():
    store = SqlKeyValueStore(SessionLocal)
    assert store.get("missing") is None

    store.set("flight-reminder-1-24h", '{"a": 1}')
    store.set("flight-reminder-1-24h", '{"a": 2}')
    assert store.get("flight-reminder-1-24h") == '{"a": 2}'

    store.delete("flight-reminder-1-24h")
    store.delete("flight-reminder-1-24h")
    assert store.get("flight-reminder-1-24h") is None


def test_sql_store_prefix_listing_is_literal():
    store = SqlKeyValueStore(SessionLocal)
    for key in ["flight-reminder-1-24h", "flight-reminder-12-2h", "flight-reminder-1_x", "other"]:
        store.set(key, "{}")

    assert store.list_keys("flight-reminder-1-") == ["flight-reminder-1-24h"]
    # '_' must not act as a wildcard
    assert store.list_keys("flight-reminder-1_") == ["flight-reminder-1_x"]
    assert store.list_keys() == sorted(["flight-reminder-1-24h", "flight-reminder-12-2h", "flight-reminder-1_x", "other"])


def test_loop_timer_fires_and_cancels():
    fired = []

    async def scenario():
        timer = LoopTimer(asyncio.get_running_loop())
        timer(0.01, lambda: fired.append("a"))
        cancelled = timer(0.01, lambda: fired.append("b"))
        cancelled.cancel()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert fired == ["a"]


def test_loop_timer_arms_from_worker_thread():
    fired = []

    async def scenario():
        loop = asyncio.get_running_loop()
        timer = LoopTimer(loop)
        await loop.run_in_executor(None, timer, 0.01, lambda: fired.append("x"))
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert fired == ["x"]


def test_websocket_notifier_collapses_unread_by_tag():
    notifier = WebSocketNotifier(SessionLocal, NotificationConnectionManager())
    first = notifier.show("Flight Reminder: DA101", "in 24 hours", tag="flight-DA101", recipient="User1@Example.com")
    second = notifier.show("Flight Reminder: DA101", "in 2 hours", tag="flight-DA101", recipient="user1@example.com")
    other = notifier.show("Flight Reminder: DA202", "in 2 hours", tag="flight-DA202", recipient="user1@example.com")

    assert first == second
    assert other != first
    with SessionLocal() as db:
        rows = db.query(Notification).order_by(Notification.id).all()
        assert [(n.tag, n.message) for n in rows] == [("flight-DA101", "in 2 hours"), ("flight-DA202", "in 2 hours")]
        assert all(n.user_email == "user1@example.com" for n in rows)

        rows[0].read = True
        db.commit()

    third = notifier.show("Flight Reminder: DA101", "again", tag="flight-DA101", recipient="user1@example.com")
    assert third not in (first, other)


def test_websocket_notifier_disabled_or_without_recipient():
    disabled = WebSocketNotifier(SessionLocal, NotificationConnectionManager(), enabled=False)
    assert disabled.request_permission() is False
    assert disabled.show("t", "b", recipient="user1@example.com") is None

    enabled = WebSocketNotifier(SessionLocal, NotificationConnectionManager())
    assert enabled.show("t", "b") is None
    with SessionLocal() as db:
        assert db.query(Notification).count() == 0


def test_websocket_notifier_pushes_on_running_loop():
    from skybook.services import notifier as notifier_module

    sent = []

    class RecordingConnections:
        async def send_to_user(self, email, payload):
            sent.append((email, payload))

    notifier = WebSocketNotifier(SessionLocal, RecordingConnections())

    async def scenario():
        notification_id = notifier.show("Flight Reminder: DA101", "in 2 hours", tag="flight-DA101", recipient="user1@example.com")
        assert len(notifier_module._pending_pushes) == 1
        await asyncio.sleep(0.01)
        return notification_id

    notification_id = asyncio.run(scenario())
    assert len(sent) == 1
    email, payload = sent[0]
    assert email == "user1@example.com"
    assert payload["type"] == "notification"
    assert payload["data"]["id"] == notification_id
    assert notifier_module._pending_pushes == set()
