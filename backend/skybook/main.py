from fastapi import FastAPI
import asyncio
import logging
import os
from pathlib import Path
from fastapi.middleware.cors import CORSMiddleware

from skybook.api.router import api_router
from skybook.core.config import settings
from skybook.db.init_db import seed_demo_data
from skybook.db.session import SessionLocal
from skybook.services.cancellation import CancellationPolicy
from skybook.services.dashboard import DashboardRegistry
from skybook.services.kv_store import SqlKeyValueStore
from skybook.services.notifier import NullNotifier, WebSocketNotifier, manager as ws_manager
from skybook.services.reminder_scheduler import LoopTimer, ReminderScheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

def _run_migrations_if_needed():
    """Apply Alembic migrations automatically in production if enabled.

    Controlled by env var AUTO_APPLY_MIGRATIONS (default: '1'). Safe to run repeatedly.
    """
    if settings.env.lower() != "prod":
        return
    if os.getenv("AUTO_APPLY_MIGRATIONS", "1") != "1":
        return
    from alembic import command
    from alembic.config import Config
    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found at %s, skipping auto-migrations", alembic_ini)
        return
    cfg = Config(str(alembic_ini))
    # Ensure script_location resolves correctly when launched from arbitrary CWD
    script_location = Path(__file__).resolve().parents[1] / "alembic"
    if script_location.exists():
        cfg.set_main_option("script_location", str(script_location))
    logger.info("applying Alembic migrations -> head")
    try:
        command.upgrade(cfg, "head")
    except Exception:
        # Keep serving; migrations can be retried manually.
        logger.exception("migration failed")
        return
    logger.info("migrations applied")

app = FastAPI(title=settings.app_name, version="0.1.0")

# Configurable CORS origins (CORS_ORIGINS env). If empty -> dev defaults.
origins = settings.cors_origins
logger.info("resolved CORS origins: %s", origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.state.dashboards = DashboardRegistry()

def build_reminder_scheduler(loop: asyncio.AbstractEventLoop) -> ReminderScheduler:
    if settings.notifications_enabled:
        notifier = WebSocketNotifier(SessionLocal, ws_manager, enabled=True)
    else:
        notifier = NullNotifier()
    return ReminderScheduler(
        store=SqlKeyValueStore(SessionLocal),
        notifier=notifier,
        timer=LoopTimer(loop),
        lead_hours=settings.reminder_lead_hours,
        key_prefix=settings.reminder_key_prefix,
    )

@app.on_event("startup")
async def startup():
    # Seed idempotent data only after migrations are applied.
    _run_migrations_if_needed()
    if settings.env.lower() in {"dev", "development"}:
        seed_demo_data()
    scheduler = build_reminder_scheduler(asyncio.get_running_loop())
    app.state.reminder_scheduler = scheduler
    app.state.cancellation_policy = CancellationPolicy(
        scheduler,
        cutoff_hours=settings.refund_cutoff_hours,
        generic_error=settings.generic_cancel_error,
    )
    # Reminders that came due while the service was down are shown now
    scheduler.restore_scheduled_reminders()

@app.on_event("shutdown")
def shutdown():
    scheduler = getattr(app.state, "reminder_scheduler", None)
    if scheduler is not None:
        scheduler.shutdown()
