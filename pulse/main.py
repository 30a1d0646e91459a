import logging
import os

from fastapi import FastAPI

from pulse.api.engagement import router as engagement_router
from pulse.api.smart_log import router as smart_log_router
from pulse.db.session import create_tables
from pulse.services.engine import (
    INSIGHT_INTERVAL_SECONDS,
    INSIGHT_WARMUP_SECONDS,
    REMINDER_INTERVAL_SECONDS,
    REMINDER_WARMUP_SECONDS,
    run_insight_cycle,
    run_reminder_cycle,
)
from pulse.services.scheduler import IntervalScheduler

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Coach Pulse")


def _schedulers_enabled() -> bool:
    return os.getenv("PULSE_SCHEDULERS_ENABLED", "1").strip().lower() not in {"0", "false", "no"}


@app.on_event("startup")
def on_startup() -> None:
    create_tables()
    app.state.schedulers = []
    if not _schedulers_enabled():
        logger.info("schedulers_disabled")
        return
    app.state.schedulers = [
        IntervalScheduler("insights", run_insight_cycle, INSIGHT_INTERVAL_SECONDS, INSIGHT_WARMUP_SECONDS),
        IntervalScheduler("reminders", run_reminder_cycle, REMINDER_INTERVAL_SECONDS, REMINDER_WARMUP_SECONDS),
    ]
    for scheduler in app.state.schedulers:
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    for scheduler in getattr(app.state, "schedulers", []):
        scheduler.stop()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(smart_log_router)
app.include_router(engagement_router)
