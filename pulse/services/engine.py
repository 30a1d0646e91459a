"""Entry points into the engagement pipeline.

The ``process_*``/``detect_*`` functions work on a caller-owned session (the
HTTP layer passes its request session). ``run_insight_cycle`` and
``run_reminder_cycle`` own their session and are what the interval
schedulers call.
"""

import logging
import os
from typing import Optional

from sqlalchemy.orm import Session

from pulse.db.models import Client
from pulse.db.repository import Repository
from pulse.db.session import SessionLocal
from pulse.services.insights import InsightCycleResult, InsightDetector, InsightResult
from pulse.services.llm import ClassifierClient, get_classifier_client
from pulse.services.push import PushSender, get_push_sender
from pulse.services.reminders import ReminderCycleResult, ReminderResult, ReminderService
from pulse.services.smart_log_processor import ProcessResult, SmartLogProcessor

logger = logging.getLogger(__name__)

INSIGHT_INTERVAL_SECONDS = float(os.getenv("INSIGHT_INTERVAL_SECONDS", "21600"))
INSIGHT_WARMUP_SECONDS = float(os.getenv("INSIGHT_WARMUP_SECONDS", "10"))
REMINDER_INTERVAL_SECONDS = float(os.getenv("REMINDER_INTERVAL_SECONDS", "3600"))
REMINDER_WARMUP_SECONDS = float(os.getenv("REMINDER_WARMUP_SECONDS", "5"))


def process_smart_log(
    db: Session, smart_log_id: str, classifier: Optional[ClassifierClient] = None
) -> ProcessResult:
    processor = SmartLogProcessor(Repository(db), classifier or get_classifier_client())
    return processor.process(smart_log_id)


def detect_insights_for_client(db: Session, client: Client) -> InsightResult:
    return InsightDetector(Repository(db)).detect_for_client(client)


def process_all_client_insights(db: Session) -> InsightCycleResult:
    return InsightDetector(Repository(db)).detect_all_clients()


def process_reminders_for_client(
    db: Session,
    client: Client,
    bypass_quiet_hours: bool = False,
    push_sender: Optional[PushSender] = None,
) -> ReminderResult:
    service = ReminderService(Repository(db), push_sender or get_push_sender())
    return service.process_for_client(client, bypass_quiet_hours=bypass_quiet_hours)


def process_all_reminders(db: Session, push_sender: Optional[PushSender] = None) -> ReminderCycleResult:
    return ReminderService(Repository(db), push_sender or get_push_sender()).process_all()


def run_insight_cycle() -> InsightCycleResult:
    db = SessionLocal()
    try:
        return process_all_client_insights(db)
    finally:
        db.close()


def run_reminder_cycle() -> ReminderCycleResult:
    db = SessionLocal()
    try:
        return process_all_reminders(db)
    finally:
        db.close()
