import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pulse.db.models import Client, EngagementTrigger
from pulse.db.repository import Repository
from pulse.db.session import get_db
from pulse.services.engine import (
    detect_insights_for_client,
    process_all_client_insights,
    process_all_reminders,
    process_reminders_for_client,
)
from pulse.services.push import PushSender, get_push_sender

router = APIRouter(tags=["engagement"])
logger = logging.getLogger("uvicorn.error")


class TriggerItem(BaseModel):
    id: str
    type: str
    severity: str
    reason: str
    recommended_action: Optional[str] = None
    is_resolved: bool
    resolved_at: Optional[datetime] = None
    detected_at: datetime


class TriggerListResponse(BaseModel):
    items: list[TriggerItem]


class InsightRunResponse(BaseModel):
    created: int
    resolved: int
    escalated: int


class InsightCycleResponse(BaseModel):
    processed_clients: int
    created_triggers: int
    resolved_triggers: int
    escalated_triggers: int
    failed_clients: int


class ReminderRunResponse(BaseModel):
    sent_count: int
    skipped_reason: Optional[str] = None


class ReminderCycleResponse(BaseModel):
    processed_clients: int
    sent_reminders: int
    failed_clients: int


def _to_trigger_item(row: EngagementTrigger) -> TriggerItem:
    return TriggerItem(
        id=row.id,
        type=row.type,
        severity=row.severity,
        reason=row.reason,
        recommended_action=row.recommended_action,
        is_resolved=row.is_resolved,
        resolved_at=row.resolved_at,
        detected_at=row.detected_at,
    )


def _require_client(db: Session, client_id: str) -> Client:
    client = Repository(db).get_client(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("/clients/{client_id}/engagement-triggers", response_model=TriggerListResponse)
def list_engagement_triggers(
    client_id: str = Path(...),
    include_resolved: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> TriggerListResponse:
    _require_client(db, client_id)
    rows = Repository(db).list_triggers(client_id, include_resolved=include_resolved)
    return TriggerListResponse(items=[_to_trigger_item(row) for row in rows])


@router.post("/admin/insights/run", response_model=InsightCycleResponse)
def run_insights(db: Session = Depends(get_db)) -> InsightCycleResponse:
    result = process_all_client_insights(db)
    logger.info("admin_insights_run processed=%s failed=%s", result.processed_clients, result.failed_clients)
    return InsightCycleResponse(
        processed_clients=result.processed_clients,
        created_triggers=result.created_triggers,
        resolved_triggers=result.resolved_triggers,
        escalated_triggers=result.escalated_triggers,
        failed_clients=result.failed_clients,
    )


@router.post("/admin/insights/{client_id}/run", response_model=InsightRunResponse)
def run_insights_for_client(client_id: str = Path(...), db: Session = Depends(get_db)) -> InsightRunResponse:
    client = _require_client(db, client_id)
    if not client.coach_id:
        raise HTTPException(status_code=422, detail="Client has no coach assigned")
    result = detect_insights_for_client(db, client)
    return InsightRunResponse(created=result.created, resolved=result.resolved, escalated=result.escalated)


@router.post("/admin/reminders/run", response_model=ReminderCycleResponse)
def run_reminders(
    db: Session = Depends(get_db),
    push_sender: PushSender = Depends(get_push_sender),
) -> ReminderCycleResponse:
    result = process_all_reminders(db, push_sender=push_sender)
    logger.info("admin_reminders_run processed=%s sent=%s", result.processed_clients, result.sent_reminders)
    return ReminderCycleResponse(
        processed_clients=result.processed_clients,
        sent_reminders=result.sent_reminders,
        failed_clients=result.failed_clients,
    )


@router.post("/admin/reminders/{client_id}/run", response_model=ReminderRunResponse)
def run_reminders_for_client(
    client_id: str = Path(...),
    bypass_quiet_hours: bool = Query(default=False),
    db: Session = Depends(get_db),
    push_sender: PushSender = Depends(get_push_sender),
) -> ReminderRunResponse:
    client = _require_client(db, client_id)
    result = process_reminders_for_client(
        db, client, bypass_quiet_hours=bypass_quiet_hours, push_sender=push_sender
    )
    return ReminderRunResponse(sent_count=result.sent_count, skipped_reason=result.skipped_reason)
