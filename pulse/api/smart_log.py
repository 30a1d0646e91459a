import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pulse.core.quiet_hours import client_local_now
from pulse.db.models import Client, ProgressEvent, SmartLog
from pulse.db.repository import Repository
from pulse.db.session import get_db
from pulse.services.engine import process_smart_log
from pulse.services.llm import ClassifierClient, get_classifier_client
from pulse.services.smart_log_processor import ProcessResult, reset_for_reanalysis

router = APIRouter(tags=["smart-logs"])
logger = logging.getLogger("uvicorn.error")


class SmartLogCreateRequest(BaseModel):
    raw_text: Optional[str] = Field(default=None, max_length=4000)
    media_urls: Optional[list[str]] = Field(default=None, max_length=10)
    local_date: Optional[date] = None


class SmartLogUpdateRequest(BaseModel):
    raw_text: Optional[str] = Field(default=None, max_length=4000)
    media_urls: Optional[list[str]] = Field(default=None, max_length=10)


class SmartLogItem(BaseModel):
    id: str
    client_id: str
    author_type: str
    source: str
    raw_text: Optional[str] = None
    media_urls: Optional[list[str]] = None
    local_date_for_client: date
    processing_status: str
    ai_classification: Optional[dict[str, Any]] = None
    ai_parsed_data: Optional[dict[str, Any]] = None
    processing_error: Optional[str] = None
    created_at: datetime


class ProcessingSummary(BaseModel):
    success: bool
    events_created: Optional[int] = None
    error: Optional[str] = None


class SmartLogProcessedResponse(BaseModel):
    smart_log: SmartLogItem
    processing: ProcessingSummary


class SmartLogListResponse(BaseModel):
    items: list[SmartLogItem]


class ProgressEventItem(BaseModel):
    id: str
    smart_log_id: Optional[str] = None
    event_type: str
    date_for_metric: date
    data: dict[str, Any]
    confidence: float
    needs_review: bool
    created_at: datetime


class ProgressEventListResponse(BaseModel):
    items: list[ProgressEventItem]


def _to_item(row: SmartLog) -> SmartLogItem:
    return SmartLogItem(
        id=row.id,
        client_id=row.client_id,
        author_type=row.author_type,
        source=row.source,
        raw_text=row.raw_text,
        media_urls=row.media_urls,
        local_date_for_client=row.local_date_for_client,
        processing_status=row.processing_status,
        ai_classification=row.ai_classification_json,
        ai_parsed_data=row.ai_parsed_json,
        processing_error=row.processing_error,
        created_at=row.created_at,
    )


def _to_event_item(row: ProgressEvent) -> ProgressEventItem:
    return ProgressEventItem(
        id=row.id,
        smart_log_id=row.smart_log_id,
        event_type=row.event_type,
        date_for_metric=row.date_for_metric,
        data=row.data_json or {},
        confidence=row.confidence,
        needs_review=row.needs_review,
        created_at=row.created_at,
    )


def _processed_response(db: Session, smart_log_id: str, result: ProcessResult) -> SmartLogProcessedResponse:
    row = Repository(db).get_smart_log(smart_log_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Smart log not found")
    db.refresh(row)
    return SmartLogProcessedResponse(
        smart_log=_to_item(row),
        processing=ProcessingSummary(success=result.success, events_created=result.events_created, error=result.error),
    )


def _require_client(repo: Repository, client_id: str) -> Client:
    client = repo.get_client(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


def _client_today(repo: Repository, client: Client) -> date:
    settings = repo.get_reminder_settings(client.id)
    now = datetime.now(timezone.utc)
    if settings is None:
        return now.date()
    return client_local_now(settings.timezone, now).date()


@router.post(
    "/clients/{client_id}/smart-logs",
    response_model=SmartLogProcessedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_smart_log(
    payload: SmartLogCreateRequest,
    client_id: str = Path(...),
    db: Session = Depends(get_db),
    classifier: ClassifierClient = Depends(get_classifier_client),
) -> SmartLogProcessedResponse:
    repo = Repository(db)
    client = _require_client(repo, client_id)
    row = repo.create_smart_log(
        client_id=client.id,
        local_date_for_client=payload.local_date or _client_today(repo, client),
        raw_text=payload.raw_text,
        media_urls=payload.media_urls,
    )
    repo.commit()
    smart_log_id = row.id
    result = process_smart_log(db, smart_log_id, classifier)
    if not result.success:
        logger.warning("smart_log_create_processing_failed smart_log_id=%s detail=%s", smart_log_id, result.error)
    return _processed_response(db, smart_log_id, result)


@router.put("/smart-logs/{smart_log_id}", response_model=SmartLogProcessedResponse)
def update_smart_log(
    payload: SmartLogUpdateRequest,
    smart_log_id: str = Path(...),
    db: Session = Depends(get_db),
    classifier: ClassifierClient = Depends(get_classifier_client),
) -> SmartLogProcessedResponse:
    repo = Repository(db)
    row = repo.get_smart_log(smart_log_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Smart log not found")
    reset_for_reanalysis(repo, row, raw_text=payload.raw_text, media_urls=payload.media_urls)
    result = process_smart_log(db, smart_log_id, classifier)
    if not result.success:
        logger.warning("smart_log_update_processing_failed smart_log_id=%s detail=%s", smart_log_id, result.error)
    return _processed_response(db, smart_log_id, result)


@router.get("/clients/{client_id}/smart-logs", response_model=SmartLogListResponse)
def list_smart_logs(
    client_id: str = Path(...),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> SmartLogListResponse:
    repo = Repository(db)
    _require_client(repo, client_id)
    return SmartLogListResponse(items=[_to_item(row) for row in repo.list_smart_logs(client_id, limit=limit)])


@router.get("/clients/{client_id}/progress-events", response_model=ProgressEventListResponse)
def list_progress_events(
    client_id: str = Path(...),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
) -> ProgressEventListResponse:
    repo = Repository(db)
    _require_client(repo, client_id)
    rows = repo.list_progress_events(client_id, limit=limit)
    return ProgressEventListResponse(items=[_to_event_item(row) for row in rows])
