"""Query and write helpers over the pulse tables.

Services talk to storage only through ``Repository`` so that the engagement
pipeline stays independent of how the rows are fetched. Writes are added to
the session; callers decide when to commit.
"""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pulse.core.enums import ProcessingStatus
from pulse.core.materializer import ProgressEventDraft
from pulse.db.models import (
    Client,
    ClientPlan,
    ClientReminderSettings,
    Coach,
    EngagementTrigger,
    Goal,
    ProgressEvent,
    PushSubscription,
    SentReminder,
    SmartLog,
)

ACTIVE_PLAN_STATUSES = ("assigned", "active")


class Repository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # Clients and coaches

    def get_client(self, client_id: str) -> Optional[Client]:
        return self.db.query(Client).filter(Client.id == client_id).first()

    def get_coach(self, coach_id: Optional[str]) -> Optional[Coach]:
        if not coach_id:
            return None
        return self.db.query(Coach).filter(Coach.id == coach_id).first()

    def list_active_clients_with_coach(self) -> list[Client]:
        return (
            self.db.query(Client)
            .filter(Client.status == "active", Client.coach_id.isnot(None))
            .order_by(Client.created_at.asc())
            .all()
        )

    def list_active_clients_with_push_subscriptions(self) -> list[Client]:
        subscribed = select(PushSubscription.client_id).distinct()
        return (
            self.db.query(Client)
            .filter(Client.status == "active", Client.id.in_(subscribed))
            .order_by(Client.created_at.asc())
            .all()
        )

    # Smart logs and progress events

    def get_smart_log(self, smart_log_id: str) -> Optional[SmartLog]:
        return self.db.query(SmartLog).filter(SmartLog.id == smart_log_id).first()

    def create_smart_log(
        self,
        client_id: str,
        local_date_for_client: date,
        raw_text: Optional[str] = None,
        media_urls: Optional[list[str]] = None,
        author_type: str = "client",
        source: str = "smart_log",
    ) -> SmartLog:
        row = SmartLog(
            client_id=client_id,
            raw_text=raw_text,
            media_urls=media_urls,
            local_date_for_client=local_date_for_client,
            author_type=author_type,
            source=source,
            processing_status=ProcessingStatus.PENDING.value,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def list_smart_logs(self, client_id: str, limit: int = 50) -> list[SmartLog]:
        return (
            self.db.query(SmartLog)
            .filter(SmartLog.client_id == client_id)
            .order_by(SmartLog.created_at.desc())
            .limit(limit)
            .all()
        )

    def add_progress_event(self, draft: ProgressEventDraft) -> ProgressEvent:
        row = ProgressEvent(
            client_id=draft.client_id,
            smart_log_id=draft.smart_log_id,
            event_type=draft.event_type.value,
            date_for_metric=draft.date_for_metric,
            data_json=draft.data_json,
            confidence=draft.confidence,
            needs_review=draft.needs_review,
        )
        self.db.add(row)
        return row

    def list_progress_events(self, client_id: str, limit: int = 200) -> list[ProgressEvent]:
        return (
            self.db.query(ProgressEvent)
            .filter(ProgressEvent.client_id == client_id)
            .order_by(ProgressEvent.date_for_metric.desc(), ProgressEvent.created_at.desc())
            .limit(limit)
            .all()
        )

    def list_progress_events_for_log(self, smart_log_id: str) -> list[ProgressEvent]:
        return self.db.query(ProgressEvent).filter(ProgressEvent.smart_log_id == smart_log_id).all()

    def delete_progress_events_for_log(self, smart_log_id: str) -> int:
        return (
            self.db.query(ProgressEvent)
            .filter(ProgressEvent.smart_log_id == smart_log_id)
            .delete(synchronize_session=False)
        )

    def latest_event_dates(self, client_id: str) -> dict[str, date]:
        rows = (
            self.db.query(ProgressEvent.event_type, func.max(ProgressEvent.date_for_metric))
            .filter(ProgressEvent.client_id == client_id)
            .group_by(ProgressEvent.event_type)
            .all()
        )
        return {event_type: latest for event_type, latest in rows if latest is not None}

    # Goals and plans

    def list_active_goals(self, client_id: str) -> list[Goal]:
        return (
            self.db.query(Goal)
            .filter(Goal.client_id == client_id, Goal.status == "active")
            .order_by(Goal.created_at.asc())
            .all()
        )

    def latest_shared_plan(self, client_id: str) -> Optional[ClientPlan]:
        return (
            self.db.query(ClientPlan)
            .filter(
                ClientPlan.client_id == client_id,
                ClientPlan.shared.is_(True),
                ClientPlan.status.in_(ACTIVE_PLAN_STATUSES),
            )
            .order_by(ClientPlan.created_at.desc())
            .first()
        )

    # Engagement triggers

    def list_triggers(self, client_id: str, include_resolved: bool = True) -> list[EngagementTrigger]:
        query = self.db.query(EngagementTrigger).filter(EngagementTrigger.client_id == client_id)
        if not include_resolved:
            query = query.filter(EngagementTrigger.is_resolved.is_(False))
        return query.order_by(EngagementTrigger.detected_at.desc()).all()

    def list_unresolved_triggers(self, client_id: str) -> list[EngagementTrigger]:
        return (
            self.db.query(EngagementTrigger)
            .filter(
                EngagementTrigger.client_id == client_id,
                EngagementTrigger.is_resolved.is_(False),
            )
            .order_by(EngagementTrigger.detected_at.asc())
            .all()
        )

    def create_trigger(self, **fields: Any) -> EngagementTrigger:
        row = EngagementTrigger(**fields)
        self.db.add(row)
        return row

    def resolve_trigger(self, trigger: EngagementTrigger, resolved_at: datetime) -> None:
        trigger.is_resolved = True
        trigger.resolved_at = resolved_at

    # Reminders

    def get_reminder_settings(self, client_id: str) -> Optional[ClientReminderSettings]:
        return (
            self.db.query(ClientReminderSettings)
            .filter(ClientReminderSettings.client_id == client_id)
            .first()
        )

    def create_reminder_settings(self, client: Client) -> ClientReminderSettings:
        row = ClientReminderSettings(client_id=client.id, coach_id=client.coach_id)
        self.db.add(row)
        self.db.flush()
        return row

    def list_sent_reminders(self, client_id: str, sent_date: date) -> list[SentReminder]:
        return (
            self.db.query(SentReminder)
            .filter(SentReminder.client_id == client_id, SentReminder.sent_date == sent_date)
            .order_by(SentReminder.sent_at.asc())
            .all()
        )

    def sent_reminder_types(self, client_id: str, sent_date: date) -> set[str]:
        rows = (
            self.db.query(SentReminder.reminder_type)
            .filter(SentReminder.client_id == client_id, SentReminder.sent_date == sent_date)
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def count_sent_reminders(self, client_id: str, sent_date: date) -> int:
        return (
            self.db.query(SentReminder)
            .filter(SentReminder.client_id == client_id, SentReminder.sent_date == sent_date)
            .count()
        )

    def record_sent_reminder(self, **fields: Any) -> SentReminder:
        row = SentReminder(**fields)
        self.db.add(row)
        return row

    def list_push_subscriptions(self, client_id: str) -> list[PushSubscription]:
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.client_id == client_id)
            .order_by(PushSubscription.created_at.asc())
            .all()
        )

    def delete_push_subscription(self, endpoint: str) -> int:
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.endpoint == endpoint)
            .delete(synchronize_session=False)
        )
