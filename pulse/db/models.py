from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()


def _new_id() -> str:
    return uuid4().hex


class Coach(Base):
    __tablename__ = "coaches"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    coach_id: Mapped[Optional[str]] = mapped_column(ForeignKey("coaches.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    coach: Mapped[Optional[Coach]] = relationship("Coach")
    goals: Mapped[list["Goal"]] = relationship("Goal", back_populates="client", cascade="all, delete-orphan")
    smart_logs: Mapped[list["SmartLog"]] = relationship(
        "SmartLog", back_populates="client", cascade="all, delete-orphan"
    )


class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    goal_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    baseline_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    scope: Mapped[str] = mapped_column(String(32), nullable=False, default="long_term")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    client: Mapped[Client] = relationship("Client", back_populates="goals")


class ClientPlan(Base):
    __tablename__ = "client_plans"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    coach_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan_content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")
    shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    p256dh: Mapped[str] = mapped_column(String(255), nullable=False)
    auth: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class SmartLog(Base):
    __tablename__ = "smart_logs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    author_type: Mapped[str] = mapped_column(String(16), nullable=False, default="client")
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="smart_log")
    raw_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_urls: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    local_date_for_client: Mapped[date] = mapped_column(Date, nullable=False)
    ai_classification_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ai_parsed_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    processing_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    client: Mapped[Client] = relationship("Client", back_populates="smart_logs")


class ProgressEvent(Base):
    __tablename__ = "progress_events"
    __table_args__ = (Index("ix_progress_events_client_type_date", "client_id", "event_type", "date_for_metric"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    smart_log_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    date_for_metric: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    data_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class EngagementTrigger(Base):
    __tablename__ = "engagement_triggers"
    __table_args__ = (Index("ix_engagement_triggers_client_resolved", "client_id", "is_resolved"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    coach_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    recommended_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ClientReminderSettings(Base):
    __tablename__ = "client_reminder_settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), unique=True, nullable=False, index=True)
    coach_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reminders_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    goal_reminders_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    plan_reminders_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    inactivity_reminders_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    daily_checkin_reminders_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    inactivity_threshold_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    quiet_hours_start: Mapped[str] = mapped_column(String(5), nullable=False, default="21:00")
    quiet_hours_end: Mapped[str] = mapped_column(String(5), nullable=False, default="08:00")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="America/New_York")
    max_reminders_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SentReminder(Base):
    __tablename__ = "sent_reminders"
    __table_args__ = (Index("ix_sent_reminders_client_date", "client_id", "sent_date"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    reminder_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reminder_category: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    sent_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_status: Mapped[str] = mapped_column(String(16), nullable=False, default="sent")
    related_goal_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    related_plan_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
