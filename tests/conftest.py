import os
import tempfile
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import uuid4

os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp(prefix="pulse-db-")) / "pulse_import.db"))
os.environ["PULSE_SCHEDULERS_ENABLED"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from pulse.core.parsed_data import AIClassification
from pulse.db.models import (
    Client,
    ClientPlan,
    ClientReminderSettings,
    Coach,
    Goal,
    ProgressEvent,
    PushSubscription,
)
from pulse.db.session import SessionLocal, configure_database, create_tables
from pulse.services.llm import get_classifier_client
from pulse.services.push import PushDeliveryError, get_push_sender


class FakeScenario(str, Enum):
    OK = "OK"
    TIMEOUT = "TIMEOUT"
    MALFORMED = "MALFORMED"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    EXTRACT_FAILS = "EXTRACT_FAILS"


class FakeClassifierClient:
    """Keyword-driven stand-in for the classification capability."""

    def __init__(self, scenario: FakeScenario = FakeScenario.OK) -> None:
        self.scenario = scenario
        self.classify_calls = 0
        self.extract_calls = 0

    def classify(self, text: Optional[str], media_urls: list[str]) -> dict[str, Any]:
        self.classify_calls += 1
        if self.scenario == FakeScenario.TIMEOUT:
            raise TimeoutError("simulated timeout")
        if self.scenario == FakeScenario.MALFORMED:
            return {"detected_event_types": "weight", "overall_confidence": "very"}
        lowered = (text or "").lower()
        flags = {
            "has_weight": "lbs" in lowered,
            "has_nutrition": any(word in lowered for word in ("ate", "lunch", "breakfast", "dinner", "salad")),
            "has_workout": "workout" in lowered or "ran" in lowered,
            "has_steps": "steps" in lowered,
            "has_sleep": "slept" in lowered,
            "has_mood": "energy" in lowered or "feeling" in lowered,
        }
        names = {
            "has_weight": "weight",
            "has_nutrition": "nutrition",
            "has_workout": "workout",
            "has_steps": "steps",
            "has_sleep": "sleep",
            "has_mood": "checkin_mood",
        }
        detected = [names[key] for key, value in flags.items() if value] or ["note"]
        confidence = 0.2 if self.scenario == FakeScenario.LOW_CONFIDENCE else 0.9
        return {"detected_event_types": detected, "overall_confidence": confidence, **flags}

    def extract(
        self, text: Optional[str], media_urls: list[str], classification: AIClassification
    ) -> dict[str, Any]:
        self.extract_calls += 1
        if self.scenario == FakeScenario.EXTRACT_FAILS:
            raise TimeoutError("simulated extraction timeout")
        parsed: dict[str, Any] = {}
        lowered = (text or "").lower()
        if classification.has_weight:
            value = float("".join(ch for ch in lowered.split("lbs")[0].split()[-1] if ch.isdigit() or ch == "."))
            parsed["weight"] = {"value": value, "unit": "lbs", "confidence": 0.9}
        if classification.has_nutrition:
            parsed["nutrition"] = {
                "food_description": "grilled chicken salad",
                "calories_est": 450,
                "protein_est_g": 35,
                "source": "estimated",
                "estimated": True,
                "confidence": 0.6,
            }
        if classification.has_workout:
            parsed["workout"] = {
                "type": "cardio",
                "body_focus": ["full"],
                "duration_min": 30,
                "intensity": "medium",
                "confidence": 0.85,
            }
        return parsed


class FakePushSender:
    def __init__(self, fail_endpoints: Optional[dict[str, int]] = None) -> None:
        self.fail_endpoints = fail_endpoints or {}
        self.sent: list[tuple[str, dict[str, Any]]] = []

    def send(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        status = self.fail_endpoints.get(subscription.endpoint)
        if status is not None:
            raise PushDeliveryError(status, f"simulated push failure status={status}")
        self.sent.append((subscription.endpoint, payload))


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    db_path = tmp_path / "pulse_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app():
    from pulse.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app, test_db_path: Path):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_classifier() -> FakeClassifierClient:
    return FakeClassifierClient()


@pytest.fixture
def fake_push() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def override_classifier(app):
    def _override(classifier: FakeClassifierClient) -> None:
        app.dependency_overrides[get_classifier_client] = lambda: classifier

    return _override


@pytest.fixture
def override_push(app):
    def _override(sender: FakePushSender) -> None:
        app.dependency_overrides[get_push_sender] = lambda: sender

    return _override


@pytest.fixture
def create_coach(db_session: Session) -> Callable[..., Coach]:
    def _create_coach(name: str = "Coach Dana") -> Coach:
        coach = Coach(name=name, email=f"coach_{uuid4().hex[:10]}@test.com")
        db_session.add(coach)
        db_session.commit()
        db_session.refresh(coach)
        return coach

    return _create_coach


@pytest.fixture
def create_client(db_session: Session, create_coach) -> Callable[..., Client]:
    def _create_client(
        name: str = "Sam",
        joined_days_ago: int = 0,
        with_coach: bool = True,
        now: Optional[datetime] = None,
    ) -> Client:
        coach = create_coach() if with_coach else None
        reference = now or datetime.utcnow()
        row = Client(
            name=name,
            email=f"client_{uuid4().hex[:10]}@test.com",
            coach_id=coach.id if coach else None,
            created_at=reference - timedelta(days=joined_days_ago),
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create_client


@pytest.fixture
def create_goal(db_session: Session) -> Callable[..., Goal]:
    def _create_goal(client: Client, goal_type: str = "fitness", **fields: Any) -> Goal:
        values = {
            "title": f"{goal_type} goal",
            "target_value": 100.0,
            "current_value": 0.0,
            **fields,
        }
        row = Goal(client_id=client.id, goal_type=goal_type, **values)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create_goal


@pytest.fixture
def create_event(db_session: Session) -> Callable[..., ProgressEvent]:
    def _create_event(client: Client, event_type: str, days_ago: int, today: Optional[date] = None) -> ProgressEvent:
        reference = today or datetime.utcnow().date()
        row = ProgressEvent(
            client_id=client.id,
            event_type=event_type,
            date_for_metric=reference - timedelta(days=days_ago),
            data_json={},
            confidence=0.9,
            needs_review=False,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _create_event


@pytest.fixture
def create_subscription(db_session: Session) -> Callable[..., PushSubscription]:
    def _create_subscription(client: Client, endpoint: Optional[str] = None) -> PushSubscription:
        row = PushSubscription(
            client_id=client.id,
            endpoint=endpoint or f"https://push.example.com/{uuid4().hex}",
            p256dh="p256dh-key",
            auth="auth-secret",
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create_subscription


@pytest.fixture
def create_reminder_settings(db_session: Session) -> Callable[..., ClientReminderSettings]:
    def _create_settings(client: Client, **fields: Any) -> ClientReminderSettings:
        values = {"timezone": "UTC", **fields}
        row = ClientReminderSettings(client_id=client.id, coach_id=client.coach_id, **values)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create_settings


@pytest.fixture
def create_plan(db_session: Session) -> Callable[..., ClientPlan]:
    def _create_plan(client: Client, plan_content: Optional[dict[str, Any]] = None, **fields: Any) -> ClientPlan:
        values = {"plan_name": "Spring block", "status": "active", "shared": True, **fields}
        row = ClientPlan(client_id=client.id, plan_content=plan_content or {}, **values)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _create_plan
