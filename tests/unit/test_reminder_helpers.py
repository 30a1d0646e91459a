from datetime import date

import pytest

from pulse.core.enums import ReminderCategory, ReminderType
from pulse.db.models import Goal
from pulse.services.reminders import (
    ReminderCandidate,
    build_push_payload,
    goal_progress_percent,
    goal_reminder_type,
    todays_plan_activity,
)

# 2026-03-16 is a Monday.
MONDAY = date(2026, 3, 16)


@pytest.mark.parametrize(
    "goal_type, expected",
    [
        ("lose_weight", ReminderType.GOAL_WEIGHT),
        ("maintain_weight", ReminderType.GOAL_WEIGHT),
        ("fitness", ReminderType.GOAL_WORKOUT),
        ("eat_healthier", ReminderType.GOAL_NUTRITION),
        ("sleep_better", ReminderType.GOAL_GENERAL),
    ],
)
def test_goal_reminder_type(goal_type: str, expected: ReminderType) -> None:
    assert goal_reminder_type(goal_type) is expected


def test_goal_progress_uses_baseline_and_clamps() -> None:
    goal = Goal(goal_type="lose_weight", title="Drop 10", target_value=80.0, current_value=85.0, baseline_value=90.0)
    assert goal_progress_percent(goal) == 50
    goal.current_value = 95.0
    assert goal_progress_percent(goal) == 0
    goal.current_value = 70.0
    assert goal_progress_percent(goal) == 100


def test_goal_progress_without_baseline() -> None:
    goal = Goal(goal_type="steps", title="Walk", target_value=10000.0, current_value=2500.0)
    assert goal_progress_percent(goal) == 25


def test_plan_activity_matches_day_name_or_index() -> None:
    by_name = {"weeklyPrograms": {"week1": {"workouts": [{"day": "Monday", "name": "Leg day"}]}}}
    by_index = {"weeklyPrograms": [{"workouts": [{"dayOfWeek": 1, "type": "Tempo run"}]}]}
    assert todays_plan_activity(by_name, MONDAY) == "Leg day"
    assert todays_plan_activity(by_index, MONDAY) == "Tempo run"


def test_plan_activity_missing_or_malformed() -> None:
    assert todays_plan_activity({"weeklyPrograms": {"week1": {"workouts": [{"day": "friday"}]}}}, MONDAY) is None
    assert todays_plan_activity({"weeklyPrograms": "soon"}, MONDAY) is None
    assert todays_plan_activity(None, MONDAY) is None


def test_push_payload_title_uses_coach_name() -> None:
    candidate = ReminderCandidate(
        type=ReminderType.PLAN_DAILY,
        category=ReminderCategory.PLAN,
        title="Today's plan: Leg day",
        message="Did you complete Leg day?",
    )
    payload = build_push_payload(candidate, "Dana")
    assert payload["title"] == "Reminder from Dana"
    assert payload["body"] == "Today's plan: Leg day\nDid you complete Leg day?"
    assert payload["data"]["reminderType"] == "plan_daily"
    assert build_push_payload(candidate, None)["title"] == "Coach Pulse"
