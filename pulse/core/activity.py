from dataclasses import dataclass
from datetime import date
from typing import Optional

from pulse.core.enums import NUTRITION_GOAL_TYPES, WORKOUT_GOAL_TYPES, EventCategory
from pulse.db.models import Client, Goal
from pulse.db.repository import Repository

CHECKIN_EVENT_TYPES = (EventCategory.CHECKIN_MOOD, EventCategory.WEIGHT, EventCategory.SLEEP)


@dataclass(frozen=True)
class ActivityAnalysis:
    days_since_meal: int
    days_since_workout: int
    days_since_checkin: int
    has_active_goals: bool
    has_workout_goals: bool
    has_nutrition_goals: bool

    @property
    def days_since_any(self) -> int:
        return min(self.days_since_meal, self.days_since_workout, self.days_since_checkin)


def _days_between(earlier: date, later: date) -> int:
    return max(0, (later - earlier).days)


def _latest(dates: dict[str, date], categories: tuple[EventCategory, ...]) -> Optional[date]:
    found = [dates[item.value] for item in categories if item.value in dates]
    return max(found) if found else None


def analyze_client_activity(
    repo: Repository,
    client: Client,
    today: date,
    goals: Optional[list[Goal]] = None,
) -> ActivityAnalysis:
    """Days since the last meal, workout and check-in for ``client``.

    A category with no events yet counts from the day the client joined, so
    new clients are not flagged as long inactive.
    """
    latest_dates = repo.latest_event_dates(client.id)
    days_since_joined = _days_between(client.created_at.date(), today)

    def days_since(categories: tuple[EventCategory, ...]) -> int:
        last = _latest(latest_dates, categories)
        if last is None:
            return days_since_joined
        return _days_between(last, today)

    active_goals = goals if goals is not None else repo.list_active_goals(client.id)
    goal_types = {goal.goal_type for goal in active_goals}

    return ActivityAnalysis(
        days_since_meal=days_since((EventCategory.NUTRITION,)),
        days_since_workout=days_since((EventCategory.WORKOUT,)),
        days_since_checkin=days_since(CHECKIN_EVENT_TYPES),
        has_active_goals=bool(active_goals),
        has_workout_goals=bool(goal_types & WORKOUT_GOAL_TYPES),
        has_nutrition_goals=bool(goal_types & NUTRITION_GOAL_TYPES),
    )
