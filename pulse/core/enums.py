from enum import Enum


class EventCategory(str, Enum):
    WEIGHT = "weight"
    NUTRITION = "nutrition"
    WORKOUT = "workout"
    STEPS = "steps"
    SLEEP = "sleep"
    CHECKIN_MOOD = "checkin_mood"
    NOTE = "note"
    OTHER = "other"


# Categories that can become a ProgressEvent; note/other never do.
MATERIALIZED_CATEGORIES = frozenset(
    {
        EventCategory.WEIGHT,
        EventCategory.NUTRITION,
        EventCategory.WORKOUT,
        EventCategory.STEPS,
        EventCategory.SLEEP,
        EventCategory.CHECKIN_MOOD,
    }
)


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerType(str, Enum):
    INACTIVITY = "inactivity"
    NUTRITION_CONCERN = "nutrition_concern"
    MISSED_WORKOUT = "missed_workout"


class TriggerSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    TriggerSeverity.LOW: 1,
    TriggerSeverity.MEDIUM: 2,
    TriggerSeverity.HIGH: 3,
}


class ReminderCategory(str, Enum):
    DAILY_CHECKIN = "daily_checkin"
    INACTIVITY = "inactivity"
    GOAL = "goal"
    PLAN = "plan"


class ReminderType(str, Enum):
    DAILY_BREAKFAST = "daily_breakfast"
    DAILY_LUNCH = "daily_lunch"
    DAILY_DINNER = "daily_dinner"
    INACTIVITY_MEALS = "inactivity_meals"
    INACTIVITY_WORKOUTS = "inactivity_workouts"
    INACTIVITY_CHECKIN = "inactivity_checkin"
    GOAL_WEIGHT = "goal_weight"
    GOAL_WORKOUT = "goal_workout"
    GOAL_NUTRITION = "goal_nutrition"
    GOAL_GENERAL = "goal_general"
    PLAN_DAILY = "plan_daily"


WORKOUT_GOAL_TYPES = frozenset({"workout", "fitness", "improve_fitness_endurance", "gain_muscle_strength"})
NUTRITION_GOAL_TYPES = frozenset({"nutrition", "eat_healthier", "calories", "lose_weight", "maintain_weight"})
WEIGHT_GOAL_TYPES = frozenset({"weight", "lose_weight", "maintain_weight"})
