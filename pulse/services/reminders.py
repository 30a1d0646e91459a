import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from pulse.core.activity import analyze_client_activity
from pulse.core.enums import (
    NUTRITION_GOAL_TYPES,
    WEIGHT_GOAL_TYPES,
    WORKOUT_GOAL_TYPES,
    ReminderCategory,
    ReminderType,
)
from pulse.core.quiet_hours import client_local_now, is_within_quiet_hours
from pulse.db.models import Client, ClientPlan, ClientReminderSettings, Goal, PushSubscription
from pulse.db.repository import Repository
from pulse.services.push import PushDeliveryError, PushSender

logger = logging.getLogger(__name__)

SKIP_DISABLED = "reminders disabled"
SKIP_QUIET_HOURS = "within quiet hours"
SKIP_DAILY_LIMIT = "daily reminder limit reached"
SKIP_NOTHING_DUE = "no reminders due"
SKIP_NO_SUBSCRIPTION = "no active push subscription"

DEFAULT_NOTIFICATION_TITLE = "Coach Pulse"
REMINDER_URL = "/client/smart-log"

# Client-local [start, end) hours.
MEAL_WINDOWS = (
    (ReminderType.DAILY_BREAKFAST, 7, 10),
    (ReminderType.DAILY_LUNCH, 11, 14),
    (ReminderType.DAILY_DINNER, 17, 20),
)

DAILY_CHECKIN_MESSAGES: dict[ReminderType, tuple[tuple[str, str], ...]] = {
    ReminderType.DAILY_BREAKFAST: (
        ("Good morning!", "What's on the breakfast plate today? Snap a photo or jot it down."),
        ("Rise and fuel up", "A quick breakfast log sets the tone for the whole day."),
        ("Morning check-in", "How did you sleep, and what did you have for breakfast?"),
    ),
    ReminderType.DAILY_LUNCH: (
        ("Lunch time", "Take a second to log what you're eating for lunch."),
        ("Midday check-in", "How's the day going? Share your lunch and your energy level."),
        ("Refuel reminder", "Logging lunch keeps your coach in the loop. What did you have?"),
    ),
    ReminderType.DAILY_DINNER: (
        ("Dinner check-in", "What's for dinner tonight? A quick log is all it takes."),
        ("Wrapping up the day", "Log dinner and any workout you squeezed in today."),
        ("Evening reflection", "How did today go? Share your dinner and how you're feeling."),
    ),
}

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class ReminderCandidate:
    type: ReminderType
    category: ReminderCategory
    title: str
    message: str
    related_goal_id: Optional[str] = None
    related_plan_id: Optional[str] = None


@dataclass
class ReminderResult:
    sent_count: int = 0
    skipped_reason: Optional[str] = None


@dataclass
class ReminderCycleResult:
    processed_clients: int = 0
    sent_reminders: int = 0
    failed_clients: int = 0
    failed_client_ids: list[str] = field(default_factory=list)


def goal_reminder_type(goal_type: str) -> ReminderType:
    if goal_type in WEIGHT_GOAL_TYPES:
        return ReminderType.GOAL_WEIGHT
    if goal_type in WORKOUT_GOAL_TYPES:
        return ReminderType.GOAL_WORKOUT
    if goal_type in NUTRITION_GOAL_TYPES:
        return ReminderType.GOAL_NUTRITION
    return ReminderType.GOAL_GENERAL


def goal_progress_percent(goal: Goal) -> int:
    """Progress toward ``goal.target_value`` as a whole percent in 0-100."""
    current = goal.current_value or 0.0
    target = goal.target_value or 0.0
    if goal.baseline_value is not None:
        span = target - goal.baseline_value
        progress = (current - goal.baseline_value) / span * 100 if span else 100.0
    else:
        progress = current / target * 100 if target else 0.0
    return round(max(0.0, min(100.0, progress)))


def build_goal_candidate(goal: Goal) -> ReminderCandidate:
    reminder_type = goal_reminder_type(goal.goal_type)
    if reminder_type is ReminderType.GOAL_WEIGHT:
        title = "Time to log your weight!"
        message = (
            f"Track your progress toward your {goal.title} goal. "
            f"You're {goal_progress_percent(goal)}% there!"
        )
    elif reminder_type is ReminderType.GOAL_WORKOUT:
        title = "Ready for today's workout?"
        message = f"Keep the momentum going on your {goal.title} goal. Log your workout when you're done."
    elif reminder_type is ReminderType.GOAL_NUTRITION:
        title = "How's your nutrition today?"
        message = f"Stay on track with your {goal.title} goal by logging your meals."
    else:
        title = "Check in on your goal!"
        message = f"Don't forget to track your progress on: {goal.title}"
    return ReminderCandidate(
        type=reminder_type,
        category=ReminderCategory.GOAL,
        title=title,
        message=message,
        related_goal_id=goal.id,
    )


def _first_week(weekly_programs: Any) -> Optional[dict[str, Any]]:
    if isinstance(weekly_programs, dict):
        weeks = list(weekly_programs.values())
    elif isinstance(weekly_programs, list):
        weeks = weekly_programs
    else:
        return None
    if weeks and isinstance(weeks[0], dict):
        return weeks[0]
    return None


def todays_plan_activity(plan_content: Any, local_day: date) -> Optional[str]:
    """Name of the workout scheduled for ``local_day`` in a shared plan, if any.

    Workouts match either on ``day`` (weekday name) or ``dayOfWeek`` (0 is Sunday).
    """
    if not isinstance(plan_content, dict):
        return None
    week = _first_week(plan_content.get("weeklyPrograms"))
    if week is None:
        return None
    day_name = WEEKDAY_NAMES[local_day.weekday()]
    day_of_week = (local_day.weekday() + 1) % 7
    for workout in week.get("workouts") or []:
        if not isinstance(workout, dict):
            continue
        day = workout.get("day")
        if (isinstance(day, str) and day.lower() == day_name) or workout.get("dayOfWeek") == day_of_week:
            return workout.get("name") or workout.get("type") or "scheduled activity"
    return None


def build_push_payload(candidate: ReminderCandidate, coach_name: Optional[str]) -> dict[str, Any]:
    return {
        "type": "reminder",
        "title": f"Reminder from {coach_name}" if coach_name else DEFAULT_NOTIFICATION_TITLE,
        "body": f"{candidate.title}\n{candidate.message}",
        "icon": "/icon-192.png",
        "badge": "/icon-72.png",
        "tag": f"coach-pulse-reminder-{candidate.type.value}",
        "data": {"url": REMINDER_URL, "reminderType": candidate.type.value},
    }


class ReminderService:
    def __init__(self, repo: Repository, push_sender: PushSender, rng: Optional[random.Random] = None) -> None:
        self.repo = repo
        self.push_sender = push_sender
        self.rng = rng or random.Random()

    def _settings_for(self, client: Client) -> ClientReminderSettings:
        settings = self.repo.get_reminder_settings(client.id)
        if settings is None:
            settings = self.repo.create_reminder_settings(client)
            self.repo.commit()
            logger.info("reminder_settings_created client_id=%s", client.id)
        return settings

    def _daily_checkin_candidates(
        self, settings: ClientReminderSettings, local_now: datetime, sent_types: set[str]
    ) -> list[ReminderCandidate]:
        if not settings.daily_checkin_reminders_enabled:
            return []
        candidates = []
        for reminder_type, start_hour, end_hour in MEAL_WINDOWS:
            if not start_hour <= local_now.hour < end_hour or reminder_type.value in sent_types:
                continue
            title, message = self.rng.choice(DAILY_CHECKIN_MESSAGES[reminder_type])
            candidates.append(
                ReminderCandidate(
                    type=reminder_type,
                    category=ReminderCategory.DAILY_CHECKIN,
                    title=title,
                    message=message,
                )
            )
        return candidates

    def _inactivity_candidates(
        self, client: Client, settings: ClientReminderSettings, today: date, sent_types: set[str]
    ) -> list[ReminderCandidate]:
        if not settings.inactivity_reminders_enabled:
            return []
        analysis = analyze_client_activity(self.repo, client, today=today)
        threshold = settings.inactivity_threshold_days
        candidates = []
        if analysis.days_since_meal >= threshold and ReminderType.INACTIVITY_MEALS.value not in sent_types:
            candidates.append(
                ReminderCandidate(
                    type=ReminderType.INACTIVITY_MEALS,
                    category=ReminderCategory.INACTIVITY,
                    title="We miss your meal logs!",
                    message=(
                        f"It's been {analysis.days_since_meal} days since your last meal log. "
                        "Quick check-in: what did you eat today?"
                    ),
                )
            )
        if analysis.days_since_workout >= threshold and ReminderType.INACTIVITY_WORKOUTS.value not in sent_types:
            candidates.append(
                ReminderCandidate(
                    type=ReminderType.INACTIVITY_WORKOUTS,
                    category=ReminderCategory.INACTIVITY,
                    title="Time to get moving!",
                    message=(
                        f"It's been {analysis.days_since_workout} days since your last workout. "
                        "Even a short session counts!"
                    ),
                )
            )
        if analysis.days_since_checkin >= threshold + 1 and ReminderType.INACTIVITY_CHECKIN.value not in sent_types:
            candidates.append(
                ReminderCandidate(
                    type=ReminderType.INACTIVITY_CHECKIN,
                    category=ReminderCategory.INACTIVITY,
                    title="How are you feeling?",
                    message="We haven't heard from you in a while. A quick check-in helps your coach support you.",
                )
            )
        return candidates

    def _goal_candidates(
        self, client: Client, settings: ClientReminderSettings, sent_types: set[str]
    ) -> list[ReminderCandidate]:
        if not settings.goal_reminders_enabled:
            return []
        picked = set(sent_types)
        candidates = []
        for goal in self.repo.list_active_goals(client.id):
            if goal.scope != "long_term":
                continue
            reminder_type = goal_reminder_type(goal.goal_type)
            if reminder_type.value in picked:
                continue
            candidates.append(build_goal_candidate(goal))
            picked.add(reminder_type.value)
        return candidates

    def _plan_candidates(
        self, client: Client, settings: ClientReminderSettings, today: date, sent_types: set[str]
    ) -> list[ReminderCandidate]:
        if not settings.plan_reminders_enabled or ReminderType.PLAN_DAILY.value in sent_types:
            return []
        plan: Optional[ClientPlan] = self.repo.latest_shared_plan(client.id)
        if plan is None:
            return []
        activity = todays_plan_activity(plan.plan_content, today) or "your planned activities"
        return [
            ReminderCandidate(
                type=ReminderType.PLAN_DAILY,
                category=ReminderCategory.PLAN,
                title=f"Today's plan: {activity}",
                message=f"Did you complete {activity}? Log your progress to stay on track!",
                related_plan_id=plan.id,
            )
        ]

    def _deliver(
        self, client: Client, subscriptions: list[PushSubscription], payload: dict[str, Any]
    ) -> bool:
        delivered = False
        for subscription in list(subscriptions):
            try:
                self.push_sender.send(subscription, payload)
                delivered = True
            except PushDeliveryError as exc:
                if exc.subscription_gone:
                    logger.info(
                        "push_subscription_removed client_id=%s endpoint=...%s",
                        client.id,
                        subscription.endpoint[-20:],
                    )
                    self.repo.delete_push_subscription(subscription.endpoint)
                    subscriptions.remove(subscription)
                else:
                    logger.warning("push_delivery_failed client_id=%s detail=%s", client.id, str(exc)[:220])
        return delivered

    def process_for_client(
        self, client: Client, bypass_quiet_hours: bool = False, now: Optional[datetime] = None
    ) -> ReminderResult:
        timestamp = now or datetime.utcnow()
        settings = self._settings_for(client)
        if not settings.reminders_enabled:
            return ReminderResult(skipped_reason=SKIP_DISABLED)

        local_now = client_local_now(settings.timezone, timestamp)
        if not bypass_quiet_hours and is_within_quiet_hours(
            settings.quiet_hours_start, settings.quiet_hours_end, local_now.time()
        ):
            logger.debug("reminders_quiet_hours client_id=%s local_time=%s", client.id, local_now.strftime("%H:%M"))
            return ReminderResult(skipped_reason=SKIP_QUIET_HOURS)

        today = local_now.date()
        sent_today = self.repo.count_sent_reminders(client.id, today)
        if sent_today >= settings.max_reminders_per_day:
            logger.debug("reminders_daily_limit client_id=%s count=%s", client.id, sent_today)
            return ReminderResult(skipped_reason=SKIP_DAILY_LIMIT)

        sent_types = self.repo.sent_reminder_types(client.id, today)
        candidates = [
            *self._daily_checkin_candidates(settings, local_now, sent_types),
            *self._inactivity_candidates(client, settings, today, sent_types),
            *self._goal_candidates(client, settings, sent_types),
            *self._plan_candidates(client, settings, today, sent_types),
        ]
        if not candidates:
            return ReminderResult(skipped_reason=SKIP_NOTHING_DUE)

        to_send = candidates[: settings.max_reminders_per_day - sent_today]
        coach = self.repo.get_coach(client.coach_id)
        coach_name = coach.name if coach is not None else None
        subscriptions = self.repo.list_push_subscriptions(client.id)

        sent_count = 0
        for candidate in to_send:
            if not self._deliver(client, subscriptions, build_push_payload(candidate, coach_name)):
                continue
            self.repo.record_sent_reminder(
                client_id=client.id,
                reminder_type=candidate.type.value,
                reminder_category=candidate.category.value,
                title=candidate.title,
                message=candidate.message,
                sent_at=timestamp,
                sent_date=today,
                delivery_status="sent",
                related_goal_id=candidate.related_goal_id,
                related_plan_id=candidate.related_plan_id,
            )
            self.repo.commit()
            sent_count += 1
            logger.info("reminder_sent client_id=%s type=%s", client.id, candidate.type.value)

        # Persist subscription cleanup even when nothing was delivered.
        self.repo.commit()
        if sent_count == 0:
            return ReminderResult(skipped_reason=SKIP_NO_SUBSCRIPTION)
        return ReminderResult(sent_count=sent_count)

    def process_all(self, now: Optional[datetime] = None) -> ReminderCycleResult:
        cycle = ReminderCycleResult()
        clients = self.repo.list_active_clients_with_push_subscriptions()
        logger.info("reminder_cycle_started clients=%s", len(clients))
        for client in clients:
            client_id = client.id
            try:
                result = self.process_for_client(client, now=now)
            except Exception:
                logger.exception("reminder_client_failed client_id=%s", client_id)
                self.repo.rollback()
                cycle.failed_clients += 1
                cycle.failed_client_ids.append(client_id)
                continue
            cycle.processed_clients += 1
            cycle.sent_reminders += result.sent_count
        logger.info(
            "reminder_cycle_complete processed=%s sent=%s failed=%s",
            cycle.processed_clients,
            cycle.sent_reminders,
            cycle.failed_clients,
        )
        return cycle
