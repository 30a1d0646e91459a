import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, assert_never

from pulse.core.activity import ActivityAnalysis, analyze_client_activity
from pulse.core.enums import TriggerSeverity, TriggerType
from pulse.db.models import Client, EngagementTrigger
from pulse.db.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectedTrigger:
    type: TriggerType
    severity: TriggerSeverity
    reason: str
    recommended_action: str


@dataclass
class InsightResult:
    created: int = 0
    resolved: int = 0
    escalated: int = 0


@dataclass
class InsightCycleResult:
    processed_clients: int = 0
    created_triggers: int = 0
    resolved_triggers: int = 0
    escalated_triggers: int = 0
    failed_clients: int = 0
    failed_client_ids: list[str] = field(default_factory=list)


def insight_message(template_key: str, client_name: str, days: int) -> str:
    # Stored as a template reference so the coach UI can localize it.
    return json.dumps(
        {"templateKey": template_key, "params": {"name": client_name, "days": days}},
        separators=(",", ":"),
    )


def has_recovered(trigger_type: TriggerType, analysis: ActivityAnalysis) -> bool:
    match trigger_type:
        case TriggerType.INACTIVITY:
            return analysis.days_since_any < 2
        case TriggerType.NUTRITION_CONCERN:
            return analysis.days_since_meal < 2
        case TriggerType.MISSED_WORKOUT:
            return analysis.days_since_workout < 3
        case _:
            assert_never(trigger_type)


def _trigger(
    trigger_type: TriggerType, severity: TriggerSeverity, template: str, client_name: str, days: int
) -> DetectedTrigger:
    return DetectedTrigger(
        type=trigger_type,
        severity=severity,
        reason=insight_message(f"{template}Reason", client_name, days),
        recommended_action=insight_message(f"{template}Action", client_name, days),
    )


def detect_triggers_from_analysis(analysis: ActivityAnalysis, client_name: str) -> list[DetectedTrigger]:
    """Evaluate the trigger rules in priority order.

    Inactivity covers the whole client, so when it fires the narrower
    nutrition and workout rules are skipped.
    """
    days_idle = analysis.days_since_any
    if days_idle >= 5:
        return [_trigger(TriggerType.INACTIVITY, TriggerSeverity.HIGH, "inactivityHigh", client_name, days_idle)]
    if days_idle >= 3:
        return [_trigger(TriggerType.INACTIVITY, TriggerSeverity.MEDIUM, "inactivityMedium", client_name, days_idle)]

    triggers: list[DetectedTrigger] = []
    if analysis.has_nutrition_goals and analysis.days_since_meal >= 3:
        severity = TriggerSeverity.HIGH if analysis.days_since_meal >= 5 else TriggerSeverity.MEDIUM
        triggers.append(
            _trigger(TriggerType.NUTRITION_CONCERN, severity, "nutritionConcern", client_name, analysis.days_since_meal)
        )
    if analysis.has_workout_goals and analysis.days_since_workout >= 4:
        severity = TriggerSeverity.HIGH if analysis.days_since_workout >= 7 else TriggerSeverity.MEDIUM
        triggers.append(
            _trigger(TriggerType.MISSED_WORKOUT, severity, "missedWorkout", client_name, analysis.days_since_workout)
        )
    return triggers


class InsightDetector:
    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def _open_triggers_by_type(
        self, client: Client, now: datetime, result: InsightResult
    ) -> dict[TriggerType, EngagementTrigger]:
        by_type: dict[TriggerType, EngagementTrigger] = {}
        for trigger in self.repo.list_unresolved_triggers(client.id):
            trigger_type = TriggerType(trigger.type)
            if trigger_type in by_type:
                # Keep the oldest open trigger; extra copies break the one-open-per-type rule.
                logger.warning("insight_duplicate_resolved client_id=%s trigger_id=%s", client.id, trigger.id)
                self.repo.resolve_trigger(trigger, now)
                result.resolved += 1
                continue
            if trigger.coach_id != client.coach_id:
                # Open triggers follow the client to their current coach.
                logger.info(
                    "insight_reassigned client_id=%s trigger_id=%s coach_id=%s",
                    client.id,
                    trigger.id,
                    client.coach_id,
                )
                trigger.coach_id = client.coach_id
            by_type[trigger_type] = trigger
        return by_type

    def detect_for_client(self, client: Client, now: Optional[datetime] = None) -> InsightResult:
        result = InsightResult()
        if not client.coach_id:
            return result
        timestamp = now or datetime.utcnow()
        analysis = analyze_client_activity(self.repo, client, today=timestamp.date())

        open_triggers = self._open_triggers_by_type(client, timestamp, result)
        for trigger_type, trigger in list(open_triggers.items()):
            if has_recovered(trigger_type, analysis):
                self.repo.resolve_trigger(trigger, timestamp)
                del open_triggers[trigger_type]
                result.resolved += 1
                logger.debug(
                    "insight_resolved client_id=%s trigger_id=%s type=%s",
                    client.id,
                    trigger.id,
                    trigger_type.value,
                )

        for detected in detect_triggers_from_analysis(analysis, client.name):
            existing = open_triggers.get(detected.type)
            if existing is None:
                self.repo.create_trigger(
                    client_id=client.id,
                    coach_id=client.coach_id,
                    type=detected.type.value,
                    severity=detected.severity.value,
                    reason=detected.reason,
                    recommended_action=detected.recommended_action,
                    is_resolved=False,
                    detected_at=timestamp,
                    created_at=timestamp,
                )
                result.created += 1
                logger.info(
                    "insight_created client_id=%s type=%s severity=%s",
                    client.id,
                    detected.type.value,
                    detected.severity.value,
                )
                continue

            current = TriggerSeverity(existing.severity)
            escalated = detected.severity.rank > current.rank
            if not escalated and existing.reason == detected.reason:
                continue
            # Severity only moves up; a lower reading refreshes the text alone.
            existing.severity = (detected.severity if escalated else current).value
            existing.reason = detected.reason
            existing.recommended_action = detected.recommended_action
            if escalated:
                result.escalated += 1
                logger.info(
                    "insight_escalated client_id=%s type=%s from=%s to=%s",
                    client.id,
                    detected.type.value,
                    current.value,
                    detected.severity.value,
                )
            else:
                logger.debug("insight_refreshed client_id=%s type=%s", client.id, detected.type.value)

        self.repo.commit()
        return result

    def detect_all_clients(self, now: Optional[datetime] = None) -> InsightCycleResult:
        cycle = InsightCycleResult()
        clients = self.repo.list_active_clients_with_coach()
        logger.info("insight_cycle_started clients=%s", len(clients))
        for client in clients:
            client_id = client.id
            try:
                result = self.detect_for_client(client, now=now)
            except Exception:
                logger.exception("insight_client_failed client_id=%s", client_id)
                self.repo.rollback()
                cycle.failed_clients += 1
                cycle.failed_client_ids.append(client_id)
                continue
            cycle.processed_clients += 1
            cycle.created_triggers += result.created
            cycle.resolved_triggers += result.resolved
            cycle.escalated_triggers += result.escalated
        logger.info(
            "insight_cycle_complete processed=%s created=%s resolved=%s escalated=%s failed=%s",
            cycle.processed_clients,
            cycle.created_triggers,
            cycle.resolved_triggers,
            cycle.escalated_triggers,
            cycle.failed_clients,
        )
        return cycle
