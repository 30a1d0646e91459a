import json

from pulse.core.activity import ActivityAnalysis
from pulse.core.enums import TriggerSeverity, TriggerType
from pulse.services.insights import detect_triggers_from_analysis, has_recovered


def _analysis(meal: int, workout: int, checkin: int, workout_goal: bool = True, nutrition_goal: bool = True):
    return ActivityAnalysis(
        days_since_meal=meal,
        days_since_workout=workout,
        days_since_checkin=checkin,
        has_active_goals=workout_goal or nutrition_goal,
        has_workout_goals=workout_goal,
        has_nutrition_goals=nutrition_goal,
    )


def test_inactivity_suppresses_narrower_rules() -> None:
    triggers = detect_triggers_from_analysis(_analysis(9, 9, 6), "Sam")
    assert [(t.type, t.severity) for t in triggers] == [(TriggerType.INACTIVITY, TriggerSeverity.HIGH)]
    reason = json.loads(triggers[0].reason)
    assert reason == {"templateKey": "inactivityHighReason", "params": {"name": "Sam", "days": 6}}


def test_medium_inactivity_between_three_and_five_days() -> None:
    triggers = detect_triggers_from_analysis(_analysis(4, 3, 4), "Sam")
    assert [(t.type, t.severity) for t in triggers] == [(TriggerType.INACTIVITY, TriggerSeverity.MEDIUM)]


def test_goal_rules_need_matching_goals() -> None:
    analysis = _analysis(meal=5, workout=8, checkin=0, workout_goal=False, nutrition_goal=False)
    assert detect_triggers_from_analysis(analysis, "Sam") == []

    analysis = _analysis(meal=5, workout=4, checkin=0)
    found = {(t.type, t.severity) for t in detect_triggers_from_analysis(analysis, "Sam")}
    assert found == {
        (TriggerType.NUTRITION_CONCERN, TriggerSeverity.HIGH),
        (TriggerType.MISSED_WORKOUT, TriggerSeverity.MEDIUM),
    }


def test_recovery_thresholds_sit_below_firing_thresholds() -> None:
    recent = _analysis(meal=1, workout=2, checkin=1)
    assert has_recovered(TriggerType.INACTIVITY, recent)
    assert has_recovered(TriggerType.NUTRITION_CONCERN, recent)
    assert has_recovered(TriggerType.MISSED_WORKOUT, recent)

    lagging = _analysis(meal=2, workout=3, checkin=2)
    assert not has_recovered(TriggerType.INACTIVITY, lagging)
    assert not has_recovered(TriggerType.NUTRITION_CONCERN, lagging)
    assert not has_recovered(TriggerType.MISSED_WORKOUT, lagging)
