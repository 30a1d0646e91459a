from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, assert_never

from pulse.core.enums import EventCategory
from pulse.core.parsed_data import (
    AIParsedData,
    CategoryEvidence,
    ParsedMood,
    ParsedNutrition,
    ParsedSleep,
    ParsedSteps,
    ParsedWeight,
    ParsedWorkout,
)
from pulse.core.units import weight_to_kg


@dataclass(frozen=True)
class ProgressEventDraft:
    client_id: str
    smart_log_id: Optional[str]
    event_type: EventCategory
    date_for_metric: date
    data_json: dict[str, Any]
    confidence: float
    needs_review: bool


def _logged_or_estimated(logged: Optional[float], estimated: Optional[float]) -> tuple[Optional[float], bool]:
    # A zero logged value is treated as missing, matching how the extractor reports gaps.
    value = logged or estimated
    return value, bool(estimated)


def _nutrition_payload(item: ParsedNutrition) -> dict[str, Any]:
    calories, calories_estimated = _logged_or_estimated(item.calories, item.calories_est)
    protein, protein_estimated = _logged_or_estimated(item.protein_g, item.protein_est_g)
    carbs, carbs_estimated = _logged_or_estimated(item.carbs_g, item.carbs_est_g)
    fat, fat_estimated = _logged_or_estimated(item.fat_g, item.fat_est_g)
    return {
        "calories": calories,
        "calories_estimated": calories_estimated,
        "protein_g": protein,
        "protein_estimated": protein_estimated,
        "carbs_g": carbs,
        "carbs_estimated": carbs_estimated,
        "fat_g": fat,
        "fat_estimated": fat_estimated,
        "source": item.source,
        "estimated": item.estimated,
        "food_description": item.food_description,
    }


def _payload_for(item: CategoryEvidence) -> dict[str, Any]:
    match item:
        case ParsedWeight():
            return {
                "value": item.value,
                "unit": item.unit,
                "value_kg": weight_to_kg(item.value, item.unit),
            }
        case ParsedNutrition():
            return _nutrition_payload(item)
        case ParsedWorkout():
            return {
                "type": item.type,
                "body_focus": list(item.body_focus),
                "duration_min": item.duration_min,
                "intensity": item.intensity,
                "notes": item.notes,
            }
        case ParsedSteps():
            return {"steps": item.steps, "source": item.source}
        case ParsedSleep():
            return {"hours": item.hours, "quality": item.quality}
        case ParsedMood():
            return {"rating": item.rating, "notes": item.notes}
        case _:
            assert_never(item)


def materialize_events(
    parsed: AIParsedData,
    client_id: str,
    smart_log_id: Optional[str],
    date_for_metric: date,
) -> list[ProgressEventDraft]:
    """Turn extracted evidence into at most one event draft per category.

    Order is fixed (weight, nutrition, workout, steps, sleep, mood) so callers
    and tests can rely on it. ``needs_review`` is set when the category's
    confidence falls below its acceptance threshold.
    """
    return [
        ProgressEventDraft(
            client_id=client_id,
            smart_log_id=smart_log_id,
            event_type=item.category,
            date_for_metric=date_for_metric,
            data_json=_payload_for(item),
            confidence=item.confidence,
            needs_review=item.needs_review,
        )
        for item in parsed.evidence()
    ]
