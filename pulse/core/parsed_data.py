"""Typed shapes for the two AI passes over a smart log.

The classifier returns an ``AIClassification``; the extractor returns an
``AIParsedData`` whose optional sub-records are the evidence found for each
category. Both are validated leniently: a malformed sub-record is dropped
rather than failing the whole payload.
"""

import logging
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pulse.core.enums import EventCategory

logger = logging.getLogger(__name__)

EXTRACTION_MIN_CONFIDENCE = 0.3


def _clamp_unit_interval(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, number))


class AIClassification(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    detected_event_types: list[EventCategory] = Field(default_factory=list)
    has_weight: bool = False
    has_nutrition: bool = False
    has_workout: bool = False
    has_steps: bool = False
    has_sleep: bool = False
    has_mood: bool = False
    overall_confidence: float = 0.0

    @field_validator("detected_event_types", mode="before")
    @classmethod
    def _known_categories(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        known = {item.value for item in EventCategory}
        return [str(item) for item in value if str(item) in known]

    @field_validator("overall_confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return _clamp_unit_interval(value)

    @classmethod
    def degraded(cls) -> "AIClassification":
        return cls(detected_event_types=[EventCategory.NOTE], overall_confidence=0.5)

    def has_any_category(self) -> bool:
        return any(
            (
                self.has_weight,
                self.has_nutrition,
                self.has_workout,
                self.has_steps,
                self.has_sleep,
                self.has_mood,
            )
        )

    def warrants_extraction(self) -> bool:
        return self.overall_confidence >= EXTRACTION_MIN_CONFIDENCE and self.has_any_category()


class _Evidence(BaseModel):
    model_config = ConfigDict(extra="ignore")

    category: ClassVar[EventCategory]
    review_threshold: ClassVar[float] = 0.7

    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return _clamp_unit_interval(value)

    @property
    def needs_review(self) -> bool:
        return self.confidence < self.review_threshold


class ParsedWeight(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.WEIGHT
    review_threshold: ClassVar[float] = 0.8

    value: float
    unit: str = "kg"

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, value: Any) -> str:
        lowered = str(value or "kg").strip().lower()
        if lowered in {"lb", "lbs", "pound", "pounds"}:
            return "lbs"
        return "kg"


class ParsedNutrition(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.NUTRITION

    food_description: Optional[str] = None
    calories: Optional[float] = None
    calories_est: Optional[float] = None
    protein_g: Optional[float] = None
    protein_est_g: Optional[float] = None
    carbs_g: Optional[float] = None
    carbs_est_g: Optional[float] = None
    fat_g: Optional[float] = None
    fat_est_g: Optional[float] = None
    source: str = "logged"
    estimated: bool = False


class ParsedWorkout(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.WORKOUT

    type: str = "unknown"
    body_focus: list[str] = Field(default_factory=list)
    duration_min: Optional[float] = None
    intensity: str = "unknown"
    notes: Optional[str] = None


class ParsedSteps(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.STEPS
    review_threshold: ClassVar[float] = 0.8

    steps: int
    source: str = "manual"


class ParsedSleep(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.SLEEP

    hours: float
    quality: Optional[str] = None


class ParsedMood(_Evidence):
    category: ClassVar[EventCategory] = EventCategory.CHECKIN_MOOD

    rating: int = Field(ge=1, le=10)
    notes: Optional[str] = None


CategoryEvidence = Union[ParsedWeight, ParsedNutrition, ParsedWorkout, ParsedSteps, ParsedSleep, ParsedMood]

# Key in the extractor payload -> evidence model, in materialization order.
_EVIDENCE_FIELDS: tuple[tuple[str, type[_Evidence]], ...] = (
    ("weight", ParsedWeight),
    ("nutrition", ParsedNutrition),
    ("workout", ParsedWorkout),
    ("steps", ParsedSteps),
    ("sleep", ParsedSleep),
    ("mood", ParsedMood),
)


class AIParsedData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    weight: Optional[ParsedWeight] = None
    nutrition: Optional[ParsedNutrition] = None
    workout: Optional[ParsedWorkout] = None
    steps: Optional[ParsedSteps] = None
    sleep: Optional[ParsedSleep] = None
    mood: Optional[ParsedMood] = None

    @classmethod
    def from_llm(cls, raw: Any) -> "AIParsedData":
        if not isinstance(raw, dict):
            return cls()
        values: dict[str, _Evidence] = {}
        for key, model in _EVIDENCE_FIELDS:
            item = raw.get(key)
            if not isinstance(item, dict):
                continue
            try:
                values[key] = model.model_validate(item)
            except ValidationError as exc:
                logger.warning("parsed_data_dropped category=%s errors=%s", key, exc.error_count())
        return cls(**values)

    def evidence(self) -> list[CategoryEvidence]:
        found = [getattr(self, key) for key, _ in _EVIDENCE_FIELDS]
        return [item for item in found if item is not None]

    def is_empty(self) -> bool:
        return not self.evidence()

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
