from pulse.core.enums import EventCategory
from pulse.core.parsed_data import AIClassification, AIParsedData


def test_classification_clamps_confidence_and_drops_unknown_categories() -> None:
    classification = AIClassification.model_validate(
        {"detected_event_types": ["weight", "vibes"], "has_weight": True, "overall_confidence": 1.7}
    )
    assert classification.detected_event_types == [EventCategory.WEIGHT]
    assert classification.overall_confidence == 1.0


def test_degraded_classification_is_a_note() -> None:
    classification = AIClassification.degraded()
    assert classification.detected_event_types == [EventCategory.NOTE]
    assert classification.overall_confidence == 0.5
    assert classification.warrants_extraction() is False


def test_low_confidence_does_not_warrant_extraction() -> None:
    classification = AIClassification(has_nutrition=True, overall_confidence=0.29)
    assert classification.warrants_extraction() is False
    assert AIClassification(has_nutrition=True, overall_confidence=0.3).warrants_extraction() is True


def test_invalid_sub_record_is_dropped_without_losing_the_rest() -> None:
    parsed = AIParsedData.from_llm(
        {
            "mood": {"rating": 42, "confidence": 0.9},
            "sleep": {"hours": 6, "confidence": 0.8},
            "weight": "heavy",
        }
    )
    assert parsed.mood is None
    assert parsed.weight is None
    assert parsed.sleep is not None
    assert parsed.to_json() == {"sleep": {"confidence": 0.8, "hours": 6.0}}


def test_non_dict_payload_is_empty() -> None:
    assert AIParsedData.from_llm(["weight"]).is_empty()
