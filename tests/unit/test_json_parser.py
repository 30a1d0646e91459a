import pytest

from pulse.services.llm import parse_llm_json


def test_parse_llm_json_valid() -> None:
    payload = parse_llm_json('{"has_weight":true,"overall_confidence":0.9}')
    assert payload["has_weight"] is True


def test_parse_llm_json_recovers_wrapped_object() -> None:
    payload = parse_llm_json('Here you go:\n```json\n{"has_sleep": true}\n```')
    assert payload == {"has_sleep": True}


def test_parse_llm_json_malformed_raises() -> None:
    with pytest.raises(ValueError):
        parse_llm_json('{"has_weight":true,}')


def test_parse_llm_json_rejects_arrays() -> None:
    with pytest.raises(ValueError):
        parse_llm_json('["weight"]')
