import pytest

from chatvault.core.errors import ParseError, ValidationError
from chatvault.memory.llm_json import parse_json, parse_model, strip_fences
from chatvault.memory.schema import EntityExtraction, MemoryVerdict


def test_strip_fences():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_parse_json_with_prose_around_object():
    assert parse_json('Sure! Here you go: {"store": true} hope that helps') == {"store": True}


def test_parse_json_repairs_broken_output():
    data = parse_json('{"store": true, "name": "Dark mode", "memory": "User prefers dark mode",}')
    assert data["memory"] == "User prefers dark mode"


def test_parse_json_empty_raises():
    with pytest.raises(ParseError):
        parse_json("")


def test_parse_json_without_repair_raises():
    with pytest.raises(ParseError):
        parse_json("{not json", allow_repair=False)


def test_parse_model_ok_and_coercion():
    result = parse_model('{"store": true, "name": null, "memory": "  User is vegan  "}', MemoryVerdict)
    verdict = result.unwrap()
    assert verdict.store is True
    assert verdict.name == ""
    assert verdict.memory == "User is vegan"


def test_parse_model_non_object_is_parse_error():
    result = parse_model("[1, 2, 3]", MemoryVerdict)
    assert not result.is_ok()
    assert isinstance(result.error, ParseError)


def test_parse_model_schema_mismatch_is_validation_error():
    result = parse_model('{"store": {"nested": 1}}', MemoryVerdict)
    assert not result.is_ok()
    assert isinstance(result.error, ValidationError)


def test_entity_extraction_normalises_entries():
    text = '{"entities": [{"name": "  Postgre  SQL ", "type": "", "facts": ["a", null, " ", "b"]}]}'
    entity = parse_model(text, EntityExtraction).unwrap().entities[0]
    assert entity.name == "Postgre SQL"
    assert entity.type == "Unknown"
    assert entity.facts == ["a", "b"]
