import math

from chatvault.memory.vectors import EMPTY_VECTOR, cosine, cosine_json, parse_vector, to_json


def test_cosine_basic():
    assert math.isclose(cosine([1, 0], [1, 0]), 1.0)
    assert math.isclose(cosine([1, 0], [0, 1]), 0.0)
    assert math.isclose(cosine([1, 1], [-1, -1]), -1.0)


def test_cosine_degenerate_inputs_are_zero():
    assert cosine([], [1]) == 0.0
    assert cosine([1, 2], [1]) == 0.0
    assert cosine([0, 0], [1, 1]) == 0.0


def test_parse_vector_tolerates_garbage():
    assert parse_vector(None) == []
    assert parse_vector("not json") == []
    assert parse_vector('{"a": 1}') == []
    assert parse_vector('[1, "x"]') == []
    assert parse_vector("[1, 2.5]") == [1.0, 2.5]


def test_json_helpers():
    assert to_json([]) == EMPTY_VECTOR
    assert to_json(None) == EMPTY_VECTOR
    assert math.isclose(cosine_json(to_json([3, 4]), "[3, 4]"), 1.0)
    assert cosine_json("[]", "[1]") == 0.0


def test_cosine_is_symmetric():
    pairs = [
        ([1, 2, 3], [3, 2, 1]),
        ([0.5, -1.25, 4], [2, 0, -3]),
        ([1, 0], [0, 0]),
        ([], [1, 2]),
    ]
    for v, w in pairs:
        assert cosine(v, w) == cosine(w, v)
