import json
import math

import pytest

from gbasic import basic_bridge
from gbasic.basic_bridge import to_json, from_json, dumps, loads
from gbasic.basic_errors import KeywordError
from gbasic.basic_values import clone_value, is_dynamic, is_truthy, kind_of, type_name, values_equal


SAMPLES = [
    None,
    True,
    0,
    -(2 ** 63),
    1.5,
    "",
    "héllo",
    [],
    [1, "two", 3.0, None, [True]],
    {},
    {"name": "Ada", "tags": ["x", "y"], "nested": {"n": 1, "f": 2.25, "none": None}},
]


@pytest.mark.parametrize("value", SAMPLES)
def test_round_trip_is_lossless(value):
    back = from_json(to_json(value))
    assert values_equal(back, value)
    assert to_json(back) == to_json(value)


@pytest.mark.parametrize("value", SAMPLES)
def test_round_trip_through_text(value):
    assert values_equal(loads(dumps(value)), value)


def test_int_and_float_keep_their_kind():
    assert kind_of(from_json(json.loads("3"))) == "int"
    assert kind_of(from_json(json.loads("3.0"))) == "float"


def test_map_entries_are_neither_lost_nor_duplicated():
    value = {f"k{i}": i for i in range(50)}
    assert to_json(value) == value
    assert len(from_json(to_json(value))) == 50


def test_opaque_values_degrade_to_tagged_string():
    class Widget:
        pass
    assert to_json(Widget()) == "<opaque:Widget>"
    assert to_json({"w": Widget()}) == {"w": "<opaque:Widget>"}
    assert from_json(Widget()) == "<opaque:Widget>"


def test_non_finite_floats_become_null():
    assert to_json(math.inf) is None
    assert to_json([math.nan]) == [None]


def test_tuples_and_non_string_keys():
    assert to_json((1, 2)) == [1, 2]
    assert to_json({1: "a"}) == {"1": "a"}


def test_cycles_from_python_degrade():
    a = []
    a.append(a)
    assert to_json(a) == ["<opaque:cycle>"]


def test_shared_references_are_not_cycles():
    shared = [1]
    assert to_json([shared, shared]) == [[1], [1]]


def test_loads_rejects_malformed_text():
    with pytest.raises(KeywordError) as excinfo:
        loads("{nope")
    assert "Invalid JSON" in excinfo.value.message


def test_loads_accepts_bytes():
    assert loads(b'{"a": [1, 2]}') == {"a": [1, 2]}


def test_dumps_pretty():
    assert dumps({"a": 1}, pretty=True) == '{\n  "a": 1\n}'
    assert basic_bridge.dumps("é") == '"é"'


def test_kind_of_distinguishes_bool_from_int():
    assert kind_of(True) == "bool"
    assert kind_of(1) == "int"
    assert type_name([]) == "ARRAY"
    assert kind_of(object()) == "opaque"


def test_is_dynamic():
    assert is_dynamic({"a": [1, None, {"b": "c"}]})
    assert not is_dynamic({"a": object()})
    assert not is_dynamic({1: "a"})


def test_values_equal_is_strict():
    assert not values_equal(1, 1.0)
    assert values_equal(math.nan, math.nan)
    assert not values_equal(True, 1)


def test_clone_value_copies_containers():
    original = {"items": [1, 2]}
    copy = clone_value(original)
    copy["items"].append(3)
    assert original == {"items": [1, 2]}


@pytest.mark.parametrize("value, expected", [
    (None, False), (0, False), (0.0, False), ("", False), ([], False), ({}, False),
    (1, True), ("0", True), ([0], True), (True, True), (False, False),
])
def test_truthiness(value, expected):
    assert is_truthy(value) is expected
