import math

import pytest

from gbasic.basic_printer import Printer, display


@pytest.fixture
def printer():
    return Printer(indent_width=2)


# Test cases: (id, object, expected_string)
FORMAT_TEST_CASES = [
    ("str", "hello", '"hello"'),
    ("str_escapes", 'a"b\n', '"a\\"b\\n"'),
    ("int", 123, "123"),
    ("float", -1.5, "-1.5"),
    ("nan", math.nan, "NaN"),
    ("inf", -math.inf, "-Infinity"),
    ("bool_true", True, "true"),
    ("bool_false", False, "false"),
    ("none", None, "null"),
    ("empty_array", [], "[]"),
    ("array", [1, "a", None], '[1, "a", null]'),
    ("empty_map", {}, "#{}"),
    ("map", {"a": 1, "b c": [True]}, '#{a: 1, "b c": [true]}'),
]


@pytest.mark.parametrize("test_id, obj, expected", FORMAT_TEST_CASES, ids=[c[0] for c in FORMAT_TEST_CASES])
def test_pformat(printer, test_id, obj, expected):
    assert printer.pformat(obj) == expected


def test_long_values_wrap(printer):
    value = {"key": "x" * 40, "other": "y" * 40}
    assert printer.pformat(value) == '#{\n  key: "' + "x" * 40 + '",\n  other: "' + "y" * 40 + '"\n}'


@pytest.mark.parametrize("value, expected", [
    (None, ""),
    (True, "true"),
    ("raw", "raw"),
    (3, "3"),
    (2.5, "2.5"),
    ([1, "a"], '[1, "a"]'),
    ({"k": None}, '{"k": null}'),
])
def test_display(value, expected):
    assert display(value) == expected
