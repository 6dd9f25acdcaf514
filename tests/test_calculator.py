"""Tests for the calculator addon."""

import pint
import pytest

from quickrun.addons import calculator
from quickrun.addons.calculator import evaluate, CalcError, format_number
from quickrun.addons.parse import COPY


@pytest.mark.parametrize("text,expected", [
    ("2+2", 4),
    ("sqrt(16)", 4),
    ("2 * (3 + 4)", 14),
    ("2^3^2", 512),
    ("-2^2", -4),
    ("7 % 3", 1),
    ("10 / 4", 2.5),
    ("abs(-3) + floor(2.7)", 5),
    ("log(1000)", 3),
    ("2*pi", 2 * 3.141592653589793),
])
def test_evaluate(text, expected):
    assert evaluate(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", [
    "1/0", "5 % 0", "42", "pi", "", "2+", "foo(2)", "2 $ 3", "sqrt(-1)", "(1+2",
])
def test_not_a_calculation(text):
    with pytest.raises(CalcError):
        evaluate(text)


def test_overflow_is_rejected():
    with pytest.raises(CalcError):
        evaluate("10^400")


def test_format_number():
    assert format_number(4.0) == "4"
    assert format_number(-12.0) == "-12"
    assert format_number(2.5) == "2.5"
    assert format_number(1 / 3) == "0.3333333333"
    assert format_number(1e20) == "1e+20"


def test_handle_builds_copy_item():
    items = calculator.handle(calculator.parse("2+2"))
    assert len(items) == 1
    item = items[0]
    assert item.title == "2+2 = 4"
    assert item.value == "4"
    assert item.kind == "calculator"
    assert item.action.kind == COPY
    assert item.action.payload == "4"


def test_division_by_zero_declines():
    assert calculator.parse("1/0") is None


def test_unit_conversion():
    p = calculator.parse("1 km to m")
    assert p.command == "convert_units"
    assert p.args["result"] == pytest.approx(1000)
    items = calculator.handle(p)
    assert items[0].title == "1 km = 1000 m"


def test_temperature_alias():
    p = calculator.parse("100 celsius to fahrenheit")
    assert p.args["result"] == pytest.approx(212)


def test_unknown_unit_declines():
    assert calculator.parse("3 bananas to apples") is None


def test_unit_registry_ready_at_import():
    assert isinstance(calculator._ureg, pint.UnitRegistry)
