import math

import pytest

from wenyan.wenyan_ast import BinaryExpression, FunctionCall, Identifier, NumberLiteral
from wenyan.wenyan_datatypes import BuiltinFunction, ValueDescriptor
from wenyan.wenyan_parser import parse_source
from wenyan.wenyan_printer import Printer


@pytest.fixture
def printer():
    return Printer(indent_width=2)


# Test cases: (id, object, expected_string)
FORMAT_TEST_CASES = [
    ("str", "你好", "“你好”"),
    ("int", 123, "123"),
    ("float", 2.5, "2.5"),
    ("integral_float", 4.0, "4"),
    ("nan", math.nan, "NaN"),
    ("bool_true", True, "阳"),
    ("bool_false", False, "阴"),
    ("none", None, "无"),
    ("function", BuiltinFunction("曰", lambda args, vm: None, []), "涵义【曰】"),
    ("descriptor", ValueDescriptor("数", 3), "【数】3"),
    ("symbols", {"版本": "1.0.0"}, "【版本】为 “1.0.0”"),
]


@pytest.mark.parametrize("case_id, obj, expected", FORMAT_TEST_CASES, ids=[c[0] for c in FORMAT_TEST_CASES])
def test_pformat_values(printer, case_id, obj, expected):
    assert printer.pformat(obj) == expected


def test_nested_binary_operands_are_parenthesised(printer):
    left_heavy = BinaryExpression(
        BinaryExpression(NumberLiteral(1), "加", NumberLiteral(2)), "乘", NumberLiteral(3))
    assert printer.pformat(left_heavy) == "（1 加 2） 乘 3。"


def test_nested_call_is_parenthesised(printer):
    expr = BinaryExpression(FunctionCall("倍", {"甲": NumberLiteral(2)}), "加", Identifier("乙"))
    assert printer.pformat(expr) == "（倍 已知【甲】为 2） 加 乙。"


def test_number_keeps_its_raw_spelling(printer):
    assert printer.pformat(NumberLiteral(1, "1万")) == "1万。"


CANONICAL_PROGRAMS = [
    "\n".join([
        "《志者》曰：曰。",
        "涵义【阶乘】，需知 数【n】：",
        "  若 n 至多 1：",
        "    求 1。",
        "  求 n 乘 （阶乘 已知【n】为 n 减 1）。",
        "设【数】结果 为 （阶乘 已知【n】为 5）。",
        "曰 已知【内容】为 结果。",
    ]),
    "\n".join([
        "设【数】甲 为 0。",
        "当 甲 小于 3：",
        "  设 甲 为 甲 加 1。",
        "重复 2 遍，以【i】：",
        "  若 i 是 1：",
        "    甲。",
        "  又若 i 是 2：",
        "    “二”。",
        "  否则：",
        "    阳。",
    ]),
    "\n".join([
        "涵义【施】，需知 涵义【f】，数【v】：",
        "  求 （f 已知【x】为 v）。",
        "施 已知【f】为 “倍”，【v】为 1。",
        "涵义【空】：",
        "  空 已知。",
    ]),
]


@pytest.mark.parametrize("source", CANONICAL_PROGRAMS)
def test_canonical_source_round_trips(printer, source):
    program = parse_source(source)
    assert printer.pformat(program) == source
    assert parse_source(printer.pformat(program)) == program


def test_reformatting_normalises_layout(printer):
    program = parse_source("若 阳：设【数】甲 为 1。否则：设【数】甲 为 2。")
    text = printer.pformat(program)
    assert text == "若 阳：\n  设【数】甲 为 1。\n否则：\n  设【数】甲 为 2。"
    reparsed = parse_source(text)
    assert printer.pformat(reparsed) == text
