import pytest

from wenyan.wenyan_lexer import tokenize
from wenyan.wenyan_parser import parse
from wenyan.wenyan_serialize import (
    serialize, deserialize, tokens_to_data, tokens_from_data, ast_to_data, ast_from_data,
)

SOURCE = "\n".join([
    "《志者》曰：曰。",
    "涵义【倍】，需知 数【甲】：",
    "  若 甲 大于 1：",
    "    求 甲 乘 2。",
    "  又若 甲 是 1：",
    "    求 “一”。",
    "  否则：",
    "    求 0。",
    "重复 2 遍，以【i】：",
    "  曰 已知【内容】为 （倍 已知【甲】为 i），【又】为 1万。",
    "当 阴：",
    "  设 乙 为 阳。",
])


@pytest.fixture
def tokens():
    return tokenize(SOURCE)


@pytest.fixture
def program(tokens):
    return parse(tokens)


def test_tokens_to_data(tokens):
    data = tokens_to_data(tokens)
    assert data[0] == {"kind": "IMPORT_SYMBOL", "text": "志者", "line": 1, "column": 1}
    assert tokens_from_data(data) == tokens


def test_ast_to_data_shape(program):
    data = ast_to_data(program)
    assert data["type"] == "PROGRAM"
    fn = data["body"][1]
    assert fn["type"] == "FUNCTION_DECLARATION"
    assert fn["parameters"] == [{"type": "PARAMETER", "type_name": "数", "name": "甲", "line": 2, "column": 10}]
    call = data["body"][2]["body"][0]
    assert [arg["name"] for arg in call["arguments"]] == ["内容", "又"]
    assert call["arguments"][1]["value"] == {"type": "NUMBER_LITERAL", "value": 1, "raw": "1万", "line": 10, "column": 31}


def test_ast_round_trip(program):
    assert ast_from_data(ast_to_data(program)) == program


@pytest.mark.parametrize("fmt", ["json", "yaml"])
def test_text_round_trip(program, fmt):
    text = serialize(program, fmt=fmt)
    assert ast_from_data(deserialize(text, fmt=fmt)) == program


def test_json_output_is_deterministic_and_readable(program):
    text = serialize(program, fmt="json")
    assert text == serialize(program, fmt="json")
    assert "“" not in text
    assert "志者" in text


def test_serialize_token_list(tokens):
    assert deserialize(serialize(tokens, fmt="yaml"), fmt="yaml") == tokens_to_data(tokens)


def test_plain_data_round_trip():
    value = {"a": 1, "b": ["x", "甲"], "c": {"d": True}}
    assert deserialize(serialize(value, fmt="json"), fmt="json") == value
    assert deserialize(serialize(value, fmt="yaml"), fmt="yaml") == value


def test_unsupported_format():
    with pytest.raises(ValueError):
        serialize({}, fmt="toml")
    with pytest.raises(ValueError):
        deserialize("", fmt="xml")


def test_unknown_node_type():
    with pytest.raises(ValueError):
        ast_from_data({"type": "LOOP"})
