import textwrap

import pytest

from wenyan.wenyan_ast import Program
from wenyan.wenyan_datatypes import (
    ClassType, RawValueAdapter, BuiltinFunction, ModuleLibrary, TypedValueDeclaration,
    WenyanTypeError, InternalError, to_number, NUMBER_CLASS, TEXT_CLASS,
)
from wenyan.wenyan_parser import parse_source
from wenyan.wenyan_runtime import Runtime, ScriptRunner, ExecutionResult


def make_runner(**kwargs):
    lines = []
    runner = ScriptRunner(output=lines.append, **kwargs)
    return runner, lines


def run_wenyan(src: str, **kwargs):
    runner, lines = make_runner(**kwargs)
    return runner.handle_script(textwrap.dedent(src).strip()), lines


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got success: {res.value!r}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"error did not contain {contains!r}: {res.error_message!r}"


def stdout(res):
    return [e['message'] for e in res.side_effects if e.get('topics') == ['stdout']]


# --- Scenarios ---

def test_hello_world():
    res, lines = run_wenyan("""
        《志者》曰：曰。
        曰 已知【内容】为 “你好”。
    """)
    assert_ok(res, "你好")
    assert lines == ["你好"]
    assert stdout(res) == ["你好"]


def test_declare_then_call_with_return():
    res, _ = run_wenyan("""
        涵义【和】，需知 数【甲】，数【乙】：
          求 甲 加 乙。
        和 已知【甲】为 2，【乙】为 3。
    """)
    assert_ok(res, 5)


def test_program_value_is_the_last_statement():
    res, _ = run_wenyan("""
        设【数】甲 为 1。
        甲 加 41。
    """)
    assert_ok(res, 42)


def test_counting_loop_prints_each_step():
    res, lines = run_wenyan("""
        《志者》曰：曰。
        设【数】甲 为 0。
        当 甲 小于 3：
          设 甲 为 甲 加 1。
          曰 已知【内容】为 甲。
    """)
    assert_ok(res)
    assert lines == ["1", "2", "3"]


def test_falsy_while_runs_zero_times():
    res, lines = run_wenyan("""
        《志者》曰：曰。
        当 阴：
          曰 已知【内容】为 “不应出现”。
    """)
    assert_ok(res)
    assert res.value is None
    assert lines == []
    assert stdout(res) == []


def test_repeat_counter_output():
    res, lines = run_wenyan("""
        《志者》曰：曰。
        重复 3 遍，以【次】：
          曰 已知【内容】为 次。
    """)
    assert_ok(res)
    assert lines == ["1", "2", "3"]


def test_input_uses_the_configured_reader():
    prompts = []

    def reader(prompt):
        prompts.append(prompt)
        return "李"

    res, _ = run_wenyan("""
        《志者》曰：倾。
        设【文言】名 为 倾 已知【提示】为 “名？”。
        名。
    """, input=reader)
    assert_ok(res, "李")
    assert prompts == ["名？"]


# --- Boundaries ---

def test_undeclared_function_is_a_lookup_error():
    res, _ = run_wenyan("未有 已知【甲】为 1。")
    assert_error(res, "LookupError")
    assert_error(res, "not yet defined")


def test_unknown_type_is_a_type_error():
    res, _ = run_wenyan("设【龙】甲 为 1。")
    assert_error(res, "TypeError")


def test_missing_argument_is_an_argument_error():
    res, _ = run_wenyan("""
        涵义【倍】，需知 数【甲】：
          求 甲 乘 2。
        倍 已知。
    """)
    assert_error(res, "ArgumentError")


def test_side_effects_are_fresh_per_run():
    runner, _ = make_runner()
    first = runner.handle_script("《志者》曰：曰。\n曰 已知【内容】为 “一”。")
    second = runner.handle_script("曰 已知【内容】为 “二”。")
    assert stdout(first) == ["一"]
    assert stdout(second) == ["二"]


def test_bindings_persist_across_runs():
    runner, _ = make_runner()
    assert_ok(runner.handle_script("设【数】甲 为 2。"))
    assert_ok(runner.handle_script("甲 乘 3。"), 6)


def test_format_error_prefixes_location():
    res, _ = run_wenyan("甲。")
    assert res.format_error().startswith("Error on line 1, col 1: LookupError")


def test_format_error_is_empty_on_success():
    assert ExecutionResult(status='success', value=1).format_error() == ""


# --- Host API ---

def test_execute_accepts_programs_nodes_and_lists():
    rt = Runtime(output=lambda m: None)
    program = parse_source("设【数】甲 为 2。\n甲 加 1。")
    assert rt.execute(program) == 3
    assert rt.execute(program.body[1]) == 3
    assert rt.execute(list(program.body)) == 3
    assert rt.execute(Program()) is None


def test_execute_rejects_other_values():
    with pytest.raises(InternalError):
        Runtime().execute("甲。")


def test_builtin_modules_are_registered():
    rt = Runtime()
    assert set(rt.module_registry) == {"志者", "天命", "天命也", "春秋"}
    assert rt.load_module("志者").version == "1.0.0"
    assert rt.load_module("无此") is None


def test_register_module():
    square = BuiltinFunction(
        "平方", lambda args, vm: args["值"] ** 2, [TypedValueDeclaration(NUMBER_CLASS, "值")])
    runner, _ = make_runner()
    runner.runtime.register_module(ModuleLibrary("算经", {"平方": square}))
    res = runner.handle_script("《算经》曰：平方。\n平方 已知【值】为 “7”。")
    assert_ok(res, 49)


def test_register_class():
    positive = ClassType("正数", RawValueAdapter(
        validate=lambda vd: to_number(vd.value) > 0,
        cast=lambda vd: to_number(vd.value),
    ))
    runner, _ = make_runner()
    runner.runtime.register_class(positive)
    assert_ok(runner.handle_script("设【正数】甲 为 3。\n甲。"), 3)
    assert_error(runner.handle_script("设【正数】乙 为 0。"), "TypeError")


def test_builtin_classes_cannot_be_redefined():
    rt = Runtime()
    with pytest.raises(WenyanTypeError):
        rt.register_class(ClassType(TEXT_CLASS))


def test_emit_records_side_effects():
    seen = []
    rt = Runtime(output=seen.append)
    rt.emit("stdout", "甲")
    rt.emit("stderr", "乙")
    assert seen == ["甲"]
    assert rt.side_effects == [
        {'topics': ['stdout'], 'message': '甲'},
        {'topics': ['stderr'], 'message': '乙'},
    ]


def test_read_line_defaults_to_stdin(monkeypatch, capsys):
    import io
    monkeypatch.setattr("sys.stdin", io.StringIO("王\n"))
    assert Runtime().read_line("名？") == "王"
    assert capsys.readouterr().out == "名？"


def test_read_line_at_end_of_input(monkeypatch):
    import io
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    assert Runtime().read_line() == ""
