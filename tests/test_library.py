import math

import pytest

from wenyan.wenyan_library import OPERATORS, BUILTIN_MODULES
from wenyan.wenyan_runtime import Runtime, ScriptRunner


def run_wenyan(src: str, **kwargs):
    runner = ScriptRunner(output=lambda message: None, **kwargs)
    res = runner.handle_script(src)
    assert res.status == 'success', res.error_message
    return res.value


def call(runtime, module, name, **args):
    fn = runtime.load_module(module).functions[name]
    return runtime.get_vm().invoke(fn, args)


def test_operator_table():
    assert set(OPERATORS) == {"是", "不是", "大于", "小于", "至少", "至多", "且", "或"}
    assert [p.name for p in OPERATORS["大于"].parameters] == ["left", "right"]


def test_module_contents():
    modules = {m.name: m for m in BUILTIN_MODULES}
    assert set(modules["志者"].functions) == {"曰", "倾"}
    assert set(modules["天命"].functions) == {"随缘", "掷币"}
    assert set(modules["天命也"].functions) == {"随缘", "掷币"}
    assert set(modules["春秋"].functions) == {"为文言", "为数", "极化"}


# --- 志者 ---

def test_say_returns_its_text():
    seen = []
    rt = Runtime(output=seen.append)
    assert call(rt, "志者", "曰", 内容=3.5) == "3.5"
    assert seen == ["3.5"]


def test_listen_prompt_defaults_to_empty():
    prompts = []
    rt = Runtime(input=lambda p: prompts.append(p) or "答")
    assert call(rt, "志者", "倾") == "答"
    assert prompts == [""]


# --- 天命 / 天命也 ---

def test_random_between_stays_in_range():
    rt = Runtime(seed=3)
    values = {call(rt, "天命", "随缘", 最小=1, 最大=6) for _ in range(200)}
    assert values <= {1, 2, 3, 4, 5, 6}
    assert len(values) > 1
    assert all(isinstance(v, int) for v in values)


def test_random_between_is_seeded():
    a, b = Runtime(seed=11), Runtime(seed=11)
    first = [call(a, "天命", "随缘", 最小=1, 最大=100) for _ in range(5)]
    second = [call(b, "天命", "随缘", 最小=1, 最大=100) for _ in range(5)]
    assert first == second


def test_random_between_requires_both_bounds():
    from wenyan.wenyan_datatypes import ArgumentError
    with pytest.raises(ArgumentError):
        call(Runtime(), "天命", "随缘", 最小=1)


def test_coin_toss_extremes():
    rt = Runtime(seed=5)
    assert all(call(rt, "天命", "掷币", 势=100) for _ in range(50))
    assert not any(call(rt, "天命", "掷币", 势=0) for _ in range(50))


def test_random_from_source():
    value = run_wenyan("《天命》曰：随缘。\n随缘 已知【最小】为 5，【最大】为 5。", seed=1)
    assert value == 5


@pytest.mark.parametrize("module, low, high", [
    ("天命", "最小", "最大"),
    ("天命也", "始", "终"),
])
def test_random_module_parameter_names(module, low, high):
    src = f"《{module}》曰：随缘。\n随缘 已知【{low}】为 4，【{high}】为 4。"
    assert run_wenyan(src, seed=2) == 4
    assert [p.name for p in Runtime().load_module(module).functions["随缘"].parameters] == [low, high]


# --- 春秋 ---

def test_conversions_from_source():
    assert run_wenyan("《春秋》曰：为文言。\n为文言 已知【值】为 12。") == "12"
    assert run_wenyan("《春秋》曰：为数。\n为数 已知【值】为 “3.5”。") == 3.5
    assert run_wenyan("《春秋》曰：极化。\n极化 已知【值】为 0。") is False
    assert run_wenyan("《春秋》曰：极化。\n极化 已知【值】为 2。") is True


def test_to_number_of_non_numeric_text_is_nan():
    assert math.isnan(call(Runtime(), "春秋", "为数", 值="甲"))
