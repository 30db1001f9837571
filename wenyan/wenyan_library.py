"""
Python implementations of the Wenyan built-ins.

OPERATORS are seeded into every root Environment; binary expressions whose
operator is not arithmetic dispatch to them with `left`/`right` arguments.
BUILTIN_MODULES is the static registration list the Runtime loads at start.
"""

import math
from typing import Any, Dict, List

from wenyan.wenyan_datatypes import (
    BuiltinFunction, ModuleLibrary, TypedValueDeclaration as Param,
    TEXT_CLASS, NUMBER_CLASS, BOOLEAN_CLASS, to_text, to_number, to_boolean,
)


def builtin(name: str, *parameters: Param):
    """Wrap executor(args, vm) as a BuiltinFunction with the given parameters."""
    def wrap(executor):
        return BuiltinFunction(name, executor, list(parameters))
    return wrap


# --- Operators ---

def _binary(type_name):
    return (Param(type_name, "left"), Param(type_name, "right"))


@builtin("是", *_binary(None))
def _is(args, vm):
    return args["left"] == args["right"]


@builtin("不是", *_binary(None))
def _is_not(args, vm):
    return args["left"] != args["right"]


@builtin("大于", *_binary(NUMBER_CLASS))
def _gt(args, vm): return args["left"] > args["right"]


@builtin("小于", *_binary(NUMBER_CLASS))
def _lt(args, vm): return args["left"] < args["right"]


@builtin("至少", *_binary(NUMBER_CLASS))
def _gte(args, vm): return args["left"] >= args["right"]


@builtin("至多", *_binary(NUMBER_CLASS))
def _lte(args, vm): return args["left"] <= args["right"]


@builtin("且", *_binary(BOOLEAN_CLASS))
def _and(args, vm): return args["left"] and args["right"]


@builtin("或", *_binary(BOOLEAN_CLASS))
def _or(args, vm): return args["left"] or args["right"]


OPERATORS: Dict[str, BuiltinFunction] = {
    fn.name: fn for fn in (_is, _is_not, _gt, _lt, _gte, _lte, _and, _or)
}


# --- 志者: console output and input ---

@builtin("曰", Param(TEXT_CLASS, "内容"))
def _say(args, vm):
    content = args["内容"]
    vm.runtime.emit("stdout", content)
    return content


@builtin("倾", Param(TEXT_CLASS, "提示", default=""))
def _listen(args, vm):
    return vm.runtime.read_line(args["提示"])


# --- 天命 / 天命也: randomness ---

def _random_between(low_name: str, high_name: str):
    @builtin("随缘", Param(NUMBER_CLASS, low_name), Param(NUMBER_CLASS, high_name))
    def _between(args, vm):
        low = math.floor(args[low_name])
        high = math.floor(args[high_name])
        return low + math.floor(vm.runtime.random.random() * (high - low + 1))
    return _between


@builtin("掷币", Param(NUMBER_CLASS, "势"))
def _toss(args, vm):
    return vm.runtime.random.random() < args["势"] / 100


# --- 春秋: conversions ---

@builtin("为文言", Param(NUMBER_CLASS, "值"))
def _as_text(args, vm):
    return to_text(args["值"])


@builtin("为数", Param(TEXT_CLASS, "值"))
def _as_number(args, vm):
    return to_number(args["值"])


@builtin("极化", Param(NUMBER_CLASS, "值"))
def _polarize(args, vm):
    return to_boolean(args["值"])


def _module(name: str, functions: List[BuiltinFunction], variables: Dict[str, Any] = None, **meta) -> ModuleLibrary:
    return ModuleLibrary(name, {fn.name: fn for fn in functions}, variables or {}, **meta)


BUILTIN_MODULES: List[ModuleLibrary] = [
    _module("志者", [_say, _listen], {"版本": "1.0.0"},
            description="记录言行，倾听言语", version="1.0.0"),
    _module("天命", [_random_between("最小", "最大"), _toss]),
    _module("天命也", [_random_between("始", "终"), _toss]),
    _module("春秋", [_as_text, _as_number, _polarize]),
]
