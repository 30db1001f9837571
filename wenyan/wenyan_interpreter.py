"""
The core Wenyan interpreter: a tree-walking VM over the parser's AST.

One VM wraps one Environment. A user-defined function call runs its body in
a fresh VM over a child Environment. Statement sequences return either a
plain value or a Return marker, which every block-owning construct
propagates outward unchanged.
"""

import math
import os
import sys
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from wenyan.wenyan_ast import (
    Node, Program, ImportDeclaration, FunctionDeclaration, FunctionCall, ReturnStatement,
    BinaryExpression, Identifier, StringLiteral, NumberLiteral, VariableDeclaration,
    VariableAssignment, IfStatement, WhileStatement, RepeatStatement,
)
from wenyan.wenyan_datatypes import (
    Environment, ValueDescriptor, FunctionDescriptor, BuiltinFunction, UserFunction, Return,
    WenyanError, WenyanTypeError, WenyanLookupError, ArgumentError, InternalError,
    is_return, unwrap_return, to_number, to_boolean, to_text, normalize_number,
    infer_class_name, NUMBER_CLASS, TRUTHY, FALSY,
)

if TYPE_CHECKING:
    from wenyan.wenyan_runtime import Runtime


# --- Arithmetic ---

def _as_float(x) -> float:
    try:
        return float(x)
    except OverflowError:
        return math.inf if x > 0 else -math.inf


def _divide(a, b):
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1, b)
    return a / b


def _modulo(a, b):
    # Truncating remainder: the result takes the sign of the dividend.
    if b == 0 or math.isinf(a):
        return math.nan
    return math.fmod(a, b)


def _power(a, b):
    try:
        result = a ** b
    except ZeroDivisionError:
        return math.inf
    except OverflowError:
        odd = b.is_integer() and b % 2 == 1
        return -math.inf if a < 0 and odd else math.inf
    if isinstance(result, complex):
        return math.nan
    return result


ARITHMETIC = {
    "加": lambda a, b: a + b,
    "减": lambda a, b: a - b,
    "乘": lambda a, b: a * b,
    "除": _divide,
    "幂": _power,
    "余": _modulo,
}


class VM:
    """The Wenyan execution engine for one call frame."""
    def __init__(self, runtime: 'Runtime', environment: Environment):
        self.runtime = runtime
        self.environment = environment

    def _dbg(self, *parts):
        if os.environ.get("WENYAN_DEBUG"):
            try:
                print("[DBG]", *parts, file=sys.stderr)
            except Exception:
                pass

    # --- Entry points ---

    def execute(self, program: Program) -> Any:
        """Run top-level statements in order and return the last one's value."""
        return unwrap_return(self.execute_block(program.body))

    def execute_block(self, statements: List[Node]) -> Any:
        result = None
        for node in statements:
            result = self.execute_node(node)
            if is_return(result):
                return result
        return result

    def execute_node(self, node: Node) -> Any:
        try:
            match node:
                case ImportDeclaration():
                    return self.execute_import_declaration(node)
                case FunctionDeclaration():
                    return self.execute_function_declaration(node)
                case FunctionCall():
                    return self.execute_function_call(node)
                case ReturnStatement():
                    return Return(unwrap_return(self.execute_node(node.expression)))
                case BinaryExpression():
                    return self.execute_binary_expression(node)
                case Identifier():
                    return self.resolve_identifier(node)
                case StringLiteral():
                    return node.value
                case NumberLiteral():
                    return node.value
                case VariableDeclaration():
                    return self.execute_variable_declaration(node)
                case VariableAssignment():
                    return self.execute_variable_assignment(node)
                case IfStatement():
                    return self.execute_if_statement(node)
                case WhileStatement():
                    return self.execute_while_statement(node)
                case RepeatStatement():
                    return self.execute_repeat_statement(node)
                case Program():
                    return self.execute(node)
                case _:
                    raise InternalError(f"unhandled node kind {type(node).__name__}")
        except WenyanError as e:
            raise e.locate(getattr(node, "line", None), getattr(node, "column", None))

    # --- Declarations ---

    def execute_import_declaration(self, node: ImportDeclaration) -> Dict[str, Any]:
        module = self.runtime.load_module(node.module_name)
        if module is None:
            raise WenyanLookupError(f"module '{node.module_name}' could not be loaded")

        imported: Dict[str, Any] = {}
        for symbol in node.symbols:
            if symbol in module.functions:
                value = module.functions[symbol]
                self.environment.declare_function(symbol, value)
            elif symbol in module.variables:
                value = module.variables[symbol]
                cls = self.environment.lookup_class(infer_class_name(value))
                self.environment.declare_variable(symbol, cls.coerce(value) if cls else ValueDescriptor(infer_class_name(value), value))
            else:
                raise WenyanLookupError(f"module '{node.module_name}' has no symbol '{symbol}'")
            imported[symbol] = value
        self.environment.modules.setdefault(node.module_name, {}).update(imported)
        self._dbg("IMPORT", node.module_name, list(imported))
        return imported

    def execute_function_declaration(self, node: FunctionDeclaration) -> UserFunction:
        descriptor = UserFunction(node)
        self.environment.declare_function(node.name, descriptor)
        return descriptor

    def execute_variable_declaration(self, node: VariableDeclaration) -> Any:
        value = unwrap_return(self.execute_node(node.value))
        cls = self.environment.lookup_class(node.type_name)
        if cls is None:
            raise WenyanTypeError(f"unknown type '{node.type_name}'")
        descriptor = cls.coerce(value)
        self.environment.declare_variable(node.name, descriptor)
        return descriptor.value

    def execute_variable_assignment(self, node: VariableAssignment) -> Any:
        value = unwrap_return(self.execute_node(node.value))
        name = node.name

        owner = self.environment.find_owner(name)
        if owner is not None:
            existing = owner.variables[name]
            cls = self.environment.lookup_class(existing.type)
            if cls is None:
                raise WenyanTypeError(f"unknown type '{existing.type}' bound to '{name}'")
            descriptor = cls.coerce(value)
            owner.variables[name] = descriptor
            return descriptor.value

        if isinstance(value, FunctionDescriptor):
            self.environment.declare_function(name, value)
            return value

        type_name = infer_class_name(value)
        self._dbg("INFER", name, type_name)
        cls = self.environment.lookup_class(type_name)
        if cls is None:
            raise WenyanTypeError(f"unknown type '{type_name}'")
        descriptor = cls.coerce(value)
        self.environment.declare_variable(name, descriptor)
        return descriptor.value

    # --- Expressions ---

    def resolve_identifier(self, node: Identifier) -> Any:
        name = node.name
        if name == TRUTHY:
            return True
        if name == FALSY:
            return False
        descriptor = self.environment.lookup_variable(name)
        if descriptor is not None:
            return descriptor.value
        fn = self.environment.lookup_function(name)
        if fn is not None:
            return fn
        raise WenyanLookupError(f"'{name}' is not yet declared")

    def execute_binary_expression(self, node: BinaryExpression) -> Any:
        left = unwrap_return(self.execute_node(node.left))
        right = unwrap_return(self.execute_node(node.right))

        op = ARITHMETIC.get(node.operator)
        if op is not None:
            a, b = _as_float(to_number(left)), _as_float(to_number(right))
            if math.isnan(a) or math.isnan(b):
                return math.nan
            return normalize_number(op(a, b))

        fn = self.environment.lookup_function(node.operator)
        if fn is not None:
            self._dbg("OPERATOR", node.operator, "->", fn)
            return self.invoke(fn, {"left": left, "right": right})
        raise WenyanLookupError(f"unknown operator '{node.operator}'")

    # --- Calls ---

    def execute_function_call(self, node: FunctionCall) -> Any:
        fn = self.environment.lookup_function(node.name)
        if fn is None:
            raise WenyanLookupError(f"function '{node.name}' is not yet defined")
        args = {name: unwrap_return(self.execute_node(value)) for name, value in node.arguments.items()}
        return self.invoke(fn, args)

    def invoke(self, fn: FunctionDescriptor, args: Dict[str, Any]) -> Any:
        """Dispatch a call with already-evaluated named arguments."""
        self.runtime.push_frame(fn.name, args)
        _ok = False
        try:
            match fn:
                case BuiltinFunction():
                    result = self._invoke_builtin(fn, args)
                case UserFunction():
                    result = self._invoke_user(fn, args)
                case _:
                    raise InternalError(f"'{fn.name}' is not callable")
            _ok = True
            return result
        finally:
            # Frames stay on the stack when a call fails so the error trace can show them.
            if _ok:
                self.runtime.pop_frame()

    def _invoke_builtin(self, fn: BuiltinFunction, args: Dict[str, Any]) -> Any:
        self._dbg("Builtin call", fn.name, "args", list(args))
        prepared: Dict[str, Any] = {}
        for param in fn.parameters:
            if param.name not in args:
                if param.required:
                    raise ArgumentError(f"'{fn.name}' requires argument '{param.name}'")
                prepared[param.name] = param.default
                continue
            value = args[param.name]
            if param.type_name is None:
                prepared[param.name] = value
                continue
            cls = self.environment.lookup_class(param.type_name)
            if cls is None:
                raise WenyanTypeError(f"unknown type '{param.type_name}' for parameter '{param.name}' of '{fn.name}'")
            prepared[param.name] = cls.coerce(value).value
        return fn.executor(prepared, self)

    def _invoke_user(self, fn: UserFunction, args: Dict[str, Any]) -> Any:
        self._dbg("User call", fn.name, "args", list(args))
        env = self.environment.child()
        for param in fn.parameters:
            if param.name not in args:
                raise ArgumentError(f"'{fn.name}' requires argument '{param.name}'")
            value = args[param.name]

            passed_fn = self._function_value(value)
            if passed_fn is not None:
                env.declare_function(param.name, passed_fn)
                if isinstance(value, FunctionDescriptor) or env.lookup_class(param.type_name) is None:
                    continue

            cls = env.lookup_class(param.type_name)
            if cls is None:
                raise WenyanTypeError(f"unknown type '{param.type_name}' for parameter '{param.name}' of '{fn.name}'")
            env.declare_variable(param.name, cls.coerce(value))

        extra = [name for name in args if name not in {p.name for p in fn.parameters}]
        if extra:
            self._dbg("Ignored arguments", fn.name, extra)

        result = VM(self.runtime, env).execute_block(fn.ast.body)
        if is_return(result):
            return result.value
        return None

    def _function_value(self, value: Any) -> Optional[FunctionDescriptor]:
        """A function passed as an argument: either a reference or the name of a bound function."""
        if isinstance(value, FunctionDescriptor):
            return value
        if isinstance(value, str):
            return self.environment.lookup_function(value)
        return None

    # --- Control flow ---

    def execute_if_statement(self, node: IfStatement) -> Any:
        if to_boolean(unwrap_return(self.execute_node(node.condition))):
            return self.execute_block(node.body)
        for branch in node.else_ifs:
            if to_boolean(unwrap_return(self.execute_node(branch.condition))):
                return self.execute_block(branch.body)
        if node.else_body is not None:
            return self.execute_block(node.else_body)
        return None

    def execute_while_statement(self, node: WhileStatement) -> Any:
        result = None
        while to_boolean(unwrap_return(self.execute_node(node.condition))):
            result = self.execute_block(node.body)
            if is_return(result):
                return result
        return result

    def execute_repeat_statement(self, node: RepeatStatement) -> Any:
        count = to_number(unwrap_return(self.execute_node(node.count)))
        if isinstance(count, float) and not math.isfinite(count):
            raise WenyanTypeError(f"repeat count {to_text(count)!r} is not a finite number")
        result = None
        for i in range(1, int(count) + 1):
            if node.counter is not None:
                self.environment.declare_variable(node.counter, ValueDescriptor(NUMBER_CLASS, i))
            result = self.execute_block(node.body)
            if is_return(result):
                return result
        return result
