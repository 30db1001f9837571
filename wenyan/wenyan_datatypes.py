"""
Defines the core data types for the Wenyan language runtime.

This module provides the error hierarchy, the typed value wrapper, the
nominal class registry entries, function descriptors and the parent-linked
Environment that the VM reads and mutates.
"""

import math
import re
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from wenyan.wenyan_ast import FunctionDeclaration


# =================================================================
# Errors
# =================================================================

class WenyanError(Exception):
    """Base class for every error raised by the lexer, parser or VM."""
    kind = "WenyanError"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def locate(self, line: Optional[int], column: Optional[int]):
        """Attach a position unless one is already known."""
        if self.line is None:
            self.line = line
            self.column = column
        return self

    def __str__(self) -> str:
        return self.message


class LexError(WenyanError, SyntaxError):
    kind = "LexError"


class ParseError(WenyanError, SyntaxError):
    kind = "ParseError"


class WenyanTypeError(WenyanError, TypeError):
    kind = "TypeError"


class WenyanLookupError(WenyanError, LookupError):
    kind = "LookupError"


class ArgumentError(WenyanError, TypeError):
    kind = "ArgumentError"


class InternalError(WenyanError, RuntimeError):
    """A parser/VM contract mismatch. Never a user-facing condition."""
    kind = "InternalError"


# =================================================================
# Built-in names
# =================================================================

TEXT_CLASS = "文言"
NUMBER_CLASS = "数"
BOOLEAN_CLASS = "阴阳"

TRUTHY = "阳"
FALSY = "阴"
UNIT = "无"


# =================================================================
# Value coercion
# =================================================================

_NUMERIC_RE = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def normalize_number(x):
    """Collapse integral floats back to ints so 7.0 prints and compares as 7."""
    if isinstance(x, float) and math.isfinite(x) and x.is_integer():
        return int(x)
    return x


def to_number(value: Any):
    """Numeric coercion. Unparseable values become NaN rather than raising."""
    match value:
        case bool():
            return int(value)
        case int() | float():
            return value
        case str():
            s = value.strip()
            if not s:
                return 0
            if s in ("Infinity", "+Infinity"):
                return math.inf
            if s == "-Infinity":
                return -math.inf
            if _NUMERIC_RE.fullmatch(s):
                if any(c in s for c in ".eE"):
                    return normalize_number(float(s))
                return int(s)
            return math.nan
        case _:
            return math.nan


def to_boolean(value: Any) -> bool:
    """Truthy coercion: empty text, zero, NaN and unit are false."""
    match value:
        case None:
            return False
        case bool():
            return value
        case int() | float():
            return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
        case str():
            return value != ""
        case _:
            return True


def format_number(value) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        value = normalize_number(value)
    return str(value)


def to_text(value: Any) -> str:
    """Text coercion used by the 文言 class and by output."""
    match value:
        case None:
            return UNIT
        case bool():
            return TRUTHY if value else FALSY
        case int() | float():
            return format_number(value)
        case str():
            return value
        case FunctionDescriptor():
            return f"涵义【{value.name}】"
        case _:
            return str(value)


def infer_class_name(value: Any) -> str:
    """Pick a class for an untyped binding from the shape of the host value."""
    if isinstance(value, str):
        return TEXT_CLASS
    if isinstance(value, bool):
        return BOOLEAN_CLASS
    if isinstance(value, (int, float)) and value in (0, 1):
        return BOOLEAN_CLASS
    return NUMBER_CLASS


# =================================================================
# Typed values and classes
# =================================================================

class ValueDescriptor:
    """A raw value paired with the nominal class it is bound as."""
    __slots__ = ("type", "value")

    def __init__(self, type: str, value: Any):
        self.type = type
        self.value = value

    def __repr__(self) -> str:
        return f"ValueDescriptor({self.type!r}, {self.value!r})"

    def __eq__(self, other):
        if not isinstance(other, ValueDescriptor):
            return NotImplemented
        return self.type == other.type and self.value == other.value


class RawValueAdapter:
    """Validates and casts a ValueDescriptor into a class's raw representation."""
    def __init__(self, validate: Callable[[ValueDescriptor], bool], cast: Callable[[ValueDescriptor], Any]):
        self.validate = validate
        self.cast = cast


class ClassType:
    """A named runtime type. Only classes with a raw-value adapter can hold values."""
    def __init__(self, name: str, adapter: Optional[RawValueAdapter] = None,
                 attributes: Optional[Dict[str, Any]] = None,
                 methods: Optional[Dict[str, 'FunctionDescriptor']] = None):
        self.name = name
        self.adapter = adapter
        self.attributes: Dict[str, Any] = attributes or {}
        self.methods: Dict[str, FunctionDescriptor] = methods or {}

    def coerce(self, value: Any) -> ValueDescriptor:
        """Run value through validate then cast, returning a descriptor of this class."""
        if self.adapter is None:
            raise WenyanTypeError(f"class '{self.name}' cannot hold a raw value")
        source = ValueDescriptor(infer_class_name(value) if not isinstance(value, FunctionDescriptor) else "涵义", value)
        if not self.adapter.validate(source):
            raise WenyanTypeError(f"value {to_text(value)!r} is not a valid '{self.name}'")
        return ValueDescriptor(self.name, self.adapter.cast(source))

    def __repr__(self) -> str:
        return f"<ClassType {self.name}>"


def _is_finite_number(vd: ValueDescriptor) -> bool:
    n = to_number(vd.value)
    return not (isinstance(n, float) and not math.isfinite(n))


def builtin_classes() -> Dict[str, ClassType]:
    """The three classes every root Environment is seeded with."""
    return {
        TEXT_CLASS: ClassType(TEXT_CLASS, RawValueAdapter(
            validate=lambda vd: True,
            cast=lambda vd: to_text(vd.value),
        )),
        NUMBER_CLASS: ClassType(NUMBER_CLASS, RawValueAdapter(
            validate=_is_finite_number,
            cast=lambda vd: to_number(vd.value),
        )),
        BOOLEAN_CLASS: ClassType(BOOLEAN_CLASS, RawValueAdapter(
            validate=lambda vd: True,
            cast=lambda vd: to_boolean(vd.value),
        )),
    }


# =================================================================
# Functions
# =================================================================

_REQUIRED = object()


class TypedValueDeclaration:
    """A declared built-in parameter. type_name None accepts any value unchanged."""
    def __init__(self, type_name: Optional[str], name: str, default: Any = _REQUIRED):
        self.type_name = type_name
        self.name = name
        self.default = default

    @property
    def required(self) -> bool:
        return self.default is _REQUIRED

    def __repr__(self) -> str:
        return f"{self.type_name}【{self.name}】"


class FunctionDescriptor:
    """Abstract base for everything callable from Wenyan source."""
    name: str = "<fn>"


class BuiltinFunction(FunctionDescriptor):
    """A natively implemented function. executor receives (args, vm)."""
    def __init__(self, name: str, executor: Callable[[Dict[str, Any], Any], Any],
                 parameters: List[TypedValueDeclaration]):
        self.name = name
        self.executor = executor
        self.parameters = parameters

    def __repr__(self) -> str:
        return f"<BuiltinFunction {self.name}>"


class UserFunction(FunctionDescriptor):
    """A function declared in source; refers to its declaration node."""
    def __init__(self, ast: 'FunctionDeclaration'):
        self.ast = ast
        self.name = ast.name

    @property
    def parameters(self):
        return self.ast.parameters

    def __repr__(self) -> str:
        return f"<UserFunction {self.name}>"

    def __eq__(self, other):
        if not isinstance(other, UserFunction):
            return NotImplemented
        return self.ast == other.ast

    __hash__ = object.__hash__


class ModuleLibrary:
    """A built-in library: named functions and variables importable by source."""
    def __init__(self, name: str, functions: Optional[Dict[str, FunctionDescriptor]] = None,
                 variables: Optional[Dict[str, Any]] = None, description: str = "", version: str = ""):
        self.name = name
        self.functions: Dict[str, FunctionDescriptor] = functions or {}
        self.variables: Dict[str, Any] = variables or {}
        self.description = description
        self.version = version

    def __contains__(self, symbol: str) -> bool:
        return symbol in self.functions or symbol in self.variables

    def __repr__(self) -> str:
        return f"<ModuleLibrary {self.name} functions=[{', '.join(self.functions)}]>"


# =================================================================
# Control flow
# =================================================================

class Return:
    """Signals that a return statement ran; block executors stop and propagate it."""
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Return({self.value!r})"


def is_return(x) -> bool:
    return isinstance(x, Return)


def unwrap_return(x):
    return x.value if is_return(x) else x


# =================================================================
# Environment
# =================================================================

class Environment:
    """A call frame's bindings.

    Variables are owned by the frame and looked up outward through the
    parent chain. Functions, classes and modules are snapshotted from the
    caller when a child frame is made and are only ever looked up locally.
    """
    def __init__(self, parent: Optional['Environment'] = None,
                 variables: Optional[Dict[str, ValueDescriptor]] = None,
                 functions: Optional[Dict[str, FunctionDescriptor]] = None,
                 classes: Optional[Dict[str, ClassType]] = None,
                 modules: Optional[Dict[str, Dict[str, Any]]] = None):
        self.parent = parent
        self.variables: Dict[str, ValueDescriptor] = variables if variables is not None else {}
        self.functions: Dict[str, FunctionDescriptor] = functions if functions is not None else {}
        self.classes: Dict[str, ClassType] = classes if classes is not None else {}
        self.modules: Dict[str, Dict[str, Any]] = modules if modules is not None else {}

    def child(self) -> 'Environment':
        """A new frame whose parent is self, with shallow copies of the tables."""
        return Environment(
            parent=self,
            functions=dict(self.functions),
            classes=dict(self.classes),
            modules=dict(self.modules),
        )

    def declare_variable(self, name: str, descriptor: ValueDescriptor):
        self.variables[name] = descriptor

    def find_owner(self, name: str) -> Optional['Environment']:
        """Finds the Environment in the parent chain that binds the variable name."""
        env = self
        while env is not None:
            if name in env.variables:
                return env
            env = env.parent
        return None

    def lookup_variable(self, name: str) -> Optional[ValueDescriptor]:
        owner = self.find_owner(name)
        if owner is None:
            return None
        return owner.variables[name]

    def declare_function(self, name: str, descriptor: FunctionDescriptor):
        self.functions[name] = descriptor

    def lookup_function(self, name: str) -> Optional[FunctionDescriptor]:
        return self.functions.get(name)

    def lookup_class(self, name: str) -> Optional[ClassType]:
        return self.classes.get(name)

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def __repr__(self) -> str:
        keys = ', '.join(self.variables.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment variables=[{keys}]{parent_id}>"
