# wenyan_runtime.py

import random
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from wenyan.wenyan_ast import Node, Program
from wenyan.wenyan_datatypes import (
    Environment, ClassType, ModuleLibrary, WenyanError, WenyanTypeError, InternalError,
    builtin_classes, unwrap_return,
)
from wenyan.wenyan_interpreter import VM
from wenyan.wenyan_library import OPERATORS, BUILTIN_MODULES
from wenyan.wenyan_parser import parse_source
from wenyan.wenyan_printer import Printer

# ===================================================================
# 1. Runtime host
# ===================================================================


class Runtime:
    """Owns the root Environment and the module registry; hands out VMs over it."""

    def __init__(self, output: Optional[Callable[[str], Any]] = None,
                 input: Optional[Callable[[str], str]] = None,
                 seed: Optional[int] = None):
        self.output = output or print
        self.input = input
        self.random = random.Random(seed)
        self.environment = Environment(classes=builtin_classes(), functions=dict(OPERATORS))
        self.module_registry: Dict[str, ModuleLibrary] = {}
        self.side_effects: List[Dict] = []
        self.call_stack: List[Dict] = []
        for module in BUILTIN_MODULES:
            self.register_module(module)

    # --- Execution ---

    def execute(self, ast) -> Any:
        """Run a Program, a single node or a list of statements against the root Environment."""
        vm = self.get_vm()
        match ast:
            case Program():
                return vm.execute(ast)
            case list():
                return unwrap_return(vm.execute_block(ast))
            case Node():
                return unwrap_return(vm.execute_node(ast))
            case _:
                raise InternalError(f"cannot execute {type(ast).__name__}")

    def get_vm(self) -> VM:
        return VM(self, self.environment)

    def create_context(self, environment: Optional[Environment] = None) -> VM:
        """A VM over a fresh child of the given Environment (the root by default)."""
        parent = environment if environment is not None else self.environment
        return VM(self, parent.child())

    # --- Modules and classes ---

    def register_module(self, module: ModuleLibrary):
        self.module_registry[module.name] = module

    def load_module(self, name: str) -> Optional[ModuleLibrary]:
        return self.module_registry.get(name)

    def register_class(self, cls: ClassType):
        if cls.name in builtin_classes():
            raise WenyanTypeError(f"built-in class '{cls.name}' cannot be redefined")
        self.environment.classes[cls.name] = cls

    # --- Host I/O ---

    def emit(self, topic: str, message: str):
        """Record a side effect; stdout messages also go to the output sink."""
        self.side_effects.append({'topics': [topic], 'message': message})
        if topic == 'stdout':
            self.output(message)

    def read_line(self, prompt: str = "") -> str:
        if self.input is not None:
            return self.input(prompt)
        if prompt:
            sys.stdout.write(prompt)
            sys.stdout.flush()
        line = sys.stdin.readline()
        return line.rstrip("\r\n")

    # --- Call frames ---

    def push_frame(self, name: str, args: Dict[str, Any]):
        self.call_stack.append({'name': name, 'args': dict(args)})

    def pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()


# ===================================================================
# 2. Script Execution
# ===================================================================

Token = Dict[str, Any]

MAX_TRACE_FRAMES = 10


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Tokenizes, parses and executes Wenyan source against one persistent Runtime."""

    def __init__(self, runtime: Optional[Runtime] = None, **runtime_kwargs):
        self.runtime = runtime or Runtime(**runtime_kwargs)

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        rt = self.runtime
        rt.side_effects.clear()
        rt.call_stack.clear()
        try:
            program = parse_source(source_code)
            value = rt.execute(program)
            return ExecutionResult(status='success', value=value, side_effects=list(rt.side_effects))
        except WenyanError as e:
            return self._error_result(e, source_code)
        except RecursionError:
            err = WenyanError("maximum recursion depth exceeded")
            err.kind = "RecursionError"
            return self._error_result(err, source_code)
        except Exception as e:
            return self._error_result(InternalError(f"{type(e).__name__}: {e}"), source_code)

    def _error_result(self, e: WenyanError, source: str) -> ExecutionResult:
        msg, token = self._format_error(e, source)
        self.runtime.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            error_message=msg,
            error_token=token,
            side_effects=list(self.runtime.side_effects),
        )

    def _format_error(self, e: WenyanError, source: str) -> tuple[str, Optional[Token]]:
        msg = f"{e.kind}: {e.message}"
        token = None
        if e.line is not None:
            token = {'line': e.line, 'col': e.column}
            msg = f"{msg} (line {e.line}, col {e.column})"
            context = self._source_context(source, e.line, e.column)
            if context:
                msg = f"{msg}\n{context}"
        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.runtime.call_stack
        if not stack:
            return ""
        pf = Printer().pformat

        frames = []
        shown = stack[-MAX_TRACE_FRAMES:]
        if len(stack) > len(shown):
            frames.append(f"... {len(stack) - len(shown)} more")
        for frame in shown:
            args = " ".join(f"{name}={pf(value)}" for name, value in frame['args'].items())
            frames.append(f"({frame['name']} {args})" if args else f"({frame['name']})")
        return "Wenyan stacktrace: " + " ".join(frames)
