"""
A pretty-printer for Wenyan values and syntax trees.
"""
from wenyan.wenyan_ast import (
    Program, ImportDeclaration, FunctionDeclaration, Parameter, FunctionCall, ReturnStatement,
    BinaryExpression, Identifier, StringLiteral, NumberLiteral, VariableDeclaration,
    VariableAssignment, IfStatement, WhileStatement, RepeatStatement,
)
from wenyan.wenyan_datatypes import (
    FunctionDescriptor, ValueDescriptor, format_number, TRUTHY, FALSY, UNIT,
)


class Printer:
    """Formats Wenyan values and AST nodes into readable, valid Wenyan source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, FunctionDescriptor):
            return self._pformat_function
        if isinstance(obj, dict):
            return self._pformat_dict
        if isinstance(obj, list):
            return self._pformat_block
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_number,
            float: self._pformat_number,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            ValueDescriptor: self._pformat_value_descriptor,
            Program: self._pformat_program,
            ImportDeclaration: self._pformat_import,
            FunctionDeclaration: self._pformat_function_declaration,
            Parameter: self._pformat_parameter,
            FunctionCall: self._pformat_call_statement,
            ReturnStatement: self._pformat_return,
            VariableDeclaration: self._pformat_declaration,
            VariableAssignment: self._pformat_assignment,
            IfStatement: self._pformat_if,
            WhileStatement: self._pformat_while,
            RepeatStatement: self._pformat_repeat,
            BinaryExpression: self._pformat_expression_statement,
            Identifier: self._pformat_expression_statement,
            StringLiteral: self._pformat_expression_statement,
            NumberLiteral: self._pformat_expression_statement,
        }

    # --- Values ---

    def _pformat_str(self, obj, level):
        return f"“{obj}”"

    def _pformat_number(self, obj, level):
        return format_number(obj)

    def _pformat_bool(self, obj, level):
        return TRUTHY if obj else FALSY

    def _pformat_none(self, obj, level):
        return UNIT

    def _pformat_function(self, obj, level):
        return f"涵义【{obj.name}】"

    def _pformat_value_descriptor(self, obj, level):
        return f"【{obj.type}】{self.pformat(obj.value, level)}"

    def _pformat_dict(self, obj, level):
        return "，".join(f"【{k}】为 {self.pformat(v, level)}" for k, v in obj.items())

    # --- Statements ---

    def _indent(self, level):
        return self._indent_char * level

    def _pformat_program(self, obj, level):
        return self._pformat_block(obj.body, level)

    def _pformat_block(self, statements, level):
        return "\n".join(self._indent(level) + self.pformat(stmt, level) for stmt in statements)

    def _pformat_body(self, statements, level):
        return "\n" + self._pformat_block(statements, level + 1)

    def _pformat_import(self, obj, level):
        return f"《{obj.module_name}》曰：{'，'.join(obj.symbols)}。"

    def _pformat_parameter(self, obj, level):
        return f"{obj.type_name}【{obj.name}】"

    def _pformat_function_declaration(self, obj, level):
        head = f"涵义【{obj.name}】"
        if obj.parameters:
            head += "，需知 " + "，".join(self._pformat_parameter(p, level) for p in obj.parameters)
        return f"{head}：{self._pformat_body(obj.body, level)}"

    def _pformat_call(self, obj):
        if not obj.arguments:
            return f"{obj.name} 已知"
        args = "，".join(f"【{name}】为 {self._expr(value)}" for name, value in obj.arguments.items())
        return f"{obj.name} 已知{args}"

    def _pformat_call_statement(self, obj, level):
        return f"{self._pformat_call(obj)}。"

    def _pformat_return(self, obj, level):
        return f"求 {self._expr(obj.expression)}。"

    def _pformat_declaration(self, obj, level):
        return f"设【{obj.type_name}】{obj.name} 为 {self._expr(obj.value)}。"

    def _pformat_assignment(self, obj, level):
        return f"设 {obj.name} 为 {self._expr(obj.value)}。"

    def _pformat_if(self, obj, level):
        parts = [f"若 {self._expr(obj.condition)}：{self._pformat_body(obj.body, level)}"]
        for branch in obj.else_ifs:
            parts.append(f"{self._indent(level)}又若 {self._expr(branch.condition)}：{self._pformat_body(branch.body, level)}")
        if obj.else_body is not None:
            parts.append(f"{self._indent(level)}否则：{self._pformat_body(obj.else_body, level)}")
        return "\n".join(parts)

    def _pformat_while(self, obj, level):
        return f"当 {self._expr(obj.condition)}：{self._pformat_body(obj.body, level)}"

    def _pformat_repeat(self, obj, level):
        counter = f"，以【{obj.counter}】" if obj.counter else ""
        return f"重复 {self._expr(obj.count)} 遍{counter}：{self._pformat_body(obj.body, level)}"

    def _pformat_expression_statement(self, obj, level):
        return f"{self._expr(obj)}。"

    # --- Expressions ---

    def _expr(self, node) -> str:
        match node:
            case BinaryExpression():
                return f"{self._operand(node.left)} {node.operator} {self._operand(node.right)}"
            case FunctionCall():
                return f"（{self._pformat_call(node)}）"
            case Identifier():
                return node.name
            case StringLiteral():
                return f"“{node.value}”"
            case NumberLiteral():
                return node.raw or str(node.value)
            case _:
                return self.pformat(node)

    def _operand(self, node) -> str:
        if isinstance(node, BinaryExpression):
            return f"（{self._expr(node)}）"
        return self._expr(node)
