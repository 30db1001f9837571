"""
Token and abstract syntax tree definitions shared by the lexer, parser,
printer, serializer and VM.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TokenType(str, Enum):
    # Keywords
    FUNCTION = 'FUNCTION'        # 涵义
    PARAM = 'PARAM'              # 需知
    RETURN = 'RETURN'            # 求
    KNOWN = 'KNOWN'              # 已知
    AS = 'AS'                    # 为
    LET = 'LET'                  # 设
    IF = 'IF'                    # 若
    ELSE_IF = 'ELSE_IF'          # 又若
    ELSE = 'ELSE'                # 否则
    WHILE = 'WHILE'              # 当
    REPEAT = 'REPEAT'            # 重复
    TIMES = 'TIMES'              # 遍
    WITH = 'WITH'                # 以

    # Identifiers, literals and operators
    IDENTIFIER = 'IDENTIFIER'
    STRING = 'STRING'            # “…”
    NUMBER = 'NUMBER'
    OPERATOR = 'OPERATOR'
    IMPORT_SYMBOL = 'IMPORT_SYMBOL'  # 《…》

    # Punctuation
    LEFT_BRACKET = 'LEFT_BRACKET'    # 【
    RIGHT_BRACKET = 'RIGHT_BRACKET'  # 】
    LEFT_PAREN = 'LEFT_PAREN'        # （
    RIGHT_PAREN = 'RIGHT_PAREN'      # ）
    COLON = 'COLON'                  # ：
    PERIOD = 'PERIOD'                # 。
    COMMA = 'COMMA'                  # ，


KEYWORDS: Dict[str, TokenType] = {
    "涵义": TokenType.FUNCTION,
    "需知": TokenType.PARAM,
    "求": TokenType.RETURN,
    "已知": TokenType.KNOWN,
    "为": TokenType.AS,
    "设": TokenType.LET,
    "若": TokenType.IF,
    "又若": TokenType.ELSE_IF,
    "否则": TokenType.ELSE,
    "当": TokenType.WHILE,
    "重复": TokenType.REPEAT,
    "遍": TokenType.TIMES,
    "以": TokenType.WITH,
}

PUNCTUATION: Dict[str, TokenType] = {
    "【": TokenType.LEFT_BRACKET,
    "】": TokenType.RIGHT_BRACKET,
    "（": TokenType.LEFT_PAREN,
    "）": TokenType.RIGHT_PAREN,
    "：": TokenType.COLON,
    "。": TokenType.PERIOD,
    "，": TokenType.COMMA,
}

# Longest spellings first.
OPERATORS = ("不是", "大于", "小于", "至少", "至多", "是", "且", "或")

OR_OPERATORS = ("或",)
AND_OPERATORS = ("且",)
COMPARISON_OPERATORS = ("是", "不是", "大于", "小于", "至少", "至多")
# Arithmetic words are plain identifiers that the parser treats as infix.
ADDITIVE_OPERATORS = ("加", "减")
MULTIPLICATIVE_OPERATORS = ("乘", "除", "余")
POWER_OPERATORS = ("幂",)
INFIX_WORDS = ADDITIVE_OPERATORS + MULTIPLICATIVE_OPERATORS + POWER_OPERATORS

IMPORT_VERB = "曰"


@dataclass(frozen=True)
class Token:
    kind: TokenType
    text: str
    line: int
    column: int

    @property
    def lexeme(self) -> str:
        """The token's spelling as it appears in source."""
        if self.kind is TokenType.STRING:
            return f"“{self.text}”"
        if self.kind is TokenType.IMPORT_SYMBOL:
            return f"《{self.text}》"
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "text": self.text, "line": self.line, "column": self.column}

    def __repr__(self) -> str:
        return f"Token({self.kind.value}, {self.text!r}, {self.line}:{self.column})"


class NodeType(str, Enum):
    PROGRAM = 'PROGRAM'
    IMPORT_DECLARATION = 'IMPORT_DECLARATION'
    FUNCTION_DECLARATION = 'FUNCTION_DECLARATION'
    PARAMETER = 'PARAMETER'
    FUNCTION_CALL = 'FUNCTION_CALL'
    RETURN_STATEMENT = 'RETURN_STATEMENT'
    BINARY_EXPRESSION = 'BINARY_EXPRESSION'
    IDENTIFIER = 'IDENTIFIER'
    STRING_LITERAL = 'STRING_LITERAL'
    NUMBER_LITERAL = 'NUMBER_LITERAL'
    VARIABLE_DECLARATION = 'VARIABLE_DECLARATION'
    VARIABLE_ASSIGNMENT = 'VARIABLE_ASSIGNMENT'
    IF_STATEMENT = 'IF_STATEMENT'
    WHILE_STATEMENT = 'WHILE_STATEMENT'
    REPEAT_STATEMENT = 'REPEAT_STATEMENT'


class Node:
    """Base class for AST nodes. Every node knows where it starts in source."""
    type: NodeType
    line: int
    column: int


@dataclass(frozen=True)
class Program(Node):
    body: List[Node] = field(default_factory=list)
    line: int = 1
    column: int = 1
    type = NodeType.PROGRAM


@dataclass(frozen=True)
class ImportDeclaration(Node):
    module_name: str
    symbols: List[str]
    line: int = 0
    column: int = 0
    type = NodeType.IMPORT_DECLARATION


@dataclass(frozen=True)
class Parameter(Node):
    type_name: str
    name: str
    line: int = 0
    column: int = 0
    type = NodeType.PARAMETER


@dataclass(frozen=True)
class FunctionDeclaration(Node):
    name: str
    parameters: List[Parameter]
    body: List[Node]
    line: int = 0
    column: int = 0
    type = NodeType.FUNCTION_DECLARATION


@dataclass(frozen=True)
class FunctionCall(Node):
    name: str
    # Insertion order is source order; arguments evaluate in this order.
    arguments: Dict[str, Node]
    line: int = 0
    column: int = 0
    type = NodeType.FUNCTION_CALL


@dataclass(frozen=True)
class ReturnStatement(Node):
    expression: Node
    line: int = 0
    column: int = 0
    type = NodeType.RETURN_STATEMENT


@dataclass(frozen=True)
class BinaryExpression(Node):
    left: Node
    operator: str
    right: Node
    line: int = 0
    column: int = 0
    type = NodeType.BINARY_EXPRESSION


@dataclass(frozen=True)
class Identifier(Node):
    name: str
    line: int = 0
    column: int = 0
    type = NodeType.IDENTIFIER


@dataclass(frozen=True)
class StringLiteral(Node):
    value: str
    line: int = 0
    column: int = 0
    type = NodeType.STRING_LITERAL


@dataclass(frozen=True)
class NumberLiteral(Node):
    value: int
    raw: str = ""
    line: int = 0
    column: int = 0
    type = NodeType.NUMBER_LITERAL


@dataclass(frozen=True)
class VariableDeclaration(Node):
    type_name: str
    name: str
    value: Node
    line: int = 0
    column: int = 0
    type = NodeType.VARIABLE_DECLARATION


@dataclass(frozen=True)
class VariableAssignment(Node):
    name: str
    value: Node
    line: int = 0
    column: int = 0
    type = NodeType.VARIABLE_ASSIGNMENT


@dataclass(frozen=True)
class IfStatement(Node):
    condition: Node
    body: List[Node]
    # Each else-if is an IfStatement with no alternates of its own.
    else_ifs: List['IfStatement'] = field(default_factory=list)
    else_body: Optional[List[Node]] = None
    line: int = 0
    column: int = 0
    type = NodeType.IF_STATEMENT


@dataclass(frozen=True)
class WhileStatement(Node):
    condition: Node
    body: List[Node]
    line: int = 0
    column: int = 0
    type = NodeType.WHILE_STATEMENT


@dataclass(frozen=True)
class RepeatStatement(Node):
    count: Node
    body: List[Node]
    counter: Optional[str] = None
    line: int = 0
    column: int = 0
    type = NodeType.REPEAT_STATEMENT


NODE_CLASSES = {
    cls.type: cls for cls in (
        Program, ImportDeclaration, Parameter, FunctionDeclaration, FunctionCall,
        ReturnStatement, BinaryExpression, Identifier, StringLiteral, NumberLiteral,
        VariableDeclaration, VariableAssignment, IfStatement, WhileStatement, RepeatStatement,
    )
}
