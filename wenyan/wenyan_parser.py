"""
Recursive-descent parser producing a Program AST from a token list.

Blocks have no explicit delimiters: a body is the run of statements whose
leading token sits in a column strictly to the right of the keyword that
opened the block. The open baselines are kept on an indentation stack.
"""

from typing import Dict, List, Optional

from wenyan.wenyan_ast import (
    Token, TokenType, Node, Program, ImportDeclaration, FunctionDeclaration, Parameter,
    FunctionCall, ReturnStatement, BinaryExpression, Identifier, StringLiteral, NumberLiteral,
    VariableDeclaration, VariableAssignment, IfStatement, WhileStatement, RepeatStatement,
    OR_OPERATORS, AND_OPERATORS, COMPARISON_OPERATORS, ADDITIVE_OPERATORS,
    MULTIPLICATIVE_OPERATORS, POWER_OPERATORS, INFIX_WORDS, IMPORT_VERB,
)
from wenyan.wenyan_datatypes import ParseError
from wenyan.wenyan_lexer import tokenize

_ARGUMENT_MARKERS = (TokenType.KNOWN, TokenType.LEFT_BRACKET)
_BLOCK_TERMINATORS = (TokenType.ELSE_IF, TokenType.ELSE)
_EXPRESSION_STARTS = (TokenType.IDENTIFIER, TokenType.NUMBER, TokenType.STRING, TokenType.LEFT_PAREN)

_TOKEN_SPELLINGS = {
    TokenType.LEFT_BRACKET: "【", TokenType.RIGHT_BRACKET: "】",
    TokenType.LEFT_PAREN: "（", TokenType.RIGHT_PAREN: "）",
    TokenType.COLON: "：", TokenType.PERIOD: "。", TokenType.COMMA: "，",
    TokenType.KNOWN: "已知", TokenType.AS: "为", TokenType.PARAM: "需知",
    TokenType.TIMES: "遍", TokenType.WITH: "以",
}


def _describe(token: Optional[Token]) -> str:
    if token is None:
        return "end of input"
    return f"{token.kind.value} {token.lexeme!r}"


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.length = len(tokens)
        self.position = 0
        self.indents: List[int] = [0]

    def parse(self) -> Program:
        body = []
        while self.peek() is not None:
            body.append(self.parse_statement())
        return Program(body=body, line=1, column=1)

    # --- Statements ---

    def parse_statement(self) -> Node:
        token = self.peek()
        match token.kind:
            case TokenType.IMPORT_SYMBOL:
                return self.parse_import_declaration()
            case TokenType.FUNCTION:
                return self.parse_function_declaration()
            case TokenType.LET:
                return self.parse_let()
            case TokenType.RETURN:
                return self.parse_return_statement()
            case TokenType.IF:
                return self.parse_if_statement()
            case TokenType.WHILE:
                return self.parse_while_statement()
            case TokenType.REPEAT:
                return self.parse_repeat_statement()
            case TokenType.IDENTIFIER if self._call_follows():
                return self.parse_function_call(nested=False)
            case kind if kind in _EXPRESSION_STARTS:
                expression = self.parse_expression()
                self.expect(TokenType.PERIOD)
                return expression
        raise ParseError(f"unexpected {_describe(token)} at start of statement", token.line, token.column)

    def _call_follows(self) -> bool:
        """An identifier starts a call when the argument marker follows, directly or after a comma."""
        nxt = self.look_ahead(1)
        if nxt is None:
            return False
        if nxt.kind in _ARGUMENT_MARKERS:
            return True
        after = self.look_ahead(2)
        return nxt.kind is TokenType.COMMA and after is not None and after.kind in _ARGUMENT_MARKERS

    def parse_import_declaration(self) -> ImportDeclaration:
        symbol = self.consume()
        self.expect(TokenType.IDENTIFIER, IMPORT_VERB)
        self.expect(TokenType.COLON)
        symbols = [self.expect(TokenType.IDENTIFIER).text]
        while self.check(TokenType.COMMA):
            self.consume()
            symbols.append(self.expect(TokenType.IDENTIFIER).text)
        self.expect(TokenType.PERIOD)
        return ImportDeclaration(symbol.text, symbols, symbol.line, symbol.column)

    def parse_function_declaration(self) -> FunctionDeclaration:
        keyword = self.consume()
        self.expect(TokenType.LEFT_BRACKET)
        name = self.expect(TokenType.IDENTIFIER).text
        self.expect(TokenType.RIGHT_BRACKET)

        parameters: List[Parameter] = []
        if self.check(TokenType.COMMA):
            self.consume()
            self.expect(TokenType.PARAM)
            parameters.append(self._parse_parameter())
        elif self.check(TokenType.PARAM):
            self.consume()
            parameters.append(self._parse_parameter())
        if parameters:
            while self.check(TokenType.COMMA):
                self.consume()
                parameters.append(self._parse_parameter())

        seen = set()
        for param in parameters:
            if param.name in seen:
                raise ParseError(f"duplicate parameter '{param.name}' in '{name}'", param.line, param.column)
            seen.add(param.name)

        self.expect(TokenType.COLON)
        body = self.parse_block(keyword)
        return FunctionDeclaration(name, parameters, body, keyword.line, keyword.column)

    def _parse_parameter(self) -> Parameter:
        token = self.peek()
        # A function-typed parameter is spelled with the 涵义 keyword.
        if token is not None and token.kind is TokenType.FUNCTION:
            type_token = self.consume()
        else:
            type_token = self.expect(TokenType.IDENTIFIER)
        self.expect(TokenType.LEFT_BRACKET)
        name = self.expect(TokenType.IDENTIFIER).text
        self.expect(TokenType.RIGHT_BRACKET)
        return Parameter(type_token.text, name, type_token.line, type_token.column)

    def parse_let(self) -> Node:
        keyword = self.consume()
        if self.check(TokenType.LEFT_BRACKET):
            self.consume()
            type_name = self.expect(TokenType.IDENTIFIER).text
            self.expect(TokenType.RIGHT_BRACKET)
            name = self.expect(TokenType.IDENTIFIER).text
            self.expect(TokenType.AS)
            value = self.parse_expression()
            self.expect(TokenType.PERIOD)
            return VariableDeclaration(type_name, name, value, keyword.line, keyword.column)
        name = self.expect(TokenType.IDENTIFIER).text
        self.expect(TokenType.AS)
        value = self.parse_expression()
        self.expect(TokenType.PERIOD)
        return VariableAssignment(name, value, keyword.line, keyword.column)

    def parse_return_statement(self) -> ReturnStatement:
        keyword = self.consume()
        expression = self.parse_expression()
        self.expect(TokenType.PERIOD)
        return ReturnStatement(expression, keyword.line, keyword.column)

    def parse_if_statement(self) -> IfStatement:
        keyword = self.consume()
        condition = self.parse_expression()
        self.expect(TokenType.COLON)
        body = self.parse_block(keyword)

        else_ifs: List[IfStatement] = []
        else_body = None
        while self._attaches_to(keyword, TokenType.ELSE_IF):
            branch = self.consume()
            branch_condition = self.parse_expression()
            self.expect(TokenType.COLON)
            branch_body = self.parse_block(keyword)
            else_ifs.append(IfStatement(branch_condition, branch_body, line=branch.line, column=branch.column))
        if self._attaches_to(keyword, TokenType.ELSE):
            self.consume()
            self.expect(TokenType.COLON)
            else_body = self.parse_block(keyword)
        return IfStatement(condition, body, else_ifs, else_body, keyword.line, keyword.column)

    def _attaches_to(self, keyword: Token, kind: TokenType) -> bool:
        token = self.peek()
        if token is None or token.kind is not kind:
            return False
        return token.column == keyword.column or token.line == keyword.line

    def parse_while_statement(self) -> WhileStatement:
        keyword = self.consume()
        condition = self.parse_expression()
        self.expect(TokenType.COLON)
        body = self.parse_block(keyword)
        return WhileStatement(condition, body, keyword.line, keyword.column)

    def parse_repeat_statement(self) -> RepeatStatement:
        keyword = self.consume()
        count = self.parse_expression()
        self.expect(TokenType.TIMES)
        counter = None
        if self.check(TokenType.COMMA):
            self.consume()
            self.expect(TokenType.WITH)
            self.expect(TokenType.LEFT_BRACKET)
            counter = self.expect(TokenType.IDENTIFIER).text
            self.expect(TokenType.RIGHT_BRACKET)
        self.expect(TokenType.COLON)
        body = self.parse_block(keyword)
        return RepeatStatement(count, body, counter, keyword.line, keyword.column)

    def parse_block(self, opener: Token) -> List[Node]:
        """Parse the statements indented past opener's column."""
        self.indents.append(opener.column)
        try:
            body = []
            while self._in_block():
                body.append(self.parse_statement())
        finally:
            self.indents.pop()
        if not body:
            token = self.peek()
            line, column = (token.line, token.column) if token else (opener.line, opener.column)
            raise ParseError(f"expected an indented body after {opener.lexeme!r}", line, column)
        return body

    def _in_block(self) -> bool:
        token = self.peek()
        if token is None or token.kind in _BLOCK_TERMINATORS:
            return False
        return token.column > self.indents[-1]

    # --- Calls ---

    def parse_function_call(self, nested: bool) -> FunctionCall:
        name_token = self.consume()
        if not nested and self.check(TokenType.COMMA):
            self.consume()

        arguments: Dict[str, Node] = {}
        if self.check(TokenType.KNOWN):
            self.consume()
            if self.check(TokenType.LEFT_BRACKET):
                self._parse_argument(arguments)
        else:
            self._parse_argument(arguments)

        while self.check(TokenType.COMMA) and self._argument_after_comma():
            self.consume()
            if self.check(TokenType.KNOWN):
                self.consume()
            self._parse_argument(arguments)

        if not nested:
            self.expect(TokenType.PERIOD)
        elif self.check(TokenType.PERIOD) and self._period_closes_nested_call():
            self.consume()

        return FunctionCall(name_token.text, arguments, name_token.line, name_token.column)

    def _argument_after_comma(self) -> bool:
        nxt = self.look_ahead(1)
        return nxt is not None and nxt.kind in _ARGUMENT_MARKERS

    def _period_closes_nested_call(self) -> bool:
        """A period ends a nested call only if the enclosing expression carries on after it."""
        nxt = self.look_ahead(1)
        if nxt is None:
            return False
        if nxt.kind in (TokenType.OPERATOR, TokenType.RIGHT_PAREN):
            return True
        return nxt.kind is TokenType.IDENTIFIER and nxt.text in INFIX_WORDS

    def _parse_argument(self, arguments: Dict[str, Node]):
        self.expect(TokenType.LEFT_BRACKET)
        name_token = self.expect(TokenType.IDENTIFIER)
        self.expect(TokenType.RIGHT_BRACKET)
        self.expect(TokenType.AS)
        if name_token.text in arguments:
            raise ParseError(f"argument '{name_token.text}' given twice", name_token.line, name_token.column)
        arguments[name_token.text] = self.parse_expression()

    # --- Expressions ---

    def parse_expression(self) -> Node:
        return self._parse_or()

    def _parse_binary_level(self, next_level, kind: TokenType, operators) -> Node:
        left = next_level()
        while self.check(kind) and self.peek().text in operators:
            operator = self.consume()
            right = next_level()
            left = BinaryExpression(left, operator.text, right, left.line, left.column)
        return left

    def _parse_or(self) -> Node:
        return self._parse_binary_level(self._parse_and, TokenType.OPERATOR, OR_OPERATORS)

    def _parse_and(self) -> Node:
        return self._parse_binary_level(self._parse_comparison, TokenType.OPERATOR, AND_OPERATORS)

    def _parse_comparison(self) -> Node:
        return self._parse_binary_level(self._parse_additive, TokenType.OPERATOR, COMPARISON_OPERATORS)

    def _parse_additive(self) -> Node:
        return self._parse_binary_level(self._parse_multiplicative, TokenType.IDENTIFIER, ADDITIVE_OPERATORS)

    def _parse_multiplicative(self) -> Node:
        return self._parse_binary_level(self._parse_power, TokenType.IDENTIFIER, MULTIPLICATIVE_OPERATORS)

    def _parse_power(self) -> Node:
        base = self._parse_primary()
        if self.check(TokenType.IDENTIFIER) and self.peek().text in POWER_OPERATORS:
            operator = self.consume()
            exponent = self._parse_power()
            return BinaryExpression(base, operator.text, exponent, base.line, base.column)
        return base

    def _parse_primary(self) -> Node:
        token = self.peek()
        if token is None:
            last = self.tokens[-1] if self.tokens else None
            raise ParseError("unexpected end of input in expression",
                             last.line if last else 1, last.column if last else 1)

        if token.kind is TokenType.IDENTIFIER:
            nxt = self.look_ahead(1)
            if nxt is not None and nxt.kind in _ARGUMENT_MARKERS:
                return self.parse_function_call(nested=True)
            self.consume()
            return Identifier(token.text, token.line, token.column)

        if token.kind is TokenType.NUMBER:
            self.consume()
            digits = "".join(c for c in token.text if "0" <= c <= "9")
            if not digits:
                raise ParseError(f"numeral {token.text!r} has no digits", token.line, token.column)
            return NumberLiteral(int(digits), token.text, token.line, token.column)

        if token.kind is TokenType.STRING:
            self.consume()
            return StringLiteral(token.text, token.line, token.column)

        if token.kind is TokenType.LEFT_PAREN:
            self.consume()
            inner = self.parse_expression()
            self.expect(TokenType.RIGHT_PAREN)
            return inner

        raise ParseError(f"unexpected {_describe(token)} in expression", token.line, token.column)

    # --- Token helpers ---

    def consume(self) -> Token:
        token = self.tokens[self.position]
        self.position += 1
        return token

    def peek(self) -> Optional[Token]:
        if self.position < self.length:
            return self.tokens[self.position]
        return None

    def look_ahead(self, n: int) -> Optional[Token]:
        index = self.position + n
        if index < self.length:
            return self.tokens[index]
        return None

    def check(self, kind: TokenType) -> bool:
        token = self.peek()
        return token is not None and token.kind is kind

    def expect(self, kind: TokenType, value: Optional[str] = None) -> Token:
        token = self.peek()
        wanted = repr(value) if value else _TOKEN_SPELLINGS.get(kind, kind.value)
        if token is None:
            last = self.tokens[-1] if self.tokens else None
            raise ParseError(f"expected {wanted}, found end of input",
                             last.line if last else 1, last.column if last else 1)
        if token.kind is not kind or (value is not None and token.text != value):
            raise ParseError(f"expected {wanted}, found {_describe(token)}", token.line, token.column)
        return self.consume()


def parse(tokens: List[Token]) -> Program:
    """Parse a token list into a Program."""
    return Parser(tokens).parse()


def parse_source(source: str) -> Program:
    return parse(tokenize(source))
