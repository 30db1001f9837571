"""
Tokenizer for Wenyan source text.

A single left-to-right scan over codepoints. Character classes are tried in
a fixed priority order; anything unclassifiable aborts tokenization with a
LexError. Numbers keep their raw text, including numeral-unit glyphs.
"""

from typing import List

from wenyan.wenyan_ast import Token, TokenType, KEYWORDS, PUNCTUATION, OPERATORS
from wenyan.wenyan_datatypes import LexError

WHITESPACE = frozenset(" \t\r　")
NUMERAL_UNITS = frozenset("十百千万亿")
COMMENT_MARKER = "注："
STRING_OPEN, STRING_CLOSE = "“", "”"
IMPORT_OPEN, IMPORT_CLOSE = "《", "》"


def is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def is_letter(char: str) -> bool:
    return ("a" <= char <= "z") or ("A" <= char <= "Z") or ("一" <= char <= "龥")


class Lexer:
    def __init__(self, code: str):
        self.code = code
        self.length = len(code)
        self.position = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        while self.position < self.length:
            char = self.code[self.position]

            if char in WHITESPACE:
                self._advance()
                continue

            if char == "\n":
                self._newline()
                continue

            if self.code.startswith(COMMENT_MARKER, self.position):
                self._skip_comment()
                continue

            if char == STRING_OPEN:
                self._tokenize_delimited(TokenType.STRING, STRING_CLOSE, "string literal", multiline=True)
                continue

            if is_digit(char) or char in NUMERAL_UNITS:
                self._tokenize_number()
                continue

            if char == IMPORT_OPEN:
                self._tokenize_delimited(TokenType.IMPORT_SYMBOL, IMPORT_CLOSE, "module name", multiline=False)
                continue

            if char in PUNCTUATION:
                self._add_token(PUNCTUATION[char], char)
                continue

            op = self._match_operator()
            if op is not None:
                self._add_token(TokenType.OPERATOR, op)
                continue

            if is_letter(char):
                self._tokenize_word()
                continue

            raise LexError(f"unrecognized character {char!r}", self.line, self.column)

        return self.tokens

    def _advance(self, count: int = 1):
        self.position += count
        self.column += count

    def _newline(self):
        self.position += 1
        self.line += 1
        self.column = 1

    def _skip_comment(self):
        while self.position < self.length and self.code[self.position] != "\n":
            self.position += 1

    def _tokenize_delimited(self, kind: TokenType, closer: str, what: str, multiline: bool):
        start_line, start_column = self.line, self.column
        self._advance()  # opening glyph
        chars = []
        while self.position < self.length and self.code[self.position] != closer:
            char = self.code[self.position]
            if char == "\n":
                if not multiline:
                    break
                chars.append(char)
                self._newline()
                continue
            chars.append(char)
            self._advance()
        if self.position >= self.length or self.code[self.position] != closer:
            raise LexError(f"unterminated {what}", start_line, start_column)
        self._advance()  # closing glyph
        self.tokens.append(Token(kind, "".join(chars), start_line, start_column))

    def _tokenize_number(self):
        start = self.position
        start_column = self.column
        while self.position < self.length and (
                is_digit(self.code[self.position]) or self.code[self.position] in NUMERAL_UNITS):
            self._advance()
        self.tokens.append(Token(TokenType.NUMBER, self.code[start:self.position], self.line, start_column))

    def _match_operator(self):
        for op in OPERATORS:
            if self.code.startswith(op, self.position):
                return op
        return None

    def _tokenize_word(self):
        start = self.position
        start_column = self.column
        while self.position < self.length and is_letter(self.code[self.position]):
            self._advance()
        word = self.code[start:self.position]
        kind = KEYWORDS.get(word, TokenType.IDENTIFIER)
        self.tokens.append(Token(kind, word, self.line, start_column))

    def _add_token(self, kind: TokenType, text: str):
        self.tokens.append(Token(kind, text, self.line, self.column))
        self._advance(len(text))


def tokenize(source: str) -> List[Token]:
    """Convert source text into an ordered list of tokens."""
    return Lexer(source).tokenize()
