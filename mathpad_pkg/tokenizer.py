"""Lexer for the MathPad notation.

Turns raw document text into a flat list of tokens. The lexer never raises:
characters it does not understand become ERROR tokens so callers can report
them with a precise position and keep going.

Marker tokens (``:``, ``::``, ``<-``, ``->``, ``->>``) absorb a directly
preceding ``$``, ``%`` or ``#<digits>`` decoration into their ``format`` and
``base`` fields, so later stages never need to look around for it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Optional

# Token types
NUMBER = "NUMBER"
IDENTIFIER = "IDENTIFIER"
OPERATOR = "OPERATOR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
LBRACE = "LBRACE"
RBRACE = "RBRACE"
SEMICOLON = "SEMICOLON"
COMMA = "COMMA"
COLON = "COLON"
DOUBLE_COLON = "DOUBLE_COLON"
ARROW_LEFT = "ARROW_LEFT"
ARROW_RIGHT = "ARROW_RIGHT"
ARROW_FULL = "ARROW_FULL"
FORMATTER = "FORMATTER"
COMMENT = "COMMENT"
NEWLINE = "NEWLINE"
EOF = "EOF"
ERROR = "ERROR"

MARKER_TYPES = frozenset({COLON, DOUBLE_COLON, ARROW_LEFT, ARROW_RIGHT, ARROW_FULL})

MARKER_TEXT = {
    COLON: ":",
    DOUBLE_COLON: "::",
    ARROW_LEFT: "<-",
    ARROW_RIGHT: "->",
    ARROW_FULL: "->>",
}

TWO_CHAR_OPERATORS = ("**", "==", "!=", "<=", ">=", "<<", ">>", "&&", "||", "^^")
ONE_CHAR_OPERATORS = "+-*/&|^~!<>=?\\%"

FORMAT_FOR_SUFFIX = {"$": "money", "%": "percent"}

_DIGITS36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class Token:
    """A lexed token.

    ``line`` and ``col`` are 1-based; ``pos`` and ``end`` are 0-based offsets
    into the tokenized text (``end`` exclusive).
    """

    type: str
    value: Any
    line: int
    col: int
    pos: int
    end: int
    raw: str = ""
    base: Optional[int] = None
    format: Optional[str] = None

    @property
    def is_marker(self) -> bool:
        return self.type in MARKER_TYPES

    @property
    def marker(self) -> Optional[str]:
        return MARKER_TEXT.get(self.type)

    def display(self) -> str:
        """Text used to show this token in error messages."""
        if self.type == NUMBER:
            return self.raw or str(self.value)
        if self.type == EOF:
            return "end of input"
        return str(self.value)


def parse_int_prefix(digits: str, base: int) -> float:
    """Parse the longest leading run of ``digits`` that is valid in ``base``.

    Mirrors the lenient integer parsing used for base literals such as
    ``FF#16`` or ``7v#32``: trailing characters outside the base are ignored,
    and a literal with no valid leading digit is NaN.
    """
    if base < 2 or base > 36:
        return math.nan
    value = 0
    seen = False
    for ch in digits.lower():
        digit = _DIGITS36.find(ch)
        if digit < 0 or digit >= base:
            break
        value = value * base + digit
        seen = True
    return float(value) if seen else math.nan


def _is_digit(ch: Optional[str]) -> bool:
    return ch is not None and "0" <= ch <= "9"


def _is_alpha(ch: Optional[str]) -> bool:
    return ch is not None and (ch.isascii() and (ch.isalpha() or ch == "_"))


def _is_alnum(ch: Optional[str]) -> bool:
    return _is_alpha(ch) or _is_digit(ch)


class Tokenizer:
    """Converts source text to a list of tokens."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: List[Token] = []

    def peek(self, offset: int = 0) -> Optional[str]:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else None

    def advance(self) -> str:
        ch = self.text[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _starts_marker(self, offset: int) -> bool:
        ch = self.peek(offset)
        nxt = self.peek(offset + 1)
        return ch == ":" or (ch == "<" and nxt == "-") or (ch == "-" and nxt == ">")

    def _make(self, type_: str, value: Any, start: int, line: int, col: int, **extra) -> Token:
        raw = self.text[start:self.pos]
        return Token(type_, value, line, col, start, self.pos, raw, **extra)

    # ------------------------------------------------------------------
    # Numbers

    def _number(self, money: bool = False) -> Token:
        start, line, col = self.pos, self.line, self.col
        if money:
            self.advance()  # $

        # 0x / 0b / 0o prefixed integers
        if not money and self.peek() == "0" and self.peek(1) in ("x", "X", "b", "B", "o", "O"):
            prefix = self.peek(1).lower()
            self.advance()
            self.advance()
            allowed = {"x": "0123456789abcdefABCDEF", "b": "01", "o": "01234567"}[prefix]
            digits = ""
            while self.peek() is not None and self.peek() in allowed:
                digits += self.advance()
            if not digits:
                return self._make(ERROR, f"Invalid 0{prefix} literal", start, line, col)
            base = {"x": 16, "b": 2, "o": 8}[prefix]
            return self._make(NUMBER, float(int(digits, base)), start, line, col, base=base)

        digits = ""
        while _is_digit(self.peek()) or (money and self.peek() == "," and _is_digit(self.peek(1))):
            ch = self.advance()
            if ch != ",":
                digits += ch

        # Digit-start base literal: 4D#16, 101#2, 7v#32
        if not money and digits:
            literal = self._base_literal_suffix(digits)
            if literal is not None:
                value, base = literal
                return self._make(NUMBER, value, start, line, col, base=base)

        text = digits
        if self.peek() == ".":
            text += self.advance()
            while _is_digit(self.peek()):
                text += self.advance()

        if self.peek() in ("e", "E") and (
            _is_digit(self.peek(1)) or (self.peek(1) in ("+", "-") and _is_digit(self.peek(2)))
        ):
            text += self.advance()
            if self.peek() in ("+", "-"):
                text += self.advance()
            while _is_digit(self.peek()):
                text += self.advance()

        if text in ("", "."):
            return self._make(ERROR, "Invalid number", start, line, col)
        value = float(text)

        # Percent literal: 5% is 0.05. A % directly before a marker is a
        # format suffix instead, and a % followed by an operand is modulo.
        if not money and self.peek() == "%" and self._percent_literal_follows():
            self.advance()
            return self._make(NUMBER, value / 100, start, line, col, base=10)

        return self._make(NUMBER, value, start, line, col, base=10)

    def _percent_literal_follows(self) -> bool:
        nxt = self.peek(1)
        if nxt is None:
            return True
        if _is_alnum(nxt) or nxt in "(.$[":
            return False
        return not self._starts_marker(1)

    def _base_literal_suffix(self, prefix: str):
        """Consume ``alnum* # digits`` after ``prefix`` if present.

        Returns (value, base) or None without consuming anything.
        """
        offset = 0
        while self.peek(offset) is not None and _is_alnum(self.peek(offset)) and self.peek(offset) != "_":
            offset += 1
        if self.peek(offset) != "#" or not _is_digit(self.peek(offset + 1)):
            return None
        digits = prefix
        for _ in range(offset):
            digits += self.advance()
        self.advance()  # '#'
        base_text = ""
        while _is_digit(self.peek()):
            base_text += self.advance()
        base = int(base_text)
        return parse_int_prefix(digits, base), base

    # ------------------------------------------------------------------
    # Identifiers

    def _identifier(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        name = ""
        while _is_alnum(self.peek()):
            name += self.advance()

        if name == "Infinity":
            return self._make(NUMBER, math.inf, start, line, col, base=10)
        if name == "NaN":
            return self._make(NUMBER, math.nan, start, line, col, base=10)

        # name#digits is a base literal (FF#16) unless a marker follows, in
        # which case it is a variable with a base suffix (x#16:). After an
        # operator it is always a literal (f#16+f#32->).
        if self.peek() == "#" and _is_digit(self.peek(1)):
            last = self.tokens[-1] if self.tokens else None
            if last is not None and last.type in (OPERATOR, LPAREN, SEMICOLON, COMMA):
                is_literal = True
            else:
                offset = 1
                while _is_digit(self.peek(offset)):
                    offset += 1
                while self.peek(offset) in (" ", "\t"):
                    offset += 1
                is_literal = not (self._starts_marker(offset) or self.peek(offset) == "[")
            if is_literal:
                self.advance()  # '#'
                base_text = ""
                while _is_digit(self.peek()):
                    base_text += self.advance()
                base = int(base_text)
                return self._make(NUMBER, parse_int_prefix(name, base), start, line, col, base=base)

        return self._make(IDENTIFIER, name, start, line, col)

    # ------------------------------------------------------------------
    # Comments

    def _quoted_comment(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        self.advance()  # opening quote
        body = ""
        while self.peek() is not None and self.peek() not in ('"', "\n"):
            body += self.advance()
        if self.peek() == '"':
            self.advance()
        return self._make(COMMENT, body, start, line, col)

    def _line_comment(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        self.advance()
        self.advance()
        body = ""
        while self.peek() is not None and self.peek() != "\n":
            body += self.advance()
        return self._make(COMMENT, body, start, line, col)

    # ------------------------------------------------------------------
    # Markers and operators

    def _marker(self, type_: str, length: int) -> Token:
        start, line, col = self.pos, self.line, self.col
        for _ in range(length):
            self.advance()
        token = self._make(type_, MARKER_TEXT[type_], start, line, col)
        last = self.tokens[-1] if self.tokens else None
        if last is not None and last.type == FORMATTER and last.end == start:
            self.tokens.pop()
            if last.value == "#":
                token.base = last.base
            else:
                token.format = FORMAT_FOR_SUFFIX[last.value]
        return token

    def _formatter(self) -> Token:
        start, line, col = self.pos, self.line, self.col
        ch = self.advance()
        if ch == "#":
            base_text = ""
            while _is_digit(self.peek()):
                base_text += self.advance()
            base = int(base_text) if base_text else None
            return self._make(FORMATTER, "#", start, line, col, base=base)
        return self._make(FORMATTER, ch, start, line, col, format=FORMAT_FOR_SUFFIX[ch])

    def _operator(self) -> Optional[Token]:
        start, line, col = self.pos, self.line, self.col
        pair = self.text[self.pos:self.pos + 2]
        if pair in TWO_CHAR_OPERATORS:
            self.advance()
            self.advance()
            return self._make(OPERATOR, pair, start, line, col)
        ch = self.peek()
        if ch in ONE_CHAR_OPERATORS:
            self.advance()
            return self._make(OPERATOR, ch, start, line, col)
        return None

    # ------------------------------------------------------------------

    def tokenize(self) -> List[Token]:
        self.tokens = []
        simple = {
            "(": LPAREN,
            ")": RPAREN,
            "[": LBRACKET,
            "]": RBRACKET,
            "{": LBRACE,
            "}": RBRACE,
            ";": SEMICOLON,
            ",": COMMA,
        }

        while self.pos < len(self.text):
            ch = self.peek()
            nxt = self.peek(1)

            if ch in (" ", "\t", "\r"):
                self.advance()
                continue

            if ch == "\n":
                start, line, col = self.pos, self.line, self.col
                self.advance()
                self.tokens.append(self._make(NEWLINE, "\n", start, line, col))
                continue

            if ch == '"':
                self.tokens.append(self._quoted_comment())
                continue

            if ch == "/" and nxt == "/":
                self.tokens.append(self._line_comment())
                continue

            if _is_digit(ch) or (ch == "." and _is_digit(nxt)):
                self.tokens.append(self._number())
                continue

            if ch == "$" and (_is_digit(nxt) or (nxt == "." and _is_digit(self.peek(2)))):
                self.tokens.append(self._number(money=True))
                continue

            if _is_alpha(ch):
                self.tokens.append(self._identifier())
                continue

            if ch in simple:
                start, line, col = self.pos, self.line, self.col
                self.advance()
                self.tokens.append(self._make(simple[ch], ch, start, line, col))
                continue

            if ch == "-" and nxt == ">" and self.peek(2) == ">":
                self.tokens.append(self._marker(ARROW_FULL, 3))
                continue
            if ch == "-" and nxt == ">":
                self.tokens.append(self._marker(ARROW_RIGHT, 2))
                continue
            if ch == "<" and nxt == "-":
                self.tokens.append(self._marker(ARROW_LEFT, 2))
                continue
            if ch == ":":
                if nxt == ":":
                    self.tokens.append(self._marker(DOUBLE_COLON, 2))
                else:
                    self.tokens.append(self._marker(COLON, 1))
                continue

            if ch in ("$", "#") or (ch == "%" and (self._starts_marker(1) or nxt == "[")):
                self.tokens.append(self._formatter())
                continue

            op = self._operator()
            if op is not None:
                self.tokens.append(op)
                continue

            start, line, col = self.pos, self.line, self.col
            self.advance()
            self.tokens.append(self._make(ERROR, f"Unexpected character '{ch}'", start, line, col))

        self.tokens.append(Token(EOF, None, self.line, self.col, self.pos, self.pos))
        return self.tokens


def tokenize(text: str) -> List[Token]:
    """Tokenize ``text`` into a list ending with an EOF token."""
    return Tokenizer(text).tokenize()
