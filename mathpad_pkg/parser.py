"""Expression parser: precedence-climbing recursive descent over tokens.

Precedence, lowest first::

    || ^^
    &&
    == != < <= > >=
    | ^
    &
    << >>
    + -
    * / %
    **            (right-associative)
    - + ~ !       (unary)
    primary       (number, name, call, parenthesized expression)

Function-call arguments may be separated by ``;`` or ``,``.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Set, Tuple, Union

from .config import CACHE_SIZE_PARSE
from .tokenizer import (
    COMMA,
    COMMENT,
    EOF,
    ERROR,
    IDENTIFIER,
    LPAREN,
    NEWLINE,
    NUMBER,
    OPERATOR,
    RPAREN,
    SEMICOLON,
    Token,
    tokenize,
)
from .types import ParseError


@dataclass(frozen=True)
class Number:
    value: float
    raw: str = ""
    base: int = 10


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: Tuple["Node", ...] = ()


Node = Union[Number, Variable, UnaryOp, BinaryOp, FunctionCall]

# Binary precedence levels, lowest first; ** is handled separately
BINARY_LEVELS = (
    ("||", "^^"),
    ("&&",),
    ("==", "!=", "<", "<=", ">", ">="),
    ("|", "^"),
    ("&",),
    ("<<", ">>"),
    ("+", "-"),
    ("*", "/", "%"),
)

UNARY_OPERATORS = ("-", "+", "~", "!")


class Parser:
    """Builds an AST from a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = [t for t in tokens if t.type not in (COMMENT, NEWLINE, EOF)]
        if self.tokens:
            last = self.tokens[-1]
            self.eof = Token(EOF, None, last.line, last.col + len(last.raw), last.end, last.end)
        else:
            self.eof = Token(EOF, None, 1, 1, 0, 0)
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else self.eof

    def advance(self) -> Token:
        token = self.peek()
        self.pos += 1
        return token

    def _fail(self, message: str, token: Token) -> ParseError:
        if token.type == ERROR:
            return ParseError(token.value, token.line, token.col, code="LEX_ERROR")
        return ParseError(message, token.line, token.col)

    def expect(self, type_: str, value: Optional[str] = None) -> Token:
        token = self.peek()
        if token.type != type_ or (value is not None and token.value != value):
            wanted = f"{type_} '{value}'" if value else type_
            raise self._fail(f"Expected {wanted}, got {token.type} '{token.display()}'", token)
        return self.advance()

    def _at_operator(self, ops) -> bool:
        token = self.peek()
        return token.type == OPERATOR and token.value in ops

    def parse_expression(self, level: int = 0) -> Node:
        if level == len(BINARY_LEVELS):
            return self.parse_power()
        ops = BINARY_LEVELS[level]
        left = self.parse_expression(level + 1)
        while self._at_operator(ops):
            op = self.advance().value
            right = self.parse_expression(level + 1)
            left = BinaryOp(op, left, right)
        return left

    def parse_power(self) -> Node:
        left = self.parse_unary()
        if self._at_operator(("**",)):
            self.advance()
            return BinaryOp("**", left, self.parse_power())
        return left

    def parse_unary(self) -> Node:
        if self._at_operator(UNARY_OPERATORS):
            op = self.advance().value
            return UnaryOp(op, self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Node:
        token = self.peek()

        if token.type == NUMBER:
            self.advance()
            return Number(token.value, token.raw, token.base or 10)

        if token.type == LPAREN:
            self.advance()
            expr = self.parse_expression()
            self.expect(RPAREN)
            return expr

        if token.type == IDENTIFIER:
            self.advance()
            if self.peek().type == LPAREN:
                self.advance()
                args: List[Node] = []
                if self.peek().type != RPAREN:
                    args.append(self.parse_expression())
                    while self.peek().type in (SEMICOLON, COMMA):
                        self.advance()
                        args.append(self.parse_expression())
                self.expect(RPAREN)
                return FunctionCall(token.value, tuple(args))
            return Variable(token.value)

        raise self._fail(f"Unexpected token: {token.type} '{token.display()}'", token)

    def parse(self) -> Node:
        if not self.tokens:
            raise ParseError("Empty expression", code="EMPTY_EXPRESSION")
        expr = self.parse_expression()
        token = self.peek()
        if token.type != EOF:
            raise self._fail(
                f"Unexpected token after expression: {token.type} '{token.display()}'", token
            )
        return expr


def parse_tokens(tokens: List[Token]) -> Node:
    """Parse an already-tokenized expression."""
    try:
        return Parser(tokens).parse()
    except RecursionError:
        raise ParseError("Expression is nested too deeply", code="TOO_DEEP") from None


@lru_cache(maxsize=CACHE_SIZE_PARSE)
def parse_expression(text: str) -> Node:
    """Parse expression text into an AST.

    Results are cached; AST nodes are immutable so sharing them is safe.
    """
    return parse_tokens(tokenize(text))


def find_variables(node: Node) -> Set[str]:
    """Return the names referenced as variables anywhere in ``node``."""
    names: Set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Variable):
            names.add(current.name)
        elif isinstance(current, BinaryOp):
            stack.append(current.left)
            stack.append(current.right)
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, FunctionCall):
            stack.extend(current.args)
    return names


def substitute(node: Node, substitutions: Dict[str, Node]) -> Node:
    """Replace variables by expressions (single pass, not recursive)."""
    if not substitutions:
        return node
    if isinstance(node, Variable):
        return substitutions.get(node.name, node)
    if isinstance(node, BinaryOp):
        return BinaryOp(
            node.op,
            substitute(node.left, substitutions),
            substitute(node.right, substitutions),
        )
    if isinstance(node, UnaryOp):
        return UnaryOp(node.op, substitute(node.operand, substitutions))
    if isinstance(node, FunctionCall):
        return FunctionCall(node.name, tuple(substitute(a, substitutions) for a in node.args))
    return node
