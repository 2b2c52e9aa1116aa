"""Per-line grammar: decides whether a line declares a variable or asks for
the value of an expression, and extracts its fields.

A line is classified by its marker (``:``, ``::``, ``<-``, ``->``, ``->>``):

- ``name:`` / ``name::``        persistent declaration (``::`` is full precision)
- ``name<-``                    input, cleared by a full clear
- ``name->`` / ``name->>``      output, cleared before solving
- ``a + b->``                   expression output

Everything left of the declared name (or of the expression) is label text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .config import OUTPUT_VALUE_RE, TRAILING_COMMENT_RE
from .tokenizer import (
    ARROW_LEFT,
    COLON,
    DOUBLE_COLON,
    EOF,
    FORMATTER,
    IDENTIFIER,
    LBRACE,
    LBRACKET,
    LPAREN,
    NEWLINE,
    NUMBER,
    OPERATOR,
    RBRACKET,
    RPAREN,
    Token,
    tokenize,
)

# Clear behaviors
NONE = "none"
ON_CLEAR = "on_clear"  # <- : cleared by a full clear
ON_SOLVE = "on_solve"  # -> ->> : cleared by any clear

CLEAR_BEHAVIOR = {
    ":": NONE,
    "::": NONE,
    "<-": ON_CLEAR,
    "->": ON_SOLVE,
    "->>": ON_SOLVE,
}

# Arrow markers outrank colon markers
MARKER_PRECEDENCE = {"->>": 3, "->": 2, "::": 1, ":": 0}

OUTPUT_MARKERS = ("->", "->>")
FULL_PRECISION_MARKERS = ("::", "->>")

_QUOTED_RE = re.compile(r'"[^"]*"?')


@dataclass
class Declaration:
    """A line that binds a name: ``label name[low:high]#base$ marker value "comment"``."""

    name: str
    marker: str
    clear_behavior: str
    value_text: str
    format: Optional[str] = None
    base: int = 10
    limits: Optional[Tuple[str, str]] = None
    full_precision: bool = False
    comment: Optional[str] = None
    comment_unquoted: bool = False
    unit: Optional[str] = None
    label_span: Tuple[int, int] = (0, 0)
    marker_end: int = 0
    line: int = 0

    kind = "declaration"

    @property
    def is_output(self) -> bool:
        return self.clear_behavior == ON_SOLVE

    @property
    def has_limits(self) -> bool:
        return self.limits is not None


@dataclass
class ExpressionOutput:
    """A line that asks for an expression's value: ``label expr-> value``."""

    expression: str
    marker: str
    value_text: str
    full_precision: bool = False
    recalculates: bool = False
    format: Optional[str] = None
    base: int = 10
    comment: Optional[str] = None
    comment_unquoted: bool = False
    unit: Optional[str] = None
    label_span: Tuple[int, int] = (0, 0)
    marker_end: int = 0
    line: int = 0

    kind = "expression-output"


LineRecord = Union[Declaration, ExpressionOutput]


def find_line_comment_start(line: str) -> int:
    """Index of a ``//`` comment outside double quotes, or -1."""
    in_quote = False
    for i in range(len(line) - 1):
        ch = line[i]
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote and ch == "/" and line[i + 1] == "/":
            return i
    return -1


def strip_comments(line: str) -> Tuple[str, str, Optional[str]]:
    """Split comments off a line.

    Returns (clean, stripped, line_comment): ``clean`` has the ``//`` comment
    removed and quoted comments blanked out with spaces (positions
    preserved); ``stripped`` only has the ``//`` comment removed.
    """
    start = find_line_comment_start(line)
    line_comment = line[start:] if start != -1 else None
    stripped = line[:start] if start != -1 else line
    clean = _QUOTED_RE.sub(lambda m: " " * len(m.group(0)), stripped)
    return clean, stripped, line_comment


def _line_tokens(clean: str) -> List[Token]:
    return [t for t in tokenize(clean) if t.type not in (NEWLINE, EOF)]


def _top_level_markers(tokens: List[Token]) -> List[int]:
    markers = []
    depth = 0
    for i, token in enumerate(tokens):
        if token.type in (LPAREN, LBRACKET):
            depth += 1
        elif token.type in (RPAREN, RBRACKET):
            depth = max(0, depth - 1)
        elif token.is_marker and depth == 0:
            markers.append(i)
    return markers


def _choose_marker(tokens: List[Token], markers: List[int]) -> Optional[int]:
    """Pick the active marker.

    Any ``<-`` wins (leftmost). Otherwise higher precedence wins; among equal
    precedence arrows prefer the leftmost occurrence and colons the rightmost,
    since labels often contain colons of their own.
    """
    if not markers:
        return None
    for idx in markers:
        if tokens[idx].type == ARROW_LEFT:
            return idx
    best = markers[0]
    for idx in markers[1:]:
        prec = MARKER_PRECEDENCE[tokens[idx].marker]
        best_prec = MARKER_PRECEDENCE[tokens[best].marker]
        if prec > best_prec:
            best = idx
        elif prec == best_prec and tokens[idx].type in (COLON, DOUBLE_COLON):
            best = idx
    return best


def _has_assignment_before(tokens: List[Token], marker_idx: int) -> bool:
    return any(t.type == OPERATOR and t.value == "=" for t in tokens[:marker_idx])


def _walk_to_name(tokens: List[Token], marker_idx: int, clean: str):
    """Walk backward from the marker over ``name #base [low:high] $``.

    Returns (name_index, format, base, limits) or None when the token before
    the decorations is not a bare identifier.
    """
    marker = tokens[marker_idx]
    fmt = marker.format
    base = marker.base
    limits = None
    i = marker_idx - 1

    def absorb(token: Token) -> None:
        nonlocal fmt, base
        if token.value == "#":
            if base is None:
                base = token.base
        elif fmt is None:
            fmt = token.format

    while i >= 0 and tokens[i].type == FORMATTER:
        absorb(tokens[i])
        i -= 1

    if i >= 0 and tokens[i].type == RBRACKET:
        close = i
        depth = 0
        sep = None
        while i >= 0:
            token = tokens[i]
            if token.type == RBRACKET:
                depth += 1
            elif token.type == LBRACKET:
                depth -= 1
                if depth == 0:
                    break
            elif token.type == COLON and depth == 1:
                sep = i
            i -= 1
        if i < 0 or sep is None:
            return None
        low = clean[tokens[i].end:tokens[sep].pos].strip()
        high = clean[tokens[sep].end:tokens[close].pos].strip()
        if not low or not high:
            return None
        limits = (low, high)
        i -= 1
        while i >= 0 and tokens[i].type == FORMATTER:
            absorb(tokens[i])
            i -= 1

    if i >= 0 and tokens[i].type == IDENTIFIER:
        return i, fmt, base, limits
    return None


def _touching(left: Token, right: Token) -> bool:
    return left.end == right.pos


def _connects_left(tokens: List[Token], name_idx: int) -> bool:
    """True when the token before the name makes the left side an expression."""
    if name_idx == 0:
        return False
    prev = tokens[name_idx - 1]
    if prev.type == NUMBER:
        return _touching(prev, tokens[name_idx])
    if prev.type == RPAREN:
        return _touching(prev, tokens[name_idx])
    if prev.type == LPAREN:
        return True
    if prev.type == OPERATOR:
        if prev.value == "-":
            return _minus_is_binary(tokens, name_idx - 1)
        return True
    return False


def _minus_is_binary(tokens: List[Token], minus_idx: int) -> bool:
    if minus_idx == 0:
        return False
    before = tokens[minus_idx - 1]
    return before.type in (IDENTIFIER, NUMBER, RPAREN, RBRACKET, OPERATOR, LPAREN)


def _expression_start(tokens: List[Token], lo: int, end: int) -> Optional[int]:
    """Find the first token of the expression occupying ``tokens[lo:end]``.

    Scans leftward from the end, extending over operators and their operands
    and over balanced parentheses (with an adjacent call name). Stops at an
    adjacency break: a value separated by whitespace from the expression
    with no operator in between is label text.
    """
    if end <= lo:
        return None
    start = None
    expect_operand = True
    depth = 0
    i = end - 1
    while i >= lo:
        token = tokens[i]
        if depth > 0:
            if token.type == RPAREN:
                depth += 1
            elif token.type == LPAREN:
                depth -= 1
                if depth == 0:
                    start = i
                    expect_operand = False
                    if i - 1 >= lo and tokens[i - 1].type == IDENTIFIER and _touching(tokens[i - 1], token):
                        i -= 1
                        start = i
            i -= 1
            continue

        if expect_operand:
            if token.type in (NUMBER, IDENTIFIER):
                start = i
                expect_operand = False
            elif token.type == RPAREN:
                depth = 1
            elif token.type == OPERATOR:
                # unary operator, or a binary one following a unary one
                start = i
            else:
                break
        else:
            if token.type == OPERATOR:
                if token.value in ("~", "!"):
                    start = i
                elif token.value == "-" and not _minus_is_binary(tokens, i):
                    break
                else:
                    start = i
                    expect_operand = True
            elif token.type in (NUMBER, IDENTIFIER, RPAREN) and _touching(token, tokens[start]):
                # juxtaposed values such as 2x are kept so the parser reports them
                if token.type == RPAREN:
                    depth = 1
                else:
                    start = i
            else:
                break
        i -= 1
    if depth > 0:
        return None
    return start


def _split_output_value(after: str) -> Tuple[str, Optional[str]]:
    """Split an output payload into (value, unit comment)."""
    after = after.strip()
    if not after:
        return "", None
    match = OUTPUT_VALUE_RE.match(after)
    if match:
        return match.group(1), (match.group(2).strip() or None)
    return "", after


def classify_line(line: str, line_index: int = 0) -> Optional[LineRecord]:
    """Classify one line of a document.

    Returns a Declaration, an ExpressionOutput, or None for anything else
    (blank lines, free text, equations, braced-equation openers).
    """
    clean, stripped, _ = strip_comments(line)
    if not clean.strip():
        return None
    trailing = TRAILING_COMMENT_RE.search(stripped)
    trailing_comment = trailing.group(1) if trailing else None

    tokens = _line_tokens(clean)
    marker_idx = _choose_marker(tokens, _top_level_markers(tokens))
    if marker_idx is None:
        return None

    marker_token = tokens[marker_idx]
    marker = marker_token.marker
    if marker_idx + 1 < len(tokens) and tokens[marker_idx + 1].type == LBRACE:
        return None
    if _has_assignment_before(tokens, marker_idx):
        return None

    after = clean[marker_token.end:]
    if marker in OUTPUT_MARKERS:
        value_text, unit_comment = _split_output_value(after)
    else:
        value_text, unit_comment = after.strip(), None
    comment = trailing_comment
    comment_unquoted = False
    if comment is None and unit_comment:
        comment = unit_comment
        comment_unquoted = True

    walk = _walk_to_name(tokens, marker_idx, clean)
    is_expression = walk is None or _connects_left(tokens, walk[0])

    if marker == "<-":
        if is_expression:
            return None
        is_expression = False

    if not is_expression:
        name_idx, fmt, base, limits = walk
        return Declaration(
            name=tokens[name_idx].value,
            marker=marker,
            clear_behavior=CLEAR_BEHAVIOR[marker],
            value_text=value_text,
            format=fmt,
            base=base or 10,
            limits=limits,
            full_precision=marker in FULL_PRECISION_MARKERS,
            comment=comment,
            comment_unquoted=comment_unquoted,
            unit=unit_comment,
            label_span=(0, tokens[name_idx].pos),
            marker_end=marker_token.end,
            line=line_index,
        )

    # Expression output: strip trailing decorations, skip any label that ends
    # in an earlier marker, then find where the expression begins.
    fmt = marker_token.format
    base = marker_token.base
    end = marker_idx
    while end > 0 and tokens[end - 1].type == FORMATTER:
        decoration = tokens[end - 1]
        if decoration.value == "#":
            base = base or decoration.base
        else:
            fmt = fmt or decoration.format
        end -= 1
    lo = 0
    for idx in range(end - 1, -1, -1):
        if tokens[idx].is_marker:
            lo = idx + 1
            break
    start = _expression_start(tokens, lo, end)
    if start is None:
        return None
    expression = clean[tokens[start].pos:tokens[end - 1].end].strip()
    if not expression:
        return None

    return ExpressionOutput(
        expression=expression,
        marker=marker,
        value_text=value_text,
        full_precision=marker in FULL_PRECISION_MARKERS,
        recalculates=marker in OUTPUT_MARKERS,
        format=fmt,
        base=base or 10,
        comment=comment,
        comment_unquoted=comment_unquoted,
        unit=unit_comment,
        label_span=(0, tokens[start].pos),
        marker_end=marker_token.end,
        line=line_index,
    )


def unclosed_brackets(line: str) -> int:
    """Count of ``[`` left open on a line (comments ignored)."""
    clean, _, _ = strip_comments(line)
    depth = 0
    for ch in clean:
        if ch == "[":
            depth += 1
        elif ch == "]" and depth > 0:
            depth -= 1
    return depth
