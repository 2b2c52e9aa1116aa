"""Document text scanning and rewriting.

This module provides:
- Equation discovery (plain ``a = b`` lines and ``{...}`` blocks)
- Inline ``\\expr\\`` evaluation and expansion
- Declaration scanning, including ``[low:high]`` limits spread over lines
- Value rendering, clearing and the references section
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import (
    INLINE_EVAL_RE,
    MAX_LIMITS_SPAN,
    QUOTED_COMMENT_RE,
    REFERENCES_HEADER,
    SIMPLE_NUMBER_RE,
)
from .evaluator import EvalContext, evaluate_text
from .formatting import format_number
from .line_parser import (
    CLEAR_BEHAVIOR,
    NONE,
    ON_CLEAR,
    ON_SOLVE,
    Declaration,
    LineRecord,
    classify_line,
    strip_comments,
    unclosed_brackets,
)
from .tokenizer import LBRACKET, LPAREN, OPERATOR, RBRACKET, RPAREN, tokenize
from .types import MathPadError, SolveConfig, ValidationError

_REFERENCES_RE = re.compile(r"\n*" + re.escape(REFERENCES_HEADER) + r"[\s\S]*$")

CLEAR_MODES = {
    "input": (ON_CLEAR, ON_SOLVE),
    "output": (ON_SOLVE,),
    "all": (NONE, ON_CLEAR, ON_SOLVE),
}


@dataclass
class Equation:
    """An equation found in the document; lines are 0-based and inclusive."""

    text: str
    is_braced: bool
    start_line: int
    end_line: int


# ---------------------------------------------------------------------------
# Equations


def find_equations(lines: List[str]) -> List[Equation]:
    """Find plain and braced equations.

    A plain equation line has a standalone ``=`` ahead of any ``:``, ``<-``
    or ``->``. A ``{`` opens a braced equation that ends at the next ``}``,
    possibly lines later.
    """
    equations: List[Equation] = []
    brace_start: Optional[int] = None
    brace_parts: List[str] = []

    for index, line in enumerate(lines):
        clean, _, _ = strip_comments(line)

        if brace_start is not None:
            close = clean.find("}")
            if close == -1:
                brace_parts.append(clean)
                continue
            brace_parts.append(clean[:close])
            equations.append(Equation(" ".join(brace_parts).strip(), True, brace_start, index))
            brace_start = None
            continue

        open_idx = clean.find("{")
        if open_idx != -1:
            after = clean[open_idx + 1:]
            close = after.find("}")
            if close != -1:
                equations.append(Equation(after[:close].strip(), True, index, index))
            else:
                brace_start = index
                brace_parts = [after]
            continue

        eq_idx = clean.find("=")
        if eq_idx == -1:
            continue
        prev_char = clean[eq_idx - 1] if eq_idx > 0 else ""
        next_char = clean[eq_idx + 1] if eq_idx + 1 < len(clean) else ""
        if prev_char in ("=", "!", "<", ">") or next_char == "=":
            continue
        if any(0 <= clean.find(marker) < eq_idx for marker in (":", "<-", "->")):
            continue
        equations.append(Equation(clean.strip(), False, index, index))

    return equations


def split_equation(text: str) -> Optional[Tuple[str, str]]:
    """Split at the first top-level ``=`` operator; None when there is none."""
    depth = 0
    for token in tokenize(text):
        if token.type in (LPAREN, LBRACKET):
            depth += 1
        elif token.type in (RPAREN, RBRACKET):
            depth = max(0, depth - 1)
        elif token.type == OPERATOR and token.value == "=" and depth == 0:
            return text[:token.pos].strip(), text[token.end:].strip()
    return None


def complete_equation(line: str, value_text: str, is_braced: bool) -> str:
    """Write the value of an incomplete ``expr =`` into its line."""
    clean, _, _ = strip_comments(line)
    if is_braced:
        close = clean.find("}")
        if close != -1:
            return line[:close].rstrip() + " " + value_text + line[close:]
    end = len(clean.rstrip())
    return line[:end] + " " + value_text + line[end:]


# ---------------------------------------------------------------------------
# Inline evaluation


def _inline_literal(value: float) -> str:
    if value != value:
        return "(NaN)"
    if value in (float("inf"), float("-inf")):
        return "(Infinity)" if value > 0 else "(-Infinity)"
    return f"({value!r})"


def _is_rendered(content: str) -> bool:
    content = content.strip()
    return bool(SIMPLE_NUMBER_RE.match(content)) or content in ("NaN", "Infinity", "-Infinity")


def expand_inline(text: str, ctx: EvalContext) -> Optional[str]:
    """Replace every ``\\expr\\`` with its parenthesized value.

    Returns None when any of them cannot be evaluated yet.
    """
    failed = False

    def replace(match: re.Match) -> str:
        nonlocal failed
        try:
            return _inline_literal(evaluate_text(match.group(1), ctx))
        except MathPadError:
            failed = True
            return match.group(0)

    expanded = INLINE_EVAL_RE.sub(replace, text)
    return None if failed else expanded


def evaluate_inline_lines(
    lines: List[str], ctx: EvalContext, config: SolveConfig, final: bool = False
) -> Tuple[List[str], List[Tuple[int, str]]]:
    """Splice formatted results into ``\\expr\\`` evaluations.

    Results already rendered as numbers are left alone. Failures are
    returned as (line, message) only on the final pass; earlier passes
    leave the expression for later.
    """
    errors: List[Tuple[int, str]] = []
    out = list(lines)
    for index, line in enumerate(lines):
        if "\\" not in line:
            continue
        ctx.line = index

        def replace(match: re.Match) -> str:
            content = match.group(1)
            if _is_rendered(content):
                return match.group(0)
            try:
                value = evaluate_text(content, ctx)
            except MathPadError as e:
                if final:
                    errors.append((index, str(e)))
                return match.group(0)
            return "\\" + format_number(value, config.places, config.strip_zeros, config.format) + "\\"

        out[index] = INLINE_EVAL_RE.sub(replace, line)
    ctx.line = None
    return out, errors


# ---------------------------------------------------------------------------
# Declarations


def _limits_span(lines: List[str], start: int) -> Optional[Tuple[int, str, int]]:
    """Join a declaration whose ``[`` closes on a later line.

    Returns (closing_line, joined_text, offset_of_closing_line) or None when
    the bracket stays open for MAX_LIMITS_SPAN lines.
    """
    first, _, _ = strip_comments(lines[start])
    parts = [first]
    depth = unclosed_brackets(lines[start])
    for index in range(start + 1, min(len(lines), start + MAX_LIMITS_SPAN)):
        line = lines[index]
        clean, _, _ = strip_comments(line)
        for ch in clean:
            if ch == "[":
                depth += 1
            elif ch == "]" and depth > 0:
                depth -= 1
        if depth == 0:
            joined = " ".join(parts + [line])
            return index, joined, len(joined) - len(line)
        parts.append(clean)
    return None


def scan_records(lines: List[str]) -> List[LineRecord]:
    """Classify every line, joining multi-line limits declarations.

    A joined declaration reports its closing line, and its ``marker_end``
    is relative to that line.
    """
    records: List[LineRecord] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        if unclosed_brackets(line) > 0:
            span = _limits_span(lines, index)
            if span is not None:
                end, joined, offset = span
                record = classify_line(joined, end)
                if isinstance(record, Declaration) and record.has_limits and record.marker_end > offset:
                    record.marker_end -= offset
                    record.label_span = (0, 0)
                    records.append(record)
                    index = end + 1
                    continue
        record = classify_line(line, index)
        if record is not None:
            records.append(record)
        index += 1
    return records


def render_value(line: str, record: LineRecord, value_text: str) -> str:
    """Rewrite the value part of a declaration or expression-output line.

    Everything up to the marker is kept, followed by the value, the unit of
    an output, any quoted comments and the ``//`` comment.
    """
    _, stripped, line_comment = strip_comments(line)
    quoted = QUOTED_COMMENT_RE.findall(stripped[record.marker_end:])
    pieces = [line[:record.marker_end]]
    if value_text:
        pieces.append(value_text)
    if record.unit:
        pieces.append(record.unit)
    pieces.extend(quoted)
    if line_comment:
        pieces.append(line_comment)
    return " ".join(pieces)


def clear_values(text: str, mode: str) -> str:
    """Remove values according to their markers.

    ``input`` clears ``<-`` and output values, ``output`` clears only
    ``->``/``->>`` values and ``all`` clears every value. Comments and
    units stay.
    """
    if mode not in CLEAR_MODES:
        raise ValidationError(
            f"Unknown clear mode '{mode}' (expected one of {', '.join(CLEAR_MODES)})",
            "INVALID_MODE",
        )
    cleared = CLEAR_MODES[mode]
    lines = text.split("\n")
    for record in scan_records(lines):
        if isinstance(record, Declaration):
            behavior = record.clear_behavior
        else:
            behavior = CLEAR_BEHAVIOR[record.marker]
        if behavior in cleared and record.value_text:
            lines[record.line] = render_value(lines[record.line], record, "")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# References section


def remove_references_section(text: str) -> str:
    return _REFERENCES_RE.sub("", text)


def append_references_section(text: str, ctx: EvalContext) -> str:
    """List the shared constants and functions the solve used."""
    entries = [REFERENCES_HEADER]
    for name in sorted(ctx.used_constants):
        if name in ctx.variables or name not in ctx.constants:
            continue
        entry = f"{name}: {format_number(ctx.constants[name])}"
        comment = ctx.constant_comments.get(name)
        if comment:
            entry += f' "{comment}"'
        entries.append(entry)
    for name in sorted(ctx.used_functions):
        func = ctx.user_functions.get(name)
        if func is not None and func.source:
            entries.append(func.source)
    if len(entries) == 1:
        return text
    return text.rstrip() + "\n\n" + "\n".join(entries)
