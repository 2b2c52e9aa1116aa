"""Expression evaluation against a context of variables, constants and
user-defined functions.

This module provides:
- EvalContext: variable frames, shared constants/functions, positional
  shadowing of constants and usage tracking
- evaluate(): AST to float
- Loaders for the shared Constants and Functions texts
"""

from __future__ import annotations

import math
from typing import Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

from .config import FUNCTION_DEF_RE, MAX_CALL_DEPTH, VAR_NAME_RE
from .formatting import parse_numeric_value
from .functions import (
    RESERVED_FUNCTION_NAMES,
    call_builtin,
    divide,
    get_builtin,
    real_power,
    remainder,
    to_int32,
    truthy,
)
from .line_parser import Declaration, classify_line, strip_comments
from .logging_config import get_logger
from .parser import BinaryOp, FunctionCall, Node, Number, UnaryOp, Variable, parse_expression
from .types import EvalError, MathPadError

logger = get_logger("evaluator")


class UserFunction(NamedTuple):
    params: Tuple[str, ...]
    body: Node
    source: Optional[str] = None  # definition text, for the references section


class EvalContext:
    """Evaluation state.

    ``variables`` is copied into each call frame; constants, functions,
    shadowing and usage tracking are shared by reference between a context
    and its clones.

    ``line`` is the 0-based document line being evaluated. A constant shadowed
    by a declaration on line N stays visible to lines before N.
    """

    def __init__(self, degrees_mode: bool = False):
        self.variables: Dict[str, float] = {}
        self.constants: Dict[str, float] = {}
        self.constant_comments: Dict[str, str] = {}
        self.shadowed_constants: Dict[str, int] = {}
        self.user_functions: Dict[str, UserFunction] = {}
        self.degrees_mode = degrees_mode
        self.used_constants: Set[str] = set()
        self.used_functions: Set[str] = set()
        self.line: Optional[int] = None
        self.depth = 0
        self.bound: Set[str] = set()  # parameter names of the current call frame

    # Variables

    def set_variable(self, name: str, value: float) -> None:
        self.variables[name] = value

    def _is_shadowed(self, name: str) -> bool:
        shadow_line = self.shadowed_constants.get(name)
        if shadow_line is None:
            return False
        return self.line is None or self.line >= shadow_line

    def _zero_arg_builtin(self, name: str):
        builtin = get_builtin(name)
        if builtin is not None and builtin.max_args == 0:
            return builtin
        return None

    def lookup(self, name: str) -> Optional[float]:
        """Resolve a name: variable, then unshadowed constant, then zero-argument builtin."""
        if name in self.variables and (name in self.bound or not self._before_declaration(name)):
            return self.variables[name]
        if self._is_shadowed(name):
            return None
        if name in self.constants:
            self.used_constants.add(name)
            return self.constants[name]
        builtin = self._zero_arg_builtin(name)
        if builtin is not None:
            return call_builtin(builtin, [], self)
        return None

    def has(self, name: str) -> bool:
        """True when ``name`` resolves to a value at the current line."""
        if name in self.variables and (name in self.bound or not self._before_declaration(name)):
            return True
        if self._is_shadowed(name):
            return False
        return name in self.constants or self._zero_arg_builtin(name) is not None

    def _before_declaration(self, name: str) -> bool:
        # Text above a shadowing declaration still sees the constant
        shadow_line = self.shadowed_constants.get(name)
        return shadow_line is not None and self.line is not None and self.line < shadow_line

    # Constants

    def set_constant(self, name: str, value: float, comment: Optional[str] = None) -> None:
        self.constants[name] = value
        if comment:
            self.constant_comments[name] = comment

    def shadow_constant(self, name: str, line: int) -> None:
        """Suppress a constant (or zero-argument builtin) from ``line`` onward."""
        if name not in self.constants and self._zero_arg_builtin(name) is None:
            return
        current = self.shadowed_constants.get(name)
        if current is None or line < current:
            self.shadowed_constants[name] = line

    def is_constant_visible(self, name: str) -> bool:
        return name in self.constants and not self._is_shadowed(name)

    # Functions

    def set_user_function(self, name: str, params: Sequence[str], body: Node, source: Optional[str] = None) -> None:
        self.user_functions[name.lower()] = UserFunction(tuple(params), body, source)

    def get_user_function(self, name: str) -> Optional[UserFunction]:
        func = self.user_functions.get(name.lower())
        if func is not None:
            self.used_functions.add(name.lower())
        return func

    def clear_usage_tracking(self) -> None:
        self.used_constants.clear()
        self.used_functions.clear()

    # Frames

    def clone(self) -> "EvalContext":
        """New frame: copied variables, everything else shared."""
        ctx = EvalContext(self.degrees_mode)
        ctx.variables = dict(self.variables)
        ctx.constants = self.constants
        ctx.constant_comments = self.constant_comments
        ctx.shadowed_constants = self.shadowed_constants
        ctx.user_functions = self.user_functions
        ctx.used_constants = self.used_constants
        ctx.used_functions = self.used_functions
        ctx.line = self.line
        ctx.depth = self.depth
        ctx.bound = set(self.bound)
        return ctx

    def fork(self) -> "EvalContext":
        """Independent working context for one solve.

        Constants stay shared; functions are copied so document-local
        definitions do not leak, and shadowing and usage start empty.
        """
        ctx = EvalContext(self.degrees_mode)
        ctx.variables = dict(self.variables)
        ctx.constants = self.constants
        ctx.constant_comments = self.constant_comments
        ctx.user_functions = dict(self.user_functions)
        return ctx


def evaluate(node: Node, ctx: EvalContext) -> float:
    """Evaluate an AST node to a float.

    Raises:
        EvalError: undefined variable, division by zero, unknown function,
            wrong builtin arity or runaway recursion
    """
    if isinstance(node, Number):
        return node.value

    if isinstance(node, Variable):
        value = ctx.lookup(node.name)
        if value is None:
            raise EvalError(f"Undefined variable: {node.name}", "UNDEFINED_VARIABLE")
        return value

    if isinstance(node, UnaryOp):
        operand = evaluate(node.operand, ctx)
        if node.op == "-":
            return -operand
        if node.op == "+":
            return operand
        if node.op == "~":
            return float(~to_int32(operand))
        if node.op == "!":
            return 0.0 if truthy(operand) else 1.0
        raise EvalError(f"Unknown unary operator: {node.op}")

    if isinstance(node, BinaryOp):
        return _binary(node, ctx)

    if isinstance(node, FunctionCall):
        return _call(node, ctx)

    raise EvalError(f"Unknown node type: {type(node).__name__}")


def _binary(node: BinaryOp, ctx: EvalContext) -> float:
    op = node.op
    if op == "&&":
        if not truthy(evaluate(node.left, ctx)):
            return 0.0
        return 1.0 if truthy(evaluate(node.right, ctx)) else 0.0
    if op == "||":
        if truthy(evaluate(node.left, ctx)):
            return 1.0
        return 1.0 if truthy(evaluate(node.right, ctx)) else 0.0

    left = evaluate(node.left, ctx)
    right = evaluate(node.right, ctx)

    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise EvalError("Division by zero", "DIVISION_BY_ZERO")
        return divide(left, right)
    if op == "%":
        return remainder(left, right)
    if op == "**":
        return real_power(left, right)
    if op == "<<":
        return float(to_int32(to_int32(left) << (to_int32(right) & 31)))
    if op == ">>":
        return float(to_int32(left) >> (to_int32(right) & 31))
    if op == "&":
        return float(to_int32(left) & to_int32(right))
    if op == "|":
        return float(to_int32(left) | to_int32(right))
    if op == "^":
        return float(to_int32(left) ^ to_int32(right))
    if op == "==":
        return 1.0 if left == right else 0.0
    if op == "!=":
        return 1.0 if left != right else 0.0
    if op == "<":
        return 1.0 if left < right else 0.0
    if op == "<=":
        return 1.0 if left <= right else 0.0
    if op == ">":
        return 1.0 if left > right else 0.0
    if op == ">=":
        return 1.0 if left >= right else 0.0
    if op == "^^":
        return 1.0 if truthy(left) != truthy(right) else 0.0
    raise EvalError(f"Unknown binary operator: {op}")


def _call(node: FunctionCall, ctx: EvalContext) -> float:
    name = node.name.lower()

    user_func = ctx.get_user_function(name)
    if user_func is not None:
        args = [evaluate(arg, ctx) for arg in node.args]
        frame = ctx.clone()
        frame.depth = ctx.depth + 1
        if frame.depth > MAX_CALL_DEPTH:
            raise EvalError(
                f"Maximum function call depth ({MAX_CALL_DEPTH}) exceeded in {node.name}()",
                "RECURSION_LIMIT",
            )
        for i, param in enumerate(user_func.params):
            frame.variables[param] = args[i] if i < len(args) else 0.0
            frame.bound.add(param)
        try:
            return evaluate(user_func.body, frame)
        except RecursionError:
            raise EvalError(f"Recursion too deep in {node.name}()", "RECURSION_LIMIT") from None

    # Only the selected branch is evaluated so guarded recursion terminates
    if name == "if":
        if len(node.args) < 2:
            raise EvalError("if() requires at least 2 arguments", "ARITY")
        if truthy(evaluate(node.args[0], ctx)):
            return evaluate(node.args[1], ctx)
        return evaluate(node.args[2], ctx) if len(node.args) > 2 else 0.0

    builtin = get_builtin(name)
    if builtin is None:
        raise EvalError(f"Unknown function: {node.name}", "UNKNOWN_FUNCTION")
    count = len(node.args)
    if count < builtin.min_args or (builtin.max_args is not None and count > builtin.max_args):
        raise EvalError(_arity_message(node.name, builtin.min_args, builtin.max_args, count), "ARITY")
    args = [evaluate(arg, ctx) for arg in node.args]
    return call_builtin(builtin, args, ctx)


def _arity_message(name: str, low: int, high: Optional[int], got: int) -> str:
    if high is None:
        expected = f"at least {low}"
    elif low == high:
        expected = str(low)
    else:
        expected = f"{low} to {high}"
    return f"{name}() expects {expected} argument(s), got {got}"


def evaluate_text(text: str, ctx: EvalContext) -> float:
    """Parse and evaluate expression text."""
    return evaluate(parse_expression(text.strip()), ctx)


# ---------------------------------------------------------------------------
# Constants and functions tables


def parse_function_definition(text: str) -> Optional[Tuple[str, List[str], str]]:
    """Split ``name(p1; p2) = body`` (optionally in braces) into its parts.

    Returns None unless every parameter is a bare name and ``name`` is not a
    builtin (``sin(x) = 0.5`` is an equation, not a definition).
    """
    match = FUNCTION_DEF_RE.match(text)
    if not match:
        return None
    name, params_text, body = match.group(1), match.group(2), match.group(3)
    if name.lower() in RESERVED_FUNCTION_NAMES or not body.strip():
        return None
    params = [p.strip() for p in params_text.replace(",", ";").split(";")] if params_text.strip() else []
    if not all(VAR_NAME_RE.match(p) for p in params):
        return None
    return name, params, body.strip()


def parse_constants(text: str) -> Dict[str, Tuple[float, Optional[str]]]:
    """Read ``name: value "comment"`` lines.

    Values may be literals or expressions over earlier constants. Lines that
    are not declarations with a value are ignored.
    """
    constants: Dict[str, Tuple[float, Optional[str]]] = {}
    scratch = EvalContext()
    for index, line in enumerate(text.split("\n")):
        record = classify_line(line, index)
        if not isinstance(record, Declaration) or not record.value_text:
            continue
        value = parse_numeric_value(record.value_text, record.format, record.base)
        if value is None:
            try:
                value = evaluate_text(record.value_text, scratch)
            except MathPadError as e:
                logger.warning(f"Skipping constant '{record.name}' on line {index + 1}: {e}")
                continue
        constants[record.name] = (value, record.comment if not record.comment_unquoted else None)
        scratch.set_constant(record.name, value)
    return constants


def _definition_chunks(text: str):
    """Yield (line_number, definition_text), joining brace-delimited blocks."""
    block: List[str] = []
    block_start = 0
    for index, line in enumerate(text.split("\n")):
        _, stripped, _ = strip_comments(line)
        clean = stripped.strip()
        if block:
            block.append(clean)
            if "}" in clean:
                yield block_start, " ".join(block)
                block = []
            continue
        if clean.startswith("{") and "}" not in clean:
            block = [clean]
            block_start = index
            continue
        if clean:
            yield index, clean
    if block:
        yield block_start, " ".join(block)


def parse_functions(text: str) -> Dict[str, UserFunction]:
    """Read ``name(p1; p2) = body`` definitions, single-line or braced."""
    functions: Dict[str, UserFunction] = {}
    for index, chunk in _definition_chunks(text):
        clean = _strip_quoted(chunk)
        definition = parse_function_definition(clean)
        if definition is None:
            continue
        name, params, body_text = definition
        try:
            body = parse_expression(body_text)
        except MathPadError as e:
            logger.warning(f"Skipping function '{name}' on line {index + 1}: {e}")
            continue
        functions[name.lower()] = UserFunction(tuple(params), body, clean)
    return functions


def _strip_quoted(text: str) -> str:
    out = []
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote:
            out.append(ch)
    return "".join(out).strip()


def is_balanced(left: float, right: float, tolerance: float) -> bool:
    """Relative comparison used by the final consistency check."""
    if left == right:
        return True
    if not (math.isfinite(left) and math.isfinite(right)):
        return False
    return abs(left - right) <= tolerance * max(abs(left), abs(right), 1.0)
