"""Public API for MathPad - returns structured objects without side effects."""

from __future__ import annotations

from .config import MAX_INPUT_LENGTH
from .document import clear_values, find_equations
from .engine import solve as _solve
from .evaluator import (
    EvalContext,
    evaluate_text,
    parse_constants,
    parse_function_definition,
    parse_functions,
)
from .formatting import format_number
from .line_parser import Declaration, classify_line
from .logging_config import get_logger
from .parser import parse_expression
from .types import (
    ClassifyResult,
    EvalResult,
    MathPadError,
    SolveConfig,
    SolveResult,
    ValidationError,
)

logger = get_logger("api")


def _check_length(text: str, what: str = "Input") -> None:
    if len(text) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"{what} is too long ({len(text)} characters, limit {MAX_INPUT_LENGTH})",
            "INPUT_TOO_LONG",
        )


def create_context(
    constants_text: str = "",
    functions_text: str = "",
    config: SolveConfig | None = None,
) -> EvalContext:
    """Build the shared context documents are solved against.

    Args:
        constants_text: Lines such as ``pi: 3.14159 "comment"``
        functions_text: Lines such as ``area(r) = pi * r**2``
        config: Settings; only ``degrees_mode`` is used here

    Returns:
        EvalContext holding the constants and functions

    Example:
        >>> from mathpad_pkg.api import create_context, solve
        >>> ctx = create_context("g: 9.80665", "ke(m; v) = m * v**2 / 2")
        >>> solve("k->\\nk = ke(2; 3)", ctx).text.splitlines()[0]
        'k-> 9'
    """
    _check_length(constants_text, "Constants text")
    _check_length(functions_text, "Functions text")
    config = config or SolveConfig()
    ctx = EvalContext(degrees_mode=config.degrees_mode)
    for name, (value, comment) in parse_constants(constants_text).items():
        ctx.set_constant(name, value, comment)
    ctx.user_functions.update(parse_functions(functions_text))
    logger.debug(
        f"Context created with {len(ctx.constants)} constant(s) and {len(ctx.user_functions)} function(s)"
    )
    return ctx


def solve(
    text: str,
    context: EvalContext | None = None,
    config: SolveConfig | None = None,
) -> SolveResult:
    """Solve a document.

    Args:
        text: Document text
        context: Shared context (an empty one when omitted)
        config: Display and evaluation settings

    Returns:
        SolveResult with the rewritten text, the solved count and errors

    Example:
        >>> from mathpad_pkg.api import solve
        >>> solve("a: 2\\nb: 3\\na + b->").text
        'a: 2\\nb: 3\\na + b-> 5'
    """
    config = config or SolveConfig()
    try:
        _check_length(text, "Document")
    except ValidationError as e:
        return SolveResult(text=text, solved=0, errors=[str(e)])
    if context is None:
        context = create_context(config=config)
    return _solve(text, context, config)


def clear(text: str, mode: str = "input") -> str:
    """Clear declaration values.

    Args:
        text: Document text
        mode: ``input`` (``<-`` and outputs), ``output`` (``->``/``->>``
            only) or ``all``

    Raises:
        ValidationError: unknown mode
    """
    return clear_values(text, mode)


def evaluate(
    expression: str,
    context: EvalContext | None = None,
    config: SolveConfig | None = None,
) -> EvalResult:
    """Evaluate a single expression.

    Args:
        expression: Expression string (e.g., "2+2", "sqrt(16)")
        context: Optional context supplying constants and functions
        config: Display settings for the formatted result

    Returns:
        EvalResult with the value and its formatted text

    Example:
        >>> from mathpad_pkg.api import evaluate
        >>> evaluate("2 ** 10").result
        '1024'
    """
    config = config or SolveConfig()
    ctx = (context or EvalContext()).fork()
    ctx.degrees_mode = config.degrees_mode
    try:
        _check_length(expression, "Expression")
        value = evaluate_text(expression, ctx)
    except MathPadError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    except RecursionError:
        return EvalResult(ok=False, error="Expression is nested too deeply", error_code="TOO_DEEP")
    result = format_number(value, config.places, config.strip_zeros, config.format, 10, config.group_digits)
    return EvalResult(ok=True, value=value, result=result)


def classify(line: str) -> ClassifyResult:
    """Classify one document line.

    Example:
        >>> from mathpad_pkg.api import classify
        >>> classify("Total cost$: 12.5").to_dict()["name"]
        'cost'
    """
    record = classify_line(line)
    if isinstance(record, Declaration):
        return ClassifyResult(
            kind=record.kind,
            name=record.name,
            marker=record.marker,
            value_text=record.value_text,
            comment=record.comment,
            details={
                "clear_behavior": record.clear_behavior,
                "format": record.format,
                "base": record.base,
                "limits": list(record.limits) if record.limits else None,
                "full_precision": record.full_precision,
            },
        )
    if record is not None:
        return ClassifyResult(
            kind=record.kind,
            expression=record.expression,
            marker=record.marker,
            value_text=record.value_text,
            comment=record.comment,
            details={
                "format": record.format,
                "base": record.base,
                "full_precision": record.full_precision,
                "recalculates": record.recalculates,
            },
        )
    equations = find_equations([line])
    if equations:
        definition = parse_function_definition(equations[0].text)
        if definition is not None:
            name, params, body = definition
            return ClassifyResult(
                kind="function", name=name, expression=body, details={"params": params}
            )
        return ClassifyResult(
            kind="equation",
            expression=equations[0].text,
            details={"braced": equations[0].is_braced},
        )
    return ClassifyResult(kind="none")


def validate_expression(expression: str) -> tuple[bool, str | None]:
    """Validate an expression without evaluating it.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from mathpad_pkg.api import validate_expression
        >>> validate_expression("2 + (3")[0]
        False
    """
    try:
        _check_length(expression, "Expression")
        parse_expression(expression.strip())
        return True, None
    except MathPadError as e:
        return False, str(e)
