"""Three-pass document solving.

Pass 1 loads the declared values, pass 2 solves equations until a round
changes nothing, pass 3 writes results back into the text and checks that
every fully known equation balances.

Output declarations (``->``, ``->>``) are never read back as inputs: their
values are recomputed on every solve so that a stale result cannot pin an
equation. Everything else a user typed is taken as given.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Set, Tuple

from .config import BALANCE_TOLERANCE, MAX_SOLVE_ITERATIONS, VAR_NAME_RE
from .document import (
    Equation,
    append_references_section,
    complete_equation,
    evaluate_inline_lines,
    expand_inline,
    find_equations,
    remove_references_section,
    render_value,
    scan_records,
    split_equation,
)
from .evaluator import (
    EvalContext,
    evaluate,
    evaluate_text,
    is_balanced,
    parse_function_definition,
)
from .formatting import (
    format_number,
    format_variable_value,
    literal_resolution,
    parse_numeric_value,
)
from .functions import NAN
from .line_parser import Declaration, ExpressionOutput
from .logging_config import get_logger
from .parser import Node, Variable, find_variables, parse_expression, substitute
from .solver import find_root
from .types import EvalError, MathPadError, ParseError, SolveConfig, SolveResult, SolverError

logger = get_logger("engine")

Substitutions = Dict[str, Tuple[Node, int]]


class DocumentSolver:
    """Solves one document against a shared context.

    The shared context is forked, so constants and functions are read but
    never modified and separate solves do not see each other's variables.
    """

    def __init__(self, text: str, context: EvalContext, config: SolveConfig):
        self.config = config
        self.ctx = context.fork()
        self.ctx.degrees_mode = config.degrees_mode
        self.lines = remove_references_section(text).split("\n")
        self.errors: List[str] = []
        self.declarations: Dict[str, List[Declaration]] = {}
        self.user_provided: Dict[str, float] = {}
        self.resolution: Dict[str, float] = {}
        self.failures: Dict[str, Tuple[str, int]] = {}
        self.solved_names: List[str] = []
        self.completed = 0
        self.function_lines: Set[int] = set()
        self.unchanged: Set[str] = set()

    def run(self) -> SolveResult:
        self._load_local_functions()
        self._discover()
        self._solve_equations()
        self._write_results()

        text = "\n".join(self.lines)
        if self.config.references:
            text = append_references_section(text, self.ctx)

        solved = self.completed + sum(1 for name in self.solved_names if name not in self.unchanged)
        logger.info(f"Solve finished: {solved} solved, {len(self.errors)} error(s)")
        return SolveResult(text=text, solved=solved, errors=list(self.errors))

    # Helpers

    def _error(self, line: int, message: str) -> None:
        entry = f"Line {line + 1}: {message}"
        if entry not in self.errors:
            self.errors.append(entry)

    def _render(self, value: float, var_format: Optional[str], full_precision: bool, base: int) -> str:
        cfg = self.config
        return format_variable_value(
            value, var_format, full_precision, cfg.places, cfg.strip_zeros, cfg.format, base, cfg.group_digits
        )

    def _value_of(self, text: str, ctx: EvalContext, var_format: Optional[str] = None, base: int = 10) -> float:
        value = parse_numeric_value(text, var_format, base)
        if value is None:
            value = evaluate_text(text, ctx)
        return value

    def _limits(self, name: str) -> Optional[Tuple[float, float]]:
        """Evaluated [low:high] of the first declaration of ``name`` that has limits."""
        for decl in self.declarations.get(name, ()):
            if decl.limits is None:
                continue
            frame = self.ctx.clone()
            frame.line = decl.line
            try:
                return self._value_of(decl.limits[0], frame), self._value_of(decl.limits[1], frame)
            except MathPadError as e:
                logger.debug(f"Ignoring limits of '{name}' on line {decl.line + 1}: {e}")
                return None
        return None

    def _unknowns(self, *nodes: Node) -> List[str]:
        names: Set[str] = set()
        for node in nodes:
            names |= find_variables(node)
        return sorted(name for name in names if not self.ctx.has(name))

    # Document-local functions

    def _load_local_functions(self) -> None:
        for eq in find_equations(self.lines):
            definition = parse_function_definition(eq.text)
            if definition is None:
                continue
            name, params, body_text = definition
            try:
                body = parse_expression(body_text)
            except MathPadError as e:
                self._error(eq.start_line, str(e))
                continue
            self.ctx.set_user_function(name, params, body)
            self.function_lines.update(range(eq.start_line, eq.end_line + 1))
            logger.debug(f"Defined {name}({'; '.join(params)}) on line {eq.start_line + 1}")

    # Pass 1

    def _discover(self) -> None:
        if self.config.shadow_constants:
            for record in scan_records(self.lines):
                if isinstance(record, Declaration) and not record.is_output:
                    self.ctx.shadow_constant(record.name, record.line)

        self.lines, _ = evaluate_inline_lines(self.lines, self.ctx, self.config)

        for record in scan_records(self.lines):
            if not isinstance(record, Declaration):
                continue
            self.declarations.setdefault(record.name, []).append(record)
            if record.is_output or not record.value_text:
                continue
            self._load_value(record)
        self.ctx.line = None

    def _load_value(self, decl: Declaration) -> None:
        ctx = self.ctx
        ctx.line = decl.line
        text = expand_inline(decl.value_text, ctx)
        if text is None:
            return
        try:
            value = parse_numeric_value(text, decl.format, decl.base)
            if value is None:
                node = parse_expression(text)
                missing = self._unknowns(node)
                if missing:
                    self._error(decl.line, f'Variable "{decl.name}" references undefined: {", ".join(missing)}')
                    return
                value = evaluate(node, ctx)
        except MathPadError as e:
            self._error(decl.line, str(e))
            return

        if decl.name in self.user_provided:
            previous = self.user_provided[decl.name]
            same = previous == value or (math.isnan(previous) and math.isnan(value))
            if not same:
                self._error(decl.line, f"Duplicate declaration of '{decl.name}' with a different value")
            return

        ctx.set_variable(decl.name, value)
        self.user_provided[decl.name] = value
        self.resolution[decl.name] = literal_resolution(decl.value_text, decl.format)

    # Pass 2

    def _solve_equations(self) -> None:
        for round_number in range(1, MAX_SOLVE_ITERATIONS + 1):
            equations = [eq for eq in find_equations(self.lines) if eq.start_line not in self.function_lines]
            substitutions = self._substitutions(equations)
            changed = False
            for eq in equations:
                if self._solve_equation(eq, substitutions):
                    changed = True
            if not changed:
                logger.debug(f"Equations settled after {round_number} round(s)")
                break
        else:
            logger.debug(f"Stopped after {MAX_SOLVE_ITERATIONS} rounds")
        self.ctx.line = None

    def _substitutions(self, equations: List[Equation]) -> Substitutions:
        """``name = expr`` equations whose name has no value yet; the first one wins."""
        substitutions: Substitutions = {}
        for eq in equations:
            self.ctx.line = eq.start_line
            text = expand_inline(eq.text, self.ctx)
            parts = split_equation(text) if text is not None else None
            if parts is None or not parts[1]:
                continue
            name, expr_text = parts
            if not VAR_NAME_RE.match(name) or name in substitutions or self.ctx.has(name):
                continue
            try:
                substitutions[name] = (parse_expression(expr_text), eq.start_line)
            except MathPadError:
                continue
        return substitutions

    def _solve_equation(self, eq: Equation, substitutions: Substitutions) -> bool:
        """Try one equation; True when it produced a value."""
        ctx = self.ctx
        ctx.line = eq.start_line
        text = expand_inline(eq.text, ctx)
        if text is None:
            return False
        parts = split_equation(text)
        if parts is None:
            return False
        left_text, right_text = parts

        if not right_text:
            return self._complete(eq, left_text, substitutions)

        try:
            left = parse_expression(left_text)
            right = parse_expression(right_text)
        except ParseError as e:
            self._error(eq.start_line, str(e))
            return False

        if isinstance(left, Variable):
            name = left.name
            rhs_unknowns = self._unknowns(right)
            if name in self.user_provided or ctx.has(name):
                if not rhs_unknowns:
                    return False
            elif not rhs_unknowns:
                return self._define(eq, name, right)
            else:
                return False

        return self._root_solve(eq, left, right, substitutions)

    def _complete(self, eq: Equation, expr_text: str, substitutions: Substitutions) -> bool:
        """Fill in ``expr =`` once the expression can be evaluated."""
        try:
            node = substitute(parse_expression(expr_text), {k: v[0] for k, v in substitutions.items()})
            value = evaluate(node, self.ctx)
        except MathPadError as e:
            logger.debug(f"Line {eq.start_line + 1} not ready: {e}")
            return False
        cfg = self.config
        formatted = format_number(value, cfg.places, cfg.strip_zeros, cfg.format, 10, cfg.group_digits)
        index = eq.end_line if eq.is_braced else eq.start_line
        self.lines[index] = complete_equation(self.lines[index], formatted, eq.is_braced)
        self.completed += 1
        return True

    def _define(self, eq: Equation, name: str, right: Node) -> bool:
        """``name = expr`` with everything on the right known."""
        try:
            value = evaluate(right, self.ctx)
        except MathPadError as e:
            self.failures[name] = (str(e), eq.start_line)
            return False
        limits = self._limits(name)
        if limits is not None and not min(limits) <= value <= max(limits):
            self.failures[name] = (
                f"Computed value {format_number(value)} is outside limits "
                f"[{format_number(limits[0])}, {format_number(limits[1])}]",
                eq.start_line,
            )
            return False
        self._set_solved(name, value)
        logger.debug(f"Line {eq.start_line + 1}: {name} = {value}")
        return True

    def _root_solve(self, eq: Equation, left: Node, right: Node, substitutions: Substitutions) -> bool:
        unknowns = self._unknowns(left, right)
        if not unknowns:
            return False
        if len(unknowns) > 1 and substitutions:
            applicable = {k: node for k, (node, line) in substitutions.items() if line != eq.start_line}
            left = substitute(left, applicable)
            right = substitute(right, applicable)
            unknowns = self._unknowns(left, right)
        if len(unknowns) != 1:
            return False

        unknown = unknowns[0]
        ctx = self.ctx

        def f(x: float) -> float:
            frame = ctx.clone()
            frame.variables[unknown] = x
            frame.bound.add(unknown)
            try:
                return evaluate(left, frame) - evaluate(right, frame)
            except (MathPadError, ArithmeticError, RecursionError):
                return NAN

        try:
            value = find_root(f, self._limits(unknown))
        except SolverError as e:
            self.failures[unknown] = (str(e), eq.start_line)
            logger.debug(f"Line {eq.start_line + 1}: cannot solve for {unknown}: {e}")
            return False
        self._set_solved(unknown, value)
        logger.debug(f"Line {eq.start_line + 1}: solved {unknown} = {value}")
        return True

    def _set_solved(self, name: str, value: float) -> None:
        self.ctx.set_variable(name, value)
        self.failures.pop(name, None)
        self.solved_names.append(name)

    # Pass 3

    def _write_results(self) -> None:
        self.lines, inline_errors = evaluate_inline_lines(self.lines, self.ctx, self.config, final=True)
        for line, message in inline_errors:
            self._error(line, message)

        # name -> [(site had a previous value, rendered text identical)]
        sites: Dict[str, List[Tuple[bool, bool]]] = {}
        empty_inputs: Set[str] = set()
        for record in scan_records(self.lines):
            if isinstance(record, Declaration):
                if not record.is_output and not record.value_text:
                    empty_inputs.add(record.name)
                outcome = self._fill_declaration(record)
                if outcome is not None:
                    sites.setdefault(record.name, []).append(outcome)
            elif isinstance(record, ExpressionOutput):
                self._fill_expression_output(record)
        self.ctx.line = None

        for name, outcomes in sites.items():
            had_previous = any(previous for previous, _ in outcomes)
            if had_previous and all(same for _, same in outcomes) and name not in empty_inputs:
                self.unchanged.add(name)

        self._check_balance()
        for name, (message, line) in self.failures.items():
            self._error(line, f"{message} for '{name}'")

    def _fill_declaration(self, decl: Declaration) -> Optional[Tuple[bool, bool]]:
        """Write a value into an empty or output declaration.

        Returns (had previous value, unchanged) for a rendered site.
        """
        if not decl.is_output and decl.value_text:
            return None
        self.ctx.line = decl.line
        value = self.ctx.lookup(decl.name)
        if value is None:
            failure = self.failures.get(decl.name)
            if failure is not None:
                self._error(failure[1], f"{failure[0]} for '{decl.name}'")
            elif decl.is_output:
                self._error(decl.line, f"Variable '{decl.name}' has no value to output")
            if decl.value_text:
                self.lines[decl.line] = render_value(self.lines[decl.line], decl, "")
            return None

        text = self._render(value, decl.format, decl.full_precision, decl.base)
        if text != decl.value_text:
            self.lines[decl.line] = render_value(self.lines[decl.line], decl, text)
        return bool(decl.value_text), text == decl.value_text

    def _fill_expression_output(self, output: ExpressionOutput) -> None:
        if not output.recalculates and output.value_text:
            return
        self.ctx.line = output.line
        try:
            value = evaluate_text(output.expression, self.ctx)
        except MathPadError as e:
            self._error(output.line, str(e))
            if output.value_text:
                self.lines[output.line] = render_value(self.lines[output.line], output, "")
            return
        text = self._render(value, output.format, output.full_precision, output.base)
        if text != output.value_text:
            self.lines[output.line] = render_value(self.lines[output.line], output, text)

    def _check_balance(self) -> None:
        """Report fully known equations whose sides differ."""
        ctx = self.ctx
        for eq in find_equations(self.lines):
            if eq.start_line in self.function_lines:
                continue
            ctx.line = eq.start_line
            text = expand_inline(eq.text, ctx)
            parts = split_equation(text) if text is not None else None
            if parts is None or not parts[1]:
                continue
            try:
                left = parse_expression(parts[0])
                right = parse_expression(parts[1])
                if self._unknowns(left, right):
                    continue
                left_value = evaluate(left, ctx)
                right_value = evaluate(right, ctx)
            except (ParseError, EvalError) as e:
                self._error(eq.start_line, str(e))
                continue
            if is_balanced(left_value, right_value, BALANCE_TOLERANCE):
                continue
            if self._within_display_precision(left, right, left_value - right_value):
                continue
            self._error(
                eq.start_line,
                f"Equation doesn't balance: {eq.text} "
                f"({format_number(left_value)} ≠ {format_number(right_value)})",
            )
        ctx.line = None

    def _within_display_precision(self, left: Node, right: Node, difference: float) -> bool:
        """True when the mismatch is explained by rounding of typed values.

        A value typed as ``1.4142`` stands for anything within half a unit of
        its last digit; each such variable contributes how far the equation
        moves across that interval.
        """
        if not math.isfinite(difference):
            return False
        allowance = 0.0
        for name in find_variables(left) | find_variables(right):
            delta = self.resolution.get(name, 0.0)
            if not delta:
                continue
            frame = self.ctx.clone()
            frame.variables[name] = self.user_provided[name] + delta
            frame.bound.add(name)
            try:
                moved = evaluate(left, frame) - evaluate(right, frame)
            except MathPadError:
                continue
            if math.isfinite(moved):
                allowance += abs(moved - difference)
        return abs(difference) <= allowance


def solve(text: str, context: EvalContext, config: Optional[SolveConfig] = None) -> SolveResult:
    """Solve a document and return its rewritten text.

    Args:
        text: Document text
        context: Context from create_context(); it is not modified
        config: Display and evaluation settings (defaults when omitted)

    Returns:
        SolveResult with the solved text, the number of values produced and
        ``Line N: message`` errors
    """
    return DocumentSolver(text, context, config or SolveConfig()).run()
