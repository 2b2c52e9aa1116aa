"""Single-variable numeric root finding.

Strategy:
- With limits: sample ``[low, high]`` on a grid, bisect the first bracket
  whose sign change is a real root (not a pole)
- Without limits: expand outward from a starting guess looking for a sign
  change, then bisect; if the function never changes sign (double roots
  such as ``(x - 2)**2 = 0``), run Newton from the sample closest to zero
- A point with no sign change around it counts only if |f| has a local
  minimum there, so ``exp(x) = 0`` and ``1/x = 0`` have no solution

Every search is capped at MAX_ROOT_EVALUATIONS function evaluations.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Tuple

import mpmath
import numpy as np

from .config import (
    BRACKET_GROWTH,
    BRACKET_LIMIT,
    BRACKET_START,
    LIMITS_GRID_SIZE,
    MAX_BISECT_ITERATIONS,
    MAX_NEWTON_STEPS,
    MAX_ROOT_EVALUATIONS,
    ROOT_CONFIRM_STEP,
    ROOT_RESIDUAL_TOLERANCE,
    ROOT_TOLERANCE,
)
from .logging_config import get_logger
from .types import SolverError

logger = get_logger("solver")


class _CountedFunction:
    """Wraps f, counting evaluations and enforcing the evaluation cap."""

    def __init__(self, f: Callable[[float], float], limit: int = MAX_ROOT_EVALUATIONS):
        self.f = f
        self.limit = limit
        self.count = 0

    def __call__(self, x: float) -> float:
        self.count += 1
        if self.count > self.limit:
            raise SolverError(
                f"Root search exceeded {self.limit} function evaluations", "NO_CONVERGENCE"
            )
        return float(self.f(float(x)))


def _near_zero(y: float) -> bool:
    return abs(y) <= ROOT_TOLERANCE


def _opposite_signs(a: float, b: float) -> bool:
    return math.isfinite(a) and math.isfinite(b) and (a < 0 < b or b < 0 < a)


def _bisect(f: _CountedFunction, a: float, b: float, fa: float, fb: float) -> Optional[float]:
    """Bisect [a, b] (fa and fb of opposite sign), then interpolate the final bracket.

    Returns None if f is undefined somewhere along the way.
    """
    for _ in range(MAX_BISECT_ITERATIONS):
        mid = a + (b - a) / 2
        if mid == a or mid == b:
            break
        fm = f(mid)
        if fm == 0:
            return mid
        if not math.isfinite(fm):
            return None
        if (fa < 0) == (fm < 0):
            a, fa = mid, fm
        else:
            b, fb = mid, fm
        if b - a <= ROOT_TOLERANCE * max(1.0, abs(mid)):
            break
    # Linear interpolation across the final bracket
    x = a - fa * (b - a) / (fb - fa) if fb != fa else a + (b - a) / 2
    return min(max(x, a), b)


def _accept(f: _CountedFunction, x: Optional[float], scale: float) -> Optional[float]:
    """Return x if it is a genuine root: finite with a small residual."""
    if x is None or not math.isfinite(x):
        return None
    fx = f(x)
    if math.isfinite(fx) and abs(fx) <= ROOT_RESIDUAL_TOLERANCE * max(1.0, scale):
        return x
    return None


def _confirm(f: _CountedFunction, x: Optional[float]) -> Optional[float]:
    """Return x if it is a root that no sign change brackets.

    A small residual is not enough on its own: ``exp(x)`` and ``1/x`` get
    arbitrarily close to zero without reaching it. x must also sit where f
    crosses zero within x ± h, or at a strict local minimum of |f| from
    which a Newton step stays within h.
    """
    if x is None or not math.isfinite(x):
        return None
    fx = f(x)
    if not math.isfinite(fx) or abs(fx) > ROOT_RESIDUAL_TOLERANCE:
        return None
    h = ROOT_CONFIRM_STEP * max(1.0, abs(x))
    f_lo, f_hi = f(x - h), f(x + h)
    if not (math.isfinite(f_lo) and math.isfinite(f_hi)):
        return None
    if _opposite_signs(f_lo, f_hi):
        return x
    # Still descending on one side (or flat), so the zero lies further out if anywhere
    if abs(f_lo) <= abs(fx) or abs(f_hi) <= abs(fx):
        return None
    slope = (f_hi - f_lo) / (2 * h)
    if slope != 0 and abs(fx / slope) > h:
        return None
    return x


def _solve_in_limits(f: _CountedFunction, low: float, high: float) -> float:
    if low > high:
        low, high = high, low
    if not (math.isfinite(low) and math.isfinite(high)):
        raise SolverError(f"Invalid search limits [{low}, {high}]", "NO_ROOT")

    grid = np.linspace(low, high, LIMITS_GRID_SIZE + 1)
    values = [f(x) for x in grid.tolist()]

    # Last finite non-zero sample, so zeros and undefined points don't hide a bracket
    last = None
    for x, y in zip(grid.tolist(), values):
        if not math.isfinite(y):
            continue
        if _near_zero(y) and _confirm(f, x) is not None:
            return x
        if y == 0:
            continue
        if last is not None and _opposite_signs(last[1], y):
            root = _bisect(f, last[0], x, last[1], y)
            accepted = _accept(f, root, max(abs(last[1]), abs(y)))
            if accepted is not None:
                return accepted
            logger.debug(f"Rejected sign change near {root} (pole or discontinuity)")
        last = (x, y)

    raise SolverError(f"No solution found between {low} and {high}", "NO_ROOT")


def _newton(f: _CountedFunction, x0: float) -> Optional[float]:
    """Newton iteration via mpmath with a central-difference derivative."""

    def fm(x):
        return mpmath.mpf(f(float(x)))

    def dfm(x):
        xf = float(x)
        h = 1e-6 * max(1.0, abs(xf))
        return mpmath.mpf((f(xf + h) - f(xf - h)) / (2 * h))

    try:
        root = mpmath.findroot(
            fm,
            x0,
            solver="newton",
            df=dfm,
            tol=ROOT_TOLERANCE,
            maxsteps=MAX_NEWTON_STEPS,
            verify=False,
        )
    except (ValueError, ZeroDivisionError, OverflowError, TypeError) as e:
        logger.debug(f"Newton iteration from {x0} failed: {e}")
        return None
    return _confirm(f, float(root))


def _solve_unbounded(f: _CountedFunction, guess: float) -> float:
    f_guess = f(guess)
    if _near_zero(f_guess) and _confirm(f, guess) is not None:
        return guess

    best_x, best_y = guess, abs(f_guess) if math.isfinite(f_guess) else math.inf
    # Last finite non-zero sample on each side of the guess
    sides = {1: (guess, f_guess), -1: (guess, f_guess)}
    step = 0.1 * max(1.0, abs(guess))

    while step <= BRACKET_LIMIT:
        for direction in (1, -1):
            x = guess + direction * step
            y = f(x)
            if not math.isfinite(y):
                continue
            if _near_zero(y):
                confirmed = _confirm(f, x)
                if confirmed is not None:
                    return confirmed
            if abs(y) < best_y:
                best_x, best_y = x, abs(y)
            if y == 0:
                continue
            prev_x, prev_y = sides[direction]
            if _opposite_signs(prev_y, y):
                a, b, fa, fb = (prev_x, x, prev_y, y) if prev_x < x else (x, prev_x, y, prev_y)
                root = _bisect(f, a, b, fa, fb)
                accepted = _accept(f, root, max(abs(fa), abs(fb)))
                if accepted is not None:
                    return accepted
                logger.debug(f"Rejected sign change near {root} (pole or discontinuity)")
            sides[direction] = (x, y)
        step *= BRACKET_GROWTH

    if math.isfinite(best_y):
        root = _newton(f, best_x)
        if root is not None:
            return root

    raise SolverError("No solution found", "NO_ROOT")


def _polish(f: _CountedFunction, x: float, bounds: Optional[Tuple[float, float]] = None) -> float:
    """Prefer the shortest decimal near x whose residual is no larger."""
    if x == 0 or not math.isfinite(x):
        return x
    fx = abs(f(x))
    for digits in range(1, 16):
        candidate = float(f"{x:.{digits}g}")
        if candidate == x:
            break
        if bounds is not None and not min(bounds) <= candidate <= max(bounds):
            continue
        fc = f(candidate)
        if math.isfinite(fc) and abs(fc) <= fx:
            return candidate
    return x


def find_root(
    f: Callable[[float], float],
    limits: Optional[Tuple[float, float]] = None,
    guess: float = BRACKET_START,
) -> float:
    """Find one root of f.

    Args:
        f: Function of one variable; undefined points should return NaN
        limits: Optional (low, high) search interval
        guess: Starting point for the unbounded search

    Returns:
        A value x with f(x) approximately 0

    Raises:
        SolverError: NO_ROOT when no root is found, NO_CONVERGENCE when the
            evaluation cap is exhausted
    """
    counted = _CountedFunction(f)
    if limits is not None:
        root = _solve_in_limits(counted, float(limits[0]), float(limits[1]))
    else:
        root = _solve_unbounded(counted, guess)
    counted.limit = counted.count + 16
    root = _polish(counted, root, limits)
    logger.debug(f"Root {root} found after {counted.count} evaluations")
    return root
