"""Unit tests for root finding."""

import math

import pytest

from mathpad_pkg.solver import _CountedFunction, find_root
from mathpad_pkg.types import SolverError


class TestFindRoot:
    """Test find_root() with and without limits."""

    def test_within_limits(self):
        assert find_root(lambda x: x * x - 9, (0, 10)) == 3.0

    def test_limits_in_either_order(self):
        assert find_root(lambda x: x * x - 9, (10, 0)) == 3.0

    def test_limits_select_the_root(self):
        assert find_root(lambda x: x * x - 9, (-10, 0)) == -3.0

    def test_unbounded(self):
        assert find_root(lambda x: x - 2.5) == pytest.approx(2.5)

    def test_unbounded_far_from_guess(self):
        assert find_root(lambda x: 2 * x + 4000) == pytest.approx(-2000)

    def test_double_root_without_sign_change(self):
        assert find_root(lambda x: (x - 2) ** 2) == pytest.approx(2.0, abs=1e-2)

    def test_prefers_short_decimal(self):
        assert find_root(lambda x: 4 * x - 1, (0, 1)) == 0.25

    def test_no_real_root(self):
        with pytest.raises(SolverError):
            find_root(lambda x: x * x + 1)

    def test_pole_is_not_a_root(self):
        def f(x):
            return math.nan if x == 2 else 1 / (x - 2)

        with pytest.raises(SolverError) as excinfo:
            find_root(f, (0, 5))
        assert excinfo.value.code == "NO_ROOT"

    def test_decay_toward_zero_is_not_a_root(self):
        def f(x):
            return math.exp(x) if x < 700 else math.inf

        with pytest.raises(SolverError) as excinfo:
            find_root(f)
        assert excinfo.value.code == "NO_ROOT"

    def test_reciprocal_has_no_root(self):
        def f(x):
            return math.nan if x == 0 else 1 / x

        with pytest.raises(SolverError) as excinfo:
            find_root(f)
        assert excinfo.value.code == "NO_ROOT"

    def test_tiny_values_within_limits_are_not_roots(self):
        with pytest.raises(SolverError):
            find_root(math.exp, (-100, 0))

    def test_exact_zero_on_grid(self):
        assert find_root(lambda x: x - 5, (0, 10)) == 5.0

    def test_undefined_points_are_skipped(self):
        def f(x):
            return math.sqrt(x) - 2 if x >= 0 else math.nan

        assert find_root(f, (-5, 10)) == pytest.approx(4.0)


class TestEvaluationCap:
    """Test the evaluation budget."""

    def test_cap_raises_no_convergence(self):
        counted = _CountedFunction(lambda x: x, limit=2)
        counted(1)
        counted(2)
        with pytest.raises(SolverError) as excinfo:
            counted(3)
        assert excinfo.value.code == "NO_CONVERGENCE"
