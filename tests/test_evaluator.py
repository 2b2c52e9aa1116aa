"""Unit tests for expression evaluation and the shared tables."""

import math
import unittest

from mathpad_pkg.evaluator import (
    EvalContext,
    evaluate_text,
    is_balanced,
    parse_constants,
    parse_function_definition,
    parse_functions,
)
from mathpad_pkg.parser import parse_expression
from mathpad_pkg.types import EvalError


class TestArithmetic(unittest.TestCase):
    """Test operators."""

    def setUp(self):
        self.ctx = EvalContext()

    def test_basic(self):
        self.assertEqual(evaluate_text("2 + 3 * 4", self.ctx), 14)
        self.assertEqual(evaluate_text("2 ** 10", self.ctx), 1024)
        self.assertEqual(evaluate_text("10 % 3", self.ctx), 1)

    def test_bitwise_and_logic(self):
        self.assertEqual(evaluate_text("5 & 3", self.ctx), 1)
        self.assertEqual(evaluate_text("1 << 4", self.ctx), 16)
        self.assertEqual(evaluate_text("~0", self.ctx), -1)
        self.assertEqual(evaluate_text("3 > 2 && 1", self.ctx), 1)
        self.assertEqual(evaluate_text("!0", self.ctx), 1)

    def test_if_only_evaluates_selected_branch(self):
        self.assertEqual(evaluate_text("if(1; 2; 1/0)", self.ctx), 2)
        self.assertEqual(evaluate_text("if(0; 2)", self.ctx), 0)

    def test_zero_argument_builtin_as_name(self):
        self.assertEqual(evaluate_text("pi", self.ctx), math.pi)
        self.assertTrue(self.ctx.has("pi"))

    def test_optional_argument_builtin_needs_call(self):
        self.assertFalse(self.ctx.has("rand"))
        with self.assertRaises(EvalError) as cm:
            evaluate_text("rand", self.ctx)
        self.assertEqual(cm.exception.code, "UNDEFINED_VARIABLE")
        self.assertTrue(0 <= evaluate_text("rand()", self.ctx) < 1)


class TestEvalErrors(unittest.TestCase):
    """Test error codes raised by evaluate()."""

    def assert_code(self, text, code):
        with self.assertRaises(EvalError) as cm:
            evaluate_text(text, EvalContext())
        self.assertEqual(cm.exception.code, code)
        return cm.exception

    def test_division_by_zero(self):
        error = self.assert_code("1/0", "DIVISION_BY_ZERO")
        self.assertEqual(str(error), "Division by zero")

    def test_undefined_variable(self):
        error = self.assert_code("y + 1", "UNDEFINED_VARIABLE")
        self.assertEqual(str(error), "Undefined variable: y")

    def test_unknown_function(self):
        self.assert_code("foo(1)", "UNKNOWN_FUNCTION")

    def test_arity(self):
        error = self.assert_code("sqrt(1; 2)", "ARITY")
        self.assertEqual(str(error), "sqrt() expects 1 argument(s), got 2")


class TestContext(unittest.TestCase):
    """Test constants, shadowing and user functions."""

    def test_constants_are_tracked(self):
        ctx = EvalContext()
        ctx.set_constant("g", 9.8)
        self.assertAlmostEqual(evaluate_text("g * 2", ctx), 19.6)
        self.assertIn("g", ctx.used_constants)

    def test_shadowing_is_positional(self):
        ctx = EvalContext()
        ctx.set_constant("k", 2)
        ctx.shadow_constant("k", 5)
        ctx.set_variable("k", 7)
        ctx.line = 3
        self.assertEqual(ctx.lookup("k"), 2)
        ctx.line = 5
        self.assertEqual(ctx.lookup("k"), 7)
        del ctx.variables["k"]
        self.assertIsNone(ctx.lookup("k"))
        self.assertFalse(ctx.has("k"))

    def test_user_function(self):
        ctx = EvalContext()
        ctx.set_user_function("sq", ["x"], parse_expression("x * x"))
        ctx.set_variable("x", 100)
        self.assertEqual(evaluate_text("sq(4)", ctx), 16)
        self.assertEqual(evaluate_text("SQ(3)", ctx), 9)
        self.assertIn("sq", ctx.used_functions)

    def test_guarded_recursion(self):
        ctx = EvalContext()
        ctx.user_functions.update(parse_functions("f(n) = if(n <= 1; 1; n * f(n - 1))"))
        self.assertEqual(evaluate_text("f(5)", ctx), 120)

    def test_runaway_recursion(self):
        ctx = EvalContext()
        ctx.user_functions.update(parse_functions("loop(n) = loop(n + 1)"))
        with self.assertRaises(EvalError) as cm:
            evaluate_text("loop(1)", ctx)
        self.assertEqual(cm.exception.code, "RECURSION_LIMIT")

    def test_degrees_mode(self):
        ctx = EvalContext(degrees_mode=True)
        self.assertAlmostEqual(evaluate_text("sin(30)", ctx), 0.5)

    def test_fork_keeps_functions_local(self):
        ctx = EvalContext()
        ctx.set_constant("g", 9.8)
        fork = ctx.fork()
        fork.set_user_function("sq", ["x"], parse_expression("x * x"))
        fork.set_variable("a", 1)
        self.assertNotIn("sq", ctx.user_functions)
        self.assertNotIn("a", ctx.variables)
        self.assertEqual(fork.lookup("g"), 9.8)


class TestTables(unittest.TestCase):
    """Test the constants and functions loaders."""

    def test_parse_constants(self):
        constants = parse_constants('g: 9.8 "gravity"\nh: g * 2\nnot a constant')
        self.assertEqual(constants["g"], (9.8, "gravity"))
        self.assertAlmostEqual(constants["h"][0], 19.6)
        self.assertIsNone(constants["h"][1])
        self.assertEqual(len(constants), 2)

    def test_parse_functions(self):
        functions = parse_functions("area(r) = r * r * 3\n{ twice(x) =\n x * 2 }\nsin(x) = 1")
        self.assertEqual(sorted(functions), ["area", "twice"])
        self.assertEqual(functions["twice"].params, ("x",))
        self.assertEqual(functions["area"].source, "area(r) = r * r * 3")

    def test_parse_function_definition(self):
        self.assertEqual(parse_function_definition("f(x; y) = x + y"), ("f", ["x", "y"], "x + y"))
        self.assertIsNone(parse_function_definition("f(2) = 3"))
        self.assertIsNone(parse_function_definition("a + b = c"))

    def test_is_balanced(self):
        self.assertTrue(is_balanced(1.0, 1.0 + 1e-12, 1e-10))
        self.assertFalse(is_balanced(5.0, 6.0, 1e-10))
        self.assertFalse(is_balanced(math.nan, math.nan, 1e-10))


if __name__ == "__main__":
    unittest.main()
