"""Unit tests for parser module."""

import unittest

from mathpad_pkg.parser import (
    BinaryOp,
    FunctionCall,
    Number,
    UnaryOp,
    Variable,
    find_variables,
    parse_expression,
    substitute,
)
from mathpad_pkg.types import ParseError


class TestParseExpression(unittest.TestCase):
    """Test AST construction and precedence."""

    def test_precedence(self):
        node = parse_expression("1 + 2 * 3")
        self.assertIsInstance(node, BinaryOp)
        self.assertEqual(node.op, "+")
        self.assertIsInstance(node.right, BinaryOp)
        self.assertEqual(node.right.op, "*")

    def test_power_is_right_associative(self):
        node = parse_expression("2 ** 3 ** 2")
        self.assertEqual(node.op, "**")
        self.assertIsInstance(node.left, Number)
        self.assertIsInstance(node.right, BinaryOp)

    def test_unary_and_call(self):
        node = parse_expression("-sqrt(4; 2)")
        self.assertIsInstance(node, UnaryOp)
        self.assertIsInstance(node.operand, FunctionCall)
        self.assertEqual(len(node.operand.args), 2)

    def test_comparison_binds_looser_than_arithmetic(self):
        node = parse_expression("a + 1 < b")
        self.assertEqual(node.op, "<")

    def test_nodes_are_hashable(self):
        self.assertEqual(parse_expression("x + 1"), parse_expression("x + 1"))
        self.assertEqual(len({parse_expression("x"), Variable("x")}), 1)


class TestParseErrors(unittest.TestCase):
    """Test syntax errors."""

    def test_incomplete_expression(self):
        with self.assertRaises(ParseError):
            parse_expression("2 +")

    def test_unclosed_paren(self):
        with self.assertRaises(ParseError):
            parse_expression("(1 + 2")

    def test_trailing_tokens(self):
        with self.assertRaises(ParseError) as cm:
            parse_expression("1 2")
        self.assertIn("Unexpected token after expression", str(cm.exception))

    def test_empty(self):
        with self.assertRaises(ParseError) as cm:
            parse_expression("")
        self.assertEqual(cm.exception.code, "EMPTY_EXPRESSION")

    def test_error_position(self):
        with self.assertRaises(ParseError) as cm:
            parse_expression("1 + * 2")
        self.assertEqual(cm.exception.line, 1)
        self.assertEqual(cm.exception.col, 5)


class TestTreeHelpers(unittest.TestCase):
    """Test variable discovery and substitution."""

    def test_find_variables(self):
        self.assertEqual(find_variables(parse_expression("a + f(b, 2) * c")), {"a", "b", "c"})
        self.assertEqual(find_variables(parse_expression("sin(1)")), set())

    def test_substitute_single_pass(self):
        node = parse_expression("x + y")
        result = substitute(node, {"x": parse_expression("y * 2")})
        self.assertEqual(result, parse_expression("y * 2 + y"))
        self.assertEqual(find_variables(result), {"y"})

    def test_substitute_empty_map(self):
        node = parse_expression("x")
        self.assertIs(substitute(node, {}), node)


if __name__ == "__main__":
    unittest.main()
