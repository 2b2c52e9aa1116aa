"""Unit tests for line classification."""

import unittest

from mathpad_pkg.line_parser import (
    ON_CLEAR,
    ON_SOLVE,
    Declaration,
    ExpressionOutput,
    classify_line,
    strip_comments,
    unclosed_brackets,
)


class TestDeclarations(unittest.TestCase):
    """Test lines that bind a name."""

    def test_simple_declaration(self):
        record = classify_line("x: 5")
        self.assertIsInstance(record, Declaration)
        self.assertEqual(record.name, "x")
        self.assertEqual(record.marker, ":")
        self.assertEqual(record.value_text, "5")
        self.assertFalse(record.is_output)

    def test_label_before_name(self):
        record = classify_line("total cost: 5")
        self.assertEqual(record.name, "cost")
        self.assertEqual(record.label_span, (0, 6))

    def test_arrow_outranks_label_colon(self):
        record = classify_line("Time: t->")
        self.assertIsInstance(record, Declaration)
        self.assertEqual(record.name, "t")
        self.assertEqual(record.marker, "->")
        self.assertTrue(record.is_output)
        self.assertEqual(record.value_text, "")

    def test_input_marker(self):
        record = classify_line("x<- 5")
        self.assertEqual(record.clear_behavior, ON_CLEAR)
        self.assertEqual(record.value_text, "5")

    def test_full_precision_markers(self):
        self.assertTrue(classify_line("x:: 1/3").full_precision)
        self.assertTrue(classify_line("x->>").full_precision)
        self.assertFalse(classify_line("x->").full_precision)

    def test_output_value_unit_and_comment(self):
        record = classify_line('z-> 12 m/s "speed"')
        self.assertEqual(record.clear_behavior, ON_SOLVE)
        self.assertEqual(record.value_text, "12")
        self.assertEqual(record.unit, "m/s")
        self.assertEqual(record.comment, "speed")

    def test_limits(self):
        record = classify_line("x[0:10]:")
        self.assertEqual(record.name, "x")
        self.assertEqual(record.limits, ("0", "10"))
        self.assertTrue(record.has_limits)

    def test_input_marker_outranks_other_markers(self):
        record = classify_line("a: b <- 3")
        self.assertEqual(record.name, "b")
        self.assertEqual(record.marker, "<-")
        self.assertEqual(record.value_text, "3")
        record = classify_line("x <- 5 -> y")
        self.assertEqual(record.name, "x")
        self.assertEqual(record.marker, "<-")
        self.assertEqual(record.value_text, "5 -> y")

    def test_money_format(self):
        record = classify_line("price$: $1,234.50")
        self.assertEqual(record.format, "money")
        self.assertEqual(record.value_text, "$1,234.50")

    def test_base_suffix(self):
        record = classify_line("n#16->")
        self.assertEqual(record.name, "n")
        self.assertEqual(record.base, 16)


class TestExpressionOutputs(unittest.TestCase):
    """Test lines that ask for an expression's value."""

    def test_colon_output_does_not_recalculate(self):
        record = classify_line("a + b:")
        self.assertIsInstance(record, ExpressionOutput)
        self.assertEqual(record.expression, "a + b")
        self.assertFalse(record.recalculates)

    def test_arrow_output_recalculates(self):
        record = classify_line("a + b-> 5")
        self.assertIsInstance(record, ExpressionOutput)
        self.assertTrue(record.recalculates)
        self.assertEqual(record.value_text, "5")

    def test_number_after_label_is_the_operand(self):
        record = classify_line("Enter 3.25$->>")
        self.assertIsInstance(record, ExpressionOutput)
        self.assertEqual(record.expression, "3.25")
        self.assertEqual(record.format, "money")
        self.assertTrue(record.full_precision)
        self.assertEqual(record.label_span, (0, 6))

    def test_function_call_output(self):
        record = classify_line("sin(30)->")
        self.assertEqual(record.expression, "sin(30)")


class TestOtherLines(unittest.TestCase):
    """Test lines that are neither declarations nor outputs."""

    def test_equation_is_not_a_record(self):
        self.assertIsNone(classify_line("a = 5"))

    def test_input_marker_needs_a_bare_name(self):
        self.assertIsNone(classify_line("total x+1<- 4"))

    def test_brace_after_marker(self):
        self.assertIsNone(classify_line("x: {"))

    def test_free_text(self):
        self.assertIsNone(classify_line("just some text"))
        self.assertIsNone(classify_line(""))

    def test_strip_comments(self):
        clean, stripped, comment = strip_comments('x: 5 "note" // rest')
        self.assertEqual(comment, "// rest")
        self.assertEqual(stripped, 'x: 5 "note" ')
        self.assertEqual(len(clean), len(stripped))
        self.assertNotIn('"', clean)

    def test_unclosed_brackets(self):
        self.assertEqual(unclosed_brackets("x[0:"), 1)
        self.assertEqual(unclosed_brackets("x[0:10]:"), 0)


if __name__ == "__main__":
    unittest.main()
