"""Unit tests for tokenizer module."""

import math
import unittest

from mathpad_pkg.tokenizer import (
    ARROW_FULL,
    ARROW_LEFT,
    COLON,
    COMMENT,
    DOUBLE_COLON,
    EOF,
    ERROR,
    IDENTIFIER,
    NEWLINE,
    NUMBER,
    OPERATOR,
    parse_int_prefix,
    tokenize,
)


def types(text):
    return [t.type for t in tokenize(text)]


class TestNumbers(unittest.TestCase):
    """Test numeric literal scanning."""

    def test_plain_and_exponent(self):
        tokens = tokenize("1.5e3")
        self.assertEqual(tokens[0].type, NUMBER)
        self.assertEqual(tokens[0].value, 1500.0)
        self.assertEqual(tokens[0].raw, "1.5e3")

    def test_prefixed_integers(self):
        self.assertEqual(tokenize("0x1F")[0].value, 31.0)
        self.assertEqual(tokenize("0b101")[0].value, 5.0)
        self.assertEqual(tokenize("0o17")[0].value, 15.0)
        self.assertEqual(tokenize("0x1F")[0].base, 16)

    def test_base_suffix_literals(self):
        token = tokenize("FF#16")[0]
        self.assertEqual(token.type, NUMBER)
        self.assertEqual(token.value, 255.0)
        self.assertEqual(token.base, 16)
        self.assertEqual(tokenize("101#2")[0].value, 5.0)

    def test_money_literal(self):
        token = tokenize("$1,234.50")[0]
        self.assertEqual(token.type, NUMBER)
        self.assertEqual(token.value, 1234.5)

    def test_percent_literal(self):
        token = tokenize("5%")[0]
        self.assertEqual(token.type, NUMBER)
        self.assertAlmostEqual(token.value, 0.05)

    def test_percent_between_operands_is_modulo(self):
        self.assertEqual(types("10 % 3"), [NUMBER, OPERATOR, NUMBER, EOF])

    def test_infinity_and_nan(self):
        self.assertEqual(tokenize("Infinity")[0].value, math.inf)
        self.assertTrue(math.isnan(tokenize("NaN")[0].value))


class TestMarkers(unittest.TestCase):
    """Test declaration markers and their decorations."""

    def test_marker_types(self):
        self.assertEqual(types("x:"), [IDENTIFIER, COLON, EOF])
        self.assertEqual(types("x::"), [IDENTIFIER, DOUBLE_COLON, EOF])
        self.assertEqual(types("x<-"), [IDENTIFIER, ARROW_LEFT, EOF])
        self.assertEqual(types("x->>"), [IDENTIFIER, ARROW_FULL, EOF])

    def test_format_suffix_is_absorbed(self):
        tokens = tokenize("price$:")
        self.assertEqual([t.type for t in tokens], [IDENTIFIER, COLON, EOF])
        self.assertEqual(tokens[1].format, "money")
        self.assertEqual(tokenize("rate%:")[1].format, "percent")

    def test_base_suffix_on_variable(self):
        tokens = tokenize("x#16:")
        self.assertEqual(tokens[0].type, IDENTIFIER)
        self.assertEqual(tokens[1].type, COLON)
        self.assertEqual(tokens[1].base, 16)


class TestMisc(unittest.TestCase):
    """Test comments, positions and bad input."""

    def test_comments(self):
        tokens = tokenize('a "note" // rest')
        self.assertEqual([t.type for t in tokens], [IDENTIFIER, COMMENT, COMMENT, EOF])
        self.assertEqual(tokens[1].value, "note")

    def test_line_and_column(self):
        tokens = tokenize("a\n  b")
        self.assertEqual(tokens[1].type, NEWLINE)
        self.assertEqual((tokens[2].line, tokens[2].col), (2, 3))

    def test_unexpected_character_is_error_token(self):
        tokens = tokenize("2 @ 3")
        self.assertIn(ERROR, [t.type for t in tokens])

    def test_parse_int_prefix(self):
        self.assertEqual(parse_int_prefix("7v", 32), 7 * 32 + 31)
        self.assertEqual(parse_int_prefix("12z", 10), 12)
        self.assertTrue(math.isnan(parse_int_prefix("z", 10)))


if __name__ == "__main__":
    unittest.main()
