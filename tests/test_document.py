"""Unit tests for document scanning and rewriting."""

import pytest

from mathpad_pkg.document import (
    Equation,
    clear_values,
    complete_equation,
    expand_inline,
    find_equations,
    remove_references_section,
    render_value,
    scan_records,
    split_equation,
)
from mathpad_pkg.evaluator import EvalContext
from mathpad_pkg.line_parser import classify_line
from mathpad_pkg.types import ValidationError


class TestFindEquations:
    """Test equation discovery."""

    def test_plain_and_braced(self):
        lines = ["a = b", "x: 5", "a == b", "{x +", "y = 3}", "t: a = 2"]
        equations = find_equations(lines)
        assert equations == [
            Equation("a = b", False, 0, 0),
            Equation("x + y = 3", True, 3, 4),
        ]

    def test_single_line_braces(self):
        assert find_equations(["Area {w * h = 12} done"]) == [Equation("w * h = 12", True, 0, 0)]

    def test_comments_are_ignored(self):
        assert find_equations(['"a = b" and // c = d']) == []


class TestEquationText:
    """Test splitting and completing equations."""

    def test_split(self):
        assert split_equation("a + b = c") == ("a + b", "c")
        assert split_equation("a + b =") == ("a + b", "")
        assert split_equation("a + b") is None

    def test_complete_plain(self):
        assert complete_equation("a * 2 = // note", "8", False) == "a * 2 = 8 // note"

    def test_complete_braced(self):
        assert complete_equation("{a * 2 =}", "8", True) == "{a * 2 = 8}"


class TestInline:
    """Test inline evaluation."""

    def test_expand(self):
        ctx = EvalContext()
        assert expand_inline("\\2 + 3\\ * x", ctx) == "(5.0) * x"

    def test_expand_unknown(self):
        assert expand_inline("\\y\\ + 1", EvalContext()) is None


class TestRecords:
    """Test declaration scanning and rendering."""

    def test_multi_line_limits(self):
        records = scan_records(["x[0:", "10]:", "y: 2"])
        assert [r.name for r in records] == ["x", "y"]
        assert records[0].limits == ("0", "10")
        assert records[0].line == 1
        assert render_value("10]:", records[0], "3") == "10]: 3"

    def test_render_keeps_unit_and_comments(self):
        line = 'v-> 5 m/s "speed" // note'
        record = classify_line(line)
        assert render_value(line, record, "7") == 'v-> 7 m/s "speed" // note'


class TestClear:
    """Test clear_values()."""

    TEXT = "a<- 5\nb-> 6\nc: 7"

    def test_input(self):
        assert clear_values(self.TEXT, "input") == "a<-\nb->\nc: 7"

    def test_output(self):
        assert clear_values(self.TEXT, "output") == "a<- 5\nb->\nc: 7"

    def test_all(self):
        assert clear_values(self.TEXT, "all") == "a<-\nb->\nc:"

    def test_expression_outputs(self):
        assert clear_values("a + b-> 5\na + b: 5", "output") == "a + b->\na + b: 5"

    def test_bad_mode(self):
        with pytest.raises(ValidationError) as excinfo:
            clear_values(self.TEXT, "everything")
        assert excinfo.value.code == "INVALID_MODE"


def test_remove_references_section():
    text = 'f-> 2\n\n"--- Reference Constants and Functions ---"\ng: 9.8'
    assert remove_references_section(text) == "f-> 2"
