"""Test that API functions return typed dataclasses."""

import pytest

from mathpad_pkg.api import (
    classify,
    clear,
    create_context,
    evaluate,
    solve,
    validate_expression,
)
from mathpad_pkg.config import MAX_INPUT_LENGTH
from mathpad_pkg.types import (
    ClassifyResult,
    EvalResult,
    SolveConfig,
    SolveResult,
    ValidationError,
)


class TestEvaluate:
    """Test evaluate()."""

    def test_returns_eval_result(self):
        result = evaluate("2 ** 10")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "1024"
        assert result.value == 1024.0

    def test_error_returns_eval_result(self):
        result = evaluate("1/0")
        assert result.ok is False
        assert result.error == "Division by zero"
        assert result.error_code == "DIVISION_BY_ZERO"

    def test_parse_error(self):
        result = evaluate("2 +")
        assert result.ok is False
        assert result.error_code == "PARSE_ERROR"

    def test_uses_context_and_config(self):
        ctx = create_context("g: 9.8")
        assert evaluate("g * 2", ctx).result == "19.6"
        assert evaluate("1/3", config=SolveConfig(places=2)).result == "0.33"
        assert evaluate("sin(90)", config=SolveConfig(degrees_mode=True)).result == "1"

    def test_to_dict(self):
        assert evaluate("1 + 1").to_dict() == {"ok": True, "result": "2", "value": 2.0}
        data = evaluate("nope").to_dict()
        assert data["ok"] is False
        assert data["error_code"] == "UNDEFINED_VARIABLE"


class TestSolve:
    """Test solve()."""

    def test_returns_solve_result(self):
        result = solve("a: 2\nb: 3\na + b->")
        assert isinstance(result, SolveResult)
        assert result.ok is True
        assert result.text == "a: 2\nb: 3\na + b-> 5"

    def test_with_context(self):
        ctx = create_context("g: 9.80665", "ke(m; v) = m * v**2 / 2")
        assert solve("k->\nk = ke(2; 3)", ctx).text.splitlines()[0] == "k-> 9"

    def test_too_long(self):
        result = solve("x" * (MAX_INPUT_LENGTH + 1))
        assert result.ok is False
        assert "too long" in result.errors[0]

    def test_to_dict(self):
        data = solve("q->").to_dict()
        assert data == {
            "ok": False,
            "text": "q->",
            "solved": 0,
            "errors": ["Line 1: Variable 'q' has no value to output"],
        }


class TestCreateContext:
    """Test create_context()."""

    def test_loads_constants_and_functions(self):
        ctx = create_context('g: 9.8 "gravity"\nh: g / 2', "sq(x) = x * x")
        assert ctx.constants["g"] == 9.8
        assert ctx.constants["h"] == pytest.approx(4.9)
        assert ctx.constant_comments == {"g": "gravity"}
        assert "sq" in ctx.user_functions

    def test_too_long(self):
        with pytest.raises(ValidationError) as excinfo:
            create_context("x" * (MAX_INPUT_LENGTH + 1))
        assert excinfo.value.code == "INPUT_TOO_LONG"


class TestClassify:
    """Test classify()."""

    def test_declaration(self):
        result = classify("Total cost$: 12.5")
        assert isinstance(result, ClassifyResult)
        assert result.kind == "declaration"
        data = result.to_dict()
        assert data["name"] == "cost"
        assert data["format"] == "money"
        assert data["value_text"] == "12.5"

    def test_expression_output(self):
        result = classify("a * 2->")
        assert result.kind == "expression-output"
        assert result.expression == "a * 2"
        assert result.details["recalculates"] is True

    def test_equation_and_function(self):
        assert classify("a + b = c").kind == "equation"
        result = classify("sq(x) = x * x")
        assert result.kind == "function"
        assert result.name == "sq"
        assert result.details["params"] == ["x"]

    def test_none(self):
        assert classify("hello world").to_dict() == {"kind": "none"}


class TestMisc:
    """Test clear(), validate_expression() and SolveConfig."""

    def test_clear(self):
        assert clear("a<- 1\nb-> 2", "output") == "a<- 1\nb->"
        with pytest.raises(ValidationError):
            clear("a: 1", "bogus")

    def test_validate_expression(self):
        assert validate_expression("sqrt(2) * 3") == (True, None)
        ok, error = validate_expression("2 + (3")
        assert ok is False
        assert error

    def test_config_validation(self):
        with pytest.raises(ValidationError):
            SolveConfig(format="bogus")
        with pytest.raises(ValidationError):
            SolveConfig(places=21)
        assert SolveConfig().to_dict()["places"] == 4
