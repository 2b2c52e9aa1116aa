"""Type definitions, exceptions and result dataclasses for consistent API responses."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .config import (
    DEFAULT_DEGREES_MODE,
    DEFAULT_FORMAT,
    DEFAULT_GROUP_DIGITS,
    DEFAULT_PLACES,
    DEFAULT_REFERENCES,
    DEFAULT_SHADOW_CONSTANTS,
    DEFAULT_STRIP_ZEROS,
)

NUMBER_FORMATS = ("float", "sci", "eng")


class MathPadError(Exception):
    """Base class for all MathPad errors."""

    default_code = "MATHPAD_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(MathPadError):
    """Raised when input or configuration validation fails."""

    default_code = "VALIDATION_ERROR"


class LexError(MathPadError):
    """Raised when a token cannot be turned into a value."""

    default_code = "LEX_ERROR"


class ParseError(MathPadError):
    """Raised when expression parsing fails.

    Carries the 1-based line and column of the offending token when known.
    """

    default_code = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        line: int | None = None,
        col: int | None = None,
        code: str | None = None,
    ):
        self.line = line
        self.col = col
        super().__init__(message, code)


class EvalError(MathPadError):
    """Raised when evaluating an expression fails."""

    default_code = "EVAL_ERROR"


class SolverError(MathPadError):
    """Raised when root finding fails.

    Codes: NO_ROOT (no sign change found), NO_CONVERGENCE (evaluation budget
    exhausted or the iteration diverged).
    """

    default_code = "SOLVER_ERROR"


@dataclass
class SolveConfig:
    """Display and evaluation settings for a solve."""

    places: int = DEFAULT_PLACES
    strip_zeros: bool = DEFAULT_STRIP_ZEROS
    group_digits: bool = DEFAULT_GROUP_DIGITS
    format: str = DEFAULT_FORMAT
    degrees_mode: bool = DEFAULT_DEGREES_MODE
    shadow_constants: bool = DEFAULT_SHADOW_CONSTANTS
    references: bool = DEFAULT_REFERENCES

    def __post_init__(self) -> None:
        if self.format not in NUMBER_FORMATS:
            raise ValidationError(
                f"Unknown number format '{self.format}' (expected one of {', '.join(NUMBER_FORMATS)})",
                "INVALID_CONFIG",
            )
        if self.places < 0 or self.places > 20:
            raise ValidationError(
                f"Decimal places must be between 0 and 20, got {self.places}",
                "INVALID_CONFIG",
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class SolveResult:
    """Result of solving a whole document."""

    text: str
    solved: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "text": self.text,
            "solved": self.solved,
            "errors": list(self.errors),
        }

    def __repr__(self) -> str:
        """Return string representation of the result."""
        parts = [f"solved={self.solved}"]
        if self.errors:
            parts.append(f"errors={self.errors!r}")
        return f"SolveResult({', '.join(parts)})"


@dataclass
class EvalResult:
    """Result of evaluating a single expression."""

    ok: bool
    value: float | None = None
    result: str | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.value is not None:
            result_dict["value"] = self.value
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r})"
        return f"EvalResult(ok=True, result={self.result!r})"


@dataclass
class ClassifyResult:
    """Result of classifying one line of a document."""

    kind: str  # "declaration", "expression-output", "equation", "function", "none"
    name: str | None = None
    expression: str | None = None
    marker: str | None = None
    value_text: str | None = None
    comment: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"kind": self.kind}
        for key in ("name", "expression", "marker", "value_text", "comment"):
            value = getattr(self, key)
            if value is not None:
                result_dict[key] = value
        result_dict.update(self.details)
        return result_dict
