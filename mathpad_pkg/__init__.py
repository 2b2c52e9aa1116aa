"""MathPad package: tokenizer, line grammar, evaluator, root solver and the
document solving engine."""

__all__ = [
    "config",
    "tokenizer",
    "parser",
    "line_parser",
    "functions",
    "formatting",
    "evaluator",
    "solver",
    "document",
    "engine",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "create_context",
    "solve",
    "clear",
    "evaluate",
    "classify",
    "validate_expression",
]
