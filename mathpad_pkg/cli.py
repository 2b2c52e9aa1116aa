"""Command-line interface: solve a document file, evaluate an expression or
clear values.

    mathpad notes.txt
    mathpad --constants constants.txt --places 6 < notes.txt
    mathpad -e "sqrt(2) * 3"
    mathpad --clear output notes.txt
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from .config import LOG_LEVEL, VERSION
from .logging_config import get_logger, setup_logging
from .types import NUMBER_FORMATS, MathPadError, SolveConfig

logger = get_logger("cli")


def _health_check() -> int:
    """Run health check to verify dependencies and basic operations.

    Returns:
        Exit code (0 for success, non-zero for failures)
    """
    checks_passed = 0
    checks_failed = 0

    print("Running MathPad health check...")
    print("-" * 50)

    try:
        import numpy

        print(f"[OK] NumPy {numpy.__version__} imported successfully")
        checks_passed += 1
    except ImportError as e:
        print(f"[FAIL] NumPy import failed: {e}")
        checks_failed += 1

    try:
        import mpmath

        print(f"[OK] mpmath {mpmath.__version__} imported successfully")
        checks_passed += 1
    except ImportError as e:
        print(f"[FAIL] mpmath import failed: {e}")
        checks_failed += 1

    try:
        from .api import evaluate

        result = evaluate("2 + 2")
        if result.ok and result.result == "4":
            print("[OK] Basic evaluation works")
            checks_passed += 1
        else:
            print(f"[FAIL] Basic evaluation failed: expected 4, got {result}")
            checks_failed += 1
    except Exception as e:
        print(f"[FAIL] Evaluation check failed: {e}")
        checks_failed += 1

    try:
        from .api import solve

        result = solve("x[0:10]:\nx**2 = 9")
        if result.ok and result.text.splitlines()[0] == "x[0:10]: 3":
            print("[OK] Basic solving works")
            checks_passed += 1
        else:
            print(f"[FAIL] Solving check failed: {result}")
            checks_failed += 1
    except Exception as e:
        print(f"[FAIL] Solving check failed: {e}")
        checks_failed += 1

    print("-" * 50)
    print(f"Results: {checks_passed} passed, {checks_failed} failed")

    if checks_failed > 0:
        print("\n[WARN] Some health checks failed. Core functionality may be impaired.")
        return 1

    print("\n[OK] All health checks passed!")
    return 0


def _read_text(path: str | None) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()


def _emit(payload: dict[str, Any], output_format: str, human: str) -> None:
    if output_format == "json":
        print(json.dumps(payload))
    else:
        print(human)


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for MathPad CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 when errors were reported)
    """
    parser = argparse.ArgumentParser(prog="mathpad")
    parser.add_argument("file", nargs="?", help="Document to solve (default: stdin)")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one expression and exit",
        dest="eval_expr",
    )
    parser.add_argument("--constants", type=str, help="File of shared constants")
    parser.add_argument("--functions", type=str, help="File of shared functions")
    parser.add_argument("--places", type=int, help="Decimal places for results")
    parser.add_argument(
        "--format",
        type=str,
        choices=list(NUMBER_FORMATS),
        help="Number format for results",
    )
    parser.add_argument("--degrees", action="store_true", help="Trigonometry in degrees")
    parser.add_argument(
        "--group-digits", action="store_true", help="Insert thousands separators"
    )
    parser.add_argument(
        "--no-strip-zeros", action="store_true", help="Keep trailing zeros"
    )
    parser.add_argument(
        "--no-shadow-constants",
        action="store_true",
        help="Let declarations leave same-named constants visible",
    )
    parser.add_argument(
        "--references",
        action="store_true",
        help="Append a section listing the constants and functions used",
    )
    parser.add_argument(
        "--clear",
        type=str,
        choices=["input", "output", "all"],
        help="Clear values instead of solving",
    )
    parser.add_argument(
        "--output-format",
        type=str,
        choices=["human", "json"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=LOG_LEVEL,
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check and verify dependencies",
    )
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)

    if args.version:
        print(VERSION)
        return 0
    if args.health_check:
        return _health_check()

    from .api import clear, create_context, evaluate, solve

    output_format = args.output_format
    try:
        config_kwargs: dict[str, Any] = {}
        if args.degrees:
            config_kwargs["degrees_mode"] = True
        if args.group_digits:
            config_kwargs["group_digits"] = True
        if args.references:
            config_kwargs["references"] = True
        if args.places is not None:
            config_kwargs["places"] = args.places
        if args.format:
            config_kwargs["format"] = args.format
        if args.no_strip_zeros:
            config_kwargs["strip_zeros"] = False
        if args.no_shadow_constants:
            config_kwargs["shadow_constants"] = False
        config = SolveConfig(**config_kwargs)

        constants_text = _read_text(args.constants) if args.constants else ""
        functions_text = _read_text(args.functions) if args.functions else ""
        context = create_context(constants_text, functions_text, config)
    except (MathPadError, OSError) as e:
        _emit({"ok": False, "error": str(e)}, output_format, f"Error: {e}")
        return 1

    if args.eval_expr is not None:
        result = evaluate(args.eval_expr, context, config)
        if result.ok:
            _emit(result.to_dict(), output_format, result.result or "")
            return 0
        _emit(result.to_dict(), output_format, f"Error: {result.error}")
        return 1

    try:
        text = _read_text(args.file)
    except OSError as e:
        _emit({"ok": False, "error": str(e)}, output_format, f"Error: {e}")
        return 1

    if args.clear:
        cleared = clear(text, args.clear)
        _emit({"ok": True, "text": cleared}, output_format, cleared)
        return 0

    result = solve(text, context, config)
    if output_format == "json":
        print(json.dumps(result.to_dict()))
    else:
        print(result.text)
        for error in result.errors:
            print(error, file=sys.stderr)
    logger.info(f"Solved {result.solved} value(s)")
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main_entry())
