"""Centralized configuration for MathPad.

This module defines:
- Display defaults (decimal places, number format)
- Solver ceilings (iteration rounds, evaluation caps, call depth)
- Root-finding tolerances and search ranges
- Cache sizes for performance optimization
- Regex patterns for scanning document text

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with MATHPAD_)
"""

import os
import re

try:
    import importlib.metadata

    VERSION = importlib.metadata.version("mathpad")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.getenv("MATHPAD_LOG_LEVEL", "WARNING").upper()  # Default for --log-level

# Display defaults
DEFAULT_PLACES = int(os.getenv("MATHPAD_DEFAULT_PLACES", "4"))
FULL_PRECISION_PLACES = int(
    os.getenv("MATHPAD_FULL_PRECISION_PLACES", "15")
)  # Places used by :: and ->>
DEFAULT_FORMAT = os.getenv("MATHPAD_DEFAULT_FORMAT", "float")  # "float", "sci", "eng"
DEFAULT_STRIP_ZEROS = os.getenv("MATHPAD_STRIP_ZEROS", "true").lower() == "true"
DEFAULT_GROUP_DIGITS = os.getenv("MATHPAD_GROUP_DIGITS", "false").lower() == "true"
DEFAULT_DEGREES_MODE = os.getenv("MATHPAD_DEGREES_MODE", "false").lower() == "true"
DEFAULT_SHADOW_CONSTANTS = (
    os.getenv("MATHPAD_SHADOW_CONSTANTS", "true").lower() == "true"
)
DEFAULT_REFERENCES = os.getenv("MATHPAD_REFERENCES", "false").lower() == "true"

# Solver ceilings: these bound every solve call
MAX_SOLVE_ITERATIONS = int(
    os.getenv("MATHPAD_MAX_SOLVE_ITERATIONS", "50")
)  # Equation-solving rounds
MAX_CALL_DEPTH = int(
    os.getenv("MATHPAD_MAX_CALL_DEPTH", "100")
)  # Nested user-function calls
MAX_INPUT_LENGTH = int(os.getenv("MATHPAD_MAX_INPUT_LENGTH", "200000"))  # characters
MAX_LIMITS_SPAN = int(
    os.getenv("MATHPAD_MAX_LIMITS_SPAN", "10")
)  # Lines a [low:high] declaration may span

# Cache configuration
CACHE_SIZE_PARSE = int(os.getenv("MATHPAD_CACHE_SIZE_PARSE", "1024"))

# Root-finding configuration
ROOT_TOLERANCE = float(
    os.getenv("MATHPAD_ROOT_TOLERANCE", "1e-10")
)  # Relative tolerance for bisection
ROOT_RESIDUAL_TOLERANCE = float(
    os.getenv("MATHPAD_ROOT_RESIDUAL_TOLERANCE", "1e-6")
)  # Rejects sign changes caused by poles
MAX_BISECT_ITERATIONS = int(os.getenv("MATHPAD_MAX_BISECT_ITERATIONS", "200"))
MAX_ROOT_EVALUATIONS = int(
    os.getenv("MATHPAD_MAX_ROOT_EVALUATIONS", "2000")
)  # Function evaluations per root search
LIMITS_GRID_SIZE = int(
    os.getenv("MATHPAD_LIMITS_GRID_SIZE", "64")
)  # Sample points inside [low:high] when endpoints share a sign
BRACKET_START = float(os.getenv("MATHPAD_BRACKET_START", "1.0"))  # Initial guess
BRACKET_GROWTH = float(os.getenv("MATHPAD_BRACKET_GROWTH", "1.6"))
BRACKET_LIMIT = float(os.getenv("MATHPAD_BRACKET_LIMIT", "1e10"))
MAX_NEWTON_STEPS = int(os.getenv("MATHPAD_MAX_NEWTON_STEPS", "50"))
ROOT_CONFIRM_STEP = float(
    os.getenv("MATHPAD_ROOT_CONFIRM_STEP", "1e-3")
)  # Relative offset used to confirm a root found without a sign change

# Equation balance check
BALANCE_TOLERANCE = float(
    os.getenv("MATHPAD_BALANCE_TOLERANCE", "1e-10")
)  # Relative tolerance

REFERENCES_HEADER = '"--- Reference Constants and Functions ---"'

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
QUOTED_COMMENT_RE = re.compile(r'"[^"\n]*"?')
TRAILING_COMMENT_RE = re.compile(r'"([^"]*)"\s*$')
INLINE_EVAL_RE = re.compile(r"\\([^\\\n]+)\\")
FUNCTION_DEF_RE = re.compile(
    r"^\s*\{?\s*([A-Za-z_]\w*)\s*\(\s*([^()]*?)\s*\)\s*=(?!=)\s*(.*?)\s*\}?\s*$",
    re.DOTALL,
)
OUTPUT_VALUE_RE = re.compile(
    r"^(-?[0-9a-zA-Z]+#\d+|-?Infinity|NaN|-?\$?[\d,]*\.?\d+%?(?:[eE][+-]?\d+)?)"
    r"(?![\w.#$%])\s*(.*)$"
)
SIMPLE_NUMBER_RE = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
