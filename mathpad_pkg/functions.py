"""Builtin function library.

This module provides:
- Numeric primitives with total semantics (``real_power``, ``divide``,
  32-bit integer conversion) so that out-of-domain input yields NaN or an
  infinity instead of an exception
- Factorial and a Lanczos gamma approximation
- The ``YYYYMMDD.hhmmss`` date encoding built on Julian day numbers
- The builtin table used by the evaluator, with arity limits

Builtins receive their already-evaluated arguments as a list of floats plus
the evaluation context (for degrees mode).
"""

from __future__ import annotations

import math
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional

import numpy as np

INF = math.inf
NAN = math.nan

# Lanczos approximation, g = 7
LANCZOS_G = 7
LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


# ---------------------------------------------------------------------------
# Numeric primitives


def is_finite(x: float) -> bool:
    return math.isfinite(x)


def truthy(x: float) -> bool:
    """Zero and NaN are false, everything else is true."""
    return x == x and x != 0


def divide(a: float, b: float) -> float:
    """IEEE division: x/0 is a signed infinity, 0/0 is NaN."""
    if b == 0:
        if a == 0 or a != a:
            return NAN
        negative = (a < 0) != (math.copysign(1.0, b) < 0)
        return -INF if negative else INF
    return a / b


def _is_odd_integer(x: float) -> bool:
    return math.isfinite(x) and x == math.floor(x) and math.fmod(x, 2) != 0


def real_power(base: float, exponent: float) -> float:
    """``base ** exponent`` over the reals; never raises.

    Out-of-domain results (negative base, fractional exponent) are NaN,
    0 to a negative power is a signed infinity, overflow saturates.
    """
    if exponent != exponent:
        return NAN
    if base == 0 and exponent < 0:
        if math.copysign(1.0, base) < 0 and _is_odd_integer(exponent):
            return -INF
        return INF
    try:
        return math.pow(base, exponent)
    except ValueError:
        return NAN
    except OverflowError:
        if base < 0 and _is_odd_integer(exponent):
            return -INF
        return INF


def to_int32(x: float) -> int:
    """Truncate to a signed 32-bit integer (non-finite values become 0)."""
    if not math.isfinite(x):
        return 0
    n = int(math.trunc(x)) & 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n


def remainder(a: float, b: float) -> float:
    """Remainder with the sign of the dividend (fmod); x mod 0 is NaN."""
    try:
        return math.fmod(a, b)
    except ValueError:
        return NAN


def round_half_up(x: float) -> float:
    if not math.isfinite(x):
        return x
    return float(math.floor(x + 0.5))


def trunc(x: float) -> float:
    if not math.isfinite(x):
        return x
    return float(math.trunc(x))


def _floor(x: float) -> float:
    return float(math.floor(x)) if math.isfinite(x) else x


def _ceil(x: float) -> float:
    return float(math.ceil(x)) if math.isfinite(x) else x


def _sign(x: float) -> float:
    if x != x or x == 0:
        return x
    return 1.0 if x > 0 else -1.0


def _ln(x: float) -> float:
    if x != x or x < 0:
        return NAN
    if x == 0:
        return -INF
    if x == INF:
        return INF
    return math.log(x)


def _log10(x: float) -> float:
    if x != x or x < 0:
        return NAN
    if x == 0:
        return -INF
    if x == INF:
        return INF
    return math.log10(x)


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return INF


def _sinh(x: float) -> float:
    try:
        return math.sinh(x)
    except OverflowError:
        return math.copysign(INF, x)


def _cosh(x: float) -> float:
    try:
        return math.cosh(x)
    except OverflowError:
        return INF


def _atanh(x: float) -> float:
    if x == 1:
        return INF
    if x == -1:
        return -INF
    return math.atanh(x)


def _to_radians(angle: float, degrees_mode: bool) -> float:
    return angle * math.pi / 180 if degrees_mode else angle


def _from_radians(angle: float, degrees_mode: bool) -> float:
    return angle * 180 / math.pi if degrees_mode else angle


# ---------------------------------------------------------------------------
# Factorial and gamma


def gamma(z: float) -> float:
    """Gamma function via the Lanczos approximation (g = 7)."""
    if z < 0.5:
        # Reflection formula
        return divide(math.pi, math.sin(math.pi * z) * gamma(1 - z))
    z -= 1
    x = LANCZOS_COEFFICIENTS[0]
    for i in range(1, LANCZOS_G + 2):
        x += LANCZOS_COEFFICIENTS[i] / (z + i)
    t = z + LANCZOS_G + 0.5
    return math.sqrt(2 * math.pi) * real_power(t, z + 0.5) * math.exp(-t) * x


def factorial(n: float) -> float:
    """n! for integers, gamma(n + 1) otherwise; saturates above 170."""
    if n != n:
        return NAN
    if n < 0:
        return NAN
    if n == 0 or n == 1:
        return 1.0
    if n > 170:
        return INF
    if n != math.floor(n):
        return gamma(n + 1)
    result = 1.0
    for i in range(2, int(n) + 1):
        result *= i
    return result


# ---------------------------------------------------------------------------
# Dates: YYYYMMDD.hhmmss (or YYMMDD.hhmmss) encoded as a plain number


class DateParts(NamedTuple):
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0


def date_to_julian(year: int, month: int, day: int) -> int:
    """Julian day number of a Gregorian calendar date."""
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3
    return day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045


def julian_to_date(jd: int):
    """Gregorian (year, month, day) for a Julian day number."""
    a = jd + 32044
    b = (4 * a + 3) // 146097
    c = a - (146097 * b) // 4
    d = (4 * c + 3) // 1461
    e = c - (1461 * d) // 4
    m = (5 * e + 2) // 153
    day = e - (153 * m + 2) // 5 + 1
    month = m + 3 - 12 * (m // 10)
    year = 100 * b + d - 4800 + m // 10
    return year, month, day


def parse_date(value: float) -> DateParts:
    """Decode ``YYYYMMDD.hhmmss``; two-digit years map 00-49 to 2000s, 50-99 to 1900s."""
    if not math.isfinite(value):
        raise ValueError("date value is not finite")
    int_part = math.floor(value)
    frac_part = value - int_part

    if int_part >= 10000000:
        year = int_part // 10000
    else:
        yy = int_part // 10000
        year = 1900 + yy if yy >= 50 else 2000 + yy
    month = (int_part % 10000) // 100
    day = int_part % 100

    hour = minute = second = 0
    if frac_part > 0:
        time_part = int(round_half_up(frac_part * 1000000))
        hour = time_part // 10000
        minute = (time_part % 10000) // 100
        second = time_part % 100
    return DateParts(int(year), int(month), int(day), hour, minute, second)


def format_date(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> float:
    """Encode a date (and optional time of day) as ``YYYYMMDD.hhmmss``."""
    int_part = year * 10000 + month * 100 + day
    if hour == 0 and minute == 0 and second == 0:
        return float(int_part)
    return int_part + (hour * 10000 + minute * 100 + second) / 1000000


def _now(args, ctx) -> float:
    d = datetime.now()
    return format_date(d.year, d.month, d.day, d.hour, d.minute, d.second)


def _days(args, ctx) -> float:
    d1 = parse_date(args[0])
    d2 = parse_date(args[1])
    return float(date_to_julian(d2.year, d2.month, d2.day) - date_to_julian(d1.year, d1.month, d1.day))


def _jdays(args, ctx) -> float:
    d = parse_date(args[0])
    return float(date_to_julian(d.year, d.month, d.day))


def _date(args, ctx) -> float:
    if not math.isfinite(args[0]):
        return NAN
    return format_date(*julian_to_date(int(round_half_up(args[0]))))


def _weekday(args, ctx) -> float:
    d = parse_date(args[0])
    jd = date_to_julian(d.year, d.month, d.day)
    return float((jd + 1) % 7 + 1)  # 1 = Sunday .. 7 = Saturday


def _hours(args, ctx) -> float:
    d = parse_date(args[0])
    return d.hour + d.minute / 60 + d.second / 3600


def _hms(args, ctx) -> float:
    """Decimal hours to 0.HHMMSS."""
    h = args[0]
    if not math.isfinite(h):
        return NAN
    hours = math.floor(h)
    h = (h - hours) * 60
    minutes = math.floor(h)
    h = (h - minutes) * 60
    seconds = round_half_up(h)
    return (hours * 10000 + minutes * 100 + seconds) / 1000000


# ---------------------------------------------------------------------------
# Aggregates and misc


def _round(args, ctx) -> float:
    if len(args) == 1:
        return round_half_up(args[0])
    factor = real_power(10, args[1])
    return divide(round_half_up(args[0] * factor), factor)


def _log(args, ctx) -> float:
    if len(args) == 1:
        return _log10(args[0])
    return divide(_ln(args[0]), _ln(args[1]))


def _atan(args, ctx) -> float:
    if len(args) == 2:
        return _from_radians(math.atan2(args[0], args[1]), ctx.degrees_mode)
    return _from_radians(math.atan(args[0]), ctx.degrees_mode)


def _choose(args, ctx) -> float:
    """choose(n; v1; v2; ...): the n-th value (1-based), 0 when out of range."""
    if not math.isfinite(args[0]):
        return 0.0
    index = math.floor(args[0])
    if index < 1 or index >= len(args):
        return 0.0
    return args[index]


def _min(args, ctx) -> float:
    if any(a != a for a in args):
        return NAN
    return min(args) if args else INF


def _max(args, ctx) -> float:
    if any(a != a for a in args):
        return NAN
    return max(args) if args else -INF


def _sum(args, ctx) -> float:
    return float(sum(args))


def _avg(args, ctx) -> float:
    if not args:
        return NAN
    return float(sum(args)) / len(args)


def _rand(args, ctx) -> float:
    if not args:
        return random.random()
    if len(args) == 1:
        return random.random() * args[0]
    return args[0] + random.random() * (args[1] - args[0])


def _mod(args, ctx) -> float:
    return remainder(args[0], args[1])


class Builtin(NamedTuple):
    func: Callable[[List[float], Any], float]
    min_args: int
    max_args: Optional[int]  # None means variadic


def _unary(fn: Callable[[float], float]) -> Callable[[List[float], Any], float]:
    return lambda args, ctx: fn(args[0])


BUILTINS: Dict[str, Builtin] = {
    # Math
    "abs": Builtin(_unary(abs), 1, 1),
    "sign": Builtin(_unary(_sign), 1, 1),
    "int": Builtin(_unary(trunc), 1, 1),
    "frac": Builtin(_unary(lambda x: x - trunc(x)), 1, 1),
    "round": Builtin(_round, 1, 2),
    "floor": Builtin(_unary(_floor), 1, 1),
    "ceil": Builtin(_unary(_ceil), 1, 1),
    "sqrt": Builtin(_unary(lambda x: math.sqrt(x) if x >= 0 else NAN), 1, 1),
    "cbrt": Builtin(_unary(lambda x: float(np.cbrt(x))), 1, 1),
    "root": Builtin(lambda args, ctx: real_power(args[0], divide(1.0, args[1])), 2, 2),
    "exp": Builtin(_unary(_exp), 1, 1),
    "ln": Builtin(_unary(_ln), 1, 1),
    "log": Builtin(_log, 1, 2),
    "fact": Builtin(_unary(factorial), 1, 1),
    "mod": Builtin(_mod, 2, 2),
    "pi": Builtin(lambda args, ctx: math.pi, 0, 0),
    # Trigonometry (degrees mode applies at the boundary)
    "sin": Builtin(lambda args, ctx: math.sin(_to_radians(args[0], ctx.degrees_mode)), 1, 1),
    "cos": Builtin(lambda args, ctx: math.cos(_to_radians(args[0], ctx.degrees_mode)), 1, 1),
    "tan": Builtin(lambda args, ctx: math.tan(_to_radians(args[0], ctx.degrees_mode)), 1, 1),
    "asin": Builtin(lambda args, ctx: _from_radians(math.asin(args[0]), ctx.degrees_mode), 1, 1),
    "acos": Builtin(lambda args, ctx: _from_radians(math.acos(args[0]), ctx.degrees_mode), 1, 1),
    "atan": Builtin(_atan, 1, 2),
    "sinh": Builtin(_unary(_sinh), 1, 1),
    "cosh": Builtin(_unary(_cosh), 1, 1),
    "tanh": Builtin(_unary(math.tanh), 1, 1),
    "asinh": Builtin(_unary(math.asinh), 1, 1),
    "acosh": Builtin(_unary(math.acosh), 1, 1),
    "atanh": Builtin(_unary(_atanh), 1, 1),
    "radians": Builtin(_unary(lambda x: x * math.pi / 180), 1, 1),
    "degrees": Builtin(_unary(lambda x: x * 180 / math.pi), 1, 1),
    # Dates and times
    "now": Builtin(_now, 0, 0),
    "days": Builtin(_days, 2, 2),
    "jdays": Builtin(_jdays, 1, 1),
    "date": Builtin(_date, 1, 1),
    "jdate": Builtin(_date, 1, 1),
    "year": Builtin(lambda args, ctx: float(parse_date(args[0]).year), 1, 1),
    "month": Builtin(lambda args, ctx: float(parse_date(args[0]).month), 1, 1),
    "day": Builtin(lambda args, ctx: float(parse_date(args[0]).day), 1, 1),
    "weekday": Builtin(_weekday, 1, 1),
    "hour": Builtin(lambda args, ctx: float(parse_date(args[0]).hour), 1, 1),
    "minute": Builtin(lambda args, ctx: float(parse_date(args[0]).minute), 1, 1),
    "second": Builtin(lambda args, ctx: float(parse_date(args[0]).second), 1, 1),
    "hours": Builtin(_hours, 1, 1),
    "hms": Builtin(_hms, 1, 1),
    # Selection and aggregates
    "choose": Builtin(_choose, 1, None),
    "min": Builtin(_min, 0, None),
    "max": Builtin(_max, 0, None),
    "avg": Builtin(_avg, 0, None),
    "sum": Builtin(_sum, 0, None),
    "rand": Builtin(_rand, 0, 2),
}

# Names that cannot be redefined as user functions
RESERVED_FUNCTION_NAMES = frozenset(BUILTINS) | {"if"}


def get_builtin(name: str) -> Optional[Builtin]:
    return BUILTINS.get(name.lower())


def call_builtin(builtin: Builtin, args: List[float], ctx: Any) -> float:
    """Invoke a builtin, mapping domain errors to NaN and overflow to infinity."""
    try:
        result = builtin.func(args, ctx)
    except ValueError:
        return NAN
    except OverflowError:
        return INF
    return float(result)
