"""Number formatting and literal value parsing.

Fixed-point and exponential rendering round half-up on the exact binary
value, and exponents are written without padding (``1.5e+3``, ``2e-7``).
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional

from .config import DEFAULT_PLACES, FULL_PRECISION_PLACES
from .tokenizer import parse_int_prefix

# Wide enough for every finite double at the largest supported place count
_DECIMAL_CONTEXT = Context(prec=400, rounding=ROUND_HALF_UP)

_GROUP_RE = re.compile(r"\B(?=(\d{3})+(?!\d))")
_STRIP_RE = re.compile(r"\.?0+$")
_NEGATIVE_ZERO_RE = re.compile(r"^-(?=[0.]*(?:e|$))")
_PLAIN_NUMBER_RE = re.compile(r"^-?\d+\.?\d*(?:[eE][+-]?\d+)?$")
_MONEY_RE = re.compile(r"^(-?)\$(.+)$")
_PREFIXED_RE = {
    16: re.compile(r"^0x[0-9a-fA-F]+$"),
    2: re.compile(r"^0b[01]+$"),
    8: re.compile(r"^0o[0-7]+$"),
}
_BASE_DIGITS_RE = re.compile(r"^[0-9a-zA-Z]+$")
_BASE_SUFFIX_RE = re.compile(r"^(-?)([0-9a-zA-Z]+)#(\d+)$")


def to_fixed(value: float, places: int) -> str:
    """Fixed-point text with ``places`` decimals."""
    quantum = Decimal(1).scaleb(-places)
    return format(Decimal(value).quantize(quantum, context=_DECIMAL_CONTEXT), "f")


def to_exponential(value: float, places: int) -> str:
    """Exponential text ``d.ddd e±N`` with ``places`` mantissa decimals."""
    quantum = Decimal(1).scaleb(-places)
    if value == 0:
        mantissa = Decimal(0).quantize(quantum)
        exponent = 0
    else:
        d = Decimal(value)
        exponent = d.adjusted()
        mantissa = d.scaleb(-exponent, _DECIMAL_CONTEXT).quantize(quantum, context=_DECIMAL_CONTEXT)
        if abs(mantissa) >= 10:
            exponent += 1
            mantissa = d.scaleb(-exponent, _DECIMAL_CONTEXT).quantize(quantum, context=_DECIMAL_CONTEXT)
    sign = "+" if exponent >= 0 else "-"
    return f"{format(mantissa, 'f')}e{sign}{abs(exponent)}"


def to_base(value: int, base: int) -> str:
    """Uppercase digits of an integer in ``base`` (2-36)."""
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    n = abs(value)
    out = []
    while True:
        n, rem = divmod(n, base)
        out.append(digits[rem])
        if n == 0:
            break
    text = "".join(reversed(out))
    return "-" + text if value < 0 else text


def group_thousands(text: str) -> str:
    parts = text.split(".")
    parts[0] = _GROUP_RE.sub(",", parts[0])
    return ".".join(parts)


def format_number(
    value: float,
    places: int = 14,
    strip_zeros: bool = True,
    fmt: str = "float",
    base: int = 10,
    group_digits: bool = False,
) -> str:
    """Render a number for display.

    Args:
        value: Number to render
        places: Decimal places (mantissa places for ``sci`` and ``eng``)
        strip_zeros: Remove trailing fractional zeros
        fmt: "float", "sci" or "eng"
        base: Integer values in another base render as ``DIGITS#base``
        group_digits: Insert thousands separators into the integer part

    Returns:
        The formatted text; non-finite values render as NaN, Infinity or -Infinity
    """
    if not math.isfinite(value):
        if value != value:
            return "NaN"
        return "Infinity" if value > 0 else "-Infinity"

    if base != 10 and 2 <= base <= 36 and value == math.floor(value):
        return f"{to_base(int(value), base)}#{base}"

    if fmt == "sci":
        text = to_exponential(value, places)
    elif fmt == "eng":
        if value == 0:
            text = to_fixed(0.0, places)
        else:
            exponent = math.floor(math.log10(abs(value)))
            eng_exponent = (exponent // 3) * 3
            mantissa = float(Decimal(value).scaleb(-eng_exponent, _DECIMAL_CONTEXT))
            text = f"{to_fixed(mantissa, places)}e{eng_exponent}"
    else:
        if abs(value) >= 1e14 or (value != 0 and abs(value) < 1e-14):
            text = to_exponential(value, places)
        else:
            text = to_fixed(value, places)

    if strip_zeros and "." in text:
        mantissa, sep, exponent = text.partition("e")
        text = _STRIP_RE.sub("", mantissa) + sep + exponent

    if group_digits and "e" not in text:
        text = group_thousands(text)

    return _NEGATIVE_ZERO_RE.sub("", text)


def format_variable_value(
    value: float,
    var_format: Optional[str] = None,
    full_precision: bool = False,
    places: int = DEFAULT_PLACES,
    strip_zeros: bool = True,
    fmt: str = "float",
    base: int = 10,
    group_digits: bool = False,
) -> str:
    """Render a declaration's value, honoring its money/percent format.

    Money shows two decimals with grouping and the sign before ``$``;
    percent shows value * 100 with at most two decimals. Full precision
    (``::`` and ``->>``) uses 15 places for every form.
    """
    if full_precision:
        places = FULL_PRECISION_PLACES

    if var_format == "money" and math.isfinite(value):
        sign = "-$" if value < 0 else "$"
        if full_precision:
            text = format_number(abs(value), places, strip_zeros, fmt, 10, group_digits)
        else:
            text = group_thousands(to_fixed(abs(value), 2))
        if not _has_nonzero_digit(text):
            sign = "$"
        return sign + text

    if var_format == "percent" and math.isfinite(value):
        percent = value * 100
        if full_precision:
            return format_number(percent, places, strip_zeros, fmt, 10, False) + "%"
        text = _STRIP_RE.sub("", to_fixed(percent, 2))
        return _NEGATIVE_ZERO_RE.sub("", text) + "%"

    return format_number(value, places, strip_zeros, fmt, base, group_digits)


def _has_nonzero_digit(text: str) -> bool:
    mantissa = text.split("e")[0]
    return any(ch in "123456789" for ch in mantissa)


def parse_numeric_value(text: str, var_format: Optional[str] = None, base: int = 10) -> Optional[float]:
    """Parse a literal value as written after a declaration marker.

    Accepts plain numbers, ``$1,234.56`` money, ``7.5%`` percent, digit
    grouping commas, ``0x``/``0b``/``0o`` integers, ``FF#16`` base output,
    ``NaN``/``Infinity`` and, for a declaration with a non-decimal base,
    bare digits in that base. A percent-format declaration reads ``7.5``
    as 0.075.

    Returns:
        The value, or None when the text is an expression rather than a literal
    """
    text = text.strip()
    if not text:
        return None

    if text in ("NaN", "Infinity", "-Infinity"):
        return float(text.replace("Infinity", "inf"))

    suffixed = _BASE_SUFFIX_RE.match(text)
    if suffixed:
        digits = parse_int_prefix(suffixed.group(2), int(suffixed.group(3)))
        if digits != digits:
            return None
        return -digits if suffixed.group(1) else digits

    money = _MONEY_RE.match(text)
    if money:
        text = money.group(1) + money.group(2)

    is_percent = var_format == "percent"
    if text.endswith("%"):
        text = text[:-1]
        is_percent = True

    text = text.replace(",", "")

    value: Optional[float] = None
    if _PLAIN_NUMBER_RE.match(text):
        value = float(text)
    else:
        for prefix_base, pattern in _PREFIXED_RE.items():
            if pattern.match(text):
                value = float(int(text[2:], prefix_base))
                break
        else:
            if base != 10 and _BASE_DIGITS_RE.match(text):
                parsed = parse_int_prefix(text, base)
                if parsed == parsed:
                    value = parsed

    if is_percent and value is not None:
        value = value / 100
    return value


_FRACTION_RE = re.compile(r"^\d*\.(\d+)(?:[eE]([+-]?\d+))?$")


def literal_resolution(text: str, var_format: Optional[str] = None) -> float:
    """Half a unit in the last written decimal of a literal, or 0 when exact.

    ``1.4142`` is only known to +/-0.00005; integers are taken as exact.
    """
    t = text.strip().lstrip("-").lstrip("$").replace(",", "")
    is_percent = var_format == "percent" or t.endswith("%")
    match = _FRACTION_RE.match(t.rstrip("%"))
    if not match:
        return 0.0
    resolution = 0.5 * 10.0 ** (int(match.group(2) or 0) - len(match.group(1)))
    return resolution / 100 if is_percent else resolution
