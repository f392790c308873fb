"""Function whitelist and builtin implementations for formula evaluation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable


# ---------------------------------------------------------------------------
# CellError: typed error values that propagate through formula chains
# ---------------------------------------------------------------------------


class CellError:
    """Error value that propagates through formula chains.

    Use ``CellError.of(code)`` to get a cached singleton for each error code.
    Errors compare equal to their string code (``CellError.REF == "#REF!"``).
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    PARSE: CellError
    REF: CellError
    VALUE: CellError
    DIV0: CellError
    CIRCULAR: CellError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


# Singletons
CellError.PARSE = CellError.of("#PARSE!")
CellError.REF = CellError.of("#REF!")
CellError.VALUE = CellError.of("#VALUE!")
CellError.DIV0 = CellError.of("#DIV/0!")
CellError.CIRCULAR = CellError.of("#CIRC!")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first CellError found in *values*, or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
    return None


# ---------------------------------------------------------------------------
# RangeValue: shape-aware 2D range container
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """A resolved cell range that preserves 2D shape metadata.

    Values are stored row-major; iterating yields them in that order.
    """

    values: list[Any]
    n_rows: int
    n_cols: int

    def __iter__(self):
        return iter(self.values)

    def __len__(self):
        return len(self.values)


# ---------------------------------------------------------------------------
# Whitelist and catalog: the closed set of functions formulas may call.
# ---------------------------------------------------------------------------

AGGREGATE_FUNCTIONS = frozenset({"SUM", "AVERAGE", "MAX", "MIN", "COUNT"})
TEXT_FUNCTIONS = frozenset({"TRIM", "UPPER", "LOWER"})

FUNCTION_WHITELIST: dict[str, str] = {
    # Math (5)
    "SUM": "math",
    "AVERAGE": "math",
    "MAX": "math",
    "MIN": "math",
    "COUNT": "math",
    # Text (3)
    "TRIM": "text",
    "UPPER": "text",
    "LOWER": "text",
}


@dataclass(frozen=True)
class FunctionInfo:
    """Help entry for a supported function."""

    name: str
    category: str
    syntax: str
    description: str


FUNCTION_CATALOG: dict[str, FunctionInfo] = {
    info.name: info
    for info in (
        FunctionInfo("SUM", "math", "=SUM(range)",
                     "Calculates the sum of a range of cells."),
        FunctionInfo("AVERAGE", "math", "=AVERAGE(range)",
                     "Calculates the average of a range of cells."),
        FunctionInfo("MAX", "math", "=MAX(range)",
                     "Returns the maximum value from a range of cells."),
        FunctionInfo("MIN", "math", "=MIN(range)",
                     "Returns the minimum value from a range of cells."),
        FunctionInfo("COUNT", "math", "=COUNT(range)",
                     "Counts the number of cells containing numerical values in a range."),
        FunctionInfo("TRIM", "text", "=TRIM(cell)",
                     "Removes leading and trailing whitespace from a cell."),
        FunctionInfo("UPPER", "text", "=UPPER(cell)",
                     "Converts the text in a cell to uppercase."),
        FunctionInfo("LOWER", "text", "=LOWER(cell)",
                     "Converts the text in a cell to lowercase."),
    )
}


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the evaluation whitelist."""
    return func_name.upper() in FUNCTION_WHITELIST


def describe_function(func_name: str) -> FunctionInfo:
    """Return the catalog entry for *func_name* (case-insensitive)."""
    try:
        return FUNCTION_CATALOG[func_name.upper()]
    except KeyError:
        raise KeyError(f"Unsupported function: {func_name!r}") from None


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(
    r"[+-]?(?:\d+(?P<fraction>\.\d*)?|(?P<bare_fraction>\.\d+))(?P<exponent>[eE][+-]?\d+)?",
    re.ASCII,
)


def parse_number(text: str) -> int | float | None:
    """Parse numeric-looking text, preserving int for plain integers.

    Only ASCII decimal notation with an optional fraction and exponent is
    accepted. Returns None for anything else, and for numbers too large to
    be represented as a finite float.
    """
    stripped = text.strip()
    m = _NUMBER_RE.fullmatch(stripped)
    if m is None:
        return None
    num = float(stripped)
    if not math.isfinite(num):
        return None
    if m.group("fraction", "bare_fraction", "exponent") == (None, None, None):
        return int(stripped)
    return num


def to_number(val: Any) -> int | float | None:
    """Numeric view of a scalar value; None when the value is not numeric.

    Empty counts as 0. Errors are the caller's responsibility.
    """
    if val is None:
        return 0
    if isinstance(val, bool):
        return int(val)
    if isinstance(val, (int, float)):
        return val
    if isinstance(val, str):
        return parse_number(val)
    return None


def format_number(num: int | float) -> str:
    """Render a number as text: integral floats lose their ``.0``."""
    if isinstance(num, float) and num.is_integer():
        return str(int(num))
    return str(num)


def to_text(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return format_number(val)
    return str(val)


# ---------------------------------------------------------------------------
# Builtin implementations - pure Python, no external deps.
# Each takes a list of resolved argument values.
# ---------------------------------------------------------------------------


def _flatten(values: list[Any]) -> list[Any]:
    result: list[Any] = []
    for v in values:
        if isinstance(v, (RangeValue, list, tuple)):
            result.extend(_flatten(list(v)))
        else:
            result.append(v)
    return result


def _numeric_values(args: list[Any]) -> list[float] | CellError:
    """Flatten *args* and keep the numeric members.

    Empty and non-numeric text are skipped. An error anywhere wins over the
    skip rule and is returned as-is (first one, left to right).
    """
    flat = _flatten(args)
    err = first_error(*flat)
    if err is not None:
        return err
    result: list[float] = []
    for v in flat:
        if v is None or isinstance(v, bool):
            continue
        if isinstance(v, (int, float)):
            result.append(float(v))
        elif isinstance(v, str):
            num = parse_number(v)
            if num is not None:
                result.append(float(num))
    return result


def _builtin_sum(args: list[Any]) -> float | CellError:
    nums = _numeric_values(args)
    if isinstance(nums, CellError):
        return nums
    return math.fsum(nums)


def _builtin_average(args: list[Any]) -> float | CellError:
    """AVERAGE - zero numeric members yields 0, not an error."""
    nums = _numeric_values(args)
    if isinstance(nums, CellError):
        return nums
    if not nums:
        return 0.0
    return math.fsum(nums) / len(nums)


def _builtin_max(args: list[Any]) -> float | CellError:
    nums = _numeric_values(args)
    if isinstance(nums, CellError):
        return nums
    return max(nums) if nums else 0.0


def _builtin_min(args: list[Any]) -> float | CellError:
    nums = _numeric_values(args)
    if isinstance(nums, CellError):
        return nums
    return min(nums) if nums else 0.0


def _builtin_count(args: list[Any]) -> int | CellError:
    """COUNT - counts numeric values only."""
    nums = _numeric_values(args)
    if isinstance(nums, CellError):
        return nums
    return len(nums)


def _text_arg(name: str, args: list[Any]) -> str | CellError:
    if len(args) != 1:
        raise ValueError(f"{name} requires exactly 1 argument")
    value = args[0]
    if isinstance(value, CellError):
        return value
    if isinstance(value, RangeValue):
        raise ValueError(f"{name} does not accept a range")
    return to_text(value)


def _builtin_trim(args: list[Any]) -> str | CellError:
    """TRIM: remove leading/trailing whitespace."""
    text = _text_arg("TRIM", args)
    return text if isinstance(text, CellError) else text.strip()


def _builtin_upper(args: list[Any]) -> str | CellError:
    text = _text_arg("UPPER", args)
    return text if isinstance(text, CellError) else text.upper()


def _builtin_lower(args: list[Any]) -> str | CellError:
    text = _text_arg("LOWER", args)
    return text if isinstance(text, CellError) else text.lower()


_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "MAX": _builtin_max,
    "MIN": _builtin_min,
    "COUNT": _builtin_count,
    "TRIM": _builtin_trim,
    "UPPER": _builtin_upper,
    "LOWER": _builtin_lower,
}


class FunctionRegistry:
    """Read-only registry of the builtin function implementations."""

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name.upper())

