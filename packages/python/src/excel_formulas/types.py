import math
import re
from enum import IntEnum, auto
from typing import Callable, Iterable, Optional, Union

from excel_formulas.errors import (
    CoercionError,
    ErrorKind,
    ExcelError,
    ExcelFunctionError,
)


# The order of the flags is deliberate: in cross-type comparisons numbers sort
# before text, and text before booleans.
class ExcelType(IntEnum):
    EMPTY = auto()
    NUMBER = auto()
    TEXT = auto()
    BOOLEAN = auto()
    ERROR = auto()
    ARRAY = auto()


ScalarExcelValue = Union[None, int, float, str, bool, ExcelError]
ExcelValue = Union[ScalarExcelValue, "list[ExcelValue]"]

# Arguments of short-circuit functions may be passed unevaluated
Thunk = Callable[[], ExcelValue]
Deferred = Union[ExcelValue, Thunk]


def excel_type(value: ExcelValue) -> ExcelType:
    """Return the ExcelType for a given ExcelValue."""
    if value is None:
        return ExcelType.EMPTY
    if isinstance(value, bool):
        return ExcelType.BOOLEAN
    if isinstance(value, (int, float)):
        return ExcelType.NUMBER
    if isinstance(value, str):
        return ExcelType.TEXT
    if isinstance(value, ExcelError):
        return ExcelType.ERROR
    if isinstance(value, list):
        return ExcelType.ARRAY
    raise CoercionError(f"Unknown Excel type for value: {value!r}")


def is_error(value: ExcelValue) -> bool:
    """Return True if the value is an Excel error value."""
    return isinstance(value, ExcelError)


def is_table(value: ExcelValue) -> bool:
    return isinstance(value, list) and len(value) > 0 and isinstance(value[0], list)


def as_table(value: ExcelValue) -> list[list[ExcelValue]]:
    """View any value as a row-major table: a scalar is 1x1, a vector one row."""
    if not isinstance(value, list):
        return [[value]]
    if not value:
        return []
    if isinstance(value[0], list):
        return value  # type: ignore[return-value]
    return [value]


_NUMERIC_RE = re.compile(r"(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_number(
    text: str,
    decimal_separator: str = ".",
    group_separator: str = ",",
    strict_groups: bool = True,
) -> Union[int, float]:
    """Parse numeric text the way Excel's cell entry does.

    Accepts a sign, a leading currency symbol, thousands separators, a decimal
    separator, an exponent, trailing percent signs and accounting parentheses
    for negatives. With `strict_groups`, thousands separators must delimit
    groups of three digits. Raises ValueError for anything else.
    """
    s = text.strip() if strict_groups else re.sub(r"\s+", "", text)
    if not s:
        raise ValueError("empty text")

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()

    percent = 0
    while s.endswith("%"):
        percent += 1
        s = s[:-1].rstrip()

    if s[:1] in ("+", "-"):
        negative = negative != (s[0] == "-")
        s = s[1:].lstrip()
    if s.startswith("$"):
        s = s[1:].lstrip()
        if s[:1] in ("+", "-"):
            negative = negative != (s[0] == "-")
            s = s[1:].lstrip()

    integer, sep, fraction = s.partition(decimal_separator)
    if group_separator and group_separator in fraction:
        raise ValueError(f"group separator after decimal separator: {text!r}")
    if group_separator and group_separator in integer:
        mantissa = re.split(r"[eE]", integer, maxsplit=1)[0]
        grouped = r"\d{1,3}(" + re.escape(group_separator) + r"\d{3})+"
        if strict_groups and not re.fullmatch(grouped, mantissa):
            raise ValueError(f"misplaced group separator: {text!r}")
        integer = integer.replace(group_separator, "")
    body = integer + ("." if sep else "") + fraction

    match = _NUMERIC_RE.fullmatch(body)
    if match is None:
        raise ValueError(f"not a number: {text!r}")

    is_float = bool(sep) or match.group(2) is not None or percent > 0
    number: Union[int, float] = float(body) if is_float else int(body)
    if percent:
        number = number / (100**percent)
    return -number if negative else number


def coerce_to_number(val: ExcelValue) -> Union[int, float]:
    """Convert an ExcelValue to a number following Excel semantics."""
    if val is None:
        return 0
    if isinstance(val, bool):
        return int(val)
    if isinstance(val, (int, float)):
        if isinstance(val, float) and math.isnan(val):
            raise CoercionError("NaN is not a valid number")
        return val
    if isinstance(val, str):
        if val == "":
            return 0
        try:
            return parse_number(val)
        except ValueError:
            raise CoercionError(f"Cannot convert text '{val}' to number")
    if isinstance(val, ExcelError):
        raise ExcelFunctionError(val.kind)
    if isinstance(val, list):
        raise CoercionError("Cannot convert array to number")
    raise CoercionError(f"Cannot convert {val!r} to number")


def coerce_to_bool(value: ExcelValue) -> bool:
    """Convert an ExcelValue to boolean following Excel semantics."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise CoercionError("NaN is not a valid boolean")
        return bool(value)
    if isinstance(value, str):
        if value.upper() in ("TRUE", "FALSE"):
            return value.upper() == "TRUE"
        raise CoercionError(f"Cannot convert text '{value}' to boolean")
    if isinstance(value, ExcelError):
        raise ExcelFunctionError(value.kind)
    if isinstance(value, list):
        raise CoercionError("Cannot convert array to boolean")
    raise CoercionError(f"Cannot convert {value!r} to boolean")


def format_number(value: Union[int, float]) -> str:
    # General format: 15 significant digits, integral values without ".0"
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return format(value, ".15g").upper()


def coerce_to_text(value: ExcelValue) -> str:
    """Convert an ExcelValue to text following Excel semantics."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise CoercionError("NaN is not a valid number")
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, ExcelError):
        raise ExcelFunctionError(value.kind)
    if isinstance(value, list):
        raise CoercionError("Cannot convert array to text")
    raise CoercionError(f"Cannot convert {value!r} to text")


def to_number(value: ExcelValue) -> Union[int, float, ExcelError]:
    """Coerce to a number, returning the Excel error value on failure."""
    try:
        return coerce_to_number(value)
    except ExcelFunctionError as e:
        return e.error


def to_text(value: ExcelValue) -> Union[str, ExcelError]:
    try:
        return coerce_to_text(value)
    except ExcelFunctionError as e:
        return e.error


def to_boolean(value: ExcelValue) -> Union[bool, ExcelError]:
    try:
        return coerce_to_bool(value)
    except ExcelFunctionError as e:
        return e.error


def coerce_to_int(value: ExcelValue, floor: bool = False) -> int:
    """Truncate towards zero, as Excel does for count-like arguments.

    With `floor`, round towards negative infinity instead. Infinite numbers
    have no integer part and give #NUM!.
    """
    number = coerce_to_number(value)
    if not math.isfinite(number):
        raise ExcelFunctionError(ErrorKind.NUM, f"{number} is not a finite number")
    return math.floor(number) if floor else int(number)


def flatten_args(*args: ExcelValue) -> list[ScalarExcelValue]:
    """Flatten arguments into a single list of non-array values.

    Depth-first and order preserving. Uses an explicit stack so arbitrarily
    nested arrays cannot exhaust the interpreter's recursion limit.
    """
    result: list[ScalarExcelValue] = []
    stack = [iter(args)]
    while stack:
        for item in stack[-1]:
            if isinstance(item, list):
                stack.append(iter(item))
                break
            result.append(item)
        else:
            stack.pop()
    return result


def first_error(*values: ExcelValue) -> Optional[ExcelError]:
    """Return the first error value in argument order, looking inside arrays."""
    for value in flatten_args(*values):
        if isinstance(value, ExcelError):
            return value
    return None


def force(arg: Deferred) -> ExcelValue:
    """Evaluate a deferred argument. Plain values pass through unchanged."""
    return arg() if callable(arg) else arg


# Aggregation: directly passed arguments are coerced (so TRUE and "3" count),
# members of arrays only count when they are numbers. Errors always propagate.
def aggregate_numbers(values: Iterable[ExcelValue]) -> list[Union[int, float]]:
    result: list[Union[int, float]] = []
    for val in values:
        if isinstance(val, list):
            for item in flatten_args(val):
                if isinstance(item, ExcelError):
                    raise ExcelFunctionError(item.kind)
                if excel_type(item) == ExcelType.NUMBER:
                    result.append(item)  # type: ignore[arg-type]
            continue
        if val is None:
            continue
        result.append(coerce_to_number(val))
    return result


def aggregate_booleans(values: Iterable[ExcelValue]) -> list[bool]:
    result: list[bool] = []
    for val in values:
        if isinstance(val, list):
            for item in flatten_args(val):
                if isinstance(item, ExcelError):
                    raise ExcelFunctionError(item.kind)
                if excel_type(item) in (ExcelType.NUMBER, ExcelType.BOOLEAN):
                    result.append(coerce_to_bool(item))
            continue
        if val is None:
            continue
        result.append(coerce_to_bool(val))
    return result
