import math
import re
from functools import lru_cache
from typing import Union, cast

from excel_formulas.errors import ExcelError
from excel_formulas.types import ExcelType, ScalarExcelValue, excel_type

COMPARISON_TYPE_PRIORITY: dict[ExcelType, int] = {
    ExcelType.BOOLEAN: 3,
    ExcelType.TEXT: 2,
    ExcelType.NUMBER: 1,
}

# What an empty cell turns into when compared against each type
_EMPTY_AS: dict[ExcelType, ScalarExcelValue] = {
    ExcelType.NUMBER: 0,
    ExcelType.TEXT: "",
    ExcelType.BOOLEAN: False,
    ExcelType.EMPTY: 0,
}


def compare_values(
    left: ScalarExcelValue, right: ScalarExcelValue
) -> Union[int, ExcelError]:
    """Three-way comparison with Excel's cross-type ordering.

    Returns -1, 0 or 1, or the error value if either side is an error. Empty
    takes the type of the other side (0, "" or FALSE), text compares without
    regard to case, and values of different types order as
    numbers < text < booleans.
    """
    if isinstance(left, ExcelError):
        return left
    if isinstance(right, ExcelError):
        return right

    ltype = excel_type(left)
    rtype = excel_type(right)
    if ltype == ExcelType.ARRAY or rtype == ExcelType.ARRAY:
        return ExcelError.VALUE

    if left is None:
        left = _EMPTY_AS[excel_type(right)]
    if right is None:
        right = _EMPTY_AS[excel_type(left)]

    ltype = excel_type(left)
    rtype = excel_type(right)

    # Dates are plain serial numbers here, so numbers need no conversion
    if ltype != rtype:
        lpriority = COMPARISON_TYPE_PRIORITY[ltype]
        rpriority = COMPARISON_TYPE_PRIORITY[rtype]
        return -1 if lpriority < rpriority else 1

    if ltype == ExcelType.NUMBER:
        if math.isnan(cast(float, left)) or math.isnan(cast(float, right)):
            return ExcelError.VALUE
    elif ltype == ExcelType.TEXT:
        left = cast(str, left).lower()
        right = cast(str, right).lower()

    if left < right:  # type: ignore[operator]
        return -1
    if left > right:  # type: ignore[operator]
        return 1
    return 0


def eq_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return compare_values(left, right) == 0


def neq_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return not eq_scalar(left, right)


def lt_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return compare_values(left, right) == -1


def gt_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return lt_scalar(right, left)  # flip the arguments


def lte_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return compare_values(left, right) in (-1, 0)


def gte_scalar(left: ScalarExcelValue, right: ScalarExcelValue) -> bool:
    return lte_scalar(right, left)


def has_wildcards(value: ScalarExcelValue) -> bool:
    return isinstance(value, str) and ("*" in value or "?" in value)


@lru_cache(maxsize=256)
def wildcard_to_regex(pattern: str) -> re.Pattern:
    """Compile an Excel wildcard pattern.

    `*` matches any run of characters, `?` a single character and `~` makes
    the next character literal. Matching is anchored and case-insensitive.
    """
    parts = []
    chars = iter(pattern)
    for char in chars:
        if char == "~":
            parts.append(re.escape(next(chars, "~")))
        elif char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def wildcard_match(pattern: str, candidate: ScalarExcelValue) -> bool:
    # Wildcards only ever match text
    if not isinstance(candidate, str):
        return False
    return wildcard_to_regex(pattern).match(candidate) is not None
