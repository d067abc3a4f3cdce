import re
from enum import IntEnum
from typing import Optional

from openpyxl.utils import column_index_from_string, get_column_letter

from excel_formulas.errors import (
    CoercionError,
    ErrorKind,
    ExcelError,
    ExcelFunctionError,
)
from excel_formulas.operators import compare_values, has_wildcards, wildcard_match
from excel_formulas.registry import excel_fn, register_functions
from excel_formulas.types import (
    Deferred,
    ExcelValue,
    ScalarExcelValue,
    as_table,
    coerce_to_bool,
    coerce_to_int,
    coerce_to_number,
    excel_type,
    force,
    is_table,
)

MAX_ROWS = 1048576
MAX_COLUMNS = 16384


class MatchMode(IntEnum):
    NEXT_SMALLER = -1
    EXACT = 0
    NEXT_LARGER = 1
    WILDCARD = 2


class SearchMode(IntEnum):
    LAST_TO_FIRST = -1
    FIRST_TO_LAST = 1
    BINARY_ASCENDING = 2
    BINARY_DESCENDING = -2


def _to_vector(value: ExcelValue) -> list[ScalarExcelValue]:
    """A lookup array as a flat list. 2D input must be a single row or column."""
    if not isinstance(value, list):
        return [value]
    if not value:
        return []
    if isinstance(value[0], list):
        if len(value) == 1:
            return list(value[0])
        if all(len(row) == 1 for row in value):
            return [row[0] for row in value]
        raise ExcelFunctionError(ErrorKind.NA, "Lookup array must be one row or column")
    return value


def _collapse(table: list[list[ExcelValue]]) -> ExcelValue:
    """Reduce a rectangular result to a scalar, a row, a column list or a table."""
    if len(table) == 1:
        row = table[0]
        return row[0] if len(row) == 1 else list(row)
    if all(len(row) == 1 for row in table):
        return [row[0] for row in table]
    return table


def _scalar_lookup_value(value: ExcelValue) -> ScalarExcelValue:
    if isinstance(value, list):
        raise CoercionError("Lookup value must be a single value")
    return value


def _comparable(candidate: ScalarExcelValue, target: ScalarExcelValue) -> bool:
    # Empty cells, errors and values of another type never take part in
    # approximate matches
    if candidate is None or isinstance(candidate, ExcelError):
        return False
    return excel_type(candidate) == excel_type(target)


def _matches_exactly(
    candidate: ScalarExcelValue, target: ScalarExcelValue, wildcard: bool
) -> bool:
    if candidate is None or isinstance(candidate, ExcelError):
        return False
    if wildcard:
        return wildcard_match(target, candidate)  # type: ignore[arg-type]
    return compare_values(candidate, target) == 0


def exact_position(
    vector: list[ScalarExcelValue],
    target: ScalarExcelValue,
    wildcard: bool = False,
    reverse: bool = False,
) -> Optional[int]:
    indices = range(len(vector) - 1, -1, -1) if reverse else range(len(vector))
    for i in indices:
        if _matches_exactly(vector[i], target, wildcard):
            return i
    return None


def scan_sorted(
    vector: list[ScalarExcelValue], target: ScalarExcelValue, descending: bool = False
) -> Optional[int]:
    """Approximate match over data assumed sorted.

    Ascending: position of the last value <= target. Descending: position of
    the last value >= target. The scan stops at the first value on the wrong
    side of the target, so unsorted data gives Excel's (arbitrary) answer.
    """
    best = None
    for i, candidate in enumerate(vector):
        if not _comparable(candidate, target):
            continue
        order = compare_values(candidate, target)
        if isinstance(order, ExcelError):
            raise ExcelFunctionError(order.kind)
        if (order >= 0) if descending else (order <= 0):
            best = i
        else:
            break
    return best


def _best_candidate(
    vector: list[ScalarExcelValue],
    target: ScalarExcelValue,
    match_mode: MatchMode,
    reverse: bool,
) -> Optional[int]:
    """Closest value strictly below (or above) the target, data in any order."""
    wanted = -1 if match_mode == MatchMode.NEXT_SMALLER else 1
    best = None
    indices = range(len(vector) - 1, -1, -1) if reverse else range(len(vector))
    for i in indices:
        candidate = vector[i]
        if not _comparable(candidate, target):
            continue
        if compare_values(candidate, target) != wanted:
            continue
        # keep the first one found among equally close candidates
        if best is None or compare_values(candidate, vector[best]) == -wanted:
            best = i
    return best


def _binary_search(
    vector: list[ScalarExcelValue],
    target: ScalarExcelValue,
    match_mode: MatchMode,
    descending: bool,
) -> Optional[int]:
    """Lower-bound binary search over sorted data.

    `left` ends on the first element not before the target in sort order
    (>= target ascending, <= target descending), so an exact hit is always
    the first of its duplicates. The nearest-match modes read their answer
    from the boundary.
    """
    n = len(vector)
    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        candidate = vector[mid]
        if candidate is None:
            # blanks never match, step over them
            before_target = True
        else:
            order = compare_values(candidate, target)
            if isinstance(order, ExcelError):
                order = 1
            before_target = order > 0 if descending else order < 0
        if before_target:
            left = mid + 1
        else:
            right = mid

    if left < n and _matches_exactly(vector[left], target, False):
        return left
    if match_mode == MatchMode.EXACT:
        return None

    # left is the next larger value ascending, the next smaller descending
    after = left if left < n else None
    before = left - 1 if left > 0 else None
    wants_smaller = match_mode == MatchMode.NEXT_SMALLER
    if descending:
        return after if wants_smaller else before
    return before if wants_smaller else after


def find_position(
    vector: list[ScalarExcelValue],
    target: ScalarExcelValue,
    match_mode: MatchMode = MatchMode.EXACT,
    search_mode: SearchMode = SearchMode.FIRST_TO_LAST,
) -> Optional[int]:
    """0-based position of `target` in `vector`, or None."""
    if search_mode in (SearchMode.BINARY_ASCENDING, SearchMode.BINARY_DESCENDING):
        if match_mode == MatchMode.WILDCARD:
            raise ExcelFunctionError(
                ErrorKind.VALUE, "Wildcard matching cannot use binary search"
            )
        return _binary_search(
            vector,
            target,
            match_mode,
            descending=search_mode == SearchMode.BINARY_DESCENDING,
        )

    reverse = search_mode == SearchMode.LAST_TO_FIRST
    wildcard = match_mode == MatchMode.WILDCARD and isinstance(target, str)
    position = exact_position(vector, target, wildcard, reverse)
    if position is not None or match_mode in (MatchMode.EXACT, MatchMode.WILDCARD):
        return position
    return _best_candidate(vector, target, match_mode, reverse)


def _match_modes(match_mode: ExcelValue, search_mode: ExcelValue):
    mm = coerce_to_int(match_mode)
    sm = coerce_to_int(search_mode)
    if mm not in {mode.value for mode in MatchMode}:
        raise ExcelFunctionError(ErrorKind.VALUE, f"Invalid match mode {mm}")
    if sm not in {mode.value for mode in SearchMode}:
        raise ExcelFunctionError(ErrorKind.VALUE, f"Invalid search mode {sm}")
    return MatchMode(mm), SearchMode(sm)


def _table_lookup(
    lookup_value: ExcelValue,
    rows: list[list[ExcelValue]],
    index: ExcelValue,
    range_lookup: ExcelValue,
) -> ExcelValue:
    """Shared VLOOKUP/HLOOKUP body: rows are keyed by their first cell."""
    target = _scalar_lookup_value(lookup_value)
    idx = coerce_to_int(index)
    if idx < 1:
        raise ExcelFunctionError(ErrorKind.VALUE, "Index must be at least 1")
    if not rows or idx > len(rows[0]):
        raise ExcelFunctionError(ErrorKind.REF, f"Index {idx} is outside the table")

    approximate = True if range_lookup is None else coerce_to_bool(range_lookup)
    keys = [row[0] for row in rows]
    if approximate:
        position = scan_sorted(keys, target)
    else:
        position = exact_position(keys, target, wildcard=has_wildcards(target))
    if position is None:
        raise ExcelFunctionError(ErrorKind.NA, f"{target!r} not found")
    return rows[position][idx - 1]


_A1_CELL = re.compile(r"\$?([A-Z]{1,3})\$?([0-9]+)", re.IGNORECASE)
_R1C1_CELL = re.compile(r"R([0-9]+)C([0-9]+)", re.IGNORECASE)


def _parse_cell(text: str, a1: bool) -> tuple[int, int]:
    match = (_A1_CELL if a1 else _R1C1_CELL).fullmatch(text.strip())
    if match is None:
        raise ExcelFunctionError(ErrorKind.REF, f"Malformed reference '{text}'")
    if a1:
        try:
            col = column_index_from_string(match.group(1).upper())
        except ValueError:
            raise ExcelFunctionError(ErrorKind.REF, f"Bad column in '{text}'")
        row = int(match.group(2))
    else:
        row, col = int(match.group(1)), int(match.group(2))
    if not (1 <= row <= MAX_ROWS and 1 <= col <= MAX_COLUMNS):
        raise ExcelFunctionError(ErrorKind.REF, f"'{text}' is outside the grid")
    return row, col


def _format_cell(row: int, col: int, a1: bool) -> str:
    return f"{get_column_letter(col)}{row}" if a1 else f"R{row}C{col}"


@register_functions
class LookupFunctions:
    """Lookup and reference functions over in-memory vectors and tables."""

    @staticmethod
    def VLOOKUP(
        lookup_value: ExcelValue,
        table_array: ExcelValue,
        col_index_num: ExcelValue,
        range_lookup: ExcelValue = True,
    ) -> ExcelValue:
        """
        Lookup a value in the first column of a table and return the value
        in the same row of another column.

        Args:
            lookup_value: The value to search for in the first column of table_array
            table_array: The table to search in
            col_index_num: The column number in table_array from which to return a value
            range_lookup: If False, find an exact match (wildcards allowed for
                text). If True, the first column must be sorted ascending and
                the last key <= lookup_value is used.
        """
        return _table_lookup(
            lookup_value, as_table(table_array), col_index_num, range_lookup
        )

    @staticmethod
    def HLOOKUP(
        lookup_value: ExcelValue,
        table_array: ExcelValue,
        row_index_num: ExcelValue,
        range_lookup: ExcelValue = True,
    ) -> ExcelValue:
        """Like VLOOKUP, searching the first row and returning from another row."""
        columns = [list(column) for column in zip(*as_table(table_array))]
        return _table_lookup(lookup_value, columns, row_index_num, range_lookup)

    @staticmethod
    def INDEX(
        array: ExcelValue, row_num: ExcelValue, column_num: ExcelValue = None
    ) -> ExcelValue:
        """Value at a position in an array.

        A zero row (or column) selects the whole column (or row). A flat list
        is a single row, so a lone index addresses its elements directly.
        """
        r = coerce_to_int(row_num)
        c = None if column_num is None else coerce_to_int(column_num)
        if r < 0 or (c is not None and c < 0):
            raise ExcelFunctionError(ErrorKind.VALUE, "Negative INDEX position")

        if isinstance(array, list) and not is_table(array):
            if c is None:
                idx = r
            elif r > 1:
                raise ExcelFunctionError(ErrorKind.REF, f"Row {r} outside a row")
            else:
                idx = c
            if idx == 0:
                return array
            if idx > len(array):
                raise ExcelFunctionError(ErrorKind.REF, f"Index {idx} is out of range")
            return array[idx - 1]

        table = as_table(array)
        height, width = len(table), len(table[0])
        if c is None:
            if width == 1:
                c = 1
            elif height == 1:
                r, c = 1, r
        if r > height or (c is not None and c > width):
            raise ExcelFunctionError(ErrorKind.REF, "INDEX position is out of range")

        if c is None:
            return table if r == 0 else list(table[r - 1])
        if r == 0 and c == 0:
            return table
        if r == 0:
            return _collapse([[row[c - 1]] for row in table])
        if c == 0:
            return list(table[r - 1])
        return table[r - 1][c - 1]

    @staticmethod
    def MATCH(
        lookup_value: ExcelValue, lookup_array: ExcelValue, match_type: ExcelValue = 1
    ) -> ExcelValue:
        """1-based position of a value in a single row or column.

        match_type 1 (default) finds the largest value <= lookup_value in
        ascending data, 0 finds an exact match (with wildcards for text) and
        -1 the smallest value >= lookup_value in descending data.
        """
        target = _scalar_lookup_value(lookup_value)
        vector = _to_vector(lookup_array)
        kind = coerce_to_number(match_type)
        if kind == 0:
            position = exact_position(vector, target, wildcard=has_wildcards(target))
        else:
            position = scan_sorted(vector, target, descending=kind < 0)
        if position is None:
            raise ExcelFunctionError(ErrorKind.NA, f"{target!r} not found")
        return position + 1

    @staticmethod
    def XMATCH(
        lookup_value: ExcelValue,
        lookup_array: ExcelValue,
        match_mode: ExcelValue = 0,
        search_mode: ExcelValue = 1,
    ) -> ExcelValue:
        target = _scalar_lookup_value(lookup_value)
        mm, sm = _match_modes(match_mode, search_mode)
        vector = _to_vector(lookup_array)
        position = find_position(vector, target, mm, sm) if vector else None
        if position is None:
            raise ExcelFunctionError(ErrorKind.NA, f"{target!r} not found")
        return position + 1

    @excel_fn(name="XLOOKUP", propagate_errors=False)
    @staticmethod
    def XLOOKUP(
        lookup_value: ExcelValue,
        lookup_array: ExcelValue,
        return_array: ExcelValue,
        if_not_found: ExcelValue = None,
        match_mode: ExcelValue = 0,
        search_mode: ExcelValue = 1,
    ) -> ExcelValue:
        """
        Search lookup_array and return the matching item of return_array.

        When return_array is 2D, the whole matching row (for a vertical
        lookup_array) or column (for a horizontal one) is returned. An
        omitted if_not_found gives #N/A; any other value, errors included,
        is returned as is.
        """
        for arg in (lookup_value, match_mode, search_mode):
            if isinstance(arg, ExcelError):
                return arg
        target = _scalar_lookup_value(lookup_value)
        mm, sm = _match_modes(match_mode, search_mode)
        vector = _to_vector(lookup_array)
        vertical = is_table(lookup_array) and len(lookup_array) > 1

        # One candidate result per lookup position
        results: list[ExcelValue]
        if is_table(return_array):
            table = as_table(return_array)
            width = len(table[0])
            if len(table) == len(vector) and (vertical or width != len(vector)):
                results = [_collapse([list(row)]) for row in table]
            elif width == len(vector):
                results = [_collapse([[row[i]] for row in table]) for i in range(width)]
            else:
                raise ExcelFunctionError(ErrorKind.VALUE, "Array sizes do not match")
        else:
            results = list(_to_vector(return_array))
            if len(results) != len(vector):
                raise ExcelFunctionError(ErrorKind.VALUE, "Array sizes do not match")

        position = find_position(vector, target, mm, sm) if vector else None
        if position is None:
            return ExcelError.NA if if_not_found is None else if_not_found
        return results[position]

    @staticmethod
    def LOOKUP(
        lookup_value: ExcelValue,
        lookup_vector: ExcelValue,
        result_vector: ExcelValue = None,
    ) -> ExcelValue:
        """Approximate lookup in sorted data.

        With a result vector, returns its item at the position found in
        lookup_vector. Without one, searches the first row of a wide array
        (or the first column of a tall one) and returns from the last
        row (or column).
        """
        target = _scalar_lookup_value(lookup_value)
        if result_vector is None:
            table = as_table(lookup_vector)
            if not table:
                raise ExcelFunctionError(ErrorKind.NA, "Empty lookup array")
            if len(table[0]) > len(table):
                keys, results = list(table[0]), list(table[-1])
            else:
                keys = [row[0] for row in table]
                results = [row[-1] for row in table]
        else:
            keys = _to_vector(lookup_vector)
            results = _to_vector(result_vector)

        position = scan_sorted(keys, target)
        if position is None or position >= len(results):
            raise ExcelFunctionError(ErrorKind.NA, f"{target!r} not found")
        return results[position]

    @excel_fn(name="CHOOSE", propagate_errors=False)
    @staticmethod
    def CHOOSE(index_num: ExcelValue, *values: Deferred) -> ExcelValue:
        """Pick one of the values by 1-based position. Only that one is evaluated."""
        if isinstance(index_num, ExcelError):
            return index_num
        idx = coerce_to_int(index_num)
        if idx < 1 or idx > len(values):
            raise ExcelFunctionError(ErrorKind.VALUE, f"Bad CHOOSE index {idx}")
        return force(values[idx - 1])

    @staticmethod
    def OFFSET(
        reference: ExcelValue,
        rows: ExcelValue,
        cols: ExcelValue,
        height: ExcelValue = None,
        width: ExcelValue = None,
    ) -> ExcelValue:
        """Sub-rectangle of `reference` shifted by rows/cols.

        Without height/width the rectangle extends to the edge of the
        reference. It must lie entirely inside the reference, else #REF!.
        """
        table = as_table(reference)
        if not table:
            raise ExcelFunctionError(ErrorKind.REF, "Empty reference")
        ref_height, ref_width = len(table), len(table[0])

        r = coerce_to_int(rows, floor=True)
        c = coerce_to_int(cols, floor=True)
        h = ref_height - r if height is None else coerce_to_int(height, floor=True)
        w = ref_width - c if width is None else coerce_to_int(width, floor=True)
        if min(r, c) < 0 or min(h, w) <= 0 or r + h > ref_height or c + w > ref_width:
            raise ExcelFunctionError(ErrorKind.REF, "OFFSET leaves the reference")
        return _collapse([list(row[c : c + w]) for row in table[r : r + h]])

    @staticmethod
    def INDIRECT(ref_text: ExcelValue, a1: ExcelValue = True) -> ExcelValue:
        """Validate a textual reference and return it in canonical form.

        Accepts A1 (with optional `$` markers) or R1C1 notation, a single cell
        or a `start:end` range, and an optional `Sheet!` prefix.
        """
        if not isinstance(ref_text, str):
            raise CoercionError("INDIRECT expects reference text")
        use_a1 = coerce_to_bool(a1)

        text = ref_text.strip()
        sheet = ""
        if "!" in text:
            sheet, _, text = text.rpartition("!")
            if not sheet:
                raise ExcelFunctionError(ErrorKind.REF, "Empty sheet name")
            sheet += "!"

        parts = text.split(":")
        if len(parts) > 2:
            raise ExcelFunctionError(ErrorKind.REF, f"Malformed reference '{ref_text}'")
        cells = [_parse_cell(part, use_a1) for part in parts]
        if len(cells) == 2:
            (r1, c1), (r2, c2) = cells
            if r1 > r2 or c1 > c2:
                raise ExcelFunctionError(ErrorKind.REF, "Range start is after its end")
        return sheet + ":".join(_format_cell(row, col, use_a1) for row, col in cells)
