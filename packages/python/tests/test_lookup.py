import math

import pytest
from excel_formulas.errors import ExcelError
from excel_formulas.lookup import LookupFunctions, MatchMode, SearchMode, find_position

TABLE = [[1, "a"], [3, "b"], [5, "c"]]
GRID = [[1, 2, 3], [4, 5, 6], [7, 8, 9]]


def boom():
    raise AssertionError("unselected value was evaluated")


class TestMatch:
    def test_exact(self):
        assert LookupFunctions.MATCH(5, [1, 3, 5, 7], 0) == 3

    def test_approximate_ascending(self):
        assert LookupFunctions.MATCH(4, [1, 3, 5, 7]) == 2
        assert LookupFunctions.MATCH(100, [1, 3, 5, 7]) == 4
        assert LookupFunctions.MATCH(0, [1, 3, 5, 7]) is ExcelError.NA

    def test_approximate_descending(self):
        assert LookupFunctions.MATCH(6, [7, 5, 3, 1], -1) == 1

    def test_wildcards(self):
        assert LookupFunctions.MATCH("B*", ["apple", "banana"], 0) == 2

    def test_column_vector(self):
        assert LookupFunctions.MATCH("c", [["a"], ["b"], ["c"]], 0) == 3

    def test_invalid_shapes(self):
        assert LookupFunctions.MATCH(1, [[1, 2], [3, 4]], 0) is ExcelError.NA
        assert LookupFunctions.MATCH([1], [1, 2], 0) is ExcelError.VALUE

    def test_skips_other_types(self):
        assert LookupFunctions.MATCH(4, [1, "x", None, 3, 9]) == 4

    def test_nan_in_approximate_match(self):
        assert LookupFunctions.MATCH(math.nan, [1, 2, 3]) is ExcelError.VALUE
        assert LookupFunctions.MATCH(2, [1, math.nan, 3]) is ExcelError.VALUE
        assert LookupFunctions.MATCH(2, [3, math.nan, 1], -1) is ExcelError.VALUE


class TestXMatch:
    def test_wildcard_mode(self):
        assert LookupFunctions.XMATCH("b?n*", ["apple", "banana"], 2) == 2

    def test_search_from_last(self):
        assert LookupFunctions.XMATCH(2, [2, 1, 2], 0, -1) == 3

    def test_nearest_in_unsorted_data(self):
        assert LookupFunctions.XMATCH(4, [7, 1, 5, 3], -1) == 4
        assert LookupFunctions.XMATCH(4, [7, 1, 5, 3], 1) == 3

    @pytest.mark.parametrize("target", [0, 1, 2, 4, 5, 8, 9])
    @pytest.mark.parametrize("mode", [-1, 0, 1])
    def test_binary_agrees_with_linear(self, target, mode):
        data = [1, 2, 2, 2, 3, 5, 8]
        assert LookupFunctions.XMATCH(target, data, mode, 2) == (
            LookupFunctions.XMATCH(target, data, mode, 1)
        )

    @pytest.mark.parametrize("target", [0, 1, 2])
    def test_binary_skips_blanks(self, target):
        data = [None, 0, 1, 2]
        assert LookupFunctions.XMATCH(target, data, 0, 2) == target + 2
        assert LookupFunctions.XMATCH(target, data, 0, 1) == target + 2

    def test_binary_never_matches_a_blank(self):
        assert LookupFunctions.XMATCH(0, [None, 1, 2], 0, 2) is ExcelError.NA

    def test_binary_descending(self):
        data = [7, 5, 3, 1]
        assert LookupFunctions.XMATCH(5, data, 0, -2) == 2
        assert LookupFunctions.XMATCH(4, data, -1, -2) == 3
        assert LookupFunctions.XMATCH(4, data, 1, -2) == 2

    def test_invalid_modes(self):
        assert LookupFunctions.XMATCH(1, [1], 3) is ExcelError.VALUE
        assert LookupFunctions.XMATCH(1, [1], 0, 0) is ExcelError.VALUE
        assert LookupFunctions.XMATCH("a*", ["ab"], 2, 2) is ExcelError.VALUE

    def test_not_found(self):
        assert LookupFunctions.XMATCH(9, [1, 2]) is ExcelError.NA

    def test_find_position_is_zero_based(self):
        position = find_position(
            [1, 3, 5], 4, MatchMode.NEXT_LARGER, SearchMode.BINARY_ASCENDING
        )
        assert position == 2


class TestXLookup:
    def test_vector_result(self):
        assert LookupFunctions.XLOOKUP("b", ["a", "b", "c"], [1, 2, 3]) == 2

    def test_not_found(self):
        assert LookupFunctions.XLOOKUP("z", ["a"], [1]) is ExcelError.NA
        assert LookupFunctions.XLOOKUP("z", ["a"], [1], "none") == "none"
        assert LookupFunctions.XLOOKUP("z", ["a"], [1], ExcelError.DIV0) is (
            ExcelError.DIV0
        )

    def test_returns_whole_row(self):
        returns = [[1, "a", "x"], [2, "b", "y"], [3, "c", "z"]]
        assert LookupFunctions.XLOOKUP(2, [[1], [2], [3]], returns) == [2, "b", "y"]

    def test_returns_whole_column(self):
        returns = [[10, 20, 30], [40, 50, 60]]
        assert LookupFunctions.XLOOKUP(2, [1, 2, 3], returns) == [20, 50]

    def test_size_mismatch(self):
        assert LookupFunctions.XLOOKUP(1, [1, 2], [1, 2, 3]) is ExcelError.VALUE

    def test_error_lookup_value(self):
        assert LookupFunctions.XLOOKUP(ExcelError.NA, [1], [1]) is ExcelError.NA

    def test_next_larger(self):
        assert LookupFunctions.XLOOKUP(4, [1, 3, 5], ["a", "b", "c"], None, 1) == "c"


class TestVLookup:
    def test_exact(self):
        assert LookupFunctions.VLOOKUP(5, TABLE, 2, False) == "c"
        assert LookupFunctions.VLOOKUP(4, TABLE, 2, False) is ExcelError.NA

    def test_approximate(self):
        assert LookupFunctions.VLOOKUP(4, TABLE, 2) == "b"
        assert LookupFunctions.VLOOKUP(9, TABLE, 2) == "c"
        assert LookupFunctions.VLOOKUP(0, TABLE, 2) is ExcelError.NA

    def test_approximate_nan(self):
        assert LookupFunctions.VLOOKUP(math.nan, TABLE, 2) is ExcelError.VALUE
        table = [[1, 3], ["a", "b"]]
        assert LookupFunctions.HLOOKUP(math.nan, table, 2) is ExcelError.VALUE

    def test_column_index(self):
        assert LookupFunctions.VLOOKUP(3, TABLE, 0) is ExcelError.VALUE
        assert LookupFunctions.VLOOKUP(3, TABLE, 3) is ExcelError.REF

    def test_wildcards(self):
        table = [["apple", 1], ["banana", 2]]
        assert LookupFunctions.VLOOKUP("B*", table, 2, False) == 2

    def test_hlookup(self):
        table = [[1, 3, 5], ["a", "b", "c"]]
        assert LookupFunctions.HLOOKUP(3, table, 2) == "b"
        assert LookupFunctions.HLOOKUP(3, table, 3) is ExcelError.REF


class TestIndex:
    def test_cell(self):
        assert LookupFunctions.INDEX([[1, 2], [3, 4]], 2, 1) == 3

    def test_whole_column_and_row(self):
        assert LookupFunctions.INDEX([[1, 2], [3, 4]], 0, 2) == [2, 4]
        assert LookupFunctions.INDEX([[1, 2], [3, 4]], 1) == [1, 2]

    def test_vector(self):
        assert LookupFunctions.INDEX([10, 20, 30], 2) == 20
        assert LookupFunctions.INDEX([10, 20, 30], 1, 3) == 30

    def test_out_of_range(self):
        assert LookupFunctions.INDEX([[1, 2], [3, 4]], 3, 1) is ExcelError.REF
        assert LookupFunctions.INDEX([10, 20], 5) is ExcelError.REF
        assert LookupFunctions.INDEX([10, 20], -1) is ExcelError.VALUE

    def test_infinite_position(self):
        assert LookupFunctions.INDEX([1, 2], math.inf) is ExcelError.NUM


class TestLookup:
    def test_result_vector(self):
        assert LookupFunctions.LOOKUP(4, [1, 3, 5], ["a", "b", "c"]) == "b"

    def test_array_form(self):
        assert LookupFunctions.LOOKUP(4, TABLE) == "b"
        assert LookupFunctions.LOOKUP(4, [[1, 3, 5], ["a", "b", "c"]]) == "b"

    def test_not_found(self):
        assert LookupFunctions.LOOKUP(0, [1, 3]) is ExcelError.NA

    def test_nan_key(self):
        keys = [1, math.nan, 3]
        assert LookupFunctions.LOOKUP(2, keys, ["a", "b", "c"]) is ExcelError.VALUE


class TestChoose:
    def test_only_chosen_value_is_evaluated(self):
        assert LookupFunctions.CHOOSE(2, boom, lambda: "b") == "b"

    def test_bad_index(self):
        assert LookupFunctions.CHOOSE(3, 1, 2) is ExcelError.VALUE
        assert LookupFunctions.CHOOSE(0, 1) is ExcelError.VALUE
        assert LookupFunctions.CHOOSE(math.inf, boom) is ExcelError.NUM

    def test_errors(self):
        assert LookupFunctions.CHOOSE(ExcelError.NA, boom) is ExcelError.NA
        assert LookupFunctions.CHOOSE(1, ExcelError.DIV0, 2) is ExcelError.DIV0


class TestOffset:
    def test_default_size_is_remaining_extent(self):
        assert LookupFunctions.OFFSET(GRID, 1, 1) == [[5, 6], [8, 9]]

    def test_explicit_size(self):
        assert LookupFunctions.OFFSET(GRID, 0, 0, 1, 1) == 1
        assert LookupFunctions.OFFSET(GRID, 0, 1, 3, 1) == [2, 5, 8]

    def test_outside_reference(self):
        assert LookupFunctions.OFFSET(GRID, 2, 0, 2, 1) is ExcelError.REF
        assert LookupFunctions.OFFSET(GRID, -1, 0) is ExcelError.REF

    def test_infinite_offset(self):
        assert LookupFunctions.OFFSET([[1, 2]], math.inf, 0) is ExcelError.NUM
        assert LookupFunctions.OFFSET(GRID, 0, 0, 1, -math.inf) is ExcelError.NUM


class TestIndirect:
    def test_a1(self):
        assert LookupFunctions.INDIRECT("a1") == "A1"
        assert LookupFunctions.INDIRECT("$B$2:c3") == "B2:C3"

    def test_sheet_prefix(self):
        assert LookupFunctions.INDIRECT("Sheet1!A1") == "Sheet1!A1"
        assert LookupFunctions.INDIRECT("!A1") is ExcelError.REF

    def test_r1c1(self):
        assert LookupFunctions.INDIRECT("R2C3", False) == "R2C3"
        assert LookupFunctions.INDIRECT("R2C3") is ExcelError.REF

    def test_outside_grid(self):
        assert LookupFunctions.INDIRECT("XFE1") is ExcelError.REF
        assert LookupFunctions.INDIRECT("A0") is ExcelError.REF

    def test_reversed_range(self):
        assert LookupFunctions.INDIRECT("B2:A1") is ExcelError.REF

    def test_non_text(self):
        assert LookupFunctions.INDIRECT(5) is ExcelError.VALUE
