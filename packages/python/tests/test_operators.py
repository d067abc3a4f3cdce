import math

from excel_formulas.errors import ExcelError
from excel_formulas.operators import (
    compare_values,
    eq_scalar,
    gte_scalar,
    has_wildcards,
    lt_scalar,
    wildcard_match,
)


class TestCompareValues:
    def test_numbers(self):
        assert compare_values(2, 10) == -1
        assert compare_values(10, 2) == 1
        assert compare_values(3, 3.0) == 0

    def test_text_is_case_insensitive(self):
        assert compare_values("abc", "ABC") == 0
        assert compare_values("b", "A") == 1

    def test_cross_type_order(self):
        assert compare_values(1, "a") == -1
        assert compare_values("a", True) == -1
        assert compare_values(True, 1) == 1
        assert compare_values(False, 100) == 1

    def test_empty_takes_the_other_type(self):
        assert compare_values(None, 0) == 0
        assert compare_values(None, "") == 0
        assert compare_values(False, None) == 0
        assert compare_values(None, None) == 0
        assert compare_values(None, 1) == -1

    def test_errors_propagate(self):
        assert compare_values(ExcelError.NA, 1) is ExcelError.NA
        assert compare_values(1, ExcelError.DIV0) is ExcelError.DIV0

    def test_nan(self):
        assert compare_values(math.nan, 1) is ExcelError.VALUE

    def test_arrays(self):
        assert compare_values([1, 2], 1) is ExcelError.VALUE
        assert compare_values(None, [1]) is ExcelError.VALUE
        assert compare_values([1], None) is ExcelError.VALUE

    def test_scalar_operators(self):
        assert eq_scalar("X", "x")
        assert lt_scalar(99, "1")
        assert gte_scalar(True, "zzz")
        assert not eq_scalar(ExcelError.NA, ExcelError.NA)


class TestWildcards:
    def test_star_and_question_mark(self):
        assert wildcard_match("A*", "apple")
        assert wildcard_match("a?c", "abc")
        assert not wildcard_match("a?c", "abbc")

    def test_regex_characters_are_literal(self):
        assert wildcard_match("a.c", "a.c")
        assert not wildcard_match("a.c", "abc")
        assert wildcard_match("(x)*", "(x) y")

    def test_tilde_escapes(self):
        assert wildcard_match("~*", "*")
        assert not wildcard_match("~*", "a")
        assert wildcard_match("what~?", "what?")

    def test_only_text_matches(self):
        assert not wildcard_match("1*", 12)

    def test_has_wildcards(self):
        assert has_wildcards("a*")
        assert not has_wildcards("abc")
        assert not has_wildcards(5)
