import math

import pytest
from excel_formulas.errors import (
    ERROR_DISPLAY,
    ErrorKind,
    ExcelError,
    ExcelFunctionError,
)
from excel_formulas.types import (
    ExcelType,
    aggregate_numbers,
    coerce_to_int,
    as_table,
    excel_type,
    first_error,
    flatten_args,
    force,
    parse_number,
    to_boolean,
    to_number,
    to_text,
)


class TestErrorValues:
    def test_one_instance_per_kind(self):
        assert ExcelError.of("#N/A") is ExcelError.NA
        assert ExcelError.of(ErrorKind.NA) is ExcelError.NA
        assert ExcelError(ErrorKind.DIV0) is ExcelError.DIV0

    def test_display_strings(self):
        assert str(ExcelError.DIV0) == "#DIV/0!"
        assert str(ExcelError.NAME) == "#NAME?"
        assert ERROR_DISPLAY[ErrorKind.CIRC] == "#CIRC!"
        assert len(ERROR_DISPLAY) == 8

    def test_unknown_display_string(self):
        with pytest.raises(ValueError):
            ExcelError.of("#OOPS!")


class TestExcelType:
    def test_tags(self):
        assert excel_type(None) == ExcelType.EMPTY
        assert excel_type(True) == ExcelType.BOOLEAN
        assert excel_type(1) == ExcelType.NUMBER
        assert excel_type(1.5) == ExcelType.NUMBER
        assert excel_type("x") == ExcelType.TEXT
        assert excel_type(ExcelError.REF) == ExcelType.ERROR
        assert excel_type([]) == ExcelType.ARRAY


class TestToNumber:
    def test_passthrough_and_booleans(self):
        assert to_number(4.5) == 4.5
        assert to_number(True) == 1
        assert to_number(False) == 0

    def test_empty_values(self):
        assert to_number(None) == 0
        assert to_number("") == 0

    def test_numeric_text(self):
        assert to_number("42") == 42
        assert to_number(" 1,234.5 ") == 1234.5
        assert to_number("50%") == 0.5
        assert to_number("-1e3") == -1000.0

    def test_invalid_text(self):
        assert to_number("abc") is ExcelError.VALUE
        assert to_number("inf") is ExcelError.VALUE
        assert to_number("1,23") is ExcelError.VALUE

    def test_nan_and_arrays(self):
        assert to_number(math.nan) is ExcelError.VALUE
        assert to_number([1, 2]) is ExcelError.VALUE

    def test_error_coerces_to_itself(self):
        assert to_number(ExcelError.DIV0) is ExcelError.DIV0
        assert to_text(ExcelError.NA) is ExcelError.NA
        assert to_boolean(ExcelError.REF) is ExcelError.REF


class TestParseNumber:
    def test_accounting_negative(self):
        assert parse_number("(1,000)") == -1000

    def test_currency(self):
        assert parse_number("$-5") == -5
        assert parse_number("-$2.50") == -2.5

    def test_integral_text_stays_int(self):
        assert isinstance(parse_number("12"), int)
        assert isinstance(parse_number("12.0"), float)

    def test_custom_separators(self):
        assert parse_number("1.234,5", ",", ".") == 1234.5

    def test_rejects_garbage(self):
        for text in ("", ".", "1.2.3", "12abc", "nan"):
            with pytest.raises(ValueError):
                parse_number(text)


class TestToText:
    def test_numbers(self):
        assert to_text(3.0) == "3"
        assert to_text(0.1) == "0.1"
        assert to_text(-7) == "-7"

    def test_booleans_and_empty(self):
        assert to_text(True) == "TRUE"
        assert to_text(None) == ""

    def test_arrays(self):
        assert to_text(["a"]) is ExcelError.VALUE


class TestToBoolean:
    def test_text(self):
        assert to_boolean("true") is True
        assert to_boolean("FALSE") is False
        assert to_boolean("yes") is ExcelError.VALUE

    def test_numbers(self):
        assert to_boolean(0) is False
        assert to_boolean(-2) is True
        assert to_boolean(None) is False


class TestFlatten:
    def test_order_preserved(self):
        assert flatten_args(1, [2, [3, 4]], [[5], 6]) == [1, 2, 3, 4, 5, 6]

    def test_deep_nesting(self):
        nested = [1]
        for _ in range(5000):
            nested = [nested]
        assert flatten_args(nested, 2) == [1, 2]

    def test_first_error(self):
        assert first_error(1, [2, ExcelError.NA], ExcelError.REF) is ExcelError.NA
        assert first_error(1, [2, 3]) is None


class TestHelpers:
    def test_as_table(self):
        assert as_table(5) == [[5]]
        assert as_table([1, 2]) == [[1, 2]]
        assert as_table([[1], [2]]) == [[1], [2]]

    def test_force(self):
        assert force(lambda: 3) == 3
        assert force(3) == 3

    def test_aggregate_numbers(self):
        # direct arguments are coerced, array members only count as numbers
        assert aggregate_numbers([[1, "2", True, None], "3", True, None]) == [1, 3, 1]

    def test_coerce_to_int(self):
        assert coerce_to_int(2.7) == 2
        assert coerce_to_int(-2.7) == -2
        assert coerce_to_int(-2.7, floor=True) == -3
        assert coerce_to_int("4") == 4

    @pytest.mark.parametrize("value", [math.inf, -math.inf])
    def test_coerce_to_int_rejects_infinity(self, value):
        with pytest.raises(ExcelFunctionError) as info:
            coerce_to_int(value)
        assert info.value.error is ExcelError.NUM
