from excel_formulas.errors import (
    CoercionError,
    ErrorKind,
    ExcelError,
    ExcelFunctionError,
)
from excel_formulas.operators import compare_values
from excel_formulas.registry import EXCEL_FUNCTIONS, excel_fn, register_functions
from excel_formulas.types import (
    Deferred,
    ExcelType,
    ExcelValue,
    aggregate_booleans,
    aggregate_numbers,
    coerce_to_bool,
    coerce_to_number,
    coerce_to_text,
    excel_type,
    flatten_args,
    force,
    is_error,
    parse_number,
)

# Importing the families registers their functions in EXCEL_FUNCTIONS
from excel_formulas.dates import DateFunctions
from excel_formulas.financial import FinancialFunctions
from excel_formulas.lookup import LookupFunctions

__all__ = [
    "EXCEL_FUNCTIONS",
    "DateFunctions",
    "ExcelFunctions",
    "FinancialFunctions",
    "LookupFunctions",
]


def _condition(arg: Deferred) -> bool:
    """Evaluate and test a condition argument; errors abort the function."""
    value = force(arg)
    if isinstance(value, ExcelError):
        raise ExcelFunctionError(value.kind)
    if isinstance(value, list):
        raise CoercionError("Condition must be a single value")
    return coerce_to_bool(value)


@register_functions
class ExcelFunctions:
    """Aggregation, logical and conversion functions.

    IF, IFERROR, IFNA, IFS, SWITCH and CHOOSE take their value arguments
    either evaluated or as zero-argument callables, and only call the one
    they return.
    """

    @staticmethod
    def SUM(*args: ExcelValue) -> ExcelValue:
        """Sum of arguments, handling arrays and ranges."""
        return sum(aggregate_numbers(args))

    @staticmethod
    def AVERAGE(*args: ExcelValue) -> ExcelValue:
        """Average of arguments, ignoring empty cells."""
        nums = aggregate_numbers(args)
        if not nums:
            raise ExcelFunctionError(ErrorKind.DIV0, "AVERAGE of no numbers")
        return sum(nums) / len(nums)

    @staticmethod
    def MAX(*args: ExcelValue) -> ExcelValue:
        """Return the maximum value, ignoring empty cells."""
        nums = aggregate_numbers(args)
        return max(nums) if nums else 0

    @staticmethod
    def MIN(*args: ExcelValue) -> ExcelValue:
        """Return the minimum value, ignoring empty cells."""
        nums = aggregate_numbers(args)
        return min(nums) if nums else 0

    @excel_fn(name="COUNT", propagate_errors=False)
    @staticmethod
    def COUNT(*args: ExcelValue) -> ExcelValue:
        """Count numbers. Direct arguments also count if they convert to one."""
        count = 0
        for arg in args:
            if isinstance(arg, list):
                count += sum(
                    1 for v in flatten_args(arg) if excel_type(v) == ExcelType.NUMBER
                )
                continue
            if arg is None or is_error(arg):
                continue
            try:
                coerce_to_number(arg)
            except CoercionError:
                continue
            count += 1
        return count

    @excel_fn(name="COUNTA", propagate_errors=False)
    @staticmethod
    def COUNTA(*args: ExcelValue) -> ExcelValue:
        """Count non-empty values, including errors and empty text."""
        return sum(1 for value in flatten_args(*args) if value is not None)

    @staticmethod
    def NUMBERVALUE(
        text: ExcelValue,
        decimal_separator: ExcelValue = ".",
        group_separator: ExcelValue = ",",
    ) -> ExcelValue:
        """Convert text to a number with explicit separators.

        Spaces are ignored anywhere, group separators may appear anywhere
        before the decimal separator, and each trailing % divides by 100.
        """
        if isinstance(text, (int, float)) and not isinstance(text, bool):
            return text
        source = coerce_to_text(text)
        decimal = coerce_to_text(decimal_separator)[:1]
        group = coerce_to_text(group_separator)[:1]
        if not decimal or decimal == group:
            raise CoercionError("Decimal and group separators must differ")
        if not source.strip():
            return 0
        try:
            return parse_number(source, decimal, group, strict_groups=False)
        except ValueError:
            raise CoercionError(f"Cannot convert text '{source}' to number")

    @excel_fn(name="IF", propagate_errors=False)
    @staticmethod
    def IF(
        condition: Deferred,
        value_if_true: Deferred,
        value_if_false: Deferred = False,
    ) -> ExcelValue:
        """Return value_if_true if condition is True, value_if_false otherwise."""
        branch = value_if_true if _condition(condition) else value_if_false
        return force(branch)

    @excel_fn(name="IFERROR", propagate_errors=False)
    @staticmethod
    def IFERROR(value: Deferred, value_if_error: Deferred) -> ExcelValue:
        """Return value_if_error if value is an error, value otherwise."""
        result = force(value)
        return force(value_if_error) if is_error(result) else result

    @excel_fn(name="IFNA", propagate_errors=False)
    @staticmethod
    def IFNA(value: Deferred, value_if_na: Deferred) -> ExcelValue:
        result = force(value)
        return force(value_if_na) if result is ExcelError.NA else result

    @excel_fn(name="IFS", propagate_errors=False)
    @staticmethod
    def IFS(*args: Deferred) -> ExcelValue:
        """Value paired with the first true condition.

        Args:
            *args: condition1, value1, condition2, value2, ...

        Returns:
            The value for the first TRUE condition, or #N/A if none is true
            or a condition is missing its value. Error conditions propagate.
        """
        if not args or len(args) % 2:
            raise ExcelFunctionError(ErrorKind.NA, "IFS needs condition/value pairs")
        for i in range(0, len(args), 2):
            if _condition(args[i]):
                return force(args[i + 1])
        raise ExcelFunctionError(ErrorKind.NA, "No IFS condition was true")

    @excel_fn(name="SWITCH", propagate_errors=False)
    @staticmethod
    def SWITCH(expression: Deferred, *args: Deferred) -> ExcelValue:
        """Result paired with the first case equal to expression.

        A trailing unpaired argument is the default; without one, no match
        gives #N/A.
        """
        subject = force(expression)
        if isinstance(subject, ExcelError):
            return subject
        pairs = len(args) // 2
        for i in range(pairs):
            outcome = compare_values(subject, force(args[2 * i]))
            if isinstance(outcome, ExcelError):
                return outcome
            if outcome == 0:
                return force(args[2 * i + 1])
        if len(args) % 2:
            return force(args[-1])
        raise ExcelFunctionError(ErrorKind.NA, "No SWITCH case matched")

    @staticmethod
    def AND(*args: ExcelValue) -> ExcelValue:
        """Return True if all arguments are True."""
        values = aggregate_booleans(args)
        if not values:
            raise CoercionError("AND has no logical values")
        return all(values)

    @staticmethod
    def OR(*args: ExcelValue) -> ExcelValue:
        """Return True if any argument is True."""
        values = aggregate_booleans(args)
        if not values:
            raise CoercionError("OR has no logical values")
        return any(values)

    @staticmethod
    def NOT(value: ExcelValue) -> ExcelValue:
        return not coerce_to_bool(value)

    @staticmethod
    def NA() -> ExcelValue:
        """Return the #N/A error value."""
        return ExcelError.NA

    @excel_fn(name="ISERROR", propagate_errors=False)
    @staticmethod
    def ISERROR(value: ExcelValue) -> ExcelValue:
        return is_error(value)

    @excel_fn(name="ISERR", propagate_errors=False)
    @staticmethod
    def ISERR(value: ExcelValue) -> ExcelValue:
        return is_error(value) and value is not ExcelError.NA

    @excel_fn(name="ISNA", propagate_errors=False)
    @staticmethod
    def ISNA(value: ExcelValue) -> ExcelValue:
        return value is ExcelError.NA
