from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union


class ErrorKind(Enum):
    DIV0 = "#DIV/0!"
    NA = "#N/A"
    NAME = "#NAME?"
    NULL = "#NULL!"
    NUM = "#NUM!"
    REF = "#REF!"
    VALUE = "#VALUE!"
    CIRC = "#CIRC!"


ERROR_DISPLAY: dict[ErrorKind, str] = {kind: kind.value for kind in ErrorKind}


@dataclass(frozen=True, eq=False)
class ExcelError:
    """An Excel error value, such as #N/A or #DIV/0!.

    Errors are ordinary values: functions return them instead of raising, and
    they flow through other functions unchanged. There is exactly one instance
    per kind, so `result is ExcelError.NA` is a valid check.
    """

    kind: ErrorKind

    _instances: ClassVar[dict[ErrorKind, "ExcelError"]] = {}

    DIV0: ClassVar["ExcelError"]
    NA: ClassVar["ExcelError"]
    NAME: ClassVar["ExcelError"]
    NULL: ClassVar["ExcelError"]
    NUM: ClassVar["ExcelError"]
    REF: ClassVar["ExcelError"]
    VALUE: ClassVar["ExcelError"]
    CIRC: ClassVar["ExcelError"]

    def __new__(cls, kind: ErrorKind):
        existing = cls._instances.get(kind)
        if existing is not None:
            return existing
        instance = super().__new__(cls)
        cls._instances[kind] = instance
        return instance

    @classmethod
    def of(cls, kind: Union[ErrorKind, str]) -> "ExcelError":
        """Look up the shared error value by kind or display string."""
        if isinstance(kind, str):
            try:
                kind = ErrorKind(kind.upper())
            except ValueError:
                raise ValueError(f"Unknown Excel error: {kind}") from None
        return cls(kind)

    @property
    def display(self) -> str:
        return ERROR_DISPLAY[self.kind]

    def __str__(self) -> str:
        return self.display

    def __repr__(self) -> str:
        return f"ExcelError({self.display})"

    def __reduce__(self):
        return (ExcelError, (self.kind,))


for _kind in ErrorKind:
    setattr(ExcelError, _kind.name, ExcelError(_kind))


class ExcelFunctionError(Exception):
    """Raised inside a function body to abort with an Excel error value.

    The registry wrapper catches it and returns the matching ExcelError, so it
    never escapes a registered function.
    """

    def __init__(self, kind: ErrorKind = ErrorKind.VALUE, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind

    @property
    def error(self) -> ExcelError:
        return ExcelError(self.kind)


class CoercionError(ExcelFunctionError):
    """A value could not be converted to the requested type (#VALUE!)."""

    def __init__(self, message: str = ""):
        super().__init__(ErrorKind.VALUE, message)
