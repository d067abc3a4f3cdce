import functools
import logging
from itertools import chain
from typing import Any, Callable, Optional, ParamSpec, overload

from excel_formulas.errors import ExcelError, ExcelFunctionError
from excel_formulas.types import ExcelValue

P = ParamSpec("P")

EXCEL_FUNCTIONS: dict[str, Callable[..., ExcelValue]] = {}


def _guard(
    fn: Callable[P, ExcelValue], reg_name: str, propagate_errors: bool
) -> Callable[P, ExcelValue]:
    """Wrap a function body so errors come back as values.

    Top-level error arguments short-circuit (first one wins), and an
    ExcelFunctionError raised by the body becomes its ExcelError. Any other
    exception is a bug and is left to propagate.
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> ExcelValue:
        if propagate_errors:
            for arg in chain(args, kwargs.values()):
                if isinstance(arg, ExcelError):
                    return arg
        try:
            return fn(*args, **kwargs)
        except ExcelFunctionError as e:
            logging.debug("%s returned %s: %s", reg_name, e.kind.value, e)
            return e.error

    setattr(wrapper, "_excel_fn_registered", True)
    setattr(wrapper, "_excel_fn_name", reg_name)
    return wrapper


@overload
def excel_fn(
    fn: Callable[P, ExcelValue],
    *,
    name: Optional[str] = None,
    propagate_errors: bool = True,
) -> Callable[P, ExcelValue]: ...
@overload
def excel_fn(
    fn: None = None, *, name: Optional[str] = None, propagate_errors: bool = True
) -> Callable[[Callable[P, ExcelValue]], Callable[P, ExcelValue]]: ...


def excel_fn(
    fn: Callable[P, ExcelValue] | None = None,
    *,
    name: Optional[str] = None,
    propagate_errors: bool = True,
) -> Any:
    """Decorator to register a function as an Excel function.

    Set `propagate_errors=False` for functions that must see error arguments,
    like IFERROR or ISERROR.
    """

    def decorator(fn: Any) -> Any:
        # If used on a staticmethod, wrap the underlying function but return a
        # staticmethod to preserve method semantics.
        if isinstance(fn, staticmethod):
            underlying = fn.__func__
            reg_name = name or underlying.__name__
            wrapped = _guard(underlying, reg_name, propagate_errors)
            EXCEL_FUNCTIONS[reg_name] = wrapped
            return staticmethod(wrapped)

        reg_name = name or fn.__name__
        wrapped = _guard(fn, reg_name, propagate_errors)
        EXCEL_FUNCTIONS[reg_name] = wrapped
        return wrapped

    if fn:
        return decorator(fn)
    else:
        return decorator


def register_functions(cls: type) -> type:
    """Register every public static method of `cls` not already registered.

    The class attributes are replaced by their guarded versions, so calling
    `cls.NAME(...)` directly behaves exactly like the registered function.
    """
    for _name, _member in list(cls.__dict__.items()):
        if _name.startswith("_") or not isinstance(_member, staticmethod):
            continue
        _func = _member.__func__
        if getattr(_func, "_excel_fn_registered", False):
            continue
        wrapped = _guard(_func, _name, propagate_errors=True)
        setattr(cls, _name, staticmethod(wrapped))
        EXCEL_FUNCTIONS[_name] = wrapped
    return cls
