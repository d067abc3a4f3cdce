import logging
import math
from typing import Callable, Optional

import numpy as np
import numpy_financial as npf

from excel_formulas.errors import ErrorKind, ExcelError, ExcelFunctionError
from excel_formulas.registry import register_functions
from excel_formulas.types import (
    ExcelType,
    ExcelValue,
    aggregate_numbers,
    coerce_to_bool,
    coerce_to_int,
    coerce_to_number,
    excel_type,
    flatten_args,
)

RATE_MAX_ITERATIONS = 50
RATE_TOLERANCE = 1e-7
# Tried in order when Newton-Raphson fails for RATE
RATE_BRACKETS = ((-0.99, 2.0), (0.0001, 1.0), (-0.5, 5.0))
BISECTION_MAX_ITERATIONS = 100
IRR_MAX_ITERATIONS = 100
IRR_TOLERANCE = 1e-7
DERIVATIVE_EPSILON = 1e-10
MIN_RATE = -0.99999
DAYS_PER_YEAR = 365.0


def _when(payment_type: ExcelValue) -> int:
    # Any non-zero type means payments at the start of each period
    return 0 if coerce_to_number(payment_type) == 0 else 1


def _annuity(formula: Callable[..., float], *args: float, when: int) -> float:
    """Evaluate a numpy-financial closed form, #NUM! unless the result is finite."""
    with np.errstate(all="ignore"):
        result = float(formula(*(float(arg) for arg in args), when=when))
    if not math.isfinite(result):
        raise ExcelFunctionError(ErrorKind.NUM, f"{formula.__name__} is not finite")
    return result


def _fv(rate: float, nper: float, pmt: float, pv: float, when: int) -> float:
    return _annuity(npf.fv, rate, nper, pmt, pv, when=when)


def _pv(rate: float, nper: float, pmt: float, fv: float, when: int) -> float:
    return _annuity(npf.pv, rate, nper, pmt, fv, when=when)


def _pmt(rate: float, nper: float, pv: float, fv: float, when: int) -> float:
    if nper == 0:
        raise ExcelFunctionError(ErrorKind.NUM, "Number of periods cannot be 0")
    return _annuity(npf.pmt, rate, nper, pv, fv, when=when)


def _ipmt(
    rate: float, per: float, nper: float, pv: float, fv: float, when: int
) -> float:
    """Interest part of payment `per`.

    Computed from the balance after the previous payment. For payments in
    advance the first payment carries no interest.
    """
    if per < 1 or per > nper:
        raise ExcelFunctionError(ErrorKind.NUM, f"Period {per} is out of range")
    pmt = _pmt(rate, nper, pv, fv, when)
    if per == 1:
        balance = 0.0 if when else -pv
    elif when:
        balance = _fv(rate, per - 2, pmt, pv, 1) - pmt
    else:
        balance = _fv(rate, per - 1, pmt, pv, 0)
    return balance * rate


def _rate_objective(
    rate: float, nper: float, pmt: float, pv: float, fv: float, when: int
) -> tuple[float, float]:
    """Present value of the annuity at `rate` and its derivative.

    Raises OverflowError for rates where the discount factor blows up.
    """
    if abs(rate) < 1e-10:
        value = pv + pmt * nper + fv
        slope = -pmt * nper * (nper + 1) / 2 + pmt * when * nper - fv * nper
        return value, slope
    v = (1 + rate) ** -nper
    if isinstance(v, complex) or not math.isfinite(v):
        raise OverflowError("discount factor is not finite")
    annuity = (1 - v) / rate
    d_annuity = nper * v / (rate * (1 + rate)) - (1 - v) / rate**2
    adjusted = pmt * (1 + rate * when)
    value = pv + adjusted * annuity + fv * v
    slope = adjusted * d_annuity + pmt * when * annuity - fv * nper * v / (1 + rate)
    return value, slope


def _rate_guess(nper: float, pmt: float, pv: float, fv: float) -> float:
    if pv == 0:
        return 0.1
    if abs(pmt) < 1e-10:
        ratio = abs(fv / pv)
        return ratio ** (1 / nper) - 1 if ratio > 0 else 0.1
    guess = abs((fv - pv - pmt * nper) / (pv * nper))
    return min(max(guess, 0.001), 0.5)


def _rate_newton(
    nper: float, pmt: float, pv: float, fv: float, when: int, guess: float
) -> Optional[float]:
    rate = previous = guess
    for i in range(RATE_MAX_ITERATIONS):
        try:
            value, slope = _rate_objective(rate, nper, pmt, pv, fv, when)
        except (OverflowError, ZeroDivisionError):
            return None
        if abs(slope) < DERIVATIVE_EPSILON:
            return None
        new_rate = rate - value / slope
        if not math.isfinite(new_rate) or new_rate <= -0.999 or new_rate > 10:
            return None
        if abs(new_rate - rate) < RATE_TOLERANCE:
            return new_rate
        # bouncing between two points rather than converging
        if i > 20 and abs(new_rate - previous) < 0.5 * abs(new_rate - rate):
            return None
        previous, rate = rate, new_rate
    return None


def _rate_bisection(
    nper: float, pmt: float, pv: float, fv: float, when: int
) -> Optional[float]:
    def objective(rate: float) -> float:
        return _rate_objective(rate, nper, pmt, pv, fv, when)[0]

    for low, high in RATE_BRACKETS:
        try:
            f_low, f_high = objective(low), objective(high)
        except (OverflowError, ZeroDivisionError):
            continue
        if f_low * f_high > 0:
            continue
        for _ in range(BISECTION_MAX_ITERATIONS):
            mid = (low + high) / 2
            f_mid = objective(mid)
            if abs(f_mid) < RATE_TOLERANCE or high - low < 1e-12:
                return mid
            if f_low * f_mid < 0:
                high = mid
            else:
                low, f_low = mid, f_mid
        return (low + high) / 2
    return None


def _cash_flows(values: ExcelValue) -> np.ndarray:
    """Numbers of a cash-flow range. Text, booleans and blanks are skipped."""
    flows = []
    for value in flatten_args(values):
        if isinstance(value, ExcelError):
            raise ExcelFunctionError(value.kind)
        if excel_type(value) == ExcelType.NUMBER:
            flows.append(value)
    return np.asarray(flows, dtype=float)


def _serials(dates: ExcelValue) -> np.ndarray:
    result = []
    for value in flatten_args(dates):
        if isinstance(value, ExcelError):
            raise ExcelFunctionError(value.kind)
        result.append(coerce_to_int(value, floor=True))
    return np.asarray(result, dtype=float)


def _require_both_signs(flows: np.ndarray, kind: ErrorKind = ErrorKind.NUM) -> None:
    if not (flows > 0).any() or not (flows < 0).any():
        raise ExcelFunctionError(kind, "Need at least one inflow and one outflow")


def _discounted(flows: np.ndarray, times: np.ndarray, rate: float):
    """Net present value of `flows` at `times` and its derivative in rate."""
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        factors = np.power(1.0 + rate, times)
        value = (flows / factors).sum()
        slope = (-times * flows / (factors * (1.0 + rate))).sum()
    return float(value), float(slope)


def _solve_rate(
    objective: Callable[[float], tuple[float, float]], guess: float, label: str
) -> float:
    """Newton-Raphson for IRR-style problems."""
    rate = guess
    for _ in range(IRR_MAX_ITERATIONS):
        value, slope = objective(rate)
        if not (math.isfinite(value) and math.isfinite(slope)):
            break
        if abs(value) < IRR_TOLERANCE:
            return rate
        if abs(slope) < DERIVATIVE_EPSILON:
            break
        new_rate = rate - value / slope
        if new_rate < MIN_RATE:
            break
        if abs(new_rate - rate) < IRR_TOLERANCE:
            return new_rate
        rate = new_rate
    logging.debug("%s: no convergence from guess %s, stopped at %s", label, guess, rate)
    raise ExcelFunctionError(ErrorKind.NUM, f"{label} did not converge")


def _xnpv_inputs(values: ExcelValue, dates: ExcelValue):
    flows = _cash_flows(values)
    days = _serials(dates)
    if len(flows) != len(days) or len(flows) == 0:
        raise ExcelFunctionError(ErrorKind.NUM, "Values and dates differ in length")
    if (days < days[0]).any():
        raise ExcelFunctionError(ErrorKind.NUM, "A date precedes the first date")
    return flows, (days - days[0]) / DAYS_PER_YEAR


def _ddb(cost: float, salvage: float, life: float, period: float, factor: float):
    """Declining balance depreciation for one period, stopping at salvage."""
    rate = factor / life
    if rate >= 1:
        rate = 1.0
        old_value = cost if period == 1 else 0.0
    else:
        old_value = cost * (1 - rate) ** (period - 1)
    new_value = cost * (1 - rate) ** period
    if new_value < salvage:
        depreciation = old_value - salvage
    else:
        depreciation = old_value - new_value
    return max(depreciation, 0.0)


def _inter_vdb(
    cost: float,
    salvage: float,
    life: float,
    remaining_life: float,
    period: float,
    factor: float,
) -> float:
    """Depreciation over the first `period` periods, switching to straight
    line once it exceeds the declining balance amount."""
    total = 0.0
    loop_end = math.ceil(period)
    remaining = cost - salvage
    straight_line = False
    sln = 0.0
    for i in range(1, loop_end + 1):
        if not straight_line:
            ddb = _ddb(cost, salvage, life, i, factor)
            sln = remaining / (remaining_life - (i - 1))
            if sln > ddb:
                term = sln
                straight_line = True
            else:
                term = ddb
                remaining -= ddb
        else:
            term = sln
        if i == loop_end:
            term *= period + 1 - loop_end
        total += term
    return total


def _cumulative_args(rate, nper, pv, start_period, end_period, payment_type):
    r = coerce_to_number(rate)
    n = coerce_to_number(nper)
    present = coerce_to_number(pv)
    first = coerce_to_int(start_period)
    last = coerce_to_int(end_period)
    when = coerce_to_number(payment_type)
    if r <= 0 or n <= 0 or present <= 0:
        raise ExcelFunctionError(ErrorKind.NUM, "Rate, nper and pv must be positive")
    if first < 1 or last < first or last > n or when not in (0, 1):
        raise ExcelFunctionError(ErrorKind.NUM, "Invalid period range or type")
    return r, n, present, first, last, int(when)


@register_functions
class FinancialFunctions:
    """Time value of money, rates of return and depreciation."""

    @staticmethod
    def PV(
        rate: ExcelValue,
        nper: ExcelValue,
        pmt: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Present value of a series of equal payments."""
        return _pv(
            coerce_to_number(rate),
            coerce_to_number(nper),
            coerce_to_number(pmt),
            coerce_to_number(fv),
            _when(type),
        )

    @staticmethod
    def FV(
        rate: ExcelValue,
        nper: ExcelValue,
        pmt: ExcelValue,
        pv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Future value of an investment with periodic payments."""
        return _fv(
            coerce_to_number(rate),
            coerce_to_number(nper),
            coerce_to_number(pmt),
            coerce_to_number(pv),
            _when(type),
        )

    @staticmethod
    def PMT(
        rate: ExcelValue,
        nper: ExcelValue,
        pv: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Periodic payment for a loan or annuity."""
        return _pmt(
            coerce_to_number(rate),
            coerce_to_number(nper),
            coerce_to_number(pv),
            coerce_to_number(fv),
            _when(type),
        )

    @staticmethod
    def NPER(
        rate: ExcelValue,
        pmt: ExcelValue,
        pv: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Number of periods needed to reach `fv`. May be negative."""
        r = coerce_to_number(rate)
        payment = coerce_to_number(pmt)
        present = coerce_to_number(pv)
        future = coerce_to_number(fv)
        when = _when(type)
        if r == 0:
            if payment == 0:
                raise ExcelFunctionError(ErrorKind.NUM, "Rate and payment are both 0")
            return -(present + future) / payment
        if r <= -1:
            raise ExcelFunctionError(ErrorKind.NUM, "Rate must be above -100%")
        adjusted = payment * (1 + r * when) / r
        numerator = adjusted - future
        denominator = adjusted + present
        if denominator == 0 or numerator / denominator <= 0:
            raise ExcelFunctionError(ErrorKind.NUM, "No number of periods fits")
        return math.log(numerator / denominator) / math.log(1 + r)

    @staticmethod
    def RATE(
        nper: ExcelValue,
        pmt: ExcelValue,
        pv: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
        guess: ExcelValue = None,
    ) -> ExcelValue:
        """
        Interest rate per period of an annuity.

        Newton-Raphson starts from `guess` (or an estimate from the cash
        flows). If it stalls, diverges or oscillates, bisection is tried over
        a fixed list of brackets. #NUM! when no bracket contains a root.
        """
        n = coerce_to_number(nper)
        payment = coerce_to_number(pmt)
        present = coerce_to_number(pv)
        future = coerce_to_number(fv)
        when = _when(type)
        if n <= 0:
            raise ExcelFunctionError(ErrorKind.NUM, "nper must be positive")
        if abs(present + future + payment * n) < 1e-10:
            return 0.0

        start = (
            _rate_guess(n, payment, present, future)
            if guess is None
            else coerce_to_number(guess)
        )
        rate = _rate_newton(n, payment, present, future, when, start)
        if rate is not None:
            return rate
        logging.debug("RATE: Newton-Raphson failed from %s, trying bisection", start)
        rate = _rate_bisection(n, payment, present, future, when)
        if rate is None:
            raise ExcelFunctionError(ErrorKind.NUM, "RATE found no sign change")
        return rate

    @staticmethod
    def IPMT(
        rate: ExcelValue,
        per: ExcelValue,
        nper: ExcelValue,
        pv: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Interest portion of a given payment."""
        return _ipmt(
            coerce_to_number(rate),
            coerce_to_number(per),
            coerce_to_number(nper),
            coerce_to_number(pv),
            coerce_to_number(fv),
            _when(type),
        )

    @staticmethod
    def PPMT(
        rate: ExcelValue,
        per: ExcelValue,
        nper: ExcelValue,
        pv: ExcelValue,
        fv: ExcelValue = 0,
        type: ExcelValue = 0,
    ) -> ExcelValue:
        """Principal portion of a given payment."""
        r = coerce_to_number(rate)
        n = coerce_to_number(nper)
        present = coerce_to_number(pv)
        future = coerce_to_number(fv)
        when = _when(type)
        interest = _ipmt(r, coerce_to_number(per), n, present, future, when)
        return _pmt(r, n, present, future, when) - interest

    @staticmethod
    def CUMIPMT(
        rate: ExcelValue,
        nper: ExcelValue,
        pv: ExcelValue,
        start_period: ExcelValue,
        end_period: ExcelValue,
        type: ExcelValue,
    ) -> ExcelValue:
        """Interest paid between two periods, inclusive."""
        r, n, present, first, last, when = _cumulative_args(
            rate, nper, pv, start_period, end_period, type
        )
        return sum(_ipmt(r, per, n, present, 0, when) for per in range(first, last + 1))

    @staticmethod
    def CUMPRINC(
        rate: ExcelValue,
        nper: ExcelValue,
        pv: ExcelValue,
        start_period: ExcelValue,
        end_period: ExcelValue,
        type: ExcelValue,
    ) -> ExcelValue:
        """Principal repaid between two periods, inclusive."""
        r, n, present, first, last, when = _cumulative_args(
            rate, nper, pv, start_period, end_period, type
        )
        payment = _pmt(r, n, present, 0, when)
        return sum(
            payment - _ipmt(r, per, n, present, 0, when)
            for per in range(first, last + 1)
        )

    @staticmethod
    def NPV(rate: ExcelValue, *values: ExcelValue) -> ExcelValue:
        """Net present value of payments at the end of periods 1, 2, ..."""
        r = coerce_to_number(rate)
        if r == -1:
            raise ExcelFunctionError(ErrorKind.DIV0, "Rate cannot be -100%")
        flows = np.asarray(aggregate_numbers(values), dtype=float)
        periods = np.arange(1, len(flows) + 1)
        return _discounted(flows, periods, r)[0]

    @staticmethod
    def XNPV(rate: ExcelValue, values: ExcelValue, dates: ExcelValue) -> ExcelValue:
        """Net present value of cash flows on arbitrary dates (Actual/365)."""
        r = coerce_to_number(rate)
        if r <= -1:
            raise ExcelFunctionError(ErrorKind.NUM, "Rate must be above -100%")
        flows, times = _xnpv_inputs(values, dates)
        return _discounted(flows, times, r)[0]

    @staticmethod
    def IRR(values: ExcelValue, guess: ExcelValue = 0.1) -> ExcelValue:
        """Rate at which the NPV of periodic cash flows is zero."""
        flows = _cash_flows(values)
        _require_both_signs(flows)
        periods = np.arange(len(flows))
        return _solve_rate(
            lambda r: _discounted(flows, periods, r), coerce_to_number(guess), "IRR"
        )

    @staticmethod
    def XIRR(
        values: ExcelValue, dates: ExcelValue, guess: ExcelValue = 0.1
    ) -> ExcelValue:
        """Rate at which the XNPV of dated cash flows is zero."""
        flows, times = _xnpv_inputs(values, dates)
        if len(flows) < 2:
            raise ExcelFunctionError(ErrorKind.NUM, "XIRR needs at least two flows")
        _require_both_signs(flows)
        return _solve_rate(
            lambda r: _discounted(flows, times, r), coerce_to_number(guess), "XIRR"
        )

    @staticmethod
    def MIRR(
        values: ExcelValue, finance_rate: ExcelValue, reinvest_rate: ExcelValue
    ) -> ExcelValue:
        """
        Modified internal rate of return.

        Outflows are discounted to the start at finance_rate, inflows are
        compounded to the last period at reinvest_rate, and the rate linking
        the two over n - 1 periods is returned.
        """
        flows = _cash_flows(values)
        finance = coerce_to_number(finance_rate)
        reinvest = coerce_to_number(reinvest_rate)
        if finance == -1 or reinvest == -1:
            raise ExcelFunctionError(ErrorKind.DIV0, "Rate cannot be -100%")
        _require_both_signs(flows, ErrorKind.DIV0)

        n = len(flows)
        periods = np.arange(n)
        outflows = np.where(flows < 0, flows, 0.0)
        inflows = np.where(flows > 0, flows, 0.0)
        pv_out = (outflows / np.power(1.0 + finance, periods)).sum()
        fv_in = (inflows * np.power(1.0 + reinvest, n - 1 - periods)).sum()
        ratio = fv_in / -pv_out
        if ratio <= 0:
            raise ExcelFunctionError(ErrorKind.NUM, "MIRR has no real solution")
        return float(ratio ** (1.0 / (n - 1)) - 1)

    @staticmethod
    def SLN(cost: ExcelValue, salvage: ExcelValue, life: ExcelValue) -> ExcelValue:
        """Straight-line depreciation for one period."""
        n = coerce_to_number(life)
        if n == 0:
            raise ExcelFunctionError(ErrorKind.DIV0, "Life cannot be 0")
        return (coerce_to_number(cost) - coerce_to_number(salvage)) / n

    @staticmethod
    def SYD(
        cost: ExcelValue, salvage: ExcelValue, life: ExcelValue, per: ExcelValue
    ) -> ExcelValue:
        """Sum-of-years'-digits depreciation for period `per`."""
        n = coerce_to_number(life)
        p = coerce_to_number(per)
        if n <= 0 or p <= 0 or p > n:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid life or period")
        base = coerce_to_number(cost) - coerce_to_number(salvage)
        return base * (n - p + 1) * 2 / (n * (n + 1))

    @staticmethod
    def DB(
        cost: ExcelValue,
        salvage: ExcelValue,
        life: ExcelValue,
        period: ExcelValue,
        month: ExcelValue = 12,
    ) -> ExcelValue:
        """
        Fixed-declining balance depreciation.

        The rate is rounded to three decimals. The first year covers `month`
        months and, when that is a partial year, the last period (life + 1)
        covers the remaining months.
        """
        c = coerce_to_number(cost)
        s = coerce_to_number(salvage)
        n = coerce_to_number(life)
        p = coerce_to_int(period)
        months = coerce_to_int(month)
        last_period = n + 1 if months < 12 else n
        if c < 0 or s < 0 or n <= 0 or p <= 0 or p > last_period:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid DB arguments")
        if months < 1 or months > 12:
            raise ExcelFunctionError(ErrorKind.NUM, "Month must be 1-12")
        if c == 0:
            return 0.0

        rate = round(1 - (s / c) ** (1 / n), 3)
        depreciation = c * rate * months / 12
        total = depreciation
        for current in range(2, p + 1):
            depreciation = (c - total) * rate
            if current == n + 1:
                depreciation *= (12 - months) / 12
            total += depreciation
        return depreciation

    @staticmethod
    def DDB(
        cost: ExcelValue,
        salvage: ExcelValue,
        life: ExcelValue,
        period: ExcelValue,
        factor: ExcelValue = 2,
    ) -> ExcelValue:
        """Double (or `factor`) declining balance depreciation for one period."""
        c = coerce_to_number(cost)
        s = coerce_to_number(salvage)
        n = coerce_to_number(life)
        p = coerce_to_number(period)
        f = coerce_to_number(factor)
        if c < 0 or s < 0 or n <= 0 or p <= 0 or p > n or f <= 0:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid DDB arguments")
        return _ddb(c, s, n, p, f)

    @staticmethod
    def VDB(
        cost: ExcelValue,
        salvage: ExcelValue,
        life: ExcelValue,
        start_period: ExcelValue,
        end_period: ExcelValue,
        factor: ExcelValue = 2,
        no_switch: ExcelValue = False,
    ) -> ExcelValue:
        """
        Declining balance depreciation between two (possibly fractional)
        periods.

        Switches to straight line when that gives more depreciation, unless
        `no_switch` is true.
        """
        c = coerce_to_number(cost)
        s = coerce_to_number(salvage)
        n = coerce_to_number(life)
        start = coerce_to_number(start_period)
        end = coerce_to_number(end_period)
        f = coerce_to_number(factor)
        if not math.isfinite(n) or start < 0 or end < start or end > n:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid VDB periods")
        if c < 0 or s > c or f <= 0:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid VDB arguments")

        int_start = math.floor(start)
        int_end = math.ceil(end)

        if coerce_to_bool(no_switch):
            total = 0.0
            for i in range(int_start + 1, int_end + 1):
                term = _ddb(c, s, n, i, f)
                if i == int_start + 1:
                    term *= min(end, int_start + 1) - start
                elif i == int_end:
                    term *= end + 1 - int_end
                total += term
            return total

        # fractional first and last periods are removed from whole periods
        part = 0.0
        if start != int_start:
            value = c - _inter_vdb(c, s, n, n, int_start, f)
            part += (start - int_start) * _inter_vdb(value, s, n, n - int_start, 1, f)
        if end != int_end:
            value = c - _inter_vdb(c, s, n, n, int_end - 1, f)
            part += (int_end - end) * _inter_vdb(value, s, n, n - int_end + 1, 1, f)

        remaining_cost = c - _inter_vdb(c, s, n, n, int_start, f)
        total = _inter_vdb(remaining_cost, s, n, n - int_start, int_end - int_start, f)
        return total - part

    @staticmethod
    def EFFECT(nominal_rate: ExcelValue, npery: ExcelValue) -> ExcelValue:
        """Effective annual rate for a nominal rate compounded npery times."""
        rate = coerce_to_number(nominal_rate)
        periods = coerce_to_int(npery)
        if rate <= 0 or periods < 1:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid EFFECT arguments")
        return (1 + rate / periods) ** periods - 1

    @staticmethod
    def NOMINAL(effect_rate: ExcelValue, npery: ExcelValue) -> ExcelValue:
        rate = coerce_to_number(effect_rate)
        periods = coerce_to_int(npery)
        if rate <= 0 or periods < 1:
            raise ExcelFunctionError(ErrorKind.NUM, "Invalid NOMINAL arguments")
        return ((1 + rate) ** (1 / periods) - 1) * periods

    @staticmethod
    def FVSCHEDULE(principal: ExcelValue, schedule: ExcelValue) -> ExcelValue:
        """Principal compounded by a list of per-period rates."""
        value = coerce_to_number(principal)
        for rate in flatten_args(schedule):
            value *= 1 + coerce_to_number(rate)
        return value
