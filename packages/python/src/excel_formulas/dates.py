import math
from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from openpyxl.utils.datetime import WINDOWS_EPOCH, from_excel, to_excel

from excel_formulas.errors import CoercionError, ErrorKind, ExcelFunctionError
from excel_formulas.registry import register_functions
from excel_formulas.types import (
    ExcelValue,
    coerce_to_int,
    coerce_to_number,
    coerce_to_text,
    flatten_args,
)

SECONDS_PER_DAY = 86400
# 1900-02-29 does not exist, but Excel's 1900 date system gives it a serial
LEAP_BUG_SERIAL = 60
MIN_DATE = date(1899, 12, 31)
MAX_SERIAL = 2958465  # 9999-12-31

# First day of the week for WEEKDAY/WEEKNUM return types, 0 = Sunday
WEEK_STARTS: dict[int, int] = {
    1: 0,
    2: 1,
    11: 1,
    12: 2,
    13: 3,
    14: 4,
    15: 5,
    16: 6,
    17: 0,
}


def utcnow() -> datetime:
    """Current UTC wall-clock time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def check_serial(serial: float) -> float:
    if not math.isfinite(serial) or serial < 0 or serial >= MAX_SERIAL + 1:
        raise ExcelFunctionError(ErrorKind.NUM, f"Serial {serial} is out of range")
    return serial


def date_to_serial(value: Union[date, datetime], epoch=WINDOWS_EPOCH) -> float:
    """Convert a date or datetime to a 1900-system serial.

    openpyxl's `to_excel` already skips the phantom 1900-02-29, so dates from
    1900-03-01 on come out one higher than a plain day count.
    """
    day = value.date() if isinstance(value, datetime) else value
    if day < MIN_DATE:
        raise ExcelFunctionError(ErrorKind.NUM, f"{value} is before 1900")
    serial = to_excel(value, epoch=epoch)
    return int(serial) if serial == int(serial) else serial


def serial_to_datetime(serial: float, epoch=WINDOWS_EPOCH) -> datetime:
    serial = check_serial(serial)
    if int(serial) == LEAP_BUG_SERIAL:
        # no such calendar day; date arithmetic continues from 1900-03-01
        serial += 1
    return from_excel(serial, epoch=epoch)


def serial_to_parts(serial: float) -> tuple[int, int, int]:
    """Year, month and day of a serial, including Excel's impossible dates."""
    day = int(check_serial(serial))
    if day == 0:
        return 1900, 1, 0
    if day == LEAP_BUG_SERIAL:
        return 1900, 2, 29
    dt = from_excel(day, epoch=WINDOWS_EPOCH)
    return dt.year, dt.month, dt.day


def day_of_week(serial: float) -> int:
    # Serial arithmetic, 0 = Sunday. Serial 1 is a Sunday in Excel's calendar.
    return (int(serial) + 6) % 7


def _parse_date_text(text: str) -> tuple[Optional[date], float]:
    """Parse date/time text into its date (None when absent) and day fraction.

    The text is parsed twice against different defaults: a field that changes
    with the default was not present in the text.
    """
    if not text.strip():
        raise CoercionError("Empty date text")
    try:
        first = date_parser.parse(text, default=datetime(2000, 1, 1))
        second = date_parser.parse(text, default=datetime(2001, 2, 2))
    except (ValueError, OverflowError):
        raise CoercionError(f"Cannot parse '{text}' as a date or time")

    fraction = (
        first.hour * 3600 + first.minute * 60 + first.second + first.microsecond / 1e6
    ) / SECONDS_PER_DAY

    if first.month != second.month and first.day != second.day:
        return None, fraction
    parsed = first.date()
    if first.year != second.year:
        # no year in the text: Excel assumes the current one
        try:
            parsed = parsed.replace(year=utcnow().year)
        except ValueError:
            raise CoercionError(f"'{text}' is not a valid date this year")
    return parsed, fraction


def _serial_arg(value: ExcelValue) -> float:
    """A date argument as a serial. Numeric text and date text both work."""
    try:
        return check_serial(coerce_to_number(value))
    except CoercionError:
        if not isinstance(value, str):
            raise
    parsed, fraction = _parse_date_text(value)
    serial = date_to_serial(parsed) if parsed is not None else 0
    return check_serial(serial + fraction)


def _seconds_of_day(value: ExcelValue) -> int:
    serial = _serial_arg(value)
    seconds = round((serial - math.floor(serial)) * SECONDS_PER_DAY)
    return seconds % SECONDS_PER_DAY


def _holiday_set(holidays: ExcelValue) -> set[int]:
    result: set[int] = set()
    for value in flatten_args(holidays):
        if value is None:
            continue
        result.add(int(_serial_arg(value)))
    return result


def _is_numeric_text(text: str) -> bool:
    try:
        coerce_to_number(text)
    except CoercionError:
        return False
    return True


def _is_workday(serial: int, holidays: set[int]) -> bool:
    return day_of_week(serial) not in (0, 6) and serial not in holidays


@register_functions
class DateFunctions:
    """Date and time functions over 1900-system serial numbers."""

    @staticmethod
    def DATE(year: ExcelValue, month: ExcelValue, day: ExcelValue) -> ExcelValue:
        """Serial for a year, month and day.

        Years 0-1899 are offsets from 1900. Months and days outside their
        normal range roll over into neighbouring months and years.
        """
        y = coerce_to_int(year)
        m = coerce_to_int(month)
        d = coerce_to_int(day)
        if y < 0 or y >= 10000:
            raise ExcelFunctionError(ErrorKind.NUM, f"Year {y} is out of range")
        if y < 1900:
            y += 1900
        try:
            result = date(y, 1, 1) + relativedelta(months=m - 1, days=d - 1)
        except (ValueError, OverflowError):
            raise ExcelFunctionError(ErrorKind.NUM, "Date is out of range")
        return date_to_serial(result)

    @staticmethod
    def TIME(hour: ExcelValue, minute: ExcelValue, second: ExcelValue) -> ExcelValue:
        """Fraction of a day; totals outside one day wrap around."""
        total = (
            coerce_to_int(hour) * 3600
            + coerce_to_int(minute) * 60
            + coerce_to_int(second)
        )
        return (total % SECONDS_PER_DAY) / SECONDS_PER_DAY

    @staticmethod
    def TODAY() -> ExcelValue:
        return date_to_serial(utcnow().date())

    @staticmethod
    def NOW() -> ExcelValue:
        return date_to_serial(utcnow())

    @staticmethod
    def YEAR(serial_number: ExcelValue) -> ExcelValue:
        return serial_to_parts(_serial_arg(serial_number))[0]

    @staticmethod
    def MONTH(serial_number: ExcelValue) -> ExcelValue:
        return serial_to_parts(_serial_arg(serial_number))[1]

    @staticmethod
    def DAY(serial_number: ExcelValue) -> ExcelValue:
        return serial_to_parts(_serial_arg(serial_number))[2]

    @staticmethod
    def HOUR(serial_number: ExcelValue) -> ExcelValue:
        return _seconds_of_day(serial_number) // 3600

    @staticmethod
    def MINUTE(serial_number: ExcelValue) -> ExcelValue:
        return (_seconds_of_day(serial_number) // 60) % 60

    @staticmethod
    def SECOND(serial_number: ExcelValue) -> ExcelValue:
        return _seconds_of_day(serial_number) % 60

    @staticmethod
    def WEEKDAY(serial_number: ExcelValue, return_type: ExcelValue = 1) -> ExcelValue:
        """Day of the week.

        Type 1 counts Sunday=1..Saturday=7, type 2 Monday=1..Sunday=7, type 3
        Monday=0..Sunday=6 and types 11-17 start the week on Monday..Sunday.
        """
        dow = day_of_week(_serial_arg(serial_number))
        kind = coerce_to_int(return_type)
        if kind == 3:
            return (dow - 1) % 7
        if kind not in WEEK_STARTS:
            raise ExcelFunctionError(ErrorKind.NUM, f"Bad WEEKDAY type {kind}")
        return (dow - WEEK_STARTS[kind]) % 7 + 1

    @staticmethod
    def WEEKNUM(serial_number: ExcelValue, return_type: ExcelValue = 1) -> ExcelValue:
        """Week of the year.

        Week 1 is the week containing January 1st, except for type 21 which
        numbers weeks the ISO 8601 way.
        """
        serial = int(_serial_arg(serial_number))
        kind = coerce_to_int(return_type)
        if kind == 21:
            return serial_to_datetime(serial).isocalendar()[1]
        if kind not in WEEK_STARTS:
            raise ExcelFunctionError(ErrorKind.NUM, f"Bad WEEKNUM type {kind}")
        year = serial_to_parts(serial)[0]
        jan1 = int(date_to_serial(date(year, 1, 1)))
        offset = (day_of_week(jan1) - WEEK_STARTS[kind]) % 7
        return (serial - jan1 + offset) // 7 + 1

    @staticmethod
    def EDATE(start_date: ExcelValue, months: ExcelValue) -> ExcelValue:
        """Same day `months` months away, clamped to the end of shorter months."""
        start = serial_to_datetime(int(_serial_arg(start_date))).date()
        try:
            return date_to_serial(start + relativedelta(months=coerce_to_int(months)))
        except (ValueError, OverflowError):
            raise ExcelFunctionError(ErrorKind.NUM, "Date is out of range")

    @staticmethod
    def EOMONTH(start_date: ExcelValue, months: ExcelValue) -> ExcelValue:
        """Last day of the month `months` months away."""
        start = serial_to_datetime(int(_serial_arg(start_date))).date()
        try:
            shifted = start + relativedelta(months=coerce_to_int(months), day=31)
        except (ValueError, OverflowError):
            raise ExcelFunctionError(ErrorKind.NUM, "Date is out of range")
        return date_to_serial(shifted)

    @staticmethod
    def DATEDIF(
        start_date: ExcelValue, end_date: ExcelValue, unit: ExcelValue
    ) -> ExcelValue:
        """Difference between two dates in years, months or days.

        Y and M compare calendar years and months only, ignoring the day.
        YM, MD and YD give the remainder in months, days, or days ignoring
        the year.
        """
        start = int(_serial_arg(start_date))
        end = int(_serial_arg(end_date))
        code = coerce_to_text(unit).upper()
        if start > end:
            raise ExcelFunctionError(ErrorKind.NUM, "Start date is after end date")

        y1, m1, d1 = serial_to_parts(start)
        y2, m2, d2 = serial_to_parts(end)
        months = (y2 - y1) * 12 + (m2 - m1)
        if code == "Y":
            return y2 - y1
        if code == "M":
            return months
        if code == "D":
            return end - start
        if code == "YM":
            return months % 12

        end_day = serial_to_datetime(end).date()
        if code == "MD":
            if d2 >= d1:
                return d2 - d1
            anchor = end_day.replace(day=1) - relativedelta(months=1)
            anchor += relativedelta(day=d1)
            return (end_day - anchor).days
        if code == "YD":
            start_day = serial_to_datetime(start).date()
            anchor = start_day + relativedelta(year=end_day.year)
            if anchor > end_day:
                anchor = start_day + relativedelta(year=end_day.year - 1)
            return (end_day - anchor).days
        raise ExcelFunctionError(ErrorKind.VALUE, f"Unknown DATEDIF unit '{code}'")

    @staticmethod
    def DAYS(end_date: ExcelValue, start_date: ExcelValue) -> ExcelValue:
        return int(_serial_arg(end_date)) - int(_serial_arg(start_date))

    @staticmethod
    def NETWORKDAYS(
        start_date: ExcelValue, end_date: ExcelValue, holidays: ExcelValue = None
    ) -> ExcelValue:
        """Count of weekdays between two dates, both ends included.

        Holidays falling on weekdays are not counted. The result is negative
        when the start date is after the end date.
        """
        start = int(_serial_arg(start_date))
        end = int(_serial_arg(end_date))
        excluded = _holiday_set(holidays)
        sign = 1
        if start > end:
            start, end = end, start
            sign = -1
        count = sum(1 for day in range(start, end + 1) if _is_workday(day, excluded))
        return sign * count

    @staticmethod
    def WORKDAY(
        start_date: ExcelValue, days: ExcelValue, holidays: ExcelValue = None
    ) -> ExcelValue:
        """The date `days` working days before or after the start date."""
        day = int(_serial_arg(start_date))
        remaining = coerce_to_int(days)
        excluded = _holiday_set(holidays)
        step = 1 if remaining > 0 else -1
        while remaining:
            day += step
            check_serial(day)
            if _is_workday(day, excluded):
                remaining -= step
        return day

    @staticmethod
    def DATEVALUE(date_text: ExcelValue) -> ExcelValue:
        """Serial of a date written as text. Any time part is ignored."""
        if not isinstance(date_text, str):
            raise CoercionError("DATEVALUE expects text")
        if _is_numeric_text(date_text):
            raise CoercionError(f"'{date_text}' is a number, not a date")
        parsed, _ = _parse_date_text(date_text)
        if parsed is None:
            return 0
        if parsed.year < 1900:
            raise CoercionError(f"'{date_text}' is before 1900")
        return date_to_serial(parsed)

    @staticmethod
    def TIMEVALUE(time_text: ExcelValue) -> ExcelValue:
        """Fraction of a day for a time written as text. Any date part is ignored."""
        if not isinstance(time_text, str):
            raise CoercionError("TIMEVALUE expects text")
        if _is_numeric_text(time_text):
            raise CoercionError(f"'{time_text}' is a number, not a time")
        return _parse_date_text(time_text)[1]
