# app/cell_normalizer.py
"""
Turns raw spreadsheet cells into canonical penalty values.

Every function here is total: a malformed cell degrades to a fallback
(`"0.00"` for amounts, the trimmed original text for dates) instead of
raising, so one bad cell never breaks an otherwise valid row.
"""
import math
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple, Optional, Tuple, Union

from dateutil import parser as date_parser


class Parsed(NamedTuple):
    value: str


class Unparsed(NamedTuple):
    original: str


NormalizedValue = Union[Parsed, Unparsed]

DATE_FORMAT = "%d/%m/%Y %H:%M:%S"
ZERO_AMOUNT = "0.00"

_TWO_PLACES = Decimal("0.01")
_CURRENCY_NOISE = re.compile(r"[£$€,\s]")

# Serial day 0 is 30/12/1899 for every serial after the phantom 29/02/1900.
# Serials below it sit one day later because the format counts 1900 as a
# leap year. This is intentional and must not be corrected: existing
# workbooks are written against it.
SERIAL_EPOCH = datetime(1899, 12, 30)
LEAP_YEAR_BUG_SERIAL = 60
MS_PER_DAY = 24 * 60 * 60 * 1000

# fields missing from free text (day, month, year, time) come from here
FALLBACK_DEFAULT = datetime(1900, 1, 1)

_NUMERIC_TEXT = re.compile(r"^\d+(\.\d+)?$")
_TEXT_DATE_FORMATS = (
    re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2}):(\d{2})$"),
    re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})$"),
    re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$"),
    re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"),
)

DateParts = Tuple[int, int, int, int, int, int]


def serial_to_components(serial: float) -> DateParts:
    """
    Spreadsheet serial day count -> (year, month, day, hour, minute, second).

    The fraction is the time of day, rounded to the millisecond and then
    truncated to whole seconds. Serial 60 is 29/02/1900, a day that never
    existed, so it is built by hand rather than through `datetime`.
    """
    total_ms = int(math.floor(serial * MS_PER_DAY + 0.5))
    days, ms = divmod(total_ms, MS_PER_DAY)
    hour, rest = divmod(ms // 1000, 3600)
    minute, second = divmod(rest, 60)

    if days == LEAP_YEAR_BUG_SERIAL:
        return 1900, 2, 29, hour, minute, second
    if days < LEAP_YEAR_BUG_SERIAL:
        days += 1

    day = SERIAL_EPOCH + timedelta(days=days)
    return day.year, day.month, day.day, hour, minute, second


def format_components(parts: DateParts) -> str:
    year, month, day, hour, minute, second = parts
    return f"{day:02d}/{month:02d}/{year} {hour:02d}:{minute:02d}:{second:02d}"


def _format_datetime(value: datetime) -> str:
    return format_components(
        (value.year, value.month, value.day, value.hour, value.minute, value.second)
    )


def _from_serial(serial: float, original: str) -> NormalizedValue:
    try:
        return Parsed(format_components(serial_to_components(serial)))
    except (OverflowError, ValueError):
        return Unparsed(original)


def _from_text_layouts(text: str) -> Optional[Parsed]:
    for pattern in _TEXT_DATE_FORMATS:
        match = pattern.match(text)
        if not match:
            continue
        numbers = [int(group) for group in match.groups()]
        day, month, year = numbers[:3]
        hour, minute, second = (numbers[3:] + [0, 0, 0])[:3]
        try:
            value = datetime(year, month, day, hour, minute, second)
        except ValueError:
            continue
        return Parsed(_format_datetime(value))
    return None


def parse_date(cell) -> Optional[NormalizedValue]:
    """
    Resolve a date/time cell. Returns None when the cell is empty, so the
    caller picks the default.
    """
    if cell is None:
        return None
    if isinstance(cell, datetime):
        return Parsed(_format_datetime(cell))
    if isinstance(cell, date):
        return Parsed(format_components((cell.year, cell.month, cell.day, 0, 0, 0)))
    if isinstance(cell, time):
        # time-only cells are the fraction of serial day 0
        seconds = cell.hour * 3600 + cell.minute * 60 + cell.second
        return _from_serial(seconds / 86400, cell.isoformat())
    if isinstance(cell, (int, float, Decimal)) and not isinstance(cell, bool):
        if not math.isfinite(cell):
            return Unparsed(str(cell))
        return _from_serial(float(cell), str(cell))

    text = str(cell).strip()
    if not text:
        return None

    if _NUMERIC_TEXT.match(text):
        return _from_serial(float(text), text)

    parsed = _from_text_layouts(text)
    if parsed:
        return parsed

    # words alone never count as a date
    if not any(ch.isdigit() for ch in text):
        return Unparsed(text)
    try:
        return Parsed(_format_datetime(date_parser.parse(text, dayfirst=True, default=FALLBACK_DEFAULT)))
    except (ValueError, OverflowError):
        return Unparsed(text)


def normalize_date(cell) -> Optional[str]:
    result = parse_date(cell)
    if result is None:
        return None
    if isinstance(result, Parsed):
        return result.value
    return result.original


def to_datetime(result: Optional[NormalizedValue]) -> Optional[datetime]:
    """Canonical date text back to a naive datetime, or None if it has none."""
    if not isinstance(result, Parsed):
        return None
    try:
        return datetime.strptime(result.value, DATE_FORMAT)
    except ValueError:
        return None


def parse_amount(cell) -> NormalizedValue:
    """
    Currency cell -> Parsed("1234.50"). Symbols, thousands separators and
    whitespace are dropped first; negatives and non-numbers are Unparsed.
    """
    if cell is None or isinstance(cell, bool):
        return Unparsed("" if cell is None else str(cell))

    raw = str(cell)
    cleaned = _CURRENCY_NOISE.sub("", raw)
    try:
        amount = Decimal(cleaned)
        if not amount.is_finite() or amount < 0:
            return Unparsed(raw.strip())
        if amount == 0:
            return Parsed(ZERO_AMOUNT)
        return Parsed(str(amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)))
    except InvalidOperation:
        return Unparsed(raw.strip())


def normalize_amount(cell) -> str:
    result = parse_amount(cell)
    if isinstance(result, Parsed):
        return result.value
    return ZERO_AMOUNT
