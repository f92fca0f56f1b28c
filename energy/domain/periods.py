"""
Calendar date helpers for limit periods and report ranges.

All dates are plain calendar dates exchanged as ISO-8601 "YYYY-MM-DD"
strings. Ranges are inclusive on both ends.
"""

import calendar
import re
from datetime import date, timedelta

from energy.domain.exceptions import InvalidInput

PERIOD_WEEK = "week"
PERIOD_MONTH = "month"
PERIOD_YEAR = "year"
PERIOD_CUSTOM = "custom"

PERIOD_TYPES = (PERIOD_WEEK, PERIOD_MONTH, PERIOD_YEAR, PERIOD_CUSTOM)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_iso_date(value) -> bool:
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_iso_date(value, field="date") -> date:
    """Parse a strict YYYY-MM-DD string, raising InvalidInput otherwise."""
    if isinstance(value, date):
        return value
    if not is_valid_iso_date(value):
        raise InvalidInput(f"{field} must be YYYY-MM-DD")
    return date.fromisoformat(value)


def _shift_months(start: date, months: int) -> tuple[date, bool]:
    """
    Move start by a number of months, keeping the day of month.

    Returns the shifted date and whether the day had to be clamped to the
    target month's length.
    """
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    day = min(start.day, last_day)
    return date(year, month, day), day != start.day


def calculate_period_end(period_type: str, start: date):
    """
    Compute the inclusive end date of a standard period starting at start.

    week ends six days after start. month and year end the day before the
    same day-of-month one month (or twelve months) later; when the target
    month is too short for that day, the period ends on its last day
    (2025-01-31 -> 2025-02-28, 2024-02-29 + year -> 2025-02-28).
    custom periods have no computed end and return None.
    """
    if period_type == PERIOD_WEEK:
        return start + timedelta(days=6)

    if period_type in (PERIOD_MONTH, PERIOD_YEAR):
        months = 1 if period_type == PERIOD_MONTH else 12
        target, clamped = _shift_months(start, months)
        if clamped:
            return target
        return target - timedelta(days=1)

    if period_type == PERIOD_CUSTOM:
        return None

    raise InvalidInput("period_type must be one of: week, month, year, custom")


def resolve_period_end(period_type, start: date, supplied_end=None, stored_end=None) -> date:
    """
    Decide the end date for a limit being created or updated.

    supplied_end is the raw client value (None when absent). stored_end is
    the persisted end of the record being updated, used for custom periods
    when the client does not resend it.
    """
    if period_type not in PERIOD_TYPES:
        raise InvalidInput("period_type must be one of: week, month, year, custom")

    if period_type == PERIOD_CUSTOM:
        raw = supplied_end if supplied_end is not None else stored_end
        if isinstance(raw, date):
            end = raw
        elif is_valid_iso_date(raw):
            end = date.fromisoformat(raw)
        else:
            raise InvalidInput("period_end is required for custom and must be YYYY-MM-DD")
        if start > end:
            raise InvalidInput("period_start cannot be after period_end")
        return end

    expected = calculate_period_end(period_type, start)
    if supplied_end is not None:
        provided = parse_iso_date(supplied_end, "period_end")
        if provided != expected:
            raise InvalidInput(
                f"period_end is auto-calculated for period_type={period_type}. "
                f"Expected {expected.isoformat()}",
                expected_period_end=expected.isoformat(),
            )
    return expected


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and b_start <= a_end


def date_in_range(day: date, start, end) -> bool:
    """True if day lies in [start, end]; a None bound is unbounded."""
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def days_inclusive(date_from: date, date_to: date) -> int:
    if date_to < date_from:
        return 0
    return (date_to - date_from).days + 1


def parse_date_range(date_from, date_to, required=True):
    """
    Validate a report/list date window given as query strings.

    With required=False both bounds may be omitted together; a lone bound is
    rejected. Returns (date_from, date_to) or None.
    """
    has_from = bool(date_from)
    has_to = bool(date_to)
    if not has_from and not has_to and not required:
        return None
    if not has_from or not has_to:
        if required:
            raise InvalidInput("date_from and date_to are required (YYYY-MM-DD)")
        raise InvalidInput("date_from and date_to must be provided together (YYYY-MM-DD)")

    start = parse_iso_date(date_from, "date_from")
    end = parse_iso_date(date_to, "date_to")
    if start > end:
        raise InvalidInput("date_from cannot be after date_to")
    return start, end
