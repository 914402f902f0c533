"""
Academic-calendar arithmetic: week/month indexes inside a semester, week ranges,
and HH:MM helpers for timetable slots.
"""

import math
import re
from datetime import date, datetime, time, timedelta, timezone

from dateutil import parser

MAX_WEEKS = 52
DEFAULT_LESSON_MINUTES = 45

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def to_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Accept full ISO timestamps as stored by Postgres
    return parser.isoparse(value).date()


def week_index(semester_start: date | str, on_date: date | str) -> int:
    """1-based week of `on_date` counted from the semester's first day."""
    days = (to_date(on_date) - to_date(semester_start)).days
    return max(1, math.ceil(days / 7))


def month_index(semester_start: date | str, on_date: date | str) -> int:
    """1-based calendar month of `on_date` counted from the semester's start month."""
    start = to_date(semester_start)
    current = to_date(on_date)
    months = (current.year - start.year) * 12 + (current.month - start.month) + 1
    return max(1, months)


def week_date_range(semester_start: date | str, week_number: int) -> tuple[date, date]:
    """Monday..Sunday of the given week; week 1 is the week containing the semester start."""
    start = to_date(semester_start)
    first_monday = start - timedelta(days=start.weekday())
    week_start = first_monday + timedelta(weeks=week_number - 1)
    return week_start, week_start + timedelta(days=6)


def weeks_in_semester(semester_start: date | str, semester_end: date | str) -> list[int]:
    current = to_date(semester_start)
    end = to_date(semester_end)
    weeks = []
    week_number = 1
    while current <= end and week_number <= MAX_WEEKS:
        weeks.append(week_number)
        current += timedelta(days=7)
        week_number += 1
    return weeks


def week_options(semester_start: date | str, semester_end: date | str, today: date | None = None) -> list[dict]:
    today = today or date.today()
    start = to_date(semester_start)
    options = []
    for number in weeks_in_semester(start, semester_end):
        week_start, week_end = week_date_range(start, number)
        options.append({
            "week_number": number,
            "start": week_start.isoformat(),
            "end": week_end.isoformat(),
            "label": f"Week {number} ({week_start:%d/%m} - {week_end:%d/%m/%Y})",
            "is_current": week_start <= today <= week_end,
        })
    return options


def day_name(day_of_week: int) -> str:
    if 0 <= day_of_week < len(DAY_NAMES):
        return DAY_NAMES[day_of_week]
    return "Unknown"


def is_valid_hhmm(value: str) -> bool:
    return bool(HHMM_RE.match(value or ""))


def parse_hhmm(value: str) -> time:
    match = HHMM_RE.match(value or "")
    if not match:
        raise ValueError(f"'{value}' is not in HH:MM format")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def calculate_end_time(start_time: str, duration_minutes: int = DEFAULT_LESSON_MINUTES) -> str:
    start = parse_hhmm(start_time)
    total = (start.hour * 60 + start.minute + duration_minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def add_months(value: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_total = value.month - 1 + months
    year = value.year + month_total // 12
    month = month_total % 12 + 1
    for day in (value.day, 30, 29, 28):
        try:
            return date(year, month, min(value.day, day))
        except ValueError:
            continue
    raise ValueError(f"Cannot shift {value} by {months} months")


def to_datetime(value: datetime | str) -> datetime:
    """Timezone-aware datetime; naive values are taken as UTC."""
    if isinstance(value, str):
        value = parser.isoparse(value)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def ranges_overlap(a_start, a_end, b_start, b_end) -> bool:
    return to_date(a_start) <= to_date(b_end) and to_date(b_start) <= to_date(a_end)
