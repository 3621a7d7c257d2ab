from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple
from zoneinfo import ZoneInfo

from ..exceptions import InvalidStateError

WEEKDAY_INDEX = {"MO": 0, "TU": 1, "WE": 2, "TH": 3, "FR": 4, "SA": 5, "SU": 6}


def _unique_days(byday: str) -> list:
    days = []
    for code in byday.split(","):
        code = code.strip()
        if code in WEEKDAY_INDEX and code not in days:
            days.append(code)
    return days


def build_weekly_rrule(end_date: date, byday: str, tz_name: str = "UTC") -> str:
    """Weekly rule selecting ``byday`` up to and including ``end_date``.

    The bound is the last second of ``end_date`` in ``tz_name``, written in UTC
    as RFC 5545 requires for a zoned series.
    """
    days = _unique_days(byday or "")
    if not days:
        raise InvalidStateError("Cannot build a recurrence without days of the week")
    end_of_day = datetime.combine(end_date, time(23, 59, 59), tzinfo=ZoneInfo(tz_name))
    until = end_of_day.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"RRULE:FREQ=WEEKLY;UNTIL={until};BYDAY={','.join(days)}"


def first_occurrence(start_date: date, byday: str) -> date:
    """First date on or after ``start_date`` falling on one of ``byday``."""
    weekdays = {WEEKDAY_INDEX[code] for code in _unique_days(byday or "")}
    if not weekdays:
        return start_date
    day = start_date
    while day.weekday() not in weekdays:
        day += timedelta(days=1)
    return day


def occurrence_window(day: date, start: time, end: time, tz_name: str) -> Tuple[datetime, datetime]:
    tz = ZoneInfo(tz_name)
    return (
        datetime.combine(day, start).replace(tzinfo=tz),
        datetime.combine(day, end).replace(tzinfo=tz),
    )


def move_to_date(template_start: datetime, template_end: datetime, new_day: date) -> Tuple[datetime, datetime]:
    """Keep the template's time of day and UTC offset, change only the date."""
    start = datetime.combine(new_day, template_start.timetz())
    return start, start + (template_end - template_start)
