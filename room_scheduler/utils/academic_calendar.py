from datetime import date
from typing import Iterable, Optional

from .. import config


class AcademicCalendar:
    """Days on which no class can take place (holidays, recess)."""

    def __init__(self, non_class_days: Optional[Iterable[date]] = None):
        days = config.NON_CLASS_DAYS if non_class_days is None else non_class_days
        self._non_class_days = set(days)

    def is_non_class_day(self, day: date) -> bool:
        return day in self._non_class_days
