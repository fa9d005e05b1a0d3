import calendar
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

import pytz

DEFAULT_TZ = pytz.UTC


def get_timezone(name: Optional[str] = None):
    """pytz-таймзона по имени, UTC по умолчанию"""
    if not name:
        return DEFAULT_TZ
    return pytz.timezone(name)


def to_local_date(value: Union[date, datetime, str], tz=DEFAULT_TZ) -> date:
    """Календарная дата в локальной таймзоне пользователя"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value) if "T" in value else date.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(tz).date()
    return value


def subtract_months(day: date, months: int) -> date:
    """Календарное вычитание месяцев; день обрезается по длине месяца"""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def week_start(day: date) -> date:
    """Понедельник недели, в которую попадает дата"""
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def format_date(day: date, fmt: str = "%Y-%m-%d") -> str:
    return day.strftime(fmt)


class Clock:
    """Источник текущего времени в таймзоне пользователя"""

    def __init__(self, timezone: Optional[str] = None, now_func: Optional[Callable[[], datetime]] = None):
        self.tz = get_timezone(timezone)
        self._now_func = now_func

    def now(self) -> datetime:
        if self._now_func is None:
            return datetime.now(self.tz)
        current = self._now_func()
        if current.tzinfo is None:
            return self.tz.localize(current)
        return current.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return format_date(self.today())

    def local_date(self, value: Union[date, datetime, str]) -> date:
        return to_local_date(value, self.tz)
