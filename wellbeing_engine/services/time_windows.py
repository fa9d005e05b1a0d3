"""
Агрегатор временных окон: выборки за неделю/месяц/квартал/год и сводки по ним
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from wellbeing_engine.core.models import (
    CheckIn, MoodLevel, Task, Timeframe, TIMEFRAME_MONTHS, validate_enum_value
)
from wellbeing_engine.utils.datetime_utils import Clock, month_start, subtract_months, week_start

logger = logging.getLogger(__name__)

WEEK_DAYS = 7
GOOD_MOOD_SCORE = 4
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def safe_rate(numerator: float, denominator: float) -> float:
    """Доля без деления на ноль"""
    if not denominator:
        return 0.0
    return numerator / denominator


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def parse_timeframe(value: Any) -> Timeframe:
    if isinstance(value, str):
        value = value.strip().lower()
    return validate_enum_value(value, Timeframe, "timeframe")


@dataclass
class PeriodBucket:
    """Группа записей за неделю или месяц"""
    period_start: date
    count: int = 0
    total: float = 0.0

    @property
    def average(self) -> float:
        return safe_rate(self.total, self.count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period_start': self.period_start.isoformat(),
            'count': self.count,
            'average': round(self.average, 3)
        }


@dataclass
class MoodSummary:
    """Сводка настроения за окно"""
    count: int = 0
    average: float = 0.0
    good_day_rate: float = 0.0
    distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'average': round(self.average, 3),
            'good_day_rate': round(self.good_day_rate, 2),
            'distribution': dict(self.distribution)
        }


class TimeWindowAggregator:
    """Выборки и свертки по календарным окнам, привязанным к "сейчас" """

    def __init__(self, clock: Clock):
        self.clock = clock

    def record_date(self, record: Any) -> Optional[date]:
        """Календарная дата записи в таймзоне пользователя"""
        for attr in ('date', 'completed_at', 'created_at'):
            value = getattr(record, attr, None)
            if isinstance(value, (date, datetime)):
                return self.clock.local_date(value)
        return None

    def window_bounds(self, timeframe: Any, anchor: Optional[date] = None) -> Tuple[date, date]:
        """Границы окна [начало, конец] включительно"""
        timeframe = parse_timeframe(timeframe)
        end = anchor or self.clock.today()
        if timeframe == Timeframe.WEEK:
            return end - timedelta(days=WEEK_DAYS - 1), end
        return subtract_months(end, TIMEFRAME_MONTHS[timeframe]), end

    def filter(self, records: Iterable[Any], timeframe: Any, anchor: Optional[date] = None,
               date_key: Optional[Callable[[Any], Optional[date]]] = None) -> List[Any]:
        """Записи, попадающие в окно, по возрастанию даты"""
        start, end = self.window_bounds(timeframe, anchor)
        key = date_key or self.record_date
        selected = []
        for record in records:
            day = key(record)
            if day is not None and start <= day <= end:
                selected.append((day, str(getattr(record, 'id', '')), record))
        selected.sort(key=lambda item: (item[0], item[1]))
        return [record for _, _, record in selected]

    def rollup(self, records: Iterable[Any], period: str = "week",
               value: Optional[Callable[[Any], float]] = None,
               date_key: Optional[Callable[[Any], Optional[date]]] = None) -> List[PeriodBucket]:
        """Свертка по неделям (с понедельника) или календарным месяцам"""
        if period not in ("week", "month"):
            raise ValueError(f"Unsupported rollup period: {period}")
        bucket_start = week_start if period == "week" else month_start
        key = date_key or self.record_date
        buckets: Dict[date, PeriodBucket] = {}
        for record in records:
            day = key(record)
            if day is None:
                continue
            start = bucket_start(day)
            bucket = buckets.setdefault(start, PeriodBucket(period_start=start))
            bucket.count += 1
            bucket.total += value(record) if value else 1.0
        return [buckets[start] for start in sorted(buckets)]

    def mood_summary(self, check_ins: Sequence[CheckIn]) -> MoodSummary:
        """Среднее настроение, доля хороших дней и распределение по уровням"""
        distribution = {level.value: 0 for level in MoodLevel}
        scores = []
        for check_in in check_ins:
            score = check_in.mood_score
            scores.append(score)
            level = check_in.mood_level or MoodLevel.OKAY
            distribution[level.value] += 1
        good_days = len([s for s in scores if s >= GOOD_MOOD_SCORE])
        return MoodSummary(
            count=len(scores),
            average=mean(scores),
            good_day_rate=safe_rate(good_days, len(scores)) * 100,
            distribution=distribution
        )

    def mood_by_weekday(self, check_ins: Sequence[CheckIn]) -> Dict[int, float]:
        """Среднее настроение по дням недели (0 - понедельник)"""
        grouped = defaultdict(list)
        for check_in in check_ins:
            grouped[check_in.date.weekday()].append(check_in.mood_score)
        return {weekday: mean(scores) for weekday, scores in sorted(grouped.items())}

    def tasks_open_during(self, tasks: Sequence[Task], start: date, end: date) -> List[Task]:
        """Задачи, открытые хотя бы день окна: созданы до его конца и не закрыты до начала"""
        selected = []
        for task in tasks:
            if self.clock.local_date(task.created_at) > end:
                continue
            if task.is_completed and self.clock.local_date(task.completed_at) < start:
                continue
            selected.append(task)
        return selected

    def task_completion_rate(self, tasks: Sequence[Task], start: date, end: date) -> float:
        """Процент задач окна, закрытых внутри окна"""
        population = self.tasks_open_during(tasks, start, end)
        completed = len([t for t in population
                         if t.is_completed and self.clock.local_date(t.completed_at) <= end])
        return safe_rate(completed, len(population)) * 100

    def window_summary(self, check_ins: Sequence[CheckIn], tasks: Sequence[Task], timeframe: Any) -> Dict[str, Any]:
        """Сводка окна для API/коуча"""
        anchor = self.clock.today()
        start, end = self.window_bounds(timeframe, anchor)
        window_check_ins = self.filter(check_ins, timeframe, anchor)
        window_tasks = self.tasks_open_during(tasks, start, end)
        logger.debug(f"Window {start}..{end}: {len(window_check_ins)} check-ins, {len(window_tasks)} tasks")
        return {
            'timeframe': parse_timeframe(timeframe).value,
            'start': start.isoformat(),
            'end': end.isoformat(),
            'mood': self.mood_summary(window_check_ins).to_dict(),
            'mood_by_weekday': {WEEKDAY_NAMES[day]: round(score, 3)
                                for day, score in self.mood_by_weekday(window_check_ins).items()},
            'task_completion_rate': round(self.task_completion_rate(window_tasks, start, end), 2),
            'tasks_in_window': len(window_tasks),
            'check_in_days': len(window_check_ins),
            'check_in_rate': round(safe_rate(len(window_check_ins), (end - start).days + 1) * 100, 2)
        }
