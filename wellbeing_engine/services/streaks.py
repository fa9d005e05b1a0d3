"""
Расчет серий (streaks) по календарным дням и уровня вовлеченности
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from wellbeing_engine.core.models import (
    CheckIn, EngagementStats, EngagementTier, Habit, HabitFrequency
)
from wellbeing_engine.utils.datetime_utils import Clock

logger = logging.getLogger(__name__)

# Максимальный разрыв в днях между выполнениями, при котором серия продолжается
HABIT_MAX_GAP_DAYS: Dict[HabitFrequency, int] = {
    HabitFrequency.DAILY: 1,
    HabitFrequency.WEEKDAYS: 1,
    HabitFrequency.WEEKLY: 7,
    HabitFrequency.MONTHLY: 31,
}

# Пятница -> понедельник для будних привычек
WEEKDAYS_WEEKEND_GAP = 3

# (уровень, минимум дней с первого чекина, минимум чекинов), от старшего к младшему
ENGAGEMENT_TIERS: Tuple[Tuple[EngagementTier, int, int], ...] = (
    (EngagementTier.COMMITTED, 91, 50),
    (EngagementTier.ENGAGED, 31, 20),
    (EngagementTier.EXPLORING, 8, 5),
)


def _runs(days: Sequence[date], allowed_gap) -> List[Tuple[date, int]]:
    """Серии подряд идущих дат: список (последний день, длина)"""
    runs: List[Tuple[date, int]] = []
    for day in days:
        if runs and allowed_gap(runs[-1][0], day):
            runs[-1] = (day, runs[-1][1] + 1)
        else:
            runs.append((day, 1))
    return runs


def _consecutive(previous: date, current: date) -> bool:
    return (current - previous).days == 1


class StreakCalculator:
    """Текущая и максимальная серии по датам чекинов"""

    def __init__(self, clock: Clock):
        self.clock = clock

    def unique_days(self, dates: Iterable[date]) -> List[date]:
        return sorted({self.clock.local_date(d) for d in dates})

    def calculate(self, dates: Iterable[date], today: Optional[date] = None) -> Tuple[int, int]:
        """(current, longest); текущая серия живет, пока последний день - сегодня или вчера"""
        days = self.unique_days(dates)
        if not days:
            return 0, 0

        today = today or self.clock.today()
        runs = _runs(days, _consecutive)
        longest = max(length for _, length in runs)

        last_day, last_length = runs[-1]
        current = last_length if last_day in (today, today - timedelta(days=1)) else 0
        return current, longest

    def engagement(self, check_ins: Sequence[CheckIn], today: Optional[date] = None) -> EngagementStats:
        today = today or self.clock.today()
        days = self.unique_days(c.date for c in check_ins)
        current, longest = self.calculate(days, today)
        if not days:
            return EngagementStats()

        days_since_first = (today - days[0]).days
        weeks = max((days_since_first + 1) / 7, 1.0)
        return EngagementStats(
            current_streak=current,
            longest_streak=longest,
            total_check_ins=len(days),
            average_per_week=len(days) / weeks,
            tier=self.engagement_tier(days_since_first, len(days)),
            last_check_in=days[-1]
        )

    @staticmethod
    def engagement_tier(days_since_first: int, total_check_ins: int) -> EngagementTier:
        for tier, min_days, min_check_ins in ENGAGEMENT_TIERS:
            if days_since_first >= min_days and total_check_ins >= min_check_ins:
                return tier
        return EngagementTier.NEWCOMER

    # ===== HABITS =====

    def habit_streak(self, habit: Habit, today: Optional[date] = None) -> Tuple[int, int]:
        """Серии привычки с допустимым разрывом по ее периодичности"""
        days = self.unique_days(habit.completion_dates)
        if not days:
            return 0, 0

        today = today or self.clock.today()
        max_gap = HABIT_MAX_GAP_DAYS[habit.frequency]

        def allowed(previous: date, current: date) -> bool:
            gap = (current - previous).days
            if habit.frequency == HabitFrequency.WEEKDAYS and previous.weekday() == 4:
                return gap <= WEEKDAYS_WEEKEND_GAP
            return gap <= max_gap

        runs = _runs(days, allowed)
        longest = max(length for _, length in runs)
        last_day, last_length = runs[-1]
        current = last_length if allowed(last_day, today) or last_day == today else 0
        return current, longest
