#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Insight Generator
Генерация ранжированных инсайтов с оценкой уверенности

Все пороги эвристик собраны в разделе THRESHOLDS. Уверенность считается
единообразно: min(1, data_points / SAMPLE_SATURATION) * нормированный эффект,
с обрезкой до [0, 1]. Факты (серии) имеют уверенность FACT_CONFIDENCE.

Версия: 1.0.0
"""

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence
import logging

from wellbeing_engine.core.models import (
    CheckIn, Insight, InsightMetadata, InsightType, Task, TaskPriority
)
from wellbeing_engine.services.correlation import CorrelationEngine, CorrelationResult
from wellbeing_engine.services.streaks import StreakCalculator
from wellbeing_engine.services.time_windows import mean, safe_rate
from wellbeing_engine.utils.datetime_utils import Clock, is_weekend, time_of_day
from wellbeing_engine.utils.text_utils import match_themes

logger = logging.getLogger(__name__)

# ===== THRESHOLDS =====

# Объем выборки, при котором множитель размера выборки достигает 1
SAMPLE_SATURATION = 30
# Уверенность фактов, не требующих статистического вывода
FACT_CONFIDENCE = 1.0

# Корреляции: разница долей хороших дней в процентных пунктах
MIN_CORRELATION_DIFFERENCE = 10.0
CORRELATION_EFFECT_SATURATION = 50.0

# Тренд настроения: два соседних календарных окна
TREND_WINDOW_DAYS = 7
TREND_MIN_CHECK_INS_PER_WINDOW = 3
TREND_MIN_DIFFERENCE = 0.3
TREND_EFFECT_SATURATION = 1.0

# Последние 7 чекинов против предыдущих 7, независимо от дат
PROGRESS_TREND_CHECK_INS = 7
PROGRESS_TREND_MIN_DIFFERENCE = 0.2

# Будни против выходных
WEEKEND_MIN_CHECK_INS = 14
WEEKEND_MIN_PER_GROUP = 3
WEEKEND_MIN_DIFFERENCE = 0.3
WEEKEND_EFFECT_SATURATION = 1.0

# Темы в свободном тексте
THEME_MIN_ENTRIES = 5
THEME_MIN_OCCURRENCES = 3
THEME_SHARE_SATURATION = 0.5

# Регулярность чекинов
CONSISTENCY_WINDOW_DAYS = 14
CONSISTENCY_MIN_CHECK_INS = 7
CONSISTENCY_EXCELLENT = 0.9
CONSISTENCY_GOOD = 0.7
CONSISTENCY_LOW = 0.5

# Время суток
TIME_OF_DAY_MIN_CHECK_INS = 14
TIME_OF_DAY_MIN_SHARE = 0.6
TASK_TIME_MIN_COMPLETED = 10
TASK_TIME_MIN_SHARE = 0.5

# Задачи по приоритетам
PRIORITY_MIN_TASKS = 10
PRIORITY_MIN_PER_LEVEL = 3
PRIORITY_GAP = 20.0
PRIORITY_STRONG_RATE = 80.0
PRIORITY_EFFECT_SATURATION = 50.0

STREAK_MILESTONES = (100, 30, 7)
CHECK_IN_MILESTONES = (365, 100, 50, 10)

# ===== LOOKUP TABLES =====

HAPPINESS_THEMES: Dict[str, List[str]] = {
    "exercise": ["workout", "exercise", "gym", "run", "walk", "yoga", "sport", "swim", "bike"],
    "social": ["friend", "family", "partner", "people", "talk", "call", "together"],
    "achievement": ["finish", "complet", "achiev", "accomplish", "done", "progress", "win"],
    "nature": ["nature", "outside", "park", "sun", "hike", "beach", "garden", "forest"],
    "creativity": ["art", "music", "writ", "draw", "paint", "creat", "design"],
    "learning": ["learn", "read", "book", "course", "stud"],
    "relaxation": ["relax", "rest", "calm", "peace", "meditat", "nap", "bath"],
    "work": ["work", "project", "meeting", "job", "client"],
    "food": ["food", "meal", "cook", "dinner", "lunch", "breakfast", "coffee"],
}

IMPROVEMENT_THEMES: Dict[str, List[str]] = {
    "sleep": ["sleep", "tired", "bed", "insomnia", "exhaust"],
    "stress": ["stress", "anxious", "anxiety", "overwhelm", "worr", "pressure"],
    "focus": ["focus", "distract", "procrastinat", "phone", "productiv"],
    "health": ["exercise", "eat", "health", "water", "diet", "workout"],
    "connection": ["lonely", "friend", "family", "connect", "call"],
    "time": ["time", "late", "rush", "schedul", "plan"],
}

FACTOR_LABELS = {"sleep": "sleep", "social": "social time", "energy": "energy"}

TIME_OF_DAY_LABELS = ("morning", "afternoon", "evening")


def score_confidence(data_points: int, effect: float) -> float:
    """min(1, n / SAMPLE_SATURATION) * эффект, обрезанное до [0, 1]"""
    sample_factor = min(1.0, max(data_points, 0) / SAMPLE_SATURATION)
    return max(0.0, min(1.0, sample_factor * max(0.0, min(1.0, effect))))


def _percent_map(counts: Dict[str, int], total: int) -> Dict[str, float]:
    return {key: round(safe_rate(value, total) * 100, 1) for key, value in counts.items()}


class InsightGenerator:
    """Превращает агрегаты и корреляции в ранжированный список инсайтов"""

    def __init__(self, clock: Clock, correlation_engine: Optional[CorrelationEngine] = None,
                 streak_calculator: Optional[StreakCalculator] = None, min_confidence: float = 0.2):
        self.clock = clock
        self.correlation_engine = correlation_engine or CorrelationEngine()
        self.streak_calculator = streak_calculator or StreakCalculator(clock)
        self.min_confidence = min_confidence

    # ===== PUBLIC API =====

    def generate(self, check_ins: Sequence[CheckIn], tasks: Sequence[Task] = ()) -> List[Insight]:
        """Все инсайты выше порога уверенности, по убыванию уверенности"""
        now = self.clock.now()
        candidates: List[Optional[Insight]] = []
        candidates.extend(self.correlation_insights(check_ins, now))
        candidates.append(self.mood_trend_insight(check_ins, now))
        candidates.append(self.progress_trend_insight(check_ins, now))
        candidates.append(self.weekday_weekend_insight(check_ins, now))
        candidates.extend(self.theme_insights(check_ins, now))
        candidates.append(self.consistency_insight(check_ins, now))
        candidates.append(self.check_in_time_insight(check_ins, now))
        candidates.append(self.task_time_insight(tasks, now))
        candidates.append(self.task_priority_insight(tasks, now))
        candidates.append(self.streak_insight(check_ins, now))
        candidates.append(self.check_in_milestone_insight(check_ins, now))

        insights = [i for i in candidates if i is not None and i.confidence >= self.min_confidence]
        logger.debug(f"Generated {len(insights)} insights from {len(check_ins)} check-ins")
        return self.rank(insights)

    @staticmethod
    def rank(insights: List[Insight]) -> List[Insight]:
        return sorted(insights, key=lambda i: (-i.confidence, -i.data_points, i.title))

    # ===== CORRELATIONS =====

    def correlation_insights(self, check_ins: Sequence[CheckIn], now: datetime) -> List[Insight]:
        insights = []
        for result in self.correlation_engine.all_correlations(check_ins):
            if abs(result.difference) < MIN_CORRELATION_DIFFERENCE:
                continue
            insights.append(self._correlation_insight(result, now))
        return insights

    def _correlation_insight(self, result: CorrelationResult, now: datetime) -> Insight:
        positive = result.difference > 0
        if result.kind == "factor":
            label = FACTOR_LABELS[result.factor]
            if positive:
                title = f"More {label} goes with better days"
            else:
                title = f"High {label} days tend to be harder"
            description = (
                f"On days with high {label} you felt good {result.favorable_rate:.0f}% of the time, "
                f"compared with {result.unfavorable_rate:.0f}% on days with low {label}."
            )
        else:
            label = result.factor
            if positive:
                title = f"{label.capitalize()} days tend to be good days"
            else:
                title = f"{label.capitalize()} days tend to be harder"
            description = (
                f"You felt good on {result.favorable_rate:.0f}% of days that included {label}, "
                f"versus {result.unfavorable_rate:.0f}% of days without it."
            )

        effect = abs(result.difference) / CORRELATION_EFFECT_SATURATION
        return Insight.create(
            insight_type=InsightType.CORRELATION,
            title=title,
            description=description,
            confidence=score_confidence(result.data_points, effect),
            data_points=result.data_points,
            metadata=InsightMetadata(frequency_data={
                'favorable_rate': round(result.favorable_rate, 1),
                'unfavorable_rate': round(result.unfavorable_rate, 1),
                'favorable_count': result.favorable_count,
                'unfavorable_count': result.unfavorable_count,
            }, keywords=[result.factor]),
            generated_at=now
        )

    # ===== TRENDS =====

    def mood_trend_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        """Последние 7 дней против предыдущих 7"""
        today = now.date()
        recent_start = today - timedelta(days=TREND_WINDOW_DAYS - 1)
        previous_start = recent_start - timedelta(days=TREND_WINDOW_DAYS)
        recent = [c for c in check_ins if recent_start <= c.date <= today]
        previous = [c for c in check_ins if previous_start <= c.date < recent_start]
        if len(recent) < TREND_MIN_CHECK_INS_PER_WINDOW or len(previous) < TREND_MIN_CHECK_INS_PER_WINDOW:
            return None

        recent_avg = mean(c.mood_score for c in recent)
        previous_avg = mean(c.mood_score for c in previous)
        difference = recent_avg - previous_avg
        if abs(difference) < TREND_MIN_DIFFERENCE:
            return None

        if difference > 0:
            title = "Your mood is trending up"
            description = f"Your average mood rose from {previous_avg:.1f} to {recent_avg:.1f} over the past week."
        else:
            title = "Your mood dipped this week"
            description = (
                f"Your average mood went from {previous_avg:.1f} to {recent_avg:.1f}. "
                f"A gentle week might help."
            )
        data_points = len(recent) + len(previous)
        return Insight.create(
            insight_type=InsightType.TREND,
            title=title,
            description=description,
            confidence=score_confidence(data_points, abs(difference) / TREND_EFFECT_SATURATION),
            data_points=data_points,
            metadata=InsightMetadata(
                frequency_data={'recent_average': round(recent_avg, 2), 'previous_average': round(previous_avg, 2)},
                related_check_in_ids=[c.id for c in recent]
            ),
            generated_at=now
        )

    def progress_trend_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        window = PROGRESS_TREND_CHECK_INS
        if len(check_ins) < window * 2:
            return None
        ordered = sorted(check_ins, key=lambda c: (c.date, c.id))
        recent = ordered[-window:]
        older = ordered[-window * 2:-window]

        recent_avg = mean(c.mood_score for c in recent)
        older_avg = mean(c.mood_score for c in older)
        difference = recent_avg - older_avg
        if abs(difference) <= PROGRESS_TREND_MIN_DIFFERENCE:
            return None

        if difference > 0:
            title = "Your last check-ins are looking brighter"
            description = f"Your last {window} check-ins average {recent_avg:.1f}, up from {older_avg:.1f}."
        else:
            title = "A tougher stretch lately"
            description = (
                f"Your last {window} check-ins average {recent_avg:.1f}, down from {older_avg:.1f}. "
                f"Rough patches are normal and temporary."
            )
        data_points = len(recent) + len(older)
        return Insight.create(
            insight_type=InsightType.TREND,
            title=title,
            description=description,
            confidence=score_confidence(data_points, abs(difference) / TREND_EFFECT_SATURATION),
            data_points=data_points,
            metadata=InsightMetadata(
                frequency_data={'recent_average': round(recent_avg, 2), 'previous_average': round(older_avg, 2)},
                related_check_in_ids=[c.id for c in recent]
            ),
            generated_at=now
        )

    def weekday_weekend_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        if len(check_ins) < WEEKEND_MIN_CHECK_INS:
            return None
        weekend = [c.mood_score for c in check_ins if is_weekend(c.date)]
        weekday = [c.mood_score for c in check_ins if not is_weekend(c.date)]
        if len(weekend) < WEEKEND_MIN_PER_GROUP or len(weekday) < WEEKEND_MIN_PER_GROUP:
            return None

        weekend_avg, weekday_avg = mean(weekend), mean(weekday)
        difference = weekend_avg - weekday_avg
        if abs(difference) < WEEKEND_MIN_DIFFERENCE:
            return None

        if difference > 0:
            title = "Weekends lift your mood"
            description = (
                f"Your weekend mood averages {weekend_avg:.1f} versus {weekday_avg:.1f} on weekdays. "
                f"Could some of that weekend energy fit into your week?"
            )
        else:
            title = "Weekdays suit you"
            description = (
                f"Your weekday mood averages {weekday_avg:.1f} versus {weekend_avg:.1f} on weekends. "
                f"Structure seems to help you."
            )
        data_points = len(weekend) + len(weekday)
        return Insight.create(
            insight_type=InsightType.PATTERN,
            title=title,
            description=description,
            confidence=score_confidence(data_points, abs(difference) / WEEKEND_EFFECT_SATURATION),
            data_points=data_points,
            metadata=InsightMetadata(frequency_data={
                'weekend_average': round(weekend_avg, 2),
                'weekday_average': round(weekday_avg, 2),
                'weekend_count': len(weekend),
                'weekday_count': len(weekday),
            }),
            generated_at=now
        )

    # ===== THEMES =====

    def theme_insights(self, check_ins: Sequence[CheckIn], now: datetime) -> List[Insight]:
        insights = []
        happy = self._theme_insight(
            [c for c in check_ins if c.happy_thing], lambda c: c.happy_thing, HAPPINESS_THEMES, now,
            InsightType.PATTERN,
            lambda theme: f"{theme.capitalize()} keeps showing up in your good moments",
            lambda theme, pct: f"{pct:.0f}% of the things that made you happy involved {theme}."
        )
        if happy:
            insights.append(happy)
        improve = self._theme_insight(
            [c for c in check_ins if c.improve_thing], lambda c: c.improve_thing, IMPROVEMENT_THEMES, now,
            InsightType.SUGGESTION,
            lambda theme: f"{theme.capitalize()} is a recurring area to work on",
            lambda theme, pct: f"{theme.capitalize()} came up in {pct:.0f}% of the things you wanted to improve."
        )
        if improve:
            insights.append(improve)
        return insights

    def _theme_insight(self, entries: Sequence[CheckIn], text, themes, now: datetime,
                       insight_type: InsightType, make_title, make_description) -> Optional[Insight]:
        if len(entries) < THEME_MIN_ENTRIES:
            return None

        counts: Counter = Counter()
        keywords: Dict[str, set] = {}
        related: Dict[str, List[str]] = {}
        for entry in entries:
            for theme, found in match_themes(text(entry), themes).items():
                counts[theme] += 1
                keywords.setdefault(theme, set()).update(found)
                related.setdefault(theme, []).append(entry.id)

        if not counts:
            return None
        theme, occurrences = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0]
        if occurrences < THEME_MIN_OCCURRENCES:
            return None

        share = occurrences / len(entries)
        return Insight.create(
            insight_type=insight_type,
            title=make_title(theme),
            description=make_description(theme, share * 100),
            confidence=score_confidence(len(entries), share / THEME_SHARE_SATURATION),
            data_points=len(entries),
            metadata=InsightMetadata(
                frequency_data=_percent_map(dict(counts), len(entries)),
                keywords=sorted(keywords[theme]),
                related_check_in_ids=related[theme]
            ),
            generated_at=now
        )

    # ===== CONSISTENCY & TIMING =====

    def consistency_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        if len(check_ins) < CONSISTENCY_MIN_CHECK_INS:
            return None
        today = now.date()
        start = today - timedelta(days=CONSISTENCY_WINDOW_DAYS - 1)
        days = {c.date for c in check_ins if start <= c.date <= today}
        rate = len(days) / CONSISTENCY_WINDOW_DAYS

        if rate >= CONSISTENCY_EXCELLENT:
            title, effect, insight_type = "Excellent check-in consistency", rate, InsightType.PATTERN
        elif rate >= CONSISTENCY_GOOD:
            title, effect, insight_type = "A steady check-in rhythm", rate, InsightType.PATTERN
        elif rate < CONSISTENCY_LOW:
            title, effect, insight_type = "Check-ins have been sparse lately", 1 - rate, InsightType.SUGGESTION
        else:
            return None

        return Insight.create(
            insight_type=insight_type,
            title=title,
            description=(
                f"You checked in on {len(days)} of the last {CONSISTENCY_WINDOW_DAYS} days "
                f"({rate * 100:.0f}%)."
            ),
            confidence=score_confidence(len(check_ins), effect),
            data_points=len(check_ins),
            metadata=InsightMetadata(frequency_data={'consistency_rate': round(rate * 100, 1)}),
            generated_at=now
        )

    def _local_hour(self, moment: datetime) -> int:
        if moment.tzinfo is not None:
            moment = moment.astimezone(self.clock.tz)
        return moment.hour

    def _time_of_day_split(self, moments: Sequence[datetime]) -> Dict[str, int]:
        counts = {label: 0 for label in TIME_OF_DAY_LABELS}
        for moment in moments:
            counts[time_of_day(self._local_hour(moment))] += 1
        return counts

    def check_in_time_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        if len(check_ins) < TIME_OF_DAY_MIN_CHECK_INS:
            return None
        counts = self._time_of_day_split([c.created_at for c in check_ins])
        period, count = max(counts.items(), key=lambda item: item[1])
        share = count / len(check_ins)
        if share < TIME_OF_DAY_MIN_SHARE:
            return None
        return Insight.create(
            insight_type=InsightType.PATTERN,
            title=f"You usually reflect in the {period}",
            description=f"{share * 100:.0f}% of your check-ins happen in the {period}.",
            confidence=score_confidence(len(check_ins), share),
            data_points=len(check_ins),
            metadata=InsightMetadata(
                frequency_data=_percent_map(counts, len(check_ins)),
                time_patterns={'preferred_time': period}
            ),
            generated_at=now
        )

    def task_time_insight(self, tasks: Sequence[Task], now: datetime) -> Optional[Insight]:
        completed = [t for t in tasks if t.is_completed and t.completed_at is not None]
        if len(completed) < TASK_TIME_MIN_COMPLETED:
            return None
        counts = self._time_of_day_split([t.completed_at for t in completed])
        period, count = max(counts.items(), key=lambda item: item[1])
        share = count / len(completed)
        if share < TASK_TIME_MIN_SHARE:
            return None
        return Insight.create(
            insight_type=InsightType.PATTERN,
            title=f"You get things done in the {period}",
            description=f"{share * 100:.0f}% of your completed tasks were finished in the {period}.",
            confidence=score_confidence(len(completed), share),
            data_points=len(completed),
            metadata=InsightMetadata(
                frequency_data=_percent_map(counts, len(completed)),
                time_patterns={'productive_time': period}
            ),
            generated_at=now
        )

    def task_priority_insight(self, tasks: Sequence[Task], now: datetime) -> Optional[Insight]:
        if len(tasks) < PRIORITY_MIN_TASKS:
            return None
        rates: Dict[str, float] = {}
        for priority in TaskPriority:
            group = [t for t in tasks if t.priority == priority]
            if len(group) >= PRIORITY_MIN_PER_LEVEL:
                rates[priority.value] = safe_rate(len([t for t in group if t.is_completed]), len(group)) * 100

        high = rates.get(TaskPriority.HIGH.value)
        low = rates.get(TaskPriority.LOW.value)
        if high is None:
            return None

        metadata = InsightMetadata(frequency_data={k: round(v, 1) for k, v in rates.items()})
        if low is not None and low - high >= PRIORITY_GAP:
            return Insight.create(
                insight_type=InsightType.SUGGESTION,
                title="High-priority tasks are slipping",
                description=(
                    f"You complete {high:.0f}% of high-priority tasks but {low:.0f}% of low-priority ones. "
                    f"Try starting the day with one important task."
                ),
                confidence=score_confidence(len(tasks), (low - high) / PRIORITY_EFFECT_SATURATION),
                data_points=len(tasks),
                metadata=metadata,
                generated_at=now
            )
        if high >= PRIORITY_STRONG_RATE:
            return Insight.create(
                insight_type=InsightType.PATTERN,
                title="You follow through on what matters",
                description=f"You complete {high:.0f}% of your high-priority tasks.",
                confidence=score_confidence(len(tasks), high / 100),
                data_points=len(tasks),
                metadata=metadata,
                generated_at=now
            )
        return None

    # ===== STREAKS =====

    def streak_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        current, longest = self.streak_calculator.calculate([c.date for c in check_ins], now.date())
        milestone = next((m for m in STREAK_MILESTONES if current >= m), None)
        if milestone is None:
            return None
        return Insight.create(
            insight_type=InsightType.STREAK,
            title=f"{milestone}-day check-in streak",
            description=f"You've checked in {current} days in a row. Your longest streak is {longest} days.",
            confidence=FACT_CONFIDENCE,
            data_points=current,
            metadata=InsightMetadata(frequency_data={'current_streak': current, 'longest_streak': longest}),
            generated_at=now
        )

    def check_in_milestone_insight(self, check_ins: Sequence[CheckIn], now: datetime) -> Optional[Insight]:
        total = len(check_ins)
        milestone = next((m for m in CHECK_IN_MILESTONES if total >= m), None)
        if milestone is None:
            return None
        return Insight.create(
            insight_type=InsightType.MILESTONE,
            title=f"{milestone} check-ins and counting",
            description=f"You've reflected on {total} days so far. That history is what makes these insights possible.",
            confidence=FACT_CONFIDENCE,
            data_points=total,
            metadata=InsightMetadata(frequency_data={'total_check_ins': total, 'milestone': milestone}),
            generated_at=now
        )


class InsightCache:
    """Кэш инсайтов на календарный день и ревизию хранилища"""

    def __init__(self, clock: Clock):
        self.clock = clock
        self._day: Optional[date] = None
        self._revision: Optional[int] = None
        self._insights: Optional[List[Insight]] = None
        self.regenerations = 0

    def get(self, revision: int) -> Optional[List[Insight]]:
        if self._insights is None:
            return None
        if self._day != self.clock.today() or self._revision != revision:
            return None
        return list(self._insights)

    def put(self, revision: int, insights: List[Insight]) -> None:
        self._day = self.clock.today()
        self._revision = revision
        self._insights = list(insights)
        self.regenerations += 1

    def invalidate(self) -> None:
        self._insights = None
