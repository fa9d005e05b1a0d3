"""
Прогресс целей, спринтов, вех и задач: проценты выполнения, отставание от графика,
история по дням и доступ к AI-разборам
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence
import logging

from wellbeing_engine.core.models import (
    DailyGoalProgress, Goal, GOAL_DURATION_DAYS, Milestone, PRIORITY_ORDER, Sprint,
    SPRINT_DURATION_DAYS, Task, TaskPriority
)
from wellbeing_engine.services.streaks import StreakCalculator
from wellbeing_engine.services.time_windows import safe_rate
from wellbeing_engine.utils.datetime_utils import Clock, month_start, week_start

logger = logging.getLogger(__name__)

# Отклонение от графика в пределах +-3% считается "по плану"
ON_TRACK_EPSILON = 0.03

# Веса вех и задач, когда у цели есть и то, и другое
MILESTONE_WEIGHT = 0.7
TASK_WEIGHT = 0.3

# Пороги доступа к AI-разборам прогресса
DAILY_AI_MIN_STREAK = 3
WEEKLY_AI_MIN_DAYS = 5
MONTHLY_AI_MIN_DAYS = 20


@dataclass
class ScheduleStatus:
    """Сравнение фактического прогресса с ожидаемым по прошедшему времени"""
    actual_fraction: float
    expected_fraction: float
    days_delta: Optional[int]  # None - по плану

    @property
    def delta(self) -> float:
        return self.actual_fraction - self.expected_fraction

    @property
    def is_on_track(self) -> bool:
        return self.days_delta is None or self.days_delta > 0

    @property
    def label(self) -> str:
        if self.days_delta is None:
            return "on_track"
        return "ahead" if self.days_delta > 0 else "behind"


@dataclass
class GoalProgress:
    """Прогресс 12-недельной цели"""
    goal_id: str
    percentage: float
    milestones_completed: int
    milestones_total: int
    tasks_completed: int
    tasks_total: int
    expected_percentage: float
    is_on_track: bool
    days_delta: Optional[int]
    days_elapsed: int
    days_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'goal_id': self.goal_id,
            'percentage': self.percentage,
            'milestones_completed': self.milestones_completed,
            'milestones_total': self.milestones_total,
            'tasks_completed': self.tasks_completed,
            'tasks_total': self.tasks_total,
            'expected_percentage': self.expected_percentage,
            'is_on_track': self.is_on_track,
            'days_delta': self.days_delta,
            'days_elapsed': self.days_elapsed,
            'days_remaining': self.days_remaining
        }


@dataclass
class SprintProgress:
    """Прогресс 4-недельного спринта"""
    sprint_id: str
    percentage: float
    tasks_completed: int
    tasks_total: int
    milestones_completed: int
    milestones_total: int
    days_remaining: int
    is_active: bool
    is_overdue: bool
    is_on_track: bool
    days_delta: Optional[int]
    is_completed: bool = False
    completed_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sprint_id': self.sprint_id,
            'percentage': self.percentage,
            'tasks_completed': self.tasks_completed,
            'tasks_total': self.tasks_total,
            'milestones_completed': self.milestones_completed,
            'milestones_total': self.milestones_total,
            'days_remaining': self.days_remaining,
            'is_active': self.is_active,
            'is_overdue': self.is_overdue,
            'is_on_track': self.is_on_track,
            'days_delta': self.days_delta,
            'is_completed': self.is_completed,
            'completed_date': self.completed_date.isoformat() if self.completed_date else None
        }


@dataclass
class GoalHistoryPoint:
    day: date
    percentage: float
    progress_rating: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.day.isoformat(),
            'percentage': self.percentage,
            'progress_rating': self.progress_rating
        }


@dataclass
class AIAccessStatus:
    """Доступ к ежедневному, недельному и месячному AI-разбору"""
    daily: bool = False
    weekly: bool = False
    monthly: bool = False
    log_streak: int = 0
    days_logged_this_week: int = 0
    days_logged_this_month: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'daily': self.daily,
            'weekly': self.weekly,
            'monthly': self.monthly,
            'log_streak': self.log_streak,
            'days_logged_this_week': self.days_logged_this_week,
            'days_logged_this_month': self.days_logged_this_month
        }


def _percent(fraction: float) -> float:
    return round(max(0.0, min(1.0, fraction)) * 100, 1)


class ProgressTracker:
    """Расчет прогресса; не хранит состояние"""

    def __init__(self, clock: Clock, streak_calculator: Optional[StreakCalculator] = None):
        self.clock = clock
        self.streak_calculator = streak_calculator or StreakCalculator(clock)

    # ===== FRACTIONS =====

    @staticmethod
    def milestone_fraction(milestones: Sequence[Milestone], as_of: Optional[date] = None) -> float:
        """Доля выполненных вех с учетом их весов"""
        total = sum(m.progress_weight for m in milestones)
        done = sum(
            m.progress_weight for m in milestones
            if m.is_completed and (as_of is None or m.completed_date <= as_of)
        )
        return min(1.0, safe_rate(done, total))

    def task_fraction(self, tasks: Sequence[Task], as_of: Optional[date] = None) -> float:
        if as_of is not None:
            tasks = [t for t in tasks if self.clock.local_date(t.created_at) <= as_of]
        done = [
            t for t in tasks
            if t.is_completed and (as_of is None or self.clock.local_date(t.completed_at) <= as_of)
        ]
        return safe_rate(len(done), len(tasks))

    def work_fraction(self, milestones: Sequence[Milestone], tasks: Sequence[Task],
                      as_of: Optional[date] = None) -> float:
        """Выполненная работа: вехи и задачи, без учета прошедшего времени"""
        if milestones and tasks:
            return (MILESTONE_WEIGHT * self.milestone_fraction(milestones, as_of)
                    + TASK_WEIGHT * self.task_fraction(tasks, as_of))
        if milestones:
            return self.milestone_fraction(milestones, as_of)
        if tasks:
            return self.task_fraction(tasks, as_of)
        return 0.0

    def schedule(self, actual_fraction: float, start: date, window_days: int,
                 today: Optional[date] = None) -> ScheduleStatus:
        """Опережение (+) или отставание (-) в днях; None в пределах ON_TRACK_EPSILON"""
        today = today or self.clock.today()
        elapsed = min(max((today - start).days, 0), window_days)
        expected = elapsed / window_days
        delta = actual_fraction - expected
        days_delta = None if abs(delta) <= ON_TRACK_EPSILON else round(delta * window_days)
        if days_delta == 0:
            days_delta = None
        return ScheduleStatus(actual_fraction=actual_fraction, expected_fraction=expected, days_delta=days_delta)

    # ===== GOALS & SPRINTS =====

    def goal_progress(self, goal: Goal, tasks: Sequence[Task] = ()) -> GoalProgress:
        today = self.clock.today()
        fraction = self.work_fraction(goal.milestones, tasks)
        status = self.schedule(fraction, goal.created_date, GOAL_DURATION_DAYS, today)
        return GoalProgress(
            goal_id=goal.id,
            percentage=_percent(fraction),
            milestones_completed=len([m for m in goal.milestones if m.is_completed]),
            milestones_total=len(goal.milestones),
            tasks_completed=len([t for t in tasks if t.is_completed]),
            tasks_total=len(tasks),
            expected_percentage=_percent(status.expected_fraction),
            is_on_track=status.is_on_track,
            days_delta=status.days_delta,
            days_elapsed=max((today - goal.created_date).days, 0),
            days_remaining=(goal.target_date - today).days
        )

    def sprint_progress(self, sprint: Sprint, tasks: Sequence[Task]) -> SprintProgress:
        today = self.clock.today()
        fraction = self.sprint_fraction(sprint, tasks)
        status = self.schedule(fraction, sprint.start_date, SPRINT_DURATION_DAYS, today)
        return SprintProgress(
            sprint_id=sprint.id,
            percentage=_percent(fraction),
            tasks_completed=len([t for t in tasks if t.is_completed]),
            tasks_total=len(tasks),
            milestones_completed=len([m for m in sprint.milestones if m.is_completed]),
            milestones_total=len(sprint.milestones),
            days_remaining=(sprint.end_date - today).days,
            is_active=sprint.start_date <= today <= sprint.end_date,
            is_overdue=today > sprint.end_date and not sprint.is_completed and fraction < 1.0,
            is_on_track=status.is_on_track,
            days_delta=status.days_delta,
            is_completed=sprint.is_completed,
            completed_date=sprint.completed_date
        )

    @staticmethod
    def sprint_fraction(sprint: Sprint, tasks: Sequence[Task]) -> float:
        """Доля выполненных задач и вех спринта вместе"""
        total = len(tasks) + len(sprint.milestones)
        done = len([t for t in tasks if t.is_completed]) + len([m for m in sprint.milestones if m.is_completed])
        return safe_rate(done, total)

    def complete_milestone(self, milestone: Milestone, when: Optional[date] = None) -> bool:
        """Необратимое завершение вехи"""
        completed = milestone.complete(when or self.clock.today())
        if completed:
            logger.info(f"Milestone {milestone.id} completed on {milestone.completed_date.isoformat()}")
        return completed

    def goal_history(self, goal: Goal, tasks: Sequence[Task] = (),
                     entries: Sequence[DailyGoalProgress] = ()) -> List[GoalHistoryPoint]:
        """Накопленный прогресс цели по дням от создания до сегодня"""
        today = self.clock.today()
        last_day = min(today, goal.target_date)
        ratings = {entry.date: entry.progress_rating for entry in entries}
        history = []
        day = goal.created_date
        while day <= last_day:
            history.append(GoalHistoryPoint(
                day=day,
                percentage=_percent(self.work_fraction(goal.milestones, tasks, as_of=day)),
                progress_rating=ratings.get(day)
            ))
            day += timedelta(days=1)
        return history

    # ===== AI ACCESS =====

    def ai_access(self, entries: Sequence[DailyGoalProgress]) -> AIAccessStatus:
        today = self.clock.today()
        days = {entry.date for entry in entries}
        log_streak, _ = self.streak_calculator.calculate(days, today)
        this_week = len([d for d in days if week_start(today) <= d <= today])
        this_month = len([d for d in days if month_start(today) <= d <= today])
        return AIAccessStatus(
            daily=log_streak >= DAILY_AI_MIN_STREAK,
            weekly=this_week >= WEEKLY_AI_MIN_DAYS,
            monthly=this_month >= MONTHLY_AI_MIN_DAYS,
            log_streak=log_streak,
            days_logged_this_week=this_week,
            days_logged_this_month=this_month
        )

    # ===== TASKS =====

    @staticmethod
    def sort_by_priority(tasks: Sequence[Task]) -> List[Task]:
        return sorted(tasks, key=lambda t: (PRIORITY_ORDER[t.priority], t.created_at))

    @staticmethod
    def sort_by_due_date(tasks: Sequence[Task]) -> List[Task]:
        """По сроку; задачи без срока в конце"""
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or date.max, PRIORITY_ORDER[t.priority]))

    def task_summary(self, tasks: Sequence[Task]) -> Dict[str, Any]:
        today = self.clock.today()
        by_priority = {}
        for priority in TaskPriority:
            group = [t for t in tasks if t.priority == priority]
            by_priority[priority.value] = {
                'total': len(group),
                'completed': len([t for t in group if t.is_completed])
            }
        return {
            'total': len(tasks),
            'completed': len([t for t in tasks if t.is_completed]),
            'overdue': len([t for t in tasks if not t.is_completed and t.due_date and t.due_date < today]),
            'completion_rate': round(safe_rate(len([t for t in tasks if t.is_completed]), len(tasks)) * 100, 1),
            'by_priority': by_priority
        }
