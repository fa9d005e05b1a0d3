#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Engine Facade
Единая точка входа: чекины, цели, спринты, задачи, привычки, черновики, инсайты и AI-коуч

Версия: 1.0.0
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from wellbeing_engine.config import AnalyticsConfig, EngineConfig
from wellbeing_engine.core.ai_service import CoachReply, CoachService, ContextBuilder, create_coach_service
from wellbeing_engine.core.database import EventStore, RecordNotFoundError
from wellbeing_engine.core.models import (
    CheckIn, DailyBrainDump, DailyGoalProgress, EngagementStats, EngagementTier, Goal, Habit,
    Insight, Milestone, Sprint, Task, TaskSource, ValidationError, validate_enum_value
)
from wellbeing_engine.services.correlation import CorrelationEngine, CorrelationResult
from wellbeing_engine.services.insights import InsightCache, InsightGenerator
from wellbeing_engine.services.progress import (
    AIAccessStatus, GoalHistoryPoint, GoalProgress, ProgressTracker, SprintProgress
)
from wellbeing_engine.services.streaks import StreakCalculator
from wellbeing_engine.services.task_extraction import TaskExtractor
from wellbeing_engine.services.time_windows import TimeWindowAggregator
from wellbeing_engine.services.unlock_gate import UnlockResult, evaluate_draft
from wellbeing_engine.utils.datetime_utils import Clock

logger = logging.getLogger(__name__)


class WellbeingEngine:
    """Фасад движка. Все сервисы создаются один раз и передаются явно."""

    def __init__(self, store: EventStore, clock: Optional[Clock] = None,
                 coach_service: Optional[CoachService] = None,
                 analytics_config: Optional[AnalyticsConfig] = None):
        self.store = store
        self.analytics_config = analytics_config or AnalyticsConfig()
        self.clock = clock or Clock(self.analytics_config.timezone)
        self.coach_service = coach_service

        self.aggregator = TimeWindowAggregator(self.clock)
        self.streaks = StreakCalculator(self.clock)
        self.correlation = CorrelationEngine()
        self.insight_generator = InsightGenerator(
            self.clock,
            correlation_engine=self.correlation,
            streak_calculator=self.streaks,
            min_confidence=self.analytics_config.min_insight_confidence
        )
        self.insight_cache = InsightCache(self.clock)
        self.progress = ProgressTracker(self.clock, self.streaks)
        self.task_extractor = TaskExtractor()

    @classmethod
    def from_config(cls, engine_config: EngineConfig) -> 'WellbeingEngine':
        """Сборка движка из конфигурации: файловое хранилище, таймзона, AI-коуч"""
        engine_config.ensure_directories()
        store = EventStore.from_config(engine_config.store)
        return cls(
            store=store,
            clock=Clock(engine_config.analytics.timezone),
            coach_service=create_coach_service(engine_config.ai),
            analytics_config=engine_config.analytics
        )

    # ===== CHECK-INS =====

    def submit_check_in(self, mood_label: str, happy_text: str = "", improve_text: str = "",
                        **structured) -> CheckIn:
        """Чекин за сегодня; второй за день отклоняется (DuplicateDateError).
        Черновик дня замораживается, его цели переходят в чекин."""
        today = self.clock.today()
        draft = self.store.get_draft(today)
        if draft is not None and 'goal_ids' not in structured:
            structured['goal_ids'] = list(draft.goal_ids)

        check_in = CheckIn.create(
            mood_label, today,
            happy_thing=happy_text,
            improve_thing=improve_text,
            created_at=self.clock.now(),
            **structured
        )
        self.store.add_check_in(check_in)

        if draft is not None and not draft.is_finalized:
            draft.finalize()
            self.store.save_draft(draft)

        logger.info(f"Check-in submitted for {today.isoformat()} (mood={check_in.mood_label})")
        return check_in

    def get_check_ins(self, timeframe: Any = "week") -> List[CheckIn]:
        return self.aggregator.filter(self.store.list_check_ins(), timeframe)

    def get_today_check_in(self) -> Optional[CheckIn]:
        return self.store.get_check_in_by_date(self.clock.today())

    def get_window_summary(self, timeframe: Any = "week") -> Dict[str, Any]:
        return self.aggregator.window_summary(self.store.list_check_ins(), self.store.list_tasks(), timeframe)

    # ===== ENGAGEMENT =====

    def get_engagement(self) -> EngagementStats:
        return self.streaks.engagement(self.store.list_check_ins())

    def get_engagement_tier(self) -> EngagementTier:
        return self.get_engagement().tier

    # ===== INSIGHTS =====

    def get_active_insights(self) -> List[Insight]:
        """Ранжированные инсайты; пересчет при смене дня или ревизии хранилища"""
        revision = self.store.revision
        cached = self.insight_cache.get(revision)
        if cached is not None:
            return cached

        insights = self.insight_generator.generate(self.store.list_check_ins(), self.store.list_tasks())
        self.insight_cache.put(revision, insights)
        logger.info(f"Insights regenerated: {len(insights)} active (revision {revision})")
        return list(insights)

    def refresh_insights(self) -> List[Insight]:
        """Принудительный пересчет (ежедневная задача планировщика)"""
        self.insight_cache.invalidate()
        return self.get_active_insights()

    def get_correlations(self) -> List[CorrelationResult]:
        return self.correlation.all_correlations(self.store.list_check_ins())

    # ===== GOALS =====

    def create_goal(self, title: str, category: Any, description: str = "",
                    with_default_milestones: bool = True) -> Goal:
        goal = Goal.create(title, category, self.clock.today(), description=description,
                           with_default_milestones=with_default_milestones)
        self.store.save_goal(goal)
        logger.info(f"Goal created: {goal.id} ({goal.category.value})")
        return goal

    def list_goals(self, include_archived: bool = False) -> List[Goal]:
        """Цели с пересчитанным кэшем progress_percentage"""
        goals = self.store.list_goals(include_archived=include_archived)
        for goal in goals:
            goal.progress_percentage = self.progress.goal_progress(goal, self._goal_tasks(goal)).percentage
        return goals

    def archive_goal(self, goal_id: str) -> Goal:
        goal = self.store.require_goal(goal_id)
        if not goal.is_archived:
            goal.archive()
            self.store.save_goal(goal)
            logger.info(f"Goal archived: {goal_id}")
        return goal

    def delete_goal(self, goal_id: str) -> None:
        self.store.delete_goal(goal_id)
        logger.info(f"Goal deleted: {goal_id}")

    def _goal_tasks(self, goal: Goal) -> List[Task]:
        """Задачи цели: напрямую привязанные и задачи ее спринтов"""
        sprint_ids = {s.id for s in self.store.list_sprints(goal_id=goal.id)}
        return [t for t in self.store.list_tasks() if t.goal_id == goal.id or t.sprint_id in sprint_ids]

    def get_goal_progress(self, goal_id: str) -> GoalProgress:
        goal = self.store.require_goal(goal_id)
        return self.progress.goal_progress(goal, self._goal_tasks(goal))

    def get_goal_history(self, goal_id: str) -> List[GoalHistoryPoint]:
        goal = self.store.require_goal(goal_id)
        return self.progress.goal_history(goal, self._goal_tasks(goal), self.store.list_goal_progress(goal_id))

    def complete_milestone(self, parent_id: str, milestone_id: str) -> bool:
        """Завершить веху цели или спринта; False, если она уже завершена"""
        parent = self.store.get_goal(parent_id) or self.store.get_sprint(parent_id)
        if parent is None:
            raise RecordNotFoundError(f"Goal or sprint {parent_id} not found")
        milestone: Optional[Milestone] = parent.get_milestone(milestone_id)
        if milestone is None:
            raise RecordNotFoundError(f"Milestone {milestone_id} not found in {parent_id}")

        completed = self.progress.complete_milestone(milestone, self.clock.today())
        if completed:
            if isinstance(parent, Goal):
                self.store.save_goal(parent)
            else:
                self.store.save_sprint(parent)
                self._sync_sprint_completion(parent.id)
        return completed

    def log_goal_progress(self, goal_id: str, progress_rating: int, note: str = "",
                          mood_impact: Any = "neutral") -> DailyGoalProgress:
        """Оценка прогресса по цели за сегодня; повторная запись заменяет прежнюю"""
        entry = DailyGoalProgress.create(goal_id, self.clock.today(), progress_rating,
                                         note=note, mood_impact=mood_impact)
        self.store.save_goal_progress(entry)
        return entry

    def get_goal_log_streak(self, goal_id: str) -> Tuple[int, int]:
        self.store.require_goal(goal_id)
        return self.streaks.calculate(e.date for e in self.store.list_goal_progress(goal_id))

    def get_ai_access(self, goal_id: Optional[str] = None) -> AIAccessStatus:
        if goal_id is not None:
            self.store.require_goal(goal_id)
        return self.progress.ai_access(self.store.list_goal_progress(goal_id))

    # ===== SPRINTS =====

    def create_sprint(self, title: str, start_date: Optional[date] = None, week_number: int = 1,
                      goal_id: Optional[str] = None, milestone_titles: Iterable[str] = ()) -> Sprint:
        sprint = Sprint.create(title, start_date or self.clock.today(), week_number=week_number,
                               goal_id=goal_id, milestone_titles=tuple(milestone_titles))
        self.store.save_sprint(sprint)
        logger.info(f"Sprint created: {sprint.id} (goal={goal_id})")
        return sprint

    def get_sprint_progress(self, sprint_id: str) -> SprintProgress:
        sprint = self.store.require_sprint(sprint_id)
        return self.progress.sprint_progress(sprint, self.store.list_tasks(sprint_id=sprint_id))

    def _sync_sprint_completion(self, sprint_id: str) -> None:
        """Спринт завершается, когда выполнены все его задачи и вехи"""
        sprint = self.store.require_sprint(sprint_id)
        fraction = self.progress.sprint_fraction(sprint, self.store.list_tasks(sprint_id=sprint_id))
        if fraction >= 1.0 and sprint.complete(self.clock.today()):
            self.store.save_sprint(sprint)
            logger.info(f"Sprint completed: {sprint_id}")

    # ===== TASKS =====

    def create_task(self, title: str, **fields) -> Task:
        fields.setdefault('created_at', self.clock.now())
        task = Task.create(title, **fields)
        self.store.save_task(task)
        return task

    def complete_task(self, task_id: str) -> Task:
        task = self.store.require_task(task_id)
        if task.complete(self.clock.now()):
            self.store.save_task(task)
            logger.info(f"Task completed: {task_id}")
            if task.sprint_id is not None:
                self._sync_sprint_completion(task.sprint_id)
        return task

    def reopen_task(self, task_id: str) -> Task:
        task = self.store.require_task(task_id)
        if task.is_completed:
            task.reopen()
            self.store.save_task(task)
        return task

    def list_tasks(self, sprint_id: Optional[str] = None, goal_id: Optional[str] = None,
                   order: str = "priority") -> List[Task]:
        tasks = self.store.list_tasks(sprint_id=sprint_id, goal_id=goal_id)
        if order == "priority":
            return self.progress.sort_by_priority(tasks)
        if order == "due_date":
            return self.progress.sort_by_due_date(tasks)
        raise ValidationError(f"Unknown task order: {order}")

    def get_task_summary(self) -> Dict[str, Any]:
        return self.progress.task_summary(self.store.list_tasks())

    def extract_tasks(self, text: str, source: Any = TaskSource.AI_CONVERSATION,
                      goal_id: Optional[str] = None) -> List[Task]:
        """Сохранить задачи, найденные в тексте; открытые задачи с тем же названием пропускаются"""
        source = validate_enum_value(source, TaskSource, "source")
        open_titles = [t.title for t in self.store.list_tasks() if not t.is_completed]
        tasks = self.task_extractor.extract(text, source, self.clock.now(),
                                            goal_id=goal_id, skip_titles=open_titles)
        for task in tasks:
            self.store.save_task(task)
        if tasks:
            logger.info(f"Extracted {len(tasks)} tasks ({source.value})")
        return tasks

    def extract_tasks_from_brain_dump(self) -> List[Task]:
        """Задачи из черновика дня; единственная отмеченная цель становится goal_id"""
        draft = self.store.get_draft(self.clock.today())
        if draft is None or not draft.content.strip():
            return []
        goal_ids = [g for g in draft.goal_ids if self.store.get_goal(g) is not None]
        goal_id = goal_ids[0] if len(goal_ids) == 1 else None
        return self.extract_tasks(draft.content, TaskSource.EXTRACTED, goal_id=goal_id)

    # ===== HABITS =====

    def create_habit(self, title: str, **fields) -> Habit:
        fields.setdefault('created_at', self.clock.now())
        habit = Habit.create(title, **fields)
        self.store.save_habit(habit)
        return habit

    def complete_habit(self, habit_id: str, day: Optional[date] = None) -> Habit:
        habit = self.store.require_habit(habit_id)
        if habit.mark_done(day or self.clock.today()):
            self.store.save_habit(habit)
        return habit

    def get_habit_streak(self, habit_id: str) -> Tuple[int, int]:
        return self.streaks.habit_streak(self.store.require_habit(habit_id))

    # ===== BRAIN DUMP =====

    def get_brain_dump_draft(self) -> DailyBrainDump:
        today = self.clock.today()
        return self.store.get_draft(today) or DailyBrainDump.create(today, self.clock.now())

    def update_brain_dump_draft(self, text: str, goal_tags: Iterable[str] = ()) -> UnlockResult:
        """Сохранить черновик дня и оценить его для разблокировки AI-чата"""
        draft = self.get_brain_dump_draft()
        draft.update(text, goal_tags, self.clock.now())
        self.store.save_draft(draft)
        return evaluate_draft(draft)

    # ===== AI COACH =====

    async def request_coach_response(self, message: Optional[str] = None) -> CoachReply:
        """Ответ коуча по контексту последних чекинов, целей и черновика.

        Черновик и чекин уже сохранены до вызова. Ошибки и таймауты дают
        резервный ответ; отмена пробрасывается без записи в хранилище.
        """
        if self.coach_service is None:
            raise RuntimeError("Coach service is not configured")

        today = self.clock.today()
        check_ins = self.store.list_check_ins()
        goals = self.store.list_goals()
        percentages = {goal.id: self.progress.goal_progress(goal, self._goal_tasks(goal)).percentage
                       for goal in goals}
        current_streak, _ = self.streaks.calculate(c.date for c in check_ins)

        context = ContextBuilder.build(
            check_ins, goals, percentages,
            draft=self.store.get_draft(today),
            current_streak=current_streak,
            message=message,
            limit=self.analytics_config.recent_check_ins_for_coach
        )

        reply = await self.coach_service.respond(context)

        if not reply.is_fallback:
            check_in = self.store.get_check_in_by_date(today)
            if check_in is not None:
                check_in.ai_response = reply.content
                self.store.update_check_in(check_in)
        return reply

    # ===== MONITORING =====

    def get_health_status(self) -> Dict[str, Any]:
        status = self.store.get_health_status()
        status['today'] = self.clock.today_str()
        status['insight_regenerations'] = self.insight_cache.regenerations
        if self.coach_service is not None:
            status['coach'] = self.coach_service.get_stats()
        return status
