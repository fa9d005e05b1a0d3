#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Core Data Models
Модели данных с валидацией и типизацией: чекины, цели, спринты, задачи, привычки, инсайты

Версия: 1.0.0
"""

import uuid
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Any, Iterable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
import logging

logger = logging.getLogger(__name__)

GOAL_DURATION_DAYS = 84
SPRINT_DURATION_DAYS = 28
DEFAULT_MILESTONE_WEEKS = (3, 6, 9, 12)

# ===== ENUMS =====

class MoodLevel(Enum):
    """Уровни настроения (5-балльная шкала)"""
    AWFUL = "awful"
    BAD = "bad"
    OKAY = "okay"
    GOOD = "good"
    AMAZING = "amazing"

class FactorLevel(IntEnum):
    """Трехуровневый ординальный фактор (сон, общение, энергия)"""
    LOW = 0
    MEDIUM = 1
    HIGH = 2

class Activity(Enum):
    """Теги активностей чекина"""
    WORK = "work"
    EXERCISE = "exercise"
    FRIENDS = "friends"
    FAMILY = "family"
    FOOD = "food"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    TRAVEL = "travel"
    SLEEP = "sleep"
    LEARNING = "learning"

class GoalCategory(Enum):
    """Категории 12-недельных целей"""
    HEALTH = "health"
    CAREER = "career"
    CREATIVITY = "creativity"
    RELATIONSHIPS = "relationships"
    FINANCE = "finance"
    LEARNING = "learning"
    PERSONAL = "personal"
    BUSINESS = "business"
    HABIT = "habit"
    FITNESS = "fitness"
    SKILL = "skill"
    MINDFULNESS = "mindfulness"

class TaskPriority(Enum):
    """Приоритеты задач"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class TaskSource(Enum):
    """Источник задачи"""
    MANUAL = "manual"
    AI_CONVERSATION = "ai_conversation"
    EXTRACTED = "extracted"

class HabitFrequency(Enum):
    """Периодичность привычки"""
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

class HabitTimeOfDay(Enum):
    """Предпочтительное время выполнения привычки"""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    ANYTIME = "anytime"

class MoodImpact(Enum):
    """Влияние работы над целью на настроение"""
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"

class InsightType(Enum):
    """Типы инсайтов"""
    PATTERN = "pattern"
    CORRELATION = "correlation"
    TREND = "trend"
    SUGGESTION = "suggestion"
    MILESTONE = "milestone"
    STREAK = "streak"

class ConfidenceLevel(Enum):
    """Полосы уверенности для отображения"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class EngagementTier(Enum):
    """Уровни вовлеченности пользователя"""
    NEWCOMER = "newcomer"
    EXPLORING = "exploring"
    ENGAGED = "engaged"
    COMMITTED = "committed"

class Timeframe(Enum):
    """Временные окна агрегации"""
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

# ===== LOOKUP TABLES =====

MOOD_SCORES: Dict[MoodLevel, int] = {
    MoodLevel.AWFUL: 1,
    MoodLevel.BAD: 2,
    MoodLevel.OKAY: 3,
    MoodLevel.GOOD: 4,
    MoodLevel.AMAZING: 5,
}

# Синонимы меток из разных версий шкалы
MOOD_ALIASES: Dict[str, MoodLevel] = {
    "terrible": MoodLevel.AWFUL,
    "rough": MoodLevel.AWFUL,
    "neutral": MoodLevel.OKAY,
    "meh": MoodLevel.OKAY,
    "great": MoodLevel.AMAZING,
    "excellent": MoodLevel.AMAZING,
}

NEUTRAL_MOOD_SCORE = 3

MOOD_IMPACT_VALUES: Dict[MoodImpact, float] = {
    MoodImpact.VERY_NEGATIVE: -1.0,
    MoodImpact.NEGATIVE: -0.5,
    MoodImpact.NEUTRAL: 0.0,
    MoodImpact.POSITIVE: 0.5,
    MoodImpact.VERY_POSITIVE: 1.0,
}

PRIORITY_ORDER: Dict[TaskPriority, int] = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}

CONFIDENCE_BANDS = (
    (0.8, ConfidenceLevel.HIGH),
    (0.6, ConfidenceLevel.MEDIUM),
)

TIMEFRAME_MONTHS: Dict[Timeframe, int] = {
    Timeframe.MONTH: 1,
    Timeframe.QUARTER: 3,
    Timeframe.YEAR: 12,
}

# ===== VALIDATION HELPERS =====

class ValidationError(Exception):
    """Ошибка валидации данных"""
    pass

def validate_text(text: str, min_length: int = 1, max_length: int = 1000, field_name: str = "text") -> str:
    """Валидация текстовых полей"""
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} must be a string")

    text = text.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} must contain at least {min_length} characters")

    if len(text) > max_length:
        raise ValidationError(f"{field_name} must contain at most {max_length} characters")

    return text

def validate_enum_value(value: Any, enum_class: type, field_name: str = "value"):
    """Приведение значения к enum с понятной ошибкой"""
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ValidationError(f"{field_name} must be one of: {valid_values}")

def coerce_date(value: Any, field_name: str = "date") -> date:
    """date или ISO строка -> date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r}")

def coerce_datetime(value: Any, field_name: str = "timestamp") -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r}")

def _optional_date(value: Any, field_name: str) -> Optional[date]:
    return None if value is None else coerce_date(value, field_name)

def _optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    return None if value is None else coerce_datetime(value, field_name)

def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None

def new_id() -> str:
    return str(uuid.uuid4())

# ===== MOOD MAPPING =====

def resolve_mood(label: Any) -> Optional[MoodLevel]:
    """Метка настроения -> MoodLevel; None для неизвестных меток"""
    if isinstance(label, MoodLevel):
        return label
    if not isinstance(label, str):
        return None
    normalized = label.strip().lower()
    try:
        return MoodLevel(normalized)
    except ValueError:
        return MOOD_ALIASES.get(normalized)

def mood_score(label: Any) -> int:
    """Числовое значение 1-5; неизвестная метка считается нейтральной (3)"""
    level = resolve_mood(label)
    if level is None:
        return NEUTRAL_MOOD_SCORE
    return MOOD_SCORES[level]

def confidence_level(confidence: float) -> ConfidenceLevel:
    for threshold, level in CONFIDENCE_BANDS:
        if confidence >= threshold:
            return level
    return ConfidenceLevel.LOW

def _coerce_level(value: Any, field_name: str) -> Optional[FactorLevel]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be 0, 1 or 2")
    try:
        return FactorLevel(int(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be 0, 1 or 2")

# ===== CHECK-INS =====

FACTOR_FIELDS = ("sleep_level", "social_level", "energy_level")

@dataclass
class CheckIn:
    """Ежедневный чекин: настроение, рефлексия и факторы дня"""
    id: str
    date: date
    mood_label: str
    happy_thing: str = ""
    improve_thing: str = ""
    energy_level: Optional[FactorLevel] = None
    sleep_level: Optional[FactorLevel] = None
    social_level: Optional[FactorLevel] = None
    activities: List[Activity] = field(default_factory=list)
    goal_ids: List[str] = field(default_factory=list)
    ai_response: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Валидация после создания объекта"""
        self.date = coerce_date(self.date)
        self.created_at = coerce_datetime(self.created_at, "created_at")

        if isinstance(self.mood_label, MoodLevel):
            self.mood_label = self.mood_label.value
        self.mood_label = validate_text(self.mood_label, min_length=1, max_length=50, field_name="mood_label")

        self.happy_thing = validate_text(self.happy_thing or "", min_length=0, max_length=2000, field_name="happy_thing")
        self.improve_thing = validate_text(self.improve_thing or "", min_length=0, max_length=2000, field_name="improve_thing")

        for factor in FACTOR_FIELDS:
            setattr(self, factor, _coerce_level(getattr(self, factor), factor))

        activities = []
        for activity in self.activities:
            activity = validate_enum_value(activity, Activity, "activity")
            if activity not in activities:
                activities.append(activity)
        self.activities = activities
        self.goal_ids = list(dict.fromkeys(self.goal_ids))

    @property
    def mood_score(self) -> int:
        return mood_score(self.mood_label)

    @property
    def mood_level(self) -> Optional[MoodLevel]:
        return resolve_mood(self.mood_label)

    def factor(self, name: str) -> Optional[FactorLevel]:
        """Значение фактора по имени (sleep, social, energy)"""
        return getattr(self, f"{name}_level")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'mood_label': self.mood_label,
            'mood_score': self.mood_score,
            'happy_thing': self.happy_thing,
            'improve_thing': self.improve_thing,
            'energy_level': int(self.energy_level) if self.energy_level is not None else None,
            'sleep_level': int(self.sleep_level) if self.sleep_level is not None else None,
            'social_level': int(self.social_level) if self.social_level is not None else None,
            'activities': [a.value for a in self.activities],
            'goal_ids': list(self.goal_ids),
            'ai_response': self.ai_response,
            'created_at': self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CheckIn':
        return cls(
            id=data['id'],
            date=data['date'],
            mood_label=data['mood_label'],
            happy_thing=data.get('happy_thing', ''),
            improve_thing=data.get('improve_thing', ''),
            energy_level=data.get('energy_level'),
            sleep_level=data.get('sleep_level'),
            social_level=data.get('social_level'),
            activities=data.get('activities', []),
            goal_ids=data.get('goal_ids', []),
            ai_response=data.get('ai_response'),
            created_at=data.get('created_at') or datetime.now()
        )

    @classmethod
    def create(cls, mood_label: str, day: date, happy_thing: str = "", improve_thing: str = "",
               created_at: Optional[datetime] = None, **fields) -> 'CheckIn':
        """Создание нового чекина"""
        return cls(
            id=new_id(),
            date=day,
            mood_label=mood_label,
            happy_thing=happy_thing,
            improve_thing=improve_thing,
            created_at=created_at or datetime.now(),
            **fields
        )

# ===== GOALS & SPRINTS =====

@dataclass
class Milestone:
    """Веха цели или спринта; завершение необратимо"""
    id: str
    title: str
    target_date: Optional[date] = None
    is_completed: bool = False
    completed_date: Optional[date] = None
    progress_weight: float = 0.25
    target_week: Optional[int] = None

    def __setattr__(self, name, value):
        # completed_date фиксируется один раз
        if name in ('is_completed', 'completed_date') and self.__dict__.get('completed_date') is not None:
            raise ValidationError(f"Milestone {self.__dict__.get('id')} is already completed")
        super().__setattr__(name, value)

    def __post_init__(self):
        self.title = validate_text(self.title, max_length=200, field_name="milestone title")
        if self.target_date is not None:
            self.target_date = coerce_date(self.target_date, "target_date")
        if self.completed_date is not None and not isinstance(self.completed_date, date):
            object.__setattr__(self, 'completed_date', coerce_date(self.completed_date, "completed_date"))
        if self.is_completed != (self.completed_date is not None):
            raise ValidationError("Milestone completion flag and completed_date must be set together")
        if self.progress_weight < 0:
            raise ValidationError("progress_weight must be non-negative")

    def complete(self, when: date) -> bool:
        """Отметить веху выполненной; повторный вызов ничего не меняет"""
        if self.is_completed:
            return False
        self.is_completed = True
        self.completed_date = when
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'target_date': _iso(self.target_date),
            'is_completed': self.is_completed,
            'completed_date': _iso(self.completed_date),
            'progress_weight': self.progress_weight,
            'target_week': self.target_week
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Milestone':
        return cls(
            id=data['id'],
            title=data['title'],
            target_date=data.get('target_date'),
            is_completed=data.get('is_completed', False),
            completed_date=data.get('completed_date'),
            progress_weight=data.get('progress_weight', 0.25),
            target_week=data.get('target_week')
        )

    @classmethod
    def create(cls, title: str, target_date: Optional[date] = None, progress_weight: float = 0.25,
               target_week: Optional[int] = None) -> 'Milestone':
        return cls(id=new_id(), title=title, target_date=target_date,
                   progress_weight=progress_weight, target_week=target_week)

@dataclass
class Goal:
    """12-недельная цель"""
    id: str
    title: str
    category: GoalCategory
    created_date: date
    description: str = ""
    milestones: List[Milestone] = field(default_factory=list)
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    progress_percentage: float = 0.0  # кэш, пересчитывается при чтении

    def __post_init__(self):
        self.title = validate_text(self.title, max_length=200, field_name="goal title")
        self.description = validate_text(self.description or "", min_length=0, max_length=2000, field_name="description")
        self.category = validate_enum_value(self.category, GoalCategory, "category")
        self.created_date = coerce_date(self.created_date, "created_date")
        self.archived_at = _optional_datetime(self.archived_at, "archived_at")

    @property
    def target_date(self) -> date:
        return self.created_date + timedelta(days=GOAL_DURATION_DAYS)

    @property
    def is_active(self) -> bool:
        return not self.is_archived

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return next((m for m in self.milestones if m.id == milestone_id), None)

    def archive(self) -> None:
        """Мягкое удаление цели"""
        self.is_archived = True
        self.archived_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category.value,
            'created_date': self.created_date.isoformat(),
            'target_date': self.target_date.isoformat(),
            'description': self.description,
            'milestones': [m.to_dict() for m in self.milestones],
            'is_archived': self.is_archived,
            'archived_at': _iso(self.archived_at),
            'progress_percentage': self.progress_percentage
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Goal':
        return cls(
            id=data['id'],
            title=data['title'],
            category=data['category'],
            created_date=data['created_date'],
            description=data.get('description', ''),
            milestones=[Milestone.from_dict(m) for m in data.get('milestones', [])],
            is_archived=data.get('is_archived', False),
            archived_at=data.get('archived_at'),
            progress_percentage=data.get('progress_percentage', 0.0)
        )

    @classmethod
    def create(cls, title: str, category: Any, created_date: date, description: str = "",
               with_default_milestones: bool = True) -> 'Goal':
        """Создание цели; по умолчанию с вехами на 3, 6, 9 и 12 неделях"""
        goal = cls(
            id=new_id(),
            title=title,
            category=category,
            created_date=created_date,
            description=description
        )
        if with_default_milestones:
            weight = round(1.0 / len(DEFAULT_MILESTONE_WEEKS), 4)
            for week in DEFAULT_MILESTONE_WEEKS:
                goal.milestones.append(Milestone.create(
                    title=f"Week {week} checkpoint",
                    target_date=goal.created_date + timedelta(weeks=week),
                    progress_weight=weight,
                    target_week=week
                ))
        return goal

@dataclass
class Sprint:
    """4-недельный спринт; goal_id - слабая ссылка на цель"""
    id: str
    title: str
    week_number: int
    start_date: date
    goal_id: Optional[str] = None
    milestones: List[Milestone] = field(default_factory=list)
    is_completed: bool = False
    completed_date: Optional[date] = None

    def __post_init__(self):
        self.title = validate_text(self.title, max_length=200, field_name="sprint title")
        self.start_date = coerce_date(self.start_date, "start_date")
        self.completed_date = _optional_date(self.completed_date, "completed_date")
        if not isinstance(self.week_number, int) or not 1 <= self.week_number <= 12:
            raise ValidationError("week_number must be between 1 and 12")

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=SPRINT_DURATION_DAYS)

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return next((m for m in self.milestones if m.id == milestone_id), None)

    def complete(self, day: date) -> bool:
        """Завершение спринта фиксируется один раз"""
        if self.is_completed:
            return False
        self.is_completed = True
        self.completed_date = day
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'week_number': self.week_number,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'goal_id': self.goal_id,
            'milestones': [m.to_dict() for m in self.milestones],
            'is_completed': self.is_completed,
            'completed_date': _iso(self.completed_date)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sprint':
        return cls(
            id=data['id'],
            title=data['title'],
            week_number=data['week_number'],
            start_date=data['start_date'],
            goal_id=data.get('goal_id'),
            milestones=[Milestone.from_dict(m) for m in data.get('milestones', [])],
            is_completed=data.get('is_completed', False),
            completed_date=data.get('completed_date')
        )

    @classmethod
    def create(cls, title: str, start_date: date, week_number: int = 1, goal_id: Optional[str] = None,
               milestone_titles: Iterable[str] = ()) -> 'Sprint':
        sprint = cls(id=new_id(), title=title, week_number=week_number,
                     start_date=start_date, goal_id=goal_id)
        titles = list(milestone_titles)
        for title_ in titles:
            sprint.milestones.append(Milestone.create(title_, progress_weight=round(1.0 / len(titles), 4)))
        return sprint

# ===== TASKS =====

@dataclass
class Task:
    """Задача; принадлежит не более чем одному спринту"""
    id: str
    title: str
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str = "personal"
    due_date: Optional[date] = None
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    source: TaskSource = TaskSource.MANUAL
    sprint_id: Optional[str] = None
    goal_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.title = validate_text(self.title, max_length=200, field_name="task title")
        self.priority = validate_enum_value(self.priority, TaskPriority, "priority")
        self.source = validate_enum_value(self.source, TaskSource, "source")
        self.due_date = _optional_date(self.due_date, "due_date")
        self.completed_at = _optional_datetime(self.completed_at, "completed_at")
        self.created_at = coerce_datetime(self.created_at, "created_at")
        if self.is_completed and self.completed_at is None:
            raise ValidationError("Completed task must have completed_at")

    def complete(self, when: datetime) -> bool:
        if self.is_completed:
            return False
        self.is_completed = True
        self.completed_at = when
        return True

    def reopen(self) -> None:
        self.is_completed = False
        self.completed_at = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'priority': self.priority.value,
            'category': self.category,
            'due_date': _iso(self.due_date),
            'is_completed': self.is_completed,
            'completed_at': _iso(self.completed_at),
            'source': self.source.value,
            'sprint_id': self.sprint_id,
            'goal_id': self.goal_id,
            'created_at': self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        return cls(
            id=data['id'],
            title=data['title'],
            priority=data.get('priority', TaskPriority.MEDIUM.value),
            category=data.get('category', 'personal'),
            due_date=data.get('due_date'),
            is_completed=data.get('is_completed', False),
            completed_at=data.get('completed_at'),
            source=data.get('source', TaskSource.MANUAL.value),
            sprint_id=data.get('sprint_id'),
            goal_id=data.get('goal_id'),
            created_at=data.get('created_at') or datetime.now()
        )

    @classmethod
    def create(cls, title: str, **fields) -> 'Task':
        return cls(id=new_id(), title=title, **fields)

# ===== HABITS =====

@dataclass
class Habit:
    """Привычка с историей выполнений"""
    id: str
    title: str
    frequency: HabitFrequency = HabitFrequency.DAILY
    time_of_day: HabitTimeOfDay = HabitTimeOfDay.ANYTIME
    completion_dates: List[date] = field(default_factory=list)
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.title = validate_text(self.title, max_length=200, field_name="habit title")
        self.frequency = validate_enum_value(self.frequency, HabitFrequency, "frequency")
        self.time_of_day = validate_enum_value(self.time_of_day, HabitTimeOfDay, "time_of_day")
        self.completion_dates = sorted({coerce_date(d, "completion date") for d in self.completion_dates})
        self.created_at = coerce_datetime(self.created_at, "created_at")

    def mark_done(self, day: date) -> bool:
        """Отметить выполнение за день; повтор за тот же день игнорируется"""
        if day in self.completion_dates:
            return False
        self.completion_dates.append(day)
        self.completion_dates.sort()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'frequency': self.frequency.value,
            'time_of_day': self.time_of_day.value,
            'completion_dates': [d.isoformat() for d in self.completion_dates],
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Habit':
        return cls(
            id=data['id'],
            title=data['title'],
            frequency=data.get('frequency', HabitFrequency.DAILY.value),
            time_of_day=data.get('time_of_day', HabitTimeOfDay.ANYTIME.value),
            completion_dates=data.get('completion_dates', []),
            is_active=data.get('is_active', True),
            created_at=data.get('created_at') or datetime.now()
        )

    @classmethod
    def create(cls, title: str, **fields) -> 'Habit':
        return cls(id=new_id(), title=title, **fields)

# ===== DRAFTS & GOAL LOGS =====

@dataclass
class DailyBrainDump:
    """Черновик рефлексии за день; замораживается после отправки чекина"""
    id: str
    date: date
    content: str = ""
    goal_ids: List[str] = field(default_factory=list)
    is_finalized: bool = False
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.date = coerce_date(self.date)
        self.updated_at = coerce_datetime(self.updated_at, "updated_at")
        if not isinstance(self.content, str):
            raise ValidationError("content must be a string")
        self.goal_ids = list(dict.fromkeys(self.goal_ids))

    def update(self, content: str, goal_ids: Iterable[str], when: datetime) -> None:
        if self.is_finalized:
            raise ValidationError(f"Brain dump for {self.date.isoformat()} is already finalized")
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        self.content = content
        self.goal_ids = list(dict.fromkeys(goal_ids))
        self.updated_at = when

    def finalize(self) -> None:
        self.is_finalized = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'content': self.content,
            'goal_ids': list(self.goal_ids),
            'is_finalized': self.is_finalized,
            'updated_at': self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyBrainDump':
        return cls(
            id=data['id'],
            date=data['date'],
            content=data.get('content', ''),
            goal_ids=data.get('goal_ids', []),
            is_finalized=data.get('is_finalized', False),
            updated_at=data.get('updated_at') or datetime.now()
        )

    @classmethod
    def create(cls, day: date, when: Optional[datetime] = None) -> 'DailyBrainDump':
        return cls(id=new_id(), date=day, updated_at=when or datetime.now())

@dataclass
class DailyGoalProgress:
    """Ежедневная отметка прогресса по цели"""
    id: str
    goal_id: str
    date: date
    progress_rating: int
    note: str = ""
    mood_impact: MoodImpact = MoodImpact.NEUTRAL

    def __post_init__(self):
        self.date = coerce_date(self.date)
        self.mood_impact = validate_enum_value(self.mood_impact, MoodImpact, "mood_impact")
        self.note = validate_text(self.note or "", min_length=0, max_length=1000, field_name="note")
        if isinstance(self.progress_rating, bool) or not isinstance(self.progress_rating, int) \
                or not 1 <= self.progress_rating <= 5:
            raise ValidationError("progress_rating must be from 1 to 5")

    @property
    def mood_impact_value(self) -> float:
        return MOOD_IMPACT_VALUES[self.mood_impact]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'goal_id': self.goal_id,
            'date': self.date.isoformat(),
            'progress_rating': self.progress_rating,
            'note': self.note,
            'mood_impact': self.mood_impact.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyGoalProgress':
        return cls(
            id=data['id'],
            goal_id=data['goal_id'],
            date=data['date'],
            progress_rating=data['progress_rating'],
            note=data.get('note', ''),
            mood_impact=data.get('mood_impact', MoodImpact.NEUTRAL.value)
        )

    @classmethod
    def create(cls, goal_id: str, day: date, progress_rating: int, **fields) -> 'DailyGoalProgress':
        return cls(id=new_id(), goal_id=goal_id, date=day, progress_rating=progress_rating, **fields)

# ===== DERIVED VALUES =====

@dataclass
class InsightMetadata:
    """Сырые числа, обосновывающие инсайт"""
    frequency_data: Dict[str, float] = field(default_factory=dict)
    keywords: List[str] = field(default_factory=list)
    time_patterns: Dict[str, str] = field(default_factory=dict)
    related_check_in_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frequency_data': dict(self.frequency_data),
            'keywords': list(self.keywords),
            'time_patterns': dict(self.time_patterns),
            'related_check_in_ids': list(self.related_check_in_ids)
        }

@dataclass
class Insight:
    """Инсайт о поведении; пересоздается, не редактируется"""
    id: str
    type: InsightType
    title: str
    description: str
    confidence: float
    data_points: int
    metadata: InsightMetadata = field(default_factory=InsightMetadata)
    generated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.data_points < 0:
            raise ValidationError("data_points must be non-negative")

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return confidence_level(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'title': self.title,
            'description': self.description,
            'confidence': round(self.confidence, 4),
            'confidence_level': self.confidence_level.value,
            'data_points': self.data_points,
            'metadata': self.metadata.to_dict(),
            'generated_at': self.generated_at.isoformat()
        }

    @classmethod
    def create(cls, insight_type: InsightType, title: str, description: str, confidence: float,
               data_points: int, metadata: Optional[InsightMetadata] = None,
               generated_at: Optional[datetime] = None) -> 'Insight':
        return cls(
            id=new_id(),
            type=insight_type,
            title=title,
            description=description,
            confidence=confidence,
            data_points=data_points,
            metadata=metadata or InsightMetadata(),
            generated_at=generated_at or datetime.now()
        )

@dataclass
class EngagementStats:
    """Производные показатели вовлеченности; не хранятся"""
    current_streak: int = 0
    longest_streak: int = 0
    total_check_ins: int = 0
    average_per_week: float = 0.0
    tier: EngagementTier = EngagementTier.NEWCOMER
    last_check_in: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_streak': self.current_streak,
            'longest_streak': self.longest_streak,
            'total_check_ins': self.total_check_ins,
            'average_per_week': round(self.average_per_week, 2),
            'tier': self.tier.value,
            'last_check_in': _iso(self.last_check_in)
        }
