from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date
from enum import Enum

# Базовые перечисления
class TimeframeParam(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

class TaskOrder(str, Enum):
    PRIORITY = "priority"
    DUE_DATE = "due_date"

# Чекины и черновик
class CheckInRequest(BaseModel):
    mood_label: str = Field(..., min_length=1, max_length=50)
    happy_text: str = Field("", max_length=2000)
    improve_text: str = Field("", max_length=2000)
    energy_level: Optional[int] = Field(None, ge=0, le=2)
    sleep_level: Optional[int] = Field(None, ge=0, le=2)
    social_level: Optional[int] = Field(None, ge=0, le=2)
    activities: List[str] = Field(default_factory=list)
    goal_ids: Optional[List[str]] = None

    @field_validator('mood_label')
    @classmethod
    def validate_mood_label(cls, v):
        if not v.strip():
            raise ValueError('mood_label must not be blank')
        return v.strip()

class BrainDumpRequest(BaseModel):
    text: str = Field("", max_length=10000)
    goal_ids: List[str] = Field(default_factory=list)

class TaskExtractionRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10000)
    source: str = "ai_conversation"
    goal_id: Optional[str] = None

class CoachRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=2000)
    extract_tasks: bool = False

# Цели и спринты
class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=2, max_length=50)
    description: str = Field("", max_length=1000)
    with_default_milestones: bool = True

class GoalProgressLog(BaseModel):
    progress_rating: int = Field(..., ge=1, le=5)
    note: str = Field("", max_length=1000)
    mood_impact: str = "neutral"

class SprintCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_date: Optional[date] = None
    week_number: int = Field(1, ge=1, le=12)
    goal_id: Optional[str] = None
    milestone_titles: List[str] = Field(default_factory=list)

# Задачи и привычки
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    priority: str = "medium"
    category: str = "personal"
    due_date: Optional[date] = None
    source: str = "manual"
    sprint_id: Optional[str] = None
    goal_id: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('title must not be blank')
        return v.strip()

class HabitCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    frequency: str = "daily"
    time_of_day: str = "anytime"

class HabitCompletion(BaseModel):
    day: Optional[date] = None
