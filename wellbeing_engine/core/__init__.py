# core/__init__.py

"""
Ядро движка: модели данных, хранилище событий и граница AI-коуча
"""

from .models import (
    CheckIn,
    Goal,
    Sprint,
    Milestone,
    Task,
    Habit,
    DailyBrainDump,
    DailyGoalProgress,
    Insight,
    EngagementStats,
    ValidationError
)

from .database import (
    EventStore,
    BackupManager,
    DatabaseError,
    DuplicateDateError,
    RecordNotFoundError,
    RecordInUseError
)

__all__ = [
    'CheckIn', 'Goal', 'Sprint', 'Milestone', 'Task', 'Habit',
    'DailyBrainDump', 'DailyGoalProgress', 'Insight', 'EngagementStats', 'ValidationError',
    'EventStore', 'BackupManager', 'DatabaseError', 'DuplicateDateError',
    'RecordNotFoundError', 'RecordInUseError'
]
