#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Event Store
Хранилище чекинов, целей, спринтов, задач и привычек с единой точкой записи,
атомарным сохранением в JSON и резервным копированием

Версия: 1.0.0
"""

import json
import shutil
import gzip
import threading
from datetime import datetime, date
from pathlib import Path
from typing import Dict, List, Optional, Any, Callable, Tuple, Type
from dataclasses import dataclass
import logging

from wellbeing_engine.core.models import (
    CheckIn, Goal, Sprint, Task, Habit, DailyBrainDump, DailyGoalProgress, ValidationError
)

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class DatabaseError(Exception):
    """Базовое исключение для ошибок хранилища"""
    pass

class DatabaseCorruptionError(DatabaseError):
    """Ошибка повреждения данных"""
    pass

class RecordNotFoundError(DatabaseError):
    """Запись не найдена"""
    pass

class RecordInUseError(DatabaseError):
    """Запись нельзя удалить, пока на нее ссылаются"""
    pass

class DuplicateDateError(DatabaseError):
    """Чекин за этот календарный день уже существует"""
    pass

# ===== HELPER CLASSES =====

@dataclass
class StoreStats:
    """Статистика хранилища"""
    revision: int = 0
    save_count: int = 0
    load_count: int = 0
    error_count: int = 0
    last_save: Optional[str] = None
    last_backup: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'revision': self.revision,
            'save_count': self.save_count,
            'load_count': self.load_count,
            'error_count': self.error_count,
            'last_save': self.last_save,
            'last_backup': self.last_backup
        }

class BackupManager:
    """Менеджер резервных копий"""

    def __init__(self, backup_dir: Path, max_backups: int = 10):
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups

    def create_backup(self, source_file: Path, compressed: bool = True) -> Optional[Path]:
        """Создать резервную копию"""
        if not source_file.exists():
            logger.warning(f"Source file {source_file} does not exist for backup")
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
        backup_name = f"backup_{timestamp}.json"

        try:
            if compressed:
                backup_path = self.backup_dir / f"{backup_name}.gz"
                with open(source_file, 'rb') as f_in:
                    with gzip.open(backup_path, 'wb') as f_out:
                        shutil.copyfileobj(f_in, f_out)
            else:
                backup_path = self.backup_dir / backup_name
                shutil.copy2(source_file, backup_path)
        except OSError as e:
            logger.error(f"Failed to create backup: {e}")
            return None

        logger.info(f"Backup created: {backup_path}")
        self._cleanup_old_backups()
        return backup_path

    def restore_backup(self, backup_path: Path, target_file: Path) -> bool:
        """Восстановить из резервной копии"""
        if not backup_path.exists():
            logger.error(f"Backup file {backup_path} does not exist")
            return False

        try:
            if backup_path.name.endswith('.gz'):
                with gzip.open(backup_path, 'rb') as f_in:
                    with open(target_file, 'wb') as f_out:
                        shutil.copyfileobj(f_in, f_out)
            else:
                shutil.copy2(backup_path, target_file)
        except OSError as e:
            logger.error(f"Failed to restore backup: {e}")
            return False

        logger.info(f"Backup restored from {backup_path} to {target_file}")
        return True

    def list_backups(self) -> List[Path]:
        """Резервные копии, новые первыми"""
        if not self.backup_dir.exists():
            return []
        return sorted(self.backup_dir.glob("backup_*.json*"), key=lambda p: p.name, reverse=True)

    def _cleanup_old_backups(self) -> None:
        """Удалить старые резервные копии"""
        for backup in self.list_backups()[self.max_backups:]:
            try:
                backup.unlink()
                logger.info(f"Removed old backup: {backup}")
            except OSError as e:
                logger.error(f"Failed to remove old backup {backup}: {e}")

# ===== EVENT STORE =====

class EventStore:
    """Хранилище записей по id с единым путем записи.

    Записи хранятся сериализованными (to_dict), поэтому чтение всегда
    возвращает независимые копии: изменить состояние можно только через
    методы save_* / add_* / delete_*.
    """

    VERSION_KEY = "__version__"
    CURRENT_VERSION = "1.0"

    COLLECTIONS: Dict[str, Type] = {
        'check_ins': CheckIn,
        'goals': Goal,
        'sprints': Sprint,
        'tasks': Task,
        'habits': Habit,
        'drafts': DailyBrainDump,
        'goal_progress': DailyGoalProgress,
    }

    def __init__(self, path: Optional[Path] = None, backup_manager: Optional[BackupManager] = None):
        self.path = Path(path) if path is not None else None
        self.backup_manager = backup_manager
        self.stats = StoreStats()
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in self.COLLECTIONS}
        self._listeners: List[Callable[[str, Any], None]] = []

        if self.path is not None:
            self._load()

    @classmethod
    def from_config(cls, store_config) -> 'EventStore':
        backup_manager = BackupManager(store_config.backup_dir, store_config.max_backups) \
            if store_config.auto_backup else None
        return cls(store_config.path, backup_manager)

    @property
    def revision(self) -> int:
        """Счетчик изменений; растет при каждой записи"""
        return self.stats.revision

    def add_listener(self, callback: Callable[[str, Any], None]) -> None:
        """Подписка на изменения (collection, record)"""
        self._listeners.append(callback)

    # ===== LOAD / SAVE =====

    def _load(self) -> None:
        if not self.path.exists():
            logger.info(f"Store file {self.path} does not exist, starting with empty store")
            self.stats.load_count += 1
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Store file is corrupted: {e}")
            self._handle_corruption()
            return

        if not isinstance(raw, dict):
            raise DatabaseCorruptionError(f"Unexpected store format in {self.path}")

        loaded = 0
        for name, model in self.COLLECTIONS.items():
            for record_id, record in raw.get(name, {}).items():
                try:
                    # Прогоняем через модель, чтобы отсеять битые записи
                    self._data[name][record_id] = model.from_dict(record).to_dict()
                    loaded += 1
                except (ValidationError, KeyError, TypeError) as e:
                    logger.warning(f"Skipping invalid {name} record {record_id}: {e}")
                    self.stats.error_count += 1

        self.stats.load_count += 1
        logger.info(f"Loaded {loaded} records from {self.path}")

    def _handle_corruption(self) -> None:
        """Обработка повреждения файла хранилища"""
        corrupted = self.path.with_suffix('.corrupted')
        shutil.copy2(self.path, corrupted)
        logger.warning(f"Corrupted store copied to {corrupted}")

        if self.backup_manager:
            for backup_path in self.backup_manager.list_backups():
                if not self.backup_manager.restore_backup(backup_path, self.path):
                    continue
                try:
                    with open(self.path, 'r', encoding='utf-8') as f:
                        json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Backup {backup_path.name} is unreadable: {e}")
                    continue
                self._load()
                logger.info(f"Successfully restored from backup: {backup_path.name}")
                return

        logger.warning("Could not restore from any backup, starting with empty store")
        self._data = {name: {} for name in self.COLLECTIONS}

    def _save(self) -> None:
        """Атомарное сохранение через временный файл"""
        if self.path is None:
            return

        payload = {self.VERSION_KEY: self.CURRENT_VERSION}
        payload.update(self._data)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix('.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)

            # Проверяем целостность записанного файла
            with open(temp_file, 'r', encoding='utf-8') as f:
                json.load(f)

            temp_file.replace(self.path)
        except (OSError, ValueError) as e:
            self.stats.error_count += 1
            if temp_file.exists():
                temp_file.unlink()
            raise DatabaseError(f"Failed to save store: {e}") from e

        self.stats.save_count += 1
        self.stats.last_save = datetime.now().isoformat()

    def _apply(self, changes: List[Tuple[str, str, Optional[Dict[str, Any]]]]) -> None:
        """Единственный путь записи в хранилище.

        changes: (collection, record_id, raw); raw=None удаляет запись.
        Если сохранение на диск не удалось, память и revision
        возвращаются к прежнему состоянию, ошибка пробрасывается дальше.
        """
        with self._lock:
            previous = [(name, record_id, self._data[name].get(record_id))
                        for name, record_id, _ in changes]
            revision = self.stats.revision

            for name, record_id, raw in changes:
                if raw is None:
                    self._data[name].pop(record_id, None)
                else:
                    self._data[name][record_id] = raw
            self.stats.revision += 1

            try:
                self._save()
            except DatabaseError:
                for name, record_id, raw in reversed(previous):
                    if raw is None:
                        self._data[name].pop(record_id, None)
                    else:
                        self._data[name][record_id] = raw
                self.stats.revision = revision
                logger.error(f"Write rolled back, store stays at revision {revision}")
                raise

    def _notify(self, collection: str, record: Any) -> None:
        for callback in self._listeners:
            callback(collection, record)

    def _commit(self, collection: str, record: Any) -> None:
        self._apply([(collection, record.id, record.to_dict())])
        logger.debug(f"Stored {collection}/{record.id} (revision {self.stats.revision})")
        self._notify(collection, record)

    def _remove(self, collection: str, record_id: str) -> None:
        if record_id not in self._data[collection]:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        self._apply([(collection, record_id, None)])
        self._notify(collection, None)

    def _get(self, collection: str, record_id: str):
        raw = self._data[collection].get(record_id)
        if raw is None:
            return None
        return self.COLLECTIONS[collection].from_dict(raw)

    def _require(self, collection: str, record_id: str):
        record = self._get(collection, record_id)
        if record is None:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")
        return record

    def _all(self, collection: str) -> List[Any]:
        model = self.COLLECTIONS[collection]
        return [model.from_dict(raw) for raw in self._data[collection].values()]

    def create_backup(self, compressed: bool = True) -> Optional[Path]:
        if not self.backup_manager or self.path is None:
            return None
        backup_path = self.backup_manager.create_backup(self.path, compressed)
        if backup_path:
            self.stats.last_backup = datetime.now().isoformat()
        return backup_path

    # ===== CHECK-INS =====

    def add_check_in(self, check_in: CheckIn) -> CheckIn:
        """Добавить чекин; второй чекин за тот же день отклоняется"""
        existing = self.get_check_in_by_date(check_in.date)
        if existing is not None:
            raise DuplicateDateError(f"Check-in for {check_in.date.isoformat()} already exists")
        self._commit('check_ins', check_in)
        logger.info(f"Check-in saved for {check_in.date.isoformat()}")
        return check_in

    def update_check_in(self, check_in: CheckIn) -> CheckIn:
        stored = self._require('check_ins', check_in.id)
        if stored.date != check_in.date:
            other = self.get_check_in_by_date(check_in.date)
            if other is not None and other.id != check_in.id:
                raise DuplicateDateError(f"Check-in for {check_in.date.isoformat()} already exists")
        self._commit('check_ins', check_in)
        return check_in

    def get_check_in(self, check_in_id: str) -> Optional[CheckIn]:
        return self._get('check_ins', check_in_id)

    def get_check_in_by_date(self, day: date) -> Optional[CheckIn]:
        day_str = day.isoformat()
        for raw in self._data['check_ins'].values():
            if raw['date'] == day_str:
                return CheckIn.from_dict(raw)
        return None

    def list_check_ins(self) -> List[CheckIn]:
        """Все чекины по возрастанию даты"""
        return sorted(self._all('check_ins'), key=lambda c: (c.date, c.id))

    # ===== GOALS =====

    def save_goal(self, goal: Goal) -> Goal:
        self._commit('goals', goal)
        return goal

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._get('goals', goal_id)

    def require_goal(self, goal_id: str) -> Goal:
        return self._require('goals', goal_id)

    def list_goals(self, include_archived: bool = False) -> List[Goal]:
        goals = [g for g in self._all('goals') if include_archived or not g.is_archived]
        return sorted(goals, key=lambda g: (g.created_date, g.title))

    def delete_goal(self, goal_id: str) -> None:
        """Удаление цели разрешено, только если на нее не ссылаются спринты"""
        self._require('goals', goal_id)
        if self.list_sprints(goal_id=goal_id):
            raise RecordInUseError(f"Goal {goal_id} is referenced by sprints; archive it instead")
        self._remove('goals', goal_id)

    # ===== SPRINTS =====

    def save_sprint(self, sprint: Sprint) -> Sprint:
        if sprint.goal_id is not None:
            self._require('goals', sprint.goal_id)
        self._commit('sprints', sprint)
        return sprint

    def get_sprint(self, sprint_id: str) -> Optional[Sprint]:
        return self._get('sprints', sprint_id)

    def require_sprint(self, sprint_id: str) -> Sprint:
        return self._require('sprints', sprint_id)

    def list_sprints(self, goal_id: Optional[str] = None) -> List[Sprint]:
        sprints = [s for s in self._all('sprints') if goal_id is None or s.goal_id == goal_id]
        return sorted(sprints, key=lambda s: (s.start_date, s.week_number))

    def delete_sprint(self, sprint_id: str) -> None:
        """Удалить спринт; его задачи остаются без спринта"""
        self._require('sprints', sprint_id)
        detached = self.list_tasks(sprint_id=sprint_id)
        changes = []
        for task in detached:
            task.sprint_id = None
            changes.append(('tasks', task.id, task.to_dict()))
        changes.append(('sprints', sprint_id, None))
        self._apply(changes)
        for task in detached:
            self._notify('tasks', task)
        self._notify('sprints', None)

    # ===== TASKS =====

    def save_task(self, task: Task) -> Task:
        if task.sprint_id is not None:
            self._require('sprints', task.sprint_id)
        if task.goal_id is not None:
            self._require('goals', task.goal_id)
        self._commit('tasks', task)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._get('tasks', task_id)

    def require_task(self, task_id: str) -> Task:
        return self._require('tasks', task_id)

    def list_tasks(self, sprint_id: Optional[str] = None, goal_id: Optional[str] = None) -> List[Task]:
        tasks = self._all('tasks')
        if sprint_id is not None:
            tasks = [t for t in tasks if t.sprint_id == sprint_id]
        if goal_id is not None:
            tasks = [t for t in tasks if t.goal_id == goal_id]
        return sorted(tasks, key=lambda t: (t.created_at, t.id))

    # ===== HABITS =====

    def save_habit(self, habit: Habit) -> Habit:
        self._commit('habits', habit)
        return habit

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        return self._get('habits', habit_id)

    def require_habit(self, habit_id: str) -> Habit:
        return self._require('habits', habit_id)

    def list_habits(self, active_only: bool = True) -> List[Habit]:
        habits = [h for h in self._all('habits') if h.is_active or not active_only]
        return sorted(habits, key=lambda h: (h.created_at, h.id))

    # ===== DRAFTS =====

    def save_draft(self, draft: DailyBrainDump) -> DailyBrainDump:
        self._commit('drafts', draft)
        return draft

    def get_draft(self, day: date) -> Optional[DailyBrainDump]:
        day_str = day.isoformat()
        for raw in self._data['drafts'].values():
            if raw['date'] == day_str:
                return DailyBrainDump.from_dict(raw)
        return None

    # ===== GOAL PROGRESS LOG =====

    def save_goal_progress(self, entry: DailyGoalProgress) -> DailyGoalProgress:
        """Запись прогресса по цели; запись за тот же день заменяется"""
        self._require('goals', entry.goal_id)
        changes = [('goal_progress', existing.id, None)
                   for existing in self.list_goal_progress(entry.goal_id)
                   if existing.date == entry.date and existing.id != entry.id]
        changes.append(('goal_progress', entry.id, entry.to_dict()))
        self._apply(changes)
        self._notify('goal_progress', entry)
        return entry

    def list_goal_progress(self, goal_id: Optional[str] = None) -> List[DailyGoalProgress]:
        entries = [e for e in self._all('goal_progress') if goal_id is None or e.goal_id == goal_id]
        return sorted(entries, key=lambda e: e.date)

    # ===== MONITORING =====

    def counts(self) -> Dict[str, int]:
        return {name: len(records) for name, records in self._data.items()}

    def get_health_status(self) -> Dict[str, Any]:
        backups = self.backup_manager.list_backups() if self.backup_manager else []
        return {
            'status': 'healthy' if self.stats.error_count == 0 else 'degraded',
            'persistent': self.path is not None,
            'path': str(self.path) if self.path else None,
            'records': self.counts(),
            'backups': len(backups),
            'stats': self.stats.to_dict()
        }
