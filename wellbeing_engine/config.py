#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Configuration
Централизованная конфигурация движка аналитики с валидацией

Версия: 1.0.0
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

import pytz

class Environment(Enum):
    """Среды выполнения"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

DEFAULT_FALLBACK_MESSAGE = (
    "I'm having trouble processing that right now. Your reflection is saved, "
    "and I'll be here when you're ready to try again. 💙"
)

@dataclass
class StoreConfig:
    """Конфигурация хранилища событий"""
    path: Path
    backup_dir: Path
    backup_interval_hours: int = 6
    max_backups: int = 10
    auto_backup: bool = True

@dataclass
class AIConfig:
    """Конфигурация AI коуча"""
    openai_api_key: Optional[str]
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 500
    temperature: float = 0.7
    ai_chat_enabled: bool = False  # По умолчанию выключен
    request_timeout: float = 30.0
    max_retries: int = 2
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE

@dataclass
class AnalyticsConfig:
    """Конфигурация аналитики и инсайтов"""
    timezone: str = "UTC"
    insight_refresh_hour: int = 3
    insight_refresh_minute: int = 0
    min_insight_confidence: float = 0.2
    recent_check_ins_for_coach: int = 7

@dataclass
class ServerConfig:
    """Конфигурация сервера"""
    host: str = "0.0.0.0"
    port: int = 8080
    debug_mode: bool = False

class EngineConfig:
    """Главный класс конфигурации"""

    def __init__(self):
        self.environment = Environment(os.getenv('ENVIRONMENT', 'development'))
        self._load_config()
        self._validate_config()

    def _load_config(self):
        """Загрузка конфигурации из переменных окружения"""

        # Директории
        self.data_dir = Path(os.getenv('DATA_DIR', 'data'))
        self.backup_dir = Path(os.getenv('BACKUP_DIR', 'backups'))
        self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))

        # Хранилище
        self.store = StoreConfig(
            path=self.data_dir / "wellbeing_data.json",
            backup_dir=self.backup_dir,
            backup_interval_hours=int(os.getenv('BACKUP_INTERVAL_HOURS', 6)),
            max_backups=int(os.getenv('MAX_BACKUPS', 10)),
            auto_backup=os.getenv('AUTO_BACKUP', 'true').lower() == 'true'
        )

        # AI конфигурация
        self.ai = AIConfig(
            openai_api_key=os.getenv('OPENAI_API_KEY') or None,
            openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o-mini'),
            openai_max_tokens=int(os.getenv('OPENAI_MAX_TOKENS', 500)),
            temperature=float(os.getenv('OPENAI_TEMPERATURE', 0.7)),
            ai_chat_enabled=os.getenv('AI_CHAT_ENABLED', 'false').lower() == 'true',
            request_timeout=float(os.getenv('AI_TIMEOUT', 30)),
            max_retries=int(os.getenv('AI_MAX_RETRIES', 2)),
            fallback_message=os.getenv('AI_FALLBACK_MESSAGE', DEFAULT_FALLBACK_MESSAGE)
        )

        # Аналитика
        self.analytics = AnalyticsConfig(
            timezone=os.getenv('USER_TIMEZONE', 'UTC'),
            insight_refresh_hour=int(os.getenv('INSIGHT_REFRESH_HOUR', 3)),
            insight_refresh_minute=int(os.getenv('INSIGHT_REFRESH_MINUTE', 0)),
            min_insight_confidence=float(os.getenv('MIN_INSIGHT_CONFIDENCE', 0.2)),
            recent_check_ins_for_coach=int(os.getenv('COACH_RECENT_CHECK_INS', 7))
        )

        # Сервер
        self.server = ServerConfig(
            host=os.getenv('HOST', '0.0.0.0'),
            port=int(os.getenv('PORT', 8080)),
            debug_mode=os.getenv('DEBUG_MODE', 'false').lower() == 'true'
        )

        # Логирование
        self.log_level = LogLevel(os.getenv('LOG_LEVEL', 'INFO'))
        self.log_to_file = os.getenv('LOG_TO_FILE', 'false').lower() == 'true'
        self.log_format = os.getenv(
            'LOG_FORMAT',
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )

    def _validate_config(self):
        """Валидация конфигурации"""
        errors = []

        if not 1024 <= self.server.port <= 65535:
            errors.append(f"Port {self.server.port} is outside 1024-65535")

        if self.ai.request_timeout <= 0:
            errors.append("AI_TIMEOUT must be positive")

        if self.ai.max_retries < 1:
            errors.append("AI_MAX_RETRIES must be at least 1")

        if self.analytics.timezone not in pytz.all_timezones_set:
            errors.append(f"Unknown timezone: {self.analytics.timezone}")

        if not 0.0 <= self.analytics.min_insight_confidence <= 1.0:
            errors.append("MIN_INSIGHT_CONFIDENCE must be within [0, 1]")

        if self.ai.ai_chat_enabled and not self.ai.openai_api_key:
            self.ai.ai_chat_enabled = False
            logging.warning("AI_CHAT_ENABLED is set but OPENAI_API_KEY is missing - AI coach disabled")

        if errors:
            raise ValueError("Configuration errors:\n" + "\n".join(f"• {error}" for error in errors))

    def ensure_directories(self):
        """Создание необходимых директорий"""
        directories = [
            self.data_dir,
            self.backup_dir,
            self.log_dir
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def get_logging_config(self) -> Dict[str, Any]:
        """Получение конфигурации логирования"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        handler_configs = {
            'console': {
                'class': 'logging.StreamHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'stream': sys.stdout
            }
        }
        if self.log_to_file:
            handler_configs['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"wellbeing_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': handler_configs,
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
                'httpx': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                },
                'openai': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                },
                'apscheduler': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                }
            }
        }

    def is_development(self) -> bool:
        """Проверка режима разработки"""
        return self.environment == Environment.DEVELOPMENT

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфигурации в словарь"""
        return {
            'environment': self.environment.value,
            'server': {
                'host': self.server.host,
                'port': self.server.port,
                'debug_mode': self.server.debug_mode
            },
            'ai_enabled': bool(self.ai.openai_api_key) and self.ai.ai_chat_enabled,
            'ai_model': self.ai.openai_model,
            'timezone': self.analytics.timezone,
            'store_path': str(self.store.path),
            'log_level': self.log_level.value
        }

# Экспорт для использования в других модулях
__all__ = [
    'EngineConfig',
    'Environment',
    'LogLevel',
    'StoreConfig',
    'AIConfig',
    'AnalyticsConfig',
    'ServerConfig',
    'DEFAULT_FALLBACK_MESSAGE'
]
