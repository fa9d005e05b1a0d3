#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - AI Coach Service
Асинхронный AI-коуч: контекст из чекинов и целей, таймауты, отмена и резервный ответ

Версия: 1.0.0
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from enum import Enum
import logging

import openai
from openai import AsyncOpenAI

from wellbeing_engine.config import AIConfig, DEFAULT_FALLBACK_MESSAGE
from wellbeing_engine.core.models import CheckIn, DailyBrainDump, Goal
from wellbeing_engine.utils.text_utils import truncate

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class ExternalServiceError(Exception):
    """Базовое исключение внешнего AI сервиса"""
    pass

class AINetworkError(ExternalServiceError):
    """Сетевая ошибка при обращении к провайдеру"""
    pass

class AITimeoutError(ExternalServiceError):
    """Провайдер не ответил вовремя"""
    pass

class AIRateLimitError(ExternalServiceError):
    """Превышен лимит запросов провайдера"""
    pass

# ===== ENUMS =====

class AIProvider(Enum):
    """Провайдеры ответов"""
    OPENAI = "openai"
    STATIC = "static"

class PromptTemplate(Enum):
    """Шаблоны промптов"""
    SYSTEM_BASE = "system_base"
    REFLECTION = "reflection"

# ===== DATA CLASSES =====

@dataclass
class PromptContext:
    """Структурированный контекст для коуча"""
    recent_check_ins: List[Dict[str, Any]] = field(default_factory=list)
    active_goals: List[Dict[str, Any]] = field(default_factory=list)
    draft_text: str = ""
    draft_goal_titles: List[str] = field(default_factory=list)
    current_streak: int = 0
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recent_check_ins': list(self.recent_check_ins),
            'active_goals': list(self.active_goals),
            'draft_text': self.draft_text,
            'draft_goal_titles': list(self.draft_goal_titles),
            'current_streak': self.current_streak,
            'message': self.message
        }

@dataclass
class CoachReply:
    """Ответ коуча"""
    content: str
    provider: AIProvider
    is_fallback: bool = False
    response_time_ms: int = 0
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'content': self.content,
            'provider': self.provider.value,
            'is_fallback': self.is_fallback,
            'response_time_ms': self.response_time_ms,
            'error': self.error,
            'timestamp': self.timestamp
        }

@dataclass
class AIStats:
    """Статистика AI сервиса"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    timeouts: int = 0
    cancelled_requests: int = 0
    average_response_time_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_requests': self.total_requests,
            'successful_requests': self.successful_requests,
            'failed_requests': self.failed_requests,
            'timeouts': self.timeouts,
            'cancelled_requests': self.cancelled_requests,
            'success_rate': round(self.success_rate, 2),
            'average_response_time_ms': round(self.average_response_time_ms, 2)
        }

# ===== PROMPTS & CONTEXT =====

class PromptManager:
    """Менеджер промптов с шаблонами"""

    def __init__(self):
        self.templates: Dict[PromptTemplate, str] = self._load_templates()

    def _load_templates(self) -> Dict[PromptTemplate, str]:
        """Загрузка шаблонов промптов"""
        return {
            PromptTemplate.SYSTEM_BASE: """You are a warm, thoughtful wellbeing coach. You help the user reflect on their day, notice patterns and take small steps toward their 12-week goals.

{user_context}

Guidelines:
- Be supportive and specific; reference the user's own words and goals
- Suggest at most one small, concrete next step
- Never diagnose; encourage professional help if the user mentions a crisis
- Keep it under 150 words""",

            PromptTemplate.REFLECTION: """The user just wrote this reflection:
\"\"\"{draft_text}\"\"\"

Respond to it directly."""
        }

    def get_prompt(self, template: PromptTemplate, **kwargs) -> str:
        """Получить промпт по шаблону"""
        return self.templates[template].format(**kwargs)

class ContextBuilder:
    """Строитель контекста пользователя"""

    @staticmethod
    def build(check_ins: Sequence[CheckIn], goals: Sequence[Goal], goal_percentages: Dict[str, float],
              draft: Optional[DailyBrainDump] = None, current_streak: int = 0,
              message: Optional[str] = None, limit: int = 7) -> PromptContext:
        """Последние чекины, активные цели и текущий черновик"""
        recent = sorted(check_ins, key=lambda c: c.date)[-limit:] if limit > 0 else []
        goal_titles = {goal.id: goal.title for goal in goals}
        return PromptContext(
            recent_check_ins=[{
                'date': c.date.isoformat(),
                'mood': c.mood_label,
                'mood_score': c.mood_score,
                'happy_thing': truncate(c.happy_thing, 200),
                'improve_thing': truncate(c.improve_thing, 200),
            } for c in recent],
            active_goals=[{
                'title': goal.title,
                'category': goal.category.value,
                'percentage': goal_percentages.get(goal.id, goal.progress_percentage),
            } for goal in goals if goal.is_active],
            draft_text=draft.content if draft else "",
            draft_goal_titles=[goal_titles[g] for g in (draft.goal_ids if draft else []) if g in goal_titles],
            current_streak=current_streak,
            message=message
        )

    @staticmethod
    def render(context: PromptContext) -> str:
        """Текстовое представление контекста для системного промпта"""
        parts = ["About the user:"]
        if context.current_streak:
            parts.append(f"- Check-in streak: {context.current_streak} days")

        if context.active_goals:
            parts.append("- Active goals:")
            for goal in context.active_goals:
                parts.append(f"  • {goal['category']} - {goal['title']} ({goal['percentage']:.0f}% complete)")

        if context.recent_check_ins:
            moods = " → ".join(c['mood'] for c in context.recent_check_ins)
            parts.append(f"- Recent moods: {moods}")
            latest = context.recent_check_ins[-1]
            if latest['happy_thing']:
                parts.append(f"- Recently happy about: {latest['happy_thing']}")
            if latest['improve_thing']:
                parts.append(f"- Wants to improve: {latest['improve_thing']}")

        if context.draft_goal_titles:
            parts.append(f"- Today's reflection touches: {', '.join(context.draft_goal_titles)}")

        return "\n".join(parts)

# ===== COACHES =====

class AICoach:
    """Внешний коуч: respond(context) -> текст; может бросать ExternalServiceError"""

    provider = AIProvider.STATIC

    async def respond(self, context: PromptContext) -> str:
        raise NotImplementedError

class StaticCoach(AICoach):
    """Коуч без внешних вызовов"""

    provider = AIProvider.STATIC

    def __init__(self, message: str = DEFAULT_FALLBACK_MESSAGE):
        self.message = message

    async def respond(self, context: PromptContext) -> str:
        return self.message

class OpenAICoach(AICoach):
    """Коуч на OpenAI Chat Completions с повторами"""

    provider = AIProvider.OPENAI

    def __init__(self, ai_config: AIConfig, client: Optional[AsyncOpenAI] = None):
        self.config = ai_config
        self.client = client or AsyncOpenAI(
            api_key=ai_config.openai_api_key,
            timeout=ai_config.request_timeout
        )
        self.prompt_manager = PromptManager()
        self.retry_delay = 1.0

    def build_messages(self, context: PromptContext) -> List[Dict[str, str]]:
        system_prompt = self.prompt_manager.get_prompt(
            PromptTemplate.SYSTEM_BASE,
            user_context=ContextBuilder.render(context)
        )
        if context.message:
            user_message = context.message
        else:
            user_message = self.prompt_manager.get_prompt(
                PromptTemplate.REFLECTION,
                draft_text=context.draft_text or "(no reflection written yet)"
            )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message}
        ]

    async def respond(self, context: PromptContext) -> str:
        messages = self.build_messages(context)

        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                response = await self.client.chat.completions.create(
                    model=self.config.openai_model,
                    messages=messages,
                    max_tokens=self.config.openai_max_tokens,
                    temperature=self.config.temperature
                )
                content = response.choices[0].message.content or ""
                return content.strip()

            except openai.RateLimitError as e:
                logger.warning(f"OpenAI rate limit hit, attempt {attempt + 1}")
                if last_attempt:
                    raise AIRateLimitError("OpenAI rate limit exceeded") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))

            except openai.APITimeoutError as e:
                logger.warning(f"OpenAI timeout, attempt {attempt + 1}")
                if last_attempt:
                    raise AITimeoutError("OpenAI request timeout") from e
                await asyncio.sleep(self.retry_delay)

            except openai.APIConnectionError as e:
                logger.warning(f"OpenAI connection error, attempt {attempt + 1}: {e}")
                if last_attempt:
                    raise AINetworkError(f"OpenAI connection failed: {e}") from e
                await asyncio.sleep(self.retry_delay)

            except openai.APIError as e:
                logger.error(f"OpenAI API error on attempt {attempt + 1}: {e}")
                if last_attempt:
                    raise ExternalServiceError(f"OpenAI API failed: {e}") from e
                await asyncio.sleep(self.retry_delay)

        raise ExternalServiceError("OpenAI request was not attempted")

# ===== MAIN AI SERVICE =====

class CoachService:
    """Вызов коуча с таймаутом и резервным ответом"""

    def __init__(self, coach: AICoach, timeout: float = 30.0, fallback_message: str = DEFAULT_FALLBACK_MESSAGE):
        self.coach = coach
        self.timeout = timeout
        self.fallback_message = fallback_message
        self.stats = AIStats()
        logger.info(f"Coach service initialized - provider: {coach.provider.value}")

    async def respond(self, context: PromptContext) -> CoachReply:
        """Ответ коуча или резервное сообщение; отмена пробрасывается вызывающему"""
        start_time = time.monotonic()
        self.stats.total_requests += 1

        try:
            content = await asyncio.wait_for(self.coach.respond(context), timeout=self.timeout)
        except asyncio.CancelledError:
            self.stats.cancelled_requests += 1
            logger.info("Coach request cancelled")
            raise
        except asyncio.TimeoutError:
            self.stats.timeouts += 1
            return self._fallback(f"Coach did not answer within {self.timeout}s")
        except ExternalServiceError as e:
            return self._fallback(str(e))
        except Exception as e:
            logger.exception("Unexpected coach failure")
            return self._fallback(f"Unexpected coach failure: {e}")

        if not content:
            return self._fallback("Coach returned an empty reply")

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        self.stats.successful_requests += 1
        self._update_average_response_time(elapsed_ms)
        return CoachReply(content=content, provider=self.coach.provider, response_time_ms=elapsed_ms)

    def _fallback(self, reason: str) -> CoachReply:
        logger.warning(f"Using fallback coach reply: {reason}")
        self.stats.failed_requests += 1
        return CoachReply(
            content=self.fallback_message,
            provider=AIProvider.STATIC,
            is_fallback=True,
            error=reason
        )

    def _update_average_response_time(self, response_time_ms: int) -> None:
        """Обновление среднего времени ответа"""
        total_time = self.stats.average_response_time_ms * (self.stats.successful_requests - 1)
        self.stats.average_response_time_ms = (total_time + response_time_ms) / self.stats.successful_requests

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.to_dict()

def create_coach_service(ai_config: AIConfig) -> CoachService:
    """OpenAI коуч, если он включен и настроен, иначе статический"""
    if ai_config.ai_chat_enabled and ai_config.openai_api_key:
        coach: AICoach = OpenAICoach(ai_config)
    else:
        coach = StaticCoach(ai_config.fallback_message)
    return CoachService(coach, timeout=ai_config.request_timeout, fallback_message=ai_config.fallback_message)

__all__ = [
    'ExternalServiceError',
    'AINetworkError',
    'AITimeoutError',
    'AIRateLimitError',
    'AIProvider',
    'PromptContext',
    'CoachReply',
    'AIStats',
    'PromptManager',
    'ContextBuilder',
    'AICoach',
    'StaticCoach',
    'OpenAICoach',
    'CoachService',
    'create_coach_service'
]
