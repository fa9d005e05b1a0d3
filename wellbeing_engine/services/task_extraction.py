"""
Извлечение задач из текста: черновика дня или ответа AI-коуча.
Приоритет и категория определяются по ключевым словам строки.
"""

import re
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging

from wellbeing_engine.core.models import Task, TaskPriority, TaskSource
from wellbeing_engine.utils.text_utils import WORD_PATTERN, truncate

logger = logging.getLogger(__name__)

# Строка короче не считается задачей
MIN_LINE_LENGTH = 10
MAX_TITLE_LENGTH = 200

# Маркер в начале строки: буллет, чекбокс, номер или метка "todo:"
LINE_MARKER = re.compile(
    r"^(?:[-*•✓☐□]\s*(?:\[[ xX]\]\s*)?|\d+[.)]\s+|(?:task|todo|to-do|action item)\s*:\s*)",
    re.IGNORECASE
)

# Намерение внутри обычного предложения
INTENT_PHRASE = re.compile(
    r"\b(?:i\s+)?(?:need to|have to|must|should|want to|plan to)\s+(.+)",
    re.IGNORECASE
)

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

PRIORITY_KEYWORDS: Tuple[Tuple[TaskPriority, Tuple[str, ...]], ...] = (
    (TaskPriority.HIGH, ("urgent", "asap", "critical")),
    (TaskPriority.MEDIUM, ("important", "priority")),
)

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("health", ("health", "exercise", "workout", "fitness", "doctor", "gym", "run")),
    ("work", ("work", "job", "career", "client", "meeting")),
    ("learning", ("learn", "study", "read", "course")),
    ("relationships", ("relationship", "friend", "family", "mom", "dad", "partner")),
    ("finance", ("finance", "money", "budget", "bill", "tax")),
    ("mindfulness", ("mindfulness", "meditat", "wellness", "journal", "breath")),
)


def _has_keyword(words: List[str], keywords: Iterable[str]) -> bool:
    return any(word.startswith(keyword) for word in words for keyword in keywords)


def determine_priority(text: str) -> TaskPriority:
    words = WORD_PATTERN.findall(text.lower())
    for priority, keywords in PRIORITY_KEYWORDS:
        if _has_keyword(words, keywords):
            return priority
    return TaskPriority.LOW


def determine_category(text: str) -> str:
    words = WORD_PATTERN.findall(text.lower())
    for category, keywords in CATEGORY_KEYWORDS:
        if _has_keyword(words, keywords):
            return category
    return "personal"


def _clean_title(text: str) -> str:
    title = text.strip().rstrip(".!?;,").strip()
    if title:
        title = title[0].upper() + title[1:]
    return truncate(title, MAX_TITLE_LENGTH)


class TaskExtractor:
    """Поиск задач в свободном тексте; сохранением занимается вызывающий код"""

    def candidates(self, text: str) -> List[Tuple[str, str]]:
        """Пары (название задачи, строка или предложение-источник) без повторов"""
        found: List[Tuple[str, str]] = []
        seen = set()

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if len(line) <= MIN_LINE_LENGTH:
                continue

            marker = LINE_MARKER.match(line)
            if marker:
                body = line[marker.end():]
                intent = INTENT_PHRASE.search(body)
                pieces = [(intent.group(1) if intent else body, line)]
            else:
                pieces = []
                for sentence in SENTENCE_SPLIT.split(line):
                    intent = INTENT_PHRASE.search(sentence)
                    if intent:
                        pieces.append((intent.group(1), sentence))

            for piece, context in pieces:
                title = _clean_title(piece)
                if not title or title.lower() in seen:
                    continue
                seen.add(title.lower())
                found.append((title, context))
        return found

    def extract(self, text: str, source: TaskSource, created_at: datetime,
                goal_id: Optional[str] = None, skip_titles: Iterable[str] = ()) -> List[Task]:
        """Новые (несохраненные) задачи из текста.

        skip_titles - названия уже существующих задач, сравнение без учета регистра.
        """
        existing = {title.lower() for title in skip_titles}
        tasks = []
        for title, context in self.candidates(text or ""):
            if title.lower() in existing:
                continue
            tasks.append(Task.create(
                title,
                priority=determine_priority(context),
                category=determine_category(context),
                source=source,
                goal_id=goal_id,
                created_at=created_at
            ))
        logger.debug(f"Extracted {len(tasks)} tasks ({source.value})")
        return tasks
