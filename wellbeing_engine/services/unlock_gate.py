"""
Гейт разблокировки AI-чата по объему рефлексии в черновике дня
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable

from wellbeing_engine.core.models import DailyBrainDump
from wellbeing_engine.utils.text_utils import count_sentences, count_words

# Чат открывается после двух предложений, независимо от прочего
UNLOCK_MIN_SENTENCES = 2

# Насыщение составляющих прогресса
SENTENCE_TARGET = 3
WORD_TARGET = 50

SENTENCE_WEIGHT = 0.6
WORD_WEIGHT = 0.25
GOAL_TAG_WEIGHT = 0.15


@dataclass(frozen=True)
class UnlockResult:
    word_count: int
    sentence_count: int
    progress_completion: float
    is_ai_chat_unlocked: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'word_count': self.word_count,
            'sentence_count': self.sentence_count,
            'progress_completion': self.progress_completion,
            'is_ai_chat_unlocked': self.is_ai_chat_unlocked
        }


def progress_completion(sentence_count: int, word_count: int, has_goal_tag: bool) -> float:
    """Неубывающая по всем аргументам оценка в [0, 1]"""
    score = (
        SENTENCE_WEIGHT * min(sentence_count / SENTENCE_TARGET, 1.0)
        + WORD_WEIGHT * min(word_count / WORD_TARGET, 1.0)
        + GOAL_TAG_WEIGHT * (1.0 if has_goal_tag else 0.0)
    )
    return round(min(score, 1.0), 4)


def evaluate(text: str, goal_ids: Iterable[str] = ()) -> UnlockResult:
    """Оценка текста черновика и выбранных целей"""
    sentences = count_sentences(text)
    words = count_words(text)
    return UnlockResult(
        word_count=words,
        sentence_count=sentences,
        progress_completion=progress_completion(sentences, words, any(True for _ in goal_ids)),
        is_ai_chat_unlocked=sentences >= UNLOCK_MIN_SENTENCES
    )


def evaluate_draft(draft: DailyBrainDump) -> UnlockResult:
    return evaluate(draft.content, draft.goal_ids)
