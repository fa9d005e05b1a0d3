import re
from typing import Dict, Iterable, List

SENTENCE_TERMINATORS = re.compile(r"[.!?]")
WORD_PATTERN = re.compile(r"[a-z']+")


def count_words(text: str) -> int:
    """Количество слов, разделенных пробельными символами"""
    return len(text.split())


def count_sentences(text: str) -> int:
    """Количество предложений: фрагменты между . ! ? без пустых"""
    return len([fragment for fragment in SENTENCE_TERMINATORS.split(text) if fragment.strip()])


def truncate(text: str, max_len: int = 64) -> str:
    return text if len(text) <= max_len else text[:max_len - 1] + "…"


def match_themes(text: str, themes: Dict[str, Iterable[str]]) -> Dict[str, List[str]]:
    """Темы, ключевые слова которых начинают слова текста: {тема: найденные ключевые слова}"""
    words = WORD_PATTERN.findall(text.lower())
    matches = {}
    for theme, keywords in themes.items():
        found = [keyword for keyword in keywords if any(word.startswith(keyword) for word in words)]
        if found:
            matches[theme] = found
    return matches
