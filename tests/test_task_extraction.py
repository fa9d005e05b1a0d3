"""
TaskExtractor tests: line markers, intent phrases, priority and category keywords.
"""
import pytest

from wellbeing_engine.core.models import TaskPriority, TaskSource
from wellbeing_engine.services.task_extraction import TaskExtractor, determine_category, determine_priority

from conftest import NOW


@pytest.fixture
def extractor():
    return TaskExtractor()


class TestKeywords:

    @pytest.mark.parametrize("text, expected", [
        ("Send the invoice ASAP", TaskPriority.HIGH),
        ("Critical: fix the roof leak", TaskPriority.HIGH),
        ("An important call with the bank", TaskPriority.MEDIUM),
        ("Water the plants", TaskPriority.LOW),
    ])
    def test_priority(self, text, expected):
        assert determine_priority(text) == expected

    @pytest.mark.parametrize("text, expected", [
        ("Morning workout at the gym", "health"),
        ("Prepare slides for the client meeting", "work"),
        ("Read two chapters", "learning"),
        ("Call mom", "relationships"),
        ("Review the monthly budget", "finance"),
        ("Ten minutes of meditation", "mindfulness"),
        ("Clean the garage", "personal"),
    ])
    def test_category(self, text, expected):
        assert determine_category(text) == expected


class TestExtraction:

    def test_marked_lines(self, extractor):
        text = "\n".join([
            "Here is a plan for the week:",
            "1. Finish the quarterly report",
            "- [ ] Schedule a dentist visit",
            "todo: call the bank about the card",
            "- ok",
        ])
        titles = [title for title, _ in extractor.candidates(text)]
        assert titles == ["Finish the quarterly report", "Schedule a dentist visit", "Call the bank about the card"]

    def test_intent_sentences_in_prose(self, extractor):
        text = "Rough morning. I need to go to bed earlier. Also I should stretch after work!"
        titles = [title for title, _ in extractor.candidates(text)]
        assert titles == ["Go to bed earlier", "Stretch after work"]

    def test_duplicates_collapsed(self, extractor):
        text = "- Call the plumber today\n* call the plumber today"
        assert len(extractor.candidates(text)) == 1

    def test_extract_builds_tasks(self, extractor):
        tasks = extractor.extract("I have to renew my gym membership asap.", TaskSource.EXTRACTED, NOW, goal_id="g1")
        assert len(tasks) == 1
        task = tasks[0]
        assert task.title == "Renew my gym membership asap"
        assert task.priority == TaskPriority.HIGH
        assert task.category == "health"
        assert task.source == TaskSource.EXTRACTED
        assert task.goal_id == "g1"
        assert task.created_at == NOW
        assert not task.is_completed

    def test_existing_titles_skipped(self, extractor):
        tasks = extractor.extract("- Book flights home\n- Pack the suitcase", TaskSource.AI_CONVERSATION, NOW,
                                  skip_titles=["book flights HOME"])
        assert [t.title for t in tasks] == ["Pack the suitcase"]

    def test_empty_text(self, extractor):
        assert extractor.extract("", TaskSource.EXTRACTED, NOW) == []
