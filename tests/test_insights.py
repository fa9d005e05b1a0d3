"""
InsightGenerator tests: confidence scoring, individual generators, filtering,
ranking and the per-day cache.
"""
from datetime import datetime, timedelta

import pytest

from wellbeing_engine.core.models import Insight, InsightType, Task
from wellbeing_engine.services.insights import InsightCache, InsightGenerator, score_confidence

from conftest import NOW, TODAY


@pytest.fixture
def generator(clock):
    return InsightGenerator(clock, min_confidence=0.2)


def _on(days_back):
    return TODAY - timedelta(days=days_back)


class TestConfidence:

    def test_sample_factor_saturates_at_thirty(self):
        assert score_confidence(15, 1.0) == pytest.approx(0.5)
        assert score_confidence(30, 1.0) == pytest.approx(1.0)
        assert score_confidence(300, 0.4) == pytest.approx(0.4)

    def test_clamped(self):
        assert score_confidence(60, 2.5) == 1.0
        assert score_confidence(10, -1.0) == 0.0
        assert score_confidence(0, 1.0) == 0.0


class TestGenerators:

    def test_strong_sleep_correlation(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i), "good", sleep_level=2) for i in range(15)]
        check_ins += [make_check_in(_on(i), "bad", sleep_level=0) for i in range(15, 30)]
        insights = generator.correlation_insights(check_ins, NOW)
        sleep = next(i for i in insights if i.metadata.keywords == ["sleep"])
        assert sleep.title == "More sleep goes with better days"
        assert sleep.type == InsightType.CORRELATION
        assert sleep.data_points == 30
        assert sleep.confidence == pytest.approx(1.0)
        assert sleep.metadata.frequency_data["favorable_rate"] == 100.0

    def test_negative_sleep_correlation_wording(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i), "bad", sleep_level=2) for i in range(15)]
        check_ins += [make_check_in(_on(i), "good", sleep_level=0) for i in range(15, 30)]
        insights = generator.correlation_insights(check_ins, NOW)
        sleep = next(i for i in insights if i.metadata.keywords == ["sleep"])
        assert sleep.title == "High sleep days tend to be harder"

    def test_small_difference_is_not_an_insight(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i), "good" if i % 2 else "bad", sleep_level=2 if i < 10 else 0)
                     for i in range(20)]
        assert generator.correlation_insights(check_ins, NOW) == []

    def test_mood_trend_up(self, generator, make_check_in):
        recent = [make_check_in(_on(i), "amazing") for i in range(3)]
        previous = [make_check_in(_on(i), "bad") for i in range(7, 10)]
        insight = generator.mood_trend_insight(recent + previous, NOW)
        assert insight.title == "Your mood is trending up"
        assert insight.type == InsightType.TREND
        assert insight.data_points == 6
        assert insight.metadata.frequency_data == {'recent_average': 5.0, 'previous_average': 2.0}

    def test_mood_trend_needs_both_windows(self, generator, make_check_in):
        recent = [make_check_in(_on(i), "amazing") for i in range(5)]
        assert generator.mood_trend_insight(recent, NOW) is None

    def test_progress_trend_counts_check_ins_not_days(self, generator, make_check_in):
        # sparse history: fourteen check-ins spread over six weeks
        check_ins = [make_check_in(_on(i * 3), "good" if i < 7 else "okay") for i in range(14)]
        insight = generator.progress_trend_insight(check_ins, NOW)
        assert insight.title == "Your last check-ins are looking brighter"
        assert insight.data_points == 14
        assert insight.metadata.frequency_data == {'recent_average': 4.0, 'previous_average': 3.0}
        assert generator.progress_trend_insight(check_ins[:13], NOW) is None

    def test_weekend_lift(self, generator, make_check_in):
        check_ins = []
        for i in range(28):
            day = _on(i)
            check_ins.append(make_check_in(day, "amazing" if day.weekday() >= 5 else "okay"))
        insight = generator.weekday_weekend_insight(check_ins, NOW)
        assert insight.title == "Weekends lift your mood"
        assert insight.metadata.frequency_data["weekend_count"] == 8

    def test_happiness_theme(self, generator, make_check_in):
        texts = ["Great gym session", "Morning run by the river", "Yoga with Sam",
                 "Lunch with mom", "Finished my book"]
        check_ins = [make_check_in(_on(i), "good", happy_thing=t) for i, t in enumerate(texts)]
        insights = generator.theme_insights(check_ins, NOW)
        assert len(insights) == 1
        assert insights[0].title == "Exercise keeps showing up in your good moments"
        assert insights[0].metadata.keywords == ["gym", "run", "yoga"]
        assert insights[0].data_points == 5

    def test_theme_needs_enough_entries(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i), "good", happy_thing="gym") for i in range(4)]
        assert generator.theme_insights(check_ins, NOW) == []

    def test_sparse_check_ins(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i)) for i in (0, 5, 9)] + [make_check_in(_on(i)) for i in range(20, 24)]
        insight = generator.consistency_insight(check_ins, NOW)
        assert insight.type == InsightType.SUGGESTION
        assert insight.title == "Check-ins have been sparse lately"

    def test_check_in_time_of_day(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i), hour=21 if i < 12 else 8) for i in range(15)]
        insight = generator.check_in_time_insight(check_ins, NOW)
        assert insight.title == "You usually reflect in the evening"
        assert insight.metadata.time_patterns == {"preferred_time": "evening"}

    def test_high_priority_slipping(self, generator):
        created = datetime(2025, 6, 1, 9, 0)
        tasks = []
        for i in range(5):
            task = Task.create(f"High {i}", priority="high", created_at=created)
            if i == 0:
                task.complete(datetime(2025, 6, 2, 9, 0))
            tasks.append(task)
        for i in range(5):
            task = Task.create(f"Low {i}", priority="low", created_at=created)
            task.complete(datetime(2025, 6, 2, 9, 0))
            tasks.append(task)
        insight = generator.task_priority_insight(tasks, NOW)
        assert insight.title == "High-priority tasks are slipping"
        assert insight.metadata.frequency_data == {"high": 20.0, "low": 100.0}

    def test_streak_milestone_is_a_fact(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i)) for i in range(8)]
        insight = generator.streak_insight(check_ins, NOW)
        assert insight.title == "7-day check-in streak"
        assert insight.confidence == 1.0
        assert insight.data_points == 8

    def test_check_in_count_milestone(self, generator, make_check_in):
        check_ins = [make_check_in(_on(i * 2)) for i in range(12)]
        insight = generator.check_in_milestone_insight(check_ins, NOW)
        assert insight.type == InsightType.MILESTONE
        assert insight.title == "10 check-ins and counting"
        assert insight.metadata.frequency_data == {"total_check_ins": 12, "milestone": 10}
        assert generator.check_in_milestone_insight(check_ins[:9], NOW) is None


class TestGenerate:

    def test_empty_input(self, generator):
        assert generator.generate([]) == []

    def test_filtered_and_ranked(self, clock, make_check_in):
        generator = InsightGenerator(clock, min_confidence=0.5)
        check_ins = [make_check_in(_on(i), "good", sleep_level=2) for i in range(15)]
        check_ins += [make_check_in(_on(i), "bad", sleep_level=0) for i in range(15, 30)]
        insights = generator.generate(check_ins)
        assert insights
        assert all(i.confidence >= 0.5 for i in insights)
        keys = [(-i.confidence, -i.data_points, i.title) for i in insights]
        assert keys == sorted(keys)

    def test_rank_tie_breaks(self):
        a = Insight.create(InsightType.PATTERN, "B title", "", 0.7, 10)
        b = Insight.create(InsightType.PATTERN, "A title", "", 0.7, 10)
        c = Insight.create(InsightType.PATTERN, "C title", "", 0.7, 20)
        d = Insight.create(InsightType.PATTERN, "D title", "", 0.9, 1)
        assert [i.title for i in InsightGenerator.rank([a, b, c, d])] == ["D title", "C title", "A title", "B title"]


class TestInsightCache:

    def test_hit_until_revision_changes(self, clock):
        cache = InsightCache(clock)
        assert cache.get(1) is None
        cache.put(1, [])
        assert cache.get(1) == []
        assert cache.get(2) is None

    def test_expires_on_day_change(self, clock, fake_now):
        cache = InsightCache(clock)
        cache.put(1, [])
        fake_now.advance(days=1)
        assert cache.get(1) is None

    def test_invalidate(self, clock):
        cache = InsightCache(clock)
        cache.put(1, [])
        cache.invalidate()
        assert cache.get(1) is None
