"""
CorrelationEngine tests: minimum sample per arm, rates, ranking.
"""
from datetime import timedelta

import pytest

from wellbeing_engine.services.correlation import CorrelationEngine, InsufficientDataError

from conftest import TODAY


@pytest.fixture
def correlation():
    return CorrelationEngine()


@pytest.fixture
def build(make_check_in):
    """Sequential days going back from today."""
    def factory(specs):
        return [make_check_in(TODAY - timedelta(days=i), mood, **fields)
                for i, (mood, fields) in enumerate(specs)]
    return factory


class TestFactorCorrelation:

    def test_below_minimum_sample_is_omitted(self, correlation, build):
        check_ins = build([("good", {"sleep_level": 2})] * 4 + [("bad", {"sleep_level": 0})] * 5)
        assert correlation.factor_correlation(check_ins, "sleep") is None
        assert correlation.factor_correlations(check_ins) == []

    def test_minimum_sample_reached(self, correlation, build):
        check_ins = build(
            [("good", {"sleep_level": 2})] * 4 + [("bad", {"sleep_level": 2})]
            + [("bad", {"sleep_level": 0})] * 4 + [("amazing", {"sleep_level": 0})]
        )
        result = correlation.factor_correlation(check_ins, "sleep")
        assert result.favorable_count == 5
        assert result.unfavorable_count == 5
        assert result.favorable_rate == pytest.approx(80.0)
        assert result.unfavorable_rate == pytest.approx(20.0)
        assert result.difference == pytest.approx(60.0)
        assert result.data_points == 10

    def test_medium_level_ignored(self, correlation, build):
        check_ins = build([("good", {"social_level": 1})] * 10)
        assert correlation.factor_correlation(check_ins, "social") is None

    def test_unknown_factor(self, correlation):
        with pytest.raises(ValueError):
            correlation.factor_correlation([], "weather")

    def test_strict_variant_raises(self, correlation, build):
        with pytest.raises(InsufficientDataError):
            correlation.require_factor_correlation(build([("good", {"energy_level": 2})]), "energy")

    def test_average_mood_by_level(self, build):
        check_ins = build([("amazing", {"energy_level": 2}), ("good", {"energy_level": 2}),
                           ("awful", {"energy_level": 0}), ("okay", {})])
        assert CorrelationEngine.average_mood_by_level(check_ins, "energy") == {0: 1.0, 2: 4.5}


class TestActivityCorrelation:

    def test_with_and_without_tag(self, correlation, build):
        check_ins = build(
            [("good", {"activities": ["exercise"]})] * 5
            + [("bad", {"activities": ["work"]})] * 5
            + [("bad", {})] * 10
        )
        result = correlation.activity_correlation(check_ins, "exercise")
        assert result.kind == "activity"
        assert result.favorable_count == 5
        assert result.unfavorable_count == 5  # untagged days are not counted
        assert result.difference == pytest.approx(100.0)

    def test_ranked_by_absolute_difference(self, correlation, build):
        check_ins = build(
            [("good", {"sleep_level": 2, "energy_level": 2})] * 5
            + [("bad", {"sleep_level": 0, "energy_level": 2})] * 5
            + [("good", {"sleep_level": 0, "energy_level": 0})] * 3
            + [("bad", {"sleep_level": 0, "energy_level": 0})] * 2
        )
        results = correlation.factor_correlations(check_ins)
        differences = [abs(r.difference) for r in results]
        assert differences == sorted(differences, reverse=True)
        assert [r.factor for r in results] == ["sleep", "energy"]

    def test_ties_broken_by_name(self, correlation, build):
        check_ins = build(
            [("good", {"sleep_level": 2, "social_level": 2})] * 5
            + [("bad", {"sleep_level": 0, "social_level": 0})] * 5
        )
        assert [r.factor for r in correlation.factor_correlations(check_ins)] == ["sleep", "social"]
