"""
Корреляции настроения с факторами дня (сон, общение, энергия) и тегами активностей
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

from wellbeing_engine.core.models import Activity, CheckIn, FactorLevel, validate_enum_value
from wellbeing_engine.services.time_windows import mean, safe_rate

logger = logging.getLogger(__name__)

MIN_SAMPLES_PER_ARM = 5
GOOD_MOOD_THRESHOLD = 4
FACTORS = ("sleep", "social", "energy")
FAVORABLE_LEVEL = FactorLevel.HIGH
UNFAVORABLE_LEVEL = FactorLevel.LOW


class InsufficientDataError(Exception):
    """Недостаточно наблюдений для надежного вывода"""
    pass


@dataclass
class CorrelationResult:
    """Доля хороших дней в благоприятном и неблагоприятном состоянии фактора"""
    factor: str
    kind: str  # "factor" или "activity"
    favorable_rate: float
    unfavorable_rate: float
    favorable_count: int
    unfavorable_count: int

    @property
    def difference(self) -> float:
        return self.favorable_rate - self.unfavorable_rate

    @property
    def data_points(self) -> int:
        return self.favorable_count + self.unfavorable_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'factor': self.factor,
            'kind': self.kind,
            'favorable_rate': round(self.favorable_rate, 2),
            'unfavorable_rate': round(self.unfavorable_rate, 2),
            'favorable_count': self.favorable_count,
            'unfavorable_count': self.unfavorable_count,
            'difference': round(self.difference, 2)
        }


def _good_rate(check_ins: Sequence[CheckIn]) -> float:
    good = len([c for c in check_ins if c.mood_score >= GOOD_MOOD_THRESHOLD])
    return safe_rate(good, len(check_ins)) * 100


class CorrelationEngine:
    """Совместная встречаемость хорошего настроения и категориальных факторов"""

    def __init__(self, min_samples: int = MIN_SAMPLES_PER_ARM):
        self.min_samples = min_samples

    @staticmethod
    def rank(results: List[CorrelationResult]) -> List[CorrelationResult]:
        """По модулю разницы долей, по убыванию; при равенстве по имени"""
        return sorted(results, key=lambda r: (-abs(r.difference), r.factor))

    def _compare(self, factor: str, kind: str, check_ins: Sequence[CheckIn],
                 is_favorable: Callable[[CheckIn], bool],
                 is_unfavorable: Callable[[CheckIn], bool]) -> Optional[CorrelationResult]:
        favorable = [c for c in check_ins if is_favorable(c)]
        unfavorable = [c for c in check_ins if is_unfavorable(c)]
        if len(favorable) < self.min_samples or len(unfavorable) < self.min_samples:
            logger.debug(
                f"Skipping {kind} '{factor}': {len(favorable)}/{len(unfavorable)} samples, "
                f"need {self.min_samples} per arm"
            )
            return None
        return CorrelationResult(
            factor=factor,
            kind=kind,
            favorable_rate=_good_rate(favorable),
            unfavorable_rate=_good_rate(unfavorable),
            favorable_count=len(favorable),
            unfavorable_count=len(unfavorable)
        )

    def factor_correlation(self, check_ins: Sequence[CheckIn], factor: str) -> Optional[CorrelationResult]:
        """Сравнение дней с высоким и низким уровнем фактора; None при нехватке данных"""
        if factor not in FACTORS:
            raise ValueError(f"Unknown factor: {factor}")
        return self._compare(
            factor, "factor", check_ins,
            lambda c: c.factor(factor) == FAVORABLE_LEVEL,
            lambda c: c.factor(factor) == UNFAVORABLE_LEVEL
        )

    def activity_correlation(self, check_ins: Sequence[CheckIn], activity: Any) -> Optional[CorrelationResult]:
        """Дни с тегом против дней без него (только чекины, где теги вообще отмечались)"""
        activity = validate_enum_value(activity, Activity, "activity")
        tagged = [c for c in check_ins if c.activities]
        return self._compare(
            activity.value, "activity", tagged,
            lambda c: activity in c.activities,
            lambda c: activity not in c.activities
        )

    def factor_correlations(self, check_ins: Sequence[CheckIn]) -> List[CorrelationResult]:
        results = [self.factor_correlation(check_ins, factor) for factor in FACTORS]
        return self.rank([r for r in results if r is not None])

    def activity_correlations(self, check_ins: Sequence[CheckIn]) -> List[CorrelationResult]:
        results = [self.activity_correlation(check_ins, activity) for activity in Activity]
        return self.rank([r for r in results if r is not None])

    def all_correlations(self, check_ins: Sequence[CheckIn]) -> List[CorrelationResult]:
        return self.rank(self.factor_correlations(check_ins) + self.activity_correlations(check_ins))

    def require_factor_correlation(self, check_ins: Sequence[CheckIn], factor: str) -> CorrelationResult:
        """Строгий вариант для вызывающих, которым нужен результат или ошибка"""
        result = self.factor_correlation(check_ins, factor)
        if result is None:
            raise InsufficientDataError(
                f"Not enough check-ins to correlate mood with {factor} "
                f"(need {self.min_samples} per arm)"
            )
        return result

    @staticmethod
    def average_mood_by_level(check_ins: Sequence[CheckIn], factor: str) -> Dict[int, float]:
        """Среднее настроение для каждого уровня фактора, где есть данные"""
        grouped = defaultdict(list)
        for check_in in check_ins:
            level = check_in.factor(factor)
            if level is not None:
                grouped[int(level)].append(check_in.mood_score)
        return {level: mean(scores) for level, scores in sorted(grouped.items())}
