"""
End-to-end health analysis for one pet.

Runs the components in dependency order so every derived value in a report
comes from one consistent snapshot:
1. Statistics, trends and regressions per metric
2. Daily caloric target and macronutrient split
3. Health score
4. Goal progress
5. Insights, fed with the outputs of steps 1, 3 and 4
"""

from collections.abc import Callable, Iterable
from datetime import date
from typing import Generic, TypeVar

import structlog

from pethealth.config import EngineConfig, get_config
from pethealth.domain.errors import InsufficientDataError
from pethealth.domain.models import (
    Goal,
    GoalProgress,
    GoalType,
    HealthDataset,
    HealthScoreBreakdown,
    Insight,
    InsightType,
    NutritionGoal,
    OverallStatus,
    Pet,
    PetHealthReport,
)
from pethealth.services.calorie_estimator import CalorieEstimator
from pethealth.services.goal_progress import GoalProgressTracker
from pethealth.services.health_score import HealthScoreCalculator
from pethealth.services.insight_engine import InsightEngine
from pethealth.services.statistics_calculator import StatisticsCalculator

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")


class Result(Generic[ValueT]):
    """
    Explicit outcome for computations whose failure is expected business logic.

    A metric with a single reading cannot have a trend; that is a normal state
    of a young record, not an exceptional one, so the analyzer carries it as a
    value instead of aborting the whole report.
    """

    def __init__(self, value: ValueT | None = None, error: Exception | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: Exception | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: Exception) -> "Result[ValueT]":
        return cls(error=error)

    @classmethod
    def attempt(cls, operation: Callable[[], ValueT]) -> "Result[ValueT]":
        """Run ``operation``, capturing InsufficientDataError; anything else propagates."""
        try:
            return cls.ok(operation())
        except InsufficientDataError as e:
            return cls.err(e)

    def is_ok(self) -> bool:
        return self._error is None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_err(self) -> Exception:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


def nutrition_goal_for(goals: Iterable[Goal]) -> NutritionGoal | None:
    """Derive the calorie adjustment from the first weight goal, if any."""
    for goal in goals:
        if goal.type == GoalType.WEIGHT_LOSS:
            return NutritionGoal.LOSE_WEIGHT
        if goal.type == GoalType.WEIGHT_GAIN:
            return NutritionGoal.GAIN_WEIGHT
    return None


class PetHealthAnalyzer:
    """
    Orchestrates all calculators for a single pet.

    Structural errors (non-positive weight, invalid goal target) propagate to
    the caller. Series too short for statistics or trends are reported in
    ``skipped_metrics``.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or get_config()
        self.logger = logger.bind(component="pet_health_analyzer")

        self.statistics = StatisticsCalculator(self.config.statistics)
        self.calories = CalorieEstimator(self.config.calories)
        self.health_score = HealthScoreCalculator(self.config.health_score)
        self.goal_tracker = GoalProgressTracker(self.config.goals)
        self.insight_engine = InsightEngine(self.config.insights)

    def analyze(
        self,
        pet: Pet,
        health_data: HealthDataset,
        goals: Iterable[Goal] = (),
        as_of: date | None = None,
    ) -> PetHealthReport:
        goals = list(goals)
        self.logger.info(
            "pet_health_analysis_started",
            pet_id=pet.id,
            metrics=[kind.value for kind in health_data.datasets],
            goals_count=len(goals),
        )

        statistics = {}
        trends = {}
        regressions = {}
        skipped: dict = {}
        for kind, dataset in health_data.datasets.items():
            stats_result = Result.attempt(lambda: self.statistics.compute_statistics(dataset.values))
            trend_result = Result.attempt(lambda: self.statistics.compute_trend(dataset))
            regression_result = Result.attempt(lambda: self.statistics.compute_regression(dataset))

            if stats_result.is_ok():
                statistics[kind] = stats_result.unwrap()
            if trend_result.is_ok():
                trends[kind] = trend_result.unwrap()
                regressions[kind] = regression_result.unwrap()
            else:
                skipped[kind] = str(trend_result.unwrap_err())
                self.logger.info(
                    "metric_trend_skipped",
                    pet_id=pet.id,
                    metric_kind=kind.value,
                    reason=skipped[kind],
                )

        calories = self.calories.estimate_calorie_breakdown(pet, nutrition_goal_for(goals))
        nutrients = self.calories.split_nutrients(pet, calories)
        health = self.health_score.compute_health_score_breakdown(pet, health_data)
        goal_progress = self.goal_tracker.compute_all(goals, as_of)
        insights = self.insight_engine.generate_insights(
            pet,
            health_data,
            health.score,
            goal_progress=goal_progress,
            trends=trends,
            as_of=as_of,
        )
        overall_status = self._determine_overall_status(health, insights)

        self.logger.info(
            "pet_health_analysis_completed",
            pet_id=pet.id,
            score=health.score,
            overall_status=overall_status,
            insights_count=len(insights),
            skipped_metrics=len(skipped),
        )

        return PetHealthReport(
            pet_id=pet.id,
            as_of=as_of,
            statistics=statistics,
            trends=trends,
            regressions=regressions,
            skipped_metrics=skipped,
            calories=calories,
            nutrients=nutrients,
            health=health,
            goals=goal_progress,
            insights=insights,
            overall_status=overall_status,
        )

    def _determine_overall_status(
        self, health: HealthScoreBreakdown, insights: list[Insight]
    ) -> OverallStatus:
        """Determine overall status from the score and the kinds of insights raised."""
        thresholds = self.config.analysis
        if health.score < thresholds.critical_score_threshold:
            return "critical"
        if any(i.type == InsightType.ERROR for i in insights):
            return "critical"

        if health.score < thresholds.warning_score_threshold:
            return "warning"
        if any(i.type == InsightType.WARNING for i in insights):
            return "warning"

        return "healthy"

    def analyze_many(
        self,
        pets: Iterable[tuple[Pet, HealthDataset, Iterable[Goal]]],
        as_of: date | None = None,
    ) -> list[PetHealthReport]:
        """Analyze several pets independently with the same configuration."""
        return [self.analyze(pet, data, goals, as_of) for pet, data, goals in pets]


def summarize_goal_statuses(progress: Iterable[GoalProgress]) -> dict[str, int]:
    """Count goals per status, e.g. for a dashboard header."""
    counts: dict[str, int] = {}
    for item in progress:
        counts[item.status.value] = counts.get(item.status.value, 0) + 1
    return counts
