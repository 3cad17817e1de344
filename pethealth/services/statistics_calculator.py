"""
Descriptive statistics and trend detection over numeric time series.

Trend classification is heuristic: thresholds for "stable" and for the
confidence labels are configuration values chosen to avoid over-claiming
certainty on sparse data. They are not statistical guarantees.
"""

import math
import statistics
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from pethealth.domain.errors import InsufficientDataError
from pethealth.domain.models import (
    Confidence,
    Dataset,
    RegressionResult,
    StatisticsResult,
    TrendDirection,
    TrendResult,
)

logger = structlog.get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves away from zero, as the dashboards do."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class StatisticsConfig(BaseModel):
    """Tunable thresholds for trend classification."""

    model_config = ConfigDict(frozen=True)

    max_smoothing_window: int = Field(
        default=7, gt=0, description="Upper bound of the moving-average window"
    )
    stable_threshold_percent: float = Field(
        default=2.0, ge=0.0, description="|relative change| below this is 'stable'"
    )
    high_confidence_change_percent: float = Field(
        default=10.0, ge=0.0, description="|relative change| above this can be 'high' confidence"
    )
    high_confidence_min_count: int = Field(default=10, ge=2)
    medium_confidence_min_count: int = Field(default=5, ge=2)

    @model_validator(mode="after")
    def confidence_counts_ordered(self) -> "StatisticsConfig":
        if self.medium_confidence_min_count > self.high_confidence_min_count:
            raise ValueError(
                "medium_confidence_min_count must not exceed high_confidence_min_count"
            )
        return self


def _nearest_rank(ordered: Sequence[float], fraction: float) -> float:
    # upper median for even counts: [1, 2, 3, 4] -> 3
    return ordered[math.floor(len(ordered) * fraction)]


def moving_average(values: Sequence[float], window: int) -> list[float]:
    """
    Centered simple moving average.

    The window shrinks at both edges of the series, so the output has the same
    length as the input and the first and last points are averages of the
    available neighbours only.
    """
    if window <= 0:
        raise ValueError(f"window must be positive, got {window}")

    n = len(values)
    half_before = window // 2
    half_after = math.ceil(window / 2)
    smoothed = []
    for i in range(n):
        subset = values[max(0, i - half_before) : min(n, i + half_after)]
        smoothed.append(math.fsum(subset) / len(subset))
    return smoothed


class StatisticsCalculator:
    """Descriptive statistics and trend classification for one series at a time."""

    def __init__(self, config: StatisticsConfig | None = None) -> None:
        self.config = config or StatisticsConfig()
        self.logger = logger.bind(component="statistics_calculator")

    def compute_statistics(self, values: Sequence[float]) -> StatisticsResult:
        """Mean, spread and nearest-rank quartiles of ``values``."""
        if len(values) == 0:
            raise InsufficientDataError("cannot compute statistics of an empty series")

        mean = statistics.fmean(values)
        variance = statistics.pvariance(values, mu=mean) if len(values) > 1 else 0.0
        ordered = sorted(values)
        q1 = _nearest_rank(ordered, 0.25)
        q3 = _nearest_rank(ordered, 0.75)

        return StatisticsResult(
            mean=mean,
            min=ordered[0],
            max=ordered[-1],
            std_dev=math.sqrt(variance),
            count=len(values),
            median=_nearest_rank(ordered, 0.5),
            variance=variance,
            q1=q1,
            q3=q3,
            range=ordered[-1] - ordered[0],
            iqr=q3 - q1,
        )

    def compute_trend(self, dataset: Dataset) -> TrendResult:
        """
        Classify the direction of a series.

        Two points are compared directly. Longer series are smoothed first so a
        single noisy reading at either end does not decide the direction.
        """
        values = dataset.values
        count = len(values)
        if count < 2:
            raise InsufficientDataError(
                f"trend needs at least 2 {dataset.metric_kind.value} observations, got {count}",
                required=2,
                available=count,
            )

        if count == 2:
            first, last = values
        else:
            window = min(self.config.max_smoothing_window, count)
            smoothed = moving_average(values, window)
            first, last = smoothed[0], smoothed[-1]

        change_absolute = last - first
        change_relative = self._relative_change(change_absolute, values)
        direction = self._direction(change_relative)
        confidence = self._confidence(count, change_relative)

        self.logger.debug(
            "trend_computed",
            metric_kind=dataset.metric_kind.value,
            count=count,
            direction=direction.value,
            confidence=confidence.value,
            change_relative=round(change_relative, 3),
        )

        return TrendResult(
            direction=direction,
            confidence=confidence,
            change_absolute=change_absolute,
            change_relative=change_relative,
            count=count,
        )

    def compute_regression(self, dataset: Dataset) -> RegressionResult:
        """Least-squares fit of value against days elapsed since the first observation."""
        count = len(dataset)
        if count < 2:
            raise InsufficientDataError(
                f"regression needs at least 2 {dataset.metric_kind.value} observations, "
                f"got {count}",
                required=2,
                available=count,
            )

        origin = dataset.dates[0]
        xs = [float((day - origin).days) for day in dataset.dates]
        ys = dataset.values

        x_mean = statistics.fmean(xs)
        y_mean = statistics.fmean(ys)
        sxx = math.fsum((x - x_mean) ** 2 for x in xs)
        sxy = math.fsum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys, strict=True))

        # dates are unique, so sxx > 0 whenever count >= 2
        slope = sxy / sxx
        intercept = y_mean - slope * x_mean

        ss_total = math.fsum((y - y_mean) ** 2 for y in ys)
        ss_residual = math.fsum(
            (y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys, strict=True)
        )
        r_squared = 1.0 if ss_total == 0 else 1.0 - ss_residual / ss_total

        return RegressionResult(
            slope_per_day=slope,
            intercept=intercept,
            r_squared=min(1.0, max(0.0, r_squared)),
            count=count,
        )

    def _relative_change(self, change_absolute: float, values: Sequence[float]) -> float:
        """
        Express a change in percent of the series level.

        The level is |mean|, falling back to the population standard deviation
        for series centered on zero. Both are invariant under mirroring the
        series around its mean.
        """
        if change_absolute == 0:
            return 0.0
        mean = statistics.fmean(values)
        reference = abs(mean) or statistics.pstdev(values, mu=mean)
        if reference == 0:
            return 0.0
        return change_absolute / reference * 100.0

    def _direction(self, change_relative: float) -> TrendDirection:
        if abs(change_relative) < self.config.stable_threshold_percent:
            return TrendDirection.STABLE
        return TrendDirection.INCREASING if change_relative > 0 else TrendDirection.DECREASING

    def _confidence(self, count: int, change_relative: float) -> Confidence:
        if (
            count >= self.config.high_confidence_min_count
            and abs(change_relative) > self.config.high_confidence_change_percent
        ):
            return Confidence.HIGH
        if count >= self.config.medium_confidence_min_count:
            return Confidence.MEDIUM
        return Confidence.LOW


_default_calculator = StatisticsCalculator()


def compute_statistics(values: Sequence[float]) -> StatisticsResult:
    return _default_calculator.compute_statistics(values)


def compute_trend(dataset: Dataset) -> TrendResult:
    return _default_calculator.compute_trend(dataset)


def compute_regression(dataset: Dataset) -> RegressionResult:
    return _default_calculator.compute_regression(dataset)
