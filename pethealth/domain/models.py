"""
Domain models for pet health analytics.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation and are immutable so a snapshot handed to the
engine cannot change while it is being analyzed.
"""

from collections.abc import Iterable
from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

OverallStatus = Literal["healthy", "warning", "critical"]


class Species(str, Enum):
    """Species the engine has metabolic and activity tables for."""

    DOG = "dog"
    CAT = "cat"
    RABBIT = "rabbit"
    BIRD = "bird"
    OTHER = "other"


class ActivityLevel(str, Enum):
    """Owner-reported activity level, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _ACTIVITY_RANK[self]


_ACTIVITY_RANK = {ActivityLevel.LOW: 0, ActivityLevel.MEDIUM: 1, ActivityLevel.HIGH: 2}


class LifeStage(str, Enum):
    """Age band used to pick nutrient percentages. Puppies and kittens are ``young``."""

    YOUNG = "young"
    ADULT = "adult"
    SENIOR = "senior"


class MetricKind(str, Enum):
    """Kinds of time-series observations."""

    WEIGHT = "weight"
    TEMPERATURE = "temperature"
    HEART_RATE = "heart_rate"
    RESPIRATORY_RATE = "respiratory_rate"
    ACTIVITY_MINUTES = "activity_minutes"


class NutritionGoal(str, Enum):
    """Goal used to adjust the daily caloric target."""

    LOSE_WEIGHT = "lose_weight"
    GAIN_WEIGHT = "gain_weight"
    MAINTAIN = "maintain"


class MedicationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class GoalType(str, Enum):
    WEIGHT_LOSS = "weight_loss"
    WEIGHT_GAIN = "weight_gain"
    ACTIVITY = "activity"
    MEDICATION = "medication"


class GoalStatus(str, Enum):
    COMPLETED = "completed"
    ON_TRACK = "on_track"
    NEEDS_ATTENTION = "needs_attention"


class WeightStatus(str, Enum):
    UNDERWEIGHT = "underweight"
    IDEAL = "ideal"
    OVERWEIGHT = "overweight"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class Confidence(str, Enum):
    """Heuristic label for sample size and signal magnitude, not a p-value."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InsightType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_key(self) -> int:
        return _PRIORITY_ORDER[self]


_PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class Pet(BaseModel):
    """Snapshot of a pet supplied by the caller. The engine only reads it."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    species: Species
    # Not constrained here: non-positive weights surface as InvalidWeightError
    current_weight_kg: float = Field(allow_inf_nan=False)
    ideal_weight_kg: float | None = Field(default=None, allow_inf_nan=False)
    body_condition_score: int | None = Field(default=None, ge=1, le=9)
    activity_level: ActivityLevel = ActivityLevel.MEDIUM
    age_years: float | None = Field(default=None, ge=0.0)
    last_vet_visit: date | None = None

    @field_validator("species", mode="before")
    @classmethod
    def normalize_species(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("activity_level", mode="before")
    @classmethod
    def normalize_activity_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            # the nutrition forms spell the middle level "moderate"
            return "medium" if v == "moderate" else v
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.id


class Observation(BaseModel):
    """A single timestamped scalar reading."""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float = Field(allow_inf_nan=False)
    metric_kind: MetricKind


class Dataset(BaseModel):
    """
    Chronological series of observations for one metric.

    Construction sorts the observations and keeps one per date; when a date
    repeats, the observation that appears later in the input wins.
    """

    model_config = ConfigDict(frozen=True)

    metric_kind: MetricKind
    observations: tuple[Observation, ...] = ()

    @field_validator("observations")
    @classmethod
    def normalize_observations(
        cls, v: tuple[Observation, ...], info: ValidationInfo
    ) -> tuple[Observation, ...]:
        kind = info.data.get("metric_kind")
        by_date: dict[date, Observation] = {}
        for observation in v:
            if kind is not None and observation.metric_kind != kind:
                raise ValueError(
                    f"observation of kind {observation.metric_kind.value} "
                    f"in {kind.value} dataset"
                )
            by_date[observation.date] = observation
        return tuple(sorted(by_date.values(), key=lambda o: o.date))

    @classmethod
    def from_values(
        cls, metric_kind: MetricKind, readings: Iterable[tuple[date, float]]
    ) -> "Dataset":
        """Build a dataset from (date, value) pairs."""
        return cls(
            metric_kind=metric_kind,
            observations=tuple(
                Observation(date=day, value=value, metric_kind=metric_kind)
                for day, value in readings
            ),
        )

    @property
    def values(self) -> list[float]:
        return [o.value for o in self.observations]

    @property
    def dates(self) -> list[date]:
        return [o.date for o in self.observations]

    @property
    def latest(self) -> Observation | None:
        return self.observations[-1] if self.observations else None

    def __len__(self) -> int:
        return len(self.observations)


class Medication(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    start_date: date
    end_date: date | None = None
    status: MedicationStatus = MedicationStatus.ACTIVE
    adherence_percent: float = Field(default=100.0, ge=0.0, le=100.0)

    @property
    def is_active(self) -> bool:
        return self.status == MedicationStatus.ACTIVE


class HealthDataset(BaseModel):
    """All time-series data and medication logs for one pet."""

    model_config = ConfigDict(frozen=True)

    datasets: dict[MetricKind, Dataset] = Field(default_factory=dict)
    medications: tuple[Medication, ...] = ()

    @field_validator("datasets")
    @classmethod
    def keys_match_metric_kind(cls, v: dict[MetricKind, Dataset]) -> dict[MetricKind, Dataset]:
        for kind, dataset in v.items():
            if dataset.metric_kind != kind:
                raise ValueError(
                    f"dataset keyed as {kind.value} holds {dataset.metric_kind.value} observations"
                )
        return v

    @classmethod
    def from_observations(
        cls,
        observations: Iterable[Observation],
        medications: Iterable[Medication] = (),
    ) -> "HealthDataset":
        """Group a flat list of observations into one dataset per metric kind."""
        grouped: dict[MetricKind, list[Observation]] = {}
        for observation in observations:
            grouped.setdefault(observation.metric_kind, []).append(observation)
        return cls(
            datasets={
                kind: Dataset(metric_kind=kind, observations=tuple(items))
                for kind, items in grouped.items()
            },
            medications=tuple(medications),
        )

    def get(self, kind: MetricKind) -> Dataset | None:
        return self.datasets.get(kind)

    @property
    def active_medications(self) -> list[Medication]:
        return [m for m in self.medications if m.is_active]


class Goal(BaseModel):
    """User-defined goal. The engine derives progress but never mutates it."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: GoalType
    target_value: float = Field(allow_inf_nan=False)
    current_value: float = Field(allow_inf_nan=False)
    unit: str
    start_date: date
    target_date: date


class GoalProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: Goal
    percentage: float = Field(ge=0.0, description="May exceed 100")
    status: GoalStatus
    days_remaining: int | None = None


class Insight(BaseModel):
    """Actionable recommendation produced fresh on every invocation."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: InsightType
    title: str
    message: str
    priority: Priority
    suggested_action: str


class StatisticsResult(BaseModel):
    """
    Summary of one series.

    Quartiles and the median are nearest-rank values taken from the sorted
    series (the element at index floor(n * p)), so they are always observed
    readings and never interpolated.
    """

    model_config = ConfigDict(frozen=True)

    mean: float
    min: float
    max: float
    std_dev: float = Field(ge=0.0, description="Population standard deviation")
    count: int = Field(gt=0)
    median: float
    variance: float = Field(ge=0.0)
    q1: float
    q3: float
    range: float = Field(ge=0.0, description="max - min")
    iqr: float = Field(ge=0.0, description="q3 - q1")


class TrendResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection
    confidence: Confidence
    change_absolute: float
    change_relative: float = Field(description="Change in percent of the series level")
    count: int = Field(ge=2)


class RegressionResult(BaseModel):
    """Least-squares line of value against days since the first observation."""

    model_config = ConfigDict(frozen=True)

    slope_per_day: float
    intercept: float
    r_squared: float = Field(ge=0.0, le=1.0)
    count: int = Field(ge=2)


class CalorieEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_calories: float = Field(gt=0.0)
    activity_multiplier: float = Field(gt=0.0)
    goal_factor: float = Field(gt=0.0)
    daily_calories: int = Field(gt=0)


class NutrientRequirements(BaseModel):
    """Daily macronutrient targets in grams derived from the caloric target."""

    model_config = ConfigDict(frozen=True)

    daily_calories: int = Field(gt=0)
    life_stage: LifeStage
    protein_g: float = Field(ge=0.0)
    fat_g: float = Field(ge=0.0)
    carbohydrate_g: float = Field(ge=0.0)
    fiber_g: float = Field(ge=0.0)


class PortionSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    cups_per_day: float = Field(ge=0.0)
    cups_per_meal: float = Field(ge=0.0)
    grams_per_day: int = Field(ge=0)
    grams_per_meal: int = Field(ge=0)
    meals_per_day: int = Field(gt=0)


class HealthScoreBreakdown(BaseModel):
    """Composite score together with what it was built from."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    components: dict[str, float]
    effective_weights: dict[str, float]
    missing_fields: tuple[str, ...] = ()
    weight_status: WeightStatus | None = None


class PetHealthReport(BaseModel):
    """Everything derived for one pet in a single analyzer run."""

    model_config = ConfigDict(frozen=True)

    pet_id: str
    as_of: date | None = None
    statistics: dict[MetricKind, StatisticsResult] = Field(default_factory=dict)
    trends: dict[MetricKind, TrendResult] = Field(default_factory=dict)
    regressions: dict[MetricKind, RegressionResult] = Field(default_factory=dict)
    skipped_metrics: dict[MetricKind, str] = Field(default_factory=dict)
    calories: CalorieEstimate
    nutrients: NutrientRequirements
    health: HealthScoreBreakdown
    goals: list[GoalProgress] = Field(default_factory=list)
    insights: list[Insight] = Field(default_factory=list)
    overall_status: OverallStatus
