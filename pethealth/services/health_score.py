"""
Composite 0-100 health score.

Four sub-scores (weight status, body condition, activity adequacy, medication
adherence) are normalized to 0-100 and combined with policy weights. When an
optional input is missing, its component is excluded and its weight is
redistributed proportionally among the components that are present, so the
effective weights always sum to 1.0. The default weights are configurable
policy, not derived from data.
"""

import math
import warnings
from collections.abc import Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pethealth.domain.errors import InsufficientDataError, InvalidWeightError, MissingFieldWarning
from pethealth.domain.models import (
    ActivityLevel,
    HealthDataset,
    HealthScoreBreakdown,
    Pet,
    Species,
    WeightStatus,
)
from pethealth.services.statistics_calculator import round_half_up

logger = structlog.get_logger(__name__)

WEIGHT = "weight"
BCS = "bcs"
ACTIVITY = "activity"
MEDICATION = "medication"
COMPONENTS = (WEIGHT, BCS, ACTIVITY, MEDICATION)


def _default_weights() -> dict[str, float]:
    return {WEIGHT: 0.35, BCS: 0.25, ACTIVITY: 0.20, MEDICATION: 0.20}


def _default_activity_needs() -> dict[Species, ActivityLevel]:
    return {
        Species.DOG: ActivityLevel.MEDIUM,
        Species.CAT: ActivityLevel.LOW,
        Species.RABBIT: ActivityLevel.MEDIUM,
        Species.BIRD: ActivityLevel.LOW,
        Species.OTHER: ActivityLevel.LOW,
    }


class HealthScoreConfig(BaseModel):
    """Weighting policy and sub-score curves."""

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = Field(default_factory=_default_weights)

    # weight ratio curve: 100 at 1.0, linear down to 0 at the bounds
    weight_ratio_lower_bound: float = Field(default=0.8, gt=0.0, lt=1.0)
    weight_ratio_upper_bound: float = Field(default=1.3, gt=1.0)

    bcs_ideal: int = Field(default=5, ge=1, le=9)
    bcs_penalty_per_point: float = Field(default=25.0, ge=0.0)

    activity_needs: dict[Species, ActivityLevel] = Field(default_factory=_default_activity_needs)
    default_activity_need: ActivityLevel = ActivityLevel.LOW
    adequate_activity_score: float = Field(default=100.0, ge=0.0, le=100.0)
    under_active_score: float = Field(default=60.0, ge=0.0, le=100.0)

    no_medication_score: float = Field(default=100.0, ge=0.0, le=100.0)

    # weight status bands, as in the pet profile
    underweight_ratio: float = Field(default=0.95, gt=0.0, lt=1.0)
    overweight_ratio: float = Field(default=1.05, gt=1.0)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        unknown = set(v) - set(COMPONENTS)
        if unknown:
            raise ValueError(f"unknown score components: {sorted(unknown)}")
        missing = set(COMPONENTS) - set(v)
        if missing:
            raise ValueError(f"weights missing for components: {sorted(missing)}")
        if any(w < 0 for w in v.values()):
            raise ValueError("score weights must be non-negative")
        if not math.isclose(math.fsum(v.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"score weights must sum to 1.0, got {math.fsum(v.values())}")
        return v

    @model_validator(mode="after")
    def under_active_not_above_adequate(self) -> "HealthScoreConfig":
        if self.under_active_score > self.adequate_activity_score:
            raise ValueError("under_active_score must not exceed adequate_activity_score")
        return self


def redistribute_weights(
    weights: Mapping[str, float], present: set[str]
) -> dict[str, float]:
    """
    Scale the weights of the present components so they sum to 1.0.

    Relative ratios among present components are preserved. Raises
    InsufficientDataError when the present components carry no weight at all.
    """
    total = math.fsum(weights[name] for name in present)
    if total <= 0:
        raise InsufficientDataError(
            f"no weighted score components available (present: {sorted(present)})"
        )
    return {name: weights[name] / total for name in COMPONENTS if name in present}


class HealthScoreCalculator:
    """Combines weight, body condition, activity and medication adherence into one score."""

    def __init__(self, config: HealthScoreConfig | None = None) -> None:
        self.config = config or HealthScoreConfig()
        self.logger = logger.bind(component="health_score_calculator")

    def compute_health_score(self, pet: Pet, health_data: HealthDataset) -> int:
        """Integer score in [0, 100]."""
        return self.compute_health_score_breakdown(pet, health_data).score

    def compute_health_score_breakdown(
        self, pet: Pet, health_data: HealthDataset
    ) -> HealthScoreBreakdown:
        """Score with its sub-scores, effective weights and excluded fields."""
        if pet.current_weight_kg <= 0:
            raise InvalidWeightError(pet.current_weight_kg)
        if pet.ideal_weight_kg is not None and pet.ideal_weight_kg <= 0:
            raise InvalidWeightError(pet.ideal_weight_kg, field="ideal_weight_kg")

        components: dict[str, float] = {}
        missing: list[str] = []

        weight_score = self.weight_score(pet)
        if weight_score is None:
            missing.append("ideal_weight_kg")
        else:
            components[WEIGHT] = weight_score

        bcs_score = self.body_condition_score(pet)
        if bcs_score is None:
            missing.append("body_condition_score")
        else:
            components[BCS] = bcs_score

        components[ACTIVITY] = self.activity_score(pet)
        components[MEDICATION] = self.medication_score(health_data)

        for field in missing:
            warnings.warn(MissingFieldWarning(field), stacklevel=2)
            self.logger.info("optional_component_excluded", pet_id=pet.id, field=field)

        effective_weights = redistribute_weights(self.config.weights, set(components))
        weighted = math.fsum(components[name] * w for name, w in effective_weights.items())
        score = min(100, max(0, round_half_up(weighted)))

        self.logger.debug(
            "health_score_computed",
            pet_id=pet.id,
            score=score,
            components=components,
            missing_fields=missing,
        )

        return HealthScoreBreakdown(
            score=score,
            components=components,
            effective_weights=effective_weights,
            missing_fields=tuple(missing),
            weight_status=self.classify_weight_status(pet),
        )

    def weight_score(self, pet: Pet) -> float | None:
        if pet.ideal_weight_kg is None:
            return None
        ratio = pet.current_weight_kg / pet.ideal_weight_kg
        lower = self.config.weight_ratio_lower_bound
        upper = self.config.weight_ratio_upper_bound
        if ratio <= 1.0:
            score = (ratio - lower) / (1.0 - lower) * 100.0
        else:
            score = (upper - ratio) / (upper - 1.0) * 100.0
        return _clamp(score)

    def body_condition_score(self, pet: Pet) -> float | None:
        if pet.body_condition_score is None:
            return None
        deviation = abs(pet.body_condition_score - self.config.bcs_ideal)
        return _clamp(100.0 - deviation * self.config.bcs_penalty_per_point)

    def activity_score(self, pet: Pet) -> float:
        need = self.config.activity_needs.get(pet.species, self.config.default_activity_need)
        if pet.activity_level.rank >= need.rank:
            return self.config.adequate_activity_score
        return self.config.under_active_score

    def medication_score(self, health_data: HealthDataset) -> float:
        active = health_data.active_medications
        if not active:
            return self.config.no_medication_score
        return _clamp(math.fsum(m.adherence_percent for m in active) / len(active))

    def classify_weight_status(self, pet: Pet) -> WeightStatus | None:
        if pet.ideal_weight_kg is None or pet.ideal_weight_kg <= 0:
            return None
        ratio = pet.current_weight_kg / pet.ideal_weight_kg
        if ratio < self.config.underweight_ratio:
            return WeightStatus.UNDERWEIGHT
        if ratio > self.config.overweight_ratio:
            return WeightStatus.OVERWEIGHT
        return WeightStatus.IDEAL


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


_default_calculator = HealthScoreCalculator()


def compute_health_score(pet: Pet, health_data: HealthDataset) -> int:
    return _default_calculator.compute_health_score(pet, health_data)


def compute_health_score_breakdown(pet: Pet, health_data: HealthDataset) -> HealthScoreBreakdown:
    return _default_calculator.compute_health_score_breakdown(pet, health_data)


def classify_weight_status(pet: Pet) -> WeightStatus | None:
    return _default_calculator.classify_weight_status(pet)
