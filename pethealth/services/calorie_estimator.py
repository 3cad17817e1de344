"""
Daily caloric target estimation and the nutrition plan built on it.

base = coefficient * weight_kg ** exponent (allometric scaling: larger animals
use less energy per kilogram), then scaled by an activity multiplier and a
nutrition goal factor. The coefficients are fixed policy, a simplification of
veterinary RER/MER tables rather than a personalized model.

Macronutrient targets split the daily calories by species and life stage
percentages (4 kcal/g for protein, fiber and carbohydrate, 9 kcal/g for fat);
carbohydrates take whatever energy is left.
"""

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from pethealth.domain.errors import InvalidWeightError
from pethealth.domain.models import (
    ActivityLevel,
    CalorieEstimate,
    LifeStage,
    NutrientRequirements,
    NutritionGoal,
    Pet,
    PortionSize,
    Species,
)
from pethealth.services.statistics_calculator import round_half_up

logger = structlog.get_logger(__name__)

KCAL_PER_GRAM_PROTEIN = 4.0
KCAL_PER_GRAM_FAT = 9.0
KCAL_PER_GRAM_FIBER = 4.0
KCAL_PER_GRAM_CARBOHYDRATE = 4.0


def _default_exponents() -> dict[Species, float]:
    return {
        Species.DOG: 0.75,
        Species.CAT: 0.67,
        Species.RABBIT: 0.75,
        Species.BIRD: 0.75,
        Species.OTHER: 0.75,
    }


def _default_activity_multipliers() -> dict[ActivityLevel, float]:
    return {ActivityLevel.LOW: 1.2, ActivityLevel.MEDIUM: 1.6, ActivityLevel.HIGH: 2.0}


def _default_goal_factors() -> dict[NutritionGoal, float]:
    return {
        NutritionGoal.LOSE_WEIGHT: 0.8,
        NutritionGoal.GAIN_WEIGHT: 1.2,
        NutritionGoal.MAINTAIN: 1.0,
    }


def _default_senior_ages() -> dict[Species, float]:
    return {Species.DOG: 7.0, Species.CAT: 7.0}


def _by_stage(young: float, adult: float, senior: float) -> dict[LifeStage, float]:
    return {LifeStage.YOUNG: young, LifeStage.ADULT: adult, LifeStage.SENIOR: senior}


def _default_protein_percent() -> dict[Species, dict[LifeStage, float]]:
    return {
        Species.DOG: _by_stage(25.0, 20.0, 22.0),
        Species.CAT: _by_stage(32.0, 28.0, 30.0),
        Species.RABBIT: _by_stage(16.0, 14.0, 15.0),
        Species.BIRD: _by_stage(20.0, 16.0, 18.0),
    }


def _default_fat_percent() -> dict[Species, dict[LifeStage, float]]:
    return {
        Species.DOG: _by_stage(12.0, 8.0, 6.0),
        Species.CAT: _by_stage(10.0, 9.0, 8.0),
        Species.RABBIT: _by_stage(4.0, 3.0, 3.5),
        Species.BIRD: _by_stage(8.0, 6.0, 7.0),
    }


def _default_fiber_percent() -> dict[Species, float]:
    return {Species.DOG: 4.0, Species.CAT: 2.0, Species.RABBIT: 20.0, Species.BIRD: 8.0}


class CalorieConfig(BaseModel):
    """Metabolic and nutrient tables used by the estimator."""

    model_config = ConfigDict(frozen=True)

    base_coefficient: float = Field(default=70.0, gt=0.0)
    species_exponents: dict[Species, float] = Field(default_factory=_default_exponents)
    default_exponent: float = Field(
        default=0.75, gt=0.0, lt=1.0, description="Used for species missing from the table"
    )
    activity_multipliers: dict[ActivityLevel, float] = Field(
        default_factory=_default_activity_multipliers
    )
    default_activity_multiplier: float = Field(default=1.6, gt=0.0)
    goal_factors: dict[NutritionGoal, float] = Field(default_factory=_default_goal_factors)

    # life stage bands; species without a senior age stay adult
    young_max_age_years: float = Field(default=1.0, ge=0.0)
    senior_age_years: dict[Species, float] = Field(default_factory=_default_senior_ages)

    # percent of daily calories
    protein_percent: dict[Species, dict[LifeStage, float]] = Field(
        default_factory=_default_protein_percent
    )
    fat_percent: dict[Species, dict[LifeStage, float]] = Field(
        default_factory=_default_fat_percent
    )
    fiber_percent: dict[Species, float] = Field(default_factory=_default_fiber_percent)
    default_protein_percent: float = Field(default=20.0, ge=0.0, le=100.0)
    default_fat_percent: float = Field(default=8.0, ge=0.0, le=100.0)
    default_fiber_percent: float = Field(default=4.0, ge=0.0, le=100.0)

    grams_per_cup: float = Field(default=120.0, gt=0.0)

    @field_validator("species_exponents")
    @classmethod
    def exponents_sublinear(cls, v: dict[Species, float]) -> dict[Species, float]:
        # a positive exponent below 1 keeps the estimate strictly increasing in weight
        for species, exponent in v.items():
            if not 0.0 < exponent < 1.0:
                raise ValueError(f"exponent for {species.value} must be in (0, 1), got {exponent}")
        return v

    @field_validator("activity_multipliers", "goal_factors")
    @classmethod
    def factors_positive(cls, v: dict) -> dict:
        for key, factor in v.items():
            if factor <= 0:
                raise ValueError(f"factor for {key.value} must be positive, got {factor}")
        return v

    @field_validator("protein_percent", "fat_percent")
    @classmethod
    def stage_percents_in_range(
        cls, v: dict[Species, dict[LifeStage, float]]
    ) -> dict[Species, dict[LifeStage, float]]:
        for species, by_stage in v.items():
            for stage, percent in by_stage.items():
                if not 0.0 <= percent <= 100.0:
                    raise ValueError(
                        f"percent for {species.value}/{stage.value} must be in [0, 100], "
                        f"got {percent}"
                    )
        return v

    @field_validator("fiber_percent")
    @classmethod
    def fiber_percent_in_range(cls, v: dict[Species, float]) -> dict[Species, float]:
        for species, percent in v.items():
            if not 0.0 <= percent <= 100.0:
                raise ValueError(f"fiber percent for {species.value} must be in [0, 100]")
        return v


class CalorieEstimator:
    """Computes a target daily caloric intake from species, weight and activity."""

    def __init__(self, config: CalorieConfig | None = None) -> None:
        self.config = config or CalorieConfig()
        self.logger = logger.bind(component="calorie_estimator")

    def estimate_calorie_breakdown(
        self, pet: Pet, goal: NutritionGoal | None = None
    ) -> CalorieEstimate:
        """Estimate with every intermediate factor exposed."""
        weight = pet.current_weight_kg
        if weight <= 0:
            raise InvalidWeightError(weight)

        exponent = self.config.species_exponents.get(pet.species, self.config.default_exponent)
        base_calories = self.config.base_coefficient * weight**exponent
        activity_multiplier = self.config.activity_multipliers.get(
            pet.activity_level, self.config.default_activity_multiplier
        )
        goal_factor = 1.0 if goal is None else self.config.goal_factors.get(goal, 1.0)

        daily_calories = max(1, round_half_up(base_calories * activity_multiplier * goal_factor))

        self.logger.debug(
            "calories_estimated",
            pet_id=pet.id,
            species=pet.species.value,
            weight_kg=weight,
            activity_level=pet.activity_level.value,
            goal=goal.value if goal else None,
            daily_calories=daily_calories,
        )

        return CalorieEstimate(
            base_calories=base_calories,
            activity_multiplier=activity_multiplier,
            goal_factor=goal_factor,
            daily_calories=daily_calories,
        )

    def estimate_daily_calories(self, pet: Pet, goal: NutritionGoal | None = None) -> int:
        """Target intake in kcal/day; raises InvalidWeightError for non-positive weight."""
        return self.estimate_calorie_breakdown(pet, goal).daily_calories

    def classify_life_stage(self, pet: Pet) -> LifeStage:
        """Life stage from age; a pet of unknown age is treated as an adult."""
        if pet.age_years is None:
            return LifeStage.ADULT
        if pet.age_years < self.config.young_max_age_years:
            return LifeStage.YOUNG
        senior_age = self.config.senior_age_years.get(pet.species)
        if senior_age is not None and pet.age_years >= senior_age:
            return LifeStage.SENIOR
        return LifeStage.ADULT

    def estimate_nutrient_requirements(
        self, pet: Pet, goal: NutritionGoal | None = None
    ) -> NutrientRequirements:
        """Daily protein, fat, carbohydrate and fiber targets in grams."""
        return self.split_nutrients(pet, self.estimate_calorie_breakdown(pet, goal))

    def split_nutrients(self, pet: Pet, estimate: CalorieEstimate) -> NutrientRequirements:
        """Split an existing caloric target into macronutrient grams."""
        stage = self.classify_life_stage(pet)
        protein_percent = self.config.protein_percent.get(pet.species, {}).get(
            stage, self.config.default_protein_percent
        )
        fat_percent = self.config.fat_percent.get(pet.species, {}).get(
            stage, self.config.default_fat_percent
        )
        fiber_percent = self.config.fiber_percent.get(
            pet.species, self.config.default_fiber_percent
        )

        kcal = estimate.daily_calories
        protein_g = kcal * protein_percent / 100 / KCAL_PER_GRAM_PROTEIN
        fat_g = kcal * fat_percent / 100 / KCAL_PER_GRAM_FAT
        fiber_g = kcal * fiber_percent / 100 / KCAL_PER_GRAM_FIBER
        remaining = (
            kcal
            - protein_g * KCAL_PER_GRAM_PROTEIN
            - fat_g * KCAL_PER_GRAM_FAT
            - fiber_g * KCAL_PER_GRAM_FIBER
        )
        carbohydrate_g = max(0.0, remaining / KCAL_PER_GRAM_CARBOHYDRATE)

        self.logger.debug(
            "nutrients_estimated",
            pet_id=pet.id,
            life_stage=stage.value,
            daily_calories=kcal,
        )

        return NutrientRequirements(
            daily_calories=kcal,
            life_stage=stage,
            protein_g=round(protein_g, 2),
            fat_g=round(fat_g, 2),
            carbohydrate_g=round(carbohydrate_g, 2),
            fiber_g=round(fiber_g, 2),
        )

    def calculate_portion_size(
        self,
        estimate: CalorieEstimate | NutrientRequirements,
        kcal_per_cup: float,
        meals_per_day: int = 2,
    ) -> PortionSize:
        """Cups and grams of a food with ``kcal_per_cup`` that meet the daily target."""
        if kcal_per_cup <= 0:
            raise ValueError(f"kcal_per_cup must be positive, got {kcal_per_cup}")
        if meals_per_day <= 0:
            raise ValueError(f"meals_per_day must be positive, got {meals_per_day}")

        cups_per_day = estimate.daily_calories / kcal_per_cup
        cups_per_meal = cups_per_day / meals_per_day
        return PortionSize(
            cups_per_day=round(cups_per_day, 2),
            cups_per_meal=round(cups_per_meal, 2),
            grams_per_day=round_half_up(cups_per_day * self.config.grams_per_cup),
            grams_per_meal=round_half_up(cups_per_meal * self.config.grams_per_cup),
            meals_per_day=meals_per_day,
        )


_default_estimator = CalorieEstimator()


def estimate_daily_calories(pet: Pet, goal: NutritionGoal | None = None) -> int:
    return _default_estimator.estimate_daily_calories(pet, goal)


def estimate_calorie_breakdown(pet: Pet, goal: NutritionGoal | None = None) -> CalorieEstimate:
    return _default_estimator.estimate_calorie_breakdown(pet, goal)


def estimate_nutrient_requirements(
    pet: Pet, goal: NutritionGoal | None = None
) -> NutrientRequirements:
    return _default_estimator.estimate_nutrient_requirements(pet, goal)


def calculate_portion_size(
    estimate: CalorieEstimate | NutrientRequirements, kcal_per_cup: float, meals_per_day: int = 2
) -> PortionSize:
    return _default_estimator.calculate_portion_size(estimate, kcal_per_cup, meals_per_day)
