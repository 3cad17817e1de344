"""
Rule-based insights and recommendations.

The engine evaluates an ordered, deterministic list of rules against the pet
snapshot and metrics that were already computed by the other components
(health score, goal progress, trends). Each rule emits at most one insight.
Nothing is emitted for conditions that are already satisfied, so an empty
list means no concerns were detected.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from pethealth.domain.models import (
    ActivityLevel,
    GoalProgress,
    GoalStatus,
    HealthDataset,
    Insight,
    InsightType,
    MetricKind,
    Pet,
    Priority,
    Species,
    TrendDirection,
    TrendResult,
)

logger = structlog.get_logger(__name__)

WEIGHT_MANAGEMENT = "weight-management"
INCREASE_ACTIVITY = "increase-activity"
VACCINATION_REMINDER = "vaccination-reminder"
MEDICATION_ADHERENCE = "medication-adherence"
BODY_CONDITION = "body-condition"
RAPID_WEIGHT_CHANGE = "rapid-weight-change"
LOW_HEALTH_SCORE = "low-health-score"
GOAL_NEEDS_ATTENTION = "goal-needs-attention"
SENIOR_CARE = "senior-care"

CORE_RULES = (
    WEIGHT_MANAGEMENT,
    INCREASE_ACTIVITY,
    VACCINATION_REMINDER,
    MEDICATION_ADHERENCE,
)

# Off unless listed in InsightConfig.enabled_supplementary_rules
SUPPLEMENTARY_RULES = (
    BODY_CONDITION,
    RAPID_WEIGHT_CHANGE,
    LOW_HEALTH_SCORE,
    GOAL_NEEDS_ATTENTION,
    SENIOR_CARE,
)

RULE_IDS = CORE_RULES + SUPPLEMENTARY_RULES


def _default_senior_ages() -> dict[Species, float]:
    return {Species.DOG: 7.0, Species.CAT: 7.0}


class InsightConfig(BaseModel):
    """
    Rule thresholds and rule selection.

    The core rules run by default. Supplementary rules (body condition, rapid
    weight change, low score, lagging goals, senior care) only run when listed
    in ``enabled_supplementary_rules``, so a pet in good standing gets at most
    the checkup reminder. Any rule can be switched off by id.
    """

    model_config = ConfigDict(frozen=True)

    weight_deviation_kg: float = Field(default=1.0, ge=0.0)
    weight_deviation_high_kg: float = Field(default=3.0, ge=0.0)
    medication_adherence_threshold: float = Field(default=80.0, ge=0.0, le=100.0)

    # None keeps the vaccination reminder as a standing recommendation
    checkup_interval_days: int | None = Field(default=None, gt=0)

    bcs_underweight_max: int = Field(default=3, ge=1, le=9)
    bcs_overweight_min: int = Field(default=7, ge=1, le=9)
    rapid_weight_change_percent: float = Field(default=10.0, gt=0.0)
    low_health_score_threshold: int = Field(default=60, ge=0, le=100)
    senior_age_years: dict[Species, float] = Field(default_factory=_default_senior_ages)

    max_insights: int | None = Field(default=10, gt=0)
    enabled_supplementary_rules: frozenset[str] = frozenset()
    disabled_rules: frozenset[str] = frozenset()

    @model_validator(mode="after")
    def validate_thresholds(self) -> "InsightConfig":
        if self.weight_deviation_high_kg < self.weight_deviation_kg:
            raise ValueError("weight_deviation_high_kg must not be below weight_deviation_kg")
        if self.bcs_underweight_max >= self.bcs_overweight_min:
            raise ValueError("bcs_underweight_max must be below bcs_overweight_min")
        unknown = set(self.disabled_rules) - set(RULE_IDS)
        if unknown:
            raise ValueError(f"unknown insight rules: {sorted(unknown)}")
        not_supplementary = set(self.enabled_supplementary_rules) - set(SUPPLEMENTARY_RULES)
        if not_supplementary:
            raise ValueError(f"not supplementary insight rules: {sorted(not_supplementary)}")
        return self

    def is_enabled(self, rule_id: str) -> bool:
        if rule_id in self.disabled_rules:
            return False
        if rule_id in SUPPLEMENTARY_RULES:
            return rule_id in self.enabled_supplementary_rules
        return True


@dataclass(frozen=True)
class InsightContext:
    """Inputs shared by every rule in one invocation."""

    pet: Pet
    health_data: HealthDataset
    health_score: int
    goal_progress: Sequence[GoalProgress]
    trends: Mapping[MetricKind, TrendResult]
    as_of: date | None


Rule = Callable[[InsightContext], Insight | None]


class InsightEngine:
    """Evaluates the rule pipeline and returns insights ordered by priority."""

    def __init__(self, config: InsightConfig | None = None) -> None:
        self.config = config or InsightConfig()
        self.logger = logger.bind(component="insight_engine")
        self._rules: list[tuple[str, Rule]] = [
            (WEIGHT_MANAGEMENT, self._weight_deviation_rule),
            (INCREASE_ACTIVITY, self._low_activity_rule),
            (VACCINATION_REMINDER, self._checkup_rule),
            (MEDICATION_ADHERENCE, self._medication_adherence_rule),
            (BODY_CONDITION, self._body_condition_rule),
            (RAPID_WEIGHT_CHANGE, self._rapid_weight_change_rule),
            (LOW_HEALTH_SCORE, self._health_score_rule),
            (GOAL_NEEDS_ATTENTION, self._goal_rule),
            (SENIOR_CARE, self._senior_rule),
        ]

    def generate_insights(
        self,
        pet: Pet,
        health_data: HealthDataset,
        health_score: int,
        goal_progress: Sequence[GoalProgress] = (),
        trends: Mapping[MetricKind, TrendResult] | None = None,
        as_of: date | None = None,
    ) -> list[Insight]:
        """
        Run every enabled rule once.

        The score, goal progress and trends are taken as given so that all
        insights of one invocation describe the same snapshot.
        """
        context = InsightContext(
            pet=pet,
            health_data=health_data,
            health_score=health_score,
            goal_progress=goal_progress,
            trends=trends or {},
            as_of=as_of,
        )

        insights = []
        for rule_id, rule in self._rules:
            if not self.config.is_enabled(rule_id):
                continue
            insight = rule(context)
            if insight is not None:
                insights.append(insight)

        # sorted() is stable, so rule order breaks ties within a priority
        insights = sorted(insights, key=lambda i: i.priority.sort_key)
        if self.config.max_insights is not None:
            insights = insights[: self.config.max_insights]

        self.logger.debug(
            "insights_generated",
            pet_id=pet.id,
            count=len(insights),
            ids=[i.id for i in insights],
        )
        return insights

    def _weight_deviation_rule(self, ctx: InsightContext) -> Insight | None:
        pet = ctx.pet
        if pet.ideal_weight_kg is None:
            return None
        diff = pet.current_weight_kg - pet.ideal_weight_kg
        if abs(diff) <= self.config.weight_deviation_kg:
            return None

        overweight = diff > 0
        return Insight(
            id=WEIGHT_MANAGEMENT,
            type=InsightType.WARNING,
            title="Weight Loss Plan" if overweight else "Weight Gain Plan",
            message=(
                f"{pet.display_name} is {abs(diff):.1f}kg {'above' if overweight else 'below'} "
                f"ideal weight. Consider adjusting diet and exercise to "
                f"{'reduce' if overweight else 'increase'} weight by {abs(diff):.1f}kg."
            ),
            priority=(
                Priority.HIGH if abs(diff) > self.config.weight_deviation_high_kg else Priority.MEDIUM
            ),
            suggested_action="create-weight-plan",
        )

    def _low_activity_rule(self, ctx: InsightContext) -> Insight | None:
        if ctx.pet.activity_level != ActivityLevel.LOW:
            return None
        return Insight(
            id=INCREASE_ACTIVITY,
            type=InsightType.WARNING,
            title="Increase Activity Level",
            message=(
                "Low activity may affect overall health and weight management. "
                "Consider increasing daily exercise and playtime."
            ),
            priority=Priority.MEDIUM,
            suggested_action="plan-activities",
        )

    def _checkup_rule(self, ctx: InsightContext) -> Insight | None:
        interval = self.config.checkup_interval_days
        last_visit = ctx.pet.last_vet_visit
        message = "Schedule annual vaccination and health checkup with your veterinarian."

        if interval is not None and last_visit is not None and ctx.as_of is not None:
            days_since = (ctx.as_of - last_visit).days
            if days_since < interval:
                return None
            message = f"Last veterinary visit was {days_since} days ago. {message}"

        return Insight(
            id=VACCINATION_REMINDER,
            type=InsightType.INFO,
            title="Annual Vaccination Due",
            message=message,
            priority=Priority.HIGH,
            suggested_action="schedule-vet-visit",
        )

    def _medication_adherence_rule(self, ctx: InsightContext) -> Insight | None:
        missed = [
            m
            for m in ctx.health_data.active_medications
            if m.adherence_percent < self.config.medication_adherence_threshold
        ]
        if not missed:
            return None
        return Insight(
            id=MEDICATION_ADHERENCE,
            type=InsightType.ERROR,
            title="Medication Adherence",
            message=(
                f"Missed doses detected for {', '.join(m.name for m in missed)}. "
                "Set up reminders."
            ),
            priority=Priority.HIGH,
            suggested_action="setup-reminders",
        )

    def _body_condition_rule(self, ctx: InsightContext) -> Insight | None:
        bcs = ctx.pet.body_condition_score
        if bcs is None:
            return None
        if bcs <= self.config.bcs_underweight_max:
            condition = "underweight"
        elif bcs >= self.config.bcs_overweight_min:
            condition = "overweight"
        else:
            return None
        return Insight(
            id=BODY_CONDITION,
            type=InsightType.WARNING,
            title="Body Condition",
            message=f"Body condition score of {bcs}/9 indicates {condition} condition.",
            priority=Priority.MEDIUM,
            suggested_action="consult-veterinarian",
        )

    def _rapid_weight_change_rule(self, ctx: InsightContext) -> Insight | None:
        trend = ctx.trends.get(MetricKind.WEIGHT)
        if trend is None or trend.direction == TrendDirection.STABLE:
            return None
        if abs(trend.change_relative) <= self.config.rapid_weight_change_percent:
            return None

        losing = trend.direction == TrendDirection.DECREASING
        return Insight(
            id=RAPID_WEIGHT_CHANGE,
            type=InsightType.WARNING,
            title="Rapid Weight Loss" if losing else "Rapid Weight Gain",
            message=(
                f"{ctx.pet.display_name} has {'lost' if losing else 'gained'} "
                f"{abs(trend.change_relative):.1f}% body weight over the recorded period."
            ),
            priority=Priority.HIGH if losing else Priority.MEDIUM,
            suggested_action="schedule-vet-visit" if losing else "adjust-nutrition-plan",
        )

    def _health_score_rule(self, ctx: InsightContext) -> Insight | None:
        if ctx.health_score >= self.config.low_health_score_threshold:
            return None
        return Insight(
            id=LOW_HEALTH_SCORE,
            type=InsightType.ERROR,
            title="Low Health Score",
            message=(
                f"{ctx.pet.display_name}'s health score is {ctx.health_score}/100. "
                "Review weight, activity and medication with your veterinarian."
            ),
            priority=Priority.HIGH,
            suggested_action="consult-veterinarian",
        )

    def _goal_rule(self, ctx: InsightContext) -> Insight | None:
        lagging = [p for p in ctx.goal_progress if p.status == GoalStatus.NEEDS_ATTENTION]
        if not lagging:
            return None
        summary = ", ".join(
            f"{p.goal.type.value.replace('_', ' ')} ({p.percentage:.0f}%)" for p in lagging
        )
        return Insight(
            id=GOAL_NEEDS_ATTENTION,
            type=InsightType.INFO,
            title="Goals Need Attention",
            message=f"Progress is behind on: {summary}.",
            priority=Priority.LOW,
            suggested_action="review-goals",
        )

    def _senior_rule(self, ctx: InsightContext) -> Insight | None:
        pet = ctx.pet
        senior_age = self.config.senior_age_years.get(pet.species)
        if pet.age_years is None or senior_age is None or pet.age_years < senior_age:
            return None
        return Insight(
            id=SENIOR_CARE,
            type=InsightType.INFO,
            title="Senior Pet Care",
            message="Consider senior-specific health monitoring and nutrition.",
            priority=Priority.MEDIUM,
            suggested_action="schedule-senior-checkup",
        )


_default_engine = InsightEngine()


def generate_insights(
    pet: Pet,
    health_data: HealthDataset,
    health_score: int,
    goal_progress: Sequence[GoalProgress] = (),
    trends: Mapping[MetricKind, TrendResult] | None = None,
    as_of: date | None = None,
) -> list[Insight]:
    return _default_engine.generate_insights(
        pet, health_data, health_score, goal_progress, trends, as_of
    )
