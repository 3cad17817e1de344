"""
Tests for the rule-based insight engine.

Covers:
- Each rule firing (and staying silent) on its own condition
- Priority ordering with rule order breaking ties
- The standing vaccination reminder and its optional cadence gating
- Configuration: disabled rules, opt-in supplementary rules and the insight cap
- Property: a pet in good standing gets at most the checkup reminder
"""

from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pethealth.domain.models import (
    ActivityLevel,
    Confidence,
    Goal,
    GoalProgress,
    GoalStatus,
    GoalType,
    HealthDataset,
    InsightType,
    Medication,
    MedicationStatus,
    MetricKind,
    Pet,
    Priority,
    Species,
    TrendDirection,
    TrendResult,
)
from pethealth.services.insight_engine import (
    BODY_CONDITION,
    GOAL_NEEDS_ATTENTION,
    INCREASE_ACTIVITY,
    LOW_HEALTH_SCORE,
    MEDICATION_ADHERENCE,
    RAPID_WEIGHT_CHANGE,
    SENIOR_CARE,
    SUPPLEMENTARY_RULES,
    VACCINATION_REMINDER,
    WEIGHT_MANAGEMENT,
    InsightConfig,
    InsightEngine,
    generate_insights,
)

NO_DATA = HealthDataset()
AS_OF = date(2024, 6, 1)


def make_pet(**overrides: object) -> Pet:
    values: dict[str, object] = {
        "id": "pet-1",
        "name": "Buddy",
        "species": Species.DOG,
        "current_weight_kg": 25.0,
        "ideal_weight_kg": 25.0,
        "body_condition_score": 5,
        "activity_level": ActivityLevel.MEDIUM,
        "age_years": 3.0,
    }
    values.update(overrides)
    return Pet(**values)  # type: ignore[arg-type]


def weight_trend(direction: TrendDirection, change_relative: float) -> TrendResult:
    return TrendResult(
        direction=direction,
        confidence=Confidence.MEDIUM,
        change_absolute=change_relative / 4,
        change_relative=change_relative,
        count=6,
    )


def ids(insights: list) -> list[str]:
    return [i.id for i in insights]


@pytest.fixture
def engine() -> InsightEngine:
    return InsightEngine()


@pytest.fixture
def full_engine() -> InsightEngine:
    """Engine with every supplementary rule switched on."""
    return InsightEngine(InsightConfig(enabled_supplementary_rules=frozenset(SUPPLEMENTARY_RULES)))


class TestHealthyPet:
    def test_only_standing_reminder(self, engine: InsightEngine) -> None:
        insights = engine.generate_insights(make_pet(), NO_DATA, health_score=100)

        assert ids(insights) == [VACCINATION_REMINDER]
        reminder = insights[0]
        assert reminder.type == InsightType.INFO
        assert reminder.priority == Priority.HIGH
        assert reminder.suggested_action == "schedule-vet-visit"

    def test_highly_active_pet_gets_no_weight_or_activity_warning(
        self, engine: InsightEngine
    ) -> None:
        pet = make_pet(activity_level=ActivityLevel.HIGH, body_condition_score=None)

        insights = engine.generate_insights(pet, NO_DATA, health_score=85)

        assert ids(insights) == [VACCINATION_REMINDER]

    def test_no_insights_when_checkup_is_recent(self) -> None:
        engine = InsightEngine(InsightConfig(checkup_interval_days=365))
        pet = make_pet(last_vet_visit=date(2024, 3, 1))

        assert engine.generate_insights(pet, NO_DATA, health_score=100, as_of=AS_OF) == []

    def test_overdue_checkup_mentions_days_since_visit(self) -> None:
        engine = InsightEngine(InsightConfig(checkup_interval_days=365))
        pet = make_pet(last_vet_visit=date(2023, 5, 1))

        insights = engine.generate_insights(pet, NO_DATA, health_score=100, as_of=AS_OF)

        assert ids(insights) == [VACCINATION_REMINDER]
        assert "397 days ago" in insights[0].message

    def test_disabled_rule_yields_empty_list(self) -> None:
        engine = InsightEngine(InsightConfig(disabled_rules=frozenset({VACCINATION_REMINDER})))

        assert engine.generate_insights(make_pet(), NO_DATA, health_score=100) == []

    @pytest.mark.parametrize(
        "species,weight,bcs,age",
        [
            (Species.DOG, 20.0, 7, 3.0),
            (Species.CAT, 4.0, None, 9.0),
            (Species.DOG, 30.0, 2, 12.0),
        ],
    )
    def test_supplementary_rules_off_by_default(
        self, engine: InsightEngine, species: Species, weight: float, bcs: int | None, age: float
    ) -> None:
        pet = make_pet(
            species=species,
            current_weight_kg=weight,
            ideal_weight_kg=weight,
            body_condition_score=bcs,
            activity_level=ActivityLevel.HIGH,
            age_years=age,
        )
        trends = {MetricKind.WEIGHT: weight_trend(TrendDirection.DECREASING, -12.0)}

        insights = engine.generate_insights(pet, NO_DATA, health_score=85, trends=trends)

        assert ids(insights) == [VACCINATION_REMINDER]


GOOD_STANDING_GOAL = Goal(
    type=GoalType.ACTIVITY,
    target_value=60,
    current_value=10,
    unit="minutes",
    start_date=date(2024, 5, 1),
    target_date=date(2024, 7, 1),
)


class TestGoodStandingProperty:
    @given(
        species=st.sampled_from(list(Species)),
        weight=st.floats(min_value=0.5, max_value=80.0, allow_nan=False),
        bcs=st.none() | st.integers(min_value=1, max_value=9),
        age=st.none() | st.floats(min_value=0.0, max_value=20.0, allow_nan=False),
        score=st.integers(min_value=80, max_value=100),
        change=st.floats(min_value=-50.0, max_value=50.0, allow_nan=False),
        goal_percentage=st.floats(min_value=0.0, max_value=150.0, allow_nan=False),
    )
    def test_at_most_the_checkup_reminder(
        self,
        species: Species,
        weight: float,
        bcs: int | None,
        age: float | None,
        score: int,
        change: float,
        goal_percentage: float,
    ) -> None:
        pet = make_pet(
            species=species,
            current_weight_kg=weight,
            ideal_weight_kg=weight,
            body_condition_score=bcs,
            activity_level=ActivityLevel.HIGH,
            age_years=age,
        )
        direction = TrendDirection.INCREASING if change > 0 else TrendDirection.DECREASING
        trends = {MetricKind.WEIGHT: weight_trend(direction, change)}
        progress = [
            GoalProgress(
                goal=GOOD_STANDING_GOAL,
                percentage=goal_percentage,
                status=GoalStatus.NEEDS_ATTENTION,
            )
        ]

        insights = generate_insights(
            pet, NO_DATA, score, goal_progress=progress, trends=trends, as_of=AS_OF
        )

        assert set(ids(insights)) <= {VACCINATION_REMINDER}


class TestWeightManagement:
    @pytest.mark.parametrize(
        "current,priority,title",
        [
            (30.0, Priority.HIGH, "Weight Loss Plan"),
            (27.0, Priority.MEDIUM, "Weight Loss Plan"),
            (23.0, Priority.MEDIUM, "Weight Gain Plan"),
            (21.0, Priority.HIGH, "Weight Gain Plan"),
        ],
    )
    def test_deviation_beyond_tolerance(
        self, engine: InsightEngine, current: float, priority: Priority, title: str
    ) -> None:
        insights = engine.generate_insights(
            make_pet(current_weight_kg=current), NO_DATA, health_score=90
        )

        weight = next(i for i in insights if i.id == WEIGHT_MANAGEMENT)
        assert weight.priority == priority
        assert weight.title == title
        assert weight.type == InsightType.WARNING
        assert weight.suggested_action == "create-weight-plan"

    @pytest.mark.parametrize("current", [24.0, 25.5, 26.0])
    def test_within_tolerance_is_silent(self, engine: InsightEngine, current: float) -> None:
        insights = engine.generate_insights(
            make_pet(current_weight_kg=current), NO_DATA, health_score=90
        )

        assert WEIGHT_MANAGEMENT not in ids(insights)

    def test_unknown_ideal_weight_is_silent(self, engine: InsightEngine) -> None:
        insights = engine.generate_insights(
            make_pet(ideal_weight_kg=None), NO_DATA, health_score=90
        )

        assert WEIGHT_MANAGEMENT not in ids(insights)


class TestActivityAndMedication:
    def test_low_activity(self, engine: InsightEngine) -> None:
        insights = engine.generate_insights(
            make_pet(activity_level=ActivityLevel.LOW), NO_DATA, health_score=90
        )

        activity = next(i for i in insights if i.id == INCREASE_ACTIVITY)
        assert activity.priority == Priority.MEDIUM
        assert activity.suggested_action == "plan-activities"

    def test_missed_doses_on_active_medication(self, engine: InsightEngine) -> None:
        data = HealthDataset(
            medications=(
                Medication(name="Carprofen", start_date=date(2024, 1, 1), adherence_percent=70.0),
                Medication(
                    name="Apoquel",
                    start_date=date(2023, 1, 1),
                    status=MedicationStatus.INACTIVE,
                    adherence_percent=10.0,
                ),
            )
        )

        insights = engine.generate_insights(make_pet(), data, health_score=90)

        adherence = next(i for i in insights if i.id == MEDICATION_ADHERENCE)
        assert adherence.type == InsightType.ERROR
        assert adherence.priority == Priority.HIGH
        assert "Carprofen" in adherence.message
        assert "Apoquel" not in adherence.message

    def test_adherence_at_threshold_is_silent(self, engine: InsightEngine) -> None:
        data = HealthDataset(
            medications=(
                Medication(name="Carprofen", start_date=date(2024, 1, 1), adherence_percent=80.0),
            )
        )

        insights = engine.generate_insights(make_pet(), data, health_score=90)

        assert MEDICATION_ADHERENCE not in ids(insights)


class TestDerivedMetricRules:
    @pytest.mark.parametrize("bcs,condition", [(2, "underweight"), (8, "overweight")])
    def test_body_condition_extremes(
        self, full_engine: InsightEngine, bcs: int, condition: str
    ) -> None:
        insights = full_engine.generate_insights(
            make_pet(body_condition_score=bcs), NO_DATA, health_score=90
        )

        body = next(i for i in insights if i.id == BODY_CONDITION)
        assert condition in body.message

    def test_rapid_weight_loss_is_high_priority(self, full_engine: InsightEngine) -> None:
        trends = {MetricKind.WEIGHT: weight_trend(TrendDirection.DECREASING, -12.0)}

        insights = full_engine.generate_insights(
            make_pet(), NO_DATA, health_score=90, trends=trends
        )

        rapid = next(i for i in insights if i.id == RAPID_WEIGHT_CHANGE)
        assert rapid.priority == Priority.HIGH
        assert rapid.title == "Rapid Weight Loss"

    def test_rapid_weight_gain_is_medium_priority(self, full_engine: InsightEngine) -> None:
        trends = {MetricKind.WEIGHT: weight_trend(TrendDirection.INCREASING, 15.0)}

        insights = full_engine.generate_insights(
            make_pet(), NO_DATA, health_score=90, trends=trends
        )

        rapid = next(i for i in insights if i.id == RAPID_WEIGHT_CHANGE)
        assert rapid.priority == Priority.MEDIUM

    def test_moderate_weight_change_is_silent(self, full_engine: InsightEngine) -> None:
        trends = {MetricKind.WEIGHT: weight_trend(TrendDirection.DECREASING, -5.0)}

        insights = full_engine.generate_insights(
            make_pet(), NO_DATA, health_score=90, trends=trends
        )

        assert RAPID_WEIGHT_CHANGE not in ids(insights)

    def test_low_health_score(self, full_engine: InsightEngine) -> None:
        insights = full_engine.generate_insights(make_pet(), NO_DATA, health_score=55)

        low = next(i for i in insights if i.id == LOW_HEALTH_SCORE)
        assert low.type == InsightType.ERROR
        assert "55/100" in low.message

    def test_lagging_goal(self, full_engine: InsightEngine) -> None:
        goal = Goal(
            type=GoalType.ACTIVITY,
            target_value=60,
            current_value=10,
            unit="minutes",
            start_date=date(2024, 5, 1),
            target_date=date(2024, 7, 1),
        )
        progress = [GoalProgress(goal=goal, percentage=16.67, status=GoalStatus.NEEDS_ATTENTION)]

        insights = full_engine.generate_insights(
            make_pet(), NO_DATA, health_score=90, goal_progress=progress
        )

        lagging = next(i for i in insights if i.id == GOAL_NEEDS_ATTENTION)
        assert lagging.priority == Priority.LOW
        assert "activity (17%)" in lagging.message

    @pytest.mark.parametrize(
        "species,age,expected",
        [
            (Species.DOG, 8.0, True),
            (Species.CAT, 7.0, True),
            (Species.DOG, 6.5, False),
            (Species.RABBIT, 9.0, False),
        ],
    )
    def test_senior_care(
        self, full_engine: InsightEngine, species: Species, age: float, expected: bool
    ) -> None:
        insights = full_engine.generate_insights(
            make_pet(species=species, age_years=age), NO_DATA, health_score=90
        )

        assert (SENIOR_CARE in ids(insights)) is expected


class TestOrdering:
    def test_high_priority_first_then_rule_order(self, full_engine: InsightEngine) -> None:
        pet = make_pet(
            current_weight_kg=30.0,
            activity_level=ActivityLevel.LOW,
            age_years=9.0,
        )

        insights = full_engine.generate_insights(pet, NO_DATA, health_score=90)

        assert ids(insights) == [
            WEIGHT_MANAGEMENT,
            VACCINATION_REMINDER,
            INCREASE_ACTIVITY,
            SENIOR_CARE,
        ]

    def test_insight_cap(self) -> None:
        engine = InsightEngine(InsightConfig(max_insights=2))
        pet = make_pet(current_weight_kg=30.0, activity_level=ActivityLevel.LOW)

        insights = engine.generate_insights(pet, NO_DATA, health_score=90)

        assert ids(insights) == [WEIGHT_MANAGEMENT, VACCINATION_REMINDER]

    def test_same_input_same_output(self) -> None:
        pet = make_pet(current_weight_kg=28.0, body_condition_score=8, age_years=10.0)

        first = generate_insights(pet, NO_DATA, 70, as_of=AS_OF)
        second = generate_insights(pet, NO_DATA, 70, as_of=AS_OF)

        assert first == second


class TestInsightConfig:
    def test_unknown_rule_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown insight rules"):
            InsightConfig(disabled_rules=frozenset({"walk-more"}))

    def test_bcs_bands_must_not_overlap(self) -> None:
        with pytest.raises(ValueError):
            InsightConfig(bcs_underweight_max=6, bcs_overweight_min=5)

    def test_custom_adherence_threshold(self) -> None:
        engine = InsightEngine(InsightConfig(medication_adherence_threshold=95.0))
        data = HealthDataset(
            medications=(
                Medication(name="Thyroxine", start_date=date(2024, 1, 1), adherence_percent=90.0),
            )
        )

        insights = engine.generate_insights(make_pet(), data, health_score=90)

        assert MEDICATION_ADHERENCE in ids(insights)

    def test_core_rule_cannot_be_opted_in(self) -> None:
        with pytest.raises(ValueError, match="not supplementary insight rules"):
            InsightConfig(enabled_supplementary_rules=frozenset({WEIGHT_MANAGEMENT}))

    def test_opt_in_is_per_rule(self) -> None:
        engine = InsightEngine(InsightConfig(enabled_supplementary_rules=frozenset({SENIOR_CARE})))
        pet = make_pet(body_condition_score=8, age_years=10.0)

        insights = engine.generate_insights(pet, NO_DATA, health_score=40)

        assert ids(insights) == [VACCINATION_REMINDER, SENIOR_CARE]

    def test_disabled_wins_over_enabled(self) -> None:
        config = InsightConfig(
            enabled_supplementary_rules=frozenset({SENIOR_CARE}),
            disabled_rules=frozenset({SENIOR_CARE}),
        )

        assert not config.is_enabled(SENIOR_CARE)
        assert config.is_enabled(WEIGHT_MANAGEMENT)
        assert not config.is_enabled(BODY_CONDITION)
