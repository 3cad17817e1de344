"""
Demonstration of the full pet health analysis pipeline.

This script runs:
1. Configuration loading
2. Analysis of sample pets with different health profiles
3. Error handling for structurally invalid input

Run with: python run_demo.py
"""

from datetime import date, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pethealth.config import get_config, print_config_summary
from pethealth.domain.errors import PetHealthEngineError
from pethealth.domain.models import (
    ActivityLevel,
    Dataset,
    Goal,
    GoalType,
    HealthDataset,
    Medication,
    MetricKind,
    Pet,
    PetHealthReport,
    Species,
)
from pethealth.observability import configure_logging
from pethealth.services.calorie_estimator import calculate_portion_size
from pethealth.services.health_analysis import PetHealthAnalyzer
from pethealth.services.insight_engine import SUPPLEMENTARY_RULES

console = Console()

AS_OF = date(2024, 6, 1)

STATUS_STYLES = {"healthy": "green", "warning": "yellow", "critical": "red"}

# typical dry kibble
DEMO_KCAL_PER_CUP = 350


def weekly(kind: MetricKind, values: list[float]) -> Dataset:
    start = AS_OF - timedelta(weeks=len(values) - 1)
    return Dataset.from_values(kind, [(start + timedelta(weeks=i), v) for i, v in enumerate(values)])


def sample_pets() -> list[tuple[Pet, HealthDataset, list[Goal]]]:
    """Sample pets covering a healthy, an overweight and a medicated profile."""
    luna = Pet(
        id="luna",
        name="Luna",
        species=Species.CAT,
        current_weight_kg=4.2,
        ideal_weight_kg=4.2,
        body_condition_score=5,
        activity_level=ActivityLevel.MEDIUM,
        age_years=3,
        last_vet_visit=date(2024, 3, 12),
    )
    luna_data = HealthDataset(
        datasets={MetricKind.WEIGHT: weekly(MetricKind.WEIGHT, [4.2, 4.2, 4.25, 4.2, 4.2])}
    )

    max_ = Pet(
        id="max",
        name="Max",
        species=Species.DOG,
        current_weight_kg=30.0,
        ideal_weight_kg=25.5,
        body_condition_score=7,
        activity_level="moderate",
        age_years=8,
    )
    max_data = HealthDataset(
        datasets={
            MetricKind.WEIGHT: weekly(
                MetricKind.WEIGHT, [31.8, 31.5, 31.2, 30.9, 30.6, 30.4, 30.2, 30.1, 30.0, 30.0]
            ),
            MetricKind.ACTIVITY_MINUTES: weekly(
                MetricKind.ACTIVITY_MINUTES, [30, 35, 40, 40, 45, 45]
            ),
            MetricKind.TEMPERATURE: weekly(MetricKind.TEMPERATURE, [38.6]),
        }
    )
    max_goals = [
        Goal(
            id="max-weight",
            type=GoalType.WEIGHT_LOSS,
            target_value=4.5,
            current_value=1.8,
            unit="kg",
            start_date=date(2024, 3, 1),
            target_date=date(2024, 9, 1),
        ),
        Goal(
            id="max-walks",
            type=GoalType.ACTIVITY,
            target_value=60,
            current_value=45,
            unit="minutes",
            start_date=date(2024, 3, 1),
            target_date=date(2024, 9, 1),
        ),
    ]

    bella = Pet(
        id="bella",
        name="Bella",
        species=Species.DOG,
        current_weight_kg=11.8,
        ideal_weight_kg=12.0,
        activity_level=ActivityLevel.LOW,
        age_years=11,
    )
    bella_data = HealthDataset(
        datasets={
            MetricKind.WEIGHT: weekly(MetricKind.WEIGHT, [13.4, 13.0, 12.6, 12.1, 11.8]),
            MetricKind.HEART_RATE: weekly(MetricKind.HEART_RATE, [92, 96, 94, 98]),
        },
        medications=(
            Medication(name="Enalapril", start_date=date(2024, 1, 10), adherence_percent=72.0),
            Medication(name="Pimobendan", start_date=date(2024, 1, 10), adherence_percent=95.0),
        ),
    )
    bella_goals = [
        Goal(
            id="bella-meds",
            type=GoalType.MEDICATION,
            target_value=60,
            current_value=60,
            unit="doses",
            start_date=date(2024, 5, 1),
            target_date=date(2024, 6, 30),
        )
    ]

    return [
        (luna, luna_data, []),
        (max_, max_data, max_goals),
        (bella, bella_data, bella_goals),
    ]


def print_report(pet: Pet, report: PetHealthReport) -> None:
    console.print(
        Panel(
            f"🐾 {pet.display_name} ({pet.species.value}) - "
            f"{report.overall_status.upper()}",
            style=STATUS_STYLES[report.overall_status],
        )
    )

    summary = Table(title="Summary")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Health Score", f"{report.health.score}/100")
    summary.add_row(
        "Weight Status", report.health.weight_status.value if report.health.weight_status else "-"
    )
    summary.add_row("Daily Calories", f"{report.calories.daily_calories} kcal")
    nutrients = report.nutrients
    summary.add_row(
        f"Nutrients ({nutrients.life_stage.value})",
        f"protein {nutrients.protein_g:.0f}g, fat {nutrients.fat_g:.0f}g, "
        f"carbs {nutrients.carbohydrate_g:.0f}g, fiber {nutrients.fiber_g:.0f}g",
    )
    portion = calculate_portion_size(nutrients, DEMO_KCAL_PER_CUP)
    summary.add_row(
        "Portion",
        f"{portion.cups_per_meal} cups x {portion.meals_per_day} meals "
        f"({portion.grams_per_day}g/day at {DEMO_KCAL_PER_CUP} kcal/cup)",
    )
    if report.health.missing_fields:
        summary.add_row("Excluded", ", ".join(report.health.missing_fields))
    console.print(summary)

    if report.trends or report.skipped_metrics:
        trends = Table(title="Trends")
        trends.add_column("Metric", style="cyan")
        trends.add_column("Direction", style="magenta")
        trends.add_column("Change", style="green")
        trends.add_column("Confidence", style="yellow")
        for kind, trend in report.trends.items():
            trends.add_row(
                kind.value,
                trend.direction.value,
                f"{trend.change_relative:+.1f}%",
                trend.confidence.value,
            )
        for kind, reason in report.skipped_metrics.items():
            trends.add_row(kind.value, "-", "-", reason)
        console.print(trends)

    for progress in report.goals:
        console.print(
            f"🎯 {progress.goal.type.value}: {progress.percentage:.1f}% "
            f"({progress.status.value}, {progress.days_remaining} days left)"
        )

    for insight in report.insights:
        style = {"error": "red", "warning": "yellow"}.get(insight.type.value, "white")
        console.print(f"  [{insight.priority.value}] {insight.title}: {insight.message}", style=style)


def demo_analysis() -> bool:
    console.print(Panel("📊 Analyzing Sample Pets", style="blue"))

    # show every rule, including the opt-in ones
    config = get_config()
    insights = config.insights.model_copy(
        update={"enabled_supplementary_rules": frozenset(SUPPLEMENTARY_RULES)}
    )
    analyzer = PetHealthAnalyzer(config.model_copy(update={"insights": insights}))
    for pet, data, goals in sample_pets():
        report = analyzer.analyze(pet, data, goals, as_of=AS_OF)
        print_report(pet, report)
    return True


def demo_error_handling() -> bool:
    console.print(Panel("🛡️ Error Handling", style="blue"))

    analyzer = PetHealthAnalyzer(get_config())
    pet = Pet(id="ghost", species=Species.OTHER, current_weight_kg=0.0)
    try:
        analyzer.analyze(pet, HealthDataset())
    except PetHealthEngineError as e:
        console.print(f"✅ Rejected invalid input: {e}", style="green")
        return True

    console.print("❌ Invalid weight was not rejected", style="red")
    return False


def main() -> None:
    config = get_config()
    configure_logging(config.logging)

    console.print(Panel("🐕 Pet Health Engine - Demo", style="bold blue"))
    print_config_summary()

    results = [
        ("Analysis", demo_analysis()),
        ("Error Handling", demo_error_handling()),
    ]

    table = Table(title="Demo Results")
    table.add_column("Step", style="cyan")
    table.add_column("Result", style="white")
    for name, ok in results:
        table.add_row(name, "✅ OK" if ok else "❌ FAILED")
    console.print(table)


if __name__ == "__main__":
    main()
