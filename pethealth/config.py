"""
Configuration management with environment variable support and validation.

Design principles:
- One frozen config model per component, composed into EngineConfig
- Validation at startup (fail fast)
- Every table and threshold is a named, overridable field
"""

import os
from collections.abc import Callable
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from pethealth.services.calorie_estimator import CalorieConfig
from pethealth.services.goal_progress import GoalConfig
from pethealth.services.health_score import HealthScoreConfig
from pethealth.services.insight_engine import SUPPLEMENTARY_RULES, InsightConfig
from pethealth.services.statistics_calculator import StatisticsConfig

# Load environment variables from .env file
load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Environment = Literal["development", "staging", "production"]


class AnalysisConfig(BaseModel):
    """Thresholds for the overall status of a pet health report."""

    model_config = ConfigDict(frozen=True)

    critical_score_threshold: int = Field(
        default=50, ge=0, le=100, description="Scores below this are critical"
    )
    warning_score_threshold: int = Field(
        default=80, ge=0, le=100, description="Scores below this need attention"
    )

    @model_validator(mode="after")
    def thresholds_ordered(self) -> "AnalysisConfig":
        if self.critical_score_threshold > self.warning_score_threshold:
            raise ValueError("critical_score_threshold must not exceed warning_score_threshold")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class EngineConfig(BaseModel):
    """Main configuration combining all components."""

    model_config = ConfigDict(frozen=True)

    environment: Environment = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    calories: CalorieConfig = Field(default_factory=CalorieConfig)
    health_score: HealthScoreConfig = Field(default_factory=HealthScoreConfig)
    insights: InsightConfig = Field(default_factory=InsightConfig)
    goals: GoalConfig = Field(default_factory=GoalConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "EngineConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Environment:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def _parse_weights(val: str) -> dict[str, float]:
    """Parse 'weight=0.4,bcs=0.2,...' into a weights table."""
    weights = {}
    for pair in val.split(","):
        if not pair.strip():
            continue
        name, sep, number = pair.partition("=")
        if not sep:
            raise ValueError(f"malformed HEALTH_SCORE_WEIGHTS entry: {pair!r}")
        weights[name.strip().lower()] = float(number)
    return weights


def _parse_rule_ids(val: str) -> frozenset[str]:
    """Parse 'body-condition,senior-care' (or 'all') into a set of rule ids."""
    if val.strip().lower() == "all":
        return frozenset(SUPPLEMENTARY_RULES)
    return frozenset(part.strip().lower() for part in val.split(",") if part.strip())


def _overrides(mapping: dict[str, tuple[str, Callable[[str], object]]]) -> dict[str, object]:
    """Collect field overrides for the environment variables that are set."""
    values: dict[str, object] = {}
    for env_name, (field, caster) in mapping.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip():
            values[field] = caster(raw)
    return values


def load_config_from_env() -> EngineConfig:
    """Load configuration from environment variables with validation."""

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    statistics_config = StatisticsConfig(
        **_overrides(
            {
                "TREND_STABLE_THRESHOLD_PERCENT": ("stable_threshold_percent", float),
                "TREND_HIGH_CONFIDENCE_CHANGE_PERCENT": ("high_confidence_change_percent", float),
            }
        )
    )

    health_score_values = {}
    if raw_weights := os.getenv("HEALTH_SCORE_WEIGHTS"):
        health_score_values["weights"] = _parse_weights(raw_weights)
    health_score_config = HealthScoreConfig(**health_score_values)

    insight_config = InsightConfig(
        **_overrides(
            {
                "MEDICATION_ADHERENCE_THRESHOLD": ("medication_adherence_threshold", float),
                "WEIGHT_DEVIATION_KG": ("weight_deviation_kg", float),
                "INSIGHT_CHECKUP_INTERVAL_DAYS": ("checkup_interval_days", int),
                "MAX_INSIGHTS": ("max_insights", int),
                "INSIGHT_SUPPLEMENTARY_RULES": ("enabled_supplementary_rules", _parse_rule_ids),
            }
        )
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return EngineConfig(
        environment=environment,
        debug=debug,
        statistics=statistics_config,
        health_score=health_score_config,
        insights=insight_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> EngineConfig:
    """Get cached engine configuration."""
    return load_config_from_env()


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n📈 TRENDS")
    print(f"Stable Threshold: {config.statistics.stable_threshold_percent}%")
    print(f"High Confidence Change: {config.statistics.high_confidence_change_percent}%")

    print("\n🩺 HEALTH SCORE")
    weights = ", ".join(f"{name}={w:.2f}" for name, w in config.health_score.weights.items())
    print(f"Weights: {weights}")

    print("\n💡 INSIGHTS")
    print(f"Medication Adherence Threshold: {config.insights.medication_adherence_threshold}%")
    print(f"Weight Deviation: {config.insights.weight_deviation_kg}kg")
    print(f"Checkup Interval: {config.insights.checkup_interval_days or 'standing reminder'}")
    enabled = ", ".join(sorted(config.insights.enabled_supplementary_rules)) or "none"
    print(f"Supplementary Rules: {enabled}")


if __name__ == "__main__":
    print_config_summary()
