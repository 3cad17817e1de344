"""
Tests for configuration management in `pethealth/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Threshold and weight overrides from the environment
- Opt-in supplementary insight rules
- get_config cache behavior
- EngineConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from pethealth.config import (
    AnalysisConfig,
    EngineConfig,
    LoggingConfig,
    get_config,
    load_config_from_env,
)
from pethealth.services.health_score import ACTIVITY, BCS, MEDICATION, WEIGHT
from pethealth.services.insight_engine import BODY_CONDITION, SENIOR_CARE, SUPPLEMENTARY_RULES

ENGINE_ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "TREND_STABLE_THRESHOLD_PERCENT",
    "TREND_HIGH_CONFIDENCE_CHANGE_PERCENT",
    "HEALTH_SCORE_WEIGHTS",
    "MEDICATION_ADHERENCE_THRESHOLD",
    "WEIGHT_DEVIATION_KG",
    "INSIGHT_CHECKUP_INTERVAL_DAYS",
    "MAX_INSIGHTS",
    "INSIGHT_SUPPLEMENTARY_RULES",
)


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    """Ensure get_config cache is cleared before and after each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test from an environment without engine overrides."""
    for name in ENGINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.logging.level == "INFO"
    assert config.insights.checkup_interval_days is None
    assert config.health_score.weights == {
        WEIGHT: 0.35,
        BCS: 0.25,
        ACTIVITY: 0.20,
        MEDICATION: 0.20,
    }


def test_production_uses_json_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")

    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    config = load_config_from_env()
    assert config.logging.level == "INFO"

    # Known level should pass through
    monkeypatch.setenv("LOG_LEVEL", "debug")
    config = load_config_from_env()
    assert config.logging.level == "DEBUG"


def test_threshold_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TREND_STABLE_THRESHOLD_PERCENT", "3.5")
    monkeypatch.setenv("MEDICATION_ADHERENCE_THRESHOLD", "90")
    monkeypatch.setenv("WEIGHT_DEVIATION_KG", "0.5")
    monkeypatch.setenv("INSIGHT_CHECKUP_INTERVAL_DAYS", "365")
    monkeypatch.setenv("MAX_INSIGHTS", "5")

    config = load_config_from_env()

    assert config.statistics.stable_threshold_percent == 3.5
    assert config.insights.medication_adherence_threshold == 90.0
    assert config.insights.weight_deviation_kg == 0.5
    assert config.insights.checkup_interval_days == 365
    assert config.insights.max_insights == 5


def test_health_score_weights_parsing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEALTH_SCORE_WEIGHTS", "weight=0.4, bcs=0.2, activity=0.2, medication=0.2")

    config = load_config_from_env()

    assert config.health_score.weights == {
        WEIGHT: 0.4,
        BCS: 0.2,
        ACTIVITY: 0.2,
        MEDICATION: 0.2,
    }


@pytest.mark.parametrize(
    "raw",
    [
        "weight=0.5,bcs=0.5,activity=0.5,medication=0.5",
        "weight=1.0",
        "weight:0.4,bcs=0.2,activity=0.2,medication=0.2",
    ],
)
def test_invalid_health_score_weights_rejected(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("HEALTH_SCORE_WEIGHTS", raw)

    with pytest.raises(ValueError):
        load_config_from_env()


def test_blank_override_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_INSIGHTS", "  ")

    config = load_config_from_env()

    assert config.insights.max_insights == 10


def test_get_config_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    # First call populates cache
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_engine_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        EngineConfig(environment="production", debug=True, logging=LoggingConfig())


def test_analysis_thresholds_must_be_ordered() -> None:
    with pytest.raises(ValueError, match="critical_score_threshold"):
        AnalysisConfig(critical_score_threshold=90, warning_score_threshold=80)


def test_supplementary_rules_off_unless_listed(monkeypatch: pytest.MonkeyPatch) -> None:
    config = load_config_from_env()
    assert config.insights.enabled_supplementary_rules == frozenset()

    monkeypatch.setenv("INSIGHT_SUPPLEMENTARY_RULES", "Senior-Care, body-condition")
    config = load_config_from_env()
    assert config.insights.enabled_supplementary_rules == {SENIOR_CARE, BODY_CONDITION}

    monkeypatch.setenv("INSIGHT_SUPPLEMENTARY_RULES", "all")
    config = load_config_from_env()
    assert config.insights.enabled_supplementary_rules == frozenset(SUPPLEMENTARY_RULES)


def test_core_rule_in_supplementary_list_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INSIGHT_SUPPLEMENTARY_RULES", "weight-management")

    with pytest.raises(ValueError):
        load_config_from_env()
