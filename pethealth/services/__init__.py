"""
Computation services for the engine.

Each component is a stateless calculator configured once and safe to call
from any number of threads. The end-to-end pipeline lives in
``pethealth.services.health_analysis``.
"""

from .calorie_estimator import CalorieConfig, CalorieEstimator
from .goal_progress import GoalConfig, GoalProgressTracker
from .health_score import HealthScoreCalculator, HealthScoreConfig
from .insight_engine import InsightConfig, InsightEngine
from .statistics_calculator import StatisticsCalculator, StatisticsConfig

__all__ = [
    "CalorieConfig",
    "CalorieEstimator",
    "GoalConfig",
    "GoalProgressTracker",
    "HealthScoreCalculator",
    "HealthScoreConfig",
    "InsightConfig",
    "InsightEngine",
    "StatisticsCalculator",
    "StatisticsConfig",
]
