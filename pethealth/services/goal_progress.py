"""Progress percentage and status classification for user-defined goals."""

from collections.abc import Iterable
from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from pethealth.domain.errors import InvalidGoalError
from pethealth.domain.models import Goal, GoalProgress, GoalStatus

logger = structlog.get_logger(__name__)


class GoalConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    completed_percent: float = Field(default=100.0, gt=0.0)
    on_track_percent: float = Field(default=75.0, ge=0.0)
    percentage_decimals: int = Field(default=2, ge=0, le=6)

    @model_validator(mode="after")
    def thresholds_ordered(self) -> "GoalConfig":
        if self.on_track_percent > self.completed_percent:
            raise ValueError("on_track_percent must not exceed completed_percent")
        return self


class GoalProgressTracker:
    """
    Derives progress for goals without mutating them.

    Progress is current / target and has no upper bound: exceeding an activity
    goal yields more than 100 percent.
    """

    def __init__(self, config: GoalConfig | None = None) -> None:
        self.config = config or GoalConfig()
        self.logger = logger.bind(component="goal_progress_tracker")

    def compute_progress(self, goal: Goal, as_of: date | None = None) -> GoalProgress:
        if goal.target_value <= 0:
            raise InvalidGoalError(goal.target_value)

        raw = goal.current_value / goal.target_value * 100.0
        # status is derived from the rounded value so the two never disagree
        percentage = round(max(0.0, raw), self.config.percentage_decimals)

        if percentage >= self.config.completed_percent:
            status = GoalStatus.COMPLETED
        elif percentage >= self.config.on_track_percent:
            status = GoalStatus.ON_TRACK
        else:
            status = GoalStatus.NEEDS_ATTENTION

        days_remaining = (goal.target_date - as_of).days if as_of is not None else None

        self.logger.debug(
            "goal_progress_computed",
            goal_id=goal.id,
            goal_type=goal.type.value,
            percentage=percentage,
            status=status.value,
        )

        return GoalProgress(
            goal=goal, percentage=percentage, status=status, days_remaining=days_remaining
        )

    def compute_all(self, goals: Iterable[Goal], as_of: date | None = None) -> list[GoalProgress]:
        return [self.compute_progress(goal, as_of) for goal in goals]


_default_tracker = GoalProgressTracker()


def compute_progress(goal: Goal, as_of: date | None = None) -> GoalProgress:
    return _default_tracker.compute_progress(goal, as_of)
