"""
Error taxonomy for the health analytics engine.

Hard errors signal structurally invalid input and always reach the caller
unmodified. Absent-but-optional data is reported with MissingFieldWarning
and handled by redistribution or defaults instead.
"""


class PetHealthEngineError(Exception):
    """Base class for hard engine errors."""


class InsufficientDataError(PetHealthEngineError, ValueError):
    """Raised when a series is empty or too short for the requested computation."""

    def __init__(self, message: str, required: int = 1, available: int = 0) -> None:
        super().__init__(message)
        self.required = required
        self.available = available


class InvalidWeightError(PetHealthEngineError, ValueError):
    """Raised when a weight that the computation depends on is not positive."""

    def __init__(self, weight_kg: float, field: str = "current_weight_kg") -> None:
        super().__init__(f"{field} must be positive, got {weight_kg}")
        self.weight_kg = weight_kg
        self.field = field


class InvalidGoalError(PetHealthEngineError, ValueError):
    """Raised when a goal cannot yield a progress value (non-positive target)."""

    def __init__(self, target_value: float) -> None:
        super().__init__(f"goal target_value must be positive, got {target_value}")
        self.target_value = target_value


class MissingFieldWarning(UserWarning):
    """An optional field is absent; the affected component is excluded or defaulted."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"optional field '{field}' is missing")
        self.field = field
