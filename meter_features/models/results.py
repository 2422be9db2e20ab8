"""Per-unit result types.

A unit (one meter id) either succeeds with a mapping of feature values or
fails with a :class:`Failure`. Failures are values, not exceptions, so an
iteration run always covers every requested id.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Failure:
    """Marker recorded in place of features when a unit faults.

    Attributes:
        stage: Where the fault happened ("fetch" or "feature:<name>")
        error_type: Exception class name
        message: Exception message
    """

    stage: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> "Failure":
        return cls(stage=stage, error_type=type(exc).__name__, message=str(exc))

    def __str__(self) -> str:
        return f"Failure({self.stage}: {self.error_type}: {self.message})"


PerUnitResult = Union[dict[str, Any], Failure]

# Insertion order follows iteration order
RunResult = dict[str, PerUnitResult]


def is_failure(value: Any) -> bool:
    """Check whether a per-unit result is the failure marker."""
    return isinstance(value, Failure)


@dataclass
class UnitOutcome:
    """Success-or-failure result of running one unit."""

    meter_id: str
    features: Optional[dict[str, Any]] = None
    failure: Optional[Failure] = None

    def __post_init__(self) -> None:
        if (self.features is None) == (self.failure is None):
            raise ValueError("UnitOutcome needs exactly one of features or failure")

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def value(self) -> PerUnitResult:
        """The entry stored in a RunResult for this unit."""
        return self.features if self.failure is None else self.failure

    @classmethod
    def success(cls, meter_id: str, features: dict[str, Any]) -> "UnitOutcome":
        return cls(meter_id=meter_id, features=features)

    @classmethod
    def failed(cls, meter_id: str, failure: Failure) -> "UnitOutcome":
        return cls(meter_id=meter_id, failure=failure)
