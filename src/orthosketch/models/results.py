"""Result models returned by the sketch engine.

Every public operation answers with plain data: a number, a list of
messages, or one of these models. None of them hold references into the
sketch they were computed from.
"""

from pydantic import BaseModel, Field, computed_field
from typing import Optional, List, Dict

from .geometry import Point2D


class ExpressionValidation(BaseModel):
    """Outcome of checking an expression against known parameter names."""

    valid: bool = Field(description="Whether the expression is usable")
    error: Optional[str] = Field(default=None, description="Why it is not")


class CycleReport(BaseModel):
    """Outcome of parameter cycle detection."""

    circular: bool = Field(description="Whether a dependency cycle exists")
    cycle: Optional[List[str]] = Field(
        default=None,
        description="Parameter names along the cycle, first name repeated at the end"
    )


class ValidationReport(BaseModel):
    """Structural and expression problems found in a sketch.

    Errors block extrusion and saving; warnings are informational.
    """

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def valid(self) -> bool:
        """True when there are no errors."""
        return not self.errors


class MoveResult(BaseModel):
    """Outcome of proposing a vertex (or group) displacement."""

    blocked: bool = Field(default=False, description="Whether an active constraint rejected the move")
    reason: Optional[str] = Field(default=None, description="Why the move was blocked")
    updates: Dict[str, Point2D] = Field(
        default_factory=dict,
        description="Final position of every affected vertex, empty when blocked"
    )

    @classmethod
    def block(cls, reason: str) -> "MoveResult":
        """A blocked result carrying no updates."""
        return cls(blocked=True, reason=reason, updates={})


class DimensionResult(BaseModel):
    """Outcome of driving a dimension to a target value."""

    success: bool = Field(description="Whether the target could be realised")
    updates: Dict[str, Point2D] = Field(default_factory=dict)
    reason: Optional[str] = Field(default=None)

    @classmethod
    def fail(cls, reason: str) -> "DimensionResult":
        """A failed result carrying no updates."""
        return cls(success=False, updates={}, reason=reason)


class OverConstraintReport(BaseModel):
    """Constraints that cannot all hold at once."""

    is_over_constrained: bool = Field(default=False)
    conflicts: List[str] = Field(default_factory=list)
