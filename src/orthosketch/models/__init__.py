"""Pydantic models for OrthoSketch."""

from .geometry import (
    Point2D,
    Vector2D,
    BoundingBox2D,
    round_to,
)
from .sketch import (
    Scalar,
    ContourType,
    ConstraintType,
    DimensionType,
    VertexDefinition,
    LineElement,
    ArcElement,
    BezierQuadraticElement,
    BezierCubicElement,
    PathElement,
    Contour,
    CircleDefinition,
    Constraint,
    LineRef,
    DimensionElements,
    Dimension,
    ExtrusionSettings,
    SketchGeometry,
    Sketch,
)
from .results import (
    ExpressionValidation,
    CycleReport,
    ValidationReport,
    MoveResult,
    DimensionResult,
    OverConstraintReport,
)
from .solid import (
    ExtrusionProfile,
    Solid,
)

__all__ = [
    # Geometry
    "Point2D", "Vector2D", "BoundingBox2D", "round_to",
    # Sketch
    "Scalar", "ContourType", "ConstraintType", "DimensionType",
    "VertexDefinition", "LineElement", "ArcElement",
    "BezierQuadraticElement", "BezierCubicElement", "PathElement",
    "Contour", "CircleDefinition", "Constraint", "LineRef",
    "DimensionElements", "Dimension", "ExtrusionSettings",
    "SketchGeometry", "Sketch",
    # Results
    "ExpressionValidation", "CycleReport", "ValidationReport",
    "MoveResult", "DimensionResult", "OverConstraintReport",
    # Solid
    "ExtrusionProfile", "Solid",
]
