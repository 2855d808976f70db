"""Geometry models for OrthoSketch.

Defines the evaluated 2D geometry types the solver and dimension engine work
on. Sketch coordinates are plain numbers here; expressions live in
``models.sketch``.
"""

from pydantic import BaseModel, Field, computed_field
from typing import Tuple, Iterable
import math


class Point2D(BaseModel):
    """2D point in the sketch plane."""

    x: float = Field(default=0.0, description="X coordinate")
    y: float = Field(default=0.0, description="Y coordinate")

    def to_tuple(self) -> Tuple[float, float]:
        """Convert to tuple."""
        return (self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        """Calculate Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def midpoint(self, other: "Point2D") -> "Point2D":
        """Point halfway between this point and another."""
        return Point2D(x=(self.x + other.x) / 2, y=(self.y + other.y) / 2)

    def rotate_about(self, pivot: "Point2D", angle_rad: float) -> "Point2D":
        """Rotate this point counterclockwise about a pivot."""
        c, s = math.cos(angle_rad), math.sin(angle_rad)
        dx = self.x - pivot.x
        dy = self.y - pivot.y
        return Point2D(x=pivot.x + dx * c - dy * s, y=pivot.y + dx * s + dy * c)

    def rounded(self, ndigits: int = 1) -> "Point2D":
        """Return a copy rounded to the given number of decimals."""
        return Point2D(x=round_to(self.x, ndigits), y=round_to(self.y, ndigits))

    def __add__(self, other: "Vector2D") -> "Point2D":
        """Add a vector to this point."""
        return Point2D(x=self.x + other.x, y=self.y + other.y)

    def __sub__(self, other: "Point2D") -> "Vector2D":
        """Subtract another point to get a vector."""
        return Vector2D(x=self.x - other.x, y=self.y - other.y)

    model_config = {
        "json_schema_extra": {
            "example": {"x": 50.0, "y": 25.0}
        }
    }


class Vector2D(BaseModel):
    """2D vector (direction and magnitude)."""

    x: float = Field(default=0.0, description="X component")
    y: float = Field(default=0.0, description="Y component")

    @computed_field
    @property
    def magnitude(self) -> float:
        """Calculate vector magnitude/length."""
        return math.hypot(self.x, self.y)

    @property
    def heading(self) -> float:
        """Direction of the vector in radians, measured from +X."""
        return math.atan2(self.y, self.x)

    def normalize(self) -> "Vector2D":
        """Return normalized (unit) vector."""
        mag = self.magnitude
        if mag == 0:
            return Vector2D(x=0, y=0)
        return Vector2D(x=self.x / mag, y=self.y / mag)

    def dot(self, other: "Vector2D") -> float:
        """Dot product with another vector."""
        return self.x * other.x + self.y * other.y

    def cross(self, other: "Vector2D") -> float:
        """Z component of the cross product with another vector."""
        return self.x * other.y - self.y * other.x

    def perpendicular(self) -> "Vector2D":
        """Left-hand normal (rotated 90 degrees counterclockwise)."""
        return Vector2D(x=-self.y, y=self.x)

    def __mul__(self, scalar: float) -> "Vector2D":
        """Multiply by scalar."""
        return Vector2D(x=self.x * scalar, y=self.y * scalar)

    def __rmul__(self, scalar: float) -> "Vector2D":
        """Right multiply by scalar."""
        return self.__mul__(scalar)

    def __add__(self, other: "Vector2D") -> "Vector2D":
        """Add another vector."""
        return Vector2D(x=self.x + other.x, y=self.y + other.y)

    def __neg__(self) -> "Vector2D":
        """Negate the vector."""
        return Vector2D(x=-self.x, y=-self.y)

    model_config = {
        "json_schema_extra": {
            "example": {"x": 1.0, "y": 0.0}
        }
    }


class BoundingBox2D(BaseModel):
    """Axis-aligned bounding box in the sketch plane."""

    min_x: float = Field(description="Smallest X")
    min_y: float = Field(description="Smallest Y")
    max_x: float = Field(description="Largest X")
    max_y: float = Field(description="Largest Y")

    @classmethod
    def from_points(cls, points: Iterable[Point2D]) -> "BoundingBox2D":
        """Smallest box containing every point. Empty input gives a zero box."""
        xs, ys = [], []
        for p in points:
            xs.append(p.x)
            ys.append(p.y)
        if not xs:
            return cls(min_x=0.0, min_y=0.0, max_x=0.0, max_y=0.0)
        return cls(min_x=min(xs), min_y=min(ys), max_x=max(xs), max_y=max(ys))

    @computed_field
    @property
    def width(self) -> float:
        """Extent along X."""
        return self.max_x - self.min_x

    @computed_field
    @property
    def height(self) -> float:
        """Extent along Y."""
        return self.max_y - self.min_y

    def contains(self, point: Point2D) -> bool:
        """Check if point is inside bounding box."""
        return (
            self.min_x <= point.x <= self.max_x and
            self.min_y <= point.y <= self.max_y
        )

    model_config = {
        "json_schema_extra": {
            "example": {"min_x": 0, "min_y": 0, "max_x": 100, "max_y": 50}
        }
    }


def round_to(value: float, ndigits: int = 1) -> float:
    """Round and normalise negative zero, so -0.0 never leaks into output."""
    result = round(value, ndigits)
    return 0.0 if result == 0 else result
