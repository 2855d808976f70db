"""Sketch models for OrthoSketch.

Defines the parametric 2D sketch: vertices whose coordinates may be
expressions, contours built from path elements, constraints, dimensions and
extrusion settings. Field names are snake_case; the JSON exchange format uses
the camelCase aliases (``radiusPoint``, ``isParameter``, ``bevelSize``...).
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Union, Literal, Annotated, Iterator
from enum import Enum


# Literal number or expression such as "params.ancho * 0.5"
Scalar = Union[float, str]


class SketchModel(BaseModel):
    """Base for sketch models: camelCase JSON, snake_case attributes."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_json_dict(self) -> dict:
        """Dump in the JSON exchange format."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ContourType(str, Enum):
    """Role of a contour in the extruded solid."""
    OUTER = "outer"
    HOLE = "hole"


class ConstraintType(str, Enum):
    """Types of vertex constraints."""
    FIXED = "fixed"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DISTANCE = "distance"


class DimensionType(str, Enum):
    """Types of measured dimensions."""
    LINEAR = "linear"
    ANGULAR = "angular"


class VertexDefinition(SketchModel):
    """A sketch vertex. Each coordinate is a literal or an expression."""

    x: Scalar = Field(default=0.0, description="X coordinate or expression")
    y: Scalar = Field(default=0.0, description="Y coordinate or expression")

    model_config = {
        "json_schema_extra": {
            "example": {"x": "params.ancho", "y": 0}
        }
    }


class LineElement(SketchModel):
    """Straight segment between two vertices."""

    type: Literal["line"] = "line"
    start: str = Field(alias="from", description="Start vertex ID")
    end: str = Field(alias="to", description="End vertex ID")

    def vertex_ids(self) -> List[str]:
        """Every vertex this element references."""
        return [self.start, self.end]


class ArcElement(SketchModel):
    """Circular arc of a given radius between two vertices."""

    type: Literal["arc"] = "arc"
    start: str = Field(alias="from", description="Start vertex ID")
    end: str = Field(alias="to", description="End vertex ID")
    radius: Scalar = Field(description="Arc radius or expression")
    clockwise: bool = Field(default=True, description="Sweep direction from start to end")

    def vertex_ids(self) -> List[str]:
        """Every vertex this element references."""
        return [self.start, self.end]


class BezierQuadraticElement(SketchModel):
    """Quadratic Bezier curve with one control vertex."""

    type: Literal["bezier_quadratic"] = "bezier_quadratic"
    start: str = Field(alias="from", description="Start vertex ID")
    end: str = Field(alias="to", description="End vertex ID")
    control: str = Field(description="Control vertex ID")

    def vertex_ids(self) -> List[str]:
        """Every vertex this element references."""
        return [self.start, self.end, self.control]


class BezierCubicElement(SketchModel):
    """Cubic Bezier curve with two control vertices."""

    type: Literal["bezier_cubic"] = "bezier_cubic"
    start: str = Field(alias="from", description="Start vertex ID")
    end: str = Field(alias="to", description="End vertex ID")
    control1: str = Field(description="First control vertex ID")
    control2: str = Field(description="Second control vertex ID")

    def vertex_ids(self) -> List[str]:
        """Every vertex this element references."""
        return [self.start, self.end, self.control1, self.control2]


PathElement = Annotated[
    Union[LineElement, ArcElement, BezierQuadraticElement, BezierCubicElement],
    Field(discriminator="type"),
]


class Contour(SketchModel):
    """Ordered path elements forming the silhouette or a hole."""

    id: str = Field(description="Unique contour identifier")
    type: ContourType = Field(description="outer or hole")
    closed: bool = Field(default=False, description="Whether the path is meant to close")
    elements: List[PathElement] = Field(default_factory=list, description="Path elements in order")

    @property
    def is_outer(self) -> bool:
        """Whether this contour defines the solid's silhouette."""
        return self.type == ContourType.OUTER

    def closure_gap(self) -> Optional[tuple]:
        """(last end, first start) when a closed contour does not meet itself."""
        if not self.closed or not self.elements:
            return None
        first, last = self.elements[0], self.elements[-1]
        if last.end != first.start:
            return (last.end, first.start)
        return None

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "p1",
                "type": "outer",
                "closed": True,
                "elements": [
                    {"type": "line", "from": "v1", "to": "v2"},
                    {"type": "line", "from": "v2", "to": "v3"},
                    {"type": "line", "from": "v3", "to": "v1"}
                ]
            }
        }
    }


class CircleDefinition(SketchModel):
    """Full circle given by its center and a point on the rim."""

    id: str = Field(description="Unique circle identifier")
    center: str = Field(description="Center vertex ID")
    radius_point: str = Field(description="Vertex on the circle")

    def vertex_ids(self) -> List[str]:
        """Every vertex this circle references."""
        return [self.center, self.radius_point]


class Constraint(SketchModel):
    """A rule restricting how vertices may move."""

    id: str = Field(description="Unique constraint identifier")
    type: ConstraintType = Field(description="Type of constraint")
    nodes: List[str] = Field(default_factory=list, description="Constrained vertex IDs")
    value: Optional[float] = Field(default=None, description="Target length for distance constraints")
    enabled: bool = Field(default=True, description="Disabled constraints stay present but inert")

    def involves(self, node_id: str) -> bool:
        """Whether the constraint names the vertex."""
        return node_id in self.nodes

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "c1",
                "type": "horizontal",
                "nodes": ["v1", "v2"],
                "enabled": True
            }
        }
    }


class LineRef(SketchModel):
    """A line identified by its two endpoint vertices."""

    start: str = Field(alias="from", description="Start vertex ID")
    end: str = Field(alias="to", description="End vertex ID")


class DimensionElements(SketchModel):
    """What a dimension measures: two vertices, or two lines sharing a vertex."""

    nodes: Optional[List[str]] = Field(default=None, description="Vertex pair for linear dimensions")
    lines: Optional[List[LineRef]] = Field(default=None, description="Line pair for angular dimensions")

    def vertex_ids(self) -> List[str]:
        """Every vertex referenced by the dimension."""
        ids = list(self.nodes or [])
        for line in self.lines or []:
            ids.extend([line.start, line.end])
        return ids


class Dimension(SketchModel):
    """A measured distance or angle, optionally promoted to a parameter."""

    id: str = Field(description="Unique dimension identifier")
    type: DimensionType = Field(description="Type of dimension")
    value: Scalar = Field(default=0.0, description="Literal value or params.<name>")
    elements: DimensionElements = Field(default_factory=DimensionElements)
    is_parameter: bool = Field(default=False, description="Whether promoted to a parameter")
    label: Optional[str] = Field(default=None, description="Parameter name once promoted")
    inverted: bool = Field(default=False, description="Angular only: control the reflex angle")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "d1",
                "type": "linear",
                "value": "params.ancho",
                "elements": {"nodes": ["v1", "v2"]},
                "isParameter": True,
                "label": "ancho"
            }
        }
    }


class ExtrusionSettings(SketchModel):
    """How the resolved sketch is thickened into a solid."""

    height: Optional[Scalar] = Field(default=None, description="Extrusion depth or expression")
    bevel: Optional[bool] = Field(default=None, description="Round off the cap edges")
    bevel_thickness: Optional[float] = Field(default=None, ge=0)
    bevel_size: Optional[float] = Field(default=None, ge=0)
    bevel_segments: Optional[int] = Field(default=None, ge=1)
    curve_segments: Optional[int] = Field(default=None, ge=1)
    steps: Optional[int] = Field(default=None, ge=1)

    @property
    def has_height(self) -> bool:
        """Whether a height (literal or expression) is given."""
        if self.height is None:
            return False
        if isinstance(self.height, str):
            return bool(self.height.strip())
        return True


class SketchGeometry(SketchModel):
    """Vertices, contours, constraints, dimensions and extrusion settings."""

    vertices: Dict[str, VertexDefinition] = Field(default_factory=dict)
    contours: List[Contour] = Field(default_factory=list)
    circles: List[CircleDefinition] = Field(default_factory=list)
    constraints: List[Constraint] = Field(default_factory=list)
    dimensions: List[Dimension] = Field(default_factory=list)
    extrusion: Optional[ExtrusionSettings] = Field(default=None)

    def outer_contours(self) -> List[Contour]:
        """Contours of type outer."""
        return [c for c in self.contours if c.type == ContourType.OUTER]

    def hole_contours(self) -> List[Contour]:
        """Contours of type hole."""
        return [c for c in self.contours if c.type == ContourType.HOLE]

    def iter_elements(self) -> Iterator[tuple]:
        """(contour, element) pairs over every contour."""
        for contour in self.contours:
            for element in contour.elements:
                yield contour, element

    def find_contour(self, contour_id: str) -> Optional[Contour]:
        return next((c for c in self.contours if c.id == contour_id), None)

    def find_constraint(self, constraint_id: str) -> Optional[Constraint]:
        return next((c for c in self.constraints if c.id == constraint_id), None)

    def find_dimension(self, dimension_id: str) -> Optional[Dimension]:
        return next((d for d in self.dimensions if d.id == dimension_id), None)


class Sketch(SketchModel):
    """The aggregate: parameter table plus geometry."""

    params: Dict[str, Scalar] = Field(default_factory=dict, description="Parameter table")
    geometry: SketchGeometry = Field(default_factory=SketchGeometry)

    model_config = {
        "json_schema_extra": {
            "example": {
                "params": {"ancho": 40, "grosor": 3},
                "geometry": {
                    "vertices": {
                        "v1": {"x": 0, "y": 0},
                        "v2": {"x": "params.ancho", "y": 0},
                        "v3": {"x": "params.ancho", "y": 20}
                    },
                    "contours": [],
                    "extrusion": {"height": "params.grosor"}
                }
            }
        }
    }
