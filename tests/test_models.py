"""Unit tests for Pydantic models."""

import pytest
import math
from pydantic import ValidationError
from orthosketch.models import (
    # Geometry
    Point2D, Vector2D, BoundingBox2D, round_to,
    # Sketch
    ArcElement, Contour, ContourType, Constraint, ConstraintType,
    Dimension, DimensionType, ExtrusionSettings, LineElement,
    BezierCubicElement, Sketch, SketchGeometry,
    # Results
    MoveResult, DimensionResult, ValidationReport,
)


class TestPoint2D:
    """Tests for Point2D model."""

    def test_creation_default(self):
        """Test default Point2D creation."""
        p = Point2D()
        assert p.x == 0.0
        assert p.y == 0.0

    def test_to_tuple(self):
        """Test Point2D to_tuple method."""
        assert Point2D(x=1.0, y=2.0).to_tuple() == (1.0, 2.0)

    def test_distance_to_other_point(self):
        """Test distance calculation (3-4-5 triangle)."""
        assert Point2D(x=0, y=0).distance_to(Point2D(x=3, y=4)) == 5.0

    def test_midpoint(self):
        """Test midpoint between two points."""
        assert Point2D(x=0, y=0).midpoint(Point2D(x=10, y=4)) == Point2D(x=5, y=2)

    def test_subtraction_gives_vector(self):
        """Test that point minus point is a vector."""
        v = Point2D(x=5, y=3) - Point2D(x=1, y=1)
        assert isinstance(v, Vector2D)
        assert (v.x, v.y) == (4, 2)

    def test_add_vector(self):
        """Test moving a point by a vector."""
        p = Point2D(x=1, y=1) + Vector2D(x=2, y=-1)
        assert p == Point2D(x=3, y=0)

    def test_rotate_about(self):
        """Test quarter-turn counterclockwise rotation."""
        p = Point2D(x=2, y=1).rotate_about(Point2D(x=1, y=1), math.pi / 2)
        assert p.x == pytest.approx(1.0)
        assert p.y == pytest.approx(2.0)

    def test_rounded(self):
        """Test rounding to one decimal."""
        assert Point2D(x=1.26, y=-0.04).rounded(1) == Point2D(x=1.3, y=0.0)


class TestVector2D:
    """Tests for Vector2D model."""

    def test_magnitude(self):
        """Test vector magnitude calculation."""
        assert Vector2D(x=3, y=4).magnitude == 5.0

    def test_normalize(self):
        """Test vector normalization."""
        n = Vector2D(x=0, y=5).normalize()
        assert n.x == 0.0
        assert n.y == 1.0

    def test_normalize_zero_vector(self):
        """Test that the zero vector normalizes to itself."""
        n = Vector2D(x=0, y=0).normalize()
        assert n.magnitude == 0.0

    def test_perpendicular_is_left_normal(self):
        """Test that perpendicular turns counterclockwise."""
        p = Vector2D(x=1, y=0).perpendicular()
        assert (p.x, p.y) == (0, 1)

    def test_dot_and_cross(self):
        """Test dot and cross products."""
        a, b = Vector2D(x=1, y=0), Vector2D(x=0, y=1)
        assert a.dot(b) == 0
        assert a.cross(b) == 1

    def test_scalar_multiplication(self):
        """Test multiplying by a scalar from either side."""
        v = Vector2D(x=1, y=2)
        assert (v * 2).y == 4
        assert (3 * v).x == 3

    def test_heading(self):
        """Test heading measured from +X."""
        assert Vector2D(x=0, y=1).heading == pytest.approx(math.pi / 2)


class TestBoundingBox2D:
    """Tests for BoundingBox2D model."""

    def test_from_points(self):
        """Test box around a set of points."""
        box = BoundingBox2D.from_points([Point2D(x=1, y=5), Point2D(x=-2, y=3)])
        assert (box.min_x, box.min_y, box.max_x, box.max_y) == (-2, 3, 1, 5)
        assert box.width == 3
        assert box.height == 2

    def test_from_no_points(self):
        """Test that no points give a zero box."""
        box = BoundingBox2D.from_points([])
        assert box.width == 0
        assert box.height == 0

    def test_contains(self):
        """Test point containment."""
        box = BoundingBox2D(min_x=0, min_y=0, max_x=10, max_y=10)
        assert box.contains(Point2D(x=5, y=5))
        assert not box.contains(Point2D(x=11, y=5))


class TestRoundTo:
    """Tests for round_to helper."""

    def test_rounds_to_precision(self):
        """Test one-decimal rounding."""
        assert round_to(3.14159, 1) == 3.1

    def test_no_negative_zero(self):
        """Test that -0.0 is normalised."""
        assert math.copysign(1.0, round_to(-0.01, 1)) == 1.0


class TestPathElements:
    """Tests for path element parsing."""

    def test_line_uses_from_to_aliases(self):
        """Test line parsing from the exchange format."""
        line = LineElement.model_validate({"type": "line", "from": "v1", "to": "v2"})
        assert line.start == "v1"
        assert line.end == "v2"

    def test_line_dumps_aliases(self):
        """Test that the exchange format round-trips from/to."""
        line = LineElement(start="v1", end="v2")
        assert line.to_json_dict() == {"type": "line", "from": "v1", "to": "v2"}

    def test_arc_defaults_clockwise(self):
        """Test arc clockwise default."""
        arc = ArcElement.model_validate({"type": "arc", "from": "a", "to": "b", "radius": "params.r"})
        assert arc.clockwise is True
        assert arc.radius == "params.r"

    def test_contour_discriminates_elements(self):
        """Test that contour elements are parsed by their type tag."""
        contour = Contour.model_validate({
            "id": "p1",
            "type": "outer",
            "elements": [
                {"type": "line", "from": "a", "to": "b"},
                {"type": "bezier_cubic", "from": "b", "to": "a", "control1": "c1", "control2": "c2"},
            ],
        })
        assert isinstance(contour.elements[0], LineElement)
        assert isinstance(contour.elements[1], BezierCubicElement)
        assert contour.elements[1].vertex_ids() == ["b", "a", "c1", "c2"]

    def test_unknown_element_type_rejected(self):
        """Test that an unknown type tag fails validation."""
        with pytest.raises(ValidationError):
            Contour.model_validate({
                "id": "p1",
                "type": "outer",
                "elements": [{"type": "spline", "from": "a", "to": "b"}],
            })


class TestContour:
    """Tests for Contour model."""

    def _contour(self, closed, last_to):
        return Contour(
            id="p1",
            type=ContourType.OUTER,
            closed=closed,
            elements=[LineElement(start="a", end="b"), LineElement(start="b", end=last_to)],
        )

    def test_closure_gap_none_when_closed(self):
        """Test a contour that returns to its start."""
        assert self._contour(True, "a").closure_gap() is None

    def test_closure_gap_reported(self):
        """Test a closed contour that ends elsewhere."""
        assert self._contour(True, "c").closure_gap() == ("c", "a")

    def test_open_contour_has_no_gap(self):
        """Test that open contours are never reported."""
        assert self._contour(False, "c").closure_gap() is None


class TestSketch:
    """Tests for Sketch model."""

    def test_parse_rectangle(self, rectangle_sketch):
        """Test parsing a parametric sketch."""
        assert rectangle_sketch.params["w"] == 40
        assert rectangle_sketch.geometry.vertices["v2"].x == "params.w"
        assert len(rectangle_sketch.geometry.outer_contours()) == 1
        assert rectangle_sketch.geometry.hole_contours() == []

    def test_dimension_aliases(self):
        """Test camelCase dimension fields."""
        dim = Dimension.model_validate({
            "id": "d1",
            "type": "linear",
            "value": "params.ancho",
            "elements": {"nodes": ["v1", "v2"]},
            "isParameter": True,
            "label": "ancho",
        })
        assert dim.is_parameter is True
        assert dim.type == DimensionType.LINEAR
        assert dim.to_json_dict()["isParameter"] is True

    def test_extrusion_settings_aliases(self):
        """Test camelCase extrusion fields."""
        settings = ExtrusionSettings.model_validate({"height": 5, "bevelSize": 0.5, "curveSegments": 24})
        assert settings.bevel_size == 0.5
        assert settings.curve_segments == 24
        assert settings.has_height

    def test_blank_height(self):
        """Test that a blank height expression is not a height."""
        assert not ExtrusionSettings(height="  ").has_height
        assert not ExtrusionSettings().has_height

    def test_constraint_defaults_enabled(self):
        """Test constraint defaults."""
        c = Constraint(id="c1", type=ConstraintType.HORIZONTAL, nodes=["v1", "v2"])
        assert c.enabled is True
        assert c.involves("v2")

    def test_find_helpers(self, rectangle_sketch):
        """Test lookups by id."""
        geometry = rectangle_sketch.geometry
        assert geometry.find_contour("p1").id == "p1"
        assert geometry.find_contour("nope") is None
        assert geometry.find_dimension("d1") is None

    def test_to_json_dict(self, rectangle_data, rectangle_sketch):
        """Test that the exchange format is reproduced."""
        dumped = rectangle_sketch.to_json_dict()
        assert dumped["geometry"]["contours"][0]["elements"][0] == {"type": "line", "from": "v1", "to": "v2"}
        assert Sketch.model_validate(dumped) == rectangle_sketch

    def test_empty_geometry(self):
        """Test blank sketch defaults."""
        geometry = SketchGeometry()
        assert geometry.vertices == {}
        assert geometry.extrusion is None


class TestResults:
    """Tests for result models."""

    def test_move_result_block(self):
        """Test a blocked move carries no updates."""
        result = MoveResult.block("fixed")
        assert result.blocked
        assert result.reason == "fixed"
        assert result.updates == {}

    def test_dimension_result_fail(self):
        """Test a failed dimension carries no updates."""
        result = DimensionResult.fail("nope")
        assert not result.success
        assert result.updates == {}

    def test_validation_report_valid(self):
        """Test that validity follows the error list."""
        assert ValidationReport(warnings=["w"]).valid
        assert not ValidationReport(errors=["e"]).valid
        assert ValidationReport(errors=["e"]).model_dump()["valid"] is False
