"""Sketch tools for OrthoSketch.

These tools validate sketches, solve vertex moves against constraints and
measure, drive, promote and demote dimensions. Every tool works on plain
JSON in the sketch exchange format and returns plain JSON.
"""

from typing import Any, Dict, List, Optional
from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from ..exceptions import OrthoSketchError, InvalidParameterError
from ..models import Constraint, Dimension, Point2D
from ..services import constraint_solver, dimensions, validation
from ..logging import get_logger

logger = get_logger(__name__)


def parse_vertices(data: Dict[str, Dict[str, float]]) -> Dict[str, Point2D]:
    """Evaluated vertex positions from {"id": {"x": .., "y": ..}}."""
    try:
        return {vid: Point2D.model_validate(p) for vid, p in data.items()}
    except ValidationError as e:
        raise InvalidParameterError("vertices", "<payload>", reason=str(e))


def parse_constraints(data: Optional[List[Dict[str, Any]]]) -> List[Constraint]:
    try:
        return [Constraint.model_validate(c) for c in data or []]
    except ValidationError as e:
        raise InvalidParameterError("constraints", "<payload>", reason=str(e))


def parse_dimension(data: Dict[str, Any]) -> Dimension:
    try:
        return Dimension.model_validate(data)
    except ValidationError as e:
        raise InvalidParameterError("dimension", "<payload>", reason=str(e))


def register_sketch_tools(mcp: FastMCP) -> None:
    """Register all sketch tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def validate_geometry(geometry: Dict[str, Any]) -> dict:
        """Check a sketch geometry before extrusion.

        Reports every problem found: no vertices, no contours, not exactly
        one outer contour, empty contours, references to missing vertices,
        closed contours that do not close, and missing extrusion height.

        Args:
            geometry: The "geometry" object of a sketch

        Returns:
            Dict with valid and the list of errors

        Example response:
            {
                "valid": false,
                "errors": ['Contour "p1": vertex "v_missing" does not exist']
            }
        """
        logger.info("validate_geometry called")
        errors = validation.validate_geometry(geometry)
        return {"valid": not errors, "errors": errors}

    @mcp.tool()
    async def validate_template(sketch: Dict[str, Any]) -> dict:
        """Fully check a sketch: structure, expressions, cycles and references.

        Errors block extrusion; warnings (such as a contour not marked
        closed) do not.

        Args:
            sketch: Sketch with "params" and "geometry"

        Returns:
            Dict with valid, errors and warnings
        """
        logger.info("validate_template called")
        return validation.validate_template(sketch).model_dump()

    @mcp.tool()
    async def solve_node_move(
        node_id: str,
        x: float,
        y: float,
        vertices: Dict[str, Dict[str, float]],
        constraints: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """Validate a proposed vertex move against the sketch's constraints.

        Constraints are checked in the order fixed, distance, alignment; the
        first that cannot be honoured blocks the move. Results are rounded to
        one decimal.

        Args:
            node_id: Vertex being moved
            x: Proposed X
            y: Proposed Y
            vertices: Current evaluated positions {"id": {"x": .., "y": ..}}
            constraints: Sketch constraints

        Returns:
            Dict with blocked, reason and the updates to apply

        Example response:
            {
                "blocked": false,
                "reason": null,
                "updates": {"v2": {"x": 12.0, "y": 3.0}, "v3": {"x": 40.0, "y": 3.0}}
            }
        """
        logger.info("solve_node_move called", node_id=node_id, x=x, y=y)
        try:
            result = constraint_solver.solve_node_move(
                node_id, x, y, parse_vertices(vertices), parse_constraints(constraints)
            )
            return result.model_dump()
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def solve_group_move(
        proposals: Dict[str, Dict[str, float]],
        vertices: Dict[str, Dict[str, float]],
        constraints: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """Validate several vertices moved together, all or nothing.

        Args:
            proposals: Proposed positions of the dragged vertices
            vertices: Current evaluated positions of every vertex
            constraints: Sketch constraints

        Returns:
            Dict with blocked, reason and the updates to apply
        """
        logger.info("solve_group_move called", count=len(proposals))
        try:
            result = constraint_solver.solve_group_move(
                parse_vertices(proposals), parse_vertices(vertices), parse_constraints(constraints)
            )
            return result.model_dump()
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def detect_over_constraint(
        vertices: Dict[str, Dict[str, float]],
        constraints: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """Find constraints that cannot all hold at once.

        Args:
            vertices: Current evaluated positions of every vertex
            constraints: Sketch constraints

        Returns:
            Dict with is_over_constrained and the list of conflicts
        """
        logger.info("detect_over_constraint called")
        try:
            report = constraint_solver.detect_over_constraint(
                parse_vertices(vertices), parse_constraints(constraints)
            )
            return report.model_dump()
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def calculate_dimension_value(
        dimension: Dict[str, Any],
        vertices: Dict[str, Dict[str, float]],
    ) -> dict:
        """Measure a dimension on evaluated vertices.

        Linear dimensions give the distance between their two vertices.
        Angular dimensions give the interior angle (0 to 180 degrees) between
        two lines sharing a vertex; displayed_value is 360 minus that when the
        dimension is inverted.

        Args:
            dimension: Dimension in the exchange format
            vertices: Current evaluated positions of every vertex

        Returns:
            Dict with value and displayed_value

        Example response:
            {"dimension_id": "d2", "value": 90.0, "displayed_value": 270.0}
        """
        logger.info("calculate_dimension_value called")
        try:
            parsed = parse_dimension(dimension)
            points = parse_vertices(vertices)
            return {
                "dimension_id": parsed.id,
                "value": dimensions.calculate_dimension_value(parsed, points),
                "displayed_value": dimensions.displayed_dimension_value(parsed, points),
            }
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def apply_dimension(
        dimension: Dict[str, Any],
        target: float,
        vertices: Dict[str, Dict[str, float]],
        constraints: Optional[List[Dict[str, Any]]] = None,
    ) -> dict:
        """Move one vertex so a dimension measures the target value.

        The free endpoint moves (the second one when both are free); for
        angles the far end of a line rotates about the shared vertex. The
        move is validated against the constraints and nothing is returned
        for a failed call.

        Args:
            dimension: Dimension in the exchange format
            target: Target length, or angle in degrees (reflex when inverted)
            vertices: Current evaluated positions of every vertex
            constraints: Sketch constraints

        Returns:
            Dict with success, updates and reason
        """
        logger.info("apply_dimension called", target=target)
        try:
            result = dimensions.apply_dimension(
                parse_dimension(dimension), target, parse_vertices(vertices), parse_constraints(constraints)
            )
            return result.model_dump()
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def promote_dimension(sketch: Dict[str, Any], dimension_id: str, name: str) -> dict:
        """Turn a dimension into a named parameter.

        Adds the parameter at the dimension's current value and sets the
        dimension's value to params.<name>.

        Args:
            sketch: Sketch with "params" and "geometry"
            dimension_id: Dimension to promote
            name: New parameter name (letters, digits, underscores)

        Returns:
            Dict with success and the updated sketch
        """
        logger.info("promote_dimension called", dimension_id=dimension_id, name=name)
        try:
            updated = dimensions.promote_dimension(validation.load_sketch(sketch), dimension_id, name)
            return {"success": True, "sketch": updated.to_json_dict()}
        except OrthoSketchError as e:
            return e.to_dict()

    @mcp.tool()
    async def demote_dimension(sketch: Dict[str, Any], dimension_id: str) -> dict:
        """Turn a promoted dimension back into a literal value.

        The parameter is removed when nothing else uses it.

        Args:
            sketch: Sketch with "params" and "geometry"
            dimension_id: Dimension to demote

        Returns:
            Dict with success and the updated sketch
        """
        logger.info("demote_dimension called", dimension_id=dimension_id)
        try:
            updated = dimensions.demote_dimension(validation.load_sketch(sketch), dimension_id)
            return {"success": True, "sketch": updated.to_json_dict()}
        except OrthoSketchError as e:
            return e.to_dict()
