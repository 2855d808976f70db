"""Dimension engine.

Measures linear and angular dimensions on evaluated vertices, drives a
dimension to a target value by moving one vertex, and promotes dimensions to
named parameters (or demotes them back to literals).

Angles are stored canonically as the interior angle in [0, 180]. An
``inverted`` dimension is shown to the user, and controlled by them, as the
reflex angle ``360 - interior``.
"""

import math
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import DegenerateDimensionError, EntityNotFoundError, InvalidParameterError
from ..logging import get_logger
from ..models import (
    ArcElement,
    Constraint,
    Dimension,
    DimensionResult,
    DimensionType,
    Point2D,
    Sketch,
    round_to,
)
from .constraint_solver import ConstraintSolver, as_point, is_fixed
from .expressions import evaluate_expression, expression_references
from .validation import evaluate_vertices, sketch_parameter_values

logger = get_logger(__name__)

PARAMETER_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def linear_nodes(dimension: Dimension) -> Tuple[str, str]:
    """The two vertices a linear dimension measures."""
    nodes = dimension.elements.nodes or []
    if len(nodes) != 2:
        raise DegenerateDimensionError(dimension.id, f"linear dimension needs 2 vertices, has {len(nodes)}")
    return nodes[0], nodes[1]


def angular_legs(dimension: Dimension) -> Tuple[str, str, str]:
    """(pivot, far end of line 1, far end of line 2) of an angular dimension."""
    lines = dimension.elements.lines or []
    if len(lines) != 2:
        raise DegenerateDimensionError(dimension.id, f"angular dimension needs 2 lines, has {len(lines)}")
    first, second = lines
    shared = {first.start, first.end} & {second.start, second.end}
    if len(shared) != 1:
        raise DegenerateDimensionError(dimension.id, "lines do not share exactly one vertex")
    pivot = shared.pop()
    leg1 = first.end if first.start == pivot else first.start
    leg2 = second.end if second.start == pivot else second.start
    return pivot, leg1, leg2


def _position(dimension: Dimension, vertices: Mapping[str, Point2D], vertex_id: str) -> Point2D:
    if vertex_id not in vertices:
        raise DegenerateDimensionError(dimension.id, f"vertex '{vertex_id}' does not exist")
    return as_point(vertices[vertex_id])


def calculate_dimension_value(dimension: Dimension, vertices: Mapping[str, Point2D]) -> float:
    """Current canonical value of a dimension.

    Linear dimensions give the Euclidean distance; angular ones the interior
    angle between the two legs in degrees, always in [0, 180].

    Raises:
        DegenerateDimensionError: missing vertex, lines without a common
            pivot, or a zero-length leg
    """
    if dimension.type == DimensionType.LINEAR:
        a, b = linear_nodes(dimension)
        return _position(dimension, vertices, a).distance_to(_position(dimension, vertices, b))

    if dimension.type == DimensionType.ANGULAR:
        pivot_id, leg1_id, leg2_id = angular_legs(dimension)
        pivot = _position(dimension, vertices, pivot_id)
        v1 = _position(dimension, vertices, leg1_id) - pivot
        v2 = _position(dimension, vertices, leg2_id) - pivot
        if v1.magnitude == 0 or v2.magnitude == 0:
            raise DegenerateDimensionError(dimension.id, "a leg of the angle has zero length")
        cos_theta = max(-1.0, min(1.0, v1.dot(v2) / (v1.magnitude * v2.magnitude)))
        return math.degrees(math.acos(cos_theta))

    raise TypeError(f"Unknown dimension type: {dimension.type}")


def displayed_dimension_value(dimension: Dimension, vertices: Mapping[str, Point2D]) -> float:
    """Value as shown to the user: the reflex angle for inverted angles."""
    value = calculate_dimension_value(dimension, vertices)
    if dimension.type == DimensionType.ANGULAR and dimension.inverted:
        return 360.0 - value
    return value


def _signed_opening(pivot: Point2D, p1: Point2D, p2: Point2D) -> float:
    """Angle from leg 1 to leg 2 in radians, normalised to [-pi, pi]."""
    diff = (p2 - pivot).heading - (p1 - pivot).heading
    return math.atan2(math.sin(diff), math.cos(diff))


def apply_dimension(
    dimension: Dimension,
    target: float,
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
    solver: Optional[ConstraintSolver] = None,
) -> DimensionResult:
    """Move one vertex so the dimension measures ``target``.

    Linear: the free endpoint slides along the line (the second one when
    both are free). Angular: the far end of line 2 (or line 1 when line 2's
    is fixed) rotates about the pivot; inverted dimensions read ``target``
    as the reflex angle. The displacement is then validated by the
    constraint solver; any block, or any adjustment that would spoil the
    target, fails the call with no updates.
    """
    solver = solver or ConstraintSolver()

    if not math.isfinite(target):
        return DimensionResult.fail(f"Target {target} is not a finite number")

    try:
        if dimension.type == DimensionType.LINEAR:
            mover, exact = _linear_move(dimension, target, vertices, constraints)
        elif dimension.type == DimensionType.ANGULAR:
            mover, exact = _angular_move(dimension, target, vertices, constraints)
        else:
            raise TypeError(f"Unknown dimension type: {dimension.type}")
    except DegenerateDimensionError as e:
        return DimensionResult.fail(e.reason)
    except InvalidParameterError as e:
        return DimensionResult.fail(e.message)

    result = solver.solve_node_move(mover, exact.x, exact.y, vertices, constraints)
    if result.blocked:
        logger.info("Dimension blocked by constraints", dimension_id=dimension.id, reason=result.reason)
        return DimensionResult.fail(result.reason or "blocked by constraints")

    if result.updates[mover].distance_to(exact) > solver.tolerance:
        return DimensionResult.fail(
            f"Constraints on '{mover}' prevent dimension '{dimension.id}' from reaching {target}"
        )
    for vertex_id in dimension.elements.vertex_ids():
        if vertex_id != mover and vertex_id in result.updates:
            moved = result.updates[vertex_id].distance_to(as_point(vertices[vertex_id]))
            if moved > solver.tolerance:
                return DimensionResult.fail(
                    f"Constraints would also move '{vertex_id}' and change dimension '{dimension.id}'"
                )

    settled = {vid: as_point(p) for vid, p in vertices.items()}
    settled.update(result.updates)
    measured = displayed_dimension_value(dimension, settled)
    if abs(measured - target) > solver.tolerance:
        return DimensionResult.fail(
            f"Dimension '{dimension.id}' would measure {measured:.3f} after rounding, not {target}"
        )

    logger.debug("Dimension applied", dimension_id=dimension.id, target=target, mover=mover)
    return DimensionResult(success=True, updates=result.updates)


def _linear_move(
    dimension: Dimension,
    target: float,
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
) -> Tuple[str, Point2D]:
    a, b = linear_nodes(dimension)
    pos_a, pos_b = _position(dimension, vertices, a), _position(dimension, vertices, b)
    if target <= 0:
        raise InvalidParameterError("target", target, reason="a length must be positive")
    if pos_a.distance_to(pos_b) == 0:
        raise DegenerateDimensionError(dimension.id, f"'{a}' and '{b}' coincide, the direction is undefined")

    fixed_a, fixed_b = is_fixed(a, constraints), is_fixed(b, constraints)
    if fixed_a and fixed_b:
        raise DegenerateDimensionError(dimension.id, "both vertices are fixed")
    mover, anchor = (a, pos_b) if fixed_b else (b, pos_a)
    start = pos_a if mover == a else pos_b
    return mover, anchor + (start - anchor).normalize() * target


def _angular_move(
    dimension: Dimension,
    target: float,
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
) -> Tuple[str, Point2D]:
    pivot_id, leg1_id, leg2_id = angular_legs(dimension)
    pivot = _position(dimension, vertices, pivot_id)
    p1, p2 = _position(dimension, vertices, leg1_id), _position(dimension, vertices, leg2_id)
    if p1 == pivot or p2 == pivot:
        raise DegenerateDimensionError(dimension.id, "a leg of the angle has zero length")

    inner = 360.0 - target if dimension.inverted else target
    if not 0.0 <= inner <= 180.0:
        raise InvalidParameterError(
            "target", target,
            reason=f"angle must give an interior angle between 0 and 180 degrees, got {inner}",
        )

    opening = _signed_opening(pivot, p1, p2)
    sign = 1.0 if opening >= 0 else -1.0
    rotation = sign * math.radians(inner) - opening

    if not is_fixed(leg2_id, constraints):
        return leg2_id, p2.rotate_about(pivot, rotation)
    if not is_fixed(leg1_id, constraints):
        return leg1_id, p1.rotate_about(pivot, -rotation)
    raise DegenerateDimensionError(dimension.id, "both lines are fixed")


# --- Parameter promotion ---

def _find_dimension(sketch: Sketch, dimension_id: str) -> Dimension:
    dimension = sketch.geometry.find_dimension(dimension_id)
    if dimension is None:
        raise EntityNotFoundError(
            "Dimension", dimension_id,
            available_entities=[d.id for d in sketch.geometry.dimensions],
        )
    return dimension


def current_dimension_value(sketch: Sketch, dimension: Dimension, precision: int = 1) -> float:
    """Displayed value of a dimension on the sketch's evaluated vertices.

    Falls back to the stored value when the dimension cannot be measured.
    """
    values = sketch_parameter_values(sketch)
    try:
        points = evaluate_vertices(sketch.geometry.vertices, values)
        measured = displayed_dimension_value(dimension, points)
    except DegenerateDimensionError:
        measured = evaluate_expression(dimension.value, values)
    return round_to(measured, precision)


def parameter_references(sketch: Sketch, name: str, exclude_dimension: Optional[str] = None) -> List[str]:
    """Descriptions of everything in the sketch whose expression uses ``name``."""
    users: List[str] = []
    geometry = sketch.geometry
    for other, definition in sketch.params.items():
        if other != name and name in expression_references(definition):
            users.append(f"parameter {other}")
    for vertex_id, vertex in geometry.vertices.items():
        if name in expression_references(vertex.x) or name in expression_references(vertex.y):
            users.append(f"vertex {vertex_id}")
    for contour, element in geometry.iter_elements():
        if isinstance(element, ArcElement) and name in expression_references(element.radius):
            users.append(f"contour {contour.id}")
    for dimension in geometry.dimensions:
        if dimension.id != exclude_dimension and name in expression_references(dimension.value):
            users.append(f"dimension {dimension.id}")
    if geometry.extrusion is not None and name in expression_references(geometry.extrusion.height):
        users.append("extrusion height")
    return users


def promote_dimension(sketch: Sketch, dimension_id: str, name: str, precision: int = 1) -> Sketch:
    """Turn a dimension into the named parameter ``name``.

    The parameter is created at the dimension's current displayed value and
    the dimension's value becomes ``params.<name>``. Returns a new sketch.

    Raises:
        EntityNotFoundError: unknown dimension
        InvalidParameterError: malformed or taken name, or already promoted
    """
    dimension = _find_dimension(sketch, dimension_id)
    if dimension.is_parameter:
        raise InvalidParameterError(
            "dimension_id", dimension_id,
            reason=f"dimension is already the parameter '{dimension.label}'",
        )
    if not PARAMETER_NAME_RE.match(name or ""):
        raise InvalidParameterError(
            "name", name,
            reason="parameter names start with a letter or underscore and contain only letters, digits and underscores",
        )
    if name in sketch.params:
        raise InvalidParameterError(
            "name", name,
            reason=f"parameter '{name}' already exists",
        )

    value = current_dimension_value(sketch, dimension, precision)
    updated = sketch.model_copy(deep=True)
    updated.params[name] = value
    target = updated.geometry.find_dimension(dimension_id)
    target.value = f"params.{name}"
    target.is_parameter = True
    target.label = name

    logger.info("Dimension promoted", dimension_id=dimension_id, parameter=name, value=value)
    return updated


def demote_dimension(sketch: Sketch, dimension_id: str, precision: int = 1) -> Sketch:
    """Snapshot a promoted dimension back into a literal value.

    The parameter is dropped when nothing else in the sketch refers to it.
    A dimension that is not a parameter is returned unchanged.
    """
    dimension = _find_dimension(sketch, dimension_id)
    updated = sketch.model_copy(deep=True)
    if not dimension.is_parameter:
        return updated

    values = sketch_parameter_values(sketch)
    literal = round_to(evaluate_expression(dimension.value, values), precision)
    name = dimension.label or next(iter(expression_references(dimension.value)), None)

    target = updated.geometry.find_dimension(dimension_id)
    target.value = literal
    target.is_parameter = False
    target.label = None

    if name and name in updated.params:
        users = parameter_references(updated, name, exclude_dimension=dimension_id)
        if users:
            logger.info("Parameter kept, still referenced", parameter=name, referenced_by=users)
        else:
            del updated.params[name]

    logger.info("Dimension demoted", dimension_id=dimension_id, value=literal)
    return updated


def invert_angle(sketch: Sketch, dimension_id: str) -> Sketch:
    """Toggle whether an angular dimension controls the reflex angle.

    The geometry is untouched; literal values (the dimension's own, or the
    parameter it is promoted to) switch to the complementary reading so they
    keep describing the same shape.
    """
    dimension = _find_dimension(sketch, dimension_id)
    if dimension.type != DimensionType.ANGULAR:
        raise InvalidParameterError(
            "dimension_id", dimension_id,
            reason="only angular dimensions can be inverted",
        )

    updated = sketch.model_copy(deep=True)
    target = updated.geometry.find_dimension(dimension_id)
    target.inverted = not target.inverted

    if isinstance(target.value, (int, float)):
        target.value = 360.0 - target.value
    elif target.is_parameter and target.label in updated.params:
        current = updated.params[target.label]
        if isinstance(current, (int, float)):
            updated.params[target.label] = 360.0 - current

    logger.info("Angle inverted", dimension_id=dimension_id, inverted=target.inverted)
    return updated


def measure_all(sketch: Sketch) -> Dict[str, Optional[float]]:
    """Displayed value of every dimension, None where it cannot be measured."""
    points = evaluate_vertices(sketch.geometry.vertices, sketch_parameter_values(sketch))
    values: Dict[str, Optional[float]] = {}
    for dimension in sketch.geometry.dimensions:
        try:
            values[dimension.id] = displayed_dimension_value(dimension, points)
        except DegenerateDimensionError as e:
            logger.debug("Dimension not measurable", dimension_id=dimension.id, reason=e.reason)
            values[dimension.id] = None
    return values
