"""Structural validation of sketches.

``validate_geometry`` runs the structural checks that gate extrusion and
returns every problem it finds as a human-readable string; it never raises
and never mutates its input. ``validate_template`` adds expression, cycle
and reference checks on top and separates warnings from errors.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..logging import get_logger
from ..models import (
    ArcElement,
    BezierCubicElement,
    BezierQuadraticElement,
    ConstraintType,
    LineElement,
    Point2D,
    Sketch,
    SketchGeometry,
    ValidationReport,
    VertexDefinition,
)
from ..exceptions import CircularDependencyError, InvalidParameterError
from .expressions import (
    detect_circular_dependencies,
    evaluate_expression,
    resolve_parameters,
    validate_expression,
)

logger = get_logger(__name__)

GeometryInput = Union[SketchGeometry, Sketch, Dict[str, Any]]

# Each pass drops the items one round of errors points at; nesting is shallow.
MAX_SALVAGE_PASSES = 4

# fixed: exactly 1, horizontal/vertical: at least 2, distance: exactly 2
_CONSTRAINT_ARITY = {
    ConstraintType.FIXED: (1, 1),
    ConstraintType.HORIZONTAL: (2, None),
    ConstraintType.VERTICAL: (2, None),
    ConstraintType.DISTANCE: (2, 2),
}


def _format_validation_error(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "geometry"
        messages.append(f"Invalid geometry at {location}: {item['msg']}")
    return messages


def _coerce_geometry(geometry: GeometryInput) -> Tuple[Optional[SketchGeometry], List[str]]:
    """Parse raw input into a SketchGeometry plus any parse errors.

    Items that fail to parse are reported and dropped, so the structural
    checks still run on whatever remains.
    """
    if isinstance(geometry, Sketch):
        return geometry.geometry, []
    if isinstance(geometry, SketchGeometry):
        return geometry, []
    if not isinstance(geometry, Mapping):
        return None, [f"Invalid geometry: expected an object, got {type(geometry).__name__}"]

    data = dict(geometry)
    messages: List[str] = []
    for _ in range(MAX_SALVAGE_PASSES):
        try:
            return SketchGeometry.model_validate(data), messages
        except ValidationError as e:
            messages.extend(_format_validation_error(e))
            data = _drop_invalid(data, e)
    return None, messages


def _drop_invalid(data: Dict[str, Any], error: ValidationError) -> Dict[str, Any]:
    """Copy of ``data`` without the top-level items the errors point at."""
    bad_items: Dict[str, set] = {}
    bad_fields = set()
    for item in error.errors():
        loc = item["loc"]
        if len(loc) >= 2 and isinstance(data.get(loc[0]), (list, dict)):
            bad_items.setdefault(loc[0], set()).add(loc[1])
        elif loc:
            bad_fields.add(loc[0])

    cleaned = {}
    for key, value in data.items():
        if key in bad_fields:
            continue
        drop = bad_items.get(key)
        if drop and isinstance(value, list):
            value = [v for i, v in enumerate(value) if i not in drop]
        elif drop and isinstance(value, dict):
            value = {k: v for k, v in value.items() if k not in drop}
        cleaned[key] = value
    return cleaned


def _element_references(element) -> List[tuple]:
    """(role, vertex id) pairs for a path element."""
    if isinstance(element, LineElement):
        return [("vertex", element.start), ("vertex", element.end)]
    if isinstance(element, ArcElement):
        return [("vertex", element.start), ("vertex", element.end)]
    if isinstance(element, BezierQuadraticElement):
        return [("vertex", element.start), ("vertex", element.end), ("control vertex", element.control)]
    if isinstance(element, BezierCubicElement):
        return [
            ("vertex", element.start),
            ("vertex", element.end),
            ("control vertex", element.control1),
            ("control vertex", element.control2),
        ]
    raise TypeError(f"Unknown path element: {type(element).__name__}")


def load_sketch(data: Union[Sketch, Dict[str, Any]]) -> Sketch:
    """Parse a sketch in the JSON exchange format.

    Raises:
        InvalidParameterError: the payload does not describe a sketch
    """
    if isinstance(data, Sketch):
        return data
    try:
        return Sketch.model_validate(data)
    except ValidationError as e:
        raise InvalidParameterError("sketch", "<payload>", reason="; ".join(_format_validation_error(e)))


def validate_geometry(geometry: GeometryInput) -> List[str]:
    """Check a sketch's structure before extrusion.

    Every check runs and every problem is reported:

    1. at least one vertex
    2. at least one contour
    3. exactly one outer contour
    4. every contour has elements
    5. every referenced vertex exists (one message per missing reference)
    6. closed contours end where they start
    7. extrusion settings with a height

    Args:
        geometry: SketchGeometry, Sketch, or the raw JSON dict

    Returns:
        Error messages; empty when the sketch can be extruded
    """
    parsed, errors = _coerce_geometry(geometry)
    if errors:
        logger.info("Geometry did not fully parse", errors=len(errors))
    if parsed is None:
        return errors

    if not parsed.vertices:
        errors.append("Sketch has no vertices")

    if not parsed.contours:
        errors.append("Sketch has no contours")

    outer_count = len(parsed.outer_contours())
    if outer_count == 0:
        errors.append('Sketch has no outer contour (type: "outer")')
    elif outer_count > 1:
        errors.append(f"Sketch has {outer_count} outer contours, exactly 1 is required")

    vertex_ids = set(parsed.vertices)
    for contour in parsed.contours:
        if not contour.elements:
            errors.append(f'Contour "{contour.id}" has no elements')
            continue

        gap = contour.closure_gap()
        if gap is not None:
            last_end, first_start = gap
            errors.append(
                f'Contour "{contour.id}" is marked closed but its last element ends at '
                f'"{last_end}" and its first element starts at "{first_start}"'
            )

        for element in contour.elements:
            for role, vertex_id in _element_references(element):
                if vertex_id not in vertex_ids:
                    errors.append(f'Contour "{contour.id}": {role} "{vertex_id}" does not exist')

    if parsed.extrusion is None:
        errors.append("Sketch has no extrusion settings")
    elif not parsed.extrusion.has_height:
        errors.append("Extrusion height is not defined")

    if errors:
        logger.debug("Geometry validation found errors", count=len(errors))
    return errors


def validate_template(sketch: Union[Sketch, Dict[str, Any]]) -> ValidationReport:
    """Full check of a sketch and its parameter table.

    Adds to the structural errors of ``validate_geometry``:

    - expression checks for every vertex coordinate, arc radius, extrusion
      height and parameter definition
    - parameter dependency cycles
    - constraint arity and constraint, dimension and circle references

    Contours not marked closed and disabled constraints with dangling
    references are reported as warnings.
    """
    if not isinstance(sketch, Sketch):
        try:
            sketch = Sketch.model_validate(sketch)
        except ValidationError as e:
            return ValidationReport(errors=_format_validation_error(e))

    geometry = sketch.geometry
    errors = validate_geometry(geometry)
    warnings: List[str] = []
    available = list(sketch.params)

    for name, definition in sketch.params.items():
        check = validate_expression(definition, available)
        if not check.valid:
            errors.append(f'Parameter "{name}": {check.error}')

    cycle = detect_circular_dependencies(sketch.params)
    if cycle.circular:
        errors.append(f"Circular parameter dependency: {' -> '.join(cycle.cycle or [])}")

    for vertex_id, vertex in geometry.vertices.items():
        for axis in ("x", "y"):
            check = validate_expression(getattr(vertex, axis), available)
            if not check.valid:
                errors.append(f'Vertex "{vertex_id}".{axis}: {check.error}')

    for contour, element in geometry.iter_elements():
        if isinstance(element, ArcElement):
            check = validate_expression(element.radius, available)
            if not check.valid:
                errors.append(f'Contour "{contour.id}" arc radius: {check.error}')

    if geometry.extrusion is not None and geometry.extrusion.has_height:
        check = validate_expression(geometry.extrusion.height, available)
        if not check.valid:
            errors.append(f"Extrusion height: {check.error}")

    for contour in geometry.contours:
        if not contour.closed:
            warnings.append(f'Contour "{contour.id}" is not marked as closed')

    vertex_ids = set(geometry.vertices)

    for constraint in geometry.constraints:
        low, high = _CONSTRAINT_ARITY[constraint.type]
        count = len(constraint.nodes)
        if count < low or (high is not None and count > high):
            expected = str(low) if low == high else f"at least {low}"
            errors.append(
                f'Constraint "{constraint.id}" ({constraint.type.value}) needs {expected} '
                f"vertices, has {count}"
            )
        if constraint.type == ConstraintType.DISTANCE and constraint.value is None:
            errors.append(f'Constraint "{constraint.id}" (distance) has no value')
        for node_id in constraint.nodes:
            if node_id in vertex_ids:
                continue
            message = f'Constraint "{constraint.id}": vertex "{node_id}" does not exist'
            if constraint.enabled:
                errors.append(message)
            else:
                warnings.append(message)

    for dimension in geometry.dimensions:
        for node_id in dimension.elements.vertex_ids():
            if node_id not in vertex_ids:
                errors.append(f'Dimension "{dimension.id}": vertex "{node_id}" does not exist')
        if isinstance(dimension.value, str):
            check = validate_expression(dimension.value, available)
            if not check.valid:
                errors.append(f'Dimension "{dimension.id}": {check.error}')

    for circle in geometry.circles:
        for node_id in circle.vertex_ids():
            if node_id not in vertex_ids:
                errors.append(f'Circle "{circle.id}": vertex "{node_id}" does not exist')

    logger.info(
        "Template validated",
        errors=len(errors),
        warnings=len(warnings),
    )
    return ValidationReport(errors=errors, warnings=warnings)


def evaluate_vertex(vertex: VertexDefinition, params: Optional[Mapping[str, float]] = None) -> Point2D:
    """Evaluate both coordinates of one vertex."""
    return Point2D(
        x=evaluate_expression(vertex.x, params),
        y=evaluate_expression(vertex.y, params),
    )


def evaluate_vertices(
    vertices: Mapping[str, VertexDefinition],
    params: Optional[Mapping[str, float]] = None,
) -> Dict[str, Point2D]:
    """Evaluate every vertex coordinate to a number.

    Example:
        >>> evaluate_vertices({"v1": VertexDefinition(x="params.w", y=0)}, {"w": 40})
        {'v1': Point2D(x=40.0, y=0.0)}
    """
    return {vertex_id: evaluate_vertex(vertex, params) for vertex_id, vertex in vertices.items()}


def sketch_parameter_values(
    sketch: Sketch,
    overrides: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """Numeric value of every parameter of a sketch.

    Definitions may reference each other; ``overrides`` replace individual
    definitions before resolution. A cyclic table does not abort: each
    definition is then evaluated on its own, so cyclic entries fall back to 0.
    """
    definitions: Dict[str, Any] = dict(sketch.params)
    definitions.update(overrides or {})
    try:
        return resolve_parameters(definitions)
    except CircularDependencyError as e:
        logger.warning("Parameter cycle, evaluating definitions independently", cycle=e.cycle)
        return {name: evaluate_expression(value, {}) for name, value in definitions.items()}
