"""Interactive sketch editing.

``SketchEditor`` owns one sketch and is its only writer: every change is
either an accepted ``updates`` map from the solver or dimension engine, or
an explicit structural edit. ``DragGesture`` models one pointer drag as a
small state machine; positions fed during the drag are solved for feedback
only and nothing reaches the sketch until the gesture is released.

Example:
    >>> editor = SketchEditor(sketch)
    >>> drag = editor.begin_drag(["v2"])
    >>> drag.update(12.0, 4.0).blocked
    False
    >>> result = drag.release()
    >>> drag.state
    <DragState.COMMITTED: 'committed'>
"""

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import SketchConfig, get_config
from ..exceptions import (
    CircularDependencyError,
    ConstraintError,
    DragStateError,
    EntityNotFoundError,
    InvalidParameterError,
    ReferenceInUseError,
)
from ..logging import get_logger
from ..models import (
    Constraint,
    ConstraintType,
    Contour,
    Dimension,
    DimensionElements,
    DimensionResult,
    DimensionType,
    LineRef,
    MoveResult,
    Point2D,
    Scalar,
    Sketch,
    Solid,
    ValidationReport,
    VertexDefinition,
    round_to,
)
from .constraint_solver import ConstraintSolver
from .dimensions import (
    PARAMETER_NAME_RE,
    apply_dimension,
    demote_dimension,
    displayed_dimension_value,
    invert_angle,
    parameter_references,
    promote_dimension,
)
from .expressions import detect_circular_dependencies, evaluate_expression, validate_expression
from .extrusion import build_solid
from .validation import evaluate_vertices, sketch_parameter_values, validate_template

logger = get_logger(__name__)


# --- Transform helpers ---

def centroid(points: Iterable[Point2D]) -> Point2D:
    """Average position of a non-empty set of points."""
    pts = list(points)
    return Point2D(x=sum(p.x for p in pts) / len(pts), y=sum(p.y for p in pts) / len(pts))


def translate_points(points: Mapping[str, Point2D], dx: float, dy: float) -> Dict[str, Point2D]:
    return {vid: Point2D(x=p.x + dx, y=p.y + dy) for vid, p in points.items()}


def scale_points(points: Mapping[str, Point2D], factor: float) -> Dict[str, Point2D]:
    """Scale about the centroid."""
    c = centroid(points.values())
    return {vid: Point2D(x=c.x + (p.x - c.x) * factor, y=c.y + (p.y - c.y) * factor) for vid, p in points.items()}


def rotate_points(points: Mapping[str, Point2D], degrees: float) -> Dict[str, Point2D]:
    """Rotate counterclockwise about the centroid."""
    c = centroid(points.values())
    angle = math.radians(degrees)
    return {vid: p.rotate_about(c, angle) for vid, p in points.items()}


def flip_points(points: Mapping[str, Point2D], axis: str) -> Dict[str, Point2D]:
    """Mirror across the centroid's horizontal (axis "x") or vertical (axis "y") line."""
    c = centroid(points.values())
    if axis == "x":
        return {vid: Point2D(x=p.x, y=2 * c.y - p.y) for vid, p in points.items()}
    if axis == "y":
        return {vid: Point2D(x=2 * c.x - p.x, y=p.y) for vid, p in points.items()}
    raise InvalidParameterError("axis", axis, valid_values=["x", "y"])


def align_points(points: Mapping[str, Point2D], axis: str) -> Dict[str, Point2D]:
    """Line points up along the x axis (shared y) or the y axis (shared x)."""
    c = centroid(points.values())
    if axis == "x":
        return {vid: Point2D(x=p.x, y=c.y) for vid, p in points.items()}
    if axis == "y":
        return {vid: Point2D(x=c.x, y=p.y) for vid, p in points.items()}
    raise InvalidParameterError("axis", axis, valid_values=["x", "y"])


def distribute_points(points: Mapping[str, Point2D], mode: str) -> Dict[str, Point2D]:
    """Spread points evenly, in selection order.

    ``circular`` places them at equal angles around the centroid, each
    keeping its own radius; ``line`` spaces their x evenly between the
    current extremes.
    """
    ids = list(points)
    count = len(ids)
    if mode == "circular":
        c = centroid(points.values())
        result = {}
        for index, vid in enumerate(ids):
            radius = points[vid].distance_to(c)
            angle = 2 * math.pi * index / count
            result[vid] = Point2D(x=c.x + radius * math.cos(angle), y=c.y + radius * math.sin(angle))
        return result
    if mode == "line":
        if count < 2:
            return dict(points)
        xs = [p.x for p in points.values()]
        low, high = min(xs), max(xs)
        return {
            vid: Point2D(x=low + (high - low) * index / (count - 1), y=points[vid].y)
            for index, vid in enumerate(ids)
        }
    raise InvalidParameterError("mode", mode, valid_values=["circular", "line"])


# --- Editor ---

class SketchEditor:
    """Single-writer owner of a sketch.

    Args:
        sketch: sketch to edit; a blank one when omitted
        config: engine configuration (precision, tolerance, extrusion defaults)
    """

    def __init__(self, sketch: Optional[Sketch] = None, config: Optional[SketchConfig] = None):
        self.sketch = sketch or Sketch()
        self.config = config or get_config()
        self.solver = ConstraintSolver(self.config)

    @property
    def precision(self) -> int:
        return self.config.working_precision

    # Queries

    def parameter_values(self) -> Dict[str, float]:
        return sketch_parameter_values(self.sketch)

    def positions(self) -> Dict[str, Point2D]:
        """Evaluated position of every vertex."""
        return evaluate_vertices(self.sketch.geometry.vertices, self.parameter_values())

    def validate(self) -> ValidationReport:
        return validate_template(self.sketch)

    def build(self) -> Solid:
        return build_solid(self.sketch, config=self.config)

    def _next_id(self, prefix: str, taken: Iterable[str]) -> str:
        used = set(taken)
        n = len(used) + 1
        while f"{prefix}{n}" in used:
            n += 1
        return f"{prefix}{n}"

    def _require_vertices(self, vertex_ids: Iterable[str]) -> None:
        vertices = self.sketch.geometry.vertices
        for vertex_id in vertex_ids:
            if vertex_id not in vertices:
                raise EntityNotFoundError("Vertex", vertex_id, available_entities=list(vertices))

    # Vertices

    def add_vertex(self, x: Scalar = 0.0, y: Scalar = 0.0, vertex_id: Optional[str] = None) -> str:
        """Add a vertex and return its id."""
        vertices = self.sketch.geometry.vertices
        vertex_id = vertex_id or self._next_id("v", vertices)
        if vertex_id in vertices:
            raise InvalidParameterError("vertex_id", vertex_id, reason="a vertex with this id already exists")
        vertices[vertex_id] = VertexDefinition(x=x, y=y)
        logger.debug("Vertex added", vertex_id=vertex_id)
        return vertex_id

    def vertex_references(self, vertex_id: str) -> List[str]:
        """Everything in the sketch that names the vertex."""
        geometry = self.sketch.geometry
        users = [
            f"contour {contour.id}"
            for contour in geometry.contours
            if any(vertex_id in element.vertex_ids() for element in contour.elements)
        ]
        users += [f"circle {c.id}" for c in geometry.circles if vertex_id in c.vertex_ids()]
        users += [f"constraint {c.id}" for c in geometry.constraints if c.involves(vertex_id)]
        users += [f"dimension {d.id}" for d in geometry.dimensions if vertex_id in d.elements.vertex_ids()]
        return users

    def remove_vertex(self, vertex_id: str) -> None:
        """Remove a vertex nothing references.

        Raises:
            EntityNotFoundError: unknown vertex
            ReferenceInUseError: a contour, circle, constraint or dimension uses it
        """
        self._require_vertices([vertex_id])
        users = self.vertex_references(vertex_id)
        if users:
            raise ReferenceInUseError("Vertex", vertex_id, users)
        del self.sketch.geometry.vertices[vertex_id]

    # Contours

    def add_contour(self, contour: Union[Contour, Dict[str, Any]]) -> Contour:
        if not isinstance(contour, Contour):
            contour = Contour.model_validate(contour)
        if self.sketch.geometry.find_contour(contour.id) is not None:
            raise InvalidParameterError("contour_id", contour.id, reason="a contour with this id already exists")
        self.sketch.geometry.contours.append(contour)
        return contour

    def remove_contour(self, contour_id: str) -> None:
        geometry = self.sketch.geometry
        if geometry.find_contour(contour_id) is None:
            raise EntityNotFoundError("Contour", contour_id, available_entities=[c.id for c in geometry.contours])
        geometry.contours = [c for c in geometry.contours if c.id != contour_id]

    # Constraints

    def add_constraint(
        self,
        constraint_type: Union[ConstraintType, str],
        nodes: Sequence[str],
        value: Optional[float] = None,
        constraint_id: Optional[str] = None,
    ) -> Constraint:
        """Add a constraint on existing vertices.

        A distance constraint without a value keeps the vertices' current
        distance.

        Raises:
            ConstraintError: wrong vertex count for the constraint type
            EntityNotFoundError: a named vertex does not exist
        """
        constraint_type = ConstraintType(constraint_type)
        geometry = self.sketch.geometry
        constraint_id = constraint_id or self._next_id("c", [c.id for c in geometry.constraints])
        if geometry.find_constraint(constraint_id) is not None:
            raise InvalidParameterError("constraint_id", constraint_id, reason="a constraint with this id already exists")

        nodes = list(nodes)
        if constraint_type == ConstraintType.FIXED and len(nodes) != 1:
            raise ConstraintError(constraint_id, "fixed constraints name exactly 1 vertex")
        if constraint_type in (ConstraintType.HORIZONTAL, ConstraintType.VERTICAL) and len(nodes) < 2:
            raise ConstraintError(constraint_id, f"{constraint_type.value} constraints name at least 2 vertices")
        if constraint_type == ConstraintType.DISTANCE and len(nodes) != 2:
            raise ConstraintError(constraint_id, "distance constraints name exactly 2 vertices")
        self._require_vertices(nodes)

        if constraint_type == ConstraintType.DISTANCE and value is None:
            positions = self.positions()
            value = round_to(positions[nodes[0]].distance_to(positions[nodes[1]]), self.precision)

        constraint = Constraint(id=constraint_id, type=constraint_type, nodes=nodes, value=value)
        geometry.constraints.append(constraint)
        logger.info("Constraint added", constraint_id=constraint_id, type=constraint_type.value, nodes=nodes)
        return constraint

    def remove_constraint(self, constraint_id: str) -> None:
        geometry = self.sketch.geometry
        if geometry.find_constraint(constraint_id) is None:
            raise EntityNotFoundError(
                "Constraint", constraint_id, available_entities=[c.id for c in geometry.constraints]
            )
        geometry.constraints = [c for c in geometry.constraints if c.id != constraint_id]

    def toggle_constraint(self, constraint_id: str) -> bool:
        """Flip a constraint's enabled flag and return the new state."""
        constraint = self.sketch.geometry.find_constraint(constraint_id)
        if constraint is None:
            raise EntityNotFoundError(
                "Constraint", constraint_id,
                available_entities=[c.id for c in self.sketch.geometry.constraints],
            )
        constraint.enabled = not constraint.enabled
        return constraint.enabled

    # Dimensions

    def add_dimension(
        self,
        dimension_type: Union[DimensionType, str],
        nodes: Optional[Sequence[str]] = None,
        lines: Optional[Sequence[Sequence[str]]] = None,
        dimension_id: Optional[str] = None,
    ) -> Dimension:
        """Add a dimension whose value is snapshotted from the live measurement.

        Args:
            dimension_type: linear or angular
            nodes: the two vertices of a linear dimension
            lines: two (from, to) pairs sharing one vertex for an angular one

        Raises:
            DegenerateDimensionError: the dimension cannot be measured
        """
        dimension_type = DimensionType(dimension_type)
        geometry = self.sketch.geometry
        dimension_id = dimension_id or self._next_id("d", [d.id for d in geometry.dimensions])
        if geometry.find_dimension(dimension_id) is not None:
            raise InvalidParameterError("dimension_id", dimension_id, reason="a dimension with this id already exists")

        if dimension_type == DimensionType.LINEAR:
            elements = DimensionElements(nodes=list(nodes or []))
        else:
            elements = DimensionElements(lines=[LineRef(start=a, end=b) for a, b in (lines or [])])
        self._require_vertices(elements.vertex_ids())

        dimension = Dimension(id=dimension_id, type=dimension_type, elements=elements)
        dimension.value = round_to(displayed_dimension_value(dimension, self.positions()), self.precision)
        geometry.dimensions.append(dimension)
        logger.info("Dimension added", dimension_id=dimension_id, value=dimension.value)
        return dimension

    def remove_dimension(self, dimension_id: str) -> None:
        """Remove a dimension, demoting it first if it is a parameter."""
        self.sketch = demote_dimension(self.sketch, dimension_id, self.precision)
        geometry = self.sketch.geometry
        geometry.dimensions = [d for d in geometry.dimensions if d.id != dimension_id]

    def set_dimension_value(self, dimension_id: str, value: float) -> DimensionResult:
        """Drive a dimension to ``value`` and commit the result.

        Promoted dimensions are driven through their parameter. On failure
        nothing changes.
        """
        dimension = self.sketch.geometry.find_dimension(dimension_id)
        if dimension is None:
            raise EntityNotFoundError(
                "Dimension", dimension_id,
                available_entities=[d.id for d in self.sketch.geometry.dimensions],
            )
        if dimension.is_parameter and dimension.label:
            results = self.set_parameter(dimension.label, value)
            return results.get(dimension_id, DimensionResult(success=True))

        result = apply_dimension(dimension, value, self.positions(), self.sketch.geometry.constraints, self.solver)
        if result.success:
            self.commit(result.updates)
            dimension.value = round_to(value, self.precision)
        return result

    def promote_dimension(self, dimension_id: str, name: str) -> None:
        self.sketch = promote_dimension(self.sketch, dimension_id, name, self.precision)

    def demote_dimension(self, dimension_id: str) -> None:
        self.sketch = demote_dimension(self.sketch, dimension_id, self.precision)

    def invert_angle(self, dimension_id: str) -> None:
        self.sketch = invert_angle(self.sketch, dimension_id)

    # Parameters

    def add_parameter(self, name: str, value: Scalar) -> None:
        if not PARAMETER_NAME_RE.match(name or ""):
            raise InvalidParameterError("name", name, reason="not a valid parameter name")
        if name in self.sketch.params:
            raise InvalidParameterError("name", name, reason=f"parameter '{name}' already exists")
        self.set_parameter(name, value)

    def remove_parameter(self, name: str) -> None:
        """Remove a parameter nothing references."""
        if name not in self.sketch.params:
            raise EntityNotFoundError("Parameter", name, available_entities=list(self.sketch.params))
        users = parameter_references(self.sketch, name)
        if users:
            raise ReferenceInUseError("Parameter", name, users)
        del self.sketch.params[name]

    def set_parameter(self, name: str, value: Scalar) -> Dict[str, DimensionResult]:
        """Define or change a parameter, then re-apply promoted dimensions.

        Raises:
            InvalidParameterError: the expression references unknown parameters
            CircularDependencyError: the new definition closes a cycle

        Returns:
            The outcome for every promoted dimension that was re-applied
        """
        definitions = dict(self.sketch.params)
        definitions[name] = value
        check = validate_expression(value, list(definitions))
        if not check.valid:
            raise InvalidParameterError(name, value, reason=check.error)
        cycle = detect_circular_dependencies(definitions)
        if cycle.circular:
            raise CircularDependencyError(cycle.cycle or [])

        self.sketch.params[name] = value
        logger.info("Parameter set", parameter=name, value=value)
        return self.reapply_parameter_dimensions()

    def reapply_parameter_dimensions(self) -> Dict[str, DimensionResult]:
        """Drive every promoted dimension to its parameter's current value."""
        values = self.parameter_values()
        results: Dict[str, DimensionResult] = {}
        for dimension in self.sketch.geometry.dimensions:
            if not dimension.is_parameter:
                continue
            target = evaluate_expression(dimension.value, values)
            result = apply_dimension(
                dimension, target, self.positions(), self.sketch.geometry.constraints, self.solver
            )
            if result.success:
                self.commit(result.updates)
            else:
                logger.warning(
                    "Promoted dimension could not follow its parameter",
                    dimension_id=dimension.id,
                    reason=result.reason,
                )
            results[dimension.id] = result
        return results

    # Moves

    def commit(self, updates: Mapping[str, Point2D]) -> None:
        """Write accepted positions into the sketch as literal coordinates."""
        vertices = self.sketch.geometry.vertices
        for vertex_id, position in updates.items():
            vertices[vertex_id] = VertexDefinition(
                x=round_to(position.x, self.precision),
                y=round_to(position.y, self.precision),
            )

    def move_vertex(self, vertex_id: str, x: float, y: float) -> MoveResult:
        """Solve and commit a single vertex move."""
        result = self.solver.solve_node_move(vertex_id, x, y, self.positions(), self.sketch.geometry.constraints)
        if not result.blocked:
            self.commit(result.updates)
        return result

    def move_vertices(self, proposals: Mapping[str, Point2D]) -> MoveResult:
        """Solve and commit a group move, all or nothing."""
        result = self.solver.solve_group_move(proposals, self.positions(), self.sketch.geometry.constraints)
        if not result.blocked:
            self.commit(result.updates)
        return result

    def _selection(self, vertex_ids: Sequence[str]) -> Dict[str, Point2D]:
        if not vertex_ids:
            raise InvalidParameterError("vertex_ids", list(vertex_ids), reason="select at least one vertex")
        self._require_vertices(vertex_ids)
        positions = self.positions()
        return {vid: positions[vid] for vid in vertex_ids}

    def translate(self, vertex_ids: Sequence[str], dx: float, dy: float) -> MoveResult:
        return self.move_vertices(translate_points(self._selection(vertex_ids), dx, dy))

    def scale(self, vertex_ids: Sequence[str], factor: float) -> MoveResult:
        return self.move_vertices(scale_points(self._selection(vertex_ids), factor))

    def rotate(self, vertex_ids: Sequence[str], degrees: float) -> MoveResult:
        return self.move_vertices(rotate_points(self._selection(vertex_ids), degrees))

    def flip(self, vertex_ids: Sequence[str], axis: str) -> MoveResult:
        return self.move_vertices(flip_points(self._selection(vertex_ids), axis))

    def align(self, vertex_ids: Sequence[str], axis: str) -> MoveResult:
        return self.move_vertices(align_points(self._selection(vertex_ids), axis))

    def distribute(self, vertex_ids: Sequence[str], mode: str) -> MoveResult:
        return self.move_vertices(distribute_points(self._selection(vertex_ids), mode))

    def begin_drag(self, vertex_ids: Sequence[str]) -> "DragGesture":
        """Start a drag gesture on one or more vertices."""
        gesture = DragGesture(self, vertex_ids)
        gesture.begin()
        return gesture


# --- Drag gesture ---

class DragState(str, Enum):
    """Lifecycle of a drag gesture."""
    IDLE = "idle"
    DRAGGING = "dragging"
    RELEASED = "released"
    COMMITTED = "committed"
    REVERTED = "reverted"


class DragGesture:
    """One pointer drag of a vertex or a group of vertices.

    ``update`` proposes a position for the grabbed (first) vertex; the other
    vertices keep their offset to it. Results are solved for live feedback
    and never committed. ``release`` validates the last proposal once more
    and commits it or reverts. ``cancel`` abandons the drag.
    """

    def __init__(self, editor: SketchEditor, vertex_ids: Sequence[str]):
        if not vertex_ids:
            raise InvalidParameterError("vertex_ids", list(vertex_ids), reason="drag at least one vertex")
        self.editor = editor
        self.vertex_ids = list(vertex_ids)
        self.state = DragState.IDLE
        self.origin: Dict[str, Point2D] = {}
        self.proposal: Optional[Dict[str, Point2D]] = None
        self.last_result: Optional[MoveResult] = None

    def _expect(self, state: DragState, event: str) -> None:
        if self.state != state:
            raise DragStateError(self.state.value, event)

    def begin(self) -> None:
        self._expect(DragState.IDLE, "begin")
        self.origin = self.editor._selection(self.vertex_ids)
        self.proposal = None
        self.last_result = None
        self.state = DragState.DRAGGING

    def _solve(self) -> MoveResult:
        sketch = self.editor.sketch
        positions = self.editor.positions()
        solver = self.editor.solver
        if len(self.proposal) == 1:
            (vertex_id, target), = self.proposal.items()
            return solver.solve_node_move(vertex_id, target.x, target.y, positions, sketch.geometry.constraints)
        return solver.solve_group_move(self.proposal, positions, sketch.geometry.constraints)

    def update(self, x: float, y: float) -> MoveResult:
        """Feed a pointer position for the grabbed vertex."""
        self._expect(DragState.DRAGGING, "update")
        anchor = self.origin[self.vertex_ids[0]]
        self.proposal = translate_points(self.origin, x - anchor.x, y - anchor.y)
        self.last_result = self._solve()
        return self.last_result

    def cancel(self) -> None:
        """Abandon the drag; the sketch is untouched."""
        self._expect(DragState.DRAGGING, "cancel")
        self.proposal = None
        self.last_result = None
        self.state = DragState.IDLE

    def release(self) -> MoveResult:
        """End the drag, committing the final position if it is still valid."""
        self._expect(DragState.DRAGGING, "release")
        self.state = DragState.RELEASED
        if self.proposal is None:
            self.state = DragState.COMMITTED
            return MoveResult(blocked=False, updates={})

        result = self._solve()
        self.last_result = result
        if result.blocked:
            self.state = DragState.REVERTED
            logger.info("Drag reverted", vertices=self.vertex_ids, reason=result.reason)
        else:
            self.editor.commit(result.updates)
            self.state = DragState.COMMITTED
        return result
