"""Constraint solver for interactive vertex moves.

Validates a proposed vertex displacement against the active constraints and
computes the full set of position updates it implies. Only direct
propagation is performed: a move is checked constraint by constraint in the
order fixed, distance, axis alignment, and the first one that cannot be
honoured blocks the move. There is no iterative relaxation across chained
constraints.

Example:
    >>> solver = ConstraintSolver()
    >>> result = solver.solve_node_move("v2", 12.0, 3.0, vertices, constraints)
    >>> if not result.blocked:
    ...     vertices.update(result.updates)
"""

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import SketchConfig, get_config
from ..logging import get_logger
from ..models import (
    Constraint,
    ConstraintType,
    MoveResult,
    OverConstraintReport,
    Point2D,
    round_to,
)

logger = get_logger(__name__)

PointLike = Union[Point2D, Tuple[float, float], Mapping[str, float]]


def as_point(value: PointLike) -> Point2D:
    """Coerce a Point2D, (x, y) tuple or {"x", "y"} mapping to a Point2D."""
    if isinstance(value, Point2D):
        return value
    if isinstance(value, Mapping):
        return Point2D(x=float(value["x"]), y=float(value["y"]))
    x, y = value
    return Point2D(x=float(x), y=float(y))


def active_constraints(constraints: Iterable[Constraint], node_id: str) -> List[Constraint]:
    """Enabled constraints naming a vertex."""
    return [c for c in constraints if c.enabled and c.involves(node_id)]


def is_fixed(node_id: str, constraints: Iterable[Constraint]) -> bool:
    """Whether an enabled fixed constraint names the vertex."""
    return any(
        c.enabled and c.type == ConstraintType.FIXED and c.involves(node_id)
        for c in constraints
    )


class ConstraintSolver:
    """Validates and propagates vertex moves.

    Args:
        config: engine configuration; supplies the rounding precision and the
                tolerance used when re-checking distance constraints.
    """

    def __init__(self, config: Optional[SketchConfig] = None):
        self.config = config or get_config()
        self.precision = self.config.working_precision
        self.tolerance = self.config.distance_tolerance

    def solve_node_move(
        self,
        node_id: str,
        x: float,
        y: float,
        vertices: Mapping[str, Point2D],
        constraints: Sequence[Constraint],
    ) -> MoveResult:
        """Resolve a proposed move of one vertex.

        Args:
            node_id: vertex being dragged
            x: proposed X
            y: proposed Y
            vertices: current evaluated positions of every vertex
            constraints: all constraints of the sketch (disabled ones are ignored)

        Returns:
            MoveResult whose ``updates`` hold the final position of every
            affected vertex, the mover included. Blocked results carry no
            updates.
        """
        if node_id not in vertices:
            return MoveResult.block(f"Vertex '{node_id}' does not exist")

        if not (math.isfinite(x) and math.isfinite(y)):
            return MoveResult.block(f"Proposed position of '{node_id}' is not a finite point")

        current = as_point(vertices[node_id])
        own = active_constraints(constraints, node_id)

        # 1. fixed
        if any(c.type == ConstraintType.FIXED for c in own):
            return MoveResult.block(f"Vertex '{node_id}' is fixed and cannot move")

        # 2. distance: hold the opposite endpoint, project onto the circle
        target = Point2D(x=float(x), y=float(y))
        for constraint in own:
            if constraint.type != ConstraintType.DISTANCE or constraint.value is None:
                continue
            others = [n for n in constraint.nodes if n != node_id]
            if len(others) != 1 or others[0] not in vertices:
                return MoveResult.block(
                    f"Distance constraint '{constraint.id}' does not name two existing vertices"
                )
            anchor = as_point(vertices[others[0]])
            direction = target - anchor
            if direction.magnitude == 0:
                return MoveResult.block(
                    f"Cannot keep distance constraint '{constraint.id}': "
                    f"'{node_id}' would coincide with '{others[0]}'"
                )
            target = anchor + direction.normalize() * constraint.value

        target = target.rounded(self.precision)
        updates: Dict[str, Point2D] = {node_id: target}

        # 3. axis alignment: the group takes the mover's coordinate
        for constraint in own:
            if constraint.type == ConstraintType.HORIZONTAL:
                axis = "y"
            elif constraint.type == ConstraintType.VERTICAL:
                axis = "x"
            else:
                continue
            shared = getattr(target, axis)
            for other_id in constraint.nodes:
                if other_id == node_id:
                    continue
                if other_id not in vertices:
                    return MoveResult.block(
                        f"Alignment constraint '{constraint.id}' names missing vertex '{other_id}'"
                    )
                base = updates.get(other_id, as_point(vertices[other_id]))
                moved = base.model_copy(update={axis: shared})
                if moved == as_point(vertices[other_id]):
                    continue
                if is_fixed(other_id, constraints):
                    return MoveResult.block(
                        f"Vertex '{other_id}' is fixed and must stay aligned with "
                        f"'{node_id}' ({constraint.type.value} constraint '{constraint.id}')"
                    )
                updates[other_id] = moved

        updates = {vid: p.rounded(self.precision) for vid, p in updates.items()}

        violation = self.check_distance_constraints(updates, vertices, constraints)
        if violation:
            return MoveResult.block(violation)

        logger.debug(
            "Node move solved",
            node_id=node_id,
            affected=sorted(updates),
        )
        return MoveResult(blocked=False, updates=updates)

    def solve_group_move(
        self,
        proposals: Mapping[str, PointLike],
        vertices: Mapping[str, Point2D],
        constraints: Sequence[Constraint],
    ) -> MoveResult:
        """Resolve a move of several vertices dragged together.

        Each vertex is validated against the proposed positions of the whole
        group. If any single vertex blocks, or two vertices would push a third
        to different places, the entire move is rejected.
        """
        if not proposals:
            return MoveResult(blocked=False, updates={})

        proposed = {vid: as_point(p) for vid, p in proposals.items()}
        missing = [vid for vid in proposed if vid not in vertices]
        if missing:
            return MoveResult.block(f"Vertices do not exist: {', '.join(missing)}")

        scene = {vid: as_point(p) for vid, p in vertices.items()}
        scene.update(proposed)

        merged: Dict[str, Point2D] = {}
        for vid, target in proposed.items():
            result = self.solve_node_move(vid, target.x, target.y, scene, constraints)
            if result.blocked:
                logger.info("Group move blocked", node_id=vid, reason=result.reason)
                return MoveResult.block(f"Group move rejected: {result.reason}")
            for other_id, position in result.updates.items():
                previous = merged.get(other_id)
                if previous is not None and previous.distance_to(position) > self.tolerance:
                    return MoveResult.block(
                        f"Group move rejected: vertex '{other_id}' would be moved to two different positions"
                    )
                merged[other_id] = position

        violation = self.check_distance_constraints(merged, vertices, constraints)
        if violation:
            return MoveResult.block(f"Group move rejected: {violation}")

        return MoveResult(blocked=False, updates=merged)

    def check_distance_constraints(
        self,
        updates: Mapping[str, Point2D],
        vertices: Mapping[str, Point2D],
        constraints: Sequence[Constraint],
    ) -> Optional[str]:
        """Reason a touched distance constraint no longer holds, or None."""
        for constraint in constraints:
            if not constraint.enabled or constraint.type != ConstraintType.DISTANCE:
                continue
            if constraint.value is None or len(constraint.nodes) != 2:
                continue
            node_a, node_b = constraint.nodes
            if node_a not in updates and node_b not in updates:
                continue
            if node_a not in vertices or node_b not in vertices:
                continue
            pos_a = updates.get(node_a, as_point(vertices[node_a]))
            pos_b = updates.get(node_b, as_point(vertices[node_b]))
            actual = pos_a.distance_to(pos_b)
            if abs(actual - constraint.value) > self.tolerance:
                return (
                    f"Distance constraint '{constraint.id}' between '{node_a}' and '{node_b}' "
                    f"cannot be kept ({round_to(actual, self.precision)} != {constraint.value})"
                )
        return None

    def detect_over_constraint(
        self,
        vertices: Mapping[str, Point2D],
        constraints: Sequence[Constraint],
    ) -> OverConstraintReport:
        """Find constraint combinations that cannot all hold.

        Reports vertices that are fixed but also belong to an alignment group,
        and distance constraints whose endpoints are both fixed at a
        different length.
        """
        conflicts: List[str] = []

        for node_id in vertices:
            own = active_constraints(constraints, node_id)
            kinds = {c.type for c in own}
            if ConstraintType.FIXED in kinds and kinds & {ConstraintType.HORIZONTAL, ConstraintType.VERTICAL}:
                conflicts.append(f"Vertex '{node_id}' is fixed but also has alignment constraints")

        for constraint in constraints:
            if not constraint.enabled or constraint.type != ConstraintType.DISTANCE:
                continue
            if constraint.value is None or len(constraint.nodes) != 2:
                continue
            node_a, node_b = constraint.nodes
            if node_a not in vertices or node_b not in vertices:
                continue
            if is_fixed(node_a, constraints) and is_fixed(node_b, constraints):
                actual = as_point(vertices[node_a]).distance_to(as_point(vertices[node_b]))
                if abs(actual - constraint.value) > self.tolerance:
                    conflicts.append(
                        f"Distance constraint '{constraint.id}' asks for {constraint.value} "
                        f"but both endpoints are fixed {round_to(actual, self.precision)} apart"
                    )

        return OverConstraintReport(is_over_constrained=bool(conflicts), conflicts=conflicts)


def solve_node_move(
    node_id: str,
    x: float,
    y: float,
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
) -> MoveResult:
    """Resolve a proposed move of one vertex with the configured solver."""
    return ConstraintSolver().solve_node_move(node_id, x, y, vertices, constraints)


def solve_group_move(
    proposals: Mapping[str, PointLike],
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
) -> MoveResult:
    """Resolve a move of several vertices with the configured solver."""
    return ConstraintSolver().solve_group_move(proposals, vertices, constraints)


def detect_over_constraint(
    vertices: Mapping[str, Point2D],
    constraints: Sequence[Constraint],
) -> OverConstraintReport:
    """Report conflicting constraints with the configured solver."""
    return ConstraintSolver().detect_over_constraint(vertices, constraints)
