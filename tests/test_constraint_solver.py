"""Unit tests for the constraint solver."""

import pytest

from orthosketch.config import SketchConfig
from orthosketch.models import Constraint, ConstraintType, Point2D
from orthosketch.services.constraint_solver import (
    ConstraintSolver,
    as_point,
    detect_over_constraint,
    is_fixed,
    solve_group_move,
    solve_node_move,
)


def constraint(cid, ctype, nodes, value=None, enabled=True):
    return Constraint(id=cid, type=ConstraintType(ctype), nodes=nodes, value=value, enabled=enabled)


class TestHelpers:
    """Tests for solver helpers."""

    def test_as_point(self):
        """Test coercion of points, tuples and mappings."""
        assert as_point((1, 2)) == Point2D(x=1, y=2)
        assert as_point({"x": 3, "y": 4}) == Point2D(x=3, y=4)
        p = Point2D(x=5, y=6)
        assert as_point(p) is p

    def test_is_fixed_ignores_disabled(self):
        """Test that disabled fixed constraints do not pin a vertex."""
        constraints = [constraint("c1", "fixed", ["v1"], enabled=False)]
        assert not is_fixed("v1", constraints)
        assert is_fixed("v1", [constraint("c1", "fixed", ["v1"])])


class TestFixedConstraint:
    """Tests for fixed constraints."""

    @pytest.mark.parametrize("x,y", [(5, 5), (0.1, 0), (-3, 12), (100, -100)])
    def test_fixed_vertex_blocks(self, rectangle_points, x, y):
        """Test that a fixed vertex never moves."""
        result = solve_node_move("v1", x, y, rectangle_points, [constraint("c1", "fixed", ["v1"])])
        assert result.blocked
        assert result.updates == {}
        assert "fixed" in result.reason

    def test_disabled_fixed_allows_move(self, rectangle_points):
        """Test that a disabled constraint is inert."""
        result = solve_node_move(
            "v1", 5, 5, rectangle_points, [constraint("c1", "fixed", ["v1"], enabled=False)]
        )
        assert not result.blocked
        assert result.updates == {"v1": Point2D(x=5, y=5)}

    @pytest.mark.parametrize("x, y", [(float("nan"), 1), (1, float("inf"))])
    def test_non_finite_proposal_blocks(self, rectangle_points, x, y):
        """Test that a proposed position must be a finite point."""
        result = solve_node_move("v1", x, y, rectangle_points, [])
        assert result.blocked
        assert result.updates == {}
        assert "not a finite point" in result.reason

    def test_unknown_vertex_blocks(self, rectangle_points):
        """Test moving a vertex that does not exist."""
        result = solve_node_move("v9", 1, 1, rectangle_points, [])
        assert result.blocked
        assert "does not exist" in result.reason


class TestAlignmentConstraints:
    """Tests for horizontal and vertical constraints."""

    def test_horizontal_group_shares_y(self, rectangle_points):
        """Test that a horizontal group follows the mover's y."""
        result = solve_node_move("v1", 3, 7, rectangle_points, [constraint("c1", "horizontal", ["v1", "v2"])])
        assert not result.blocked
        assert result.updates["v1"] == Point2D(x=3, y=7)
        assert result.updates["v2"] == Point2D(x=40, y=7)

    def test_vertical_group_shares_x(self, rectangle_points):
        """Test that a vertical group follows the mover's x."""
        result = solve_node_move("v2", 45, -2, rectangle_points, [constraint("c1", "vertical", ["v2", "v3"])])
        assert not result.blocked
        assert result.updates["v2"].x == result.updates["v3"].x == 45
        assert result.updates["v3"].y == 20

    def test_larger_group(self, rectangle_points):
        """Test a horizontal constraint over three vertices."""
        points = dict(rectangle_points, v5=Point2D(x=20, y=0))
        result = solve_node_move("v5", 20, -4, points, [constraint("c1", "horizontal", ["v1", "v2", "v5"])])
        assert {p.y for p in result.updates.values()} == {-4}
        assert set(result.updates) == {"v1", "v2", "v5"}

    def test_fixed_member_blocks_alignment(self, rectangle_points):
        """Test that a fixed group member that would have to move blocks."""
        constraints = [
            constraint("c1", "horizontal", ["v1", "v2"]),
            constraint("c2", "fixed", ["v2"]),
        ]
        result = solve_node_move("v1", 3, 7, rectangle_points, constraints)
        assert result.blocked
        assert "v2" in result.reason

    def test_fixed_member_allows_slide(self, rectangle_points):
        """Test that sliding along the shared axis leaves a fixed member in place."""
        constraints = [
            constraint("c1", "horizontal", ["v1", "v2"]),
            constraint("c2", "fixed", ["v2"]),
        ]
        result = solve_node_move("v1", 8, 0, rectangle_points, constraints)
        assert not result.blocked
        assert result.updates == {"v1": Point2D(x=8, y=0)}

    def test_results_are_rounded(self, rectangle_points):
        """Test one-decimal rounding of every update."""
        result = solve_node_move("v1", 1.26, 3.04, rectangle_points, [constraint("c1", "horizontal", ["v1", "v2"])])
        assert result.updates["v1"] == Point2D(x=1.3, y=3.0)
        assert result.updates["v2"] == Point2D(x=40, y=3.0)

    def test_precision_from_config(self, rectangle_points):
        """Test that the solver rounds to the configured precision."""
        solver = ConstraintSolver(SketchConfig(working_precision=2))
        result = solver.solve_node_move("v1", 1.234, 0, rectangle_points, [])
        assert result.updates["v1"].x == 1.23


class TestDistanceConstraint:
    """Tests for distance constraints."""

    def test_projects_onto_circle(self, rectangle_points):
        """Test that the mover is projected to keep its distance."""
        result = solve_node_move("v2", 30, 40, rectangle_points, [constraint("c1", "distance", ["v1", "v2"], 40)])
        assert not result.blocked
        assert result.updates["v2"] == Point2D(x=24, y=32)
        assert result.updates["v2"].distance_to(rectangle_points["v1"]) == pytest.approx(40, abs=0.1)

    def test_coincident_proposal_blocks(self, rectangle_points):
        """Test that a move onto the anchor is blocked."""
        result = solve_node_move("v2", 0, 0, rectangle_points, [constraint("c1", "distance", ["v1", "v2"], 40)])
        assert result.blocked
        assert "coincide" in result.reason

    def test_alignment_breaking_distance_blocks(self, rectangle_points):
        """Test that a propagated move may not break a distance constraint."""
        constraints = [
            constraint("c1", "horizontal", ["v1", "v2"]),
            constraint("c2", "distance", ["v2", "v3"], 20),
        ]
        result = solve_node_move("v1", 0, 5, rectangle_points, constraints)
        assert result.blocked
        assert "c2" in result.reason

    def test_check_distance_constraints(self, rectangle_points):
        """Test the distance re-check directly."""
        solver = ConstraintSolver()
        constraints = [constraint("c1", "distance", ["v1", "v2"], 40)]
        assert solver.check_distance_constraints({"v2": Point2D(x=40.05, y=0)}, rectangle_points, constraints) is None
        assert solver.check_distance_constraints({"v2": Point2D(x=35, y=0)}, rectangle_points, constraints)


class TestGroupMove:
    """Tests for solve_group_move."""

    def test_translation_of_aligned_pair(self, rectangle_points):
        """Test moving both members of a horizontal group together."""
        proposals = {"v1": Point2D(x=0, y=5), "v2": Point2D(x=40, y=5)}
        result = solve_group_move(proposals, rectangle_points, [constraint("c1", "horizontal", ["v1", "v2"])])
        assert not result.blocked
        assert result.updates == proposals

    def test_any_block_rejects_all(self, rectangle_points):
        """Test that one fixed vertex rejects the whole move."""
        proposals = {"v1": (1, 1), "v3": (41, 21)}
        result = solve_group_move(proposals, rectangle_points, [constraint("c1", "fixed", ["v1"])])
        assert result.blocked
        assert result.updates == {}
        assert result.reason.startswith("Group move rejected")

    def test_conflicting_propagation(self, rectangle_points):
        """Test that two solves disagreeing on a vertex reject the move."""
        proposals = {"v1": Point2D(x=0, y=5), "v2": Point2D(x=40, y=8)}
        result = solve_group_move(proposals, rectangle_points, [constraint("c1", "horizontal", ["v1", "v2"])])
        assert result.blocked

    def test_empty_proposal(self, rectangle_points):
        """Test that nothing to move is not blocked."""
        result = solve_group_move({}, rectangle_points, [])
        assert not result.blocked
        assert result.updates == {}

    def test_missing_vertex(self, rectangle_points):
        """Test a proposal for an unknown vertex."""
        result = solve_group_move({"v9": (1, 1)}, rectangle_points, [])
        assert result.blocked
        assert "v9" in result.reason


class TestOverConstraint:
    """Tests for detect_over_constraint."""

    def test_fixed_and_aligned(self, rectangle_points):
        """Test a fixed vertex that also belongs to an alignment group."""
        report = detect_over_constraint(
            rectangle_points,
            [constraint("c1", "fixed", ["v1"]), constraint("c2", "horizontal", ["v1", "v2"])],
        )
        assert report.is_over_constrained
        assert any("v1" in c for c in report.conflicts)

    def test_fixed_endpoints_wrong_distance(self, rectangle_points):
        """Test a distance that cannot hold between two fixed vertices."""
        constraints = [
            constraint("c1", "fixed", ["v1"]),
            constraint("c2", "fixed", ["v2"]),
            constraint("c3", "distance", ["v1", "v2"], 30),
        ]
        report = detect_over_constraint(rectangle_points, constraints)
        assert report.is_over_constrained
        assert "c3" in report.conflicts[0]

    def test_consistent_constraints(self, rectangle_points):
        """Test constraints that all hold."""
        constraints = [
            constraint("c1", "fixed", ["v1"]),
            constraint("c2", "fixed", ["v2"]),
            constraint("c3", "distance", ["v1", "v2"], 40),
            constraint("c4", "horizontal", ["v3", "v4"]),
        ]
        report = detect_over_constraint(rectangle_points, constraints)
        assert not report.is_over_constrained
        assert report.conflicts == []
