"""Sketch engine services for OrthoSketch."""

from .expressions import (
    evaluate_expression,
    evaluate_batch,
    validate_expression,
    detect_circular_dependencies,
    compile_expression,
    expression_references,
    resolve_parameters,
    trace_evaluation,
)
from .validation import (
    load_sketch,
    validate_geometry,
    validate_template,
    evaluate_vertices,
    sketch_parameter_values,
)
from .constraint_solver import (
    ConstraintSolver,
    solve_node_move,
    solve_group_move,
    detect_over_constraint,
)
from .dimensions import (
    calculate_dimension_value,
    displayed_dimension_value,
    apply_dimension,
    promote_dimension,
    demote_dimension,
    invert_angle,
)
from .extrusion import build_solid, resolve_profile
from .preview import calculate_bounds_2d, generate_svg_preview
from .editor import SketchEditor, DragGesture, DragState

__all__ = [
    # Expressions
    "evaluate_expression", "evaluate_batch", "validate_expression",
    "detect_circular_dependencies", "compile_expression",
    "expression_references", "resolve_parameters", "trace_evaluation",
    # Validation
    "load_sketch", "validate_geometry", "validate_template",
    "evaluate_vertices", "sketch_parameter_values",
    # Constraints
    "ConstraintSolver", "solve_node_move", "solve_group_move",
    "detect_over_constraint",
    # Dimensions
    "calculate_dimension_value", "displayed_dimension_value",
    "apply_dimension", "promote_dimension", "demote_dimension", "invert_angle",
    # Extrusion
    "build_solid", "resolve_profile", "calculate_bounds_2d", "generate_svg_preview",
    # Editing
    "SketchEditor", "DragGesture", "DragState",
]
