"""OrthoSketch: parametric 2D sketch engine with constraint solving and extrusion."""

__version__ = "0.1.0"

from .services import (
    evaluate_expression,
    evaluate_batch,
    validate_expression,
    detect_circular_dependencies,
    validate_geometry,
    validate_template,
    solve_node_move,
    solve_group_move,
    calculate_dimension_value,
    apply_dimension,
    promote_dimension,
    demote_dimension,
    build_solid,
    SketchEditor,
)

__all__ = [
    "__version__",
    "evaluate_expression",
    "evaluate_batch",
    "validate_expression",
    "detect_circular_dependencies",
    "validate_geometry",
    "validate_template",
    "solve_node_move",
    "solve_group_move",
    "calculate_dimension_value",
    "apply_dimension",
    "promote_dimension",
    "demote_dimension",
    "build_solid",
    "SketchEditor",
]
