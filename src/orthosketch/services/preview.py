"""2D preview helpers: sketch bounds and an SVG rendering for debugging.

The SVG is drawn in sketch coordinates (y up) inside a group that flips the
y axis, so arcs keep the sweep direction they have in the sketch.
"""

from typing import List, Mapping, Optional
from xml.sax.saxutils import quoteattr

from ..logging import get_logger
from ..models import (
    ArcElement,
    BezierCubicElement,
    BezierQuadraticElement,
    BoundingBox2D,
    Contour,
    LineElement,
    Point2D,
    Sketch,
)
from .expressions import evaluate_expression
from .validation import evaluate_vertices, sketch_parameter_values

logger = get_logger(__name__)

PADDING = 10.0

_STYLES = {
    "outer": ('fill="lightblue"', 'stroke="blue"'),
    "hole": ('fill="white"', 'stroke="red"'),
}


def _fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def calculate_bounds_2d(sketch: Sketch, params: Optional[Mapping[str, float]] = None) -> BoundingBox2D:
    """Bounding box of every evaluated vertex, control vertices included."""
    points = evaluate_vertices(sketch.geometry.vertices, sketch_parameter_values(sketch, params))
    return BoundingBox2D.from_points(points.values())


def contour_path_data(contour: Contour, points: Mapping[str, Point2D], params: Mapping[str, float]) -> str:
    """SVG path ``d`` attribute for one contour."""
    commands: List[str] = []
    for element in contour.elements:
        start, end = points.get(element.start), points.get(element.end)
        if start is None or end is None:
            logger.warning("Preview skips element with missing vertex", contour=contour.id)
            continue
        if not commands:
            commands.append(f"M {_fmt(start.x)} {_fmt(start.y)}")

        if isinstance(element, LineElement):
            commands.append(f"L {_fmt(end.x)} {_fmt(end.y)}")
        elif isinstance(element, ArcElement):
            radius = _fmt(evaluate_expression(element.radius, params))
            # positive-angle sweep in a y-up frame is counterclockwise
            sweep = 0 if element.clockwise else 1
            commands.append(f"A {radius} {radius} 0 0 {sweep} {_fmt(end.x)} {_fmt(end.y)}")
        elif isinstance(element, BezierQuadraticElement):
            control = points.get(element.control)
            if control is None:
                commands.append(f"L {_fmt(end.x)} {_fmt(end.y)}")
            else:
                commands.append(f"Q {_fmt(control.x)} {_fmt(control.y)} {_fmt(end.x)} {_fmt(end.y)}")
        elif isinstance(element, BezierCubicElement):
            c1, c2 = points.get(element.control1), points.get(element.control2)
            if c1 is None or c2 is None:
                commands.append(f"L {_fmt(end.x)} {_fmt(end.y)}")
            else:
                commands.append(
                    f"C {_fmt(c1.x)} {_fmt(c1.y)} {_fmt(c2.x)} {_fmt(c2.y)} {_fmt(end.x)} {_fmt(end.y)}"
                )
        else:
            raise TypeError(f"Unknown path element: {type(element).__name__}")

    if contour.closed and commands:
        commands.append("Z")
    return " ".join(commands)


def generate_svg_preview(sketch: Sketch, params: Optional[Mapping[str, float]] = None) -> str:
    """Render the sketch's contours and circles as a standalone SVG string.

    Outer contours are drawn blue on light blue, holes red on white.
    """
    values = sketch_parameter_values(sketch, params)
    points = evaluate_vertices(sketch.geometry.vertices, values)
    bounds = BoundingBox2D.from_points(points.values())

    width = bounds.width + PADDING * 2
    height = bounds.height + PADDING * 2
    view_box = " ".join(
        _fmt(v) for v in (bounds.min_x - PADDING, -(bounds.max_y + PADDING), width, height)
    )

    shapes: List[str] = []
    for contour in sketch.geometry.contours:
        fill, stroke = _STYLES[contour.type.value]
        data = contour_path_data(contour, points, values)
        if data:
            shapes.append(f'<path id={quoteattr(contour.id)} d="{data}" {fill} {stroke} stroke-width="1" />')

    for circle in sketch.geometry.circles:
        center, rim = points.get(circle.center), points.get(circle.radius_point)
        if center is None or rim is None:
            logger.warning("Preview skips circle with missing vertex", circle=circle.id)
            continue
        shapes.append(
            f'<circle id={quoteattr(circle.id)} cx="{_fmt(center.x)}" cy="{_fmt(center.y)}" '
            f'r="{_fmt(center.distance_to(rim))}" fill="none" stroke="green" stroke-width="1" />'
        )

    body = "\n    ".join(shapes)
    return (
        f'<svg width="{_fmt(width)}" height="{_fmt(height)}" viewBox="{view_box}" '
        f'xmlns="http://www.w3.org/2000/svg">\n'
        f'  <g transform="scale(1,-1)">\n'
        f"    {body}\n"
        f"  </g>\n"
        f"</svg>"
    )
