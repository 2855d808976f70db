"""Extrusion builder.

Turns a sketch into a ``Solid``: vertex expressions are evaluated, the outer
contour and every hole are traced into point rings (lines, arcs and Bezier
curves tessellated with numpy), the holes are subtracted from the outer
region with shapely, and the result is paired with the resolved extrusion
settings. Only a missing outer contour aborts the build; every other fault
degrades to a straight segment and a warning.
"""

import math
from typing import List, Mapping, Optional

import numpy as np
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.ops import unary_union
from shapely.validation import explain_validity, make_valid

from ..config import SketchConfig, get_config
from ..exceptions import NoOuterContourError
from ..logging import get_logger
from ..models import (
    ArcElement,
    BezierCubicElement,
    BezierQuadraticElement,
    Contour,
    ExtrusionProfile,
    ExtrusionSettings,
    LineElement,
    Point2D,
    Sketch,
    Solid,
)
from .expressions import evaluate_expression
from .validation import evaluate_vertices, sketch_parameter_values

logger = get_logger(__name__)


def resolve_profile(
    settings: Optional[ExtrusionSettings],
    config: Optional[SketchConfig] = None,
) -> ExtrusionProfile:
    """Fill every absent extrusion setting from configuration defaults."""
    config = config or get_config()
    settings = settings or ExtrusionSettings()

    def pick(value, default):
        return default if value is None else value

    return ExtrusionProfile(
        bevel=pick(settings.bevel, config.default_bevel),
        bevel_thickness=pick(settings.bevel_thickness, config.default_bevel_thickness),
        bevel_size=pick(settings.bevel_size, config.default_bevel_size),
        bevel_segments=pick(settings.bevel_segments, config.default_bevel_segments),
        curve_segments=pick(settings.curve_segments, config.default_curve_segments),
        steps=pick(settings.steps, config.default_steps),
    )


def arc_center(start: Point2D, end: Point2D, radius: float, clockwise: bool) -> Optional[Point2D]:
    """Center of the minor arc of ``radius`` from start to end.

    A clockwise sweep (y-up frame) puts the center to the right of the
    chord, a counterclockwise one to the left. Returns None when the radius
    is smaller than half the chord or the endpoints coincide.
    """
    chord = end - start
    length = chord.magnitude
    if length == 0 or radius <= 0 or radius < length / 2:
        return None
    offset = math.sqrt(max(radius * radius - (length / 2) ** 2, 0.0))
    normal = chord.normalize().perpendicular()  # left of the chord
    side = -1.0 if clockwise else 1.0
    return start.midpoint(end) + normal * (offset * side)


def arc_points(
    start: Point2D,
    end: Point2D,
    center: Point2D,
    clockwise: bool,
    segments: int,
) -> np.ndarray:
    """Sample a minor arc, excluding the start point, ending exactly at end."""
    a0 = math.atan2(start.y - center.y, start.x - center.x)
    a1 = math.atan2(end.y - center.y, end.x - center.x)
    sweep = (a0 - a1) % (2 * math.pi) if clockwise else (a1 - a0) % (2 * math.pi)
    direction = -1.0 if clockwise else 1.0
    radius = start.distance_to(center)

    t = np.linspace(0.0, 1.0, segments + 1)[1:]
    angles = a0 + direction * sweep * t
    points = np.column_stack((center.x + radius * np.cos(angles), center.y + radius * np.sin(angles)))
    points[-1] = (end.x, end.y)
    return points


def quadratic_points(p0: Point2D, c: Point2D, p1: Point2D, segments: int) -> np.ndarray:
    """Sample a quadratic Bezier curve, excluding its start point."""
    t = np.linspace(0.0, 1.0, segments + 1)[1:, None]
    a, b, d = np.array(p0.to_tuple()), np.array(c.to_tuple()), np.array(p1.to_tuple())
    return (1 - t) ** 2 * a + 2 * (1 - t) * t * b + t ** 2 * d


def cubic_points(p0: Point2D, c1: Point2D, c2: Point2D, p1: Point2D, segments: int) -> np.ndarray:
    """Sample a cubic Bezier curve, excluding its start point."""
    t = np.linspace(0.0, 1.0, segments + 1)[1:, None]
    a, b, c, d = (np.array(p.to_tuple()) for p in (p0, c1, c2, p1))
    return (1 - t) ** 3 * a + 3 * (1 - t) ** 2 * t * b + 3 * (1 - t) * t ** 2 * c + t ** 3 * d


def _warn(warnings: List[str], message: str, **fields) -> None:
    logger.warning(message, **fields)
    detail = ", ".join(f"{key}={value}" for key, value in fields.items())
    warnings.append(f"{message} ({detail})" if detail else message)


def trace_contour(
    contour: Contour,
    points: Mapping[str, Point2D],
    params: Mapping[str, float],
    curve_segments: int,
    warnings: List[str],
) -> np.ndarray:
    """Tessellate a contour into an (N, 2) array of boundary points."""
    ring: List[np.ndarray] = []

    for element in contour.elements:
        start, end = points.get(element.start), points.get(element.end)
        if start is None or end is None:
            missing = element.start if start is None else element.end
            _warn(warnings, "Element skipped, vertex not found", contour=contour.id, vertex=missing)
            continue
        if not ring:
            ring.append(np.array([start.to_tuple()]))

        if isinstance(element, LineElement):
            ring.append(np.array([end.to_tuple()]))

        elif isinstance(element, ArcElement):
            radius = evaluate_expression(element.radius, params)
            center = arc_center(start, end, radius, element.clockwise)
            if center is None:
                _warn(
                    warnings,
                    "Arc radius too small, using straight line",
                    contour=contour.id,
                    radius=radius,
                    half_chord=round(start.distance_to(end) / 2, 3),
                )
                ring.append(np.array([end.to_tuple()]))
            else:
                ring.append(arc_points(start, end, center, element.clockwise, curve_segments))

        elif isinstance(element, BezierQuadraticElement):
            control = points.get(element.control)
            if control is None:
                _warn(warnings, "Control vertex not found, using straight line",
                      contour=contour.id, vertex=element.control)
                ring.append(np.array([end.to_tuple()]))
            else:
                ring.append(quadratic_points(start, control, end, curve_segments))

        elif isinstance(element, BezierCubicElement):
            control1, control2 = points.get(element.control1), points.get(element.control2)
            if control1 is None or control2 is None:
                missing = element.control1 if control1 is None else element.control2
                _warn(warnings, "Control vertex not found, using straight line",
                      contour=contour.id, vertex=missing)
                ring.append(np.array([end.to_tuple()]))
            else:
                ring.append(cubic_points(start, control1, control2, end, curve_segments))

        else:
            raise TypeError(f"Unknown path element: {type(element).__name__}")

    if not ring:
        return np.empty((0, 2))

    coords = np.vstack(ring)
    # drop repeated consecutive points and the closing duplicate
    keep = np.ones(len(coords), dtype=bool)
    keep[1:] = np.any(np.abs(np.diff(coords, axis=0)) > 1e-9, axis=1)
    coords = coords[keep]
    if len(coords) > 1 and np.allclose(coords[0], coords[-1]):
        coords = coords[:-1]
    return coords


def _polygonal(geometry) -> List[Polygon]:
    """Polygons contained in an arbitrary shapely geometry."""
    if isinstance(geometry, Polygon):
        return [] if geometry.is_empty else [geometry]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts: List[Polygon] = []
        for part in geometry.geoms:
            parts.extend(_polygonal(part))
        return parts
    return []


def contour_polygon(coords: np.ndarray, contour_id: str, warnings: List[str]):
    """Shapely region enclosed by a traced ring, repaired if self-intersecting."""
    if len(coords) < 3:
        _warn(warnings, "Contour encloses no area", contour=contour_id, points=len(coords))
        return Polygon()
    polygon = Polygon(coords)
    if polygon.is_valid:
        return polygon
    _warn(warnings, "Contour repaired", contour=contour_id, reason=explain_validity(polygon))
    return unary_union(_polygonal(make_valid(polygon)))


def build_solid(
    sketch: Sketch,
    params: Optional[Mapping[str, float]] = None,
    config: Optional[SketchConfig] = None,
) -> Solid:
    """Extrude a sketch into a solid.

    Args:
        sketch: the sketch to build
        params: parameter values overriding the sketch's own table
        config: engine configuration (extrusion defaults)

    Returns:
        Solid with the footprint region, height, resolved profile and any
        warnings raised while tracing

    Raises:
        NoOuterContourError: the sketch has no contour of type outer
    """
    geometry = sketch.geometry
    outers = geometry.outer_contours()
    if not outers:
        raise NoOuterContourError()

    warnings: List[str] = []
    if len(outers) > 1:
        _warn(warnings, "Several outer contours, using the first", contour=outers[0].id, count=len(outers))

    values = sketch_parameter_values(sketch, params)
    points = evaluate_vertices(geometry.vertices, values)
    profile = resolve_profile(geometry.extrusion, config)

    outer = contour_polygon(
        trace_contour(outers[0], points, values, profile.curve_segments, warnings),
        outers[0].id,
        warnings,
    )
    holes = [
        contour_polygon(
            trace_contour(hole, points, values, profile.curve_segments, warnings),
            hole.id,
            warnings,
        )
        for hole in geometry.hole_contours()
    ]
    region = outer.difference(unary_union(holes)) if holes else outer
    parts = _polygonal(region)
    footprint = parts[0] if len(parts) == 1 else MultiPolygon(parts)

    height = 0.0
    if geometry.extrusion is not None and geometry.extrusion.has_height:
        height = evaluate_expression(geometry.extrusion.height, values)
    if height <= 0:
        _warn(warnings, "Extrusion height is not positive", height=height)

    solid = Solid(footprint=footprint, height=height, profile=profile, warnings=warnings)
    logger.info(
        "Solid built",
        height=height,
        area=round(solid.area, 3),
        holes=len(holes),
        warnings=len(warnings),
    )
    return solid
