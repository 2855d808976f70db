"""Extrusion tools for OrthoSketch.

These tools build the 3D solid of a sketch and render a 2D SVG preview.
"""

from typing import Any, Dict, Optional
from mcp.server.fastmcp import FastMCP

from ..exceptions import OrthoSketchError
from ..services import extrusion, preview, validation
from ..logging import get_logger

logger = get_logger(__name__)


def register_extrusion_tools(mcp: FastMCP) -> None:
    """Register all extrusion tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def build_solid(
        sketch: Dict[str, Any],
        params: Optional[Dict[str, float]] = None,
        include_mesh: bool = False,
    ) -> dict:
        """Extrude a sketch into a solid.

        The outer contour minus every hole is extruded along +Z by the
        evaluated extrusion height, with the bevel settings of the sketch
        (defaults: bevel on, thickness 0.3, size 0.3, 3 segments, 12 curve
        segments). Bad arc radii and missing control vertices fall back to
        straight segments and are listed in warnings.

        **Run validate_geometry() first**: the only hard failure is a sketch
        without an outer contour.

        Args:
            sketch: Sketch with "params" and "geometry"
            params: Parameter values overriding the sketch's own
            include_mesh: Also triangulate and report mesh statistics

        Returns:
            Dict with success and the solid summary (height, area, volume,
            footprint_bounds, 3D bounds, warnings)

        Example response:
            {
                "success": true,
                "solid": {
                    "height": 5.0,
                    "area": 800.0,
                    "volume": 4000.0,
                    "footprint_bounds": {"min_x": 0, "min_y": 0, "max_x": 40, "max_y": 20, ...},
                    "warnings": []
                }
            }
        """
        logger.info("build_solid called", include_mesh=include_mesh)
        try:
            solid = extrusion.build_solid(validation.load_sketch(sketch), params)
        except OrthoSketchError as e:
            return e.to_dict()

        response = {"success": True, "solid": solid.summary()}
        if include_mesh:
            mesh = solid.to_mesh()
            response["mesh"] = {
                "vertices": len(mesh.vertices),
                "faces": len(mesh.faces),
                "is_watertight": bool(mesh.is_watertight),
            }
        return response

    @mcp.tool()
    async def get_svg_preview(
        sketch: Dict[str, Any],
        params: Optional[Dict[str, float]] = None,
    ) -> dict:
        """Render a sketch's contours and circles as SVG.

        Outer contours are blue, holes red, circles green. Useful to check a
        template visually before extruding it.

        Args:
            sketch: Sketch with "params" and "geometry"
            params: Parameter values overriding the sketch's own

        Returns:
            Dict with the SVG markup and the 2D bounds of every vertex
        """
        logger.info("get_svg_preview called")
        try:
            parsed = validation.load_sketch(sketch)
        except OrthoSketchError as e:
            return e.to_dict()
        return {
            "svg": preview.generate_svg_preview(parsed, params),
            "bounds": preview.calculate_bounds_2d(parsed, params).model_dump(),
        }
