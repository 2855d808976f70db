"""System tools for OrthoSketch.

These tools provide health check and version information for monitoring
and diagnostics.
"""

import numpy
import pydantic
import shapely
import trimesh
from mcp.server.fastmcp import FastMCP

from .. import __version__
from ..logging import get_logger
from ..models import Sketch
from ..services.extrusion import build_solid

API_VERSION = "1.0"

logger = get_logger(__name__)

_SMOKE_SKETCH = {
    "params": {"w": 10},
    "geometry": {
        "vertices": {
            "a": {"x": 0, "y": 0},
            "b": {"x": "params.w", "y": 0},
            "c": {"x": "params.w", "y": "params.w"},
        },
        "contours": [{
            "id": "outer",
            "type": "outer",
            "closed": True,
            "elements": [
                {"type": "line", "from": "a", "to": "b"},
                {"type": "line", "from": "b", "to": "c"},
                {"type": "line", "from": "c", "to": "a"},
            ],
        }],
        "extrusion": {"height": 1, "bevel": False},
    },
}


def register_system_tools(mcp: FastMCP) -> None:
    """Register all system tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def check_health() -> dict:
        """Check that the sketch engine works end to end.

        Builds a small parametric triangle and triangulates it, which
        exercises the expression evaluator, shapely and trimesh.

        Returns:
            Dict with health status:
            - healthy: True if the engine produced a solid
            - server_status: "running" if the MCP server is operational
            - message: Human-readable status message

        Example response:
            {
                "healthy": true,
                "server_status": "running",
                "server_version": "0.1.0",
                "message": "All systems operational"
            }
        """
        logger.info("check_health called")
        try:
            solid = build_solid(Sketch.model_validate(_SMOKE_SKETCH))
            mesh = solid.to_mesh()
            healthy = solid.area > 0 and len(mesh.faces) > 0
            message = "All systems operational" if healthy else "Engine produced an empty solid"
        except Exception as e:
            logger.warning("Health check failed", error=str(e))
            healthy = False
            message = f"Engine error: {e}"

        return {
            "healthy": healthy,
            "server_status": "running",
            "server_version": __version__,
            "message": message,
        }

    @mcp.tool()
    async def get_version() -> dict:
        """Get version information for the server and its geometry stack.

        Returns:
            Dict with version information

        Example response:
            {
                "server_version": "0.1.0",
                "api_version": "1.0",
                "numpy_version": "2.1.0",
                "shapely_version": "2.0.6",
                "trimesh_version": "4.4.9",
                "pydantic_version": "2.9.2"
            }
        """
        logger.info("get_version called")
        return {
            "server_version": __version__,
            "api_version": API_VERSION,
            "numpy_version": numpy.__version__,
            "shapely_version": shapely.__version__,
            "trimesh_version": trimesh.__version__,
            "pydantic_version": pydantic.VERSION,
        }
