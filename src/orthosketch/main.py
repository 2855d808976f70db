"""Main entry point for the OrthoSketch MCP server."""

import argparse
from mcp.server.fastmcp import FastMCP

from .config import get_config
from .logging import setup_logging, get_logger
from .tools import (
    register_expression_tools,
    register_sketch_tools,
    register_extrusion_tools,
    register_system_tools,
)


# Create FastMCP server instance
mcp = FastMCP(
    "OrthoSketch",
    instructions="""You are an assistant for parametric 2D cross-section sketches that are
extruded into 3D solids.

SKETCH FORMAT:
- "params": parameter name -> number or expression ("params.ancho * 0.5")
- "geometry.vertices": id -> {x, y}, each a number or an expression
- "geometry.contours": exactly one "outer" contour plus any "hole" contours,
  each a list of line / arc / bezier_quadratic / bezier_cubic elements
- "geometry.constraints": fixed, horizontal, vertical, distance
- "geometry.dimensions": linear or angular, optionally promoted to parameters
- "geometry.extrusion": height plus optional bevel settings

WORKFLOW:
1. Use validate_template() to check a sketch (errors block extrusion)
2. Use evaluate_expression() / validate_expression() to debug expressions
3. Use solve_node_move() before moving a vertex; apply only returned updates
4. Use calculate_dimension_value() and apply_dimension() to edit dimensions
5. Use promote_dimension() to turn a dimension into a named parameter
6. Use build_solid() to extrude, get_svg_preview() to look at the outline

IMPORTANT:
- Solver and dimension results are rounded to one decimal
- A blocked move or failed dimension returns no updates; apply nothing
- Angles are in degrees; inverted angular dimensions use 360 - interior
""",
)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="OrthoSketch MCP Server")
    parser.add_argument(
        "--transport",
        type=str,
        choices=["sse", "stdio"],
        help="MCP transport type (overrides config)"
    )
    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    config = get_config()
    transport = args.transport or config.server_transport

    logger.info("Starting OrthoSketch MCP Server", transport=transport)

    register_expression_tools(mcp)
    logger.info("Expression tools registered")

    register_sketch_tools(mcp)
    logger.info("Sketch tools registered")

    register_extrusion_tools(mcp)
    logger.info("Extrusion tools registered")

    register_system_tools(mcp)
    logger.info("System tools registered")

    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
