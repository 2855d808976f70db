"""Expression tools for OrthoSketch.

These tools evaluate and check the parametric expressions used for vertex
coordinates, arc radii, extrusion heights and parameter definitions.
"""

from typing import Dict, List, Optional, Union
from mcp.server.fastmcp import FastMCP

from ..services import expressions
from ..logging import get_logger

logger = get_logger(__name__)


def register_expression_tools(mcp: FastMCP) -> None:
    """Register all expression tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def evaluate_expression(
        expression: Union[float, str],
        params: Optional[Dict[str, float]] = None,
    ) -> dict:
        """Evaluate a literal or parametric expression to a number.

        Expressions may use numbers, params.<name>, + - * /, parentheses and
        the Math functions sqrt, pow, abs, min, max, floor, ceil, round,
        sign, exp, log, log10, sin, cos, tan, asin, acos, atan, atan2,
        hypot, plus the constants Math.PI and Math.E.

        A malformed expression, an unknown parameter or a non-finite result
        evaluates to 0 (check validate_expression() to find out why).

        Args:
            expression: Number or expression such as "params.ancho * 0.5"
            params: Parameter values by name

        Returns:
            Dict with the expression and its value

        Example response:
            {"expression": "params.ancho * 0.5", "value": 25.0}
        """
        logger.info("evaluate_expression called", expression=expression)
        return {
            "expression": expression,
            "value": expressions.evaluate_expression(expression, params or {}),
        }

    @mcp.tool()
    async def evaluate_batch(
        expressions_by_name: Dict[str, Union[float, str]],
        params: Optional[Dict[str, float]] = None,
    ) -> dict:
        """Evaluate several named expressions against the same parameters.

        Args:
            expressions_by_name: Name -> number or expression
            params: Parameter values by name

        Returns:
            Dict with the values by name

        Example response:
            {"values": {"x": 50.0, "y": 10.0}}
        """
        logger.info("evaluate_batch called", count=len(expressions_by_name))
        return {"values": expressions.evaluate_batch(expressions_by_name, params or {})}

    @mcp.tool()
    async def validate_expression(
        expression: Union[float, str],
        available_params: Optional[List[str]] = None,
    ) -> dict:
        """Check an expression without evaluating it for real.

        Verifies that every params.<name> reference names an available
        parameter, that only the arithmetic character set is used and that
        the expression parses.

        Args:
            expression: Number or expression
            available_params: Names of the parameters that exist

        Returns:
            Dict with valid and, when invalid, error

        Example response:
            {"valid": false, "error": "Parameter not found: alto"}
        """
        logger.info("validate_expression called", expression=expression)
        result = expressions.validate_expression(expression, available_params or [])
        return result.model_dump(exclude_none=True)

    @mcp.tool()
    async def detect_circular_dependencies(params: Dict[str, Union[float, str]]) -> dict:
        """Find a cycle in parameter definitions.

        Args:
            params: Parameter name -> number or expression

        Returns:
            Dict with circular and, when a cycle exists, the cycle as an
            ordered list of names whose first name is repeated at the end

        Example response:
            {"circular": true, "cycle": ["a", "b", "a"]}
        """
        logger.info("detect_circular_dependencies called", count=len(params))
        return expressions.detect_circular_dependencies(params).model_dump(exclude_none=True)
