"""MCP tools for OrthoSketch."""

from .expression_tools import register_expression_tools
from .sketch_tools import register_sketch_tools
from .extrusion_tools import register_extrusion_tools
from .system_tools import register_system_tools

__all__ = [
    "register_expression_tools",
    "register_sketch_tools",
    "register_extrusion_tools",
    "register_system_tools",
]
