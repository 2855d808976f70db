"""Solid model for OrthoSketch.

The extrusion builder returns a ``Solid``: the evaluated 2D region (outer
contour minus holes) together with the resolved extrusion settings. Mesh
generation is deferred to ``Solid.to_mesh`` so callers that only need
footprint measurements never pay for triangulation.
"""

import math
from typing import Any, Dict, List, Optional

import trimesh
from pydantic import BaseModel, Field
from shapely.geometry import MultiPolygon, Polygon

from .geometry import BoundingBox2D


class ExtrusionProfile(BaseModel):
    """Extrusion settings with every default filled in."""

    bevel: bool = Field(description="Whether cap edges are bevelled")
    bevel_thickness: float = Field(ge=0, description="Depth the bevel adds beyond each cap")
    bevel_size: float = Field(ge=0, description="Distance the bevel grows the outline")
    bevel_segments: int = Field(ge=1, description="Bands used to approximate the bevel")
    curve_segments: int = Field(ge=1, description="Points per arc or Bezier segment")
    steps: int = Field(default=1, ge=1, description="Subdivisions along the extrusion")

    @property
    def bevel_active(self) -> bool:
        """Whether the bevel changes the geometry at all."""
        return self.bevel and (self.bevel_thickness > 0 or self.bevel_size > 0)


class Solid(BaseModel):
    """An extruded sketch."""

    footprint: Any = Field(description="shapely Polygon or MultiPolygon in the sketch plane")
    height: float = Field(description="Evaluated extrusion height")
    profile: ExtrusionProfile
    warnings: List[str] = Field(default_factory=list, description="Recoverable issues hit while building")

    model_config = {"arbitrary_types_allowed": True}

    @property
    def polygons(self) -> List[Polygon]:
        """Footprint as a list of simple polygons."""
        if isinstance(self.footprint, MultiPolygon):
            return list(self.footprint.geoms)
        if isinstance(self.footprint, Polygon) and not self.footprint.is_empty:
            return [self.footprint]
        return []

    @property
    def footprint_bounds(self) -> BoundingBox2D:
        """2D bounding box of the region before bevelling."""
        if self.footprint.is_empty:
            return BoundingBox2D(min_x=0.0, min_y=0.0, max_x=0.0, max_y=0.0)
        min_x, min_y, max_x, max_y = self.footprint.bounds
        return BoundingBox2D(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)

    @property
    def bounds(self) -> Dict[str, Dict[str, float]]:
        """3D bounding box including bevel growth, extrusion along +Z."""
        box = self.footprint_bounds
        grow = self.profile.bevel_size if self.profile.bevel_active else 0.0
        depth = self.profile.bevel_thickness if self.profile.bevel_active else 0.0
        return {
            "min": {"x": box.min_x - grow, "y": box.min_y - grow, "z": -depth},
            "max": {"x": box.max_x + grow, "y": box.max_y + grow, "z": self.height + depth},
        }

    @property
    def area(self) -> float:
        """Footprint area."""
        return float(self.footprint.area)

    @property
    def volume(self) -> float:
        """Prismatic volume of the unbevelled body."""
        return self.area * self.height

    def to_mesh(self, y_up: bool = False) -> trimesh.Trimesh:
        """Triangulate the solid.

        The body is the footprint extruded from 0 to ``height``. A bevel adds
        stepped bands beyond each cap whose outline grows along a quarter
        circle, ``bevel_segments`` bands per side.

        Args:
            y_up: apply the quarter turn about X used by the 3D viewer, so the
                  sketch plane becomes XZ.
        """
        profile = self.profile
        parts = []
        for polygon in self.polygons:
            if profile.bevel_active:
                body = polygon.buffer(profile.bevel_size, join_style="mitre") if profile.bevel_size else polygon
                parts.append(_slab(body, 0.0, self.height))
                n = profile.bevel_segments
                for k in range(n):
                    t_inner, t_outer = k / n, (k + 1) / n
                    z_near = profile.bevel_thickness * math.cos(t_outer * math.pi / 2)
                    z_far = profile.bevel_thickness * math.cos(t_inner * math.pi / 2)
                    if z_far - z_near <= 0:
                        continue
                    grow = profile.bevel_size * math.sin((t_inner + t_outer) / 2 * math.pi / 2)
                    band = polygon.buffer(grow, join_style="mitre") if grow > 0 else polygon
                    parts.append(_slab(band, -z_far, -z_near))
                    parts.append(_slab(band, self.height + z_near, self.height + z_far))
            else:
                parts.append(_slab(polygon, 0.0, self.height))

        parts = [p for p in parts if p is not None]
        mesh = trimesh.util.concatenate(parts) if parts else trimesh.Trimesh()
        if y_up:
            mesh.apply_transform(trimesh.transformations.rotation_matrix(math.pi / 2, [1, 0, 0]))
        return mesh

    def summary(self) -> Dict[str, Any]:
        """Plain-data description for callers that do not render."""
        return {
            "height": self.height,
            "area": self.area,
            "volume": self.volume,
            "footprint_bounds": self.footprint_bounds.model_dump(),
            "bounds": self.bounds,
            "polygons": len(self.polygons),
            "holes": sum(len(p.interiors) for p in self.polygons),
            "profile": self.profile.model_dump(),
            "warnings": list(self.warnings),
        }


def _slab(polygon: Polygon, z0: float, z1: float) -> Optional[trimesh.Trimesh]:
    """Extrude a polygon between two heights. Empty spans give None."""
    if z1 - z0 <= 0 or polygon.is_empty:
        return None
    mesh = trimesh.creation.extrude_polygon(polygon, z1 - z0)
    if z0:
        mesh.apply_translation([0.0, 0.0, z0])
    return mesh
