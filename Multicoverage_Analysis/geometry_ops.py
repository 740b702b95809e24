#!/usr/bin/env python3
"""
Planar Geometry Operations

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Thin adapter over Shapely 2 providing the boolean set
operations the decomposition engine needs. Every result is normalised to a
polygonal geometry (Polygon / MultiPolygon / empty Polygon) and, when
requested, validated before it is handed back.

This is a PURE COMPUTATION module - no logging, no file access.

Key Functions:
1. union_all: Cascaded (divide-and-conquer) union of many regions
2. intersect / difference: Binary boolean operations
3. difference_without_slivers: Difference + numerical-degeneracy rule
4. vertex_count / is_sliver / discard_sliver: Sliver detection
5. validate / validity_reason: Input and result validation
6. polygonal_part / iter_polygons: Geometry normalisation helpers

CONFIGURATION ARCHITECTURE:
- No CONFIG access - grid_size and min_vertices are explicit parameters
- grid_size=None selects floating precision overlay; a float snaps the
  overlay result to that precision grid

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Callable, Iterable, List, Optional

import shapely
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from Multicoverage_Analysis.errors import InvalidGeometryError


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

# Geometries with fewer coordinates than this are treated as empty after a
# subtraction. Counted like the overlay engine reports them, closing
# coordinates included.
DEFAULT_SLIVER_MIN_VERTICES = 11


# ═══════════════════════════════════════════════════════════════════════════
# 🧹 NORMALISATION HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def empty_region() -> Polygon:
    """Return the canonical empty region."""
    return Polygon()


def polygonal_part(geom: Optional[BaseGeometry]) -> BaseGeometry:
    """
    Keep only the areal part of an overlay result.

    Intersections of sources that merely touch produce lines or points;
    those carry no area and are dropped.

    Args:
        geom: Any Shapely geometry (or None)

    Returns:
        Polygon or MultiPolygon, or the empty Polygon
    """
    if geom is None or geom.is_empty:
        return empty_region()

    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom

    polys = iter_polygons(geom)
    if not polys:
        return empty_region()
    if len(polys) == 1:
        return polys[0]
    return MultiPolygon(polys)


def iter_polygons(geom: Optional[BaseGeometry]) -> List[Polygon]:
    """
    Split a geometry into its non-empty Polygon parts.

    Handles Polygon, MultiPolygon and (nested) GeometryCollection inputs.
    Lines and points are ignored.
    """
    if geom is None or geom.is_empty:
        return []

    if isinstance(geom, Polygon):
        return [geom]

    if isinstance(geom, MultiPolygon):
        return [p for p in geom.geoms if not p.is_empty]

    if isinstance(geom, GeometryCollection):
        polys: List[Polygon] = []
        for part in geom.geoms:
            polys.extend(iter_polygons(part))
        return polys

    return []


def has_holes(geom: Optional[BaseGeometry]) -> bool:
    """True if any polygon part of the geometry has an interior ring."""
    return any(len(p.interiors) > 0 for p in iter_polygons(geom))


# ═══════════════════════════════════════════════════════════════════════════
# 🔍 INSPECTION
# ═══════════════════════════════════════════════════════════════════════════


def is_empty(geom: Optional[BaseGeometry]) -> bool:
    return geom is None or geom.is_empty


def vertex_count(geom: Optional[BaseGeometry]) -> int:
    """Total number of coordinates, ring-closing coordinates included."""
    if is_empty(geom):
        return 0
    return int(shapely.get_num_coordinates(geom))


def validate(geom: Optional[BaseGeometry]) -> bool:
    """True for a non-None geometry that passes the engine's validity check."""
    return geom is not None and bool(geom.is_valid)


def validity_reason(geom: Optional[BaseGeometry]) -> str:
    if geom is None:
        return "Missing geometry"
    return str(shapely.is_valid_reason(geom))


def is_sliver(geom: Optional[BaseGeometry], min_vertices: int) -> bool:
    """
    Numerical-degeneracy test.

    A non-empty geometry with fewer than min_vertices coordinates is
    floating-point residue of an overlay on near-coincident boundaries.
    min_vertices <= 0 disables the rule.
    """
    if min_vertices <= 0 or is_empty(geom):
        return False
    return vertex_count(geom) < min_vertices


def discard_sliver(geom: BaseGeometry, min_vertices: int) -> BaseGeometry:
    """Return the empty region if geom is a sliver, otherwise geom itself."""
    if is_sliver(geom, min_vertices):
        return empty_region()
    return geom


# ═══════════════════════════════════════════════════════════════════════════
# ⚙️ BOOLEAN OPERATIONS
# ═══════════════════════════════════════════════════════════════════════════


def _run_overlay(
    operation: Callable[[], BaseGeometry],
    identity: str,
    validate_result: bool,
) -> BaseGeometry:
    """Run an overlay, normalise it and surface engine failures."""
    try:
        result = operation()
    except GEOSException as exc:
        raise InvalidGeometryError(identity, str(exc)) from exc

    result = polygonal_part(result)

    if validate_result and not result.is_empty and not result.is_valid:
        raise InvalidGeometryError(identity, validity_reason(result))

    return result


def union_all(
    geoms: Iterable[Optional[BaseGeometry]],
    grid_size: Optional[float] = None,
    identity: str = "union",
    validate_result: bool = True,
) -> BaseGeometry:
    """
    Union many regions into one.

    Uses the engine's cascaded union, which merges in a balanced tree rather
    than folding pairwise.

    Args:
        geoms: Regions to merge (None and empty entries are skipped)
        grid_size: Overlay precision (None = floating precision)
        identity: Name reported if the operation fails
        validate_result: Raise InvalidGeometryError on an invalid result

    Returns:
        Polygonal union, or the empty Polygon when nothing was supplied
    """
    parts = [g for g in geoms if not is_empty(g)]
    if not parts:
        return empty_region()
    if len(parts) == 1 and grid_size is None:
        return polygonal_part(parts[0])

    return _run_overlay(
        lambda: shapely.union_all(parts, grid_size=grid_size),
        identity,
        validate_result,
    )


def intersect(
    a: BaseGeometry,
    b: BaseGeometry,
    grid_size: Optional[float] = None,
    identity: str = "intersection",
    validate_result: bool = True,
) -> BaseGeometry:
    """Areal intersection of two regions (possibly empty)."""
    if is_empty(a) or is_empty(b):
        return empty_region()
    return _run_overlay(
        lambda: shapely.intersection(a, b, grid_size=grid_size),
        identity,
        validate_result,
    )


def difference(
    a: BaseGeometry,
    b: BaseGeometry,
    grid_size: Optional[float] = None,
    identity: str = "difference",
    validate_result: bool = True,
) -> BaseGeometry:
    """Areal difference a - b (possibly empty)."""
    if is_empty(a):
        return empty_region()
    if is_empty(b):
        return polygonal_part(a)
    return _run_overlay(
        lambda: shapely.difference(a, b, grid_size=grid_size),
        identity,
        validate_result,
    )


def difference_without_slivers(
    a: BaseGeometry,
    b: BaseGeometry,
    min_vertices: int = DEFAULT_SLIVER_MIN_VERTICES,
    grid_size: Optional[float] = None,
    identity: str = "difference",
    validate_result: bool = True,
) -> BaseGeometry:
    """Difference a - b with sub-threshold results coerced to empty."""
    result = difference(
        a, b, grid_size=grid_size, identity=identity, validate_result=validate_result
    )
    return discard_sliver(result, min_vertices)
