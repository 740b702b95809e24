#!/usr/bin/env python3
"""
Source Coverage Loader

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Turn the files of an input directory into validated ORIGINAL
Regions, one per file, ready for decompose_coverages().

Supported inputs:
- .kml: every Polygon element (any nesting) becomes one polygon;
  outerBoundaryIs is the shell, each innerBoundaryIs a hole. Coordinates are
  "lon,lat[,alt]" tuples read as planar (x, y).
- .kmz: zip archive; reads "<stem>.kml", else "doc.kml", else the first .kml
- anything else in supported_suffixes: geopandas.read_file
All polygons of one file are unioned into that source's geometry.

Naming:
- Source name = file stem up to the first "-"
- File tag = remainder after the first "-" (e.g. "LEBL-FL100.kml" -> FL100)

Validation:
- Invalid polygons raise InvalidGeometryError unless repair is enabled,
  in which case they are repaired with buffer(0)
- A file without polygons raises SourceLoadError

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import geopandas as gpd
import shapely
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from Multicoverage_Analysis.config_types import QualityControlConfig
from Multicoverage_Analysis.errors import InvalidGeometryError, SourceLoadError
from Multicoverage_Analysis.geometry_ops import (
    iter_polygons,
    polygonal_part,
    union_all,
    validate,
    validity_reason,
)
from Multicoverage_Analysis.models import Region, RegionKind

_logger = logging.getLogger("Multicoverage.Loader")

PathLike = Union[str, Path]


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ FILE NAMING
# ═══════════════════════════════════════════════════════════════════════════


def parse_source_filename(path: PathLike) -> Tuple[str, Optional[str]]:
    """
    Split a source file name into (source name, file tag).

    Example:
        >>> parse_source_filename("Input/LEBL-FL100.kmz")
        ('LEBL', 'FL100')
        >>> parse_source_filename("LEBL.kml")
        ('LEBL', None)
    """
    stem = Path(path).stem
    name, sep, file_tag = stem.partition("-")
    return name, (file_tag if sep else None)


def discover_source_files(
    input_dir: PathLike, suffixes: Iterable[str]
) -> List[Path]:
    """List supported files of input_dir in sorted name order."""
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise SourceLoadError(f"Input directory not found: {input_dir}")

    wanted = {s.lower() for s in suffixes}
    return sorted(
        p for p in input_dir.iterdir() if p.is_file() and p.suffix.lower() in wanted
    )


# ═══════════════════════════════════════════════════════════════════════════
# 📄 KML / KMZ PARSING
# ═══════════════════════════════════════════════════════════════════════════


def _local_name(tag: str) -> str:
    """Element tag without its namespace ("{ns}Polygon" -> "Polygon")."""
    return tag.rsplit("}", 1)[-1]


def _children(elem: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in elem if _local_name(child.tag) == name]


def _parse_coordinates(text: Optional[str]) -> List[Tuple[float, float]]:
    """Parse a KML coordinates string into (lon, lat) tuples."""
    coords: List[Tuple[float, float]] = []
    for token in (text or "").split():
        parts = token.split(",")
        if len(parts) < 2:
            raise ValueError(f"Malformed coordinate tuple: {token!r}")
        coords.append((float(parts[0]), float(parts[1])))
    return coords


def _ring_coordinates(boundary: ET.Element) -> List[Tuple[float, float]]:
    for ring in _children(boundary, "LinearRing"):
        for coordinates in _children(ring, "coordinates"):
            return _parse_coordinates(coordinates.text)
    return []


def parse_kml_polygons(kml: Union[str, bytes], identity: str = "kml") -> List[Polygon]:
    """
    Extract every Polygon of a KML document.

    Args:
        kml: KML document text
        identity: Name reported in errors

    Returns:
        Polygons in document order (possibly invalid - see prepare_geometry)

    Raises:
        SourceLoadError: Document is not well-formed XML
        InvalidGeometryError: A polygon has malformed coordinates or rings
    """
    try:
        root = ET.fromstring(kml)
    except ET.ParseError as e:
        raise SourceLoadError(f"Malformed KML in {identity}: {e}") from e

    polygons: List[Polygon] = []
    for elem in root.iter():
        if _local_name(elem.tag) != "Polygon":
            continue
        try:
            shell: List[Tuple[float, float]] = []
            for outer in _children(elem, "outerBoundaryIs"):
                shell = _ring_coordinates(outer)
            holes = [
                _ring_coordinates(inner) for inner in _children(elem, "innerBoundaryIs")
            ]
            if not shell:
                continue
            polygons.append(Polygon(shell, [h for h in holes if h]))
        except ValueError as e:
            raise InvalidGeometryError(identity, str(e)) from e

    return polygons


def read_kmz_document(path: PathLike) -> bytes:
    """
    Read the KML document packed in a KMZ archive.

    Entry preference: "<stem>.kml", then "doc.kml", then the first .kml.
    """
    path = Path(path)
    try:
        with zipfile.ZipFile(path) as archive:
            kml_entries = [
                n for n in archive.namelist() if n.lower().endswith(".kml")
            ]
            if not kml_entries:
                raise SourceLoadError(f"No KML document inside {path.name}")

            by_basename = {Path(n).name.lower(): n for n in kml_entries}
            entry = (
                by_basename.get(f"{path.stem.lower()}.kml")
                or by_basename.get("doc.kml")
                or kml_entries[0]
            )
            return archive.read(entry)
    except zipfile.BadZipFile as e:
        raise SourceLoadError(f"Not a valid KMZ archive: {path.name}") from e


# ═══════════════════════════════════════════════════════════════════════════
# 🔍 VALIDATION
# ═══════════════════════════════════════════════════════════════════════════


def prepare_geometry(
    geom: BaseGeometry,
    identity: str,
    repair: bool = False,
    logger: Optional[logging.Logger] = None,
) -> BaseGeometry:
    """
    Validate (and optionally repair) one input geometry.

    Args:
        geom: Input polygon geometry
        identity: Source name reported in errors
        repair: Repair invalid geometry with buffer(0) instead of raising
        logger: Optional logger instance

    Returns:
        Valid 2D polygonal geometry

    Raises:
        InvalidGeometryError: Geometry is invalid and repair is disabled
    """
    log = logger or _logger
    geom = shapely.force_2d(geom)

    if validate(geom):
        return polygonal_part(geom)

    reason = validity_reason(geom)
    if not repair:
        raise InvalidGeometryError(identity, reason)

    log.warning(f"   ⚠️ {identity}: invalid geometry ({reason}) - repairing")
    repaired = polygonal_part(geom.buffer(0))
    if repaired.is_empty or not validate(repaired):
        raise InvalidGeometryError(identity, f"repair failed: {reason}")
    return repaired


# ═══════════════════════════════════════════════════════════════════════════
# 📂 SOURCE LOADING
# ═══════════════════════════════════════════════════════════════════════════


def _read_polygons(path: Path, identity: str) -> List[BaseGeometry]:
    suffix = path.suffix.lower()
    if suffix == ".kml":
        return list(parse_kml_polygons(path.read_bytes(), identity))
    if suffix == ".kmz":
        return list(parse_kml_polygons(read_kmz_document(path), identity))

    try:
        gdf = gpd.read_file(path)
    except (OSError, ValueError, RuntimeError) as e:
        raise SourceLoadError(f"Cannot read {path.name}: {e}") from e

    polygons: List[BaseGeometry] = []
    for geom in gdf.geometry:
        polygons.extend(iter_polygons(geom))
    return polygons


def load_source(
    path: PathLike,
    tag: Optional[str] = None,
    quality_control: Optional[QualityControlConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> Region:
    """
    Load one source coverage file as an ORIGINAL Region.

    Args:
        path: Coverage file
        tag: Run tag (defaults to the tag in the file name, else "")
        quality_control: Validation settings (defaults if None)
        logger: Optional logger instance

    Returns:
        ORIGINAL Region named after the file

    Raises:
        SourceLoadError: File unreadable or without polygons
        InvalidGeometryError: Invalid polygon and repair disabled
    """
    quality_control = quality_control or QualityControlConfig()
    log = logger or _logger
    path = Path(path)
    name, file_tag = parse_source_filename(path)

    if tag is None:
        tag = file_tag or ""
    elif file_tag is not None and file_tag != tag:
        log.warning(f"   ⚠️ {path.name}: file tag {file_tag} differs from run tag {tag}")

    polygons = [
        prepare_geometry(p, name, quality_control.repair_invalid_inputs, log)
        for p in _read_polygons(path, name)
        if not p.is_empty
    ]
    if not polygons:
        raise SourceLoadError(f"No polygons found in {path.name}")

    geometry = union_all(polygons, identity=name)
    region = Region.create(name, tag, RegionKind.ORIGINAL, geometry)

    log.info(
        f"   ✅ {name}: {len(polygons)} polygons, {region.vertex_count} vertices"
        + (" (with gaps)" if region.has_gaps else "")
    )
    return region


def load_sources(
    input_dir: PathLike,
    tag: Optional[str] = None,
    quality_control: Optional[QualityControlConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> List[Region]:
    """
    Load every supported file of input_dir, in sorted name order.

    Returns:
        List of ORIGINAL Regions (may hold fewer than 2 - the engine decides)
    """
    quality_control = quality_control or QualityControlConfig()
    log = logger or _logger

    files = discover_source_files(input_dir, quality_control.supported_suffixes)
    log.info(f"📂 Loading {len(files)} coverage files from {input_dir}")

    return [load_source(f, tag, quality_control, log) for f in files]
