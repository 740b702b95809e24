"""
Multicoverage Export Module - KMZ, GeoJSON, CSV and PNG exports.

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Serialise a DecompositionResult for GIS tools and operators.
Every layer is labelled and styled from its Region metadata (styles.py).

Export Formats:
- KMZ: Multilayer bundle "<bundle>_ALL.kmz" holding doc.kml (main deliverable)
- GeoJSON: All non-empty layers as one FeatureCollection
- CSV: One row per layer with areas (pandas)
- PNG: Preview of simple zones, rings and maximal region (matplotlib)

Key Entry Points:
- build_kml_document(): KML Document element, one Folder per layer
- write_kmz(): KMZ bundle writer
- export_all_decomposition_outputs(): Writes every enabled format

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import json
import logging
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

import pandas as pd
from shapely.geometry import Polygon, mapping

from Multicoverage_Analysis.config_types import ExportConfig, KmlStyleConfig
from Multicoverage_Analysis.decomposition import get_decomposition_summary
from Multicoverage_Analysis.geometry_ops import iter_polygons
from Multicoverage_Analysis.models import DecompositionResult, Region, RegionKind
from Multicoverage_Analysis.styles import kml_to_rgba, region_color, region_label

if TYPE_CHECKING:
    import matplotlib.axes

logger = logging.getLogger("Multicoverage.Exporters")

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════


def default_bundle_name(result: DecompositionResult, separator: str = " () ") -> str:
    """
    Bundle name from the source names and the tag.

    Example:
        sources LEBL, LEGE, tag FL100 -> "LEBL () LEGE-FL100"
    """
    names = separator.join(s.name for s in result.sources)
    return f"{names}-{result.tag}" if result.tag else names


def _format_ring(coords: Iterable[Tuple[float, ...]]) -> str:
    """KML coordinates text ("x,y x,y ...") for one ring."""
    return " ".join(f"{c[0]},{c[1]}" for c in coords)


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ KML / KMZ EXPORT
# ═══════════════════════════════════════════════════════════════════════════


def _sub(parent: ET.Element, tag: str, text: Optional[str] = None) -> ET.Element:
    elem = ET.SubElement(parent, tag)
    if text is not None:
        elem.text = text
    return elem


def _add_boundary(polygon_elem: ET.Element, boundary_tag: str, coords) -> None:
    boundary = _sub(polygon_elem, boundary_tag)
    ring = _sub(boundary, "LinearRing")
    _sub(ring, "coordinates", _format_ring(coords))


def _add_placemark(
    folder: ET.Element, polygon: Polygon, label: str, color: str
) -> None:
    """One Placemark per polygon part, with inline PolyStyle and holes."""
    placemark = _sub(folder, "Placemark")
    _sub(placemark, "name", label)

    style = _sub(placemark, "Style")
    poly_style = _sub(style, "PolyStyle")
    _sub(poly_style, "color", color)

    polygon_elem = _sub(placemark, "Polygon")
    _add_boundary(polygon_elem, "outerBoundaryIs", polygon.exterior.coords)
    for interior in polygon.interiors:
        _add_boundary(polygon_elem, "innerBoundaryIs", interior.coords)


def build_kml_document(
    result: DecompositionResult,
    document_name: str,
    style_config: Optional[KmlStyleConfig] = None,
) -> ET.Element:
    """
    Build the multilayer KML tree of a decomposition.

    One Folder per layer in export order (originals, total, multiple total,
    maximal, rings, level members, simple zones, simple total). Empty layers
    produce an empty Folder so every run has the same layer skeleton.

    Args:
        result: DecompositionResult to serialise
        document_name: Name of the KML Document
        style_config: Layer colours (defaults if None)

    Returns:
        Root <kml> element
    """
    style_config = style_config or KmlStyleConfig()

    root = ET.Element("kml", xmlns=KML_NAMESPACE)
    document = _sub(root, "Document")
    _sub(document, "name", document_name)

    for region in result.layers():
        label = region_label(region)
        color = region_color(region, style_config)

        folder = _sub(document, "Folder")
        _sub(folder, "name", label)
        for polygon in iter_polygons(region.geometry):
            _add_placemark(folder, polygon, label, color)

    return root


def kml_to_string(root: ET.Element) -> bytes:
    """Serialise a KML tree as UTF-8 bytes with XML declaration."""
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def write_kmz(
    result: DecompositionResult,
    output_dir: Path,
    bundle_name: Optional[str] = None,
    style_config: Optional[KmlStyleConfig] = None,
    log: Optional[logging.Logger] = None,
) -> Path:
    """
    Write the decomposition as "<bundle_name>_ALL.kmz".

    The archive holds a single doc.kml. An existing file is overwritten.

    Args:
        result: DecompositionResult to serialise
        output_dir: Destination directory (created if missing)
        bundle_name: File/document base name (default_bundle_name() if None)
        style_config: Layer colours (defaults if None)
        log: Logger instance (optional)

    Returns:
        Path of the written KMZ
    """
    if log is None:
        log = logger

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    bundle_name = bundle_name or default_bundle_name(result)

    kmz_path = output_dir / f"{bundle_name}_ALL.kmz"
    kml_bytes = kml_to_string(build_kml_document(result, bundle_name, style_config))

    with zipfile.ZipFile(kmz_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("doc.kml", kml_bytes)

    log.info(f"🗺️ KMZ exported: {kmz_path.name}")
    return kmz_path


# ═══════════════════════════════════════════════════════════════════════════
# 📄 GEOJSON EXPORT
# ═══════════════════════════════════════════════════════════════════════════


def _region_properties(region: Region) -> Dict[str, Any]:
    return {
        "label": region_label(region),
        "name": region.name,
        "kind": region.kind.value,
        "multiplicity": region.multiplicity,
        "tag": region.tag,
        "area": region.area,
        "has_gaps": region.has_gaps,
    }


def export_decomposition_geojson(
    result: DecompositionResult,
    output_path: Path,
    log: Optional[logging.Logger] = None,
) -> Path:
    """
    Export every non-empty layer as one GeoJSON FeatureCollection.

    Features follow export order; empty layers are skipped.
    """
    if log is None:
        log = logger

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    features = [
        {
            "type": "Feature",
            "properties": _region_properties(region),
            "geometry": mapping(region.geometry),
        }
        for region in result.layers()
        if not region.is_empty
    ]
    geojson = {"type": "FeatureCollection", "features": features}

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(geojson, f, indent=2)

    log.info(f"📄 GeoJSON exported: {output_path.name} ({len(features)} layers)")
    return output_path


# ═══════════════════════════════════════════════════════════════════════════
# 📤 CSV EXPORT
# ═══════════════════════════════════════════════════════════════════════════


def build_layer_table(result: DecompositionResult) -> pd.DataFrame:
    """One row per layer (export order), geometry excluded."""
    rows = [
        {"label": region_label(region), **region.as_dict()}
        for region in result.layers()
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "label",
            "name",
            "tag",
            "kind",
            "multiplicity",
            "area",
            "vertex_count",
            "has_gaps",
        ],
    )


def export_decomposition_summary_csv(
    result: DecompositionResult,
    output_path: Path,
    log: Optional[logging.Logger] = None,
) -> Path:
    """Export the layer table as CSV (overwrites existing)."""
    if log is None:
        log = logger

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = build_layer_table(result)
    df.to_csv(output_path, index=False)

    log.info(f"📊 Layer summary exported: {output_path.name} ({len(df)} rows)")
    return output_path


# ═══════════════════════════════════════════════════════════════════════════
# 📷 PNG EXPORT
# ═══════════════════════════════════════════════════════════════════════════


def _plot_region(
    ax: "matplotlib.axes.Axes",
    region: Region,
    facecolor: Tuple[float, float, float, float],
    edgecolor: str = "black",
    linewidth: float = 0.5,
) -> None:
    """Plot every polygon part of a region with holes rendered."""
    from matplotlib.patches import PathPatch
    from matplotlib.path import Path as MplPath

    def polygon_to_path(polygon: Polygon) -> MplPath:
        vertices: List[Tuple[float, float]] = []
        codes: List[int] = []
        for ring in [polygon.exterior, *polygon.interiors]:
            coords = [(c[0], c[1]) for c in ring.coords]
            vertices.extend(coords)
            codes.extend(
                [MplPath.MOVETO]
                + [MplPath.LINETO] * (len(coords) - 2)
                + [MplPath.CLOSEPOLY]
            )
        return MplPath(vertices, codes)

    for polygon in iter_polygons(region.geometry):
        ax.add_patch(
            PathPatch(
                polygon_to_path(polygon),
                facecolor=facecolor,
                edgecolor=edgecolor,
                linewidth=linewidth,
            )
        )


def export_decomposition_png(
    result: DecompositionResult,
    output_path: Path,
    style_config: Optional[KmlStyleConfig] = None,
    title: Optional[str] = None,
    dpi: int = 150,
) -> bool:
    """
    Export a preview of the exclusive layers (simple zones, rings, maximal).

    Returns:
        True if export successful, False otherwise
    """
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        import matplotlib.patches as mpatches
    except ImportError:
        logger.error("❌ matplotlib not installed - cannot export PNG")
        return False

    style_config = style_config or KmlStyleConfig()
    summary = get_decomposition_summary(result)

    try:
        fig, ax = plt.subplots(figsize=(14, 12))

        legend_elements = []
        for region in result.exclusive_layers():
            if region.is_empty:
                continue
            facecolor = kml_to_rgba(region_color(region, style_config))
            _plot_region(ax, region, facecolor)
            if region.kind is not RegionKind.SIMPLE or not legend_elements:
                legend_elements.append(
                    mpatches.Patch(
                        facecolor=facecolor,
                        edgecolor="black",
                        label=(
                            "Simple zones"
                            if region.kind is RegionKind.SIMPLE
                            else region_label(region)
                        ),
                    )
                )

        ax.autoscale_view()
        ax.set_aspect("equal")
        ax.set_xlabel("Longitude", fontsize=12)
        ax.set_ylabel("Latitude", fontsize=12)
        ax.set_title(
            title or f"Multicoverage decomposition {result.tag}",
            fontsize=14,
            fontweight="bold",
        )
        ax.grid(True, alpha=0.3)
        if legend_elements:
            ax.legend(handles=legend_elements, loc="upper right", fontsize=9)

        ax.text(
            0.02,
            0.98,
            (
                f"Sources: {summary['num_sources']}\n"
                f"Max multiplicity: {summary['max_multiplicity']}\n"
                f"Overlap: {summary['overlap_pct']:.1f}%"
            ),
            transform=ax.transAxes,
            fontsize=10,
            verticalalignment="top",
            bbox=dict(boxstyle="round", facecolor="white", alpha=0.8),
        )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        plt.savefig(output_path, dpi=dpi, bbox_inches="tight", facecolor="white")
        plt.close(fig)

        logger.info(f"📷 PNG exported: {output_path}")
        return True

    except (OSError, ValueError) as e:
        logger.error(f"❌ PNG export failed: {e}")
        return False


# ═══════════════════════════════════════════════════════════════════════════
# 📦 MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════


def export_all_decomposition_outputs(
    result: DecompositionResult,
    output_dir: Path,
    bundle_name: Optional[str] = None,
    export_config: Optional[ExportConfig] = None,
    style_config: Optional[KmlStyleConfig] = None,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Path]:
    """
    Write every enabled output format for one decomposition.

    Args:
        result: DecompositionResult to export
        output_dir: Destination directory
        bundle_name: Base name for all files (default_bundle_name() if None)
        export_config: Format toggles (defaults if None)
        style_config: Layer colours (defaults if None)
        log: Logger instance (optional)

    Returns:
        Dict mapping format ("kmz", "geojson", "csv", "png") to file path
    """
    if log is None:
        log = logger

    export_config = export_config or ExportConfig()
    output_dir = Path(output_dir)
    bundle_name = bundle_name or default_bundle_name(result)

    log.info(f"📦 Exporting to: {output_dir}")
    exported: Dict[str, Path] = {}

    if export_config.kmz:
        exported["kmz"] = write_kmz(result, output_dir, bundle_name, style_config, log)

    if export_config.geojson:
        exported["geojson"] = export_decomposition_geojson(
            result, output_dir / f"{bundle_name}.geojson", log
        )

    if export_config.summary_csv:
        exported["csv"] = export_decomposition_summary_csv(
            result, output_dir / f"{bundle_name}_layers.csv", log
        )

    if export_config.png:
        png_path = output_dir / f"{bundle_name}.png"
        if export_decomposition_png(
            result, png_path, style_config, dpi=export_config.png_dpi
        ):
            exported["png"] = png_path

    log.info(f"✅ Export complete: {', '.join(exported) or 'nothing enabled'}")
    return exported


# ═══════════════════════════════════════════════════════════════════════════
# 📦 MODULE EXPORTS
# ═══════════════════════════════════════════════════════════════════════════

__all__ = [
    # KML / KMZ export
    "build_kml_document",
    "kml_to_string",
    "write_kmz",
    "default_bundle_name",
    # GeoJSON export
    "export_decomposition_geojson",
    # CSV export
    "build_layer_table",
    "export_decomposition_summary_csv",
    # PNG export
    "export_decomposition_png",
    # Main entry point
    "export_all_decomposition_outputs",
]
