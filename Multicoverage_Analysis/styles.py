"""
Layer labels and colours.

Derives a display label and a KML fill colour for any Region from its
metadata alone (name, kind, multiplicity), so exporters never need to ask the
decomposition engine about a layer.
"""

from typing import Optional

from Multicoverage_Analysis.config_types import KmlStyleConfig
from Multicoverage_Analysis.models import Region, RegionKind


def region_label(region: Region) -> str:
    """
    Display label of a region.

    Examples:
        TOTAL                       -> "Total"
        MULTI_TOTAL, multiplicity 3 -> "Multiple total 3"
        MULTI_TOTAL, multiplicity 0 -> "Multiple total"
        MULTI "A () B", 2           -> "A () B multiple 2"
        SIMPLE_TOTAL                -> "Simple total"
        SIMPLE "A"                  -> "A simple"
    """
    kind = region.kind
    if kind is RegionKind.TOTAL:
        return "Total"
    if kind is RegionKind.MULTI_TOTAL:
        if region.multiplicity:
            return f"Multiple total {region.multiplicity}"
        return "Multiple total"
    if kind is RegionKind.MULTI:
        return f"{region.name} multiple {region.multiplicity}"
    if kind is RegionKind.SIMPLE_TOTAL:
        return "Simple total"
    return f"{region.name} {kind.value}"


def region_color(region: Region, style: Optional[KmlStyleConfig] = None) -> str:
    """KML 'aabbggrr' fill colour of a region."""
    style = style or KmlStyleConfig()
    kind = region.kind

    if kind is RegionKind.MULTI_TOTAL and region.multiplicity == 0:
        return style.multiple_total
    if kind.carries_multiplicity:
        return style.multiplicity_color(region.multiplicity)
    if kind is RegionKind.ORIGINAL:
        return style.original
    if kind is RegionKind.TOTAL:
        return style.total
    if kind is RegionKind.SIMPLE_TOTAL:
        return style.simple_total
    return style.simple


def kml_to_rgba(color: str) -> tuple:
    """
    Convert a KML 'aabbggrr' string to a matplotlib (r, g, b, a) tuple.

    Example:
        >>> kml_to_rgba("7d00ff00")
        (0.0, 1.0, 0.0, 0.49019607843137253)
    """
    a, b, g, r = (int(color[i : i + 2], 16) / 255 for i in range(0, 8, 2))
    return (r, g, b, a)
