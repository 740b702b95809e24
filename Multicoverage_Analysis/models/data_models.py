"""
Typed data models for coverage decomposition.

Architectural Overview:
=======================
This module contains the immutable value types passed between the stages of
the decomposition pipeline. Every derived region carries its provenance
(composite name), its classification (kind + multiplicity) and the caller's
tag, so an exporter can label and style it without asking the engine again.

Key Interactions:
-----------------
- Input: source_loader creates ORIGINAL regions from parsed files
- Processing: decomposition creates MULTI / MULTI_TOTAL / SIMPLE / ... regions
- Output: DecompositionResult.layers() feeds the exporters
- Navigation: Use VS Code outline (Ctrl+Shift+O) for quick navigation

Immutability:
-------------
Regions and groups are frozen. An "update" (e.g. subtracting higher-level
area from a combination) builds a NEW Region via with_geometry(), and a
changed membership builds a NEW CombinationGroup via with_members().

MODIFICATION POINT: Add new RegionKind values here for future layer types
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

from shapely.geometry.base import BaseGeometry

from Multicoverage_Analysis.geometry_ops import has_holes, is_empty, vertex_count


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ ENUMS SECTION
# ═══════════════════════════════════════════════════════════════════════════


class RegionKind(Enum):
    """Classification of a region within the decomposition.

    MODIFICATION POINT: Add new layer types here
    """

    ORIGINAL = "original"  # Source coverage as loaded
    SIMPLE = "simple"  # Covered by exactly one source (per source)
    SIMPLE_TOTAL = "simple total"  # Union of all simple zones
    MULTI = "multi"  # Covered by an exact subset of sources
    MULTI_TOTAL = "multiple total"  # Ring at one multiplicity (0 = all levels)
    TOTAL = "total"  # Union of all sources

    @classmethod
    def from_string(cls, s: str) -> "RegionKind":
        """Convert string to RegionKind.

        Args:
            s: String like "original", "multi", "multiple total"

        Raises:
            ValueError: If no kind has that value
        """
        for member in cls:
            if member.value == s:
                return member
        raise ValueError(f"Unknown region kind: '{s}'")

    @property
    def carries_multiplicity(self) -> bool:
        return self in (RegionKind.MULTI, RegionKind.MULTI_TOTAL)


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ REGION DATACLASS SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Region:
    """Immutable named planar area with provenance.

    Attributes:
        name: Source identifier, composite of constituent names, or "" for totals
        tag: Caller-supplied grouping label, propagated to every derived region
        kind: Classification of this region
        geometry: Polygon / MultiPolygon (possibly empty), always valid
        multiplicity: Overlap level for MULTI / MULTI_TOTAL, 0 otherwise
        has_gaps: True when the geometry is known to contain holes

    Usage Examples:
    ---------------
    ```python
    radar = Region.create("LEBL", "FL100", RegionKind.ORIGINAL, polygon)
    reduced = combo.with_geometry(combo.geometry.difference(higher))
    ```
    """

    name: str
    tag: str
    kind: RegionKind
    geometry: BaseGeometry = field(compare=False)
    multiplicity: int = 0
    has_gaps: bool = False

    def __post_init__(self) -> None:
        """Validate classification fields."""
        if self.multiplicity < 0:
            raise ValueError(f"multiplicity must be >= 0, got {self.multiplicity}")
        if self.multiplicity and not self.kind.carries_multiplicity:
            raise ValueError(
                f"multiplicity is only meaningful for multi kinds, "
                f"got {self.multiplicity} for {self.kind.value}"
            )

    @classmethod
    def create(
        cls,
        name: str,
        tag: str,
        kind: RegionKind,
        geometry: BaseGeometry,
        multiplicity: int = 0,
    ) -> "Region":
        """Build a Region, deriving has_gaps from the geometry."""
        return cls(
            name=name,
            tag=tag,
            kind=kind,
            geometry=geometry,
            multiplicity=multiplicity,
            has_gaps=has_holes(geometry),
        )

    def with_geometry(self, geometry: BaseGeometry) -> "Region":
        """Return a copy carrying a new geometry (has_gaps recomputed)."""
        return replace(self, geometry=geometry, has_gaps=has_holes(geometry))

    def renamed(self, name: str) -> "Region":
        return replace(self, name=name)

    @property
    def is_empty(self) -> bool:
        return is_empty(self.geometry)

    @property
    def area(self) -> float:
        return 0.0 if self.is_empty else float(self.geometry.area)

    @property
    def vertex_count(self) -> int:
        return vertex_count(self.geometry)

    def as_dict(self) -> Dict[str, Any]:
        """Flat attribute dict (geometry excluded) for tabular exports."""
        return {
            "name": self.name,
            "tag": self.tag,
            "kind": self.kind.value,
            "multiplicity": self.multiplicity,
            "area": self.area,
            "vertex_count": self.vertex_count,
            "has_gaps": self.has_gaps,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📦 COMBINATION GROUP SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CombinationGroup:
    """Named, fixed collection of regions sharing a purpose.

    The composite name is computed once from the members at construction;
    a different membership means a different group (see with_members()).

    Attributes:
        label: Purpose identifier (e.g. "multi 3", "rings", "simple")
        tag: Caller-supplied grouping label
        members: Regions in this group, in construction order
        separator: Joins member names into the composite name
        name: Composite name of all members (derived)
    """

    label: str
    tag: str
    members: Tuple[Region, ...] = ()
    separator: str = " () "
    name: str = field(init=False, default="")

    def __post_init__(self) -> None:
        # Frozen dataclass - use object.__setattr__ for derived fields
        object.__setattr__(self, "members", tuple(self.members))
        object.__setattr__(
            self,
            "name",
            self.separator.join(m.name for m in self.members if m.name),
        )

    def with_members(self, members: Sequence[Region]) -> "CombinationGroup":
        """Build a new group with the same label/tag and different members."""
        return CombinationGroup(
            label=self.label,
            tag=self.tag,
            members=tuple(members),
            separator=self.separator,
        )

    @property
    def multiplicity(self) -> int:
        """Multiplicity shared by the members (0 for mixed or empty groups)."""
        levels = {m.multiplicity for m in self.members}
        return levels.pop() if len(levels) == 1 else 0

    @property
    def geometries(self) -> Tuple[BaseGeometry, ...]:
        return tuple(m.geometry for m in self.members)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[Region]:
        return iter(self.members)

    def __bool__(self) -> bool:
        return bool(self.members)


# ═══════════════════════════════════════════════════════════════════════════
# 🎯 DECOMPOSITION RESULT SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DecompositionResult:
    """Final product of the decomposition engine.

    Attributes:
        sources: The input ORIGINAL regions, in input order
        total: Union of all sources (kind TOTAL)
        levels: Surviving per-level groups after ring reduction, highest first
        rings: One MULTI_TOTAL region per surviving level, highest first
        maximal: Region covered by all sources, if any
        simples: Per-source SIMPLE regions (kept even when empty)
        simple_total: Area covered by exactly one source
        multiple_total: Area covered by two or more sources
    """

    sources: Tuple[Region, ...]
    total: Region
    levels: Tuple[CombinationGroup, ...]
    rings: CombinationGroup
    maximal: Optional[Region]
    simples: CombinationGroup
    simple_total: Region
    multiple_total: Region

    @property
    def tag(self) -> str:
        return self.total.tag

    @property
    def has_maximal(self) -> bool:
        return self.maximal is not None

    @property
    def has_overlap(self) -> bool:
        return not self.multiple_total.is_empty

    @property
    def max_multiplicity(self) -> int:
        """Highest multiplicity with non-empty area (1 if no overlap)."""
        if self.maximal is not None:
            return self.maximal.multiplicity
        if self.rings:
            return max(r.multiplicity for r in self.rings)
        return 1

    def layers(self) -> Iterator[Region]:
        """Yield every region in export order.

        Order: originals, total, multiple total, maximal, rings, level
        members, simple zones, simple total.
        """
        yield from self.sources
        yield self.total
        yield self.multiple_total
        if self.maximal is not None:
            yield self.maximal
        yield from self.rings
        for level in self.levels:
            yield from level
        yield from self.simples
        yield self.simple_total

    def exclusive_layers(self) -> Iterator[Region]:
        """Yield the mutually disjoint layers that partition the covered area.

        Every covered point lies in exactly one of: a simple zone, a ring, or
        the maximal region.
        """
        yield from self.simples
        yield from self.rings
        if self.maximal is not None:
            yield self.maximal
