"""Multicoverage error hierarchy.

Custom exceptions for source loading and coverage decomposition.

Empty intersections and pairwise-disjoint sources are normal outcomes and
never raise.
"""

from typing import Optional


class MulticoverageError(Exception):
    """Base error for multicoverage operations."""


class InsufficientSourcesError(MulticoverageError):
    """Fewer than two source regions were supplied.

    Attributes:
        count: Number of sources actually supplied
    """

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(
            f"Decomposition needs at least 2 source regions, got {count}"
        )


class InvalidGeometryError(MulticoverageError):
    """A geometry is invalid or a boolean operation on it failed.

    Attributes:
        identity: Source name, combination name or layer the geometry belongs to
        reason: Validity reason reported by the geometry engine (if any)
    """

    def __init__(self, identity: str, reason: Optional[str] = None) -> None:
        self.identity = identity
        self.reason = reason
        message = f"Invalid geometry for '{identity}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

    def __reduce__(self):
        # Rebuilt from its fields when raised inside a process-based worker
        return (self.__class__, (self.identity, self.reason))


class DuplicateSourceNameError(MulticoverageError):
    """Two source regions share the same name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Duplicate source name: '{name}'")


class InvalidTagError(MulticoverageError):
    """Tag does not match the configured pattern."""

    def __init__(self, tag: str, pattern: str) -> None:
        self.tag = tag
        self.pattern = pattern
        super().__init__(f"Tag '{tag}' does not match pattern {pattern}")


class SourceLoadError(MulticoverageError):
    """Input file cannot be read or contains no polygons."""
