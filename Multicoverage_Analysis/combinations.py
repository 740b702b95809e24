#!/usr/bin/env python3
"""
Combination Generator

Lazily yields every size-k selection of an ordered name sequence. Each
selection preserves the relative input order, and no two selections hold the
same names in a different order.

This is a PURE COMPUTATION module - no logging, no CONFIG access.
"""

from itertools import combinations
from math import comb
from typing import Iterator, Sequence, Tuple, TypeVar

T = TypeVar("T")


def generate_combinations(items: Sequence[T], k: int) -> Iterator[Tuple[T, ...]]:
    """
    Yield all C(N, k) order-preserving subsets of items.

    Each call returns a fresh single-pass iterator over a snapshot of items;
    nothing is shared between calls.

    Args:
        items: Ordered sequence of N distinct items (usually source names)
        k: Subset size, 1 <= k <= N

    Returns:
        Iterator of k-tuples in input order (lexicographic by position)

    Raises:
        ValueError: If k is outside 1..N

    Example:
        >>> list(generate_combinations(["A", "B", "C"], 2))
        [('A', 'B'), ('A', 'C'), ('B', 'C')]
    """
    items = tuple(items)
    if not 1 <= k <= len(items):
        raise ValueError(f"k must be between 1 and {len(items)}, got {k}")
    return combinations(items, k)


def count_combinations(n: int, k: int) -> int:
    """Number of combinations generate_combinations yields for N=n."""
    return comb(n, k)
