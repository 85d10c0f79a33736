"""Greedy nearest-neighbour ordering of disjoint cuts.

O(n²) in the number of items, which is fine for the tens of islands a slice
usually holds.  Dense workloads would want a spatial index here.
"""

from __future__ import annotations

from typing import Optional, Sequence, TypeVar, Union

from ..geometry.shapes import CrossSectionShape, Point2D
from ..geometry.vector import distance_2d

# A closed shape, or an open path given as a point sequence
Orderable = Union[CrossSectionShape, Sequence[Sequence[float]]]
T = TypeVar("T")


def _is_open_path(item) -> bool:
    return not hasattr(item, "entry_point")


def _reversed_path(path):
    rev = list(reversed(path))
    return type(path)(rev) if isinstance(path, tuple) else rev


def order_shapes(items: Sequence[T], start: Optional[Point2D] = None) -> list[T]:
    """Reorder *items* to shorten the travel between them.

    Begins with the first item (or, when *start* is given, the item nearest
    to it) and repeatedly picks the unvisited item whose defining point is
    closest to where the previous one left the tool.  Closed shapes are
    entered and left at their ``entry_point``; open paths are entered at
    either end and returned reversed when their tail is the closer end.
    """
    remaining = list(items)
    if not remaining:
        return []

    ordered: list = []
    if start is None:
        first = remaining.pop(0)
        ordered.append(first)
        cursor = _exit_point(first)
    else:
        cursor = start

    while remaining:
        best_idx = 0
        best_dist = float("inf")
        best_reverse = False
        for i, item in enumerate(remaining):
            if _is_open_path(item):
                d_head = distance_2d(cursor, item[0])
                d_tail = distance_2d(cursor, item[-1])
                dist, reverse = (d_tail, True) if d_tail < d_head else (d_head, False)
            else:
                dist, reverse = distance_2d(cursor, item.entry_point), False
            if dist < best_dist:
                best_idx, best_dist, best_reverse = i, dist, reverse
        item = remaining.pop(best_idx)
        if best_reverse:
            item = _reversed_path(item)
        ordered.append(item)
        cursor = _exit_point(item)

    return ordered


def _exit_point(item) -> Point2D:
    if _is_open_path(item):
        return (item[-1][0], item[-1][1])
    return item.entry_point


def travel_distance(items: Sequence[Orderable], start: Optional[Point2D] = None) -> float:
    """Total XY air travel from item to item (and from *start*, when given)."""
    total = 0.0
    cursor = start
    for item in items:
        entry = (item[0][0], item[0][1]) if _is_open_path(item) else item.entry_point
        if cursor is not None:
            total += distance_2d(cursor, entry)
        cursor = _exit_point(item)
    return total
