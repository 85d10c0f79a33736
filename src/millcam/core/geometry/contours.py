"""Stitch an unordered set of edges into contours."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .vector import Point3D, distance

Edge = tuple[Point3D, Point3D]


@dataclass(frozen=True)
class Contour:
    """An ordered run of points.  Closed contours repeat the first point last."""
    points: tuple[Point3D, ...] = field(default_factory=tuple)
    closed: bool = False

    def __len__(self) -> int:
        return len(self.points)


def extract_contours(edges: Sequence[Edge], tolerance: float = 1e-6) -> list[Contour]:
    """Greedily chain *edges* into contours.

    Each contour starts from the first unused edge and keeps appending any
    unused edge with an endpoint within *tolerance* of the open end (the edge
    is flipped when its far end is the one that matches).  The contour is
    closed once the open end comes back to its start.  Runs that cannot be
    closed are returned as open contours.

    Parameters
    ----------
    edges:
        Segments as (start, end) point pairs, in any order and orientation.
    tolerance:
        Maximum gap between two endpoints considered coincident.

    Returns
    -------
    Contours in discovery order.
    """
    pts = [(Point3D(*a), Point3D(*b)) for a, b in edges]
    used = [False] * len(pts)
    contours: list[Contour] = []

    # Each pass of the inner loop either consumes an edge or ends a contour
    budget = len(pts) ** 2 + len(pts) + 1

    for seed in range(len(pts)):
        if used[seed]:
            continue
        used[seed] = True
        start, end = pts[seed]
        if distance(start, end) <= tolerance:
            continue
        chain = [start, end]
        closed = False

        while budget > 0:
            budget -= 1
            if len(chain) > 2 and distance(chain[-1], chain[0]) <= tolerance:
                chain[-1] = chain[0]
                closed = True
                break
            tail = chain[-1]
            found = False
            for i, (a, b) in enumerate(pts):
                if used[i]:
                    continue
                if distance(a, tail) <= tolerance:
                    chain.append(b)
                elif distance(b, tail) <= tolerance:
                    chain.append(a)
                else:
                    continue
                used[i] = True
                found = True
                break
            if not found:
                break

        contours.append(Contour(points=tuple(chain), closed=closed))

    return contours
