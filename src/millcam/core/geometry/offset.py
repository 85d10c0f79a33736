"""Vertex-bisector contour offsetting.

Every vertex is pushed along the bisector of its two adjacent outward edge
normals.  Convex corners are exact; concave corners are approximate and a
large inward offset can self-intersect (no clean-up pass is done here).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .shapes import EPSILON, Point2D, signed_area

# Corners sharper than this (cos of the half-angle) are dropped to avoid
# unbounded miter spikes.
MIN_HALF_ANGLE_COS = 1e-3


def _outward_normal(a: Point2D, b: Point2D, ccw: bool) -> Optional[Point2D]:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length = math.hypot(dx, dy)
    if length <= EPSILON:
        return None
    # For a counter-clockwise ring the exterior is on the right of each edge
    if ccw:
        return (dy / length, -dx / length)
    return (-dy / length, dx / length)


def offset_contour(
    points: Sequence[Point2D],
    distance: float,
) -> Optional[list[Point2D]]:
    """Offset a closed contour by *distance*.

    Positive distances grow the contour, negative distances shrink it,
    whatever its winding.  Each vertex moves along the unit bisector ``b`` of
    the adjacent edge normals by ``distance / cos(phi / 2)`` where ``phi`` is
    the angle between the normals (equivalently ``distance / sin(theta / 2)``
    with ``theta`` the interior corner angle), which keeps both adjacent
    edges exactly ``distance`` away.

    Parameters
    ----------
    points:
        Ring of (x, y) points.  A repeated closing point is accepted.
    distance:
        Signed offset.

    Returns
    -------
    The offset ring, closed (first point repeated last), or ``None`` when
    fewer than two usable vertices remain.
    """
    ring = [(float(p[0]), float(p[1])) for p in points]
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    # Drop consecutive duplicates
    cleaned: list[Point2D] = []
    for p in ring:
        if not cleaned or math.hypot(p[0] - cleaned[-1][0], p[1] - cleaned[-1][1]) > EPSILON:
            cleaned.append(p)
    if len(cleaned) > 1 and math.hypot(cleaned[0][0] - cleaned[-1][0],
                                       cleaned[0][1] - cleaned[-1][1]) <= EPSILON:
        cleaned.pop()
    n = len(cleaned)
    if n < 3:
        return None

    ccw = signed_area(cleaned) > 0
    result: list[Point2D] = []
    for i in range(n):
        prev_pt = cleaned[i - 1]
        cur = cleaned[i]
        next_pt = cleaned[(i + 1) % n]
        n1 = _outward_normal(prev_pt, cur, ccw)
        n2 = _outward_normal(cur, next_pt, ccw)
        if n1 is None or n2 is None:
            continue
        bx, by = n1[0] + n2[0], n1[1] + n2[1]
        blen = math.hypot(bx, by)
        if blen <= EPSILON:
            # Edge doubles back on itself
            continue
        bx, by = bx / blen, by / blen
        cos_half = bx * n1[0] + by * n1[1]
        if cos_half < MIN_HALF_ANGLE_COS:
            continue
        d = distance / cos_half
        result.append((cur[0] + bx * d, cur[1] + by * d))

    if len(result) < 2:
        return None
    return result + [result[0]]
