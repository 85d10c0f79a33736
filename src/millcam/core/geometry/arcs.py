"""Three-point arc fitting and arc recovery along polylines."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .shapes import Arc, ArcDirection, Plane, Point2D
from .vector import Point3D

# Sine of the smallest corner angle still treated as a real bend
COLLINEAR_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ArcFit:
    center: Point2D
    radius: float
    error: float
    clockwise: bool


def _cross(o: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def fit_arc(
    p1: Sequence[float],
    p2: Sequence[float],
    p3: Sequence[float],
) -> Optional[ArcFit]:
    """Fit the circle through three XY points.

    The center is where the perpendicular bisectors of p1-p2 and p2-p3
    meet.  ``radius`` is measured to *p1* and ``error`` is how far *p2* sits
    off that circle.  The arc runs clockwise when (p1 - c) x (p3 - c) is
    negative.

    Returns ``None`` for (near-)collinear or coincident points.
    """
    l12 = math.hypot(p2[0] - p1[0], p2[1] - p1[1])
    l13 = math.hypot(p3[0] - p1[0], p3[1] - p1[1])
    l23 = math.hypot(p3[0] - p2[0], p3[1] - p2[1])
    if min(l12, l13, l23) <= 1e-12:
        return None
    if abs(_cross(p1, p2, p3)) / (l12 * l13) < COLLINEAR_TOLERANCE:
        return None

    # Bisector of p1-p2:  (x - m1) . (p2 - p1) = 0, same for p2-p3
    a1, b1 = p2[0] - p1[0], p2[1] - p1[1]
    c1 = a1 * (p1[0] + p2[0]) / 2 + b1 * (p1[1] + p2[1]) / 2
    a2, b2 = p3[0] - p2[0], p3[1] - p2[1]
    c2 = a2 * (p2[0] + p3[0]) / 2 + b2 * (p2[1] + p3[1]) / 2
    det = a1 * b2 - a2 * b1
    if abs(det) <= 1e-15:
        return None
    cx = (c1 * b2 - c2 * b1) / det
    cy = (a1 * c2 - a2 * c1) / det

    radius = math.hypot(p1[0] - cx, p1[1] - cy)
    error = abs(math.hypot(p2[0] - cx, p2[1] - cy) - radius)
    clockwise = _cross((cx, cy), p1, p3) < 0
    # p1 and p3 on opposite sides of the center: use the middle point instead
    if abs(_cross((cx, cy), p1, p3)) <= 1e-12 * radius * radius:
        clockwise = _cross(p1, p2, p3) < 0
    return ArcFit(center=(cx, cy), radius=radius, error=error, clockwise=clockwise)


def _run_fits(points: Sequence[Point3D], i: int, j: int, tolerance: float) -> Optional[ArcFit]:
    """Fit points[i..j] with one arc, or None when any point strays."""
    mid = (i + j) // 2
    fit = fit_arc(points[i], points[mid], points[j])
    if fit is None:
        return None
    z = points[i].z
    for k in range(i, j + 1):
        p = points[k]
        if abs(p.z - z) > tolerance:
            return None
        if abs(math.hypot(p.x - fit.center[0], p.y - fit.center[1]) - fit.radius) > tolerance:
            return None
        if i < k < j and (_cross(points[k - 1], p, points[k + 1]) < 0) != fit.clockwise:
            return None
    return fit


def fit_arcs(
    points: Sequence[Point3D],
    tolerance: float = 0.01,
) -> list[Union[Point3D, Arc]]:
    """Replace runs of polyline points that lie on a common circle by arcs.

    The result starts with the first point and then lists, in order, plain
    points (linear moves) and :class:`Arc` objects whose ``start`` is the end
    of the previous element.  Only runs of at least three points at constant
    Z are considered.
    """
    pts = [Point3D(*p) for p in points]
    if len(pts) < 3:
        return list(pts)

    out: list[Union[Point3D, Arc]] = [pts[0]]
    i = 0
    n = len(pts)
    while i < n - 1:
        best: Optional[tuple[int, ArcFit]] = None
        j = i + 2
        while j < n:
            fit = _run_fits(pts, i, j, tolerance)
            if fit is None:
                break
            best = (j, fit)
            j += 1
        if best is None:
            out.append(pts[i + 1])
            i += 1
            continue
        j, fit = best
        out.append(Arc(
            center=fit.center,
            start=pts[i],
            end=pts[j],
            radius=fit.radius,
            direction=ArcDirection.CW if fit.clockwise else ArcDirection.CCW,
            plane=Plane.XY,
        ))
        i = j
    return out
