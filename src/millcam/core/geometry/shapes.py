"""2D cross-section shapes, arcs and Z-level slices.

Shapes are plain frozen value objects living in the XY plane of one slice.
They know their own bounds, an entry point for the tool, and how to turn
themselves into a closed ring of boundary points.  Boolean tags are carried
along but only resolved on request through Shapely (``ZLevelSlice.outline``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Sequence, Union

from shapely.affinity import scale as shapely_scale
from shapely.geometry import MultiPolygon, Point, Polygon, box
from shapely.ops import unary_union
from shapely.validation import make_valid

from .vector import Point3D

# Maximum |dist(center, start|end) - radius| accepted for a valid arc
ARC_RADIUS_TOLERANCE = 1e-2

# Below this a length is treated as zero
EPSILON = 1e-9

Point2D = tuple[float, float]


class Plane(Enum):
    """Arc interpolation plane (G17 / G18 / G19)."""
    XY = "XY"
    XZ = "XZ"
    YZ = "YZ"

    @property
    def axes(self) -> tuple[int, int]:
        """Indices of the two in-plane axes into an (x, y, z) triple."""
        return {Plane.XY: (0, 1), Plane.XZ: (0, 2), Plane.YZ: (1, 2)}[self]

    @property
    def gcode(self) -> str:
        return {Plane.XY: "G17", Plane.XZ: "G18", Plane.YZ: "G19"}[self]


class ArcDirection(Enum):
    CW = "CW"     # G2
    CCW = "CCW"   # G3


class BooleanOp(Enum):
    """Set operation a primitive contributes to its slice."""
    UNION = "union"
    SUBTRACT = "subtract"
    INTERSECT = "intersect"


@dataclass(frozen=True)
class Arc:
    """A circular arc in one of the three principal planes.

    *center* is expressed in the plane's own two axes, e.g. (x, z) for XZ.
    """

    center: Point2D
    start: Point3D
    end: Point3D
    radius: float
    direction: ArcDirection = ArcDirection.CCW
    plane: Plane = Plane.XY

    @property
    def clockwise(self) -> bool:
        return self.direction is ArcDirection.CW

    def _project(self, p: Point3D) -> Point2D:
        a, b = self.plane.axes
        return (p[a], p[b])

    def center_offset(self) -> Point2D:
        """Center relative to the start point (the I/J/K words)."""
        su, sv = self._project(self.start)
        return (self.center[0] - su, self.center[1] - sv)

    def is_consistent(self, tol: float = ARC_RADIUS_TOLERANCE) -> bool:
        """True when both endpoints sit on the circle within *tol*."""
        for p in (self.start, self.end):
            u, v = self._project(p)
            if abs(math.hypot(u - self.center[0], v - self.center[1]) - self.radius) > tol:
                return False
        return True

    def sweep(self) -> float:
        """Swept angle in radians, in (0, 2*pi].  Coincident ends = full circle."""
        cu, cv = self.center
        su, sv = self._project(self.start)
        eu, ev = self._project(self.end)
        a0 = math.atan2(sv - cv, su - cu)
        a1 = math.atan2(ev - cv, eu - cu)
        delta = a0 - a1 if self.clockwise else a1 - a0
        delta %= 2 * math.pi
        if delta < 1e-9:
            delta = 2 * math.pi
        return delta

    def length(self) -> float:
        """Path length, including the helical component along the normal axis."""
        planar = self.radius * self.sweep()
        normal_axis = 3 - sum(self.plane.axes)
        rise = self.end[normal_axis] - self.start[normal_axis]
        return math.hypot(planar, rise)


@dataclass(frozen=True)
class BoundingBox2D:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point2D:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def union(self, other: Optional[BoundingBox2D]) -> BoundingBox2D:
        if other is None:
            return self
        return BoundingBox2D(
            min(self.min_x, other.min_x), min(self.min_y, other.min_y),
            max(self.max_x, other.max_x), max(self.max_y, other.max_y),
        )

    @classmethod
    def from_points(cls, points: Sequence[Point2D]) -> BoundingBox2D:
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return cls(min(xs), min(ys), max(xs), max(ys))


def signed_area(points: Sequence[Point2D]) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    total = 0.0
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        total += x0 * y1 - x1 * y0
    if points and tuple(points[0]) != tuple(points[-1]):
        (x0, y0), (x1, y1) = points[-1], points[0]
        total += x0 * y1 - x1 * y0
    return total / 2.0


# ---------------------------------------------------------------------------
# Cross-section shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Circle:
    center: Point2D
    radius: float
    operation: BooleanOp = BooleanOp.UNION
    kind: ClassVar[str] = "circle"

    @property
    def is_degenerate(self) -> bool:
        return self.radius <= EPSILON

    @property
    def entry_point(self) -> Point2D:
        return (self.center[0] + self.radius, self.center[1])

    @property
    def bounds(self) -> BoundingBox2D:
        cx, cy = self.center
        r = self.radius
        return BoundingBox2D(cx - r, cy - r, cx + r, cy + r)

    def boundary_points(self, segments: int = 64) -> list[Point2D]:
        cx, cy = self.center
        pts = [
            (cx + self.radius * math.cos(2 * math.pi * i / segments),
             cy + self.radius * math.sin(2 * math.pi * i / segments))
            for i in range(segments)
        ]
        return pts + [pts[0]]

    def as_shapely(self) -> Polygon:
        return Point(self.center).buffer(self.radius, quad_segs=32)


@dataclass(frozen=True)
class Ellipse:
    center: Point2D
    radius_x: float
    radius_y: float
    operation: BooleanOp = BooleanOp.UNION
    kind: ClassVar[str] = "ellipse"

    @property
    def is_degenerate(self) -> bool:
        return self.radius_x <= EPSILON or self.radius_y <= EPSILON

    @property
    def entry_point(self) -> Point2D:
        return (self.center[0] + self.radius_x, self.center[1])

    @property
    def bounds(self) -> BoundingBox2D:
        cx, cy = self.center
        return BoundingBox2D(cx - self.radius_x, cy - self.radius_y,
                             cx + self.radius_x, cy + self.radius_y)

    def boundary_points(self, segments: Optional[int] = None) -> list[Point2D]:
        if segments is None:
            segments = max(12, math.ceil(math.pi * (self.radius_x + self.radius_y)))
        cx, cy = self.center
        pts = [
            (cx + self.radius_x * math.cos(2 * math.pi * i / segments),
             cy + self.radius_y * math.sin(2 * math.pi * i / segments))
            for i in range(segments)
        ]
        return pts + [pts[0]]

    def as_shapely(self) -> Polygon:
        unit = Point(self.center).buffer(1.0, quad_segs=32)
        return shapely_scale(unit, self.radius_x, self.radius_y, origin=self.center)


@dataclass(frozen=True)
class Rectangle:
    center: Point2D
    width: float
    height: float
    operation: BooleanOp = BooleanOp.UNION
    kind: ClassVar[str] = "rectangle"

    @property
    def is_degenerate(self) -> bool:
        return self.width <= EPSILON or self.height <= EPSILON

    @property
    def entry_point(self) -> Point2D:
        return self.boundary_points()[0]

    @property
    def bounds(self) -> BoundingBox2D:
        cx, cy = self.center
        hw, hh = self.width / 2, self.height / 2
        return BoundingBox2D(cx - hw, cy - hh, cx + hw, cy + hh)

    def boundary_points(self) -> list[Point2D]:
        b = self.bounds
        return [
            (b.min_x, b.min_y), (b.max_x, b.min_y), (b.max_x, b.max_y),
            (b.min_x, b.max_y), (b.min_x, b.min_y),
        ]

    def as_shapely(self) -> Polygon:
        b = self.bounds
        return box(b.min_x, b.min_y, b.max_x, b.max_y)


@dataclass(frozen=True)
class PolygonShape:
    """Closed polygon.  An open ring is closed on construction.

    Raises ValueError when fewer than three distinct points are given.
    """

    points: tuple[Point2D, ...]
    center: Optional[Point2D] = None
    operation: BooleanOp = BooleanOp.UNION
    kind: ClassVar[str] = "polygon"

    def __post_init__(self) -> None:
        pts = tuple((float(p[0]), float(p[1])) for p in self.points)
        if len(set(pts)) < 3:
            raise ValueError("Polygon needs at least 3 distinct points")
        if pts[0] != pts[-1]:
            pts = pts + (pts[0],)
        object.__setattr__(self, "points", pts)
        if self.center is None:
            ring = pts[:-1]
            object.__setattr__(self, "center", (
                sum(p[0] for p in ring) / len(ring),
                sum(p[1] for p in ring) / len(ring),
            ))

    @property
    def is_degenerate(self) -> bool:
        return abs(signed_area(self.points)) <= EPSILON

    @property
    def entry_point(self) -> Point2D:
        return self.points[0]

    @property
    def bounds(self) -> BoundingBox2D:
        return BoundingBox2D.from_points(self.points)

    def boundary_points(self) -> list[Point2D]:
        return list(self.points)

    def as_shapely(self) -> Polygon:
        poly = Polygon(self.points)
        return poly if poly.is_valid else make_valid(poly)


CrossSectionShape = Union[Circle, Ellipse, Rectangle, PolygonShape]


# ---------------------------------------------------------------------------
# Z-level slice
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ZLevelSlice:
    """All cross-section shapes of an element forest at one Z height."""

    z_level: float
    shapes: tuple[tuple[str, CrossSectionShape], ...] = field(default_factory=tuple)
    bounding_box: Optional[BoundingBox2D] = None

    @property
    def is_empty(self) -> bool:
        return len(self.shapes) == 0

    def shape_list(self) -> list[CrossSectionShape]:
        return [shape for _, shape in self.shapes]

    def outline(self) -> Polygon | MultiPolygon:
        """Resolve boolean tags into one Shapely region, in element order.

        Unions are applied first so that subtract / intersect operands act on
        the accumulated material, mirroring how a modelling tree reads.
        """
        unions = [s.as_shapely() for _, s in self.shapes if s.operation is BooleanOp.UNION]
        region = unary_union(unions) if unions else Polygon()
        for _, shape in self.shapes:
            if shape.operation is BooleanOp.SUBTRACT:
                region = region.difference(shape.as_shapely())
            elif shape.operation is BooleanOp.INTERSECT:
                region = region.intersection(shape.as_shapely())
        return region if region.is_valid else make_valid(region)
