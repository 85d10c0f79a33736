"""Z-plane primitive slicer: element forest → 2D cross-section shapes.

The slicer is the critical 3D→2D bridge.  At each Z height it returns the
analytic cross-section of every primitive that the plane cuts (circles,
ellipses, rectangles, polygons), tagged with the element id and the
boolean operation inherited from the modelling tree.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

import numpy as np

from .geometry.shapes import (
    BooleanOp,
    BoundingBox2D,
    Circle,
    CrossSectionShape,
    Ellipse,
    PolygonShape,
    Rectangle,
    ZLevelSlice,
)
from .geometry.vector import Point3D, add
from .primitives import Primitive

# Tolerance when testing a plane against a primitive's Z band
Z_TOLERANCE = 1e-9


class MissingDimensionError(ValueError):
    """A primitive lacks a dimension required to slice it."""


@dataclass(frozen=True)
class PlacedPrimitive:
    """A primitive with its group offsets folded into an absolute position."""
    element: Primitive
    position: Point3D
    operation: BooleanOp


def iter_placed(
    elements: Sequence[Primitive],
    offset: Point3D = Point3D(0.0, 0.0, 0.0),
    operation: BooleanOp = BooleanOp.UNION,
) -> Iterator[PlacedPrimitive]:
    """Walk the forest depth-first, accumulating group offsets."""
    for el in elements:
        pos = add(offset, el.position)
        op = el.operation or operation
        if el.type != "group":
            yield PlacedPrimitive(el, pos, op)
        if el.children:
            yield from iter_placed(el.children, pos, op)


def _require(el: Primitive, *names: str) -> float:
    value = el.dim(*names)
    if value is None or float(value) <= 0:
        raise MissingDimensionError(
            f"{el.type} '{el.id}' is missing a positive '{names[0]}'"
        )
    return float(value)


# ---------------------------------------------------------------------------
# Per-type Z extents and sections
# ---------------------------------------------------------------------------


def _capsule_axis(el: Primitive) -> str:
    return str(el.dim("orientation", default="z")).lower()


def z_range(placed: PlacedPrimitive) -> tuple[float, float]:
    """(z_min, z_max) occupied by a placed primitive."""
    el, cz = placed.element, placed.position.z
    t = el.type
    if t in ("box", "cube"):
        h = _require(el, "height")
        return cz - h / 2, cz + h / 2
    if t == "rectangle":
        return cz - float(el.dim("depth", default=0.0)), cz
    if t == "sphere":
        r = _require(el, "radius")
        return cz - r, cz + r
    if t == "hemisphere":
        r = _require(el, "radius")
        if str(el.dim("direction", default="up")).lower() == "down":
            return cz - r, cz
        return cz, cz + r
    if t in ("cylinder", "cone", "pyramid", "prism"):
        h = _require(el, "height")
        return cz - h / 2, cz + h / 2
    if t == "capsule":
        r = _require(el, "radius")
        if _capsule_axis(el) == "z":
            half = max(0.0, float(el.dim("height", default=2 * r)) - 2 * r) / 2
            return cz - half - r, cz + half + r
        return cz - r, cz + r
    if t == "ellipsoid":
        rz = _require(el, "radiusZ", "radius")
        return cz - rz, cz + rz
    if t == "mesh":
        verts = _mesh_vertices(placed)
        return float(verts[:, 2].min()), float(verts[:, 2].max())
    raise KeyError(t)


def _mesh_vertices(placed: PlacedPrimitive) -> np.ndarray:
    el = placed.element
    if el.vertices is None or el.faces is None or len(el.vertices) == 0 or len(el.faces) == 0:
        raise MissingDimensionError(f"mesh '{el.id}' has no vertices/faces")
    return np.asarray(el.vertices, dtype=np.float64).reshape(-1, 3) + np.asarray(placed.position)


def _section_box(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    return Rectangle(center, _require(el, "width"), _require(el, "depth"), op)


def _section_rectangle(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    return Rectangle(center, _require(el, "width"), _require(el, "height"), op)


def _section_sphere(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    r = _require(p.element, "radius")
    d = abs(z - p.position.z)
    return Circle(center, math.sqrt(max(0.0, r * r - d * d)), op)


def _section_cylinder(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    return Circle(center, _require(p.element, "radius"), op)


def _section_cone(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    r = _require(el, "radius")
    h = _require(el, "height")
    z_min = p.position.z - h / 2
    return Circle(center, max(0.0, r * (1 - (z - z_min) / h)), op)


def _section_capsule(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    r = _require(el, "radius")
    length = max(0.0, float(el.dim("height", default=2 * r)) - 2 * r)
    d = z - p.position.z
    axis = _capsule_axis(el)
    if axis == "z":
        # Straight band, then spherical caps centred at either end of it
        overshoot = max(0.0, abs(d) - length / 2)
        return Circle(center, math.sqrt(max(0.0, r * r - overshoot * overshoot)), op)
    w = math.sqrt(max(0.0, r * r - d * d))
    if axis == "x":
        return Ellipse(center, length / 2 + w, w, op)
    return Ellipse(center, w, length / 2 + w, op)


def _section_pyramid(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    w = _require(el, "baseWidth", "width")
    dpt = float(el.dim("baseDepth", "depth", default=w))
    h = _require(el, "height")
    ratio = max(0.0, 1 - (z - (p.position.z - h / 2)) / h)
    return Rectangle(center, w * ratio, dpt * ratio, op)


def _section_prism(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    r = _require(el, "radius")
    sides = int(el.dim("sides", default=6))
    if sides < 3:
        raise MissingDimensionError(f"prism '{el.id}' needs at least 3 sides")
    pts = tuple(
        (center[0] + r * math.cos(2 * math.pi * i / sides),
         center[1] + r * math.sin(2 * math.pi * i / sides))
        for i in range(sides)
    )
    return PolygonShape(pts, center, op)


def _section_ellipsoid(p: PlacedPrimitive, z: float, center, op) -> CrossSectionShape:
    el = p.element
    rx = _require(el, "radiusX", "radius")
    ry = _require(el, "radiusY", "radius")
    rz = _require(el, "radiusZ", "radius")
    d = (z - p.position.z) / rz
    factor = math.sqrt(max(0.0, 1 - d * d))
    return Ellipse(center, rx * factor, ry * factor, op)


def _section_mesh(p: PlacedPrimitive, z: float, center, op) -> Optional[CrossSectionShape]:
    """Crossing points of straddling edges, ordered by angle about their centroid."""
    verts = _mesh_vertices(p)
    faces = np.asarray(p.element.faces, dtype=np.int64).reshape(-1, 3)
    edges = faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2)
    edges = np.unique(np.sort(edges, axis=1), axis=0)

    a = verts[edges[:, 0]]
    b = verts[edges[:, 1]]
    # Half-open test so a vertex lying on the plane is only counted once
    straddle = (a[:, 2] <= z) != (b[:, 2] <= z)
    if not np.any(straddle):
        return None
    a, b = a[straddle], b[straddle]
    t = (z - a[:, 2]) / (b[:, 2] - a[:, 2])
    crossings = a[:, :2] + (b[:, :2] - a[:, :2]) * t[:, None]
    crossings = np.unique(np.round(crossings, 9), axis=0)
    if len(crossings) < 3:
        return None

    centroid = crossings.mean(axis=0)
    angles = np.arctan2(crossings[:, 1] - centroid[1], crossings[:, 0] - centroid[0])
    ordered = crossings[np.argsort(angles)]
    return PolygonShape(
        tuple((float(x), float(y)) for x, y in ordered),
        (float(centroid[0]), float(centroid[1])),
        op,
    )


_SECTIONERS: dict[str, Callable[..., Optional[CrossSectionShape]]] = {
    "box": _section_box,
    "cube": _section_box,
    "rectangle": _section_rectangle,
    "sphere": _section_sphere,
    "hemisphere": _section_sphere,
    "cylinder": _section_cylinder,
    "cone": _section_cone,
    "capsule": _section_capsule,
    "pyramid": _section_pyramid,
    "prism": _section_prism,
    "ellipsoid": _section_ellipsoid,
    "mesh": _section_mesh,
}

SUPPORTED_TYPES = frozenset(_SECTIONERS)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def slice_elements(elements: Sequence[Primitive], z_level: float) -> ZLevelSlice:
    """Cross-section every primitive of *elements* at *z_level*.

    Primitives the plane misses contribute nothing.  Unknown types and
    primitives with missing dimensions are skipped with a ``UserWarning``.
    """
    shapes: list[tuple[str, CrossSectionShape]] = []
    bbox: Optional[BoundingBox2D] = None

    for placed in iter_placed(elements):
        el = placed.element
        sectioner = _SECTIONERS.get(el.type)
        if sectioner is None:
            warnings.warn(f"Unsupported primitive type '{el.type}' ({el.id}) skipped",
                          UserWarning, stacklevel=2)
            continue
        try:
            z_min, z_max = z_range(placed)
            if z_level < z_min - Z_TOLERANCE or z_level > z_max + Z_TOLERANCE:
                continue
            center = (placed.position.x, placed.position.y)
            shape = sectioner(placed, z_level, center, placed.operation)
        except MissingDimensionError as exc:
            warnings.warn(f"{exc}; skipped", UserWarning, stacklevel=2)
            continue
        if shape is None:
            continue
        shapes.append((el.id, shape))
        bbox = shape.bounds.union(bbox)

    return ZLevelSlice(z_level=z_level, shapes=tuple(shapes), bounding_box=bbox)


def slice_at_heights(
    elements: Sequence[Primitive],
    heights: Sequence[float],
) -> list[ZLevelSlice]:
    """Slice *elements* at each Z value in *heights*, preserving order."""
    return [slice_elements(elements, z) for z in heights]


def elements_z_range(elements: Sequence[Primitive]) -> Optional[tuple[float, float]]:
    """Combined (z_min, z_max) of every sliceable primitive, or None."""
    lows: list[float] = []
    highs: list[float] = []
    for placed in iter_placed(elements):
        if placed.element.type not in SUPPORTED_TYPES:
            continue
        try:
            lo, hi = z_range(placed)
        except MissingDimensionError:
            continue
        lows.append(lo)
        highs.append(hi)
    if not lows:
        return None
    return min(lows), max(highs)


def calculate_z_levels(
    elements: Sequence[Primitive],
    depth: Optional[float] = None,
    stepdown: float = 1.0,
    stock_bottom: Optional[float] = None,
) -> list[float]:
    """Depth-pass Z levels for *elements*, top surface first.

    Levels start at the combined top Z and step down by *stepdown* until
    ``top - depth`` (whole part height when *depth* is None), never going
    below *stock_bottom* (default: bottom of the geometry).  The target level
    is always the last entry, even after a partial step.

    Returns an empty list for a forest with nothing to slice, or when
    *stock_bottom* is at or above the top of the geometry.
    """
    if stepdown <= 0:
        raise ValueError("stepdown must be positive")
    extent = elements_z_range(elements)
    if extent is None:
        return []
    bottom, top = extent
    if stock_bottom is not None:
        if stock_bottom >= top:
            return []
        bottom = stock_bottom
    target = bottom if depth is None else max(bottom, top - depth)
    target = min(top, target)

    levels: list[float] = []
    z = top
    while z > target + 1e-9:
        levels.append(round(z, 10))
        z -= stepdown
    levels.append(round(target, 10))
    return levels
