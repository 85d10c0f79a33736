"""Slice-based toolpath synthesis.

Turns the ordered cross-section shapes of each Z level into rapid, linear
and circular motion: one closed loop per shape, offset by the tool radius,
linked to the next loop either directly (short gaps) or over a partial
retract (long gaps).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ...config.settings import CutDirection, OffsetMode, ToolpathSettings
from ..geometry.offset import offset_contour
from ..geometry.shapes import EPSILON, Circle, CrossSectionShape, Point2D, signed_area
from ..geometry.vector import Point3D, distance_2d
from ..primitives import Primitive
from ..slicer import calculate_z_levels, slice_elements
from .base import CircularMove, LinearMove, RapidMove, Toolpath, ToolpathSegment
from .ordering import order_shapes, travel_distance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Loop:
    """A closed cutting loop, ready to be turned into segments."""
    entry_point: Point2D
    points: tuple[Point2D, ...] = ()
    center: Optional[Point2D] = None
    radius: float = 0.0
    clockwise: bool = False

    @property
    def is_circle(self) -> bool:
        return self.center is not None


def _offset_distance(settings: ToolpathSettings) -> float:
    if settings.offset is OffsetMode.OUTSIDE:
        return settings.tool_radius
    if settings.offset is OffsetMode.INSIDE:
        return -settings.tool_radius
    return 0.0


def build_loop(shape: CrossSectionShape, settings: ToolpathSettings) -> Optional[_Loop]:
    """Offset *shape* for the tool and orient it for the cut direction.

    Returns None for shapes that are degenerate before or after offsetting.
    """
    if shape.is_degenerate:
        return None
    d = _offset_distance(settings)
    clockwise = settings.direction is CutDirection.CONVENTIONAL

    if isinstance(shape, Circle):
        radius = shape.radius + d
        if radius <= EPSILON:
            return None
        entry = (shape.center[0] + radius, shape.center[1])
        return _Loop(entry_point=entry, center=shape.center, radius=radius, clockwise=clockwise)

    # An inward offset wider than the shape leaves no room for the tool
    if d < 0 and shape.as_shapely().buffer(d).is_empty:
        return None
    ring = shape.boundary_points()
    if signed_area(ring) < 0:
        ring = ring[::-1]
    if d:
        offset = offset_contour(ring, d)
        if offset is None or signed_area(offset) <= EPSILON:
            return None
        ring = offset
    if clockwise:
        ring = ring[::-1]
    return _Loop(entry_point=ring[0], points=tuple(ring))


def _loop_segments(loop: _Loop, z: float, feedrate: float) -> list[ToolpathSegment]:
    if loop.is_circle:
        p = Point3D(loop.entry_point[0], loop.entry_point[1], z)
        return [CircularMove(p, p, loop.center, loop.radius, loop.clockwise, feedrate)]
    segs: list[ToolpathSegment] = []
    for a, b in zip(loop.points, loop.points[1:]):
        if distance_2d(a, b) <= EPSILON:
            continue
        segs.append(LinearMove(Point3D(a[0], a[1], z), Point3D(b[0], b[1], z), feedrate))
    return segs


def synthesize(
    ordered_shapes: Sequence[CrossSectionShape],
    z_level: float,
    settings: ToolpathSettings,
    start: Optional[Point3D] = None,
) -> list[ToolpathSegment]:
    """Motion segments cutting *ordered_shapes* at *z_level*, in order.

    The tool comes in with a rapid from *start* (default: the origin at safe
    height) to safe height above the first entry point and plunges at the
    plunge rate.  Between loops a gap longer than ``1.5 x tool diameter`` is
    crossed at half the safe height; shorter gaps are cut straight at the
    cutting feedrate.  The result ends with a retract to safe height.
    """
    safe_z = z_level + settings.safe_height
    link_z = z_level + settings.safe_height / 2
    segs: list[ToolpathSegment] = []
    pos: Optional[Point3D] = None

    for shape in ordered_shapes:
        loop = build_loop(shape, settings)
        if loop is None:
            logger.debug("Skipping degenerate %s at Z%.3f", shape.kind, z_level)
            continue
        entry = Point3D(loop.entry_point[0], loop.entry_point[1], z_level)

        if pos is None:
            origin = start if start is not None else Point3D(0.0, 0.0, safe_z)
            above = entry.with_z(safe_z)
            segs.append(RapidMove(origin, above))
            segs.append(LinearMove(above, entry, settings.plungerate))
        else:
            gap = distance_2d(pos, entry)
            if gap > settings.link_distance:
                lifted = pos.with_z(link_z)
                over = entry.with_z(link_z)
                segs.append(RapidMove(pos, lifted))
                segs.append(RapidMove(lifted, over))
                segs.append(LinearMove(over, entry, settings.plungerate))
            elif gap > EPSILON:
                segs.append(LinearMove(pos, entry, settings.feedrate))

        loop_segs = _loop_segments(loop, z_level, settings.feedrate)
        segs.extend(loop_segs)
        pos = loop_segs[-1].end if loop_segs else entry

    if pos is not None:
        segs.append(RapidMove(pos, pos.with_z(safe_z)))
    return segs


def generate_toolpath(
    elements: Sequence[Primitive],
    settings: ToolpathSettings,
    depth: Optional[float] = None,
    start: Optional[Point3D] = None,
) -> Toolpath:
    """Slice *elements* at every depth pass and synthesize one toolpath.

    *depth* overrides ``settings.depth``; both None means the whole part.
    """
    levels = calculate_z_levels(
        elements,
        depth=depth if depth is not None else settings.depth,
        stepdown=settings.stepdown,
    )
    toolpath = Toolpath(operation_name="slice")
    pos = start
    for z in levels:
        section = slice_elements(elements, z)
        if section.is_empty:
            continue
        cursor = None if pos is None else (pos.x, pos.y)
        ordered = order_shapes(section.shape_list(), start=cursor)
        segs = synthesize(ordered, z, settings, start=pos)
        if not segs:
            continue
        logger.debug(
            "Z%.3f: %d shapes, %d segments, %.1f travel",
            z, len(ordered), len(segs), travel_distance(ordered, cursor),
        )
        toolpath.extend(segs)
        pos = toolpath.end
    return toolpath
