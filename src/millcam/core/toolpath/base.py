"""Core toolpath data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterable, Optional, Union

from ..geometry.shapes import Arc, ArcDirection, Plane, Point2D
from ..geometry.vector import Point3D, distance


class MoveType(Enum):
    """Type of CNC motion."""
    RAPID = "rapid"          # G0, no cutting, full speed
    LINEAR = "linear"        # G1, cutting feed
    CIRCULAR = "circular"    # G2 / G3


@dataclass(frozen=True)
class RapidMove:
    start: Point3D
    end: Point3D
    move_type: ClassVar[MoveType] = MoveType.RAPID

    def length(self) -> float:
        return distance(self.start, self.end)


@dataclass(frozen=True)
class LinearMove:
    start: Point3D
    end: Point3D
    feedrate: float
    move_type: ClassVar[MoveType] = MoveType.LINEAR

    def length(self) -> float:
        return distance(self.start, self.end)


@dataclass(frozen=True)
class CircularMove:
    """XY arc; start == end describes a full circle."""
    start: Point3D
    end: Point3D
    center: Point2D
    radius: float
    clockwise: bool
    feedrate: float
    move_type: ClassVar[MoveType] = MoveType.CIRCULAR

    def as_arc(self) -> Arc:
        return Arc(
            center=self.center,
            start=self.start,
            end=self.end,
            radius=self.radius,
            direction=ArcDirection.CW if self.clockwise else ArcDirection.CCW,
            plane=Plane.XY,
        )

    def length(self) -> float:
        return self.as_arc().length()


ToolpathSegment = Union[RapidMove, LinearMove, CircularMove]


@dataclass
class Toolpath:
    """An ordered, connected run of motion segments."""
    segments: list[ToolpathSegment] = field(default_factory=list)
    tool_number: int = 1
    operation_name: str = ""

    def add_segment(self, seg: ToolpathSegment) -> None:
        self.segments.append(seg)

    def extend(self, segs: Iterable[ToolpathSegment]) -> None:
        self.segments.extend(segs)

    @property
    def is_empty(self) -> bool:
        return len(self.segments) == 0

    @property
    def start(self) -> Optional[Point3D]:
        return self.segments[0].start if self.segments else None

    @property
    def end(self) -> Optional[Point3D]:
        return self.segments[-1].end if self.segments else None

    def is_continuous(self, tol: float = 1e-6) -> bool:
        """True when every segment starts where the previous one ended."""
        return all(
            distance(a.end, b.start) <= tol
            for a, b in zip(self.segments, self.segments[1:])
        )

    def cutting_length(self) -> float:
        return sum(s.length() for s in self.segments if s.move_type is not MoveType.RAPID)

    def rapid_length(self) -> float:
        return sum(s.length() for s in self.segments if s.move_type is MoveType.RAPID)
