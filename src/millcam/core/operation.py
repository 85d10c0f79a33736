"""Declarative machining operations consumed by the G-code emitter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .geometry.shapes import Arc, ArcDirection, Plane
from .geometry.vector import Point3D
from .tool import Tool

GeometryItem = Union[Point3D, Arc]


class OperationType(Enum):
    DRILL = "drill"
    PECK_DRILL = "peck_drill"
    CHIP_BREAK_DRILL = "chip_break_drill"
    TAP = "tap"
    BORE = "bore"
    PROFILE = "profile"
    CONTOUR = "contour"
    FACING = "facing"

    @property
    def is_hole_cycle(self) -> bool:
        return self in _HOLE_CYCLES


_HOLE_CYCLES = {
    OperationType.DRILL, OperationType.PECK_DRILL, OperationType.CHIP_BREAK_DRILL,
    OperationType.TAP, OperationType.BORE,
}


class Coolant(Enum):
    OFF = "off"
    FLOOD = "flood"   # M8
    MIST = "mist"     # M7


class Compensation(Enum):
    """Cutter radius compensation side."""
    LEFT = "left"     # G41
    RIGHT = "right"   # G42

    @property
    def gcode(self) -> str:
        return "G41" if self is Compensation.LEFT else "G42"


class ApproachStrategy(Enum):
    DIRECT = "direct"
    RAMP = "ramp"
    HELIX = "helix"


class ExitStrategy(Enum):
    DIRECT = "direct"
    LOOP = "loop"      # feed back to the first point before retracting


@dataclass
class OperationParameters:
    """Feeds, speeds and cycle parameters of one operation."""

    feedrate: float = 500.0
    plunge_feedrate: float = 100.0
    spindle_speed: int = 3000
    coolant: Coolant = Coolant.FLOOD
    compensation: Optional[Compensation] = None
    approach: ApproachStrategy = ApproachStrategy.DIRECT
    exit: ExitStrategy = ExitStrategy.DIRECT
    retract_height: float = 5.0        # R plane for canned cycles
    peck_increment: Optional[float] = None
    dwell_time: Optional[float] = None  # seconds
    thread_pitch: Optional[float] = None
    rigid_tapping: bool = False
    use_canned_cycle: bool = True      # False: holes as plain G0 / G1 moves
    stepover: Optional[float] = None
    facing_width: Optional[float] = None

    @classmethod
    def from_dict(cls, d: dict) -> OperationParameters:
        d = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        for key, enum in (("coolant", Coolant), ("compensation", Compensation),
                          ("approach", ApproachStrategy), ("exit", ExitStrategy)):
            if d.get(key) is not None:
                d[key] = enum(d[key])
        return cls(**d)


@dataclass
class MachineOperation:
    """One operation: what to cut, with which tool, how deep.

    *depth* is measured down from the work surface (Z0 of the work offset);
    hole operations read their positions from *geometry* points, milling
    operations follow the points and arcs in order.
    """

    type: OperationType
    tool: Tool
    depth: float
    geometry: tuple[GeometryItem, ...] = field(default_factory=tuple)
    stepdown: Optional[float] = None
    parameters: OperationParameters = field(default_factory=OperationParameters)
    name: str = ""

    @property
    def bottom_z(self) -> float:
        return -self.depth

    @property
    def points(self) -> list[Point3D]:
        """Geometry as plain positions (arcs contribute their end point)."""
        return [g.end if isinstance(g, Arc) else g for g in self.geometry]

    @classmethod
    def from_dict(cls, d: dict) -> MachineOperation:
        return cls(
            type=OperationType(d["type"]),
            tool=Tool.from_dict(d["tool"]),
            depth=float(d["depth"]),
            geometry=tuple(geometry_from_dict(g) for g in d.get("geometry", [])),
            stepdown=d.get("stepdown"),
            parameters=OperationParameters.from_dict(d.get("parameters", {})),
            name=d.get("name", ""),
        )


def _point(v) -> Point3D:
    if isinstance(v, dict):
        return Point3D(float(v.get("x", 0.0)), float(v.get("y", 0.0)), float(v.get("z", 0.0)))
    return Point3D(*(float(c) for c in v))


def geometry_from_dict(d) -> GeometryItem:
    """A point (``{x, y, z}`` or a triple) or an arc (has ``radius``)."""
    if isinstance(d, dict) and "radius" in d:
        center = d["center"]
        if isinstance(center, dict):
            center = (center["x"], center["y"])
        return Arc(
            center=(float(center[0]), float(center[1])),
            start=_point(d["start"]),
            end=_point(d["end"]),
            radius=float(d["radius"]),
            direction=ArcDirection(d.get("direction", "CCW").upper()),
            plane=Plane(d.get("plane", "XY").upper()),
        )
    return _point(d)
