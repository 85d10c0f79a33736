"""G-code parser: program text → structured toolpath model.

The parser replays the program with explicit modal state (position, feed,
plane, motion mode, distance mode, units, cycle) and records every point
the tool passes through, every arc, and one :class:`FixedCycleRecord` per
hole cut by a canned cycle.  It never raises on bad input: lines that
cannot be understood are logged at debug level and skipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from ..core.geometry.shapes import ARC_RADIUS_TOLERANCE, Arc, ArcDirection, Plane
from ..core.geometry.vector import Point3D
from ..core.units import Units
from .cycles import CANNED_CYCLES, CHIP_BREAK_RETRACT, expand_cycle, is_canned_cycle
from .gcode_writer import INTEGER_SCALE
from .lexer import Block, tokenize

logger = logging.getLogger(__name__)

# Lines holding these are machine-coordinate moves; their targets are not
# in work coordinates, so they are not replayed.
_MACHINE_COORD_CODES = (28.0, 30.0, 53.0)

_PLANES = {17.0: Plane.XY, 18.0: Plane.XZ, 19.0: Plane.YZ}

# Centre-offset words for each plane
_OFFSET_WORDS = {Plane.XY: ("I", "J"), Plane.XZ: ("I", "K"), Plane.YZ: ("J", "K")}


@dataclass(frozen=True)
class PathPoint:
    """A point the tool reaches, and whether it got there at rapid."""
    position: Point3D
    rapid: bool = False
    line_number: int = 0


@dataclass(frozen=True)
class FixedCycleRecord:
    """One hole cut by a canned cycle."""
    type: str
    start_point: Point3D
    depth: float
    retract_height: float
    bottom_z: float
    feedrate: Optional[float] = None
    peck_increment: Optional[float] = None
    dwell_time: Optional[float] = None
    points: tuple[Point3D, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Bounds3D:
    min: Point3D
    max: Point3D

    @property
    def size(self) -> Point3D:
        return Point3D(self.max.x - self.min.x, self.max.y - self.min.y, self.max.z - self.min.z)


class _BoundsAccumulator:
    def __init__(self) -> None:
        self.lo: Optional[list[float]] = None
        self.hi: Optional[list[float]] = None

    def add(self, p: Point3D) -> None:
        if self.lo is None:
            self.lo, self.hi = list(p), list(p)
            return
        for k in range(3):
            self.lo[k] = min(self.lo[k], p[k])
            self.hi[k] = max(self.hi[k], p[k])

    def result(self) -> Optional[Bounds3D]:
        if self.lo is None:
            return None
        return Bounds3D(Point3D(*self.lo), Point3D(*self.hi))


@dataclass(frozen=True)
class ParsedProgram:
    points: tuple[PathPoint, ...] = ()
    arcs: tuple[Arc, ...] = ()
    fixed_cycles: tuple[FixedCycleRecord, ...] = ()
    bounds: Optional[Bounds3D] = None
    units: Units = Units.MM

    @property
    def positions(self) -> list[Point3D]:
        return [p.position for p in self.points]


@dataclass
class _ModalState:
    position: Point3D = Point3D(0.0, 0.0, 0.0)
    feedrate: Optional[float] = None
    plane: Plane = Plane.XY
    motion: Optional[int] = None
    absolute: bool = True
    units: Units = Units.MM
    return_to_initial: bool = True      # G98 (G99 -> R plane)
    cycle: Optional[int] = None
    cycle_r: Optional[float] = None
    cycle_z: Optional[float] = None
    cycle_q: Optional[float] = None
    cycle_p: Optional[float] = None
    initial_z: float = 0.0


class GCodeParser:
    """Replays G-code text into a :class:`ParsedProgram`.

    Parameters
    ----------
    integer_coordinates:
        Coordinate words are thousandths (``X12500`` = 12.5), matching the
        emitter's integer coordinate format.
    chip_break_retract:
        Back-off distance used to draw G73 pecks.
    """

    def __init__(self, integer_coordinates: bool = False,
                 chip_break_retract: float = CHIP_BREAK_RETRACT):
        self.scale = 1.0 / INTEGER_SCALE if integer_coordinates else 1.0
        self.chip_break_retract = chip_break_retract

    def parse(self, text: str) -> ParsedProgram:
        state = _ModalState()
        points: list[PathPoint] = []
        arcs: list[Arc] = []
        cycles: list[FixedCycleRecord] = []
        bounds = _BoundsAccumulator()

        def add_point(p: Point3D, rapid: bool, line: int) -> None:
            points.append(PathPoint(p, rapid, line))
            bounds.add(p)

        for block in tokenize(text):
            if block.is_empty:
                continue
            g_codes = block.codes("G")
            if any(c in _MACHINE_COORD_CODES for c in g_codes):
                logger.debug("line %d: machine-coordinate move skipped", block.line_number)
                continue

            started_cycle = self._apply_modal(block, g_codes, state)
            f = block.get("F")
            if f is not None:
                state.feedrate = f
            target = self._target(block, state)
            has_xy = block.has("X") or block.has("Y")

            if state.cycle is not None and (started_cycle or not self._has_motion_code(g_codes)):
                self._update_cycle(block, state, started_cycle)
                if has_xy:
                    hole = self._hole(block, state, target)
                    if hole is not None:
                        record, rapids = hole
                        cycles.append(record)
                        for p, is_rapid in zip(record.points, rapids):
                            add_point(p, is_rapid, block.line_number)
                        state.position = record.points[-1]
                continue

            if target == state.position and not (block.has("R") or block.has("I")
                                                 or block.has("J") or block.has("K")):
                continue
            if state.motion in (0, 1):
                state.position = target
                add_point(target, state.motion == 0, block.line_number)
            elif state.motion in (2, 3):
                arc = self._arc(block, state, target)
                if arc is None:
                    logger.debug("line %d: malformed arc skipped", block.line_number)
                    continue
                arcs.append(arc)
                state.position = target
                add_point(target, False, block.line_number)
            else:
                # No motion mode (after G80): the axes still move
                state.position = target

        return ParsedProgram(
            points=tuple(points),
            arcs=tuple(arcs),
            fixed_cycles=tuple(cycles),
            bounds=bounds.result(),
            units=state.units,
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _has_motion_code(g_codes: list[float]) -> bool:
        return any(c in (0.0, 1.0, 2.0, 3.0) for c in g_codes)

    def _apply_modal(self, block: Block, g_codes: list[float], state: _ModalState) -> bool:
        """Apply modal G words; True when the line starts a canned cycle."""
        started = False
        for code in g_codes:
            if code in _PLANES:
                state.plane = _PLANES[code]
            elif code in (20.0, 21.0, 70.0, 71.0):
                state.units = Units.from_gcode(int(code))
            elif code == 90.0:
                state.absolute = True
            elif code == 91.0:
                state.absolute = False
            elif code == 98.0:
                state.return_to_initial = True
            elif code == 99.0:
                state.return_to_initial = False
            elif code == 80.0:
                state.cycle = None
                state.motion = None
                state.cycle_r = state.cycle_z = state.cycle_q = state.cycle_p = None
            elif code in (0.0, 1.0, 2.0, 3.0):
                state.motion = int(code)
                state.cycle = None
            elif is_canned_cycle(code):
                state.cycle = int(code)
                state.motion = None
                state.initial_z = state.position.z
                started = True
        return started

    def _axis(self, block: Block, letter: str) -> Optional[float]:
        v = block.get(letter)
        return None if v is None else v * self.scale

    def _target(self, block: Block, state: _ModalState) -> Point3D:
        cur = state.position
        coords = []
        for letter, current in zip("XYZ", cur):
            v = self._axis(block, letter)
            if v is None:
                coords.append(current)
            elif state.absolute:
                coords.append(v)
            else:
                coords.append(current + v)
        return Point3D(*coords)

    def _update_cycle(self, block: Block, state: _ModalState, started: bool) -> None:
        r = self._axis(block, "R")
        z = self._axis(block, "Z")
        if r is not None:
            state.cycle_r = r if state.absolute else state.initial_z + r
        if z is not None:
            base = state.cycle_r if state.cycle_r is not None else state.initial_z
            state.cycle_z = z if state.absolute else base + z
        q = self._axis(block, "Q")
        if q is not None:
            state.cycle_q = abs(q)
        p = block.get("P")
        if p is not None:
            state.cycle_p = p
        elif started:
            state.cycle_p = None

    def _hole(
        self, block: Block, state: _ModalState, target: Point3D,
    ) -> Optional[tuple[FixedCycleRecord, list[bool]]]:
        """The record for one hole, plus the rapid flag of each of its points."""
        code = state.cycle
        if state.cycle_r is None or state.cycle_z is None:
            logger.debug("line %d: G%d hole without R/Z skipped", block.line_number, code)
            return None
        spec = CANNED_CYCLES[code]
        q = state.cycle_q if spec.pecking else None
        moves = expand_cycle(
            code, target.x, target.y, state.initial_z, state.cycle_r, state.cycle_z,
            q=q, return_to_initial=state.return_to_initial,
            chip_break_retract=self.chip_break_retract,
            current_z=state.position.z,
        )
        record = FixedCycleRecord(
            type=spec.gcode,
            start_point=Point3D(target.x, target.y, state.initial_z),
            depth=-state.cycle_z,
            retract_height=state.cycle_r,
            bottom_z=state.cycle_z,
            feedrate=state.feedrate,
            peck_increment=q,
            dwell_time=(state.cycle_p / 1000.0) if spec.dwell and state.cycle_p else None,
            points=tuple(m.point for m in moves),
        )
        return record, [m.rapid for m in moves]

    def _arc(self, block: Block, state: _ModalState, target: Point3D) -> Optional[Arc]:
        start = state.position
        plane = state.plane
        a, b = plane.axes
        su, sv = start[a], start[b]
        eu, ev = target[a], target[b]
        direction = ArcDirection.CW if state.motion == 2 else ArcDirection.CCW

        r_word = self._axis(block, "R")
        if r_word is not None:
            du, dv = eu - su, ev - sv
            chord = math.hypot(du, dv)
            if chord <= 1e-12 or abs(r_word) < chord / 2 - ARC_RADIUS_TOLERANCE:
                return None
            h = math.sqrt(max(0.0, r_word * r_word - (chord / 2) ** 2))
            # G3 with R>0 bends left of the chord; G2 or R<0 flips the side
            side = 1.0 if direction is ArcDirection.CCW else -1.0
            if r_word < 0:
                side = -side
            center = ((su + eu) / 2 + side * h * (-dv / chord),
                      (sv + ev) / 2 + side * h * (du / chord))
            radius = abs(r_word)
        else:
            u_word, v_word = _OFFSET_WORDS[plane]
            i = self._axis(block, u_word)
            j = self._axis(block, v_word)
            if i is None and j is None:
                return None
            center = (su + (i or 0.0), sv + (j or 0.0))
            radius = math.hypot(i or 0.0, j or 0.0)
            if radius <= 1e-12:
                return None

        arc = Arc(center=center, start=start, end=target, radius=radius,
                  direction=direction, plane=plane)
        return arc if arc.is_consistent() else None


def parse_gcode(text: str, integer_coordinates: bool = False) -> ParsedProgram:
    """Parse *text* into points, arcs, canned-cycle records and bounds."""
    return GCodeParser(integer_coordinates=integer_coordinates).parse(text)
