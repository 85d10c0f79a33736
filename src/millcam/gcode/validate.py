"""G-code validation and sanity checks.

Re-simulates program text against machine limits before cutting: travel
envelope, feed and spindle ranges, and a crash heuristic for rapids that
dive deep into the part.  Also accumulates run statistics (distances,
estimated time, tool changes, deepest Z).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from ..core.geometry.shapes import Arc, ArcDirection, Plane
from ..core.geometry.vector import Point3D, distance
from ..core.units import Units
from .cycles import CANNED_CYCLES, expand_cycle, is_canned_cycle
from .lexer import tokenize

logger = logging.getLogger(__name__)

_PLANES = {17.0: Plane.XY, 18.0: Plane.XZ, 19.0: Plane.YZ}

# Centre-offset words for each plane
_OFFSET_WORDS = {Plane.XY: ("I", "J"), Plane.XZ: ("I", "K"), Plane.YZ: ("J", "K")}


@dataclass
class MachineLimits:
    """Axis travel and rate limits, in millimetres.

    ``None`` travel limits are unchecked.  Inch programs are converted before
    they are compared against these values.
    """

    x_min: Optional[float] = None
    x_max: Optional[float] = None
    y_min: Optional[float] = None
    y_max: Optional[float] = None
    z_min: Optional[float] = None
    z_max: Optional[float] = None
    max_feed: float = 10000.0            # mm / min
    max_spindle_speed: int = 24000
    min_spindle_speed: int = 0
    rapid_rate: float = 10000.0          # assumed G0 speed for time estimates
    rapid_plunge_threshold: float = 10.0  # rapids below -this from above 0 warn


@dataclass
class ValidationIssue:
    """A single validation problem found in the program."""

    severity: str  # "error" or "warning"
    message: str
    line_number: int = 0

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message}" if self.line_number else self.message


@dataclass
class ProgramStatistics:
    rapid_distance: float = 0.0
    cutting_distance: float = 0.0
    estimated_time: float = 0.0   # seconds
    tool_changes: int = 0
    max_depth: float = 0.0        # lowest Z reached


@dataclass
class ProgramValidationResult:
    """Result of validating one program."""

    issues: list[ValidationIssue] = field(default_factory=list)
    statistics: ProgramStatistics = field(default_factory=ProgramStatistics)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class _Simulator:
    """Walks the program once, tracking position, feed and spindle."""

    def __init__(self, limits: MachineLimits):
        self.limits = limits
        self.result = ProgramValidationResult()
        self.pos = Point3D(0.0, 0.0, 0.0)
        self.feed: Optional[float] = None
        self.spindle: float = 0.0
        self.motion: Optional[int] = None
        self.absolute = True
        self.plane = Plane.XY
        self.units = Units.MM
        self.cycle: Optional[int] = None
        self.cycle_r: Optional[float] = None
        self.cycle_z: Optional[float] = None
        self.cycle_q: Optional[float] = None
        self.return_to_initial = True
        self.initial_z = 0.0
        self.min_z: Optional[float] = None
        self.ended = False
        self.line = 0

    def issue(self, severity: str, message: str) -> None:
        self.result.issues.append(ValidationIssue(severity, message, self.line))

    # -- checks ---------------------------------------------------------

    def to_mm(self, value: float) -> float:
        return self.units.convert(value, Units.MM)

    def check_point(self, p: Point3D) -> None:
        lim = self.limits
        for axis, value, lo, hi in (
            ("X", p.x, lim.x_min, lim.x_max),
            ("Y", p.y, lim.y_min, lim.y_max),
            ("Z", p.z, lim.z_min, lim.z_max),
        ):
            mm = self.to_mm(value)
            if (lo is not None and mm < lo) or (hi is not None and mm > hi):
                self.issue("error", f"{axis}={value:.4f} outside travel [{lo}, {hi}]")
        if self.min_z is None or p.z < self.min_z:
            self.min_z = p.z

    def move(self, target: Point3D, rapid: bool, length: Optional[float] = None) -> None:
        stats = self.result.statistics
        dist = distance(self.pos, target) if length is None else length
        if rapid:
            if (self.pos.z > 0 and target.z < self.pos.z
                    and self.to_mm(target.z) < -self.limits.rapid_plunge_threshold):
                self.issue("warning",
                           f"Rapid plunge from Z{self.pos.z:.3f} to Z{target.z:.3f} "
                           "(possible crash)")
            stats.rapid_distance += dist
            stats.estimated_time += self.to_mm(dist) / self.limits.rapid_rate * 60.0
        else:
            stats.cutting_distance += dist
            if self.feed:
                stats.estimated_time += dist / self.feed * 60.0
            elif dist > 0:
                self.issue("warning", "Cutting move with no feedrate set")
        self.check_point(target)
        self.pos = target

    # -- per block --------------------------------------------------------

    def run(self, text: str) -> ProgramValidationResult:
        for block in tokenize(text):
            self.line = block.line_number
            if block.is_empty:
                continue
            g_codes = block.codes("G")
            if any(c in (28.0, 30.0, 53.0) for c in g_codes):
                continue

            started = False
            for code in g_codes:
                if code in _PLANES:
                    self.plane = _PLANES[code]
                elif code in (20.0, 21.0, 70.0, 71.0):
                    self.units = Units.from_gcode(int(code))
                elif code == 90.0:
                    self.absolute = True
                elif code == 91.0:
                    self.absolute = False
                elif code == 98.0:
                    self.return_to_initial = True
                elif code == 99.0:
                    self.return_to_initial = False
                elif code == 80.0:
                    self.cycle = self.motion = None
                elif code in (0.0, 1.0, 2.0, 3.0):
                    self.motion, self.cycle = int(code), None
                elif is_canned_cycle(code):
                    self.cycle, self.motion = int(code), None
                    self.initial_z = self.pos.z
                    started = True

            self.apply_words(block)
            target = self.target(block)

            if self.cycle is not None and (started or not any(c in (0.0, 1.0, 2.0, 3.0) for c in g_codes)):
                r, z, q = block.get("R"), block.get("Z"), block.get("Q")
                if r is not None:
                    self.cycle_r = r if self.absolute else self.initial_z + r
                if z is not None:
                    base = self.cycle_r if self.cycle_r is not None else self.initial_z
                    self.cycle_z = z if self.absolute else base + z
                if q is not None:
                    self.cycle_q = abs(q)
                if (block.has("X") or block.has("Y")) and self.cycle_r is not None \
                        and self.cycle_z is not None:
                    self.hole(target.x, target.y)
                continue

            if self.motion in (0, 1) and target != self.pos:
                self.move(target, rapid=self.motion == 0)
            elif self.motion in (2, 3) and (target != self.pos or block.has("I")
                                            or block.has("J") or block.has("K")):
                self.move(target, rapid=False, length=self.arc_length(block, target))

        stats = self.result.statistics
        stats.max_depth = self.min_z if self.min_z is not None else 0.0
        if not self.ended:
            self.issue("warning", "Program has no end (M30 / M2)")
        return self.result

    def apply_words(self, block) -> None:
        f = block.get("F")
        if f is not None:
            self.feed = f
            if self.to_mm(f) > self.limits.max_feed:
                self.issue("warning", f"Feed {f:.1f} exceeds machine max ({self.limits.max_feed:.1f})")
        s = block.get("S")
        if s is not None:
            self.spindle = s
            if s > self.limits.max_spindle_speed:
                self.issue("warning", f"Spindle {s:.0f} RPM above machine maximum "
                                      f"({self.limits.max_spindle_speed})")
        for m in block.codes("M"):
            if m == 6.0:
                self.result.statistics.tool_changes += 1
            elif m in (3.0, 4.0) and 0 < self.spindle < self.limits.min_spindle_speed:
                self.issue("error", f"Spindle {self.spindle:.0f} RPM below machine minimum "
                                    f"({self.limits.min_spindle_speed})")
            elif m in (2.0, 30.0):
                self.ended = True

    def target(self, block) -> Point3D:
        coords = []
        for letter, current in zip("XYZ", self.pos):
            v = block.get(letter)
            if v is None:
                coords.append(current)
            else:
                coords.append(v if self.absolute else current + v)
        return Point3D(*coords)

    def arc_length(self, block, target: Point3D) -> float:
        """Path length of a G2 / G3 move in the active plane.

        The move along the plane's normal axis (a helix) is included.
        """
        a, b = self.plane.axes
        normal = 3 - a - b
        rise = target[normal] - self.pos[normal]
        r = block.get("R")
        if r is not None:
            chord = math.hypot(target[a] - self.pos[a], target[b] - self.pos[b])
            if chord == 0 or abs(r) < chord / 2:
                return distance(self.pos, target)
            sweep = 2 * math.asin(min(1.0, chord / (2 * abs(r))))
            if r < 0:
                sweep = 2 * math.pi - sweep
            return math.hypot(abs(r) * sweep, rise)
        u_word, v_word = _OFFSET_WORDS[self.plane]
        i = block.get(u_word) or 0.0
        j = block.get(v_word) or 0.0
        arc = Arc(
            center=(self.pos[a] + i, self.pos[b] + j),
            start=self.pos,
            end=target,
            radius=math.hypot(i, j),
            direction=ArcDirection.CW if self.motion == 2 else ArcDirection.CCW,
            plane=self.plane,
        )
        return arc.length()

    def hole(self, x: float, y: float) -> None:
        spec = CANNED_CYCLES[self.cycle]
        moves = expand_cycle(
            self.cycle, x, y, self.initial_z, self.cycle_r, self.cycle_z,
            q=self.cycle_q if spec.pecking else None,
            return_to_initial=self.return_to_initial,
            current_z=self.pos.z,
        )
        for m in moves:
            self.move(m.point, rapid=m.rapid)


def validate_program(gcode: str, limits: Optional[MachineLimits] = None) -> ProgramValidationResult:
    """Check *gcode* against *limits* and estimate its run time.

    Checks performed:
    - All XYZ coordinates within machine travel (errors)
    - Spindle started below the machine minimum (error)
    - Feed rates and spindle speeds above machine maximum (warnings)
    - Rapid moves plunging deep into the part (warning)
    - Program end present (warning)

    Only errors make the program invalid.
    """
    result = _Simulator(limits or MachineLimits()).run(gcode)
    logger.debug("Validated program: %d errors, %d warnings",
                 len(result.errors), len(result.warnings))
    return result
