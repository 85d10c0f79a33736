"""G-code emitter: MachineProgram → program text for one control dialect.

Output structure (Fanuc)::

    %
    O1000 (BRACKET)
    G21 / G90 / G17 / G40 G49 G80 / G94 / G54
    [G05.1 Q1, vendor extension lines]
    per operation:
        [M01]  tool change (retract, Tn M6, G43 Hn, Sn M3, coolant)
        canned cycle / stepdown passes / facing passes
    G0 Z<clearance>  M5  M9  [G05.1 Q0]  M30
    %

The generic dialect drops the ``%`` / O-number bracket and the Fanuc-only
words (M29, G05.1).  The Heidenhain dialect wraps the program in
``BEGIN PGM`` / ``END PGM``, selects units with G70 / G71, calls tools with
``TOOL CALL`` and writes holes as plain G0 / G1 moves.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ..core.geometry.shapes import EPSILON, Arc
from ..core.geometry.vector import Point3D
from ..core.operation import (
    ApproachStrategy,
    Coolant,
    ExitStrategy,
    MachineOperation,
    OperationParameters,
    OperationType,
)
from ..core.program import Controller, MachineProgram
from ..core.tool import Tool
from ..core.toolpath.base import CircularMove, LinearMove, RapidMove, Toolpath
from .cycles import (
    CANCEL_CYCLE,
    CANNED_CYCLES,
    cycle_block,
    cycle_code,
    dwell_word,
    expand_cycle,
    hole_block,
    peck_increment,
    tapping_feed,
)
from .gcode_writer import WordFormat, arc, comment, linear, rapid, with_comment
from .postprocess import postprocess

logger = logging.getLogger(__name__)

# Ramp entry length as a multiple of the depth it descends
RAMP_LENGTH_FACTOR = 5.0
# Helix entry radius as a fraction of the tool diameter
HELIX_RADIUS_FACTOR = 0.4
# Default facing step-over as a fraction of the tool diameter
FACING_STEPOVER_FACTOR = 0.4


class GCodeEmitter:
    """Serialises one :class:`MachineProgram`.

    The emitter holds no state between :meth:`emit` calls; each call builds
    a fresh line list and runs the whole-program post passes over it.
    """

    def __init__(self, program: MachineProgram):
        self.program = program
        self.wf = WordFormat(program.coordinate_format, program.decimals)

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def emit(self) -> str:
        prog = self.program
        logger.info("Emitting %s program %s (%d operations)",
                    prog.controller.value, prog.name, len(prog.operations))
        lines = self._header()
        for index, op in enumerate(prog.operations):
            lines += self._operation(index, op)
        lines += self._footer()
        return "\n".join(postprocess(lines, prog)) + "\n"

    def emit_toolpath(
        self,
        toolpath: Toolpath,
        tool: Optional[Tool] = None,
        parameters: Optional[OperationParameters] = None,
    ) -> str:
        """Program text for synthesized motion segments."""
        lines = self._header()
        if tool is not None:
            lines += self._tool_change(tool, parameters or OperationParameters())
        lines += self._segments(toolpath)
        lines += self._footer()
        return "\n".join(postprocess(lines, self.program)) + "\n"

    # ------------------------------------------------------------------
    # Program bracket
    # ------------------------------------------------------------------

    def _c(self, line: str, text: str) -> str:
        return with_comment(line, text, self.program.include_comments)

    def _pgm_line(self, keyword: str) -> str:
        """``BEGIN PGM BRACKET MM`` / ``END PGM BRACKET MM``."""
        prog = self.program
        name = "_".join(prog.name.upper().split()) or "PROGRAM"
        return f"{keyword} PGM {name} {prog.units.value.upper()}"

    def _header(self) -> list[str]:
        prog = self.program
        ctl = prog.controller
        lines: list[str] = []
        if ctl is Controller.HEIDENHAIN:
            lines.append(self._pgm_line("BEGIN"))
        elif ctl is Controller.FANUC:
            lines.append("%")
            if prog.program_number is not None:
                lines.append(f"O{prog.program_number:04d} {comment(prog.name.upper())}")
        if prog.include_comments:
            if not (ctl is Controller.FANUC and prog.program_number is not None):
                lines.append(comment(prog.name.upper()))
            if prog.material:
                lines.append(comment(f"MATERIAL: {prog.material.upper()}"))

        lines.append(self._c(ctl.units_word(prog.units), prog.units.value.upper()))
        lines.append(self._c("G90", "ABSOLUTE"))
        lines.append(self._c("G17", "XY PLANE"))
        if ctl is Controller.HEIDENHAIN:
            lines.append(self._c("G40", "CANCEL COMP"))
        else:
            lines += [
                self._c("G40 G49 G80", "CANCEL COMP AND CYCLES"),
                self._c("G94", "FEED PER MINUTE"),
                self._c(prog.work_offset, "WORK OFFSET"),
            ]
        if prog.high_speed_mode and ctl.vendor_codes:
            lines.append(self._c("G05.1 Q1", "HIGH SPEED MODE ON"))
        lines += list(prog.extensions)
        return lines

    def _footer(self) -> list[str]:
        prog = self.program
        ctl = prog.controller
        lines = [self._c(rapid(z=prog.clearance_height, wf=self.wf), "RETRACT")]
        if prog.tool_change_position is not None:
            pos = prog.tool_change_position
            lines.append(rapid(x=pos.x, y=pos.y, wf=self.wf))
        lines += [self._c("M5", "SPINDLE STOP"), self._c("M9", "COOLANT OFF")]
        if prog.high_speed_mode and ctl.vendor_codes:
            lines.append(self._c("G05.1 Q0", "HIGH SPEED MODE OFF"))
        lines.append(self._c("M30", "PROGRAM END"))
        if ctl is Controller.FANUC:
            lines.append("%")
        elif ctl is Controller.HEIDENHAIN:
            lines.append(self._pgm_line("END"))
        return lines

    def _tool_change(self, tool: Tool, params: OperationParameters) -> list[str]:
        prog = self.program
        pos = prog.tool_change_position
        lines = [rapid(z=pos.z if pos is not None else prog.clearance_height, wf=self.wf)]
        if pos is not None:
            lines.append(rapid(x=pos.x, y=pos.y, wf=self.wf))
        label = tool.name or tool.tool_type.value.replace("_", " ")
        note = f"{label.upper()} D={tool.diameter:g}"
        rpm = params.spindle_speed
        if tool.max_rpm:
            rpm = min(rpm, tool.max_rpm)
        if prog.controller is Controller.HEIDENHAIN:
            # Tool length comes with the tool call
            lines.append(self._c(f"TOOL CALL {tool.number} Z S{rpm}", note))
            lines.append("M3")
        else:
            lines.append(self._c(f"T{tool.number} M6", note))
            lines.append(f"G43 H{tool.h_register}")
            lines.append(f"S{rpm} M3")
        if params.coolant is Coolant.FLOOD:
            lines.append("M8")
        elif params.coolant is Coolant.MIST:
            lines.append("M7")
        else:
            lines.append("M9")
        return lines

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _operation(self, index: int, op: MachineOperation) -> list[str]:
        prog = self.program
        logger.debug("Operation %d: %s with T%d", index + 1, op.type.value, op.tool.number)
        lines: list[str] = []
        if prog.include_comments:
            title = op.name or op.type.value.replace("_", " ")
            lines.append(comment(f"OPERATION {index + 1}: {title.upper()}"))
        if index > 0 and prog.optional_stop:
            lines.append("M01")
        lines += self._tool_change(op.tool, op.parameters)

        if op.type.is_hole_cycle:
            lines += self._hole_cycle(op)
        elif op.type in (OperationType.PROFILE, OperationType.CONTOUR):
            lines += self._profile(op)
        elif op.type is OperationType.FACING:
            lines += self._facing(op)
        return lines

    def _hole_cycle(self, op: MachineOperation) -> list[str]:
        holes = op.points
        if not holes:
            raise ValueError(f"{op.type.value} operation needs at least one hole position")
        p = op.parameters
        code = cycle_code(op)
        spec = CANNED_CYCLES[code]
        r = p.retract_height
        feed = p.feedrate
        if op.type is OperationType.TAP and p.thread_pitch:
            feed = tapping_feed(p.thread_pitch, p.spindle_speed)
        q = peck_increment(op) if spec.pecking else None
        dwell = p.dwell_time if spec.dwell else None

        if not (p.use_canned_cycle and self.program.controller.canned_cycles):
            return self._expanded_holes(op, code, r, feed, q, dwell)

        lines: list[str] = []
        if op.type is OperationType.TAP and p.rigid_tapping and self.program.controller.vendor_codes:
            lines.append(self._c(f"M29 S{p.spindle_speed}", "RIGID TAPPING"))
        first = holes[0]
        block = cycle_block(code, r, op.bottom_z, feed, x=first.x, y=first.y,
                            q=q, dwell=dwell, wf=self.wf)
        lines.append(self._c(block, spec.description.upper()))
        for pt in holes[1:]:
            lines.append(hole_block(pt.x, pt.y, self.wf))
        lines.append(self._c(CANCEL_CYCLE, "CANCEL CYCLE"))
        return lines

    def _expanded_holes(
        self,
        op: MachineOperation,
        code: int,
        r: float,
        feed: float,
        q: Optional[float],
        dwell: Optional[float],
    ) -> list[str]:
        """The holes of *op* as the rapid / feed moves cycle *code* would make.

        Each hole starts with a rapid over it at the current height and ends
        at the R plane.  Dwells become ``G4`` blocks; taps reverse the
        spindle at the bottom and restore it once out of the hole.
        """
        wf = self.wf
        bottom = op.bottom_z
        reverse = None
        if code == 84:
            reverse = ("M4", "M3")
        elif code == 74:
            reverse = ("M3", "M4")

        lines: list[str] = []
        for n, pt in enumerate(op.points, start=1):
            if self.program.include_comments:
                lines.append(comment(f"HOLE {n}"))
            lines.append(rapid(x=pt.x, y=pt.y, wf=wf))
            for move in expand_cycle(code, pt.x, pt.y, initial_z=r, r=r, z=bottom, q=q)[1:]:
                if move.rapid:
                    lines.append(rapid(z=move.point.z, wf=wf))
                    continue
                lines.append(linear(z=move.point.z, f=feed, wf=wf))
                if abs(move.point.z - bottom) <= EPSILON:
                    if dwell:
                        lines.append(self._c(dwell_word(dwell), "DWELL"))
                    if reverse is not None:
                        lines.append(self._c(reverse[0], "REVERSE OUT"))
            if reverse is not None:
                lines.append(reverse[1])
        return lines

    def _profile(self, op: MachineOperation) -> list[str]:
        if not op.geometry:
            raise ValueError(f"{op.type.value} operation needs geometry")
        p = op.parameters
        wf = self.wf
        first = op.geometry[0]
        start = first.start if isinstance(first, Arc) else first
        path = list(op.geometry if isinstance(first, Arc) else op.geometry[1:])
        closes = op.type is OperationType.CONTOUR or p.exit is ExitStrategy.LOOP

        depth = max(op.depth, 0.0)
        stepdown = op.stepdown if op.stepdown and op.stepdown > 0 else depth
        if stepdown > EPSILON:
            passes = max(1, math.ceil(depth / stepdown - 1e-9))
        else:
            logger.warning("%s operation with no depth: one pass at the surface",
                           op.type.value)
            passes = 1
        r = p.retract_height
        lines: list[str] = []

        if p.compensation is not None:
            lines.append(self._c(f"{p.compensation.gcode} D{op.tool.d_register}",
                                 "CUTTER COMPENSATION"))

        pass_top = 0.0
        for k in range(1, passes + 1):
            z = 0.0 - min(k * stepdown, depth)
            if self.program.include_comments:
                lines.append(comment(f"PASS {k}/{passes} Z{z:.3f}"))
            lines.append(rapid(x=start.x, y=start.y, wf=wf))
            lines.append(rapid(z=r, wf=wf))
            lines += self._approach(op, start, pass_top, z)

            pos = start
            for item in path:
                if isinstance(item, Arc):
                    i, j = item.center_offset()
                    lines.append(arc(item.clockwise, x=item.end.x, y=item.end.y,
                                     i=i, j=j, f=p.feedrate, wf=wf))
                    pos = item.end
                else:
                    lines.append(linear(x=item.x, y=item.y, f=p.feedrate, wf=wf))
                    pos = item
            if closes and math.hypot(pos.x - start.x, pos.y - start.y) > EPSILON:
                lines.append(self._c(linear(x=start.x, y=start.y, f=p.feedrate, wf=wf),
                                     "CLOSE LOOP"))
            lines.append(rapid(z=r, wf=wf))
            pass_top = z

        if p.compensation is not None:
            lines.append(self._c("G40", "CANCEL CUTTER COMPENSATION"))
        return lines

    def _approach(self, op: MachineOperation, start: Point3D, top: float, z: float) -> list[str]:
        """Entry moves from above *start* down to *z*."""
        p = op.parameters
        wf = self.wf
        if p.approach is ApproachStrategy.RAMP and top - z > EPSILON:
            length = RAMP_LENGTH_FACTOR * (top - z)
            return [
                linear(z=top, f=p.plunge_feedrate, wf=wf),
                self._c(linear(x=start.x + length, z=z, f=p.plunge_feedrate, wf=wf), "RAMP ENTRY"),
                linear(x=start.x, y=start.y, f=p.feedrate, wf=wf),
            ]
        if p.approach is ApproachStrategy.HELIX and op.tool.diameter > EPSILON:
            hr = HELIX_RADIUS_FACTOR * op.tool.diameter
            return [
                linear(z=top, f=p.plunge_feedrate, wf=wf),
                self._c(arc(False, x=start.x, y=start.y, z=z, i=-hr, j=0.0,
                            f=p.plunge_feedrate, wf=wf), "HELIX ENTRY"),
            ]
        return [linear(z=z, f=p.plunge_feedrate, wf=wf)]

    def _facing(self, op: MachineOperation) -> list[str]:
        pts = op.points
        if len(pts) < 2:
            raise ValueError("facing operation needs a start and an end point")
        p = op.parameters
        wf = self.wf
        start, end = pts[0], pts[1]
        dx, dy = end.x - start.x, end.y - start.y
        length = math.hypot(dx, dy)
        if length <= EPSILON:
            raise ValueError("facing start and end points coincide")
        perp = (-dy / length, dx / length)
        width = p.facing_width if p.facing_width and p.facing_width > 0 else length
        stepover = p.stepover if p.stepover and p.stepover > 0 else FACING_STEPOVER_FACTOR * op.tool.diameter
        if stepover > EPSILON:
            passes = max(1, math.ceil(width / stepover - 1e-9))
        else:
            logger.warning("facing with T%d has no step-over: one step across the width",
                           op.tool.number)
            passes = 1
        actual = width / passes
        z = op.bottom_z

        lines = [
            rapid(x=start.x, y=start.y, wf=wf),
            rapid(z=p.retract_height, wf=wf),
            linear(z=z, f=p.plunge_feedrate, wf=wf),
        ]
        for i in range(passes + 1):
            ox, oy = perp[0] * i * actual, perp[1] * i * actual
            a = (start.x + ox, start.y + oy)
            b = (end.x + ox, end.y + oy)
            if i % 2:
                a, b = b, a
            if i > 0:
                lines.append(linear(x=a[0], y=a[1], f=p.feedrate, wf=wf))
            lines.append(self._c(linear(x=b[0], y=b[1], f=p.feedrate, wf=wf),
                                 f"FACE PASS {i + 1}"))
        lines.append(rapid(z=p.retract_height, wf=wf))
        return lines

    # ------------------------------------------------------------------
    # Synthesized toolpaths
    # ------------------------------------------------------------------

    def _segments(self, toolpath: Toolpath) -> list[str]:
        wf = self.wf
        lines: list[str] = []
        level: Optional[float] = None
        for seg in toolpath.segments:
            e = seg.end
            if isinstance(seg, RapidMove):
                lines.append(rapid(x=e.x, y=e.y, z=e.z, wf=wf))
            elif isinstance(seg, LinearMove):
                plunge = (seg.start.x, seg.start.y) == (e.x, e.y) and e.z < seg.start.z
                if plunge and e.z != level and self.program.include_comments:
                    lines.append(comment(f"Z LEVEL {e.z:.3f}"))
                    level = e.z
                lines.append(linear(x=e.x, y=e.y, z=e.z, f=seg.feedrate, wf=wf))
            elif isinstance(seg, CircularMove):
                i = seg.center[0] - seg.start.x
                j = seg.center[1] - seg.start.y
                lines.append(arc(seg.clockwise, x=e.x, y=e.y, z=e.z, i=i, j=j,
                                 f=seg.feedrate, wf=wf))
        return lines


def emit(program: MachineProgram) -> str:
    """Render *program* as G-code text."""
    return GCodeEmitter(program).emit()


def emit_toolpath(
    toolpath: Toolpath,
    program: Optional[MachineProgram] = None,
    tool: Optional[Tool] = None,
    parameters: Optional[OperationParameters] = None,
) -> str:
    """Render synthesized *toolpath* inside *program*'s header and footer."""
    return GCodeEmitter(program or MachineProgram()).emit_toolpath(toolpath, tool, parameters)
