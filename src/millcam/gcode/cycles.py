"""Canned (fixed) drilling cycles: codes, block builders and motion expansion.

The emitter and the parser/validator share this table so that what is
written can be read back.  Conventions (vary by controller):

* G73 high-speed peck: feed down by Q, back off a small fixed amount.
* G83 deep-hole peck: feed down by Q, rapid out to the R plane.
* G84 / G74 right / left hand tapping: feed back out.
* G82 / G89 dwell at the bottom (P, milliseconds).
* G85 / G89 feed out; G81 / G82 / G83 / G73 / G76 / G86 rapid out.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..core.geometry.vector import Point3D
from ..core.operation import MachineOperation, OperationType
from .gcode_writer import DEFAULT_FORMAT, WordFormat

CANCEL_CYCLE = "G80"

# Back-off distance of a G73 chip-breaking peck
CHIP_BREAK_RETRACT = 0.5


@dataclass(frozen=True)
class CycleSpec:
    code: int
    description: str
    pecking: bool = False
    chip_break: bool = False
    feed_out: bool = False
    dwell: bool = False

    @property
    def gcode(self) -> str:
        return f"G{self.code}"


CANNED_CYCLES: dict[int, CycleSpec] = {
    73: CycleSpec(73, "chip-break peck drilling", pecking=True, chip_break=True),
    74: CycleSpec(74, "left-hand tapping", feed_out=True),
    76: CycleSpec(76, "fine boring"),
    81: CycleSpec(81, "drilling"),
    82: CycleSpec(82, "drilling with dwell", dwell=True),
    83: CycleSpec(83, "peck drilling", pecking=True),
    84: CycleSpec(84, "tapping", feed_out=True),
    85: CycleSpec(85, "boring, feed out", feed_out=True),
    86: CycleSpec(86, "boring, rapid out"),
    89: CycleSpec(89, "boring with dwell, feed out", feed_out=True, dwell=True),
}


def is_canned_cycle(code: float) -> bool:
    return float(code).is_integer() and int(code) in CANNED_CYCLES


def cycle_code(op: MachineOperation) -> int:
    """Cycle used to cut the holes of a hole-making operation."""
    p = op.parameters
    if op.type is OperationType.CHIP_BREAK_DRILL:
        return 73
    if op.type is OperationType.PECK_DRILL:
        return 83
    if op.type is OperationType.DRILL:
        if p.peck_increment:
            return 83
        return 82 if p.dwell_time else 81
    if op.type is OperationType.TAP:
        return 84
    if op.type is OperationType.BORE:
        return 82 if p.dwell_time else 85
    raise ValueError(f"{op.type.value} is not a hole-making operation")


def peck_increment(op: MachineOperation) -> float:
    """Q word: the requested peck, or one tool diameter when none is set."""
    if op.parameters.peck_increment and op.parameters.peck_increment > 0:
        return op.parameters.peck_increment
    return op.tool.diameter


def cycle_block(
    code: int,
    r: float,
    z: float,
    f: float,
    x: Optional[float] = None,
    y: Optional[float] = None,
    q: Optional[float] = None,
    dwell: Optional[float] = None,
    wf: WordFormat = DEFAULT_FORMAT,
) -> str:
    """``G83 X10. Y10. R5. Z-20. Q2. F100`` style cycle start block.

    With X/Y the block also cuts the first hole.  *dwell* is in seconds and
    written as integer milliseconds.
    """
    parts = [f"G{code}"] + wf.axes(x=x, y=y) + [f"R{wf.coord(r)}", f"Z{wf.coord(z)}"]
    if q is not None:
        parts.append(f"Q{wf.coord(q)}")
    if dwell:
        parts.append(f"P{dwell_ms(dwell)}")
    parts.append(f"F{wf.feed(f)}")
    return " ".join(parts)


def hole_block(x: float, y: float, wf: WordFormat = DEFAULT_FORMAT) -> str:
    return f"X{wf.coord(x)} Y{wf.coord(y)}"


def dwell_ms(seconds: float) -> int:
    """P word value: dwells are written in whole milliseconds."""
    return int(round(seconds * 1000))


def dwell_word(seconds: float) -> str:
    """Stand-alone ``G4 P500`` dwell block."""
    return f"G4 P{dwell_ms(seconds)}"


def tapping_feed(pitch: float, spindle_speed: float) -> float:
    """Feed per minute that keeps a tap of *pitch* in step with the spindle."""
    return pitch * spindle_speed


# ---------------------------------------------------------------------------
# Motion expansion (what the machine does for one hole)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CycleMove:
    point: Point3D
    rapid: bool


def expand_cycle(
    code: int,
    x: float,
    y: float,
    initial_z: float,
    r: float,
    z: float,
    q: Optional[float] = None,
    return_to_initial: bool = False,
    chip_break_retract: float = CHIP_BREAK_RETRACT,
    current_z: Optional[float] = None,
) -> list[CycleMove]:
    """Moves executed by one hole of cycle *code* at (*x*, *y*).

    Rapid over the hole at the current height, rapid down to R, cut to Z
    (in Q pecks for the pecking cycles), then leave the hole: feed out for
    tapping and feed-out boring, rapid otherwise.  *return_to_initial* (G98)
    finishes back at the initial height instead of at R.  The traverse over
    the hole happens at *current_z* (default: the initial height).
    """
    spec = CANNED_CYCLES[code]
    moves = [
        CycleMove(Point3D(x, y, initial_z if current_z is None else current_z), True),
        CycleMove(Point3D(x, y, r), True),
    ]

    if spec.pecking and q is not None and q > 0:
        # Cap: one peck per Q of travel, plus the final partial peck
        max_pecks = int(math.ceil((r - z) / q)) + 1
        cur = r
        for _ in range(max_pecks):
            nxt = max(z, cur - q)
            moves.append(CycleMove(Point3D(x, y, nxt), False))
            if nxt <= z + 1e-9:
                break
            if spec.chip_break:
                moves.append(CycleMove(Point3D(x, y, nxt + chip_break_retract), True))
            else:
                moves.append(CycleMove(Point3D(x, y, r), True))
            cur = nxt
    else:
        moves.append(CycleMove(Point3D(x, y, z), False))

    moves.append(CycleMove(Point3D(x, y, r), not spec.feed_out))
    if return_to_initial and initial_z > r:
        moves.append(CycleMove(Point3D(x, y, initial_z), True))
    return moves
