"""Whole-program passes run on emitted lines: modal elision and block numbers.

Both passes thread their state through a single loop over the program so
that nothing leaks between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.program import MachineProgram, OptimizationLevel

_MOTION_CODES = {0.0, 1.0, 2.0, 3.0}


def _split(line: str) -> tuple[str, str]:
    """(code, trailing comment including its parenthesis)."""
    idx = line.find("(")
    if idx < 0:
        return line, ""
    return line[:idx], line[idx:]


def _is_passthrough(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped == "%" or stripped.startswith("(") or stripped[0] in "O;"


def _is_keyword_block(tokens: list[str]) -> bool:
    """Dialect keyword blocks (``TOOL CALL 3 Z S3000``, ``END PGM ...``)."""
    return bool(tokens) and len(tokens[0]) > 1 and tokens[0].isalpha()


def _value(token: str) -> Optional[float]:
    try:
        return float(token[1:])
    except ValueError:
        return None


@dataclass
class _ModalState:
    motion: Optional[float] = None
    feed: Optional[float] = None
    spindle: Optional[float] = None


def optimize_modal(lines: list[str], level: OptimizationLevel) -> list[str]:
    """Drop words that repeat the modal value already in effect.

    ``BASIC`` drops repeated F and S words; ``ADVANCED`` additionally drops
    G0 / G1 when that motion mode is already active.  A canned-cycle start
    or ``G80`` clears the motion mode, and S is kept on rigid-tap (M29)
    blocks.  Dialect keyword blocks pass through untouched.  Lines left
    with no words (and no comment) are removed.
    """
    if level is OptimizationLevel.NONE:
        return list(lines)

    state = _ModalState()
    out: list[str] = []
    for line in lines:
        if _is_passthrough(line):
            out.append(line)
            continue
        code, note = _split(line)
        tokens = code.split()
        if _is_keyword_block(tokens):
            out.append(line)
            continue
        rigid_tap = any(t.upper() in ("M29", "M29.") for t in tokens)
        kept: list[str] = []
        for tok in tokens:
            letter = tok[0].upper()
            value = _value(tok)
            if value is None:
                kept.append(tok)
                continue
            if letter == "G":
                if value in _MOTION_CODES:
                    if (level is OptimizationLevel.ADVANCED and value in (0.0, 1.0)
                            and state.motion == value):
                        continue
                    state.motion = value
                elif value == 80.0 or 73.0 <= value <= 89.0:
                    state.motion = None
            elif letter == "F":
                if state.feed == value:
                    continue
                state.feed = value
            elif letter == "S":
                if state.spindle == value and not rigid_tap:
                    continue
                state.spindle = value
            kept.append(tok)

        if not kept and not note:
            continue
        text = " ".join(kept)
        if note:
            text = f"{text} {note}" if text else note
        out.append(text)
    return out


def number_blocks(lines: list[str], start: int = 10, increment: int = 10, width: int = 4) -> list[str]:
    """Prefix every code block with ``N0010``-style sequence numbers.

    Comment-only lines, ``%`` and program-number lines are left unnumbered.
    """
    out: list[str] = []
    n = start
    for line in lines:
        if _is_passthrough(line):
            out.append(line)
            continue
        out.append(f"N{n:0{width}d} {line}")
        n += increment
    return out


def postprocess(lines: list[str], program: MachineProgram) -> list[str]:
    """Apply the program's optimisation level, then block numbering."""
    lines = optimize_modal(lines, program.optimization)
    if program.block_numbers:
        lines = number_blocks(lines, program.block_number_start, program.block_number_increment)
    return lines
