"""A complete machining program: header settings plus ordered operations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .geometry.vector import Point3D
from .operation import MachineOperation
from .units import Units


class CoordinateFormat(Enum):
    DECIMAL = "decimal"   # X12.5
    INTEGER = "integer"   # X12500 (thousandths)


class Controller(Enum):
    """Target control dialect."""

    FANUC = "fanuc"             # % / O-number bracket, G8x cycles, M29, G05.1
    GENERIC = "generic"         # plain ISO words, G8x cycles, no vendor codes
    HEIDENHAIN = "heidenhain"   # ISO mode: BEGIN/END PGM, G70/G71, TOOL CALL

    @property
    def canned_cycles(self) -> bool:
        """Whether G81-G89 hole cycles can be written for this control."""
        return self is not Controller.HEIDENHAIN

    @property
    def vendor_codes(self) -> bool:
        """Fanuc-only words: rigid tapping (M29) and high-speed mode (G05.1)."""
        return self is Controller.FANUC

    def units_word(self, units: Units) -> str:
        """Modal units word: G20 / G21, or G70 / G71 on Heidenhain."""
        if self is Controller.HEIDENHAIN:
            return "G70" if units is Units.INCH else "G71"
        return units.gcode_modal


class OptimizationLevel(Enum):
    NONE = "none"
    BASIC = "basic"         # drop repeated F / S words
    ADVANCED = "advanced"   # also drop repeated G0 / G1 words


@dataclass
class MachineProgram:
    """Everything the emitter needs to write one program file."""

    name: str = "PROGRAM"
    operations: list[MachineOperation] = field(default_factory=list)
    units: Units = Units.MM
    controller: Controller = Controller.FANUC
    work_offset: str = "G54"
    program_number: Optional[int] = None
    material: str = ""
    coordinate_format: CoordinateFormat = CoordinateFormat.DECIMAL
    decimals: int = 3
    block_numbers: bool = False
    block_number_start: int = 10
    block_number_increment: int = 10
    optimization: OptimizationLevel = OptimizationLevel.NONE
    optional_stop: bool = False
    include_comments: bool = True
    clearance_height: float = 100.0
    tool_change_position: Optional[Point3D] = None
    high_speed_mode: bool = False
    extensions: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> MachineProgram:
        """Build from a JSON-style dict.  Unknown keys are ignored.

        Raises ValueError for unknown enum values.
        """
        data = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        data["operations"] = [MachineOperation.from_dict(o) for o in d.get("operations", [])]
        if "units" in data:
            data["units"] = Units.parse(data["units"])
        if "controller" in data:
            data["controller"] = Controller(data["controller"])
        if "coordinate_format" in data:
            data["coordinate_format"] = CoordinateFormat(data["coordinate_format"])
        if "optimization" in data:
            data["optimization"] = OptimizationLevel(data["optimization"])
        if data.get("tool_change_position") is not None:
            data["tool_change_position"] = Point3D(*data["tool_change_position"])
        return cls(**data)


def load_program(path: Path) -> MachineProgram:
    """Read a program description from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Program file not found: {path}")
    return MachineProgram.from_dict(json.loads(path.read_text()))
