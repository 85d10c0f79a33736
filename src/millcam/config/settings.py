"""Toolpath generation settings (persisted to disk as JSON)."""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class OffsetMode(Enum):
    NONE = "none"
    INSIDE = "inside"     # pocket walls: tool centre inside the shape
    OUTSIDE = "outside"   # part walls: tool centre outside the shape


class CutDirection(Enum):
    CLIMB = "climb"                # counter-clockwise around islands
    CONVENTIONAL = "conventional"  # clockwise


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class ToolpathSettings:
    """Options for slicing-based toolpath synthesis.

    Keys may be given camelCase (``toolDiameter``) or snake_case; unknown
    keys are ignored and missing keys keep their defaults.
    """

    feedrate: float = 1000.0
    plungerate: float = 300.0
    stepdown: float = 1.0
    stepover: float = 0.5          # fraction of tool diameter
    tool_diameter: float = 6.0
    offset: OffsetMode = OffsetMode.OUTSIDE
    direction: CutDirection = CutDirection.CLIMB
    safe_height: float = 5.0
    include_comments: bool = True
    depth: Optional[float] = None   # None -> full part height

    @property
    def tool_radius(self) -> float:
        return self.tool_diameter / 2.0

    @property
    def link_distance(self) -> float:
        """Gaps longer than this are crossed with a retract instead of a feed."""
        return 1.5 * self.tool_diameter

    def to_dict(self) -> dict:
        d = asdict(self)
        d["offset"] = self.offset.value
        d["direction"] = self.direction.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> ToolpathSettings:
        d = {}
        for key, value in data.items():
            name = _snake(key)
            if name in cls.__dataclass_fields__:
                d[name] = value
        if "offset" in d:
            d["offset"] = OffsetMode(d["offset"])
        if "direction" in d:
            d["direction"] = CutDirection(d["direction"])
        return cls(**d)

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: Path) -> ToolpathSettings:
        path = Path(path)
        if path.exists():
            return cls.from_dict(json.loads(path.read_text()))
        return cls()
