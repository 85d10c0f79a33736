"""Cutting tool definitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class ToolType(Enum):
    FLAT_ENDMILL = "flat_endmill"
    BALL_ENDMILL = "ball_endmill"
    DRILL = "drill"
    TAP = "tap"
    BORING_BAR = "boring_bar"
    FACE_MILL = "face_mill"


@dataclass
class Tool:
    """A cutting tool as the controller sees it.

    ``length_offset`` / ``diameter_offset`` are the H and D register numbers;
    both default to the pocket number.
    """
    number: int
    diameter: float
    tool_type: ToolType = ToolType.FLAT_ENDMILL
    name: str = ""
    length_offset: Optional[int] = None
    diameter_offset: Optional[int] = None
    max_rpm: Optional[int] = None

    @property
    def radius(self) -> float:
        return self.diameter / 2.0

    @property
    def h_register(self) -> int:
        return self.number if self.length_offset is None else self.length_offset

    @property
    def d_register(self) -> int:
        return self.number if self.diameter_offset is None else self.diameter_offset

    def to_dict(self) -> dict:
        d = asdict(self)
        d["tool_type"] = self.tool_type.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Tool:
        d = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        if "tool_type" in d:
            d["tool_type"] = ToolType(d["tool_type"])
        return cls(**d)
