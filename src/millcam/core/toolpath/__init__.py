"""Toolpath generation package."""

from .base import CircularMove, LinearMove, MoveType, RapidMove, Toolpath, ToolpathSegment
from .ordering import order_shapes
from .synthesis import generate_toolpath, synthesize

__all__ = [
    "CircularMove", "LinearMove", "MoveType", "RapidMove", "Toolpath",
    "ToolpathSegment", "order_shapes", "generate_toolpath", "synthesize",
]
