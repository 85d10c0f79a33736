"""Plain 3D coordinate value type and free vector functions."""

from __future__ import annotations

import math
from typing import NamedTuple


class Point3D(NamedTuple):
    """An immutable point (or displacement) in machine coordinates."""
    x: float
    y: float
    z: float = 0.0

    def with_z(self, z: float) -> Point3D:
        return Point3D(self.x, self.y, z)


def add(a: Point3D, b: Point3D) -> Point3D:
    return Point3D(a.x + b.x, a.y + b.y, a.z + b.z)



def distance(a: Point3D, b: Point3D) -> float:
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2)


def distance_2d(a: tuple[float, ...], b: tuple[float, ...]) -> float:
    """XY distance, ignoring Z (works on 2-tuples and Point3D alike)."""
    return math.hypot(a[0] - b[0], a[1] - b[1])
