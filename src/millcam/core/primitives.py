"""Parametric primitive descriptors supplied by the modelling side.

A descriptor is a read-only record: a type tag, a position relative to its
parent, a bag of per-type dimensions, optional children and, for generic
meshes, vertex/face arrays.  Dimension keys are kept as given (camelCase
or snake_case) and looked up through :meth:`Primitive.dim`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .geometry.shapes import BooleanOp
from .geometry.vector import Point3D

# Keys of a descriptor dict that are not dimensions
_RESERVED_KEYS = {
    "type", "id", "name", "x", "y", "z", "position", "children", "elements",
    "vertices", "faces", "operation", "dimensions", "parameters",
}


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class Primitive:
    """One node of the geometry forest."""

    type: str
    id: str = ""
    position: Point3D = Point3D(0.0, 0.0, 0.0)
    dimensions: dict[str, Any] = field(default_factory=dict)
    children: list[Primitive] = field(default_factory=list)
    vertices: Optional[np.ndarray] = field(default=None, repr=False)
    faces: Optional[np.ndarray] = field(default=None, repr=False)
    operation: Optional[BooleanOp] = None   # None -> inherit from parent

    def dim(self, *names: str, default: Any = None) -> Any:
        """First dimension present under any of *names* (case-style agnostic)."""
        for name in names:
            for key in (name, _snake(name)):
                value = self.dimensions.get(key)
                if value is not None:
                    return value
        return default

    @classmethod
    def from_dict(cls, d: dict) -> Primitive:
        """Build a primitive (and its children) from a descriptor dict.

        Position may be given as ``x``/``y``/``z`` keys or as a ``position``
        mapping or triple.  Dimensions may sit at top level or under
        ``dimensions`` / ``parameters``.
        """
        pos = d.get("position")
        if isinstance(pos, dict):
            position = Point3D(float(pos.get("x", 0.0)), float(pos.get("y", 0.0)),
                               float(pos.get("z", 0.0)))
        elif pos is not None:
            position = Point3D(*(float(v) for v in pos))
        else:
            position = Point3D(float(d.get("x", 0.0)), float(d.get("y", 0.0)),
                               float(d.get("z", 0.0)))

        dims = {k: v for k, v in d.items() if k not in _RESERVED_KEYS}
        for nested in ("parameters", "dimensions"):
            if isinstance(d.get(nested), dict):
                dims.update(d[nested])

        children = [cls.from_dict(c) for c in d.get("children") or d.get("elements") or []]
        vertices = d.get("vertices")
        faces = d.get("faces")
        op = d.get("operation")

        return cls(
            type=str(d.get("type", "")).lower(),
            id=str(d.get("id", d.get("name", ""))),
            position=position,
            dimensions=dims,
            children=children,
            vertices=None if vertices is None else np.asarray(vertices, dtype=np.float64),
            faces=None if faces is None else np.asarray(faces, dtype=np.int64),
            operation=None if op is None else BooleanOp(op),
        )


def load_elements(data: list[dict] | dict) -> list[Primitive]:
    """Descriptor list (or ``{"elements": [...]}`` document) to primitives."""
    if isinstance(data, dict):
        data = data.get("elements", [data])
    return [Primitive.from_dict(d) for d in data]
