"""Mesh file loading via trimesh.

Supports STL, OBJ, PLY, OFF, and other trimesh-compatible formats.  A
loaded mesh becomes a ``mesh`` primitive so that it slices alongside the
parametric primitives.
"""

from __future__ import annotations

import warnings
from pathlib import Path

import numpy as np
import trimesh

from .geometry.vector import Point3D
from .primitives import Primitive

# Formats trimesh can load natively
SUPPORTED_EXTENSIONS = {
    ".stl", ".obj", ".ply", ".off", ".glb", ".gltf", ".3mf",
}


def mesh_to_primitive(
    mesh: trimesh.Trimesh,
    element_id: str = "mesh",
    position: Point3D = Point3D(0.0, 0.0, 0.0),
) -> Primitive:
    return Primitive(
        type="mesh",
        id=element_id,
        position=position,
        vertices=np.asarray(mesh.vertices, dtype=np.float64),
        faces=np.asarray(mesh.faces, dtype=np.int64),
    )


def load_mesh_primitive(path: Path, repair: bool = True) -> Primitive:
    """Load a mesh from *path* as a ``mesh`` primitive.

    Raises FileNotFoundError or ValueError on failure.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {path}")
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported mesh format: {path.suffix}")

    mesh = trimesh.load(str(path), force="mesh")
    if not isinstance(mesh, trimesh.Trimesh):
        raise ValueError(f"Could not load a single mesh from {path}")

    if repair and not mesh.is_watertight:
        trimesh.repair.fill_holes(mesh)
        trimesh.repair.fix_winding(mesh)
        if not mesh.is_watertight:
            warnings.warn(
                f"Mesh '{path.name}' is not watertight after repair. "
                "Slicing results may be incomplete.",
                UserWarning,
                stacklevel=2,
            )

    return mesh_to_primitive(mesh, element_id=path.stem)
