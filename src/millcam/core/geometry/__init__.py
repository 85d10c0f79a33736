"""Pure 2D/3D geometry: value types and the contour algorithms."""

from .arcs import fit_arc, fit_arcs
from .contours import Contour, extract_contours
from .offset import offset_contour
from .shapes import (
    ARC_RADIUS_TOLERANCE,
    Arc,
    ArcDirection,
    BooleanOp,
    Circle,
    Ellipse,
    Plane,
    PolygonShape,
    Rectangle,
    ZLevelSlice,
)
from .simplify import simplify_path
from .vector import Point3D

__all__ = [
    "ARC_RADIUS_TOLERANCE", "Arc", "ArcDirection", "BooleanOp", "Circle",
    "Contour", "Ellipse", "Plane", "Point3D", "PolygonShape", "Rectangle",
    "ZLevelSlice", "extract_contours", "fit_arc", "fit_arcs",
    "offset_contour", "simplify_path",
]
