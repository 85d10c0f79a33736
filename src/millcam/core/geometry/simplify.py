"""Ramer-Douglas-Peucker polyline simplification."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def _chord_distances(pts: np.ndarray, a: int, b: int) -> np.ndarray:
    """Distances of pts[a+1:b] from the chord pts[a]-pts[b]."""
    seg = pts[b] - pts[a]
    rel = pts[a + 1:b] - pts[a]
    length = np.linalg.norm(seg)
    if length <= 1e-12:
        # Closed run: fall back to distance from the shared endpoint
        return np.linalg.norm(rel, axis=1)
    t = np.clip(rel @ seg / (length * length), 0.0, 1.0)
    proj = np.outer(t, seg)
    return np.linalg.norm(rel - proj, axis=1)


def simplify_path(points: Sequence[Sequence[float]], tolerance: float) -> list[tuple[float, ...]]:
    """Drop points that lie within *tolerance* of the simplified polyline.

    Works on 2D or 3D points; the output keeps the input's dimensionality and
    always keeps the two endpoints.  Re-running with the same tolerance is a
    no-op.
    """
    if len(points) < 3:
        return [tuple(p) for p in points]
    pts = np.asarray(points, dtype=np.float64)
    keep = np.zeros(len(pts), dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, len(pts) - 1)]
    while stack:
        a, b = stack.pop()
        if b - a < 2:
            continue
        dists = _chord_distances(pts, a, b)
        idx = int(np.argmax(dists))
        if dists[idx] > tolerance:
            split = a + 1 + idx
            keep[split] = True
            stack.append((a, split))
            stack.append((split, b))

    return [tuple(float(v) for v in p) for p in pts[keep]]
