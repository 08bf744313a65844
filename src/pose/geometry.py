"""Vector and rotation helpers for building orientations from surface hits."""

from __future__ import annotations

import math

import numpy as np

AXIS_EPSILON = 1e-6


class DegenerateGeometry(ArithmeticError):
    """Raised when hit points do not span a usable local frame."""


def normalize(v: np.ndarray, eps: float = AXIS_EPSILON) -> np.ndarray:
    """Return v / |v|, raising DegenerateGeometry for near-zero vectors."""
    v = np.asarray(v, dtype=float)
    n = float(np.linalg.norm(v))
    if not math.isfinite(n) or n < eps:
        raise DegenerateGeometry(f"Cannot normalize vector of length {n}")
    return v / n


def look_rotation(forward: np.ndarray, up: np.ndarray) -> np.ndarray:
    """
    Rotation matrix whose +Z axis points along forward and +Y along up.

    Columns are (right, up, forward). up is re-orthogonalized against
    forward, so the result is a proper rotation (det = +1).
    """
    z = normalize(forward)
    x = normalize(np.cross(up, z))
    y = np.cross(z, x)
    return np.column_stack((x, y, z))


def frame_from_hits(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """
    Build an orientation from three surface points.

    Args:
        p0: Center hit.
        p1: Hit above the center (in image space).
        p2: Hit right of the center (in image space).

    Raises:
        DegenerateGeometry: If the points are coincident or collinear.
    """
    forward = normalize(np.asarray(p1, dtype=float) - np.asarray(p0, dtype=float))
    right = normalize(np.asarray(p2, dtype=float) - np.asarray(p0, dtype=float))
    up = normalize(np.cross(forward, right))
    return look_rotation(forward, up)
