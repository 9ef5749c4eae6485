"""Camera-frame geometry used when scoring map points against keyframes."""

from __future__ import annotations

import numpy as np

from .scores import min_circle_radius

# Half the size of a feature-grid window, in pixels.
_WINDOW_HALF_WIDTH = 64 // 2
_WINDOW_HALF_HEIGHT = 48 // 2

_PENALTY_GAIN = 1.0

# Returned for points that lie on or behind the image plane.
NOT_VISIBLE = (-1.0, -1.0)


def _camera_point(world_pos, Tcw):
    point = np.asarray(world_pos, dtype=float).reshape(-1)
    if point.shape != (3,):
        raise ValueError("world position must have three coordinates")
    T = np.asarray(Tcw, dtype=float)
    if T.ndim != 2 or T.shape[0] < 3 or T.shape[1] != 4:
        raise ValueError("pose must be a 4x4 (or 3x4) world-to-camera matrix")
    return T[:3, :3] @ point + T[:3, 3]


def depth_penalty(world_pos, Tcw, avg_depth):
    """Signed squared difference between a point's depth in a camera and ``avg_depth``.

    Points deeper than the average give a positive penalty, nearer ones a
    negative penalty of the same magnitude.
    """
    depth = float(_camera_point(world_pos, Tcw)[2])
    delta = depth - float(avg_depth)
    sign = 1.0 if delta >= 0 else -1.0
    return _PENALTY_GAIN * delta * delta * sign


def project_point(world_pos, Tcw, fx, fy, cx, cy):
    """Pixel ``(u, v)`` of a world point, or ``(-1, -1)`` when it is not in front of the camera."""
    x, y, z = _camera_point(world_pos, Tcw)
    if z <= 0:
        return NOT_VISIBLE
    return float(fx * x / z + cx), float(fy * y / z + cy)


def neighbor_search_radius(scale_factor):
    """Radius around a projected point in which neighbouring features are counted.

    The base radius covers one grid window and grows with the pyramid scale.
    """
    if scale_factor < 0:
        raise ValueError("scale factor must not be negative")
    return min_circle_radius(_WINDOW_HALF_WIDTH, _WINDOW_HALF_HEIGHT) * float(scale_factor)