"""Scores that rank map points and keyframe pairs for sparse local mapping."""

from __future__ import annotations

import math

import numpy as np

_BASELINE_NUMERATOR = 10.0
_BASELINE_SLOPE = 0.1


def func_point(n, m):
    """Visibility weight of a point seen by ``n`` frames when the best point is seen by ``m``.

    The smaller the weight, the more the point is wanted. A point seen as often
    as the best one weighs 1; otherwise each count from ``n`` up to ``m - 1``
    (skipping 1) multiplies the weight by ``(n + 1) / (n - 1)``.
    """
    n = int(n)
    m = int(m)
    if n == m:
        return 1.0
    factors = sum(1 for i in range(n, m) if i != 1)
    if factors == 0:
        return 1.0
    if n == 1:
        # Each factor divides a positive number by zero.
        return math.inf
    return ((n + 1) / (n - 1)) ** factors


def point_visibility(observations, max_visibility):
    """Visibility weight of a point with ``observations`` against the local maximum."""
    return func_point(observations, max_visibility)


def min_circle_radius(width, height):
    """Radius of the smallest circle that covers a ``width`` by ``height`` rectangle."""
    return math.sqrt(height * height + width * width) / 2.0


def point_diversity(n1, n2):
    """Density score of a point from its neighbour counts in two keyframes.

    Returns ``ceil(log(n1 * n2 + 1))``, or ``ceil(log(n2 + 1))`` when ``n1`` is 0.
    """
    if n1 < 0 or n2 < 0:
        raise ValueError("neighbour counts must not be negative")
    if n1 != 0:
        value = math.log(n1 * n2 + 1)
    else:
        value = math.log(n2 + 1)
    return int(math.ceil(value))


def baseline_score(center_i, center_k):
    """Cost of a keyframe pair, falling as the distance between camera centres grows."""
    a = np.asarray(center_i, dtype=float).reshape(-1)
    b = np.asarray(center_k, dtype=float).reshape(-1)
    if a.shape != b.shape:
        raise ValueError("camera centres must have the same dimension")
    distance = float(np.linalg.norm(a - b))
    return _BASELINE_NUMERATOR / (_BASELINE_SLOPE * distance + 1.0)