"""Closed-form similarity transform between two point sets (Horn's method)."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Sim3Transform:
    """Similarity ``x1 = scale * rotation @ x2 + translation``."""

    rotation: np.ndarray
    translation: np.ndarray
    scale: float

    @property
    def matrix(self):
        """The 4x4 matrix taking frame 2 into frame 1."""
        T = np.eye(4)
        T[:3, :3] = self.scale * self.rotation
        T[:3, 3] = self.translation
        return T

    @property
    def inverse_matrix(self):
        """The 4x4 matrix taking frame 1 into frame 2."""
        sr_inv = (1.0 / self.scale) * self.rotation.T
        T = np.eye(4)
        T[:3, :3] = sr_inv
        T[:3, 3] = -sr_inv @ self.translation
        return T

    def apply(self, points):
        """Map points of shape ``(n, 3)`` from frame 2 into frame 1."""
        points = np.asarray(points, dtype=float)
        return self.scale * points @ self.rotation.T + self.translation


def _rodrigues(rotvec):
    theta = float(np.linalg.norm(rotvec))
    if theta == 0.0:
        return np.eye(3)
    k = rotvec / theta
    K = np.array([[0.0, -k[2], k[1]], [k[2], 0.0, -k[0]], [-k[1], k[0], 0.0]])
    return np.eye(3) + math.sin(theta) * K + (1.0 - math.cos(theta)) * K @ K


def _as_points(points, name):
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"{name} must have shape (n, 3)")
    return points


def compute_sim3(P1, P2, fix_scale):
    """Return the similarity mapping points ``P2`` onto ``P1``.

    Both arrays hold matching points as rows. With ``fix_scale`` the scale is 1.
    """
    P1 = _as_points(P1, "P1")
    P2 = _as_points(P2, "P2")
    if P1.shape != P2.shape:
        raise ValueError("P1 and P2 must hold the same number of points")
    if P1.shape[0] == 0:
        raise ValueError("at least one point pair is required")

    O1 = P1.mean(axis=0)
    O2 = P2.mean(axis=0)
    Pr1 = P1 - O1
    Pr2 = P2 - O2

    M = Pr2.T @ Pr1
    n11 = M[0, 0] + M[1, 1] + M[2, 2]
    n12 = M[1, 2] - M[2, 1]
    n13 = M[2, 0] - M[0, 2]
    n14 = M[0, 1] - M[1, 0]
    n22 = M[0, 0] - M[1, 1] - M[2, 2]
    n23 = M[0, 1] + M[1, 0]
    n24 = M[2, 0] + M[0, 2]
    n33 = -M[0, 0] + M[1, 1] - M[2, 2]
    n34 = M[1, 2] + M[2, 1]
    n44 = -M[0, 0] - M[1, 1] + M[2, 2]
    N = np.array([
        [n11, n12, n13, n14],
        [n12, n22, n23, n24],
        [n13, n23, n33, n34],
        [n14, n24, n34, n44],
    ])

    # The eigenvector of the largest eigenvalue is the rotation quaternion.
    _, evecs = np.linalg.eigh(N)
    q = evecs[:, -1]
    vec = q[1:4]
    vec_norm = float(np.linalg.norm(vec))
    if vec_norm == 0.0:
        R = np.eye(3)
    else:
        angle = math.atan2(vec_norm, q[0])
        R = _rodrigues(2.0 * angle * vec / vec_norm)

    P3 = Pr2 @ R.T
    if fix_scale:
        scale = 1.0
    else:
        scale = float(np.sum(Pr1 * P3)) / float(np.sum(P3 ** 2))

    translation = O1 - scale * R @ O2
    return Sim3Transform(rotation=R, translation=translation, scale=scale)


def camera_to_image(points, K):
    """Project camera-frame points ``(n, 3)`` to pixels ``(n, 2)`` with intrinsics ``K``."""
    points = _as_points(points, "points")
    K = np.asarray(K, dtype=float)
    fx, fy, cx, cy = K[0, 0], K[1, 1], K[0, 2], K[1, 2]
    inv_z = 1.0 / points[:, 2]
    return np.column_stack((fx * points[:, 0] * inv_z + cx, fy * points[:, 1] * inv_z + cy))


def project(points, T, K):
    """Transform points by the 4x4 matrix ``T`` and project them with ``K``."""
    points = _as_points(points, "points")
    T = np.asarray(T, dtype=float)
    return camera_to_image(points @ T[:3, :3].T + T[:3, 3], K)